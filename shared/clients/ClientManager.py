from typing import Generic, TypeVar

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig

ClientT = TypeVar("ClientT", bound=ClientInterface)


class ClientManager(Generic[ClientT]):
    """
    Instantiates the engine configured for one client type.

    The engine is read from `{TYPE}_ENGINE` and resolved to the class
    `shared.clients.<type>.<engine>.<Prefix><Engine>`, e.g. RAG_ENGINE=memory
    → shared.clients.rag.memory.RAGClientMemory.
    """

    client_type: str = ""
    class_prefix: str = ""
    default_engine: str = ""

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client: ClientT = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """
        Reads the engine name from ENV configuration.

        Returns:
            str: The capitalised engine name (e.g. "Supabase").

        Raises:
            ValueError: If the engine is configured as an empty value.
        """
        env_key = f"{self.client_type.upper()}_ENGINE"
        engine = self.helper_config.get_string_val(env_key, default=self.default_engine).strip()
        if not engine:
            raise ValueError(f"No {self.client_type} engine specified in configuration ({env_key}).")
        return engine.lower().capitalize()

    def _initialize_client(self) -> ClientT:
        engine = self._get_engine_from_env()
        class_name = f"{self.class_prefix}{engine}"
        try:
            module = __import__(
                f"shared.clients.{self.client_type}.{engine.lower()}.{class_name}",
                fromlist=[class_name],
            )
            client_class = getattr(module, class_name)
        except (ImportError, AttributeError) as e:
            raise ValueError(f"Unsupported {self.client_type} engine '{engine}'. Error: {e}")
        client = client_class(helper_config=self.helper_config)
        self.logging.debug("Instantiated %s client for engine: %s", self.client_type, engine)
        return client

    def get_client(self) -> ClientT:
        """Returns the instantiated client."""
        return self.client
