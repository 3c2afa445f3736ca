from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class LLMClientOllama(LLMClientInterface):
    """Ollama backend: /api/embed, /api/chat and /api/show."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="http://localhost:11434", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Ollama"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="http://localhost:11434"),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        # only set when Ollama runs behind an authenticating proxy
        return {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return ""

    def _get_endpoint_embedding(self) -> str:
        return "/api/embed"

    def _get_endpoint_model_details(self) -> str:
        return "/api/show"

    def _get_endpoint_chat(self) -> str:
        return "/api/chat"

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def get_embed_payload(self, texts: list[str]) -> dict:
        return {"model": self.embed_model, "input": texts}

    def get_chat_payload(self, messages: list[dict]) -> dict:
        return {
            "model": self.chat_model,
            "messages": messages,
            "stream": False,
            "options": {"temperature": self.chat_temperature},
        }

    def get_model_details_payload(self) -> dict:
        return {"model": self.embed_model}

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_embeddings(self, raw_response: dict) -> list[list[float]]:
        embeddings = raw_response.get("embeddings") if isinstance(raw_response, dict) else None
        if not embeddings or not all(embeddings):
            raise ValueError(f"Ollama returned no embeddings for model '{self.embed_model}'.")
        return embeddings

    def extract_chat_reply(self, raw_response: dict) -> str:
        message = raw_response.get("message") if isinstance(raw_response, dict) else None
        content = (message or {}).get("content")
        if content is None:
            raise ValueError(f"Ollama returned no chat message for model '{self.chat_model}'.")
        return content

    def extract_vector_size(self, raw_response: dict) -> int:
        # e.g. {"model_info": {"bert.embedding_length": 384, ...}}
        info = raw_response.get("model_info") if isinstance(raw_response, dict) else None
        for key, value in (info or {}).items():
            if key.endswith(".embedding_length"):
                return int(value)
        raise ValueError(f"Could not determine embedding width of model '{self.embed_model}'.")
