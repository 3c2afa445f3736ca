from shared.clients.ClientManager import ClientManager
from shared.clients.llm.LLMClientInterface import LLMClientInterface


class LLMClientManager(ClientManager[LLMClientInterface]):
    """Embedding and chat model client selected by LLM_ENGINE (default: ollama)."""

    client_type = "llm"
    class_prefix = "LLMClient"
    default_engine = "ollama"
