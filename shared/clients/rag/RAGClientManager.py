from shared.clients.ClientManager import ClientManager
from shared.clients.rag.RAGClientInterface import RAGClientInterface


class RAGClientManager(ClientManager[RAGClientInterface]):
    """Retrieval store client selected by RAG_ENGINE ("supabase" or "memory")."""

    client_type = "rag"
    class_prefix = "RAGClient"
    default_engine = "supabase"
