from shared.clients.ClientManager import ClientManager
from shared.clients.auth.AuthClientInterface import AuthClientInterface


class AuthClientManager(ClientManager[AuthClientInterface]):
    """Identity provider client selected by AUTH_ENGINE (default: supabase)."""

    client_type = "auth"
    class_prefix = "AuthClient"
    default_engine = "supabase"
