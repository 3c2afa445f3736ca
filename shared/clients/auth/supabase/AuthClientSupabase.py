from shared.clients.auth.AuthClientInterface import AuthClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class AuthClientSupabase(AuthClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("URL", default=None, val_type="string")
        self._anon_key = self.get_config_val("ANON_KEY", default=None, val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Supabase"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="URL", val_type="string", default=None),
            EnvConfig(env_key="ANON_KEY", val_type="string", default=None),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"apikey": self._anon_key}

    def get_token_headers(self, token: str) -> dict:
        return {"Authorization": f"Bearer {token}"}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/auth/v1/health"

    def _get_endpoint_user(self) -> str:
        return "/auth/v1/user"

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_user(self, raw_response: dict) -> dict:
        if not isinstance(raw_response, dict):
            return {}
        # GoTrue returns the user object at the top level
        return raw_response if "id" in raw_response else raw_response.get("user", {})
