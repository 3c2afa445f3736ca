from abc import ABC, abstractmethod
from typing import Any

import httpx
from httpx._types import QueryParamTypes

from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class ClientInterface(ABC):
    """Base of every backend client (auth, rag, llm).

    Settings follow the `{TYPE}_{ENGINE}_{KEY}` convention, e.g.
    RAG_SUPABASE_ANON_KEY, and are validated on construction. The HTTP client
    only exists between boot() and close().
    """

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self.timeout = helper_config.get_number_val(f"{self.get_client_type().upper()}_TIMEOUT", default=30.0)

        self._client: httpx.AsyncClient | None = None
        self.validate_full_configuration()

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def validate_full_configuration(self) -> None:
        """
        Reads every required setting once so a missing one fails at startup.

        Raises:
            ValueError: If a setting without default is unset or a value has the wrong type.
        """
        for config in self._get_required_config():
            self.get_config_val(raw_key=config.env_key, default=config.default, val_type=config.val_type)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def get_client_type(self) -> str:
        """Lowercase client type, e.g. "rag"."""
        return self._get_client_type().lower()

    @abstractmethod
    def _get_client_type(self) -> str:
        pass

    def get_engine_name(self) -> str:
        """Lowercase engine name, e.g. "supabase"."""
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_engine_name(self) -> str:
        pass

    ################ CONFIG ##################
    @abstractmethod
    def _get_required_config(self) -> list[EnvConfig]:
        """
        Returns:
            list[EnvConfig]: The engine's settings, checked by validate_full_configuration().
        """
        pass

    def _get_config_key_name(self, raw_key: str) -> str:
        return f"{self.get_client_type().upper()}_{self.get_engine_name().upper()}_{raw_key.upper()}"

    def get_config_val(self, raw_key: str, default: Any = None, val_type: str = "string") -> Any:
        """
        Reads one engine setting.

        Args:
            raw_key (str): Key without prefix, e.g. "ANON_KEY".
            default (Any): Value used when the variable is unset. None makes it required.
            val_type (str): "string", "number", "bool" or "list".

        Returns:
            Any: The parsed value.

        Raises:
            ValueError: If the setting is required but unset, or val_type is unknown.
        """
        key = self._get_config_key_name(raw_key)
        readers = {
            "string": self._helper_config.get_string_val,
            "number": self._helper_config.get_number_val,
            "bool": self._helper_config.get_bool_val,
            "list": self._helper_config.get_list_val,
        }
        if val_type not in readers:
            raise ValueError(f"Unsupported config value type '{val_type}' for '{key}'.")
        return readers[val_type](key, default=default)

    ################ AUTH ##################
    @abstractmethod
    def _get_auth_header(self) -> dict:
        """Headers sent with every request, e.g. {"apikey": "..."}."""
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_base_url(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_healthcheck(self) -> str:
        pass

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    async def boot(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        """Create the HTTP client. Tests pass an httpx.MockTransport."""
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=transport)

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def do_healthcheck(self) -> httpx.Response:
        return await self.do_request(method="GET", endpoint=self._get_endpoint_healthcheck())

    async def do_request(
        self,
        method: str = "GET",
        endpoint: str = "",
        json: dict | list | None = None,
        params: QueryParamTypes | None = None,
        additional_headers: dict | None = None,
    ) -> httpx.Response:
        """Send one request to the backend. Nothing is retried.

        Args:
            method (str): HTTP method.
            endpoint (str): Path appended to the base URL.
            json (dict | list | None): JSON body.
            params (QueryParamTypes | None): Query string parameters.
            additional_headers (dict | None): Headers merged over the default auth header.

        Returns:
            httpx.Response: The response, whatever its status.

        Raises:
            RuntimeError: If boot() has not been called.
            httpx.HTTPError: On transport failures and timeouts.
        """
        if self._client is None:
            raise RuntimeError(f"{self.get_client_type()} client '{self.get_engine_name()}' is not booted.")

        endpoint = endpoint.strip()
        url = self._get_base_url().rstrip("/") + ("/" + endpoint.lstrip("/") if endpoint else "")
        headers = {**self._get_auth_header(), **(additional_headers or {})}

        return await self._client.request(method, url, headers=headers, params=params, json=json)
