from abc import abstractmethod

import httpx
from pydantic import ValidationError

from shared.clients.ClientInterface import ClientInterface
from shared.clients.auth.models.AuthUser import AuthUser
from shared.helper.HelperConfig import HelperConfig


class TokenVerificationError(Exception):
    """The identity provider rejected the token (expired, malformed, revoked) or could not be asked."""


class AuthClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "auth"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_user(self) -> str:
        """
        Returns the endpoint path that resolves a bearer token to its user.

        Returns:
            str: The endpoint path (e.g. "/auth/v1/user")
        """
        pass

    ################ AUTH ##################
    @abstractmethod
    def get_token_headers(self, token: str) -> dict:
        """
        Builds the headers that present the end user's token to the provider.

        Args:
            token (str): The raw bearer token (without the "Bearer " prefix).

        Returns:
            dict: The headers for the verification request.
        """
        pass

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    @abstractmethod
    def extract_user(self, raw_response: dict) -> dict:
        """
        Extracts the user record from the provider's verification response.

        Args:
            raw_response (dict): The parsed JSON response body.

        Returns:
            dict: A dict with at least an "id" key.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_verify_token(self, token: str) -> AuthUser:
        """Verify a bearer token with the identity provider.

        Exactly one request is made; nothing is retried.

        Args:
            token (str): The raw bearer token.

        Returns:
            AuthUser: The verified user.

        Raises:
            TokenVerificationError: If the token is empty, rejected, or the provider cannot be reached.
        """
        if not token or not token.strip():
            raise TokenVerificationError("Empty bearer token.")

        try:
            resp = await self.do_request(
                method="GET",
                endpoint=self._get_endpoint_user(),
                additional_headers=self.get_token_headers(token.strip()),
            )
        except httpx.HTTPError as exc:
            raise TokenVerificationError(f"Identity provider unreachable: {exc}") from exc

        if resp.status_code != 200:
            raise TokenVerificationError(f"Token rejected by identity provider (status {resp.status_code}).")

        try:
            return AuthUser.model_validate(self.extract_user(resp.json()))
        except (ValueError, ValidationError) as exc:
            raise TokenVerificationError(f"Identity provider returned no usable user: {exc}") from exc
