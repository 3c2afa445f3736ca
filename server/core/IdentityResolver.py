"""Identity resolution strategies.

One strategy is chosen at startup from APP_ENV:

- ``BearerIdentityResolver`` (production): only provider-verified bearer tokens.
- ``DevelopmentIdentityResolver``: bearer tokens first, then the raw
  ``X-User-Id`` header if it is a syntactically valid UUID.
"""

import re
from abc import ABC, abstractmethod
from collections.abc import Mapping

from server.core.errors import AuthenticationInvalid, AuthenticationRequired
from server.models.identity import Identity
from shared.clients.auth.AuthClientInterface import AuthClientInterface, TokenVerificationError
from shared.helper.HelperConfig import HelperConfig

USER_ID_HEADER = "x-user-id"
UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)


def extract_bearer_token(headers: Mapping[str, str]) -> str | None:
    """Return the token of an "Authorization: Bearer <token>" header, or None."""
    auth_header = headers.get("authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header[len("Bearer "):].strip()


class IdentityResolver(ABC):
    def __init__(self, helper_config: HelperConfig, auth_client: AuthClientInterface) -> None:
        self.logging = helper_config.get_logger()
        self._auth_client = auth_client

    @abstractmethod
    async def resolve(self, headers: Mapping[str, str]) -> Identity:
        """Resolve the caller or fail.

        Args:
            headers (Mapping[str, str]): Request headers (case-insensitive mapping).

        Returns:
            Identity: The verified caller.

        Raises:
            AuthenticationRequired: No credentials.
            AuthenticationInvalid: Credentials present but rejected.
        """
        pass

    async def resolve_optional(self, headers: Mapping[str, str]) -> Identity | None:
        """Same resolution as resolve(), but anonymous (None) instead of any failure."""
        try:
            return await self.resolve(headers)
        except Exception as exc:
            self.logging.debug("Optional auth failed, continuing as anonymous: %s", exc)
            return None

    async def _verify_bearer(self, token: str) -> Identity:
        try:
            user = await self._auth_client.do_verify_token(token)
        except TokenVerificationError as exc:
            self.logging.warning("Invalid or expired JWT token: %s", exc)
            raise AuthenticationInvalid() from exc
        self.logging.debug("User authenticated via JWT: %s", user.id)
        return Identity(user_id=user.id, email=user.email, access_token=token, source="jwt")


class BearerIdentityResolver(IdentityResolver):
    """Production strategy: a verified bearer token is the only accepted proof."""

    async def resolve(self, headers: Mapping[str, str]) -> Identity:
        token = extract_bearer_token(headers)
        if token is None:
            raise AuthenticationRequired()
        return await self._verify_bearer(token)


class DevelopmentIdentityResolver(IdentityResolver):
    """Non-production strategy: bearer token, else a UUID from the X-User-Id header."""

    async def resolve(self, headers: Mapping[str, str]) -> Identity:
        token = extract_bearer_token(headers)
        if token is not None:
            return await self._verify_bearer(token)

        user_id = headers.get(USER_ID_HEADER)
        if user_id:
            if not UUID_RE.fullmatch(user_id):
                raise AuthenticationInvalid("Invalid user ID format", status_code=400)
            self.logging.debug("User authenticated via X-User-Id header (dev mode): %s", user_id)
            return Identity(user_id=user_id, source="header")

        raise AuthenticationRequired()


def create_identity_resolver(helper_config: HelperConfig, auth_client: AuthClientInterface) -> IdentityResolver:
    """Pick the resolver strategy for the configured deployment mode.

    Args:
        helper_config (HelperConfig): Provides APP_ENV.
        auth_client (AuthClientInterface): Verifies bearer tokens.

    Returns:
        IdentityResolver: The strategy for this process.
    """
    if helper_config.is_production():
        return BearerIdentityResolver(helper_config, auth_client)
    helper_config.get_logger().warning(
        "APP_ENV=%s: X-User-Id header authentication is enabled. Never use this in production.",
        helper_config.get_app_env(),
    )
    return DevelopmentIdentityResolver(helper_config, auth_client)
