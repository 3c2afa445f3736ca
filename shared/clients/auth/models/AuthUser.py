"""AuthUser model: the user record returned by the identity provider for a verified token."""

from pydantic import BaseModel, ConfigDict


class AuthUser(BaseModel):
    """User profile as asserted by the identity provider.

    Attributes:
        id:       The provider's user ID (UUID string). Used as the owner ID everywhere.
        email:    Primary e-mail address, if the provider exposes one.
        role:     Provider role claim (e.g. "authenticated").
        aud:      Audience the token was issued for.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    email: str | None = None
    role: str | None = None
    aud: str | None = None
