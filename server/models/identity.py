from typing import Literal

from pydantic import BaseModel


class Identity(BaseModel):
    """The verified caller of one request.

    Attributes:
        user_id:       UUID of the caller. Used as owner ID for every read and write.
        email:         E-mail from the identity provider, if any.
        access_token:  The verified bearer token, forwarded to the retrieval store. None for header identities.
        source:        "jwt" for provider-verified tokens, "header" for the development X-User-Id header.
    """

    user_id: str
    email: str | None = None
    access_token: str | None = None
    source: Literal["jwt", "header"]
