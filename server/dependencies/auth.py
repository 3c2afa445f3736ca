from fastapi import Request

from server.models.identity import Identity


async def require_identity(request: Request) -> Identity:
    """Resolve the caller and attach it to request.state.identity.

    Args:
        request (Request): The FastAPI request object (provides app.state).

    Returns:
        Identity: The verified caller.

    Raises:
        AuthenticationRequired: 401 if no credentials were presented.
        AuthenticationInvalid: 401 for a rejected token, 400 for a malformed X-User-Id.
    """
    identity = await request.app.state.identity_resolver.resolve(request.headers)
    request.state.identity = identity
    return identity


async def optional_identity(request: Request) -> Identity | None:
    """Resolve the caller if possible; anonymous requests get None and are never rejected.

    Args:
        request (Request): The FastAPI request object (provides app.state).

    Returns:
        Identity | None: The verified caller, or None.
    """
    identity = await request.app.state.identity_resolver.resolve_optional(request.headers)
    request.state.identity = identity
    return identity
