"""Request-terminating errors and their translation into JSON responses."""

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.clients.rag.RAGClientInterface import RetrievalStoreError


class AuthenticationRequired(HTTPException):
    """No usable credentials were presented."""

    def __init__(self, detail: str = "Authentication required. Please sign in.") -> None:
        super().__init__(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


class AuthenticationInvalid(HTTPException):
    """Credentials were presented but rejected: bad or expired token, malformed user ID."""

    def __init__(self, detail: str = "Invalid or expired authentication token", status_code: int = 401) -> None:
        super().__init__(status_code=status_code, detail=detail)


def register_error_handlers(app: FastAPI) -> None:
    """Attach the JSON error handlers to the application.

    Args:
        app (FastAPI): The application instance.
    """

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = "Not found" if exc.status_code == 404 and exc.detail == "Not Found" else exc.detail
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": message},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RetrievalStoreError)
    async def retrieval_error_handler(request: Request, exc: RetrievalStoreError) -> JSONResponse:
        request.app.state.logging.error("Retrieval store error on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=502, content={"error": "Retrieval store request failed"})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        request.app.state.logging.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})
