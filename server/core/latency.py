import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

RESPONSE_TIME_HEADER = "X-Response-Time"


class LatencyMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status and duration of every request and reports the duration in a header."""

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        status = 500

        try:
            resp: Response = await call_next(request)
            status = resp.status_code
            resp.headers[RESPONSE_TIME_HEADER] = f"{(time.perf_counter() - start) * 1000:.1f}ms"
            return resp
        finally:
            # unhandled errors are logged here with status 500
            duration_ms = (time.perf_counter() - start) * 1000
            request.app.state.logging.info(
                "%s %s -> %d in %.1f ms", request.method, request.url.path, status, duration_ms,
            )
