"""CORS origin policy."""

from urllib.parse import urlsplit

from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp

from shared.helper.HelperConfig import HelperConfig

DEFAULT_ORIGINS = [
    "https://mentora-agentic-ai-frontend.vercel.app",
    "http://localhost:3000",
    "http://localhost:3001",
]
DEFAULT_VERCEL_PROJECT = "mentora-agentic-ai-frontend"
VERCEL_SUFFIX = ".vercel.app"
ALLOWED_HEADERS = [
    "Content-Type",
    "Authorization",
    "X-Requested-With",
    "Accept",
    "X-User-Id",
    "Origin",
    "Cache-Control",
]


class OriginPolicy:
    """Decides whether a browser origin may call the API.

    Allowed are: the configured origins (or all of them if "*" is listed),
    localhost / 127.0.0.1 on any port, and Vercel deployments whose subdomain
    starts with the configured project name (production, preview and branch
    deploys).
    """

    def __init__(self, allowed_origins: list[str], vercel_project: str) -> None:
        self.allowed_origins = allowed_origins
        self.vercel_project = vercel_project.lower()

    @classmethod
    def from_config(cls, helper_config: HelperConfig) -> "OriginPolicy":
        return cls(
            allowed_origins=helper_config.get_list_val("CORS_ORIGINS", default=DEFAULT_ORIGINS),
            vercel_project=helper_config.get_string_val("CORS_VERCEL_PROJECT", default=DEFAULT_VERCEL_PROJECT),
        )

    def is_allowed(self, origin: str | None) -> bool:
        # no origin means same-origin or a non-browser client
        if not origin:
            return True
        if origin in self.allowed_origins or "*" in self.allowed_origins:
            return True

        try:
            parts = urlsplit(origin)
            hostname = (parts.hostname or "").lower()
        except ValueError:
            return False

        if parts.scheme == "https" and hostname.endswith(VERCEL_SUFFIX) and self.vercel_project:
            subdomain = hostname[: -len(VERCEL_SUFFIX)]
            if subdomain.startswith(self.vercel_project):
                return True

        if parts.scheme == "http" and hostname in ("localhost", "127.0.0.1"):
            return True

        return False


class PolicyCORSMiddleware(CORSMiddleware):
    """Starlette's CORSMiddleware with origin checks delegated to an OriginPolicy."""

    def __init__(self, app: ASGIApp, policy: OriginPolicy, **kwargs) -> None:
        super().__init__(app, allow_origins=[], **kwargs)
        self.policy = policy

    def is_allowed_origin(self, origin: str) -> bool:
        return self.policy.is_allowed(origin)
