import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import optional_identity
from server.models.identity import Identity

router = APIRouter(tags=["status"])


@router.get("/")
async def root(request: Request, identity: Identity | None = Depends(optional_identity)) -> dict:
    """Describe the API. Works with or without credentials."""
    return {
        "name": "RAG Gateway API",
        "version": request.app.version,
        "endpoints": {
            "ingest": "POST /ingest - Store a text document for the signed-in user",
            "query": "POST /query - Ask a question and get a grounded answer",
        },
        "status": "running",
        "authenticated": identity is not None,
    }


@router.get("/health")
async def health(request: Request) -> dict:
    """Liveness probe with uptime and cache state."""
    started_at = getattr(request.app.state, "started_at", time.monotonic())
    cache_client = getattr(request.app.state, "cache_client", None)
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - started_at, 3),
        "cache": "available" if cache_client is not None and cache_client.is_available() else "disabled",
    }
