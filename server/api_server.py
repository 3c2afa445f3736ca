"""FastAPI application entry point for the RAG gateway."""

import os
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI

from shared.logging.logging_setup import setup_logging
from shared.helper.HelperConfig import HelperConfig
from shared.clients.auth.AuthClientInterface import AuthClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.llm.LLMClientInterface import LLMClientInterface, ModelRequestError
from shared.clients.auth.AuthClientManager import AuthClientManager
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.cache.CacheClientRedis import CacheClientRedis
from server.core.cors import ALLOWED_HEADERS, OriginPolicy, PolicyCORSMiddleware
from server.core.errors import register_error_handlers
from server.core.latency import RESPONSE_TIME_HEADER, LatencyMiddleware
from server.core.IdentityResolver import create_identity_resolver
from server.core.IngestService import IngestService
from server.core.QueryService import QueryService
from server.routers.StatusRouter import router as status_router
from server.routers.IngestRouter import router as ingest_router
from server.routers.QueryRouter import router as query_router

logging = setup_logging()
helper_config = HelperConfig(logger=logging)
app_version = os.getenv("APP_VERSION", "1.0.0")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    app.state.logging = logging
    app.state.helper_config = helper_config
    app.state.started_at = time.monotonic()

    auth_client = AuthClientManager(helper_config=helper_config).get_client()
    rag_client = RAGClientManager(helper_config=helper_config).get_client()
    llm_client = LLMClientManager(helper_config=helper_config).get_client()
    cache_client = CacheClientRedis(helper_config=helper_config)

    logging.info("Booting all clients...")
    for client in [auth_client, rag_client, llm_client]:
        await client.boot()
    await cache_client.boot()
    logging.info("All clients booted successfully.")

    await check_connections(auth_client, rag_client, llm_client)

    app.state.identity_resolver = create_identity_resolver(helper_config, auth_client)
    app.state.cache_client = cache_client
    app.state.ingest_service = IngestService(
        helper_config=helper_config,
        rag_client=rag_client,
        llm_client=llm_client,
    )
    app.state.query_service = QueryService(
        helper_config=helper_config,
        rag_client=rag_client,
        llm_client=llm_client,
        cache_client=cache_client,
    )

    logging.info(
        "RAG gateway v%s ready (env=%s, rag=%s, llm=%s, cache=%s).",
        app_version,
        helper_config.get_app_env(),
        rag_client.get_engine_name(),
        llm_client.get_engine_name(),
        "on" if cache_client.is_available() else "off",
        color="green",
    )

    # while the app is running...
    yield

    # when the app shuts down, close all client connections
    logging.info("Shutting down, closing all clients...")
    for client in [auth_client, rag_client, llm_client, cache_client]:
        await client.close()
    logging.info("All clients closed.")


app = FastAPI(
    title="rag-gateway",
    description=(
        "HTTP gateway in front of a Supabase Postgres/pgvector store and an optional Redis cache. "
        "Documents are ingested via POST /ingest and answered with retrieval-augmented "
        "generation via POST /query, always scoped to the authenticated user."
    ),
    version=app_version,
    lifespan=lifespan,
)

# added first so CORS wraps it and exposes its header
app.add_middleware(LatencyMiddleware)

app.add_middleware(
    PolicyCORSMiddleware,
    policy=OriginPolicy.from_config(helper_config),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD"],
    allow_headers=ALLOWED_HEADERS,
    expose_headers=["Content-Range", "X-Content-Range", RESPONSE_TIME_HEADER],
    max_age=86400,
)

register_error_handlers(app)

app.include_router(status_router)
app.include_router(ingest_router)
app.include_router(query_router)


async def check_connections(
    auth_client: AuthClientInterface,
    rag_client: RAGClientInterface,
    llm_client: LLMClientInterface,
) -> None:
    """Check connectivity to all configured backends on startup.

    The identity provider is fatal in production only; the header identity
    still works without it in development. The retrieval store and the LLM
    are always fatal. A model whose embedding width differs from the store's
    vector width is fatal.

    Raises:
        Exception: If a critical service is not reachable or misconfigured.
    """
    try:
        result = await auth_client.do_healthcheck()
        auth_ok = result.is_success
    except httpx.HTTPError as exc:
        logging.warning("Auth provider health check failed: %s", exc)
        auth_ok = False
    if not auth_ok:
        if helper_config.is_production():
            raise Exception("Auth provider is not reachable. Cannot verify tokens.")
        logging.warning("Auth provider is not reachable. Bearer tokens will be rejected.")

    result = await rag_client.do_healthcheck()
    if not result.is_success:
        raise Exception(
            f"RAG client '{rag_client.__class__.__name__}' is not reachable "
            f"(status {result.status_code}). Cannot serve queries."
        )

    result = await llm_client.do_healthcheck()
    if not result.is_success:
        raise Exception(
            f"LLM client is not reachable (status {result.status_code}). "
            "Embedding and chat will not work."
        )

    try:
        vector_size = await llm_client.do_fetch_embedding_vector_size()
    except ModelRequestError as exc:
        logging.warning("Could not determine embedding size of model '%s': %s", llm_client.embed_model, exc)
        return
    if vector_size != rag_client.embedding_dimension:
        raise Exception(
            f"Embedding model '{llm_client.embed_model}' produces {vector_size}-dimensional vectors, "
            f"the retrieval store expects {rag_client.embedding_dimension}."
        )


if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting RAG gateway v%s from root dir: %s on port %s...",
        app_version,
        os.environ.get("ROOT_DIR", os.getcwd()),
        os.environ.get("PORT", "3000"),
    )
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", "3000")))
