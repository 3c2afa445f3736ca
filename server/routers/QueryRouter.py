from fastapi import APIRouter, BackgroundTasks, Depends, Request

from server.dependencies.auth import require_identity
from server.models.identity import Identity
from server.models.requests import QueryRequest
from server.models.responses import QueryResponse

router = APIRouter(prefix="/query", tags=["query"])


@router.post("")
async def query_documents(
    request: Request,
    body: QueryRequest,
    background_tasks: BackgroundTasks,
    identity: Identity = Depends(require_identity),
) -> QueryResponse:
    """Answer a question from the caller's own documents.

    Args:
        request (Request): FastAPI request (provides app.state.query_service).
        body (QueryRequest): JSON body with question and optional threshold / limit.
        background_tasks (BackgroundTasks): Runs the cache writes after the response is sent.
        identity (Identity): The verified caller.

    Returns:
        QueryResponse: The grounded answer and the chunks it was built from.
    """
    query_service = request.app.state.query_service
    response, pending = await query_service.answer(identity, body)
    if pending:
        background_tasks.add_task(query_service.flush_cache_writes, pending)
    return response
