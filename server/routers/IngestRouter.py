import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from server.dependencies.auth import require_identity
from server.models.identity import Identity
from server.models.requests import IngestRequest
from server.models.responses import IngestResponse

router = APIRouter(prefix="/ingest", tags=["ingest"])


@router.post("", status_code=201)
async def ingest_document(
    request: Request,
    body: IngestRequest,
    identity: Identity = Depends(require_identity),
) -> IngestResponse:
    """Store a text document for the caller.

    Args:
        request (Request): FastAPI request (provides app.state.ingest_service).
        body (IngestRequest): JSON body with title, content and optional metadata.
        identity (Identity): The verified caller; becomes the document's owner.

    Returns:
        IngestResponse: The new document ID and how many chunks were stored.
    """
    ingest_service = request.app.state.ingest_service
    try:
        return await ingest_service.ingest(identity, body)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.delete("/{document_id}", status_code=204)
async def delete_document(
    request: Request,
    document_id: uuid.UUID,
    identity: Identity = Depends(require_identity),
) -> Response:
    """Delete one of the caller's documents. Documents of other users are never touched."""
    await request.app.state.ingest_service.delete(identity, str(document_id))
    return Response(status_code=204)
