"""Records written to the retrieval store during ingestion."""

from typing import Any

from pydantic import BaseModel


class DocumentRecord(BaseModel):
    """A document row. Owns every chunk ingested with it.

    Attributes:
        id:        Document ID (UUID string), assigned by the gateway.
        title:     Human-readable document title.
        metadata:  Arbitrary JSON metadata supplied at ingest time.
        user_id:   MANDATORY. Owning user, matched by the store's row-level security.
    """

    id: str
    title: str
    metadata: dict[str, Any] = {}
    user_id: str


class ChunkRecord(BaseModel):
    """A chunk row with its embedding.

    The user_id must always equal the parent document's user_id; the ingest
    service fills both from the same resolved identity.

    Attributes:
        id:           Chunk ID (UUID string).
        document_id:  Parent document ID.
        chunk_index:  Zero-based position of this chunk within the document.
        content:      Raw text content of this chunk.
        metadata:     Document metadata plus title and chunk_index.
        embedding:    Embedding vector; its length must match the store's vector width.
        user_id:      MANDATORY. Owning user, never None.
    """

    id: str
    document_id: str
    chunk_index: int
    content: str
    metadata: dict[str, Any] = {}
    embedding: list[float]
    user_id: str
