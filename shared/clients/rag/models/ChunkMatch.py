from typing import Any

from pydantic import BaseModel


class ChunkMatch(BaseModel):
    """One row returned by a scoped similarity search.

    Attributes:
        id:         Chunk ID in the retrieval store.
        content:    Free-text content of the chunk.
        metadata:   Arbitrary JSON metadata stored with the chunk.
        similarity: Cosine similarity to the query embedding, in [-1, 1].
    """

    id: str
    content: str
    metadata: dict[str, Any] = {}
    similarity: float
