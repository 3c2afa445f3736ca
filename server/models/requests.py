from typing import Any

from pydantic import BaseModel, Field

MAX_CONTENT_CHARS = 1_000_000  # ~1 MB of text per ingested document


class IngestRequest(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    content: str = Field(min_length=1, max_length=MAX_CONTENT_CHARS)
    metadata: dict[str, Any] = {}


class QueryRequest(BaseModel):
    question: str = Field(min_length=1, max_length=4000)
    threshold: float | None = Field(default=None, ge=-1.0, le=1.0)
    limit: int | None = Field(default=None, ge=0, le=50)
