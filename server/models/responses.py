from pydantic import BaseModel

from shared.clients.rag.models.ChunkMatch import ChunkMatch


class IngestResponse(BaseModel):
    document_id: str
    title: str
    chunks: int


class QueryResponse(BaseModel):
    question: str
    answer: str
    sources: list[ChunkMatch]
    cached: bool = False
