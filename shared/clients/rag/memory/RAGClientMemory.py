"""In-process retrieval store for local development and tests.

Implements the same contract as the match_documents SQL function: cosine
similarity, optional owner filter, strict threshold, ascending distance,
truncation to the limit. Insert and delete apply the same ownership checks
the row-level security policies apply in Postgres.
"""

import math

import httpx

from shared.helper.HelperConfig import HelperConfig
from shared.clients.rag.RAGClientInterface import RAGClientInterface, RetrievalStoreError
from shared.clients.rag.models.ChunkMatch import ChunkMatch
from shared.clients.rag.models.ChunkRecord import ChunkRecord, DocumentRecord
from shared.models.config import EnvConfig


def cosine_similarity(a: list[float], b: list[float]) -> float | None:
    """Return the cosine similarity of two vectors, or None if either has zero norm."""
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return None
    sim = sum(x * y for x, y in zip(a, b)) / (norm_a * norm_b)
    return max(-1.0, min(1.0, sim))


class RAGClientMemory(RAGClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._documents: dict[str, DocumentRecord] = {}
        self._chunks: dict[str, ChunkRecord] = {}

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Memory"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return []

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return "memory://local"

    def _get_endpoint_healthcheck(self) -> str:
        return ""

    def count_chunks(self, owner_id: str | None = None) -> int:
        """Return the number of stored chunks, optionally for one owner."""
        return sum(1 for c in self._chunks.values() if owner_id is None or c.user_id == owner_id)

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    async def boot(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.logging.warning("Using the in-memory retrieval store; data is lost on restart.")

    async def close(self) -> None:
        self._documents.clear()
        self._chunks.clear()

    async def do_healthcheck(self) -> httpx.Response:
        return httpx.Response(200, json={"status": "ok", "chunks": len(self._chunks)})

    ##########################################
    ########### ENGINE OPERATIONS ############
    ##########################################

    async def _match_chunks(
        self,
        embedding: list[float],
        threshold: float,
        limit: int,
        owner_id: str | None,
        access_token: str | None,
    ) -> list[ChunkMatch]:
        scored: list[tuple[float, ChunkRecord]] = []
        for chunk in self._chunks.values():
            if owner_id is not None and chunk.user_id != owner_id:
                continue
            similarity = cosine_similarity(chunk.embedding, embedding)
            if similarity is None or similarity <= threshold:
                continue
            scored.append((similarity, chunk))

        scored.sort(key=lambda item: item[0], reverse=True)
        return [
            ChunkMatch(id=chunk.id, content=chunk.content, metadata=dict(chunk.metadata), similarity=similarity)
            for similarity, chunk in scored[:limit]
        ]

    async def _insert_document(self, document: DocumentRecord, chunks: list[ChunkRecord], access_token: str | None) -> None:
        if document.id in self._documents:
            raise RetrievalStoreError(f"Document {document.id} already exists.")
        for chunk in chunks:
            if chunk.id in self._chunks:
                raise RetrievalStoreError(f"Chunk {chunk.id} already exists.")
        self._documents[document.id] = document
        for chunk in chunks:
            self._chunks[chunk.id] = chunk

    async def _delete_document(self, document_id: str, owner_id: str, access_token: str | None) -> None:
        document = self._documents.get(document_id)
        if document is None or document.user_id != owner_id:
            # rows of other owners are invisible, as under row-level security
            return
        del self._documents[document_id]
        stale = [cid for cid, c in self._chunks.items() if c.document_id == document_id]
        for cid in stale:
            del self._chunks[cid]
