"""Ingestion service.

Splits a document's text into overlapping chunks, embeds them in batches and
stores the document and its chunks under the caller's user ID.
"""

import uuid

from server.models.identity import Identity
from server.models.requests import IngestRequest
from server.models.responses import IngestResponse
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.ChunkRecord import ChunkRecord, DocumentRecord
from shared.helper.HelperConfig import HelperConfig

EMBED_BATCH_SIZE = 32   # chunks per embedding request


def split_text(text: str, chunk_size: int = 1000, chunk_overlap: int = 100) -> list[str]:
    """Split a document's text into overlapping chunks.

    Args:
        text (str): The full document text.
        chunk_size (int): Characters per chunk.
        chunk_overlap (int): Characters shared by consecutive chunks. Must be smaller than chunk_size.

    Returns:
        list[str]: Ordered list of non-blank text chunks.
    """
    if not text or not text.strip():
        return []
    if chunk_overlap >= chunk_size:
        raise ValueError(f"chunk_overlap ({chunk_overlap}) must be smaller than chunk_size ({chunk_size}).")
    chunks: list[str] = []
    start = 0
    while start < len(text):
        end = min(start + chunk_size, len(text))
        chunk = text[start:end]
        if chunk.strip():
            chunks.append(chunk)
        if end >= len(text):
            break
        start = end - chunk_overlap
    return chunks


def make_chunk_id(document_id: str, chunk_index: int) -> str:
    """Build a deterministic UUID5 chunk ID from the document ID and chunk position."""
    return str(uuid.uuid5(uuid.UUID(document_id), str(chunk_index)))


class IngestService:
    """Handles document ingestion: split -> embed -> store."""

    def __init__(
        self,
        helper_config: HelperConfig,
        rag_client: RAGClientInterface,
        llm_client: LLMClientInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._rag_client = rag_client
        self._llm_client = llm_client
        self._chunk_size = int(helper_config.get_number_val("CHUNK_SIZE", default=1000))
        self._chunk_overlap = int(helper_config.get_number_val("CHUNK_OVERLAP", default=100))

    ##########################################
    ############### CORE #####################
    ##########################################

    async def ingest(self, identity: Identity, request: IngestRequest) -> IngestResponse:
        """Chunk, embed and store one document for the caller.

        Args:
            identity (Identity): The verified caller; owner of the document and every chunk.
            request (IngestRequest): Title, text content and optional metadata.

        Returns:
            IngestResponse: The new document ID and its chunk count.

        Raises:
            ValueError: If the content produces no chunks.
            RetrievalStoreError: If the store rejects the write.
        """
        chunks = split_text(request.content, self._chunk_size, self._chunk_overlap)
        if not chunks:
            raise ValueError("Document content produced no chunks.")

        self.logging.info(
            "IngestService.ingest: user=%s title='%s' chunks=%d", identity.user_id, request.title, len(chunks),
        )

        vectors: list[list[float]] = []
        for batch_start in range(0, len(chunks), EMBED_BATCH_SIZE):
            batch = chunks[batch_start: batch_start + EMBED_BATCH_SIZE]
            vectors.extend(await self._llm_client.do_embed(batch))

        document = DocumentRecord(
            id=str(uuid.uuid4()),
            title=request.title,
            metadata=request.metadata,
            user_id=identity.user_id,
        )
        records = [
            ChunkRecord(
                id=make_chunk_id(document.id, chunk_index),
                document_id=document.id,
                chunk_index=chunk_index,
                content=chunk,
                metadata={**request.metadata, "title": request.title, "chunk_index": chunk_index},
                embedding=vector,
                user_id=identity.user_id,
            )
            for chunk_index, (chunk, vector) in enumerate(zip(chunks, vectors))
        ]

        await self._rag_client.do_insert_document(document, records, access_token=identity.access_token)

        self.logging.info("Ingested document %s ('%s'): %d chunks stored.", document.id, document.title, len(records))
        return IngestResponse(document_id=document.id, title=document.title, chunks=len(records))

    async def delete(self, identity: Identity, document_id: str) -> None:
        """Delete one of the caller's documents with all its chunks."""
        self.logging.info("IngestService.delete: user=%s document=%s", identity.user_id, document_id)
        await self._rag_client.do_delete_document(document_id, identity.user_id, access_token=identity.access_token)
