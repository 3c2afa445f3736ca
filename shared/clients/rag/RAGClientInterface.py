from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.clients.rag.models.ChunkMatch import ChunkMatch
from shared.clients.rag.models.ChunkRecord import ChunkRecord, DocumentRecord
from shared.helper.HelperConfig import HelperConfig

DEFAULT_EMBEDDING_DIMENSION = 384


class RetrievalStoreError(Exception):
    """A retrieval store call failed. Propagated to the caller, never retried."""


class RAGClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self.embedding_dimension = int(helper_config.get_number_val("EMBEDDING_DIMENSION", default=DEFAULT_EMBEDDING_DIMENSION))

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def validate_embedding(self, embedding: list[float]) -> None:
        """
        Checks that an embedding has exactly the store's vector width.

        Raises:
            RetrievalStoreError: If the length does not match.
        """
        if len(embedding) != self.embedding_dimension:
            raise RetrievalStoreError(
                f"Embedding has {len(embedding)} dimensions, store expects {self.embedding_dimension}."
            )

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "rag"
        """
        return "rag"

    ##########################################
    ########### ENGINE OPERATIONS ############
    ##########################################

    @abstractmethod
    async def _match_chunks(
        self,
        embedding: list[float],
        threshold: float,
        limit: int,
        owner_id: str | None,
        access_token: str | None,
    ) -> list[ChunkMatch]:
        """
        Runs the engine's similarity search.

        Must only return chunks with similarity > threshold, owned by owner_id
        when it is given, ordered by descending similarity and truncated to limit.

        Raises:
            RetrievalStoreError: If the engine call fails.
        """
        pass

    @abstractmethod
    async def _insert_document(self, document: DocumentRecord, chunks: list[ChunkRecord], access_token: str | None) -> None:
        """
        Persists a document row followed by its chunk rows.

        Raises:
            RetrievalStoreError: If any write fails.
        """
        pass

    @abstractmethod
    async def _delete_document(self, document_id: str, owner_id: str, access_token: str | None) -> None:
        """
        Removes a document and all of its chunks, scoped to owner_id.

        Raises:
            RetrievalStoreError: If the delete fails.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_match_chunks(
        self,
        embedding: list[float],
        threshold: float,
        limit: int,
        owner_id: str | None = None,
        access_token: str | None = None,
    ) -> list[ChunkMatch]:
        """Scoped similarity search.

        Args:
            embedding (list[float]): The query embedding.
            threshold (float): Only matches with similarity strictly above this value are returned.
            limit (int): Maximum number of matches. 0 or less returns an empty list without a store call.
            owner_id (str | None): Restrict results to chunks owned by this user. None means unscoped.
            access_token (str | None): The caller's verified token, forwarded so the store's row-level security applies.

        Returns:
            list[ChunkMatch]: Matches ordered by descending similarity.

        Raises:
            RetrievalStoreError: If the embedding width is wrong or the store call fails.
        """
        if limit <= 0:
            return []
        self.validate_embedding(embedding)
        matches = await self._match_chunks(embedding, threshold, limit, owner_id, access_token)
        self.logging.debug(
            "RAG '%s' match: owner_id=%s threshold=%.3f limit=%d → %d match(es).",
            self.get_engine_name(), owner_id, threshold, limit, len(matches),
        )
        return matches

    async def do_insert_document(self, document: DocumentRecord, chunks: list[ChunkRecord], access_token: str | None = None) -> None:
        """Store a document with its chunks.

        Every chunk must belong to the document and carry the document's owner.
        If writing the chunks fails, the document is removed again before the
        error is re-raised.

        Args:
            document (DocumentRecord): The parent document.
            chunks (list[ChunkRecord]): Its embedded chunks.
            access_token (str | None): The caller's verified token.

        Raises:
            RetrievalStoreError: On an ownership mismatch, a wrong embedding width or a failed write.
        """
        for chunk in chunks:
            if chunk.user_id != document.user_id or chunk.document_id != document.id:
                raise RetrievalStoreError(
                    f"Chunk {chunk.chunk_index} does not belong to document {document.id} of user {document.user_id}."
                )
            self.validate_embedding(chunk.embedding)

        try:
            await self._insert_document(document, chunks, access_token)
        except RetrievalStoreError:
            self.logging.error("Insert of document %s failed, removing partial rows.", document.id)
            try:
                await self._delete_document(document.id, document.user_id, access_token)
            except RetrievalStoreError as exc:
                self.logging.error("Cleanup of document %s failed: %s", document.id, exc)
            raise

    async def do_delete_document(self, document_id: str, owner_id: str, access_token: str | None = None) -> None:
        """Delete a document and its chunks, scoped to the owner.

        Args:
            document_id (str): The document to delete.
            owner_id (str): The owning user; documents of other users are never touched.
            access_token (str | None): The caller's verified token.
        """
        await self._delete_document(document_id, owner_id, access_token)
