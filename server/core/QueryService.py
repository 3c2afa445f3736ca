from typing import Any

from pydantic import ValidationError

from server.models.identity import Identity
from server.models.requests import QueryRequest
from server.models.responses import QueryResponse
from shared.clients.cache.CacheClientRedis import CacheClientRedis
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.ChunkMatch import ChunkMatch
from shared.helper.HelperConfig import HelperConfig
from shared.helper.cache_key import make_cache_key, user_namespace

NO_CONTEXT_ANSWER = (
    "I couldn't find any relevant information in your documents to answer this question."
)
SYSTEM_PROMPT = (
    "You are a helpful assistant that answers questions using only the provided context. "
    "Cite the sources you use with their number in square brackets, e.g. [1]. "
    "If the context does not contain the answer, say that you don't know."
)


def build_messages(question: str, matches: list[ChunkMatch]) -> list[dict]:
    """Build the chat messages for a grounded answer.

    Args:
        question (str): The user's question.
        matches (list[ChunkMatch]): Retrieved chunks, best first.

    Returns:
        list[dict]: OpenAI-format messages.
    """
    context = "\n\n".join(
        f"[{i}] {match.metadata.get('title', 'Untitled')}\n{match.content}"
        for i, match in enumerate(matches, start=1)
    )
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": f"Context:\n{context}\n\nQuestion: {question}"},
    ]


class QueryService:
    """Handles RAG queries: cache -> embed -> scoped match -> grounded answer."""

    def __init__(
        self,
        helper_config: HelperConfig,
        rag_client: RAGClientInterface,
        llm_client: LLMClientInterface,
        cache_client: CacheClientRedis,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._rag_client = rag_client
        self._llm_client = llm_client
        self._cache = cache_client
        self.default_threshold = float(helper_config.get_number_val("MATCH_THRESHOLD", default=0.5))
        self.default_limit = int(helper_config.get_number_val("MATCH_COUNT", default=5))
        self._ttl = int(helper_config.get_number_val("CACHE_TTL_SECONDS", default=3600))

    ##########################################
    ############### KEYS #####################
    ##########################################

    def answer_cache_key(self, identity: Identity, question: str, threshold: float, limit: int) -> str:
        """Cache key of an answer, partitioned by the caller's user ID."""
        return make_cache_key(user_namespace("query", identity.user_id), f"{threshold}|{limit}|{question.strip()}")

    def embedding_cache_key(self, text: str) -> str:
        """Cache key of a query embedding. Not user-scoped: embeddings carry no user data."""
        return make_cache_key("embedding", f"{self._llm_client.embed_model}|{text.strip()}")

    def _is_usable_embedding(self, value: Any) -> bool:
        """True for a list of numbers with exactly the store's vector width."""
        return (
            isinstance(value, list)
            and len(value) == self._rag_client.embedding_dimension
            and all(isinstance(x, (int, float)) and not isinstance(x, bool) for x in value)
        )

    ##########################################
    ############### CORE #####################
    ##########################################

    async def answer(self, identity: Identity, request: QueryRequest) -> tuple[QueryResponse, dict[str, Any]]:
        """Answer a question from the caller's own documents.

        Cache writes are not performed here; they are returned so the caller can
        run them after the response is sent (see flush_cache_writes).

        Args:
            identity (Identity): The verified caller. Retrieval is always scoped to its user ID.
            request (QueryRequest): Question plus optional threshold and limit overrides.

        Returns:
            tuple[QueryResponse, dict[str, Any]]: The response and the pending cache writes (key -> value).

        Raises:
            RetrievalStoreError: If the retrieval store call fails.
        """
        threshold = request.threshold if request.threshold is not None else self.default_threshold
        limit = request.limit if request.limit is not None else self.default_limit
        pending: dict[str, Any] = {}

        answer_key = self.answer_cache_key(identity, request.question, threshold, limit)
        cached = await self._cache.get(answer_key)
        if cached is not None:
            try:
                response = QueryResponse.model_validate(cached)
                response.cached = True
                self.logging.info("QueryService.answer: cache hit for user=%s", identity.user_id)
                return response, pending
            except ValidationError as exc:
                self.logging.warning("Discarding malformed cached answer %s: %s", answer_key, exc)

        self.logging.info(
            "QueryService.answer: user=%s threshold=%.2f limit=%d", identity.user_id, threshold, limit,
        )

        embedding_key = self.embedding_cache_key(request.question)
        embedding = await self._cache.get(embedding_key)
        if not self._is_usable_embedding(embedding):
            if embedding is not None:
                self.logging.warning("Discarding malformed cached embedding %s.", embedding_key)
            embedding = (await self._llm_client.do_embed([request.question]))[0]
            pending[embedding_key] = embedding

        matches = await self._rag_client.do_match_chunks(
            embedding,
            threshold,
            limit,
            owner_id=identity.user_id,
            access_token=identity.access_token,
        )

        if not matches:
            self.logging.info("QueryService.answer: no matching chunks for user=%s", identity.user_id)
            return QueryResponse(question=request.question, answer=NO_CONTEXT_ANSWER, sources=[]), pending

        answer = await self._llm_client.do_chat(build_messages(request.question, matches))
        response = QueryResponse(question=request.question, answer=answer, sources=matches)
        pending[answer_key] = response.model_dump(exclude={"cached"})

        self.logging.info("QueryService.answer: answered from %d chunk(s).", len(matches))
        return response, pending

    async def flush_cache_writes(self, pending: dict[str, Any]) -> None:
        """Write pending cache entries. Failures are logged by the cache client and otherwise ignored."""
        for key, value in pending.items():
            await self._cache.set(key, value, ttl_seconds=self._ttl)
