import uuid

import pytest

from server.core.QueryService import NO_CONTEXT_ANSWER, QueryService, build_messages
from server.models.identity import Identity
from server.models.requests import QueryRequest
from shared.clients.cache.CacheClientRedis import CacheClientRedis
from shared.clients.rag.RAGClientInterface import RetrievalStoreError
from shared.clients.rag.memory.RAGClientMemory import RAGClientMemory
from shared.clients.rag.models.ChunkMatch import ChunkMatch
from shared.clients.rag.models.ChunkRecord import ChunkRecord, DocumentRecord
from conftest import FakeLLMClient, USER_A, USER_B

QUESTION = "What does row-level security do?"


class SpyRAGClient:
    """Records match calls and returns fixed matches."""

    embedding_dimension = 4

    def __init__(self, matches: list[ChunkMatch] | None = None, error: Exception | None = None):
        self.matches = matches or []
        self.error = error
        self.calls: list[dict] = []

    async def do_match_chunks(self, embedding, threshold, limit, owner_id=None, access_token=None):
        self.calls.append({
            "embedding": embedding,
            "threshold": threshold,
            "limit": limit,
            "owner_id": owner_id,
            "access_token": access_token,
        })
        if self.error:
            raise self.error
        return self.matches


def identity(user_id: str = USER_A, token: str | None = "user-jwt") -> Identity:
    return Identity(user_id=user_id, access_token=token, source="jwt" if token else "header")


def a_match() -> ChunkMatch:
    return ChunkMatch(id="c1", content="RLS filters rows per user.", metadata={"title": "Postgres"}, similarity=0.9)


@pytest.fixture
async def cache(helper_config, fake_redis):
    client = CacheClientRedis(helper_config=helper_config)
    await client.boot(client=fake_redis)
    yield client
    await client.close()


@pytest.fixture
def llm():
    return FakeLLMClient()


def make_service(helper_config, rag, llm, cache) -> QueryService:
    return QueryService(helper_config=helper_config, rag_client=rag, llm_client=llm, cache_client=cache)


def test_build_messages_numbers_sources():
    matches = [a_match(), ChunkMatch(id="c2", content="second", similarity=0.8)]
    system, user = build_messages("Q?", matches)
    assert system["role"] == "system"
    assert "[1] Postgres\nRLS filters rows per user." in user["content"]
    assert "[2] Untitled\nsecond" in user["content"]
    assert user["content"].endswith("Question: Q?")


@pytest.mark.asyncio
async def test_search_is_scoped_to_caller(helper_config, llm, cache):
    rag = SpyRAGClient([a_match()])
    service = make_service(helper_config, rag, llm, cache)

    await service.answer(identity(USER_B, "b-token"), QueryRequest(question=QUESTION))

    [call] = rag.calls
    assert call["owner_id"] == USER_B
    assert call["access_token"] == "b-token"
    assert call["threshold"] == 0.5
    assert call["limit"] == 5


@pytest.mark.asyncio
async def test_request_overrides_threshold_and_limit(helper_config, llm, cache):
    rag = SpyRAGClient([a_match()])
    service = make_service(helper_config, rag, llm, cache)

    await service.answer(identity(), QueryRequest(question=QUESTION, threshold=0.8, limit=2))

    assert rag.calls[0]["threshold"] == 0.8
    assert rag.calls[0]["limit"] == 2


@pytest.mark.asyncio
async def test_answer_and_pending_cache_writes(helper_config, llm, cache):
    service = make_service(helper_config, SpyRAGClient([a_match()]), llm, cache)

    response, pending = await service.answer(identity(), QueryRequest(question=QUESTION))

    assert response.answer == "Grounded answer [1]"
    assert response.cached is False
    assert [s.id for s in response.sources] == ["c1"]
    assert set(pending) == {
        service.embedding_cache_key(QUESTION),
        service.answer_cache_key(identity(), QUESTION, 0.5, 5),
    }
    # nothing is written until the caller flushes
    assert await cache.get(service.answer_cache_key(identity(), QUESTION, 0.5, 5)) is None


@pytest.mark.asyncio
async def test_second_identical_query_is_served_from_cache(helper_config, llm, cache):
    rag = SpyRAGClient([a_match()])
    service = make_service(helper_config, rag, llm, cache)

    first, pending = await service.answer(identity(), QueryRequest(question=QUESTION))
    await service.flush_cache_writes(pending)
    second, pending_again = await service.answer(identity(), QueryRequest(question=QUESTION))

    assert second.cached is True
    assert second.answer == first.answer
    assert pending_again == {}
    assert len(rag.calls) == 1
    assert len(llm.chat_calls) == 1


@pytest.mark.asyncio
async def test_cached_answer_is_not_shared_between_users(helper_config, llm, cache):
    rag = SpyRAGClient([a_match()])
    service = make_service(helper_config, rag, llm, cache)

    _, pending = await service.answer(identity(USER_A), QueryRequest(question=QUESTION))
    await service.flush_cache_writes(pending)
    response_b, _ = await service.answer(identity(USER_B), QueryRequest(question=QUESTION))

    assert response_b.cached is False
    assert [c["owner_id"] for c in rag.calls] == [USER_A, USER_B]


@pytest.mark.asyncio
async def test_cached_embedding_is_reused_across_users(helper_config, llm, cache):
    service = make_service(helper_config, SpyRAGClient([a_match()]), llm, cache)

    _, pending = await service.answer(identity(USER_A), QueryRequest(question=QUESTION))
    await service.flush_cache_writes(pending)
    _, pending_b = await service.answer(identity(USER_B), QueryRequest(question=QUESTION))

    assert len(llm.embed_calls) == 1
    assert service.embedding_cache_key(QUESTION) not in pending_b


@pytest.mark.asyncio
async def test_no_matches_returns_fixed_answer_without_chat(helper_config, llm, cache):
    service = make_service(helper_config, SpyRAGClient([]), llm, cache)

    response, pending = await service.answer(identity(), QueryRequest(question=QUESTION))

    assert response.answer == NO_CONTEXT_ANSWER
    assert response.sources == []
    assert llm.chat_calls == []
    assert service.answer_cache_key(identity(), QUESTION, 0.5, 5) not in pending


@pytest.mark.asyncio
async def test_store_failure_propagates(helper_config, llm, cache):
    service = make_service(helper_config, SpyRAGClient(error=RetrievalStoreError("down")), llm, cache)
    with pytest.raises(RetrievalStoreError):
        await service.answer(identity(), QueryRequest(question=QUESTION))
    assert llm.chat_calls == []


@pytest.mark.asyncio
async def test_works_without_cache(helper_config, llm):
    disabled = CacheClientRedis(helper_config=helper_config)
    service = make_service(helper_config, SpyRAGClient([a_match()]), llm, disabled)

    response, pending = await service.answer(identity(), QueryRequest(question=QUESTION))
    await service.flush_cache_writes(pending)

    assert response.answer == "Grounded answer [1]"


@pytest.mark.asyncio
async def test_end_to_end_with_memory_store_never_leaks(helper_config, llm, cache):
    store = RAGClientMemory(helper_config=helper_config)
    await store.boot()
    document = DocumentRecord(id=str(uuid.uuid4()), title="B's notes", user_id=USER_B)
    await store.do_insert_document(document, [
        ChunkRecord(
            id=str(uuid.uuid4()),
            document_id=document.id,
            chunk_index=0,
            content="secret of B",
            embedding=[1.0, 0.0, 0.0, 0.0],
            user_id=USER_B,
        )
    ])
    service = make_service(helper_config, store, llm, cache)

    response_a, _ = await service.answer(identity(USER_A), QueryRequest(question=QUESTION))
    response_b, _ = await service.answer(identity(USER_B), QueryRequest(question=QUESTION))

    assert response_a.answer == NO_CONTEXT_ANSWER
    assert [s.content for s in response_b.sources] == ["secret of B"]


@pytest.mark.asyncio
@pytest.mark.parametrize("stale", [[1.0, 0.0], ["1", "0", "0", "0"], [True, False, False, False], {"v": 1}])
async def test_malformed_cached_embedding_is_recomputed(helper_config, llm, cache, stale):
    rag = SpyRAGClient([a_match()])
    service = make_service(helper_config, rag, llm, cache)
    await cache.set(service.embedding_cache_key(QUESTION), stale)

    _, pending = await service.answer(identity(), QueryRequest(question=QUESTION))

    assert len(llm.embed_calls) == 1
    assert rag.calls[0]["embedding"] == [1.0, 0.0, 0.0, 0.0]
    assert pending[service.embedding_cache_key(QUESTION)] == [1.0, 0.0, 0.0, 0.0]
