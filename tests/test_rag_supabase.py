import json
import uuid

import httpx
import pytest

from shared.clients.rag.RAGClientInterface import RetrievalStoreError
from shared.clients.rag.supabase.RAGClientSupabase import INSERT_BATCH_SIZE, RAGClientSupabase
from shared.clients.rag.models.ChunkRecord import ChunkRecord, DocumentRecord
from conftest import USER_A

SUPABASE_URL = "https://project.supabase.co"
ANON_KEY = "anon-key"
SERVICE_KEY = "service-key"
EMBEDDING = [0.1, 0.2, 0.3, 0.4]


class Recorder:
    """MockTransport handler that records requests and replies from a queue."""

    def __init__(self, responses: list[httpx.Response] | None = None):
        self.requests: list[httpx.Request] = []
        self.responses = list(responses or [])

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.responses:
            return self.responses.pop(0)
        return httpx.Response(201)


@pytest.fixture
def supabase_env(monkeypatch):
    monkeypatch.setenv("RAG_SUPABASE_URL", SUPABASE_URL)
    monkeypatch.setenv("RAG_SUPABASE_ANON_KEY", ANON_KEY)
    monkeypatch.delenv("RAG_SUPABASE_SERVICE_KEY", raising=False)


async def make_client(helper_config, recorder: Recorder) -> RAGClientSupabase:
    client = RAGClientSupabase(helper_config=helper_config)
    await client.boot(transport=httpx.MockTransport(recorder))
    return client


def make_document(owner: str, n_chunks: int) -> tuple[DocumentRecord, list[ChunkRecord]]:
    document = DocumentRecord(id=str(uuid.uuid4()), title="Notes", user_id=owner)
    chunks = [
        ChunkRecord(
            id=str(uuid.uuid4()),
            document_id=document.id,
            chunk_index=i,
            content=f"chunk {i}",
            embedding=EMBEDDING,
            user_id=owner,
        )
        for i in range(n_chunks)
    ]
    return document, chunks


def test_missing_url_is_a_configuration_error(helper_config, monkeypatch):
    monkeypatch.delenv("RAG_SUPABASE_URL", raising=False)
    monkeypatch.setenv("RAG_SUPABASE_ANON_KEY", ANON_KEY)
    with pytest.raises(ValueError):
        RAGClientSupabase(helper_config=helper_config)


@pytest.mark.asyncio
async def test_match_calls_rpc_with_owner_and_caller_token(helper_config, supabase_env):
    recorder = Recorder([
        httpx.Response(200, json=[
            {"id": "c1", "content": "first", "metadata": {"title": "Notes"}, "similarity": 0.91},
            {"id": "c2", "content": "second", "metadata": None, "similarity": 0.82},
        ])
    ])
    client = await make_client(helper_config, recorder)

    matches = await client.do_match_chunks(EMBEDDING, threshold=0.5, limit=5, owner_id=USER_A, access_token="user-jwt")

    [request] = recorder.requests
    assert request.method == "POST"
    assert str(request.url) == f"{SUPABASE_URL}/rest/v1/rpc/match_documents"
    assert request.headers["authorization"] == "Bearer user-jwt"
    assert request.headers["apikey"] == ANON_KEY
    assert json.loads(request.content) == {
        "query_embedding": EMBEDDING,
        "match_threshold": 0.5,
        "match_count": 5,
        "p_user_id": USER_A,
    }
    assert [(m.id, m.similarity) for m in matches] == [("c1", 0.91), ("c2", 0.82)]
    assert matches[1].metadata == {}
    await client.close()


@pytest.mark.asyncio
async def test_match_without_token_uses_service_key(helper_config, supabase_env, monkeypatch):
    monkeypatch.setenv("RAG_SUPABASE_SERVICE_KEY", SERVICE_KEY)
    recorder = Recorder([httpx.Response(200, json=[])])
    client = await make_client(helper_config, recorder)

    await client.do_match_chunks(EMBEDDING, threshold=0.5, limit=5, owner_id=USER_A)

    headers = recorder.requests[0].headers
    assert headers["apikey"] == SERVICE_KEY
    assert headers["authorization"] == f"Bearer {SERVICE_KEY}"
    await client.close()


@pytest.mark.asyncio
async def test_match_without_token_or_service_key_uses_anon_key(helper_config, supabase_env):
    recorder = Recorder([httpx.Response(200, json=[])])
    client = await make_client(helper_config, recorder)

    await client.do_match_chunks(EMBEDDING, threshold=0.5, limit=5, owner_id=USER_A)

    assert recorder.requests[0].headers["authorization"] == f"Bearer {ANON_KEY}"
    await client.close()


@pytest.mark.asyncio
async def test_limit_zero_makes_no_request(helper_config, supabase_env):
    recorder = Recorder()
    client = await make_client(helper_config, recorder)
    assert await client.do_match_chunks(EMBEDDING, threshold=0.5, limit=0, owner_id=USER_A) == []
    assert recorder.requests == []
    await client.close()


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [
    httpx.Response(500, text="boom"),
    httpx.Response(401, json={"message": "JWT expired"}),
    httpx.Response(200, json={"not": "a list"}),
    httpx.Response(200, text="<html>"),
])
async def test_match_failures_raise_store_error(helper_config, supabase_env, response):
    client = await make_client(helper_config, Recorder([response]))
    with pytest.raises(RetrievalStoreError):
        await client.do_match_chunks(EMBEDDING, threshold=0.5, limit=5, owner_id=USER_A, access_token="t")
    await client.close()


@pytest.mark.asyncio
async def test_transport_error_raises_store_error(helper_config, supabase_env):
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    client = RAGClientSupabase(helper_config=helper_config)
    await client.boot(transport=httpx.MockTransport(handler))
    with pytest.raises(RetrievalStoreError):
        await client.do_match_chunks(EMBEDDING, threshold=0.5, limit=5)
    await client.close()


@pytest.mark.asyncio
async def test_insert_writes_document_then_chunk_batches(helper_config, supabase_env):
    recorder = Recorder()
    client = await make_client(helper_config, recorder)
    document, chunks = make_document(USER_A, INSERT_BATCH_SIZE + 1)

    await client.do_insert_document(document, chunks, access_token="user-jwt")

    paths = [r.url.path for r in recorder.requests]
    assert paths == ["/rest/v1/documents", "/rest/v1/document_chunks", "/rest/v1/document_chunks"]
    assert all(r.headers["prefer"] == "return=minimal" for r in recorder.requests)
    assert all(r.headers["authorization"] == "Bearer user-jwt" for r in recorder.requests)
    assert json.loads(recorder.requests[0].content)["user_id"] == USER_A
    assert len(json.loads(recorder.requests[1].content)) == INSERT_BATCH_SIZE
    [last] = json.loads(recorder.requests[2].content)
    assert last["chunk_index"] == INSERT_BATCH_SIZE
    assert last["user_id"] == USER_A
    await client.close()


@pytest.mark.asyncio
async def test_failed_chunk_insert_removes_document(helper_config, supabase_env):
    recorder = Recorder([httpx.Response(201), httpx.Response(500, text="boom")])
    client = await make_client(helper_config, recorder)
    document, chunks = make_document(USER_A, 2)

    with pytest.raises(RetrievalStoreError):
        await client.do_insert_document(document, chunks, access_token="user-jwt")

    methods = [r.method for r in recorder.requests]
    assert methods == ["POST", "POST", "DELETE", "DELETE"]
    await client.close()


@pytest.mark.asyncio
async def test_delete_is_filtered_by_document_and_owner(helper_config, supabase_env):
    recorder = Recorder([httpx.Response(204), httpx.Response(204)])
    client = await make_client(helper_config, recorder)
    document_id = str(uuid.uuid4())

    await client.do_delete_document(document_id, owner_id=USER_A, access_token="user-jwt")

    chunks_req, doc_req = recorder.requests
    assert chunks_req.url.path == "/rest/v1/document_chunks"
    assert chunks_req.url.params["document_id"] == f"eq.{document_id}"
    assert chunks_req.url.params["user_id"] == f"eq.{USER_A}"
    assert doc_req.url.path == "/rest/v1/documents"
    assert doc_req.url.params["id"] == f"eq.{document_id}"
    assert doc_req.url.params["user_id"] == f"eq.{USER_A}"
    await client.close()
