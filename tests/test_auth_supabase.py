import httpx
import pytest

from shared.clients.auth.AuthClientInterface import TokenVerificationError
from shared.clients.auth.AuthClientManager import AuthClientManager
from shared.clients.auth.supabase.AuthClientSupabase import AuthClientSupabase
from conftest import USER_A

SUPABASE_URL = "https://project.supabase.co"
ANON_KEY = "anon-key"


@pytest.fixture(autouse=True)
def supabase_env(monkeypatch):
    monkeypatch.setenv("AUTH_SUPABASE_URL", SUPABASE_URL)
    monkeypatch.setenv("AUTH_SUPABASE_ANON_KEY", ANON_KEY)


async def make_client(helper_config, handler) -> AuthClientSupabase:
    client = AuthClientSupabase(helper_config=helper_config)
    await client.boot(transport=httpx.MockTransport(handler))
    return client


def test_manager_builds_supabase_client_by_default(helper_config, monkeypatch):
    monkeypatch.delenv("AUTH_ENGINE", raising=False)
    client = AuthClientManager(helper_config=helper_config).get_client()
    assert isinstance(client, AuthClientSupabase)
    assert client.get_engine_name() == "supabase"


@pytest.mark.asyncio
async def test_valid_token_resolves_user(helper_config):
    seen: list[httpx.Request] = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"id": USER_A, "email": "a@example.com", "role": "authenticated"})

    client = await make_client(helper_config, handler)
    user = await client.do_verify_token("user-jwt")

    assert user.id == USER_A
    assert user.email == "a@example.com"
    [request] = seen
    assert str(request.url) == f"{SUPABASE_URL}/auth/v1/user"
    assert request.headers["apikey"] == ANON_KEY
    assert request.headers["authorization"] == "Bearer user-jwt"
    await client.close()


@pytest.mark.asyncio
async def test_nested_user_payload_is_accepted(helper_config):
    client = await make_client(helper_config, lambda r: httpx.Response(200, json={"user": {"id": USER_A}}))
    assert (await client.do_verify_token("t")).id == USER_A
    await client.close()


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [
    httpx.Response(401, json={"msg": "invalid JWT: token is expired"}),
    httpx.Response(403, json={"msg": "forbidden"}),
    httpx.Response(200, json={"email": "no-id@example.com"}),
    httpx.Response(200, json=["not", "a", "user"]),
    httpx.Response(200, text="not json"),
])
async def test_rejected_or_unusable_responses(helper_config, response):
    client = await make_client(helper_config, lambda r: response)
    with pytest.raises(TokenVerificationError):
        await client.do_verify_token("user-jwt")
    await client.close()


@pytest.mark.asyncio
async def test_unreachable_provider_is_a_verification_error(helper_config):
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    client = await make_client(helper_config, handler)
    with pytest.raises(TokenVerificationError):
        await client.do_verify_token("user-jwt")
    await client.close()


@pytest.mark.asyncio
@pytest.mark.parametrize("token", ["", "   "])
async def test_empty_token_makes_no_request(helper_config, token):
    calls = []
    client = await make_client(helper_config, lambda r: calls.append(r) or httpx.Response(200))
    with pytest.raises(TokenVerificationError):
        await client.do_verify_token(token)
    assert calls == []
    await client.close()
