import logging
import os
import tempfile

import pytest

# logs of the app under test go to a temp dir, not the checkout
os.environ.setdefault("ROOT_DIR", tempfile.gettempdir())

from shared.clients.auth.AuthClientInterface import TokenVerificationError  # noqa: E402
from shared.clients.auth.models.AuthUser import AuthUser  # noqa: E402
from shared.helper.HelperConfig import HelperConfig  # noqa: E402
from shared.logging.logging_setup import ColorLogger  # noqa: E402

USER_A = "11111111-1111-4111-8111-111111111111"
USER_B = "22222222-2222-4222-8222-222222222222"


class FakeRedis:
    """Minimal async stand-in for redis.asyncio.Redis with a controllable clock."""

    def __init__(self, fail_ping: bool = False, fail_ops: bool = False):
        self.fail_ping = fail_ping
        self.fail_ops = fail_ops
        self.now = 0.0
        self.store: dict[str, tuple[str, float | None]] = {}
        self.closed = False

    async def ping(self):
        from redis.exceptions import ConnectionError

        if self.fail_ping:
            raise ConnectionError("connection refused")
        return True

    async def get(self, key):
        from redis.exceptions import ConnectionError

        if self.fail_ops:
            raise ConnectionError("connection lost")
        value, expires_at = self.store.get(key, (None, None))
        if expires_at is not None and self.now >= expires_at:
            self.store.pop(key, None)
            return None
        return value

    async def set(self, key, value, ex=None):
        from redis.exceptions import ConnectionError

        if self.fail_ops:
            raise ConnectionError("connection lost")
        self.store[key] = (value, self.now + ex if ex else None)
        return True

    async def aclose(self):
        self.closed = True


class FakeAuthClient:
    """Identity provider that knows a fixed set of tokens."""

    def __init__(self, tokens: dict[str, str] | None = None):
        self.tokens = tokens or {}
        self.calls: list[str] = []

    async def do_verify_token(self, token: str) -> AuthUser:
        self.calls.append(token)
        if token not in self.tokens:
            raise TokenVerificationError("Token rejected by identity provider (status 401).")
        return AuthUser(id=self.tokens[token], email=f"{self.tokens[token][:4]}@example.com")


class FakeLLMClient:
    """Embeds known texts to fixed vectors and answers chats with a canned reply."""

    embed_model = "fake-embed"

    def __init__(self, vectors: dict[str, list[float]] | None = None, default: list[float] | None = None):
        self.vectors = vectors or {}
        self.default = default or [1.0, 0.0, 0.0, 0.0]
        self.embed_calls: list[list[str]] = []
        self.chat_calls: list[list[dict]] = []

    async def do_embed(self, texts):
        texts = [texts] if isinstance(texts, str) else texts
        self.embed_calls.append(list(texts))
        return [list(self.vectors.get(t, self.default)) for t in texts]

    async def do_chat(self, messages):
        self.chat_calls.append(messages)
        return "Grounded answer [1]"


@pytest.fixture
def helper_config(monkeypatch):
    monkeypatch.setenv("EMBEDDING_DIMENSION", "4")
    monkeypatch.delenv("APP_ENV", raising=False)
    return HelperConfig(logger=ColorLogger(logging.getLogger("rag_gateway.tests")))


@pytest.fixture
def fake_redis():
    return FakeRedis()
