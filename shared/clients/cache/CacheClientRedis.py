"""Best-effort Redis cache.

Every operation degrades to a miss / no-op when Redis is disabled,
unreachable or returns garbage. Nothing here raises into the caller.
"""

import json
from typing import Any

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.helper.HelperConfig import HelperConfig

DEFAULT_TTL_SECONDS = 3600


class CacheClientRedis:
    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self._enabled = helper_config.get_bool_val("CACHE_ENABLED", default=True)
        self._url = helper_config.get_string_val("REDIS_URL", default="redis://localhost:6379")
        self._timeout = helper_config.get_number_val("CACHE_TIMEOUT", default=2.0)
        self.default_ttl = int(helper_config.get_number_val("CACHE_TTL_SECONDS", default=DEFAULT_TTL_SECONDS))
        self._client: redis.Redis | None = None
        self._available = False

    ##########################################
    ################ GETTER ##################
    ##########################################

    def is_available(self) -> bool:
        """Return True if the cache connected at boot and is in use."""
        return self._available and self._client is not None

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    async def boot(self, client: redis.Redis | None = None) -> None:
        """Connect once. A failed connection disables the cache for the life of the process.

        Args:
            client (redis.Redis | None): Pre-built client (tests); built from REDIS_URL otherwise.
        """
        if not self._enabled:
            self.logging.info("Cache disabled by configuration (CACHE_ENABLED=false).")
            return

        self._client = client or redis.from_url(
            self._url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=self._timeout,
            socket_timeout=self._timeout,
            retry_on_timeout=False,
        )
        try:
            await self._client.ping()
        except (RedisError, OSError) as exc:
            self.logging.warning("Redis not available - caching disabled: %s", exc)
            await self._discard_client()
            return

        self._available = True
        self.logging.info("Redis cache connected.", color="green")

    async def close(self) -> None:
        """Close the Redis connection, if any."""
        await self._discard_client()

    async def _discard_client(self) -> None:
        client, self._client, self._available = self._client, None, False
        if client is not None:
            try:
                await client.aclose()
            except (RedisError, OSError) as exc:
                self.logging.debug("Error while closing Redis client: %s", exc)

    async def get(self, key: str) -> Any | None:
        """Read and decode a cached value.

        Args:
            key (str): The cache key.

        Returns:
            Any | None: The decoded value, or None on a miss, an expired key,
            an unavailable cache or undecodable data.
        """
        if not self.is_available():
            return None
        try:
            raw = await self._client.get(key)
        except UnicodeDecodeError as exc:
            # decode_responses=True decodes inside the client; foreign binary values fail there
            self.logging.warning("Cache GET for key %s returned non-UTF-8 data: %s", key, exc)
            return None
        except (RedisError, OSError) as exc:
            self.logging.warning("Cache GET error for key %s: %s", key, exc)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as exc:
            self.logging.warning("Cache GET for key %s returned undecodable data: %s", key, exc)
            return None

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> bool:
        """Encode and store a value with an expiry.

        Args:
            key (str): The cache key.
            value (Any): Any JSON-serialisable value.
            ttl_seconds (int | None): Lifetime in seconds. None or non-positive values use the default TTL.

        Returns:
            bool: True if the value was written.
        """
        if not self.is_available():
            return False
        ttl = ttl_seconds if ttl_seconds and ttl_seconds > 0 else self.default_ttl
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as exc:
            self.logging.warning("Cache SET for key %s: value is not serialisable: %s", key, exc)
            return False
        try:
            await self._client.set(key, payload, ex=ttl)
        except (RedisError, OSError) as exc:
            self.logging.warning("Cache SET error for key %s: %s", key, exc)
            return False
        return True
