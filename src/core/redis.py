"""Redis client with connection pooling and graceful fallback."""
import logging

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import NoScriptError, RedisError

logger = logging.getLogger(__name__)

# Lua script for the shared outbound quota: fixed hourly window plus minimum spacing.
# Atomic: the check and the record happen in one round trip, so concurrent
# processes cannot both slip through the last slot.
QUOTA_SCRIPT = """
local count_key = KEYS[1]
local spacing_key = KEYS[2]
local limit = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local spacing_ms = tonumber(ARGV[3])

local count = tonumber(redis.call('GET', count_key) or '0')
if count >= limit then
    local ttl = redis.call('TTL', count_key)
    if ttl < 0 then ttl = window end
    return {0, 0, ttl}  -- denied, window exhausted
end

if spacing_ms > 0 then
    local claimed = redis.call('SET', spacing_key, '1', 'PX', spacing_ms, 'NX')
    if not claimed then
        local pttl = redis.call('PTTL', spacing_key)
        return {0, limit - count, math.ceil(math.max(pttl, 0) / 1000)}  -- denied, too soon
    end
end

count = redis.call('INCR', count_key)
if count == 1 then
    redis.call('EXPIRE', count_key, window)
end
return {1, limit - count, 0}  -- allowed, remaining, no retry needed
"""


class RedisClient:
    """Async Redis client with connection pooling and graceful fallback."""

    def __init__(self, url: str, enabled: bool = True, pool_size: int = 10) -> None:
        self._url = url
        self._enabled = enabled
        self._pool_size = pool_size
        self._pool: ConnectionPool | None = None
        self._client: Redis | None = None
        self._quota_sha: str | None = None

    async def connect(self) -> None:
        """Initialize connection pool and load Lua scripts."""
        if not self._enabled:
            logger.info("Redis disabled by configuration")
            return
        try:
            self._pool = ConnectionPool.from_url(self._url, max_connections=self._pool_size)
            self._client = Redis(connection_pool=self._pool)
            # Verify connection
            await self._client.ping()
            await self._load_scripts()
            logger.info("Redis connected successfully")
        except RedisError as e:
            logger.warning("Redis connection failed: %s", e)
            self._client = None
            self._pool = None

    async def _load_scripts(self) -> None:
        """Load Lua scripts and store their SHAs for evalsha calls."""
        if not self._client:
            return
        try:
            self._quota_sha = await self._client.script_load(QUOTA_SCRIPT)
        except RedisError as e:
            logger.warning("Failed to load Lua scripts: %s", e)
            self._quota_sha = None

    async def close(self) -> None:
        """Close connection pool."""
        if self._client:
            await self._client.aclose()
            self._client = None
            self._pool = None
            logger.info("Redis connection closed")

    @property
    def is_connected(self) -> bool:
        """Check if client is connected."""
        return self._client is not None

    async def ping(self) -> bool:
        """Check Redis connectivity."""
        if not self._client:
            return False
        try:
            return await self._client.ping()
        except RedisError:
            return False

    async def eval_quota(
        self,
        count_key: str,
        spacing_key: str,
        max_requests: int,
        window_seconds: int,
        spacing_ms: int,
    ) -> list[int] | None:
        """
        Execute the quota script with automatic script reload.

        Handles NOSCRIPT errors by reloading scripts and retrying once.

        Returns:
            [allowed, remaining, retry_after] or None if Redis is unavailable.
        """
        if not self._client or self._quota_sha is None:
            return None

        args = (count_key, spacing_key, max_requests, window_seconds, spacing_ms)
        try:
            return await self._client.evalsha(self._quota_sha, 2, *args)
        except NoScriptError:
            # Redis restarted, scripts need reloading
            logger.warning("redis_script_reload", extra={"script": "quota"})
            await self._load_scripts()
            if self._quota_sha is None:
                return None
            try:
                return await self._client.evalsha(self._quota_sha, 2, *args)
            except RedisError as e:
                logger.warning("Redis quota retry failed: %s", e)
                return None
        except RedisError as e:
            logger.warning("Redis quota check failed: %s", e)
            return None
