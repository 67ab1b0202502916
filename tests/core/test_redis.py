"""
Tests for the Redis client module.

A live Redis server is not required: the quota script path is exercised with
a mocked redis.asyncio client, and the fallback paths with a disabled or
unreachable server.
"""
from unittest.mock import AsyncMock

from redis.exceptions import NoScriptError, RedisError

from core.redis import QUOTA_SCRIPT, RedisClient

QUOTA_ARGS = {
    "count_key": "quota:summary:count",
    "spacing_key": "quota:summary:spacing",
    "max_requests": 50,
    "window_seconds": 3600,
    "spacing_ms": 2000,
}


def connected_client(evalsha: AsyncMock, script_load: AsyncMock | None = None) -> RedisClient:
    """RedisClient wired to a mocked low-level client, as if connect() had succeeded."""
    client = RedisClient("redis://localhost:6379")
    mock_redis = AsyncMock()
    mock_redis.evalsha = evalsha
    mock_redis.script_load = script_load or AsyncMock(return_value="reloaded-sha")
    client._client = mock_redis
    client._quota_sha = "initial-sha"
    return client


class TestRedisClientDisabled:
    """Tests for disabled Redis client."""

    async def test__disabled_client__not_connected(self) -> None:
        client = RedisClient("redis://localhost:6379", enabled=False)
        await client.connect()

        assert client.is_connected is False
        assert await client.ping() is False
        assert await client.eval_quota(**QUOTA_ARGS) is None

        await client.close()


class TestRedisClientUnavailable:
    """Tests for Redis client when server is unavailable."""

    async def test__unavailable_server__connect_fails_gracefully(self) -> None:
        client = RedisClient("redis://localhost:59999", enabled=True)
        await client.connect()

        assert client.is_connected is False
        assert await client.eval_quota(**QUOTA_ARGS) is None

        await client.close()


class TestEvalQuota:
    """Tests for eval_quota script execution."""

    async def test__eval_quota__passes_keys_and_limits(self) -> None:
        evalsha = AsyncMock(return_value=[1, 49, 0])
        client = connected_client(evalsha)

        result = await client.eval_quota(**QUOTA_ARGS)

        assert result == [1, 49, 0]
        evalsha.assert_awaited_once_with(
            "initial-sha", 2, "quota:summary:count", "quota:summary:spacing", 50, 3600, 2000,
        )

    async def test__eval_quota__reloads_script_after_noscript(self) -> None:
        evalsha = AsyncMock(side_effect=[NoScriptError("NOSCRIPT"), [1, 10, 0]])
        script_load = AsyncMock(return_value="reloaded-sha")
        client = connected_client(evalsha, script_load)

        result = await client.eval_quota(**QUOTA_ARGS)

        assert result == [1, 10, 0]
        script_load.assert_awaited_once_with(QUOTA_SCRIPT)
        assert evalsha.await_args_list[1].args[0] == "reloaded-sha"

    async def test__eval_quota__returns_none_on_redis_error(self) -> None:
        client = connected_client(AsyncMock(side_effect=RedisError("Connection lost")))
        assert await client.eval_quota(**QUOTA_ARGS) is None

    async def test__eval_quota__returns_none_when_reload_fails(self) -> None:
        client = connected_client(
            AsyncMock(side_effect=NoScriptError("NOSCRIPT")),
            AsyncMock(side_effect=RedisError("Connection lost")),
        )
        assert await client.eval_quota(**QUOTA_ARGS) is None
