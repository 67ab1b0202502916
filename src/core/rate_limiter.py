"""
Outbound quota enforcement.

This module contains the enforcement logic - the "how" of protecting a shared
third-party quota. For the limits themselves, see rate_limit_config.py.

Two modes share one interface:
- shared: an atomic Lua script in Redis, so every process draws on one counter
- local: an in-process window guarded by an asyncio.Lock, used when Redis is
  disabled or unavailable
"""
import asyncio
import logging
import math
import time
from collections.abc import Callable

from core.rate_limit_config import QuotaConfig, RateLimitResult
from core.redis import RedisClient

logger = logging.getLogger(__name__)


class QuotaLimiter:
    """
    Admit or deny calls against an outbound service quota.

    Unlike request rate limiting, this fails closed: when Redis is unavailable
    the in-process window still applies.
    """

    def __init__(
        self,
        config: QuotaConfig,
        redis_client: RedisClient | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._redis = redis_client
        self._clock = clock
        self._lock = asyncio.Lock()
        self._window_start: float | None = None
        self._request_count = 0
        self._last_request_at: float | None = None

    @property
    def config(self) -> QuotaConfig:
        """Quota being enforced."""
        return self._config

    async def acquire(self) -> RateLimitResult:
        """Check the quota and, if allowed, record the call in the same step."""
        if self._redis is not None and self._redis.is_connected:
            result = await self._acquire_shared()
            if result is not None:
                return result
            logger.warning("redis_unavailable", extra={"operation": "quota", "fallback": "local"})
        return await self._acquire_local()

    async def _acquire_shared(self) -> RateLimitResult | None:
        config = self._config
        raw = await self._redis.eval_quota(
            count_key=f"quota:{config.service}:count",
            spacing_key=f"quota:{config.service}:spacing",
            max_requests=config.max_requests,
            window_seconds=config.window_seconds,
            spacing_ms=int(config.min_interval_seconds * 1000),
        )
        if raw is None:
            return None
        allowed, remaining, retry_after = (int(v) for v in raw)
        result = RateLimitResult(
            allowed=bool(allowed),
            limit=config.max_requests,
            remaining=max(0, remaining),
            retry_after=max(0, retry_after) if not allowed else 0,
        )
        if not result.allowed:
            logger.warning(
                "quota_exceeded",
                extra={"service": config.service, "mode": "shared", "retry_after": result.retry_after},
            )
        return result

    async def _acquire_local(self) -> RateLimitResult:
        config = self._config
        async with self._lock:
            now = self._clock()

            if self._window_start is None or now - self._window_start > config.window_seconds:
                self._window_start = now
                self._request_count = 0

            if self._request_count >= config.max_requests:
                retry_after = math.ceil(self._window_start + config.window_seconds - now)
                logger.warning(
                    "quota_exceeded",
                    extra={"service": config.service, "mode": "local", "limit_type": "window"},
                )
                return RateLimitResult(
                    allowed=False,
                    limit=config.max_requests,
                    remaining=0,
                    retry_after=max(0, retry_after),
                )

            if (
                self._last_request_at is not None
                and now - self._last_request_at < config.min_interval_seconds
            ):
                retry_after = math.ceil(self._last_request_at + config.min_interval_seconds - now)
                logger.warning(
                    "quota_exceeded",
                    extra={"service": config.service, "mode": "local", "limit_type": "spacing"},
                )
                return RateLimitResult(
                    allowed=False,
                    limit=config.max_requests,
                    remaining=config.max_requests - self._request_count,
                    retry_after=max(0, retry_after),
                )

            self._last_request_at = now
            self._request_count += 1
            return RateLimitResult(
                allowed=True,
                limit=config.max_requests,
                remaining=config.max_requests - self._request_count,
                retry_after=0,
            )
