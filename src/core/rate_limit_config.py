"""
Outbound quota configuration and types.

This module contains the policy for protecting shared third-party quotas - the
"what" limits to apply, separate from the "how" (enforcement in rate_limiter.py).
"""
from dataclasses import dataclass

from core.config import Settings


@dataclass(frozen=True)
class QuotaConfig:
    """Quota for one outbound service."""

    service: str  # Used in shared counter keys
    max_requests: int  # Admitted calls per window
    window_seconds: int
    min_interval_seconds: float  # Minimum spacing between two admitted calls


@dataclass
class RateLimitResult:
    """Result of a quota check."""

    allowed: bool
    limit: int  # Max requests in current window
    remaining: int  # Requests remaining in current window
    retry_after: int  # Seconds until retry allowed (0 if allowed)


def summary_quota(settings: Settings) -> QuotaConfig:
    """Quota for the summary pipeline (reader service + language model)."""
    return QuotaConfig(
        service="summary",
        max_requests=settings.summary_max_requests_per_hour,
        window_seconds=60 * 60,
        min_interval_seconds=settings.summary_min_interval_seconds,
    )
