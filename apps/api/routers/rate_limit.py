"""Per-client request quotas for public share access and account endpoints.

Counters live in Redis so every API process shares them. When Redis cannot be
reached each process falls back to its own fixed-window counter.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Tuple

from fastapi import Request
import redis.asyncio as redis
from redis.exceptions import RedisError

from config import settings
from errors import QuotaExceeded

logger = logging.getLogger(__name__)

RATE_KEY_PREFIX = "snippet:rate"

_local_counters: Dict[str, Tuple[int, float]] = {}
_local_lock = asyncio.Lock()


@dataclass(frozen=True)
class QuotaDecision:
    allowed: bool
    count: int
    retry_after: int


def client_identifier(request: Request) -> str:
    """First X-Forwarded-For hop, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def quota_key(scope: str, client_id: str) -> str:
    return f"{RATE_KEY_PREFIX}:{scope}:{client_id}"


async def consume_redis_quota(key: str, limit: int, window_seconds: int) -> QuotaDecision:
    redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    try:
        async with redis_client.pipeline(transaction=True) as pipe:
            count, ttl = await pipe.incr(key).ttl(key).execute()
        if ttl < 0:
            await redis_client.expire(key, window_seconds)
            ttl = window_seconds
    finally:
        await redis_client.aclose()
    return QuotaDecision(allowed=int(count) <= limit, count=int(count), retry_after=max(int(ttl), 1))


async def consume_local_quota(key: str, limit: int, window_seconds: int) -> QuotaDecision:
    now = time.monotonic()
    async with _local_lock:
        count, reset_at = _local_counters.get(key, (0, now + window_seconds))
        if now >= reset_at:
            count, reset_at = 0, now + window_seconds
        count += 1
        _local_counters[key] = (count, reset_at)
    return QuotaDecision(
        allowed=count <= limit,
        count=count,
        retry_after=max(math.ceil(reset_at - now), 1),
    )


def rate_limit(scope: str, limit: int, window_seconds: int) -> Callable[[Request], None]:
    """FastAPI dependency rejecting a client once it exceeds ``limit`` calls per window."""

    async def _dependency(request: Request) -> None:
        if getattr(request.app.state, "disable_rate_limits", False):
            return

        key = quota_key(scope, client_identifier(request))
        try:
            decision = await consume_redis_quota(key, limit, window_seconds)
        except (RedisError, OSError):
            logger.debug("Redis unavailable for rate limit %s, using local counter", scope)
            decision = await consume_local_quota(key, limit, window_seconds)

        if not decision.allowed:
            logger.info("Rate limit hit for %s (%s calls)", key, decision.count)
            raise QuotaExceeded(
                f"Rate limit exceeded for {scope}. Try again later.",
                code="rate_limited",
                retry_after=decision.retry_after,
            )

    return _dependency
