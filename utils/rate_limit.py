import asyncio
import math
import re
import logging
from dataclasses import dataclass, field
from time import time
from typing import Callable, Dict, List, Optional, Pattern

import redis.asyncio as aioredis
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from utils.shared_utils import get_client_ip

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT_PATTERNS = [
    r"^/api/projects/[^/]+/generate-questions/?$",
    r"^/api/projects/[^/]+/generate-prd/?$",
]


@dataclass
class RateLimitEntry:
    count: int
    reset_time_ms: int


@dataclass
class RateLimitConfig:
    limit: int = 5
    window_ms: int = 60_000
    endpoint_patterns: List[Pattern] = field(
        default_factory=lambda: [re.compile(p) for p in DEFAULT_ENDPOINT_PATTERNS]
    )

    def matches(self, path: str) -> bool:
        return any(pattern.search(path) for pattern in self.endpoint_patterns)


class RateLimitStore:
    """
    Counter storage for the fixed-window limiter.

    increment() must be atomic per key: concurrent requests for the same
    identity may not lose updates.
    """

    async def get(self, key: str) -> Optional[RateLimitEntry]:
        raise NotImplementedError

    async def increment(self, key: str, window_ms: int, now_ms: int) -> RateLimitEntry:
        """Start a new window if none is open (or it has expired), then count one request."""
        raise NotImplementedError


class InMemoryRateLimitStore(RateLimitStore):
    """
    Process-local store. Counters reset on restart and are not shared
    between instances; use RedisRateLimitStore for multi-instance deployments.
    """

    def __init__(self):
        self._entries: Dict[str, RateLimitEntry] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[RateLimitEntry]:
        async with self._lock:
            entry = self._entries.get(key)
            return RateLimitEntry(entry.count, entry.reset_time_ms) if entry else None

    async def increment(self, key: str, window_ms: int, now_ms: int) -> RateLimitEntry:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None or now_ms > entry.reset_time_ms:
                entry = RateLimitEntry(count=0, reset_time_ms=now_ms + window_ms)
            entry.count += 1
            self._entries[key] = entry
            return RateLimitEntry(entry.count, entry.reset_time_ms)


class RedisRateLimitStore(RateLimitStore):
    """
    Shared store backed by Redis. INCR is atomic on the server; the key
    expires with the window so the next request opens a fresh one.
    """

    def __init__(self, client, prefix: str = "rate_limit"):
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisRateLimitStore":
        return cls(aioredis.from_url(redis_url, decode_responses=True))

    def _get_redis_key(self, key: str) -> str:
        """Generate Redis key for rate limiting"""
        return f"{self.prefix}:{key}"

    async def get(self, key: str) -> Optional[RateLimitEntry]:
        redis_key = self._get_redis_key(key)
        count = await self.client.get(redis_key)
        if count is None:
            return None
        ttl_ms = await self.client.pttl(redis_key)
        return RateLimitEntry(int(count), int(time() * 1000) + max(ttl_ms, 0))

    async def increment(self, key: str, window_ms: int, now_ms: int) -> RateLimitEntry:
        redis_key = self._get_redis_key(key)
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.incr(redis_key)
            pipe.pexpire(redis_key, window_ms, nx=True)
            pipe.pttl(redis_key)
            count, _, ttl_ms = await pipe.execute()
        if ttl_ms is None or ttl_ms < 0:
            ttl_ms = window_ms
        return RateLimitEntry(int(count), now_ms + int(ttl_ms))


class RateLimiterMiddleware(BaseHTTPMiddleware):
    """
    Fixed-window rate limiter for the AI-backed endpoints.
    Default: 5 requests per 60 seconds per user (or per IP when anonymous).
    Paths not matching config.endpoint_patterns pass through untouched.
    """

    def __init__(
        self,
        app,
        store: Optional[RateLimitStore] = None,
        config: Optional[RateLimitConfig] = None,
        clock: Callable[[], float] = time,
    ):
        super().__init__(app)
        self.store = store or InMemoryRateLimitStore()
        self.config = config or RateLimitConfig()
        self.clock = clock

    def _identity(self, request: Request) -> str:
        user_id = getattr(request.state, "user_id", None)
        if user_id:
            return f"user:{user_id}"
        ip = get_client_ip(request)
        if ip:
            return f"ip:{ip}"
        return "anonymous"

    def _headers(self, entry: RateLimitEntry) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.config.limit),
            "X-RateLimit-Remaining": str(max(0, self.config.limit - entry.count)),
            "X-RateLimit-Reset": str(math.ceil(entry.reset_time_ms / 1000)),
        }

    async def dispatch(self, request: Request, call_next) -> Response:
        if not self.config.matches(request.url.path):
            return await call_next(request)

        key = self._identity(request)
        now_ms = int(self.clock() * 1000)
        entry = await self.store.increment(key, self.config.window_ms, now_ms)
        headers = self._headers(entry)

        if entry.count > self.config.limit:
            retry_after = max(1, math.ceil((entry.reset_time_ms - now_ms) / 1000))
            logger.warning(f"Rate limit exceeded for {key} on {request.url.path}")
            headers["Retry-After"] = str(retry_after)
            headers["X-RateLimit-Remaining"] = "0"
            return JSONResponse(
                status_code=429,
                content={
                    "error": "Too many requests",
                    "message": f"Rate limit exceeded. Try again in {retry_after} seconds.",
                },
                headers=headers,
            )

        response = await call_next(request)
        for name, value in headers.items():
            response.headers[name] = value
        return response
