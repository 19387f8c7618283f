"""
In-process fixed-window rate limiting.

Counters live in a sharded map keyed by ``(bucket, identity)``; each shard has
its own lock so unrelated clients do not contend. A window is reset lazily the
first time it is touched after expiry, and opening a new window sweeps the
expired ones out of its shard, so idle clients do not accumulate.

The client identity is the first ``X-Forwarded-For`` hop when present. That
header is only trustworthy behind a proxy that overwrites it; exposed directly,
a client can rotate it to get a fresh window per request, so set
``RATE_LIMIT_TRUST_FORWARDED_FOR=false`` to key on the socket peer instead.

Counters are per process. Behind more than one instance each instance
enforces its own limit, so a shared counter store is needed there.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ..errors import error_response
from .config import DEFAULT_RATE_LIMIT_CONFIG, RateLimitConfig

logger = logging.getLogger(__name__)

AUTH_PREFIX = "/auth/"
EXEMPT_PATHS = ("/", "/health")


@dataclass
class _Window:
    started_at: float
    count: int


class FixedWindowRateLimiter:
    def __init__(
        self,
        window_seconds: float = 60.0,
        shards: int = 16,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_seconds = window_seconds
        self._clock = clock
        self._shards: list[tuple[threading.Lock, dict[tuple[str, str], _Window]]] = [
            (threading.Lock(), {}) for _ in range(max(1, shards))
        ]

    def allow(self, bucket: str, identity: str, limit: int) -> bool:
        """Count one request and report whether it fits in the current window."""
        key = (bucket, identity)
        lock, windows = self._shards[hash(key) % len(self._shards)]
        now = self._clock()
        with lock:
            window = windows.get(key)
            if window is None or now - window.started_at >= self.window_seconds:
                self._evict_expired(windows, now)
                window = _Window(started_at=now, count=0)
                windows[key] = window
            window.count += 1
            return window.count <= limit

    def _evict_expired(self, windows: dict[tuple[str, str], _Window], now: float) -> None:
        # Caller holds the shard lock
        expired = [k for k, w in windows.items() if now - w.started_at >= self.window_seconds]
        for k in expired:
            del windows[k]

    def tracked_keys(self) -> int:
        total = 0
        for lock, windows in self._shards:
            with lock:
                total += len(windows)
        return total

    def reset(self) -> None:
        for lock, windows in self._shards:
            with lock:
                windows.clear()


def _client_ip(request: Request, trust_forwarded_for: bool = True) -> str:
    forwarded = request.headers.get("x-forwarded-for") if trust_forwarded_for else None
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Pass or reject each request; the engine never sees rejected ones."""

    def __init__(
        self,
        app,
        config: RateLimitConfig = DEFAULT_RATE_LIMIT_CONFIG,
        limiter: FixedWindowRateLimiter | None = None,
    ):
        super().__init__(app)
        self.config = config
        self.limiter = limiter or FixedWindowRateLimiter(config.window_seconds, config.shards)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if not self.config.enabled or request.method == "OPTIONS" or path in EXEMPT_PATHS:
            return await call_next(request)

        if path.startswith(AUTH_PREFIX):
            bucket, limit = "auth", self.config.auth_per_minute
        else:
            bucket, limit = "api", self.config.default_per_minute

        ip = _client_ip(request, self.config.trust_forwarded_for)
        if not self.limiter.allow(bucket, ip, max(1, limit)):
            logger.info("Rate limit exceeded for %s on %s bucket", ip, bucket)
            return error_response(
                request,
                429,
                "Too many requests",
                headers={"Retry-After": str(int(self.config.window_seconds))},
            )
        return await call_next(request)
