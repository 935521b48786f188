"""Rate limiting middleware: in-memory with sliding window.

Protects against:
- Report flooding (tight limit on submitting reports and reporting reviews)
- Review spam (limit on review writes)
- General API abuse

In-memory storage works for a single instance; a shared backend is needed
once the API runs on more than one process.
"""
from __future__ import annotations

import logging
import re
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


@dataclass
class _RateWindow:
    """Sliding window counter for a single client."""
    timestamps: list[float] = field(default_factory=list)

    def count_in_window(self, window_seconds: float) -> int:
        cutoff = time.monotonic() - window_seconds
        self.timestamps = [t for t in self.timestamps if t > cutoff]
        return len(self.timestamps)

    def record(self) -> None:
        self.timestamps.append(time.monotonic())


class RateLimitStore:
    """In-memory rate limit storage with periodic cleanup."""

    def __init__(self):
        self._windows: dict[str, _RateWindow] = defaultdict(_RateWindow)
        self._last_cleanup = time.monotonic()
        self._cleanup_interval = 300  # 5 minutes

    def check_and_record(self, key: str, limit: int, window_seconds: float) -> tuple[bool, int]:
        """Check if request is allowed, record it if so.

        Returns (allowed, current_count).
        """
        self._maybe_cleanup()
        window = self._windows[key]
        count = window.count_in_window(window_seconds)
        if count >= limit:
            return False, count
        window.record()
        return True, count + 1

    def clear(self) -> None:
        self._windows.clear()

    def _maybe_cleanup(self):
        now = time.monotonic()
        if now - self._last_cleanup < self._cleanup_interval:
            return
        self._last_cleanup = now
        stale = [k for k, w in self._windows.items() if not w.timestamps]
        for k in stale:
            del self._windows[k]


_store = RateLimitStore()


def reset_store():
    """Reset rate limit state: used in tests."""
    _store.clear()


# (bucket, method or None for any, path pattern, requests, window_seconds)
_RATE_LIMITS: list[tuple[str, Optional[str], re.Pattern, int, int]] = [
    ("report", "POST", re.compile(r"^/api/v1/reports/?$"), 10, 3600),
    ("report", "POST", re.compile(r"^/api/v1/reviews/[^/]+/report/?$"), 10, 3600),
    ("review-write", "POST", re.compile(r"^/api/v1/reviews/?$"), 20, 3600),
    ("api", None, re.compile(r"^/api/"), 120, 60),
]

_EXEMPT = {"/health", "/ready", "/", "/docs", "/openapi.json"}


def _get_client_ip(request: Request) -> str:
    """Extract client IP, respecting X-Forwarded-For behind proxy."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _find_limit(method: str, path: str) -> Optional[tuple[str, int, int]]:
    """Return (bucket, limit, window) for the first rule matching the request."""
    if path in _EXEMPT:
        return None
    for bucket, rule_method, pattern, limit, window in _RATE_LIMITS:
        if rule_method and rule_method != method:
            continue
        if pattern.match(path):
            return bucket, limit, window
    return "api", 120, 60


class RateLimitMiddleware(BaseHTTPMiddleware):
    """IP-based rate limiting."""

    async def dispatch(self, request: Request, call_next):
        rate = _find_limit(request.method, request.url.path)
        if rate is None:
            return await call_next(request)

        bucket, limit, window = rate
        client_ip = _get_client_ip(request)
        allowed, count = _store.check_and_record(f"{client_ip}:{bucket}", limit, window)

        if not allowed:
            logger.warning("Rate limited: %s on %s (%d/%d in %ds)", client_ip, request.url.path, count, limit, window)
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "error": "rate_limited",
                    "message": "Too many requests. Please try again later.",
                    "retry_after": window,
                },
                headers={"Retry-After": str(window)},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(max(0, limit - count))
        return response
