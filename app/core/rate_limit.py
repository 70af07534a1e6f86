"""Per-client request rate limiting and query bound clamping."""

import logging
import math
import re
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable

from fastapi import HTTPException, Request, Response

from app.core.config import Settings

logger = logging.getLogger(__name__)

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


@dataclass(frozen=True)
class RateLimitRule:
    """Ceiling for one route class."""
    max_requests: int
    message: str


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_after: int  # seconds until the oldest counted hit leaves the window


def build_rules(settings: Settings) -> dict[str, RateLimitRule]:
    """Route classes and their ceilings from settings."""
    minutes = settings.rate_limit_window_seconds // 60
    after = f"please try again after {minutes} minutes"
    return {
        "auth": RateLimitRule(
            settings.rate_limit_auth,
            f"Too many authentication attempts from this IP, {after}",
        ),
        "oauth_callback": RateLimitRule(
            settings.rate_limit_oauth_callback,
            f"Too many authorization callbacks from this IP, {after}",
        ),
        "auth_api": RateLimitRule(
            settings.rate_limit_auth_api,
            f"Too many requests from this IP, {after}",
        ),
        "read": RateLimitRule(
            settings.rate_limit_read,
            f"Too many requests from this IP, {after}",
        ),
        "write": RateLimitRule(
            settings.rate_limit_write,
            f"Too many write requests from this IP, {after}",
        ),
        "sync": RateLimitRule(
            settings.rate_limit_sync,
            f"Too many sync operations from this IP, {after}",
        ),
    }


class SlidingWindowRateLimiter:
    """
    Counts accepted hits per (route class, client) over a sliding window.

    Rejected hits are not counted. Nothing is queued: a hit is either
    accepted now or rejected now.
    """

    def __init__(
        self,
        rules: dict[str, RateLimitRule],
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.rules = rules
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[tuple[str, str], deque[float]] = {}
        self._last_sweep = clock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "SlidingWindowRateLimiter":
        return cls(build_rules(settings), settings.rate_limit_window_seconds)

    @property
    def tracked_keys(self) -> int:
        """Number of (route class, client) pairs currently tracked."""
        return len(self._hits)

    def hit(self, route_class: str, client: str) -> RateLimitResult:
        rule = self.rules[route_class]
        now = self._clock()
        if now - self._last_sweep >= self.window_seconds:
            self._sweep(now)

        hits = self._hits.setdefault((route_class, client), deque())
        self._prune(hits, now)

        if len(hits) >= rule.max_requests:
            reset_after = math.ceil(hits[0] + self.window_seconds - now)
            return RateLimitResult(False, rule.max_requests, 0, max(reset_after, 1))

        hits.append(now)
        reset_after = math.ceil(hits[0] + self.window_seconds - now)
        return RateLimitResult(True, rule.max_requests, rule.max_requests - len(hits), reset_after)

    def _prune(self, hits: deque, now: float) -> None:
        while hits and hits[0] <= now - self.window_seconds:
            hits.popleft()

    def _sweep(self, now: float) -> None:
        """Forget clients with no hits left in the window."""
        for key, hits in list(self._hits.items()):
            self._prune(hits, now)
            if not hits:
                del self._hits[key]
        self._last_sweep = now

    def reset(self) -> None:
        self._hits.clear()


class RateLimit:
    """FastAPI dependency enforcing one route class's ceiling."""

    def __init__(self, route_class: str):
        self.route_class = route_class

    async def __call__(self, request: Request, response: Response) -> None:
        limiter: SlidingWindowRateLimiter = request.app.state.rate_limiter
        client = request.client.host if request.client else "unknown"
        result = limiter.hit(self.route_class, client)

        headers = {
            "RateLimit-Limit": str(result.limit),
            "RateLimit-Remaining": str(result.remaining),
            "RateLimit-Reset": str(result.reset_after),
        }
        if not result.allowed:
            logger.warning(f"Rate limit '{self.route_class}' exceeded for {client}")
            raise HTTPException(
                status_code=429,
                detail=limiter.rules[self.route_class].message,
                headers={**headers, "Retry-After": str(result.reset_after)},
            )
        response.headers.update(headers)


def clamp_query_limit(raw: str | None, default: int = 100, maximum: int = 1000) -> int:
    """
    Bound a client-supplied list size.

    Missing, non-numeric or non-positive input gives `default`; a leading
    integer is honoured ("20abc" -> 20); anything above `maximum` is cut to it.
    """
    if not raw:
        return default

    match = _LEADING_INT.match(raw)
    if match is None:
        return default

    parsed = int(match.group(1))
    if parsed < 1:
        return default

    return min(parsed, maximum)
