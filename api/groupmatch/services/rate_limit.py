import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Callable

from fastapi import Depends, Request

from ..errors import RateLimitedError


@dataclass
class RateDecision:
    allowed: bool
    retry_after_seconds: int


class InMemoryRateLimiter:
    """Sliding-window request counter, per process.

    Only a burst guard in front of the engine. Daily quota and cooldown live in
    the database and are enforced there.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._events: dict[str, deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()
        self._clock = clock

    def check(self, key: str, limit: int, window_seconds: int) -> RateDecision:
        now = self._clock()
        cutoff = now - window_seconds
        with self._lock:
            hits = self._events[key]
            while hits and hits[0] <= cutoff:
                hits.popleft()
            if len(hits) >= limit:
                retry_after = max(1, int(hits[0] + window_seconds - now))
                return RateDecision(allowed=False, retry_after_seconds=retry_after)
            hits.append(now)
            return RateDecision(allowed=True, retry_after_seconds=0)

    def reset(self) -> None:
        with self._lock:
            self._events.clear()


limiter = InMemoryRateLimiter()


def _client_identifier(request: Request) -> str:
    # Throttle per actor; fall back to the network peer for anonymous calls.
    actor = request.headers.get("x-actor-user-id", "").strip().lower()
    if actor:
        return f"user:{actor}"
    xff = request.headers.get("x-forwarded-for", "").strip()
    if xff:
        return f"ip:{xff.split(',')[0].strip()}"
    if request.client and request.client.host:
        return f"ip:{request.client.host}"
    return "unknown"


def rate_limit_dependency(route_key: str, limit: int, window_seconds: int):
    def _dep(request: Request) -> None:
        key = f"{route_key}:{_client_identifier(request)}"
        decision = limiter.check(key, limit=limit, window_seconds=window_seconds)
        if not decision.allowed:
            raise RateLimitedError(retry_after_seconds=decision.retry_after_seconds)

    return Depends(_dep)
