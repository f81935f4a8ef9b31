"""Per-user sliding-window limits for the write and signalling routes."""

import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Any

from fastapi import Depends, HTTPException

from ..auth.deps import get_current_user


@dataclass
class RateDecision:
    allowed: bool
    remaining: int
    retry_after_seconds: int


class SlidingWindowLimiter:
    def __init__(self) -> None:
        self._hits: dict[str, deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()

    def hit(self, key: str, limit: int, window_seconds: int) -> RateDecision:
        now = time.monotonic()
        with self._lock:
            hits = self._hits[key]
            while hits and hits[0] <= now - window_seconds:
                hits.popleft()
            if len(hits) >= limit:
                retry_after = max(1, int(hits[0] + window_seconds - now))
                return RateDecision(allowed=False, remaining=0, retry_after_seconds=retry_after)
            hits.append(now)
            return RateDecision(allowed=True, remaining=limit - len(hits), retry_after_seconds=0)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


limiter = SlidingWindowLimiter()


def rate_limit_dependency(route_key: str, limit: int, window_seconds: int):
    def _dep(current_user: dict[str, Any] = Depends(get_current_user)) -> None:
        decision = limiter.hit(f"{route_key}:{current_user['id']}", limit=limit, window_seconds=window_seconds)
        if not decision.allowed:
            raise HTTPException(
                status_code=429,
                detail=f"Too many requests. Retry in {decision.retry_after_seconds}s",
                headers={
                    "Retry-After": str(decision.retry_after_seconds),
                    "X-RateLimit-Limit": str(limit),
                    "X-RateLimit-Remaining": "0",
                },
            )

    return Depends(_dep)
