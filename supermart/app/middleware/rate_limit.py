"""In-memory rate limiter for the login endpoint.

State lives in the process, so each replica counts on its own.
"""

from __future__ import annotations

import time
from collections import defaultdict

from fastapi import HTTPException, status


class InMemoryRateLimiter:
    """Sliding-window rate limiter keyed by an arbitrary string (usually the client IP)."""

    def __init__(self, window_seconds: int = 60, max_attempts: int = 5) -> None:
        self._window = window_seconds
        self._max = max_attempts
        self._attempts: dict[str, list[float]] = defaultdict(list)

    def check(self, key: str) -> None:
        """Raise HTTP 429 once *key* has used up its attempts for the window."""
        now = time.time()
        recent = [t for t in self._attempts[key] if now - t < self._window]
        if len(recent) >= self._max:
            self._attempts[key] = recent
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=f"Too many attempts. Try again in {self._window} seconds.",
            )
        recent.append(now)
        self._attempts[key] = recent

    def reset(self) -> None:
        self._attempts.clear()
