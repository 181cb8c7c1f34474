"""Replay protection for inbound EventSub notifications."""

from __future__ import annotations

import time
from collections.abc import Callable
from enum import Enum
from threading import Lock
from typing import Final

REPLAY_WINDOW_SECONDS: Final[int] = 600  # 10 minutes
MAX_CACHE_SIZE: Final[int] = 2000


class ReplayStatus(str, Enum):
    """Outcome of registering a message id."""

    FIRST_SEEN = "first_seen"
    DUPLICATE = "duplicate"


class ReplayCache:
    """Bounded ``message_id -> first_seen`` cache shared by all requests.

    Entries older than the window are pruned on every call. When the cache is
    still over capacity, the oldest arrivals are evicted first.
    """

    def __init__(
        self,
        window_seconds: float = REPLAY_WINDOW_SECONDS,
        max_size: int = MAX_CACHE_SIZE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.window_seconds = window_seconds
        self.max_size = max_size
        self._clock = clock
        self._seen: dict[str, float] = {}
        self._lock = Lock()

    def register(self, message_id: str, now: float | None = None) -> ReplayStatus:
        """Record ``message_id`` unless it was already seen inside the window."""
        timestamp = self._clock() if now is None else now
        with self._lock:
            self._prune_expired(timestamp)
            if message_id in self._seen:
                return ReplayStatus.DUPLICATE
            self._seen[message_id] = timestamp
            self._enforce_capacity()
            return ReplayStatus.FIRST_SEEN

    def _prune_expired(self, now: float) -> None:
        expired = [
            message_id
            for message_id, seen_at in self._seen.items()
            if now - seen_at > self.window_seconds
        ]
        for message_id in expired:
            del self._seen[message_id]

    def _enforce_capacity(self) -> None:
        overflow = len(self._seen) - self.max_size
        if overflow <= 0:
            return
        # sorted() is stable, so equal timestamps keep insertion order.
        oldest = sorted(self._seen.items(), key=lambda item: item[1])[:overflow]
        for message_id, _ in oldest:
            del self._seen[message_id]

    def __contains__(self, message_id: object) -> bool:
        with self._lock:
            return message_id in self._seen

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)

    def clear(self) -> None:
        with self._lock:
            self._seen.clear()
