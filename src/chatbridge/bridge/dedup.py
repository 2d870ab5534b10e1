"""Deduplication of retried inbound events."""

import logging
import threading
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


class DedupGuard:
    """Short-lived set of processed event ids.

    An id is marked before its event is processed and expires after a
    fixed TTL regardless of the processing outcome. One guard is created
    per event source at startup and shared by reference; nothing is
    persisted.
    """

    def __init__(
        self,
        ttl_seconds: float = 600.0,
        clock: Callable[[], float] = time.monotonic,
        name: str = "events",
    ):
        """Initialize the guard.

        Args:
            ttl_seconds: How long an id stays marked
            clock: Monotonic time source, injectable for tests
            name: Label used in log messages
        """
        self._ttl = ttl_seconds
        self._clock = clock
        self._name = name
        self._seen: dict[str, float] = {}
        self._lock = threading.Lock()

    def check_and_mark(self, event_id: str) -> bool:
        """Mark an event id as processed.

        Returns:
            True if the event should be processed, False if it is a
            duplicate seen within the TTL. Empty ids are always processed.
        """
        if not event_id:
            return True

        with self._lock:
            now = self._clock()
            self._purge(now)
            if event_id in self._seen:
                logger.debug(f"Duplicate {self._name} id suppressed: {event_id}")
                return False
            self._seen[event_id] = now + self._ttl
            return True

    def __contains__(self, event_id: str) -> bool:
        with self._lock:
            expires_at = self._seen.get(event_id)
            return expires_at is not None and expires_at > self._clock()

    def __len__(self) -> int:
        with self._lock:
            self._purge(self._clock())
            return len(self._seen)

    def clear(self) -> None:
        with self._lock:
            self._seen.clear()

    def _purge(self, now: float) -> None:
        expired = [key for key, expires_at in self._seen.items() if expires_at <= now]
        for key in expired:
            del self._seen[key]
