"""In-memory store implementation."""

import logging
import threading
import time

from ..record import IdempotencyKey, RequestResponsePair, RequestWrapper, ResponseWrapper
from .base import Store

logger = logging.getLogger(__name__)


class MemoryStore(Store):
    """Thread-safe in-memory store for idempotency records.

    Note: This store does NOT persist across processes or restarts.
    Use FileStore, RedisStore or SQLStore for multi-process scenarios.

    Args:
        default_ttl: Seconds an entry lives when a call gives no TTL
        sweep_interval: Minimum seconds between purges of expired entries,
            run from try_insert
    """

    def __init__(self, default_ttl: float | None = None, sweep_interval: float = 60.0) -> None:
        super().__init__(default_ttl)
        if sweep_interval < 0:
            raise ValueError(f"sweep_interval must be non-negative, got {sweep_interval}")
        self.sweep_interval = sweep_interval
        self._records: dict[IdempotencyKey, tuple[RequestResponsePair, float | None]] = {}
        self._global_lock = threading.Lock()
        self._next_sweep = time.time() + sweep_interval

    def _live(self, key: IdempotencyKey) -> RequestResponsePair | None:
        """Return the unexpired pair for a key. Caller holds the lock."""
        entry = self._records.get(key)
        if entry is None:
            return None

        pair, expires_at = entry

        # Check if expired
        if expires_at is not None and time.time() >= expires_at:
            del self._records[key]
            return None

        return pair

    def _sweep(self) -> None:
        """Drop every expired entry. Caller holds the lock."""
        now = time.time()
        if now < self._next_sweep:
            return
        self._next_sweep = now + self.sweep_interval

        expired = [
            key for key, (_, expires_at) in self._records.items()
            if expires_at is not None and now >= expires_at
        ]
        for key in expired:
            del self._records[key]
        if expired:
            logger.debug("Swept %d expired entries", len(expired))

    def try_insert(
        self, key: IdempotencyKey, request: RequestWrapper, ttl: float | None = None
    ) -> bool:
        """Insert a pair unless a live one exists."""
        expires_at = self.expires_at(ttl)
        with self._global_lock:
            self._sweep()
            if self._live(key) is not None:
                return False
            self._records[key] = (RequestResponsePair(request=request), expires_at)
            return True

    def lookup(self, key: IdempotencyKey) -> RequestResponsePair | None:
        """Retrieve a pair, checking TTL expiration."""
        with self._global_lock:
            pair = self._live(key)
            if pair is None:
                return None
            # Copy so callers cannot mutate the stored entry
            return RequestResponsePair(request=pair.request, response=pair.response)

    def attach_response(
        self, key: IdempotencyKey, response: ResponseWrapper, ttl: float | None = None
    ) -> bool:
        """Attach a response and refresh the entry's expiry."""
        expires_at = self.expires_at(ttl)
        with self._global_lock:
            pair = self._live(key)
            if pair is None:
                logger.warning("Cannot attach response, key no longer exists: %s", key)
                return False
            pair.response = response
            self._records[key] = (pair, expires_at)
            return True

    def remove(self, key: IdempotencyKey) -> None:
        with self._global_lock:
            self._records.pop(key, None)

    def clear(self) -> None:
        """Clear all records (useful for testing)."""
        with self._global_lock:
            self._records.clear()
