"""Base store interface for idempotency records."""

import time
from abc import ABC, abstractmethod

from ..record import IdempotencyKey, RequestResponsePair, RequestWrapper, ResponseWrapper


class Store(ABC):
    """Abstract base class for idempotency stores.

    Stores are responsible for:
    - Atomic insert-if-absent of request/response pairs
    - Attaching the response once execution succeeds
    - Managing TTL/expiration (expired entries behave as absent)

    Args:
        default_ttl: Seconds an entry lives when a call gives no TTL
            (None = no expiration)
    """

    def __init__(self, default_ttl: float | None = None) -> None:
        if default_ttl is not None and default_ttl <= 0:
            raise ValueError(f"default_ttl must be positive, got {default_ttl}")
        self.default_ttl = default_ttl

    def resolve_ttl(self, ttl: float | None) -> float | None:
        """Return the effective TTL; None or 0 means the store default."""
        if not ttl:
            return self.default_ttl
        if ttl < 0:
            raise ValueError(f"ttl must not be negative, got {ttl}")
        return ttl

    def expires_at(self, ttl: float | None) -> float | None:
        effective = self.resolve_ttl(ttl)
        if effective is None:
            return None
        return time.time() + effective

    @abstractmethod
    def try_insert(
        self, key: IdempotencyKey, request: RequestWrapper, ttl: float | None = None
    ) -> bool:
        """Insert a new pair unless an unexpired one exists for the key.

        Must be atomic with respect to concurrent callers using the same key.

        Args:
            key: The idempotency key
            request: The request half of the new pair
            ttl: Time-to-live in seconds (None/0 = store default)

        Returns:
            True if inserted, False if an unexpired pair already exists
        """

    @abstractmethod
    def lookup(self, key: IdempotencyKey) -> RequestResponsePair | None:
        """Retrieve the pair stored under a key.

        Returns:
            The pair if present and unexpired, None otherwise
        """

    @abstractmethod
    def attach_response(
        self, key: IdempotencyKey, response: ResponseWrapper, ttl: float | None = None
    ) -> bool:
        """Attach a response to an existing pair.

        Does nothing if the key is absent or expired.

        Returns:
            True if the response was attached
        """

    @abstractmethod
    def remove(self, key: IdempotencyKey) -> None:
        """Delete the pair for a key. Removing an absent key is not an error."""

    def exists(self, key: IdempotencyKey) -> bool:
        """Check whether an unexpired pair exists for a key."""
        return self.lookup(key) is not None

    @abstractmethod
    def clear(self) -> None:
        """Remove every entry (useful for testing)."""
