"""Redis-based store implementation with atomic operations."""

import json
import logging
from typing import TYPE_CHECKING

from redis.exceptions import RedisError

from ..exceptions import StoreUnavailableError
from ..record import IdempotencyKey, RequestResponsePair, RequestWrapper, ResponseWrapper
from .base import Store

if TYPE_CHECKING:
    from redis import Redis

logger = logging.getLogger(__name__)


class RedisStore(Store):
    """Redis-based store for idempotency records.

    Insertion uses SET NX, so exactly one caller wins a key even across
    servers. Expiry is delegated to Redis.

    Args:
        client: Redis client instance
        prefix: Key prefix for namespacing (default: "idempotency:")
        default_ttl: Seconds an entry lives when a call gives no TTL
    """

    def __init__(
        self,
        client: "Redis",
        prefix: str = "idempotency:",
        default_ttl: float | None = None,
    ) -> None:
        super().__init__(default_ttl)
        self.client = client
        self.prefix = prefix

    def _key(self, key: IdempotencyKey) -> str:
        """Add prefix to key."""
        return f"{self.prefix}{key}"

    def _px(self, ttl: float | None) -> int | None:
        """Effective TTL in milliseconds, as Redis expects it."""
        effective = self.resolve_ttl(ttl)
        if effective is None:
            return None
        return max(1, int(effective * 1000))

    def try_insert(
        self, key: IdempotencyKey, request: RequestWrapper, ttl: float | None = None
    ) -> bool:
        """Insert atomically using Redis SET with NX and PX."""
        data = RequestResponsePair(request=request).to_json()
        try:
            return bool(self.client.set(self._key(key), data, nx=True, px=self._px(ttl)))
        except RedisError as e:
            raise StoreUnavailableError("try_insert", str(key), str(e)) from e

    def lookup(self, key: IdempotencyKey) -> RequestResponsePair | None:
        """Retrieve a pair from Redis."""
        try:
            data = self.client.get(self._key(key))
        except RedisError as e:
            raise StoreUnavailableError("lookup", str(key), str(e)) from e

        if data is None:
            return None

        try:
            return RequestResponsePair.from_json(data)
        except (json.JSONDecodeError, ValueError):
            logger.warning("Discarding malformed record for key: %s", key)
            return None

    def attach_response(
        self, key: IdempotencyKey, response: ResponseWrapper, ttl: float | None = None
    ) -> bool:
        """Attach a response; SET XX keeps an expired key from coming back."""
        pair = self.lookup(key)
        if pair is None:
            logger.warning("Cannot attach response, key no longer exists: %s", key)
            return False

        pair.response = response
        data = pair.to_json()
        try:
            updated = self.client.set(self._key(key), data, xx=True, px=self._px(ttl))
        except RedisError as e:
            raise StoreUnavailableError("attach_response", str(key), str(e)) from e

        if not updated:
            logger.warning("Cannot attach response, key expired meanwhile: %s", key)
        return bool(updated)

    def remove(self, key: IdempotencyKey) -> None:
        """Delete a pair from Redis."""
        try:
            self.client.delete(self._key(key))
        except RedisError as e:
            raise StoreUnavailableError("remove", str(key), str(e)) from e

    def clear(self) -> None:
        """Clear all records with this prefix (useful for testing)."""
        pattern = f"{self.prefix}*"
        cursor = 0

        while True:
            cursor, keys = self.client.scan(cursor, match=pattern, count=100)
            if keys:
                self.client.delete(*keys)
            if cursor == 0:
                break
