"""File-based store implementation with cross-process locking."""

import fcntl
import hashlib
import json
import logging
import os
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from ..exceptions import SerializationError, StoreUnavailableError
from ..record import IdempotencyKey, RequestResponsePair, RequestWrapper, ResponseWrapper
from ..utils import ensure_float
from .base import Store

logger = logging.getLogger(__name__)


class FileStore(Store):
    """File-based store for idempotency records.

    Uses JSON files for persistence and fcntl for cross-process locking.
    Safe for multi-process scenarios (e.g., gunicorn workers, celery).

    Args:
        directory: Path to directory for storing records
        default_ttl: Seconds an entry lives when a call gives no TTL
    """

    def __init__(self, directory: str | Path, default_ttl: float | None = None) -> None:
        super().__init__(default_ttl)
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _safe_name(self, key: IdempotencyKey) -> str:
        """File name stem for a key: one per key, fixed length, any characters."""
        return hashlib.sha256(str(key).encode("utf-8")).hexdigest()

    def _record_path(self, key: IdempotencyKey) -> Path:
        """Get file path for a record."""
        return self.directory / f"{self._safe_name(key)}.json"

    def _lock_path(self, key: IdempotencyKey) -> Path:
        """Get lock file path for a key."""
        return self.directory / f"{self._safe_name(key)}.lock"

    @contextmanager
    def _locked(self, key: IdempotencyKey, operation: str) -> Iterator[None]:
        """Hold an exclusive cross-process lock on the key's lock file."""
        try:
            fd = os.open(self._lock_path(key), os.O_CREAT | os.O_RDWR)
        except OSError as e:
            raise StoreUnavailableError(operation, str(key), str(e)) from e

        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
            yield
        finally:
            try:
                fcntl.flock(fd, fcntl.LOCK_UN)
            finally:
                os.close(fd)

    def _read(self, key: IdempotencyKey) -> tuple[RequestResponsePair, float | None] | None:
        """Read a live record. Caller holds the key lock."""
        record_path = self._record_path(key)

        try:
            with open(record_path) as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except json.JSONDecodeError:
            logger.warning("Discarding unreadable record file: %s", record_path)
            return None
        except OSError as e:
            raise StoreUnavailableError("read", str(key), str(e)) from e

        expires_at = ensure_float(value=data.pop("expires_at", None), default=None)
        if expires_at is not None and time.time() >= expires_at:
            # Expired, clean up
            record_path.unlink(missing_ok=True)
            return None

        try:
            return RequestResponsePair.from_dict(data), expires_at
        except ValueError:
            logger.warning("Discarding malformed record file: %s", record_path)
            return None

    def _write(
        self, key: IdempotencyKey, pair: RequestResponsePair, expires_at: float | None
    ) -> None:
        """Write a record atomically. Caller holds the key lock."""
        record_path = self._record_path(key)

        try:
            body = json.dumps({**pair.to_dict(), "expires_at": expires_at}, indent=2)
        except (TypeError, ValueError) as e:
            raise SerializationError(pair.response, str(e)) from e

        temp_path = record_path.with_suffix(".tmp")
        try:
            with open(temp_path, "w") as f:
                f.write(body)
            # Atomic rename
            temp_path.replace(record_path)
        except OSError as e:
            raise StoreUnavailableError("write", str(key), str(e)) from e

    def try_insert(
        self, key: IdempotencyKey, request: RequestWrapper, ttl: float | None = None
    ) -> bool:
        expires_at = self.expires_at(ttl)
        with self._locked(key, "try_insert"):
            if self._read(key) is not None:
                return False
            self._write(key, RequestResponsePair(request=request), expires_at)
            return True

    def lookup(self, key: IdempotencyKey) -> RequestResponsePair | None:
        """Retrieve a record, checking TTL expiration."""
        with self._locked(key, "lookup"):
            entry = self._read(key)
        return None if entry is None else entry[0]

    def attach_response(
        self, key: IdempotencyKey, response: ResponseWrapper, ttl: float | None = None
    ) -> bool:
        expires_at = self.expires_at(ttl)
        with self._locked(key, "attach_response"):
            entry = self._read(key)
            if entry is None:
                logger.warning("Cannot attach response, key no longer exists: %s", key)
                return False
            pair, _ = entry
            pair.response = response
            self._write(key, pair, expires_at)
            return True

    def remove(self, key: IdempotencyKey) -> None:
        """Delete a record.

        The lock file is kept: unlinking it could let two processes lock
        different inodes for the same key.
        """
        with self._locked(key, "remove"):
            try:
                self._record_path(key).unlink(missing_ok=True)
            except OSError as e:
                raise StoreUnavailableError("remove", str(key), str(e)) from e

    def clear(self) -> None:
        """Clear all records and locks (useful for testing)."""
        for path in self.directory.glob("*.json"):
            path.unlink(missing_ok=True)
        for path in self.directory.glob("*.lock"):
            path.unlink(missing_ok=True)
