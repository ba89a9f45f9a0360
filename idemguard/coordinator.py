"""Single-flight execution of idempotent operations."""

import logging
from collections.abc import Callable, Sequence
from typing import Protocol, TypeVar

from .exceptions import (
    CachedResponseMissingError,
    IdempotencyError,
    PayloadConflictError,
)
from .fields import assign_key_targets
from .key import KeyDeriver
from .record import IdempotencyKey, ResponseWrapper
from .stores import MemoryStore, Store

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorTranslator(Protocol):
    """Decides which error reaches the caller when an operation fails.

    Consulted only after the failed call has been rolled back.
    """

    def should_translate(self, error: Exception) -> bool: ...

    def translated_error(self) -> Exception: ...


class TranslateErrors:
    """ErrorTranslator that maps matching errors to a new one.

    Args:
        types: Exception types to translate
        factory: Builds the error raised instead

    Example:
        TranslateErrors((TimeoutError,), lambda: ServiceBusy("try later"))
    """

    def __init__(
        self,
        types: tuple[type[BaseException], ...],
        factory: Callable[[], Exception],
    ) -> None:
        self.types = types
        self.factory = factory

    def should_translate(self, error: Exception) -> bool:
        return isinstance(error, self.types)

    def translated_error(self) -> Exception:
        return self.factory()


class IdempotentExecutor:
    """Runs an operation at most once per idempotency key.

    Exactly one concurrent caller wins the store's atomic insert and runs
    the operation. Everyone else gets the stored result if their payload
    matches the admitted one, a PayloadConflictError if it differs, or a
    CachedResponseMissingError while no result is stored yet. Losers never
    wait for the winner.

    Args:
        store: Storage backend (defaults to MemoryStore)
        deriver: Key deriver (defaults to an md5 KeyDeriver)
        error_translator: Optional policy applied to operation failures
    """

    def __init__(
        self,
        store: Store | None = None,
        deriver: KeyDeriver | None = None,
        error_translator: ErrorTranslator | None = None,
    ) -> None:
        self.store = store or MemoryStore()
        self.deriver = deriver or KeyDeriver()
        self.error_translator = error_translator

    def execute(
        self,
        scope: str,
        payloads: Sequence[object],
        operation: Callable[[], T],
        explicit_key: object = None,
        ttl: float | None = None,
    ) -> T:
        """Run the operation unless this key was already admitted.

        Args:
            scope: Identity of the logical operation
            payloads: Payload arguments, in argument order
            operation: The side-effecting body, called without arguments
            explicit_key: Caller-supplied key; overrides derivation
            ttl: Entry lifetime in seconds (None/0 = store default)

        Returns:
            The operation's result, or the stored result of the admitted call

        Raises:
            DerivationError: Neither payloads nor an explicit key were given
            PayloadConflictError: The key was admitted with another payload
            CachedResponseMissingError: The key was admitted but has no result yet
            StoreUnavailableError: The store failed to insert or look up
        """
        key = self.deriver.derive(scope, payloads, explicit_key)
        request = self.deriver.request_wrapper(payloads)

        for payload in payloads:
            assign_key_targets(payload, str(key))

        if not self.store.try_insert(key, request, ttl):
            return self._replay(key, request)  # type: ignore[return-value]

        logger.debug("Admitted key %s for %s", key, scope)

        try:
            result = operation()
        except Exception as e:
            self._rollback(key)
            if self.error_translator is not None and self.error_translator.should_translate(e):
                raise self.error_translator.translated_error() from e
            raise

        self._commit(key, result, ttl)
        return result

    def _replay(self, key: IdempotencyKey, request: object) -> object:
        pair = self.store.lookup(key)

        if pair is None:
            # The admitted entry was rolled back or expired after our insert failed
            logger.warning("Key %s vanished before its entry could be read", key)
            raise CachedResponseMissingError(str(key))

        if pair.request != request:
            logger.warning("Payload conflict for key %s", key)
            raise PayloadConflictError(str(key))

        if pair.response is None:
            logger.warning("Duplicate for key %s arrived before a response was stored", key)
            raise CachedResponseMissingError(str(key))

        logger.info("Returning stored response for key %s", key)
        return pair.response.response

    def _commit(self, key: IdempotencyKey, result: object, ttl: float | None) -> None:
        try:
            self.store.attach_response(key, ResponseWrapper(result), ttl)
        except IdempotencyError:
            # TTL expiry eventually frees the key
            logger.warning("Failed to store response for key %s", key, exc_info=True)
        else:
            logger.debug("Committed key %s", key)

    def _rollback(self, key: IdempotencyKey) -> None:
        try:
            self.store.remove(key)
        except IdempotencyError:
            logger.warning("Failed to remove key %s after a failed call", key, exc_info=True)
        else:
            logger.info("Rolled back key %s after a failed call", key)
