"""Exceptions for idempotent execution."""


class IdempotencyError(Exception):
    """Base exception for idempotency-related errors."""


class DerivationError(IdempotencyError):
    """Raise when no payload and no explicit key are available for a call."""

    def __init__(self, scope: str) -> None:
        self.scope = scope
        super().__init__(
            f"Cannot derive an idempotency key for '{scope}': "
            "no payload and no explicit key were given"
        )


class PayloadConflictError(IdempotencyError):
    """Raise when a key is reused with a payload that differs from the stored one."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(
            f"Request payload conflicts with the stored payload for key: {key}"
        )


class CachedResponseMissingError(IdempotencyError):
    """Raise when a duplicate arrives but no response has been stored yet.

    The original call is still in flight, or it died without cleaning up
    and the entry is waiting for its TTL to run out.
    """

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"No stored response yet for key: {key}")


class StoreUnavailableError(IdempotencyError):
    """Raise when the backing store fails to serve an operation."""

    def __init__(self, operation: str, key: str, reason: str) -> None:
        self.operation = operation
        self.key = key
        self.reason = reason
        super().__init__(f"Store failed during {operation} for key '{key}': {reason}")


class SerializationError(IdempotencyError):
    """Raise when a value cannot be serialized for a persistent store."""

    def __init__(self, value: object, reason: str) -> None:
        self.value = value
        self.reason = reason
        super().__init__(f"Cannot serialize value: {reason}")
