"""Idempotency Guard - at-most-once execution per idempotency key.

A call is admitted once per key. Repeating it with the same payload
returns the stored result; reusing the key with a different payload is
rejected as a conflict.

Example:
    @idempotent(ttl=300, key_arg="idempotency_key")
    def create_invoice(order, idempotency_key=None):
        charge_card(order.user_id, order.amount)
        return {"invoice_id": 123}
"""

from .classifier import ClassifiedField, Decision, FieldClassifier
from .coordinator import ErrorTranslator, IdempotentExecutor, TranslateErrors
from .decorator import idempotent
from .exceptions import (
    CachedResponseMissingError,
    DerivationError,
    IdempotencyError,
    PayloadConflictError,
    SerializationError,
    StoreUnavailableError,
)
from .fields import FieldSpec, payload_field, register_payload
from .key import KeyDeriver
from .record import IdempotencyKey, RequestResponsePair, RequestWrapper, ResponseWrapper
from .stores import MemoryStore, Store

__version__ = "0.2.0"

__all__ = [
    "idempotent",
    "IdempotentExecutor",
    "ErrorTranslator",
    "TranslateErrors",
    "KeyDeriver",
    "FieldClassifier",
    "ClassifiedField",
    "Decision",
    "FieldSpec",
    "payload_field",
    "register_payload",
    "IdempotencyKey",
    "RequestWrapper",
    "ResponseWrapper",
    "RequestResponsePair",
    "IdempotencyError",
    "DerivationError",
    "PayloadConflictError",
    "CachedResponseMissingError",
    "StoreUnavailableError",
    "SerializationError",
    "Store",
    "MemoryStore",
]
