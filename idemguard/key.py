"""Key derivation for idempotent operations."""

import enum
import hashlib
import inspect
import json
import re
from collections.abc import Mapping, Sequence

from .classifier import FieldClassifier
from .exceptions import DerivationError, SerializationError
from .fields import field_specs, key_field_value
from .record import IdempotencyKey, RequestWrapper

DEFAULT_ALGORITHM = "md5"


class KeyDeriver:
    """Resolve the idempotency key for a call.

    Precedence, first available wins:
        1. An explicit key supplied by the caller, used verbatim
        2. The first payload (in argument order) with a key field set
        3. A digest over the scope and the classified payload fields

    Args:
        algorithm: hashlib algorithm name for derived keys
        classifier: Field classifier (defaults to ignore/alias/pass-through)
        cache_prefix: Namespace prepended to every scope
    """

    def __init__(
        self,
        algorithm: str = DEFAULT_ALGORITHM,
        classifier: FieldClassifier | None = None,
        cache_prefix: str = "",
    ) -> None:
        if algorithm not in hashlib.algorithms_available:
            raise ValueError(f"Unsupported digest algorithm: '{algorithm}'")
        self.algorithm = algorithm
        self.classifier = classifier or FieldClassifier()
        self.cache_prefix = cache_prefix

    def derive(
        self,
        scope: str,
        payloads: Sequence[object],
        explicit_key: object = None,
    ) -> IdempotencyKey:
        """Return the idempotency key for the given scope and payloads.

        Raises:
            DerivationError: If there is neither a payload nor an explicit key
        """
        if explicit_key is not None:
            return IdempotencyKey(str(explicit_key))

        if not payloads:
            raise DerivationError(scope)

        for payload in payloads:
            value = key_field_value(payload)
            if value is not None:
                return IdempotencyKey(str(value))

        canonical = self.canonical_string(scope, payloads)
        digest = hashlib.new(self.algorithm, canonical.encode("utf-8"))
        return IdempotencyKey(digest.hexdigest())

    def canonical_string(self, scope: str, payloads: Sequence[object]) -> str:
        """Unambiguous string over the scope and each payload's contributions."""
        return json.dumps(
            [self.full_scope(scope), self.representation(payloads)],
            separators=(",", ":"),
        )

    def full_scope(self, scope: str) -> str:
        if not self.cache_prefix:
            return scope
        return f"{self.cache_prefix}:{scope}"

    def representation(self, payloads: Sequence[object]) -> list[list[list[str]]]:
        """Classification-filtered form of the payloads.

        This is what a store keeps as the request half of a pair, so it
        only holds JSON-compatible values.
        """
        return [
            [
                [name, canonical_value(value, self.classifier)]
                for name, value in self._contributions(payload)
            ]
            for payload in payloads
        ]

    def _contributions(self, payload: object) -> list[tuple[str, object]]:
        if isinstance(payload, Mapping):
            # Mapping keys of any type, named by their canonical form
            named = [(canonical_value(k, self.classifier), v) for k, v in payload.items()]
            return sorted(named, key=lambda item: item[0])
        return self.classifier.contributions(payload)

    def request_wrapper(self, payloads: Sequence[object]) -> RequestWrapper:
        return RequestWrapper(self.representation(payloads))


def canonical_value(value: object, classifier: FieldClassifier | None = None) -> str:
    """Serialize a value to a stable string representation.

    Args:
        value: Value to serialize
        classifier: Used for nested dataclass or registered payloads

    Returns:
        Stable string representation

    Raises:
        SerializationError: If the only available form depends on object identity
    """
    # Handle common types directly
    if isinstance(value, (str, int, float, bool, type(None))):
        return json.dumps(value)

    if isinstance(value, (list, tuple)):
        return json.dumps([canonical_value(v, classifier) for v in value])

    if isinstance(value, Mapping):
        # Keys are canonicalized too, so 1 and "1" stay distinct
        return json.dumps(
            {
                canonical_value(k, classifier): canonical_value(v, classifier)
                for k, v in value.items()
            },
            sort_keys=True,
        )

    if isinstance(value, enum.Enum):
        return json.dumps([type(value).__qualname__, canonical_value(value.value, classifier)])

    # Sets have no order of their own
    if isinstance(value, (set, frozenset)):
        return json.dumps(sorted(canonical_value(v, classifier) for v in value))

    if isinstance(value, type):
        return json.dumps(f"{value.__module__}.{value.__qualname__}")

    if field_specs(type(value)) is not None:
        classifier = classifier or FieldClassifier()
        return json.dumps(
            [[name, canonical_value(v, classifier)] for name, v in classifier.contributions(value)]
        )

    attributes = _attributes(value)
    if attributes is not None:
        return json.dumps(
            {k: canonical_value(v, classifier) for k, v in attributes.items()},
            sort_keys=True,
        )

    # Fallback: repr (decimals, datetimes and the like have stable reprs)
    text = repr(value)
    if _ADDRESS.search(text):
        raise SerializationError(
            value, f"repr of {type(value).__qualname__} depends on object identity"
        )
    return text


_ADDRESS = re.compile(r"\bat 0x[0-9a-fA-F]+")


def _attributes(value: object) -> dict[str, object] | None:
    """Instance attributes from __dict__ and __slots__, or None if it has neither."""
    found = False
    attributes: dict[str, object] = {}

    for klass in reversed(type(value).__mro__):
        slots = klass.__dict__.get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for slot in slots:
            if slot in ("__dict__", "__weakref__"):
                continue
            found = True
            attr = slot
            if slot.startswith("__") and not slot.endswith("__"):
                attr = f"_{klass.__name__.lstrip('_')}{slot}"
            # Unset slots are skipped, like attributes never assigned
            if hasattr(value, attr):
                attributes[slot] = getattr(value, attr)

    if hasattr(value, "__dict__") and not inspect.isroutine(value):
        found = True
        attributes.update(vars(value))

    return attributes if found else None
