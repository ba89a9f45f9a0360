"""Declarative field metadata for payload types.

A payload type is described once by a table of FieldSpec entries. Dataclass
payloads declare their metadata inline with payload_field(); other classes
are described with register_payload(). The table is built on first use
and cached per type.

Example:
    @dataclass
    class CreateOrder:
        customer_id: str
        amount: int
        trace_id: str = payload_field(default="", ignore=True)
        event_id: int = payload_field(default=0, alias="transactionId")
"""

import dataclasses
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

METADATA_KEY = "idemguard"

# Name used for payloads that are not structured (scalars, lists, ...)
VALUE_FIELD = "value"


@dataclass(frozen=True)
class FieldSpec:
    """Metadata for one payload field.

    Attributes:
        name: Attribute name on the payload
        ignore: Field never contributes to the fingerprint
        alias: Name the field contributes under instead of its own
        key: Field value is used verbatim as the idempotency key
        key_target: Field receives the resolved idempotency key
    """

    name: str
    ignore: bool = False
    alias: str | None = None
    key: bool = False
    key_target: bool = False

    def __post_init__(self) -> None:
        if self.alias == "":
            raise ValueError(f"alias for field '{self.name}' must not be empty")


def payload_field(
    *,
    ignore: bool = False,
    alias: str | None = None,
    key: bool = False,
    key_target: bool = False,
    **kwargs: object,
) -> object:
    """dataclasses.field() carrying idempotency metadata.

    Remaining keyword arguments are passed to dataclasses.field().
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[METADATA_KEY] = {
        "ignore": ignore,
        "alias": alias,
        "key": key,
        "key_target": key_target,
    }
    return dataclasses.field(metadata=metadata, **kwargs)  # type: ignore[call-overload]


_registry: dict[type, tuple[FieldSpec, ...]] = {}
_registry_lock = threading.Lock()


def register_payload(cls: type, specs: Iterable[FieldSpec | str]) -> None:
    """Describe a non-dataclass payload type.

    Args:
        cls: The payload type
        specs: Fields in enumeration order; plain strings are pass-through fields
    """
    table = tuple(s if isinstance(s, FieldSpec) else FieldSpec(name=s) for s in specs)
    names = [s.name for s in table]
    if len(set(names)) != len(names):
        raise ValueError(f"duplicate field names for {cls.__qualname__}: {names}")

    with _registry_lock:
        _registry[cls] = table


def field_specs(cls: type) -> tuple[FieldSpec, ...] | None:
    """Return the metadata table for a payload type.

    Returns None for types that are neither dataclasses nor registered.
    """
    with _registry_lock:
        table = _registry.get(cls)
        if table is not None:
            return table

        if not dataclasses.is_dataclass(cls):
            return None

        table = tuple(_spec_from_dataclass_field(f) for f in dataclasses.fields(cls))
        _registry[cls] = table
        return table


def _spec_from_dataclass_field(f: dataclasses.Field) -> FieldSpec:
    options = f.metadata.get(METADATA_KEY)
    if not options:
        return FieldSpec(name=f.name)
    return FieldSpec(name=f.name, **options)


def enumerate_fields(payload: object) -> list[tuple[FieldSpec, object]]:
    """Pair each field of a payload with its current value, in stable order."""
    if isinstance(payload, Mapping):
        return [(FieldSpec(name=str(k)), payload[k]) for k in sorted(payload, key=str)]

    table = field_specs(type(payload))
    if table is None:
        return [(FieldSpec(name=VALUE_FIELD), payload)]

    return [(spec, getattr(payload, spec.name, None)) for spec in table]


def key_field_value(payload: object) -> object | None:
    """Value of the payload's key field, or None if it has none."""
    table = field_specs(type(payload))
    if not table:
        return None
    for spec in table:
        if spec.key:
            return getattr(payload, spec.name, None)
    return None


def assign_key_targets(payload: object, key: str) -> bool:
    """Write the key into every key_target field of the payload.

    Returns:
        True if at least one field was written
    """
    table = field_specs(type(payload))
    if not table:
        return False

    written = False
    for spec in table:
        if spec.key_target:
            setattr(payload, spec.name, key)
            written = True
    return written
