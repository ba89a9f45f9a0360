"""Classification of payload fields into fingerprint contributions.

Each field is passed along an ordered chain of rules. A rule either
resolves the field or returns None to defer to the next one; the last rule
always resolves.
"""

import enum
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from .fields import FieldSpec, enumerate_fields


class Decision(enum.Enum):
    EXCLUDED = "excluded"
    RENAMED = "renamed"
    INCLUDED = "included"


@dataclass(frozen=True)
class ClassifiedField:
    """One payload field after classification.

    Attributes:
        name: Name the field contributes under (alias for renamed fields)
        value: Current field value
        decision: How the field participates in the fingerprint
    """

    name: str
    value: object
    decision: Decision

    @property
    def contributes(self) -> bool:
        return self.decision is not Decision.EXCLUDED


class ClassificationRule(Protocol):
    def classify(self, spec: FieldSpec, value: object) -> ClassifiedField | None: ...


class IgnoreRule:
    """Exclude fields marked ignore, and fields that receive the key."""

    def classify(self, spec: FieldSpec, value: object) -> ClassifiedField | None:
        if spec.ignore or spec.key_target:
            return ClassifiedField(spec.name, value, Decision.EXCLUDED)
        return None


class AliasRule:
    """Contribute aliased fields under their alias."""

    def classify(self, spec: FieldSpec, value: object) -> ClassifiedField | None:
        if spec.alias is not None:
            return ClassifiedField(spec.alias, value, Decision.RENAMED)
        return None


class PassThroughRule:
    def classify(self, spec: FieldSpec, value: object) -> ClassifiedField:
        return ClassifiedField(spec.name, value, Decision.INCLUDED)


class FieldClassifier:
    """Ordered chain of classification rules.

    Args:
        rules: Rules evaluated before the pass-through default
    """

    def __init__(self, rules: Sequence[ClassificationRule] | None = None) -> None:
        if rules is None:
            rules = (IgnoreRule(), AliasRule())
        self.rules = (*rules, PassThroughRule())

    def classify_field(self, spec: FieldSpec, value: object) -> ClassifiedField:
        for rule in self.rules:
            result = rule.classify(spec, value)
            if result is not None:
                return result
        raise AssertionError("pass-through rule must resolve every field")

    def classify(self, payload: object) -> list[ClassifiedField]:
        """Classify every field of a payload, excluded ones included."""
        return [self.classify_field(spec, value) for spec, value in enumerate_fields(payload)]

    def contributions(self, payload: object) -> list[tuple[str, object]]:
        """Ordered (name, value) pairs that feed the fingerprint."""
        return [(f.name, f.value) for f in self.classify(payload) if f.contributes]
