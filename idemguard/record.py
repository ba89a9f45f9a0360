"""Value objects persisted by idempotency stores."""

import json
from dataclasses import dataclass, field

from .exceptions import SerializationError


@dataclass(frozen=True)
class IdempotencyKey:
    """Opaque identifier of one logical operation instance."""

    value: str

    def __str__(self) -> str:
        return self.value


class RequestWrapper:
    """Wraps the request half of a pair.

    Equality and hashing delegate to the wrapped request, so two wrappers
    around equal payload representations compare equal.
    """

    def __init__(self, request: object = None) -> None:
        self.request = request

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RequestWrapper):
            return NotImplemented
        return self.request == other.request

    def __hash__(self) -> int:
        return hash(json.dumps(self.request, sort_keys=True, default=repr))

    def __repr__(self) -> str:
        return f"RequestWrapper(request={self.request!r})"


@dataclass
class ResponseWrapper:
    """Wraps the value returned by a successful execution."""

    response: object = None


@dataclass
class RequestResponsePair:
    """The unit a store keeps under one idempotency key.

    Attributes:
        request: The request the key was admitted with; never replaced
        response: The stored result, None while in flight
    """

    request: RequestWrapper
    response: ResponseWrapper | None = field(default=None)

    @property
    def completed(self) -> bool:
        return self.response is not None

    def to_dict(self) -> dict[str, object]:
        """Convert pair to a JSON-compatible dictionary."""
        return {
            "request": self.request.request,
            "response": (
                None if self.response is None else {"value": self.response.response}
            ),
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "RequestResponsePair":
        """Create pair from dictionary."""
        response = data.get("response")
        if response is not None and not isinstance(response, dict):
            raise ValueError(f"Invalid response entry: {response!r}")

        return cls(
            request=RequestWrapper(data.get("request")),
            response=None if response is None else ResponseWrapper(response.get("value")),
        )

    def to_json(self) -> str:
        """Serialize pair to JSON.

        Raises:
            SerializationError: If the response is not JSON-serializable
        """
        try:
            return json.dumps(self.to_dict())
        except (TypeError, ValueError) as e:
            raise SerializationError(self.response, str(e)) from e

    @classmethod
    def from_json(cls, raw: str | bytes) -> "RequestResponsePair":
        return cls.from_dict(json.loads(raw))
