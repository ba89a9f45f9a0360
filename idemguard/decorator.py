"""Main idempotent decorator implementation."""

import functools
import inspect
from collections.abc import Callable, Sequence
from typing import TypeVar

from .coordinator import ErrorTranslator, IdempotentExecutor
from .key import DEFAULT_ALGORITHM, KeyDeriver
from .stores import MemoryStore, Store

F = TypeVar("F", bound=Callable)


def idempotent(
    ttl: float | None = None,
    store: Store | None = None,
    scope: str | None = None,
    cache_prefix: str = "",
    payload: str | Sequence[str] | None = None,
    key_arg: str | None = None,
    error_translator: ErrorTranslator | None = None,
    algorithm: str = DEFAULT_ALGORITHM,
) -> Callable[[F], F]:
    """Decorator to make a function idempotent.

    Args:
        ttl: Time-to-live for idempotency records (seconds, None = store default)
        store: Storage backend (defaults to MemoryStore)
        scope: Operation identity mixed into derived keys
            (defaults to the function's module and qualified name)
        cache_prefix: Namespace prepended to the scope
        payload: Argument name(s) forming the payload
            (defaults to every argument except key_arg, in signature order;
            a leading self or cls parameter is left out)
        key_arg: Argument carrying a caller-supplied idempotency key;
            when it is None at call time the key is derived
        error_translator: Policy that may replace errors raised by the function
        algorithm: hashlib algorithm for derived keys

    Example:
        @idempotent(ttl=300, key_arg="idempotency_key")
        def create_invoice(order: Order, idempotency_key: str | None = None):
            charge_card(order.user_id, order.amount)
            return {"invoice_id": 123}
    """
    payload_names = [payload] if isinstance(payload, str) else payload

    executor = IdempotentExecutor(
        store=store or MemoryStore(),
        deriver=KeyDeriver(algorithm=algorithm, cache_prefix=cache_prefix),
        error_translator=error_translator,
    )

    def decorator(func: F) -> F:
        signature = inspect.signature(func)
        params = list(signature.parameters)

        if key_arg is not None and key_arg not in params:
            raise ValueError(f"key_arg '{key_arg}' is not a parameter of {func.__qualname__}")

        if payload_names is None:
            # Instance state is not part of the request
            candidates = params[1:] if params[:1] in (["self"], ["cls"]) else params
            names = [p for p in candidates if p != key_arg]
        else:
            names = list(payload_names)
            unknown = [n for n in names if n not in params]
            if unknown:
                raise ValueError(
                    f"payload arguments {unknown} are not parameters of {func.__qualname__}"
                )

        op_scope = scope or f"{func.__module__}.{func.__qualname__}"

        @functools.wraps(func)
        def wrapper(*args: object, **kwargs: object) -> object:
            bound = signature.bind(*args, **kwargs)
            bound.apply_defaults()

            payloads = [bound.arguments[n] for n in names if n in bound.arguments]
            explicit_key = bound.arguments.get(key_arg) if key_arg else None

            return executor.execute(
                op_scope,
                payloads,
                lambda: func(*bound.args, **bound.kwargs),
                explicit_key=explicit_key,
                ttl=ttl,
            )

        wrapper.executor = executor  # type: ignore[attr-defined]
        return wrapper  # type: ignore[return-value]

    return decorator
