"""Basic usage examples for idempotency guard."""

from dataclasses import dataclass

from idemguard import PayloadConflictError, idempotent, payload_field


@dataclass
class ChargeRequest:
    user_id: int
    amount: int
    # Differs per retry, so it must not change the request identity
    attempt: int = payload_field(default=1, ignore=True)
    event_id: int = payload_field(default=0, alias="transactionId")


# Example 1: Key derived from the payload
@idempotent(ttl=300)
def create_invoice(request: ChargeRequest) -> dict:
    """Create an invoice and charge the user."""
    print(f"💳 Charging user {request.user_id} ${request.amount}")
    return {"invoice_id": 12345, "amount": request.amount}


# Example 2: Key supplied by the caller (e.g. an Idempotency-Key header)
@idempotent(ttl=300, key_arg="idempotency_key")
def refund(request: ChargeRequest, idempotency_key: str | None = None) -> dict:
    """Refund a charge once per client-supplied key."""
    print(f"↩️  Refunding user {request.user_id} ${request.amount}")
    return {"refund_id": 67890, "amount": request.amount}


if __name__ == "__main__":
    print(create_invoice(ChargeRequest(user_id=1, amount=100)))
    # Retry with a new attempt number - replayed, not charged again
    print(create_invoice(ChargeRequest(user_id=1, amount=100, attempt=2)))

    print(refund(ChargeRequest(user_id=1, amount=100), idempotency_key="rf-1"))
    try:
        refund(ChargeRequest(user_id=1, amount=50), idempotency_key="rf-1")
    except PayloadConflictError as e:
        print(f"⚠️  {e}")
