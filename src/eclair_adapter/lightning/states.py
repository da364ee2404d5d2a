from __future__ import annotations

from collections.abc import Iterable, Sequence

from eclair_adapter.errors import UnknownStateError

from .models import InvoiceState, PaymentPart, PaymentState

INVOICE_STATUS_PENDING = "pending"
INVOICE_STATUS_RECEIVED = "received"
INVOICE_STATUS_EXPIRED = "expired"
PAYMENT_STATUS_PENDING = "pending"
PAYMENT_STATUS_SENT = "sent"
PAYMENT_STATUS_FAILED = "failed"

_INVOICE_STATES: dict[str, InvoiceState] = {
    INVOICE_STATUS_PENDING: InvoiceState.PENDING,
    INVOICE_STATUS_RECEIVED: InvoiceState.SETTLED,
    INVOICE_STATUS_EXPIRED: InvoiceState.CANCELLED,
}

_PAYMENT_STATES: dict[str, PaymentState] = {
    PAYMENT_STATUS_PENDING: PaymentState.PENDING,
    PAYMENT_STATUS_SENT: PaymentState.COMPLETED,
    PAYMENT_STATUS_FAILED: PaymentState.FAILED,
}


def map_invoice_state(raw: str) -> InvoiceState:
    if (state := _INVOICE_STATES.get(raw)) is None:
        raise UnknownStateError("invoice", raw)
    return state


def map_payment_state(raw: str) -> PaymentState:
    if (state := _PAYMENT_STATES.get(raw)) is None:
        raise UnknownStateError("payment", raw)
    return state


def is_pending(parts: Iterable[PaymentPart]) -> bool:
    """True as long as at least one part has not reached a final status."""

    return any(p.status == PAYMENT_STATUS_PENDING for p in parts)


def sent_parts(parts: Iterable[PaymentPart]) -> list[PaymentPart]:
    return [p for p in parts if p.status == PAYMENT_STATUS_SENT]


def fees_settled(parts: Iterable[PaymentPart]) -> int:
    """Sum of the fees of all succeeded parts. Other parts count zero."""

    return sum(p.fees_paid_msat for p in sent_parts(parts))


def amount_paid(parts: Iterable[PaymentPart]) -> int:
    """Sum of the amounts of all succeeded parts. Other parts count zero."""

    return sum(p.amount_msat for p in sent_parts(parts))


def representative_part(parts: Sequence[PaymentPart]) -> PaymentPart:
    """
    Returns the part which stands for the whole payment. Currently the first
    part reported by the node.
    """

    if not parts:
        raise ValueError("Payment has no parts")
    return parts[0]


def payment_state_of(parts: Sequence[PaymentPart]) -> PaymentState:
    """
    Derives the state of a multi-part payment. Currently the state of the
    representative part decides.
    """

    # TODO: Derive the state from all parts once partial failures of
    # succeeded payments are analyzed.
    return map_payment_state(representative_part(parts).status)
