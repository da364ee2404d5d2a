"""
Fields of the platform's invoice and payment entities which are populated by
the adapter. All amounts are in msat.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from typing import Any


class InvoiceState(str, Enum):
    PENDING = "pending"
    SETTLED = "settled"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value


class PaymentState(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


@dataclass
class Invoice:
    amount_msat: int
    description: str = ""
    expiry: int = 3600
    preimage: str | None = None
    preimage_hash: str | None = None
    request: str | None = None
    destination: str | None = None
    amount_paid_msat: int = 0
    cltv_expiry: int | None = None
    block_height: int | None = None
    created_at: datetime.datetime | None = None
    state: InvoiceState = InvoiceState.PENDING

    def with_values(self, **kwargs) -> Invoice:
        return replace(self, **kwargs)


@dataclass
class Payment:
    request: str
    amount_msat: int
    # Maximum fee as percentage of the amount, e.g. Decimal("0.5") for 0.5%.
    fee_limit_pct: Decimal = Decimal("0.5")
    preimage: str | None = None
    preimage_hash: str | None = None
    destination: str | None = None
    amount_paid_msat: int = 0
    fee_settled_msat: int = 0
    label: str | None = None
    created_at: datetime.datetime | None = None
    state: PaymentState = PaymentState.PENDING

    def with_values(self, **kwargs) -> Payment:
        return replace(self, **kwargs)


@dataclass
class PaymentPart:
    """One route attempt of an outgoing payment as reported by getsentinfo."""

    id: str
    payment_hash: str
    status: str
    amount_msat: int
    fees_paid_msat: int
    preimage: str | None
    failure_message: str | None
    raw: dict[str, Any] = field(repr=False)

    @classmethod
    def from_dict(cls, part: dict[str, Any]) -> PaymentPart:
        status: dict[str, Any] = part["status"]
        failures = status.get("failures") or []

        return cls(
            id=str(part["id"]),
            payment_hash=part["paymentHash"],
            status=status["type"],
            amount_msat=int(part.get("amount", 0)),
            fees_paid_msat=int(status.get("feesPaid", 0)),
            preimage=status.get("paymentPreimage"),
            failure_message=failures[0].get("failureMessage") if failures else None,
            raw=part,
        )
