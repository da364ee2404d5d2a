from __future__ import annotations

import datetime
from dataclasses import dataclass


@dataclass(frozen=True)
class PaymentReceived:
    """An invoice of the node was paid. amount_paid_msat sums all parts."""

    preimage_hash: str
    amount_paid_msat: int
    timestamp: datetime.datetime


@dataclass(frozen=True)
class PaymentSent:
    """An outgoing payment of the node succeeded."""

    preimage: str
    preimage_hash: str
    amount_msat: int
    amount_paid_msat: int
    timestamp: datetime.datetime


LightningEvent = PaymentReceived | PaymentSent
