from __future__ import annotations

from typing import TYPE_CHECKING

from eclair_adapter.utils import parse_timestamp

from .models import Invoice, Payment
from .payments import parse_parts
from .states import (
    amount_paid,
    fees_settled,
    map_invoice_state,
    payment_state_of,
    representative_part,
)

if TYPE_CHECKING:
    from eclair_adapter.rpc.client import EclairRpc


class LookupFlow:
    """Read-only queries of the current invoice and payment records."""

    def __init__(self, rpc: EclairRpc) -> None:
        self.rpc = rpc

    def get_invoice(self, preimage_hash: str) -> Invoice | None:
        result = self.rpc.get_received_info(preimage_hash)
        if not isinstance(result, dict) or not result:
            return None

        request: dict = result["paymentRequest"]
        status: dict = result["status"]

        return Invoice(
            preimage=result.get("paymentPreimage"),
            preimage_hash=request["paymentHash"],
            request=request["serialized"],
            destination=request.get("nodeId"),
            amount_msat=int(request.get("amount") or 0),
            amount_paid_msat=int(status.get("amount") or 0),
            description=request.get("description", ""),
            expiry=int(request.get("expiry") or 3600),
            cltv_expiry=request.get("minFinalCltvExpiry"),
            state=map_invoice_state(status["type"]),
            created_at=parse_timestamp(request.get("timestamp")),
        )

    def get_payment(self, preimage_hash: str) -> Payment | None:
        parts = parse_parts(self.rpc.get_sent_info(payment_hash=preimage_hash))
        if not parts:
            return None

        first = representative_part(parts)
        raw = first.raw
        request: dict = raw.get("paymentRequest") or {}

        return Payment(
            preimage=first.preimage,
            preimage_hash=first.payment_hash,
            request=request.get("serialized", ""),
            destination=request.get("nodeId", raw.get("recipientNodeId")),
            amount_msat=int(raw.get("recipientAmount", first.amount_msat)),
            amount_paid_msat=amount_paid(parts),
            fee_settled_msat=fees_settled(parts),
            label=first.id,
            state=payment_state_of(parts),
            created_at=parse_timestamp(raw.get("createdAt")),
        )
