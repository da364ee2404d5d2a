from __future__ import annotations

from typing import TYPE_CHECKING

from eclair_adapter.log import getLogger
from eclair_adapter.rpc.client import EclairRpc, require_fields
from eclair_adapter.utils import now_utc, parse_timestamp

from .gate import check_amount, check_expiry
from .models import Invoice

if TYPE_CHECKING:
    from eclair_adapter.config import AmountGateConfig

DEFAULT_EXPIRY = 3600

logger = getLogger(__name__)


class InvoiceFlow:
    def __init__(self, rpc: EclairRpc, gate: AmountGateConfig) -> None:
        self.rpc = rpc
        self.gate = gate

    def can_request(self, amount_msat: int) -> bool:
        return self.gate.allows(amount_msat)

    def request(self, invoice: Invoice) -> Invoice:
        """
        Creates a payment request on the node. The amount and the expiry are
        validated before the node is called.
        """

        check_amount(self.gate, invoice.amount_msat, "request")
        check_expiry(invoice.expiry)

        result = self.rpc.create_invoice(
            description=invoice.description,
            amount_msat=invoice.amount_msat,
            expire_in=invoice.expiry,
            payment_preimage=invoice.preimage,
        )

        result = require_fields(result, "createinvoice", "paymentHash", "serialized")
        info = require_fields(self.rpc.get_info(), "getinfo", "blockHeight")

        res = invoice.with_values(
            preimage_hash=result["paymentHash"],
            request=result["serialized"],
            expiry=int(result.get("expiry", invoice.expiry)),
            block_height=int(info["blockHeight"]),
            created_at=now_utc(),
        )
        logger.info(f"Invoice created; {res.preimage_hash=}; {res.amount_msat=}")

        return res

    def decode(self, request: str) -> Invoice:
        """Decodes a serialized payment request without paying it."""

        result = require_fields(
            self.rpc.parse_invoice(request),
            "parseinvoice",
            "paymentHash",
            "serialized",
            "nodeId",
        )

        return Invoice(
            preimage_hash=result["paymentHash"],
            request=result["serialized"],
            destination=result["nodeId"],
            amount_msat=int(result.get("amount") or 0),
            description=result.get("description", ""),
            expiry=int(result.get("expiry") or DEFAULT_EXPIRY),
            cltv_expiry=result.get("minFinalCltvExpiry"),
            created_at=parse_timestamp(result.get("timestamp")),
        )
