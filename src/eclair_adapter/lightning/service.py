"""
Defines a Protocol for a lightning payment service and its implementation for
eclair.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any, Protocol

from eclair_adapter.rpc.client import EclairRpc, require_fields

from .fees import FeeEstimator
from .invoices import InvoiceFlow
from .lookup import LookupFlow
from .payments import SettlementReconciler

if TYPE_CHECKING:
    from eclair_adapter.config import EclairConfig

    from .models import Invoice, Payment


class LightningService(Protocol):
    """
    Serves as an interface of the payment service consumed by the settlement
    platform.
    """

    def request(self, invoice: Invoice) -> Invoice:
        """
        Creates a payment request for the invoice and returns the populated
        invoice.
        """
        ...

    def send(self, payment: Payment, cancel: threading.Event | None = None) -> Payment:
        """
        Pays the request of the payment and returns the settled payment.
        """
        ...

    def decode(self, request: str) -> Invoice:
        """
        Decodes a serialized payment request.
        """
        ...

    def estimate_fee(self, payment: Payment) -> int:
        """
        Estimates the routing fee in msat for the payment.
        """
        ...

    def get_invoice(self, preimage_hash: str) -> Invoice | None: ...

    def get_payment(self, preimage_hash: str) -> Payment | None: ...

    def can_request(self, amount_msat: int) -> bool: ...

    def can_send(self, amount_msat: int) -> bool: ...


class EclairService:
    def __init__(self, rpc: EclairRpc, cfg: EclairConfig) -> None:
        self.rpc = rpc
        self.invoices = InvoiceFlow(rpc, cfg.request)
        self.payments = SettlementReconciler(rpc, cfg.send, cfg.poll)
        self.fees = FeeEstimator(rpc)
        self.lookup = LookupFlow(rpc)

    @classmethod
    def from_config(cls, cfg: EclairConfig) -> EclairService:
        return cls(EclairRpc.from_config(cfg.rpc), cfg)

    def request(self, invoice: Invoice) -> Invoice:
        return self.invoices.request(invoice)

    def send(self, payment: Payment, cancel: threading.Event | None = None) -> Payment:
        return self.payments.send(payment, cancel)

    def decode(self, request: str) -> Invoice:
        return self.invoices.decode(request)

    def estimate_fee(self, payment: Payment) -> int:
        return self.fees.estimate_fee(payment)

    def get_invoice(self, preimage_hash: str) -> Invoice | None:
        return self.lookup.get_invoice(preimage_hash)

    def get_payment(self, preimage_hash: str) -> Payment | None:
        return self.lookup.get_payment(preimage_hash)

    def get_info(self) -> dict[str, Any]:
        res = self.rpc.get_info()
        return res if isinstance(res, dict) else {}

    @property
    def block_height(self) -> int:
        """
        Fetches the current block height from the node.
        """

        info = require_fields(self.rpc.get_info(), "getinfo", "blockHeight")
        return int(info["blockHeight"])

    def can_request(self, amount_msat: int) -> bool:
        return self.invoices.can_request(amount_msat)

    def can_send(self, amount_msat: int) -> bool:
        return self.payments.can_send(amount_msat)
