from __future__ import annotations

import unittest
from decimal import Decimal
from typing import cast
from unittest.mock import MagicMock

from eclair_adapter.config import AmountGateConfig
from eclair_adapter.errors import (
    RouteNotFoundError,
    ServiceUnavailableError,
    ValidationError,
)
from eclair_adapter.lightning.fees import FeeEstimator
from eclair_adapter.lightning.invoices import InvoiceFlow
from eclair_adapter.lightning.models import Invoice, Payment
from eclair_adapter.rpc.client import EclairRpc


def _new_mock_rpc() -> MagicMock:
    rpc = MagicMock()
    rpc.create_invoice.return_value = {
        "paymentHash": "h1",
        "serialized": "lnbc10n1...",
        "expiry": 600,
        "amount": 1000,
    }
    rpc.get_info.return_value = {"blockHeight": 680000, "nodeId": "03ab"}
    return rpc


class TestInvoiceFlow(unittest.TestCase):
    def setUp(self):
        self.rpc = _new_mock_rpc()
        gate = AmountGateConfig(enabled=True, minimum_msat=1000, maximum_msat=10**9)
        self.flow = InvoiceFlow(cast(EclairRpc, self.rpc), gate)

    def test_request(self):
        invoice = Invoice(amount_msat=1000, description="coffee", expiry=600, preimage="p1")

        res = self.flow.request(invoice)

        self.rpc.create_invoice.assert_called_once_with(
            description="coffee", amount_msat=1000, expire_in=600, payment_preimage="p1"
        )
        self.assertEqual(res.preimage_hash, "h1")
        self.assertEqual(res.request, "lnbc10n1...")
        self.assertEqual(res.expiry, 600)
        self.assertEqual(res.block_height, 680000)
        self.assertIsNotNone(res.created_at)
        self.assertEqual(res.description, "coffee")
        # the input invoice is not mutated
        self.assertIsNone(invoice.preimage_hash)

    def test_expiry_out_of_bounds_makes_no_call(self):
        for expiry in [0, 59, 31536001, -1]:
            with self.subTest(expiry=expiry):
                with self.assertRaises(ValidationError):
                    self.flow.request(Invoice(amount_msat=1000, expiry=expiry))

        self.assertEqual(self.rpc.create_invoice.call_count, 0)
        self.assertEqual(self.rpc.get_info.call_count, 0)

    def test_expiry_bounds_are_inclusive(self):
        for expiry in [60, 31536000]:
            self.flow.request(Invoice(amount_msat=1000, expiry=expiry))
        self.assertEqual(self.rpc.create_invoice.call_count, 2)

    def test_amount_gate(self):
        with self.assertRaises(ValidationError):
            self.flow.request(Invoice(amount_msat=999))

        self.flow.gate = AmountGateConfig(enabled=False)
        with self.assertRaises(ValidationError):
            self.flow.request(Invoice(amount_msat=5000))

        self.assertEqual(self.rpc.create_invoice.call_count, 0)
        self.assertFalse(self.flow.can_request(5000))

    def test_gateway_failure_propagates(self):
        self.rpc.create_invoice.side_effect = ServiceUnavailableError("down")
        with self.assertRaises(ServiceUnavailableError):
            self.flow.request(Invoice(amount_msat=1000))
        self.assertEqual(self.rpc.create_invoice.call_count, 1)

    def test_malformed_node_response(self):
        self.rpc.get_info.return_value = {}
        with self.assertRaisesRegex(ServiceUnavailableError, "blockHeight"):
            self.flow.request(Invoice(amount_msat=1000))

        self.rpc.get_info.return_value = {"blockHeight": 1}
        for result in [{}, {"serialized": "lnbc"}, "error"]:
            with self.subTest(result=result):
                self.rpc.create_invoice.return_value = result
                with self.assertRaises(ServiceUnavailableError):
                    self.flow.request(Invoice(amount_msat=1000))

        self.rpc.parse_invoice.return_value = {}
        with self.assertRaisesRegex(ServiceUnavailableError, "paymentHash"):
            self.flow.decode("lnbc1...")

    def test_decode(self):
        self.rpc.parse_invoice.return_value = {
            "paymentHash": "h2",
            "serialized": "lnbc1...",
            "nodeId": "03cd",
            "description": "beer",
            "minFinalCltvExpiry": 18,
            "timestamp": 1614600000,
        }

        res = self.flow.decode("lnbc1...")

        self.assertEqual(res.preimage_hash, "h2")
        self.assertEqual(res.destination, "03cd")
        self.assertEqual(res.amount_msat, 0)
        self.assertEqual(res.expiry, 3600)
        self.assertEqual(res.cltv_expiry, 18)
        self.assertEqual(int(res.created_at.timestamp()), 1614600000)


class TestFeeEstimator(unittest.TestCase):
    def setUp(self):
        self.rpc = MagicMock()
        self.estimator = FeeEstimator(cast(EclairRpc, self.rpc))
        self.payment = Payment(
            request="lnbc1...", amount_msat=100_001, fee_limit_pct=Decimal("0.5")
        )

    def test_no_route(self):
        for route in [[], ["03ab"], {}, "no route", ""]:
            with self.subTest(route=route):
                self.rpc.find_route.return_value = route
                with self.assertRaises(RouteNotFoundError):
                    self.estimator.estimate_fee(self.payment)

    def test_direct_peer_is_free(self):
        self.rpc.find_route.return_value = ["03ab", "03cd"]
        self.assertEqual(self.estimator.estimate_fee(self.payment), 0)
        self.rpc.find_route.assert_called_once_with("lnbc1...", 100_001)

    def test_longer_route_rounds_up(self):
        self.rpc.find_route.return_value = ["03ab", "03cd", "03ef"]
        # 100001 * 0.5% = 500.005
        self.assertEqual(self.estimator.estimate_fee(self.payment), 501)

        self.payment.amount_msat = 100_000
        self.assertEqual(self.estimator.estimate_fee(self.payment), 500)

    def test_routes_object(self):
        self.rpc.find_route.return_value = {
            "routes": [{"amount": 1000, "nodeIds": ["03ab", "03cd", "03ef", "03gh"]}]
        }
        self.assertEqual(self.estimator.estimate_fee(self.payment), 501)
