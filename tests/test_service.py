from __future__ import annotations

import unittest
from typing import cast
from unittest.mock import MagicMock

from eclair_adapter.config import EclairConfig
from eclair_adapter.errors import ServiceUnavailableError
from eclair_adapter.lightning.models import Invoice
from eclair_adapter.lightning.service import EclairService, LightningService
from eclair_adapter.rpc.client import EclairRpc


class TestEclairService(unittest.TestCase):
    def setUp(self):
        self.rpc = MagicMock()
        cfg = EclairConfig(
            {"request": {"maximum": "100SAT"}, "send": {"enabled": False}}
        )
        self.service: LightningService = EclairService(cast(EclairRpc, self.rpc), cfg)

    def test_gates_are_independent(self):
        self.assertTrue(self.service.can_request(100_000))
        self.assertFalse(self.service.can_request(100_001))
        self.assertFalse(self.service.can_send(1_000))

    def test_request_delegates(self):
        self.rpc.create_invoice.return_value = {"paymentHash": "h1", "serialized": "lnbc"}
        self.rpc.get_info.return_value = {"blockHeight": 12}

        res = self.service.request(Invoice(amount_msat=1_000))

        self.assertEqual(res.preimage_hash, "h1")
        self.assertEqual(res.expiry, 3600)
        self.assertEqual(res.block_height, 12)

    def test_block_height(self):
        self.rpc.get_info.return_value = {"blockHeight": 680123}
        service = cast(EclairService, self.service)
        self.assertEqual(service.block_height, 680123)

        self.rpc.get_info.return_value = {}
        with self.assertRaises(ServiceUnavailableError):
            service.block_height

    def test_from_config(self):
        service = EclairService.from_config(EclairConfig({"rpc": {"port": 9000}}))
        self.assertEqual(service.rpc.base_url, "http://localhost:9000")
