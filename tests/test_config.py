from __future__ import annotations

import os
import tempfile
import unittest
from decimal import Decimal

from eclair_adapter.config import (
    AMOUNT_MAX_MSAT,
    AMOUNT_MIN_MSAT,
    EclairConfig,
    NackPolicy,
)
from eclair_adapter.server import DEFAULT_TIMEOUT, MainConfig
from eclair_adapter.utils import parse_msat, parse_timestamp, percentage_round_up

CONFIG_TOML = b"""
timeout = 60

[rpc]
scheme = "https"
host = "eclair"
port = 8081
password = "secret"

[request]
minimum = "1SAT"
maximum = "0.01BTC"

[send]
enabled = false
max_attempts = 5
fee_threshold = "10SAT"

[poll]
interval = 0.5
timeout = 120
backoff = 2

[amqp]
queue = "eclair.adapter.messages"
workers = 2
nack_policy = "requeue_once"

[logging]
logfile = "adapter.log"
level = "DEBUG"
"""


class TestEclairConfig(unittest.TestCase):
    def test_defaults(self):
        cfg = EclairConfig({})

        self.assertEqual(cfg.rpc.base_url, "http://localhost:8080")
        self.assertIsNone(cfg.rpc.password)
        self.assertEqual(cfg.rpc.authentication, "basic")
        self.assertTrue(cfg.request.enabled)
        self.assertEqual(cfg.request.minimum_msat, AMOUNT_MIN_MSAT)
        self.assertEqual(cfg.request.maximum_msat, AMOUNT_MAX_MSAT)
        self.assertEqual(cfg.send.max_attempts, 3)
        self.assertEqual(cfg.send.fee_threshold_msat, 5_000)
        self.assertEqual(cfg.poll.interval, 1.0)
        self.assertEqual(cfg.amqp.nack_policy, NackPolicy.DISCARD)
        self.assertEqual(cfg.amqp.workers, 1)

    def test_from_file(self):
        with tempfile.NamedTemporaryFile(suffix=".toml", delete=False) as f:
            f.write(CONFIG_TOML)
        try:
            main = MainConfig.from_config_file(f.name)
        finally:
            os.remove(f.name)

        cfg = main.eclair_cfg
        self.assertEqual(main.timeout, 60)
        self.assertEqual(main.log_file, "adapter.log")
        self.assertEqual(main.log_level, "DEBUG")
        self.assertEqual(cfg.rpc.base_url, "https://eclair:8081")
        self.assertEqual(cfg.rpc.password, "secret")
        self.assertEqual(cfg.request.minimum_msat, 1_000)
        self.assertEqual(cfg.request.maximum_msat, 1_000_000_000)
        self.assertFalse(cfg.send.allows(10_000))
        self.assertEqual(cfg.send.max_attempts, 5)
        self.assertEqual(cfg.send.fee_threshold_msat, 10_000)
        self.assertEqual(cfg.poll.backoff, 2.0)
        self.assertEqual(cfg.amqp.workers, 2)
        self.assertEqual(cfg.amqp.nack_policy, NackPolicy.REQUEUE_ONCE)

    def test_main_config_defaults(self):
        main = MainConfig.from_config_dict({}, "unused.toml")
        self.assertEqual(main.timeout, DEFAULT_TIMEOUT)
        self.assertIsNone(main.log_file)

    def test_invalid_values(self):
        invalid = [
            {"rpc": {"authentication": "bearer"}},
            {"rpc": {"port": "eighty"}},
            {"request": {"minimum": "10SAT", "maximum": "1SAT"}},
            {"send": {"max_attempts": 0}},
            {"send": {"fee_threshold": "five"}},
            {"poll": {"timeout": 0}},
            {"poll": {"backoff": 0.5}},
            {"amqp": {"workers": 0}},
            {"amqp": {"nack_policy": "forever"}},
        ]
        for conf in invalid:
            with self.subTest(conf=conf):
                with self.assertRaises(ValueError):
                    EclairConfig(conf)

    def test_enabled_flag(self):
        for value, expected in [(False, False), ("false", False), ("True", True)]:
            with self.subTest(value=value):
                cfg = EclairConfig(
                    {"request": {"enabled": value}, "send": {"enabled": value}}
                )
                self.assertIs(cfg.request.enabled, expected)
                self.assertIs(cfg.send.enabled, expected)

        for value in ["no", 0, 1, "off"]:
            with self.subTest(value=value):
                with self.assertRaises(ValueError):
                    EclairConfig({"send": {"enabled": value}})

    def test_gate(self):
        gate = EclairConfig({"send": {"minimum": 10, "maximum": 20}}).send
        self.assertFalse(gate.allows(9))
        self.assertTrue(gate.allows(10))
        self.assertTrue(gate.allows(20))
        self.assertFalse(gate.allows(21))


class TestUtils(unittest.TestCase):
    def test_parse_msat(self):
        self.assertEqual(parse_msat("5SAT"), 5_000)
        self.assertEqual(parse_msat("5sat"), 5_000)
        self.assertEqual(parse_msat("1000MSAT"), 1_000)
        self.assertEqual(parse_msat("0.001BTC"), 100_000_000)
        self.assertEqual(parse_msat("42"), 42)
        self.assertEqual(parse_msat(42), 42)

        for amount in ["0.5MSAT", "abc", "5 EUR", True]:
            with self.subTest(amount=amount):
                with self.assertRaises(ValueError):
                    parse_msat(amount)

    def test_percentage_round_up(self):
        self.assertEqual(percentage_round_up(1_000, Decimal("0.5")), 5)
        self.assertEqual(percentage_round_up(1_001, Decimal("0.5")), 6)
        self.assertEqual(percentage_round_up(0, Decimal("3")), 0)

    def test_parse_timestamp(self):
        self.assertIsNone(parse_timestamp(None))
        self.assertEqual(int(parse_timestamp(1614600000).timestamp()), 1614600000)
        self.assertEqual(int(parse_timestamp(1614600000123).timestamp()), 1614600000)
        self.assertEqual(
            int(parse_timestamp({"iso": "x", "unix": 1614600000}).timestamp()),
            1614600000,
        )
