from __future__ import annotations

import datetime
import os
import re
from decimal import ROUND_CEILING, Decimal, InvalidOperation

import pytz
import tomli

MSAT_PER_SAT = 1000
MSAT_PER_BTC = 100_000_000_000

_UNITS = {"MSAT": 1, "SAT": MSAT_PER_SAT, "BTC": MSAT_PER_BTC}
_AMOUNT_PATTERN = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*(MSAT|SAT|BTC)?\s*$", re.I)


def read_config_file(file_name: str) -> dict:
    config_path = os.path.expanduser(file_name)

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Config file '{file_name}' does not exist")

    with open(config_path, "rb") as config_file:
        res = tomli.load(config_file)

    return res


def parse_msat(amount: str | int) -> int:
    """
    Converts an amount like '5SAT', '1000MSAT', '0.001BTC' or a bare integer
    (interpreted as msat) to millisatoshi.
    """

    if isinstance(amount, bool):
        raise ValueError(f"Cannot parse amount {amount=}")

    if isinstance(amount, int):
        return amount

    if not (m := _AMOUNT_PATTERN.match(str(amount))):
        raise ValueError(f"Cannot parse amount {amount=}")

    unit = (m.group(2) or "MSAT").upper()
    try:
        value = Decimal(m.group(1)) * _UNITS[unit]
    except InvalidOperation as e:
        raise ValueError(f"Cannot parse amount {amount=}: {e}")

    if value != value.to_integral_value():
        raise ValueError(f"Amount {amount=} is not a whole number of msat")

    return int(value)


def msat_to_sat(msat: int) -> int:
    """Converts msat to sat, rounding up."""

    return -(-msat // MSAT_PER_SAT)


def percentage_round_up(amount_msat: int, pct: Decimal) -> int:
    """Returns pct percent of amount_msat, rounded up to the next msat."""

    value = Decimal(amount_msat) * pct / Decimal(100)
    return int(value.to_integral_value(rounding=ROUND_CEILING))


def sec_to_datetime(sec: int | float) -> datetime.datetime:
    """
    Convert UNIX seconds to a timezone-aware datetime (UTC).
    """
    return datetime.datetime.fromtimestamp(sec, tz=pytz.utc)


def ms_to_datetime(ms: int) -> datetime.datetime:
    """
    Convert UNIX milliseconds to a timezone-aware datetime (UTC).
    """
    return datetime.datetime.fromtimestamp(ms / 1e3, tz=pytz.utc)


def now_utc() -> datetime.datetime:
    return datetime.datetime.now(pytz.utc)


# Values above are interpreted as milliseconds. Seconds reach this value in
# the year 33658.
_MS_THRESHOLD = 10**12


def parse_timestamp(value: dict | int | float | str | None) -> datetime.datetime | None:
    """
    Converts an eclair timestamp to a datetime. Eclair reports either plain
    unix seconds, unix milliseconds or an object like
    {"iso": "...", "unix": 1614600000}.
    """

    if value is None:
        return None

    if isinstance(value, dict):
        value = value.get("unix")
        if value is None:
            return None

    ts = float(value)
    if ts >= _MS_THRESHOLD:
        return ms_to_datetime(int(ts))
    return sec_to_datetime(ts)
