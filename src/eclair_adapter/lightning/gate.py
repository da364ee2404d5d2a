from __future__ import annotations

from eclair_adapter.config import AmountGateConfig
from eclair_adapter.errors import ValidationError

MIN_EXPIRY = 60
MAX_EXPIRY = 31536000


def check_amount(gate: AmountGateConfig, amount_msat: int, action: str) -> None:
    """Raises a ValidationError if the gate does not allow the amount."""

    if not gate.allows(amount_msat):
        raise ValidationError(f"Eclair service cannot {action} given amount.")


def check_expiry(expiry: int) -> None:
    if not MIN_EXPIRY <= expiry <= MAX_EXPIRY:
        raise ValidationError(
            f"Invoice expiry is not acceptable: {expiry=}, "
            f"must be between {MIN_EXPIRY} and {MAX_EXPIRY}."
        )
