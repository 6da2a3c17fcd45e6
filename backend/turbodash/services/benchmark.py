from __future__ import annotations

from decimal import Decimal

from turbodash.core.errors import ConfigurationError, NegativeOffsetError
from turbodash.utils.decimal_math import HUNDRED, as_decimal


# 8% compounding loss per period
DEFAULT_DECAY_RATE = Decimal("0.92")


def validate_decay_rate(decay_rate: Decimal | float | str) -> Decimal:
    rate = as_decimal(decay_rate)
    if not Decimal("0") < rate < Decimal("1"):
        raise ConfigurationError(f"Decay rate must be between 0 and 1 (exclusive), got {rate}.")
    return rate


def expected_retention(offset: int, *, decay_rate: Decimal = DEFAULT_DECAY_RATE) -> Decimal:
    """Expected retention percentage ``offset`` periods after the cohort start.

    Kept at full Decimal precision: quantizing would flatten the tail of the
    curve to zero and break ``expected > 0``.
    """
    if isinstance(offset, bool) or not isinstance(offset, int):
        raise TypeError(f"Offset must be an int, got {type(offset).__name__}.")
    if offset < 0:
        raise NegativeOffsetError(offset)
    if offset == 0:
        return HUNDRED
    return HUNDRED * validate_decay_rate(decay_rate) ** offset
