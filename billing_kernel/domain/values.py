"""
Values -- Decimal helpers and small value objects shared by every layer.

Responsibility:
    Normalizes numeric input to ``Decimal``, applies the display rounding
    rule (2 places, HALF_UP), normalizes ISO currency codes, and carries the
    explicit caller identity (``Principal``) passed into service entry points.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Decimal-only arithmetic: floats are converted through ``str`` so that
      ``0.1`` becomes ``Decimal("0.1")`` and not its binary expansion.
    - Display rounding is always ROUND_HALF_UP.

Failure modes:
    - ValueError for currency codes that are not three ASCII letters.
    - decimal.InvalidOperation for values that cannot be parsed as numbers.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID

ZERO = Decimal("0")
HUNDRED = Decimal("100")
TWO_PLACES = Decimal("0.01")
FOUR_PLACES = Decimal("0.0001")

DEFAULT_CURRENCY = "USD"


def to_decimal(value: Any) -> Decimal:
    """Convert ``value`` to Decimal. ``None`` becomes zero."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def zero_if_none(value: Decimal | None) -> Decimal:
    """Normalize a nullable Decimal field to zero."""
    return ZERO if value is None else value


def round_money(value: Decimal, places: Decimal = TWO_PLACES) -> Decimal:
    """Round to display precision (HALF_UP)."""
    return value.quantize(places, rounding=ROUND_HALF_UP)


def normalize_currency(code: str | None, default: str = DEFAULT_CURRENCY) -> str:
    """
    Normalize a currency code to upper-case, falling back to ``default``.

    Raises:
        ValueError: if the code is not exactly three ASCII letters.
    """
    if code is None or not code.strip():
        return default
    normalized = code.strip().upper()
    if len(normalized) != 3 or not normalized.isascii() or not normalized.isalpha():
        raise ValueError(f"Currency must be a 3-letter ISO code, got {code!r}")
    return normalized


@dataclass(frozen=True, slots=True)
class Principal:
    """
    The caller on whose behalf a service operation runs.

    Authentication happens outside this package; services only compare
    ``user_id`` against record ownership.
    """

    user_id: UUID

    def owns(self, owner_id: UUID | None) -> bool:
        return owner_id is not None and owner_id == self.user_id
