"""
Pure domain layer.

Decimal helpers, the injectable clock, the caller principal and the frozen
records of the invoice and project aggregates.  No dependencies on the
ORM, the database or I/O.
"""

from billing_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from billing_kernel.domain.invoice import (
    Invoice,
    InvoiceLineItem,
    InvoiceStatus,
    Payment,
    PaymentStatus,
)
from billing_kernel.domain.project import Project, TimeEntry
from billing_kernel.domain.values import (
    DEFAULT_CURRENCY,
    ZERO,
    Principal,
    normalize_currency,
    round_money,
    to_decimal,
    zero_if_none,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "Invoice",
    "InvoiceLineItem",
    "InvoiceStatus",
    "Payment",
    "PaymentStatus",
    "Project",
    "TimeEntry",
    "DEFAULT_CURRENCY",
    "ZERO",
    "Principal",
    "normalize_currency",
    "round_money",
    "to_decimal",
    "zero_if_none",
]
