"""
Module: billing_engines.invoice_status
Responsibility:
    Derive an invoice's lifecycle status and paid date from its payment
    totals and due date.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  ``as_of`` is supplied by
    the caller; this module never reads a clock.

Invariants enforced:
    - amount_paid == 0: PAID reverts to SENT with the paid date cleared;
      every other status is left as is.
    - amount_due <= 0 with something paid: PAID, and the paid date is set
      to ``as_of`` only when not already set.
    - Partially paid: OVERDUE once the due date has passed, otherwise the
      status is unchanged; the paid date is cleared.
    - PARTIALLY_PAID is never assigned here.

Failure modes:
    - None.  All inputs are plain values.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from billing_kernel.domain.invoice import Invoice, InvoiceStatus
from billing_kernel.domain.values import ZERO, zero_if_none

_TERMINAL_FOR_OVERDUE = frozenset({InvoiceStatus.PAID, InvoiceStatus.CANCELLED})


@dataclass(frozen=True)
class StatusDecision:
    """Outcome of one status evaluation."""

    status: InvoiceStatus
    paid_date: date | None
    previous_status: InvoiceStatus

    @property
    def changed(self) -> bool:
        return self.status is not self.previous_status


def compute_status(
    status: InvoiceStatus,
    paid_date: date | None,
    amount_paid: Decimal | None,
    amount_due: Decimal | None,
    due_date: date | None,
    as_of: date,
) -> StatusDecision:
    """Apply the invoice status transition rules to one set of totals."""
    status = InvoiceStatus(status)
    paid = zero_if_none(amount_paid)
    due = zero_if_none(amount_due)

    if paid == ZERO:
        if status is InvoiceStatus.PAID:
            return StatusDecision(InvoiceStatus.SENT, None, status)
        return StatusDecision(status, paid_date, status)

    if due <= ZERO:
        return StatusDecision(
            InvoiceStatus.PAID,
            paid_date if paid_date is not None else as_of,
            status,
        )

    new_status = status
    if (
        status is not InvoiceStatus.OVERDUE
        and due_date is not None
        and due_date < as_of
    ):
        new_status = InvoiceStatus.OVERDUE
    return StatusDecision(new_status, None, status)


def is_overdue(invoice: Invoice, as_of: date) -> bool:
    """True when the due date has passed and the invoice is still open."""
    if invoice.due_date is None:
        return False
    return invoice.due_date < as_of and invoice.status not in _TERMINAL_FOR_OVERDUE
