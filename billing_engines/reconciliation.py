"""
Module: billing_engines.reconciliation
Responsibility:
    Bring an invoice's derived totals and status in line with its current
    items and payments, and shape the result for display.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Composes
    ``compute_amounts`` and ``compute_status`` in a fixed order.  Neither
    of those calls back into the other, so no re-entrancy guard exists.

Invariants enforced:
    - Idempotent: reconcile(reconcile(x, d), d) == reconcile(x, d).
    - The input invoice is never mutated; a new record is returned.
    - Snapshot totals are rounded to 2 places HALF_UP.

Usage:
    from billing_engines.reconciliation import reconcile, snapshot

    invoice = reconcile(invoice, as_of=clock.today())
    view = snapshot(invoice, as_of=clock.today())
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from uuid import UUID

from billing_engines.amounts import compute_amounts
from billing_engines.invoice_status import compute_status, is_overdue
from billing_engines.tracer import traced_engine
from billing_kernel.domain.invoice import Invoice, InvoiceStatus
from billing_kernel.domain.values import TWO_PLACES, round_money, zero_if_none
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.reconciliation")


@dataclass(frozen=True)
class InvoiceSnapshot:
    """Read-only view of an invoice's computed fields."""

    invoice_id: UUID
    invoice_number: str
    status: InvoiceStatus
    currency: str
    subtotal: Decimal
    tax_amount: Decimal
    discount: Decimal
    amount: Decimal
    amount_paid: Decimal
    amount_due: Decimal
    is_overdue: bool
    issue_date: date
    due_date: date
    sent_date: date | None
    paid_date: date | None
    item_count: int
    payment_count: int


@traced_engine("reconciliation", "1.0", fingerprint_fields=("invoice", "as_of"))
def reconcile(invoice: Invoice, as_of: date) -> Invoice:
    """
    Recompute totals, then status, and return the updated invoice.

    Args:
        invoice: Invoice with its current items and payments.
        as_of: Business date used for the overdue comparison and as the
            paid date when the invoice becomes fully paid.
    """
    totals = compute_amounts(invoice)
    decision = compute_status(
        status=invoice.status,
        paid_date=invoice.paid_date,
        amount_paid=totals.amount_paid,
        amount_due=totals.amount_due,
        due_date=invoice.due_date,
        as_of=as_of,
    )

    if decision.changed:
        logger.info(
            "invoice_status_changed",
            extra={
                "invoice_id": str(invoice.id),
                "from_status": decision.previous_status.value,
                "to_status": decision.status.value,
                "amount_paid": str(totals.amount_paid),
                "amount_due": str(totals.amount_due),
            },
        )

    return replace(
        invoice,
        status=decision.status,
        paid_date=decision.paid_date,
        **totals.as_fields(),
    )


def snapshot(
    invoice: Invoice,
    as_of: date,
    places: Decimal = TWO_PLACES,
) -> InvoiceSnapshot:
    """Shape an already-reconciled invoice for a response layer."""
    return InvoiceSnapshot(
        invoice_id=invoice.id,
        invoice_number=invoice.invoice_number,
        status=invoice.status,
        currency=invoice.currency,
        subtotal=round_money(zero_if_none(invoice.subtotal), places),
        tax_amount=round_money(zero_if_none(invoice.tax_amount), places),
        discount=round_money(zero_if_none(invoice.discount), places),
        amount=round_money(zero_if_none(invoice.amount), places),
        amount_paid=round_money(zero_if_none(invoice.amount_paid), places),
        amount_due=round_money(zero_if_none(invoice.amount_due), places),
        is_overdue=is_overdue(invoice, as_of),
        issue_date=invoice.issue_date,
        due_date=invoice.due_date,
        sent_date=invoice.sent_date,
        paid_date=invoice.paid_date,
        item_count=len(invoice.items),
        payment_count=len(invoice.payments),
    )
