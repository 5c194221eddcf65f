"""
Module: billing_engines.amounts
Responsibility:
    Derive invoice totals from line items, tax rate, discount and payments.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import billing_kernel/domain and billing_kernel/logging_config.

Invariants enforced:
    - amount == subtotal + tax_amount - discount.
    - amount_due == max(0, amount - amount_paid), never negative.
    - amount_paid == sum of COMPLETED payment amounts, recomputed from
      scratch on every call.
    - Null numeric fields are treated as zero.

Failure modes:
    - None propagated.  A tax computation that cannot be carried out
      (invalid operand, non-finite result) yields a tax amount of zero and
      logs ``tax_calculation_failed``.

Usage:
    from billing_engines.amounts import compute_amounts

    totals = compute_amounts(invoice)
    invoice = dataclasses.replace(invoice, **totals.as_fields())
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from billing_kernel.domain.invoice import Invoice
from billing_kernel.domain.values import (
    HUNDRED,
    ZERO,
    round_money,
    to_decimal,
    zero_if_none,
)
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.amounts")


@dataclass(frozen=True)
class InvoiceAmounts:
    """
    Totals derived for one invoice.

    Guarantees:
        - amount == subtotal + tax_amount - discount.
        - amount_due >= 0.
    """

    subtotal: Decimal
    tax_amount: Decimal
    discount: Decimal
    amount: Decimal
    amount_paid: Decimal
    amount_due: Decimal

    def as_fields(self) -> dict[str, Decimal]:
        """Field values ready for ``dataclasses.replace(invoice, ...)``."""
        return {
            "subtotal": self.subtotal,
            "tax_amount": self.tax_amount,
            "discount": self.discount,
            "amount": self.amount,
            "amount_paid": self.amount_paid,
            "amount_due": self.amount_due,
        }


def compute_line_amount(quantity: Any, unit_price: Any) -> Decimal:
    """Line amount = quantity x unit price, unrounded."""
    return to_decimal(quantity) * to_decimal(unit_price)


def _items_total(invoice: Invoice) -> Decimal:
    return sum(
        (item.amount for item in invoice.items if item.amount is not None),
        ZERO,
    )


def _resolve_subtotal(invoice: Invoice) -> Decimal:
    items_total = _items_total(invoice)
    if not invoice.subtotal_supplied:
        return items_total
    subtotal = zero_if_none(invoice.subtotal)
    if subtotal == ZERO and invoice.items:
        return items_total
    return subtotal


def _compute_tax(invoice: Invoice, subtotal: Decimal) -> Decimal:
    if invoice.tax_rate is None:
        return zero_if_none(invoice.tax_amount)
    try:
        tax = round_money(subtotal * to_decimal(invoice.tax_rate) / HUNDRED)
    except (ArithmeticError, TypeError, ValueError) as exc:
        logger.warning(
            "tax_calculation_failed",
            extra={
                "invoice_id": str(invoice.id),
                "tax_rate": str(invoice.tax_rate),
                "subtotal": str(subtotal),
                "error": type(exc).__name__,
            },
        )
        return ZERO
    if not tax.is_finite():
        logger.warning(
            "tax_calculation_failed",
            extra={
                "invoice_id": str(invoice.id),
                "tax_rate": str(invoice.tax_rate),
                "subtotal": str(subtotal),
                "error": "non_finite_result",
            },
        )
        return ZERO
    return tax


def compute_amount_paid(invoice: Invoice) -> Decimal:
    """Sum of COMPLETED payment amounts."""
    return sum(
        (payment.amount for payment in invoice.payments if payment.is_completed),
        ZERO,
    )


def compute_amounts(invoice: Invoice) -> InvoiceAmounts:
    """
    Derive subtotal, tax, grand total, amount paid and amount due.

    Subtotal is the sum of line item amounts unless the caller supplied
    one explicitly; a supplied subtotal of zero is replaced by the item sum
    when items exist.  With a tax rate the tax amount is
    ``round(subtotal * rate / 100, 2)``; without one the stored tax amount
    is kept.
    """
    subtotal = _resolve_subtotal(invoice)
    tax_amount = _compute_tax(invoice, subtotal)
    discount = zero_if_none(invoice.discount)
    amount = subtotal + tax_amount - discount
    amount_paid = compute_amount_paid(invoice)
    amount_due = max(ZERO, amount - amount_paid)

    return InvoiceAmounts(
        subtotal=subtotal,
        tax_amount=tax_amount,
        discount=discount,
        amount=amount,
        amount_paid=amount_paid,
        amount_due=amount_due,
    )
