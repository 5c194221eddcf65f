"""
Invoice domain records (``billing_kernel.domain.invoice``).

Responsibility
--------------
Frozen dataclass value objects for the invoice aggregate: the invoice
header, its owned line items and its owned payments, plus the two status
enums that drive the lifecycle.

Architecture position
---------------------
**Kernel > Domain** -- pure data definitions with ZERO I/O.  Consumed by
``billing_engines`` (calculation) and ``billing_modules`` (persistence and
services).  Items and payments are owned tuples; there are no back-pointers
to the parent invoice.

Invariants enforced
-------------------
* All records are ``frozen=True``; changes go through ``dataclasses.replace``.
* ``InvoiceLineItem.amount`` is derived from quantity and unit price at
  construction, so a replaced item always carries a fresh amount.
* Line item quantity is positive, unit price non-negative.
* Payment amount is positive.
* Currency is a three-letter code, upper-cased, ``USD`` when unset.

Failure modes
-------------
* Construction with an invalid value raises ``ValueError``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from billing_kernel.domain.values import (
    DEFAULT_CURRENCY,
    ZERO,
    normalize_currency,
    to_decimal,
)
from billing_kernel.logging_config import get_logger

logger = get_logger("domain.invoice")


class InvoiceStatus(str, Enum):
    """Invoice lifecycle states."""
    DRAFT = "DRAFT"
    SENT = "SENT"
    VIEWED = "VIEWED"
    OVERDUE = "OVERDUE"
    PAID = "PAID"
    PARTIALLY_PAID = "PARTIALLY_PAID"  # reserved, never assigned automatically
    CANCELLED = "CANCELLED"


class PaymentStatus(str, Enum):
    """Payment processing states."""
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class InvoiceLineItem:
    """A single billable line on an invoice."""
    id: UUID
    description: str
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal = field(init=False)

    def __post_init__(self) -> None:
        quantity = to_decimal(self.quantity)
        unit_price = to_decimal(self.unit_price)
        if quantity <= 0:
            logger.warning(
                "line_item_invalid_quantity",
                extra={"item_id": str(self.id), "quantity": str(quantity)},
            )
            raise ValueError("Line item quantity must be positive")
        if unit_price < 0:
            logger.warning(
                "line_item_invalid_unit_price",
                extra={"item_id": str(self.id), "unit_price": str(unit_price)},
            )
            raise ValueError("Line item unit price cannot be negative")
        object.__setattr__(self, "quantity", quantity)
        object.__setattr__(self, "unit_price", unit_price)
        object.__setattr__(self, "amount", quantity * unit_price)


@dataclass(frozen=True)
class Payment:
    """A payment applied to an invoice."""
    id: UUID
    amount: Decimal
    payment_date: datetime
    payment_method: str | None = None
    status: PaymentStatus = PaymentStatus.PENDING
    transaction_reference: str | None = None
    notes: str | None = None

    def __post_init__(self) -> None:
        amount = to_decimal(self.amount)
        if amount <= 0:
            logger.warning(
                "payment_invalid_amount",
                extra={"payment_id": str(self.id), "amount": str(amount)},
            )
            raise ValueError("Payment amount must be positive")
        object.__setattr__(self, "amount", amount)
        object.__setattr__(self, "status", PaymentStatus(self.status))

    @property
    def is_completed(self) -> bool:
        """Only completed payments count toward the amount paid."""
        return self.status is PaymentStatus.COMPLETED


@dataclass(frozen=True)
class Invoice:
    """
    An invoice issued by a freelancer (``owner_id``) to a client.

    Numeric fields may be ``None`` when loaded from storage; the amount
    calculator treats them as zero.  ``subtotal_supplied`` records whether
    the subtotal was given explicitly rather than derived from the items.
    """
    id: UUID
    invoice_number: str
    owner_id: UUID
    client_id: UUID
    issue_date: date
    due_date: date
    project_id: UUID | None = None
    status: InvoiceStatus = InvoiceStatus.DRAFT
    currency: str = DEFAULT_CURRENCY
    tax_rate: Decimal | None = None
    discount: Decimal | None = ZERO
    subtotal: Decimal | None = ZERO
    subtotal_supplied: bool = False
    tax_amount: Decimal | None = ZERO
    amount: Decimal | None = ZERO
    amount_paid: Decimal | None = ZERO
    amount_due: Decimal | None = ZERO
    payment_method: str | None = None
    description: str | None = None
    notes: str | None = None
    sent_date: date | None = None
    paid_date: date | None = None
    items: tuple[InvoiceLineItem, ...] = field(default_factory=tuple)
    payments: tuple[Payment, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "currency", normalize_currency(self.currency))
        object.__setattr__(self, "status", InvoiceStatus(self.status))
        object.__setattr__(self, "items", tuple(self.items))
        object.__setattr__(self, "payments", tuple(self.payments))

    def find_payment(self, payment_id: UUID) -> Payment | None:
        for payment in self.payments:
            if payment.id == payment_id:
                return payment
        return None

    def find_item(self, item_id: UUID) -> InvoiceLineItem | None:
        for item in self.items:
            if item.id == item_id:
                return item
        return None
