"""
Invoicing ORM Models (``billing_modules.invoicing.orm``).

Responsibility
--------------
SQLAlchemy persistence models for invoices, their line items and their
payments.  Maps the frozen records of ``billing_kernel.domain.invoice`` to
database tables.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``billing_kernel.db.base``
and the kernel domain records.  MUST NOT be imported by ``billing_kernel``
except through ``create_tables``.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_kernel.db.base import TrackedBase
from billing_kernel.domain.invoice import (
    Invoice,
    InvoiceLineItem,
    InvoiceStatus,
    Payment,
    PaymentStatus,
)

_HEADER_FIELDS = (
    "invoice_number",
    "owner_id",
    "client_id",
    "project_id",
    "issue_date",
    "due_date",
    "currency",
    "tax_rate",
    "discount",
    "subtotal",
    "subtotal_supplied",
    "tax_amount",
    "amount",
    "amount_paid",
    "amount_due",
    "payment_method",
    "description",
    "notes",
    "sent_date",
    "paid_date",
)


# ---------------------------------------------------------------------------
# 1. InvoiceModel
# ---------------------------------------------------------------------------


class InvoiceModel(TrackedBase):
    """
    ORM model for invoices.

    Maps to the ``Invoice`` frozen dataclass.  Items and payments live in
    child tables and are loaded eagerly with ``selectin``.

    Guarantees:
        - invoice_number is unique (uq_billing_invoices_invoice_number).
        - Monetary fields use Decimal (Numeric(38,9) via type_annotation_map).
        - status stored as string enum value.
    """

    __tablename__ = "billing_invoices"

    __table_args__ = (
        UniqueConstraint(
            "invoice_number", name="uq_billing_invoices_invoice_number"
        ),
        Index("idx_billing_invoices_owner_id", "owner_id"),
        Index("idx_billing_invoices_project_id", "project_id"),
        Index("idx_billing_invoices_status", "status"),
        Index("idx_billing_invoices_due_date", "due_date"),
    )

    invoice_number: Mapped[str] = mapped_column(String(100), nullable=False)
    owner_id: Mapped[UUID] = mapped_column(nullable=False)
    client_id: Mapped[UUID] = mapped_column(nullable=False)
    project_id: Mapped[UUID | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(String(50), default=InvoiceStatus.DRAFT.value)
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    tax_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    discount: Mapped[Decimal | None] = mapped_column(nullable=True)
    subtotal: Mapped[Decimal | None] = mapped_column(nullable=True)
    subtotal_supplied: Mapped[bool] = mapped_column(Boolean, default=False)
    tax_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    amount_paid: Mapped[Decimal | None] = mapped_column(nullable=True)
    amount_due: Mapped[Decimal | None] = mapped_column(nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    sent_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    paid_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    items: Mapped[list["InvoiceLineItemModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="InvoiceLineItemModel.position",
    )
    payments: Mapped[list["PaymentModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PaymentModel.position",
    )

    def to_dto(self) -> Invoice:
        """Convert ORM model to frozen dataclass."""
        return Invoice(
            id=self.id,
            status=InvoiceStatus(self.status),
            items=tuple(item.to_dto() for item in self.items),
            payments=tuple(payment.to_dto() for payment in self.payments),
            **{name: getattr(self, name) for name in _HEADER_FIELDS},
        )

    @classmethod
    def from_dto(cls, dto: Invoice, created_by_id: UUID | None = None) -> "InvoiceModel":
        """Create ORM model from frozen dataclass."""
        model = cls(id=dto.id, created_by_id=created_by_id)
        model.apply_dto(dto, updated_by_id=created_by_id)
        return model

    def apply_dto(self, dto: Invoice, updated_by_id: UUID | None = None) -> None:
        """
        Copy a frozen invoice onto this row, syncing children by id.

        Children that are still present are updated in place so that an
        unchanged id never becomes a delete plus insert.
        """
        for name in _HEADER_FIELDS:
            setattr(self, name, getattr(dto, name))
        self.status = dto.status.value
        self.updated_by_id = updated_by_id

        existing_items = {item.id: item for item in self.items}
        self.items = [
            InvoiceLineItemModel.sync(existing_items.get(item.id), item, position)
            for position, item in enumerate(dto.items)
        ]
        existing_payments = {payment.id: payment for payment in self.payments}
        self.payments = [
            PaymentModel.sync(existing_payments.get(payment.id), payment, position)
            for position, payment in enumerate(dto.payments)
        ]

    def __repr__(self) -> str:
        return f"<InvoiceModel {self.invoice_number}: {self.status}>"


# ---------------------------------------------------------------------------
# 2. InvoiceLineItemModel
# ---------------------------------------------------------------------------


class InvoiceLineItemModel(TrackedBase):
    """
    ORM model for invoice line items.

    ``amount`` is stored for reporting; ``to_dto`` recomputes it from
    quantity and unit price.
    """

    __tablename__ = "billing_invoice_items"

    __table_args__ = (
        Index("idx_billing_invoice_items_invoice_id", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("billing_invoices.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(default=0)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    invoice: Mapped["InvoiceModel"] = relationship(back_populates="items")

    def to_dto(self) -> InvoiceLineItem:
        """Convert ORM model to frozen dataclass."""
        return InvoiceLineItem(
            id=self.id,
            description=self.description,
            quantity=self.quantity,
            unit_price=self.unit_price,
        )

    @classmethod
    def sync(
        cls,
        model: "InvoiceLineItemModel | None",
        dto: InvoiceLineItem,
        position: int,
    ) -> "InvoiceLineItemModel":
        """Update ``model`` from ``dto``, creating it when absent."""
        if model is None:
            model = cls(id=dto.id)
        model.position = position
        model.description = dto.description
        model.quantity = dto.quantity
        model.unit_price = dto.unit_price
        model.amount = dto.amount
        return model

    def __repr__(self) -> str:
        return f"<InvoiceLineItemModel {self.description}: {self.amount}>"


# ---------------------------------------------------------------------------
# 3. PaymentModel
# ---------------------------------------------------------------------------


class PaymentModel(TrackedBase):
    """
    ORM model for payments applied to an invoice.

    Guarantees:
        - status stored as string enum value.
        - payment_date is timezone-aware where the backend supports it.
    """

    __tablename__ = "billing_payments"

    __table_args__ = (
        Index("idx_billing_payments_invoice_id", "invoice_id"),
        Index("idx_billing_payments_payment_date", "payment_date"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("billing_invoices.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(default=0)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    payment_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    status: Mapped[str] = mapped_column(String(50), default=PaymentStatus.PENDING.value)
    transaction_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    invoice: Mapped["InvoiceModel"] = relationship(back_populates="payments")

    def to_dto(self) -> Payment:
        """Convert ORM model to frozen dataclass."""
        return Payment(
            id=self.id,
            amount=self.amount,
            payment_date=self.payment_date,
            payment_method=self.payment_method,
            status=PaymentStatus(self.status),
            transaction_reference=self.transaction_reference,
            notes=self.notes,
        )

    @classmethod
    def sync(cls, model: "PaymentModel | None", dto: Payment, position: int) -> "PaymentModel":
        """Update ``model`` from ``dto``, creating it when absent."""
        if model is None:
            model = cls(id=dto.id)
        model.position = position
        model.amount = dto.amount
        model.payment_date = dto.payment_date
        model.payment_method = dto.payment_method
        model.status = dto.status.value
        model.transaction_reference = dto.transaction_reference
        model.notes = dto.notes
        return model

    def __repr__(self) -> str:
        return f"<PaymentModel {self.amount}: {self.status}>"
