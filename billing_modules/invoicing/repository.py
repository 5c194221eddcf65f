"""
Invoice repositories (``billing_modules.invoicing.repository``).

Responsibility
--------------
Load and save invoice aggregates (header, items, payments) as frozen
``Invoice`` records.  Two implementations share one protocol:

* ``InMemoryInvoiceRepository`` -- dict-backed, for tests and embedding.
* ``SqlAlchemyInvoiceRepository`` -- session-backed, ORM in ``orm.py``.

Invariants enforced
-------------------
* ``load_invoice`` never returns None; unknown ids raise
  ``InvoiceNotFoundError``.
* Invoice numbers are unique (the SQL table carries a unique constraint;
  the in-memory store checks on save).
* ``for_update=True`` issues ``SELECT ... FOR UPDATE`` where the backend
  supports it, so concurrent payment application is serialized by the
  database rather than by this package.
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from billing_kernel.domain.invoice import Invoice
from billing_kernel.exceptions import DuplicateInvoiceNumberError, InvoiceNotFoundError
from billing_kernel.logging_config import get_logger
from billing_modules.invoicing.orm import InvoiceModel, PaymentModel

logger = get_logger("modules.invoicing.repository")


class InvoiceRepository(Protocol):
    """Persistence contract for invoice aggregates."""

    def load_invoice(self, invoice_id: UUID, *, for_update: bool = False) -> Invoice: ...

    def save_invoice(self, invoice: Invoice, actor_id: UUID | None = None) -> Invoice: ...

    def delete_invoice(self, invoice_id: UUID) -> None: ...

    def find_by_project(self, project_id: UUID) -> list[Invoice]: ...

    def find_by_owner(self, owner_id: UUID) -> list[Invoice]: ...

    def find_by_invoice_number(self, invoice_number: str) -> Invoice | None: ...

    def find_by_payment(self, payment_id: UUID) -> Invoice | None: ...


class InMemoryInvoiceRepository:
    """Dict-backed invoice store.  Records are immutable, so no copying."""

    def __init__(self, invoices: list[Invoice] | None = None):
        self._invoices: dict[UUID, Invoice] = {}
        for invoice in invoices or ():
            self.save_invoice(invoice)

    def load_invoice(self, invoice_id: UUID, *, for_update: bool = False) -> Invoice:
        try:
            return self._invoices[invoice_id]
        except KeyError:
            raise InvoiceNotFoundError(str(invoice_id)) from None

    def save_invoice(self, invoice: Invoice, actor_id: UUID | None = None) -> Invoice:
        clash = self.find_by_invoice_number(invoice.invoice_number)
        if clash is not None and clash.id != invoice.id:
            raise DuplicateInvoiceNumberError(invoice.invoice_number)
        self._invoices[invoice.id] = invoice
        return invoice

    def delete_invoice(self, invoice_id: UUID) -> None:
        if self._invoices.pop(invoice_id, None) is None:
            raise InvoiceNotFoundError(str(invoice_id))

    def find_by_project(self, project_id: UUID) -> list[Invoice]:
        return [inv for inv in self._invoices.values() if inv.project_id == project_id]

    def find_by_owner(self, owner_id: UUID) -> list[Invoice]:
        return [inv for inv in self._invoices.values() if inv.owner_id == owner_id]

    def find_by_invoice_number(self, invoice_number: str) -> Invoice | None:
        for inv in self._invoices.values():
            if inv.invoice_number == invoice_number:
                return inv
        return None

    def find_by_payment(self, payment_id: UUID) -> Invoice | None:
        for inv in self._invoices.values():
            if inv.find_payment(payment_id) is not None:
                return inv
        return None


class SqlAlchemyInvoiceRepository:
    """
    Session-backed invoice store.

    The caller owns the transaction boundary (see
    ``billing_kernel.db.session_scope``); this class only flushes.
    """

    def __init__(self, session: Session):
        self._session = session

    def _get_model(self, invoice_id: UUID, for_update: bool = False) -> InvoiceModel:
        stmt = select(InvoiceModel).where(InvoiceModel.id == invoice_id)
        if for_update:
            stmt = stmt.with_for_update()
        model = self._session.execute(stmt).scalar_one_or_none()
        if model is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return model

    def load_invoice(self, invoice_id: UUID, *, for_update: bool = False) -> Invoice:
        return self._get_model(invoice_id, for_update).to_dto()

    def save_invoice(self, invoice: Invoice, actor_id: UUID | None = None) -> Invoice:
        model = self._session.get(InvoiceModel, invoice.id)
        if model is None:
            clash = self.find_by_invoice_number(invoice.invoice_number)
            if clash is not None:
                raise DuplicateInvoiceNumberError(invoice.invoice_number)
            model = InvoiceModel.from_dto(invoice, created_by_id=actor_id)
            self._session.add(model)
        else:
            model.apply_dto(invoice, updated_by_id=actor_id)
        self._session.flush()
        logger.debug(
            "invoice_saved",
            extra={"invoice_id": str(invoice.id), "status": invoice.status.value},
        )
        return invoice

    def delete_invoice(self, invoice_id: UUID) -> None:
        self._session.delete(self._get_model(invoice_id))
        self._session.flush()

    def find_by_project(self, project_id: UUID) -> list[Invoice]:
        stmt = (
            select(InvoiceModel)
            .where(InvoiceModel.project_id == project_id)
            .order_by(InvoiceModel.issue_date, InvoiceModel.invoice_number)
        )
        return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    def find_by_owner(self, owner_id: UUID) -> list[Invoice]:
        stmt = (
            select(InvoiceModel)
            .where(InvoiceModel.owner_id == owner_id)
            .order_by(InvoiceModel.issue_date, InvoiceModel.invoice_number)
        )
        return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    def find_by_invoice_number(self, invoice_number: str) -> Invoice | None:
        stmt = select(InvoiceModel).where(InvoiceModel.invoice_number == invoice_number)
        model = self._session.execute(stmt).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def find_by_payment(self, payment_id: UUID) -> Invoice | None:
        stmt = (
            select(InvoiceModel)
            .join(PaymentModel, PaymentModel.invoice_id == InvoiceModel.id)
            .where(PaymentModel.id == payment_id)
        )
        model = self._session.execute(stmt).scalar_one_or_none()
        return model.to_dto() if model is not None else None
