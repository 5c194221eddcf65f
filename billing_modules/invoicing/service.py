"""
Invoicing Module Service - Orchestrates invoice and payment operations via engines.

Thin glue layer that:
1. Loads invoices through an InvoiceRepository and checks ownership
2. Calls reconcile() for totals and status after every change
3. Calls PaymentLedger for payment application, removal and moves
4. Delegates time entry billing to TimeEntryService
5. Saves the resulting records

All computation lives in engines.  The caller owns the transaction
boundary (``session_scope`` for the SQLAlchemy repositories); a raised
error means nothing was saved by the failing call.

Usage:
    service = InvoiceService(repo, time_entries_repo, config, clock)
    invoice = service.create_invoice(
        principal, client_id=client_id,
        issue_date=date(2024, 3, 1), due_date=date(2024, 3, 31),
        items=[InvoiceLineItem(uuid4(), "Design", Decimal("2"), Decimal("50"))],
        tax_rate=Decimal("10"),
    )
    result = service.record_payment(
        principal, invoice.id, amount=Decimal("50.00"), status=PaymentStatus.COMPLETED,
    )
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Sequence
from uuid import UUID, uuid4

from billing_config import BillingConfig, get_active_config
from billing_engines.invoice_status import is_overdue
from billing_engines.ledger import LedgerResult, PaymentLedger, PaymentMove
from billing_engines.reconciliation import InvoiceSnapshot, reconcile, snapshot
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.invoice import (
    Invoice,
    InvoiceLineItem,
    InvoiceStatus,
    Payment,
    PaymentStatus,
)
from billing_kernel.domain.project import TimeEntry
from billing_kernel.domain.values import ZERO, Principal, normalize_currency, zero_if_none
from billing_kernel.exceptions import (
    ConfigurationError,
    DuplicateInvoiceNumberError,
    InvoiceNotDeletableError,
    InvoiceNotEditableError,
    InvoiceNotFoundError,
    NothingToSettleError,
    PaymentNotFoundError,
)
from billing_kernel.logging_config import LogContext, get_logger
from billing_modules.invoicing.repository import InvoiceRepository
from billing_modules.time_tracking.repository import TimeEntryRepository
from billing_modules.time_tracking.service import TimeEntryService

logger = get_logger("modules.invoicing.service")

_NUMBER_ATTEMPTS = 5


class InvoiceService:
    """
    Invoice and payment operations on behalf of a ``Principal``.

    Engine composition:
    - reconcile: totals then status after every mutation
    - PaymentLedger: overpayment checks and payment bookkeeping

    Invoices owned by someone else are reported as not found.
    """

    def __init__(
        self,
        invoices: InvoiceRepository,
        time_entries: TimeEntryRepository | None = None,
        config: BillingConfig | None = None,
        clock: Clock | None = None,
    ):
        self._invoices = invoices
        self._config = config or get_active_config()
        self._clock = clock or SystemClock()
        self._ledger = PaymentLedger(self._config.preserve_status_on_partial_payment)
        self._time_service = (
            TimeEntryService(time_entries, clock=self._clock)
            if time_entries is not None
            else None
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _today(self) -> date:
        return self._clock.today()

    def _load_owned(
        self,
        principal: Principal,
        invoice_id: UUID,
        *,
        for_update: bool = False,
    ) -> Invoice:
        invoice = self._invoices.load_invoice(invoice_id, for_update=for_update)
        if not principal.owns(invoice.owner_id):
            logger.warning(
                "invoice_access_denied",
                extra={"invoice_id": str(invoice_id), "code": InvoiceNotFoundError.code},
            )
            raise InvoiceNotFoundError(str(invoice_id))
        return invoice

    def _require_editable(self, invoice: Invoice) -> None:
        if invoice.status in self._config.non_editable_statuses:
            logger.warning(
                "invoice_edit_rejected",
                extra={
                    "invoice_id": str(invoice.id),
                    "status": invoice.status.value,
                    "code": InvoiceNotEditableError.code,
                },
            )
            raise InvoiceNotEditableError(str(invoice.id), invoice.status.value)

    def _save(self, principal: Principal, invoice: Invoice) -> Invoice:
        return self._invoices.save_invoice(invoice, actor_id=principal.user_id)

    def _generate_invoice_number(self) -> str:
        today = self._today()
        for _ in range(_NUMBER_ATTEMPTS):
            number = (
                f"{self._config.invoice_number_prefix}-{today:%Y-%m}-"
                f"{uuid4().hex[:8].upper()}"
            )
            if self._invoices.find_by_invoice_number(number) is None:
                return number
        raise DuplicateInvoiceNumberError(number)

    # =========================================================================
    # Invoices
    # =========================================================================

    def create_invoice(
        self,
        principal: Principal,
        *,
        client_id: UUID,
        issue_date: date,
        due_date: date,
        items: Sequence[InvoiceLineItem] = (),
        project_id: UUID | None = None,
        invoice_number: str | None = None,
        status: InvoiceStatus = InvoiceStatus.DRAFT,
        currency: str | None = None,
        tax_rate: Decimal | None = None,
        discount: Decimal | None = None,
        subtotal: Decimal | None = None,
        tax_amount: Decimal | None = None,
        payment_method: str | None = None,
        description: str | None = None,
        notes: str | None = None,
        invoice_id: UUID | None = None,
    ) -> Invoice:
        """
        Create and save a reconciled invoice owned by the caller.

        Raises:
            DuplicateInvoiceNumberError: ``invoice_number`` already in use.
        """
        if invoice_number:
            if self._invoices.find_by_invoice_number(invoice_number) is not None:
                logger.warning(
                    "invoice_number_rejected",
                    extra={
                        "invoice_number": invoice_number,
                        "code": DuplicateInvoiceNumberError.code,
                    },
                )
                raise DuplicateInvoiceNumberError(invoice_number)
        else:
            invoice_number = self._generate_invoice_number()

        invoice = Invoice(
            id=invoice_id or uuid4(),
            invoice_number=invoice_number,
            owner_id=principal.user_id,
            client_id=client_id,
            project_id=project_id,
            issue_date=issue_date,
            due_date=due_date,
            status=status,
            currency=normalize_currency(currency, self._config.default_currency),
            tax_rate=tax_rate,
            discount=zero_if_none(discount),
            subtotal=zero_if_none(subtotal),
            subtotal_supplied=subtotal is not None,
            tax_amount=zero_if_none(tax_amount),
            payment_method=payment_method,
            description=description,
            notes=notes,
            items=tuple(items),
        )

        with LogContext.bind(actor_id=principal.user_id, invoice_id=invoice.id):
            invoice = self._save(principal, reconcile(invoice, self._today()))
            logger.info(
                "invoice_created",
                extra={
                    "invoice_number": invoice.invoice_number,
                    "amount": str(invoice.amount),
                    "item_count": len(invoice.items),
                },
            )
        return invoice

    def update_invoice(
        self,
        principal: Principal,
        invoice_id: UUID,
        *,
        client_id: UUID | None = None,
        project_id: UUID | None = None,
        issue_date: date | None = None,
        due_date: date | None = None,
        currency: str | None = None,
        tax_rate: Decimal | None = None,
        discount: Decimal | None = None,
        subtotal: Decimal | None = None,
        payment_method: str | None = None,
        description: str | None = None,
        notes: str | None = None,
        items: Sequence[InvoiceLineItem] | None = None,
        clear_tax_rate: bool = False,
        clear_subtotal: bool = False,
    ) -> Invoice:
        """
        Change header fields and, when given, replace the line items.

        Arguments left as None keep their current value.  ``clear_tax_rate``
        drops the tax rate together with the tax it produced;
        ``clear_subtotal`` goes back to a subtotal derived from the items.

        Raises:
            InvoiceNotEditableError: invoice is PAID.
        """
        invoice = self._load_owned(principal, invoice_id, for_update=True)
        self._require_editable(invoice)

        changes: dict = {
            name: value
            for name, value in (
                ("client_id", client_id),
                ("project_id", project_id),
                ("issue_date", issue_date),
                ("due_date", due_date),
                ("tax_rate", tax_rate),
                ("discount", discount),
                ("payment_method", payment_method),
                ("description", description),
                ("notes", notes),
            )
            if value is not None
        }
        if currency is not None:
            changes["currency"] = normalize_currency(currency, self._config.default_currency)
        if clear_tax_rate:
            changes["tax_rate"] = None
            changes["tax_amount"] = ZERO
        if subtotal is not None:
            changes["subtotal"] = subtotal
            changes["subtotal_supplied"] = True
        elif clear_subtotal:
            changes["subtotal"] = ZERO
            changes["subtotal_supplied"] = False
        if items is not None:
            changes["items"] = tuple(items)

        with LogContext.bind(actor_id=principal.user_id, invoice_id=invoice_id):
            updated = self._save(principal, reconcile(replace(invoice, **changes), self._today()))
            logger.info(
                "invoice_updated",
                extra={"fields": sorted(changes), "amount": str(updated.amount)},
            )
        return updated

    def add_item(self, principal: Principal, invoice_id: UUID, item: InvoiceLineItem) -> Invoice:
        """Append a line item and reconcile.  Forbidden while PAID."""
        invoice = self._load_owned(principal, invoice_id, for_update=True)
        self._require_editable(invoice)
        updated = reconcile(replace(invoice, items=invoice.items + (item,)), self._today())
        logger.info(
            "invoice_item_added",
            extra={"invoice_id": str(invoice_id), "item_id": str(item.id)},
        )
        return self._save(principal, updated)

    def remove_item(self, principal: Principal, invoice_id: UUID, item_id: UUID) -> Invoice:
        """Drop a line item (absent ids are ignored) and reconcile."""
        invoice = self._load_owned(principal, invoice_id, for_update=True)
        self._require_editable(invoice)
        items = tuple(item for item in invoice.items if item.id != item_id)
        updated = reconcile(replace(invoice, items=items), self._today())
        logger.info(
            "invoice_item_removed",
            extra={
                "invoice_id": str(invoice_id),
                "item_id": str(item_id),
                "found": len(items) != len(invoice.items),
            },
        )
        return self._save(principal, updated)

    def delete_invoice(self, principal: Principal, invoice_id: UUID) -> None:
        """
        Delete an invoice together with its items and payments.

        Raises:
            InvoiceNotDeletableError: invoice is SENT or PAID.
        """
        invoice = self._load_owned(principal, invoice_id, for_update=True)
        if invoice.status in self._config.non_deletable_statuses:
            logger.warning(
                "invoice_delete_rejected",
                extra={
                    "invoice_id": str(invoice_id),
                    "status": invoice.status.value,
                    "code": InvoiceNotDeletableError.code,
                },
            )
            raise InvoiceNotDeletableError(str(invoice_id), invoice.status.value)
        self._invoices.delete_invoice(invoice_id)
        logger.info("invoice_deleted", extra={"invoice_id": str(invoice_id)})

    def get_invoice(self, principal: Principal, invoice_id: UUID) -> Invoice:
        return self._load_owned(principal, invoice_id)

    def get_snapshot(self, principal: Principal, invoice_id: UUID) -> InvoiceSnapshot:
        """Display view with totals rounded to the configured places."""
        invoice = self._load_owned(principal, invoice_id)
        return snapshot(invoice, self._today(), self._config.money_quantum)

    def overdue_invoices(self, principal: Principal) -> list[Invoice]:
        """Caller's invoices past due and neither PAID nor CANCELLED."""
        today = self._today()
        return [
            inv
            for inv in self._invoices.find_by_owner(principal.user_id)
            if is_overdue(inv, today)
        ]

    # =========================================================================
    # Status transitions
    # =========================================================================

    def mark_sent(self, principal: Principal, invoice_id: UUID) -> Invoice:
        invoice = self._load_owned(principal, invoice_id, for_update=True)
        updated = reconcile(
            replace(invoice, status=InvoiceStatus.SENT, sent_date=self._today()),
            self._today(),
        )
        logger.info(
            "invoice_sent",
            extra={"invoice_id": str(invoice_id), "from_status": invoice.status.value},
        )
        return self._save(principal, updated)

    def mark_viewed(self, principal: Principal, invoice_id: UUID) -> Invoice:
        """SENT becomes VIEWED; any other status is left alone."""
        invoice = self._load_owned(principal, invoice_id, for_update=True)
        if invoice.status is not InvoiceStatus.SENT:
            return invoice
        logger.info("invoice_viewed", extra={"invoice_id": str(invoice_id)})
        return self._save(principal, replace(invoice, status=InvoiceStatus.VIEWED))

    def update_status(
        self,
        principal: Principal,
        invoice_id: UUID,
        status: InvoiceStatus,
    ) -> Invoice:
        """
        Explicit status change.

        PAID is routed through ``mark_paid`` so that a settlement payment
        backs it; CANCELLED through ``cancel_invoice``.
        """
        status = InvoiceStatus(status)
        if status is InvoiceStatus.PAID:
            return self.mark_paid(principal, invoice_id)
        if status is InvoiceStatus.CANCELLED:
            return self.cancel_invoice(principal, invoice_id)

        invoice = self._load_owned(principal, invoice_id, for_update=True)
        changes: dict = {"status": status}
        if status is InvoiceStatus.SENT and invoice.sent_date is None:
            changes["sent_date"] = self._today()
        logger.info(
            "invoice_status_updated",
            extra={
                "invoice_id": str(invoice_id),
                "from_status": invoice.status.value,
                "to_status": status.value,
            },
        )
        return self._save(principal, replace(invoice, **changes))

    def mark_paid(self, principal: Principal, invoice_id: UUID) -> Invoice:
        """
        Settle the outstanding balance.

        Records a COMPLETED payment for the amount due (method: the
        invoice's own, else the configured settlement method), so the
        amount invariants keep holding and reconciliation yields PAID.

        Raises:
            NothingToSettleError: nothing is due and nothing was paid
                (a zero-total invoice), so PAID would not hold.
        """
        invoice = reconcile(
            self._load_owned(principal, invoice_id, for_update=True),
            self._today(),
        )
        with LogContext.bind(actor_id=principal.user_id, invoice_id=invoice_id):
            if zero_if_none(invoice.amount_due) <= ZERO and invoice.amount_paid <= ZERO:
                logger.warning(
                    "invoice_mark_paid_rejected",
                    extra={
                        "status": invoice.status.value,
                        "code": NothingToSettleError.code,
                    },
                )
                raise NothingToSettleError(str(invoice_id))
            if zero_if_none(invoice.amount_due) > ZERO:
                settlement = Payment(
                    id=uuid4(),
                    amount=invoice.amount_due,
                    payment_date=self._clock.now(),
                    payment_method=invoice.payment_method
                    or self._config.settlement_payment_method,
                    status=PaymentStatus.COMPLETED,
                    notes="Settlement recorded when marking the invoice paid",
                )
                invoice = self._ledger.add_payment(invoice, settlement, self._today()).invoice
                logger.info(
                    "invoice_settlement_recorded",
                    extra={"payment_id": str(settlement.id), "amount": str(settlement.amount)},
                )
            logger.info("invoice_marked_paid", extra={"paid_date": invoice.paid_date})
            return self._save(principal, invoice)

    def cancel_invoice(self, principal: Principal, invoice_id: UUID) -> Invoice:
        """Forbidden while PAID."""
        invoice = self._load_owned(principal, invoice_id, for_update=True)
        self._require_editable(invoice)
        logger.info(
            "invoice_cancelled",
            extra={"invoice_id": str(invoice_id), "from_status": invoice.status.value},
        )
        return self._save(principal, replace(invoice, status=InvoiceStatus.CANCELLED))

    # =========================================================================
    # Payments
    # =========================================================================

    def record_payment(
        self,
        principal: Principal,
        invoice_id: UUID,
        *,
        amount: Decimal,
        payment_date: datetime | None = None,
        payment_method: str | None = None,
        status: PaymentStatus = PaymentStatus.PENDING,
        transaction_reference: str | None = None,
        notes: str | None = None,
        payment_id: UUID | None = None,
    ) -> LedgerResult:
        """
        Apply a new payment to an invoice.

        Raises:
            OverpaymentError: COMPLETED amount exceeds the amount due.
        """
        invoice = self._load_owned(principal, invoice_id, for_update=True)
        payment = Payment(
            id=payment_id or uuid4(),
            amount=amount,
            payment_date=payment_date or self._clock.now(),
            payment_method=payment_method,
            status=status,
            transaction_reference=transaction_reference,
            notes=notes,
        )
        with LogContext.bind(
            actor_id=principal.user_id, invoice_id=invoice_id, payment_id=payment.id
        ):
            result = self._ledger.add_payment(invoice, payment, self._today())
            self._save(principal, result.invoice)
        return result

    def _load_by_payment(self, principal: Principal, payment_id: UUID) -> Invoice:
        invoice = self._invoices.find_by_payment(payment_id)
        if invoice is None or not principal.owns(invoice.owner_id):
            logger.warning(
                "payment_access_denied",
                extra={"payment_id": str(payment_id), "code": PaymentNotFoundError.code},
            )
            raise PaymentNotFoundError(str(payment_id))
        return self._invoices.load_invoice(invoice.id, for_update=True)

    def update_payment(
        self,
        principal: Principal,
        payment_id: UUID,
        *,
        amount: Decimal | None = None,
        payment_date: datetime | None = None,
        payment_method: str | None = None,
        status: PaymentStatus | None = None,
        transaction_reference: str | None = None,
        notes: str | None = None,
        invoice_id: UUID | None = None,
    ) -> PaymentMove:
        """
        Change a payment, optionally moving it to another of the caller's
        invoices (``invoice_id``).

        Raises:
            PaymentNotFoundError, InvoiceNotFoundError, OverpaymentError
        """
        source = self._load_by_payment(principal, payment_id)
        previous = source.find_payment(payment_id)
        changes: dict = {
            name: value
            for name, value in (
                ("amount", amount),
                ("payment_date", payment_date),
                ("payment_method", payment_method),
                ("status", status),
                ("transaction_reference", transaction_reference),
                ("notes", notes),
            )
            if value is not None
        }
        updated = replace(previous, **changes)

        destination = None
        if invoice_id is not None and invoice_id != source.id:
            destination = self._load_owned(principal, invoice_id, for_update=True)

        with LogContext.bind(actor_id=principal.user_id, payment_id=payment_id):
            move = self._ledger.update_payment(
                source, payment_id, updated, self._today(), destination=destination
            )
            self._save(principal, move.source)
            if move.destination is not None:
                self._save(principal, move.destination)
        return move

    def delete_payment(self, principal: Principal, payment_id: UUID) -> LedgerResult:
        """
        Remove a payment.

        Raises:
            PaidInvoicePaymentError: COMPLETED payment on a PAID invoice.
        """
        invoice = self._load_by_payment(principal, payment_id)
        self._ledger.check_removal_allowed(invoice, invoice.find_payment(payment_id))
        with LogContext.bind(actor_id=principal.user_id, payment_id=payment_id):
            result = self._ledger.remove_payment(invoice, payment_id, self._today())
            self._save(principal, result.invoice)
        return result

    def invoice_payments(self, principal: Principal, invoice_id: UUID) -> tuple[Payment, ...]:
        return self._load_owned(principal, invoice_id).payments

    # =========================================================================
    # Time billing
    # =========================================================================

    def bill_time_entries(
        self,
        principal: Principal,
        invoice_id: UUID,
        entry_ids: Iterable[UUID],
    ) -> list[TimeEntry]:
        """Mark the caller's time entries as billed on one of their invoices."""
        if self._time_service is None:
            raise ConfigurationError("time_entries", "no time entry repository configured")
        invoice = self._load_owned(principal, invoice_id)
        with LogContext.bind(actor_id=principal.user_id, invoice_id=invoice_id):
            return self._time_service.mark_billed(principal, entry_ids, invoice.id)
