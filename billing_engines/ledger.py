"""
Module: billing_engines.ledger
Responsibility:
    Apply, remove and move payments on invoices under the no-overpayment
    constraint, reconciling the affected invoices after each change.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Operates on frozen
    ``Invoice`` records and returns new ones; persistence is the caller's
    concern.  Ownership is assumed to be checked by the caller.

Invariants enforced:
    - A COMPLETED payment never exceeds the invoice's current amount due
      (plus its own previous contribution when updated in place).
    - Payment ids are unique within an invoice.
    - Every returned invoice has been reconciled.
    - A partial COMPLETED payment on a SENT or VIEWED invoice keeps that
      status, unless reconciliation made the invoice OVERDUE.

Failure modes:
    - OverpaymentError: completed amount exceeds what is due.
    - DuplicatePaymentError: payment id already on the invoice.
    - PaymentNotFoundError: payment id not on the invoice.
    - PaidInvoicePaymentError: from ``check_removal_allowed`` only.
    On failure no record is returned, so no partial state exists.

Usage:
    ledger = PaymentLedger()
    result = ledger.add_payment(invoice, payment, as_of=clock.today())
    repo.save_invoice(result.invoice)
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from billing_engines.reconciliation import reconcile
from billing_kernel.domain.invoice import Invoice, InvoiceStatus, Payment
from billing_kernel.domain.values import ZERO, zero_if_none
from billing_kernel.exceptions import (
    DuplicatePaymentError,
    OverpaymentError,
    PaidInvoicePaymentError,
    PaymentNotFoundError,
)
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.ledger")

DEFAULT_PRESERVED_STATUSES: frozenset[InvoiceStatus] = frozenset(
    {InvoiceStatus.SENT, InvoiceStatus.VIEWED}
)


@dataclass(frozen=True)
class LedgerResult:
    """An invoice after one ledger operation, with the payment involved."""

    invoice: Invoice
    payment: Payment
    previous_status: InvoiceStatus


@dataclass(frozen=True)
class PaymentMove:
    """
    Outcome of ``update_payment``.

    ``destination`` is None when the payment stayed on the source invoice.
    """

    source: Invoice
    payment: Payment
    destination: Invoice | None = None

    @property
    def moved(self) -> bool:
        return self.destination is not None


class PaymentLedger:
    """
    Payment application rules for a single invoice (or a pair, when a
    payment moves).

    Contract:
        Stateless apart from the configured set of statuses that a partial
        payment preserves.
    """

    def __init__(
        self,
        preserve_statuses: Iterable[InvoiceStatus] = DEFAULT_PRESERVED_STATUSES,
    ):
        self._preserve_statuses = frozenset(
            InvoiceStatus(s) for s in preserve_statuses
        )

    @property
    def preserve_statuses(self) -> frozenset[InvoiceStatus]:
        return self._preserve_statuses

    # ------------------------------------------------------------------
    # Add / remove
    # ------------------------------------------------------------------

    def add_payment(self, invoice: Invoice, payment: Payment, as_of: date) -> LedgerResult:
        """
        Append ``payment`` to ``invoice`` and reconcile.

        Raises:
            DuplicatePaymentError: payment id already applied.
            OverpaymentError: COMPLETED amount exceeds the current amount due.
        """
        if invoice.find_payment(payment.id) is not None:
            logger.warning(
                "payment_duplicate_rejected",
                extra={"invoice_id": str(invoice.id), "payment_id": str(payment.id)},
            )
            raise DuplicatePaymentError(str(payment.id), str(invoice.id))

        prior_status = invoice.status
        current = reconcile(invoice, as_of)
        self._check_overpayment(current, payment, zero_if_none(current.amount_due))

        updated = reconcile(
            replace(
                current,
                payments=current.payments + (payment,),
                payment_method=current.payment_method or payment.payment_method,
            ),
            as_of,
        )

        if (
            payment.is_completed
            and zero_if_none(updated.amount_due) > ZERO
            and prior_status in self._preserve_statuses
            and updated.status is not InvoiceStatus.OVERDUE
            and updated.status is not prior_status
        ):
            logger.info(
                "payment_partial_status_preserved",
                extra={
                    "invoice_id": str(invoice.id),
                    "status": prior_status.value,
                    "computed_status": updated.status.value,
                },
            )
            updated = replace(updated, status=prior_status)

        logger.info(
            "payment_applied",
            extra={
                "invoice_id": str(invoice.id),
                "payment_id": str(payment.id),
                "amount": str(payment.amount),
                "payment_status": payment.status.value,
                "amount_due": str(updated.amount_due),
                "invoice_status": updated.status.value,
            },
        )
        return LedgerResult(invoice=updated, payment=payment, previous_status=prior_status)

    def remove_payment(self, invoice: Invoice, payment_id: UUID, as_of: date) -> LedgerResult:
        """
        Remove a payment from ``invoice`` and reconcile.

        Policy checks (see ``check_removal_allowed``) are the caller's job.

        Raises:
            PaymentNotFoundError: payment id not on the invoice.
        """
        payment = self._require_payment(invoice, payment_id)
        updated = reconcile(
            replace(
                invoice,
                payments=tuple(p for p in invoice.payments if p.id != payment_id),
            ),
            as_of,
        )
        logger.info(
            "payment_removed",
            extra={
                "invoice_id": str(invoice.id),
                "payment_id": str(payment_id),
                "amount_due": str(updated.amount_due),
                "invoice_status": updated.status.value,
            },
        )
        return LedgerResult(invoice=updated, payment=payment, previous_status=invoice.status)

    @staticmethod
    def check_removal_allowed(invoice: Invoice, payment: Payment) -> None:
        """
        Refuse to drop a COMPLETED payment while the invoice is PAID.

        Raises:
            PaidInvoicePaymentError
        """
        if invoice.status is InvoiceStatus.PAID and payment.is_completed:
            logger.warning(
                "payment_removal_rejected",
                extra={"invoice_id": str(invoice.id), "payment_id": str(payment.id)},
            )
            raise PaidInvoicePaymentError(str(payment.id), str(invoice.id))

    # ------------------------------------------------------------------
    # Update / move
    # ------------------------------------------------------------------

    def update_payment(
        self,
        source: Invoice,
        payment_id: UUID,
        updated: Payment,
        as_of: date,
        destination: Invoice | None = None,
    ) -> PaymentMove:
        """
        Replace a payment in place, or move it to ``destination``.

        In place, the new amount is checked against the amount due plus
        what the old payment contributed (only when the old one was
        COMPLETED).  When moving, the check uses the destination's own
        amount due.

        Raises:
            PaymentNotFoundError, OverpaymentError, DuplicatePaymentError
        """
        previous = self._require_payment(source, payment_id)
        updated = replace(updated, id=previous.id)
        method_changed = (
            updated.payment_method is not None
            and updated.payment_method != previous.payment_method
        )

        if destination is None or destination.id == source.id:
            current = reconcile(source, as_of)
            available = zero_if_none(current.amount_due)
            if previous.is_completed:
                available += previous.amount
            self._check_overpayment(current, updated, available)

            payments = tuple(
                updated if p.id == previous.id else p for p in current.payments
            )
            payment_method = updated.payment_method if method_changed else current.payment_method
            result = reconcile(
                replace(current, payments=payments, payment_method=payment_method),
                as_of,
            )
            logger.info(
                "payment_updated",
                extra={
                    "invoice_id": str(source.id),
                    "payment_id": str(payment_id),
                    "old_amount": str(previous.amount),
                    "new_amount": str(updated.amount),
                    "amount_due": str(result.amount_due),
                },
            )
            return PaymentMove(source=result, payment=updated)

        added = self.add_payment(destination, updated, as_of).invoice
        if method_changed and added.payment_method != updated.payment_method:
            added = replace(added, payment_method=updated.payment_method)
        removed = self.remove_payment(source, payment_id, as_of).invoice

        logger.info(
            "payment_moved",
            extra={
                "payment_id": str(payment_id),
                "from_invoice_id": str(source.id),
                "to_invoice_id": str(destination.id),
                "amount": str(updated.amount),
            },
        )
        return PaymentMove(source=removed, payment=updated, destination=added)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _require_payment(invoice: Invoice, payment_id: UUID) -> Payment:
        payment = invoice.find_payment(payment_id)
        if payment is None:
            raise PaymentNotFoundError(str(payment_id), str(invoice.id))
        return payment

    @staticmethod
    def _check_overpayment(invoice: Invoice, payment: Payment, available: Decimal) -> None:
        if payment.is_completed and payment.amount > available:
            logger.warning(
                "payment_overpayment_rejected",
                extra={
                    "invoice_id": str(invoice.id),
                    "payment_id": str(payment.id),
                    "amount": str(payment.amount),
                    "amount_due": str(available),
                },
            )
            raise OverpaymentError(str(invoice.id), payment.amount, available)
