"""
Tests for the payment ledger.

Covers:
- Adding payments: overpayment, duplicates, payment method adoption
- Partial payments and the preserved SENT / VIEWED status
- Removing payments and the paid-invoice removal guard
- Updating payments in place and moving them between invoices
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from billing_engines.ledger import DEFAULT_PRESERVED_STATUSES, PaymentLedger
from billing_engines.reconciliation import reconcile
from billing_kernel.domain.invoice import InvoiceStatus, PaymentStatus
from billing_kernel.exceptions import (
    DuplicatePaymentError,
    OverpaymentError,
    PaidInvoicePaymentError,
    PaymentNotFoundError,
)

from tests.builders import (
    TODAY,
    make_invoice,
    make_item,
    make_payment,
    scenario_a_invoice,
)


@pytest.fixture
def ledger() -> PaymentLedger:
    return PaymentLedger()


@pytest.fixture
def sent_invoice():
    return reconcile(scenario_a_invoice(status=InvoiceStatus.SENT), TODAY)


class TestAddPayment:
    def test_appends_and_reconciles(self, ledger, sent_invoice):
        payment = make_payment("37.50")

        result = ledger.add_payment(sent_invoice, payment, TODAY)

        assert result.payment is payment
        assert result.invoice.payments == (payment,)
        assert result.invoice.amount_paid == Decimal("37.50")
        assert result.invoice.amount_due == Decimal("100.00")

    def test_exact_amount_due_accepted(self, ledger, sent_invoice):
        result = ledger.add_payment(sent_invoice, make_payment("137.50"), TODAY)
        assert result.invoice.status is InvoiceStatus.PAID

    def test_overpayment_by_one_cent_rejected(self, ledger, sent_invoice):
        with pytest.raises(OverpaymentError):
            ledger.add_payment(sent_invoice, make_payment("137.51"), TODAY)

    def test_overpayment_checked_against_fresh_totals(self, ledger):
        # Stored amount_due is stale; the check must recompute it
        invoice = scenario_a_invoice(status=InvoiceStatus.SENT, amount_due=Decimal("1000"))
        with pytest.raises(OverpaymentError):
            ledger.add_payment(invoice, make_payment("200"), TODAY)

    def test_pending_payment_may_exceed_amount_due(self, ledger, sent_invoice):
        payment = make_payment("500", status=PaymentStatus.PENDING)

        result = ledger.add_payment(sent_invoice, payment, TODAY)

        assert result.invoice.amount_paid == Decimal("0")
        assert result.invoice.amount_due == Decimal("137.50")
        assert result.invoice.status is InvoiceStatus.SENT

    def test_second_payment_cannot_exceed_remaining(self, ledger, sent_invoice):
        first = ledger.add_payment(sent_invoice, make_payment("100"), TODAY).invoice
        with pytest.raises(OverpaymentError):
            ledger.add_payment(first, make_payment("40"), TODAY)

    def test_duplicate_payment_id_rejected(self, ledger, sent_invoice):
        payment = make_payment("10")
        invoice = ledger.add_payment(sent_invoice, payment, TODAY).invoice

        with pytest.raises(DuplicatePaymentError):
            ledger.add_payment(invoice, payment, TODAY)

    def test_adopts_payment_method_when_invoice_has_none(self, ledger, sent_invoice):
        result = ledger.add_payment(
            sent_invoice, make_payment("10", payment_method="bank_transfer"), TODAY
        )
        assert result.invoice.payment_method == "bank_transfer"

    def test_keeps_existing_payment_method(self, ledger):
        invoice = reconcile(
            scenario_a_invoice(status=InvoiceStatus.SENT, payment_method="card"), TODAY
        )
        result = ledger.add_payment(invoice, make_payment("10", payment_method="cash"), TODAY)
        assert result.invoice.payment_method == "card"

    def test_payment_on_invoice_without_items_rejected(self, ledger):
        invoice = make_invoice(status=InvoiceStatus.SENT)
        with pytest.raises(OverpaymentError):
            ledger.add_payment(invoice, make_payment("1"), TODAY)

    def test_logs_payment_applied(self, ledger, sent_invoice, captured_logs):
        payment = make_payment("10")

        ledger.add_payment(sent_invoice, payment, TODAY)

        applied = [r for r in captured_logs() if r["message"] == "payment_applied"]
        assert len(applied) == 1
        assert applied[0]["payment_id"] == str(payment.id)
        assert applied[0]["amount_due"] == "127.50"

    def test_logs_overpayment_rejection(self, ledger, sent_invoice, captured_logs):
        with pytest.raises(OverpaymentError):
            ledger.add_payment(sent_invoice, make_payment("200"), TODAY)

        messages = [r["message"] for r in captured_logs()]
        assert "payment_overpayment_rejected" in messages


class TestPartialPaymentStatus:
    @pytest.mark.parametrize("status", [InvoiceStatus.SENT, InvoiceStatus.VIEWED])
    def test_status_kept_before_due_date(self, ledger, status):
        invoice = scenario_a_invoice(status=status)

        result = ledger.add_payment(invoice, make_payment("50"), TODAY)

        assert result.invoice.status is status

    def test_overdue_wins_after_due_date(self, ledger):
        invoice = scenario_a_invoice(status=InvoiceStatus.VIEWED, due_date=date(2024, 3, 1))

        result = ledger.add_payment(invoice, make_payment("50"), TODAY)

        assert result.invoice.status is InvoiceStatus.OVERDUE

    def test_default_preserved_statuses(self, ledger):
        assert ledger.preserve_statuses == DEFAULT_PRESERVED_STATUSES
        assert DEFAULT_PRESERVED_STATUSES == {InvoiceStatus.SENT, InvoiceStatus.VIEWED}

    def test_preserved_statuses_accept_strings(self):
        ledger = PaymentLedger(preserve_statuses=["SENT"])
        assert ledger.preserve_statuses == {InvoiceStatus.SENT}


class TestRemovePayment:
    def test_removes_and_reconciles(self, ledger, sent_invoice):
        payment = make_payment("137.50")
        paid = ledger.add_payment(sent_invoice, payment, TODAY).invoice
        assert paid.status is InvoiceStatus.PAID

        result = ledger.remove_payment(paid, payment.id, TODAY)

        assert result.invoice.payments == ()
        assert result.invoice.amount_due == Decimal("137.50")
        assert result.invoice.status is InvoiceStatus.SENT
        assert result.invoice.paid_date is None
        assert result.previous_status is InvoiceStatus.PAID

    def test_unknown_payment(self, ledger, sent_invoice):
        with pytest.raises(PaymentNotFoundError):
            ledger.remove_payment(sent_invoice, uuid4(), TODAY)

    def test_removal_guard_blocks_completed_payment_on_paid_invoice(self, ledger, sent_invoice):
        payment = make_payment("137.50")
        paid = ledger.add_payment(sent_invoice, payment, TODAY).invoice

        with pytest.raises(PaidInvoicePaymentError) as exc_info:
            PaymentLedger.check_removal_allowed(paid, payment)

        assert exc_info.value.code == "PAID_INVOICE_PAYMENT"

    def test_removal_guard_allows_pending_payment(self, ledger, sent_invoice):
        payment = make_payment("5", status=PaymentStatus.PENDING)
        invoice = ledger.add_payment(sent_invoice, payment, TODAY).invoice
        paid = ledger.add_payment(invoice, make_payment("137.50"), TODAY).invoice

        PaymentLedger.check_removal_allowed(paid, payment)

    def test_removal_guard_allows_open_invoice(self, ledger, sent_invoice):
        payment = make_payment("10")
        invoice = ledger.add_payment(sent_invoice, payment, TODAY).invoice

        PaymentLedger.check_removal_allowed(invoice, payment)


class TestUpdatePayment:
    def test_in_place_credits_previous_amount(self, ledger, sent_invoice):
        payment = make_payment("100")
        invoice = ledger.add_payment(sent_invoice, payment, TODAY).invoice

        # 37.50 due + 100 previously paid = 137.50 available
        move = ledger.update_payment(invoice, payment.id, make_payment("137.50"), TODAY)

        assert not move.moved
        assert move.payment.id == payment.id
        assert move.source.amount_paid == Decimal("137.50")
        assert move.source.status is InvoiceStatus.PAID

    def test_in_place_overpayment_rejected(self, ledger, sent_invoice):
        payment = make_payment("100")
        invoice = ledger.add_payment(sent_invoice, payment, TODAY).invoice

        with pytest.raises(OverpaymentError):
            ledger.update_payment(invoice, payment.id, make_payment("137.51"), TODAY)

    def test_pending_previous_amount_not_credited(self, ledger, sent_invoice):
        pending = make_payment("100", status=PaymentStatus.PENDING)
        invoice = ledger.add_payment(sent_invoice, pending, TODAY).invoice
        invoice = ledger.add_payment(invoice, make_payment("100"), TODAY).invoice

        # Only 37.50 is due; the pending payment contributed nothing
        with pytest.raises(OverpaymentError):
            ledger.update_payment(invoice, pending.id, make_payment("50"), TODAY)

    def test_completing_pending_payment(self, ledger, sent_invoice):
        pending = make_payment("137.50", status=PaymentStatus.PENDING)
        invoice = ledger.add_payment(sent_invoice, pending, TODAY).invoice

        move = ledger.update_payment(invoice, pending.id, make_payment("137.50"), TODAY)

        assert move.source.status is InvoiceStatus.PAID
        assert move.source.paid_date == TODAY

    def test_changed_method_adopted(self, ledger, sent_invoice):
        payment = make_payment("10", payment_method="cash")
        invoice = ledger.add_payment(sent_invoice, payment, TODAY).invoice
        assert invoice.payment_method == "cash"

        move = ledger.update_payment(
            invoice, payment.id, make_payment("10", payment_method="card"), TODAY
        )

        assert move.source.payment_method == "card"

    def test_unknown_payment(self, ledger, sent_invoice):
        with pytest.raises(PaymentNotFoundError):
            ledger.update_payment(sent_invoice, uuid4(), make_payment("1"), TODAY)

    def test_move_to_other_invoice(self, ledger, sent_invoice):
        payment = make_payment("50")
        source = ledger.add_payment(sent_invoice, payment, TODAY).invoice
        destination = reconcile(
            make_invoice(status=InvoiceStatus.SENT, items=(make_item("1", "80"),)), TODAY
        )

        move = ledger.update_payment(
            source, payment.id, make_payment("50"), TODAY, destination=destination
        )

        assert move.moved
        assert move.source.payments == ()
        assert move.source.amount_due == Decimal("137.50")
        assert move.destination.find_payment(payment.id) is not None
        assert move.destination.amount_due == Decimal("30")

    def test_move_checks_destination_amount_due(self, ledger, sent_invoice):
        payment = make_payment("100")
        source = ledger.add_payment(sent_invoice, payment, TODAY).invoice
        destination = reconcile(
            make_invoice(status=InvoiceStatus.SENT, items=(make_item("1", "80"),)), TODAY
        )

        with pytest.raises(OverpaymentError):
            ledger.update_payment(
                source, payment.id, make_payment("100"), TODAY, destination=destination
            )

    def test_move_adopts_new_method_on_destination(self, ledger, sent_invoice):
        payment = make_payment("10", payment_method="cash")
        source = ledger.add_payment(sent_invoice, payment, TODAY).invoice
        destination = reconcile(
            make_invoice(
                status=InvoiceStatus.SENT,
                items=(make_item("1", "80"),),
                payment_method="cheque",
            ),
            TODAY,
        )

        move = ledger.update_payment(
            source,
            payment.id,
            make_payment("10", payment_method="card"),
            TODAY,
            destination=destination,
        )

        assert move.destination.payment_method == "card"

    def test_destination_equal_to_source_updates_in_place(self, ledger, sent_invoice):
        payment = make_payment("10")
        invoice = ledger.add_payment(sent_invoice, payment, TODAY).invoice

        move = ledger.update_payment(
            invoice, payment.id, make_payment("20"), TODAY, destination=invoice
        )

        assert not move.moved
        assert move.source.amount_paid == Decimal("20")
