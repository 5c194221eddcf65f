"""
Tests for invoice reconciliation and snapshots.

End-to-end scenarios:
- A: totals from items and tax
- B: full payment marks the invoice PAID
- C: partial payment before the due date keeps SENT
- D: partial payment after the due date gives OVERDUE
- E: overpayment rejected, invoice unchanged
- F: time entry hours, value, and billing
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from billing_engines.ledger import PaymentLedger
from billing_engines.reconciliation import reconcile, snapshot
from billing_engines.time_billing import TimeEntryBillingTracker
from billing_kernel.domain.invoice import InvoiceStatus, PaymentStatus
from billing_kernel.domain.project import TimeEntry
from billing_kernel.exceptions import OverpaymentError

from tests.builders import (
    TODAY,
    make_invoice,
    make_item,
    make_payment,
    make_project,
    scenario_a_invoice,
)


class TestScenarios:
    def setup_method(self):
        self.ledger = PaymentLedger()

    def test_a_totals_from_items_and_tax(self):
        invoice = reconcile(scenario_a_invoice(), TODAY)

        assert invoice.subtotal == Decimal("125")
        assert invoice.tax_amount == Decimal("12.50")
        assert invoice.amount == Decimal("137.50")
        assert invoice.amount_paid == Decimal("0")
        assert invoice.amount_due == Decimal("137.50")
        assert invoice.status is InvoiceStatus.DRAFT

    def test_b_full_payment_marks_paid(self):
        invoice = scenario_a_invoice(status=InvoiceStatus.SENT)

        result = self.ledger.add_payment(invoice, make_payment("137.50"), TODAY)

        assert result.invoice.status is InvoiceStatus.PAID
        assert result.invoice.paid_date == TODAY
        assert result.invoice.amount_due == Decimal("0")
        assert result.previous_status is InvoiceStatus.SENT

    def test_c_partial_payment_before_due_date(self):
        invoice = scenario_a_invoice(status=InvoiceStatus.SENT, due_date=date(2024, 4, 15))

        result = self.ledger.add_payment(invoice, make_payment("50"), TODAY)

        assert result.invoice.amount_paid == Decimal("50")
        assert result.invoice.amount_due == Decimal("87.50")
        assert result.invoice.status is InvoiceStatus.SENT
        assert result.invoice.paid_date is None

    def test_d_partial_payment_after_due_date(self):
        invoice = scenario_a_invoice(status=InvoiceStatus.SENT, due_date=date(2024, 3, 1))

        result = self.ledger.add_payment(invoice, make_payment("50"), TODAY)

        assert result.invoice.amount_due == Decimal("87.50")
        assert result.invoice.status is InvoiceStatus.OVERDUE

    def test_e_overpayment_rejected(self):
        invoice = reconcile(scenario_a_invoice(status=InvoiceStatus.SENT), TODAY)

        with pytest.raises(OverpaymentError) as exc_info:
            self.ledger.add_payment(invoice, make_payment("200"), TODAY)

        assert exc_info.value.code == "OVERPAYMENT"
        assert exc_info.value.amount_due == "137.50"
        assert invoice.payments == ()
        assert invoice.amount_due == Decimal("137.50")

    def test_f_time_entry_value_then_billed(self):
        owner = uuid4()
        project = make_project(owner, hourly_rate=Decimal("40"))
        tracker = TimeEntryBillingTracker()
        entry = tracker.record_duration(
            TimeEntry(
                id=uuid4(),
                project_id=project.id,
                user_id=owner,
                start_time=datetime(2024, 3, 1, 10, 0),
                end_time=datetime(2024, 3, 1, 11, 30),
            )
        )

        assert entry.duration_seconds == 5400
        assert entry.hours == Decimal("1.50")
        assert tracker.unbilled_amount([entry], project) == Decimal("60.00")

        billed = tracker.mark_billed([entry], [entry.id], uuid4(), owner)

        assert tracker.unbilled_amount(billed, project) == Decimal("0")


class TestReconcile:
    def test_input_not_mutated(self):
        invoice = scenario_a_invoice()
        reconcile(invoice, TODAY)
        assert invoice.amount == Decimal("0")

    def test_idempotent(self):
        invoice = scenario_a_invoice(
            status=InvoiceStatus.SENT,
            due_date=date(2024, 3, 1),
            payments=(make_payment("40"),),
        )
        once = reconcile(invoice, TODAY)
        assert reconcile(once, TODAY) == once

    def test_status_runs_without_payments(self):
        invoice = make_invoice(
            status=InvoiceStatus.PAID,
            items=(make_item("1", "10"),),
            paid_date=date(2024, 3, 2),
        )

        result = reconcile(invoice, TODAY)

        assert result.status is InvoiceStatus.SENT
        assert result.paid_date is None

    def test_pending_payment_does_not_pay(self):
        invoice = scenario_a_invoice(
            status=InvoiceStatus.SENT,
            payments=(make_payment("137.50", status=PaymentStatus.PENDING),),
        )

        result = reconcile(invoice, TODAY)

        assert result.amount_paid == Decimal("0")
        assert result.status is InvoiceStatus.SENT

    def test_logs_status_change(self, captured_logs):
        invoice = scenario_a_invoice(
            status=InvoiceStatus.SENT, payments=(make_payment("137.50"),)
        )

        reconcile(invoice, TODAY)

        changes = [r for r in captured_logs() if r["message"] == "invoice_status_changed"]
        assert len(changes) == 1
        assert changes[0]["from_status"] == "SENT"
        assert changes[0]["to_status"] == "PAID"

    def test_no_status_log_when_unchanged(self, captured_logs):
        reconcile(scenario_a_invoice(), TODAY)
        messages = [r["message"] for r in captured_logs()]
        assert "invoice_status_changed" not in messages

    def test_emits_engine_trace(self, captured_logs):
        reconcile(scenario_a_invoice(), TODAY)

        traces = [r for r in captured_logs() if r["message"] == "BILLING_ENGINE_TRACE"]
        assert traces
        assert traces[0]["engine_name"] == "reconciliation"
        assert len(traces[0]["input_fingerprint"]) == 16


class TestSnapshot:
    def test_rounds_to_two_places(self):
        invoice = reconcile(
            make_invoice(items=(make_item("3", "0.3333"),), status=InvoiceStatus.SENT),
            TODAY,
        )

        view = snapshot(invoice, TODAY)

        assert invoice.subtotal == Decimal("0.9999")
        assert view.subtotal == Decimal("1.00")
        assert view.amount_due == Decimal("1.00")

    def test_counts_and_overdue_flag(self):
        invoice = reconcile(
            scenario_a_invoice(
                status=InvoiceStatus.SENT,
                due_date=date(2024, 3, 1),
                payments=(make_payment("10"), make_payment("5")),
            ),
            TODAY,
        )

        view = snapshot(invoice, TODAY)

        assert view.item_count == 2
        assert view.payment_count == 2
        assert view.is_overdue
        assert view.status is InvoiceStatus.OVERDUE
        assert view.invoice_number == invoice.invoice_number

    def test_paid_invoice_not_overdue(self):
        invoice = reconcile(
            scenario_a_invoice(
                status=InvoiceStatus.SENT,
                due_date=date(2024, 3, 1),
                payments=(make_payment("137.50"),),
            ),
            TODAY,
        )
        assert not snapshot(invoice, TODAY).is_overdue

    def test_custom_precision(self):
        invoice = reconcile(make_invoice(items=(make_item("3", "0.3333"),)), TODAY)
        assert snapshot(invoice, TODAY, places=Decimal("0.001")).subtotal == Decimal("1.000")
