"""
Billing Engines - pure calculation layer.

Every engine is a pure function (or a stateless class) over the frozen
records in ``billing_kernel.domain``: no database, no clock, no I/O.

Engines:
    - amounts: subtotal, tax, grand total, amount paid, amount due
    - invoice_status: lifecycle status and paid date from totals
    - reconciliation: amounts then status, plus display snapshot
    - ledger: payment add / remove / update / move with overpayment checks
    - time_billing: durations, billed flags, unbilled hours and amounts
    - budget: per-project budget, timeline and monthly breakdown

Usage:
    from billing_engines import PaymentLedger, reconcile

    invoice = reconcile(invoice, as_of=date.today())
    result = PaymentLedger().add_payment(invoice, payment, as_of=date.today())
"""

from billing_engines.amounts import (
    InvoiceAmounts,
    compute_amount_paid,
    compute_amounts,
    compute_line_amount,
)
from billing_engines.budget import (
    BudgetSummary,
    MonthlyBreakdown,
    ProjectBudgetAggregator,
)
from billing_engines.invoice_status import StatusDecision, compute_status, is_overdue
from billing_engines.ledger import (
    DEFAULT_PRESERVED_STATUSES,
    LedgerResult,
    PaymentLedger,
    PaymentMove,
)
from billing_engines.reconciliation import InvoiceSnapshot, reconcile, snapshot
from billing_engines.time_billing import TimeEntryBillingTracker, TimeSummary
from billing_engines.tracer import traced_engine

__all__ = [
    # Amounts
    "InvoiceAmounts",
    "compute_amount_paid",
    "compute_amounts",
    "compute_line_amount",
    # Status
    "StatusDecision",
    "compute_status",
    "is_overdue",
    # Reconciliation
    "InvoiceSnapshot",
    "reconcile",
    "snapshot",
    # Ledger
    "DEFAULT_PRESERVED_STATUSES",
    "LedgerResult",
    "PaymentLedger",
    "PaymentMove",
    # Time billing
    "TimeEntryBillingTracker",
    "TimeSummary",
    # Budget
    "BudgetSummary",
    "MonthlyBreakdown",
    "ProjectBudgetAggregator",
    # Tracing
    "traced_engine",
]
