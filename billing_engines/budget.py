"""
Module: billing_engines.budget
Responsibility:
    Compose a project's invoices, payments and time entries into a budget
    and timeline summary with a per-month breakdown.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  ``as_of`` is supplied by
    the caller.  Delegates unbilled figures to TimeEntryBillingTracker.

Invariants enforced:
    - Inputs are never mutated; the summary is always recomputed.
    - invoiced_amount sums each invoice's amount_paid, and paid_amount
      sums every payment regardless of status.  Both are reported as-is.
    - remaining_budget >= 0.
    - Utilization and timeline deviation are zero when there is no budget.
    - Timeline deviation subtracts the unrounded elapsed percentage; only
      the reported time_percent_elapsed is rounded to 2 places.
    - The monthly breakdown covers every calendar month from the start
      month to the end month inclusive.

Failure modes:
    - None.  Missing budget, rate or dates produce zero figures.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Iterator, Sequence
from uuid import UUID

from billing_engines.time_billing import TimeEntryBillingTracker
from billing_engines.tracer import traced_engine
from billing_kernel.domain.invoice import Invoice, InvoiceStatus
from billing_kernel.domain.project import Project, TimeEntry
from billing_kernel.domain.values import (
    FOUR_PLACES,
    HUNDRED,
    ZERO,
    round_money,
    zero_if_none,
)
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.budget")


@dataclass(frozen=True)
class MonthlyBreakdown:
    """Figures for one calendar month of a project."""

    year: int
    month: int
    invoiced_amount: Decimal
    paid_amount: Decimal
    hours: Decimal
    total_value: Decimal

    @property
    def label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True)
class BudgetSummary:
    """
    Budget and timeline snapshot for one project.

    Guarantees:
        - pending_amount == invoiced_amount - paid_amount.
        - potential_final_value == invoiced_amount + unbilled_amount.
        - is_over_budget == (budget_utilization_percentage > 100).
    """

    project_id: UUID
    project_name: str
    currency: str
    budget: Decimal | None
    hourly_rate: Decimal | None
    invoiced_amount: Decimal
    paid_amount: Decimal
    pending_amount: Decimal
    unbilled_amount: Decimal
    potential_final_value: Decimal
    budget_utilization_percentage: Decimal
    remaining_budget: Decimal
    is_over_budget: bool
    total_hours: Decimal
    billable_hours: Decimal
    billed_hours: Decimal
    unbilled_hours: Decimal
    total_invoices: int
    paid_invoices: int
    pending_invoices: int
    overdue_invoices: int
    start_date: date | None
    end_date: date | None
    total_days: int
    elapsed_days: int
    time_percent_elapsed: Decimal
    budget_deviation_by_timeline: Decimal
    monthly_breakdown: tuple[MonthlyBreakdown, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class _Timeline:
    total_days: int
    elapsed_days: int
    exact_percent: Decimal
    started: bool

    @property
    def time_percent_elapsed(self) -> Decimal:
        return round_money(self.exact_percent)


def _month_key(value: date | datetime) -> tuple[int, int]:
    return value.year, value.month


def _iter_months(start: date, end: date) -> Iterator[tuple[int, int]]:
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        yield year, month
        month += 1
        if month > 12:
            year, month = year + 1, 1


class ProjectBudgetAggregator:
    """
    Builds ``BudgetSummary`` records.

    Contract:
        ``summarize`` is a pure function of its arguments.
    """

    def __init__(self, tracker: TimeEntryBillingTracker | None = None):
        self._tracker = tracker or TimeEntryBillingTracker()

    @traced_engine("project_budget", "1.0", fingerprint_fields=("project", "as_of"))
    def summarize(
        self,
        project: Project,
        invoices: Sequence[Invoice],
        time_entries: Sequence[TimeEntry],
        as_of: date,
    ) -> BudgetSummary:
        invoices = [inv for inv in invoices if inv.project_id == project.id]
        entries = [e for e in time_entries if e.project_id == project.id]

        invoiced = sum((zero_if_none(inv.amount_paid) for inv in invoices), ZERO)
        paid = sum(
            (payment.amount for inv in invoices for payment in inv.payments),
            ZERO,
        )
        unbilled_amount = self._tracker.unbilled_amount(entries, project)
        used = invoiced + unbilled_amount

        utilization = self.utilization_percentage(used, project.budget)
        remaining = (
            max(ZERO, project.budget - used) if project.budget is not None else ZERO
        )

        timeline = self._timeline(project, as_of)
        if (
            project.budget is None
            or project.budget == ZERO
            or project.start_date is None
            or project.end_date is None
            or not timeline.started
        ):
            deviation = ZERO
        else:
            deviation = utilization - timeline.exact_percent

        hours = self._tracker.summarize_hours(entries)

        summary = BudgetSummary(
            project_id=project.id,
            project_name=project.name,
            currency=project.currency,
            budget=project.budget,
            hourly_rate=project.hourly_rate,
            invoiced_amount=invoiced,
            paid_amount=paid,
            pending_amount=invoiced - paid,
            unbilled_amount=unbilled_amount,
            potential_final_value=used,
            budget_utilization_percentage=utilization,
            remaining_budget=remaining,
            is_over_budget=utilization > HUNDRED,
            total_hours=hours.total_hours,
            billable_hours=hours.billable_hours,
            billed_hours=hours.billed_hours,
            unbilled_hours=hours.unbilled_hours,
            total_invoices=len(invoices),
            paid_invoices=self._count(invoices, InvoiceStatus.PAID),
            pending_invoices=self._count(invoices, InvoiceStatus.SENT),
            overdue_invoices=self._count(invoices, InvoiceStatus.OVERDUE),
            start_date=project.start_date,
            end_date=project.end_date,
            total_days=timeline.total_days,
            elapsed_days=timeline.elapsed_days,
            time_percent_elapsed=timeline.time_percent_elapsed,
            budget_deviation_by_timeline=deviation,
            monthly_breakdown=self.monthly_breakdown(project, invoices, entries),
        )

        logger.info(
            "budget_summary_computed",
            extra={
                "project_id": str(project.id),
                "invoiced_amount": str(invoiced),
                "unbilled_amount": str(unbilled_amount),
                "utilization": str(utilization),
                "is_over_budget": summary.is_over_budget,
            },
        )
        return summary

    # ------------------------------------------------------------------
    # Pieces
    # ------------------------------------------------------------------

    @staticmethod
    def utilization_percentage(used: Decimal, budget: Decimal | None) -> Decimal:
        """``used / budget`` rounded to 4 places, as a percentage."""
        if budget is None or budget == ZERO:
            return ZERO
        return round_money(used / budget, FOUR_PLACES) * HUNDRED

    @staticmethod
    def _timeline(project: Project, as_of: date) -> _Timeline:
        start, end = project.start_date, project.end_date
        if start is None or end is None:
            return _Timeline(0, 0, ZERO, started=False)

        total_days = (end - start).days + 1
        effective = min(as_of, end)
        elapsed_days = max(0, (effective - start).days + 1)
        if total_days > 0:
            percent = Decimal(elapsed_days) / Decimal(total_days) * HUNDRED
        else:
            percent = ZERO
        return _Timeline(
            total_days=total_days,
            elapsed_days=elapsed_days,
            exact_percent=percent,
            started=as_of >= start,
        )

    @staticmethod
    def _count(invoices: Iterable[Invoice], status: InvoiceStatus) -> int:
        return sum(1 for inv in invoices if inv.status is status)

    @staticmethod
    def monthly_breakdown(
        project: Project,
        invoices: Sequence[Invoice],
        time_entries: Sequence[TimeEntry],
    ) -> tuple[MonthlyBreakdown, ...]:
        """Per-month invoiced, paid and hours figures between the project dates."""
        if project.start_date is None or project.end_date is None:
            return ()

        invoiced: dict[tuple[int, int], Decimal] = {}
        paid: dict[tuple[int, int], Decimal] = {}
        hours: dict[tuple[int, int], Decimal] = {}

        for inv in invoices:
            if inv.due_date is not None:
                key = _month_key(inv.due_date)
                invoiced[key] = invoiced.get(key, ZERO) + zero_if_none(inv.amount)
            for payment in inv.payments:
                key = _month_key(payment.payment_date)
                paid[key] = paid.get(key, ZERO) + payment.amount

        for entry in time_entries:
            logged_at = entry.logged_at
            if logged_at is None:
                continue
            key = _month_key(logged_at)
            hours[key] = hours.get(key, ZERO) + entry.hours

        rows = []
        for key in _iter_months(project.start_date, project.end_date):
            month_invoiced = invoiced.get(key, ZERO)
            rows.append(
                MonthlyBreakdown(
                    year=key[0],
                    month=key[1],
                    invoiced_amount=month_invoiced,
                    paid_amount=paid.get(key, ZERO),
                    hours=hours.get(key, ZERO),
                    total_value=month_invoiced,
                )
            )
        return tuple(rows)
