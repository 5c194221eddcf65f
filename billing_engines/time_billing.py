"""
Module: billing_engines.time_billing
Responsibility:
    Derive durations and hours for time entries, flag entries as billed,
    and answer unbilled-hours / unbilled-amount queries for a project.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Returns new
    ``TimeEntry`` records; never mutates its inputs.

Invariants enforced:
    - duration_seconds >= 0 (clock skew floors at zero).
    - hours == round(duration_seconds / 3600, 2, HALF_UP).
    - A missing start or end timestamp gives 0 seconds / 0 hours.
    - Billed entries never count toward unbilled aggregates.

Failure modes:
    - EntryOwnershipError from ``mark_billed`` when an entry belongs to
      another user.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Iterable, Sequence
from uuid import UUID

from billing_kernel.domain.project import Project, TimeEntry
from billing_kernel.domain.values import ZERO, round_money
from billing_kernel.exceptions import EntryOwnershipError
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.time_billing")

_SECONDS_PER_HOUR = Decimal("3600")


@dataclass(frozen=True)
class TimeSummary:
    """Hour totals over a set of time entries."""

    total_hours: Decimal
    billable_hours: Decimal
    billed_hours: Decimal
    unbilled_hours: Decimal
    entry_count: int


class TimeEntryBillingTracker:
    """
    Billing eligibility for time entries.

    Contract:
        Stateless; every method is a pure function of its arguments.
    """

    def record_duration(self, entry: TimeEntry) -> TimeEntry:
        """Recompute duration and hours from the entry's timestamps."""
        if entry.start_time is None or entry.end_time is None:
            return replace(entry, duration_seconds=0, hours=ZERO)

        seconds = int((entry.end_time - entry.start_time).total_seconds())
        if seconds < 0:
            logger.warning(
                "time_entry_negative_duration",
                extra={"entry_id": str(entry.id), "duration_seconds": seconds},
            )
            seconds = 0
        hours = round_money(Decimal(seconds) / _SECONDS_PER_HOUR)
        return replace(entry, duration_seconds=seconds, hours=hours)

    def mark_billed(
        self,
        entries: Sequence[TimeEntry],
        entry_ids: Iterable[UUID],
        invoice_id: UUID,
        owner_id: UUID,
    ) -> list[TimeEntry]:
        """
        Flag the selected entries as billed against ``invoice_id``.

        Ids without a matching entry are skipped.  Durations are not
        recalculated.

        Returns:
            The billed entries, in ``entry_ids`` order.

        Raises:
            EntryOwnershipError: an entry belongs to someone other than
                ``owner_id``.  No entry is returned in that case.
        """
        by_id = {entry.id: entry for entry in entries}
        billed: list[TimeEntry] = []
        for entry_id in entry_ids:
            entry = by_id.get(entry_id)
            if entry is None:
                logger.debug("time_entry_skipped", extra={"entry_id": str(entry_id)})
                continue
            if entry.user_id != owner_id:
                logger.warning(
                    "time_entry_ownership_rejected",
                    extra={"entry_id": str(entry.id), "user_id": str(owner_id)},
                )
                raise EntryOwnershipError(str(entry.id), str(owner_id))
            billed.append(replace(entry, billed=True, invoice_id=invoice_id))

        logger.info(
            "time_entries_billed",
            extra={"invoice_id": str(invoice_id), "entry_count": len(billed)},
        )
        return billed

    @staticmethod
    def _unbilled(entries: Iterable[TimeEntry], project: Project) -> list[TimeEntry]:
        return [e for e in entries if e.project_id == project.id and e.is_unbilled]

    def unbilled_hours(self, entries: Iterable[TimeEntry], project: Project) -> Decimal:
        """Hours on billable, not yet billed entries of ``project``."""
        return sum((e.hours for e in self._unbilled(entries, project)), ZERO)

    def unbilled_amount(self, entries: Iterable[TimeEntry], project: Project) -> Decimal:
        """Unbilled hours x hourly rate, zero when the project has no rate."""
        if project.hourly_rate is None:
            return ZERO
        return round_money(self.unbilled_hours(entries, project) * project.hourly_rate)

    def summarize_hours(self, entries: Iterable[TimeEntry]) -> TimeSummary:
        entries = list(entries)
        total = sum((e.hours for e in entries), ZERO)
        billable = sum((e.hours for e in entries if e.billable), ZERO)
        billed = sum((e.hours for e in entries if e.billed), ZERO)
        unbilled = sum((e.hours for e in entries if e.is_unbilled), ZERO)
        return TimeSummary(
            total_hours=total,
            billable_hours=billable,
            billed_hours=billed,
            unbilled_hours=unbilled,
            entry_count=len(entries),
        )

    def billable_amount(self, entries: Iterable[TimeEntry], project: Project) -> Decimal:
        """Billable hours (billed or not) x hourly rate."""
        if project.hourly_rate is None:
            return ZERO
        hours = sum(
            (e.hours for e in entries if e.project_id == project.id and e.billable),
            ZERO,
        )
        return round_money(hours * project.hourly_rate)
