"""
Time Tracking Module Service - logs time and feeds billing.

Thin glue layer that:
1. Loads time entries (and projects, for rate lookups) through repositories
2. Calls TimeEntryBillingTracker for durations, billed flags and totals
3. Saves the resulting records

All computation lives in the engine.  Transaction boundaries belong to
the caller (``session_scope`` for the SQLAlchemy repositories).

Usage:
    service = TimeEntryService(entries_repo, projects_repo, clock)
    entry = service.log_time(
        principal, project_id,
        start_time=datetime(2024, 3, 1, 10, 0), end_time=datetime(2024, 3, 1, 11, 30),
    )
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Iterable
from uuid import UUID, uuid4

from billing_engines.time_billing import TimeEntryBillingTracker, TimeSummary
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.project import Project, TimeEntry
from billing_kernel.domain.values import Principal
from billing_kernel.exceptions import (
    ConfigurationError,
    EntryOwnershipError,
    ProjectNotFoundError,
)
from billing_kernel.logging_config import LogContext, get_logger
from billing_modules.project.repository import ProjectRepository
from billing_modules.time_tracking.repository import TimeEntryRepository

logger = get_logger("modules.time_tracking.service")


@dataclass(frozen=True)
class ProjectTimeReport:
    """Hour totals and billable value for one project."""

    project_id: UUID
    hours: TimeSummary
    billable_amount: Decimal
    unbilled_amount: Decimal

    @property
    def total_hours(self) -> Decimal:
        return self.hours.total_hours


class TimeEntryService:
    """
    Time entry operations on behalf of a ``Principal``.

    Entries belong to the user who logged them; only that user may edit,
    delete or bill them.
    """

    def __init__(
        self,
        entries: TimeEntryRepository,
        projects: ProjectRepository | None = None,
        clock: Clock | None = None,
        tracker: TimeEntryBillingTracker | None = None,
    ):
        self._entries = entries
        self._projects = projects
        self._clock = clock or SystemClock()
        self._tracker = tracker or TimeEntryBillingTracker()

    # =========================================================================
    # Helpers
    # =========================================================================

    def _load_project(self, principal: Principal, project_id: UUID) -> Project:
        if self._projects is None:
            raise ConfigurationError("projects", "no project repository configured")
        project = self._projects.load_project(project_id)
        if not principal.owns(project.owner_id):
            logger.warning(
                "project_access_denied",
                extra={"project_id": str(project_id), "code": ProjectNotFoundError.code},
            )
            raise ProjectNotFoundError(str(project_id))
        return project

    def _load_own_entry(self, principal: Principal, entry_id: UUID) -> TimeEntry:
        entry = self._entries.load_time_entry(entry_id)
        if not principal.owns(entry.user_id):
            logger.warning(
                "time_entry_access_denied",
                extra={"entry_id": str(entry_id), "code": EntryOwnershipError.code},
            )
            raise EntryOwnershipError(str(entry_id), str(principal.user_id))
        return entry

    # =========================================================================
    # Entries
    # =========================================================================

    def log_time(
        self,
        principal: Principal,
        project_id: UUID,
        *,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
        description: str | None = None,
        billable: bool = True,
        entry_id: UUID | None = None,
    ) -> TimeEntry:
        """Create a time entry for the caller, deriving duration and hours."""
        if self._projects is not None:
            self._load_project(principal, project_id)

        entry = self._tracker.record_duration(
            TimeEntry(
                id=entry_id or uuid4(),
                project_id=project_id,
                user_id=principal.user_id,
                start_time=start_time,
                end_time=end_time,
                description=description,
                billable=billable,
                created_at=self._clock.now(),
            )
        )
        with LogContext.bind(actor_id=principal.user_id, project_id=project_id):
            self._entries.save_time_entry(entry, actor_id=principal.user_id)
            logger.info(
                "time_entry_logged",
                extra={
                    "entry_id": str(entry.id),
                    "hours": str(entry.hours),
                    "billable": entry.billable,
                },
            )
        return entry

    def update_time_entry(
        self,
        principal: Principal,
        entry_id: UUID,
        *,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
        description: str | None = None,
        billable: bool | None = None,
    ) -> TimeEntry:
        """Change the given fields and recompute duration and hours."""
        entry = self._load_own_entry(principal, entry_id)
        changes: dict = {}
        if start_time is not None:
            changes["start_time"] = start_time
        if end_time is not None:
            changes["end_time"] = end_time
        if description is not None:
            changes["description"] = description
        if billable is not None:
            changes["billable"] = billable

        updated = self._tracker.record_duration(replace(entry, **changes))
        self._entries.save_time_entry(updated, actor_id=principal.user_id)
        logger.info(
            "time_entry_updated",
            extra={
                "entry_id": str(entry_id),
                "fields": sorted(changes),
                "hours": str(updated.hours),
            },
        )
        return updated

    def delete_time_entry(self, principal: Principal, entry_id: UUID) -> None:
        self._load_own_entry(principal, entry_id)
        self._entries.delete_time_entry(entry_id)
        logger.info("time_entry_deleted", extra={"entry_id": str(entry_id)})

    def mark_billed(
        self,
        principal: Principal,
        entry_ids: Iterable[UUID],
        invoice_id: UUID,
    ) -> list[TimeEntry]:
        """
        Flag entries as billed on ``invoice_id``.

        Unknown ids are skipped.  Nothing is saved if any entry belongs to
        another user.
        """
        entry_ids = list(entry_ids)
        entries = self._entries.find_by_ids(entry_ids)
        billed = self._tracker.mark_billed(
            entries, entry_ids, invoice_id, principal.user_id
        )
        for entry in billed:
            self._entries.save_time_entry(entry, actor_id=principal.user_id)
        return billed

    # =========================================================================
    # Queries
    # =========================================================================

    def unbilled_hours(self, principal: Principal, project_id: UUID) -> Decimal:
        project = self._load_project(principal, project_id)
        return self._tracker.unbilled_hours(
            self._entries.find_by_project(project_id), project
        )

    def unbilled_amount(self, principal: Principal, project_id: UUID) -> Decimal:
        project = self._load_project(principal, project_id)
        return self._tracker.unbilled_amount(
            self._entries.find_by_project(project_id), project
        )

    def project_time_summary(self, principal: Principal, project_id: UUID) -> ProjectTimeReport:
        project = self._load_project(principal, project_id)
        entries = self._entries.find_by_project(project_id)
        return ProjectTimeReport(
            project_id=project_id,
            hours=self._tracker.summarize_hours(entries),
            billable_amount=self._tracker.billable_amount(entries, project),
            unbilled_amount=self._tracker.unbilled_amount(entries, project),
        )
