"""
Project Budget Service - per-project budget and timeline reporting.

Loads a project with its invoices and time entries and delegates to
ProjectBudgetAggregator with ``as_of`` taken from the injected clock.
Read-only: nothing is saved.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from billing_engines.budget import BudgetSummary, ProjectBudgetAggregator
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.values import Principal
from billing_kernel.exceptions import ProjectNotFoundError
from billing_kernel.logging_config import LogContext, get_logger
from billing_modules.invoicing.repository import InvoiceRepository
from billing_modules.project.repository import ProjectRepository
from billing_modules.time_tracking.repository import TimeEntryRepository

logger = get_logger("modules.project.service")


class ProjectBudgetService:
    """Budget summaries for projects owned by the caller."""

    def __init__(
        self,
        projects: ProjectRepository,
        invoices: InvoiceRepository,
        time_entries: TimeEntryRepository,
        clock: Clock | None = None,
        aggregator: ProjectBudgetAggregator | None = None,
    ):
        self._projects = projects
        self._invoices = invoices
        self._time_entries = time_entries
        self._clock = clock or SystemClock()
        self._aggregator = aggregator or ProjectBudgetAggregator()

    def get_budget_summary(self, principal: Principal, project_id: UUID) -> BudgetSummary:
        """
        Summarize one project as of today.

        Raises:
            ProjectNotFoundError: unknown project, or owned by someone else.
        """
        with LogContext.bind(actor_id=principal.user_id, project_id=project_id):
            project = self._projects.load_project(project_id)
            if not principal.owns(project.owner_id):
                logger.warning(
                    "project_access_denied",
                    extra={"code": ProjectNotFoundError.code},
                )
                raise ProjectNotFoundError(str(project_id))

            return self._aggregator.summarize(
                project,
                self._invoices.find_by_project(project_id),
                self._time_entries.find_by_project(project_id),
                as_of=self._clock.today(),
            )

    def remaining_budget(self, principal: Principal, project_id: UUID) -> Decimal:
        return self.get_budget_summary(principal, project_id).remaining_budget

    def is_over_budget(self, principal: Principal, project_id: UUID) -> bool:
        return self.get_budget_summary(principal, project_id).is_over_budget

    def budget_utilization_percentage(self, principal: Principal, project_id: UUID) -> Decimal:
        return self.get_budget_summary(principal, project_id).budget_utilization_percentage
