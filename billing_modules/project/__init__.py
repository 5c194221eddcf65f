"""Project module - projects and their budget summaries."""

from billing_modules.project.repository import (
    InMemoryProjectRepository,
    ProjectRepository,
    SqlAlchemyProjectRepository,
)
from billing_modules.project.service import ProjectBudgetService

__all__ = [
    "InMemoryProjectRepository",
    "ProjectBudgetService",
    "ProjectRepository",
    "SqlAlchemyProjectRepository",
]
