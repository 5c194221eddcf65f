"""
Project repositories (``billing_modules.project.repository``).

In-memory and SQLAlchemy stores for ``Project`` records.  Unknown ids
raise ``ProjectNotFoundError``.
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from billing_kernel.domain.project import Project
from billing_kernel.exceptions import ProjectNotFoundError
from billing_modules.project.orm import ProjectModel


class ProjectRepository(Protocol):
    """Persistence contract for projects."""

    def load_project(self, project_id: UUID) -> Project: ...

    def save_project(self, project: Project, actor_id: UUID | None = None) -> Project: ...

    def find_by_owner(self, owner_id: UUID) -> list[Project]: ...


class InMemoryProjectRepository:
    """Dict-backed project store."""

    def __init__(self, projects: list[Project] | None = None):
        self._projects: dict[UUID, Project] = {p.id: p for p in projects or ()}

    def load_project(self, project_id: UUID) -> Project:
        try:
            return self._projects[project_id]
        except KeyError:
            raise ProjectNotFoundError(str(project_id)) from None

    def save_project(self, project: Project, actor_id: UUID | None = None) -> Project:
        self._projects[project.id] = project
        return project

    def find_by_owner(self, owner_id: UUID) -> list[Project]:
        return [p for p in self._projects.values() if p.owner_id == owner_id]


class SqlAlchemyProjectRepository:
    """Session-backed project store.  The caller owns the transaction."""

    def __init__(self, session: Session):
        self._session = session

    def load_project(self, project_id: UUID) -> Project:
        model = self._session.get(ProjectModel, project_id)
        if model is None:
            raise ProjectNotFoundError(str(project_id))
        return model.to_dto()

    def save_project(self, project: Project, actor_id: UUID | None = None) -> Project:
        model = self._session.get(ProjectModel, project.id)
        if model is None:
            self._session.add(ProjectModel.from_dto(project, created_by_id=actor_id))
        else:
            model.apply_dto(project, updated_by_id=actor_id)
        self._session.flush()
        return project

    def find_by_owner(self, owner_id: UUID) -> list[Project]:
        stmt = (
            select(ProjectModel)
            .where(ProjectModel.owner_id == owner_id)
            .order_by(ProjectModel.name)
        )
        return [m.to_dto() for m in self._session.execute(stmt).scalars()]
