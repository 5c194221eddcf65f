"""
Time entry repositories (``billing_modules.time_tracking.repository``).

In-memory and SQLAlchemy stores for ``TimeEntry`` records behind a single
protocol.  Unknown ids raise ``TimeEntryNotFoundError``.
"""

from __future__ import annotations

from typing import Iterable, Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from billing_kernel.domain.project import TimeEntry
from billing_kernel.exceptions import TimeEntryNotFoundError
from billing_modules.time_tracking.orm import TimeEntryModel


class TimeEntryRepository(Protocol):
    """Persistence contract for time entries."""

    def load_time_entry(self, entry_id: UUID) -> TimeEntry: ...

    def save_time_entry(self, entry: TimeEntry, actor_id: UUID | None = None) -> TimeEntry: ...

    def delete_time_entry(self, entry_id: UUID) -> None: ...

    def find_by_project(self, project_id: UUID) -> list[TimeEntry]: ...

    def find_by_ids(self, entry_ids: Iterable[UUID]) -> list[TimeEntry]: ...

    def find_by_invoice(self, invoice_id: UUID) -> list[TimeEntry]: ...


class InMemoryTimeEntryRepository:
    """Dict-backed time entry store."""

    def __init__(self, entries: list[TimeEntry] | None = None):
        self._entries: dict[UUID, TimeEntry] = {e.id: e for e in entries or ()}

    def load_time_entry(self, entry_id: UUID) -> TimeEntry:
        try:
            return self._entries[entry_id]
        except KeyError:
            raise TimeEntryNotFoundError(str(entry_id)) from None

    def save_time_entry(self, entry: TimeEntry, actor_id: UUID | None = None) -> TimeEntry:
        self._entries[entry.id] = entry
        return entry

    def delete_time_entry(self, entry_id: UUID) -> None:
        if self._entries.pop(entry_id, None) is None:
            raise TimeEntryNotFoundError(str(entry_id))

    def find_by_project(self, project_id: UUID) -> list[TimeEntry]:
        return [e for e in self._entries.values() if e.project_id == project_id]

    def find_by_ids(self, entry_ids: Iterable[UUID]) -> list[TimeEntry]:
        return [self._entries[i] for i in entry_ids if i in self._entries]

    def find_by_invoice(self, invoice_id: UUID) -> list[TimeEntry]:
        return [e for e in self._entries.values() if e.invoice_id == invoice_id]


class SqlAlchemyTimeEntryRepository:
    """Session-backed time entry store.  The caller owns the transaction."""

    def __init__(self, session: Session):
        self._session = session

    def _get_model(self, entry_id: UUID) -> TimeEntryModel:
        model = self._session.get(TimeEntryModel, entry_id)
        if model is None:
            raise TimeEntryNotFoundError(str(entry_id))
        return model

    def load_time_entry(self, entry_id: UUID) -> TimeEntry:
        return self._get_model(entry_id).to_dto()

    def save_time_entry(self, entry: TimeEntry, actor_id: UUID | None = None) -> TimeEntry:
        model = self._session.get(TimeEntryModel, entry.id)
        if model is None:
            self._session.add(TimeEntryModel.from_dto(entry, created_by_id=actor_id))
        else:
            model.apply_dto(entry, updated_by_id=actor_id)
        self._session.flush()
        return entry

    def delete_time_entry(self, entry_id: UUID) -> None:
        self._session.delete(self._get_model(entry_id))
        self._session.flush()

    def find_by_project(self, project_id: UUID) -> list[TimeEntry]:
        stmt = (
            select(TimeEntryModel)
            .where(TimeEntryModel.project_id == project_id)
            .order_by(TimeEntryModel.start_time)
        )
        return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    def find_by_ids(self, entry_ids: Iterable[UUID]) -> list[TimeEntry]:
        ids = list(entry_ids)
        if not ids:
            return []
        stmt = select(TimeEntryModel).where(TimeEntryModel.id.in_(ids))
        return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    def find_by_invoice(self, invoice_id: UUID) -> list[TimeEntry]:
        stmt = select(TimeEntryModel).where(TimeEntryModel.invoice_id == invoice_id)
        return [m.to_dto() for m in self._session.execute(stmt).scalars()]
