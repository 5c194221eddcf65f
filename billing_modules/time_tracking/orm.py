"""
Time Tracking ORM Models (``billing_modules.time_tracking.orm``).

SQLAlchemy persistence model for time entries.  Maps the frozen
``TimeEntry`` record to the ``billing_time_entries`` table.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Index, Text
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase
from billing_kernel.domain.project import TimeEntry


class TimeEntryModel(TrackedBase):
    """
    ORM model for time entries.

    ``created_at`` doubles as the entry's creation timestamp in the
    domain record.

    Guarantees:
        - hours use Decimal (Numeric(38,9) via type_annotation_map).
        - billed entries keep the invoice they were billed on.
    """

    __tablename__ = "billing_time_entries"

    __table_args__ = (
        Index("idx_billing_time_entries_project_id", "project_id"),
        Index("idx_billing_time_entries_user_id", "user_id"),
        Index("idx_billing_time_entries_invoice_id", "invoice_id"),
        Index("idx_billing_time_entries_billed", "billable", "billed"),
    )

    project_id: Mapped[UUID] = mapped_column(nullable=False)
    user_id: Mapped[UUID] = mapped_column(nullable=False)
    start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_seconds: Mapped[int] = mapped_column(default=0)
    hours: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    billable: Mapped[bool] = mapped_column(Boolean, default=True)
    billed: Mapped[bool] = mapped_column(Boolean, default=False)
    invoice_id: Mapped[UUID | None] = mapped_column(nullable=True)

    def to_dto(self) -> TimeEntry:
        """Convert ORM model to frozen dataclass."""
        return TimeEntry(
            id=self.id,
            project_id=self.project_id,
            user_id=self.user_id,
            start_time=self.start_time,
            end_time=self.end_time,
            duration_seconds=self.duration_seconds,
            hours=self.hours,
            description=self.description,
            billable=self.billable,
            billed=self.billed,
            invoice_id=self.invoice_id,
            created_at=self.created_at,
        )

    @classmethod
    def from_dto(cls, dto: TimeEntry, created_by_id: UUID | None = None) -> "TimeEntryModel":
        """Create ORM model from frozen dataclass."""
        model = cls(id=dto.id, created_by_id=created_by_id)
        if dto.created_at is not None:
            model.created_at = dto.created_at
        model.apply_dto(dto, updated_by_id=created_by_id)
        return model

    def apply_dto(self, dto: TimeEntry, updated_by_id: UUID | None = None) -> None:
        self.project_id = dto.project_id
        self.user_id = dto.user_id
        self.start_time = dto.start_time
        self.end_time = dto.end_time
        self.duration_seconds = dto.duration_seconds
        self.hours = dto.hours
        self.description = dto.description
        self.billable = dto.billable
        self.billed = dto.billed
        self.invoice_id = dto.invoice_id
        self.updated_by_id = updated_by_id

    def __repr__(self) -> str:
        return f"<TimeEntryModel {self.id}: {self.hours}h>"
