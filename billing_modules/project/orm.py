"""
Project ORM Models (``billing_modules.project.orm``).

SQLAlchemy persistence model for projects.  Maps the frozen ``Project``
record to the ``billing_projects`` table.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase
from billing_kernel.domain.project import Project


class ProjectModel(TrackedBase):
    """
    ORM model for projects.

    Guarantees:
        - budget and hourly_rate are nullable Decimals.
        - currency is a 3-letter code.
    """

    __tablename__ = "billing_projects"

    __table_args__ = (
        Index("idx_billing_projects_owner_id", "owner_id"),
    )

    owner_id: Mapped[UUID] = mapped_column(nullable=False)
    client_id: Mapped[UUID | None] = mapped_column(nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    budget: Mapped[Decimal | None] = mapped_column(nullable=True)
    hourly_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    def to_dto(self) -> Project:
        """Convert ORM model to frozen dataclass."""
        return Project(
            id=self.id,
            owner_id=self.owner_id,
            name=self.name,
            budget=self.budget,
            hourly_rate=self.hourly_rate,
            start_date=self.start_date,
            end_date=self.end_date,
            currency=self.currency,
            client_id=self.client_id,
            description=self.description,
        )

    @classmethod
    def from_dto(cls, dto: Project, created_by_id: UUID | None = None) -> "ProjectModel":
        """Create ORM model from frozen dataclass."""
        model = cls(id=dto.id, created_by_id=created_by_id)
        model.apply_dto(dto, updated_by_id=created_by_id)
        return model

    def apply_dto(self, dto: Project, updated_by_id: UUID | None = None) -> None:
        self.owner_id = dto.owner_id
        self.client_id = dto.client_id
        self.name = dto.name
        self.description = dto.description
        self.budget = dto.budget
        self.hourly_rate = dto.hourly_rate
        self.start_date = dto.start_date
        self.end_date = dto.end_date
        self.currency = dto.currency
        self.updated_by_id = updated_by_id

    def __repr__(self) -> str:
        return f"<ProjectModel {self.name}>"
