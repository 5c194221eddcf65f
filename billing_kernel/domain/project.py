"""
Project and time-tracking domain records (``billing_kernel.domain.project``).

Projects are consumed by the budget aggregator, never owned by it.  Time
entries carry their own derived duration and hours; the time billing
tracker is the only code that recomputes them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from billing_kernel.domain.values import (
    DEFAULT_CURRENCY,
    ZERO,
    normalize_currency,
    to_decimal,
)


@dataclass(frozen=True)
class Project:
    """A client project with an optional budget and hourly rate."""
    id: UUID
    owner_id: UUID
    name: str
    budget: Decimal | None = None
    hourly_rate: Decimal | None = None
    start_date: date | None = None
    end_date: date | None = None
    currency: str = DEFAULT_CURRENCY
    client_id: UUID | None = None
    description: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "currency", normalize_currency(self.currency))
        if self.budget is not None:
            object.__setattr__(self, "budget", to_decimal(self.budget))
        if self.hourly_rate is not None:
            object.__setattr__(self, "hourly_rate", to_decimal(self.hourly_rate))


@dataclass(frozen=True)
class TimeEntry:
    """
    Time logged by a user against a project.

    ``hours`` is rounded to 2 places.  Once ``billed`` is set the entry is
    excluded from unbilled aggregates.
    """
    id: UUID
    project_id: UUID
    user_id: UUID
    start_time: datetime | None = None
    end_time: datetime | None = None
    duration_seconds: int = 0
    hours: Decimal = ZERO
    description: str | None = None
    billable: bool = True
    billed: bool = False
    invoice_id: UUID | None = None
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "hours", to_decimal(self.hours))

    @property
    def is_unbilled(self) -> bool:
        return self.billable and not self.billed

    @property
    def logged_at(self) -> datetime | None:
        """Timestamp used to place the entry in a calendar month."""
        return self.start_time if self.start_time is not None else self.created_at
