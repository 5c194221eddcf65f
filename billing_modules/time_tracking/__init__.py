"""Time tracking module - time entries and their billing state."""

from billing_modules.time_tracking.repository import (
    InMemoryTimeEntryRepository,
    SqlAlchemyTimeEntryRepository,
    TimeEntryRepository,
)
from billing_modules.time_tracking.service import ProjectTimeReport, TimeEntryService

__all__ = [
    "InMemoryTimeEntryRepository",
    "ProjectTimeReport",
    "SqlAlchemyTimeEntryRepository",
    "TimeEntryRepository",
    "TimeEntryService",
]
