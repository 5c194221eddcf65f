"""
Tests for time entry billing.

Covers:
- Duration and hours derivation, including clock skew
- Marking entries billed (ordering, skipping, ownership)
- Unbilled hours and amount per project
- Hour summaries and billable value
"""

from datetime import datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from billing_engines.time_billing import TimeEntryBillingTracker
from billing_kernel.domain.project import TimeEntry
from billing_kernel.exceptions import EntryOwnershipError

from tests.builders import make_entry, make_project


@pytest.fixture
def tracker() -> TimeEntryBillingTracker:
    return TimeEntryBillingTracker()


@pytest.fixture
def user_id():
    return uuid4()


@pytest.fixture
def project(user_id):
    return make_project(user_id)


def _raw_entry(project, user_id, start, end):
    return TimeEntry(
        id=uuid4(),
        project_id=project.id,
        user_id=user_id,
        start_time=start,
        end_time=end,
    )


class TestRecordDuration:
    def test_ninety_minutes(self, tracker, project, user_id):
        start = datetime(2024, 3, 1, 10, 0)
        entry = tracker.record_duration(
            _raw_entry(project, user_id, start, start + timedelta(minutes=90))
        )

        assert entry.duration_seconds == 5400
        assert entry.hours == Decimal("1.50")

    def test_hours_rounded_half_up(self, tracker, project, user_id):
        # 18 seconds = 0.005 hours -> 0.01
        start = datetime(2024, 3, 1, 10, 0)
        entry = tracker.record_duration(
            _raw_entry(project, user_id, start, start + timedelta(seconds=18))
        )

        assert entry.duration_seconds == 18
        assert entry.hours == Decimal("0.01")

    def test_end_before_start_floors_at_zero(self, tracker, project, user_id, captured_logs):
        start = datetime(2024, 3, 1, 10, 0)
        entry = tracker.record_duration(
            _raw_entry(project, user_id, start, start - timedelta(minutes=5))
        )

        assert entry.duration_seconds == 0
        assert entry.hours == Decimal("0")
        messages = [r["message"] for r in captured_logs()]
        assert "time_entry_negative_duration" in messages

    @pytest.mark.parametrize("missing", ["start", "end"])
    def test_missing_timestamp_gives_zero(self, tracker, project, user_id, missing):
        start = datetime(2024, 3, 1, 10, 0)
        end = start + timedelta(hours=2)
        entry = _raw_entry(
            project,
            user_id,
            None if missing == "start" else start,
            None if missing == "end" else end,
        )

        result = tracker.record_duration(entry)

        assert result.duration_seconds == 0
        assert result.hours == Decimal("0")

    def test_input_not_mutated(self, tracker, project, user_id):
        start = datetime(2024, 3, 1, 10, 0)
        entry = _raw_entry(project, user_id, start, start + timedelta(hours=1))
        tracker.record_duration(entry)
        assert entry.hours == Decimal("0")


class TestMarkBilled:
    def test_marks_selected_entries_in_request_order(self, tracker, project, user_id):
        first = make_entry(project, user_id)
        second = make_entry(project, user_id)
        invoice_id = uuid4()

        billed = tracker.mark_billed([first, second], [second.id, first.id], invoice_id, user_id)

        assert [e.id for e in billed] == [second.id, first.id]
        assert all(e.billed and e.invoice_id == invoice_id for e in billed)

    def test_unknown_ids_skipped(self, tracker, project, user_id):
        entry = make_entry(project, user_id)

        billed = tracker.mark_billed([entry], [uuid4(), entry.id], uuid4(), user_id)

        assert [e.id for e in billed] == [entry.id]

    def test_duration_not_recalculated(self, tracker, project, user_id):
        entry = make_entry(project, user_id, hours="7.00")
        billed = tracker.mark_billed([entry], [entry.id], uuid4(), user_id)
        assert billed[0].hours == Decimal("7.00")

    def test_foreign_entry_rejected(self, tracker, project, user_id):
        mine = make_entry(project, user_id)
        theirs = make_entry(project, uuid4())

        with pytest.raises(EntryOwnershipError) as exc_info:
            tracker.mark_billed([mine, theirs], [mine.id, theirs.id], uuid4(), user_id)

        assert exc_info.value.code == "TIME_ENTRY_OWNERSHIP"
        assert exc_info.value.entry_id == str(theirs.id)


class TestUnbilled:
    def test_only_billable_unbilled_entries_of_project(self, tracker, project, user_id):
        other_project = make_project(user_id)
        entries = [
            make_entry(project, user_id, hours="1.50"),
            make_entry(project, user_id, hours="2.00", billable=False),
            make_entry(project, user_id, hours="3.00", billed=True),
            make_entry(other_project, user_id, hours="4.00"),
        ]

        assert tracker.unbilled_hours(entries, project) == Decimal("1.50")
        assert tracker.unbilled_amount(entries, project) == Decimal("60.00")

    def test_no_hourly_rate_gives_zero_amount(self, tracker, user_id):
        project = make_project(user_id, hourly_rate=None)
        entries = [make_entry(project, user_id, hours="5")]

        assert tracker.unbilled_hours(entries, project) == Decimal("5")
        assert tracker.unbilled_amount(entries, project) == Decimal("0")

    def test_no_entries(self, tracker, project):
        assert tracker.unbilled_hours([], project) == Decimal("0")
        assert tracker.unbilled_amount([], project) == Decimal("0.00")


class TestSummaries:
    def test_summarize_hours(self, tracker, project, user_id):
        entries = [
            make_entry(project, user_id, hours="1.50"),
            make_entry(project, user_id, hours="2.00", billable=False),
            make_entry(project, user_id, hours="3.00", billed=True),
        ]

        summary = tracker.summarize_hours(entries)

        assert summary.total_hours == Decimal("6.50")
        assert summary.billable_hours == Decimal("4.50")
        assert summary.billed_hours == Decimal("3.00")
        assert summary.unbilled_hours == Decimal("1.50")
        assert summary.entry_count == 3

    def test_billable_amount_includes_billed(self, tracker, project, user_id):
        entries = [
            make_entry(project, user_id, hours="1.50"),
            make_entry(project, user_id, hours="3.00", billed=True),
            make_entry(project, user_id, hours="2.00", billable=False),
        ]
        assert tracker.billable_amount(entries, project) == Decimal("180.00")
