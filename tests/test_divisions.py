"""
Canvass sheet release/return tracking.
"""

from datetime import date

import pytest

from canvassing.divisions import (
    NO_CANVASSER,
    PENDING,
    RELEASED,
    RETURNED,
    DivisionTracker,
)
from canvassing.errors import DivisionNotFound

D1 = date(2026, 2, 2)
D2 = date(2026, 2, 5)


@pytest.fixture
def tracker():
    return DivisionTracker.for_sections(["STOD", "LTSP", "Budget"])


class TestRelease:

    def test_defaults(self, tracker):
        assert [a.status for a in tracker] == [PENDING] * 3
        assert tracker.get("STOD").canvasser_name == "Yvonne M."
        assert tracker.get("Budget").canvasser_name == NO_CANVASSER

    def test_release_stamps_date(self, tracker):
        assignment = tracker.release("LTSP", D1)
        assert assignment.status == RELEASED
        assert assignment.release_date == D1
        assert tracker.released_count == 1
        assert not tracker.all_released()

    def test_release_all_only_touches_pending(self, tracker):
        tracker.release("STOD", D1)
        released = tracker.release_all(D2)
        assert [a.section for a in released] == ["LTSP", "Budget"]
        assert tracker.get("STOD").release_date == D1
        assert tracker.all_released()

    def test_unknown_division(self, tracker):
        with pytest.raises(DivisionNotFound):
            tracker.release("Nowhere", D1)


class TestReturn:

    def test_mark_returned(self, tracker):
        tracker.release("STOD", D1)
        assignment = tracker.mark_returned("STOD", D2)
        assert assignment.status == RETURNED
        assert assignment.return_date == D2
        assert assignment.release_date == D1

    def test_return_without_release_still_ends_returned(self, tracker):
        assert tracker.mark_returned("Budget", D2).status == RETURNED
        assert tracker.returned_count == 1

    def test_status_never_goes_back(self, tracker):
        tracker.mark_returned("STOD", D2)
        tracker.release("STOD", D1)
        tracker.release_all(D1)
        assert tracker.get("STOD").status == RETURNED

    def test_all_returned(self, tracker):
        for section in ("STOD", "LTSP", "Budget"):
            tracker.mark_returned(section, D2)
        assert tracker.all_returned()
        assert tracker.all_released()


class TestOverdue:

    def test_overdue_after_window(self, tracker):
        tracker.release("STOD", D1)
        assert not tracker.get("STOD").is_overdue(date(2026, 2, 9))
        assert tracker.get("STOD").is_overdue(date(2026, 2, 10))
        assert [a.section for a in tracker.overdue(date(2026, 2, 10))] == ["STOD"]

    def test_returned_is_never_overdue(self, tracker):
        tracker.release("STOD", D1)
        tracker.mark_returned("STOD", date(2026, 3, 1))
        assert tracker.overdue(date(2026, 3, 31)) == []

    def test_due_date(self, tracker):
        tracker.release("STOD", D1)
        assert tracker.get("STOD").due_date() == date(2026, 2, 9)
        assert tracker.get("LTSP").due_date() is None


class TestSnapshot:

    def test_round_trip_keeps_dates(self, tracker):
        tracker.release("STOD", D1)
        tracker.mark_returned("STOD", D2)
        rows = tracker.to_list()
        assert rows[0]["last_activity"] == "February 5, 2026"
        restored = DivisionTracker.from_list(rows)
        assert restored.get("STOD").return_date == D2
        assert restored.get("LTSP").status == PENDING
