"""
canvassing/divisions.py

Release/return tracking of canvass sheets, one canvasser per division.

Status only moves forward: pending -> released -> returned. Marking a sheet
returned that was never released is allowed and simply ends in "returned".
The return window is advisory: is_overdue() reports it, nothing blocks on it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

from .errors import DivisionNotFound
from .purchase_requests import SECTIONS
from .utils import format_long_date

PENDING = "pending"
RELEASED = "released"
RETURNED = "returned"

RETURN_WINDOW_DAYS = 7

DEFAULT_DIVISIONS = list(SECTIONS)

DEFAULT_CANVASSERS = {
    "STOD": "Yvonne M.",
    "LTSP": "Mariel T.",
    "ARBDSP": "Robert A.",
    "Legal": "Angel D.",
    "PARPO": "Nessie P.",
    "PARAD": "Viviene S.",
}

NO_CANVASSER = "—"


@dataclass
class DivisionAssignment:
    section: str
    canvasser_name: str = NO_CANVASSER
    status: str = PENDING
    release_date: date | None = None
    return_date: date | None = None

    def is_overdue(self, today: date, window_days: int = RETURN_WINDOW_DAYS) -> bool:
        if self.status != RELEASED or self.release_date is None:
            return False
        return today > self.release_date + timedelta(days=window_days)

    def due_date(self, window_days: int = RETURN_WINDOW_DAYS) -> date | None:
        if self.release_date is None:
            return None
        return self.release_date + timedelta(days=window_days)

    def to_dict(self) -> dict:
        return {
            "section": self.section,
            "canvasser_name": self.canvasser_name,
            "status": self.status,
            "release_date": self.release_date.isoformat() if self.release_date else None,
            "return_date": self.return_date.isoformat() if self.return_date else None,
            "last_activity": format_long_date(self.return_date or self.release_date),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DivisionAssignment":
        release = data.get("release_date")
        returned = data.get("return_date")
        return cls(
            section=data["section"],
            canvasser_name=data.get("canvasser_name") or NO_CANVASSER,
            status=data.get("status") or PENDING,
            release_date=date.fromisoformat(release) if release else None,
            return_date=date.fromisoformat(returned) if returned else None,
        )


class DivisionTracker:
    def __init__(self, assignments: list[DivisionAssignment]):
        self.assignments = list(assignments)

    @classmethod
    def for_sections(cls, sections=None, canvassers=None) -> "DivisionTracker":
        sections = DEFAULT_DIVISIONS if sections is None else sections
        canvassers = DEFAULT_CANVASSERS if canvassers is None else canvassers
        return cls([
            DivisionAssignment(section=s, canvasser_name=canvassers.get(s) or NO_CANVASSER)
            for s in sections
        ])

    def __iter__(self):
        return iter(self.assignments)

    def __len__(self):
        return len(self.assignments)

    def get(self, section: str) -> DivisionAssignment:
        for assignment in self.assignments:
            if assignment.section == section:
                return assignment
        raise DivisionNotFound(f"Unknown division: {section}", section=section)

    def release(self, section: str, on: date) -> DivisionAssignment:
        assignment = self.get(section)
        if assignment.status == RETURNED:
            # no going back from returned
            return assignment
        assignment.status = RELEASED
        assignment.release_date = on
        return assignment

    def release_all(self, on: date) -> list[DivisionAssignment]:
        released = []
        for assignment in self.assignments:
            if assignment.status == PENDING:
                assignment.status = RELEASED
                assignment.release_date = on
                released.append(assignment)
        return released

    def mark_returned(self, section: str, on: date) -> DivisionAssignment:
        assignment = self.get(section)
        assignment.status = RETURNED
        assignment.return_date = on
        return assignment

    def all_released(self) -> bool:
        return all(a.status != PENDING for a in self.assignments)

    def all_returned(self) -> bool:
        return all(a.status == RETURNED for a in self.assignments)

    @property
    def released_count(self) -> int:
        return sum(1 for a in self.assignments if a.status != PENDING)

    @property
    def returned_count(self) -> int:
        return sum(1 for a in self.assignments if a.status == RETURNED)

    def overdue(self, today: date, window_days: int = RETURN_WINDOW_DAYS) -> list[DivisionAssignment]:
        return [a for a in self.assignments if a.is_overdue(today, window_days)]

    def to_list(self) -> list[dict]:
        return [a.to_dict() for a in self.assignments]

    @classmethod
    def from_list(cls, rows: list[dict]) -> "DivisionTracker":
        return cls([DivisionAssignment.from_dict(row) for row in rows or []])
