"""
canvassing/roster.py

Signature rosters (BAC resolution and abstract of awards).

A roster is a fixed, ordered list of signatories. "All signed" gates stage
advancement. Signing is idempotent in effect: re-signing only refreshes the
timestamp. There is no un-sign and no identity check here; the API layer can
optionally require the acting user to be the named signatory.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .errors import SignatoryNotFound
from .utils import format_clock

DEFAULT_BAC_MEMBERS = [
    ("Yvonne M.", "BAC Chairperson"),
    ("Mariel T.", "BAC Member"),
    ("Robert A.", "BAC Member"),
    ("PARPO II", "PARPO / Approver"),
]


@dataclass
class Signatory:
    name: str
    designation: str
    signed: bool = False
    signed_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "designation": self.designation,
            "signed": self.signed,
            "signed_at": self.signed_at.isoformat() if self.signed_at else None,
            "signed_at_display": format_clock(self.signed_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Signatory":
        signed_at = data.get("signed_at")
        return cls(
            name=data["name"],
            designation=data.get("designation") or "",
            signed=bool(data.get("signed")),
            signed_at=datetime.fromisoformat(signed_at) if signed_at else None,
        )


class SignatureRoster:
    def __init__(self, signatories: list[Signatory]):
        self.signatories = list(signatories)

    @classmethod
    def from_members(cls, members) -> "SignatureRoster":
        """Fresh roster from (name, designation) pairs."""
        return cls([Signatory(name, designation) for name, designation in members])

    def __len__(self):
        return len(self.signatories)

    def __iter__(self):
        return iter(self.signatories)

    def __getitem__(self, index: int) -> Signatory:
        if not 0 <= index < len(self.signatories):
            raise SignatoryNotFound(f"No signatory at position {index}.", index=index)
        return self.signatories[index]

    def sign(self, index: int, at: datetime) -> Signatory:
        signatory = self[index]
        signatory.signed = True
        signatory.signed_at = at
        return signatory

    def is_complete(self) -> bool:
        return all(s.signed for s in self.signatories)

    @property
    def signed_count(self) -> int:
        return sum(1 for s in self.signatories if s.signed)

    def unsigned(self) -> list[Signatory]:
        return [s for s in self.signatories if not s.signed]

    def reset_copy(self) -> "SignatureRoster":
        """Same members, nobody signed."""
        return SignatureRoster([Signatory(s.name, s.designation) for s in self.signatories])

    def to_list(self) -> list[dict]:
        return [s.to_dict() for s in self.signatories]

    @classmethod
    def from_list(cls, rows: list[dict]) -> "SignatureRoster":
        return cls([Signatory.from_dict(row) for row in rows or []])
