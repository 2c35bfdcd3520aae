"""
canvassing/purchase_requests.py

Purchase request values and intake rules.

A PurchaseRequest is what the canvassing workflow is started from. Totals and
the high-value flag are always derived from the line items, never stored.

Intake rules (same gate as the request form):
- at least one line item with description, quantity and unit cost
- no line item with a negative quantity or unit cost
- office/section and purpose are mandatory
- high-value requests (total >= threshold) also need budget number, PAP code
  and a proposal attachment
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from .utils import ZERO, money, parse_amount

HIGH_VALUE_THRESHOLD = Decimal("10000")

UNITS = [
    "pc", "ream", "box", "set", "pair", "bottle",
    "kg", "liter", "gallon", "pack", "roll", "sheet", "meter", "unit", "lot",
]

SECTIONS = [
    "STOD", "LTSP", "ARBDSP", "Legal", "PARPO",
    "PARAD", "TDG Unit", "Budget", "Accounting",
]

STATUS_DRAFT = "draft"
STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_PROCESSING = "processing"
STATUS_OVERDUE = "overdue"

PR_STATUSES = [STATUS_DRAFT, STATUS_PENDING, STATUS_APPROVED, STATUS_PROCESSING, STATUS_OVERDUE]

_PR_NO_RE = re.compile(r"^(\d{4})-PR-(\d+)$")


@dataclass
class LineItem:
    id: int
    desc: str
    unit: str
    qty: Decimal
    unit_cost: Decimal
    stock: str = ""

    @property
    def line_total(self) -> Decimal:
        total = self.qty * self.unit_cost
        return total if total > ZERO else ZERO

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "desc": self.desc,
            "stock": self.stock,
            "unit": self.unit,
            "qty": str(self.qty),
            "unit_cost": str(self.unit_cost),
            "line_total": str(money(self.line_total)),
        }


@dataclass
class PurchaseRequest:
    pr_no: str
    office_section: str
    purpose: str
    items: list[LineItem] = field(default_factory=list)
    pr_date: date | None = None
    responsibility_code: str = ""
    budget_number: str | None = None
    pap_code: str | None = None
    proposal_file_name: str | None = None
    status: str = STATUS_PENDING
    threshold: Decimal = HIGH_VALUE_THRESHOLD

    @property
    def total(self) -> Decimal:
        return sum((item.line_total for item in self.items), ZERO)

    @property
    def is_high_value(self) -> bool:
        return is_high_value(self.total, self.threshold)

    @property
    def last_four(self) -> str:
        return self.pr_no[-4:]

    def item(self, item_id: int) -> LineItem | None:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def to_dict(self) -> dict:
        return {
            "pr_no": self.pr_no,
            "date": self.pr_date.isoformat() if self.pr_date else None,
            "office_section": self.office_section,
            "responsibility_code": self.responsibility_code,
            "purpose": self.purpose,
            "budget_number": self.budget_number,
            "pap_code": self.pap_code,
            "proposal_file_name": self.proposal_file_name,
            "status": self.status,
            "items": [item.to_dict() for item in self.items],
            "total": str(money(self.total)),
            "is_high_value": self.is_high_value,
        }


def is_high_value(total: Decimal, threshold: Decimal = HIGH_VALUE_THRESHOLD) -> bool:
    return total >= threshold


def intake_problems(pr: PurchaseRequest) -> list[str]:
    """Return the reasons a request cannot be submitted (empty when it can)."""
    problems = []

    has_items = any(item.desc and item.qty > ZERO and item.unit_cost > ZERO for item in pr.items)
    if not has_items:
        problems.append("At least one line item with description, quantity and unit cost is required.")
    if any(item.qty < ZERO or item.unit_cost < ZERO for item in pr.items):
        problems.append("Quantity and unit cost cannot be negative.")

    if not (pr.office_section or "").strip():
        problems.append("Office/section is required.")
    if not (pr.purpose or "").strip():
        problems.append("Purpose is required.")

    if pr.is_high_value:
        if not pr.budget_number:
            problems.append("Budget number is required for high-value requests.")
        if not pr.pap_code:
            problems.append("PAP code is required for high-value requests.")
        if not pr.proposal_file_name:
            problems.append("A proposal attachment is required for high-value requests.")

    return problems


def generate_pr_number(existing_numbers, year: int) -> str:
    """
    Next PR number for a year: YYYY-PR-NNNN.

    Sequence continues from the highest number already used in that year,
    numbers from other years are ignored.
    """
    highest = 0
    for number in existing_numbers:
        m = _PR_NO_RE.match((number or "").strip())
        if not m or int(m.group(1)) != year:
            continue
        highest = max(highest, int(m.group(2)))
    return f"{year}-PR-{highest + 1:04d}"


def from_intake(pr_no: str, data: dict, *, threshold: Decimal = HIGH_VALUE_THRESHOLD) -> PurchaseRequest:
    """
    Build a PurchaseRequest from raw intake values.

    Quantity and price arrive as strings; blanks and garbage become zero.
    Rows without a description are dropped.
    """
    items = []
    next_id = 1
    for row in data.get("items") or []:
        desc = (row.get("desc") or "").strip()
        if not desc:
            continue
        items.append(
            LineItem(
                id=next_id,
                desc=desc,
                stock=(row.get("stock") or "").strip(),
                unit=(row.get("unit") or "").strip(),
                qty=parse_amount(row.get("qty")),
                unit_cost=parse_amount(row.get("price", row.get("unit_cost"))),
            )
        )
        next_id += 1

    return PurchaseRequest(
        pr_no=pr_no,
        pr_date=data.get("date"),
        office_section=(data.get("office_section") or "").strip(),
        responsibility_code=(data.get("responsibility_code") or "").strip(),
        purpose=(data.get("purpose") or "").strip(),
        budget_number=(data.get("budget_number") or "").strip() or None,
        pap_code=(data.get("pap_code") or "").strip() or None,
        proposal_file_name=(data.get("proposal_file_name") or "").strip() or None,
        items=items,
        status=data.get("status") or STATUS_PENDING,
        threshold=threshold,
    )
