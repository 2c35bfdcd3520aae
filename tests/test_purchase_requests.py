"""
Purchase request values, intake rules, numbering, display helpers.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from canvassing.purchase_requests import (
    LineItem,
    PurchaseRequest,
    from_intake,
    generate_pr_number,
    intake_problems,
    is_high_value,
)
from canvassing.utils import elapsed_label, format_clock, format_long_date, format_php, parse_amount, parse_decimal


def _pr(total_cost, qty="1", **kwargs):
    return PurchaseRequest(
        pr_no="2026-PR-0001",
        office_section="LTSP",
        purpose="Laptop",
        items=[LineItem(id=1, desc="Laptop", unit="unit", qty=Decimal(qty), unit_cost=Decimal(total_cost))],
        **kwargs,
    )


class TestHighValue:

    def test_below_threshold(self):
        assert not _pr("6700").is_high_value

    def test_above_threshold(self):
        assert _pr("15000").is_high_value

    def test_threshold_is_inclusive(self):
        assert is_high_value(Decimal("10000"))
        assert not is_high_value(Decimal("9999.99"))

    def test_total_is_derived(self, pr):
        assert pr.total == Decimal("2740")
        assert pr.to_dict()["total"] == "2740.00"


class TestIntakeProblems:

    def test_complete_request(self):
        assert intake_problems(_pr("500")) == []

    def test_needs_priced_item_and_header(self):
        pr = PurchaseRequest(pr_no="2026-PR-0002", office_section="", purpose=" ", items=[])
        problems = intake_problems(pr)
        assert len(problems) == 3

    def test_high_value_needs_budget_pap_and_proposal(self):
        assert len(intake_problems(_pr("15000"))) == 3
        pr = _pr("15000", budget_number="B-1", pap_code="PAP-2", proposal_file_name="proposal.pdf")
        assert intake_problems(pr) == []

    def test_negative_line_refused_next_to_valid_one(self):
        pr = from_intake("2026-PR-0004", {
            "office_section": "STOD",
            "purpose": "Supplies",
            "items": [
                {"desc": "Bond paper", "qty": "10", "price": "250"},
                {"desc": "Credit", "qty": "-50", "price": "10"},
            ],
        })
        assert intake_problems(pr) == ["Quantity and unit cost cannot be negative."]

    def test_negative_unit_cost_refused(self):
        pr = _pr("500")
        pr.items.append(LineItem(id=2, desc="Rebate", unit="pc", qty=Decimal("1"), unit_cost=Decimal("-100")))
        assert intake_problems(pr) == ["Quantity and unit cost cannot be negative."]


class TestFromIntake:

    def test_coerces_numbers_and_drops_blank_rows(self):
        pr = from_intake("2026-PR-0003", {
            "office_section": " STOD ",
            "purpose": "Supplies",
            "items": [
                {"desc": "Paper", "unit": "ream", "qty": "3", "price": "1,5"},
                {"desc": "", "qty": "9", "price": "9"},
                {"desc": "Stapler", "unit": "pc", "qty": "abc", "price": ""},
            ],
        })
        assert pr.office_section == "STOD"
        assert [item.id for item in pr.items] == [1, 2]
        assert pr.items[0].unit_cost == Decimal("1.5")
        assert pr.items[1].qty == 0
        assert pr.total == Decimal("4.5")


class TestNumbering:

    def test_first_of_year(self):
        assert generate_pr_number([], 2026) == "2026-PR-0001"

    def test_continues_highest_of_same_year(self):
        numbers = ["2026-PR-0003", "2026-PR-0011", "2025-PR-0099", "garbage", None]
        assert generate_pr_number(numbers, 2026) == "2026-PR-0012"


class TestDisplay:

    @pytest.mark.parametrize("raw,expected", [
        ("12.50", Decimal("12.50")),
        (" 7,25 ", Decimal("7.25")),
        ("", None),
        ("abc", None),
        ("NaN", None),
        (None, None),
        (3, Decimal("3")),
    ])
    def test_parse_decimal(self, raw, expected):
        assert parse_decimal(raw) == expected

    def test_parse_amount_defaults_to_zero(self):
        assert parse_amount("Infinity") == 0
        assert parse_amount("x") == 0

    def test_formats(self):
        assert format_php(Decimal("1234.5")) == "₱1,234.50"
        assert format_long_date(date(2026, 2, 6)) == "February 6, 2026"
        assert format_clock(datetime(2026, 2, 6, 14, 30)) == "02:30 PM"

    def test_elapsed(self):
        now = datetime(2026, 2, 26, 12, 0)
        assert elapsed_label(datetime(2026, 2, 26, 11, 59, 30), now) == "just now"
        assert elapsed_label(datetime(2026, 2, 26, 11, 15), now) == "45 min"
        assert elapsed_label(datetime(2026, 2, 26, 9, 0), now) == "3 hr"
        assert elapsed_label(datetime(2026, 2, 23, 12, 0), now) == "3 days"
