"""
Abstract of awards: lowest price per item, supplier totals, awardee.
"""

from decimal import Decimal

import pytest

from canvassing.awards import lowest_for_item, lowest_supplier, quoted_price, recommend, supplier_totals
from canvassing.purchase_requests import LineItem
from canvassing.quotes import SupplierQuote


def _items():
    return [
        LineItem(id=1, desc="Bond paper", unit="ream", qty=Decimal("10"), unit_cost=Decimal("250")),
        LineItem(id=2, desc="Ballpen", unit="box", qty=Decimal("2"), unit_cost=Decimal("120")),
    ]


def _quote(qid, name, **prices):
    return SupplierQuote(id=qid, supplier_name=name, unit_prices={int(k[1:]): v for k, v in prices.items()})


# ─── quoted_price ────────────────────────────────────────────────────────────

class TestQuotedPrice:

    def test_positive_price(self):
        assert quoted_price(_quote(1, "A", i1="245.50"), 1) == Decimal("245.50")

    def test_missing_blank_garbage_and_negative_are_no_bid(self):
        q = _quote(1, "A", i1="", i2="abc", i3="-5", i4="0")
        for item_id in (1, 2, 3, 4, 99):
            assert quoted_price(q, item_id) == 0

    def test_comma_decimal_accepted(self):
        assert quoted_price(_quote(1, "A", i1="12,5"), 1) == Decimal("12.5")


# ─── lowest_for_item ─────────────────────────────────────────────────────────

class TestLowestForItem:

    def test_picks_strictly_smallest_positive(self):
        item = _items()[0]
        quotes = [_quote(1, "A", i1="250"), _quote(2, "B", i1="240"), _quote(3, "C", i1="0")]
        award = lowest_for_item(item, quotes)
        assert award.supplier_id == 2
        assert award.price == Decimal("240")

    def test_none_when_nobody_bids(self):
        item = _items()[0]
        assert lowest_for_item(item, [_quote(1, "A", i2="10")]) is None
        assert lowest_for_item(item, []) is None

    def test_tie_goes_to_smallest_quote_id(self):
        item = _items()[0]
        quotes = [_quote(5, "Late", i1="200"), _quote(2, "Early", i1="200")]
        assert lowest_for_item(item, quotes).supplier_id == 2


# ─── totals / awardee ────────────────────────────────────────────────────────

class TestSupplierTotals:

    def test_unbid_items_add_zero(self):
        totals = supplier_totals(_items(), [_quote(1, "A", i1="250")])
        assert totals[0].total == Decimal("2500")

    def test_sum_price_times_quantity(self):
        totals = supplier_totals(_items(), [_quote(1, "A", i1="250", i2="100")])
        assert totals[0].total == Decimal("2700")

    def test_lines_without_positive_quantity_add_zero(self):
        items = [
            LineItem(id=1, desc="Bond paper", unit="ream", qty=Decimal("10"), unit_cost=Decimal("250")),
            LineItem(id=2, desc="Credit", unit="pc", qty=Decimal("-50"), unit_cost=Decimal("10")),
            LineItem(id=3, desc="Spare", unit="pc", qty=Decimal("0"), unit_cost=Decimal("5")),
        ]
        honest = _quote(1, "Honest", i1="240")
        gamer = _quote(2, "Gamer", i1="250", i2="10", i3="5")
        totals = supplier_totals(items, [honest, gamer])
        assert [t.total for t in totals] == [Decimal("2400"), Decimal("2500")]
        assert recommend(items, [honest, gamer]).awardee.supplier_name == "Honest"


class TestRecommend:

    def test_awardee_is_lowest_positive_total(self):
        quotes = [
            _quote(1, "Alpha", i1="250", i2="120"),   # 2740
            _quote(2, "Beta", i1="240", i2="130"),    # 2660
            _quote(3, "Gamma"),                        # 0, ignored
        ]
        rec = recommend(_items(), quotes)
        assert rec.awardee.supplier_id == 2
        assert rec.awardee.total == Decimal("2660")
        assert rec.item_awards[1].supplier_name == "Beta"
        assert rec.item_awards[2].supplier_name == "Alpha"

    def test_no_awardee_without_positive_total(self):
        rec = recommend(_items(), [_quote(1, "A"), _quote(2, "B", i1="abc")])
        assert rec.awardee is None
        assert rec.item_awards == {1: None, 2: None}

    def test_partial_bidder_can_win(self):
        # only bids item 1, still the cheapest grand total
        quotes = [_quote(1, "Full", i1="250", i2="120"), _quote(2, "Partial", i1="100")]
        assert recommend(_items(), quotes).awardee.supplier_name == "Partial"

    def test_awardee_tie_goes_to_smallest_quote_id(self):
        totals = supplier_totals(_items(), [_quote(7, "B", i1="100"), _quote(3, "A", i1="100")])
        assert lowest_supplier(totals).supplier_id == 3

    def test_recomputed_after_price_change(self):
        quotes = [_quote(1, "A", i1="250"), _quote(2, "B", i1="260")]
        assert recommend(_items(), quotes).awardee.supplier_id == 1
        quotes[1].unit_prices[1] = "200"
        assert recommend(_items(), quotes).awardee.supplier_id == 2

    def test_to_dict_is_json_ready(self):
        data = recommend(_items(), [_quote(1, "A", i1="250")]).to_dict()
        assert data["awardee"]["total"] == "2500.00"
        assert data["items"]["1"]["price"] == "250.00"
        assert data["items"]["2"] is None


class TestSingleItem:

    def test_cheaper_supplier_wins_item_and_total(self):
        items = [LineItem(id=1, desc="Toner", unit="pc", qty=Decimal("2"), unit_cost=Decimal("0"))]
        quotes = [_quote(1, "A", i1="10"), _quote(2, "B", i1="5")]
        rec = recommend(items, quotes)
        assert rec.item_awards[1].supplier_name == "B"
        assert rec.item_awards[1].price == Decimal("5")
        assert {t.supplier_name: t.total for t in rec.supplier_totals}["B"] == Decimal("10")

    @pytest.mark.parametrize("bad", ["0", "abc"])
    def test_bad_price_never_wins(self, bad):
        items = [LineItem(id=1, desc="Toner", unit="pc", qty=Decimal("2"), unit_cost=Decimal("0"))]
        rec = recommend(items, [_quote(1, "Bad", i1=bad), _quote(2, "Good", i1="50")])
        assert rec.item_awards[1].supplier_name == "Good"
        assert rec.supplier_totals[0].total == 0
