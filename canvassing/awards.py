"""
canvassing/awards.py

Abstract of Awards calculator.

Pure functions over (line items x supplier quotes). Nothing here is cached:
every call recomputes from the current quotes.

Rules:
- A quote bids on an item only with a positive price. Zero, blank and
  unparseable prices are "no bid".
- Lowest price per item: strictly smallest positive price wins.
- Supplier grand total: sum of price x quantity over all items; unbid items
  add zero (they do not disqualify the supplier).
- Recommended awardee: smallest grand total among suppliers whose total is
  positive; none when nobody has a positive total.
- Exact ties go to the quote with the smallest id.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from .purchase_requests import LineItem
from .quotes import SupplierQuote
from .utils import ZERO, money


@dataclass(frozen=True)
class ItemAward:
    item_id: int
    supplier_id: int
    supplier_name: str
    price: Decimal

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "price": str(money(self.price)),
        }


@dataclass(frozen=True)
class SupplierTotal:
    supplier_id: int
    supplier_name: str
    total: Decimal

    def to_dict(self) -> dict:
        return {
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "total": str(money(self.total)),
        }


@dataclass(frozen=True)
class AwardRecommendation:
    item_awards: dict[int, Optional[ItemAward]]
    supplier_totals: list[SupplierTotal]
    awardee: Optional[SupplierTotal]

    def to_dict(self) -> dict:
        return {
            "items": {
                str(item_id): (award.to_dict() if award else None)
                for item_id, award in self.item_awards.items()
            },
            "supplier_totals": [t.to_dict() for t in self.supplier_totals],
            "awardee": self.awardee.to_dict() if self.awardee else None,
        }


def _in_tie_break_order(quotes: Iterable[SupplierQuote]) -> list[SupplierQuote]:
    return sorted(quotes, key=lambda q: q.id)


def quoted_price(quote: SupplierQuote, item_id: int) -> Decimal:
    """Positive price a supplier quoted for an item, 0 for no bid."""
    return quote.price_for(item_id)


def lowest_for_item(item: LineItem, quotes: Iterable[SupplierQuote]) -> Optional[ItemAward]:
    best: Optional[ItemAward] = None
    for quote in _in_tie_break_order(quotes):
        price = quoted_price(quote, item.id)
        if price > ZERO and (best is None or price < best.price):
            best = ItemAward(item.id, quote.id, quote.supplier_name, price)
    return best


def supplier_totals(items: Iterable[LineItem], quotes: Iterable[SupplierQuote]) -> list[SupplierTotal]:
    items = list(items)
    totals = []
    for quote in quotes:
        total = sum((quoted_price(quote, item.id) * item.qty for item in items if item.qty > ZERO), ZERO)
        totals.append(SupplierTotal(quote.id, quote.supplier_name, total))
    return totals


def lowest_supplier(totals: Iterable[SupplierTotal]) -> Optional[SupplierTotal]:
    best: Optional[SupplierTotal] = None
    for current in sorted(totals, key=lambda t: t.supplier_id):
        if current.total > ZERO and (best is None or current.total < best.total):
            best = current
    return best


def recommend(items: Iterable[LineItem], quotes: Iterable[SupplierQuote]) -> AwardRecommendation:
    items = list(items)
    quotes = list(quotes)
    totals = supplier_totals(items, quotes)
    return AwardRecommendation(
        item_awards={item.id: lowest_for_item(item, quotes) for item in items},
        supplier_totals=totals,
        awardee=lowest_supplier(totals),
    )
