"""
canvassing/quotes.py

Quote ledger: one SupplierQuote per canvassed supplier.

Unit prices are kept exactly as typed (item id -> string). They are only
interpreted by the award calculator, which treats anything that is not a
positive number as "no bid".
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from .errors import QuoteNotFound
from .utils import ZERO, parse_amount

QUOTE_TEXT_FIELDS = ("supplier_name", "address", "contact_no", "tin_no", "delivery_days", "remarks")


@dataclass
class SupplierQuote:
    id: int
    supplier_name: str = ""
    address: str = ""
    contact_no: str = ""
    tin_no: str = ""
    delivery_days: str = ""
    unit_prices: dict[int, str] = field(default_factory=dict)
    remarks: str = ""

    def price_for(self, item_id: int) -> Decimal:
        """Positive quoted price for an item, or 0 when there is no bid."""
        price = parse_amount(self.unit_prices.get(item_id))
        return price if price > ZERO else ZERO

    @property
    def priced_item_ids(self) -> list[int]:
        return [item_id for item_id in self.unit_prices if self.price_for(item_id) > ZERO]

    @property
    def is_usable(self) -> bool:
        """Named supplier with at least one priced item."""
        return bool(self.supplier_name.strip()) and bool(self.priced_item_ids)

    def display_name(self, position: int) -> str:
        return self.supplier_name or f"Supplier {position}"

    def to_dict(self) -> dict:
        data = {name: getattr(self, name) for name in QUOTE_TEXT_FIELDS}
        data["id"] = self.id
        data["unit_prices"] = {str(k): v for k, v in self.unit_prices.items()}
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "SupplierQuote":
        prices = {}
        for key, value in (data.get("unit_prices") or {}).items():
            try:
                prices[int(key)] = "" if value is None else str(value)
            except (TypeError, ValueError):
                continue
        return cls(
            id=int(data["id"]),
            unit_prices=prices,
            **{name: str(data.get(name) or "") for name in QUOTE_TEXT_FIELDS},
        )


class QuoteLedger:
    """Ordered supplier quotes for one canvass session."""

    def __init__(self, quotes: list[SupplierQuote] | None = None, next_id: int | None = None):
        self.quotes: list[SupplierQuote] = list(quotes or [])
        highest = max((q.id for q in self.quotes), default=0)
        self.next_id = max(next_id or 0, highest + 1)

    def __iter__(self):
        return iter(self.quotes)

    def __len__(self):
        return len(self.quotes)

    def add(self) -> SupplierQuote:
        quote = SupplierQuote(id=self.next_id)
        self.next_id += 1
        self.quotes.append(quote)
        return quote

    def get(self, quote_id: int) -> SupplierQuote:
        for quote in self.quotes:
            if quote.id == quote_id:
                return quote
        raise QuoteNotFound(f"No supplier quote with id {quote_id}.", quote_id=quote_id)

    def update(self, quote_id: int, **fields) -> SupplierQuote:
        quote = self.get(quote_id)
        for name, value in fields.items():
            if name not in QUOTE_TEXT_FIELDS:
                raise ValueError(f"Unknown quote field: {name}")
            setattr(quote, name, "" if value is None else str(value))
        return quote

    def set_price(self, quote_id: int, item_id: int, value) -> SupplierQuote:
        quote = self.get(quote_id)
        quote.unit_prices[int(item_id)] = "" if value is None else str(value)
        return quote

    def remove(self, quote_id: int) -> None:
        quote = self.get(quote_id)
        self.quotes.remove(quote)

    def has_usable_quote(self) -> bool:
        return any(q.is_usable for q in self.quotes)

    def to_list(self) -> list[dict]:
        return [q.to_dict() for q in self.quotes]

    @classmethod
    def from_list(cls, rows: list[dict], next_id: int | None = None) -> "QuoteLedger":
        return cls([SupplierQuote.from_dict(row) for row in rows or []], next_id=next_id)
