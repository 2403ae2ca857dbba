"""Inventory item record and identifier minting."""
from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

from .categories import SENTINEL_CATEGORY
from .listings import MarketplaceListing, Numeric

_ID_ALPHABET = string.ascii_lowercase + string.digits
_ID_SUFFIX_LENGTH = 7


def mint_item_id(taken: Iterable[str] = ()) -> str:
    """Return a time-based identifier with a random suffix not in ``taken``."""

    taken_ids = taken if isinstance(taken, (set, frozenset)) else set(taken)
    while True:
        suffix = "".join(random.choices(_ID_ALPHABET, k=_ID_SUFFIX_LENGTH))
        candidate = f"{int(time.time() * 1000)}{suffix}"
        if candidate not in taken_ids:
            return candidate


@dataclass
class InventoryItem:
    """Represents a single inventory item."""

    id: str
    name: str = ""
    quantity: Numeric = 0
    category: str = SENTINEL_CATEGORY
    price: Numeric = 0
    marketplaces: List[MarketplaceListing] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "quantity": self.quantity,
            "category": self.category,
            "price": self.price,
            "marketplaces": [listing.to_dict() for listing in self.marketplaces],
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "InventoryItem":
        item_id = str(record.get("id") or "").strip()
        if not item_id:
            raise ValueError("Item record missing id")
        raw_listings = record.get("marketplaces")
        listings: List[MarketplaceListing] = []
        if isinstance(raw_listings, list):
            listings = [
                MarketplaceListing.from_record(entry)
                for entry in raw_listings
                if isinstance(entry, dict)
            ]
        name = record.get("name")
        category = record.get("category")
        quantity = record.get("quantity")
        price = record.get("price")
        return cls(
            id=item_id,
            name="" if name is None else str(name),
            quantity=0 if quantity is None else quantity,
            category=str(category or "").strip() or SENTINEL_CATEGORY,
            price=0 if price is None else price,
            marketplaces=listings,
        )
