"""Inventory tracker with marketplace listings, file import/export and a remote workbook mirror."""
from __future__ import annotations

from .categories import SENTINEL_CATEGORY, CategoryRegistry
from .inventory import InventoryManager, ItemStore
from .listings import MarketplaceListing
from .models import InventoryItem

__all__ = [
    "create_app",
    "CategoryRegistry",
    "InventoryItem",
    "InventoryManager",
    "ItemStore",
    "MarketplaceListing",
    "SENTINEL_CATEGORY",
]


def create_app(*args, **kwargs):
    from .app import create_app as _create_app

    return _create_app(*args, **kwargs)
