"""Item store and the manager that keeps items and categories consistent."""
from __future__ import annotations

import logging
from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from threading import RLock
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Set

from . import exporter, importer
from .categories import SENTINEL_CATEGORY, CategoryRegistry
from .listings import MarketplaceListing, Numeric
from .models import InventoryItem, mint_item_id
from .storage import CATEGORIES_KEY, ITEMS_KEY, LocalStore

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class ItemStore:
    """Ordered item collection keyed by identifier.

    Identifier uniqueness is the caller's job. ``update`` and ``delete`` on an
    unknown identifier are silent no-ops. Listeners run after every change of
    contents, in registration order.
    """

    def __init__(self, items: Optional[Iterable[InventoryItem]] = None) -> None:
        self._items: List[InventoryItem] = list(items or [])
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _changed(self) -> None:
        for listener in list(self._listeners):
            listener()

    def __iter__(self) -> Iterator[InventoryItem]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def ids(self) -> Set[str]:
        return {item.id for item in self._items}

    def get(self, item_id: str) -> Optional[InventoryItem]:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def add(self, item: InventoryItem) -> None:
        self._items.append(item)
        self._changed()

    def extend(self, items: Iterable[InventoryItem]) -> None:
        batch = list(items)
        if not batch:
            return
        self._items.extend(batch)
        self._changed()

    def update(self, item: InventoryItem) -> bool:
        for index, existing in enumerate(self._items):
            if existing.id == item.id:
                self._items[index] = item
                self._changed()
                return True
        return False

    def delete(self, item_id: str) -> bool:
        remaining = [item for item in self._items if item.id != item_id]
        if len(remaining) == len(self._items):
            return False
        self._items = remaining
        self._changed()
        return True

    def reassign_category(self, source: str, target: str) -> int:
        moved = 0
        for item in self._items:
            if item.category == source:
                item.category = target
                moved += 1
        if moved:
            self._changed()
        return moved

    def filtered(self, search_term: str = "") -> Iterator[InventoryItem]:
        term = (search_term or "").casefold()
        for item in self._items:
            if not term:
                yield item
            elif term in str(item.name).casefold() or term in str(item.category).casefold():
                yield item


@dataclass
class InventoryManager:
    """Owns the item store and category registry persisted to a JSON file."""

    storage_path: Path
    _lock: RLock = field(default_factory=RLock, init=False)

    def __post_init__(self) -> None:
        self.storage_path = Path(self.storage_path)
        self._local = LocalStore(self.storage_path)
        self._listeners: List[Listener] = []
        self._revision = 0
        with self._lock:
            self.categories = CategoryRegistry(self._load_categories())
            self.items = ItemStore(self._load_items())
            if any([self._ensure_category_locked(item) for item in self.items]):
                self._save_categories_locked()
            self.items.subscribe(self._on_items_changed)

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------
    def subscribe(self, listener: Listener) -> None:
        """Register a callable run after item contents change.

        Listeners run once the manager lock has been released.
        """

        self._listeners.append(listener)

    def _on_items_changed(self) -> None:
        self._revision += 1
        self._local.save(ITEMS_KEY, [item.to_dict() for item in self.items])

    def _run_mutation(self, operation: Callable[[], Any]) -> Any:
        with self._lock:
            before = self._revision
            result = operation()
            changed = self._revision != before
        if changed:
            for listener in list(self._listeners):
                listener()
        return result

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------
    def list_categories(self) -> List[str]:
        with self._lock:
            return self.categories.names()

    def add_category(self, name: str) -> bool:
        with self._lock:
            added = self.categories.add(name)
            if added:
                self._save_categories_locked()
            return added

    def remove_category(self, name: str) -> int:
        """Remove ``name`` and move its items to the sentinel category.

        Returns the number of reassigned items.
        """

        def _remove() -> int:
            if not self.categories.remove(name):
                return 0
            moved = self.items.reassign_category(name, SENTINEL_CATEGORY)
            self._save_categories_locked()
            logger.info("Removed category %r, reassigned %d item(s)", name, moved)
            return moved

        return self._run_mutation(_remove)

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------
    def list_items(self, search: str = "") -> List[InventoryItem]:
        with self._lock:
            return [deepcopy(item) for item in self.items.filtered(search)]

    def get_item(self, item_id: str) -> InventoryItem:
        with self._lock:
            item = self.items.get(item_id)
            if item is None:
                raise KeyError(f"Item '{item_id}' not found")
            return deepcopy(item)

    def has_item(self, item_id: str) -> bool:
        with self._lock:
            return self.items.get(item_id) is not None

    def create_item(
        self,
        name: str,
        quantity: Numeric,
        category: str,
        price: Numeric,
        marketplaces: Optional[Iterable[MarketplaceListing]] = None,
    ) -> InventoryItem:
        def _create() -> InventoryItem:
            self._require_category_locked(category)
            item = InventoryItem(
                id=mint_item_id(self.items.ids()),
                name=name,
                quantity=quantity,
                category=category,
                price=price,
                marketplaces=list(marketplaces or []),
            )
            self.items.add(item)
            return deepcopy(item)

        return self._run_mutation(_create)

    def update_item(self, item: InventoryItem) -> bool:
        """Replace the stored item sharing ``item.id``.

        An unknown identifier is tolerated and leaves the store untouched.
        """

        def _update() -> bool:
            self._require_category_locked(item.category)
            return self.items.update(deepcopy(item))

        return self._run_mutation(_update)

    def delete_item(self, item_id: str) -> bool:
        return self._run_mutation(lambda: self.items.delete(item_id))

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------
    def import_rows(self, rows: Iterable[Dict[str, Any]]) -> List[InventoryItem]:
        """Append one item per row; never merges with existing items."""

        def _import() -> List[InventoryItem]:
            produced = importer.normalize_rows(rows, taken_ids=self.items.ids())
            registered = [
                item.category for item in produced if self._ensure_category_locked(item)
            ]
            if registered:
                self._save_categories_locked()
            self.items.extend(produced)
            logger.info(
                "Imported %d item(s), registered categories: %s",
                len(produced),
                ", ".join(registered) or "none",
            )
            return [deepcopy(item) for item in produced]

        return self._run_mutation(_import)

    def export_rows(self) -> List[Dict[str, Any]]:
        with self._lock:
            return exporter.export_rows(self.items)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _load_items(self) -> List[InventoryItem]:
        raw = self._local.load(ITEMS_KEY)
        if not isinstance(raw, list):
            return []
        items: List[InventoryItem] = []
        for record in raw:
            if not isinstance(record, dict):
                continue
            try:
                items.append(InventoryItem.from_record(record))
            except ValueError as exc:
                logger.warning("Skipping stored item: %s", exc)
        return items

    def _load_categories(self) -> Optional[List[Any]]:
        raw = self._local.load(CATEGORIES_KEY)
        if not isinstance(raw, list):
            return None
        return raw

    def _save_categories_locked(self) -> None:
        self._local.save(CATEGORIES_KEY, self.categories.names())

    def _require_category_locked(self, category: str) -> None:
        if category not in self.categories:
            raise ValueError(f"Unknown category '{category}'")

    def _ensure_category_locked(self, item: InventoryItem) -> bool:
        """Register the item's category if unknown; returns whether it was added."""

        item.category = str(item.category or "").strip() or SENTINEL_CATEGORY
        return self.categories.add(item.category)
