"""Ordered category names with an always-last ``Other`` entry."""
from __future__ import annotations

from typing import Any, Iterable, Iterator, List, Optional

SENTINEL_CATEGORY = "Other"

DEFAULT_CATEGORIES: List[str] = [
    "Electronics",
    "Clothing",
    "Books",
    "Home & Garden",
    "Toys",
    "Sports Equipment",
    SENTINEL_CATEGORY,
]


class CategoryRegistry:
    """Ordered set of unique category names.

    The sentinel is present exactly once and always last. The registry never
    touches items; callers reassign orphaned items themselves.
    """

    def __init__(self, names: Optional[Iterable[Any]] = None) -> None:
        source = DEFAULT_CATEGORIES if names is None else names
        self._names: List[str] = []
        for name in source:
            if not isinstance(name, str):
                continue
            candidate = name.strip()
            if not candidate or candidate == SENTINEL_CATEGORY or candidate in self._names:
                continue
            self._names.append(candidate)
        self._names.append(SENTINEL_CATEGORY)

    @property
    def sentinel(self) -> str:
        return SENTINEL_CATEGORY

    def names(self) -> List[str]:
        return list(self._names)

    def add(self, name: str) -> bool:
        candidate = (name or "").strip()
        if not candidate or candidate == SENTINEL_CATEGORY or candidate in self._names:
            return False
        self._names.insert(len(self._names) - 1, candidate)
        return True

    def remove(self, name: str) -> bool:
        if name == SENTINEL_CATEGORY or name not in self._names:
            return False
        self._names.remove(name)
        return True

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._names))

    def __len__(self) -> int:
        return len(self._names)

    def __repr__(self) -> str:
        return f"CategoryRegistry({self._names!r})"
