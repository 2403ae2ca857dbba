"""Key-value JSON blob store backing the local inventory copy."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

ITEMS_KEY = "items"
CATEGORIES_KEY = "categories"


@dataclass
class LocalStore:
    """Persists named blobs into a single JSON document.

    An absent or corrupt document reads as "no data". Every save rewrites
    the whole document through a temporary file.
    """

    path: Path

    def __post_init__(self) -> None:
        self.path = Path(self.path)

    def load(self, key: str) -> Optional[Any]:
        return self._read_document().get(key)

    def save(self, key: str, value: Any) -> None:
        document = self._read_document()
        document[key] = value
        self._write_document(document)

    def _read_document(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            raw = self.path.read_text(encoding="utf-8") or "{}"
            document = json.loads(raw)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable inventory file %s: %s", self.path, exc)
            return {}
        if not isinstance(document, dict):
            logger.warning("Ignoring inventory file %s: expected a JSON object", self.path)
            return {}
        return document

    def _write_document(self, document: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_suffix(".tmp")
        temp_path.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")
        temp_path.replace(self.path)
