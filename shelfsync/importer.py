"""Turn uploaded CSV/Excel files into rows and rows into inventory items."""
from __future__ import annotations

import csv
import logging
from datetime import date, datetime
from io import BytesIO, StringIO
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Set, Tuple

import xlrd
from openpyxl import load_workbook

from . import listings
from .categories import SENTINEL_CATEGORY
from .exceptions import ImportParseError, UnsupportedFormatError
from .models import InventoryItem, mint_item_id

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = ("csv", "xlsx", "xls")

LISTINGS_COLUMN = "Marketplace Listings"

# Capitalized header first, then the lowercase form.
_FIELD_KEYS: Dict[str, Tuple[str, ...]] = {
    "name": ("Name", "name"),
    "quantity": ("Quantity", "quantity"),
    "category": ("Category", "category"),
    "price": ("Cost Price", "Price", "price"),
    "marketplaces": (LISTINGS_COLUMN, "marketplace listings"),
}

_FIELD_DEFAULTS: Dict[str, Any] = {
    "name": "",
    "quantity": 0,
    "category": SENTINEL_CATEGORY,
    "price": 0,
}


def _normalize_key(value: Any) -> str:
    if value is None:
        return ""
    text = str(value).replace("\ufeff", "").strip().lower()
    return " ".join(text.split())


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def _resolve_field(row: Mapping[Any, Any], canonical: str) -> Any:
    keys = _FIELD_KEYS[canonical]
    for key in keys:
        value = row.get(key)
        if not _is_blank(value):
            return value
    wanted = {_normalize_key(key) for key in keys}
    for key, value in row.items():
        if _normalize_key(key) in wanted and not _is_blank(value):
            return value
    return _FIELD_DEFAULTS.get(canonical)


def normalize_row(row: Mapping[Any, Any], item_id: str) -> InventoryItem:
    """Build an item from one loosely keyed row; missing fields take defaults."""

    if not isinstance(row, Mapping):
        row = {}
    name = _resolve_field(row, "name")
    category = str(_resolve_field(row, "category")).strip() or SENTINEL_CATEGORY
    return InventoryItem(
        id=item_id,
        name=str(name),
        quantity=_resolve_field(row, "quantity"),
        category=category,
        price=_resolve_field(row, "price"),
        marketplaces=listings.decode(_resolve_field(row, "marketplaces")),
    )


def normalize_rows(
    rows: Iterable[Mapping[Any, Any]],
    *,
    taken_ids: Iterable[str] = (),
) -> List[InventoryItem]:
    """Produce exactly one item per input row, in input order.

    Identifiers are unique against ``taken_ids`` and within the batch.
    """

    used: Set[str] = set(taken_ids)
    produced: List[InventoryItem] = []
    for row in rows:
        item_id = mint_item_id(used)
        used.add(item_id)
        produced.append(normalize_row(row, item_id))
    return produced


# ----------------------------------------------------------------------
# File readers
# ----------------------------------------------------------------------
def file_extension(filename: str) -> str:
    return Path(filename or "").suffix.lower().lstrip(".")


def read_rows(filename: str, content: bytes) -> List[Dict[str, Any]]:
    """Decode the first table of an uploaded file into header-keyed rows."""

    extension = file_extension(filename)
    if extension not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFormatError(
            f"Unsupported file type '{extension or filename}'; upload a CSV or Excel file"
        )
    if extension == "csv":
        if isinstance(content, str):
            text = content
        else:
            try:
                text = content.decode("utf-8-sig")
            except UnicodeDecodeError as exc:
                raise ImportParseError("CSV file must be UTF-8 encoded") from exc
        rows = parse_csv_rows(text)
    elif extension == "xlsx":
        rows = parse_xlsx_rows(content)
    else:
        rows = parse_xls_rows(content)
    logger.debug("Read %d row(s) from %s", len(rows), filename)
    return rows


def parse_csv_rows(text: str) -> List[Dict[str, Any]]:
    reader = csv.DictReader(StringIO(text), strict=True)
    try:
        if not reader.fieldnames or not any(
            str(name or "").strip() for name in reader.fieldnames
        ):
            raise ImportParseError("Missing header row")
        rows: List[Dict[str, Any]] = []
        for row in reader:
            rows.append(
                {
                    key.replace("\ufeff", "").strip(): value
                    for key, value in row.items()
                    if key is not None
                }
            )
    except csv.Error as exc:
        raise ImportParseError(f"Malformed CSV: {exc}") from exc
    return rows


def _header_labels(values: Sequence[Any]) -> List[str]:
    return ["" if value is None else str(value).strip() for value in values]


def _rows_from_matrix(header: List[str], body: Iterable[Sequence[Any]]) -> List[Dict[str, Any]]:
    if not any(header):
        raise ImportParseError("Missing header row")
    rows: List[Dict[str, Any]] = []
    for values in body:
        record: Dict[str, Any] = {}
        for label, value in zip(header, values):
            if not label or _is_blank(value):
                continue
            record[label] = value
        if not record:
            continue
        rows.append(record)
    return rows


def _cell_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def parse_xlsx_rows(data: bytes) -> List[Dict[str, Any]]:
    try:
        workbook = load_workbook(BytesIO(data), read_only=True, data_only=True)
    except Exception as exc:
        raise ImportParseError("Invalid XLSX file") from exc
    try:
        if not workbook.worksheets:
            raise ImportParseError("Missing worksheet")
        sheet = workbook.worksheets[0]
        matrix = [
            [_cell_value(value) for value in row]
            for row in sheet.iter_rows(values_only=True)
        ]
    finally:
        workbook.close()
    if not matrix:
        raise ImportParseError("Missing header row")
    return _rows_from_matrix(_header_labels(matrix[0]), matrix[1:])


def parse_xls_rows(data: bytes) -> List[Dict[str, Any]]:
    try:
        workbook = xlrd.open_workbook(file_contents=data)
    except Exception as exc:
        raise ImportParseError("Invalid XLS file") from exc
    if workbook.nsheets == 0:
        raise ImportParseError("Missing worksheet")
    sheet = workbook.sheet_by_index(0)
    if sheet.nrows == 0:
        raise ImportParseError("Missing header row")
    header = _header_labels(sheet.row_values(0))
    body: List[List[Any]] = []
    for row_index in range(1, sheet.nrows):
        values: List[Any] = []
        for cell in sheet.row(row_index):
            if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
                values.append(None)
            elif cell.ctype == xlrd.XL_CELL_NUMBER:
                values.append(_cell_value(float(cell.value)))
            else:
                values.append(cell.value)
        body.append(values)
    return _rows_from_matrix(header, body)


def import_file(manager: Any, filename: str, content: bytes) -> List[InventoryItem]:
    """Read ``content`` and append the resulting items to ``manager``.

    Raises before touching the manager when the file cannot be read.
    """

    rows = read_rows(filename, content)
    return manager.import_rows(rows)


__all__ = [
    "LISTINGS_COLUMN",
    "SUPPORTED_EXTENSIONS",
    "import_file",
    "normalize_row",
    "normalize_rows",
    "parse_csv_rows",
    "parse_xls_rows",
    "parse_xlsx_rows",
    "read_rows",
]
