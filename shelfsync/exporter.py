"""Map items to export rows and render them as CSV or Excel documents.

Every sink consumes the same row mapping so the listings cell is encoded
identically for file downloads and for the remote spreadsheet.
"""
from __future__ import annotations

import csv
from io import BytesIO, StringIO
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

import xlwt
from openpyxl import Workbook

from . import listings
from .models import InventoryItem

EXPORT_HEADERS: List[str] = [
    "Name",
    "Quantity",
    "Category",
    "Cost Price",
    "Marketplace Listings",
]

WORKSHEET_TITLE = "Inventory"
EXPORT_BASENAME = "inventory_export"

EXPORT_FORMATS: Dict[str, str] = {
    "csv": "text/csv; charset=utf-8",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "xls": "application/vnd.ms-excel",
}


def item_to_row(item: InventoryItem) -> Dict[str, Any]:
    return {
        "Name": item.name,
        "Quantity": item.quantity,
        "Category": item.category,
        "Cost Price": item.price,
        "Marketplace Listings": listings.encode(item.marketplaces),
    }


def export_rows(items: Iterable[InventoryItem]) -> List[Dict[str, Any]]:
    return [item_to_row(item) for item in items]


def row_values(
    rows: Iterable[Mapping[str, Any]],
    fieldnames: Sequence[str] = EXPORT_HEADERS,
) -> List[List[Any]]:
    """Header-ordered cell matrix without the header row."""

    matrix: List[List[Any]] = []
    for row in rows:
        values = []
        for field in fieldnames:
            value = row.get(field, "")
            values.append("" if value is None else value)
        matrix.append(values)
    return matrix


def rows_to_csv(rows: Iterable[Mapping[str, Any]]) -> str:
    buffer = StringIO()
    writer = csv.DictWriter(buffer, fieldnames=EXPORT_HEADERS, extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow(row)
    return buffer.getvalue()


def rows_to_xlsx(rows: Iterable[Mapping[str, Any]]) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = WORKSHEET_TITLE
    sheet.append(EXPORT_HEADERS)
    for values in row_values(rows):
        sheet.append(values)
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def rows_to_xls(rows: Iterable[Mapping[str, Any]]) -> bytes:
    workbook = xlwt.Workbook()
    sheet = workbook.add_sheet(WORKSHEET_TITLE)
    for col_index, field in enumerate(EXPORT_HEADERS):
        sheet.write(0, col_index, field)
    for row_index, values in enumerate(row_values(rows), start=1):
        for col_index, value in enumerate(values):
            sheet.write(row_index, col_index, value)
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def render(rows: Iterable[Mapping[str, Any]], export_format: str) -> Tuple[bytes, str, str]:
    """Render ``rows`` and return ``(content, filename, mimetype)``."""

    export_format = (export_format or "").lower()
    if export_format not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format '{export_format}'")
    if export_format == "csv":
        content = rows_to_csv(rows).encode("utf-8")
    elif export_format == "xlsx":
        content = rows_to_xlsx(rows)
    else:
        content = rows_to_xls(rows)
    return content, f"{EXPORT_BASENAME}.{export_format}", EXPORT_FORMATS[export_format]
