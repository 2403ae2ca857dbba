"""Flask application exposing the inventory, import/export and sync as a JSON API."""
from __future__ import annotations

import atexit
import logging
import math
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from flask import Flask, Response, jsonify, request

from . import exporter, importer
from .config import Settings, get_settings
from .exceptions import ImportParseError, UnsupportedFormatError
from .inventory import InventoryManager
from .listings import MarketplaceListing
from .marketplaces import MARKETPLACE_PLATFORMS
from .models import InventoryItem
from .remote import GraphWorkbookMirror, RemoteMirror, TokenProvider
from .sync import SyncOrchestrator

logger = logging.getLogger(__name__)

_REQUIRED_ITEM_FIELDS = ("name", "quantity", "category", "price")


def create_app(
    settings: Optional[Settings] = None,
    *,
    storage_path: Optional[Union[str, Path]] = None,
    mirror: Optional[RemoteMirror] = None,
    token_provider: Optional[TokenProvider] = None,
) -> Flask:
    """Build the API around one inventory file and one remote mirror.

    A ``mirror`` passed in stays owned by the caller. When none is given the
    app builds a Graph workbook mirror and closes its HTTP client at exit.
    """

    settings = settings or get_settings()
    app = Flask(__name__)
    app.config["APP_NAME"] = settings.app_name

    manager = InventoryManager(
        storage_path=Path(storage_path) if storage_path is not None else settings.storage_path
    )
    if mirror is None:
        mirror = GraphWorkbookMirror(
            token_provider=token_provider,
            access_token=settings.graph_access_token,
            workbook_name=settings.workbook_name,
            worksheet=settings.worksheet_name,
            base_url=settings.graph_base_url,
        )
        atexit.register(mirror.close)
    orchestrator = SyncOrchestrator(mirror, manager.export_rows)
    if settings.sync_enabled:
        manager.subscribe(orchestrator.on_store_changed)

    app.extensions["shelfsync"] = {
        "manager": manager,
        "sync": orchestrator,
        "settings": settings,
    }

    def _json_error(message: str, status: int = 400) -> Any:
        return jsonify({"error": message}), status

    @app.get("/health")
    def health() -> Any:
        return jsonify({"status": "ok", "environment": settings.environment})

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------
    @app.get("/api/items")
    def list_items() -> Any:
        search = (request.args.get("search") or "").strip()
        return jsonify([item.to_dict() for item in manager.list_items(search)])

    @app.get("/api/items/<string:item_id>")
    def get_item(item_id: str) -> Any:
        try:
            item = manager.get_item(item_id)
        except KeyError as exc:
            return _json_error(str(exc), 404)
        return jsonify(item.to_dict())

    @app.post("/api/items")
    def create_item() -> Any:
        payload = _get_payload(request)
        try:
            fields = _parse_item_payload(payload)
            item = manager.create_item(**fields)
        except ValueError as exc:
            return _json_error(str(exc))
        return jsonify(item.to_dict()), 201

    @app.put("/api/items/<string:item_id>")
    def update_item(item_id: str) -> Any:
        if not manager.has_item(item_id):
            return _json_error(f"Item '{item_id}' not found", 404)
        payload = _get_payload(request)
        try:
            fields = _parse_item_payload(payload)
            item = InventoryItem(id=item_id, **fields)
            manager.update_item(item)
        except ValueError as exc:
            return _json_error(str(exc))
        return jsonify(item.to_dict())

    @app.delete("/api/items/<string:item_id>")
    def delete_item(item_id: str) -> Any:
        manager.delete_item(item_id)
        return "", 204

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------
    @app.get("/api/categories")
    def list_categories() -> Any:
        return jsonify({"categories": manager.list_categories()})

    @app.post("/api/categories")
    def create_category() -> Any:
        payload = _get_payload(request)
        name = str(payload.get("name") or "").strip()
        added = manager.add_category(name)
        body = {"added": added, "categories": manager.list_categories()}
        return jsonify(body), 201 if added else 200

    @app.post("/api/categories/<path:name>/delete")
    def delete_category(name: str) -> Any:
        reassigned = manager.remove_category(name)
        return jsonify(
            {
                "categories": manager.list_categories(),
                "reassigned": reassigned,
            }
        )

    @app.get("/api/marketplaces")
    def list_marketplaces() -> Any:
        return jsonify([platform.to_dict() for platform in MARKETPLACE_PLATFORMS])

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------
    @app.post("/api/items/import")
    def import_items() -> Any:
        upload = request.files.get("file")
        if upload is None or not upload.filename:
            return _json_error("Missing upload file")
        try:
            content = upload.read()
        finally:
            upload.close()
        try:
            imported = importer.import_file(manager, upload.filename, content)
        except UnsupportedFormatError as exc:
            return _json_error(str(exc), 415)
        except ImportParseError as exc:
            logger.warning("Rejected import of %s: %s", upload.filename, exc)
            return _json_error(f"Error parsing file: {exc}")
        return jsonify(
            {
                "imported": [item.to_dict() for item in imported],
                "count": len(imported),
            }
        )

    @app.get("/api/items/export")
    def export_items() -> Any:
        export_format = request.args.get("format") or "csv"
        try:
            content, filename, mimetype = exporter.render(manager.export_rows(), export_format)
        except ValueError as exc:
            return _json_error(str(exc))
        return _download_response(content, filename, mimetype)

    # ------------------------------------------------------------------
    # Remote sync
    # ------------------------------------------------------------------
    @app.get("/api/sync")
    def sync_status() -> Any:
        return jsonify(orchestrator.snapshot())

    @app.post("/api/sync")
    def sync_now() -> Any:
        orchestrator.sync_now()
        return jsonify(orchestrator.snapshot())

    return app


def _get_payload(req: Any) -> Dict[str, Any]:
    if req.is_json:
        payload = req.get_json(silent=True)
        return payload if isinstance(payload, dict) else {}
    if req.form:
        return req.form.to_dict()
    return req.get_json(silent=True) or {}


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _is_numeric(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, str):
        try:
            return math.isfinite(float(value.strip()))
        except ValueError:
            return False
    return False


def _require_numeric(value: Any, field: str) -> Any:
    if not _is_numeric(value):
        raise ValueError(f"Field '{field}' must be a number")
    return value.strip() if isinstance(value, str) else value


def _parse_listings(raw: Any) -> List[MarketplaceListing]:
    """Keep only listings that name a platform and a price.

    A listing price that is present but not numeric rejects the payload.
    """

    if not isinstance(raw, list):
        return []
    parsed: List[MarketplaceListing] = []
    for entry in raw:
        if not isinstance(entry, Mapping):
            continue
        listing = MarketplaceListing.from_record(dict(entry))
        if _is_missing(listing.platform) or _is_missing(listing.listing_price):
            continue
        listing.platform = str(listing.platform).strip()
        listing.listing_price = _require_numeric(listing.listing_price, "listingPrice")
        parsed.append(listing)
    return parsed


def _parse_item_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    missing = [key for key in _REQUIRED_ITEM_FIELDS if _is_missing(payload.get(key))]
    if missing:
        raise ValueError(f"Missing required field(s): {', '.join(missing)}")
    return {
        "name": str(payload["name"]).strip(),
        "quantity": _require_numeric(payload["quantity"], "quantity"),
        "category": str(payload["category"]).strip(),
        "price": _require_numeric(payload["price"], "price"),
        "marketplaces": _parse_listings(payload.get("marketplaces")),
    }


def _download_response(content: bytes, filename: str, mimetype: str) -> Response:
    response = Response(content, mimetype=mimetype)
    response.headers["Content-Disposition"] = f"attachment; filename={filename}"
    return response
