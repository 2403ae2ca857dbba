from __future__ import annotations

import csv
from io import BytesIO, StringIO

import pytest
from openpyxl import load_workbook

from shelfsync.categories import SENTINEL_CATEGORY


def _create(client, **overrides):
    payload = {
        "name": "Widget",
        "quantity": 5,
        "category": "Electronics",
        "price": 9.99,
        "marketplaces": [
            {"platform": "Amazon", "listingPrice": "12.50", "url": ""},
            {"platform": "", "listingPrice": "1"},
            {"platform": "eBay", "listingPrice": ""},
        ],
    }
    payload.update(overrides)
    return client.post("/api/items", json=payload)


def test_health(client) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok", "environment": "test"}


def test_create_and_fetch_item(client) -> None:
    response = _create(client)
    assert response.status_code == 201
    created = response.get_json()
    assert created["id"]
    assert created["marketplaces"] == [
        {"platform": "Amazon", "listingPrice": "12.50", "url": ""}
    ]

    fetched = client.get(f"/api/items/{created['id']}")
    assert fetched.status_code == 200
    assert fetched.get_json() == created


def test_create_item_requires_fields(client) -> None:
    response = client.post("/api/items", json={"name": "Widget", "quantity": 1})
    assert response.status_code == 400
    assert "category" in response.get_json()["error"]
    assert "price" in response.get_json()["error"]


def test_create_item_rejects_unknown_category(client) -> None:
    response = _create(client, category="Spaceships")
    assert response.status_code == 400
    assert client.get("/api/items").get_json() == []


def test_create_item_from_form_data(client) -> None:
    response = client.post(
        "/api/items",
        data={"name": "Lamp", "quantity": "2", "category": "Home & Garden", "price": "4"},
    )
    assert response.status_code == 201
    assert response.get_json()["quantity"] == "2"


def test_search_filters_by_name_or_category(client) -> None:
    _create(client, name="Widget", category="Electronics")
    _create(client, name="Paperback", category="Books")
    names = [item["name"] for item in client.get("/api/items?search=BOOK").get_json()]
    assert names == ["Paperback"]
    names = [item["name"] for item in client.get("/api/items?search=").get_json()]
    assert names == ["Widget", "Paperback"]


def test_update_item_keeps_identifier(client) -> None:
    created = _create(client).get_json()
    response = client.put(
        f"/api/items/{created['id']}",
        json={"name": "Widget Pro", "quantity": 6, "category": "Toys", "price": 11},
    )
    assert response.status_code == 200
    body = response.get_json()
    assert body["id"] == created["id"]
    assert body["marketplaces"] == []
    items = client.get("/api/items").get_json()
    assert [(item["id"], item["name"]) for item in items] == [(created["id"], "Widget Pro")]


def test_update_unknown_item_returns_404(client) -> None:
    response = client.put(
        "/api/items/missing",
        json={"name": "Ghost", "quantity": 1, "category": "Toys", "price": 1},
    )
    assert response.status_code == 404
    assert client.get("/api/items").get_json() == []


def test_get_unknown_item_returns_404(client) -> None:
    assert client.get("/api/items/missing").status_code == 404


def test_delete_item(client) -> None:
    created = _create(client).get_json()
    assert client.delete(f"/api/items/{created['id']}").status_code == 204
    assert client.get("/api/items").get_json() == []
    assert client.delete("/api/items/missing").status_code == 204


def test_categories_lifecycle(client) -> None:
    categories = client.get("/api/categories").get_json()["categories"]
    assert categories[-1] == SENTINEL_CATEGORY

    response = client.post("/api/categories", json={"name": "Vinyl"})
    assert response.status_code == 201
    assert response.get_json()["categories"][-2:] == ["Vinyl", SENTINEL_CATEGORY]

    again = client.post("/api/categories", json={"name": "Vinyl"})
    assert again.status_code == 200
    assert again.get_json()["added"] is False

    sentinel = client.post("/api/categories", json={"name": SENTINEL_CATEGORY})
    assert sentinel.get_json()["added"] is False


def test_delete_category_reassigns_items(client) -> None:
    first = _create(client, name="Dune", category="Books").get_json()
    _create(client, name="Emma", category="Books")

    response = client.post("/api/categories/Books/delete")
    assert response.status_code == 200
    body = response.get_json()
    assert body["reassigned"] == 2
    assert "Books" not in body["categories"]

    item = client.get(f"/api/items/{first['id']}").get_json()
    assert item["category"] == SENTINEL_CATEGORY


def test_delete_sentinel_category_is_ignored(client) -> None:
    response = client.post(f"/api/categories/{SENTINEL_CATEGORY}/delete")
    assert response.get_json()["reassigned"] == 0
    assert response.get_json()["categories"][-1] == SENTINEL_CATEGORY


def test_import_csv(client) -> None:
    data = {
        "file": (
            BytesIO(
                b"Name,Quantity,Category,Cost Price,Marketplace Listings\n"
                b'Record,1,Vinyl,20,"eBay: $3.00 (http://x); Etsy: $4"\n'
            ),
            "items.csv",
        )
    }
    response = client.post("/api/items/import", data=data, content_type="multipart/form-data")
    assert response.status_code == 200
    body = response.get_json()
    assert body["count"] == 1
    assert body["imported"][0]["marketplaces"] == [
        {"platform": "eBay", "listingPrice": "3.00", "url": "http://x"},
        {"platform": "Etsy", "listingPrice": "4", "url": ""},
    ]
    assert "Vinyl" in client.get("/api/categories").get_json()["categories"]


def test_import_rejects_unsupported_file(client) -> None:
    data = {"file": (BytesIO(b"hello"), "notes.txt")}
    response = client.post("/api/items/import", data=data, content_type="multipart/form-data")
    assert response.status_code == 415


def test_import_reports_parse_errors(client) -> None:
    data = {"file": (BytesIO(b"not an excel file"), "items.xlsx")}
    response = client.post("/api/items/import", data=data, content_type="multipart/form-data")
    assert response.status_code == 400
    assert response.get_json()["error"].startswith("Error parsing file")
    assert client.get("/api/items").get_json() == []


def test_import_requires_file(client) -> None:
    response = client.post("/api/items/import")
    assert response.status_code == 400


def test_export_csv_download(client) -> None:
    _create(client)
    response = client.get("/api/items/export?format=csv")
    assert response.status_code == 200
    assert response.headers["Content-Disposition"] == "attachment; filename=inventory_export.csv"
    rows = list(csv.DictReader(StringIO(response.data.decode("utf-8"))))
    assert rows[0]["Marketplace Listings"] == "Amazon: $12.50"
    assert rows[0]["Cost Price"] == "9.99"


def test_export_xlsx_download(client) -> None:
    _create(client)
    response = client.get("/api/items/export?format=xlsx")
    assert response.status_code == 200
    assert response.headers["Content-Disposition"].endswith("inventory_export.xlsx")
    sheet = load_workbook(BytesIO(response.data)).active
    assert sheet["A2"].value == "Widget"
    assert sheet["E2"].value == "Amazon: $12.50"


def test_export_rejects_unknown_format(client) -> None:
    assert client.get("/api/items/export?format=pdf").status_code == 400


def test_marketplaces(client) -> None:
    platforms = client.get("/api/marketplaces").get_json()
    ids = [platform["id"] for platform in platforms]
    assert ids[0] == "amazon"
    assert ids[-1] == "other"


def test_changes_are_pushed_to_mirror(client, fake_mirror) -> None:
    _create(client)
    assert len(fake_mirror.pushes) == 1
    assert fake_mirror.pushes[0][0]["Marketplace Listings"] == "Amazon: $12.50"
    status = client.get("/api/sync").get_json()
    assert status["status"] == "success"
    assert status["last_synced_at"] is not None


def test_manual_sync_endpoint(client, fake_mirror) -> None:
    response = client.post("/api/sync")
    assert response.status_code == 200
    assert response.get_json()["status"] == "success"
    assert fake_mirror.pushes == [[]]


def test_sync_can_be_disabled(settings, make_mirror) -> None:
    from shelfsync.app import create_app

    mirror = make_mirror()
    settings.sync_enabled = False
    client = create_app(settings, mirror=mirror).test_client()
    _create(client)
    assert mirror.pushes == []
    assert client.get("/api/sync").get_json()["status"] == "idle"


@pytest.mark.parametrize(
    "overrides",
    [
        {"quantity": [1, 2]},
        {"price": {"a": 1}},
        {"quantity": True},
        {"price": "abc"},
        {"quantity": "nan"},
        {"marketplaces": [{"platform": "Amazon", "listingPrice": "cheap"}]},
        {"marketplaces": [{"platform": "eBay", "listingPrice": [3]}]},
    ],
)
def test_create_item_rejects_non_numeric_values(client, overrides) -> None:
    response = _create(client, **overrides)
    assert response.status_code == 400
    assert "must be a number" in response.get_json()["error"]
    assert client.get("/api/items").get_json() == []
    assert client.get("/api/items/export?format=xls").status_code == 200


def test_update_item_rejects_non_numeric_values(client) -> None:
    created = _create(client).get_json()
    response = client.put(
        f"/api/items/{created['id']}",
        json={"name": "Widget", "quantity": [1], "category": "Toys", "price": 1},
    )
    assert response.status_code == 400
    assert client.get(f"/api/items/{created['id']}").get_json()["quantity"] == 5


def test_create_item_accepts_numeric_strings(client) -> None:
    response = _create(client, quantity=" 3 ", price="-1.5e2")
    assert response.status_code == 201
    body = response.get_json()
    assert body["quantity"] == "3"
    assert body["price"] == "-1.5e2"
    export = client.get("/api/items/export?format=xls")
    assert export.status_code == 200


def test_app_closes_the_mirror_it_builds(settings, monkeypatch) -> None:
    import shelfsync.app as app_module

    registered = []
    monkeypatch.setattr(app_module.atexit, "register", registered.append)

    application = app_module.create_app(settings)
    mirror = application.extensions["shelfsync"]["sync"].mirror

    assert registered == [mirror.close]
    mirror.close()


def test_app_leaves_caller_mirror_open(settings, fake_mirror, monkeypatch) -> None:
    import shelfsync.app as app_module

    registered = []
    monkeypatch.setattr(app_module.atexit, "register", registered.append)

    app_module.create_app(settings, mirror=fake_mirror)

    assert registered == []


def test_broken_mirror_does_not_fail_the_request(client, fake_mirror) -> None:
    fake_mirror.fail_with = RuntimeError("mirror exploded")

    response = _create(client)

    assert response.status_code == 201
    assert len(client.get("/api/items").get_json()) == 1
    status = client.get("/api/sync").get_json()
    assert status["status"] == "error"
    assert status["error"] == "mirror exploded"
