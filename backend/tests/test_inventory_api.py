r"""backend/tests/test_inventory_api.py"""

from __future__ import annotations

import re
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from backend.app.api.deps import get_inventory_service
from backend.app.main import app
from backend.app.models.schemas import InventoryLevel
from backend.app.services.inventory_service import InventoryService, build_alerts, new_product_id
from backend.app.services.stores import CsvInventoryStore, CsvProductStore


@pytest.fixture
def client(tmp_path: Path):
    service = InventoryService(CsvProductStore(tmp_path), CsvInventoryStore(tmp_path))
    app.dependency_overrides[get_inventory_service] = lambda: service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_new_product_id_format() -> None:
    assert re.fullmatch(r"product_1733212345678_[0-9a-z]{9}", new_product_id(1733212345678))


def test_build_alerts_flags_low_and_empty_stock() -> None:
    levels = [
        InventoryLevel(product_id="A", current_stock=0, last_updated="2024-11-30T00:00:00Z"),
        InventoryLevel(product_id="B", current_stock=10, last_updated="2024-11-30T00:00:00Z"),
        InventoryLevel(product_id="C", current_stock=11, last_updated="2024-11-30T00:00:00Z"),
    ]

    alerts = build_alerts(levels)

    assert [(a.product_id, a.severity) for a in alerts] == [("A", "CRITICAL"), ("B", "WARNING")]
    assert alerts[0].message == "Product A is out of stock"
    assert alerts[1].message == "Product B is below reorder point"


def test_create_and_list_products(client: TestClient) -> None:
    response = client.post(
        "/api/v1/products",
        json={"product_name": "Widget", "category": "Tools", "price": 9.5},
    )

    assert response.status_code == 201
    product = response.json()["product"]
    assert product["product_id"].startswith("product_")
    assert product["supplier"] == ""
    assert product["lead_time_days"] == 7

    listed = client.get("/api/v1/products").json()["products"]
    assert [p["product_id"] for p in listed] == [product["product_id"]]


def test_create_product_validates_price(client: TestClient) -> None:
    response = client.post(
        "/api/v1/products",
        json={"product_name": "Widget", "category": "Tools", "price": -1},
    )

    assert response.status_code == 422


def test_inventory_upsert_and_alerts(client: TestClient) -> None:
    first = client.put("/api/v1/inventory/P1", json={"current_stock": 50})
    assert first.status_code == 200
    assert first.json()["inventory"]["reorder_point"] == 10
    assert first.json()["inventory"]["max_stock"] == 100

    client.put("/api/v1/inventory/P1", json={"current_stock": 4, "reorder_point": 5})
    client.put("/api/v1/inventory/P2", json={"current_stock": 0})

    inventory = client.get("/api/v1/inventory").json()
    assert sorted(row["product_id"] for row in inventory["inventory"]) == ["P1", "P2"]
    assert {a["product_id"] for a in inventory["alerts"]} == {"P1", "P2"}

    alerts = client.get("/api/v1/inventory/alerts").json()["alerts"]
    severity = {a["product_id"]: a["severity"] for a in alerts}
    assert severity == {"P1": "WARNING", "P2": "CRITICAL"}
