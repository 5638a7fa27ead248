r"""backend/tests/test_forecast_api.py"""

from __future__ import annotations

import json
import sys
from datetime import date, datetime, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from backend.app.api.deps import get_forecasting_service
from backend.app.main import app
from backend.app.models.schemas import SalesRecord
from backend.app.services.forecasting_service import ForecastingService
from backend.app.services.stores import CsvForecastStore, CsvSalesStore

NOW = datetime(2024, 11, 30, 12, 0, tzinfo=timezone.utc)

FENCED_REPLY = (
    "Sure! Here is the forecast.\n```json\n"
    + json.dumps(
        {
            "forecasts": [
                {"date": "2024-12-01", "predicted_demand": 12, "confidence_lower": 8, "confidence_upper": 16},
                {"date": "2024-12-02", "predicted_demand": 13, "confidence_lower": 9, "confidence_upper": 17},
            ],
            "insights": "steady",
        }
    )
    + "\n```"
)


class _StubModel:
    def __init__(self, reply: str) -> None:
        self.reply = reply
        self.calls = 0

    def invoke(self, prompt: str, max_tokens: int) -> str:
        self.calls += 1
        return self.reply


@pytest.fixture
def stub_model() -> _StubModel:
    return _StubModel(FENCED_REPLY)


@pytest.fixture
def client(tmp_path: Path, stub_model: _StubModel):
    sales_store = CsvSalesStore(tmp_path)
    sales_store.add_many(
        [
            SalesRecord(
                product_id="product_1",
                sale_date=date(2024, 11, 1),
                quantity_sold=5,
                unit_price=10.0,
                total_revenue=50.0,
                created_at=NOW,
            )
        ]
    )
    service = ForecastingService(
        sales_store=sales_store,
        forecast_store=CsvForecastStore(tmp_path),
        model_endpoint=stub_model,
        config_root=str(tmp_path),
        clock=lambda: NOW,
    )
    app.dependency_overrides[get_forecasting_service] = lambda: service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_generate_returns_forecasts_and_insights(client: TestClient) -> None:
    response = client.post("/api/v1/forecasts/generate", json={"product_id": "product_1"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["insights"] == "steady"
    assert len(payload["forecasts"]) == 2
    first = payload["forecasts"][0]
    assert first["product_id"] == "product_1"
    assert first["forecast_date"] == "2024-12-01"
    assert first["predicted_demand"] == 12
    assert first["confidence_interval_lower"] == 8
    assert first["confidence_interval_upper"] == 16
    assert first["model_version"] == "gemini-v1"
    datetime.fromisoformat(first["created_at"].replace("Z", "+00:00"))


def test_generate_without_sales_is_400(client: TestClient, stub_model: _StubModel) -> None:
    response = client.post("/api/v1/forecasts/generate", json={"product_id": "product_404"})

    assert response.status_code == 400
    assert response.json() == {"error": "No sales data found for product", "code": "no_sales_data"}
    assert stub_model.calls == 0


def test_generate_with_malformed_reply_is_500(client: TestClient, stub_model: _StubModel) -> None:
    stub_model.reply = "The forecast looks good, demand will rise."

    response = client.post("/api/v1/forecasts/generate", json={"product_id": "product_1"})

    assert response.status_code == 500
    assert response.json()["code"] == "malformed_model_response"
    listed = client.get("/api/v1/forecasts/product_1")
    assert listed.json() == {"forecasts": []}


def test_generate_requires_product_id(client: TestClient) -> None:
    response = client.post("/api/v1/forecasts/generate", json={})

    assert response.status_code == 422


def test_list_returns_newest_first(client: TestClient) -> None:
    client.post("/api/v1/forecasts/generate", json={"product_id": "product_1"})

    response = client.get("/api/v1/forecasts/product_1")

    assert response.status_code == 200
    dates = [row["forecast_date"] for row in response.json()["forecasts"]]
    assert dates == ["2024-12-02", "2024-12-01"]


class _OfflineStore:
    def query(self, *args, **kwargs):
        raise ConnectionError("table offline")

    def put(self, day) -> None:
        raise ConnectionError("table offline")


def test_store_failures_map_to_500_upstream_unavailable(tmp_path: Path, stub_model: _StubModel) -> None:
    service = ForecastingService(
        sales_store=_OfflineStore(),
        forecast_store=_OfflineStore(),
        model_endpoint=stub_model,
        config_root=str(tmp_path),
        clock=lambda: NOW,
    )
    app.dependency_overrides[get_forecasting_service] = lambda: service
    try:
        client = TestClient(app)

        generated = client.post("/api/v1/forecasts/generate", json={"product_id": "product_1"})
        listed = client.get("/api/v1/forecasts/product_1")
    finally:
        app.dependency_overrides.clear()

    assert generated.status_code == 500
    assert generated.json()["code"] == "upstream_unavailable"
    assert "table offline" in generated.json()["error"]
    assert stub_model.calls == 0
    assert listed.status_code == 500
    assert listed.json()["code"] == "upstream_unavailable"
