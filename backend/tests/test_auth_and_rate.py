r"""backend/tests/test_auth_and_rate.py"""

from __future__ import annotations

import sys
from pathlib import Path

from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from backend.app.core import config  # noqa: E402
from backend.app.core import observability as obs  # noqa: E402
from backend.app.main import app  # noqa: E402


def test_auth_and_rate_limit(monkeypatch):
    monkeypatch.setattr(
        obs,
        "get_settings",
        lambda: config.Settings(_env_file=None, api_token="X", rate_limit_per_min=1),
    )

    client = TestClient(app)

    response = client.get("/api/v1/products")
    assert response.status_code == 401

    # Health stays reachable without a token.
    assert client.get("/api/v1/health").status_code == 200
    health = client.get("/api/v1/health", headers={"Authorization": "Bearer X"})
    assert health.status_code == 429

    limited = client.get("/api/v1/products", headers={"Authorization": "Bearer X"})
    assert limited.status_code == 429


def test_settings_read_token_and_rate_limit_from_env_file(tmp_path, monkeypatch):
    monkeypatch.delenv("API_TOKEN", raising=False)
    monkeypatch.delenv("RATE_LIMIT_PER_MIN", raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text("API_TOKEN=secret\nRATE_LIMIT_PER_MIN=5\n", encoding="utf-8")

    settings = config.Settings(_env_file=env_file)

    assert settings.api_token == "secret"
    assert settings.rate_limit_per_min == 5


def test_token_set_only_in_env_file_is_enforced(tmp_path, monkeypatch):
    monkeypatch.delenv("API_TOKEN", raising=False)
    monkeypatch.delenv("RATE_LIMIT_PER_MIN", raising=False)
    (tmp_path / ".env").write_text("API_TOKEN=secret\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(obs, "get_settings", config.get_settings)
    config.get_settings.cache_clear()
    try:
        client = TestClient(app)

        assert client.get("/api/v1/products").status_code == 401
        wrong = client.get("/api/v1/products", headers={"Authorization": "Bearer nope"})
        assert wrong.status_code == 401
        allowed = client.get("/api/v1/products", headers={"Authorization": "Bearer secret"})
        assert allowed.status_code != 401
    finally:
        config.get_settings.cache_clear()


def test_rate_limit_of_zero_disables_limiting(monkeypatch):
    monkeypatch.setattr(
        obs,
        "get_settings",
        lambda: config.Settings(_env_file=None, api_token=None, rate_limit_per_min=0),
    )
    client = TestClient(app)

    statuses = {client.get("/api/v1/health").status_code for _ in range(5)}

    assert statuses == {200}


def test_metrics_endpoint_exposes_counters():
    client = TestClient(app)

    client.get("/api/v1/health")
    response = client.get("/metrics")

    assert response.status_code == 200
    assert "http_requests_total" in response.text
    assert "forecast_generations" in response.text


def test_product_id_is_read_from_forecast_paths():
    from backend.app.core.observability import _product_id_from_path

    assert _product_id_from_path("/api/v1/forecasts/product_1") == "product_1"
    assert _product_id_from_path("/api/v1/forecasts/generate") is None
    assert _product_id_from_path("/api/v1/inventory/alerts") is None
    assert _product_id_from_path("/api/v1/products") is None
