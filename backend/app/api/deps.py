r"""backend\app\api\deps.py

FastAPI dependency providers.

Services and their stores are built once per process from ``Settings`` and
handed to the routes through ``Depends``; tests swap them with
``app.dependency_overrides``.
"""

from __future__ import annotations

from functools import lru_cache

from ..core.config import get_settings
from ..services.forecasting_service import ForecastingService
from ..services.inventory_service import InventoryService
from ..services.llm_service import GeminiModelClient
from ..services.sales_service import SalesService
from ..services.stores import (
    CsvForecastStore,
    CsvInventoryStore,
    CsvProductStore,
    CsvSalesStore,
)


@lru_cache(maxsize=None)
def get_sales_store() -> CsvSalesStore:
    return CsvSalesStore(get_settings().data_dir)


@lru_cache(maxsize=None)
def get_forecasting_service() -> ForecastingService:
    settings = get_settings()
    model_client = GeminiModelClient(
        api_key=settings.gemini_api_key,
        model_name=settings.gemini_model,
        timeout_seconds=settings.model_timeout_seconds,
    )
    return ForecastingService(
        sales_store=get_sales_store(),
        forecast_store=CsvForecastStore(settings.data_dir),
        model_endpoint=model_client,
        model_version=settings.forecast_model_version,
        max_tokens=settings.model_max_tokens,
        config_root=settings.config_dir,
    )


@lru_cache(maxsize=None)
def get_sales_service() -> SalesService:
    return SalesService(get_sales_store())


@lru_cache(maxsize=None)
def get_inventory_service() -> InventoryService:
    settings = get_settings()
    return InventoryService(
        product_store=CsvProductStore(settings.data_dir),
        inventory_store=CsvInventoryStore(settings.data_dir),
    )
