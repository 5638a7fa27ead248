"""Routes for LLM-backed demand forecasts."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Path, status
from fastapi.responses import JSONResponse

from ...core.errors import ForecastingError
from ...models import schemas
from ...services.forecasting_service import ForecastingService
from ..deps import get_forecasting_service

LOGGER = logging.getLogger(__name__)

router = APIRouter()


def _error_response(status_code: int, payload: dict) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=payload)


@router.post(
    "/forecasts/generate",
    response_model=schemas.GenerateForecastResponse,
    responses={400: {"description": "No sales data"}, 500: {"description": "Model or storage failure"}},
)
def generate_forecast(
    body: schemas.GenerateForecastRequest,
    service: ForecastingService = Depends(get_forecasting_service),
):
    """Generate and store a 30-day forecast for the requested product."""

    LOGGER.info("Forecast generation requested for product_id=%s", body.product_id)
    try:
        batch = service.generate_forecast(body.product_id)
    except ForecastingError as exc:
        if exc.status_code >= 500:
            LOGGER.error("Forecast generation failed for product_id=%s: %s", body.product_id, exc)
        else:
            LOGGER.warning("Forecast generation rejected for product_id=%s: %s", body.product_id, exc)
        return _error_response(exc.status_code, exc.to_payload())
    except Exception:  # pragma: no cover - defensive programming
        LOGGER.exception("Unexpected error while forecasting product_id=%s", body.product_id)
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            {"error": "An unexpected error occurred while forecasting.", "code": "forecast_failed"},
        )

    return schemas.GenerateForecastResponse(
        forecasts=batch.days,
        insights=batch.insights,
        warnings=batch.warnings,
    )


@router.get("/forecasts/{product_id}", response_model=schemas.ForecastListResponse)
def list_forecasts(
    product_id: str = Path(..., min_length=1),
    service: ForecastingService = Depends(get_forecasting_service),
):
    """Return the newest stored forecast days for a product, latest date first."""

    try:
        rows = service.list_forecasts(product_id)
    except ForecastingError as exc:
        LOGGER.error("Forecast listing failed for product_id=%s: %s", product_id, exc)
        return _error_response(exc.status_code, exc.to_payload())
    return schemas.ForecastListResponse(forecasts=rows)
