r"""backend\app\main.py

Main entrypoint for the FastAPI application.

The API generates LLM-backed demand forecasts for a product from its sales
history and stores them, alongside small endpoints for products, sales
uploads and inventory levels.  A health endpoint is also provided for
readiness/liveness checks.  Configuration is read from environment variables
and YAML files in `configs/`.
"""


import logging
from pathlib import Path

from dotenv import load_dotenv

# Load .env from repo root before any application module reads the environment
BASE_DIR = Path(__file__).resolve().parents[2]
load_dotenv(BASE_DIR / ".env")

from fastapi import FastAPI, Response  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from fastapi.responses import RedirectResponse  # noqa: E402

from .api.v1 import forecasts, health, inventory, products, sales  # noqa: E402
from .core.config import get_settings  # noqa: E402
from .core.observability import TokenAndRateLimitMiddleware, metrics_endpoint  # noqa: E402

settings = get_settings()

logging.getLogger(__name__).info(
    "LLM enabled: %s model=%s",
    bool(settings.gemini_api_key),
    settings.gemini_model,
)

app = FastAPI(title="Inventory Forecasting API", version="0.1.0")

# Allow cross-origin requests from the dashboard (and others).
origins = [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()] or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,  # In production specify your UI domain(s)
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(TokenAndRateLimitMiddleware)

# Include versioned routers
app.include_router(health.router, prefix="/api/v1")
app.include_router(forecasts.router, prefix="/api/v1")
app.include_router(sales.router, prefix="/api/v1")
app.include_router(products.router, prefix="/api/v1")
app.include_router(inventory.router, prefix="/api/v1")


@app.get("/", include_in_schema=False)
def _root() -> RedirectResponse:
    """Redirect the root path to the interactive docs."""

    return RedirectResponse(url="/docs")


@app.get("/metrics", include_in_schema=False)
async def _metrics() -> Response:
    """Expose Prometheus metrics."""

    return metrics_endpoint()
