r"""backend\app\models\schemas.py

Pydantic models used throughout the API.

These models serve as both request payload validators and response
serialisation schemas.  Field names of the stored records match the column
names written to the CSV tables, so a row round-trips through
``model_dump``/``model_validate`` without renaming.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Sales history


class SalesObservation(BaseModel):
    """One historical sales record for a product on a given date."""

    model_config = ConfigDict(frozen=True)

    product_id: str = Field(..., min_length=1)
    sale_date: date
    quantity_sold: int = Field(..., ge=0)
    unit_price: float = Field(..., ge=0)


class SalesRecord(SalesObservation):
    """A stored sales row, enriched at ingest time."""

    total_revenue: float = Field(..., ge=0)
    created_at: datetime


class ForecastRequest(BaseModel):
    """Observations gathered for one generation run."""

    product_id: str = Field(..., min_length=1)
    observations: List[SalesObservation] = Field(..., min_length=1)


class SalesSummaryPoint(BaseModel):
    """A normalised observation as it is shown to the model."""

    date: date
    quantity: int
    revenue: float


class SalesUploadRequest(BaseModel):
    csv_data: str = Field(..., alias="csvData", min_length=1)

    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Forecasts


class ForecastDay(BaseModel):
    """A single persisted day of predicted demand."""

    model_config = ConfigDict(protected_namespaces=())

    product_id: str
    forecast_date: date
    predicted_demand: float = Field(..., description="Predicted demand for the date")
    confidence_interval_lower: float = Field(..., description="Lower bound of the prediction interval")
    confidence_interval_upper: float = Field(..., description="Upper bound of the prediction interval")
    model_version: str = Field(..., description="Model/prompt version that produced this row")
    created_at: datetime


class ForecastBatch(BaseModel):
    """The parsed output of one generation run."""

    product_id: str
    days: List[ForecastDay] = Field(..., min_length=1, max_length=30)
    insights: str = ""
    warnings: List[str] = Field(default_factory=list)


class GenerateForecastRequest(BaseModel):
    product_id: str = Field(..., min_length=1)

    @field_validator("product_id", mode="before")
    @classmethod
    def _strip(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value


class GenerateForecastResponse(BaseModel):
    success: bool = True
    forecasts: List[ForecastDay]
    insights: str
    warnings: List[str] = Field(default_factory=list)


class ForecastListResponse(BaseModel):
    forecasts: List[ForecastDay]


# ---------------------------------------------------------------------------
# Products and inventory


class ProductCreate(BaseModel):
    product_name: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    supplier: str = ""
    lead_time_days: int = Field(7, ge=0, le=365)


class Product(ProductCreate):
    product_id: str
    created_at: datetime
    updated_at: datetime


class InventoryUpdate(BaseModel):
    current_stock: int = Field(..., ge=0)
    reorder_point: Optional[int] = Field(None, ge=0)
    max_stock: Optional[int] = Field(None, ge=0)


class InventoryLevel(BaseModel):
    product_id: str
    current_stock: int = Field(..., ge=0)
    reorder_point: int = Field(10, ge=0)
    max_stock: int = Field(100, ge=0)
    last_updated: datetime


class InventoryAlert(BaseModel):
    """Raised for any product sitting at or below its reorder point."""

    product_id: str
    current_stock: int
    reorder_point: int
    alert_type: str = "LOW_STOCK"
    severity: str = Field(..., description="CRITICAL when out of stock, otherwise WARNING")
    message: str
