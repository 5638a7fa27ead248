r"""backend/app/core/errors.py

Error taxonomy for the forecast pipeline.

Every error carries a short machine-readable ``code`` and the HTTP status the
API layer should answer with, so routes can turn any of them into the same
``{"error": ..., "code": ...}`` payload.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, List

if TYPE_CHECKING:  # pragma: no cover
    from ..models.schemas import ForecastBatch, ForecastDay


class ForecastingError(Exception):
    """Base class for failures scoped to a single forecast invocation."""

    code: str = "forecast_failed"
    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.message, "code": self.code}


class NoDataError(ForecastingError):
    """No historical sales exist for the requested product."""

    code = "no_sales_data"
    status_code = 400


class MalformedModelResponseError(ForecastingError):
    """The model reply could not be parsed into a forecast batch."""

    code = "malformed_model_response"


class UpstreamUnavailableError(ForecastingError):
    """A store or the model endpoint failed or could not be reached."""

    code = "upstream_unavailable"


class PartialPersistenceError(ForecastingError):
    """Some, but not all, forecast records were written.

    Records written before and after the failing ones stay in place; the
    parsed batch is attached so callers can still return it.
    """

    code = "partial_persistence"

    def __init__(
        self,
        message: str,
        *,
        batch: "ForecastBatch",
        written: List["ForecastDay"],
        failed_count: int,
    ) -> None:
        super().__init__(message)
        self.batch = batch
        self.written = written
        self.failed_count = failed_count

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["forecasts"] = [day.model_dump(mode="json") for day in self.written]
        payload["failed_count"] = self.failed_count
        payload["insights"] = self.batch.insights
        return payload
