r"""backend\app\services\forecasting_service.py

LLM-backed demand forecast generation.

The service does not model demand itself.  It gathers a product's sales
history, asks a generative model for a 30-day forecast in a fixed JSON
contract, validates the reply and stores one row per forecast day.  Each
``generate_forecast`` call runs the stages below once, in order, and stops at
the first failure:

    retrieve -> normalise -> prompt -> invoke -> parse -> persist

Nothing is retried and nothing persisted is rolled back.
"""

from __future__ import annotations

import json
import logging
import math
import os
import re
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Callable, Iterable, Iterator, List, Optional

from ..core.config import load_yaml
from ..core.errors import (
    ForecastingError,
    MalformedModelResponseError,
    NoDataError,
    PartialPersistenceError,
    UpstreamUnavailableError,
)
from ..core.observability import FORECAST_GENERATIONS, MODEL_LATENCY
from ..models.schemas import (
    ForecastBatch,
    ForecastDay,
    ForecastRequest,
    SalesObservation,
    SalesSummaryPoint,
)
from .llm_service import ModelEndpoint
from .stores import ForecastStore, SalesHistoryStore

LOGGER = logging.getLogger(__name__)

MAX_FORECAST_DAYS = 30

_REQUIRED_ENTRY_FIELDS = ("date", "predicted_demand", "confidence_lower", "confidence_upper")

# Opening fence with optional language tag, body, closing fence.
_FENCED_BLOCK = re.compile(r"```([^\n`]*)\r?\n(.*?)\r?\n[ \t]*```", re.DOTALL)

_PROMPT_TEMPLATE = """Analyze the following sales data and generate a {horizon}-day demand forecast.

Sales Data: {sales}

Please provide a JSON response with the following structure:
{{
  "forecasts": [
    {{
      "date": "YYYY-MM-DD",
      "predicted_demand": number,
      "confidence_lower": number,
      "confidence_upper": number
    }}
  ],
  "insights": "Brief analysis of trends and patterns"
}}

Today is {today}. Generate forecasts for the next {horizon} days starting from today. \
Consider seasonal patterns, trends, and demand variability."""


# ---------------------------------------------------------------------------
# Helper utilities (kept top-level for straightforward unit testing)


def normalize_observations(observations: Iterable[SalesObservation]) -> List[SalesSummaryPoint]:
    """Sort observations by date and project them to ``{date, quantity, revenue}``.

    The sort is stable, so observations sharing a date keep their retrieval
    order.
    """

    ordered = sorted(observations, key=lambda obs: obs.sale_date)
    return [
        SalesSummaryPoint(
            date=obs.sale_date,
            quantity=obs.quantity_sold,
            revenue=obs.quantity_sold * obs.unit_price,
        )
        for obs in ordered
    ]


def format_forecast_prompt(
    summary: Iterable[SalesSummaryPoint],
    today: date,
    horizon_days: int = MAX_FORECAST_DAYS,
) -> str:
    """Render the model instruction for a normalised sales summary."""

    sales = json.dumps([point.model_dump(mode="json") for point in summary])
    return _PROMPT_TEMPLATE.format(horizon=horizon_days, sales=sales, today=today.isoformat())


def _candidate_payloads(reply: str) -> Iterator[str]:
    blocks = [(tag.strip().lower(), body) for tag, body in _FENCED_BLOCK.findall(reply)]
    for tag, body in blocks:
        if tag == "json":
            yield body
            break
    for tag, body in blocks:
        if not tag:
            yield body
            break
    yield reply


def extract_json_payload(reply: str) -> Any:
    """Return the first JSON document found in a model reply.

    Candidates are tried in order: a ``json``-tagged fenced block, an untagged
    fenced block, then the whole reply.
    """

    for candidate in _candidate_payloads(reply or ""):
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    raise MalformedModelResponseError("Model reply did not contain a parseable JSON payload.")


def _as_number(entry: dict, key: str, index: int) -> float:
    value = entry[key]
    if isinstance(value, bool):
        raise MalformedModelResponseError(f"forecasts[{index}].{key} must be a number.")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise MalformedModelResponseError(f"forecasts[{index}].{key} must be a number.") from exc
    if not math.isfinite(number):
        raise MalformedModelResponseError(f"forecasts[{index}].{key} must be finite.")
    return number


def _as_date(entry: dict, index: int) -> date:
    raw = entry["date"]
    try:
        return date.fromisoformat(str(raw)[:10])
    except ValueError as exc:
        raise MalformedModelResponseError(
            f"forecasts[{index}].date {raw!r} is not an ISO date."
        ) from exc


@dataclass(frozen=True)
class ParseOutcome:
    """Result of parsing a model reply: either a batch or the reason it failed."""

    batch: Optional[ForecastBatch] = None
    error: Optional[MalformedModelResponseError] = None

    @property
    def ok(self) -> bool:
        return self.batch is not None

    def unwrap(self) -> ForecastBatch:
        if self.batch is None:
            raise self.error or MalformedModelResponseError("Model reply could not be parsed.")
        return self.batch


def _build_batch(
    payload: Any,
    product_id: str,
    model_version: str,
    created_at: datetime,
) -> ForecastBatch:
    if not isinstance(payload, dict):
        raise MalformedModelResponseError("Model reply JSON is not an object.")
    entries = payload.get("forecasts")
    if not isinstance(entries, list):
        raise MalformedModelResponseError("Model reply is missing a 'forecasts' list.")
    if not entries:
        raise MalformedModelResponseError("Model reply contains no forecasts.")
    if len(entries) > MAX_FORECAST_DAYS:
        raise MalformedModelResponseError(
            f"Model reply contains {len(entries)} forecasts; at most {MAX_FORECAST_DAYS} are allowed."
        )

    days: List[ForecastDay] = []
    warnings: List[str] = []
    seen: set[date] = set()
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise MalformedModelResponseError(f"forecasts[{index}] is not an object.")
        missing = [key for key in _REQUIRED_ENTRY_FIELDS if key not in entry]
        if missing:
            raise MalformedModelResponseError(
                f"forecasts[{index}] is missing {', '.join(missing)}."
            )

        forecast_date = _as_date(entry, index)
        if forecast_date in seen:
            raise MalformedModelResponseError(
                f"Model reply repeats forecast date {forecast_date.isoformat()}."
            )
        seen.add(forecast_date)

        predicted = _as_number(entry, "predicted_demand", index)
        lower = _as_number(entry, "confidence_lower", index)
        upper = _as_number(entry, "confidence_upper", index)
        if not lower <= predicted <= upper:
            warnings.append(
                f"{forecast_date.isoformat()}: interval [{lower:g}, {upper:g}] "
                f"does not contain predicted demand {predicted:g}"
            )

        days.append(
            ForecastDay(
                product_id=product_id,
                forecast_date=forecast_date,
                predicted_demand=predicted,
                confidence_interval_lower=lower,
                confidence_interval_upper=upper,
                model_version=model_version,
                created_at=created_at,
            )
        )

    insights = payload.get("insights")
    return ForecastBatch(
        product_id=product_id,
        days=days,
        insights=insights if isinstance(insights, str) else ("" if insights is None else str(insights)),
        warnings=warnings,
    )


def parse_forecast_reply(
    reply: str,
    product_id: str,
    model_version: str,
    created_at: datetime,
) -> ParseOutcome:
    """Parse a raw model reply into a ``ParseOutcome``; never raises for bad input."""

    try:
        payload = extract_json_payload(reply)
        batch = _build_batch(payload, product_id, model_version, created_at)
    except MalformedModelResponseError as exc:
        return ParseOutcome(error=exc)
    return ParseOutcome(batch=batch)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Result container


@dataclass
class PersistReport:
    """Outcome of writing a batch as independent upserts."""

    written: List[ForecastDay] = field(default_factory=list)
    failed: List[ForecastDay] = field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return len(self.failed)


# ---------------------------------------------------------------------------
# Core service implementation


class ForecastingService:
    """Generate and list per-product forecasts through a generative model."""

    DEFAULT_MAX_TOKENS: int = 4000
    DEFAULT_LIST_LIMIT: int = 30

    def __init__(
        self,
        sales_store: SalesHistoryStore,
        forecast_store: ForecastStore,
        model_endpoint: ModelEndpoint,
        *,
        model_version: str = "gemini-v1",
        max_tokens: int | None = None,
        config_root: str | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.sales_store = sales_store
        self.forecast_store = forecast_store
        self.model_endpoint = model_endpoint
        self.model_version = model_version
        self.config_root = config_root or os.getenv("CONFIG_DIR", "configs")
        self._clock = clock or _utcnow

        self.horizon_days: int = MAX_FORECAST_DAYS
        self.max_tokens: int = self.DEFAULT_MAX_TOKENS
        self.list_limit: int = self.DEFAULT_LIST_LIMIT
        self._load_configuration()
        if max_tokens is not None:
            self.max_tokens = int(max_tokens)
        if self.max_tokens <= 0:
            raise ValueError("max_tokens must be a positive integer")

    # ------------------------------------------------------------------
    def _load_configuration(self) -> None:
        settings = load_yaml(os.path.join(self.config_root, "settings.yaml"))
        forecast_settings = settings.get("forecast", {}) or {}
        horizon = int(forecast_settings.get("horizon_days", self.horizon_days))
        self.horizon_days = min(max(horizon, 1), MAX_FORECAST_DAYS)
        self.max_tokens = int(forecast_settings.get("max_tokens", self.max_tokens))
        self.list_limit = max(int(forecast_settings.get("list_limit", self.list_limit)), 1)

    # ------------------------------------------------------------------
    def _retrieve(self, product_id: str) -> ForecastRequest:
        try:
            observations = list(self.sales_store.query(product_id))
        except Exception as exc:
            LOGGER.exception("Sales history lookup failed for product_id=%s", product_id)
            raise UpstreamUnavailableError(f"Sales history is unavailable: {exc}") from exc
        if not observations:
            raise NoDataError("No sales data found for product")
        return ForecastRequest(product_id=product_id, observations=observations)

    def build_prompt(self, request: ForecastRequest) -> str:
        """Normalise the request's observations and render the model prompt."""

        summary = normalize_observations(request.observations)
        return format_forecast_prompt(summary, today=self._clock().date(), horizon_days=self.horizon_days)

    def invoke_model(self, prompt: str) -> str:
        """Send ``prompt`` to the model endpoint with the fixed token budget."""

        start = time.perf_counter()
        try:
            return self.model_endpoint.invoke(prompt, self.max_tokens)
        except ForecastingError:
            raise
        except Exception as exc:
            LOGGER.exception("Model endpoint raised an unexpected error")
            raise UpstreamUnavailableError(f"Generative model call failed: {exc}") from exc
        finally:
            MODEL_LATENCY.observe(time.perf_counter() - start)

    def parse_model_response(self, reply: str, product_id: str) -> ParseOutcome:
        return parse_forecast_reply(reply, product_id, self.model_version, self._clock())

    def persist_forecasts(self, batch: ForecastBatch) -> PersistReport:
        """Upsert every day of ``batch`` independently and report failures.

        Each record is stamped with the persistence time.  A failed write does
        not stop the remaining ones, and successful writes are never undone.
        """

        report = PersistReport()
        for day in batch.days:
            record = day.model_copy(update={"created_at": self._clock()})
            try:
                self.forecast_store.put(record)
            except Exception:
                LOGGER.exception(
                    "Failed to persist forecast for product_id=%s date=%s",
                    record.product_id,
                    record.forecast_date,
                )
                report.failed.append(record)
                continue
            report.written.append(record)
        return report

    def generate_forecast(self, product_id: str) -> ForecastBatch:
        """Run the full pipeline for ``product_id`` and return the stored batch."""

        try:
            batch = self._generate(product_id)
        except ForecastingError as exc:
            FORECAST_GENERATIONS.labels(exc.code).inc()
            raise
        FORECAST_GENERATIONS.labels("success").inc()
        return batch

    def _generate(self, product_id: str) -> ForecastBatch:
        request = self._retrieve(product_id)
        LOGGER.info(
            "Generating forecast for product_id=%s from %d observations",
            product_id,
            len(request.observations),
        )
        prompt = self.build_prompt(request)
        reply = self.invoke_model(prompt)
        batch = self.parse_model_response(reply, product_id).unwrap()
        for warning in batch.warnings:
            LOGGER.warning("Forecast interval check for product_id=%s: %s", product_id, warning)

        report = self.persist_forecasts(batch)
        if report.failed_count:
            if not report.written:
                raise UpstreamUnavailableError("Forecast store rejected every record.")
            raise PartialPersistenceError(
                f"Stored {len(report.written)} of {len(batch.days)} forecast records.",
                batch=batch,
                written=report.written,
                failed_count=report.failed_count,
            )
        LOGGER.info("Stored %d forecast days for product_id=%s", len(report.written), product_id)
        return batch.model_copy(update={"days": report.written})

    # ------------------------------------------------------------------
    def list_forecasts(self, product_id: str, limit: int | None = None) -> List[ForecastDay]:
        """Return the newest ``limit`` forecast days for a product, latest date first."""

        limit = self.list_limit if limit is None else int(limit)
        if limit <= 0:
            return []
        try:
            rows = list(self.forecast_store.query(product_id, limit))
        except Exception as exc:
            LOGGER.exception("Forecast lookup failed for product_id=%s", product_id)
            raise UpstreamUnavailableError(f"Forecast store is unavailable: {exc}") from exc
        rows.sort(key=lambda day: day.forecast_date, reverse=True)
        return rows[:limit]
