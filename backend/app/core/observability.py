r"""backend\app\core\observability.py"""

from __future__ import annotations

import json
import threading
import time
import uuid
from collections import defaultdict, deque
from datetime import datetime, timezone
from typing import Callable

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from .config import get_settings


_REQUEST_COUNTER = Counter(
    "http_requests_total", "Total HTTP requests", ["method", "path", "status"]
)
_LATENCY_HISTOGRAM = Histogram(
    "http_request_latency_seconds", "Request latency", ["method", "path"]
)

FORECAST_GENERATIONS = Counter(
    "forecast_generations_total",
    "Forecast generation runs by outcome",
    ["outcome"],
)
MODEL_LATENCY = Histogram(
    "forecast_model_latency_seconds",
    "Latency of generative model invocations",
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0, 120.0),
)

# Routes whose last path segment is a product identifier.
_PRODUCT_PATH_PREFIXES: tuple[str, ...] = (
    "/api/v1/forecasts/",
    "/api/v1/sales/",
    "/api/v1/inventory/",
)
_NON_PRODUCT_SEGMENTS = {"generate", "upload", "alerts"}


def _product_id_from_path(path: str) -> str | None:
    for prefix in _PRODUCT_PATH_PREFIXES:
        if path.startswith(prefix):
            segment = path[len(prefix):].strip("/")
            if segment and "/" not in segment and segment not in _NON_PRODUCT_SEGMENTS:
                return segment
    return None


class TokenAndRateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware enforcing auth, rate limiting, logging, and Prometheus metrics."""

    _lock: threading.Lock = threading.Lock()
    _buckets: dict[str, deque[float]] = defaultdict(deque)
    _exempt_prefixes: tuple[str, ...] = (
        "/api/v1/health",
        "/metrics",
        "/docs",
        "/redoc",
        "/openapi.json",
    )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        method = request.method
        client_ip = request.client.host if request.client else "unknown"
        request_id = (
            request.headers.get("x-request-id")
            or request.headers.get("request-id")
            or str(uuid.uuid4())
        )
        product_id = _product_id_from_path(path)
        # Settings cover both the process environment and .env.
        settings = get_settings()
        token = settings.api_token
        per_minute = settings.rate_limit_per_min

        # The generate route carries the product in its JSON body. Reading the
        # body consumes it, so downstream gets a Request replaying the bytes.
        if method == "POST" and path.startswith("/api/v1/forecasts/generate"):
            body_bytes = await request.body()
            if body_bytes:
                try:
                    data = json.loads(body_bytes.decode("utf-8"))
                except (UnicodeDecodeError, json.JSONDecodeError):
                    data = None
                if isinstance(data, dict) and isinstance(data.get("product_id"), (str, int)):
                    product_id = str(data["product_id"])

                async def receive() -> dict:
                    return {"type": "http.request", "body": body_bytes, "more_body": False}

                request = Request(request.scope, receive)

        start_perf = time.perf_counter()
        start_wall = time.time()

        def _finalize(response: Response) -> Response:
            latency = time.perf_counter() - start_perf
            status_code = getattr(response, "status_code", 500)

            _REQUEST_COUNTER.labels(method, path, str(status_code)).inc()
            _LATENCY_HISTOGRAM.labels(method, path).observe(latency)

            log_payload = {
                "timestamp": datetime.fromtimestamp(
                    start_wall, tz=timezone.utc
                ).isoformat(),
                "path": path,
                "method": method,
                "status": status_code,
                "latency_ms": int(latency * 1000),
                "request_id": request_id,
                "client_ip": client_ip,
                "product_id": product_id,
            }
            print(json.dumps(log_payload))
            return response

        # Token authentication
        if token and not path.startswith(self._exempt_prefixes):
            auth_header = request.headers.get("authorization", "")
            if auth_header != f"Bearer {token}":
                error_response = PlainTextResponse("Unauthorized", status_code=401)
                return _finalize(error_response)

        # Rate limiting per client IP
        if per_minute > 0:
            now = time.time()
            with self._lock:
                window = self._buckets[client_ip]
                while window and now - window[0] > 60.0:
                    window.popleft()
                if len(window) >= per_minute:
                    error_response = PlainTextResponse("Too Many Requests", status_code=429)
                    return _finalize(error_response)
                window.append(now)

        response: Response
        try:
            response = await call_next(request)
        except Exception:
            # Still record metrics/logs for the failed request, then re-raise.
            _finalize(PlainTextResponse("Internal Server Error", status_code=500))
            raise

        return _finalize(response)


def metrics_endpoint() -> Response:
    """Return Prometheus metrics payload."""

    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
