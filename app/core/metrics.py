"""Prometheus metrics for the application."""

import time

from prometheus_client import Counter, Histogram, Info, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.core.config import settings

# --- Metrics ---

APP_INFO = Info("app", "Marketing agent gateway application info")
APP_INFO.info({"version": settings.app_version, "name": "marketing_agent_gateway"})

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30],
)

# outcome: success | degraded | fallback | error
AGENT_REQUESTS = Counter(
    "agent_requests_total",
    "Agent dispatches by outcome",
    ["agent", "outcome"],
)

PROVIDER_DURATION = Histogram(
    "provider_request_duration_seconds",
    "Upstream LLM provider call duration in seconds",
    ["provider"],
    buckets=[0.25, 0.5, 1, 2.5, 5, 10, 20, 30, 60, 120],
)


# --- Middleware ---

# Agent names are a closed set, but keep unknown ones from blowing up cardinality
_AGENT_PREFIX = "/api/ai/agents/"
_KNOWN_AGENTS = ("maven", "matrix", "max")


def _normalize_path(path: str) -> str:
    """Collapse unknown agent names to {agent} to avoid high cardinality."""
    if path.startswith(_AGENT_PREFIX):
        agent = path[len(_AGENT_PREFIX) :].strip("/").lower()
        if agent not in _KNOWN_AGENTS:
            return f"{_AGENT_PREFIX}{{agent}}"
    return path


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Collect HTTP request metrics for Prometheus."""

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        path = _normalize_path(request.url.path)

        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start

        REQUEST_COUNT.labels(method=method, path=path, status=response.status_code).inc()
        REQUEST_DURATION.labels(method=method, path=path).observe(duration)

        return response


def metrics_response() -> Response:
    """Generate Prometheus /metrics response."""
    return Response(
        content=generate_latest(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
