"""Prometheus instruments for requests, lifecycle transitions and the payment gateway."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

_NAMESPACE = "realty"

REQUEST_LATENCY_SECONDS = Histogram(
    "http_request_duration_seconds",
    "Time spent serving API requests, by route template.",
    labelnames=("method", "route"),
    namespace=_NAMESPACE,
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)
REQUEST_COUNTER = Counter(
    "http_requests",
    "API requests served, by route template and status code.",
    labelnames=("method", "route", "status"),
    namespace=_NAMESPACE,
)
TRANSACTION_TRANSITIONS = Counter(
    "transaction_transitions",
    "Committed transaction lifecycle transitions, by resulting status.",
    labelnames=("status",),
    namespace=_NAMESPACE,
)
PAYMENT_GATEWAY_FAILURES = Counter(
    "payment_gateway_failures",
    "Payment gateway calls that were rejected or exhausted their retries.",
    labelnames=("operation",),
    namespace=_NAMESPACE,
)


def route_template(request: Request) -> str:
    """Matched route path such as ``/api/properties/{property_id}``; raw paths would explode cardinality."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


def observe_request(request: Request, status_code: int, elapsed: float) -> None:
    route = route_template(request)
    REQUEST_LATENCY_SECONDS.labels(method=request.method, route=route).observe(elapsed)
    REQUEST_COUNTER.labels(method=request.method, route=route, status=str(status_code)).inc()


class PrometheusMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:  # type: ignore[override]
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            observe_request(request, 500, time.perf_counter() - started)
            raise
        observe_request(request, response.status_code, time.perf_counter() - started)
        return response


metrics_router = APIRouter(tags=["observability"])


@metrics_router.get("/metrics", include_in_schema=False)
def metrics_endpoint() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "PAYMENT_GATEWAY_FAILURES",
    "PrometheusMiddleware",
    "REQUEST_COUNTER",
    "REQUEST_LATENCY_SECONDS",
    "TRANSACTION_TRANSITIONS",
    "metrics_router",
    "observe_request",
    "route_template",
]
