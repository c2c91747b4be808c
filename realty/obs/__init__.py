"""Audit trail, Prometheus metrics and OpenTelemetry tracing."""

from .audit import AuditLogRecord, AuditMiddleware, S3AuditSink, mask_payload
from .metrics import (
    PAYMENT_GATEWAY_FAILURES,
    TRANSACTION_TRANSITIONS,
    PrometheusMiddleware,
    metrics_router,
)
from .tracing import (
    configure_tracing,
    current_trace_id,
    instrument_fastapi_app,
    instrument_sqlalchemy_engine,
    traced,
)

__all__ = [
    "AuditLogRecord",
    "AuditMiddleware",
    "PAYMENT_GATEWAY_FAILURES",
    "PrometheusMiddleware",
    "S3AuditSink",
    "TRANSACTION_TRANSITIONS",
    "configure_tracing",
    "current_trace_id",
    "instrument_fastapi_app",
    "instrument_sqlalchemy_engine",
    "mask_payload",
    "metrics_router",
    "traced",
]
