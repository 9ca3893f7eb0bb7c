"""Observability utilities."""

from .audit import AuditLogRecord, AuditMiddleware, S3AuditSink, mask_payload
from .metrics import (
    CAP_TABLE_COMPUTE_SECONDS,
    REQUEST_COUNTER,
    REQUEST_ERROR_COUNTER,
    REQUEST_LATENCY_SECONDS,
    SHARE_TRANSACTION_COUNTER,
    PrometheusMiddleware,
    metrics_router,
    record_share_transaction,
)
from .tracing import (
    initialise_tracing,
    instrument_fastapi_app,
    instrument_sqlalchemy_engine,
    register_span,
)

__all__ = [
    "AuditLogRecord",
    "AuditMiddleware",
    "CAP_TABLE_COMPUTE_SECONDS",
    "PrometheusMiddleware",
    "REQUEST_COUNTER",
    "REQUEST_ERROR_COUNTER",
    "REQUEST_LATENCY_SECONDS",
    "S3AuditSink",
    "SHARE_TRANSACTION_COUNTER",
    "initialise_tracing",
    "instrument_fastapi_app",
    "instrument_sqlalchemy_engine",
    "mask_payload",
    "metrics_router",
    "record_share_transaction",
    "register_span",
]
