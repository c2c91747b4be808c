"""Per-request audit trail: masked JSON records logged and appended to S3."""
from __future__ import annotations

import json
import logging
import random
import time
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import boto3
from botocore.exceptions import BotoCoreError, ClientError  # type: ignore[import-untyped]
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

from realty.core.config import Settings
from realty.obs.tracing import current_trace_id

_SECRET_KEYS = {"password", "access_token", "refresh_token", "client_secret"}
_CONTACT_KEYS = {"email", "phone_number"}
_REDACTED = "***"

logger = logging.getLogger("audit")


def _mask_email(value: str) -> str:
    local, _, domain = value.partition("@")
    if not domain:
        return f"{_REDACTED}@{_REDACTED}"
    return f"{local[:1]}{_REDACTED}@{domain}"


def _mask_any(value: Any) -> Any:
    if isinstance(value, dict):
        return mask_payload(value)
    if isinstance(value, list):
        return [_mask_any(item) for item in value]
    if isinstance(value, str) and "@" in value:
        return _mask_email(value)
    return value


def mask_payload(mapping: dict[str, Any]) -> dict[str, Any]:
    """Redact credentials and contact details from a JSON body.

    Secrets are replaced outright. Email addresses keep their first letter and
    domain; phone numbers keep their last two digits.
    """
    masked: dict[str, Any] = {}
    for key, value in mapping.items():
        name = key.lower()
        if name in _SECRET_KEYS:
            masked[key] = _REDACTED
        elif name in _CONTACT_KEYS and isinstance(value, str) and "@" not in value:
            masked[key] = f"{_REDACTED}{value[-2:]}"
        else:
            masked[key] = _mask_any(value)
    return masked


def describe_body(body: bytes, content_type: str) -> Any:
    """JSON bodies are masked and kept; anything else is summarised by size."""
    if not body:
        return None
    if not content_type.startswith("application/json"):
        return f"<{len(body)} bytes>"
    try:
        return _mask_any(json.loads(body))
    except ValueError:
        return "<invalid-json>"


async def _request_body(request: Request) -> Any:
    # Binary uploads are summarised from their declared length and left
    # unread so route handlers can stream and bound them.
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        return describe_body(await request.body(), content_type)
    declared = request.headers.get("content-length", "0")
    return f"<{declared} bytes>" if declared not in ("", "0") else None


@dataclass(slots=True)
class AuditLogRecord:
    request_id: str
    method: str
    path: str
    status: int
    duration_ms: float
    actor_id: str | None = None
    actor_role: str | None = None
    ip_address: str | None = None
    trace_id: str | None = None
    query: dict[str, Any] = field(default_factory=dict)
    body: Any = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_json(self) -> str:
        payload = asdict(self)
        payload["duration_ms"] = round(self.duration_ms, 2)
        return json.dumps(payload, default=str, sort_keys=True)


class S3AuditSink:
    """Appends sampled audit records to one JSON-lines object per UTC day."""

    def __init__(self, settings: Settings, client_factory: Callable[[], Any] | None = None) -> None:
        self._settings = settings
        self._client_factory = client_factory or self._boto3_client
        self.reset()

    def reset(self) -> None:
        self._client: Any | None = None
        self._bucket_ready = False

    def _boto3_client(self) -> Any:
        return boto3.client("s3", region_name=self._settings.aws_region, endpoint_url=self._settings.s3_endpoint_url)

    def _client_with_bucket(self) -> Any:
        if self._client is None:
            self._client = self._client_factory()
        if not self._bucket_ready:
            bucket = self._settings.audit_log_bucket
            try:
                self._client.head_bucket(Bucket=bucket)
            except ClientError:
                self._client.create_bucket(Bucket=bucket)
            self._bucket_ready = True
        return self._client

    def object_key(self, when: datetime | None = None) -> str:
        when = when or datetime.now(timezone.utc)
        return f"{self._settings.audit_log_prefix.rstrip('/')}/{when:%Y/%m/%d}/audit.log"

    def write(self, record: AuditLogRecord) -> None:
        rate = self._settings.audit_log_sample_rate
        if rate <= 0 or random.random() >= rate:
            return
        bucket = self._settings.audit_log_bucket
        key = self.object_key()
        try:
            client = self._client_with_bucket()
            try:
                existing = client.get_object(Bucket=bucket, Key=key)["Body"].read()
            except client.exceptions.NoSuchKey:  # type: ignore[attr-defined]
                existing = b""
            client.put_object(
                Bucket=bucket,
                Key=key,
                Body=existing + record.to_json().encode("utf-8") + b"\n",
                ContentType="application/x-ndjson",
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("failed to persist audit record", extra={"request_id": record.request_id, "error": str(exc)})


class AuditMiddleware(BaseHTTPMiddleware):
    """Logs one masked record per request and hands it to the S3 sink.

    Route dependencies publish the caller via ``request.state.actor_id`` and
    ``request.state.actor_role``.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        settings: Settings,
        sink: S3AuditSink | None = None,
        s3_client_factory: Callable[[], Any] | None = None,
    ) -> None:
        super().__init__(app)
        self.sink = sink or S3AuditSink(settings, s3_client_factory)

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()
        body = await _request_body(request)

        response = await call_next(request)

        record = AuditLogRecord(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=(time.perf_counter() - started) * 1000,
            actor_id=getattr(request.state, "actor_id", None),
            actor_role=getattr(request.state, "actor_role", None),
            ip_address=request.client.host if request.client else None,
            trace_id=current_trace_id(),
            query=mask_payload(dict(request.query_params.multi_items())),
            body=body,
        )
        logger.info(record.to_json())
        self.sink.write(record)

        response.headers["X-Request-ID"] = request_id
        return response


__all__ = ["AuditLogRecord", "AuditMiddleware", "S3AuditSink", "describe_body", "mask_payload"]
