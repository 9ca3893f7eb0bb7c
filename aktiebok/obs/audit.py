"""Request audit trail: masked JSON records logged and appended to S3."""
from __future__ import annotations

import json
import logging
import random
import re
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Callable
from uuid import uuid4

import boto3
from botocore.exceptions import ClientError  # type: ignore[import-untyped]
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

from aktiebok.core.config import Settings

_SENSITIVE_KEYS = {
    "email",
    "phone_number",
    "organization_number",
    "personal_number",
    "street",
    "postal_code",
    "password",
}
# Personnummer and organisationsnummer, with or without the separator.
_IDENTITY_NUMBER = re.compile(r"^\d{6,8}[-+]?\d{4}$")


def _mask_string(value: str) -> str:
    if "@" in value:
        name, _, domain = value.partition("@")
        hidden = name[0] + "***" if name else "***"
        return f"{hidden}@{domain}" if domain else "***@***"
    if _IDENTITY_NUMBER.match(value):
        return f"***{value[-4:]}"
    return value


def mask_payload(value: Any) -> Any:
    """Mask contact details and identity numbers in a decoded JSON payload."""

    if isinstance(value, dict):
        masked: dict[str, Any] = {}
        for key, item in value.items():
            if key.lower() in _SENSITIVE_KEYS and item is not None:
                masked[key] = f"***{item[-4:]}" if isinstance(item, str) and len(item) > 4 else "***"
            else:
                masked[key] = mask_payload(item)
        return masked
    if isinstance(value, list):
        return [mask_payload(item) for item in value]
    if isinstance(value, str):
        return _mask_string(value)
    return value


@dataclass(slots=True)
class AuditLogRecord:
    """Structured log entry emitted by the middleware."""

    timestamp: str
    request_id: str
    method: str
    path: str
    status: int
    duration_ms: float
    actor: str | None
    tenant_id: str | None
    ip_address: str | None
    query: dict[str, Any]
    body: Any

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["duration_ms"] = round(self.duration_ms, 2)
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class S3AuditSink:
    """Appends audit records to one JSON-lines object per day."""

    def __init__(
        self,
        settings: Settings,
        *,
        logger: logging.Logger,
        client_factory: Callable[[], Any] | None = None,
    ) -> None:
        self._settings = settings
        self._logger = logger
        self._client_factory = client_factory or self._default_client_factory
        self._client: Any | None = None
        self._bucket_ready = False

    def _default_client_factory(self) -> Any:
        return boto3.client(
            "s3",
            region_name=self._settings.aws_region,
            endpoint_url=self._settings.s3_endpoint_url,
        )

    def _sampled(self) -> bool:
        rate = self._settings.audit_log_sample_rate
        if rate <= 0:
            return False
        return rate >= 1 or random.random() <= rate

    def _ensure_bucket(self, client: Any) -> None:
        if self._bucket_ready:
            return
        bucket = self._settings.audit_log_bucket
        try:
            client.head_bucket(Bucket=bucket)
        except ClientError:
            create_params: dict[str, Any] = {"Bucket": bucket}
            if self._settings.aws_region != "us-east-1" and self._settings.s3_endpoint_url is None:
                create_params["CreateBucketConfiguration"] = {
                    "LocationConstraint": self._settings.aws_region
                }
            client.create_bucket(**create_params)
        self._bucket_ready = True

    def daily_key(self, now: datetime | None = None) -> str:
        now = now or datetime.now(timezone.utc)
        prefix = self._settings.audit_log_prefix.rstrip("/")
        return f"{prefix}/{now:%Y/%m/%d}/audit.log"

    def append(self, record: AuditLogRecord) -> None:
        if not self._sampled():
            return

        try:
            if self._client is None:
                self._client = self._client_factory()
            client = self._client
            self._ensure_bucket(client)
            bucket = self._settings.audit_log_bucket
            key = self.daily_key()
            try:
                existing = client.get_object(Bucket=bucket, Key=key)["Body"].read()
            except ClientError as exc:
                if exc.response.get("Error", {}).get("Code") not in {"404", "NoSuchKey"}:
                    raise
                existing = b""
            client.put_object(
                Bucket=bucket,
                Key=key,
                Body=existing + record.to_json().encode("utf-8") + b"\n",
                ContentType="application/json",
            )
        except Exception as exc:  # pragma: no cover - S3 connectivity issues
            self._logger.error("failed to persist audit record", extra={"error": str(exc)})


class AuditMiddleware(BaseHTTPMiddleware):
    """Starlette middleware recording who changed or read the register."""

    def __init__(
        self,
        app: ASGIApp,
        *,
        settings: Settings,
        logger: logging.Logger | None = None,
        s3_client_factory: Callable[[], Any] | None = None,
    ) -> None:
        super().__init__(app)
        self._logger = logger or logging.getLogger("audit")
        self._sink = S3AuditSink(settings, logger=self._logger, client_factory=s3_client_factory)

    async def dispatch(self, request: Request, call_next: Callable[[Request], Any]) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid4().hex
        request.state.request_id = request_id
        start = time.perf_counter()

        body_bytes = await request.body()
        self._set_body(request, body_bytes)

        masked_body = None
        if body_bytes:
            try:
                masked_body = mask_payload(json.loads(body_bytes))
            except json.JSONDecodeError:
                masked_body = "<binary>"

        response = await call_next(request)

        record = AuditLogRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=(time.perf_counter() - start) * 1000,
            actor=getattr(request.state, "actor_email", None),
            tenant_id=getattr(request.state, "tenant_id", None),
            ip_address=request.client.host if request.client else None,
            query=mask_payload(dict(request.query_params.multi_items())),
            body=masked_body,
        )

        self._logger.info(record.to_json())
        self._sink.append(record)

        response.headers["X-Request-ID"] = request_id
        return response

    @staticmethod
    def _set_body(request: Request, body: bytes) -> None:
        async def receive() -> dict[str, Any]:
            nonlocal consumed
            if consumed:
                return {"type": "http.request", "body": b"", "more_body": False}
            consumed = True
            return {"type": "http.request", "body": body, "more_body": False}

        consumed = False
        request._receive = receive  # type: ignore[attr-defined]


__all__ = ["AuditLogRecord", "AuditMiddleware", "S3AuditSink", "mask_payload"]
