from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import date
from decimal import Decimal
from io import BytesIO
from pathlib import Path
import sys
from typing import Any

import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from aktiebok.api.deps import get_db_session
from aktiebok.main import app
from aktiebok.models import Base, ShareClass, Shareholder, ShareholderType, ShareTransactionType, Tenant
from aktiebok.obs import AuditMiddleware
from aktiebok.services.validation import ShareTransactionInput

TENANT_ID = "tenant-demo"


class InMemoryS3Client:
    """Simple in-memory S3 stub used by the audit middleware during tests."""

    def __init__(self) -> None:
        self._buckets: dict[str, dict[str, bytes]] = {}

    def head_bucket(self, *, Bucket: str) -> None:
        if Bucket not in self._buckets:
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadBucket")

    def create_bucket(self, *, Bucket: str, **_: object) -> None:
        self._buckets.setdefault(Bucket, {})

    def get_object(self, *, Bucket: str, Key: str) -> dict[str, BytesIO]:
        bucket = self._buckets.get(Bucket)
        if bucket is None:
            raise ClientError({"Error": {"Code": "NoSuchBucket"}}, "GetObject")
        if Key not in bucket:
            raise ClientError({"Error": {"Code": "NoSuchKey"}}, "GetObject")
        return {"Body": BytesIO(bucket[Key])}

    def put_object(self, *, Bucket: str, Key: str, Body: bytes, **_: object) -> dict[str, str]:
        self._buckets.setdefault(Bucket, {})[Key] = Body
        return {"ETag": "in-memory"}

    @property
    def buckets(self) -> dict[str, dict[str, bytes]]:
        return self._buckets


DATABASE_URL = "sqlite+pysqlite:///./test_suite.db"


engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture(autouse=True)
def audit_s3_client(monkeypatch: pytest.MonkeyPatch) -> Iterator[InMemoryS3Client]:
    client = InMemoryS3Client()

    def _client_factory(*args: object, **kwargs: object) -> InMemoryS3Client:
        return client

    monkeypatch.setattr("aktiebok.obs.audit.boto3.client", _client_factory)
    stack = getattr(app, "middleware_stack", None)
    middleware = getattr(stack, "app", None)
    while middleware is not None:
        if isinstance(middleware, AuditMiddleware):
            middleware._sink._client = None
            middleware._sink._bucket_ready = False
        middleware = getattr(middleware, "app", None)
    yield client


@pytest.fixture()
def db_session() -> Iterator[Session]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()

    session.add(Tenant(id=TENANT_ID, name="Demo Bolag AB", organization_number="556000-0000"))
    session.commit()

    yield session
    session.close()


@pytest.fixture()
def make_shareholder(db_session: Session) -> Callable[..., Shareholder]:
    def _make(name: str, *, organization_number: str | None = None, **attributes: Any) -> Shareholder:
        shareholder = Shareholder(
            tenant_id=attributes.pop("tenant_id", TENANT_ID),
            name=name,
            type=attributes.pop("type", ShareholderType.INDIVIDUAL),
            organization_number=organization_number,
            **attributes,
        )
        db_session.add(shareholder)
        db_session.commit()
        return shareholder

    return _make


def transaction_input(**overrides: Any) -> ShareTransactionInput:
    """Build a transaction input with issuance defaults."""

    values: dict[str, Any] = {
        "type": ShareTransactionType.ISSUANCE,
        "share_class": ShareClass.A,
        "number_of_shares": 100,
        "share_number_from": 1,
        "share_number_to": 100,
        "date": date(2024, 1, 15),
        "nominal_value": Decimal("1"),
        "votes_per_share": Decimal("1"),
    }
    values.update(overrides)
    return ShareTransactionInput(**values)


@pytest.fixture()
def build_input() -> Callable[..., ShareTransactionInput]:
    return transaction_input


@pytest.fixture()
def client(db_session: Session, audit_s3_client: InMemoryS3Client) -> Iterator[TestClient]:
    def override_get_db() -> Iterator[Session]:
        try:
            yield db_session
        finally:
            db_session.rollback()

    app.dependency_overrides[get_db_session] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.pop(get_db_session, None)


def _login(client: TestClient, role: str) -> dict[str, str]:
    response = client.post(
        "/api/auth/login",
        json={"email": "styrelse@example.com", "password": "changeme", "role": role},
    )
    token = response.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def auth_headers(client: TestClient) -> dict[str, str]:
    return _login(client, "OWNER")


@pytest.fixture()
def admin_headers(client: TestClient) -> dict[str, str]:
    return _login(client, "ADMIN")


@pytest.fixture()
def member_headers(client: TestClient) -> dict[str, str]:
    return _login(client, "MEMBER")
