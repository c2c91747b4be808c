from __future__ import annotations

import os
import sys
from collections.abc import Callable, Iterator, Mapping
from decimal import Decimal
from io import BytesIO
from pathlib import Path
from types import SimpleNamespace
from uuid import uuid4

import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("ENABLE_TRACING", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")

from realty.api.deps import get_db_session, get_image_store, get_payment_gateway
from realty.api.routes.auth import issue_tokens, refresh_token_store
from realty.main import app
from realty.models import Base, Property, PropertyType, User, UserRole
from realty.obs import AuditMiddleware
from realty.services.accounts import hash_password
from realty.services.errors import PaymentProviderError
from realty.services.images import ListingImageStore
from realty.services.listings import ListingStore
from realty.services.payments import PaymentIntent

TEST_PASSWORD = "secret123"
_TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


class InMemoryS3Client:
    """Simple in-memory S3 stub used by the audit middleware and image store."""

    exceptions = SimpleNamespace(NoSuchKey=type("NoSuchKey", (Exception,), {}))

    def __init__(self) -> None:
        self._buckets: dict[str, dict[str, bytes]] = {}

    def head_bucket(self, *, Bucket: str) -> None:
        if Bucket not in self._buckets:
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadBucket")

    def create_bucket(self, *, Bucket: str, **_: object) -> None:
        self._buckets.setdefault(Bucket, {})

    def get_object(self, *, Bucket: str, Key: str) -> dict[str, BytesIO]:
        if Bucket not in self._buckets:
            raise ClientError({"Error": {"Code": "NoSuchBucket"}}, "GetObject")
        bucket = self._buckets[Bucket]
        if Key not in bucket:
            raise self.exceptions.NoSuchKey()
        return {"Body": BytesIO(bucket[Key])}

    def put_object(self, *, Bucket: str, Key: str, Body: bytes | str, **_: object) -> dict[str, str]:
        bucket = self._buckets.setdefault(Bucket, {})
        bucket[Key] = Body.encode("utf-8") if isinstance(Body, str) else Body
        return {"ETag": "in-memory"}

    @property
    def buckets(self) -> dict[str, dict[str, bytes]]:
        return self._buckets


class FakePaymentGateway:
    """Records payment-intent calls; flip the ``fail_*`` flags to simulate provider errors."""

    def __init__(self) -> None:
        self.created: list[dict[str, object]] = []
        self.cancelled: list[str] = []
        self.fail_create = False
        self.fail_cancel = False

    def create_intent(
        self, *, amount_minor_units: int, currency: str, metadata: Mapping[str, str]
    ) -> PaymentIntent:
        if self.fail_create:
            raise PaymentProviderError("Payment provider rejected create_intent (HTTP 402)")
        intent = PaymentIntent(id=f"pi_{uuid4().hex[:24]}", client_secret=f"pi_secret_{uuid4().hex}")
        self.created.append(
            {
                "id": intent.id,
                "amount_minor_units": amount_minor_units,
                "currency": currency,
                "metadata": dict(metadata),
            }
        )
        return intent

    def cancel_intent(self, intent_id: str) -> None:
        if self.fail_cancel:
            raise PaymentProviderError("Payment provider rejected cancel_intent (HTTP 400)")
        self.cancelled.append(intent_id)


DATABASE_URL = "sqlite+pysqlite://"


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

    monkeypatch.setattr("realty.obs.audit.boto3.client", _client_factory)
    monkeypatch.setattr("realty.services.images.boto3.client", _client_factory)
    stack = getattr(app, "middleware_stack", None)
    middleware = getattr(stack, "app", None)
    while middleware is not None and hasattr(middleware, "app"):
        if isinstance(middleware, AuditMiddleware):
            middleware.sink.reset()
        middleware = getattr(middleware, "app", None)
    yield client


@pytest.fixture(autouse=True)
def _reset_refresh_tokens() -> Iterator[None]:
    refresh_token_store.reset()
    yield
    refresh_token_store.reset()


@pytest.fixture()
def db_session() -> Iterator[Session]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture()
def session_factory() -> sessionmaker:
    """Factory for sessions independent of ``db_session`` on the same database."""
    return TestingSessionLocal


@pytest.fixture()
def payment_gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture()
def image_store(audit_s3_client: InMemoryS3Client) -> ListingImageStore:
    return ListingImageStore(s3_client_factory=lambda: audit_s3_client)


@pytest.fixture()
def client(
    db_session: Session,
    payment_gateway: FakePaymentGateway,
    image_store: ListingImageStore,
) -> Iterator[TestClient]:
    def override_get_db() -> Iterator[Session]:
        try:
            yield db_session
        finally:
            db_session.rollback()

    app.dependency_overrides[get_db_session] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: payment_gateway
    app.dependency_overrides[get_image_store] = lambda: image_store

    with TestClient(app) as test_client:
        yield test_client

    for dependency in (get_db_session, get_payment_gateway, get_image_store):
        app.dependency_overrides.pop(dependency, None)


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    def _make_user(name: str, role: UserRole = UserRole.BUYER, email: str | None = None) -> User:
        user = User(
            name=name,
            email=email or f"{name.lower().replace(' ', '.')}@example.com",
            hashed_password=_TEST_PASSWORD_HASH,
            role=role,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def user_password() -> str:
    return TEST_PASSWORD


@pytest.fixture()
def seller(make_user: Callable[..., User]) -> User:
    return make_user("Sam Seller", UserRole.SELLER)


@pytest.fixture()
def buyer(make_user: Callable[..., User]) -> User:
    return make_user("Bea Buyer", UserRole.BUYER)


@pytest.fixture()
def outsider(make_user: Callable[..., User]) -> User:
    return make_user("Otto Outsider", UserRole.BUYER)


@pytest.fixture()
def admin(make_user: Callable[..., User]) -> User:
    return make_user("Ada Admin", UserRole.ADMIN)


@pytest.fixture()
def headers_for() -> Callable[[User], dict[str, str]]:
    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {issue_tokens(user).access_token}"}

    return _headers


@pytest.fixture()
def make_listing(db_session: Session) -> Callable[..., Property]:
    def _make_listing(owner: User, **overrides: object) -> Property:
        data: dict[str, object] = {
            "title": "Lakeside cottage",
            "description": "Two bedrooms with a view of the lake",
            "type": PropertyType.HOUSE,
            "price": Decimal("250000.00"),
            "address": "1 Shore Road",
            "city": "Madison",
            "state": "WI",
            "zip_code": "53703",
            "bedrooms": 2,
            "bathrooms": 1,
            "area": 96.0,
        }
        data.update(overrides)
        return ListingStore(db_session).create(owner_id=owner.id, data=data)

    return _make_listing


@pytest.fixture()
def listing(make_listing: Callable[..., Property], seller: User) -> Property:
    return make_listing(seller)
