"""Common dependencies for API routes."""
from __future__ import annotations

from collections.abc import Iterator

from sqlalchemy.orm import Session

from realty.db.session import SessionLocal
from realty.services.images import ListingImageStore
from realty.services.payments import HTTPPaymentGateway, PaymentGateway


def get_db_session() -> Iterator[Session]:
    """Yield a database session for FastAPI dependencies."""

    session: Session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def get_payment_gateway() -> Iterator[PaymentGateway]:
    """Yield a payment gateway client scoped to the request."""

    gateway = HTTPPaymentGateway.from_settings()
    try:
        yield gateway
    finally:
        gateway.close()


def get_image_store() -> ListingImageStore:
    return ListingImageStore()


__all__ = ["get_db_session", "get_image_store", "get_payment_gateway"]
