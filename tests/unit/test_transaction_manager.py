from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from realty.models import (
    AuditLog,
    Property,
    PropertyStatus,
    Transaction,
    TransactionStatus,
    TransactionType,
    UserRole,
    compute_commission,
)
from realty.services.errors import (
    ConcurrentModificationError,
    ConflictError,
    ForbiddenError,
    InfrastructureError,
    NotFoundError,
)
from realty.services.transactions import TransactionLifecycleManager, to_minor_units


@pytest.fixture()
def manager(db_session, payment_gateway) -> TransactionLifecycleManager:
    return TransactionLifecycleManager(db_session, gateway=payment_gateway)


def _open(manager, listing, buyer, *, transaction_type=TransactionType.SALE, amount="250000"):
    return manager.open(
        property_id=listing.id,
        transaction_type=transaction_type,
        amount=Decimal(amount),
        buyer_id=buyer.id,
    ).transaction


@pytest.mark.parametrize(
    ("amount", "expected"),
    [
        ("250000", "7500.00"),
        ("1500", "45.00"),
        ("10.05", "0.30"),
        ("0.50", "0.02"),
    ],
)
def test_compute_commission_rounds_half_up_to_cents(amount: str, expected: str) -> None:
    assert compute_commission(Decimal(amount)) == Decimal(expected)


def test_commission_follows_amount_changes() -> None:
    transaction = Transaction(amount=Decimal("1000"))
    assert transaction.commission_amount == Decimal("30.00")

    transaction.amount = Decimal("2000.004")

    assert transaction.amount == Decimal("2000.00")
    assert transaction.commission_amount == Decimal("60.00")


def test_to_minor_units() -> None:
    assert to_minor_units(Decimal("1500.00")) == 150_000
    assert to_minor_units(Decimal("0.01")) == 1


def test_open_persists_pending_transaction(manager, db_session, payment_gateway, listing, buyer, seller) -> None:
    opened = manager.open(
        property_id=listing.id,
        transaction_type=TransactionType.RENT,
        amount=Decimal("1499.999"),
        buyer_id=buyer.id,
        contract_details={"terms": "monthly"},
    )

    transaction = opened.transaction
    assert transaction.status == TransactionStatus.PENDING
    assert transaction.seller_id == seller.id
    assert transaction.amount == Decimal("1500.00")
    assert transaction.commission_amount == Decimal("45.00")
    assert transaction.commission_paid is False
    assert transaction.contract_details == {"terms": "monthly"}
    assert payment_gateway.created[0]["amount_minor_units"] == 150_000
    assert payment_gateway.created[0]["currency"] == "usd"
    assert opened.client_secret.startswith("pi_secret_")

    db_session.refresh(listing)
    assert listing.status == PropertyStatus.AVAILABLE
    audit = db_session.scalars(select(AuditLog)).one()
    assert audit.action == "transaction.open"
    assert audit.resource_id == transaction.id
    assert audit.payload["commission"] == "45.00"


def test_open_missing_listing_does_not_call_gateway(manager, payment_gateway, buyer) -> None:
    with pytest.raises(NotFoundError):
        manager.open(
            property_id="missing",
            transaction_type=TransactionType.SALE,
            amount=Decimal("10"),
            buyer_id=buyer.id,
        )
    assert payment_gateway.created == []


def test_open_releases_intent_when_persist_fails(
    manager, db_session, payment_gateway, listing, buyer, monkeypatch
) -> None:
    def failing_commit() -> None:
        raise SQLAlchemyError("database is locked")

    monkeypatch.setattr(db_session, "commit", failing_commit)

    with pytest.raises(InfrastructureError):
        _open(manager, listing, buyer)

    assert payment_gateway.cancelled == [payment_gateway.created[0]["id"]]
    assert db_session.scalars(select(Transaction)).all() == []


def test_complete_marks_listing_sold_atomically(manager, db_session, listing, buyer) -> None:
    transaction = _open(manager, listing, buyer)

    result = manager.complete(
        transaction.id, payment_method="card", actor_id=buyer.id, actor_role=UserRole.BUYER
    )

    assert result.warnings == []
    assert result.transaction.status == TransactionStatus.COMPLETED
    assert result.transaction.payment_method == "card"
    assert result.transaction.payment_date is not None
    db_session.refresh(listing)
    assert listing.status == PropertyStatus.SOLD
    actions = set(db_session.scalars(select(AuditLog.action)).all())
    assert actions == {"transaction.open", "transaction.complete"}


def test_complete_warns_when_listing_is_gone(manager, db_session, listing, buyer, seller) -> None:
    transaction = _open(manager, listing, buyer, transaction_type=TransactionType.RENT, amount="900")
    db_session.execute(delete(Property).where(Property.id == listing.id))
    db_session.commit()
    db_session.expire_all()

    result = manager.complete(
        transaction.id, payment_method="card", actor_id=seller.id, actor_role=UserRole.SELLER
    )

    assert result.transaction.status == TransactionStatus.COMPLETED
    assert len(result.warnings) == 1
    assert "no longer exists" in result.warnings[0]


def test_complete_twice_conflicts(manager, listing, buyer) -> None:
    transaction = _open(manager, listing, buyer)
    manager.complete(transaction.id, payment_method="card", actor_id=buyer.id, actor_role=UserRole.BUYER)

    with pytest.raises(ConflictError, match="status is completed"):
        manager.complete(transaction.id, payment_method="card", actor_id=buyer.id, actor_role=UserRole.BUYER)


def test_cancel_then_complete_conflicts(manager, payment_gateway, listing, buyer, seller) -> None:
    transaction = _open(manager, listing, buyer)

    result = manager.cancel(transaction.id, actor_id=seller.id, actor_role=UserRole.SELLER)

    assert result.transaction.status == TransactionStatus.CANCELLED
    assert result.transaction.cancelled_by_id == seller.id
    assert result.transaction.cancelled_at is not None
    assert payment_gateway.cancelled == [transaction.payment_external_id]
    with pytest.raises(ConflictError, match="cannot be completed"):
        manager.complete(transaction.id, payment_method="card", actor_id=buyer.id, actor_role=UserRole.BUYER)


def test_third_party_is_forbidden(manager, listing, buyer, outsider) -> None:
    transaction = _open(manager, listing, buyer)

    with pytest.raises(ForbiddenError):
        manager.cancel(transaction.id, actor_id=outsider.id, actor_role=UserRole.BUYER)
    with pytest.raises(ForbiddenError):
        manager.get(transaction.id, actor_id=outsider.id, actor_role=UserRole.BUYER)


def test_unknown_transaction_is_not_found(manager, buyer) -> None:
    with pytest.raises(NotFoundError):
        manager.cancel("missing", actor_id=buyer.id, actor_role=UserRole.BUYER)


class RacingGateway:
    """Completes the transaction from another session while the cancel is in flight."""

    def __init__(self, session_factory) -> None:
        self._session_factory = session_factory

    def create_intent(self, *, amount_minor_units, currency, metadata):  # pragma: no cover - unused
        raise AssertionError("not expected")

    def cancel_intent(self, intent_id: str) -> None:
        other_session = self._session_factory()
        try:
            competing = other_session.scalars(
                select(Transaction).where(Transaction.payment_external_id == intent_id)
            ).one()
            competing.status = TransactionStatus.COMPLETED
            competing.payment_method = "race"
            other_session.commit()
        finally:
            other_session.close()


def test_concurrent_transition_is_detected(manager, db_session, session_factory, listing, buyer) -> None:
    transaction = _open(manager, listing, buyer)
    racing = TransactionLifecycleManager(db_session, gateway=RacingGateway(session_factory))

    with pytest.raises(ConcurrentModificationError):
        racing.cancel(transaction.id, actor_id=buyer.id, actor_role=UserRole.BUYER)

    db_session.expire_all()
    stored = db_session.get(Transaction, transaction.id)
    assert stored.status == TransactionStatus.COMPLETED
    assert stored.payment_method == "race"
    assert stored.cancelled_at is None


def test_listing_orders_newest_first(manager, make_listing, seller, buyer, outsider) -> None:
    opened = [_open(manager, make_listing(seller, title=f"Lot {n}"), buyer).id for n in range(5)]
    other = _open(manager, make_listing(seller, title="Other"), outsider)

    mine = manager.list_for_user(buyer.id)
    everything = manager.list_all()

    assert [item.id for item in mine] == list(reversed(opened))
    assert [item.id for item in everything] == [other.id, *reversed(opened)]
    assert {item.id for item in manager.list_for_user(seller.id)} == {item.id for item in everything}


def test_complete_rejects_listing_already_sold(manager, db_session, listing, buyer, outsider) -> None:
    first = _open(manager, listing, buyer)
    second = _open(manager, listing, outsider)
    manager.complete(first.id, payment_method="card", actor_id=buyer.id, actor_role=UserRole.BUYER)

    with pytest.raises(ConflictError, match="already sold"):
        manager.complete(second.id, payment_method="card", actor_id=outsider.id, actor_role=UserRole.BUYER)

    db_session.expire_all()
    assert db_session.get(Transaction, second.id).status == TransactionStatus.PENDING
    assert db_session.get(Property, listing.id).status == PropertyStatus.SOLD


def test_sale_cannot_complete_on_rented_listing(manager, db_session, listing, buyer, outsider) -> None:
    rental = _open(manager, listing, buyer, transaction_type=TransactionType.RENT, amount="1500")
    sale = _open(manager, listing, outsider)
    manager.complete(rental.id, payment_method="card", actor_id=buyer.id, actor_role=UserRole.BUYER)

    with pytest.raises(ConflictError, match="already rented"):
        manager.complete(sale.id, payment_method="card", actor_id=outsider.id, actor_role=UserRole.BUYER)

    db_session.expire_all()
    assert db_session.get(Property, listing.id).status == PropertyStatus.RENTED
