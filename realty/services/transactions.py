"""Transaction lifecycle: open, complete and cancel purchases or rentals."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from realty.core.config import Settings, get_settings
from realty.models import (
    AuditLog,
    PropertyStatus,
    Transaction,
    TransactionStatus,
    TransactionType,
    UserRole,
)
from realty.obs import TRANSACTION_TRANSITIONS
from realty.services.errors import (
    ConcurrentModificationError,
    ConflictError,
    ForbiddenError,
    InfrastructureError,
    InvalidInputError,
    NotFoundError,
    PaymentProviderError,
)
from realty.services.listings import ListingStore
from realty.services.payments import PaymentGateway

logger = logging.getLogger(__name__)

_CENTS = Decimal("0.01")
_UNAVAILABLE_LISTING_STATUSES = {PropertyStatus.SOLD, PropertyStatus.RENTED}


@dataclass(slots=True, frozen=True)
class OpenedTransaction:
    """A newly opened transaction and the token the buyer needs to pay."""

    transaction: Transaction
    client_secret: str


@dataclass(slots=True)
class TransitionResult:
    """Outcome of a lifecycle transition with any non-fatal warnings."""

    transaction: Transaction
    warnings: list[str] = field(default_factory=list)


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).to_integral_value(rounding=ROUND_HALF_UP))


class TransactionLifecycleManager:
    """Coordinates transaction state, listing status and the payment gateway."""

    _ALLOWED_TRANSITIONS: dict[TransactionStatus, set[TransactionStatus]] = {
        TransactionStatus.PENDING: {TransactionStatus.COMPLETED, TransactionStatus.CANCELLED},
        TransactionStatus.COMPLETED: {TransactionStatus.REFUNDED},
    }
    _LISTING_STATUS_ON_COMPLETION: dict[TransactionType, PropertyStatus] = {
        TransactionType.SALE: PropertyStatus.SOLD,
        TransactionType.RENT: PropertyStatus.RENTED,
    }

    def __init__(
        self,
        session: Session,
        *,
        gateway: PaymentGateway,
        settings: Settings | None = None,
        listings: ListingStore | None = None,
    ) -> None:
        self._session = session
        self._gateway = gateway
        self._settings = settings or get_settings()
        self._listings = listings or ListingStore(session)

    def open(
        self,
        *,
        property_id: str,
        transaction_type: TransactionType,
        amount: Decimal,
        buyer_id: str,
        contract_details: dict[str, Any] | None = None,
    ) -> OpenedTransaction:
        """Request a payment intent and persist a pending transaction.

        Nothing is persisted when the gateway call fails. The listing status
        is left unchanged until completion.
        """

        normalized_amount = Decimal(amount).quantize(_CENTS, rounding=ROUND_HALF_UP)
        if normalized_amount <= 0:
            raise InvalidInputError("Amount must be greater than zero")

        listing = self._listings.find_by_id(property_id)
        if listing is None:
            raise NotFoundError("Property not found")
        if listing.status in _UNAVAILABLE_LISTING_STATUSES:
            raise ConflictError(f"Property is already {listing.status.value}")

        intent = self._gateway.create_intent(
            amount_minor_units=to_minor_units(normalized_amount),
            currency=self._settings.payment_currency,
            metadata={"property_id": property_id, "buyer_id": buyer_id},
        )

        transaction = Transaction(
            property_id=listing.id,
            buyer_id=buyer_id,
            seller_id=listing.owner_id,
            type=transaction_type,
            amount=normalized_amount,
            status=TransactionStatus.PENDING,
            payment_external_id=intent.id,
            contract_details=contract_details,
        )
        try:
            self._session.add(transaction)
            self._session.flush()
            self._record_audit(
                transaction,
                action="transaction.open",
                actor_id=buyer_id,
                extra={"payment_external_id": intent.id},
            )
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            self._release_orphaned_intent(intent.id)
            raise InfrastructureError("Could not record the transaction") from exc

        self._session.refresh(transaction)
        TRANSACTION_TRANSITIONS.labels(status=TransactionStatus.PENDING.value).inc()
        logger.info(
            "transaction opened",
            extra={"transaction_id": transaction.id, "property_id": property_id, "buyer_id": buyer_id},
        )
        return OpenedTransaction(transaction=transaction, client_secret=intent.client_secret)

    def complete(
        self,
        transaction_id: str,
        *,
        payment_method: str,
        actor_id: str,
        actor_role: UserRole,
    ) -> TransitionResult:
        """Mark a pending transaction completed and close out its listing.

        The transaction and listing writes commit together. A listing that
        is already sold or rented is a conflict; one that no longer exists
        is reported as a warning rather than an error.
        """

        transaction = self._load(transaction_id)
        self._authorize(transaction, actor_id=actor_id, actor_role=actor_role)
        self._ensure_transition(
            transaction, TransactionStatus.COMPLETED, message="Transaction cannot be completed"
        )
        listing = self._listings.find_by_id(transaction.property_id)
        if listing is not None and listing.status in _UNAVAILABLE_LISTING_STATUSES:
            raise ConflictError(f"Property is already {listing.status.value}")

        result = TransitionResult(transaction=transaction)
        transaction.status = TransactionStatus.COMPLETED
        transaction.payment_method = payment_method
        transaction.payment_date = datetime.now(timezone.utc)
        self._flush()

        listing_status = self._LISTING_STATUS_ON_COMPLETION[transaction.type]
        listing = self._listings.set_status(transaction.property_id, listing_status)
        if listing is None:
            logger.warning(
                "listing missing during completion; status not updated",
                extra={"transaction_id": transaction.id, "property_id": transaction.property_id},
            )
            result.warnings.append("Property no longer exists; listing status was not updated")

        self._record_audit(
            transaction,
            action="transaction.complete",
            actor_id=actor_id,
            extra={
                "payment_method": payment_method,
                "listing_status": listing_status.value if listing is not None else None,
            },
        )
        self._commit()
        TRANSACTION_TRANSITIONS.labels(status=TransactionStatus.COMPLETED.value).inc()
        logger.info("transaction completed", extra={"transaction_id": transaction.id, "actor_id": actor_id})
        return result

    def cancel(self, transaction_id: str, *, actor_id: str, actor_role: UserRole) -> TransitionResult:
        """Cancel a pending transaction.

        The payment intent is cancelled first. A gateway failure becomes a
        warning and the local cancellation still commits.
        """

        transaction = self._load(transaction_id)
        self._authorize(transaction, actor_id=actor_id, actor_role=actor_role)
        self._ensure_transition(
            transaction, TransactionStatus.CANCELLED, message="Transaction cannot be cancelled"
        )

        result = TransitionResult(transaction=transaction)
        intent_id = transaction.payment_external_id
        if intent_id:
            try:
                self._gateway.cancel_intent(intent_id)
            except PaymentProviderError as exc:
                logger.warning(
                    "payment intent cancellation failed",
                    extra={"transaction_id": transaction.id, "payment_external_id": intent_id, "error": str(exc)},
                )
                result.warnings.append(
                    "The payment provider could not cancel the payment intent; it has been flagged for review"
                )

        transaction.status = TransactionStatus.CANCELLED
        transaction.cancelled_by_id = actor_id
        transaction.cancelled_at = datetime.now(timezone.utc)
        self._flush()
        self._record_audit(
            transaction,
            action="transaction.cancel",
            actor_id=actor_id,
            extra={"payment_intent_cancelled": not result.warnings if intent_id else None},
        )
        self._commit()
        TRANSACTION_TRANSITIONS.labels(status=TransactionStatus.CANCELLED.value).inc()
        logger.info("transaction cancelled", extra={"transaction_id": transaction.id, "actor_id": actor_id})
        return result

    def list_for_user(self, user_id: str) -> list[Transaction]:
        statement = (
            self._with_parties(select(Transaction))
            .where(or_(Transaction.buyer_id == user_id, Transaction.seller_id == user_id))
            .order_by(Transaction.created_at.desc())
        )
        return list(self._session.scalars(statement).all())

    def list_all(self) -> list[Transaction]:
        statement = self._with_parties(select(Transaction)).order_by(Transaction.created_at.desc())
        return list(self._session.scalars(statement).all())

    def get(self, transaction_id: str, *, actor_id: str, actor_role: UserRole) -> Transaction:
        transaction = self._load(transaction_id)
        self._authorize(transaction, actor_id=actor_id, actor_role=actor_role)
        return transaction

    @staticmethod
    def _with_parties(statement: Any) -> Any:
        return statement.options(
            selectinload(Transaction.property),
            selectinload(Transaction.buyer),
            selectinload(Transaction.seller),
        )

    def _load(self, transaction_id: str) -> Transaction:
        transaction = self._session.get(Transaction, transaction_id)
        if transaction is None:
            raise NotFoundError("Transaction not found")
        return transaction

    @staticmethod
    def _authorize(transaction: Transaction, *, actor_id: str, actor_role: UserRole) -> None:
        if actor_role == UserRole.ADMIN:
            return
        if actor_id not in {transaction.buyer_id, transaction.seller_id}:
            raise ForbiddenError("Not authorized to access this transaction")

    def _ensure_transition(
        self, transaction: Transaction, new_status: TransactionStatus, *, message: str
    ) -> None:
        allowed = self._ALLOWED_TRANSITIONS.get(transaction.status, set())
        if new_status not in allowed:
            raise ConflictError(f"{message} (status is {transaction.status.value})")

    def _flush(self) -> None:
        try:
            self._session.flush()
        except StaleDataError as exc:
            self._session.rollback()
            raise ConcurrentModificationError("Transaction was modified concurrently") from exc

    def _commit(self) -> None:
        try:
            self._session.commit()
        except StaleDataError as exc:
            self._session.rollback()
            raise ConcurrentModificationError("Transaction was modified concurrently") from exc
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise InfrastructureError("Could not record the transaction update") from exc

    def _release_orphaned_intent(self, intent_id: str) -> None:
        try:
            self._gateway.cancel_intent(intent_id)
        except PaymentProviderError as exc:
            logger.error(
                "could not cancel payment intent after failed persist",
                extra={"payment_external_id": intent_id, "error": str(exc)},
            )

    def _record_audit(
        self,
        transaction: Transaction,
        *,
        action: str,
        actor_id: str,
        extra: dict[str, Any] | None = None,
    ) -> None:
        payload: dict[str, Any] = {
            "status": transaction.status.value,
            "type": transaction.type.value,
            "amount": f"{Decimal(transaction.amount):.2f}",
            "commission": f"{Decimal(transaction.commission_amount):.2f}",
            "property_id": transaction.property_id,
        }
        if extra:
            payload.update(extra)
        self._session.add(
            AuditLog(
                actor_id=actor_id,
                action=action,
                resource_type="Transaction",
                resource_id=transaction.id,
                payload=payload,
            )
        )


__all__ = [
    "OpenedTransaction",
    "TransactionLifecycleManager",
    "TransitionResult",
    "to_minor_units",
]
