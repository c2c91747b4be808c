"""Transaction ORM model."""
from __future__ import annotations

import enum
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, JSON, Numeric, String
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from realty.models.base import Base, IdentifierMixin, TimestampMixin

COMMISSION_RATE = Decimal("0.03")
_CENTS = Decimal("0.01")


class TransactionType(str, enum.Enum):
    SALE = "sale"
    RENT = "rent"


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


def compute_commission(amount: Decimal | int | float | str) -> Decimal:
    """Return the platform commission for ``amount``, rounded to cents."""
    return (Decimal(str(amount)) * COMMISSION_RATE).quantize(_CENTS, rounding=ROUND_HALF_UP)


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [item.value for item in enum_cls]


class Transaction(IdentifierMixin, TimestampMixin, Base):
    """A buyer's attempt to purchase or rent a listing."""

    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_buyer_id", "buyer_id"),
        Index("ix_transactions_seller_id", "seller_id"),
    )

    property_id: Mapped[str] = mapped_column(String(36), ForeignKey("properties.id"), nullable=False)
    buyer_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
    seller_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType, name="transaction_type", values_callable=_enum_values), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    status: Mapped[TransactionStatus] = mapped_column(
        SAEnum(TransactionStatus, name="transaction_status", values_callable=_enum_values),
        nullable=False,
        default=TransactionStatus.PENDING,
    )

    payment_external_id: Mapped[str | None] = mapped_column(String(255))
    payment_method: Mapped[str | None] = mapped_column(String(64))
    payment_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    commission_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    commission_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    contract_details: Mapped[dict | None] = mapped_column(JSON)
    cancelled_by_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("users.id"))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    lock_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    property = relationship("Property", back_populates="transactions")
    buyer = relationship("User", foreign_keys=[buyer_id])
    seller = relationship("User", foreign_keys=[seller_id])
    cancelled_by = relationship("User", foreign_keys=[cancelled_by_id])

    __mapper_args__ = {"version_id_col": lock_version}

    @validates("amount")
    def _sync_commission(self, _key: str, value: Decimal | int | float | str) -> Decimal:
        amount = Decimal(str(value)).quantize(_CENTS, rounding=ROUND_HALF_UP)
        self.commission_amount = compute_commission(amount)
        return amount


__all__ = [
    "COMMISSION_RATE",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    "compute_commission",
]
