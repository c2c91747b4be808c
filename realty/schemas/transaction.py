"""Schemas for transaction resources."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from realty.models import PropertyStatus, Transaction, TransactionStatus, TransactionType
from realty.schemas.user import UserSummary


class ContractDetails(BaseModel):
    start_date: date | None = None
    end_date: date | None = None
    terms: str | None = Field(default=None, max_length=10_000)
    documents: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_dates(self) -> "ContractDetails":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class TransactionCreate(BaseModel):
    property_id: str = Field(..., min_length=1, max_length=64)
    type: TransactionType
    amount: Decimal = Field(..., gt=0, max_digits=14, decimal_places=2)
    contract_details: ContractDetails | None = None


class TransactionComplete(BaseModel):
    payment_method: str = Field(..., min_length=1, max_length=64)


class PropertySummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    status: PropertyStatus
    price: Decimal
    city: str
    state: str


class PaymentInfo(BaseModel):
    external_payment_id: str | None
    payment_method: str | None
    payment_date: datetime | None


class Commission(BaseModel):
    amount: Decimal
    paid: bool


class TransactionRead(BaseModel):
    id: str
    property_id: str
    property: PropertySummary | None
    buyer: UserSummary
    seller: UserSummary
    type: TransactionType
    amount: Decimal
    status: TransactionStatus
    payment_info: PaymentInfo
    commission: Commission
    contract_details: ContractDetails | None
    cancelled_by_id: str | None
    cancelled_at: datetime | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, transaction: Transaction) -> "TransactionRead":
        listing = transaction.property
        return cls(
            id=transaction.id,
            property_id=transaction.property_id,
            property=PropertySummary.model_validate(listing) if listing is not None else None,
            buyer=UserSummary.model_validate(transaction.buyer),
            seller=UserSummary.model_validate(transaction.seller),
            type=transaction.type,
            amount=Decimal(transaction.amount),
            status=transaction.status,
            payment_info=PaymentInfo(
                external_payment_id=transaction.payment_external_id,
                payment_method=transaction.payment_method,
                payment_date=transaction.payment_date,
            ),
            commission=Commission(
                amount=Decimal(transaction.commission_amount),
                paid=transaction.commission_paid,
            ),
            contract_details=(
                ContractDetails.model_validate(transaction.contract_details)
                if transaction.contract_details
                else None
            ),
            cancelled_by_id=transaction.cancelled_by_id,
            cancelled_at=transaction.cancelled_at,
            created_at=transaction.created_at,
            updated_at=transaction.updated_at,
        )


class TransactionOpened(BaseModel):
    transaction: TransactionRead
    client_secret: str


class TransactionTransition(BaseModel):
    transaction: TransactionRead
    warnings: list[str] = Field(default_factory=list)


__all__ = [
    "Commission",
    "ContractDetails",
    "PaymentInfo",
    "PropertySummary",
    "TransactionComplete",
    "TransactionCreate",
    "TransactionOpened",
    "TransactionRead",
    "TransactionTransition",
]
