"""Property listing ORM model."""
from __future__ import annotations

import enum
from decimal import Decimal

from sqlalchemy import Boolean, Column, Float, ForeignKey, Integer, JSON, Numeric, String, Table, Text
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from realty.models.base import Base, IdentifierMixin, TimestampMixin


class PropertyType(str, enum.Enum):
    HOUSE = "house"
    APARTMENT = "apartment"
    CONDO = "condo"
    LAND = "land"
    COMMERCIAL = "commercial"


class PropertyStatus(str, enum.Enum):
    AVAILABLE = "available"
    PENDING = "pending"
    SOLD = "sold"
    RENTED = "rented"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [item.value for item in enum_cls]


property_likes = Table(
    "property_likes",
    Base.metadata,
    Column("property_id", String(36), ForeignKey("properties.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class Property(IdentifierMixin, TimestampMixin, Base):
    """A listing offered for sale or rent by its owner."""

    __tablename__ = "properties"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[PropertyType] = mapped_column(
        SAEnum(PropertyType, name="property_type", values_callable=_enum_values), nullable=False
    )
    status: Mapped[PropertyStatus] = mapped_column(
        SAEnum(PropertyStatus, name="property_status", values_callable=_enum_values),
        nullable=False,
        default=PropertyStatus.AVAILABLE,
    )
    price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    address: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    state: Mapped[str] = mapped_column(String(128), nullable=False)
    zip_code: Mapped[str] = mapped_column(String(16), nullable=False)
    latitude: Mapped[float | None] = mapped_column(Float)
    longitude: Mapped[float | None] = mapped_column(Float)

    bedrooms: Mapped[int] = mapped_column(Integer, nullable=False)
    bathrooms: Mapped[int] = mapped_column(Integer, nullable=False)
    area: Mapped[float] = mapped_column(Float, nullable=False)
    parking: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    furnished: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    amenities: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    images: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    owner_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    owner = relationship("User", back_populates="properties")
    liked_by = relationship("User", secondary=property_likes, lazy="selectin")
    transactions = relationship("Transaction", back_populates="property")

    @property
    def like_count(self) -> int:
        return len(self.liked_by)


__all__ = ["Property", "PropertyStatus", "PropertyType", "property_likes"]
