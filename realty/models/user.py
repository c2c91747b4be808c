"""User account ORM model."""
from __future__ import annotations

import enum

from sqlalchemy import Enum as SAEnum
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from realty.models.base import Base, IdentifierMixin, TimestampMixin


class UserRole(str, enum.Enum):
    BUYER = "buyer"
    SELLER = "seller"
    ADMIN = "admin"


class User(IdentifierMixin, TimestampMixin, Base):
    """A marketplace account; ``role`` drives authorization checks."""

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        SAEnum(UserRole, name="user_role", values_callable=lambda e: [item.value for item in e]),
        nullable=False,
        default=UserRole.BUYER,
    )
    phone_number: Mapped[str | None] = mapped_column(String(32))
    profile_image: Mapped[str] = mapped_column(String(1024), nullable=False, default="")

    properties = relationship("Property", back_populates="owner")


__all__ = ["User", "UserRole"]
