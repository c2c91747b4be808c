"""Listing store: property CRUD, search, views and likes."""
from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from realty.models import Property, PropertyStatus, PropertyType, User, UserRole
from realty.services.errors import ConflictError, ForbiddenError, InvalidInputError, NotFoundError

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

_EDITABLE_FIELDS = {
    "title",
    "description",
    "type",
    "status",
    "price",
    "address",
    "city",
    "state",
    "zip_code",
    "latitude",
    "longitude",
    "bedrooms",
    "bathrooms",
    "area",
    "parking",
    "furnished",
    "amenities",
    "images",
}


@dataclass(slots=True, frozen=True)
class ListingFilters:
    """Search criteria accepted by :meth:`ListingStore.search`."""

    type: PropertyType | None = None
    status: PropertyStatus | None = None
    min_price: Decimal | None = None
    max_price: Decimal | None = None
    city: str | None = None
    state: str | None = None
    bedrooms: int | None = None
    bathrooms: int | None = None
    search: str | None = None


@dataclass(slots=True, frozen=True)
class ListingPage:
    properties: list[Property]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def parse_status(value: str | PropertyStatus) -> PropertyStatus:
    """Return the canonical listing status, rejecting anything else verbatim."""
    if isinstance(value, PropertyStatus):
        return value
    try:
        return PropertyStatus(value)
    except ValueError as exc:
        allowed = ", ".join(item.value for item in PropertyStatus)
        raise InvalidInputError(f"Unknown listing status '{value}'. Expected one of: {allowed}") from exc


class ListingStore:
    """Reads and writes property listings within a session."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def find_by_id(self, property_id: str) -> Property | None:
        return self._session.get(Property, property_id)

    def get(self, property_id: str) -> Property:
        listing = self.find_by_id(property_id)
        if listing is None:
            raise NotFoundError("Property not found")
        return listing

    def set_status(self, property_id: str, status: str | PropertyStatus) -> Property | None:
        """Stage a status change; the caller owns the commit.

        Returns ``None`` when the listing no longer exists.
        """
        canonical = parse_status(status)
        listing = self.find_by_id(property_id)
        if listing is None:
            return None
        listing.status = canonical
        self._session.flush()
        return listing

    def create(self, *, owner_id: str, data: Mapping[str, Any]) -> Property:
        fields = self._clean(data)
        if fields.get("status") is None:
            fields["status"] = PropertyStatus.AVAILABLE
        listing = Property(owner_id=owner_id, **fields)
        self._session.add(listing)
        self._session.commit()
        self._session.refresh(listing)
        logger.info("listing created", extra={"property_id": listing.id, "owner_id": owner_id})
        return listing

    def search(self, filters: ListingFilters, *, page: int = 1, limit: int = 10) -> ListingPage:
        if page < 1:
            raise InvalidInputError("page must be at least 1")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise InvalidInputError(f"limit must be between 1 and {MAX_PAGE_SIZE}")

        statement = select(Property)
        if filters.type is not None:
            statement = statement.where(Property.type == filters.type)
        if filters.status is not None:
            statement = statement.where(Property.status == filters.status)
        if filters.min_price is not None:
            statement = statement.where(Property.price >= filters.min_price)
        if filters.max_price is not None:
            statement = statement.where(Property.price <= filters.max_price)
        if filters.city:
            statement = statement.where(Property.city.ilike(f"%{filters.city}%"))
        if filters.state:
            statement = statement.where(Property.state.ilike(f"%{filters.state}%"))
        if filters.bedrooms is not None:
            statement = statement.where(Property.bedrooms >= filters.bedrooms)
        if filters.bathrooms is not None:
            statement = statement.where(Property.bathrooms >= filters.bathrooms)
        if filters.search:
            pattern = f"%{filters.search}%"
            statement = statement.where(
                or_(
                    Property.title.ilike(pattern),
                    Property.description.ilike(pattern),
                    Property.city.ilike(pattern),
                    Property.state.ilike(pattern),
                )
            )

        total = self._session.scalar(select(func.count()).select_from(statement.subquery())) or 0
        results = self._session.scalars(
            statement.order_by(Property.created_at.desc(), Property.id)
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return ListingPage(properties=list(results), total=total, page=page, limit=limit)

    def record_view(self, property_id: str) -> Property:
        """Return the listing after atomically incrementing its view counter."""
        result = self._session.execute(
            update(Property)
            .where(Property.id == property_id)
            .values(views=Property.views + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self._session.rollback()
            raise NotFoundError("Property not found")
        self._session.commit()
        listing = self.get(property_id)
        self._session.refresh(listing)
        return listing

    def update(
        self, property_id: str, *, actor_id: str, actor_role: UserRole, data: Mapping[str, Any]
    ) -> Property:
        listing = self.get_editable(property_id, actor_id=actor_id, actor_role=actor_role)
        for field_name, value in self._clean(data).items():
            setattr(listing, field_name, value)
        self._session.commit()
        self._session.refresh(listing)
        return listing

    def delete(self, property_id: str, *, actor_id: str, actor_role: UserRole) -> None:
        listing = self.get_editable(property_id, actor_id=actor_id, actor_role=actor_role)
        self._session.delete(listing)
        try:
            self._session.commit()
        except IntegrityError as exc:
            self._session.rollback()
            raise ConflictError("Property has transactions and cannot be deleted") from exc
        logger.info("listing deleted", extra={"property_id": property_id, "actor_id": actor_id})

    def toggle_like(self, property_id: str, *, user_id: str) -> tuple[bool, int]:
        """Add or remove ``user_id`` from the listing's likes.

        Returns whether the listing is now liked and the resulting like count.
        """
        listing = self.get(property_id)
        user = self._session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")

        if user in listing.liked_by:
            listing.liked_by.remove(user)
            liked = False
        else:
            listing.liked_by.append(user)
            liked = True
        self._session.commit()
        self._session.refresh(listing)
        return liked, listing.like_count

    def add_image(
        self, property_id: str, *, actor_id: str, actor_role: UserRole, url: str
    ) -> Property:
        listing = self.get_editable(property_id, actor_id=actor_id, actor_role=actor_role)
        listing.images = [*(listing.images or []), url]
        self._session.commit()
        self._session.refresh(listing)
        return listing

    def get_editable(self, property_id: str, *, actor_id: str, actor_role: UserRole) -> Property:
        listing = self.get(property_id)
        if listing.owner_id != actor_id and actor_role != UserRole.ADMIN:
            raise ForbiddenError("Not authorized to modify this property")
        return listing

    @staticmethod
    def _clean(data: Mapping[str, Any]) -> dict[str, Any]:
        unknown = set(data) - _EDITABLE_FIELDS
        if unknown:
            raise InvalidInputError(f"Unsupported property fields: {', '.join(sorted(unknown))}")
        fields = dict(data)
        if fields.get("status") is not None:
            fields["status"] = parse_status(fields["status"])
        return fields


__all__ = [
    "ListingFilters",
    "ListingPage",
    "ListingStore",
    "MAX_PAGE_SIZE",
    "parse_status",
]
