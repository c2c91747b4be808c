"""Schemas for property listings."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from realty.models.property import Property, PropertyStatus, PropertyType
from realty.schemas.user import UserSummary


class Coordinates(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class PropertyLocation(BaseModel):
    address: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=128)
    state: str = Field(..., min_length=1, max_length=128)
    zip_code: str = Field(..., min_length=1, max_length=16)
    coordinates: Coordinates | None = None


class PropertyFeatures(BaseModel):
    bedrooms: int = Field(..., ge=0)
    bathrooms: int = Field(..., ge=0)
    area: float = Field(..., gt=0)
    parking: bool = False
    furnished: bool = False


class PropertyCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    type: PropertyType
    status: PropertyStatus | None = None
    price: Decimal = Field(..., gt=0)
    location: PropertyLocation
    features: PropertyFeatures
    amenities: list[str] = Field(default_factory=list)
    images: list[str] = Field(default_factory=list)

    def to_columns(self) -> dict[str, Any]:
        return _flatten(self.model_dump(exclude_unset=False))


class PropertyUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, min_length=1)
    type: PropertyType | None = None
    status: PropertyStatus | None = None
    price: Decimal | None = Field(default=None, gt=0)
    location: PropertyLocation | None = None
    features: PropertyFeatures | None = None
    amenities: list[str] | None = None
    images: list[str] | None = None

    def to_columns(self) -> dict[str, Any]:
        data = self.model_dump(exclude_unset=True)
        return {key: value for key, value in _flatten(data).items() if value is not None or key in _NULLABLE}


_NULLABLE = {"latitude", "longitude"}


def _flatten(data: dict[str, Any]) -> dict[str, Any]:
    columns = {key: value for key, value in data.items() if key not in {"location", "features"}}
    location = data.get("location")
    if location:
        coordinates = location.get("coordinates") or {}
        columns.update(
            address=location["address"],
            city=location["city"],
            state=location["state"],
            zip_code=location["zip_code"],
            latitude=coordinates.get("lat"),
            longitude=coordinates.get("lng"),
        )
    features = data.get("features")
    if features:
        columns.update(features)
    return columns


class PropertyRead(BaseModel):
    id: str
    title: str
    description: str
    type: PropertyType
    status: PropertyStatus
    price: Decimal
    location: PropertyLocation
    features: PropertyFeatures
    amenities: list[str]
    images: list[str]
    owner: UserSummary | None
    views: int
    likes: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, listing: Property) -> "PropertyRead":
        coordinates = None
        if listing.latitude is not None and listing.longitude is not None:
            coordinates = Coordinates(lat=listing.latitude, lng=listing.longitude)
        return cls(
            id=listing.id,
            title=listing.title,
            description=listing.description,
            type=listing.type,
            status=listing.status,
            price=Decimal(listing.price),
            location=PropertyLocation(
                address=listing.address,
                city=listing.city,
                state=listing.state,
                zip_code=listing.zip_code,
                coordinates=coordinates,
            ),
            features=PropertyFeatures(
                bedrooms=listing.bedrooms,
                bathrooms=listing.bathrooms,
                area=listing.area,
                parking=listing.parking,
                furnished=listing.furnished,
            ),
            amenities=list(listing.amenities or []),
            images=list(listing.images or []),
            owner=UserSummary.model_validate(listing.owner) if listing.owner is not None else None,
            views=listing.views,
            likes=listing.like_count,
            created_at=listing.created_at,
            updated_at=listing.updated_at,
        )


class PropertyPage(BaseModel):
    properties: list[PropertyRead]
    total_pages: int
    current_page: int
    total: int


class LikeToggleResponse(BaseModel):
    liked: bool
    likes: int


__all__ = [
    "Coordinates",
    "LikeToggleResponse",
    "PropertyCreate",
    "PropertyFeatures",
    "PropertyLocation",
    "PropertyPage",
    "PropertyRead",
    "PropertyUpdate",
]
