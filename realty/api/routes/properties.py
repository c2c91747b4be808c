"""Property listing routes."""
from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session

from realty.api.deps import get_db_session, get_image_store
from realty.api.routes.auth import AuthenticatedUser, get_current_user, require_role
from realty.models import PropertyType, UserRole
from realty.schemas.property import (
    LikeToggleResponse,
    PropertyCreate,
    PropertyPage,
    PropertyRead,
    PropertyUpdate,
)
from realty.services.images import ListingImageStore
from realty.services.listings import MAX_PAGE_SIZE, ListingFilters, ListingStore, parse_status

router = APIRouter(prefix="/properties")


async def _image_body(request: Request, images: ListingImageStore = Depends(get_image_store)) -> bytes:
    """Read the upload, refusing it as soon as it is known to be too large."""
    declared = request.headers.get("content-length", "")
    if declared.isdigit():
        images.check_size(int(declared))
    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        images.check_size(len(body))
    return bytes(body)


@router.post("", response_model=PropertyRead, status_code=status.HTTP_201_CREATED)
def create_property(
    payload: PropertyCreate,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role(UserRole.SELLER, UserRole.ADMIN)),
) -> PropertyRead:
    listing = ListingStore(session).create(owner_id=user.id, data=payload.to_columns())
    return PropertyRead.from_model(listing)


@router.get("", response_model=PropertyPage, summary="Search listings")
def list_properties(
    session: Session = Depends(get_db_session),
    type: PropertyType | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    min_price: Decimal | None = Query(default=None, ge=0),
    max_price: Decimal | None = Query(default=None, ge=0),
    city: str | None = None,
    state: str | None = None,
    bedrooms: int | None = Query(default=None, ge=0),
    bathrooms: int | None = Query(default=None, ge=0),
    search: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=MAX_PAGE_SIZE),
) -> PropertyPage:
    filters = ListingFilters(
        type=type,
        status=parse_status(status_filter) if status_filter else None,
        min_price=min_price,
        max_price=max_price,
        city=city,
        state=state,
        bedrooms=bedrooms,
        bathrooms=bathrooms,
        search=search,
    )
    result = ListingStore(session).search(filters, page=page, limit=limit)
    return PropertyPage(
        properties=[PropertyRead.from_model(listing) for listing in result.properties],
        total_pages=result.total_pages,
        current_page=result.page,
        total=result.total,
    )


@router.get("/{property_id}", response_model=PropertyRead)
def get_property(property_id: str, session: Session = Depends(get_db_session)) -> PropertyRead:
    return PropertyRead.from_model(ListingStore(session).record_view(property_id))


@router.put("/{property_id}", response_model=PropertyRead)
def update_property(
    property_id: str,
    payload: PropertyUpdate,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(get_current_user),
) -> PropertyRead:
    listing = ListingStore(session).update(
        property_id, actor_id=user.id, actor_role=user.role, data=payload.to_columns()
    )
    return PropertyRead.from_model(listing)


@router.delete("/{property_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_property(
    property_id: str,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(get_current_user),
) -> Response:
    ListingStore(session).delete(property_id, actor_id=user.id, actor_role=user.role)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{property_id}/like", response_model=LikeToggleResponse)
def toggle_like(
    property_id: str,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(get_current_user),
) -> LikeToggleResponse:
    liked, likes = ListingStore(session).toggle_like(property_id, user_id=user.id)
    return LikeToggleResponse(liked=liked, likes=likes)


@router.post(
    "/{property_id}/images",
    response_model=PropertyRead,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a listing image as the raw request body",
)
def upload_image(
    property_id: str,
    request: Request,
    body: bytes = Depends(_image_body),
    session: Session = Depends(get_db_session),
    images: ListingImageStore = Depends(get_image_store),
    user: AuthenticatedUser = Depends(get_current_user),
) -> PropertyRead:
    store = ListingStore(session)
    store.get_editable(property_id, actor_id=user.id, actor_role=user.role)
    url = images.store(
        property_id=property_id,
        body=body,
        content_type=request.headers.get("content-type"),
    )
    listing = store.add_image(property_id, actor_id=user.id, actor_role=user.role, url=url)
    return PropertyRead.from_model(listing)


__all__ = ["router"]
