from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from realty.api.deps import get_image_store
from realty.core.config import Settings
from realty.main import app
from realty.models import Property, Transaction, TransactionStatus, TransactionType
from realty.services.images import ListingImageStore

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def _payload(**overrides):
    payload = {
        "title": "Modern townhouse",
        "description": "Three floors, rooftop terrace",
        "type": "house",
        "price": "425000",
        "location": {
            "address": "88 Main Street",
            "city": "Austin",
            "state": "TX",
            "zip_code": "73301",
            "coordinates": {"lat": 30.27, "lng": -97.74},
        },
        "features": {"bedrooms": 3, "bathrooms": 2, "area": 180.5, "parking": True},
        "amenities": ["terrace"],
    }
    payload.update(overrides)
    return payload


def test_seller_creates_listing_with_defaults(client, seller, headers_for) -> None:
    response = client.post("/api/properties", json=_payload(), headers=headers_for(seller))

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "available"
    assert body["views"] == 0
    assert body["likes"] == 0
    assert body["owner"]["id"] == seller.id
    assert body["location"]["coordinates"] == {"lat": 30.27, "lng": -97.74}
    assert body["features"]["furnished"] is False
    assert Decimal(body["price"]) == Decimal("425000")


def test_buyer_cannot_create_listing(client, buyer, headers_for) -> None:
    response = client.post("/api/properties", json=_payload(), headers=headers_for(buyer))

    assert response.status_code == 403
    assert response.json()["kind"] == "forbidden"


def test_create_rejects_unknown_status(client, seller, headers_for) -> None:
    response = client.post("/api/properties", json=_payload(status="off-market"), headers=headers_for(seller))

    assert response.status_code == 422
    assert response.json()["kind"] == "validation_error"


def test_get_increments_views(client, listing) -> None:
    first = client.get(f"/api/properties/{listing.id}")
    second = client.get(f"/api/properties/{listing.id}")

    assert first.json()["views"] == 1
    assert second.json()["views"] == 2


def test_get_unknown_listing_returns_not_found(client) -> None:
    response = client.get("/api/properties/nope")

    assert response.status_code == 404
    assert response.json() == {"kind": "not_found", "detail": "Property not found"}


def test_search_filters_and_paginates(client, db_session, make_listing, seller) -> None:
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    created = [
        make_listing(seller, title="Austin bungalow", city="Austin", state="TX", price=Decimal("300000"), bedrooms=2),
        make_listing(seller, title="Austin mansion", city="Austin", state="TX", price=Decimal("900000"), bedrooms=5),
        make_listing(seller, title="Denver condo", city="Denver", state="CO", price=Decimal("350000"), bedrooms=3),
    ]
    for offset, item in enumerate(created):
        item.created_at = base + timedelta(days=offset)
    db_session.commit()

    by_city = client.get("/api/properties", params={"city": "aus"}).json()
    assert by_city["total"] == 2
    assert [item["title"] for item in by_city["properties"]] == ["Austin mansion", "Austin bungalow"]

    by_price = client.get("/api/properties", params={"min_price": "320000", "max_price": "800000"}).json()
    assert [item["title"] for item in by_price["properties"]] == ["Denver condo"]

    by_bedrooms = client.get("/api/properties", params={"bedrooms": 3}).json()
    assert {item["title"] for item in by_bedrooms["properties"]} == {"Austin mansion", "Denver condo"}

    by_text = client.get("/api/properties", params={"search": "CONDO"}).json()
    assert by_text["total"] == 1

    paged = client.get("/api/properties", params={"page": 2, "limit": 2}).json()
    assert paged["total"] == 3
    assert paged["total_pages"] == 2
    assert paged["current_page"] == 2
    assert [item["title"] for item in paged["properties"]] == ["Austin bungalow"]


def test_search_rejects_unknown_status(client) -> None:
    response = client.get("/api/properties", params={"status": "for-sale"})

    assert response.status_code == 422
    assert response.json()["kind"] == "validation_error"
    assert "for-sale" in response.json()["detail"]


def test_search_by_status(client, db_session, make_listing, seller) -> None:
    make_listing(seller, title="Sold one", status="sold")
    make_listing(seller, title="Open one")

    response = client.get("/api/properties", params={"status": "sold"})

    assert [item["title"] for item in response.json()["properties"]] == ["Sold one"]


def test_owner_updates_listing(client, listing, seller, headers_for) -> None:
    response = client.put(
        f"/api/properties/{listing.id}",
        json={"title": "Renamed", "status": "pending", "features": {"bedrooms": 4, "bathrooms": 2, "area": 120}},
        headers=headers_for(seller),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["title"] == "Renamed"
    assert body["status"] == "pending"
    assert body["features"]["bedrooms"] == 4
    assert body["location"]["city"] == "Madison"


def test_non_owner_cannot_update_or_delete(client, listing, buyer, headers_for) -> None:
    headers = headers_for(buyer)

    updated = client.put(f"/api/properties/{listing.id}", json={"title": "Mine now"}, headers=headers)
    deleted = client.delete(f"/api/properties/{listing.id}", headers=headers)

    assert updated.status_code == 403
    assert deleted.status_code == 403


def test_admin_deletes_listing(client, db_session, listing, admin, headers_for) -> None:
    response = client.delete(f"/api/properties/{listing.id}", headers=headers_for(admin))

    assert response.status_code == 204
    assert db_session.get(Property, listing.id) is None


def test_listing_with_transactions_cannot_be_deleted(client, db_session, listing, seller, buyer, headers_for) -> None:
    db_session.add(
        Transaction(
            property_id=listing.id,
            buyer_id=buyer.id,
            seller_id=seller.id,
            type=TransactionType.SALE,
            amount=Decimal("1000"),
            status=TransactionStatus.PENDING,
        )
    )
    db_session.commit()

    response = client.delete(f"/api/properties/{listing.id}", headers=headers_for(seller))

    assert response.status_code == 409
    assert response.json()["kind"] == "conflict"


def test_like_toggles(client, listing, buyer, outsider, headers_for) -> None:
    first = client.post(f"/api/properties/{listing.id}/like", headers=headers_for(buyer))
    second = client.post(f"/api/properties/{listing.id}/like", headers=headers_for(outsider))
    third = client.post(f"/api/properties/{listing.id}/like", headers=headers_for(buyer))

    assert first.json() == {"liked": True, "likes": 1}
    assert second.json() == {"liked": True, "likes": 2}
    assert third.json() == {"liked": False, "likes": 1}


def test_like_requires_authentication(client, listing) -> None:
    response = client.post(f"/api/properties/{listing.id}/like")

    assert response.status_code == 401


def test_owner_uploads_image(client, audit_s3_client, listing, seller, headers_for) -> None:
    response = client.post(
        f"/api/properties/{listing.id}/images",
        content=PNG_BYTES,
        headers={**headers_for(seller), "Content-Type": "image/png"},
    )

    assert response.status_code == 201
    images = response.json()["images"]
    assert len(images) == 1
    assert images[0].startswith("s3://realty-listing-images/listings/")
    stored = audit_s3_client.buckets["realty-listing-images"]
    assert list(stored.values()) == [PNG_BYTES]


def test_image_upload_rejects_unsupported_type(client, audit_s3_client, listing, seller, headers_for) -> None:
    response = client.post(
        f"/api/properties/{listing.id}/images",
        content=b"GIF89a",
        headers={**headers_for(seller), "Content-Type": "image/gif"},
    )

    assert response.status_code == 422
    assert "realty-listing-images" not in audit_s3_client.buckets


def test_image_upload_requires_ownership(client, listing, buyer, headers_for) -> None:
    response = client.post(
        f"/api/properties/{listing.id}/images",
        content=PNG_BYTES,
        headers={**headers_for(buyer), "Content-Type": "image/png"},
    )

    assert response.status_code == 403


def test_oversized_image_is_refused_before_storage(client, audit_s3_client, listing, seller, headers_for) -> None:
    small_store = ListingImageStore(
        settings=Settings(listing_image_max_bytes=len(PNG_BYTES) - 1, enable_tracing=False),
        s3_client_factory=lambda: audit_s3_client,
    )
    app.dependency_overrides[get_image_store] = lambda: small_store

    response = client.post(
        f"/api/properties/{listing.id}/images",
        content=PNG_BYTES,
        headers={**headers_for(seller), "Content-Type": "image/png"},
    )

    assert response.status_code == 422
    assert response.json()["kind"] == "validation_error"
    assert "byte limit" in response.json()["detail"]
    assert "realty-listing-images" not in audit_s3_client.buckets
    assert client.get(f"/api/properties/{listing.id}").json()["images"] == []
