"""Migrate the schema to head and seed demo accounts plus one listing."""
from __future__ import annotations

import logging
from decimal import Decimal
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import select
from sqlalchemy.orm import Session

from realty.core.logging import configure_logging
from realty.db.session import session_scope
from realty.models import Property, PropertyType, User, UserRole
from realty.services.accounts import Registration, register_user
from realty.services.listings import ListingStore

logger = logging.getLogger("realty.seed")

PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEMO_PASSWORD = "changeme"

SEED_USERS = [
    ("Demo Admin", "admin@demo.local", UserRole.ADMIN),
    ("Demo Seller", "seller@demo.local", UserRole.SELLER),
    ("Demo Buyer", "buyer@demo.local", UserRole.BUYER),
]


def seed(session: Session) -> None:
    """Seed demo accounts and a listing owned by the demo seller; safe to re-run."""

    accounts: dict[UserRole, User] = {}
    for name, email, role in SEED_USERS:
        user = session.scalar(select(User).where(User.email == email))
        if user is None:
            user = register_user(
                session,
                Registration(name=name, email=email, password=DEMO_PASSWORD, role=role),
                allow_admin=True,
            )
            logger.info("Added user %s", email)
        else:
            logger.info("User %s already exists", email)
        accounts[role] = user

    seller = accounts[UserRole.SELLER]
    if session.scalar(select(Property.id).where(Property.owner_id == seller.id)) is not None:
        logger.info("Seller %s already has listings", seller.email)
        return

    listing = ListingStore(session).create(
        owner_id=seller.id,
        data={
            "title": "Sunny two-bedroom near the park",
            "description": "Renovated apartment with balcony and underground parking.",
            "type": PropertyType.APARTMENT,
            "price": Decimal("250000.00"),
            "address": "12 Elm Street",
            "city": "Springfield",
            "state": "IL",
            "zip_code": "62701",
            "bedrooms": 2,
            "bathrooms": 1,
            "area": 84.5,
            "parking": True,
            "amenities": ["balcony", "elevator"],
        },
    )
    logger.info("Added listing %s", listing.id)


def migrate() -> None:
    config = Config(str(PROJECT_ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(PROJECT_ROOT / "migrations"))
    config.attributes["configure_logging"] = False
    command.upgrade(config, "head")


def main() -> None:
    configure_logging()
    migrate()
    with session_scope() as session:
        seed(session)


if __name__ == "__main__":
    main()
