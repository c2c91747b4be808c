"""Account store: registration, credential checks and profile updates."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass

import bcrypt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from realty.models import User, UserRole
from realty.services.errors import ConflictError, ForbiddenError, InvalidInputError, NotFoundError

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class InvalidCredentialsError(RuntimeError):
    """Raised when an email/password pair does not match an account."""


@dataclass(slots=True, frozen=True)
class Registration:
    name: str
    email: str
    password: str
    role: UserRole = UserRole.BUYER
    phone_number: str | None = None


def hash_password(raw_password: str) -> str:
    return bcrypt.hashpw(raw_password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(raw_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(raw_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:  # pragma: no cover - invalid hash format
        return False


def normalize_email(email: str) -> str:
    normalized = email.strip().lower()
    if not _EMAIL_PATTERN.match(normalized):
        raise InvalidInputError("Please provide a valid email address")
    return normalized


def register_user(session: Session, registration: Registration, *, allow_admin: bool = False) -> User:
    """Create a new account; duplicate emails raise :class:`ConflictError`.

    Admin accounts are only created by operator tooling that passes
    ``allow_admin=True``.
    """

    if registration.role == UserRole.ADMIN and not allow_admin:
        raise ForbiddenError("Admin accounts cannot be self-registered")
    email = normalize_email(registration.email)
    if len(registration.password) < MIN_PASSWORD_LENGTH:
        raise InvalidInputError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    name = registration.name.strip()
    if not name:
        raise InvalidInputError("Name is required")

    if session.scalar(select(User.id).where(User.email == email)) is not None:
        raise ConflictError("This email is already registered")

    user = User(
        name=name,
        email=email,
        hashed_password=hash_password(registration.password),
        role=registration.role,
        phone_number=registration.phone_number,
    )
    session.add(user)
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise ConflictError("This email is already registered") from exc
    session.refresh(user)
    logger.info("account registered", extra={"user_id": user.id, "role": user.role.value})
    return user


def authenticate(session: Session, *, email: str, password: str) -> User:
    try:
        normalized = normalize_email(email)
    except InvalidInputError as exc:
        raise InvalidCredentialsError("Invalid email or password") from exc
    user = session.scalar(select(User).where(User.email == normalized))
    if user is None or not verify_password(password, user.hashed_password):
        raise InvalidCredentialsError("Invalid email or password")
    return user


def get_user(session: Session, user_id: str) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def update_profile(
    session: Session,
    user_id: str,
    *,
    name: str | None = None,
    phone_number: str | None = None,
    profile_image: str | None = None,
) -> User:
    """Apply a partial profile update; ``None`` leaves a field untouched."""

    user = get_user(session, user_id)
    if name is not None:
        if not name.strip():
            raise InvalidInputError("Name cannot be blank")
        user.name = name.strip()
    if phone_number is not None:
        user.phone_number = phone_number.strip() or None
    if profile_image is not None:
        user.profile_image = profile_image
    session.commit()
    session.refresh(user)
    return user


__all__ = [
    "InvalidCredentialsError",
    "MIN_PASSWORD_LENGTH",
    "Registration",
    "authenticate",
    "get_user",
    "hash_password",
    "normalize_email",
    "register_user",
    "update_profile",
    "verify_password",
]
