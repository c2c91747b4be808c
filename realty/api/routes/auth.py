"""Registration, login and JWT issuance."""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from threading import Lock
from typing import Any, Literal
from uuid import uuid4

from cryptography.hazmat.primitives import serialization
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt  # type: ignore[import-untyped]
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from realty.api.deps import get_db_session
from realty.core.config import Settings, get_settings
from realty.models import User, UserRole
from realty.schemas.user import (
    LoginRequest,
    ProfileUpdate,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UserRead,
)
from realty.services.accounts import (
    InvalidCredentialsError,
    Registration,
    authenticate,
    get_user,
    register_user,
    update_profile,
)

router = APIRouter()
security_scheme = HTTPBearer(auto_error=False)


class TokenPayload(BaseModel):
    sub: str
    role: UserRole
    email: str
    type: Literal["access", "refresh"]
    iat: datetime
    exp: datetime
    jti: str


@dataclass(frozen=True)
class AuthenticatedUser:
    id: str
    email: str
    role: UserRole
    token_id: str


class RefreshTokenStore:
    """In-memory store tracking active and blacklisted refresh tokens."""

    def __init__(self) -> None:
        self._active: dict[str, str] = {}
        self._blacklist: set[str] = set()
        self._lock = Lock()

    def mark_active(self, subject: str, token_id: str) -> None:
        with self._lock:
            self._active[subject] = token_id

    def is_active(self, subject: str, token_id: str) -> bool:
        with self._lock:
            if token_id in self._blacklist:
                return False
            return self._active.get(subject) == token_id

    def blacklist(self, token_id: str) -> None:
        with self._lock:
            self._blacklist.add(token_id)

    def reset(self) -> None:
        with self._lock:
            self._active.clear()
            self._blacklist.clear()


refresh_token_store = RefreshTokenStore()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _load_signing_key(settings: Settings) -> Any:
    if not settings.jwt_algorithm.startswith(("RS", "ES", "PS")):
        return settings.jwt_private_key
    try:
        return serialization.load_pem_private_key(
            settings.jwt_private_key.encode("utf-8"),
            password=None,
        )
    except ValueError as exc:  # pragma: no cover - configuration issue
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Invalid JWT signing key",
        ) from exc


def _verification_key(settings: Settings) -> Any:
    key = _load_signing_key(settings)
    return key.public_key() if hasattr(key, "public_key") else key


def _create_token(
    *,
    user: User,
    settings: Settings,
    expires_delta: timedelta,
    token_type: Literal["access", "refresh"],
    signing_key: Any,
) -> tuple[str, str]:
    now = datetime.now(UTC)
    token_id = uuid4().hex
    payload = {
        "sub": user.id,
        "role": user.role.value,
        "email": user.email,
        "type": token_type,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_delta).timestamp()),
        "jti": token_id,
    }
    return jwt.encode(payload, signing_key, algorithm=settings.jwt_algorithm), token_id


def issue_tokens(user: User, settings: Settings | None = None) -> TokenResponse:
    """Issue an access/refresh pair and register the refresh token as active."""

    settings = settings or get_settings()
    signing_key = _load_signing_key(settings)
    access_token, _ = _create_token(
        user=user,
        settings=settings,
        expires_delta=timedelta(minutes=settings.access_token_expire_minutes),
        token_type="access",
        signing_key=signing_key,
    )
    refresh_token, refresh_id = _create_token(
        user=user,
        settings=settings,
        expires_delta=timedelta(days=settings.refresh_token_expire_days),
        token_type="refresh",
        signing_key=signing_key,
    )
    refresh_token_store.mark_active(user.id, refresh_id)
    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=settings.access_token_expire_minutes * 60,
        user=UserRead.model_validate(user),
    )


def _decode_token(*, token: str, settings: Settings) -> TokenPayload:
    try:
        payload = jwt.decode(token, _verification_key(settings), algorithms=[settings.jwt_algorithm])
        return TokenPayload(**payload)
    except (JWTError, ValidationError) as exc:
        raise _unauthorized("Token is invalid") from exc


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security_scheme),
) -> AuthenticatedUser:
    if credentials is None:
        raise _unauthorized("No authentication token, access denied")
    payload = _decode_token(token=credentials.credentials, settings=get_settings())
    if payload.type != "access":
        raise _unauthorized("Invalid token type")

    user = AuthenticatedUser(id=payload.sub, email=payload.email, role=payload.role, token_id=payload.jti)
    request.state.actor_id = user.id
    request.state.actor_role = user.role.value
    return user


def require_role(*roles: UserRole) -> Callable[..., AuthenticatedUser]:
    allowed_roles: set[UserRole] = set(roles)

    def dependency(user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
        if user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to perform this action",
            )
        return user

    return dependency


@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an account and issue tokens",
)
def register(payload: RegisterRequest, session: Session = Depends(get_db_session)) -> TokenResponse:
    user = register_user(
        session,
        Registration(
            name=payload.name,
            email=payload.email,
            password=payload.password,
            role=payload.role,
            phone_number=payload.phone_number,
        ),
    )
    return issue_tokens(user)


@router.post("/login", response_model=TokenResponse, summary="Issue JWT access tokens")
def login(payload: LoginRequest, session: Session = Depends(get_db_session)) -> TokenResponse:
    try:
        user = authenticate(session, email=payload.email, password=payload.password)
    except InvalidCredentialsError as exc:
        raise _unauthorized(str(exc)) from exc
    return issue_tokens(user)


@router.post("/refresh", response_model=TokenResponse, summary="Rotate JWT refresh tokens")
def refresh_token(payload: RefreshRequest, session: Session = Depends(get_db_session)) -> TokenResponse:
    token = _decode_token(token=payload.refresh_token, settings=get_settings())
    if token.type != "refresh":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid token type")
    if not refresh_token_store.is_active(token.sub, token.jti):
        raise _unauthorized("Refresh token revoked")

    refresh_token_store.blacklist(token.jti)
    session_user = session.get(User, token.sub)
    if session_user is None:
        raise _unauthorized("Account no longer exists")
    return issue_tokens(session_user)


@router.get("/me", response_model=UserRead, summary="Current account profile")
def me(
    user: AuthenticatedUser = Depends(get_current_user),
    session: Session = Depends(get_db_session),
) -> UserRead:
    return UserRead.model_validate(get_user(session, user.id))


@router.put("/profile", response_model=UserRead, summary="Update the current account profile")
def update_my_profile(
    payload: ProfileUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    session: Session = Depends(get_db_session),
) -> UserRead:
    updated = update_profile(
        session,
        user.id,
        name=payload.name,
        phone_number=payload.phone_number,
        profile_image=payload.profile_image,
    )
    return UserRead.model_validate(updated)


__all__ = [
    "AuthenticatedUser",
    "RefreshTokenStore",
    "get_current_user",
    "issue_tokens",
    "refresh_token_store",
    "require_role",
    "router",
]
