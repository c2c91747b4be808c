"""Schemas for accounts and authentication."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from realty.models.user import UserRole


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., max_length=320)
    password: str = Field(..., min_length=6, max_length=128)
    role: UserRole = Field(default=UserRole.BUYER)
    phone_number: str | None = Field(default=None, max_length=32)


class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class ProfileUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=255)
    phone_number: str | None = Field(default=None, max_length=32)
    profile_image: str | None = Field(default=None, max_length=1024)


class UserSummary(BaseModel):
    """Party details embedded in listings and transactions."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str


class UserRead(UserSummary):
    role: UserRole
    phone_number: str | None
    profile_image: str
    created_at: datetime


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserRead


__all__ = [
    "LoginRequest",
    "ProfileUpdate",
    "RefreshRequest",
    "RegisterRequest",
    "TokenResponse",
    "UserRead",
    "UserSummary",
]
