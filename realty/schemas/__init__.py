"""Pydantic schemas package."""

from .property import (
    Coordinates,
    LikeToggleResponse,
    PropertyCreate,
    PropertyFeatures,
    PropertyLocation,
    PropertyPage,
    PropertyRead,
    PropertyUpdate,
)
from .transaction import (
    ContractDetails,
    TransactionComplete,
    TransactionCreate,
    TransactionOpened,
    TransactionRead,
    TransactionTransition,
)
from .user import LoginRequest, ProfileUpdate, RefreshRequest, RegisterRequest, TokenResponse, UserRead, UserSummary

__all__ = [
    "ContractDetails",
    "Coordinates",
    "LikeToggleResponse",
    "LoginRequest",
    "ProfileUpdate",
    "PropertyCreate",
    "PropertyFeatures",
    "PropertyLocation",
    "PropertyPage",
    "PropertyRead",
    "PropertyUpdate",
    "RefreshRequest",
    "RegisterRequest",
    "TokenResponse",
    "TransactionComplete",
    "TransactionCreate",
    "TransactionOpened",
    "TransactionRead",
    "TransactionTransition",
    "UserRead",
    "UserSummary",
]
