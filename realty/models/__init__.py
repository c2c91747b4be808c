"""ORM models package."""
from .audit_log import AuditLog
from .base import Base, IdentifierMixin, TimestampMixin
from .property import Property, PropertyStatus, PropertyType, property_likes
from .transaction import COMMISSION_RATE, Transaction, TransactionStatus, TransactionType, compute_commission
from .user import User, UserRole

__all__ = [
    "AuditLog",
    "Base",
    "COMMISSION_RATE",
    "IdentifierMixin",
    "Property",
    "PropertyStatus",
    "PropertyType",
    "TimestampMixin",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    "User",
    "UserRole",
    "compute_commission",
    "property_likes",
]
