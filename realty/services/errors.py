"""Service error taxonomy shared by every resource."""
from __future__ import annotations


class ServiceError(RuntimeError):
    """Base class for errors surfaced to API clients.

    ``kind`` is the stable machine-readable identifier rendered in error
    responses; ``status_code`` is the HTTP status used for it.
    """

    kind = "service_error"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(ServiceError):
    """Raised when a referenced listing, account or transaction does not exist."""

    kind = "not_found"
    status_code = 404


class ForbiddenError(ServiceError):
    """Raised when the caller is not allowed to act on the resource."""

    kind = "forbidden"
    status_code = 403


class ConflictError(ServiceError):
    """Raised when the requested change conflicts with the current state."""

    kind = "conflict"
    status_code = 409


class ConcurrentModificationError(ConflictError):
    """Raised when optimistic locking detects a concurrent update."""


class InvalidInputError(ServiceError):
    """Raised when input passes schema validation but is semantically invalid."""

    kind = "validation_error"
    status_code = 422


class PaymentProviderError(ServiceError):
    """Raised when a payment gateway call fails."""

    kind = "provider_error"
    status_code = 502


class PaymentProviderUnavailableError(PaymentProviderError):
    """Raised when gateway retries are exhausted."""

    kind = "provider_unavailable"
    status_code = 503


class InfrastructureError(ServiceError):
    """Raised when the local store cannot be reached or rejects a write."""

    kind = "infrastructure_error"
    status_code = 503


__all__ = [
    "ConcurrentModificationError",
    "ConflictError",
    "ForbiddenError",
    "InfrastructureError",
    "InvalidInputError",
    "NotFoundError",
    "PaymentProviderError",
    "PaymentProviderUnavailableError",
    "ServiceError",
]
