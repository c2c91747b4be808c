"""Payment gateway client used by the transaction lifecycle."""
from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Protocol
from uuid import uuid4

import httpx

from realty.core.config import Settings, get_settings
from realty.obs import PAYMENT_GATEWAY_FAILURES, traced
from realty.services.errors import PaymentProviderError, PaymentProviderUnavailableError

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


@dataclass(slots=True, frozen=True)
class PaymentIntent:
    """Handle for an in-progress charge plus the browser handshake token."""

    id: str
    client_secret: str


class PaymentGateway(Protocol):
    """Contract the lifecycle manager relies on."""

    def create_intent(
        self, *, amount_minor_units: int, currency: str, metadata: Mapping[str, str]
    ) -> PaymentIntent:
        """Create a payment intent for the amount in minor currency units."""

    def cancel_intent(self, intent_id: str) -> None:
        """Cancel a previously created payment intent."""


class HTTPPaymentGateway:
    """Client for a Stripe-compatible payment-intent REST API.

    Transport failures and 429/5xx responses are retried with exponential
    backoff; any other error response fails immediately.
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        timeout_seconds: float = 10.0,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
        client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout_seconds
        self._max_attempts = max(1, max_attempts)
        self._backoff = backoff_seconds
        self._client = client or httpx.Client()
        self._owns_client = client is None
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "HTTPPaymentGateway":
        settings = settings or get_settings()
        return cls(
            base_url=settings.payment_api_base_url,
            api_key=settings.payment_api_key,
            timeout_seconds=settings.payment_timeout_seconds,
            max_attempts=settings.payment_max_attempts,
            backoff_seconds=settings.payment_backoff_seconds,
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def create_intent(
        self, *, amount_minor_units: int, currency: str, metadata: Mapping[str, str]
    ) -> PaymentIntent:
        if amount_minor_units <= 0:
            raise PaymentProviderError("Payment amount must be positive")

        form = {"amount": str(amount_minor_units), "currency": currency.lower()}
        for key, value in metadata.items():
            form[f"metadata[{key}]"] = str(value)

        payload = self._post(
            "/v1/payment_intents",
            data=form,
            operation="create_intent",
            idempotency_key=uuid4().hex,
        )
        intent_id = payload.get("id")
        client_secret = payload.get("client_secret")
        if not intent_id or not client_secret:
            raise PaymentProviderError("Incomplete payment intent response")
        return PaymentIntent(id=str(intent_id), client_secret=str(client_secret))

    def cancel_intent(self, intent_id: str) -> None:
        self._post(f"/v1/payment_intents/{intent_id}/cancel", data={}, operation="cancel_intent")

    def _post(
        self,
        path: str,
        *,
        data: dict[str, str],
        operation: str,
        idempotency_key: str | None = None,
    ) -> dict:
        headers = {"Authorization": f"Bearer {self._api_key}"}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        with traced(f"payment_gateway.{operation}", **{"payment.operation": operation}):
            for attempt in range(1, self._max_attempts + 1):
                try:
                    response = self._client.post(
                        f"{self._base_url}{path}", data=data, headers=headers, timeout=self._timeout
                    )
                except httpx.TransportError as exc:
                    reason = type(exc).__name__
                else:
                    if response.status_code < 400:
                        try:
                            return response.json()
                        except ValueError as exc:
                            raise PaymentProviderError("Invalid payment provider response") from exc
                    if response.status_code not in _RETRYABLE_STATUS:
                        PAYMENT_GATEWAY_FAILURES.labels(operation=operation).inc()
                        logger.warning(
                            "payment provider rejected request",
                            extra={"operation": operation, "status_code": response.status_code},
                        )
                        raise PaymentProviderError(
                            f"Payment provider rejected {operation} (HTTP {response.status_code})"
                        )
                    reason = f"HTTP {response.status_code}"

                if attempt < self._max_attempts:
                    delay = self._backoff * (2 ** (attempt - 1))
                    logger.info(
                        "retrying payment provider call",
                        extra={"operation": operation, "attempt": attempt, "reason": reason, "delay": delay},
                    )
                    self._sleep(delay)

            PAYMENT_GATEWAY_FAILURES.labels(operation=operation).inc()
            logger.warning(
                "payment provider unavailable",
                extra={"operation": operation, "attempts": self._max_attempts, "reason": reason},
            )
            raise PaymentProviderUnavailableError(
                f"Payment provider unavailable after {self._max_attempts} attempts"
            )


__all__ = ["HTTPPaymentGateway", "PaymentGateway", "PaymentIntent"]
