"""Configuration management for the marketplace API."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


_CONFIG_DIR = Path(__file__).resolve().parents[2] / "configs"


def _development_signing_key() -> str:
    """PEM key checked in for local runs; deployments set ``JWT_PRIVATE_KEY``."""
    key_path = _CONFIG_DIR / "dev-jwt.pem"
    try:
        return key_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise RuntimeError(f"No JWT_PRIVATE_KEY configured and {key_path} is missing") from exc


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    app_name: str = Field(default="Realty Marketplace")
    version: str = Field(default="0.1.0")
    docs_url: str | None = Field(default="/docs")
    redoc_url: str | None = Field(default="/redoc")
    openapi_url: str = Field(default="/openapi.json")

    database_url: str = Field(default="sqlite+pysqlite:///./realty.db")

    aws_region: str = Field(default="us-east-1")
    s3_endpoint_url: str | None = Field(default=None)
    audit_log_bucket: str = Field(default="realty-audit-logs")
    audit_log_prefix: str = Field(default="audit/records")
    audit_log_sample_rate: float = Field(default=1.0)

    listing_image_bucket: str = Field(default="realty-listing-images")
    listing_image_prefix: str = Field(default="listings")
    listing_image_base_url: str | None = Field(default=None)
    listing_image_max_bytes: int = Field(default=5 * 1024 * 1024)

    enable_metrics: bool = Field(default=True)
    enable_tracing: bool = Field(default=True)
    otel_exporter_endpoint: str | None = Field(default=None)

    jwt_algorithm: str = Field(default="RS256")
    jwt_private_key: str = Field(default_factory=_development_signing_key)
    access_token_expire_minutes: int = Field(default=60 * 24)
    refresh_token_expire_days: int = Field(default=7)

    payment_api_base_url: str = Field(default="https://api.stripe.com")
    payment_api_key: str = Field(default="sk_test_placeholder")
    payment_currency: str = Field(default="usd")
    payment_timeout_seconds: float = Field(default=10.0)
    payment_max_attempts: int = Field(default=3)
    payment_backoff_seconds: float = Field(default=0.5)


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()


__all__ = ["Settings", "get_settings"]
