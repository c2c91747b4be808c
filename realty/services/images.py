"""Object storage for listing images."""
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import boto3
from botocore.exceptions import ClientError  # type: ignore[import-untyped]

from realty.core.config import Settings, get_settings
from realty.services.errors import InfrastructureError, InvalidInputError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
}


class ListingImageStore:
    """Writes validated listing images to S3 and returns their URL."""

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        s3_client_factory: Callable[[], Any] | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._s3_client_factory = s3_client_factory or self._default_s3_client
        self._s3_client: Any | None = None
        self._bucket_ready = False

    def _default_s3_client(self) -> Any:
        return boto3.client(
            "s3",
            region_name=self._settings.aws_region,
            endpoint_url=self._settings.s3_endpoint_url,
        )

    def _get_s3_client(self) -> Any:
        if self._s3_client is None:
            self._s3_client = self._s3_client_factory()
        return self._s3_client

    def _ensure_bucket(self, client: Any) -> None:
        if self._bucket_ready:
            return
        bucket = self._settings.listing_image_bucket
        try:
            client.head_bucket(Bucket=bucket)
        except ClientError:
            client.create_bucket(Bucket=bucket)
        self._bucket_ready = True

    def check_size(self, size: int) -> None:
        limit = self._settings.listing_image_max_bytes
        if size > limit:
            raise InvalidInputError(f"Image exceeds the {limit} byte limit")

    def validate(self, *, body: bytes, content_type: str | None) -> str:
        """Return the file extension for an acceptable image, else raise."""
        if not body:
            raise InvalidInputError("Uploaded image is empty")
        self.check_size(len(body))
        extension = ALLOWED_IMAGE_TYPES.get((content_type or "").split(";")[0].strip().lower())
        if extension is None:
            raise InvalidInputError("Only .png, .jpg and .jpeg images are allowed")
        return extension

    def store(self, *, property_id: str, body: bytes, content_type: str | None) -> str:
        extension = self.validate(body=body, content_type=content_type)
        key = (
            f"{self._settings.listing_image_prefix.rstrip('/')}/{property_id}/"
            f"{datetime.now(timezone.utc):%Y%m%d}-{uuid4().hex}.{extension}"
        )
        bucket = self._settings.listing_image_bucket
        try:
            client = self._get_s3_client()
            self._ensure_bucket(client)
            client.put_object(
                Bucket=bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
                Metadata={"property_id": property_id},
            )
        except ClientError as exc:
            logger.error("listing image upload failed", extra={"property_id": property_id, "error": str(exc)})
            raise InfrastructureError("Image storage is unavailable") from exc

        base_url = self._settings.listing_image_base_url
        url = f"{base_url.rstrip('/')}/{key}" if base_url else f"s3://{bucket}/{key}"
        logger.info("stored listing image", extra={"property_id": property_id, "location": url})
        return url


__all__ = ["ALLOWED_IMAGE_TYPES", "ListingImageStore"]
