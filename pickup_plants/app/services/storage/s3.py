import logging
import mimetypes
from pathlib import Path
from typing import Optional
from uuid import uuid4

import boto3

from pickup_plants.app.core.config import Settings
from pickup_plants.app.services.storage.base import StorageProvider

logger = logging.getLogger(__name__)


def get_s3_client(settings: Settings):
    session_kwargs = {}
    if settings.aws_access_key_id and settings.aws_secret_access_key:
        session_kwargs["aws_access_key_id"] = settings.aws_access_key_id
        session_kwargs["aws_secret_access_key"] = settings.aws_secret_access_key
    if settings.aws_session_token:
        session_kwargs["aws_session_token"] = settings.aws_session_token
    return boto3.client(
        "s3",
        region_name=settings.recipe_image_s3_region,
        endpoint_url=settings.recipe_image_s3_endpoint_url,
        **session_kwargs,
    )


class S3StorageProvider(StorageProvider):
    """Stores recipe images in an S3-compatible bucket (e.g. the provider's storage)."""

    def __init__(self, settings: Settings, client=None):
        if not settings.recipe_image_s3_bucket:
            raise RuntimeError("RECIPE_IMAGE_S3_BUCKET is not configured")
        self.bucket = settings.recipe_image_s3_bucket
        self.prefix = settings.recipe_image_s3_prefix.strip("/")
        self.public_base_url = self._public_base_url(settings)
        self.client = client or get_s3_client(settings)

    def _public_base_url(self, settings: Settings) -> str:
        if settings.recipe_image_public_base_url:
            return settings.recipe_image_public_base_url.rstrip("/")
        return f"{settings.supabase_url.rstrip('/')}/storage/v1/object/public/{self.bucket}"

    def build_key(self, filename: str) -> str:
        ext = Path(filename or "").suffix.lstrip(".").lower() or "jpg"
        return f"{self.prefix}/{uuid4().hex}.{ext}"

    def save_image(self, data: bytes, filename: str) -> str:
        key = self.build_key(filename)
        mime, _ = mimetypes.guess_type(key)
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=mime or "image/jpeg")
        except Exception:  # noqa: BLE001
            logger.exception("S3 upload failed for key=%s", key)
            raise
        return f"{self.public_base_url}/{key}"

    def key_for_url(self, url: str) -> Optional[str]:
        prefix = f"{self.public_base_url}/"
        if not url.startswith(prefix):
            return None
        return url[len(prefix) :]

    def delete_image(self, url: str) -> None:
        key = self.key_for_url(url)
        if key is None:
            return
        self.client.delete_object(Bucket=self.bucket, Key=key)
