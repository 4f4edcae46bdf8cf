"""Image uploads to Cloudinary through its SDK."""
from __future__ import annotations
import logging
from typing import Dict, Optional

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader

from config import settings

logger = logging.getLogger(__name__)

TRANSFORMATION = [{"width": 800, "height": 800, "crop": "limit"}, {"quality": "auto"}]


class StorageError(Exception):
    pass


def max_upload_bytes() -> int:
    return settings.MAX_UPLOAD_MB * 1024 * 1024


def is_image(content_type: Optional[str]) -> bool:
    return bool(content_type) and content_type.startswith("image/")


def configure() -> None:
    if not (settings.CLOUDINARY_CLOUD_NAME and settings.CLOUDINARY_API_KEY and settings.CLOUDINARY_API_SECRET):
        raise StorageError("Cloudinary credentials are not configured")
    cloudinary.config(
        cloud_name=settings.CLOUDINARY_CLOUD_NAME,
        api_key=settings.CLOUDINARY_API_KEY,
        api_secret=settings.CLOUDINARY_API_SECRET,
        secure=True,
    )


def upload_image(content: bytes, filename: str, content_type: str) -> Dict[str, str]:
    configure()
    try:
        result = cloudinary.uploader.upload(
            content,
            folder=settings.UPLOAD_FOLDER,
            resource_type="image",
            transformation=TRANSFORMATION,
        )
    except cloudinary.exceptions.Error as exc:
        logger.error("Cloudinary upload of %s (%s) failed: %s", filename, content_type, exc)
        raise StorageError(str(exc)) from exc
    return {"url": result["secure_url"], "public_id": result["public_id"]}
