# app/services/image_service.py

import io
import uuid
import logging
from typing import List, Tuple

from PIL import Image, UnidentifiedImageError

from app.core.config import settings
from app.core.exceptions import ValidationError
from app.services.storage_service import StorageService

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = [t.strip() for t in settings.allowed_image_types.split(",")]


def validate_product_image(content: bytes, content_type: str, filename: str = "") -> None:
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise ValidationError(f"{filename or 'File'}: only image uploads are allowed")
    if len(content) > settings.PRODUCT_MAX_IMAGE_SIZE:
        raise ValidationError(f"{filename or 'File'}: image exceeds 5MB")
    try:
        Image.open(io.BytesIO(content)).verify()
    except (UnidentifiedImageError, OSError) as e:
        raise ValidationError(f"{filename or 'File'}: not a valid image") from e


def basic_image_optimization(image_bytes: bytes, max_size: tuple = (2048, 2048)) -> bytes:
    image = Image.open(io.BytesIO(image_bytes))
    if image.mode in ("RGBA", "LA", "P"):
        image = image.convert("RGB")
    image.thumbnail(max_size, Image.Resampling.LANCZOS)
    buf = io.BytesIO()
    image.save(buf, format="JPEG", quality=85, optimize=True)
    buf.seek(0)
    return buf.getvalue()


def upload_product_images(
    storage: StorageService,
    seller_id: int,
    files: List[Tuple[str, str, bytes]],
) -> List[str]:
    """Validate, optimize and store ``(filename, content_type, content)`` tuples."""
    if len(files) > settings.PRODUCT_MAX_IMAGES:
        raise ValidationError(f"At most {settings.PRODUCT_MAX_IMAGES} images per product")

    for filename, content_type, content in files:
        validate_product_image(content, content_type, filename)

    keys = []
    for filename, content_type, content in files:
        key = f"sellers/{seller_id}/products/{uuid.uuid4().hex}.jpg"
        storage.put_object(
            settings.PRODUCT_IMAGE_BUCKET_NAME,
            key,
            basic_image_optimization(content),
            "image/jpeg",
        )
        keys.append(key)
    logger.info(f"Stored {len(keys)} product image(s) for seller {seller_id}")
    return keys


def image_urls(storage: StorageService, keys: List[str]) -> List[str]:
    return [storage.presigned_download_url(settings.PRODUCT_IMAGE_BUCKET_NAME, k) for k in keys or []]
