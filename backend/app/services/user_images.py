"""Customer profile photos: validation, R2 storage, Postgres index.

A customer holds at most one photo per type (fullBody / halfBody); a new
upload replaces the previous row. Customer id and username survive a later
write that omits them.
"""

from __future__ import annotations

import asyncio
import io
import time

import asyncpg
import structlog
from PIL import Image

from app.models.contracts import ImageType, UploadedImage, UserImage, UserImagesResult
from app.utils import db
from app.utils.r2 import upload_object

logger = structlog.get_logger()

MIN_PHOTO_BYTES = 10 * 1024  # 10 KB
MAX_PHOTO_BYTES = 10 * 1024 * 1024  # 10 MB
ALLOWED_CONTENT_TYPES = frozenset(
    {"image/jpeg", "image/jpg", "image/png", "image/webp", "image/avif"}
)

_KEY_PREFIX: dict[str, str] = {"fullBody": "full-body", "halfBody": "half-body"}


def validate_user_photo(data: bytes, content_type: str | None) -> list[str]:
    """Return human-readable problems with an uploaded photo; empty when valid."""
    errors: list[str] = []
    mime = (content_type or "").lower()
    if len(data) < MIN_PHOTO_BYTES:
        errors.append("Image is too small. Minimum size is 10KB.")
    elif len(data) > MAX_PHOTO_BYTES:
        errors.append("Image is too large. Maximum size is 10MB.")

    if mime not in ALLOWED_CONTENT_TYPES:
        errors.append("Unsupported image type. Please upload a JPEG, PNG, WebP or AVIF image.")
        return errors

    if errors:
        return errors

    # AVIF needs a Pillow plugin; trust the declared type for it
    if mime == "image/avif":
        return errors
    try:
        img = Image.open(io.BytesIO(data))
        img.verify()
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        logger.warning("user_photo_decode_failed", error=str(exc))
        errors.append("Could not open image. Please upload a valid photo.")
    return errors


def blob_key(customer_id: str, image_type: ImageType, timestamp_ms: int | None = None) -> str:
    ts = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    return f"user-profiles/{customer_id}/{_KEY_PREFIX[image_type]}-{ts}.jpg"


_UPSERT_SQL = """
INSERT INTO user_images
    (user_id, shopify_customer_id, username, image_type, image_url, blob_filename, updated_at)
VALUES ($1, $2, $3, $4, $5, $6, NOW())
ON CONFLICT (user_id, image_type) DO UPDATE SET
    image_url = EXCLUDED.image_url,
    blob_filename = EXCLUDED.blob_filename,
    shopify_customer_id = COALESCE(EXCLUDED.shopify_customer_id, user_images.shopify_customer_id),
    username = COALESCE(EXCLUDED.username, user_images.username),
    updated_at = NOW()
"""


async def save_user_image(image: UserImage) -> None:
    async with db.connect() as conn:
        await conn.execute(
            _UPSERT_SQL,
            image.user_id,
            image.shopify_customer_id,
            image.username,
            image.image_type,
            image.image_url,
            image.blob_filename,
        )


async def get_user_images(
    user_id: str | None = None, shopify_customer_id: str | None = None
) -> UserImagesResult:
    """Latest photo URL per type; the Shopify customer id takes priority."""
    if not user_id and not shopify_customer_id:
        return UserImagesResult()

    if shopify_customer_id:
        column, value = "shopify_customer_id", shopify_customer_id
    else:
        column, value = "user_id", user_id

    async with db.connect() as conn:
        rows = await conn.fetch(
            f"SELECT image_type, image_url FROM user_images WHERE {column} = $1 "  # noqa: S608
            "ORDER BY updated_at ASC",
            value,
        )

    result = UserImagesResult()
    # Ascending order so the most recent row of each type wins
    for row in rows:
        if row["image_type"] == "fullBody":
            result.full_body_url = row["image_url"]
        elif row["image_type"] == "halfBody":
            result.half_body_url = row["image_url"]
    return result


async def upload_user_photo(
    customer_id: str,
    image_type: ImageType,
    data: bytes,
    *,
    username: str | None = None,
) -> UploadedImage:
    """Store the photo in R2 and index it. The index write is best-effort."""
    key = blob_key(customer_id, image_type)
    url = await asyncio.to_thread(upload_object, key, data, "image/jpeg")
    logger.info("user_photo_uploaded", customer_id=customer_id, image_type=image_type)

    try:
        await save_user_image(
            UserImage(
                user_id=customer_id,
                shopify_customer_id=customer_id,
                username=username,
                image_type=image_type,
                image_url=url,
                blob_filename=key,
            )
        )
    except (asyncpg.PostgresError, OSError, db.DatabaseNotConfigured) as exc:
        logger.warning(
            "user_photo_db_save_failed",
            customer_id=customer_id,
            image_type=image_type,
            error=str(exc),
        )

    return UploadedImage(type=image_type, url=url, filename=key)
