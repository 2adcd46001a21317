"""Customer profile photos (full body / half body)."""

from typing import Any

import structlog
from fastapi import APIRouter, Request
from starlette.datastructures import UploadFile

from app.models.contracts import ImageType, UploadedImage
from app.services import user_images
from app.utils import db
from app.utils.api_errors import AuthError, ValidationError

logger = structlog.get_logger()

router = APIRouter(tags=["user-images"])

CUSTOMER_ID_HEADER = "x-shopify-customer-id"
USERNAME_HEADER = "x-shopify-customer-username"
USER_ID_HEADER = "x-user-id"
USER_ID_COOKIE = "closelook-user-id"

_PHOTO_FIELDS: dict[str, ImageType] = {"fullBodyPhoto": "fullBody", "halfBodyPhoto": "halfBody"}


@router.post("/upload-user-images")
async def upload_user_images(request: Request) -> dict[str, Any]:
    customer_id = request.headers.get(CUSTOMER_ID_HEADER)
    if not customer_id:
        raise AuthError("Customer login required", code="missing_customer")
    username = request.headers.get(USERNAME_HEADER) or None

    form = await request.form()
    photos: list[tuple[ImageType, bytes]] = []
    for field, image_type in _PHOTO_FIELDS.items():
        upload = form.get(field)
        if not isinstance(upload, UploadFile):
            continue
        data = await upload.read()
        errors = user_images.validate_user_photo(data, upload.content_type)
        if errors:
            logger.info("user_photo_rejected", field=field, errors=errors)
            raise ValidationError(f"{field}: {' '.join(errors)}", code="invalid_image")
        photos.append((image_type, data))

    if not photos:
        raise ValidationError("At least one image is required", code="missing_images")

    uploaded: list[UploadedImage] = []
    for image_type, data in photos:
        uploaded.append(
            await user_images.upload_user_photo(customer_id, image_type, data, username=username)
        )

    return {
        "success": True,
        "images": [image.model_dump() for image in uploaded],
        "userId": customer_id,
        "shopifyCustomerId": customer_id,
        "username": username,
    }


@router.get("/user-images")
async def get_user_images(request: Request) -> dict[str, Any]:
    customer_id = request.headers.get(CUSTOMER_ID_HEADER) or None
    user_id = request.headers.get(USER_ID_HEADER) or request.cookies.get(USER_ID_COOKIE) or None
    if not customer_id and not user_id:
        raise AuthError("User identification required", code="missing_user")

    try:
        result = await user_images.get_user_images(
            user_id=user_id, shopify_customer_id=customer_id
        )
    except db.DatabaseNotConfigured:
        logger.warning("user_images_database_not_configured")
        return {"success": True, "images": {}, "warning": "Database not configured"}

    images: dict[str, str] = {}
    if result.full_body_url:
        images["fullBody"] = result.full_body_url
    if result.half_body_url:
        images["halfBody"] = result.half_body_url
    return {"success": True, "images": images}
