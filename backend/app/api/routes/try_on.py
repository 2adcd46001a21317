"""Virtual try-on and two-image generation (multipart uploads)."""

import structlog
from fastapi import APIRouter, Request
from starlette.datastructures import UploadFile

from app.models.contracts import GenerateImageResponse, TryOnResponse
from app.services.try_on import UploadedPhoto, generate_image, generate_try_on
from app.utils.api_errors import ValidationError

logger = structlog.get_logger()

router = APIRouter(tags=["try-on"])

MAX_UPLOAD_BYTES = 20 * 1024 * 1024  # 20 MB
MAX_PRODUCT_IMAGES = 5
SUPPORTED_MIME_TYPES = frozenset({"image/png", "image/jpeg", "image/webp", "image/avif"})


async def _read_upload(upload: UploadFile, field: str) -> UploadedPhoto:
    data = await upload.read()
    if not data:
        raise ValidationError(f"{field} is empty", code="empty_image")
    if len(data) > MAX_UPLOAD_BYTES:
        raise ValidationError(f"{field} exceeds 20 MB", code="image_too_large")
    mime_type = upload.content_type or "image/jpeg"
    if mime_type not in SUPPORTED_MIME_TYPES:
        mime_type = "image/jpeg"
    return UploadedPhoto(data=data, mime_type=mime_type)


def _upload_field(form: dict, name: str) -> UploadFile | None:
    value = form.get(name)
    return value if isinstance(value, UploadFile) else None


@router.post("/try-on")
async def try_on(request: Request) -> TryOnResponse:
    """Form fields: userPhoto, productImage0..N-1, productImageCount, productName,
    productCategory, shop."""
    form = await request.form()
    fields = dict(form)
    user_upload = _upload_field(fields, "userPhoto")

    try:
        count = int(str(fields.get("productImageCount") or 1))
    except ValueError:
        count = 1
    count = max(1, min(count, MAX_PRODUCT_IMAGES))
    product_uploads = [
        upload
        for upload in (_upload_field(fields, f"productImage{i}") for i in range(count))
        if upload is not None
    ]
    product_name = str(fields.get("productName") or "").strip()

    if user_upload is None or not product_uploads or not product_name:
        raise ValidationError("Missing required fields", code="missing_fields")

    user_photo = await _read_upload(user_upload, "userPhoto")
    product_images = [await _read_upload(u, "productImage") for u in product_uploads]
    category = str(fields.get("productCategory") or "") or None
    shop = str(fields.get("shop") or "") or None

    return await generate_try_on(user_photo, product_images, product_name, category, shop=shop)


@router.post("/generate-image")
async def post_generate_image(request: Request) -> GenerateImageResponse:
    """Form fields: image1, image2, prompt."""
    form = await request.form()
    fields = dict(form)
    image1 = _upload_field(fields, "image1")
    image2 = _upload_field(fields, "image2")
    prompt = str(fields.get("prompt") or "").strip()
    if image1 is None or image2 is None or not prompt:
        raise ValidationError("Missing required fields", code="missing_fields")

    return await generate_image(
        await _read_upload(image1, "image1"), await _read_upload(image2, "image2"), prompt
    )
