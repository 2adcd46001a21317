"""Virtual try-on and two-image generation.

Try-on runs in two Gemini passes: a JSON analysis of the user photo and
product image, then an image-model call with a prompt assembled from that
analysis. Fields the analysis leaves as "Unknown" fall back to per-category
defaults.
"""

from __future__ import annotations

import asyncio
import base64
import json
import time
from dataclasses import dataclass
from typing import Any

import structlog
from google.genai import types

from app.config import settings
from app.models.contracts import GenerateImageResponse, ProductAnalysis, TryOnResponse
from app.utils.api_errors import UnknownError
from app.utils.gemini import (
    IMAGE_CONFIG,
    classify_error,
    extract_image,
    extract_text,
    generate_content,
    image_part,
    image_to_png_bytes,
)
from app.utils.r2 import r2_configured, upload_object

logger = structlog.get_logger()

UNKNOWN = "Unknown"

CAMERA_HINTS = {
    "Sunglasses": "85mm headshot, tight head-and-shoulders; include ~12% padding",
    "Shoes": "50mm full-body, feet visible, include ~12% padding",
    "Bag": "50-85mm 3/4 or full-body depending on bag size; full bag visible with ~12% padding",
    "Watch": "85mm mid-shot; show wrist and watch clearly; include ~12% padding",
    "Default": "50mm neutral framing; full product visible with ~12% padding",
}

SCALE_RATIOS = {
    "Sunglasses": 1.2,
    "Shoes": 0.9,
    "Bag": 0.8,
    "Watch": 0.25,
    "Default": 1.0,
}

FRAMING = {
    "Sunglasses": "head-and-shoulders",
    "Earrings": "head-and-shoulders",
    "Necklace": "mid-shot",
    "Watch": "mid-shot",
    "Shoes": "full-body",
    "Pants": "full-body",
    "Dress": "three-quarter",
    "Jacket": "three-quarter",
    "Bag": "three-quarter",
    "Default": "three-quarter",
}

DEFAULT_BACKGROUND = (
    "neutral light-gray gradient (#e6e6e6 center), softbox key + soft fill + subtle rim light"
)
DEFAULT_POSITIVE = "photorealistic, high-resolution, professional studio lighting, sharp focus"
DEFAULT_NEGATIVE = (
    "no duplicate person, no extra limbs, no multiple heads, no floating body parts, "
    "no giant foreground product overlay, no logos on lenses unless shown in product "
    "references, no child-like proportions, no cartoon, no text, no watermark"
)
DEFAULT_SCALE_CATEGORY = "medium"

ANALYSIS_PROMPT = """You are a strict image analyst. You receive two images:
1. USER PHOTO (first image): the person who will wear the product.
2. PRODUCT IMAGE (second image): the product.

Return ONLY one JSON object with these keys:
"productCategory", "detailedVisualDescription", "imageGenerationPrompt", "cameraHint",
"productScaleCategory" (small|medium|large), "productScaleRatioToHead" (number,
product width relative to head width), "targetFraming" (full-body|three-quarter|
upper-body|head-and-shoulders|mid-shot), "backgroundInstruction", "positivePrompt",
"negativePrompt", "userCharacteristics" (object describing only what is visible in the
USER PHOTO: visibility, genderHint, ageRange, bodyBuild, skinTone, hairColor,
facialHair, headOrientation, visibleClothing).
Describe exact colors, materials, textures, logos and hardware of the product.
If uncertain about any string field, use exactly "Unknown"."""

TRY_ON_PROMPT = """Create one photorealistic studio photograph of the person in the first \
image wearing or using the product shown in the second image.

Identity: preserve face, facial hair, hairline, eye shape and skin tone exactly. \
Known user characteristics: {user_characteristics}.
Product fidelity: reproduce color, texture, logos and hardware exactly; never add \
logos to reflective surfaces unless the reference shows them there.
Framing: {framing}. Camera: {camera_hint}. Keep the whole product visible.
Scale: product width about {scale_ratio} x the user's head width \
(scale category: {scale_category}); stay within 20% of this target.
Garments replace the matching clothing; accessories are added without changing \
the outfit. Realistic adult proportions, no duplicate people.
Background: {background}.

Product: {product_name} ({category})
Details: {description}
Instructions: {instructions}
Positive: {positive}
Avoid: {negative}"""

# camelCase analysis keys to ProductAnalysis fields
_ANALYSIS_FIELDS = {
    "productCategory": "product_category",
    "detailedVisualDescription": "detailed_visual_description",
    "imageGenerationPrompt": "image_generation_prompt",
    "cameraHint": "camera_hint",
    "productScaleCategory": "product_scale_category",
    "productScaleRatioToHead": "product_scale_ratio_to_head",
    "targetFraming": "target_framing",
    "backgroundInstruction": "background_instruction",
    "positivePrompt": "positive_prompt",
    "negativePrompt": "negative_prompt",
    "userCharacteristics": "user_characteristics",
}


@dataclass
class UploadedPhoto:
    data: bytes
    mime_type: str = "image/jpeg"


def fallback_analysis(product_name: str, product_category: str | None) -> ProductAnalysis:
    category = product_category or "Fashion Accessory"
    return ProductAnalysis(
        product_category=category,
        detailed_visual_description=(
            f"{product_name} - a stylish {product_category or 'product'} with a premium "
            "design and quality materials."
        ),
        image_generation_prompt=(
            f"Show the person wearing the {product_name} in a natural, confident pose. "
            "Keep the product clearly visible. Use professional studio lighting and a "
            "clean background."
        ),
        user_characteristics={"visibility": UNKNOWN, "genderHint": "unknown"},
    )


def parse_analysis(text: str) -> ProductAnalysis | None:
    """Parse the analysis JSON, tolerating a fenced code block."""
    raw = text.strip()
    if raw.startswith("```"):
        raw = raw.strip("`")
        raw = raw.removeprefix("json").strip()
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    fields: dict[str, Any] = {}
    for key, field in _ANALYSIS_FIELDS.items():
        value = data.get(key)
        if value is None:
            continue
        if field == "product_scale_ratio_to_head":
            try:
                value = float(value)
            except (TypeError, ValueError):
                continue
        elif field == "user_characteristics":
            if not isinstance(value, dict):
                continue
        else:
            value = str(value)
        fields[field] = value
    return ProductAnalysis(**fields)


def _known(value: str | None) -> bool:
    return bool(value) and value != UNKNOWN


def resolve_prompt_settings(analysis: ProductAnalysis) -> dict[str, Any]:
    """Fill "Unknown" analysis fields with the category defaults."""
    category = analysis.product_category
    ratio = analysis.product_scale_ratio_to_head
    return {
        "camera_hint": analysis.camera_hint
        if _known(analysis.camera_hint)
        else CAMERA_HINTS.get(category, CAMERA_HINTS["Default"]),
        # 1.0 is the analyst's "unsure" answer
        "scale_ratio": ratio
        if ratio and ratio != 1.0
        else SCALE_RATIOS.get(category, SCALE_RATIOS["Default"]),
        "scale_category": analysis.product_scale_category
        if _known(analysis.product_scale_category)
        else DEFAULT_SCALE_CATEGORY,
        "framing": analysis.target_framing
        if _known(analysis.target_framing)
        else FRAMING.get(category, FRAMING["Default"]),
        "background": analysis.background_instruction
        if _known(analysis.background_instruction)
        else DEFAULT_BACKGROUND,
        "positive": analysis.positive_prompt
        if _known(analysis.positive_prompt)
        else DEFAULT_POSITIVE,
        "negative": analysis.negative_prompt
        if _known(analysis.negative_prompt)
        else DEFAULT_NEGATIVE,
    }


def build_try_on_prompt(analysis: ProductAnalysis, product_name: str) -> str:
    resolved = resolve_prompt_settings(analysis)
    characteristics = analysis.user_characteristics or {
        "visibility": UNKNOWN,
        "genderHint": "unknown",
    }
    return TRY_ON_PROMPT.format(
        user_characteristics=json.dumps(characteristics),
        product_name=product_name,
        category=analysis.product_category,
        description=analysis.detailed_visual_description or UNKNOWN,
        instructions=analysis.image_generation_prompt or UNKNOWN,
        **resolved,
    )


async def analyze_product(
    user_photo: UploadedPhoto,
    product_image: UploadedPhoto,
    product_name: str,
    product_category: str | None = None,
) -> tuple[ProductAnalysis, bool]:
    """Return the analysis and whether the fallback was used."""
    try:
        response = await generate_content(
            [
                image_part(user_photo.data, user_photo.mime_type),
                image_part(product_image.data, product_image.mime_type),
                ANALYSIS_PROMPT,
            ],
            model=settings.gemini_chat_model,
            config=types.GenerateContentConfig(response_mime_type="application/json"),
            timeout=settings.chat_timeout_seconds,
        )
    except Exception as exc:
        logger.warning("product_analysis_failed", error_type=type(exc).__name__)
        return fallback_analysis(product_name, product_category), True

    analysis = parse_analysis(extract_text(response))
    if analysis is None or len(analysis.image_generation_prompt) < 100:
        logger.warning("product_analysis_low_quality", product_name=product_name)
        return fallback_analysis(product_name, product_category), True
    return analysis, False


def _store_result(png: bytes, shop: str | None) -> str:
    """Permanent URL when R2 is configured, else an inline data URL."""
    if not r2_configured():
        return "data:image/png;base64," + base64.b64encode(png).decode("ascii")
    key = f"try-on/{shop or 'storefront'}/{int(time.time() * 1000)}.png"
    return upload_object(key, png, content_type="image/png")


async def generate_try_on(
    user_photo: UploadedPhoto,
    product_images: list[UploadedPhoto],
    product_name: str,
    product_category: str | None = None,
    *,
    shop: str | None = None,
) -> TryOnResponse:
    analysis, used_fallback = await analyze_product(
        user_photo, product_images[0], product_name, product_category
    )
    prompt = build_try_on_prompt(analysis, product_name)

    logger.info(
        "try_on_generate_start",
        product_name=product_name,
        num_product_images=len(product_images),
        used_fallback=used_fallback,
    )
    try:
        response = await generate_content(
            [
                image_part(user_photo.data, user_photo.mime_type),
                image_part(product_images[0].data, product_images[0].mime_type),
                prompt,
            ],
            model=settings.gemini_image_model,
            config=IMAGE_CONFIG,
            timeout=settings.try_on_timeout_seconds,
        )
    except Exception as exc:
        raise classify_error(exc, "Failed to generate try-on image") from exc

    result = extract_image(response)
    if result is None:
        logger.warning("try_on_no_image", text=extract_text(response)[:300])
        raise UnknownError("Failed to generate try-on image")

    png = image_to_png_bytes(result)
    image_url = await asyncio.to_thread(_store_result, png, shop)
    resolved = resolve_prompt_settings(analysis)
    return TryOnResponse(
        image_url=image_url,
        product_name=product_name,
        metadata={
            "model": settings.gemini_image_model,
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "product_analysis": analysis.model_dump(),
            "flags": {
                "used_fallback": used_fallback,
                "analysis_confidence": "low" if used_fallback else "high",
                "product_scale_ratio": resolved["scale_ratio"],
                "product_scale_category": resolved["scale_category"],
            },
        },
    )


async def generate_image(
    image1: UploadedPhoto, image2: UploadedPhoto, prompt: str
) -> GenerateImageResponse:
    """Combine two images per ``prompt``; returns a base64 PNG data URL."""
    try:
        response = await generate_content(
            [image_part(image1.data, image1.mime_type), image_part(image2.data, image2.mime_type), prompt],
            model=settings.gemini_image_model,
            config=IMAGE_CONFIG,
            timeout=settings.try_on_timeout_seconds,
        )
    except Exception as exc:
        raise classify_error(exc, "Failed to generate image") from exc

    result = extract_image(response)
    if result is None:
        raise UnknownError("No image was generated")
    png = image_to_png_bytes(result)
    return GenerateImageResponse(
        image_url="data:image/png;base64," + base64.b64encode(png).decode("ascii"),
        text=extract_text(response),
    )
