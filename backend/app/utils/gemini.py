"""Gemini client helpers shared by chat, try-on and image generation.

The SDK is synchronous; calls run in a worker thread bounded by
``with_timeout``. SDK failures are classified into the ServiceError taxonomy
so routes never see raw SDK exceptions.
"""

from __future__ import annotations

import asyncio
import io
from typing import Any

import structlog
from google import genai
from google.genai import types
from PIL import Image

from app.config import settings
from app.logging import sanitize_message
from app.utils.api_errors import RateLimited, ServiceError, UnknownError, ValidationError
from app.utils.retry import with_timeout

logger = structlog.get_logger()

IMAGE_CONFIG = types.GenerateContentConfig(
    response_modalities=["TEXT", "IMAGE"],
)

_client: genai.Client | None = None


def get_client() -> genai.Client:
    """Lazy-init singleton client using the configured API key."""
    global _client  # noqa: PLW0603
    if _client is None:
        if not settings.google_ai_api_key:
            raise UnknownError("AI service is not configured", code="config_error")
        _client = genai.Client(api_key=settings.google_ai_api_key)
    return _client


def reset_client() -> None:
    """Reset the singleton client (for testing)."""
    global _client  # noqa: PLW0603
    _client = None


def is_rate_limit_error(exc: BaseException) -> bool:
    # TODO: Catch typed google.genai exceptions when SDK stabilizes
    message = str(exc)
    return (
        "429" in message
        or "RESOURCE_EXHAUSTED" in message
        or "quota" in message.lower()
        or "ResourceExhausted" in type(exc).__name__
    )


def classify_error(exc: Exception, fallback: str) -> ServiceError:
    """Map an SDK failure to a ServiceError with a client-safe message."""
    if isinstance(exc, ServiceError):
        return exc
    if is_rate_limit_error(exc):
        return RateLimited("AI quota exceeded. Please try again later.", code="quota_exceeded")
    message = str(exc)
    if "SAFETY" in message or "blocked" in message.lower():
        return ValidationError(
            "The request was blocked by the content policy.", code="content_policy"
        )
    logger.error(
        "gemini_call_failed",
        error_type=type(exc).__name__,
        error=sanitize_message(message[:200]),
    )
    return UnknownError(fallback)


async def generate_content(
    contents: list[Any],
    *,
    model: str,
    config: types.GenerateContentConfig | None = None,
    timeout: float,
) -> types.GenerateContentResponse:
    client = get_client()
    return await with_timeout(
        asyncio.to_thread(
            client.models.generate_content,
            model=model,
            contents=contents,
            config=config,
        ),
        timeout,
    )


def extract_image(response: types.GenerateContentResponse) -> Image.Image | None:
    """Extract the first image from a Gemini response as PIL Image.

    Returns None if no image parts found. May raise if image data is corrupt.
    """
    if not response.candidates:
        return None
    content = response.candidates[0].content
    if content is None or content.parts is None:
        return None
    for part in content.parts:
        if part.inline_data is None or part.inline_data.data is None:
            continue
        try:
            return Image.open(io.BytesIO(part.inline_data.data))
        except Exception:
            logger.error(
                "gemini_image_decode_failed",
                image_bytes_len=len(part.inline_data.data),
            )
            raise
    return None


def extract_text(response: types.GenerateContentResponse) -> str:
    """Extract all text parts from a Gemini response."""
    if not response.candidates:
        return ""
    content = response.candidates[0].content
    if content is None or content.parts is None:
        return ""
    return "\n".join(part.text for part in content.parts if part.text is not None)


def image_part(data: bytes, mime_type: str = "image/jpeg") -> types.Part:
    return types.Part.from_bytes(data=data, mime_type=mime_type)


def image_to_png_bytes(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
