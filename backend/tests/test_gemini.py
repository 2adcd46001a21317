"""Tests for the shared Gemini helpers: error classification and response parsing."""

import io

import pytest
from google.genai import types
from PIL import Image

from app.config import settings
from app.utils import gemini
from app.utils.api_errors import RateLimited, UnknownError, ValidationError


def _png():
    buf = io.BytesIO()
    Image.new("RGB", (4, 4), (0, 128, 255)).save(buf, format="PNG")
    return buf.getvalue()


def _response(*parts):
    return types.GenerateContentResponse(
        candidates=[types.Candidate(content=types.Content(role="model", parts=list(parts)))]
    )


class TestClassifyError:
    @pytest.mark.parametrize(
        "message", ["429 Too Many Requests", "RESOURCE_EXHAUSTED", "Quota exceeded for project"]
    )
    def test_rate_limits(self, message):
        err = gemini.classify_error(RuntimeError(message), "fallback")
        assert isinstance(err, RateLimited)
        assert err.code == "quota_exceeded"

    def test_safety_block(self):
        err = gemini.classify_error(RuntimeError("Response blocked: SAFETY"), "fallback")
        assert isinstance(err, ValidationError)
        assert err.code == "content_policy"

    def test_other_failure_uses_fallback(self):
        err = gemini.classify_error(RuntimeError("internal"), "Failed to generate image")
        assert isinstance(err, UnknownError)
        assert err.message == "Failed to generate image"

    def test_service_error_passthrough(self):
        original = ValidationError("bad")
        assert gemini.classify_error(original, "fallback") is original


class TestClient:
    def test_missing_key_raises(self, monkeypatch):
        monkeypatch.setattr(settings, "google_ai_api_key", "")
        with pytest.raises(UnknownError):
            gemini.get_client()


class TestExtract:
    def test_text_parts_joined(self):
        response = _response(types.Part(text="one"), types.Part(text="two"))
        assert gemini.extract_text(response) == "one\ntwo"

    def test_image_part(self):
        response = _response(
            types.Part(text="here"),
            types.Part(inline_data=types.Blob(data=_png(), mime_type="image/png")),
        )
        image = gemini.extract_image(response)
        assert image is not None
        assert image.size == (4, 4)

    def test_no_candidates(self):
        empty = types.GenerateContentResponse(candidates=[])
        assert gemini.extract_image(empty) is None
        assert gemini.extract_text(empty) == ""

    def test_png_round_trip_bytes(self):
        img = Image.new("RGB", (2, 2))
        assert gemini.image_to_png_bytes(img).startswith(b"\x89PNG")
