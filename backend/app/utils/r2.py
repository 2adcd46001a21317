"""Object storage on Cloudflare R2 through its S3-compatible API.

Try-on renders land under ``try-on/{shop}/{timestamp}.png`` and customer
profile photos under ``user-profiles/{customer_id}/{kind}-{timestamp}.jpg``.
URLs are built from R2_PUBLIC_BASE_URL and do not expire.
"""

from __future__ import annotations

from typing import Any

import boto3
import structlog
from botocore.config import Config

from app.config import settings

logger = structlog.get_logger()


def r2_configured() -> bool:
    """True when account, keys and bucket are all set."""
    return bool(
        settings.r2_account_id
        and settings.r2_access_key_id
        and settings.r2_secret_access_key
        and settings.r2_bucket_name
    )


def _build_client() -> Any:
    """boto3 S3 client bound to the account's R2 endpoint."""
    return boto3.client(
        "s3",
        endpoint_url=f"https://{settings.r2_account_id}.r2.cloudflarestorage.com",
        aws_access_key_id=settings.r2_access_key_id,
        aws_secret_access_key=settings.r2_secret_access_key,
        config=Config(signature_version="s3v4"),
        region_name="auto",
    )


_client: Any = None


def get_client() -> Any:
    """Shared client, built on first use."""
    global _client  # noqa: PLW0603
    if _client is None:
        _client = _build_client()
    return _client


def reset_client() -> None:
    """Drop the cached client so the next call rebuilds it."""
    global _client  # noqa: PLW0603
    _client = None


def public_url(key: str) -> str:
    """Public URL for a stored key.

    Falls back to the path-style S3 endpoint when no public base URL is
    configured.
    """
    base = settings.r2_public_base_url.rstrip("/")
    if not base:
        base = (
            f"https://{settings.r2_account_id}.r2.cloudflarestorage.com/"
            f"{settings.r2_bucket_name}"
        )
    return f"{base}/{key}"


def upload_object(key: str, data: bytes, content_type: str = "image/jpeg") -> str:
    """Store ``data`` under ``key`` and return its public URL."""
    client = get_client()
    client.put_object(
        Bucket=settings.r2_bucket_name,
        Key=key,
        Body=data,
        ContentType=content_type,
    )
    logger.info("r2_upload", key=key, size=len(data), content_type=content_type)
    return public_url(key)


def head_bucket() -> None:
    """Raise if the configured bucket is not reachable."""
    get_client().head_bucket(Bucket=settings.r2_bucket_name)
