"""Tests for R2 storage client: upload, public URL, delete and bucket probe.

All boto3 calls are mocked since R2 is an external service.
"""

from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from app.config import settings
from app.utils import r2


@pytest.fixture()
def mock_s3():
    """Provide a mocked boto3 S3 client."""
    with patch.object(r2, "_build_client") as mock_build:
        mock_client = MagicMock()
        mock_build.return_value = mock_client
        yield mock_client


class TestUploadObject:
    def test_upload_calls_put_object(self, mock_s3, monkeypatch):
        """put_object gets bucket, key, body and content type; the public URL is returned."""
        monkeypatch.setattr(settings, "r2_public_base_url", "https://images.closelook.app/")
        key = "user-profiles/42/full-body-1700000000000.jpg"

        url = r2.upload_object(key, b"fake-image-bytes", content_type="image/jpeg")

        mock_s3.put_object.assert_called_once_with(
            Bucket=settings.r2_bucket_name,
            Key=key,
            Body=b"fake-image-bytes",
            ContentType="image/jpeg",
        )
        assert url == f"https://images.closelook.app/{key}"

    def test_upload_default_content_type(self, mock_s3):
        r2.upload_object("test/key.jpg", b"data")
        assert mock_s3.put_object.call_args[1]["ContentType"] == "image/jpeg"

    def test_upload_error_propagates(self, mock_s3):
        mock_s3.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"
        )
        with pytest.raises(ClientError):
            r2.upload_object("k", b"d")


class TestPublicUrl:
    def test_falls_back_to_bucket_endpoint(self, monkeypatch):
        monkeypatch.setattr(settings, "r2_public_base_url", "")
        monkeypatch.setattr(settings, "r2_account_id", "acct")
        monkeypatch.setattr(settings, "r2_bucket_name", "closelook-images")
        assert r2.public_url("a/b.png") == (
            "https://acct.r2.cloudflarestorage.com/closelook-images/a/b.png"
        )


class TestClientLifecycle:
    def test_client_is_cached(self, mock_s3):
        assert r2.get_client() is r2.get_client()

    def test_reset_rebuilds(self):
        with patch.object(r2, "_build_client", side_effect=[MagicMock(), MagicMock()]):
            first = r2.get_client()
            r2.reset_client()
            assert r2.get_client() is not first


class TestMisc:
    def test_head_bucket(self, mock_s3):
        r2.head_bucket()
        mock_s3.head_bucket.assert_called_once_with(Bucket=settings.r2_bucket_name)

    def test_configured_requires_all_credentials(self, monkeypatch):
        monkeypatch.setattr(settings, "r2_account_id", "acct")
        monkeypatch.setattr(settings, "r2_access_key_id", "key")
        monkeypatch.setattr(settings, "r2_secret_access_key", "")
        assert not r2.r2_configured()
        monkeypatch.setattr(settings, "r2_secret_access_key", "secret")
        assert r2.r2_configured()
