"""
Ebookshelf Backend: Cloudinary Storage Tests
==============================================

What:  CloudinaryStorage upload/delete outcomes.
How:   The SDK entry points (`cloudinary.uploader.upload` / `destroy`) are
       patched; no network access.

What we test:
    ✅ Upload returns the secure URL and public id, in the configured folder
    ✅ Upload responses missing either field are rejected
    ✅ "ok" and "not found" destroy results both count as deleted
    ✅ Any other destroy result, or an SDK error, raises BlobStorageError
"""

from unittest.mock import patch

import pytest
from cloudinary.exceptions import Error as CloudinaryError

from ebookshelf.config import Settings
from ebookshelf.exceptions import BlobStorageError
from ebookshelf.services.blob_storage import CloudinaryStorage, StoredBlob


@pytest.fixture
def storage():
    return CloudinaryStorage(
        Settings(
            cloud_name="demo",
            cloud_api_key="key",
            cloud_api_secret="secret",
            cloudinary_folder="my_ebooks",
        )
    )


class TestUpload:

    @pytest.mark.asyncio
    async def test_upload_returns_stored_blob(self, storage):
        response = {
            "secure_url": "https://res.cloudinary.com/demo/raw/upload/my_ebooks/abc.pdf",
            "public_id": "my_ebooks/abc.pdf",
            "bytes": 1234,
        }
        with patch("cloudinary.uploader.upload", return_value=response) as upload:
            blob = await storage.upload("/tmp/abc.pdf")

        assert blob == StoredBlob(url=response["secure_url"], storage_id="my_ebooks/abc.pdf")
        args, kwargs = upload.call_args
        assert args == ("/tmp/abc.pdf",)
        assert kwargs["resource_type"] == "raw"
        assert kwargs["folder"] == "my_ebooks"
        assert kwargs["cloud_name"] == "demo"
        assert kwargs["api_key"] == "key"
        assert kwargs["api_secret"] == "secret"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            {"public_id": "my_ebooks/abc.pdf"},
            {"secure_url": "https://res.cloudinary.com/demo/raw/upload/abc.pdf"},
            {},
        ],
    )
    async def test_incomplete_response_rejected(self, storage, response):
        with patch("cloudinary.uploader.upload", return_value=response):
            with pytest.raises(BlobStorageError):
                await storage.upload("/tmp/abc.pdf")

    @pytest.mark.asyncio
    async def test_sdk_error_wrapped(self, storage):
        with patch("cloudinary.uploader.upload", side_effect=CloudinaryError("invalid api key")):
            with pytest.raises(BlobStorageError) as exc_info:
                await storage.upload("/tmp/abc.pdf")
        assert exc_info.value.context["provider_error"] == "invalid api key"


class TestDelete:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("result", ["ok", "not found"])
    async def test_gone_afterwards_counts_as_deleted(self, storage, result):
        with patch("cloudinary.uploader.destroy", return_value={"result": result}) as destroy:
            await storage.delete("my_ebooks/abc.pdf")

        args, kwargs = destroy.call_args
        assert args == ("my_ebooks/abc.pdf",)
        assert kwargs["resource_type"] == "raw"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [{"result": "error"}, {}, None])
    async def test_other_results_raise(self, storage, response):
        with patch("cloudinary.uploader.destroy", return_value=response):
            with pytest.raises(BlobStorageError):
                await storage.delete("my_ebooks/abc.pdf")

    @pytest.mark.asyncio
    async def test_sdk_error_wrapped(self, storage):
        with patch("cloudinary.uploader.destroy", side_effect=CloudinaryError("timeout")):
            with pytest.raises(BlobStorageError) as exc_info:
                await storage.delete("my_ebooks/abc.pdf")
        assert exc_info.value.context["storage_id"] == "my_ebooks/abc.pdf"
