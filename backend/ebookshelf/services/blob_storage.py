"""
Ebookshelf Backend: Blob Storage Interface & Cloudinary Implementation
========================================================================

What:  Stores uploaded PDFs in a remote object store and deletes them again.
How:   `BlobStorage` is the abstract contract; `CloudinaryStorage` implements
       it with the Cloudinary SDK, uploading PDFs as `raw` resources inside a
       namespaced folder. The SDK is synchronous, so every call runs in a
       worker thread.
Who:   UploadService (store, compensate) and BookRepository (delete).

Deletion is idempotent: Cloudinary answers "not found" for a blob that is
already gone, and that counts as success. Any other answer is a failure.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

from ebookshelf.config import Settings, settings
from ebookshelf.exceptions import BlobStorageError

logger = logging.getLogger(__name__)

# Results of uploader.destroy() that mean "the blob is no longer there"
_DESTROYED_RESULTS = {"ok", "not found"}


@dataclass(frozen=True)
class StoredBlob:
    """Durable reference to an uploaded binary."""
    url: str
    storage_id: str


class BlobStorage(ABC):
    """
    Abstract interface for remote binary storage.

    Contract:
        - upload() returns a StoredBlob or raises BlobStorageError
        - delete() returns normally when the blob is gone afterwards
          (including when it never existed) and raises BlobStorageError
          otherwise
    """

    @abstractmethod
    async def upload(self, file_path: str) -> StoredBlob:
        """
        Push a local file to the store.

        Args:
            file_path: Path of a readable local file.
        """
        ...

    @abstractmethod
    async def delete(self, storage_id: str) -> None:
        ...


class CloudinaryStorage(BlobStorage):
    """
    BlobStorage backed by Cloudinary.

    Credentials are passed with each call instead of through the SDK's
    global `cloudinary.config()`, so several instances can coexist (tests).
    """

    def __init__(self, config: Optional[Settings] = None):
        config = config or settings
        self.folder = config.cloudinary_folder
        self._options: Dict[str, Any] = {
            "cloud_name": config.cloud_name,
            "api_key": config.cloud_api_key,
            "api_secret": config.cloud_api_secret,
            "secure": True,
        }

    async def upload(self, file_path: str) -> StoredBlob:
        try:
            result = await asyncio.to_thread(
                cloudinary.uploader.upload,
                file_path,
                resource_type="raw",
                folder=self.folder,
                **self._options,
            )
        except CloudinaryError as e:
            logger.error("Cloudinary upload failed: %s", str(e))
            raise BlobStorageError(
                message="Failed to store the uploaded PDF.",
                context={"provider_error": str(e)},
            )

        url = result.get("secure_url") or result.get("url")
        storage_id = result.get("public_id")
        if not url or not storage_id:
            raise BlobStorageError(
                message="Failed to store the uploaded PDF.",
                context={"provider_response": result},
            )

        logger.info("Blob stored: %s (%s bytes)", storage_id, result.get("bytes", "?"))
        return StoredBlob(url=url, storage_id=storage_id)

    async def delete(self, storage_id: str) -> None:
        try:
            result = await asyncio.to_thread(
                cloudinary.uploader.destroy,
                storage_id,
                resource_type="raw",
                **self._options,
            )
        except CloudinaryError as e:
            logger.error("Cloudinary destroy failed for %s: %s", storage_id, str(e))
            raise BlobStorageError(
                message="Failed to delete the stored PDF.",
                context={"storage_id": storage_id, "provider_error": str(e)},
            )

        outcome = (result or {}).get("result")
        if outcome not in _DESTROYED_RESULTS:
            logger.error("Cloudinary refused to destroy %s: %r", storage_id, result)
            raise BlobStorageError(
                message="Failed to delete the stored PDF.",
                context={"storage_id": storage_id, "provider_response": result},
            )

        if outcome == "not found":
            logger.info("Blob %s already absent", storage_id)
        else:
            logger.info("Blob destroyed: %s", storage_id)


_default_storage: Optional[BlobStorage] = None


def get_blob_storage() -> BlobStorage:
    """
    FastAPI dependency returning the process-wide Cloudinary client.

    Tests replace it through `app.dependency_overrides[get_blob_storage]`.
    """
    global _default_storage
    if _default_storage is None:
        _default_storage = CloudinaryStorage()
    return _default_storage
