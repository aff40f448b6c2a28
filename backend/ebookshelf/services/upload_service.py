"""
Ebookshelf Backend: Upload Pipeline
=====================================

What:  Turns an uploaded PDF into a stored blob plus a new Book record.
How:   The multipart stream is copied to a temporary file in chunks, the
       page count is read from that file, the file is pushed to the blob
       store, and the Book row is inserted and committed.
Who:   POST /upload-book.
When:  Synchronously within the request; nothing runs in the background.

Pipeline:
    ┌──────────────┐   ┌──────────────┐   ┌─────────────┐   ┌─────────────┐
    │ validate +   │ → │ count pages  │ → │ blob upload │ → │ insert Book │
    │ spool to tmp │   │ (PyMuPDF)    │   │ (Cloudinary)│   │ + commit    │
    └──────────────┘   └──────────────┘   └─────────────┘   └─────────────┘

Validation:
    1. A file must be present.
    2. Content type `application/pdf` OR a `.pdf` filename.
    3. Declared size (when the client sends one) must fit the ceiling.
    4. Actual size is counted while spooling; the copy stops as soon as the
       ceiling is passed, before anything reaches the blob store.

Cleanup:
    - The temporary file is removed in every outcome.
    - If the Book cannot be committed after the blob was stored, the blob is
      destroyed before the error propagates, so a failed upload leaves no
      orphan in the store.
"""

import logging
import os
import uuid
from pathlib import Path
from typing import Any, Optional

import aiofiles
from sqlalchemy.ext.asyncio import AsyncSession

from ebookshelf.config import Settings, settings
from ebookshelf.exceptions import (
    BlobStorageError,
    DatabaseError,
    EbookshelfError,
    ValidationError,
)
from ebookshelf.models.book import Book
from ebookshelf.services.blob_storage import BlobStorage, StoredBlob
from ebookshelf.services.pdf_service import count_pages
from ebookshelf.validation import parse_non_empty_string

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
PDF_EXTENSION = ".pdf"


def is_pdf(filename: Optional[str], content_type: Optional[str]) -> bool:
    if content_type and content_type.split(";")[0].strip().lower() == PDF_CONTENT_TYPE:
        return True
    return bool(filename) and filename.lower().endswith(PDF_EXTENSION)


class UploadService:
    """
    Args:
        db: The request's AsyncSession. The pipeline commits it.
        blob_storage: Destination for the PDF bytes.
        config: Overrides `settings` (tests shrink the size ceiling).
    """

    def __init__(
        self,
        db: AsyncSession,
        blob_storage: BlobStorage,
        config: Optional[Settings] = None,
    ):
        self.db = db
        self.blob_storage = blob_storage
        self.config = config or settings
        self.tmp_dir = Path(self.config.upload_tmp_dir).resolve()

    def _too_large(self, size: Optional[int]) -> ValidationError:
        return ValidationError(
            message=f"PDF file must be {self.config.max_pdf_size_mb} MB or smaller.",
            field="pdf",
            context={"max_size": self.config.max_pdf_size, "size": size},
        )

    def validate(self, upload: Any) -> None:
        """
        Checks that need no bytes read: presence, type, declared size.

        Raises:
            ValidationError
        """
        if upload is None or not getattr(upload, "filename", None):
            raise ValidationError(message="PDF required.", field="pdf")

        if not is_pdf(upload.filename, getattr(upload, "content_type", None)):
            raise ValidationError(
                message="Only PDF files are allowed.",
                field="pdf",
                context={"filename": upload.filename, "content_type": upload.content_type},
            )

        declared = getattr(upload, "size", None)
        if declared is not None and declared > self.config.max_pdf_size:
            raise self._too_large(declared)

    async def spool(self, upload: Any) -> Path:
        """
        Copy the upload to a uniquely named temporary file.

        The running byte count is checked after every chunk; an oversized
        upload is rejected and its partial copy removed.

        Returns:
            Path of the temporary file. The caller removes it.
        """
        self.tmp_dir.mkdir(parents=True, exist_ok=True)
        tmp_path = self.tmp_dir / f"{uuid.uuid4()}{PDF_EXTENSION}"

        written = 0
        try:
            async with aiofiles.open(tmp_path, "wb") as f:
                while True:
                    chunk = await upload.read(self.config.upload_chunk_size)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > self.config.max_pdf_size:
                        raise self._too_large(written)
                    await f.write(chunk)
        except BaseException:
            remove_file(tmp_path)
            raise

        logger.debug("Spooled upload to %s (%d bytes)", tmp_path.name, written)
        return tmp_path

    async def ingest(self, owner_id: str, upload: Any, title: Any = None) -> Book:
        """
        Run the whole pipeline for one uploaded file.

        Args:
            owner_id: Authenticated user who will own the Book.
            upload: Starlette UploadFile (or anything with filename,
                content_type, size and an async read(n)).
            title: Optional display title; blank means "use the filename".

        Returns:
            The committed Book.

        Raises:
            ValidationError: Missing, non-PDF or oversized file.
            BlobStorageError: The blob store rejected the file.
            DatabaseError("Upload failed."): The Book could not be saved.
        """
        self.validate(upload)
        tmp_path = await self.spool(upload)

        try:
            total_pages = await count_pages(str(tmp_path))
            blob = await self.blob_storage.upload(str(tmp_path))
            book = await self._create_book(owner_id, upload.filename, title, total_pages, blob)
        finally:
            remove_file(tmp_path)

        logger.info(
            "Book uploaded: %s (%d pages, owner %s)",
            book.id,
            book.total_pages,
            owner_id,
        )
        return book

    async def _create_book(
        self,
        owner_id: str,
        filename: str,
        title: Any,
        total_pages: int,
        blob: StoredBlob,
    ) -> Book:
        book = Book(
            owner_id=owner_id,
            title=parse_non_empty_string(title) or filename,
            pdf_url=blob.url,
            storage_id=blob.storage_id,
            total_pages=total_pages,
            current_page=0,
            vocabulary=[],
            notes=[],
        )
        # Only a failed commit is compensated; once committed the row references the blob
        try:
            self.db.add(book)
            await self.db.commit()
        except Exception as e:
            logger.error("Failed to save uploaded book: %s", str(e), exc_info=True)
            await self.db.rollback()
            await self._discard_blob(blob)
            if isinstance(e, EbookshelfError):
                raise
            raise DatabaseError(
                message="Upload failed.",
                context={"error_type": type(e).__name__},
            )
        return book

    async def _discard_blob(self, blob: StoredBlob) -> None:
        try:
            await self.blob_storage.delete(blob.storage_id)
        except BlobStorageError as e:
            # The original failure is what the client needs to see
            logger.error("Orphaned blob %s could not be removed: %s", blob.storage_id, e.message)


def remove_file(path: Path) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Failed to remove temporary file %s: %s", path, str(e))
