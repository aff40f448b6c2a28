"""
Ebookshelf Backend: Upload Route Handler
==========================================

What:  POST /upload-book, multipart/form-data with a `pdf` file field and an
       optional `title` text field.
How:   Hands the UploadFile to UploadService, which validates, spools,
       counts pages, stores the blob and commits the Book.

Request Flow:
    1. Bearer token → user id
    2. UploadService.ingest(user_id, pdf, title)
    3. 201 Created with the new Book
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from ebookshelf.dependencies import get_current_user_id, get_upload_service
from ebookshelf.schemas.book import BookResponse
from ebookshelf.schemas.common import ErrorResponse
from ebookshelf.services.upload_service import UploadService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Upload"])


@router.post(
    "/upload-book",
    status_code=201,
    response_model=BookResponse,
    responses={
        400: {"description": "Missing, non-PDF or oversized file", "model": ErrorResponse},
        401: {"description": "Missing or invalid token", "model": ErrorResponse},
        500: {"description": "Blob store or database failure", "model": ErrorResponse},
    },
    summary="Upload a PDF and create a book",
    description=(
        "Upload a PDF (max 15 MB). The page count is read from the file, the "
        "PDF is stored remotely and a new book with progress 0 is returned."
    ),
)
async def upload_book(
    pdf: Optional[UploadFile] = File(None, description="The PDF file"),
    title: Optional[str] = Form(None, description="Display title; defaults to the filename"),
    user_id: str = Depends(get_current_user_id),
    uploads: UploadService = Depends(get_upload_service),
) -> BookResponse:
    try:
        book = await uploads.ingest(user_id, pdf, title)
    finally:
        if pdf is not None:
            await pdf.close()
    return BookResponse.model_validate(book)
