"""
Ebookshelf Backend: Request Dependencies
==========================================

What:  FastAPI dependencies shared by the routers: the authenticated user id
       and per-request service/repository instances.
How:   `get_current_user_id` reads `Authorization: Bearer <token>` and asks
       the TokenService for the id inside. The factories bind the request
       session and the process-wide blob storage client.

Authentication failures:
    - no header, non-Bearer scheme, empty token → 401 "Please authenticate."
    - bad or expired token                       → 401 "Invalid token."
"""

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from ebookshelf.database import get_db_session
from ebookshelf.exceptions import AuthenticationError
from ebookshelf.repositories.book_repository import BookRepository
from ebookshelf.repositories.user_repository import UserRepository
from ebookshelf.services.auth_service import AuthService
from ebookshelf.services.blob_storage import BlobStorage, get_blob_storage
from ebookshelf.services.token_service import TokenService, get_token_service
from ebookshelf.services.upload_service import UploadService

BEARER_PREFIX = "Bearer "


def get_current_user_id(
    authorization: Optional[str] = Header(None),
    tokens: TokenService = Depends(get_token_service),
) -> str:
    """Require a valid bearer token; returns the caller's user id."""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise AuthenticationError()
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise AuthenticationError()
    return tokens.verify(token)


def get_auth_service(
    db: AsyncSession = Depends(get_db_session),
    tokens: TokenService = Depends(get_token_service),
) -> AuthService:
    return AuthService(UserRepository(db), tokens)


def get_book_repository(
    db: AsyncSession = Depends(get_db_session),
    blob_storage: BlobStorage = Depends(get_blob_storage),
) -> BookRepository:
    return BookRepository(db, blob_storage)


def get_upload_service(
    db: AsyncSession = Depends(get_db_session),
    blob_storage: BlobStorage = Depends(get_blob_storage),
) -> UploadService:
    return UploadService(db, blob_storage)
