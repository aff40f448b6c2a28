"""
Ebookshelf Backend: Book Route Handlers
=========================================

What:  Reading progress, vocabulary and notes for the caller's books, plus
       book listing and deletion.
How:   Every handler resolves the caller from the bearer token and passes
       the id to BookRepository, which scopes each lookup to that owner.
       A book owned by someone else answers exactly like a missing one (404).

Route Inventory:
    GET    /books
    DELETE /books/{book_id}
    PATCH  /books/{book_id}/progress
    GET    /books/{book_id}/vocab
    POST   /books/{book_id}/vocab
    PATCH  /books/{book_id}/vocab/{vocab_id}
    DELETE /books/{book_id}/vocab/{vocab_id}
    GET    /books/{book_id}/notes
    POST   /books/{book_id}/notes
    PATCH  /books/{book_id}/notes/{note_id}
    DELETE /books/{book_id}/notes/{note_id}
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends

from ebookshelf.dependencies import get_book_repository, get_current_user_id
from ebookshelf.repositories.book_repository import BookRepository
from ebookshelf.schemas.book import (
    BookResponse,
    NoteCreate,
    NoteEntry,
    NoteUpdate,
    ProgressResponse,
    ProgressUpdate,
    VocabCreate,
    VocabEntry,
    VocabUpdate,
)
from ebookshelf.schemas.common import ErrorResponse, MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/books", tags=["Books"])

_ERRORS = {
    400: {"description": "Invalid id or body", "model": ErrorResponse},
    401: {"description": "Missing or invalid token", "model": ErrorResponse},
    404: {"description": "Book or entry not found", "model": ErrorResponse},
    500: {"description": "Server error", "model": ErrorResponse},
}


# ══════════════════════════════════════════════════════════════════════════
# Books
# ══════════════════════════════════════════════════════════════════════════


@router.get(
    "",
    response_model=List[BookResponse],
    responses={401: _ERRORS[401], 500: _ERRORS[500]},
    summary="List the caller's books, newest first",
)
async def list_books(
    user_id: str = Depends(get_current_user_id),
    books: BookRepository = Depends(get_book_repository),
) -> List[BookResponse]:
    return [BookResponse.model_validate(book) for book in await books.list_books(user_id)]


@router.delete(
    "/{book_id}",
    response_model=MessageResponse,
    responses=_ERRORS,
    summary="Delete a book and its stored PDF",
)
async def delete_book(
    book_id: str,
    user_id: str = Depends(get_current_user_id),
    books: BookRepository = Depends(get_book_repository),
) -> MessageResponse:
    await books.delete_book(user_id, book_id)
    return MessageResponse(message="Book deleted.")


@router.patch(
    "/{book_id}/progress",
    response_model=ProgressResponse,
    responses=_ERRORS,
    summary="Set the current page",
)
async def update_progress(
    book_id: str,
    payload: Optional[ProgressUpdate] = None,
    user_id: str = Depends(get_current_user_id),
    books: BookRepository = Depends(get_book_repository),
) -> ProgressResponse:
    payload = payload or ProgressUpdate()
    result = await books.update_progress(user_id, book_id, payload.page)
    return ProgressResponse(**result)


# ══════════════════════════════════════════════════════════════════════════
# Vocabulary
# ══════════════════════════════════════════════════════════════════════════


@router.get(
    "/{book_id}/vocab",
    response_model=List[VocabEntry],
    responses=_ERRORS,
    summary="List a book's vocabulary",
)
async def list_vocab(
    book_id: str,
    user_id: str = Depends(get_current_user_id),
    books: BookRepository = Depends(get_book_repository),
) -> List[VocabEntry]:
    return [VocabEntry.model_validate(entry) for entry in await books.list_vocab(user_id, book_id)]


@router.post(
    "/{book_id}/vocab",
    response_model=List[VocabEntry],
    responses=_ERRORS,
    summary="Add a vocabulary entry; returns the whole list",
)
async def add_vocab(
    book_id: str,
    payload: Optional[VocabCreate] = None,
    user_id: str = Depends(get_current_user_id),
    books: BookRepository = Depends(get_book_repository),
) -> List[VocabEntry]:
    payload = payload or VocabCreate()
    vocabulary = await books.add_vocab(user_id, book_id, payload.word, payload.definition)
    return [VocabEntry.model_validate(entry) for entry in vocabulary]


@router.patch(
    "/{book_id}/vocab/{vocab_id}",
    response_model=VocabEntry,
    responses=_ERRORS,
    summary="Edit a vocabulary entry",
)
async def update_vocab(
    book_id: str,
    vocab_id: str,
    payload: Optional[VocabUpdate] = None,
    user_id: str = Depends(get_current_user_id),
    books: BookRepository = Depends(get_book_repository),
) -> VocabEntry:
    payload = payload or VocabUpdate()
    entry = await books.update_vocab(
        user_id, book_id, vocab_id, word=payload.word, definition=payload.definition
    )
    return VocabEntry.model_validate(entry)


@router.delete(
    "/{book_id}/vocab/{vocab_id}",
    response_model=MessageResponse,
    responses=_ERRORS,
    summary="Delete a vocabulary entry",
)
async def delete_vocab(
    book_id: str,
    vocab_id: str,
    user_id: str = Depends(get_current_user_id),
    books: BookRepository = Depends(get_book_repository),
) -> MessageResponse:
    await books.delete_vocab(user_id, book_id, vocab_id)
    return MessageResponse(message="Vocab deleted.")


# ══════════════════════════════════════════════════════════════════════════
# Notes
# ══════════════════════════════════════════════════════════════════════════


@router.get(
    "/{book_id}/notes",
    response_model=List[NoteEntry],
    responses=_ERRORS,
    summary="List a book's notes",
)
async def list_notes(
    book_id: str,
    user_id: str = Depends(get_current_user_id),
    books: BookRepository = Depends(get_book_repository),
) -> List[NoteEntry]:
    return [NoteEntry.model_validate(entry) for entry in await books.list_notes(user_id, book_id)]


@router.post(
    "/{book_id}/notes",
    status_code=201,
    response_model=NoteEntry,
    responses=_ERRORS,
    summary="Add a note",
)
async def add_note(
    book_id: str,
    payload: Optional[NoteCreate] = None,
    user_id: str = Depends(get_current_user_id),
    books: BookRepository = Depends(get_book_repository),
) -> NoteEntry:
    payload = payload or NoteCreate()
    entry = await books.add_note(user_id, book_id, payload.title, payload.content)
    return NoteEntry.model_validate(entry)


@router.patch(
    "/{book_id}/notes/{note_id}",
    response_model=NoteEntry,
    responses=_ERRORS,
    summary="Edit a note",
)
async def update_note(
    book_id: str,
    note_id: str,
    payload: Optional[NoteUpdate] = None,
    user_id: str = Depends(get_current_user_id),
    books: BookRepository = Depends(get_book_repository),
) -> NoteEntry:
    payload = payload or NoteUpdate()
    entry = await books.update_note(
        user_id, book_id, note_id, title=payload.title, content=payload.content
    )
    return NoteEntry.model_validate(entry)


@router.delete(
    "/{book_id}/notes/{note_id}",
    response_model=MessageResponse,
    responses=_ERRORS,
    summary="Delete a note",
)
async def delete_note(
    book_id: str,
    note_id: str,
    user_id: str = Depends(get_current_user_id),
    books: BookRepository = Depends(get_book_repository),
) -> MessageResponse:
    await books.delete_note(user_id, book_id, note_id)
    return MessageResponse(message="Note deleted.")
