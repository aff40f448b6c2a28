"""
Ebookshelf Backend: Book Repository
=====================================

What:  Every read and write of Book records and their embedded vocabulary
       and notes.
How:   All access goes through `_get_owned(book_id, owner_id)`, one query
       filtering on both columns. A Book that belongs to someone else is
       therefore indistinguishable from one that does not exist; both raise
       NotFoundError("Book").
Who:   Book route handlers, constructed per request with the request session
       and the blob storage client.

Write path:
    validate input → load owned Book → mutate through Book methods → flush

    The flush emits `UPDATE books ... WHERE id = :id AND version = :seen`.
    If another request changed the same Book since it was loaded, SQLAlchemy
    raises StaleDataError. The repository then rolls back, reloads and
    re-applies the change (tenacity, bounded attempts). This is the only
    automatic retry in the service.

Error Handling:
    Application exceptions (ValidationError, NotFoundError, BlobStorageError)
    propagate unchanged. Anything else is logged and wrapped in DatabaseError
    with a short message naming the failed operation.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random,
)

from ebookshelf.config import settings
from ebookshelf.exceptions import (
    DatabaseError,
    EbookshelfError,
    NotFoundError,
    ValidationError,
)
from ebookshelf.models.book import Book, Entry
from ebookshelf.services.blob_storage import BlobStorage
from ebookshelf.validation import parse_entity_id, parse_non_empty_string, parse_page

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BookRepository:
    """
    Owner-scoped access to Book aggregates.

    Args:
        db: The request's AsyncSession.
        blob_storage: Client used to remove a Book's PDF on delete.
    """

    def __init__(self, db: AsyncSession, blob_storage: BlobStorage):
        self.db = db
        self.blob_storage = blob_storage

    # ══════════════════════════════════════════════════════════════════════
    # Internals
    # ══════════════════════════════════════════════════════════════════════

    async def _get_owned(self, book_id: str, owner_id: str) -> Book:
        """
        Load a Book by id AND owner in one query.

        populate_existing: a retry after StaleDataError must see the row as
        it is now, not the copy already in the identity map.
        """
        result = await self.db.execute(
            select(Book)
            .where(Book.id == book_id, Book.owner_id == owner_id)
            .execution_options(populate_existing=True)
        )
        book = result.scalar_one_or_none()
        if book is None:
            raise NotFoundError(resource="Book", resource_id=book_id)
        return book

    async def _run(self, operation: Callable[[], Awaitable[T]], failure_message: str) -> T:
        """
        Execute a load-mutate-flush operation, retrying on write conflicts.

        Args:
            operation: Coroutine factory doing the whole unit of work. It is
                called again from scratch on every attempt.
            failure_message: Message for the DatabaseError raised when the
                operation fails for a reason that is not ours.
        """
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(StaleDataError),
                stop=stop_after_attempt(settings.conflict_retry_attempts),
                wait=wait_random(min=0, max=0.05),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    try:
                        result = await operation()
                        await self.db.flush()
                    except StaleDataError:
                        # The session is unusable after a failed flush
                        await self.db.rollback()
                        raise
            return result
        except EbookshelfError:
            raise
        except Exception as e:
            logger.error("%s (%s: %s)", failure_message, type(e).__name__, str(e), exc_info=True)
            raise DatabaseError(
                message=failure_message,
                context={"error_type": type(e).__name__},
            )

    @staticmethod
    def _require_entry(entry: Optional[Entry], resource: str, entry_id: str) -> Entry:
        if entry is None:
            raise NotFoundError(resource=resource, resource_id=entry_id)
        return entry

    # ══════════════════════════════════════════════════════════════════════
    # Books
    # ══════════════════════════════════════════════════════════════════════

    async def list_books(self, owner_id: str) -> List[Book]:
        """All Books owned by `owner_id`, newest first."""
        try:
            result = await self.db.execute(
                select(Book)
                .where(Book.owner_id == owner_id)
                .order_by(desc(Book.created_at))
            )
            return list(result.scalars().all())
        except Exception as e:
            logger.error("Database error listing books: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not fetch books.",
                context={"error_type": type(e).__name__},
            )

    async def update_progress(self, owner_id: str, book_id: str, page: Any) -> Dict[str, int]:
        """
        Set the current page.

        Returns:
            {"page": <current page>, "percent": <progress percentage>}

        Raises:
            ValidationError: Bad id, page not a non-negative integer, or page
                beyond the last page of a book with a known page count.
            NotFoundError: Book absent or not owned.
        """
        book_id = parse_entity_id(book_id, "book")
        parsed = parse_page(page)
        if parsed is None or parsed < 0:
            raise ValidationError(message="Page must be a non-negative integer.", field="page")

        async def operation() -> Dict[str, int]:
            book = await self._get_owned(book_id, owner_id)
            if not book.page_in_range(parsed):
                raise ValidationError(
                    message=f"Page cannot exceed total pages ({book.total_pages}).",
                    field="page",
                    context={"page": parsed, "total_pages": book.total_pages},
                )
            book.set_current_page(parsed)
            return {"page": book.current_page, "percent": book.progress_percentage}

        return await self._run(operation, "Update failed.")

    async def delete_book(self, owner_id: str, book_id: str) -> None:
        """
        Delete a Book and its stored PDF.

        Order: blob first, then the row. If the blob store fails, the row
        stays and BlobStorageError propagates; the client can retry, and a
        blob that is already gone counts as deleted.
        """
        book_id = parse_entity_id(book_id, "book")

        async def operation() -> None:
            book = await self._get_owned(book_id, owner_id)
            await self.blob_storage.delete(book.storage_id)
            await self.db.delete(book)

        await self._run(operation, "Delete failed.")
        logger.info("Book deleted: %s (owner %s)", book_id, owner_id)

    # ══════════════════════════════════════════════════════════════════════
    # Vocabulary
    # ══════════════════════════════════════════════════════════════════════

    async def list_vocab(self, owner_id: str, book_id: str) -> List[Entry]:
        book_id = parse_entity_id(book_id, "book")

        async def operation() -> List[Entry]:
            book = await self._get_owned(book_id, owner_id)
            return list(book.vocabulary or [])

        return await self._run(operation, "Could not fetch vocab.")

    async def add_vocab(
        self,
        owner_id: str,
        book_id: str,
        word: Any,
        definition: Any,
    ) -> List[Entry]:
        """Append an entry; returns the whole vocabulary list afterwards."""
        book_id = parse_entity_id(book_id, "book")
        word = parse_non_empty_string(word)
        if word is None:
            raise ValidationError(message="word is required.", field="word")
        definition = parse_non_empty_string(definition)
        if definition is None:
            raise ValidationError(message="definition is required.", field="definition")

        async def operation() -> List[Entry]:
            book = await self._get_owned(book_id, owner_id)
            book.add_vocab(word, definition)
            return list(book.vocabulary)

        return await self._run(operation, "Could not add vocab.")

    async def update_vocab(
        self,
        owner_id: str,
        book_id: str,
        vocab_id: str,
        word: Any = None,
        definition: Any = None,
    ) -> Entry:
        """Partial update: only the supplied, non-blank fields change."""
        book_id = parse_entity_id(book_id, "book")
        vocab_id = parse_entity_id(vocab_id, "vocab")
        word = parse_non_empty_string(word)
        definition = parse_non_empty_string(definition)
        if word is None and definition is None:
            raise ValidationError(message="At least one of word or definition is required.")

        async def operation() -> Entry:
            book = await self._get_owned(book_id, owner_id)
            updated = book.update_vocab(vocab_id, word=word, definition=definition)
            return self._require_entry(updated, "Vocab", vocab_id)

        return await self._run(operation, "Could not update vocab.")

    async def delete_vocab(self, owner_id: str, book_id: str, vocab_id: str) -> None:
        book_id = parse_entity_id(book_id, "book")
        vocab_id = parse_entity_id(vocab_id, "vocab")

        async def operation() -> None:
            book = await self._get_owned(book_id, owner_id)
            if not book.remove_vocab(vocab_id):
                raise NotFoundError(resource="Vocab", resource_id=vocab_id)

        await self._run(operation, "Could not delete vocab.")

    # ══════════════════════════════════════════════════════════════════════
    # Notes
    # ══════════════════════════════════════════════════════════════════════

    async def list_notes(self, owner_id: str, book_id: str) -> List[Entry]:
        book_id = parse_entity_id(book_id, "book")

        async def operation() -> List[Entry]:
            book = await self._get_owned(book_id, owner_id)
            return list(book.notes or [])

        return await self._run(operation, "Could not fetch notes.")

    async def add_note(self, owner_id: str, book_id: str, title: Any, content: Any) -> Entry:
        """Append a note; returns the created note including its createdAt."""
        book_id = parse_entity_id(book_id, "book")
        title = parse_non_empty_string(title)
        if title is None:
            raise ValidationError(message="title is required.", field="title")
        content = parse_non_empty_string(content)
        if content is None:
            raise ValidationError(message="content is required.", field="content")

        async def operation() -> Entry:
            book = await self._get_owned(book_id, owner_id)
            return book.add_note(title, content)

        return await self._run(operation, "Could not add note.")

    async def update_note(
        self,
        owner_id: str,
        book_id: str,
        note_id: str,
        title: Any = None,
        content: Any = None,
    ) -> Entry:
        book_id = parse_entity_id(book_id, "book")
        note_id = parse_entity_id(note_id, "note")
        title = parse_non_empty_string(title)
        content = parse_non_empty_string(content)
        if title is None and content is None:
            raise ValidationError(message="At least one of title or content is required.")

        async def operation() -> Entry:
            book = await self._get_owned(book_id, owner_id)
            updated = book.update_note(note_id, title=title, content=content)
            return self._require_entry(updated, "Note", note_id)

        return await self._run(operation, "Could not update note.")

    async def delete_note(self, owner_id: str, book_id: str, note_id: str) -> None:
        book_id = parse_entity_id(book_id, "book")
        note_id = parse_entity_id(note_id, "note")

        async def operation() -> None:
            book = await self._get_owned(book_id, owner_id)
            if not book.remove_note(note_id):
                raise NotFoundError(resource="Note", resource_id=note_id)

        await self._run(operation, "Could not delete note.")
