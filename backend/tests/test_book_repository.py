"""
Ebookshelf Backend: Book Repository Tests
===========================================

What:  Owner scoping, reading progress, vocabulary and notes, book deletion,
       and the retry on concurrent writes to the same Book.
How:   Real SQLite database per test; FakeBlobStorage for the PDF store.

What we test:
    ✅ Another user's book behaves exactly like a missing one
    ✅ Progress validation and percentage
    ✅ Vocabulary/notes add, list, partial update, delete
    ✅ A concurrent append is not lost (StaleDataError → reload → re-apply)
    ✅ Blob deletion failure keeps the row
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.orm.exc import StaleDataError

from ebookshelf.config import settings
from ebookshelf.database import get_session_factory
from ebookshelf.exceptions import (
    BlobStorageError,
    DatabaseError,
    NotFoundError,
    ValidationError,
)
from ebookshelf.models.book import Book
from ebookshelf.models.user import User
from ebookshelf.repositories.book_repository import BookRepository

MISSING_ID = "00000000-0000-4000-8000-000000000000"


@pytest.fixture
def repo(db_session, blob_storage):
    return BookRepository(db_session, blob_storage)


async def add_book(db_session, owner_id, title, total_pages=10, created_at=None) -> Book:
    book = Book(
        owner_id=owner_id,
        title=title,
        pdf_url=f"https://res.example.com/{title}.pdf",
        storage_id=f"my_ebooks/{title}",
        total_pages=total_pages,
        current_page=0,
        vocabulary=[],
        notes=[],
    )
    if created_at is not None:
        book.created_at = created_at
    db_session.add(book)
    await db_session.commit()
    return book


@pytest_asyncio.fixture
async def other_user_id(db_session) -> str:
    user = User(email="intruder@example.com", password_hash="not-a-real-hash")
    db_session.add(user)
    await db_session.commit()
    return user.id


class TestOwnership:

    @pytest.mark.asyncio
    async def test_list_books_only_returns_own_books_newest_first(
        self, repo, db_session, user_id, other_user_id
    ):
        now = datetime.now(timezone.utc)
        await add_book(db_session, user_id, "older", created_at=now - timedelta(hours=1))
        await add_book(db_session, user_id, "newer", created_at=now)
        await add_book(db_session, other_user_id, "theirs")

        books = await repo.list_books(user_id)

        assert [b.title for b in books] == ["newer", "older"]

    @pytest.mark.asyncio
    async def test_foreign_book_is_not_found_for_every_operation(
        self, repo, book, other_user_id, blob_storage
    ):
        operations = [
            repo.update_progress(other_user_id, book.id, 1),
            repo.list_vocab(other_user_id, book.id),
            repo.add_vocab(other_user_id, book.id, "w", "d"),
            repo.list_notes(other_user_id, book.id),
            repo.add_note(other_user_id, book.id, "t", "c"),
            repo.delete_book(other_user_id, book.id),
        ]
        for operation in operations:
            with pytest.raises(NotFoundError) as exc_info:
                await operation
            assert exc_info.value.message == "Book not found."

        assert blob_storage.deleted == []

    @pytest.mark.asyncio
    async def test_missing_book(self, repo, user_id):
        with pytest.raises(NotFoundError):
            await repo.list_notes(user_id, MISSING_ID)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_id", ["not-a-uuid", "123", ""])
    async def test_malformed_book_id(self, repo, user_id, bad_id):
        with pytest.raises(ValidationError) as exc_info:
            await repo.list_vocab(user_id, bad_id)
        assert exc_info.value.message == "Invalid book ID."


class TestProgress:

    @pytest.mark.asyncio
    async def test_update_progress_returns_page_and_percent(self, repo, book, user_id):
        assert await repo.update_progress(user_id, book.id, 5) == {"page": 5, "percent": 50}
        assert await repo.update_progress(user_id, book.id, "10") == {"page": 10, "percent": 100}

    @pytest.mark.asyncio
    async def test_setting_the_same_page_twice_is_idempotent(self, repo, book, user_id):
        first = await repo.update_progress(user_id, book.id, 7)
        second = await repo.update_progress(user_id, book.id, 7)
        assert first == second == {"page": 7, "percent": 70}

    @pytest.mark.asyncio
    async def test_page_beyond_total_rejected(self, repo, book, user_id):
        with pytest.raises(ValidationError) as exc_info:
            await repo.update_progress(user_id, book.id, 11)
        assert exc_info.value.message == "Page cannot exceed total pages (10)."

    @pytest.mark.asyncio
    @pytest.mark.parametrize("page", [-1, 2.5, "abc", None, True])
    async def test_invalid_page_rejected(self, repo, book, user_id, page):
        with pytest.raises(ValidationError) as exc_info:
            await repo.update_progress(user_id, book.id, page)
        assert exc_info.value.message == "Page must be a non-negative integer."

    @pytest.mark.asyncio
    async def test_unknown_page_count_accepts_any_page(self, repo, db_session, user_id):
        book = await add_book(db_session, user_id, "unparsed", total_pages=0)
        assert await repo.update_progress(user_id, book.id, 250) == {"page": 250, "percent": 0}


class TestVocabulary:

    @pytest.mark.asyncio
    async def test_add_update_delete_round(self, repo, book, user_id):
        vocabulary = await repo.add_vocab(user_id, book.id, "  ephemeral ", "short-lived")
        assert len(vocabulary) == 1
        entry = vocabulary[0]
        assert entry["word"] == "ephemeral"

        updated = await repo.update_vocab(user_id, book.id, entry["id"], definition="fleeting")
        assert updated == {"id": entry["id"], "word": "ephemeral", "definition": "fleeting"}
        assert await repo.list_vocab(user_id, book.id) == [updated]

        await repo.delete_vocab(user_id, book.id, entry["id"])
        assert await repo.list_vocab(user_id, book.id) == []

    @pytest.mark.asyncio
    async def test_add_requires_both_fields(self, repo, book, user_id):
        with pytest.raises(ValidationError) as exc_info:
            await repo.add_vocab(user_id, book.id, "  ", "d")
        assert exc_info.value.message == "word is required."
        with pytest.raises(ValidationError) as exc_info:
            await repo.add_vocab(user_id, book.id, "w", None)
        assert exc_info.value.message == "definition is required."

    @pytest.mark.asyncio
    async def test_update_requires_a_field(self, repo, book, user_id):
        with pytest.raises(ValidationError) as exc_info:
            await repo.update_vocab(user_id, book.id, MISSING_ID, word=" ", definition=None)
        assert exc_info.value.message == "At least one of word or definition is required."

    @pytest.mark.asyncio
    async def test_unknown_entry(self, repo, book, user_id):
        with pytest.raises(NotFoundError) as exc_info:
            await repo.update_vocab(user_id, book.id, MISSING_ID, word="w")
        assert exc_info.value.message == "Vocab not found."
        with pytest.raises(NotFoundError):
            await repo.delete_vocab(user_id, book.id, MISSING_ID)

    @pytest.mark.asyncio
    async def test_malformed_entry_id(self, repo, book, user_id):
        with pytest.raises(ValidationError) as exc_info:
            await repo.delete_vocab(user_id, book.id, "nope")
        assert exc_info.value.message == "Invalid vocab ID."


class TestNotes:

    @pytest.mark.asyncio
    async def test_add_update_delete_round(self, repo, book, user_id):
        note = await repo.add_note(user_id, book.id, "Chapter 1", "Call me Ishmael.")
        assert note["createdAt"]

        updated = await repo.update_note(user_id, book.id, note["id"], title="Ch. 1")
        assert updated["content"] == "Call me Ishmael."
        assert updated["createdAt"] == note["createdAt"]

        await repo.delete_note(user_id, book.id, note["id"])
        assert await repo.list_notes(user_id, book.id) == []

    @pytest.mark.asyncio
    async def test_update_requires_a_field(self, repo, book, user_id):
        with pytest.raises(ValidationError) as exc_info:
            await repo.update_note(user_id, book.id, MISSING_ID)
        assert exc_info.value.message == "At least one of title or content is required."

    @pytest.mark.asyncio
    async def test_unknown_note(self, repo, book, user_id):
        with pytest.raises(NotFoundError) as exc_info:
            await repo.delete_note(user_id, book.id, MISSING_ID)
        assert exc_info.value.message == "Note not found."


class TestConcurrentWrites:

    @pytest.mark.asyncio
    async def test_concurrent_append_is_not_lost(
        self, repo, db_session, book, user_id, blob_storage, monkeypatch
    ):
        book_id = book.id
        original_flush = db_session.flush
        raced = False

        async def racing_flush(*args, **kwargs):
            # A second request appends to the same Book between our read and our write
            nonlocal raced
            if not raced:
                raced = True
                async with get_session_factory()() as other:
                    await BookRepository(other, blob_storage).add_vocab(
                        user_id, book_id, "rival", "written concurrently"
                    )
                    await other.commit()
            return await original_flush(*args, **kwargs)

        monkeypatch.setattr(db_session, "flush", racing_flush)

        vocabulary = await repo.add_vocab(user_id, book_id, "mine", "written here")
        await db_session.commit()

        assert sorted(v["word"] for v in vocabulary) == ["mine", "rival"]
        assert sorted(v["word"] for v in await repo.list_vocab(user_id, book_id)) == ["mine", "rival"]

    @pytest.mark.asyncio
    async def test_gives_up_after_bounded_attempts(self, repo, db_session, book, user_id, monkeypatch):
        book_id = book.id
        flush = AsyncMock(side_effect=StaleDataError("conflict"))
        monkeypatch.setattr(db_session, "flush", flush)

        with pytest.raises(DatabaseError) as exc_info:
            await repo.add_vocab(user_id, book_id, "w", "d")

        assert exc_info.value.message == "Could not add vocab."
        assert flush.await_count == settings.conflict_retry_attempts


class TestDeleteBook:

    @pytest.mark.asyncio
    async def test_delete_removes_blob_then_row(self, repo, book, user_id, blob_storage):
        book_id = book.id
        await repo.delete_book(user_id, book_id)

        assert blob_storage.deleted == ["my_ebooks/moby"]
        assert await repo.list_books(user_id) == []

    @pytest.mark.asyncio
    async def test_blob_failure_keeps_the_row(self, repo, book, user_id, blob_storage):
        book_id = book.id
        blob_storage.fail_delete = True

        with pytest.raises(BlobStorageError):
            await repo.delete_book(user_id, book_id)

        assert [b.id for b in await repo.list_books(user_id)] == [book_id]
