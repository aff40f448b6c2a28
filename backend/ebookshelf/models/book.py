"""
Ebookshelf Backend: Book SQLAlchemy Model (Aggregate Root)
============================================================

What:  ORM model for the `books` table. A Book owns its vocabulary entries
       and notes, stored embedded in the row as JSON arrays.
How:   Vocabulary and notes have no table of their own. Every change to them
       goes through a method on Book, which builds a new list and assigns it
       back so SQLAlchemy sees the column as dirty.
Who:   Created by UploadService; read and mutated by BookRepository.

Embedded entry shapes:
    vocabulary: [{"id": str, "word": str, "definition": str}, ...]
    notes:      [{"id": str, "title": str, "content": str, "createdAt": ISO-8601}, ...]

Concurrency:
    `version` is SQLAlchemy's version_id_col. Every UPDATE/DELETE carries
    `WHERE version = <value read>`, so when two requests append to the same
    Book the slower one fails with StaleDataError instead of overwriting the
    other's entry. BookRepository retries on that error.
"""

import math
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ebookshelf.database import Base

Entry = Dict[str, Any]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Book(Base):
    """
    A PDF uploaded by one user, with that user's reading progress.

    Invariants:
        - owner_id never changes after creation
        - current_page <= total_pages whenever total_pages > 0
        - entry ids are unique within their collection
    """

    __tablename__ = "books"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    owner_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(512), nullable=False)

    # ── File Reference ────────────────────────────────────────────────────
    # Durable URL plus the provider's id, needed to destroy the blob later
    pdf_url: Mapped[str] = mapped_column(Text, nullable=False)
    storage_id: Mapped[str] = mapped_column(String(255), nullable=False)

    # ── Progress ──────────────────────────────────────────────────────────
    total_pages: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_page: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # ── Embedded Collections ──────────────────────────────────────────────
    vocabulary: Mapped[List[Entry]] = mapped_column(JSON, nullable=False, default=list)
    notes: Mapped[List[Entry]] = mapped_column(JSON, nullable=False, default=list)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __mapper_args__ = {"version_id_col": version}

    # Listing is always "this owner's books, newest first"
    __table_args__ = (
        Index("idx_books_owner_created_at", "owner_id", created_at.desc()),
    )

    # ── Progress ──────────────────────────────────────────────────────────

    @property
    def progress_percentage(self) -> int:
        """
        Percentage read, rounded half up. 0 when the page count is unknown.

        Example: total_pages=8, current_page=1 → 12.5 → 13
        """
        if not self.total_pages:
            return 0
        return math.floor(self.current_page / self.total_pages * 100 + 0.5)

    def page_in_range(self, page: int) -> bool:
        total = self.total_pages or 0
        return page >= 0 and (total <= 0 or page <= total)

    def set_current_page(self, page: int) -> None:
        if not self.page_in_range(page):
            raise ValueError(f"page {page} outside 0..{self.total_pages}")
        self.current_page = page

    # ── Vocabulary ────────────────────────────────────────────────────────

    def add_vocab(self, word: str, definition: str) -> Entry:
        entry = {
            "id": self._new_entry_id(self.vocabulary),
            "word": word,
            "definition": definition,
        }
        self.vocabulary = [*(self.vocabulary or []), entry]
        return entry

    def find_vocab(self, vocab_id: str) -> Optional[Entry]:
        return _find(self.vocabulary, vocab_id)

    def update_vocab(
        self,
        vocab_id: str,
        word: Optional[str] = None,
        definition: Optional[str] = None,
    ) -> Optional[Entry]:
        """Apply a partial update; returns the updated entry or None if absent."""
        changes = {"word": word, "definition": definition}
        entries, updated = _replace(self.vocabulary, vocab_id, changes)
        if updated is not None:
            self.vocabulary = entries
        return updated

    def remove_vocab(self, vocab_id: str) -> bool:
        entries, removed = _remove(self.vocabulary, vocab_id)
        if removed:
            self.vocabulary = entries
        return removed

    # ── Notes ─────────────────────────────────────────────────────────────

    def add_note(self, title: str, content: str) -> Entry:
        # createdAt is fixed here and never rewritten by update_note
        entry = {
            "id": self._new_entry_id(self.notes),
            "title": title,
            "content": content,
            "createdAt": _utcnow().isoformat(),
        }
        self.notes = [*(self.notes or []), entry]
        return entry

    def find_note(self, note_id: str) -> Optional[Entry]:
        return _find(self.notes, note_id)

    def update_note(
        self,
        note_id: str,
        title: Optional[str] = None,
        content: Optional[str] = None,
    ) -> Optional[Entry]:
        changes = {"title": title, "content": content}
        entries, updated = _replace(self.notes, note_id, changes)
        if updated is not None:
            self.notes = entries
        return updated

    def remove_note(self, note_id: str) -> bool:
        entries, removed = _remove(self.notes, note_id)
        if removed:
            self.notes = entries
        return removed

    @staticmethod
    def _new_entry_id(entries: Optional[List[Entry]]) -> str:
        taken = {entry["id"] for entry in entries or []}
        while True:
            candidate = str(uuid.uuid4())
            if candidate not in taken:
                return candidate

    def __repr__(self) -> str:
        return (
            f"<Book(id={self.id}, owner_id={self.owner_id}, "
            f"pages={self.current_page}/{self.total_pages})>"
        )


# ── Embedded collection helpers ──────────────────────────────────────────
# All return new lists; the stored list is never mutated in place.

def _find(entries: Optional[List[Entry]], entry_id: str) -> Optional[Entry]:
    for entry in entries or []:
        if entry["id"] == entry_id:
            return dict(entry)
    return None


def _replace(
    entries: Optional[List[Entry]],
    entry_id: str,
    changes: Dict[str, Optional[str]],
) -> Tuple[List[Entry], Optional[Entry]]:
    result: List[Entry] = []
    updated: Optional[Entry] = None
    for entry in entries or []:
        if entry["id"] == entry_id:
            entry = {**entry, **{k: v for k, v in changes.items() if v is not None}}
            updated = entry
        result.append(entry)
    return result, updated


def _remove(entries: Optional[List[Entry]], entry_id: str) -> Tuple[List[Entry], bool]:
    result = [entry for entry in entries or [] if entry["id"] != entry_id]
    return result, len(result) != len(entries or [])
