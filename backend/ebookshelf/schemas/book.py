"""
Ebookshelf Backend: Book Request/Response Schemas
===================================================

What:  Pydantic models defining the JSON contract for books, reading
       progress, vocabulary and notes.
How:   Fields are snake_case in Python and camelCase on the wire
       (`total_pages` ↔ `totalPages`) via an alias generator. Responses are
       built straight from ORM objects (`from_attributes`), including the
       computed `progress_percentage` property.

Request bodies declare every field optional: presence, emptiness and
trimming are checked in the repository so each failure gets its own
message ("word is required.", "definition is required.").
"""

from datetime import datetime
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for every wire model: camelCase aliases, snake_case attributes."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ══════════════════════════════════════════════════════════════════════════
# Embedded Entries
# ══════════════════════════════════════════════════════════════════════════


class VocabEntry(CamelModel):
    id: str = Field(description="Entry id, unique within its book")
    word: str
    definition: str


class NoteEntry(CamelModel):
    id: str = Field(description="Entry id, unique within its book")
    title: str
    content: str
    created_at: datetime = Field(description="When the note was added (UTC)")


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class BookResponse(CamelModel):
    """
    Full representation of a book, as returned by upload and listing.

    progress_percentage is derived on every read and never stored.
    """

    id: str
    title: str
    pdf_url: str = Field(description="Durable URL of the stored PDF")
    storage_id: str = Field(description="Blob store id of the stored PDF")
    total_pages: int
    current_page: int
    progress_percentage: int = Field(description="round(currentPage / totalPages * 100), 0 if unknown")
    owner_id: str
    vocabulary: List[VocabEntry] = Field(default_factory=list)
    notes: List[NoteEntry] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class ProgressResponse(CamelModel):
    page: int
    percent: int


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class ProgressUpdate(CamelModel):
    # Any: integers, integral floats and numeric strings are all accepted
    page: Any = None


# Text fields are untyped; the repository reports a non-string as a missing field

class VocabCreate(CamelModel):
    word: Any = None
    definition: Any = None


class VocabUpdate(CamelModel):
    word: Any = None
    definition: Any = None


class NoteCreate(CamelModel):
    title: Any = None
    content: Any = None


class NoteUpdate(CamelModel):
    title: Any = None
    content: Any = None
