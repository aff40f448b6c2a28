"""
Ebookshelf Backend: Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Every test that touches the database gets a fresh SQLite file
       (aiosqlite) under tmp_path, with the schema created from the models.
       Cloudinary is replaced by an in-memory FakeBlobStorage injected through
       FastAPI's dependency overrides. PDFs are generated with PyMuPDF.

Fixture Hierarchy:
    Function-scoped:
    ├── db_engine:        engine bound to a throwaway SQLite file
    ├── db_session:       AsyncSession on that engine
    ├── blob_storage:     FakeBlobStorage instance
    ├── user_id:          a persisted User
    ├── book:             a persisted 10-page Book owned by user_id
    ├── mock_db_session:  AsyncMock session for pure unit tests
    └── test_client:      HTTPX AsyncClient talking to the app in-process
"""

import os
import tempfile
from typing import Dict, Optional

# Settings are read at import time; set the environment before importing the app
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./ebookshelf_test.db"
os.environ["JWT_SECRET"] = "test-secret-not-real"
os.environ["CLOUD_NAME"] = "test-cloud"
os.environ["CLOUD_API_KEY"] = "test-key"
os.environ["CLOUD_API_SECRET"] = "test-api-secret"
os.environ["UPLOAD_TMP_DIR"] = tempfile.mkdtemp(prefix="ebookshelf_test_")
os.environ["LOG_LEVEL"] = "WARNING"

from unittest.mock import AsyncMock, MagicMock

import fitz
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from ebookshelf.database import create_schema, dispose_engine, get_session_factory, init_engine
from ebookshelf.exceptions import BlobStorageError
from ebookshelf.models.book import Book
from ebookshelf.models.user import User
from ebookshelf.services.blob_storage import BlobStorage, StoredBlob, get_blob_storage


# ══════════════════════════════════════════════════════════════════════════
# Test Doubles & Helpers
# ══════════════════════════════════════════════════════════════════════════

class FakeBlobStorage(BlobStorage):
    """
    In-memory BlobStorage.

    Attributes:
        blobs:        storage_id → uploaded bytes
        deleted:      storage ids passed to delete(), in call order
        fail_upload:  make upload() raise BlobStorageError
        fail_delete:  make delete() raise BlobStorageError
    """

    def __init__(self):
        self.blobs: Dict[str, bytes] = {}
        self.deleted = []
        self.fail_upload = False
        self.fail_delete = False
        self._counter = 0

    async def upload(self, file_path: str) -> StoredBlob:
        if self.fail_upload:
            raise BlobStorageError(message="Failed to store the uploaded PDF.")
        self._counter += 1
        storage_id = f"my_ebooks/test-{self._counter}"
        with open(file_path, "rb") as f:
            self.blobs[storage_id] = f.read()
        return StoredBlob(
            url=f"https://res.example.com/raw/upload/{storage_id}.pdf",
            storage_id=storage_id,
        )

    async def delete(self, storage_id: str) -> None:
        if self.fail_delete:
            raise BlobStorageError(message="Failed to delete the stored PDF.")
        self.deleted.append(storage_id)
        # Absent blobs count as deleted
        self.blobs.pop(storage_id, None)


def make_pdf(pages: int) -> bytes:
    """A valid PDF with `pages` blank pages."""
    doc = fitz.open()
    for _ in range(pages):
        doc.new_page()
    data = doc.tobytes()
    doc.close()
    return data


async def signup_and_login(
    client: AsyncClient,
    email: str = "reader@example.com",
    password: str = "correct-horse",
) -> Dict[str, str]:
    """Register an account and return Authorization headers for it."""
    response = await client.post("/auth/signup", json={"email": email, "password": password})
    assert response.status_code == 201, response.text
    response = await client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


async def upload_pdf(
    client: AsyncClient,
    headers: Dict[str, str],
    pages: int = 10,
    filename: str = "novel.pdf",
    title: Optional[str] = None,
):
    data = {"title": title} if title is not None else None
    return await client.post(
        "/upload-book",
        headers=headers,
        files={"pdf": (filename, make_pdf(pages), "application/pdf")},
        data=data,
    )


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine(tmp_path):
    engine = init_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await create_schema()
    yield engine
    await dispose_engine()


@pytest_asyncio.fixture
async def db_session(db_engine):
    async with get_session_factory()() as session:
        yield session


@pytest.fixture
def blob_storage():
    return FakeBlobStorage()


@pytest_asyncio.fixture
async def user_id(db_session) -> str:
    user = User(email="owner@example.com", password_hash="not-a-real-hash")
    db_session.add(user)
    await db_session.commit()
    return user.id


@pytest_asyncio.fixture
async def book(db_session, user_id) -> Book:
    book = Book(
        owner_id=user_id,
        title="Moby Dick",
        pdf_url="https://res.example.com/raw/upload/my_ebooks/moby.pdf",
        storage_id="my_ebooks/moby",
        total_pages=10,
        current_page=0,
        vocabulary=[],
        notes=[],
    )
    db_session.add(book)
    await db_session.commit()
    return book


@pytest.fixture
def mock_db_session():
    """
    AsyncMock standing in for AsyncSession.

    Usage:
        mock_db_session.commit.side_effect = SQLAlchemyError("down")
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.refresh = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest_asyncio.fixture
async def test_client(db_engine, blob_storage):
    """
    HTTPX AsyncClient routed straight into the ASGI app.

    ASGITransport does not run the lifespan; db_engine provides the engine.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from ebookshelf.main import app

    app.dependency_overrides[get_blob_storage] = lambda: blob_storage
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
