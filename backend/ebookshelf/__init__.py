"""
Ebookshelf Backend: Application Package
========================================

What: Marks the `ebookshelf` directory as a Python package.
Who:  Imported by uvicorn (`ebookshelf.main:app`), pytest, and every module below.

Architecture Note:
    The backend is layered:

    ┌─────────────────────────────────────┐
    │     Routes + Dependencies (API)     │  ← HTTP concerns, auth gate
    ├─────────────────────────────────────┤
    │   Services (Auth, Tokens, Upload)   │  ← orchestration, validation
    ├─────────────────────────────────────┤
    │  Repositories (Users, Books)        │  ← owner-scoped persistence
    ├─────────────────────────────────────┤
    │  Models & Schemas (Data)            │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │  Database (Persistence)             │  ← async SQLAlchemy engine
    └─────────────────────────────────────┘

    Repositories never see HTTP.
"""

__version__ = "1.0.0"
