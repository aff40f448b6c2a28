"""
Ebookshelf Backend: User SQLAlchemy Model
===========================================

What:  ORM model for the `users` table (the credential store).
How:   Email is stored trimmed and lowercased, so the unique constraint on
       the column is effectively case-insensitive.
Who:   Written by AuthService through UserRepository.

Lifecycle:
    1. Created on signup
    2. password_hash replaced by change-password
    3. Never deleted by any API operation
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from ebookshelf.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    # argon2 encoded hash (algorithm, parameters, salt and digest in one string)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"
