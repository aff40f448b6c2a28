"""
Ebookshelf Backend: User Repository (Credential Store)
========================================================

What:  Reads and writes User rows. Knows nothing about passwords beyond
       storing the hash it is given.
Who:   AuthService.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ebookshelf.exceptions import ConflictError
from ebookshelf.models.user import User

logger = logging.getLogger(__name__)


class UserRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_email(self, email: str) -> Optional[User]:
        """Look up a user by an already-normalized email."""
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def get_by_id(self, user_id: str) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def create(self, email: str, password_hash: str) -> User:
        """
        Insert a new user.

        Raises:
            ConflictError: If the email is already taken. Covers the race
                where two signups for the same address pass the lookup at
                the same time; the unique index decides.
        """
        user = User(email=email, password_hash=password_hash)
        self.db.add(user)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError(message="Email already in use.", context={"email": email})
        logger.info("User created: %s", user.id)
        return user

    async def set_password_hash(self, user: User, password_hash: str) -> None:
        user.password_hash = password_hash
        await self.db.flush()
