"""
Ebookshelf Backend: Auth Service
==================================

What:  Signup, login and change-password.
How:   Passwords are hashed with argon2 (argon2-cffi). Hashing and
       verification are CPU-bound, so they run in a worker thread to keep the
       event loop free. Emails are trimmed and lowercased before every lookup.
Who:   /auth/* route handlers, constructed per request.

Validation order:
    Input shape and rules are checked first; the database is only touched
    once the request is known to be well-formed.
"""

import asyncio
import logging

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from ebookshelf.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from ebookshelf.repositories.user_repository import UserRepository
from ebookshelf.schemas.auth import TokenResponse
from ebookshelf.services.token_service import TokenService
from ebookshelf.validation import is_valid_email, normalize_email, parse_non_empty_string

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8

# One message for "unknown email" and "wrong password"
INVALID_CREDENTIALS = "Invalid login credentials."

ph = PasswordHasher()


async def hash_password(password: str) -> str:
    return await asyncio.to_thread(ph.hash, password)


async def verify_password(password: str, password_hash: str) -> bool:
    def _verify() -> bool:
        try:
            return ph.verify(password_hash, password)
        except (VerifyMismatchError, VerificationError, InvalidHashError):
            return False

    return await asyncio.to_thread(_verify)


def _present(value: object) -> bool:
    # Signup and login compare passwords verbatim
    return isinstance(value, str) and value != ""


class AuthService:
    """
    Args:
        users: Credential store bound to the request session.
        tokens: Signs the token returned by login.
    """

    def __init__(self, users: UserRepository, tokens: TokenService):
        self.users = users
        self.tokens = tokens

    async def signup(self, email: object, password: object) -> None:
        """
        Register a new account.

        Raises:
            ValidationError: Missing fields, malformed email, short password.
            ConflictError: Email already registered.
        """
        if not _present(email) or not _present(password):
            raise ValidationError(message="Email and password are required.")

        normalized = normalize_email(email)
        if not is_valid_email(normalized):
            raise ValidationError(message="Invalid email format.", field="email")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                message=f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.",
                field="password",
            )

        if await self.users.get_by_email(normalized) is not None:
            raise ConflictError(message="Email already in use.")

        await self.users.create(normalized, await hash_password(password))

    async def login(self, email: object, password: object) -> TokenResponse:
        """
        Exchange credentials for a bearer token.

        Raises:
            ValidationError: Missing fields.
            AuthenticationError: Unknown email or wrong password (same message).
        """
        if not _present(email) or not _present(password):
            raise ValidationError(message="Email and password are required.")

        user = await self.users.get_by_email(normalize_email(email))
        if user is None or not await verify_password(password, user.password_hash):
            raise AuthenticationError(message=INVALID_CREDENTIALS)

        logger.info("User logged in: %s", user.id)
        return TokenResponse(token=self.tokens.issue(user.id), user_id=user.id)

    async def change_password(
        self,
        user_id: str,
        old_password: object,
        new_password: object,
    ) -> None:
        """
        Replace the caller's password after checking the current one.

        Raises:
            ValidationError: Missing fields, short or unchanged new password,
                or an incorrect old password.
            NotFoundError: The token's user no longer exists.
        """
        old_password = parse_non_empty_string(old_password)
        new_password = parse_non_empty_string(new_password)
        if old_password is None or new_password is None:
            raise ValidationError(message="oldPassword and newPassword are required.")
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                message=f"New password must be at least {MIN_PASSWORD_LENGTH} characters long.",
                field="newPassword",
            )
        if old_password == new_password:
            raise ValidationError(
                message="New password must be different from old password.",
                field="newPassword",
            )

        user = await self.users.get_by_id(user_id)
        if user is None:
            raise NotFoundError(resource="User", resource_id=user_id)

        if not await verify_password(old_password, user.password_hash):
            raise ValidationError(message="Old password is incorrect.", field="oldPassword")

        await self.users.set_password_hash(user, await hash_password(new_password))
        logger.info("Password changed for user %s", user.id)
