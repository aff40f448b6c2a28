"""
Ebookshelf Backend: Custom Exception Hierarchy
================================================

What:  Application-specific exceptions for every error the API can report.
How:   Each exception carries a user-facing message and an optional context
       dict. Global exception handlers (registered in main.py) turn them into
       `{"error": "<message>"}` responses with the matching status code.
Who:   Raised by services, repositories and the auth dependency.

Exception Hierarchy:
    EbookshelfError (base)
    ├── ValidationError       → 400 Bad Request
    ├── AuthenticationError   → 401 Unauthorized
    ├── NotFoundError         → 404 Not Found (also "exists but not yours")
    ├── ConflictError         → 409 Conflict
    ├── BlobStorageError      → 500 Internal Server Error
    └── DatabaseError         → 500 Internal Server Error

There is no separate authorization error: ownership is part of every lookup
query, so a Book owned by someone else is simply not found.
"""

from typing import Any, Dict, Optional


class EbookshelfError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    status_code: int = 500

    def __init__(
        self,
        message: str = "Internal server error.",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(EbookshelfError):
    """
    Raised when client input fails validation or breaks a business rule.

    Examples: malformed email, short password, non-PDF upload, invalid id
    format, page beyond the end of the book.
    """

    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed.",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthenticationError(EbookshelfError):
    """
    Raised for missing, malformed or expired bearer tokens and for bad
    login credentials.

    Login uses one message for "no such user" and "wrong password" so the
    response cannot be used to probe which emails are registered.
    """

    status_code = 401

    def __init__(
        self,
        message: str = "Please authenticate.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(EbookshelfError):
    """
    Raised when a requested resource does not exist for the caller.

    Args:
        resource: Human name of the resource ("Book", "Vocab", "Note", "User").
                  The message reads "<resource> not found."
    """

    status_code = 404

    def __init__(
        self,
        resource: str = "Resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=f"{resource} not found.", context=ctx)
        self.resource = resource


class ConflictError(EbookshelfError):
    """Raised when a create would violate a uniqueness rule (duplicate email)."""

    status_code = 409

    def __init__(
        self,
        message: str = "Resource already exists.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class BlobStorageError(EbookshelfError):
    """
    Raised when the remote blob store rejects or fails an upload or delete.

    The client sees a generic message; the provider's response is kept in
    `context` for the server log.
    """

    def __init__(
        self,
        message: str = "File storage operation failed.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(EbookshelfError):
    """
    Raised when a database operation fails unexpectedly.

    Services wrap unknown exceptions in this class with a short,
    operation-specific message ("Could not add vocab.", "Upload failed.").
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
