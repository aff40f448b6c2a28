"""
Ebookshelf Backend: Input Normalization Helpers
=================================================

Small, pure functions shared by the services and repositories. They return
None for unusable input and leave the choice of error message to the caller.
"""

import math
import re
import uuid
from typing import Any, Optional

from ebookshelf.exceptions import ValidationError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email))


def parse_non_empty_string(value: Any) -> Optional[str]:
    """Trimmed string, or None for non-strings and blank strings."""
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def parse_page(value: Any) -> Optional[int]:
    """
    Interpret a page number from a JSON body.

    Accepts ints, integral floats (5.0) and numeric strings ("5").
    Rejects booleans, fractions, blanks and non-finite values.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        try:
            value = float(value)
        except ValueError:
            return None
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return int(value)
    return None


def parse_entity_id(value: str, label: str) -> str:
    """
    Validate an id taken from the URL path.

    Args:
        value: Raw path segment.
        label: Name used in the error message ("book" → "Invalid book ID.").

    Returns:
        The canonical (lowercase, hyphenated) UUID string.

    Raises:
        ValidationError: If `value` is not a UUID.
    """
    try:
        return str(uuid.UUID(value))
    except (TypeError, ValueError, AttributeError):
        raise ValidationError(
            message=f"Invalid {label} ID.",
            field=f"{label}_id",
            context={"value": value},
        )
