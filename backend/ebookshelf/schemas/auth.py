"""
Ebookshelf Backend: Auth Request/Response Schemas
===================================================

What:  Request bodies and responses for /auth/* routes.
"""

from typing import Any

from pydantic import Field

from ebookshelf.schemas.book import CamelModel


# Fields are untyped so a wrong JSON type gets the same message as a missing field

class SignupRequest(CamelModel):
    email: Any = None
    password: Any = None


class LoginRequest(CamelModel):
    email: Any = None
    password: Any = None


class ChangePasswordRequest(CamelModel):
    old_password: Any = None
    new_password: Any = None


class TokenResponse(CamelModel):
    token: str = Field(description="Signed bearer token, valid for 7 days")
    user_id: str
