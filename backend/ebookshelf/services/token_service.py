"""
Ebookshelf Backend: Bearer Token Service
==========================================

What:  Issues and verifies signed identity tokens (JWT, HS256).
How:   The payload is `{"id": <user id>, "iat": ..., "exp": ...}`; expiry is
       `settings.token_ttl_days` (7 days) after issue. PyJWT checks the
       signature and `exp` on decode.
Who:   AuthService.login issues; the `get_current_user_id` dependency verifies.

Every verification failure (bad signature, expired, malformed, missing id)
raises the same AuthenticationError("Invalid token.").
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from ebookshelf.config import Settings, settings
from ebookshelf.exceptions import AuthenticationError

logger = logging.getLogger(__name__)


class TokenService:

    def __init__(self, config: Optional[Settings] = None):
        config = config or settings
        self.secret = config.jwt_secret
        self.algorithm = config.jwt_algorithm
        self.ttl = timedelta(days=config.token_ttl_days)

    def issue(self, user_id: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {"id": user_id, "iat": now, "exp": now + self.ttl}
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> str:
        """
        Validate `token` and return the user id it carries.

        Raises:
            AuthenticationError: For any invalid, expired or id-less token.
        """
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["exp"]},
            )
        except jwt.PyJWTError as e:
            logger.debug("Token rejected: %s", str(e))
            raise AuthenticationError(message="Invalid token.")

        user_id = payload.get("id")
        if not user_id:
            raise AuthenticationError(message="Invalid token.")
        return str(user_id)


_default_tokens: Optional[TokenService] = None


def get_token_service() -> TokenService:
    """FastAPI dependency returning the process-wide TokenService."""
    global _default_tokens
    if _default_tokens is None:
        _default_tokens = TokenService()
    return _default_tokens
