"""
Session Resolution

Turns the value of the session cookie back into a User.

Two token formats are supported (LEDGER_SESSION_MODE):
- plain:  the cookie holds the bare user id. This is what existing
          browsers carry, so it stays the default.
- signed: the cookie holds an HS256 JWT whose subject is the user id
          and whose expiry matches the cookie max-age.

Resolution is read-only. Any token that does not lead to a stored user
resolves to None, which callers treat as "not authenticated".
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
import structlog

from ledger.config import SessionSettings, get_settings
from ledger.models.banking import User
from ledger.services.storage import UserStorageInterface


logger = structlog.get_logger(__name__)

JWT_ALGORITHM = "HS256"


class SessionManager:
    """Issues and resolves session tokens."""

    def __init__(
        self,
        user_storage: UserStorageInterface,
        settings: Optional[SessionSettings] = None,
        secure_cookies: bool = False,
    ):
        self._users = user_storage
        self._settings = settings or get_settings().session
        self._secure_cookies = secure_cookies

    @property
    def cookie_name(self) -> str:
        return self._settings.cookie_name

    def cookie_options(self) -> dict:
        """Attributes for setting the session cookie."""
        return {
            "httponly": True,
            "secure": self._secure_cookies,
            "max_age": self._settings.max_age_seconds,
        }

    def issue(self, user: User) -> str:
        """Create the token stored in the session cookie after login."""
        if self._settings.mode == "plain":
            return user.id

        now = datetime.now(timezone.utc)
        payload = {
            "sub": user.id,
            "iat": now,
            "exp": now + timedelta(seconds=self._settings.max_age_seconds),
        }
        return jwt.encode(payload, self._settings.secret_key, algorithm=JWT_ALGORITHM)

    def _user_id_from(self, token: str) -> Optional[str]:
        if self._settings.mode == "plain":
            return token

        try:
            payload = jwt.decode(
                token,
                self._settings.secret_key,
                algorithms=[JWT_ALGORITHM],
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            logger.info("session_expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning("session_token_invalid", error=str(e))
            return None
        return payload["sub"]

    async def resolve(self, token: Optional[str]) -> Optional[User]:
        """Return the user a session token belongs to, or None."""
        if not token:
            return None

        user_id = self._user_id_from(token)
        if not user_id:
            return None

        return await self._users.get_user(user_id)
