"""Session credentials: signed, time-bounded JWTs delivered as an HTTP-only cookie.

Sessions are stateless. Logout only asks the client to drop the cookie, so a
captured credential stays valid until its ``exp`` claim passes.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from fastapi import Response
from jose import JWTError, jwt

from chatty_auth.core.config import Settings
from chatty_auth.utils.clock import utcnow

logger = logging.getLogger(__name__)


class SessionIssuer:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.max_age = timedelta(days=settings.session_expire_days)

    def issue(self, user_id: int) -> str:
        now = utcnow()
        claims = {
            "sub": str(user_id),
            "iat": now,
            "exp": now + self.max_age,
        }
        return jwt.encode(claims, self.settings.secret_key, algorithm=self.settings.algorithm)

    def decode(self, token: str) -> Optional[Dict[str, Any]]:
        """Return the claims of a valid credential, or ``None`` if it is forged, expired or malformed."""
        try:
            payload = jwt.decode(token, self.settings.secret_key, algorithms=[self.settings.algorithm])
        except JWTError as exc:
            logger.debug("Rejected session credential: %s", exc)
            return None
        if not payload.get("sub"):
            return None
        return payload

    def set_cookie(self, response: Response, token: str) -> None:
        response.set_cookie(
            key=self.settings.session_cookie_name,
            value=token,
            max_age=int(self.max_age.total_seconds()),
            httponly=True,
            secure=self.settings.cookie_secure,
            samesite=self.settings.cookie_samesite,
            path="/",
        )

    def clear_cookie(self, response: Response) -> None:
        # Attributes must match the issued cookie or browsers keep the original.
        response.delete_cookie(
            key=self.settings.session_cookie_name,
            httponly=True,
            secure=self.settings.cookie_secure,
            samesite=self.settings.cookie_samesite,
            path="/",
        )

    def start_session(self, response: Response, user_id: int) -> str:
        token = self.issue(user_id)
        self.set_cookie(response, token)
        logger.info("Session issued user_id=%s", user_id)
        return token
