"""Single-use token lifecycle for email verification and password reset.

Each user carries two independent token slots:

* verification: Unverified -> PendingVerification (token issued) -> Verified
* reset:        NoResetPending -> ResetPending (token issued) -> NoResetPending

Only the SHA-256 hash of a token is stored. Issuing a new token overwrites the
slot, which invalidates whatever was issued before. Every transition is a
conditional ``UPDATE`` so that concurrent requests for the same user are
settled by the database row count, not by locks held here.
"""

import logging
from datetime import timedelta
from typing import Optional
from urllib.parse import urlencode

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from chatty_auth.core.config import Settings
from chatty_auth.core.errors import (
    InvalidTokenError,
    MissingFieldsError,
    RateLimitError,
    ValidationError,
)
from chatty_auth.core.security import (
    generate_raw_token,
    get_password_hash,
    hash_token,
    tokens_match,
)
from chatty_auth.models.user import User
from chatty_auth.utils.clock import utcnow
from chatty_auth.utils.validation import validate_password

logger = logging.getLogger(__name__)


class VerificationService:
    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.settings = settings

    # ---------------------- EMAIL VERIFICATION ----------------------

    def issue_verification_token(self, user: User, *, throttle: bool = True) -> str:
        """Mint a verification token for ``user`` and return the raw value.

        With ``throttle`` set (resend), a previous send less than the cooldown
        ago raises ``RateLimitError``. Signup issues the first token with
        ``throttle=False``.
        """
        if user.is_email_verified:
            raise ValidationError("Email already verified")

        raw_token = generate_raw_token()
        now = utcnow()

        conditions = [User.id == user.id, User.is_email_verified.is_(False)]
        if throttle:
            cutoff = now - timedelta(seconds=self.settings.verification_resend_cooldown_seconds)
            conditions.append(
                or_(
                    User.last_verification_email_sent_at.is_(None),
                    User.last_verification_email_sent_at <= cutoff,
                )
            )

        result = self.db.execute(
            update(User)
            .where(*conditions)
            .values(
                email_verification_token=hash_token(raw_token),
                email_verification_token_expires=now
                + timedelta(minutes=self.settings.verification_token_expire_minutes),
                last_verification_email_sent_at=now,
            )
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            self.db.rollback()
            self.db.refresh(user)
            if user.is_email_verified:
                raise ValidationError("Email already verified")
            logger.info("Verification resend throttled user_id=%s", user.id)
            raise RateLimitError()

        self.db.commit()
        self.db.refresh(user)
        logger.info("Verification token issued user_id=%s", user.id)
        return raw_token

    def consume_verification_token(self, raw_token: Optional[str]) -> User:
        """Mark the token's owner verified and clear the token and throttle marker."""
        if not raw_token:
            raise MissingFieldsError(["token"], "Token is required")

        token_hash = hash_token(raw_token)
        user = (
            self.db.query(User)
            .filter(
                User.email_verification_token == token_hash,
                User.email_verification_token_expires > utcnow(),
            )
            .first()
        )
        if user is None or not tokens_match(raw_token, user.email_verification_token):
            logger.info("Verification token rejected")
            raise InvalidTokenError()

        result = self.db.execute(
            update(User)
            .where(User.id == user.id, User.email_verification_token == token_hash)
            .values(
                is_email_verified=True,
                email_verification_token=None,
                email_verification_token_expires=None,
                last_verification_email_sent_at=None,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            # Another request consumed the same token between lookup and update.
            self.db.rollback()
            raise InvalidTokenError()

        self.db.commit()
        self.db.refresh(user)
        logger.info("Email verified user_id=%s", user.id)
        return user

    # ---------------------- PASSWORD RESET ----------------------

    def issue_reset_token(self, user: User) -> str:
        raw_token = generate_raw_token()
        self.db.execute(
            update(User)
            .where(User.id == user.id)
            .values(
                password_reset_token=hash_token(raw_token),
                password_reset_token_expires=utcnow()
                + timedelta(minutes=self.settings.reset_token_expire_minutes),
            )
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        self.db.refresh(user)
        logger.info("Password reset token issued user_id=%s", user.id)
        return raw_token

    def consume_reset_token(self, raw_token: Optional[str], new_password: Optional[str]) -> User:
        """Replace the password of the token's owner. No session is issued."""
        missing = [name for name, value in (("token", raw_token), ("password", new_password)) if not value]
        if missing:
            raise MissingFieldsError(missing)
        validate_password(self.settings, new_password)

        token_hash = hash_token(raw_token)
        user = (
            self.db.query(User)
            .filter(
                User.password_reset_token == token_hash,
                User.password_reset_token_expires > utcnow(),
            )
            .first()
        )
        if user is None or not tokens_match(raw_token, user.password_reset_token):
            logger.info("Password reset token rejected")
            raise InvalidTokenError()

        result = self.db.execute(
            update(User)
            .where(User.id == user.id, User.password_reset_token == token_hash)
            .values(
                password_hash=get_password_hash(new_password),
                password_reset_token=None,
                password_reset_token_expires=None,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.db.rollback()
            raise InvalidTokenError()

        self.db.commit()
        self.db.refresh(user)
        logger.info("Password reset user_id=%s", user.id)
        return user

    # ---------------------- LINKS ----------------------

    def verification_url(self, raw_token: str) -> str:
        return self._frontend_link("verify-email", raw_token)

    def reset_url(self, raw_token: str) -> str:
        return self._frontend_link("reset-password", raw_token)

    def _frontend_link(self, path: str, raw_token: str) -> str:
        base_url = self.settings.frontend_url.rstrip("/")
        return f"{base_url}/{path}?{urlencode({'token': raw_token})}"
