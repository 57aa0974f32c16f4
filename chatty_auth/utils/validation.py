"""Input checks shared by the auth endpoints."""

import re
from typing import Optional

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from chatty_auth.core.config import Settings
from chatty_auth.core.errors import MissingFieldsError, ValidationError

EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")


def is_blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def require_fields(payload: Optional[BaseModel], *fields: str) -> None:
    """Raise one error naming every required field that is absent or blank.

    Field names are reported in the camelCase form clients send.
    """
    missing = [
        to_camel(field)
        for field in fields
        if payload is None or is_blank(getattr(payload, field, None))
    ]
    if missing:
        raise MissingFieldsError(missing)


def validate_email_format(email: str) -> None:
    if not EMAIL_PATTERN.fullmatch(email):
        raise ValidationError("Invalid email format")


def validate_password(settings: Settings, password: str) -> None:
    if len(password) < settings.min_password_length:
        raise ValidationError(
            f"Password must be at least {settings.min_password_length} characters"
        )
