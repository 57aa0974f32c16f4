"""Error taxonomy shared by the services and the HTTP layer.

Services raise these; ``chatty_auth.main`` renders them as ``{"detail": ...}``
JSON bodies with the matching status code.
"""

from typing import Any, Dict, List, Optional

from fastapi import status


class AuthServiceError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Internal Server Error"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    def to_body(self) -> Dict[str, Any]:
        return {"detail": self.detail}


class ValidationError(AuthServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request"


class MissingFieldsError(ValidationError):
    """Combined error listing every required field the caller left empty."""

    default_detail = "All fields are required"

    def __init__(self, missing_fields: List[str], detail: Optional[str] = None):
        super().__init__(detail)
        self.missing_fields = missing_fields

    def to_body(self) -> Dict[str, Any]:
        return {"detail": self.detail, "missingFields": self.missing_fields}


class AuthenticationError(AuthServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Invalid email or password"


class AuthorizationError(AuthServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Forbidden"


class ConflictError(AuthServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Email already exists, please use a different one"


class RateLimitError(AuthServiceError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_detail = "Please wait before requesting another email"


class NotFoundError(AuthServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "User not found"


class InvalidTokenError(NotFoundError):
    # Wrong, expired and already-used tokens all collapse into this one answer.
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Token is invalid or expired"


class InternalError(AuthServiceError):
    pass
