from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from chatty_auth.core.config import Settings
from chatty_auth.core.database import get_db
from chatty_auth.core.errors import AuthenticationError
from chatty_auth.models.user import User
from chatty_auth.services.presence import PresenceRegistry
from chatty_auth.services.session_issuer import SessionIssuer
from chatty_auth.services.verification import VerificationService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_session_issuer(settings: Settings = Depends(get_settings)) -> SessionIssuer:
    return SessionIssuer(settings)


def get_verification_service(
    db: Session = Depends(get_db), settings: Settings = Depends(get_settings)
) -> VerificationService:
    return VerificationService(db, settings)


def get_presence_registry(settings: Settings = Depends(get_settings)) -> PresenceRegistry:
    return PresenceRegistry(settings)


def _authenticate(
    request: Request,
    authorization: Optional[str],
    settings: Settings,
    issuer: SessionIssuer,
    db: Session,
) -> User:
    # Session cookie first; a Bearer header carrying the same credential is accepted for API clients.
    token = request.cookies.get(settings.session_cookie_name)
    if not token and authorization:
        parts = authorization.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            token = parts[1]
    if not token:
        raise AuthenticationError("Unauthorized - No token provided")

    payload = issuer.decode(token)
    if payload is None:
        raise AuthenticationError("Unauthorized - Invalid token")

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise AuthenticationError("Unauthorized - Invalid token")

    user = db.get(User, user_id)
    if user is None:
        raise AuthenticationError("Unauthorized - User not found")
    return user


def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
    issuer: SessionIssuer = Depends(get_session_issuer),
    db: Session = Depends(get_db),
) -> User:
    return _authenticate(request, authorization, settings, issuer, db)


def get_optional_user(
    request: Request,
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
    issuer: SessionIssuer = Depends(get_session_issuer),
    db: Session = Depends(get_db),
) -> Optional[User]:
    try:
        return _authenticate(request, authorization, settings, issuer, db)
    except AuthenticationError:
        return None
