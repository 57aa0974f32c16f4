import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from chatty_auth.api.deps import (
    get_current_user,
    get_optional_user,
    get_presence_registry,
    get_session_issuer,
    get_settings,
    get_verification_service,
)
from chatty_auth.core.config import Settings
from chatty_auth.core.database import get_db
from chatty_auth.core.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
)
from chatty_auth.core.mailer import send_reset_email, send_verification_email
from chatty_auth.core.security import get_password_hash, verify_password
from chatty_auth.models.user import User
from chatty_auth.schemas.auth import (
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    ResendVerificationRequest,
    ResetPasswordRequest,
    SignupRequest,
    VerifyEmailRequest,
)
from chatty_auth.schemas.user import OnboardRequest, UserEnvelope, UserResponse
from chatty_auth.services.presence import PresenceRegistry, sync_presence
from chatty_auth.services.session_issuer import SessionIssuer
from chatty_auth.services.verification import VerificationService
from chatty_auth.utils.validation import (
    is_blank,
    require_fields,
    validate_email_format,
    validate_password,
)

logger = logging.getLogger(__name__)
router = APIRouter()

AVATAR_URL = "https://api.dicebear.com/6.x/adventurer/svg?seed={seed}"
FORGOT_PASSWORD_MESSAGE = "If the email exists, a reset link has been sent"
RESEND_MESSAGE = "Verification email resent"
ONBOARDING_FIELDS = (
    "full_name",
    "bio",
    "native_language",
    "learning_language",
    "location",
    "profile_pic",
)


def _user_envelope(user: User) -> UserEnvelope:
    return UserEnvelope(user=UserResponse.model_validate(user))


@router.post("/signup", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def signup(
    background_tasks: BackgroundTasks,
    payload: Optional[SignupRequest] = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    verification: VerificationService = Depends(get_verification_service),
    registry: PresenceRegistry = Depends(get_presence_registry),
):
    require_fields(payload, "email", "password", "full_name")
    validate_password(settings, payload.password)
    validate_email_format(payload.email)

    # Check if user already exists
    if db.query(User).filter(User.email == payload.email).first():
        raise ConflictError()

    user = User(
        email=payload.email,
        full_name=payload.full_name,
        password_hash=get_password_hash(payload.password),
        is_email_verified=False,
        is_onboarded=False,
    )
    db.add(user)
    try:
        db.flush()
    except IntegrityError:
        # Lost a race with a concurrent signup for the same email.
        db.rollback()
        raise ConflictError()

    user.profile_pic = AVATAR_URL.format(seed=user.id)
    raw_token = verification.issue_verification_token(user, throttle=False)
    logger.info("User signed up user_id=%s", user.id)

    background_tasks.add_task(sync_presence, registry, str(user.id), user.full_name, user.profile_pic)
    background_tasks.add_task(
        send_verification_email,
        settings,
        to_email=user.email,
        verification_url=verification.verification_url(raw_token),
    )

    return MessageResponse(message="Signup successful. Please verify your email.")


@router.post("/login", response_model=UserEnvelope)
def login(
    response: Response,
    payload: Optional[LoginRequest] = None,
    db: Session = Depends(get_db),
    issuer: SessionIssuer = Depends(get_session_issuer),
):
    require_fields(payload, "email", "password")

    user = db.query(User).filter(User.email == payload.email).first()
    if not user or not verify_password(payload.password, user.password_hash):
        raise AuthenticationError("Invalid email or password")

    if not user.is_email_verified:
        raise AuthorizationError("Please verify your email before logging in")

    issuer.start_session(response, user.id)
    return _user_envelope(user)


@router.api_route("/verify-email", methods=["GET", "POST"], response_model=MessageResponse)
def verify_email(
    response: Response,
    payload: Optional[VerifyEmailRequest] = None,
    token: Optional[str] = Query(None),
    verification: VerificationService = Depends(get_verification_service),
    issuer: SessionIssuer = Depends(get_session_issuer),
):
    raw_token = (payload.token if payload else None) or token
    user = verification.consume_verification_token(raw_token)
    issuer.start_session(response, user.id)
    return MessageResponse(message="Email verified successfully")


@router.post("/resend-verification", response_model=MessageResponse)
def resend_verification(
    background_tasks: BackgroundTasks,
    payload: Optional[ResendVerificationRequest] = None,
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    verification: VerificationService = Depends(get_verification_service),
):
    user = current_user
    if user is None:
        require_fields(payload, "email")
        user = db.query(User).filter(User.email == payload.email).first()
        if user is None or user.is_email_verified:
            # Same answer as a real resend, so the endpoint does not reveal which emails exist.
            return MessageResponse(message=RESEND_MESSAGE)

    raw_token = verification.issue_verification_token(user)
    background_tasks.add_task(
        send_verification_email,
        settings,
        to_email=user.email,
        verification_url=verification.verification_url(raw_token),
    )
    return MessageResponse(message=RESEND_MESSAGE)


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(
    background_tasks: BackgroundTasks,
    payload: Optional[ForgotPasswordRequest] = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    verification: VerificationService = Depends(get_verification_service),
):
    require_fields(payload, "email")

    user = db.query(User).filter(User.email == payload.email).first()
    if user is not None:
        raw_token = verification.issue_reset_token(user)
        background_tasks.add_task(
            send_reset_email,
            settings,
            to_email=user.email,
            reset_url=verification.reset_url(raw_token),
        )

    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(
    payload: Optional[ResetPasswordRequest] = None,
    verification: VerificationService = Depends(get_verification_service),
):
    require_fields(payload, "token", "password")
    verification.consume_reset_token(payload.token, payload.password)
    return MessageResponse(message="Password reset successful. Please login.")


@router.post("/logout", response_model=MessageResponse)
def logout(response: Response, issuer: SessionIssuer = Depends(get_session_issuer)):
    issuer.clear_cookie(response)
    return MessageResponse(message="Logout successful")


@router.post("/onboard", response_model=UserEnvelope)
def onboard(
    background_tasks: BackgroundTasks,
    payload: Optional[OnboardRequest] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    registry: PresenceRegistry = Depends(get_presence_registry),
):
    require_fields(payload, "full_name", "bio", "native_language", "learning_language", "location")

    values = {
        field: getattr(payload, field)
        for field in ONBOARDING_FIELDS
        if not is_blank(getattr(payload, field))
    }
    result = db.execute(
        update(User)
        .where(User.id == current_user.id)
        .values(**values, is_onboarded=True)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        # Account deleted after the session was authenticated.
        db.rollback()
        raise NotFoundError("User not found")

    db.commit()
    db.refresh(current_user)
    logger.info("User onboarded user_id=%s", current_user.id)

    background_tasks.add_task(
        sync_presence, registry, str(current_user.id), current_user.full_name, current_user.profile_pic
    )
    return _user_envelope(current_user)


@router.get("/me", response_model=UserEnvelope)
def get_me(current_user: User = Depends(get_current_user)):
    return _user_envelope(current_user)
