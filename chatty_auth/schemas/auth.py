from typing import Optional

from chatty_auth.schemas.user import CamelModel


class SignupRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None
    full_name: Optional[str] = None


class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class VerifyEmailRequest(CamelModel):
    token: Optional[str] = None


class ResendVerificationRequest(CamelModel):
    email: Optional[str] = None


class ForgotPasswordRequest(CamelModel):
    email: Optional[str] = None


class ResetPasswordRequest(CamelModel):
    token: Optional[str] = None
    password: Optional[str] = None


class MessageResponse(CamelModel):
    success: bool = True
    message: str
