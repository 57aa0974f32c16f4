from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts snake_case or camelCase input and serializes as camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class UserResponse(CamelModel):
    id: int
    email: str
    full_name: str
    bio: Optional[str] = None
    profile_pic: Optional[str] = None
    native_language: Optional[str] = None
    learning_language: Optional[str] = None
    location: Optional[str] = None
    is_email_verified: bool
    is_onboarded: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserEnvelope(CamelModel):
    success: bool = True
    user: UserResponse


class OnboardRequest(CamelModel):
    # Only these attributes can be written by onboarding; anything else in the body is dropped.
    full_name: Optional[str] = None
    bio: Optional[str] = None
    native_language: Optional[str] = None
    learning_language: Optional[str] = None
    location: Optional[str] = None
    profile_pic: Optional[str] = None
