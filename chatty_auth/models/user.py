from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from chatty_auth.core.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=False)

    # Profile, completed at onboarding
    bio = Column(Text, nullable=True)
    profile_pic = Column(String(512), nullable=True)
    native_language = Column(String(64), nullable=True)
    learning_language = Column(String(64), nullable=True)
    location = Column(String(255), nullable=True)

    is_email_verified = Column(Boolean, nullable=False, default=False)
    is_onboarded = Column(Boolean, nullable=False, default=False)

    # Token pairs hold SHA-256 hashes only; each hash and its expiry are set and cleared together.
    email_verification_token = Column(String(64), nullable=True, index=True)
    email_verification_token_expires = Column(DateTime, nullable=True)
    last_verification_email_sent_at = Column(DateTime, nullable=True)

    password_reset_token = Column(String(64), nullable=True, index=True)
    password_reset_token_expires = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email} verified={self.is_email_verified}>"
