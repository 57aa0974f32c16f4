from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"  # Ignore extra fields in .env
    )

    database_url: str = "sqlite:///./chatty.db"

    secret_key: str
    algorithm: str = "HS256"
    session_expire_days: int = 7
    session_cookie_name: str = "jwt"

    environment: str = "development"
    log_level: str = "INFO"

    host: str = "0.0.0.0"
    port: int = 5001

    frontend_url: str = "http://localhost:5173"
    cors_origins: List[str] = ["http://localhost:5173"]

    sendgrid_api_key: Optional[str] = None
    sendgrid_from_email: Optional[str] = None

    stream_api_key: Optional[str] = None
    stream_api_secret: Optional[str] = None
    stream_base_url: str = "https://chat.stream-io-api.com"
    presence_timeout_seconds: float = 5.0

    verification_token_expire_minutes: int = 30
    reset_token_expire_minutes: int = 10
    verification_resend_cooldown_seconds: int = 60
    min_password_length: int = 6

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def cookie_secure(self) -> bool:
        return self.is_production

    @property
    def cookie_samesite(self) -> str:
        # Cross-site frontend in production needs SameSite=None, which browsers only accept with Secure.
        return "none" if self.is_production else "lax"


@lru_cache
def load_settings() -> Settings:
    """Read settings from the environment once per process."""
    return Settings()
