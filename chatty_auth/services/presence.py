import asyncio
import logging
from typing import Optional

import httpx
from jose import jwt

from chatty_auth.core.config import Settings

logger = logging.getLogger(__name__)


class PresenceRegistryError(Exception):
    pass


class PresenceRegistry:
    """Client for the Stream Chat user registry (``POST /users`` upsert)."""

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retries: int = 2,
    ):
        self.settings = settings
        self.transport = transport
        self.retries = retries

    @property
    def enabled(self) -> bool:
        return bool(self.settings.stream_api_key and self.settings.stream_api_secret)

    def _server_token(self) -> str:
        return jwt.encode({"server": True}, self.settings.stream_api_secret, algorithm="HS256")

    async def upsert_user(self, user_id: str, name: str, image: Optional[str] = None) -> None:
        payload = {"users": {user_id: {"id": user_id, "name": name, "image": image or ""}}}
        headers = {
            "Authorization": self._server_token(),
            "stream-auth-type": "jwt",
        }
        timeout = httpx.Timeout(self.settings.presence_timeout_seconds)
        last_error: Optional[str] = None

        for attempt in range(1, self.retries + 1):
            try:
                async with httpx.AsyncClient(
                    base_url=self.settings.stream_base_url,
                    timeout=timeout,
                    transport=self.transport,
                ) as client:
                    response = await client.post(
                        "/users",
                        params={"api_key": self.settings.stream_api_key},
                        json=payload,
                        headers=headers,
                    )

                if response.status_code < 400:
                    return

                # --- no retry on 4xx ---
                if response.status_code < 500:
                    raise PresenceRegistryError(
                        f"Registry rejected upsert: {response.status_code} {response.text}"
                    )

                last_error = f"Status {response.status_code}"
                logger.warning(
                    "Presence registry error %s (attempt %s/%s)",
                    response.status_code, attempt, self.retries,
                )

            except httpx.RequestError as e:
                last_error = repr(e)
                logger.warning(
                    "Presence registry request error (attempt %s/%s): %r",
                    attempt, self.retries, e,
                )

            if attempt < self.retries:
                await asyncio.sleep(0.5 * attempt)

        raise PresenceRegistryError(f"Registry unavailable after {self.retries} attempts: {last_error}")


async def sync_presence(registry: PresenceRegistry, user_id: str, name: str, image: Optional[str] = None) -> bool:
    """Best-effort upsert. Failures are logged and never reach the caller."""
    if not registry.enabled:
        logger.debug("Presence registry not configured; skipped user_id=%s", user_id)
        return False
    try:
        await registry.upsert_user(user_id, name, image)
    except Exception:
        logger.exception("Presence upsert failed user_id=%s", user_id)
        return False
    logger.info("Presence upserted user_id=%s", user_id)
    return True
