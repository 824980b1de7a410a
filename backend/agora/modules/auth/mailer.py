"""
Mail delivery for password reset messages.

Sends through a transactional mail HTTP API (JSON POST with bearer key).
Delivery failures are logged and reported as ``False``; they never raise.
"""

from typing import Protocol

import httpx
from loguru import logger

from agora.core.config import Settings


class Mailer(Protocol):
    """Anything that can deliver a single HTML email."""

    async def send(self, to_address: str, subject: str, html_body: str) -> bool:
        ...


class HttpMailer:
    """
    Mail sender backed by an HTTP mail API.

    Usage:
        mailer = HttpMailer.from_settings(settings)
        ok = await mailer.send("user@example.com", "Hello", "<p>Hi</p>")
    """

    def __init__(
        self,
        api_url: str,
        api_key: str = "",
        sender: str = "no-reply@agora.local",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize mail sender.

        Args:
            api_url: Endpoint accepting {from, to, subject, html}
            api_key: Bearer key for the API
            sender: From address
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.api_url = api_url
        self.api_key = api_key
        self.sender = sender
        self.timeout = timeout
        self._transport = transport

        if not self.api_url:
            logger.warning("MAIL_API_URL not configured")

    @classmethod
    def from_settings(cls, settings: Settings) -> "HttpMailer":
        return cls(
            api_url=settings.mail_api_url,
            api_key=settings.mail_api_key,
            sender=settings.mail_sender,
            timeout=settings.mail_timeout,
        )

    async def send(self, to_address: str, subject: str, html_body: str) -> bool:
        """
        Send one email.

        Returns:
            True if the API accepted the message
        """
        if not self.api_url:
            logger.error("Cannot send mail: MAIL_API_URL not configured")
            return False

        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            async with httpx.AsyncClient(
                transport=self._transport, timeout=self.timeout
            ) as client:
                response = await client.post(
                    self.api_url,
                    json={
                        "from": self.sender,
                        "to": to_address,
                        "subject": subject,
                        "html": html_body,
                    },
                    headers=headers,
                )
                response.raise_for_status()

        except httpx.HTTPStatusError as e:
            logger.error(f"Mail API HTTP error: {e.response.status_code}")
            return False
        except httpx.RequestError as e:
            logger.error(f"Mail API request error: {e}")
            return False

        logger.info(f"Sent mail '{subject}' to {to_address}")
        return True
