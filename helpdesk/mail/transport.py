from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from helpdesk.errors import TransientInfraError

logger = logging.getLogger(__name__)


class MailTransportError(TransientInfraError):
    """Raised when the mail provider does not accept a message."""


@dataclass(slots=True)
class MailMessage:
    to: str
    subject: str
    html: str
    text: str
    idempotency_key: str | None = None


class MailTransport(Protocol):
    async def send(self, message: MailMessage) -> None:
        ...


class HttpMailTransport:
    """Send mail through an HTTP API (Resend-compatible JSON payload)."""

    def __init__(
        self,
        *,
        api_url: str,
        api_key: str | None,
        from_email: str,
        from_name: str | None = None,
        timeout: float = 20.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_url = api_url
        self._api_key = api_key
        self._from_address = f"{from_name} <{from_email}>" if from_name else from_email
        self._timeout = timeout
        self._client = client

    async def send(self, message: MailMessage) -> None:
        if not self._api_key:
            raise MailTransportError("Mail API key is not configured")

        payload: dict[str, object] = {
            "from": self._from_address,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
            "text": message.text,
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        if message.idempotency_key:
            headers["Idempotency-Key"] = message.idempotency_key

        try:
            if self._client is not None:
                response = await self._client.post(self._api_url, headers=headers, json=payload)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self._api_url, headers=headers, json=payload)
        except httpx.TimeoutException as exc:
            raise MailTransportError(f"Mail API timed out sending to {message.to}") from exc
        except httpx.HTTPError as exc:
            raise MailTransportError(f"Mail API connection error: {exc.__class__.__name__}") from exc

        if response.status_code >= 300:
            raise MailTransportError(f"Mail API rejected message ({response.status_code}): {response.text[:200]}")
        logger.debug("Mail accepted for %s (status=%s)", message.to, response.status_code)


class LoggingMailTransport:
    """Transport used when outbound mail is disabled."""

    async def send(self, message: MailMessage) -> None:
        logger.info("Mail disabled; would send %r to %s", message.subject, message.to)
