"""Outbound email transports.

Every transport exposes ``send(to, subject, body) -> message_id`` and raises
``TransportError`` when delivery fails. The dispatcher never retries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from typing import Protocol
from uuid import uuid4

import requests

from ..config import BaseConfig
from ..errors import TransportError
from ..logging_config import get_logger
from ..timeutil import utcnow

logger = get_logger("services.email")

RESEND_ENDPOINT = "https://api.resend.com/emails"


class EmailTransport(Protocol):
    """Anything that can deliver a plain-text email."""

    def send(self, to: str, subject: str, body: str) -> str:  # pragma: no cover - interface
        ...


@dataclass(slots=True)
class OutboundEmail:
    message_id: str
    to: str
    subject: str
    body: str
    sent_at: datetime = field(default_factory=utcnow)


class ConsoleTransport:
    """Log emails instead of sending them (local development)."""

    def send(self, to: str, subject: str, body: str) -> str:
        message_id = f"console-{uuid4().hex}"
        logger.info(
            "Email (console backend)",
            extra={"to": to, "subject": subject, "message_id": message_id, "body": body},
        )
        return message_id


class OutboxTransport:
    """Keep sent emails in memory so tests can inspect them."""

    def __init__(self) -> None:
        self._lock = Lock()
        self.outbox: list[OutboundEmail] = []

    def send(self, to: str, subject: str, body: str) -> str:
        message = OutboundEmail(message_id=f"outbox-{uuid4().hex}", to=to, subject=subject, body=body)
        with self._lock:
            self.outbox.append(message)
        return message.message_id

    def clear(self) -> None:
        with self._lock:
            self.outbox.clear()


class ResendTransport:
    """Send through the Resend HTTP API."""

    def __init__(
        self,
        *,
        api_key: str,
        sender: str,
        timeout: int = 10,
        endpoint: str = RESEND_ENDPOINT,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key
        self.sender = sender
        self.timeout = timeout
        self.endpoint = endpoint
        self.session = session or requests.Session()

    def send(self, to: str, subject: str, body: str) -> str:
        payload = {"from": self.sender, "to": [to], "subject": subject, "text": body}
        try:
            response = self.session.post(
                self.endpoint,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise TransportError(f"Email sending failed: {exc}") from exc

        if response.status_code not in (200, 201):
            try:
                detail = response.json().get("message") or response.text
            except ValueError:
                detail = response.text
            raise TransportError(
                f"Email sending failed: {detail or response.status_code}",
                details={"status": response.status_code},
            )

        try:
            message_id = response.json().get("id")
        except ValueError as exc:
            raise TransportError("Email sending failed: response was not JSON") from exc
        if not message_id:
            raise TransportError("Email sending failed: response carried no message id")
        return message_id


def build_transport(config: BaseConfig) -> EmailTransport:
    """Return the transport selected by ``HABITFLOW_EMAIL_BACKEND``."""

    if config.EMAIL_BACKEND == "resend":
        return ResendTransport(
            api_key=config.RESEND_API_KEY or "",
            sender=config.EMAIL_FROM,
            timeout=config.EMAIL_TIMEOUT,
        )
    if config.EMAIL_BACKEND == "outbox":
        return OutboxTransport()
    return ConsoleTransport()


__all__ = [
    "ConsoleTransport",
    "EmailTransport",
    "OutboundEmail",
    "OutboxTransport",
    "ResendTransport",
    "build_transport",
]
