"""
Email channels.

    channel = ResendEmailChannel(api_key, sender="Aidezel Orders <orders@aidezel.co.uk>")
    message_id = await channel.send_invoice(to, subject, summary, pdf, filename)

Channels raise DeliveryError; the notifier turns that into a value.
"""

from __future__ import annotations

import base64
import html
from dataclasses import dataclass
from typing import Protocol

import httpx

from checkout.errors import DeliveryError

RESEND_URL = "https://api.resend.com/emails"


class EmailChannel(Protocol):
    async def send_invoice(
        self,
        to: str,
        subject: str,
        summary: str,
        pdf: bytes,
        filename: str,
    ) -> str:
        """Returns the provider's message id."""
        ...


def summary_html(summary: str) -> str:
    paragraphs = "".join(f"<p>{html.escape(line)}</p>" for line in summary.splitlines())
    return f'<div style="font-family: Arial, sans-serif; padding: 20px; color: #333;">{paragraphs}</div>'


# ═══════════════════════════════════════════════════════════════════════════════
# Resend
# ═══════════════════════════════════════════════════════════════════════════════


class ResendEmailChannel:
    def __init__(
        self,
        api_key: str,
        sender: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._sender = sender
        self._client = client
        self._timeout = timeout

    async def send_invoice(
        self,
        to: str,
        subject: str,
        summary: str,
        pdf: bytes,
        filename: str,
    ) -> str:
        payload = {
            "from": self._sender,
            "to": [to],
            "subject": subject,
            "html": summary_html(summary),
            "text": summary,
            "attachments": [
                {"filename": filename, "content": base64.b64encode(pdf).decode("ascii")},
            ],
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}

        try:
            if self._client is not None:
                response = await self._client.post(RESEND_URL, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(RESEND_URL, json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise DeliveryError(
                f"Resend rejected the message ({e.response.status_code})"
            ) from e
        except httpx.RequestError as e:
            raise DeliveryError(f"Resend unreachable: {e}") from e

        return str(response.json().get("id", ""))


# ═══════════════════════════════════════════════════════════════════════════════
# Memory
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class SentEmail:
    to: str
    subject: str
    summary: str
    pdf: bytes
    filename: str


class MemoryEmailChannel:
    """Keeps sent mail in a list; set `fail` to simulate an outage."""

    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[SentEmail] = []

    async def send_invoice(
        self,
        to: str,
        subject: str,
        summary: str,
        pdf: bytes,
        filename: str,
    ) -> str:
        if self.fail:
            raise DeliveryError("mail channel unavailable")
        self.sent.append(SentEmail(to, subject, summary, pdf, filename))
        return f"mem-{len(self.sent)}"


__all__ = (
    "EmailChannel",
    "ResendEmailChannel",
    "MemoryEmailChannel",
    "SentEmail",
    "RESEND_URL",
)
