"""Gmail connector: read the owner's inbox and send mail as them."""

from __future__ import annotations

import asyncio
import base64
import logging
from email.mime.text import MIMEText
from typing import Any

from googleapiclient.errors import HttpError

from modern.integrations.google_auth import GoogleAuthManager

logger = logging.getLogger(__name__)

_NOT_FOUND = 404


def _format_message(msg: dict[str, Any]) -> dict[str, Any]:
    """Flatten a Gmail API message resource into a plain dict."""
    headers = {
        h["name"].lower(): h["value"] for h in msg.get("payload", {}).get("headers", [])
    }
    return {
        "id": msg["id"],
        "thread_id": msg.get("threadId", ""),
        "from": headers.get("from", ""),
        "to": headers.get("to", ""),
        "subject": headers.get("subject", ""),
        "date": headers.get("date", ""),
        "snippet": msg.get("snippet", ""),
        "labels": msg.get("labelIds", []),
    }


def _decode(data: str) -> str:
    return base64.urlsafe_b64decode(data).decode("utf-8", errors="replace")


def _plain_body(payload: dict[str, Any]) -> str:
    """Text of the message body, or of its first text/plain part."""
    data = payload.get("body", {}).get("data", "")
    if data:
        return _decode(data)
    for part in payload.get("parts", []):
        if part.get("mimeType") == "text/plain" and part.get("body", {}).get("data"):
            return _decode(part["body"]["data"])
    return ""


class GmailClient:
    """Lists, reads and sends mail, and counts unread messages.

    Raises :class:`~modern.integrations.google_auth.NotConnectedError` when
    no Google account has been authorised.
    """

    def __init__(self, auth: GoogleAuthManager | None = None) -> None:
        self._auth = auth

    def _service(self):  # noqa: ANN202
        return (self._auth or GoogleAuthManager.get()).gmail()

    async def list_recent(self, limit: int = 20, query: str = "") -> list[dict[str, Any]]:
        """Return the *limit* most recent messages, newest first."""
        service = self._service()

        result = await asyncio.to_thread(
            lambda: service.users()
            .messages()
            .list(userId="me", maxResults=limit, q=query or None)
            .execute()
        )

        messages = []
        for ref in result.get("messages", []):
            msg = await asyncio.to_thread(
                lambda msg_id=ref["id"]: service.users()
                .messages()
                .get(
                    userId="me",
                    id=msg_id,
                    format="metadata",
                    metadataHeaders=["From", "To", "Subject", "Date"],
                )
                .execute()
            )
            messages.append(_format_message(msg))

        logger.debug("Fetched %d Gmail message(s)", len(messages))
        return messages

    async def get_message(self, message_id: str) -> dict[str, Any] | None:
        """Return one message with its plain-text body, or None if unknown."""
        service = self._service()
        try:
            msg = await asyncio.to_thread(
                lambda: service.users()
                .messages()
                .get(userId="me", id=message_id, format="full")
                .execute()
            )
        except HttpError as exc:
            if exc.resp.status == _NOT_FOUND:
                return None
            raise

        message = _format_message(msg)
        message["body"] = _plain_body(msg.get("payload", {}))
        return message

    async def send_message(
        self,
        to: str,
        subject: str,
        body: str,
        cc: str | None = None,
        bcc: str | None = None,
    ) -> dict[str, str]:
        """Send a plain-text email. Returns the new message and thread ids."""
        service = self._service()

        message = MIMEText(body, "plain", "utf-8")
        message["to"] = to
        message["subject"] = subject
        if cc:
            message["cc"] = cc
        if bcc:
            message["bcc"] = bcc
        raw = base64.urlsafe_b64encode(message.as_bytes()).decode()

        result = await asyncio.to_thread(
            lambda: service.users()
            .messages()
            .send(userId="me", body={"raw": raw})
            .execute()
        )

        logger.info("Sent email to %s: %s", to, result["id"])
        return {"id": result["id"], "thread_id": result.get("threadId", "")}

    async def unread_count(self) -> int:
        """Return Gmail's estimate of unread messages."""
        service = self._service()
        result = await asyncio.to_thread(
            lambda: service.users()
            .messages()
            .list(userId="me", q="is:unread", maxResults=1)
            .execute()
        )
        return int(result.get("resultSizeEstimate", 0))
