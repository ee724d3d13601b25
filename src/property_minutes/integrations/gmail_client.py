"""Gmail integration client for retrieving property mail."""

import locale
from datetime import date, datetime
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional

from ..core.models import MailMessage
from ..utils.exceptions import GmailIntegrationError, MailSearchFailed
from ..utils.text import decode_base64url, strip_html
from ..utils.validators import InputValidator
from .base_client import GoogleServiceClient, build_service

NO_SUBJECT = "(件名なし)"
UNKNOWN_SENDER = "(送信者不明)"


def format_query_date(value: date) -> str:
    """Gmail search date, ``YYYY/MM/DD``."""
    return f"{value.year:04d}/{value.month:02d}/{value.day:02d}"


def build_search_query(
    start_date: date, end_date: date, label: Optional[str] = None
) -> str:
    """Search query for mail received on or after ``start_date`` and before ``end_date``."""
    query = f"after:{format_query_date(start_date)} before:{format_query_date(end_date)}"

    if label:
        query += f' label:"{InputValidator.escape_gmail_label(label)}"'

    return query


def extract_body(payload: Optional[Dict[str, Any]]) -> str:
    """Plain-text body of a ``format=full`` message payload."""
    if not payload:
        return ""

    body = ""
    data = (payload.get("body") or {}).get("data")
    if data:
        body = decode_base64url(data)
    elif payload.get("parts"):
        parts = payload["parts"]
        body = _find_part(parts, "text/plain") or _find_part(parts, "text/html")

    return strip_html(body)


def _find_part(parts: List[Dict[str, Any]], mime_type: str) -> str:
    """Depth-first search for the first decodable part of ``mime_type``."""
    for part in parts:
        data = (part.get("body") or {}).get("data")

        if part.get("mimeType") == mime_type and data:
            decoded = decode_base64url(data)
            if decoded:
                return decoded

        if part.get("parts"):
            nested = _find_part(part["parts"], mime_type)
            if nested:
                return nested

    return ""


def _header(headers: List[Dict[str, str]], name: str) -> Optional[str]:
    for header in headers:
        if header.get("name", "").lower() == name.lower():
            return header.get("value")
    return None


def _parse_date(value: Optional[str]) -> datetime:
    if value:
        try:
            return parsedate_to_datetime(value)
        except (TypeError, ValueError):
            pass
    return datetime.now()


class GmailClient(GoogleServiceClient):
    """Searches the mailbox and flattens messages to plain text."""

    SERVICE_NAME = "gmail"

    def __init__(self, credentials: Any = None, service: Any = None, rate_limit: int = 250):
        super().__init__(build_service("gmail", "v1", credentials, service), rate_limit)

    async def search(
        self,
        start_date: date,
        end_date: date,
        label: Optional[str] = None,
        max_results: int = 100,
    ) -> List[MailMessage]:
        """Fetch messages in the date window, optionally restricted to a label.

        Messages that fail to download are logged and skipped.
        """
        query = build_search_query(start_date, end_date, label)
        self.logger.info(f"Gmail search query: {query}")

        try:
            response = await self._execute(
                lambda: self.service.users()
                .messages()
                .list(userId="me", q=query, maxResults=max_results),
                endpoint="messages.list",
            )
        except Exception as e:
            self.logger.error(f"Gmail search failed: {e}")
            raise MailSearchFailed(f"Failed to search mail: {e}", {"query": query})

        message_refs = response.get("messages", [])
        if not message_refs:
            self.logger.info("No messages matched the search")
            return []

        self.logger.info(f"{len(message_refs)} messages matched the search")

        messages = []
        for ref in message_refs:
            message_id = ref.get("id")
            if not message_id:
                continue
            try:
                messages.append(await self.get_message(message_id))
            except Exception as e:
                self.logger.error(f"Failed to fetch message {message_id}: {e}")

        return messages

    async def get_message(self, message_id: str) -> MailMessage:
        message = await self._execute(
            lambda: self.service.users()
            .messages()
            .get(userId="me", id=message_id, format="full"),
            endpoint="messages.get",
        )

        payload = message.get("payload") or {}
        headers = payload.get("headers", [])

        return MailMessage(
            id=message_id,
            subject=_header(headers, "Subject") or NO_SUBJECT,
            sender=_header(headers, "From") or UNKNOWN_SENDER,
            date=_parse_date(_header(headers, "Date")),
            body_text=extract_body(payload),
        )

    async def _list_all_labels(self) -> List[Dict[str, Any]]:
        try:
            response = await self._execute(
                lambda: self.service.users().labels().list(userId="me"),
                endpoint="labels.list",
            )
        except Exception as e:
            self.logger.error(f"Failed to list labels: {e}")
            raise GmailIntegrationError(f"Failed to list labels: {e}")

        return response.get("labels", [])

    async def list_labels(self) -> List[Dict[str, str]]:
        """User-created labels as ``{"id", "name"}``, sorted by name."""
        labels = [
            {"id": label["id"], "name": label["name"]}
            for label in await self._list_all_labels()
            if label.get("type") == "user" and label.get("id") and label.get("name")
        ]

        # Collation follows the process locale set by the host
        labels.sort(key=lambda label: locale.strxfrm(label["name"]))

        return labels

    async def get_label_id(self, label_name: str) -> Optional[str]:
        for label in await self._list_all_labels():
            if label.get("name") == label_name:
                return label.get("id")
        return None
