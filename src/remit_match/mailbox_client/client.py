"""
Microsoft Graph mailbox client implementation.
"""

import html
import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional

import requests

from ..email_evidence.search import Mailbox

logger = logging.getLogger(__name__)

SELECT_FIELDS = "subject,from,receivedDateTime,bodyPreview,body,hasAttachments"

_TAG_RE = re.compile(r"<[^>]+>")
_STYLE_RE = re.compile(r"<(style|script)[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)
_SPACE_RE = re.compile(r"\s+")


class MailboxError(Exception):
    """Base exception for mailbox client errors."""
    pass


class MailboxAPIError(MailboxError):
    """API returned an error response."""
    def __init__(self, status_code: int, message: str, response_body: Optional[str] = None):
        self.status_code = status_code
        self.message = message
        self.response_body = response_body
        super().__init__(f"Graph API error {status_code}: {message}")


class MailboxConnectionError(MailboxError):
    """Failed to connect to the Graph API."""
    pass


def strip_html(content: str) -> str:
    """Plain text of an HTML body."""
    text = _STYLE_RE.sub(" ", content or "")
    text = _TAG_RE.sub(" ", text)
    return _SPACE_RE.sub(" ", html.unescape(text)).strip()


def parse_received(value: Optional[str]) -> Optional[datetime]:
    """Parse a Graph receivedDateTime ("2024-03-01T10:15:00Z")."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class GraphMailboxClient(Mailbox):
    """
    Keyword search over one mailbox via Microsoft Graph.

    Uses app-only auth, so messages are read from /users/{mailbox}/messages.
    Graph does not allow $search together with $filter or $orderby, so the
    date window is applied to the returned messages here.
    """

    DEFAULT_TIMEOUT = 30

    def __init__(
        self,
        base_url: str,
        mailbox: str,
        token: str,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        """
        Initialize Graph mailbox client.

        Args:
            base_url: Graph base URL (e.g., "https://graph.microsoft.com")
            mailbox: Mailbox address to search
            token: OAuth bearer token
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.mailbox = mailbox
        self.timeout = timeout

        self.session = requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
            # Required for $search on messages
            "ConsistencyLevel": "eventual",
        })

    def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
    ) -> requests.Response:
        """Make an API request with error handling."""
        url = f"{self.base_url}{endpoint}"

        try:
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                timeout=self.timeout,
            )
        except requests.exceptions.ConnectionError as e:
            raise MailboxConnectionError(f"Failed to connect to Graph at {self.base_url}: {e}")
        except requests.exceptions.Timeout as e:
            raise MailboxConnectionError(f"Request to Graph timed out: {e}")
        except requests.exceptions.RequestException as e:
            raise MailboxError(f"Request failed: {e}")

        if not response.ok:
            raise MailboxAPIError(
                status_code=response.status_code,
                message=response.reason,
                response_body=response.text,
            )

        return response

    def query(
        self,
        query: str,
        start: datetime,
        end: datetime,
        limit: int,
    ) -> list[dict[str, Any]]:
        """
        Search messages and keep those received within [start, end].

        Args:
            query: Graph $search expression
            start: Window start (naive datetimes are taken as UTC)
            end: Window end
            limit: $top for the request

        Returns:
            Normalized message records

        Raises:
            MailboxError: On transport or API failure
        """
        params = {
            "$search": query,
            "$top": str(limit),
            "$select": SELECT_FIELDS,
        }
        response = self._request("GET", f"/v1.0/users/{self.mailbox}/messages", params=params)

        try:
            messages = response.json().get("value", [])
        except ValueError as e:
            raise MailboxError(f"Invalid JSON from Graph: {e}")

        start_utc, end_utc = _naive_utc(start), _naive_utc(end)
        records = []
        for message in messages:
            received = parse_received(message.get("receivedDateTime"))
            if received is not None and not start_utc <= _naive_utc(received) <= end_utc:
                continue
            records.append(self.normalize_message(message))

        logger.debug("Graph returned %d messages, %d in window", len(messages), len(records))
        return records

    @staticmethod
    def normalize_message(message: dict) -> dict[str, Any]:
        """Flatten a Graph message into the record shape the rankers read."""
        address = (message.get("from") or {}).get("emailAddress") or {}
        body = message.get("body") or {}
        content = body.get("content") or ""
        if body.get("contentType", "").lower() == "html":
            content = strip_html(content)

        return {
            "id": message.get("id", ""),
            "subject": message.get("subject") or "",
            "from_name": address.get("name") or "",
            "from_address": address.get("address") or "",
            "received_at": message.get("receivedDateTime"),
            "body_preview": message.get("bodyPreview") or "",
            "body_text": content or message.get("bodyPreview") or "",
            "has_attachments": bool(message.get("hasAttachments")),
        }

    def test_connection(self) -> bool:
        """Test access to the mailbox."""
        try:
            self._request("GET", f"/v1.0/users/{self.mailbox}/messages", params={"$top": "1"})
            return True
        except MailboxError:
            return False

    def close(self) -> None:
        """Close the HTTP session."""
        self.session.close()

    def __enter__(self) -> "GraphMailboxClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()
