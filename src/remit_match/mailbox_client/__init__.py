"""
Microsoft Graph mailbox client.

Provides:
- Keyword search over one mailbox ($search with a subject filter)
- Client-side date window filtering
- Typed errors for connection and API failures
"""

from .client import (
    GraphMailboxClient,
    MailboxAPIError,
    MailboxConnectionError,
    MailboxError,
)

__all__ = [
    "GraphMailboxClient",
    "MailboxError",
    "MailboxAPIError",
    "MailboxConnectionError",
]
