"""
Email evidence fallback.

Provides:
- EmailEvidenceSearch: ordered cached/live rankers behind one call
- Summarizer: LLM accounting summary of the top-ranked emails
"""

from .search import (
    CachedEmailRanker,
    CachedWeights,
    EmailEvidenceSearch,
    EmailIndex,
    EmailRanker,
    LiveMailboxRanker,
    LiveWeights,
    Mailbox,
    amount_strings,
    parse_json_list,
)
from .summarizer import Summarizer, parse_summary

__all__ = [
    "EmailEvidenceSearch",
    "EmailRanker",
    "CachedEmailRanker",
    "LiveMailboxRanker",
    "CachedWeights",
    "LiveWeights",
    "EmailIndex",
    "Mailbox",
    "amount_strings",
    "parse_json_list",
    "Summarizer",
    "parse_summary",
]
