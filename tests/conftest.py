"""Test fixtures and utilities."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import pytest

from remit_match.email_evidence.search import EmailIndex, Mailbox
from remit_match.llm.client import LLMClient, LLMError
from remit_match.matching.strategies import CorpusBackend

# Payment notes as delivered with a bank statement
SAMPLE_NOTES_BO = "BO:219062889 BO1:ACME LLC BO2:123 MAIN ST\nTRID:998877\n"

SAMPLE_NOTES_MULTI = (
    "BO:219062889 BO1:ACME LLC BO2:123 MAIN ST\r\n"
    "ORDER:PO 4500012345\r\n"
    "OBI:INV 7781 $1,500.00\r\n"
    "TRID:998877 20240301\r\n"
    "SENDING PERSON JANE DOE\r\n"
)

SAMPLE_NOTES_NO_BO = "ORDER:GLOBEX SUPPLY 4411\nOBI:REMITTANCE FOR MARCH\n"

SAMPLE_SUMMARY_REPLY = """**Cost Center**: 19090001
**Company Code**: 1400
**GL Account**: Not found
**Invoice/Reference**: INV-7781
**Notes**: Payment for March services."""


class FakeBackend(CorpusBackend):
    """Corpus backend returning canned records."""

    def __init__(self, records: list[dict[str, Any]] | None = None, error: Exception | None = None):
        self.records = records or []
        self.error = error
        self.calls: list[tuple[str, int]] = []

    def search(self, text: str, limit: int) -> list[dict[str, Any]]:
        self.calls.append((text, limit))
        if self.error is not None:
            raise self.error
        return list(self.records)


class FakeLLM(LLMClient):
    """Completion client returning a canned reply."""

    def __init__(self, reply: str = "", error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.calls: list[dict[str, Any]] = []

    def complete(self, prompt: str, model: str | None = None, system_prompt: str | None = None) -> str:
        self.calls.append({"prompt": prompt, "model": model})
        if self.error is not None:
            raise self.error
        return self.reply


class FakeEmailIndex(EmailIndex):
    def __init__(self, records: list[dict[str, Any]] | None = None, error: Exception | None = None):
        self.records = records or []
        self.error = error
        self.calls: list[tuple[str, datetime, datetime, int]] = []

    def query(self, text: str, start: datetime, end: datetime, limit: int) -> list[dict[str, Any]]:
        self.calls.append((text, start, end, limit))
        if self.error is not None:
            raise self.error
        return list(self.records)


class FakeMailbox(Mailbox):
    def __init__(self, records: list[dict[str, Any]] | None = None, error: Exception | None = None):
        self.records = records or []
        self.error = error
        self.calls: list[tuple[str, datetime, datetime, int]] = []

    def query(self, query: str, start: datetime, end: datetime, limit: int) -> list[dict[str, Any]]:
        self.calls.append((query, start, end, limit))
        if self.error is not None:
            raise self.error
        return list(self.records)


def record(record_id: Any, score: float, score_field: str = "similarity", **fields: Any) -> dict:
    """Build a corpus record."""
    data = {"id": record_id, "display_text": f"posting {record_id}", score_field: score}
    data.update(fields)
    return data


@pytest.fixture
def llm_error() -> LLMError:
    return LLMError("connection refused")


@pytest.fixture
def sample_notes() -> str:
    return SAMPLE_NOTES_BO
