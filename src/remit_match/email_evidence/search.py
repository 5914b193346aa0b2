"""
Email evidence search.

When a payment cannot be matched historically, emails around the value date
that mention the payer are ranked as evidence for the reviewer.

Two rankers share one scoring contract (bonuses on top of a base score,
clamped to [0, 100]) but use different weight scales:
- Cached corpus: vector similarity over locally indexed emails plus bonuses
- Live mailbox: keyword search against the mailbox API, bonuses only

The weights for the same signal differ between the two (company in subject:
20 vs 50). Both scales are kept as-is in CachedWeights and LiveWeights.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Optional

from ..errors import MissingInputError
from ..schemas.evidence import EmailEvidence

if TYPE_CHECKING:
    from ..config import EmailSearchConfig

logger = logging.getLogger(__name__)

MAX_SCORE = 100.0
MIN_SCORE = 0.0


@dataclass(frozen=True)
class CachedWeights:
    """Bonus weights for the cached (vector-indexed) corpus."""

    similarity_scale: float = 50.0
    company_in_subject: float = 20.0
    company_in_body: float = 10.0
    company_in_extracted: float = 15.0
    amount_in_extracted: float = 20.0
    company_in_sender: float = 10.0
    # Relative tolerance for amount_in_extracted
    amount_tolerance: float = 0.01


@dataclass(frozen=True)
class LiveWeights:
    """Bonus weights for live mailbox keyword results (no similarity term)."""

    company_in_subject: float = 50.0
    company_in_body: float = 30.0
    amount_in_subject: float = 30.0
    amount_in_body: float = 20.0
    has_attachments: float = 10.0
    company_in_sender: float = 20.0


class EmailIndex(ABC):
    """Locally cached emails with an embedding index."""

    @abstractmethod
    def query(
        self,
        text: str,
        start: datetime,
        end: datetime,
        limit: int,
    ) -> list[dict[str, Any]]:
        """
        Embed ``text`` and return the ``limit`` most similar emails received
        between start and end, best first. Each record carries a
        ``similarity`` in [0, 1].
        """
        pass


class Mailbox(ABC):
    """Live mailbox keyword search."""

    @abstractmethod
    def query(
        self,
        query: str,
        start: datetime,
        end: datetime,
        limit: int,
    ) -> list[dict[str, Any]]:
        """Return up to ``limit`` messages matching the keyword query."""
        pass


def clamp_score(score: float) -> float:
    return min(max(score, MIN_SCORE), MAX_SCORE)


def _iso(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def _phrase(value: str) -> str:
    return " ".join(value.replace('"', " ").split())


def parse_json_list(value: Any) -> list:
    """
    Parse a JSON side field into a list.

    Lists pass through; strings are decoded; anything malformed or not a
    list becomes [].
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, str):
        try:
            parsed = json.loads(value or "[]")
        except (json.JSONDecodeError, ValueError):
            return []
        return parsed if isinstance(parsed, list) else []
    return []


def parse_amounts(value: Any) -> list[float]:
    """Numeric entries of a JSON side field; non-numeric entries are skipped."""
    amounts: list[float] = []
    for item in parse_json_list(value):
        try:
            amounts.append(float(str(item).replace(",", "").replace("$", "")))
        except (TypeError, ValueError):
            continue
    return amounts


def parse_companies(value: Any) -> list[str]:
    return [str(item) for item in parse_json_list(value) if item is not None]


def amount_strings(amount: float) -> list[str]:
    """
    Textual forms of an amount as it may appear in an email.

    1500.5 -> ["1500.5", "1,500.5", "1500.50", "1,500.50"]
    """
    try:
        plain = Decimal(str(amount)).normalize()
    except InvalidOperation:
        return []
    if plain == plain.to_integral():
        plain = plain.quantize(Decimal(1))
    forms = [format(plain, "f"), format(plain, ",f"), f"{amount:.2f}", f"{amount:,.2f}"]
    # Dedupe, keep order
    return list(dict.fromkeys(forms))


def date_window(
    center: date | datetime,
    days_before: int,
    days_after: int,
) -> tuple[datetime, datetime]:
    """
    Inclusive datetime window around a center date.

    A plain date covers whole days: start of the first day to end of the last.
    """
    if isinstance(center, datetime):
        return center - timedelta(days=days_before), center + timedelta(days=days_after)
    return (
        datetime.combine(center - timedelta(days=days_before), time.min),
        datetime.combine(center + timedelta(days=days_after), time.max),
    )


class EmailRanker(ABC):
    """One way of finding and scoring evidence emails."""

    source: str = ""
    default_days_before: int = 0
    default_days_after: int = 0

    @abstractmethod
    def search(
        self,
        company_name: str,
        amount: Optional[float],
        center_date: date | datetime,
        days_before: Optional[int] = None,
        days_after: Optional[int] = None,
    ) -> list[EmailEvidence]:
        """Return ranked evidence, best first. Backend errors propagate."""
        pass


class CachedEmailRanker(EmailRanker):
    """Vector search over the local email cache, rescored with bonuses."""

    source = "cached"

    def __init__(
        self,
        index: EmailIndex,
        weights: CachedWeights = CachedWeights(),
        candidate_limit: int = 25,
        result_limit: int = 10,
        days_before: int = 7,
        days_after: int = 7,
    ):
        self.index = index
        self.weights = weights
        self.candidate_limit = candidate_limit
        self.result_limit = result_limit
        self.default_days_before = days_before
        self.default_days_after = days_after

    def search(
        self,
        company_name: str,
        amount: Optional[float],
        center_date: date | datetime,
        days_before: Optional[int] = None,
        days_after: Optional[int] = None,
    ) -> list[EmailEvidence]:
        start, end = date_window(
            center_date,
            self.default_days_before if days_before is None else days_before,
            self.default_days_after if days_after is None else days_after,
        )
        query_text = f"{company_name} payment {amount if amount is not None else ''}".strip()
        logger.debug("Cached email query %s..%s", start.date(), end.date())

        records = self.index.query(query_text, start, end, self.candidate_limit)
        logger.info("Cached email search: %d candidates", len(records))

        scored = [self._to_evidence(r, company_name, amount) for r in records]
        scored.sort(key=lambda e: e.relevance_score, reverse=True)
        return scored[: self.result_limit]

    def score(self, record: dict[str, Any], company_name: str, amount: Optional[float]) -> float:
        """
        Combined relevance of one cached email.

        Base: similarity x 50. Bonuses: company in subject / body / extracted
        companies / sender, and an extracted amount within 1% of the target.
        """
        w = self.weights
        company = company_name.lower()
        subject = (record.get("subject") or "").lower()
        body = (record.get("body_preview") or record.get("body_text") or "").lower()
        sender_name = (record.get("from_name") or "").lower()
        sender_address = (record.get("from_address") or "").lower()

        score = float(record.get("similarity") or 0.0) * w.similarity_scale

        if company in subject:
            score += w.company_in_subject
        if company in body:
            score += w.company_in_body

        if any(company in c.lower() for c in parse_companies(record.get("extracted_companies"))):
            score += w.company_in_extracted

        if amount:
            tolerance = abs(amount) * w.amount_tolerance
            if any(abs(x - amount) <= tolerance for x in parse_amounts(record.get("extracted_amounts"))):
                score += w.amount_in_extracted

        if company in sender_name or company in sender_address:
            score += w.company_in_sender

        return clamp_score(score)

    def _to_evidence(
        self,
        record: dict[str, Any],
        company_name: str,
        amount: Optional[float],
    ) -> EmailEvidence:
        return EmailEvidence(
            id=str(record.get("id") or record.get("message_id") or ""),
            relevance_score=self.score(record, company_name, amount),
            similarity=float(record.get("similarity") or 0.0),
            extracted_amounts=tuple(parse_amounts(record.get("extracted_amounts"))),
            extracted_companies=tuple(parse_companies(record.get("extracted_companies"))),
            subject=record.get("subject") or "",
            sender_name=record.get("from_name") or "",
            sender_address=record.get("from_address") or "",
            received_at=_iso(record.get("received_at")),
            body_preview=record.get("body_preview") or "",
            body_text=record.get("body_text") or "",
            has_attachments=bool(record.get("has_attachments")),
            source=self.source,
        )


class LiveMailboxRanker(EmailRanker):
    """Keyword search against the live mailbox, scored by bonuses only."""

    source = "live"

    def __init__(
        self,
        mailbox: Mailbox,
        subject_filter: str = "",
        weights: LiveWeights = LiveWeights(),
        candidate_limit: int = 25,
        days_before: int = 3,
        days_after: int = 3,
    ):
        self.mailbox = mailbox
        self.subject_filter = subject_filter
        self.weights = weights
        self.candidate_limit = candidate_limit
        self.default_days_before = days_before
        self.default_days_after = days_after

    def build_query(self, company_name: str) -> str:
        """Company name AND the fixed subject filter (quoted for the API).

        Embedded double quotes would end the phrase early, so they are dropped.
        """
        query = f'"{_phrase(company_name)}"'
        if self.subject_filter:
            query += f' AND subject:"{_phrase(self.subject_filter)}"'
        return query

    def search(
        self,
        company_name: str,
        amount: Optional[float],
        center_date: date | datetime,
        days_before: Optional[int] = None,
        days_after: Optional[int] = None,
    ) -> list[EmailEvidence]:
        start, end = date_window(
            center_date,
            self.default_days_before if days_before is None else days_before,
            self.default_days_after if days_after is None else days_after,
        )
        records = self.mailbox.query(self.build_query(company_name), start, end, self.candidate_limit)
        logger.info("Live mailbox search: %d messages", len(records))

        scored = [self._to_evidence(r, company_name, amount) for r in records]
        scored.sort(key=lambda e: e.relevance_score, reverse=True)
        return scored

    def score(self, record: dict[str, Any], company_name: str, amount: Optional[float]) -> float:
        """
        Relevance of one mailbox message.

        Company in subject / body / sender, the amount's text in subject or
        body, and attachments each add a fixed bonus.
        """
        w = self.weights
        company = company_name.lower()
        subject = (record.get("subject") or "").lower()
        body = (record.get("body_preview") or "").lower()
        sender_name = (record.get("from_name") or "").lower()
        sender_address = (record.get("from_address") or "").lower()

        score = 0.0
        if company in subject:
            score += w.company_in_subject
        if company in body:
            score += w.company_in_body

        if amount:
            forms = amount_strings(amount)
            if any(form in subject for form in forms):
                score += w.amount_in_subject
            if any(form in body for form in forms):
                score += w.amount_in_body

        if record.get("has_attachments"):
            score += w.has_attachments

        if company in sender_name or company in sender_address:
            score += w.company_in_sender

        return clamp_score(score)

    def _to_evidence(
        self,
        record: dict[str, Any],
        company_name: str,
        amount: Optional[float],
    ) -> EmailEvidence:
        return EmailEvidence(
            id=str(record.get("id") or ""),
            relevance_score=self.score(record, company_name, amount),
            subject=record.get("subject") or "",
            sender_name=record.get("from_name") or "",
            sender_address=record.get("from_address") or "",
            received_at=_iso(record.get("received_at")),
            body_preview=record.get("body_preview") or "",
            body_text=record.get("body_text") or record.get("body_preview") or "",
            has_attachments=bool(record.get("has_attachments")),
            source=self.source,
        )


class EmailEvidenceSearch:
    """
    Ordered list of email rankers behind one search call.

    Rankers are tried in order; the first one returning evidence wins. A
    ranker that fails is logged and skipped.
    """

    def __init__(self, rankers: list[EmailRanker]):
        self.rankers = list(rankers)

    @classmethod
    def from_config(
        cls,
        config: EmailSearchConfig,
        index: Optional[EmailIndex] = None,
        mailbox: Optional[Mailbox] = None,
        subject_filter: str = "",
    ) -> "EmailEvidenceSearch":
        """Cached ranker first (if an index is given), then the live mailbox."""
        rankers: list[EmailRanker] = []
        if index is not None:
            rankers.append(
                CachedEmailRanker(
                    index,
                    candidate_limit=config.candidate_limit,
                    result_limit=config.cached_result_limit,
                    days_before=config.cached_days_before,
                    days_after=config.cached_days_after,
                )
            )
        if mailbox is not None and config.use_live_mailbox:
            rankers.append(
                LiveMailboxRanker(
                    mailbox,
                    subject_filter=subject_filter,
                    candidate_limit=config.candidate_limit,
                    days_before=config.live_days_before,
                    days_after=config.live_days_after,
                )
            )
        return cls(rankers)

    def search(
        self,
        company_name: Optional[str],
        amount: Optional[float],
        center_date: date | datetime,
        days_before: Optional[int] = None,
        days_after: Optional[int] = None,
    ) -> list[EmailEvidence]:
        """
        Find ranked evidence emails for a payer.

        Args:
            company_name: Payer name (required)
            amount: Payment amount, if known
            center_date: Value date of the payment
            days_before: Window override; None uses each ranker's default
            days_after: Window override; None uses each ranker's default

        Returns:
            Evidence from the first ranker that found any, best first

        Raises:
            MissingInputError: If company_name is missing or blank
        """
        if not company_name or not company_name.strip():
            raise MissingInputError("Company name is required for email search")
        company_name = company_name.strip()

        for ranker in self.rankers:
            try:
                evidence = ranker.search(company_name, amount, center_date, days_before, days_after)
            except Exception as e:
                logger.warning("%s email search failed: %s", ranker.source, e)
                continue
            if evidence:
                return evidence

        return []
