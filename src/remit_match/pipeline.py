"""
Reconciliation pipeline for one statement's payment notes.

Flow:
1. Classify note lines
2. Match searchable lines against the historical corpus
3. If no line has a qualifying candidate:
   a. Extract the payer name
   b. Search email evidence around the value date
   c. Summarize the top emails with the LLM
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from .email_evidence.search import EmailEvidenceSearch, EmailIndex, Mailbox
from .email_evidence.summarizer import Summarizer
from .errors import MissingInputError
from .extraction.company import CompanyNameExtractor
from .llm.client import LLMClient
from .matching.orchestrator import MatchOrchestrator
from .matching.strategies import CorpusBackend, build_strategies
from .parsing.line_classifier import parse_payment_notes
from .schemas.evidence import AccountingSummary, CompanyExtraction, EmailEvidence
from .schemas.match import BestMatch, LineMatch, StrategyKind
from .schemas.payment_notes import ParsedLine

if TYPE_CHECKING:
    from .config import Config

logger = logging.getLogger(__name__)


class ReconciliationStatus(str, Enum):
    MATCHED = "MATCHED"
    NO_MATCH = "NO_MATCH"


@dataclass(frozen=True)
class ReconciliationResult:
    """Everything the pipeline found for one statement."""

    lines: tuple[ParsedLine, ...]
    line_matches: tuple[LineMatch, ...]
    best_match: Optional[BestMatch] = None
    company: Optional[CompanyExtraction] = None
    emails: tuple[EmailEvidence, ...] = ()
    summary: Optional[AccountingSummary] = None

    @property
    def status(self) -> ReconciliationStatus:
        if self.best_match is not None:
            return ReconciliationStatus.MATCHED
        return ReconciliationStatus.NO_MATCH

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "status": self.status.value,
            "best_match": self.best_match.to_dict() if self.best_match else None,
            "line_matches": [m.to_dict() for m in self.line_matches],
            "company": self.company.to_dict() if self.company else None,
            "emails": [e.to_dict() for e in self.emails],
            "summary": self.summary.to_dict() if self.summary else None,
        }


class ReconciliationPipeline:
    """
    Runs matching and, when nothing qualifies, the email-evidence fallback.

    Collaborators are injected; email search and summarizer are optional.
    """

    def __init__(
        self,
        orchestrator: MatchOrchestrator,
        company_extractor: CompanyNameExtractor,
        email_search: Optional[EmailEvidenceSearch] = None,
        summarizer: Optional[Summarizer] = None,
        model: Optional[str] = None,
    ):
        self.orchestrator = orchestrator
        self.company_extractor = company_extractor
        self.email_search = email_search
        self.summarizer = summarizer
        self.model = model

    @classmethod
    def from_config(
        cls,
        config: Config,
        backends: dict[StrategyKind, CorpusBackend],
        llm: Optional[LLMClient] = None,
        email_index: Optional[EmailIndex] = None,
        mailbox: Optional[Mailbox] = None,
    ) -> "ReconciliationPipeline":
        """
        Wire a pipeline from configuration and capability providers.

        Args:
            config: Loaded configuration
            backends: Corpus backend per strategy kind
            llm: Completion client (ignored when llm.enabled is false)
            email_index: Cached email index, if available
            mailbox: Live mailbox, if available
        """
        strategies = build_strategies(
            backends,
            enabled=config.matching.enabled_kinds(),
            max_candidates=config.matching.max_candidates_per_strategy,
        )
        llm_client = llm if config.llm.enabled else None

        return cls(
            orchestrator=MatchOrchestrator.from_config(strategies, config.matching),
            company_extractor=CompanyNameExtractor.default(
                llm_client, model=config.llm.model, llm_enabled=config.llm.enabled
            ),
            email_search=EmailEvidenceSearch.from_config(
                config.email_search,
                index=email_index,
                mailbox=mailbox,
                subject_filter=config.mailbox.subject_filter,
            ),
            summarizer=Summarizer(
                llm_client,
                default_model=config.llm.model,
                enabled=config.llm.enabled,
                email_limit=config.email_search.summary_email_limit,
                body_chars=config.email_search.summary_body_chars,
            ),
            model=config.llm.model,
        )

    def run(
        self,
        payment_notes: str,
        amount: Optional[float] = None,
        value_date: Optional[date | datetime] = None,
    ) -> ReconciliationResult:
        """
        Reconcile one statement's payment notes.

        Args:
            payment_notes: Raw note text
            amount: Statement amount, used to score email evidence
            value_date: Value date; the email search is skipped without it

        Returns:
            ReconciliationResult

        Raises:
            MissingInputError: If payment_notes is empty
        """
        if not payment_notes or not payment_notes.strip():
            raise MissingInputError("Payment notes are required")

        lines = parse_payment_notes(payment_notes)
        line_matches, best = self.orchestrator.match_lines(lines)

        if best is not None:
            logger.info(
                "Best match on line %d (%.1f%%)", best.line_number, best.candidate.confidence
            )
            return ReconciliationResult(
                lines=tuple(lines),
                line_matches=tuple(line_matches),
                best_match=best,
            )

        logger.info("No qualifying match, trying email evidence")
        company = self.company_extractor.extract(lines, payment_notes, model=self.model)
        emails: list[EmailEvidence] = []
        summary: Optional[AccountingSummary] = None

        if company is None:
            logger.info("No payer name found")
        elif value_date is None:
            logger.info("No value date, skipping email search")
        elif self.email_search is not None:
            emails = self.email_search.search(company.name, amount, value_date)
            logger.info("Found %d evidence emails", len(emails))
            if emails and self.summarizer is not None:
                summary = self.summarizer.summarize(
                    emails, company.name, amount, model=self.model
                )

        return ReconciliationResult(
            lines=tuple(lines),
            line_matches=tuple(line_matches),
            company=company,
            emails=tuple(emails),
            summary=summary,
        )
