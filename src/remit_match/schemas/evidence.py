"""
Fallback evidence: extracted payer name, ranked emails, accounting summary.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ExtractionSource(str, Enum):
    """Which stage of the company-name chain produced the name."""

    PATTERN = "PATTERN"
    LLM = "LLM"


# Fixed per source, not derived from text similarity
SOURCE_CONFIDENCE = {
    ExtractionSource.PATTERN: 95,
    ExtractionSource.LLM: 90,
}


@dataclass(frozen=True)
class CompanyExtraction:
    """Payer name extracted from payment notes."""

    name: str
    source: ExtractionSource
    source_line: Optional[str] = None

    @property
    def confidence(self) -> int:
        return SOURCE_CONFIDENCE[self.source]

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "source": self.source.value,
            "confidence": self.confidence,
            "source_line": self.source_line,
        }


@dataclass(frozen=True)
class EmailEvidence:
    """
    An email ranked as evidence for a payment.

    relevance_score is clamped to [0, 100]. similarity is the raw vector
    similarity (0.0 for live mailbox results, which have none).
    """

    id: str
    relevance_score: float
    similarity: float = 0.0
    extracted_amounts: tuple[float, ...] = ()
    extracted_companies: tuple[str, ...] = ()

    # Display fields
    subject: str = ""
    sender_name: str = ""
    sender_address: str = ""
    received_at: Optional[str] = None  # ISO timestamp
    body_preview: str = ""
    body_text: str = ""
    has_attachments: bool = False
    source: str = "cached"  # "cached" or "live"

    @property
    def sender(self) -> str:
        return self.sender_name or self.sender_address

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "relevance_score": round(self.relevance_score),
            "similarity": round(self.similarity * 100),
            "extracted_amounts": list(self.extracted_amounts),
            "extracted_companies": list(self.extracted_companies),
            "subject": self.subject,
            "from": self.sender,
            "from_address": self.sender_address,
            "received_at": self.received_at,
            "preview": self.body_preview[:150],
            "has_attachments": self.has_attachments,
            "source": self.source,
        }


@dataclass(frozen=True)
class AccountingSummary:
    """
    Accounting fields pulled from evidence emails by the LLM.

    Each field is None when the model reported it as not found.
    """

    cost_center: Optional[str] = None
    company_code: Optional[str] = None
    gl_account: Optional[str] = None
    invoice: Optional[str] = None
    notes: Optional[str] = None
    raw_response: Optional[str] = None
    emails_analyzed: int = 0

    @property
    def has_structured_fields(self) -> bool:
        return any((self.cost_center, self.company_code, self.gl_account, self.invoice))

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "cost_center": self.cost_center,
            "company_code": self.company_code,
            "gl_account": self.gl_account,
            "invoice": self.invoice,
            "notes": self.notes,
            "emails_analyzed": self.emails_analyzed,
        }
