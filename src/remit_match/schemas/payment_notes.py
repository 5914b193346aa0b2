"""
Payment note line schema.

One ParsedLine per physical line of a statement's payment notes.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional


class LineType(str, Enum):
    """Payment note line type, keyed by the note's field prefix."""

    BUYER_ORDER_PRIMARY = "BO"
    BUYER_ORDER_NAME = "BO1"
    BUYER_ORDER_SECONDARY = "BO2"
    ORDER_REF = "ORDER"
    BUSINESS_NAME = "BN"
    FROM_REF = "FR"
    TO_REF = "TO"
    ADDITIONAL_INFO = "OBI"
    ORDERING_BANK = "OB"
    PAYMENT_REF = "PY"
    BUSINESS_ID = "BI"
    CREDIT_REF = "CR"
    REFERENCE = "RF"
    SENDING_PERSON = "SENDING"
    REMITTANCE_REF = "ROC"
    TRANSACTION_ID = "TRID"
    END_DATE = "ENDT"
    DETAILS = "DETAILS"
    OTHER = "OTHER"


@dataclass(frozen=True)
class ParsedLine:
    """A classified payment note line."""

    line_number: int  # 1-based, in input order
    raw_text: str
    line_type: LineType
    search_text: Optional[str] = None  # None: line is not used for matching
    metadata: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "line_number": self.line_number,
            "raw_text": self.raw_text,
            "line_type": self.line_type.value,
            "search_text": self.search_text,
            "metadata": dict(self.metadata),
        }
