"""
Line classifier for bank payment notes.

Splits a statement's raw payment notes into physical lines, types each line
by its field prefix (BO, ORDER, TRID, ...), and decides which text of the
line is used for historical matching.

Lines are never merged, even when the bank visually wrapped a long field
across lines: each line is matched on its own so that trailing address
fragments do not dilute the similarity score of the name-bearing line.
"""

import re
from typing import Any, Optional

from ..schemas.payment_notes import LineType, ParsedLine

# Declared order is the match order: first pattern that matches wins.
LINE_PATTERNS: list[tuple[LineType, re.Pattern]] = [
    (LineType.BUYER_ORDER_PRIMARY, re.compile(r"^BO\s*:", re.IGNORECASE)),
    (LineType.BUYER_ORDER_NAME, re.compile(r"BO1\s*:", re.IGNORECASE)),
    (LineType.BUYER_ORDER_SECONDARY, re.compile(r"BO2\s*:", re.IGNORECASE)),
    (LineType.ORDER_REF, re.compile(r"^ORDER\s*:", re.IGNORECASE)),
    (LineType.BUSINESS_NAME, re.compile(r"^BN\s*:", re.IGNORECASE)),
    (LineType.FROM_REF, re.compile(r"^FR\s*:", re.IGNORECASE)),
    (LineType.TO_REF, re.compile(r"^TO\s*:", re.IGNORECASE)),
    (LineType.ADDITIONAL_INFO, re.compile(r"^OBI\s*:", re.IGNORECASE)),
    (LineType.ORDERING_BANK, re.compile(r"^OB\s*:", re.IGNORECASE)),
    (LineType.PAYMENT_REF, re.compile(r"^PY\s*:", re.IGNORECASE)),
    (LineType.BUSINESS_ID, re.compile(r"^BI\s*:", re.IGNORECASE)),
    (LineType.CREDIT_REF, re.compile(r"^CR\s*:", re.IGNORECASE)),
    (LineType.REFERENCE, re.compile(r"^RF\s*:", re.IGNORECASE)),
    (LineType.SENDING_PERSON, re.compile(r"SENDING PERSON|SENDING CO", re.IGNORECASE)),
    (LineType.REMITTANCE_REF, re.compile(r"^ROC\s*:", re.IGNORECASE)),
    (LineType.TRANSACTION_ID, re.compile(r"^TRID\s*:", re.IGNORECASE)),
    (LineType.END_DATE, re.compile(r"^ENDT\s*:", re.IGNORECASE)),
    (LineType.DETAILS, re.compile(r"^DETAILS\b", re.IGNORECASE)),
]

# Composite fields carrying payer identity; the whole line is the search text.
SEARCHABLE_TYPES = frozenset(
    {
        LineType.BUYER_ORDER_PRIMARY,
        LineType.BUYER_ORDER_NAME,
        LineType.BUYER_ORDER_SECONDARY,
        LineType.ORDER_REF,
        LineType.SENDING_PERSON,
        LineType.DETAILS,
    }
)

MIN_SEARCH_LENGTH = 5

_TRANSACTION_ID_RE = re.compile(r"TRID:(\d+)", re.IGNORECASE)
_AMOUNT_RE = re.compile(r"\$?([\d,]+\.\d{2})")
_DATE_TOKEN_RE = re.compile(r"(?<!\d)\d{8}(?!\d)")


def normalize_line_endings(text: str) -> str:
    """Convert literal "\\n" sequences, CRLF and CR to LF."""
    return text.replace("\\n", "\n").replace("\r\n", "\n").replace("\r", "\n")


def split_lines(text: str) -> list[str]:
    """Split payment notes into trimmed, non-empty physical lines."""
    if not text:
        return []
    return [line.strip() for line in normalize_line_endings(text).split("\n") if line.strip()]


def classify_line(line_text: str) -> LineType:
    """Return the type of the first pattern that matches the line."""
    for line_type, pattern in LINE_PATTERNS:
        if pattern.search(line_text):
            return line_type
    return LineType.OTHER


def extract_search_text(line_text: str, line_type: Optional[LineType] = None) -> Optional[str]:
    """
    Return the text of a line used for matching, or None.

    Searchable lines yield the entire unmodified line; the fields are not
    split apart. Bank routing, reference and metadata lines yield None.
    """
    if line_type is None:
        line_type = classify_line(line_text)
    if line_type in SEARCHABLE_TYPES:
        return line_text
    return None


def extract_metadata(line_text: str) -> dict[str, Any]:
    """Pull auxiliary tokens out of a line. Never used for searching."""
    metadata: dict[str, Any] = {}

    trid_match = _TRANSACTION_ID_RE.search(line_text)
    if trid_match:
        metadata["transaction_id"] = trid_match.group(1)

    amount_match = _AMOUNT_RE.search(line_text)
    if amount_match:
        metadata["amount"] = amount_match.group(1)

    date_match = _DATE_TOKEN_RE.search(line_text)
    if date_match:
        metadata["date"] = date_match.group(0)

    return metadata


def parse_payment_notes(payment_notes: Optional[str]) -> list[ParsedLine]:
    """
    Parse raw payment notes into ordered, classified lines.

    Args:
        payment_notes: Raw note text as delivered with the bank statement

    Returns:
        One ParsedLine per non-empty physical line, numbered from 1
    """
    parsed: list[ParsedLine] = []
    for index, line_text in enumerate(split_lines(payment_notes or ""), start=1):
        line_type = classify_line(line_text)
        parsed.append(
            ParsedLine(
                line_number=index,
                raw_text=line_text,
                line_type=line_type,
                search_text=extract_search_text(line_text, line_type),
                metadata=extract_metadata(line_text),
            )
        )
    return parsed


def should_match_line(line: ParsedLine, min_length: int = MIN_SEARCH_LENGTH) -> bool:
    """True if the line carries search text long enough to be matched."""
    if not line.search_text:
        return False
    return len(line.search_text.strip()) >= min_length
