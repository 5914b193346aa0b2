"""
Company (payer) name extraction for the email-evidence fallback.

Used when historical matching finds no qualifying candidate. Stages are
tried in order:
1. Buyer-order pattern: the BO1 field of the first BO line
2. LLM: reads the full notes, only when the notes have no BO line at all
"""

import logging
import re
from typing import Optional

from ..errors import MissingInputError
from ..llm.client import LLMClient, LLMError
from ..llm.prompts import NO_COMPANY_SENTINEL, CompanyNamePrompt
from ..schemas.evidence import CompanyExtraction, ExtractionSource
from ..schemas.payment_notes import LineType, ParsedLine
from .base import CompanyNameStage

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 2

# BO1 value up to the next BO2/BO3 marker; tolerates "BO1 : X" and "XBO2:"
_BO1_VALUE_RE = re.compile(r"BO1\s*:\s*(.+?)(?:\s*BO[23]\s*:|$)", re.IGNORECASE)
_TRAILING_MARKER_RE = re.compile(r"\s*BO[23]\s*:.*$", re.IGNORECASE)
_LEADING_MARKER_RE = re.compile(r"^BO[0-9]+\s*:\s*", re.IGNORECASE)


def extract_bo1_value(line_text: str) -> Optional[str]:
    """
    Return the cleaned BO1 value of a line, or None.

    Examples:
        "BO:1 BO1:ACME LLC BO2:123 MAIN ST" -> "ACME LLC"
        "BO:1 BO1:ACME LLCBO2:123 MAIN ST"  -> "ACME LLC"
    """
    match = _BO1_VALUE_RE.search(line_text)
    if not match:
        return None

    name = match.group(1).strip()
    name = _TRAILING_MARKER_RE.sub("", name)
    name = _LEADING_MARKER_RE.sub("", name).strip()

    if len(name) < MIN_NAME_LENGTH:
        return None
    return name


class BuyerOrderPatternStage(CompanyNameStage):
    """Payer name from the BO1 field of the first buyer-order line."""

    @property
    def name(self) -> str:
        return "bo1_pattern"

    def can_extract(self, lines: list[ParsedLine], payment_notes: str) -> bool:
        return self._first_bo_line(lines) is not None

    def extract(
        self,
        lines: list[ParsedLine],
        payment_notes: str,
        model: Optional[str] = None,
    ) -> Optional[CompanyExtraction]:
        bo_line = self._first_bo_line(lines)
        if bo_line is None:
            return None

        name = extract_bo1_value(bo_line.raw_text)
        if name is None:
            logger.warning("BO line %d has no usable BO1 value", bo_line.line_number)
            return None

        logger.info("Extracted company name from BO1 (line %d)", bo_line.line_number)
        return CompanyExtraction(
            name=name,
            source=ExtractionSource.PATTERN,
            source_line=bo_line.raw_text,
        )

    @staticmethod
    def _first_bo_line(lines: list[ParsedLine]) -> Optional[ParsedLine]:
        for line in lines:
            if line.line_type == LineType.BUYER_ORDER_PRIMARY:
                return line
        return None


class LLMCompanyStage(CompanyNameStage):
    """Payer name read from the full notes by an LLM."""

    def __init__(
        self,
        llm: Optional[LLMClient],
        default_model: Optional[str] = None,
        enabled: bool = True,
    ):
        """
        Args:
            llm: Completion client (None disables the stage)
            default_model: Model used when extract() gets none
            enabled: LLM master switch from configuration
        """
        self.llm = llm
        self.default_model = default_model
        self.enabled = enabled
        self._prompt = CompanyNamePrompt()

    @property
    def name(self) -> str:
        return "llm"

    def can_extract(self, lines: list[ParsedLine], payment_notes: str) -> bool:
        if not self.enabled or self.llm is None:
            return False
        if any(line.line_type == LineType.BUYER_ORDER_PRIMARY for line in lines):
            return False
        return bool(payment_notes and payment_notes.strip())

    def extract(
        self,
        lines: list[ParsedLine],
        payment_notes: str,
        model: Optional[str] = None,
    ) -> Optional[CompanyExtraction]:
        if self.llm is None:
            return None

        prompt = self._prompt.format_user_message(payment_notes)
        try:
            reply = self.llm.complete(prompt, model=model or self.default_model)
        except LLMError as e:
            logger.warning("LLM company extraction failed: %s", e)
            return None
        except Exception as e:
            logger.exception("Unexpected error during LLM company extraction: %s", e)
            return None

        name = (reply or "").strip()
        if not name or name == NO_COMPANY_SENTINEL or len(name) < MIN_NAME_LENGTH:
            logger.info("LLM found no payer name")
            return None

        logger.info("LLM extracted a company name (%d chars)", len(name))
        return CompanyExtraction(name=name, source=ExtractionSource.LLM)


class CompanyNameExtractor:
    """
    Runs company-name stages in order.

    The first stage that can handle the notes decides the result: if the
    notes have a BO line, its BO1 field is the answer (or nothing), and the
    LLM is never asked.
    """

    def __init__(self, stages: list[CompanyNameStage]):
        self.stages = list(stages)

    @classmethod
    def default(
        cls,
        llm: Optional[LLMClient] = None,
        model: Optional[str] = None,
        llm_enabled: bool = True,
    ) -> "CompanyNameExtractor":
        """Pattern stage, then LLM stage."""
        return cls(
            [
                BuyerOrderPatternStage(),
                LLMCompanyStage(llm, default_model=model, enabled=llm_enabled),
            ]
        )

    def extract(
        self,
        lines: list[ParsedLine],
        payment_notes: str,
        model: Optional[str] = None,
    ) -> Optional[CompanyExtraction]:
        """
        Extract the payer name from parsed notes.

        Args:
            lines: Parsed lines of the notes
            payment_notes: Raw note text
            model: LLM model for this call (defaults to the stage's model)

        Returns:
            CompanyExtraction or None

        Raises:
            MissingInputError: If payment_notes is empty
        """
        if not payment_notes or not payment_notes.strip():
            raise MissingInputError("Payment notes are required for company extraction")

        for stage in self.stages:
            if stage.can_extract(lines, payment_notes):
                logger.debug("Company extraction handled by stage %s", stage.name)
                return stage.extract(lines, payment_notes, model=model)

        logger.info("No company extraction stage applicable")
        return None
