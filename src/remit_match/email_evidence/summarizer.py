"""
Accounting summary of evidence emails.

Two stages, each testable without a model:
1. EmailSummaryPrompt builds the prompt from the top-ranked emails
2. parse_summary reads the labelled reply into an AccountingSummary
"""

import logging
import re
from typing import Optional

from ..llm.client import LLMClient, LLMError
from ..llm.prompts import EmailSummaryPrompt
from ..schemas.evidence import AccountingSummary, EmailEvidence

logger = logging.getLogger(__name__)

# Values meaning "the model found nothing for this label"
EMPTY_VALUES = {"not found", "-", ""}

_FIELD_PATTERNS = {
    "cost_center": re.compile(r"\*\*Cost Center\*\*[ \t]*:[ \t]*(.+)", re.IGNORECASE),
    "company_code": re.compile(r"\*\*Company Code\*\*[ \t]*:[ \t]*(.+)", re.IGNORECASE),
    "gl_account": re.compile(r"\*\*GL Account\*\*[ \t]*:[ \t]*(.+)", re.IGNORECASE),
    "invoice": re.compile(r"\*\*Invoice/Reference\*\*[ \t]*:[ \t]*(.+)", re.IGNORECASE),
    "notes": re.compile(r"\*\*Notes\*\*[ \t]*:[ \t]*(.+)", re.IGNORECASE),
}


def _clean_value(value: str) -> Optional[str]:
    value = value.strip().strip("[]").strip().strip('"').strip()
    if value.lower() in EMPTY_VALUES:
        return None
    return value


def parse_summary(text: Optional[str], emails_analyzed: int = 0) -> AccountingSummary:
    """
    Parse a labelled summary reply.

    Each "**Label**: value" line fills one field; "Not found" and "-" become
    None. If no label is recognized at all, the whole reply is kept as notes.
    Never raises.
    """
    raw = text or ""
    fields: dict[str, Optional[str]] = {}
    matched = False

    for key, pattern in _FIELD_PATTERNS.items():
        match = pattern.search(raw)
        if match:
            matched = True
            fields[key] = _clean_value(match.group(1))
        else:
            fields[key] = None

    if not matched:
        fields["notes"] = raw.strip() or None

    return AccountingSummary(
        raw_response=raw,
        emails_analyzed=emails_analyzed,
        **fields,
    )


class Summarizer:
    """Summarizes the top-ranked evidence emails with the LLM."""

    def __init__(
        self,
        llm: Optional[LLMClient],
        default_model: Optional[str] = None,
        enabled: bool = True,
        email_limit: int = 5,
        body_chars: int = 2000,
    ):
        self.llm = llm
        self.default_model = default_model
        self.enabled = enabled
        self.email_limit = email_limit
        self.body_chars = body_chars
        self._prompt = EmailSummaryPrompt()

    def summarize(
        self,
        emails: list[EmailEvidence],
        company_name: str,
        amount: Optional[float] = None,
        model: Optional[str] = None,
    ) -> Optional[AccountingSummary]:
        """
        Extract accounting fields from evidence emails.

        Args:
            emails: Ranked evidence; the first email_limit are used as given
            company_name: Payer name the emails were found for
            amount: Payment amount, if known
            model: LLM model for this call (defaults to default_model)

        Returns:
            AccountingSummary, or None if there is nothing to summarize, the
            LLM is disabled, or the call fails
        """
        if not emails:
            return None
        if not self.enabled or self.llm is None:
            logger.debug("LLM disabled, skipping email summary")
            return None

        selected = list(emails)[: self.email_limit]
        prompt = self._prompt.format_user_message(
            selected, company_name, amount, body_chars=self.body_chars
        )

        try:
            reply = self.llm.complete(prompt, model=model or self.default_model)
        except LLMError as e:
            logger.warning("Email summary failed: %s", e)
            return None
        except Exception as e:
            logger.exception("Unexpected error during email summary: %s", e)
            return None

        summary = parse_summary(reply, emails_analyzed=len(selected))
        logger.info(
            "Summarized %d emails (structured fields: %s)",
            len(selected),
            summary.has_structured_fields,
        )
        return summary
