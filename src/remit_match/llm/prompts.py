"""Prompt templates for the LLM fallbacks.

Prompts are plain builders: they format text and never call a model, so they
can be tested on their own. Responses are parsed elsewhere.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..schemas.evidence import EmailEvidence

# v1.0: Initial company-name and accounting-summary prompts
PROMPT_VERSION = "v1.0"

# Literal reply meaning "no payer name found"
NO_COMPANY_SENTINEL = "NONE"

# Labels the summary response must use, in order
SUMMARY_LABELS = (
    "Cost Center",
    "Company Code",
    "GL Account",
    "Invoice/Reference",
    "Notes",
)


@dataclass
class CompanyNamePrompt:
    """Prompt template for payer-name extraction from full payment notes.

    Attributes:
        version: Prompt version for traceability.
        user_template: Template with a {payment_notes} placeholder.
    """

    version: str = PROMPT_VERSION

    user_template: str = """Analyze the following bank payment notes and extract the payer/company name.

Payment Notes:
{payment_notes}

Instructions:
- The payer name is generally in the BO1 field, but it could be in any field (BO2, BO3, OB1, BN, etc.)
- Return ONLY the clean company/payer name
- Remove business suffixes like LLC, Inc, INC, Corp, Ltd, Co, Corporation, Incorporated, Limited
- Remove any address information, city, state, zip codes
- Do not include any field labels (like "BO1:", "BO2:", etc.)
- Return just the core business name for easy email searching
- If no clear payer name is found, return the text "{sentinel}"

Example:
Input: "BO1:ACME CORPORATION LLC BO2:123 MAIN ST"
Output: ACME CORPORATION

Extract the payer name:"""

    def format_user_message(self, payment_notes: str) -> str:
        """Format the prompt with the raw payment notes.

        Args:
            payment_notes: Full, unparsed note text.

        Returns:
            Formatted prompt.
        """
        return self.user_template.format(
            payment_notes=payment_notes,
            sentinel=NO_COMPANY_SENTINEL,
        )


@dataclass
class EmailSummaryPrompt:
    """Prompt template for extracting accounting fields from evidence emails."""

    version: str = PROMPT_VERSION

    user_template: str = """You are analyzing emails for bank reconciliation. These emails match the company name "{company_name}" and amount {amount}.

EMAILS:
{emails}

TASK:
Find and extract these accounting fields from the emails (if present):
- Cost Center (e.g., 19090001)
- Company Code (e.g., 1400)
- GL Account (e.g., 6003010)

FORMAT YOUR RESPONSE EXACTLY AS:
**Cost Center**: [number or "Not found"]
**Company Code**: [number or "Not found"]
**GL Account**: [number or "Not found"]
**Invoice/Reference**: [invoice number or "Not found"]
**Notes**: [Any relevant details about the transaction in 1-2 sentences]

IMPORTANT: Only extract actual numbers you find. If a field is not mentioned, write "Not found"."""

    email_template: str = """EMAIL {index}:
Subject: {subject}
From: {sender} <{sender_address}>
Date: {date}
Body: {body}
Extracted Amounts: {amounts}
Extracted Companies: {companies}"""

    def format_email(self, index: int, email: EmailEvidence, body_chars: int = 2000) -> str:
        """Format one email block; the body is cut to body_chars."""
        body = email.body_text or email.body_preview or ""
        if len(body) > body_chars:
            body = body[:body_chars] + "..."
        return self.email_template.format(
            index=index,
            subject=email.subject,
            sender=email.sender,
            sender_address=email.sender_address,
            date=(email.received_at or "unknown")[:10],
            body=body,
            amounts=json.dumps(list(email.extracted_amounts)),
            companies=json.dumps(list(email.extracted_companies)),
        )

    def format_user_message(
        self,
        emails: list[EmailEvidence],
        company_name: str,
        amount: float | None,
        body_chars: int = 2000,
    ) -> str:
        """Format the summary prompt.

        Args:
            emails: Evidence emails, already limited and in ranked order.
            company_name: Payer name the emails were found for.
            amount: Payment amount, if known.
            body_chars: Maximum body characters per email.

        Returns:
            Formatted prompt.
        """
        blocks = [
            self.format_email(index, email, body_chars)
            for index, email in enumerate(emails, start=1)
        ]
        return self.user_template.format(
            company_name=company_name,
            amount=f"${amount:,.2f}" if amount is not None else "(unknown)",
            emails="\n\n---\n\n".join(blocks),
        )
