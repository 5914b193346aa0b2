"""Tests for the email summary prompt, parser and summarizer."""

from __future__ import annotations

from remit_match.email_evidence import Summarizer, parse_summary
from remit_match.llm import LLMError
from remit_match.llm.prompts import PROMPT_VERSION, EmailSummaryPrompt
from remit_match.schemas import EmailEvidence

from conftest import SAMPLE_SUMMARY_REPLY, FakeLLM


def evidence(index: int, body: str = "body", **kwargs) -> EmailEvidence:
    return EmailEvidence(
        id=f"m{index}",
        relevance_score=100 - index,
        subject=f"Subject {index}",
        sender_name="Acme AR",
        sender_address="ar@acme.example",
        received_at="2024-03-01T10:00:00Z",
        body_text=body,
        **kwargs,
    )


class TestEmailSummaryPrompt:
    """Tests for EmailSummaryPrompt."""

    def test_prompt_version_set(self) -> None:
        assert EmailSummaryPrompt().version == PROMPT_VERSION

    def test_format_user_message(self) -> None:
        """Test company, amount, email fields and labels appear in the prompt."""
        message = EmailSummaryPrompt().format_user_message(
            [evidence(1, extracted_amounts=(1500.0,), extracted_companies=("ACME",))],
            "ACME LLC",
            1500.0,
        )

        assert '"ACME LLC"' in message
        assert "$1,500.00" in message
        assert "EMAIL 1:" in message
        assert "Subject: Subject 1" in message
        assert "From: Acme AR <ar@acme.example>" in message
        assert "Date: 2024-03-01" in message
        assert "[1500.0]" in message
        assert '["ACME"]' in message
        for label in ("**Cost Center**", "**Company Code**", "**GL Account**", "**Invoice/Reference**", "**Notes**"):
            assert label in message

    def test_unknown_amount(self) -> None:
        message = EmailSummaryPrompt().format_user_message([evidence(1)], "ACME", None)
        assert "(unknown)" in message

    def test_body_truncated(self) -> None:
        """Test long bodies are cut and marked."""
        block = EmailSummaryPrompt().format_email(1, evidence(1, body="x" * 2500))
        assert "x" * 2000 + "..." in block
        assert "x" * 2001 not in block

    def test_preview_used_without_body(self) -> None:
        email = EmailEvidence(id="m1", relevance_score=50, body_preview="preview text")
        block = EmailSummaryPrompt().format_email(1, email)
        assert "Body: preview text" in block
        assert "Date: unknown" in block


class TestParseSummary:
    """Tests for the labelled reply parser."""

    def test_all_labels(self) -> None:
        summary = parse_summary(SAMPLE_SUMMARY_REPLY, emails_analyzed=3)

        assert summary.cost_center == "19090001"
        assert summary.company_code == "1400"
        assert summary.gl_account is None
        assert summary.invoice == "INV-7781"
        assert summary.notes == "Payment for March services."
        assert summary.emails_analyzed == 3
        assert summary.raw_response == SAMPLE_SUMMARY_REPLY
        assert summary.has_structured_fields is True

    def test_dash_and_bracketed_values(self) -> None:
        text = '**Cost Center**: -\n**Company Code**: ["Not found"]\n**GL Account**: [6003010]'
        summary = parse_summary(text)

        assert summary.cost_center is None
        assert summary.company_code is None
        assert summary.gl_account == "6003010"

    def test_case_insensitive_labels(self) -> None:
        assert parse_summary("**cost center**: 123").cost_center == "123"

    def test_no_labels_falls_back_to_notes(self) -> None:
        """Test an unformatted reply is kept whole as notes."""
        summary = parse_summary("  The emails mention cost center 1909 only.  ")

        assert summary.notes == "The emails mention cost center 1909 only."
        assert summary.cost_center is None
        assert summary.has_structured_fields is False

    def test_empty_reply(self) -> None:
        summary = parse_summary(None)
        assert summary.notes is None
        assert summary.raw_response == ""

    def test_to_dict(self) -> None:
        data = parse_summary(SAMPLE_SUMMARY_REPLY, emails_analyzed=2).to_dict()
        assert data["cost_center"] == "19090001"
        assert data["emails_analyzed"] == 2
        assert "raw_response" not in data


class TestSummarizer:
    """Tests for Summarizer."""

    def test_summarize(self) -> None:
        llm = FakeLLM(reply=SAMPLE_SUMMARY_REPLY)
        summarizer = Summarizer(llm, default_model="small")

        summary = summarizer.summarize([evidence(1), evidence(2)], "ACME LLC", 1500.0)

        assert summary.cost_center == "19090001"
        assert summary.emails_analyzed == 2
        assert llm.calls[0]["model"] == "small"

    def test_only_first_five_in_given_order(self) -> None:
        """Test the first five emails are sent without re-sorting."""
        llm = FakeLLM(reply=SAMPLE_SUMMARY_REPLY)
        emails = [evidence(i) for i in (7, 3, 9, 1, 5, 2, 8)]

        summary = Summarizer(llm).summarize(emails, "ACME", None)

        prompt = llm.calls[0]["prompt"]
        assert summary.emails_analyzed == 5
        positions = [prompt.index(f"Subject: Subject {i}\n") for i in (7, 3, 9, 1, 5)]
        assert positions == sorted(positions)
        assert "Subject: Subject 2\n" not in prompt
        assert "Subject: Subject 8\n" not in prompt

    def test_no_emails_skips_llm(self) -> None:
        llm = FakeLLM(reply=SAMPLE_SUMMARY_REPLY)
        assert Summarizer(llm).summarize([], "ACME", None) is None
        assert llm.calls == []

    def test_disabled(self) -> None:
        llm = FakeLLM(reply=SAMPLE_SUMMARY_REPLY)
        assert Summarizer(llm, enabled=False).summarize([evidence(1)], "ACME", None) is None
        assert llm.calls == []

    def test_llm_error_returns_none(self) -> None:
        summarizer = Summarizer(FakeLLM(error=LLMError("timeout")))
        assert summarizer.summarize([evidence(1)], "ACME", None) is None

    def test_unexpected_error_returns_none(self) -> None:
        summarizer = Summarizer(FakeLLM(error=RuntimeError("boom")))
        assert summarizer.summarize([evidence(1)], "ACME", None) is None

    def test_explicit_model(self) -> None:
        llm = FakeLLM(reply="")
        Summarizer(llm, default_model="small").summarize([evidence(1)], "ACME", None, model="large")
        assert llm.calls[0]["model"] == "large"
