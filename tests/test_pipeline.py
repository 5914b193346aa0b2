"""Tests for the reconciliation pipeline."""

from __future__ import annotations

from datetime import date

import pytest

from remit_match.config import Config
from remit_match.email_evidence import CachedEmailRanker, EmailEvidenceSearch, LiveMailboxRanker, Summarizer
from remit_match.errors import MissingInputError
from remit_match.extraction import CompanyNameExtractor
from remit_match.matching import MatchOrchestrator, VectorSimilarityStrategy
from remit_match.pipeline import ReconciliationPipeline, ReconciliationStatus
from remit_match.schemas import ExtractionSource, StrategyKind

from conftest import (
    SAMPLE_NOTES_BO,
    SAMPLE_NOTES_NO_BO,
    SAMPLE_SUMMARY_REPLY,
    FakeBackend,
    FakeEmailIndex,
    FakeLLM,
    FakeMailbox,
    record,
)

VALUE_DATE = date(2024, 3, 1)

EMAIL_RECORD = {
    "id": "m1",
    "subject": "ACME LLC payment",
    "body_text": "Cost center 19090001",
    "similarity": 0.9,
}


def build_pipeline(
    backend: FakeBackend,
    llm: FakeLLM | None = None,
    index: FakeEmailIndex | None = None,
) -> ReconciliationPipeline:
    return ReconciliationPipeline(
        orchestrator=MatchOrchestrator([VectorSimilarityStrategy(backend)]),
        company_extractor=CompanyNameExtractor.default(llm, model="small"),
        email_search=EmailEvidenceSearch([CachedEmailRanker(index or FakeEmailIndex())]),
        summarizer=Summarizer(llm, default_model="small"),
        model="small",
    )


class TestReconciliationPipeline:
    """Tests for ReconciliationPipeline.run."""

    def test_matched_skips_fallback(self) -> None:
        """Test a qualifying candidate ends the run without email search."""
        llm = FakeLLM(reply=SAMPLE_SUMMARY_REPLY)
        index = FakeEmailIndex([EMAIL_RECORD])
        pipeline = build_pipeline(FakeBackend([record("H1", 0.9, gl_account="6003010")]), llm, index)

        result = pipeline.run(SAMPLE_NOTES_BO, amount=1500.0, value_date=VALUE_DATE)

        assert result.status == ReconciliationStatus.MATCHED
        assert result.best_match.line_number == 1
        assert result.best_match.candidate.posting_fields["gl_account"] == "6003010"
        assert result.company is None
        assert index.calls == []
        assert llm.calls == []

    def test_fallback_to_email_evidence(self) -> None:
        """Test no match leads to company extraction, email search and summary."""
        llm = FakeLLM(reply=SAMPLE_SUMMARY_REPLY)
        index = FakeEmailIndex([EMAIL_RECORD])
        pipeline = build_pipeline(FakeBackend([record("H1", 0.5)]), llm, index)

        result = pipeline.run(SAMPLE_NOTES_BO, amount=1500.0, value_date=VALUE_DATE)

        assert result.status == ReconciliationStatus.NO_MATCH
        assert result.company.name == "ACME LLC"
        assert result.company.source == ExtractionSource.PATTERN
        assert [e.id for e in result.emails] == ["m1"]
        assert result.summary.cost_center == "19090001"
        assert index.calls[0][0] == "ACME LLC payment 1500.0"
        assert llm.calls[0]["model"] == "small"

    def test_no_value_date_skips_email_search(self) -> None:
        index = FakeEmailIndex([EMAIL_RECORD])
        pipeline = build_pipeline(FakeBackend(), FakeLLM(reply=SAMPLE_SUMMARY_REPLY), index)

        result = pipeline.run(SAMPLE_NOTES_BO)

        assert result.company.name == "ACME LLC"
        assert result.emails == ()
        assert result.summary is None
        assert index.calls == []

    def test_no_company_found(self) -> None:
        index = FakeEmailIndex([EMAIL_RECORD])
        pipeline = build_pipeline(FakeBackend(), None, index)

        result = pipeline.run(SAMPLE_NOTES_NO_BO, value_date=VALUE_DATE)

        assert result.company is None
        assert index.calls == []

    def test_llm_company_and_failed_summary(self) -> None:
        """Test the LLM stage names the payer and a failed summary is tolerated."""

        class FlakyLLM(FakeLLM):
            def complete(self, prompt, model=None, system_prompt=None):
                self.calls.append({"prompt": prompt, "model": model})
                if len(self.calls) > 1:
                    raise ConnectionError("ollama down")
                return "GLOBEX SUPPLY"

        llm = FlakyLLM()
        pipeline = build_pipeline(
            FakeBackend(), llm, FakeEmailIndex([dict(EMAIL_RECORD, subject="GLOBEX SUPPLY payment")])
        )

        result = pipeline.run(SAMPLE_NOTES_NO_BO, value_date=VALUE_DATE)

        assert result.company.name == "GLOBEX SUPPLY"
        assert result.company.source == ExtractionSource.LLM
        assert [e.id for e in result.emails] == ["m1"]
        assert result.summary is None

    def test_empty_evidence(self) -> None:
        llm = FakeLLM(reply=SAMPLE_SUMMARY_REPLY)
        result = build_pipeline(FakeBackend(), llm).run(SAMPLE_NOTES_BO, value_date=VALUE_DATE)

        assert result.emails == ()
        assert result.summary is None
        assert llm.calls == []

    @pytest.mark.parametrize("notes", ["", "  \n ", None])
    def test_missing_notes(self, notes) -> None:
        with pytest.raises(MissingInputError):
            build_pipeline(FakeBackend()).run(notes)

    def test_to_dict(self) -> None:
        result = build_pipeline(FakeBackend([record("H1", 1.0)])).run(SAMPLE_NOTES_BO)
        data = result.to_dict()

        assert data["status"] == "MATCHED"
        assert data["best_match"]["candidate"]["external_id"] == "H1"
        assert len(data["line_matches"]) == 2
        assert data["emails"] == []


class TestPipelineFromConfig:
    """Tests for ReconciliationPipeline.from_config."""

    def test_wiring(self) -> None:
        config = Config()
        config.llm.enabled = True
        config.llm.model = "configured-model"
        config.mailbox.subject_filter = "REMIT"
        llm = FakeLLM(reply="")

        pipeline = ReconciliationPipeline.from_config(
            config,
            backends={StrategyKind.FUZZY_TEXT: FakeBackend(), StrategyKind.VECTOR_SEMANTIC: FakeBackend()},
            llm=llm,
            email_index=FakeEmailIndex(),
            mailbox=FakeMailbox(),
        )

        assert [s.kind for s in pipeline.orchestrator.strategies] == [
            StrategyKind.FUZZY_TEXT,
            StrategyKind.VECTOR_SEMANTIC,
        ]
        assert [type(r) for r in pipeline.email_search.rankers] == [CachedEmailRanker, LiveMailboxRanker]
        assert pipeline.email_search.rankers[1].subject_filter == "REMIT"
        assert pipeline.summarizer.llm is llm
        assert pipeline.model == "configured-model"

    def test_llm_disabled(self) -> None:
        llm = FakeLLM(reply="GLOBEX")
        pipeline = ReconciliationPipeline.from_config(Config(), backends={}, llm=llm)

        result = pipeline.run(SAMPLE_NOTES_NO_BO, value_date=VALUE_DATE)

        assert result.company is None
        assert pipeline.summarizer.llm is None
        assert llm.calls == []
