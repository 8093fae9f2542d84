"""Tests for the analysis pipeline: state machine, abstention and concurrency."""

import asyncio
import time

import pytest

from contract_compliance import (
    AnalysisPipeline, AnalysisRecord, AnalysisStatus, ChecklistStatus, ComplianceEvaluator,
    DocumentAssistant, DocumentType, InMemoryRepository, IngestService, InvalidDocumentError,
    LLMUnavailableError, NotFoundError, Redactor, RuleRetriever,
)

PROFILE_FIELDS = {
    "UEI": "ABC123DEF456", "DUNS": None, "company_name": "Acme Federal",
    "NAICS_codes": ["541511"], "cage_code": "1ABC2",
}


def make_pipeline(corpus, llm, repository=None, threshold=0.8):
    return AnalysisPipeline(
        DocumentAssistant(llm, confidence_threshold=threshold),
        RuleRetriever(corpus),
        ComplianceEvaluator(corpus),
        repository,
    )


# ── Record state machine ─────────────────────────────────────────────

def test_terminal_status_is_final():
    record = AnalysisRecord(id="a", request_id="r")
    assert record.status is AnalysisStatus.PROCESSING
    record.transition(AnalysisStatus.COMPLETED)
    with pytest.raises(ValueError):
        record.transition(AnalysisStatus.FAILED, message="late")
    assert record.status is AnalysisStatus.COMPLETED


# ── Full runs ────────────────────────────────────────────────────────

def test_company_profile_completes(corpus, scripted_llm, classification_reply):
    llm = scripted_llm(
        classify=classification_reply("company_profile"),
        extract=PROFILE_FIELDS,
        brief="Brief.",
        email="Email.",
    )
    record = asyncio.run(make_pipeline(corpus, llm).analyze("Acme Federal UEI ABC123DEF456"))

    assert record.status is AnalysisStatus.COMPLETED
    assert record.error_message is None
    assert record.classification.document_type is DocumentType.COMPANY_PROFILE
    assert [i.rule_id for i in record.checklist] == ["R1", "R2"]
    assert [i.status for i in record.checklist] == [ChecklistStatus.COMPLIANT, ChecklistStatus.NEEDS_REVIEW]
    assert record.rule_citations
    assert set(record.rule_citations) <= {"R1", "R2", "R3", "R4", "R5"}
    assert record.negotiation_brief == "Brief."
    assert record.client_email == "Email."
    assert llm.kinds == ["classify", "extract", "brief", "email"]
    assert "Acme Federal" in llm.prompt("email")


def test_past_performance_value_verdicts(corpus, scripted_llm, classification_reply):
    for value, status in (("$30,000.00", ChecklistStatus.COMPLIANT), (20000, ChecklistStatus.NON_COMPLIANT)):
        llm = scripted_llm(
            classify=classification_reply("past_performance"),
            extract={"contract_value": value, "client_name": "GSA"},
        )
        record = asyncio.run(make_pipeline(corpus, llm).analyze("past performance text"))
        assert record.status is AnalysisStatus.COMPLETED
        item, = record.checklist
        assert (item.rule_id, item.status) == ("R3", status)


def test_email_defaults_to_valued_partner(corpus, scripted_llm, classification_reply):
    llm = scripted_llm(classify=classification_reply("pricing_sheet"), extract={"labor_categories": []})
    asyncio.run(make_pipeline(corpus, llm).analyze("rates"))
    assert "valued partner" in llm.prompt("email")


# ── Abstention ───────────────────────────────────────────────────────

def test_low_confidence_skips_downstream(corpus, scripted_llm, classification_reply):
    llm = scripted_llm(classify=classification_reply("company_profile", 0.65, "ambiguous layout"))
    record = asyncio.run(make_pipeline(corpus, llm).analyze("text"))

    assert record.status is AnalysisStatus.COMPLETED_WITH_WARNINGS
    assert record.error_message == "Low confidence classification: ambiguous layout"
    assert record.checklist == []
    assert record.extraction is None
    assert record.negotiation_brief is None
    assert llm.kinds == ["classify"]


def test_unparseable_classification_abstains(corpus, scripted_llm):
    llm = scripted_llm(classify="no idea")
    record = asyncio.run(make_pipeline(corpus, llm).analyze("text"))
    assert record.status is AnalysisStatus.COMPLETED_WITH_WARNINGS
    assert record.error_message.startswith("Low confidence classification: Classification failed:")


# ── Failures ─────────────────────────────────────────────────────────

def test_blank_text_rejected_before_any_work(corpus, scripted_llm, classification_reply):
    saved = []

    class RecordingRepository(InMemoryRepository):
        def save_analysis(self, record):
            saved.append(record.id)
            super().save_analysis(record)

    llm = scripted_llm(classify=classification_reply("company_profile"))
    pipeline = make_pipeline(corpus, llm, RecordingRepository())
    for text in ("", "   \n\t"):
        with pytest.raises(InvalidDocumentError, match="empty"):
            asyncio.run(pipeline.analyze(text))
    assert llm.calls == []
    assert saved == []


def test_llm_outage_fails_run(corpus, scripted_llm):
    llm = scripted_llm(classify=LLMUnavailableError("AI service unavailable. Please ensure Ollama is running."))
    record = asyncio.run(make_pipeline(corpus, llm).analyze("text"))
    assert record.status is AnalysisStatus.FAILED
    assert record.error_message == "AI service unavailable. Please ensure Ollama is running."
    assert record.classification is None


def test_bad_extraction_fails_run_and_keeps_classification(corpus, scripted_llm, classification_reply):
    llm = scripted_llm(classify=classification_reply("company_profile"), extract="not json")
    record = asyncio.run(make_pipeline(corpus, llm).analyze("text"))
    assert record.status is AnalysisStatus.FAILED
    assert record.classification.document_type is DocumentType.COMPANY_PROFILE
    assert record.checklist == []


def test_brief_failure_keeps_checklist(corpus, scripted_llm, classification_reply):
    llm = scripted_llm(
        classify=classification_reply("company_profile"),
        extract=PROFILE_FIELDS,
        brief=RuntimeError("model crashed"),
    )
    record = asyncio.run(make_pipeline(corpus, llm).analyze("text"))
    assert record.status is AnalysisStatus.FAILED
    assert record.error_message == "RuntimeError: model crashed"
    assert len(record.checklist) == 2
    assert record.client_email is None


# ── Persistence ──────────────────────────────────────────────────────

def test_record_is_persisted(corpus, scripted_llm, classification_reply):
    repo = InMemoryRepository()
    llm = scripted_llm(classify=classification_reply("company_profile"), extract=PROFILE_FIELDS)
    record = asyncio.run(make_pipeline(corpus, llm, repo).analyze("text", request_id="req-1"))

    stored = repo.get_analysis(record.id)
    assert stored.status is AnalysisStatus.COMPLETED
    assert stored.request_id == "req-1"
    assert len(repo.list_checklist_items(record.id)) == 2


def test_analyze_request_uses_redacted_text(corpus, scripted_llm, classification_reply):
    repo = InMemoryRepository()
    summary = IngestService(Redactor(), repo).ingest_text(
        "Acme Federal, contact john@acme.com or 555-123-4567. UEI ABC123DEF456.",
    )
    llm = scripted_llm(classify=classification_reply("company_profile"), extract=PROFILE_FIELDS)
    record = asyncio.run(make_pipeline(corpus, llm, repo).analyze_request(summary.request_id))

    assert record.request_id == summary.request_id
    assert record.status is AnalysisStatus.COMPLETED
    for _, prompt in llm.calls:
        assert "john@acme.com" not in prompt
        assert "555-123-4567" not in prompt
    assert "[REDACTED_EMAIL]" in llm.prompt("classify")


def test_analyze_request_without_documents(corpus, scripted_llm):
    pipeline = make_pipeline(corpus, scripted_llm(), InMemoryRepository())
    with pytest.raises(NotFoundError):
        asyncio.run(pipeline.analyze_request("missing"))


# ── Concurrency ──────────────────────────────────────────────────────

def test_concurrent_pipelines_overlap(corpus, scripted_llm, classification_reply):
    llm = scripted_llm(
        classify=classification_reply("company_profile"),
        extract=PROFILE_FIELDS,
        delay=0.05,
    )
    pipeline = make_pipeline(corpus, llm, InMemoryRepository())

    async def run_all():
        return await asyncio.gather(*(pipeline.analyze(f"doc {i}") for i in range(10)))

    started = time.perf_counter()
    records = asyncio.run(run_all())
    elapsed = time.perf_counter() - started

    # 10 runs x 4 calls x 50ms would take 2s one after another
    assert elapsed < 1.0
    assert len({r.id for r in records}) == 10
    assert all(r.status is AnalysisStatus.COMPLETED for r in records)
