"""Analysis pipeline: classify → extract → retrieve → evaluate → prose.

One ``AnalysisRecord`` per run, moved through

    processing → completed | completed_with_warnings | failed

and persisted through the repository at each milestone.  The run never
raises for an LLM outage or a stage error: the record comes back
``failed`` with the message and whatever was computed before the error.
"""

from __future__ import annotations
import json
import logging

from .assistant import DocumentAssistant
from .errors import ComplianceError, InvalidDocumentError, NotFoundError
from .evaluator import ComplianceEvaluator
from .repository import Repository, new_id
from .retriever import RuleRetriever
from .types import AnalysisRecord, AnalysisStatus

logger = logging.getLogger(__name__)

DEFAULT_TOP_N = 5


class AnalysisPipeline:
    """Orchestrates one analysis per call; safe to share across tasks."""

    def __init__(
        self,
        assistant: DocumentAssistant,
        retriever: RuleRetriever,
        evaluator: ComplianceEvaluator,
        repository: Repository | None = None,
        *,
        top_n: int = DEFAULT_TOP_N,
    ) -> None:
        self.assistant = assistant
        self.retriever = retriever
        self.evaluator = evaluator
        self.repository = repository
        self.top_n = top_n

    def _persist(self, record: AnalysisRecord) -> None:
        if self.repository is not None:
            self.repository.save_analysis(record)

    async def analyze_request(self, request_id: str) -> AnalysisRecord:
        """Analyze the first document ingested under ``request_id``."""
        if self.repository is None:
            raise NotFoundError(f"No documents found for request_id: {request_id}")
        documents = self.repository.find_documents_by_request(request_id)
        if not documents:
            raise NotFoundError(f"No documents found for request_id: {request_id}")
        return await self.analyze(documents[0].redacted_content, request_id=request_id)

    async def analyze(self, redacted_text: str, *, request_id: str | None = None) -> AnalysisRecord:
        """Run the full pipeline over de-identified text.

        Blank input is rejected with ``InvalidDocumentError`` before any
        record is created or the model is called.
        """
        if not isinstance(redacted_text, str) or not redacted_text.strip():
            raise InvalidDocumentError("Document text is empty")
        record =AnalysisRecord(id=new_id(), request_id=request_id or new_id())
        self._persist(record)
        logger.info("Starting document analysis %s (request %s)", record.id, record.request_id)

        # Step 1: classify
        try:
            classification = await self.assistant.classify(redacted_text)
        except Exception as exc:
            return self._fail(record, exc)
        record.classification = classification
        record.touch()
        self._persist(record)

        if classification.abstained:
            record.transition(
                AnalysisStatus.COMPLETED_WITH_WARNINGS,
                message=f"Low confidence classification: {classification.reasoning}",
            )
            self._persist(record)
            logger.info(
                "Analysis %s abstained (%s, confidence %.2f)",
                record.id, classification.document_type.value, classification.confidence,
            )
            return record

        doc_type = classification.document_type
        try:
            # Step 2: extract fields
            logger.info("Extracting fields for %s (%s)", record.id, doc_type.value)
            record.extraction = await self.assistant.extract_fields(redacted_text, doc_type)
            fields = record.extraction.fields

            # Step 3: retrieve rules
            query = f"{doc_type.value} compliance requirements {json.dumps(fields, default=str)}"
            retrieved = self.retriever.retrieve(query, self.top_n)
            record.rule_citations = [r.rule_id for r in retrieved]

            # Step 4: evaluate
            record.checklist = self.evaluator.evaluate(doc_type, fields, retrieved)
            logger.info(
                "Analysis %s checklist: %s", record.id, record.status_counts(),
            )

            # Step 5: prose outputs
            record.negotiation_brief = await self.assistant.negotiation_brief(
                record.checklist, fields, doc_type,
            )
            company = fields.get("company_name") or "valued partner"
            record.client_email = await self.assistant.client_email(record.checklist, str(company))
        except Exception as exc:
            return self._fail(record, exc)

        record.transition(AnalysisStatus.COMPLETED)
        self._persist(record)
        logger.info("Document analysis %s completed", record.id)
        return record

    def _fail(self, record: AnalysisRecord, exc: Exception) -> AnalysisRecord:
        if isinstance(exc, ComplianceError):
            message = exc.message
            logger.error("Analysis %s failed: %s", record.id, message)
        else:
            message = f"{type(exc).__name__}: {exc}"
            logger.exception("Analysis %s failed unexpectedly", record.id)
        record.transition(AnalysisStatus.FAILED, message=message)
        self._persist(record)
        return record
