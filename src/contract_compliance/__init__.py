"""Contract Compliance: PII redaction and GSA rule checks for contracting documents."""

from .redactor import Redactor, RedactorConfig, redact, verify_redaction
from .rules import RuleCorpus, DEFAULT_RULES
from .retriever import RuleRetriever
from .evaluator import ComplianceEvaluator
from .assistant import DocumentAssistant
from .llm import OllamaClient
from .pipeline import AnalysisPipeline
from .ingest import IngestService
from .repository import InMemoryRepository
from .repository_sqlite import SqliteRepository
from .config import Settings, create_services, load_config, load_from_yaml
from .errors import (
    ComplianceError, InvalidDocumentError, NotFoundError,
    LLMError, LLMUnavailableError, LLMResponseError,
)
from .types import (
    PIICategory, PIIMatch, RedactionResult,
    Rule, RetrievedRule, ChecklistItem, ChecklistStatus, Severity,
    DocumentType, Classification, AnalysisRecord, AnalysisStatus,
)

__all__ = [
    "Redactor", "RedactorConfig", "redact", "verify_redaction",
    "RuleCorpus", "DEFAULT_RULES", "RuleRetriever",
    "ComplianceEvaluator",
    "DocumentAssistant", "OllamaClient",
    "AnalysisPipeline", "IngestService",
    "InMemoryRepository", "SqliteRepository",
    "Settings", "create_services", "load_config", "load_from_yaml",
    "ComplianceError", "InvalidDocumentError", "NotFoundError",
    "LLMError", "LLMUnavailableError", "LLMResponseError",
    "PIICategory", "PIIMatch", "RedactionResult",
    "Rule", "RetrievedRule", "ChecklistItem", "ChecklistStatus", "Severity",
    "DocumentType", "Classification", "AnalysisRecord", "AnalysisStatus",
]
__version__ = "1.0.0"
