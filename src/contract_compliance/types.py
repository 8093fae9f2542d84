"""Core types."""

from __future__ import annotations
import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class PIICategory(str, Enum):
    EMAIL = "email"
    PHONE = "phone"
    TAX_ID = "tax_id"


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RuleCategory(str, Enum):
    IDENTIFICATION = "identification"
    CLASSIFICATION = "classification"
    FINANCIAL = "financial"
    LABOR = "labor"
    SECURITY = "security"


class DocumentType(str, Enum):
    COMPANY_PROFILE = "company_profile"
    PAST_PERFORMANCE = "past_performance"
    PRICING_SHEET = "pricing_sheet"
    UNKNOWN = "unknown"


class ChecklistStatus(str, Enum):
    COMPLIANT = "compliant"
    NON_COMPLIANT = "non_compliant"
    NEEDS_REVIEW = "needs_review"


class AnalysisStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    COMPLETED_WITH_WARNINGS = "completed_with_warnings"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self is not AnalysisStatus.PROCESSING


def hash_value(value: str) -> str:
    """SHA-256 hex digest of a value (64 chars)."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Redaction
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class PIIMatch:
    """A single redacted span. Offsets index the original text."""
    category: PIICategory
    start: int
    end: int
    value_hash: str        # sha256 of the literal; the literal itself is dropped

    def matches(self, original: str) -> bool:
        """True if ``original[start:end]`` hashes to this match's digest."""
        return hash_value(original[self.start:self.end]) == self.value_hash

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "start": self.start,
            "end": self.end,
            "value_hash": self.value_hash,
        }


@dataclass(slots=True)
class RedactionResult:
    """Result of redacting a document."""
    text: str                                       # de-identified text
    matches: list[PIIMatch] = field(default_factory=list)

    @property
    def redaction_count(self) -> int:
        return len(self.matches)

    def counts_by_category(self) -> dict[str, int]:
        counts = {c.value: 0 for c in PIICategory}
        for m in self.matches:
            counts[m.category.value] += 1
        return counts


# ---------------------------------------------------------------------------
# Rules and checklist
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Rule:
    """A compliance rule from the static corpus."""
    id: str
    title: str
    content: str
    category: RuleCategory
    severity: Severity

    @property
    def metadata(self) -> dict[str, str]:
        return {
            "title": self.title,
            "category": self.category.value,
            "severity": self.severity.value,
        }


@dataclass(frozen=True, slots=True)
class RetrievedRule:
    """A rule surfaced by the retriever, with its lexical relevance score."""
    rule: Rule
    score: int

    @property
    def rule_id(self) -> str:
        return self.rule.id

    @property
    def content(self) -> str:
        return self.rule.content

    @property
    def metadata(self) -> dict[str, str]:
        return self.rule.metadata

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.rule_id, "score": self.score, **self.metadata}


@dataclass(frozen=True, slots=True)
class ChecklistItem:
    """One compliance verdict."""
    requirement: str
    status: ChecklistStatus
    evidence: str
    rule_id: str
    severity: Severity

    def to_dict(self) -> dict[str, str]:
        return {
            "requirement": self.requirement,
            "status": self.status.value,
            "evidence": self.evidence,
            "rule_id": self.rule_id,
            "severity": self.severity.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChecklistItem":
        return cls(
            requirement=data["requirement"],
            status=ChecklistStatus(data["status"]),
            evidence=data["evidence"],
            rule_id=data["rule_id"],
            severity=Severity(data["severity"]),
        )


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Classification:
    document_type: DocumentType
    confidence: float
    reasoning: str
    abstained: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "document_type": self.document_type.value,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "abstained": self.abstained,
        }


@dataclass(frozen=True, slots=True)
class FieldExtraction:
    fields: dict[str, Any]
    confidence: float
    extracted_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "fields": self.fields,
            "confidence": self.confidence,
            "count": self.extracted_count,
        }


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(slots=True)
class AnalysisRecord:
    """State of one analysis run. Mutated in place until terminal."""
    id: str
    request_id: str
    status: AnalysisStatus = AnalysisStatus.PROCESSING
    classification: Classification | None = None
    extraction: FieldExtraction | None = None
    rule_citations: list[str] = field(default_factory=list)
    checklist: list[ChecklistItem] = field(default_factory=list)
    negotiation_brief: str | None = None
    client_email: str | None = None
    error_message: str | None = None
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)

    def transition(self, status: AnalysisStatus, *, message: str | None = None) -> None:
        """Move to a new status. Terminal states are final."""
        if self.status.terminal:
            raise ValueError(
                f"analysis {self.id} already {self.status.value}, cannot move to {status.value}"
            )
        self.status = status
        if message is not None:
            self.error_message = message
        self.touch()

    def touch(self) -> None:
        self.updated_at = _now()

    def status_counts(self) -> dict[str, int]:
        counts = {s.value: 0 for s in ChecklistStatus}
        for item in self.checklist:
            counts[item.status.value] += 1
        return counts

    def to_dict(self) -> dict[str, Any]:
        return {
            "analysis_id": self.id,
            "request_id": self.request_id,
            "status": self.status.value,
            "classification": self.classification.to_dict() if self.classification else None,
            "extracted_fields": self.extraction.to_dict() if self.extraction else None,
            "rule_citations": list(self.rule_citations),
            "checklist": [i.to_dict() for i in self.checklist],
            "compliance_counts": self.status_counts(),
            "negotiation_brief": self.negotiation_brief,
            "client_email": self.client_email,
            "error_message": self.error_message,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
