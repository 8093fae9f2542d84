"""Repository: where ingested documents, redaction audit rows and
analyses are kept.

Design goals:
  - Audit rows carry category, digest and original offsets, never the value
  - Analyses are upserted as the pipeline advances, checklist rows replaced
  - The in-memory store and the SQLite store expose the same API
"""

from __future__ import annotations
import threading
import uuid
from collections import defaultdict
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Protocol

from .types import AnalysisRecord, ChecklistItem, PIICategory, PIIMatch


@dataclass(frozen=True, slots=True)
class StoredDocument:
    """An ingested, already de-identified document."""
    id: str
    request_id: str
    filename: str
    file_type: str
    file_size: int
    original_hash: str          # sha256 of the extracted text before redaction
    redacted_content: str
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


@dataclass(frozen=True, slots=True)
class RedactionAudit:
    """Persisted shape of one PII match."""
    document_id: str
    category: PIICategory
    value_hash: str
    start: int
    end: int

    @classmethod
    def from_match(cls, document_id: str, match: PIIMatch) -> "RedactionAudit":
        return cls(document_id, match.category, match.value_hash, match.start, match.end)


class Repository(Protocol):
    def save_document(self, document: StoredDocument) -> StoredDocument: ...
    def get_document(self, document_id: str) -> StoredDocument | None: ...
    def find_documents_by_request(self, request_id: str) -> list[StoredDocument]: ...
    def save_redactions(self, document_id: str, matches: list[PIIMatch]) -> int: ...
    def list_redactions(self, document_id: str) -> list[RedactionAudit]: ...
    def save_analysis(self, record: AnalysisRecord) -> None: ...
    def get_analysis(self, analysis_id: str) -> AnalysisRecord | None: ...
    def list_checklist_items(self, analysis_id: str) -> list[ChecklistItem]: ...
    def ping(self) -> bool: ...
    def close(self) -> None: ...


def new_id() -> str:
    return str(uuid.uuid4())


class InMemoryRepository:
    """Process-local repository guarded by a lock."""

    __slots__ = ("_lock", "_documents", "_by_request", "_redactions", "_analyses", "_checklists")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._documents: dict[str, StoredDocument] = {}
        self._by_request: dict[str, list[str]] = defaultdict(list)
        self._redactions: dict[str, list[RedactionAudit]] = defaultdict(list)
        self._analyses: dict[str, AnalysisRecord] = {}
        self._checklists: dict[str, list[ChecklistItem]] = {}

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def save_document(self, document: StoredDocument) -> StoredDocument:
        with self._lock:
            self._documents[document.id] = document
            self._by_request[document.request_id].append(document.id)
        return document

    def get_document(self, document_id: str) -> StoredDocument | None:
        return self._documents.get(document_id)

    def find_documents_by_request(self, request_id: str) -> list[StoredDocument]:
        with self._lock:
            return [self._documents[d] for d in self._by_request.get(request_id, [])]

    # ------------------------------------------------------------------
    # Redaction audit trail
    # ------------------------------------------------------------------

    def save_redactions(self, document_id: str, matches: list[PIIMatch]) -> int:
        rows = [RedactionAudit.from_match(document_id, m) for m in matches]
        with self._lock:
            self._redactions[document_id].extend(rows)
        return len(rows)

    def list_redactions(self, document_id: str) -> list[RedactionAudit]:
        with self._lock:
            return sorted(self._redactions.get(document_id, []), key=lambda r: r.start)

    # ------------------------------------------------------------------
    # Analyses
    # ------------------------------------------------------------------

    def save_analysis(self, record: AnalysisRecord) -> None:
        # Snapshot so later in-place mutation by the pipeline does not leak in.
        snapshot = replace(
            record,
            rule_citations=list(record.rule_citations),
            checklist=list(record.checklist),
        )
        with self._lock:
            self._analyses[record.id] = snapshot
            self._checklists[record.id] = list(record.checklist)

    def get_analysis(self, analysis_id: str) -> AnalysisRecord | None:
        return self._analyses.get(analysis_id)

    def list_checklist_items(self, analysis_id: str) -> list[ChecklistItem]:
        with self._lock:
            return list(self._checklists.get(analysis_id, []))

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def size(self) -> int:
        return len(self._documents)

    def clear(self) -> None:
        with self._lock:
            self._documents.clear()
            self._by_request.clear()
            self._redactions.clear()
            self._analyses.clear()
            self._checklists.clear()

    def close(self) -> None:
        pass

    def ping(self) -> bool:
        return True
