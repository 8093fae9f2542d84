"""Persistent repository backed by SQLite; survives process restarts.

Drop-in replacement for InMemoryRepository when you need durability.

Usage:
    repo = SqliteRepository(db_path="~/.contract-compliance/compliance.db")
    # Same API as InMemoryRepository: save_document, save_redactions, etc.
"""

from __future__ import annotations
import json
import sqlite3
import threading
from pathlib import Path

from .repository import RedactionAudit, StoredDocument
from .types import (
    AnalysisRecord,
    AnalysisStatus,
    ChecklistItem,
    ChecklistStatus,
    Classification,
    DocumentType,
    FieldExtraction,
    PIICategory,
    PIIMatch,
    Severity,
)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    id TEXT PRIMARY KEY,
    request_id TEXT NOT NULL,
    filename TEXT NOT NULL,
    file_type TEXT NOT NULL,
    file_size INTEGER NOT NULL,
    original_hash TEXT NOT NULL,
    redacted_content TEXT,
    metadata TEXT,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_documents_request_id ON documents(request_id);
CREATE TABLE IF NOT EXISTS redactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    document_id TEXT NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
    redaction_type TEXT NOT NULL,
    original_value_hash TEXT NOT NULL,
    position_start INTEGER NOT NULL,
    position_end INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_redactions_document_id ON redactions(document_id);
CREATE TABLE IF NOT EXISTS analysis_results (
    id TEXT PRIMARY KEY,
    request_id TEXT NOT NULL,
    document_classification TEXT,
    classification_confidence REAL,
    classification_reasoning TEXT,
    classification_abstained INTEGER,
    extracted_fields TEXT,
    rule_citations TEXT,
    negotiation_brief TEXT,
    client_email TEXT,
    status TEXT NOT NULL,
    error_message TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_analysis_request_id ON analysis_results(request_id);
CREATE TABLE IF NOT EXISTS checklist_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    analysis_id TEXT NOT NULL REFERENCES analysis_results(id) ON DELETE CASCADE,
    position INTEGER NOT NULL,
    requirement TEXT NOT NULL,
    status TEXT NOT NULL,
    evidence TEXT NOT NULL,
    rule_id TEXT NOT NULL,
    severity TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_checklist_analysis_id ON checklist_items(analysis_id);
"""


class SqliteRepository:
    """Persistent store for documents, audit rows and analyses."""

    __slots__ = ("_db", "_lock")

    def __init__(self, *, db_path: str | Path = "compliance.db") -> None:
        db_path = Path(db_path).expanduser()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db = sqlite3.connect(str(db_path), check_same_thread=False)
        self._db.row_factory = sqlite3.Row
        self._db.execute("PRAGMA foreign_keys = ON")
        self._db.executescript(_SCHEMA)
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def save_document(self, document: StoredDocument) -> StoredDocument:
        with self._lock:
            self._db.execute(
                "INSERT INTO documents (id, request_id, filename, file_type, file_size, "
                "original_hash, redacted_content, metadata, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    document.id, document.request_id, document.filename,
                    document.file_type, document.file_size, document.original_hash,
                    document.redacted_content, json.dumps(document.metadata, default=str),
                    document.created_at,
                ),
            )
            self._db.commit()
        return document

    def get_document(self, document_id: str) -> StoredDocument | None:
        with self._lock:
            row = self._db.execute(
                "SELECT * FROM documents WHERE id = ?", (document_id,),
            ).fetchone()
        return _row_to_document(row) if row else None

    def find_documents_by_request(self, request_id: str) -> list[StoredDocument]:
        with self._lock:
            rows = self._db.execute(
                "SELECT * FROM documents WHERE request_id = ? ORDER BY rowid",
                (request_id,),
            ).fetchall()
        return [_row_to_document(r) for r in rows]

    # ------------------------------------------------------------------
    # Redaction audit trail
    # ------------------------------------------------------------------

    def save_redactions(self, document_id: str, matches: list[PIIMatch]) -> int:
        with self._lock:
            self._db.executemany(
                "INSERT INTO redactions (document_id, redaction_type, original_value_hash, "
                "position_start, position_end) VALUES (?, ?, ?, ?, ?)",
                [(document_id, m.category.value, m.value_hash, m.start, m.end) for m in matches],
            )
            self._db.commit()
        return len(matches)

    def list_redactions(self, document_id: str) -> list[RedactionAudit]:
        with self._lock:
            rows = self._db.execute(
                "SELECT document_id, redaction_type, original_value_hash, position_start, "
                "position_end FROM redactions WHERE document_id = ? "
                "ORDER BY position_start, id",
                (document_id,),
            ).fetchall()
        return [
            RedactionAudit(r[0], PIICategory(r[1]), r[2], r[3], r[4])
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Analyses
    # ------------------------------------------------------------------

    def save_analysis(self, record: AnalysisRecord) -> None:
        c = record.classification
        e = record.extraction
        with self._lock:
            self._db.execute(
                "INSERT OR REPLACE INTO analysis_results (id, request_id, "
                "document_classification, classification_confidence, "
                "classification_reasoning, classification_abstained, extracted_fields, "
                "rule_citations, negotiation_brief, client_email, status, error_message, "
                "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    record.id, record.request_id,
                    c.document_type.value if c else None,
                    c.confidence if c else None,
                    c.reasoning if c else None,
                    int(c.abstained) if c else None,
                    json.dumps(e.to_dict(), default=str) if e else None,
                    json.dumps(record.rule_citations),
                    record.negotiation_brief, record.client_email,
                    record.status.value, record.error_message,
                    record.created_at, record.updated_at,
                ),
            )
            self._db.execute("DELETE FROM checklist_items WHERE analysis_id = ?", (record.id,))
            self._db.executemany(
                "INSERT INTO checklist_items (analysis_id, position, requirement, status, "
                "evidence, rule_id, severity) VALUES (?, ?, ?, ?, ?, ?, ?)",
                [
                    (record.id, i, item.requirement, item.status.value, item.evidence,
                     item.rule_id, item.severity.value)
                    for i, item in enumerate(record.checklist)
                ],
            )
            self._db.commit()

    def get_analysis(self, analysis_id: str) -> AnalysisRecord | None:
        with self._lock:
            row = self._db.execute(
                "SELECT * FROM analysis_results WHERE id = ?", (analysis_id,),
            ).fetchone()
        if row is None:
            return None

        classification = None
        if row["document_classification"] is not None:
            classification = Classification(
                document_type=DocumentType(row["document_classification"]),
                confidence=row["classification_confidence"],
                reasoning=row["classification_reasoning"] or "",
                abstained=bool(row["classification_abstained"]),
            )
        extraction = None
        if row["extracted_fields"]:
            data = json.loads(row["extracted_fields"])
            extraction = FieldExtraction(
                fields=data["fields"], confidence=data["confidence"], extracted_count=data["count"],
            )
        return AnalysisRecord(
            id=row["id"],
            request_id=row["request_id"],
            status=AnalysisStatus(row["status"]),
            classification=classification,
            extraction=extraction,
            rule_citations=json.loads(row["rule_citations"] or "[]"),
            checklist=self.list_checklist_items(analysis_id),
            negotiation_brief=row["negotiation_brief"],
            client_email=row["client_email"],
            error_message=row["error_message"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def list_checklist_items(self, analysis_id: str) -> list[ChecklistItem]:
        with self._lock:
            rows = self._db.execute(
                "SELECT requirement, status, evidence, rule_id, severity FROM checklist_items "
                "WHERE analysis_id = ? ORDER BY position",
                (analysis_id,),
            ).fetchall()
        return [
            ChecklistItem(
                requirement=r[0], status=ChecklistStatus(r[1]), evidence=r[2],
                rule_id=r[3], severity=Severity(r[4]),
            )
            for r in rows
        ]

    def ping(self) -> bool:
        try:
            with self._lock:
                return self._db.execute("SELECT 1").fetchone()[0] == 1
        except sqlite3.Error:
            return False

    def close(self) -> None:
        self._db.close()


def _row_to_document(row: sqlite3.Row) -> StoredDocument:
    return StoredDocument(
        id=row["id"],
        request_id=row["request_id"],
        filename=row["filename"],
        file_type=row["file_type"],
        file_size=row["file_size"],
        original_hash=row["original_hash"],
        redacted_content=row["redacted_content"] or "",
        metadata=json.loads(row["metadata"] or "{}"),
        created_at=row["created_at"],
    )
