"""Ingestion: extract text, redact it, persist the document and audit rows.

Redaction runs here, once, before any other component sees the text.
Only the redacted text and the SHA-256 of the original are stored.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .documents import (
    MAX_DOCUMENT_BYTES,
    parse_document,
    sanitize_filename,
    validate_upload,
)
from .errors import InvalidDocumentError
from .redactor import Redactor
from .repository import Repository, StoredDocument, new_id
from .types import hash_value

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class IngestSummary:
    document_id: str
    request_id: str
    filename: str
    file_size: int
    file_type: str
    page_count: int | None
    redaction_count: int
    redactions_by_type: dict[str, int] = field(default_factory=dict)
    text_length: int = 0
    processed_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict[str, Any]:
        return {
            "document_id": self.document_id,
            "request_id": self.request_id,
            "filename": self.filename,
            "file_size": self.file_size,
            "file_type": self.file_type,
            "page_count": self.page_count,
            "redaction_count": self.redaction_count,
            "redactions_by_type": dict(self.redactions_by_type),
            "text_length": self.text_length,
            "processed_at": self.processed_at,
        }


class IngestService:
    """Turns uploads into stored, de-identified documents."""

    def __init__(
        self,
        redactor: Redactor,
        repository: Repository,
        *,
        max_bytes: int = MAX_DOCUMENT_BYTES,
    ) -> None:
        self.redactor = redactor
        self.repository = repository
        self.max_bytes = max_bytes

    def ingest_bytes(
        self,
        data: bytes,
        *,
        filename: str,
        mime_type: str,
        metadata: dict[str, Any] | None = None,
        request_id: str | None = None,
    ) -> IngestSummary:
        validate_upload(len(data), mime_type, max_bytes=self.max_bytes)
        parsed = parse_document(data, mime_type)
        meta = {**parsed.metadata, **(metadata or {})}
        return self._store(
            parsed.text,
            filename=filename,
            mime_type=mime_type,
            size=len(data),
            page_count=parsed.page_count,
            metadata=meta,
            request_id=request_id,
        )

    def ingest_text(
        self,
        text: str,
        *,
        filename: str = "document.txt",
        metadata: dict[str, Any] | None = None,
        request_id: str | None = None,
    ) -> IngestSummary:
        if not isinstance(text, str):
            raise InvalidDocumentError("Document text must be a string")
        if not text.strip():
            raise InvalidDocumentError("Document text is empty")
        try:
            size = len(text.encode("utf-8"))
        except UnicodeEncodeError as exc:
            raise InvalidDocumentError(f"Unsupported text encoding: {exc.reason}") from exc
        validate_upload(size, "text/plain", max_bytes=self.max_bytes)
        return self._store(
            text,
            filename=filename,
            mime_type="text/plain",
            size=size,
            page_count=None,
            metadata=metadata or {},
            request_id=request_id,
        )

    def _store(
        self,
        text: str,
        *,
        filename: str,
        mime_type: str,
        size: int,
        page_count: int | None,
        metadata: dict[str, Any],
        request_id: str | None,
    ) -> IngestSummary:
        request_id = request_id or new_id()
        document_id = new_id()
        safe_name = sanitize_filename(filename)

        result = self.redactor.redact(text)
        self.repository.save_document(StoredDocument(
            id=document_id,
            request_id=request_id,
            filename=safe_name,
            file_type=mime_type,
            file_size=size,
            original_hash=hash_value(text),
            redacted_content=result.text,
            metadata=metadata,
        ))
        if result.matches:
            self.repository.save_redactions(document_id, result.matches)

        logger.info(
            "Document %s ingested for request %s: %d redaction(s)",
            document_id, request_id, result.redaction_count,
        )
        return IngestSummary(
            document_id=document_id,
            request_id=request_id,
            filename=safe_name,
            file_size=size,
            file_type=mime_type,
            page_count=page_count,
            redaction_count=result.redaction_count,
            redactions_by_type=result.counts_by_category(),
            text_length=len(result.text),
        )
