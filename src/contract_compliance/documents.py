"""Raw text extraction from uploaded files.

PDF via pdfplumber, DOCX via python-docx, plain text as strict UTF-8.
Both parser libraries are imported on first use.
"""

from __future__ import annotations
import io
import re
from dataclasses import dataclass, field
from typing import Any

from .errors import InvalidDocumentError

MAX_DOCUMENT_BYTES = 10 * 1024 * 1024
PAGE_BREAK = "\f"

PDF_TYPES = {"application/pdf"}
DOCX_TYPES = {
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/msword",
}
TEXT_TYPES = {"text/plain"}
SUPPORTED_TYPES = PDF_TYPES | DOCX_TYPES | TEXT_TYPES

_EXTENSION_TYPES = {
    ".pdf": "application/pdf",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".doc": "application/msword",
    ".txt": "text/plain",
}

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9._\-]")


@dataclass(slots=True)
class ParsedDocument:
    text: str
    page_count: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


def sanitize_filename(filename: str) -> str:
    name = _UNSAFE_FILENAME.sub("_", filename or "").lstrip(".")
    return name[:255] or "document"


def guess_mime_type(filename: str) -> str | None:
    lowered = (filename or "").lower()
    for ext, mime in _EXTENSION_TYPES.items():
        if lowered.endswith(ext):
            return mime
    return None


def validate_upload(size: int, mime_type: str, *, max_bytes: int = MAX_DOCUMENT_BYTES) -> None:
    if mime_type not in SUPPORTED_TYPES:
        raise InvalidDocumentError(f"Unsupported file type: {mime_type}")
    if size <= 0:
        raise InvalidDocumentError("Document is empty")
    if size > max_bytes:
        raise InvalidDocumentError(
            f"Document exceeds maximum size of {max_bytes // (1024 * 1024)}MB"
        )


def _parse_pdf(data: bytes) -> ParsedDocument:
    import pdfplumber

    try:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            pages = [(page.extract_text() or "").strip() for page in pdf.pages]
            info = {k: str(v) for k, v in (pdf.metadata or {}).items()}
    except Exception as exc:
        raise InvalidDocumentError(f"Failed to parse PDF: {exc}") from exc
    return ParsedDocument(text=PAGE_BREAK.join(pages), page_count=len(pages), metadata=info)


def _parse_docx(data: bytes) -> ParsedDocument:
    import docx

    try:
        document = docx.Document(io.BytesIO(data))
    except Exception as exc:
        raise InvalidDocumentError(f"Failed to parse DOCX: {exc}") from exc
    paragraphs = [p.text for p in document.paragraphs]
    for table in document.tables:
        for row in table.rows:
            paragraphs.append("\t".join(cell.text for cell in row.cells))
    return ParsedDocument(text="\n".join(paragraphs))


def _parse_text(data: bytes) -> ParsedDocument:
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise InvalidDocumentError(f"Unsupported text encoding: {exc.reason}") from exc
    return ParsedDocument(text=text.lstrip("\ufeff"), metadata={"encoding": "utf-8"})


def parse_document(data: bytes, mime_type: str) -> ParsedDocument:
    """Extract raw text; raises ``InvalidDocumentError`` on any failure."""
    if mime_type in PDF_TYPES:
        parsed = _parse_pdf(data)
    elif mime_type in DOCX_TYPES:
        parsed = _parse_docx(data)
    elif mime_type in TEXT_TYPES:
        parsed = _parse_text(data)
    else:
        raise InvalidDocumentError(f"Unsupported file type: {mime_type}")

    if not parsed.text.strip():
        raise InvalidDocumentError("No text could be extracted from document")
    return parsed
