"""HTTP sidecar server for contract-compliance.

Runs as a lightweight stdlib HTTP server on localhost, one thread per
request so slow LLM calls do not hold up other clients.

Endpoints:
    POST /ingest           Ingest a document ({"text"} or {"content_base64", "mime_type", "filename"})
    POST /analyze          Analyze an ingested request ({"request_id"})
    POST /redact           Redact plain text ({"text"}); nothing is stored
    POST /rules/search     Lexical rule retrieval ({"query", "top_n"})
    GET  /rules            List the rule corpus
    GET  /health           Health check

All endpoints expect/return JSON.  Errors are returned as
{"status": "error", "message": "..."} with no traceback.
"""

from __future__ import annotations
import asyncio
import base64
import binascii
import json
import logging
from datetime import datetime, timezone
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any

from .config import Services, configure_logging, create_services, load_config, load_from_yaml
from .documents import guess_mime_type
from .errors import ComplianceError, InvalidDocumentError
from .redactor import verify_redaction
from .types import AnalysisStatus

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 18792
VERSION = "1.0.0"


class ComplianceHandler(BaseHTTPRequestHandler):
    """HTTP request handler; ``services`` is bound by ``make_handler``."""

    services: Services

    def _read_json(self) -> dict[str, Any]:
        length = int(self.headers.get("Content-Length", 0))
        body = self.rfile.read(length).decode("utf-8")
        try:
            data = json.loads(body) if body else {}
        except json.JSONDecodeError as exc:
            raise InvalidDocumentError(f"Invalid JSON body: {exc.msg}") from exc
        if not isinstance(data, dict):
            raise InvalidDocumentError("JSON body must be an object")
        return data

    def _respond(self, status: int, data: Any) -> None:
        body = json.dumps(data, ensure_ascii=False).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _error(self, status: int, message: str) -> None:
        self._respond(status, {"status": "error", "message": message})

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)

    # ------------------------------------------------------------------
    # GET
    # ------------------------------------------------------------------

    def do_GET(self) -> None:
        if self.path == "/health":
            health = self._health()
            self._respond(200 if health["status"] == "healthy" else 503, health)
        elif self.path == "/rules":
            self._respond(200, {"rules": [
                {"id": r.id, "content": r.content, **r.metadata}
                for r in self.services.retriever.all()
            ]})
        else:
            self._error(404, "not found")

    def _health(self) -> dict[str, Any]:
        services = {
            "database": self.services.repository.ping(),
            "ai": self.services.llm.check_health(),
            "rules": len(self.services.corpus) > 0,
        }
        return {
            "status": "healthy" if all(services.values()) else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "services": services,
            "version": VERSION,
        }

    # ------------------------------------------------------------------
    # POST
    # ------------------------------------------------------------------

    def do_POST(self) -> None:
        routes = {
            "/ingest": self._ingest,
            "/analyze": self._analyze,
            "/redact": self._redact,
            "/rules/search": self._search,
        }
        route = routes.get(self.path)
        if route is None:
            self._error(404, "not found")
            return
        try:
            status, payload = route(self._read_json())
            self._respond(status, payload)
        except ComplianceError as e:
            logger.warning("%s %s -> %d: %s", self.command, self.path, e.status_code, e.message)
            self._error(e.status_code, e.message)
        except Exception:
            logger.exception("Unexpected error on %s %s", self.command, self.path)
            self._error(500, "An unexpected error occurred")

    def _ingest(self, body: dict[str, Any]) -> tuple[int, dict[str, Any]]:
        ingest = self.services.ingest
        filename = str(body.get("filename") or "document.txt")
        metadata = body.get("metadata") if isinstance(body.get("metadata"), dict) else None

        if "content_base64" in body:
            try:
                data = base64.b64decode(body["content_base64"], validate=True)
            except (binascii.Error, TypeError) as exc:
                raise InvalidDocumentError("content_base64 is not valid base64") from exc
            mime_type = body.get("mime_type") or guess_mime_type(filename)
            if not mime_type:
                raise InvalidDocumentError("mime_type is required for binary uploads")
            summary = ingest.ingest_bytes(data, filename=filename, mime_type=mime_type, metadata=metadata)
        elif "text" in body:
            summary = ingest.ingest_text(body["text"], filename=filename, metadata=metadata)
        else:
            raise InvalidDocumentError("No document provided")

        return 200, {
            "status": "success",
            "message": "Document ingested and redacted successfully",
            "data": summary.to_dict(),
        }

    def _analyze(self, body: dict[str, Any]) -> tuple[int, dict[str, Any]]:
        request_id = body.get("request_id")
        if not isinstance(request_id, str) or not request_id:
            raise InvalidDocumentError('"request_id" is required')

        record = asyncio.run(self.services.pipeline.analyze_request(request_id))
        if record.status is AnalysisStatus.FAILED:
            return 500, {
                "status": "error",
                "message": record.error_message,
                "data": record.to_dict(),
            }
        message = (
            "Analysis completed with warnings"
            if record.status is AnalysisStatus.COMPLETED_WITH_WARNINGS
            else "Document analyzed successfully"
        )
        return 200, {"status": "success", "message": message, "data": record.to_dict()}

    def _redact(self, body: dict[str, Any]) -> tuple[int, dict[str, Any]]:
        text = body.get("text")
        if not isinstance(text, str):
            raise InvalidDocumentError('"text" must be a string')
        result = self.services.redactor.redact(text)
        complete, remaining = verify_redaction(result.text)
        return 200, {
            "text": result.text,
            "matches": [m.to_dict() for m in result.matches],
            "redaction_count": result.redaction_count,
            "redactions_by_type": result.counts_by_category(),
            "verified": complete,
            "remaining": remaining,
        }

    def _search(self, body: dict[str, Any]) -> tuple[int, dict[str, Any]]:
        query = body.get("query")
        if not isinstance(query, str):
            raise InvalidDocumentError('"query" must be a string')
        try:
            top_n = int(body.get("top_n", self.services.settings.top_n))
        except (TypeError, ValueError) as exc:
            raise InvalidDocumentError('"top_n" must be an integer') from exc
        hits = self.services.retriever.retrieve(query, top_n)
        return 200, {"results": [
            {**h.to_dict(), "content": h.content} for h in hits
        ]}


def make_handler(services: Services) -> type[ComplianceHandler]:
    """Bind a handler class to a service container."""
    return type("BoundComplianceHandler", (ComplianceHandler,), {"services": services})


def serve(services: Services, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> None:
    """Start the contract-compliance HTTP sidecar."""
    server = ThreadingHTTPServer((host, port), make_handler(services))
    logger.info("contract-compliance listening on http://%s:%d", host, port)
    logger.info("  storage: %s", services.settings.storage_backend)
    logger.info("  llm: %s (%s)", services.settings.llm_base_url, services.settings.llm_model)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    finally:
        server.server_close()
        services.close()


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description="contract-compliance HTTP sidecar")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--config", help="YAML config file")
    args = parser.parse_args()
    settings = load_from_yaml(args.config) if args.config else load_config()
    configure_logging(settings.log_level)
    serve(create_services(settings), host=args.host, port=args.port)
