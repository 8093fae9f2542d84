"""CLI interface for contract-compliance.

Usage:
    # Redact plain text (stdin: text, stdout: JSON with redacted text + audit)
    echo 'Contact john@acme.com or 555-123-4567' | \
        python -m contract_compliance.cli redact-text

    # Check a redacted text for leftovers
    cat redacted.txt | python -m contract_compliance.cli verify

    # Search the rule corpus
    python -m contract_compliance.cli search "contract value threshold" --top-n 3

    # Evaluate extracted fields (stdin: JSON object)
    echo '{"UEI": "ABC123DEF456"}' | \
        python -m contract_compliance.cli evaluate --type company_profile

    # Ingest a file, then analyze it against a running Ollama
    python -m contract_compliance.cli --config compliance.yaml ingest profile.pdf
    python -m contract_compliance.cli --config compliance.yaml analyze --request-id <id>

Output is always JSON on stdout; diagnostics go to stderr.
"""

from __future__ import annotations
import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from .config import Settings, configure_logging, create_services, load_config, load_from_yaml
from .documents import guess_mime_type
from .errors import ComplianceError
from .evaluator import ComplianceEvaluator
from .patterns import pii_statistics
from .redactor import Redactor, RedactorConfig, verify_redaction
from .retriever import RuleRetriever
from .rules import RuleCorpus
from .types import AnalysisStatus, DocumentType, PIICategory


def _emit(data: Any) -> None:
    json.dump(data, sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")


def _read_input(path: str | None) -> str:
    if path and path != "-":
        return Path(path).read_text(encoding="utf-8")
    return sys.stdin.read()


def _settings(args: argparse.Namespace) -> Settings:
    return load_from_yaml(args.config) if args.config else load_config()


def _corpus(settings: Settings) -> RuleCorpus:
    return RuleCorpus.from_yaml(settings.rules_path) if settings.rules_path else RuleCorpus.default()


def _build_redactor(args: argparse.Namespace) -> Redactor:
    config = RedactorConfig()
    if args.skip:
        config.skip_categories = {PIICategory(c.strip()) for c in args.skip.split(",") if c.strip()}
    return Redactor(config)


def cmd_redact_text(args: argparse.Namespace) -> None:
    """Redact PII from plain text."""
    result = _build_redactor(args).redact(_read_input(args.file))
    _emit({
        "text": result.text,
        "matches": [m.to_dict() for m in result.matches],
        "redaction_count": result.redaction_count,
        "redactions_by_type": result.counts_by_category(),
    })


def cmd_stats(args: argparse.Namespace) -> None:
    """Count PII per category without redacting."""
    _emit(pii_statistics(_read_input(args.file)))


def cmd_verify(args: argparse.Namespace) -> int:
    """Exit non-zero if the text still holds PII."""
    complete, remaining = verify_redaction(_read_input(args.file))
    _emit({"complete": complete, "remaining": remaining})
    return 0 if complete else 1


def cmd_rules(args: argparse.Namespace) -> None:
    retriever = RuleRetriever(_corpus(_settings(args)))
    try:
        if args.category:
            rules = retriever.by_category(args.category)
        elif args.severity:
            rules = retriever.by_severity(args.severity)
        else:
            rules = retriever.all()
    except ValueError as exc:
        raise ComplianceError(str(exc), status_code=400) from exc
    _emit([{"id": r.id, "content": r.content, **r.metadata} for r in rules])


def cmd_search(args: argparse.Namespace) -> None:
    settings = _settings(args)
    retriever = RuleRetriever(_corpus(settings))
    top_n = settings.top_n if args.top_n is None else args.top_n
    _emit([h.to_dict() for h in retriever.retrieve(args.query, top_n)])


def cmd_evaluate(args: argparse.Namespace) -> None:
    """Evaluate a JSON field map for one document type."""
    raw = _read_input(args.file).strip()
    try:
        fields = json.loads(raw) if raw else {}
    except json.JSONDecodeError as exc:
        raise ComplianceError(f"Invalid JSON: {exc.msg}", status_code=400) from exc
    if not isinstance(fields, dict):
        raise ComplianceError("fields must be a JSON object", status_code=400)
    evaluator = ComplianceEvaluator(_corpus(_settings(args)))
    _emit([item.to_dict() for item in evaluator.evaluate(args.type, fields)])


def cmd_ingest(args: argparse.Namespace) -> None:
    services = create_services(_settings(args))
    try:
        if args.file and args.file != "-":
            path = Path(args.file)
            mime_type = args.mime_type or guess_mime_type(path.name)
            if not mime_type:
                raise ComplianceError(f"Cannot determine type of {path.name}", status_code=400)
            summary = services.ingest.ingest_bytes(
                path.read_bytes(), filename=path.name, mime_type=mime_type,
                request_id=args.request_id,
            )
        else:
            summary = services.ingest.ingest_text(sys.stdin.read(), request_id=args.request_id)
        _emit(summary.to_dict())
    finally:
        services.close()


def cmd_analyze(args: argparse.Namespace) -> int:
    """Analyze a stored request, or redact and analyze text from stdin/file."""
    services = create_services(_settings(args))
    try:
        if args.request_id:
            record = asyncio.run(services.pipeline.analyze_request(args.request_id))
        else:
            redacted = services.redactor.redact(_read_input(args.file)).text
            record = asyncio.run(services.pipeline.analyze(redacted))
        _emit(record.to_dict())
        return 1 if record.status is AnalysisStatus.FAILED else 0
    finally:
        services.close()


def cmd_serve(args: argparse.Namespace) -> None:
    from .server import serve
    serve(create_services(_settings(args)), host=args.host, port=args.port)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="contract_compliance",
        description="PII redaction and GSA compliance checks for contracting documents",
    )
    parser.add_argument("--config", help="YAML config file")
    parser.add_argument("--log-level", help="Override the configured log level")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("redact-text", help="Redact plain text (stdin or file)")
    p.add_argument("file", nargs="?")
    p.add_argument("--skip", default="", help="Comma-separated categories to leave in place")

    p = sub.add_parser("stats", help="Count PII per category")
    p.add_argument("file", nargs="?")

    p = sub.add_parser("verify", help="Check text for leftover PII")
    p.add_argument("file", nargs="?")

    p = sub.add_parser("rules", help="List the rule corpus")
    p.add_argument("--category")
    p.add_argument("--severity")

    p = sub.add_parser("search", help="Lexical rule search")
    p.add_argument("query")
    p.add_argument("--top-n", type=int, default=None)

    p = sub.add_parser("evaluate", help="Evaluate extracted fields (JSON stdin or file)")
    p.add_argument("--type", required=True, choices=[t.value for t in DocumentType])
    p.add_argument("file", nargs="?")

    p = sub.add_parser("ingest", help="Ingest and redact a document")
    p.add_argument("file", nargs="?")
    p.add_argument("--mime-type")
    p.add_argument("--request-id")

    p = sub.add_parser("analyze", help="Run the analysis pipeline")
    p.add_argument("file", nargs="?")
    p.add_argument("--request-id")

    p = sub.add_parser("serve", help="Run the HTTP sidecar")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=18792)

    args = parser.parse_args(argv)
    configure_logging(args.log_level or _settings(args).log_level)

    cmds = {
        "redact-text": cmd_redact_text,
        "stats": cmd_stats,
        "verify": cmd_verify,
        "rules": cmd_rules,
        "search": cmd_search,
        "evaluate": cmd_evaluate,
        "ingest": cmd_ingest,
        "analyze": cmd_analyze,
        "serve": cmd_serve,
    }
    try:
        return cmds[args.command](args) or 0
    except ComplianceError as e:
        sys.stderr.write(f"error: {e.message}\n")
        return 2


if __name__ == "__main__":
    sys.exit(main())
