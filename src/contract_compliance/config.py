"""YAML/dict config loader for contract-compliance.

Supports loading from a YAML file or a plain dict (for embedding in a
larger service config), with environment variables taking precedence.

Example YAML:

    contract_compliance:
      confidence_threshold: 0.8
      top_n: 5
      log_level: INFO
      max_document_bytes: 10485760
      rules_path: ~/rules/gsa.yaml     # optional, defaults to the built-in R1-R5
      llm:
        base_url: http://localhost:11434
        model: llama3.2
        timeout: 60
      storage:
        backend: sqlite                # "memory" or "sqlite"
        path: ~/.contract-compliance/compliance.db
"""

from __future__ import annotations
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

from .assistant import DEFAULT_CONFIDENCE_THRESHOLD, DocumentAssistant
from .documents import MAX_DOCUMENT_BYTES
from .evaluator import ComplianceEvaluator
from .ingest import IngestService
from .llm import DEFAULT_BASE_URL, DEFAULT_MODEL, DEFAULT_TIMEOUT, OllamaClient
from .pipeline import DEFAULT_TOP_N, AnalysisPipeline
from .redactor import Redactor
from .repository import InMemoryRepository, Repository
from .repository_sqlite import SqliteRepository
from .retriever import RuleRetriever
from .rules import RuleCorpus

DEFAULT_DB = str(Path.home() / ".contract-compliance" / "compliance.db")
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    top_n: int = DEFAULT_TOP_N
    llm_base_url: str = DEFAULT_BASE_URL
    llm_model: str = DEFAULT_MODEL
    llm_timeout: float = DEFAULT_TIMEOUT
    storage_backend: str = "memory"
    storage_path: str = DEFAULT_DB
    rules_path: str | None = None
    max_document_bytes: int = MAX_DOCUMENT_BYTES
    log_level: str = "INFO"


def load_config(data: Mapping[str, Any] | None = None, *, env: Mapping[str, str] | None = None) -> Settings:
    """Normalize a config dict (from YAML or inline) and apply env overrides."""
    data = dict(data or {})
    # Support nested under "contract_compliance" key or flat
    if "contract_compliance" in data:
        data = dict(data["contract_compliance"] or {})
    env = os.environ if env is None else env

    llm = data.get("llm") or {}
    storage = data.get("storage") or {}

    backend = str(storage.get("backend", "memory")).lower()
    if backend not in ("memory", "sqlite"):
        raise ValueError(f"Unknown storage backend: {backend}")

    db_env = env.get("CONTRACT_COMPLIANCE_DB")
    if db_env:
        backend = "sqlite"

    return Settings(
        confidence_threshold=float(env.get("CONFIDENCE_THRESHOLD",
                                           data.get("confidence_threshold", DEFAULT_CONFIDENCE_THRESHOLD))),
        top_n=int(data.get("top_n", DEFAULT_TOP_N)),
        llm_base_url=env.get("OLLAMA_BASE_URL", llm.get("base_url", DEFAULT_BASE_URL)),
        llm_model=env.get("OLLAMA_MODEL", llm.get("model", DEFAULT_MODEL)),
        llm_timeout=float(env.get("LLM_TIMEOUT_SECONDS", llm.get("timeout", DEFAULT_TIMEOUT))),
        storage_backend=backend,
        storage_path=db_env or storage.get("path", DEFAULT_DB),
        rules_path=data.get("rules_path"),
        max_document_bytes=int(data.get("max_document_bytes", MAX_DOCUMENT_BYTES)),
        log_level=str(env.get("LOG_LEVEL", data.get("log_level", "INFO"))).upper(),
    )


def load_from_yaml(path: str | Path, *, env: Mapping[str, str] | None = None) -> Settings:
    """Load settings from a YAML file."""
    with open(Path(path).expanduser(), encoding="utf-8") as f:
        return load_config(yaml.safe_load(f) or {}, env=env)


def configure_logging(level: str = "INFO") -> None:
    """One stream handler on the package logger."""
    logger = logging.getLogger("contract_compliance")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)


@dataclass
class Services:
    """Everything a process needs, wired once at startup."""
    settings: Settings
    corpus: RuleCorpus
    retriever: RuleRetriever
    evaluator: ComplianceEvaluator
    redactor: Redactor
    llm: OllamaClient
    assistant: DocumentAssistant
    repository: Repository
    ingest: IngestService
    pipeline: AnalysisPipeline

    def close(self) -> None:
        self.repository.close()


def create_services(settings: Settings | None = None) -> Services:
    """Build the corpus, engines, LLM client and storage from settings."""
    settings = settings or load_config()

    corpus = RuleCorpus.from_yaml(settings.rules_path) if settings.rules_path else RuleCorpus.default()
    retriever = RuleRetriever(corpus)
    evaluator = ComplianceEvaluator(corpus)
    redactor = Redactor()
    llm = OllamaClient(
        base_url=settings.llm_base_url,
        model=settings.llm_model,
        timeout=settings.llm_timeout,
    )
    assistant = DocumentAssistant(llm, confidence_threshold=settings.confidence_threshold)

    if settings.storage_backend == "sqlite":
        repository: Repository = SqliteRepository(db_path=settings.storage_path)
    else:
        repository = InMemoryRepository()

    return Services(
        settings=settings,
        corpus=corpus,
        retriever=retriever,
        evaluator=evaluator,
        redactor=redactor,
        llm=llm,
        assistant=assistant,
        repository=repository,
        ingest=IngestService(redactor, repository, max_bytes=settings.max_document_bytes),
        pipeline=AnalysisPipeline(
            assistant, retriever, evaluator, repository, top_n=settings.top_n,
        ),
    )
