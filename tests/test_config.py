"""Tests for config loading and service wiring."""

import logging

import pytest

from contract_compliance import InMemoryRepository, SqliteRepository, create_services, load_config, load_from_yaml
from contract_compliance.config import configure_logging


# ── Loading ──────────────────────────────────────────────────────────

def test_defaults():
    settings = load_config({}, env={})
    assert settings.confidence_threshold == 0.8
    assert settings.top_n == 5
    assert settings.llm_base_url == "http://localhost:11434"
    assert settings.llm_model == "llama3.2"
    assert settings.llm_timeout == 60.0
    assert settings.storage_backend == "memory"
    assert settings.rules_path is None
    assert settings.max_document_bytes == 10 * 1024 * 1024
    assert settings.log_level == "INFO"


def test_nested_config():
    settings = load_config({"contract_compliance": {
        "confidence_threshold": 0.7,
        "top_n": 3,
        "llm": {"base_url": "http://gpu:11434", "model": "mistral", "timeout": 30},
        "storage": {"backend": "sqlite", "path": "/tmp/c.db"},
        "log_level": "debug",
    }}, env={})
    assert settings.confidence_threshold == 0.7
    assert settings.top_n == 3
    assert settings.llm_model == "mistral"
    assert settings.llm_timeout == 30.0
    assert settings.storage_backend == "sqlite"
    assert settings.storage_path == "/tmp/c.db"
    assert settings.log_level == "DEBUG"


def test_env_overrides(tmp_path):
    settings = load_config({"confidence_threshold": 0.5}, env={
        "CONFIDENCE_THRESHOLD": "0.9",
        "OLLAMA_BASE_URL": "http://other:11434",
        "OLLAMA_MODEL": "llama3.1",
        "LLM_TIMEOUT_SECONDS": "5",
        "CONTRACT_COMPLIANCE_DB": str(tmp_path / "env.db"),
        "LOG_LEVEL": "warning",
    })
    assert settings.confidence_threshold == 0.9
    assert settings.llm_base_url == "http://other:11434"
    assert settings.llm_model == "llama3.1"
    assert settings.llm_timeout == 5.0
    assert settings.storage_backend == "sqlite"
    assert settings.storage_path == str(tmp_path / "env.db")
    assert settings.log_level == "WARNING"


def test_unknown_backend_rejected():
    with pytest.raises(ValueError, match="backend"):
        load_config({"storage": {"backend": "postgres"}}, env={})


def test_load_from_yaml(tmp_path):
    path = tmp_path / "compliance.yaml"
    path.write_text(
        "contract_compliance:\n"
        "  top_n: 2\n"
        "  llm:\n"
        "    model: phi3\n",
        encoding="utf-8",
    )
    settings = load_from_yaml(path, env={})
    assert settings.top_n == 2
    assert settings.llm_model == "phi3"


def test_empty_yaml_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert load_from_yaml(path, env={}).top_n == 5


# ── Wiring ───────────────────────────────────────────────────────────

def test_create_services_memory():
    services = create_services(load_config({}, env={}))
    assert isinstance(services.repository, InMemoryRepository)
    assert len(services.corpus) == 5
    assert services.assistant.confidence_threshold == 0.8
    assert services.pipeline.top_n == 5
    services.close()


def test_create_services_sqlite_with_custom_rules(tmp_path):
    rules = tmp_path / "rules.yaml"
    rules.write_text(
        "rules:\n" + "".join(
            f"  - id: R{i}\n"
            f"    title: Rule {i}\n"
            f"    content: Content of rule {i}\n"
            f"    category: financial\n"
            f"    severity: low\n"
            for i in range(1, 5)
        ),
        encoding="utf-8",
    )
    settings = load_config({
        "rules_path": str(rules),
        "storage": {"backend": "sqlite", "path": str(tmp_path / "db" / "c.db")},
    }, env={})
    services = create_services(settings)
    try:
        assert isinstance(services.repository, SqliteRepository)
        assert [r.id for r in services.corpus] == ["R1", "R2", "R3", "R4"]
        assert services.retriever.retrieve("rule 3")[0].rule_id == "R3"
    finally:
        services.close()


# ── Logging ──────────────────────────────────────────────────────────

def test_configure_logging_is_idempotent():
    logger = logging.getLogger("contract_compliance")
    configure_logging("debug")
    count = len(logger.handlers)
    configure_logging("warning")
    assert len(logger.handlers) == count
    assert logger.level == logging.WARNING
