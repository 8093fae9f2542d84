"""Static compliance rule corpus.

The corpus is built once at startup and handed to the retriever and the
evaluator.  It is a tuple of frozen ``Rule`` objects; nothing mutates it.

A custom corpus can be loaded from YAML:

    rules:
      - id: R1
        title: Unique Entity Identifier (UEI) Requirement
        content: All vendors must provide ...
        category: identification
        severity: critical
"""

from __future__ import annotations
from pathlib import Path
from typing import Any, Iterable, Iterator

import yaml

from .types import Rule, RuleCategory, Severity

DEFAULT_RULES: tuple[Rule, ...] = (
    Rule(
        id="R1",
        title="Unique Entity Identifier (UEI) Requirement",
        content=(
            "All vendors must provide a valid Unique Entity Identifier (UEI) in their "
            "company profile. The UEI is a 12-character alphanumeric identifier assigned "
            "by SAM.gov. Missing or invalid UEI is a critical compliance violation that "
            "must be flagged immediately. Legacy DUNS numbers (9-digit numeric) are no "
            "longer accepted as primary identifiers but may be present for reference."
        ),
        category=RuleCategory.IDENTIFICATION,
        severity=Severity.CRITICAL,
    ),
    Rule(
        id="R2",
        title="NAICS Code to SIN Mapping",
        content=(
            "Each NAICS (North American Industry Classification System) code provided "
            "must map to at least one valid Special Item Number (SIN). NAICS codes are "
            "6-digit numeric codes that classify business establishments. The mapping "
            "must be verified and duplicates should be removed per the official GSA SIN "
            "to NAICS mapping table. Multiple NAICS codes may map to the same SIN, but "
            "each unique SIN should only be listed once in the final output."
        ),
        category=RuleCategory.CLASSIFICATION,
        severity=Severity.HIGH,
    ),
    Rule(
        id="R3",
        title="Contract Value Threshold",
        content=(
            "All GSA contracts must be valued at $25,000 or more to be eligible for "
            "award. Contracts below this threshold are not permitted under GSA "
            "regulations. This is a mandatory minimum that cannot be waived or reduced."
        ),
        category=RuleCategory.FINANCIAL,
        severity=Severity.CRITICAL,
    ),
    Rule(
        id="R4",
        title="Labor Category Requirements",
        content=(
            "All service contracts must specify labor categories with clear job titles, "
            "required qualifications, and minimum experience requirements. Each labor "
            "category must include education requirements, years of experience, "
            "certifications, and clearance levels if applicable. Labor categories must "
            "be distinct and not overlap in responsibilities."
        ),
        category=RuleCategory.LABOR,
        severity=Severity.HIGH,
    ),
    Rule(
        id="R5",
        title="PII Redaction Requirements",
        content=(
            "All personally identifiable information (PII) must be redacted from "
            "submitted documents before processing. PII includes names, addresses, "
            "phone numbers, email addresses, Social Security Numbers, and financial "
            "account information. Redaction must be complete and irreversible. Partial "
            "redaction is not acceptable."
        ),
        category=RuleCategory.SECURITY,
        severity=Severity.CRITICAL,
    ),
)


class RuleCorpus:
    """Immutable, ordered collection of rules keyed by identifier."""

    __slots__ = ("_rules", "_by_id")

    def __init__(self, rules: Iterable[Rule]) -> None:
        self._rules: tuple[Rule, ...] = tuple(rules)
        self._by_id: dict[str, Rule] = {}
        for rule in self._rules:
            if rule.id in self._by_id:
                raise ValueError(f"duplicate rule id {rule.id!r}")
            self._by_id[rule.id] = rule

    @classmethod
    def default(cls) -> "RuleCorpus":
        return cls(DEFAULT_RULES)

    @classmethod
    def from_dicts(cls, items: Iterable[dict[str, Any]]) -> "RuleCorpus":
        return cls(
            Rule(
                id=str(item["id"]),
                title=item["title"],
                content=item["content"],
                category=RuleCategory(item["category"]),
                severity=Severity(item["severity"]),
            )
            for item in items
        )

    @classmethod
    def from_yaml(cls, path: str | Path) -> "RuleCorpus":
        """Load a corpus from a YAML file with a top-level ``rules`` list."""
        with open(Path(path).expanduser(), encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        items = data.get("rules", []) if isinstance(data, dict) else data
        return cls.from_dicts(items)

    def get(self, rule_id: str) -> Rule | None:
        return self._by_id.get(rule_id)

    def __getitem__(self, rule_id: str) -> Rule:
        return self._by_id[rule_id]

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._by_id

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules
