"""Redactor: irreversible PII removal with a hashed audit trail.

Usage:
    from contract_compliance import Redactor

    redactor = Redactor()        # stateless, safe to share across threads

    result = redactor.redact("Email me at john@acme.com")
    print(result.text)           # "Email me at [REDACTED_EMAIL]"
    print(result.matches[0])     # PIIMatch(category=EMAIL, start=12, end=25, value_hash=...)

Unlike a tokenizing vault there is no way back: each literal is reduced to
its SHA-256 digest and the text only keeps a category placeholder.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Callable

from .patterns import RawMatch, CATEGORY_ORDER, scan_regex, find_remaining_pii
from .types import PIICategory, PIIMatch, RedactionResult, hash_value

logger = logging.getLogger(__name__)

PLACEHOLDERS: dict[PIICategory, str] = {
    PIICategory.EMAIL: "[REDACTED_EMAIL]",
    PIICategory.PHONE: "[REDACTED_PHONE]",
    PIICategory.TAX_ID: "[REDACTED_TAX_ID]",
}


@dataclass
class RedactorConfig:
    """Configuration for the Redactor."""
    # Categories to leave in place (e.g. phone numbers on a public profile)
    skip_categories: set[PIICategory] = field(default_factory=set)
    # Extra scanners returning RawMatch lists, run after the regex layer
    custom_scanners: list[Callable[[str], list[RawMatch]]] = field(default_factory=list)


class Redactor:
    """Single-pass PII redactor.

    All category scans run against the original text, the matches are
    sorted once by start offset and the output is rebuilt in one linear
    pass, so no offset ever has to be adjusted.
    """

    def __init__(self, config: RedactorConfig | None = None) -> None:
        self.config = config or RedactorConfig()

    def scan(self, text: str) -> list[RawMatch]:
        matches = scan_regex(text)
        for scanner in self.config.custom_scanners:
            matches.extend(scanner(text))
        matches = [m for m in matches if m.category not in self.config.skip_categories]
        matches.sort(key=lambda m: (m.start, m.end, CATEGORY_ORDER[m.category]))
        return matches

    def redact(self, text: str) -> RedactionResult:
        """Replace every PII span with its category placeholder.

        Overlapping spans both produce a placeholder; their combined
        characters are removed once.
        """
        raw = self.scan(text)

        parts: list[str] = []
        cursor = 0
        audit: list[PIIMatch] = []
        for m in raw:
            if m.start > cursor:
                parts.append(text[cursor:m.start])
            parts.append(PLACEHOLDERS[m.category])
            cursor = max(cursor, m.end)
            audit.append(PIIMatch(
                category=m.category,
                start=m.start,
                end=m.end,
                value_hash=hash_value(m.text),
            ))
        parts.append(text[cursor:])

        result = RedactionResult(text="".join(parts), matches=audit)
        if audit:
            logger.debug("redacted %d span(s): %s", len(audit), result.counts_by_category())
        return result


_default = Redactor()


def redact(text: str) -> RedactionResult:
    """Redact with the default configuration."""
    return _default.redact(text)


def verify_redaction(redacted_text: str) -> tuple[bool, list[dict[str, int | str]]]:
    """Check a redacted text for leftovers.

    Returns ``(is_complete, remaining)``; ``remaining`` names category and
    position of each leftover, never its value.
    """
    remaining = find_remaining_pii(redacted_text)
    return not remaining, remaining
