"""Regex patterns for structured PII in contracting documents.

One independent pattern per category.  Every pattern runs over the
original, unmodified text; matches from different categories may
overlap and are all reported.
"""

from __future__ import annotations
import re
from dataclasses import dataclass

from .types import PIICategory

# Order matters only for tie-breaking when two matches share a span.
_PATTERNS: list[tuple[PIICategory, re.Pattern]] = [
    # Email
    (PIICategory.EMAIL, re.compile(
        r"\b[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}\b"
    )),

    # Phone (NANP): (555) 123-4567, 555-123-4567, 555.123.4567, 5551234567, +1 ...
    (PIICategory.PHONE, re.compile(
        r"(?<!\d)"
        r"(?:\+?1[\-.\s]?)?"
        r"\(?\d{3}\)?[\-.\s]?"
        r"\d{3}[\-.\s]?\d{4}\b"
    )),

    # Tax identifier (SSN-shaped): 123-45-6789, 123 45 6789, 123456789
    (PIICategory.TAX_ID, re.compile(
        r"\b\d{3}[\-\s]?\d{2}[\-\s]?\d{4}\b"
    )),
]

CATEGORY_ORDER: dict[PIICategory, int] = {c: i for i, (c, _) in enumerate(_PATTERNS)}


@dataclass(frozen=True, slots=True)
class RawMatch:
    """A match before hashing. Holds the literal; never leaves the redactor."""
    category: PIICategory
    start: int
    end: int
    text: str


def scan_regex(text: str) -> list[RawMatch]:
    """Run every category pattern over text.

    Returns all matches sorted by (start, end, category). Overlaps are kept.
    """
    matches: list[RawMatch] = []
    for category, pattern in _PATTERNS:
        for m in pattern.finditer(text):
            if m.end() > m.start():
                matches.append(RawMatch(category, m.start(), m.end(), m.group()))
    matches.sort(key=lambda m: (m.start, m.end, CATEGORY_ORDER[m.category]))
    return matches


def contains_pii(text: str) -> bool:
    """True if any pattern still matches somewhere in text."""
    return any(pattern.search(text) for _, pattern in _PATTERNS)


def pii_statistics(text: str) -> dict[str, int]:
    """Per-category match counts, without replacing anything."""
    return {
        category.value: sum(1 for _ in pattern.finditer(text))
        for category, pattern in _PATTERNS
    }


def find_remaining_pii(text: str) -> list[dict[str, int | str]]:
    """Locate leftover PII by category and position only."""
    return [
        {"category": m.category.value, "start": m.start, "end": m.end}
        for m in scan_regex(text)
    ]
