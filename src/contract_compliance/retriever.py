"""Lexical rule retriever.

Keyword/substring overlap against the fixed corpus, no embeddings.  The
ranking is deterministic so rule ids cited in a checklist can be
reproduced during an audit.
"""

from __future__ import annotations

from .rules import RuleCorpus
from .types import RetrievedRule, Rule, RuleCategory, Severity

BODY_WEIGHT = 2
TITLE_WEIGHT = 3


class RuleRetriever:
    """Ranks rules of an injected corpus against free-text queries."""

    __slots__ = ("_corpus",)

    def __init__(self, corpus: RuleCorpus) -> None:
        self._corpus = corpus

    @property
    def corpus(self) -> RuleCorpus:
        return self._corpus

    def score(self, rule: Rule, words: list[str]) -> int:
        content = rule.content.lower()
        title = rule.title.lower()
        total = 0
        for word in words:
            if word in content:
                total += BODY_WEIGHT
            if word in title:
                total += TITLE_WEIGHT
        return total

    def retrieve(self, query: str, top_n: int = 5) -> list[RetrievedRule]:
        """Top-N rules by score; ties keep corpus order, zero scores dropped."""
        if top_n <= 0:
            return []
        words = query.lower().split()
        scored = [RetrievedRule(rule, self.score(rule, words)) for rule in self._corpus]
        ranked = sorted((r for r in scored if r.score > 0), key=lambda r: -r.score)
        return ranked[:top_n]

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get(self, rule_id: str) -> Rule | None:
        return self._corpus.get(rule_id)

    def all(self) -> list[Rule]:
        return list(self._corpus)

    def by_category(self, category: RuleCategory | str) -> list[Rule]:
        category = RuleCategory(category)
        return [r for r in self._corpus if r.category is category]

    def by_severity(self, severity: Severity | str) -> list[Rule]:
        severity = Severity(severity)
        return [r for r in self._corpus if r.severity is severity]
