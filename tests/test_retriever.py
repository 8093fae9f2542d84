"""Tests for the rule corpus and the lexical retriever."""

import pytest

from contract_compliance import DEFAULT_RULES, RuleCorpus, RuleRetriever, Severity
from contract_compliance.types import RuleCategory


# ── Corpus ───────────────────────────────────────────────────────────

def test_default_corpus_has_five_rules(corpus):
    assert [r.id for r in corpus] == ["R1", "R2", "R3", "R4", "R5"]
    assert len(corpus) == 5
    assert "R3" in corpus
    assert corpus["R3"].category is RuleCategory.FINANCIAL
    assert corpus.get("R9") is None


def test_duplicate_rule_ids_rejected():
    with pytest.raises(ValueError, match="duplicate"):
        RuleCorpus([DEFAULT_RULES[0], DEFAULT_RULES[0]])


def test_corpus_from_yaml(tmp_path):
    path = tmp_path / "rules.yaml"
    path.write_text(
        "rules:\n"
        "  - id: X1\n"
        "    title: Small Business Set-Aside\n"
        "    content: Offerors must certify small business status.\n"
        "    category: classification\n"
        "    severity: medium\n",
        encoding="utf-8",
    )
    corpus = RuleCorpus.from_yaml(path)
    assert len(corpus) == 1
    assert corpus["X1"].severity is Severity.MEDIUM


def test_rule_metadata(corpus):
    assert corpus["R1"].metadata == {
        "title": "Unique Entity Identifier (UEI) Requirement",
        "category": "identification",
        "severity": "critical",
    }


# ── Retrieval ────────────────────────────────────────────────────────

def test_title_and_body_hits_score_five(corpus):
    hits = RuleRetriever(corpus).retrieve("UEI")
    assert [h.rule_id for h in hits] == ["R1"]
    assert hits[0].score == 5


def test_contract_value_query_ranks_r3_first(corpus):
    hits = RuleRetriever(corpus).retrieve("contract value threshold")
    assert [h.rule_id for h in hits] == ["R3", "R4"]
    assert hits[0].score == 15
    assert hits[1].score == 2


def test_query_is_case_insensitive(corpus):
    retriever = RuleRetriever(corpus)
    assert retriever.retrieve("NAICS") == retriever.retrieve("naics")


def test_ties_keep_corpus_order(corpus):
    hits = RuleRetriever(corpus).retrieve("must", top_n=3)
    assert [h.rule_id for h in hits] == ["R1", "R2", "R3"]
    assert {h.score for h in hits} == {2}


def test_retrieval_is_deterministic(corpus):
    retriever = RuleRetriever(corpus)
    query = "company_profile compliance requirements labor"
    first = retriever.retrieve(query)
    for _ in range(5):
        assert retriever.retrieve(query) == first


def test_scores_descending_and_positive(corpus):
    hits = RuleRetriever(corpus).retrieve("pii redaction labor contract naics")
    scores = [h.score for h in hits]
    assert scores == sorted(scores, reverse=True)
    assert all(s > 0 for s in scores)


def test_non_positive_top_n_returns_nothing(corpus):
    retriever = RuleRetriever(corpus)
    assert retriever.retrieve("UEI", top_n=0) == []
    assert retriever.retrieve("UEI", top_n=-3) == []


def test_empty_and_unmatched_queries(corpus):
    retriever = RuleRetriever(corpus)
    assert retriever.retrieve("") == []
    assert retriever.retrieve("   ") == []
    assert retriever.retrieve("zzzqqq") == []


def test_top_n_caps_results(corpus):
    assert len(RuleRetriever(corpus).retrieve("must", top_n=2)) == 2


def test_retrieved_rule_shape(corpus):
    hit = RuleRetriever(corpus).retrieve("UEI")[0]
    assert hit.content == corpus["R1"].content
    assert hit.to_dict() == {"id": "R1", "score": 5, **corpus["R1"].metadata}


# ── Lookups ──────────────────────────────────────────────────────────

def test_lookups(corpus):
    retriever = RuleRetriever(corpus)
    assert retriever.get("R2").title == "NAICS Code to SIN Mapping"
    assert retriever.get("nope") is None
    assert len(retriever.all()) == 5
    assert [r.id for r in retriever.by_category("financial")] == ["R3"]
    assert [r.id for r in retriever.by_severity(Severity.CRITICAL)] == ["R1", "R3", "R5"]


def test_injected_corpus_is_used():
    corpus = RuleCorpus.from_dicts([{
        "id": "Z1", "title": "Cyber", "content": "CMMC level two certification",
        "category": "security", "severity": "high",
    }])
    hits = RuleRetriever(corpus).retrieve("cmmc")
    assert [h.rule_id for h in hits] == ["Z1"]
