"""Compliance evaluator: a per-document-type decision table.

Each document type activates its own checks.  A check reads one or more
typed fields and emits exactly one ``ChecklistItem`` tagged with a fixed
rule id; the severity comes from the injected corpus entry for that id,
whatever the retriever happened to surface.  Missing or malformed fields
yield a non_compliant item instead of an exception.
"""

from __future__ import annotations
import math
import re
import unicodedata
from typing import Any, Callable, Iterable, Mapping

from .fields import (
    FIELD_TYPES,
    LABOR_CATEGORY_KEYS,
    CompanyProfileFields,
    DocumentFields,
    PastPerformanceFields,
    PricingSheetFields,
    parse_fields,
)
from .rules import RuleCorpus
from .types import ChecklistItem, ChecklistStatus, DocumentType, RetrievedRule, Severity

UEI_PATTERN = re.compile(r"[A-Z0-9]{12}")
CONTRACT_VALUE_THRESHOLD = 25_000.0
THRESHOLD_LABEL = "$25,000"

UEI_RULE = "R1"
NAICS_RULE = "R2"
CONTRACT_VALUE_RULE = "R3"
LABOR_RULE = "R4"


def parse_amount(value: Any) -> float | None:
    """Parse a number or currency string such as ``"$30,000.00"``.

    Currency symbols, commas and whitespace are stripped.  Returns None
    when nothing numeric remains.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    else:
        cleaned = "".join(
            ch for ch in str(value)
            if not ch.isspace() and ch != "," and unicodedata.category(ch) != "Sc"
        )
        try:
            number = float(cleaned)
        except ValueError:
            return None
    return number if math.isfinite(number) else None


def format_amount(amount: float) -> str:
    return f"${amount:,.2f}"


Check = Callable[["ComplianceEvaluator", Any], ChecklistItem]


class ComplianceEvaluator:
    """Judges extracted fields against the fixed rule set."""

    __slots__ = ("_corpus",)

    def __init__(self, corpus: RuleCorpus) -> None:
        for rule_id in (UEI_RULE, NAICS_RULE, CONTRACT_VALUE_RULE, LABOR_RULE):
            if rule_id not in corpus:
                raise ValueError(f"rule corpus is missing {rule_id}")
        self._corpus = corpus

    def severity(self, rule_id: str) -> Severity:
        return self._corpus[rule_id].severity

    def _item(self, rule_id: str, requirement: str, status: ChecklistStatus, evidence: str) -> ChecklistItem:
        return ChecklistItem(
            requirement=requirement,
            status=status,
            evidence=evidence,
            rule_id=rule_id,
            severity=self.severity(rule_id),
        )

    def evaluate(
        self,
        document_type: DocumentType | str,
        fields: Mapping[str, Any] | DocumentFields | None,
        retrieved_rules: Iterable[RetrievedRule] = (),
    ) -> list[ChecklistItem]:
        """Run the checks for ``document_type`` and return one item per check.

        ``retrieved_rules`` is accepted for context only; verdicts and
        severities depend on fixed rule ids.
        """
        doc_type = DocumentType(document_type)
        if fields is None or isinstance(fields, Mapping):
            typed = parse_fields(doc_type, fields)
        elif isinstance(fields, FIELD_TYPES[doc_type]):
            typed = fields
        else:
            raise TypeError(
                f"{type(fields).__name__} cannot be evaluated as {doc_type.value}"
            )
        return [check(self, typed) for check in _CHECKS[doc_type]]

    # ------------------------------------------------------------------
    # Company profile
    # ------------------------------------------------------------------

    def check_uei(self, fields: CompanyProfileFields) -> ChecklistItem:
        requirement = "Valid UEI Required"
        uei = fields.uei
        if uei is None or uei == "":
            return self._item(UEI_RULE, requirement, ChecklistStatus.NON_COMPLIANT,
                              "UEI not found in document")
        uei = str(uei)
        if not UEI_PATTERN.fullmatch(uei):
            return self._item(UEI_RULE, requirement, ChecklistStatus.NON_COMPLIANT,
                              f"Invalid UEI format: {uei}")
        return self._item(UEI_RULE, requirement, ChecklistStatus.COMPLIANT,
                          f"Valid UEI found: {uei}")

    def check_naics(self, fields: CompanyProfileFields) -> ChecklistItem:
        requirement = "NAICS Code to SIN Mapping"
        codes = [str(c) for c in fields.naics_codes if c is not None and c != ""]
        if not codes:
            return self._item(NAICS_RULE, requirement, ChecklistStatus.NON_COMPLIANT,
                              "No NAICS codes found in document")
        # SIN mapping cannot be confirmed here; a reviewer has to sign off.
        return self._item(
            NAICS_RULE, requirement, ChecklistStatus.NEEDS_REVIEW,
            f"Found {len(codes)} NAICS code(s): {', '.join(codes)}. "
            "Requires mapping verification.",
        )

    # ------------------------------------------------------------------
    # Past performance
    # ------------------------------------------------------------------

    def check_contract_value(self, fields: PastPerformanceFields) -> ChecklistItem:
        requirement = f"Contract Value >= {THRESHOLD_LABEL}"
        raw = fields.contract_value
        if raw is None or raw == "":
            return self._item(CONTRACT_VALUE_RULE, requirement, ChecklistStatus.NON_COMPLIANT,
                              "Contract value not found in document")
        amount = parse_amount(raw)
        if amount is None:
            return self._item(CONTRACT_VALUE_RULE, requirement, ChecklistStatus.NON_COMPLIANT,
                              f"Contract value could not be parsed: {raw}")
        if amount < CONTRACT_VALUE_THRESHOLD:
            return self._item(
                CONTRACT_VALUE_RULE, requirement, ChecklistStatus.NON_COMPLIANT,
                f"Contract value {format_amount(amount)} is below "
                f"{THRESHOLD_LABEL} threshold",
            )
        return self._item(CONTRACT_VALUE_RULE, requirement, ChecklistStatus.COMPLIANT,
                          f"Contract value: {format_amount(amount)}")

    # ------------------------------------------------------------------
    # Pricing sheet
    # ------------------------------------------------------------------

    def check_labor_categories(self, fields: PricingSheetFields) -> ChecklistItem:
        requirement = "Labor Category Details"
        categories = fields.labor_categories
        if not categories:
            return self._item(LABOR_RULE, requirement, ChecklistStatus.NON_COMPLIANT,
                              "Labor categories missing or incomplete")
        incomplete = sum(
            1 for c in categories
            if not isinstance(c, Mapping) or any(not c.get(k) for k in LABOR_CATEGORY_KEYS)
        )
        evidence = f"Found {len(categories)} labor categories with details"
        if incomplete:
            evidence += (
                f"; {incomplete} lack one of {', '.join(LABOR_CATEGORY_KEYS)}"
            )
        return self._item(LABOR_RULE, requirement, ChecklistStatus.COMPLIANT, evidence)


_CHECKS: dict[DocumentType, tuple[Check, ...]] = {
    DocumentType.COMPANY_PROFILE: (
        ComplianceEvaluator.check_uei,
        ComplianceEvaluator.check_naics,
    ),
    DocumentType.PAST_PERFORMANCE: (ComplianceEvaluator.check_contract_value,),
    DocumentType.PRICING_SHEET: (ComplianceEvaluator.check_labor_categories,),
    DocumentType.UNKNOWN: (),
}
assert set(_CHECKS) == set(DocumentType), "every DocumentType needs an entry in _CHECKS"
