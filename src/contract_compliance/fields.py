"""Typed field sets per document type.

The extractor returns loose JSON. ``parse_fields`` maps it onto an
explicit struct for the classified type; keys that are not part of the
struct are kept in ``extra`` so nothing the extractor returned is lost.
Parsing never raises: a malformed value is kept as-is and judged by the
evaluator.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Mapping, Union

from .types import DocumentType

# Field names as requested from the extractor, per document type.
EXPECTED_FIELDS: dict[DocumentType, tuple[str, ...]] = {
    DocumentType.COMPANY_PROFILE: ("UEI", "DUNS", "company_name", "NAICS_codes", "cage_code"),
    DocumentType.PAST_PERFORMANCE: (
        "contract_number", "client_name", "contract_value",
        "start_date", "end_date", "description",
    ),
    DocumentType.PRICING_SHEET: (
        "labor_categories", "rates", "geographic_location", "escalation_rate",
    ),
    DocumentType.UNKNOWN: (),
}

LABOR_CATEGORY_KEYS = ("title", "education", "experience")


def _as_list(value: Any) -> list[Any]:
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _extra(data: Mapping[str, Any], doc_type: DocumentType) -> dict[str, Any]:
    known = set(EXPECTED_FIELDS[doc_type])
    return {k: v for k, v in data.items() if k not in known}


@dataclass(slots=True)
class CompanyProfileFields:
    uei: Any = None
    duns: Any = None
    company_name: str | None = None
    naics_codes: list[Any] = field(default_factory=list)
    cage_code: Any = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "CompanyProfileFields":
        return cls(
            uei=data.get("UEI"),
            duns=data.get("DUNS"),
            company_name=data.get("company_name"),
            naics_codes=_as_list(data.get("NAICS_codes")),
            cage_code=data.get("cage_code"),
            extra=_extra(data, DocumentType.COMPANY_PROFILE),
        )


@dataclass(slots=True)
class PastPerformanceFields:
    contract_number: Any = None
    client_name: str | None = None
    contract_value: Any = None
    start_date: Any = None
    end_date: Any = None
    description: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PastPerformanceFields":
        return cls(
            contract_number=data.get("contract_number"),
            client_name=data.get("client_name"),
            contract_value=data.get("contract_value"),
            start_date=data.get("start_date"),
            end_date=data.get("end_date"),
            description=data.get("description"),
            extra=_extra(data, DocumentType.PAST_PERFORMANCE),
        )


@dataclass(slots=True)
class PricingSheetFields:
    # None when the extractor returned something that is not a list
    labor_categories: list[Any] | None = None
    rates: list[Any] = field(default_factory=list)
    geographic_location: str | None = None
    escalation_rate: Any = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PricingSheetFields":
        labor = data.get("labor_categories")
        return cls(
            labor_categories=list(labor) if isinstance(labor, (list, tuple)) else None,
            rates=_as_list(data.get("rates")),
            geographic_location=data.get("geographic_location"),
            escalation_rate=data.get("escalation_rate"),
            extra=_extra(data, DocumentType.PRICING_SHEET),
        )


@dataclass(slots=True)
class UnknownFields:
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "UnknownFields":
        return cls(extra=dict(data))


DocumentFields = Union[CompanyProfileFields, PastPerformanceFields, PricingSheetFields, UnknownFields]

FIELD_TYPES: dict[DocumentType, type] = {
    DocumentType.COMPANY_PROFILE: CompanyProfileFields,
    DocumentType.PAST_PERFORMANCE: PastPerformanceFields,
    DocumentType.PRICING_SHEET: PricingSheetFields,
    DocumentType.UNKNOWN: UnknownFields,
}
assert set(FIELD_TYPES) == set(DocumentType), "every DocumentType needs a field parser"


def parse_fields(document_type: DocumentType | str, data: Mapping[str, Any] | None) -> DocumentFields:
    """Build the typed field struct for a document type."""
    doc_type = DocumentType(document_type)
    return FIELD_TYPES[doc_type].from_mapping(data if isinstance(data, Mapping) else {})


def count_extracted(data: Mapping[str, Any]) -> int:
    """Number of fields holding an actual value (not null, not empty string)."""
    return sum(1 for v in data.values() if v is not None and v != "")
