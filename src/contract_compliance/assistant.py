"""LLM-backed document assistant: classification, field extraction, prose.

Every call takes already de-identified text.  Replies are expected to
carry a JSON object; the first ``{...}`` block in the reply is parsed.
"""

from __future__ import annotations
import json
import logging
import math
import re
from typing import Any

from .errors import LLMResponseError
from .fields import EXPECTED_FIELDS, count_extracted
from .llm import TextGenerator
from .types import ChecklistItem, ChecklistStatus, Classification, DocumentType, FieldExtraction

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE_THRESHOLD = 0.8
PROMPT_CHAR_LIMIT = 3000

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)

CLASSIFY_SYSTEM = """You are an expert document classifier for government contracting.
Your task is to classify documents into one of these categories: company_profile, past_performance, pricing_sheet, or unknown.
Respond ONLY with a JSON object in this exact format:
{
  "documentType": "category",
  "confidence": 0.0-1.0,
  "reasoning": "brief explanation"
}"""

EXTRACT_SYSTEM: dict[DocumentType, str] = {
    DocumentType.COMPANY_PROFILE: """Extract the following fields from a company profile document:
- UEI: 12-character alphanumeric Unique Entity Identifier
- DUNS: 9-digit legacy identifier
- company_name: Official company name
- NAICS_codes: Array of 6-digit NAICS codes
- cage_code: Commercial and Government Entity Code

Respond ONLY with JSON.""",
    DocumentType.PAST_PERFORMANCE: """Extract the following fields from a past performance document:
- contract_number: Contract identification number
- client_name: Name of the contracting organization
- contract_value: Total contract value in dollars (numeric)
- start_date: Contract start date
- end_date: Contract end date
- description: Brief description of work performed

Respond ONLY with JSON.""",
    DocumentType.PRICING_SHEET: """Extract the following fields from a pricing sheet:
- labor_categories: Array of labor category objects with title, education, experience
- rates: Array of rate objects with category, hourly_rate, breakdown
- geographic_location: Geographic area for rates
- escalation_rate: Annual escalation percentage

Respond ONLY with JSON.""",
}

BRIEF_SYSTEM = """You are a GSA contract negotiation specialist. Generate a concise negotiation brief (max 500 words) that:
1. Summarizes key compliance issues
2. Provides actionable recommendations
3. Cites specific rule violations
4. Suggests negotiation strategies

Be professional and direct."""

EMAIL_SYSTEM = (
    "You are a professional GSA contract specialist. Generate a polite, professional "
    "email to a client addressing compliance issues. Be diplomatic but clear about "
    "requirements."
)


def parse_json_object(reply: str) -> dict[str, Any]:
    """Pull the JSON object out of an LLM reply."""
    m = _JSON_OBJECT.search(reply or "")
    if not m:
        raise LLMResponseError("Invalid response format from AI")
    try:
        data = json.loads(m.group())
    except json.JSONDecodeError as exc:
        raise LLMResponseError(f"Invalid JSON from AI: {exc.msg}") from exc
    if not isinstance(data, dict):
        raise LLMResponseError("Invalid response format from AI")
    return data


def _coerce_confidence(value: Any) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(confidence):
        return 0.0
    return min(max(confidence, 0.0), 1.0)


def _bullets(items: list[ChecklistItem]) -> str:
    return "\n".join(f"- {i.requirement}: {i.evidence} ({i.rule_id})" for i in items)


class DocumentAssistant:
    """Prompts the text generator for each LLM-backed pipeline step."""

    def __init__(
        self,
        llm: TextGenerator,
        *,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
    ) -> None:
        self.llm = llm
        self.confidence_threshold = confidence_threshold

    async def classify(self, text: str) -> Classification:
        """Classify a document.

        An unparseable reply becomes an abstaining classification.  An
        unreachable LLM propagates as ``LLMUnavailableError``.
        """
        prompt = (
            f"Classify the following document. If confidence is below "
            f"{self.confidence_threshold}, set documentType to \"unknown\".\n\n"
            f"Document content:\n{text[:PROMPT_CHAR_LIMIT]}\n\n"
            "Respond with JSON only:"
        )
        reply = await self.llm.generate(CLASSIFY_SYSTEM, prompt)
        try:
            data = parse_json_object(reply)
        except LLMResponseError as exc:
            logger.warning("Document classification failed: %s", exc.message)
            return Classification(
                document_type=DocumentType.UNKNOWN,
                confidence=0.0,
                reasoning=f"Classification failed: {exc.message}",
                abstained=True,
            )

        try:
            doc_type = DocumentType(str(data.get("documentType", "unknown")).strip().lower())
        except ValueError:
            doc_type = DocumentType.UNKNOWN
        confidence = _coerce_confidence(data.get("confidence"))
        return Classification(
            document_type=doc_type,
            confidence=confidence,
            reasoning=str(data.get("reasoning") or "No reasoning provided"),
            abstained=confidence < self.confidence_threshold or doc_type is DocumentType.UNKNOWN,
        )

    async def extract_fields(self, text: str, document_type: DocumentType) -> FieldExtraction:
        expected = EXPECTED_FIELDS[document_type]
        if not expected:
            return FieldExtraction(fields={}, confidence=0.0, extracted_count=0)

        prompt = (
            "Extract the specified fields from this document. For missing fields, use null.\n\n"
            f"Document content:\n{text[:PROMPT_CHAR_LIMIT]}\n\n"
            f"Respond with JSON containing these fields: {', '.join(expected)}"
        )
        reply = await self.llm.generate(EXTRACT_SYSTEM[document_type], prompt)
        fields = parse_json_object(reply)
        extracted = count_extracted(fields)
        return FieldExtraction(
            fields=fields,
            confidence=extracted / len(expected),
            extracted_count=extracted,
        )

    async def negotiation_brief(
        self,
        checklist: list[ChecklistItem],
        fields: dict[str, Any],
        document_type: DocumentType,
    ) -> str:
        non_compliant = [i for i in checklist if i.status is ChecklistStatus.NON_COMPLIANT]
        review = [i for i in checklist if i.status is ChecklistStatus.NEEDS_REVIEW]
        prompt = (
            f"Generate a negotiation brief for a {document_type.value} document.\n\n"
            f"Non-compliant items: {len(non_compliant)}\n{_bullets(non_compliant)}\n\n"
            f"Items needing review: {len(review)}\n{_bullets(review)}\n\n"
            f"Key fields extracted:\n{json.dumps(fields, indent=2, default=str)}\n\n"
            "Generate brief:"
        )
        return (await self.llm.generate(BRIEF_SYSTEM, prompt)).strip()

    async def client_email(
        self,
        checklist: list[ChecklistItem],
        company_name: str = "valued partner",
    ) -> str:
        issues = [i for i in checklist if i.status is not ChecklistStatus.COMPLIANT]
        listing = "\n".join(f"- {i.requirement} ({i.rule_id}): {i.evidence}" for i in issues)
        prompt = (
            f"Generate a professional email to {company_name} addressing the following "
            f"compliance items:\n\n{listing}\n\n"
            "The email should:\n"
            "1. Thank them for their submission\n"
            "2. Clearly list what needs to be addressed\n"
            "3. Provide specific guidance\n"
            "4. Offer assistance\n"
            "5. Set expectations for next steps\n\n"
            "Generate email:"
        )
        return (await self.llm.generate(EMAIL_SYSTEM, prompt)).strip()
