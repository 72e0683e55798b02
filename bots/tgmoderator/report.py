"""Structured verdict returned by the message classifier."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import jsonschema
from jsonschema import ValidationError

from .classifier import ClassifierError


class MalformedVerdict(ClassifierError):
    """The classifier answered, but not with a valid analysis report."""

    def __init__(self, message: str, raw: str) -> None:
        super().__init__(f"{message}. Raw: {raw!r}")
        self.raw = raw


class AssessmentOutcome(str, Enum):
    FLAG = "FLAG"
    PASS = "PASS"


class SuggestedAction(str, Enum):
    ADMIN_REVIEW_URGENT = "ADMIN_REVIEW_URGENT"
    ADMIN_REVIEW_NORMAL = "ADMIN_REVIEW_NORMAL"
    LOG_ONLY = "LOG_ONLY"
    NO_ACTION = "NO_ACTION"


@dataclass(slots=True)
class AnalysisReport:
    outcome: AssessmentOutcome
    confidence_score: int
    suggested_action: SuggestedAction
    violated_policies: list[str] = field(default_factory=list)
    primary_reason: str | None = None
    detailed_reasoning: str | None = None

    @property
    def flagged(self) -> bool:
        return self.outcome is AssessmentOutcome.FLAG


def strip_code_fence(text: str) -> str:
    """Remove a ```json ... ``` wrapper models like to add around JSON."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned[3:]
        if cleaned[:4].lower() == "json":
            cleaned = cleaned[4:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


# FLAG verdicts must explain themselves; PASS verdicts may leave the reasons null.
REPORT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["assessmentOutcome", "violatedPolicies", "confidenceScore", "suggestedAction"],
    "properties": {
        "assessmentOutcome": {"enum": [outcome.value for outcome in AssessmentOutcome]},
        "primaryReason": {"type": ["string", "null"]},
        "detailedReasoning": {"type": ["string", "null"]},
        "violatedPolicies": {"type": "array", "items": {"type": "string"}},
        "confidenceScore": {"type": "integer", "minimum": 0, "maximum": 100},
        "suggestedAction": {"enum": [action.value for action in SuggestedAction]},
    },
    "if": {
        "required": ["assessmentOutcome"],
        "properties": {"assessmentOutcome": {"const": AssessmentOutcome.FLAG.value}},
    },
    "then": {
        "required": ["primaryReason", "detailedReasoning"],
        "properties": {
            "primaryReason": {"type": "string", "pattern": r"\S"},
            "detailedReasoning": {"type": "string", "pattern": r"\S"},
        },
    },
}


def _optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def parse_report(raw: str) -> AnalysisReport:
    """Parse the classifier's raw answer into an AnalysisReport.

    Anything that does not match REPORT_SCHEMA raises MalformedVerdict; it is
    never treated as a pass.
    """

    try:
        payload = json.loads(strip_code_fence(raw))
    except json.JSONDecodeError as exc:
        raise MalformedVerdict(f"invalid JSON ({exc.msg})", raw) from exc
    if not isinstance(payload, dict):
        raise MalformedVerdict("verdict is not a JSON object", raw)

    try:
        jsonschema.validate(instance=payload, schema=REPORT_SCHEMA)
    except ValidationError as exc:
        raise MalformedVerdict(exc.message, raw) from exc

    return AnalysisReport(
        outcome=AssessmentOutcome(payload["assessmentOutcome"]),
        confidence_score=int(payload["confidenceScore"]),
        suggested_action=SuggestedAction(payload["suggestedAction"]),
        violated_policies=list(payload["violatedPolicies"]),
        primary_reason=_optional_text(payload.get("primaryReason")),
        detailed_reasoning=_optional_text(payload.get("detailedReasoning")),
    )
