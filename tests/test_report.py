import json

import jsonschema
import pytest

from conftest import FLAG_VERDICT, PASS_VERDICT
from tgmoderator.classifier import ClassifierError
from tgmoderator.report import (
    AssessmentOutcome,
    REPORT_SCHEMA,
    MalformedVerdict,
    SuggestedAction,
    parse_report,
    strip_code_fence,
)


def _verdict(**overrides):
    payload = json.loads(FLAG_VERDICT)
    payload.update(overrides)
    return json.dumps(payload)


def test_parse_pass():
    report = parse_report(PASS_VERDICT)

    assert report.outcome is AssessmentOutcome.PASS
    assert not report.flagged
    assert report.suggested_action is SuggestedAction.NO_ACTION
    assert report.primary_reason is None


def test_parse_flag():
    report = parse_report(FLAG_VERDICT)

    assert report.flagged
    assert report.primary_reason == "Scam"
    assert report.detailed_reasoning.startswith("- promises")
    assert report.confidence_score == 90
    assert report.violated_policies == ["x"]


@pytest.mark.parametrize(
    "wrapped",
    [
        f"```json\n{FLAG_VERDICT}\n```",
        f"```\n{FLAG_VERDICT}\n```",
        f"  {FLAG_VERDICT}\n",
    ],
)
def test_code_fences_and_whitespace_are_ignored(wrapped):
    assert parse_report(wrapped).flagged


def test_strip_code_fence_leaves_plain_text():
    assert strip_code_fence('{"a": 1}') == '{"a": 1}'


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "I think this is spam",
        FLAG_VERDICT[:-10],
        "[]",
        json.dumps({"assessmentOutcome": "FLAG"}),
    ],
)
def test_garbage_is_malformed(raw):
    with pytest.raises(MalformedVerdict):
        parse_report(raw)


@pytest.mark.parametrize(
    "overrides",
    [
        {"assessmentOutcome": "MAYBE"},
        {"suggestedAction": "DELETE"},
        {"confidenceScore": 101},
        {"confidenceScore": -1},
        {"confidenceScore": 55.5},
        {"confidenceScore": True},
        {"violatedPolicies": "x"},
        {"primaryReason": None},
        {"detailedReasoning": "   "},
        {"primaryReason": 5},
    ],
)
def test_schema_violations_are_malformed(overrides):
    with pytest.raises(MalformedVerdict):
        parse_report(_verdict(**overrides))


def test_malformed_verdict_keeps_raw_text_and_is_a_classifier_error():
    with pytest.raises(ClassifierError) as excinfo:
        parse_report("nope")

    assert isinstance(excinfo.value, MalformedVerdict)
    assert excinfo.value.raw == "nope"


def test_pass_without_reason_is_fine():
    report = parse_report(_verdict(assessmentOutcome="PASS", primaryReason=None, detailedReasoning=None))

    assert not report.flagged


def test_flag_without_reason_names_the_missing_field():
    payload = json.loads(FLAG_VERDICT)
    del payload["primaryReason"]

    with pytest.raises(MalformedVerdict, match="primaryReason"):
        parse_report(json.dumps(payload))


def test_integral_float_confidence_is_accepted():
    assert parse_report(_verdict(confidenceScore=70.0)).confidence_score == 70


def test_report_schema_accepts_both_outcomes():
    jsonschema.validate(instance=json.loads(PASS_VERDICT), schema=REPORT_SCHEMA)
    jsonschema.validate(instance=json.loads(FLAG_VERDICT), schema=REPORT_SCHEMA)
