import json

import pytest

from prompt_judge.errors import ExtractionFailure
from prompt_judge.structured_outputs import (
    InvalidPayload,
    ValidPayload,
    extract_json_object,
    validate_iteration_payload,
)


SAMPLE_OBJECT = {"score": 7, "nested": {"items": [1, 2, {"deep": "}"}]}, "note": "ok"}


def test_extract_parses_bare_json():
    assert extract_json_object(json.dumps(SAMPLE_OBJECT)) == SAMPLE_OBJECT


def test_extract_parses_json_fenced_block():
    output_text = "Here is my evaluation:\n```json\n" + json.dumps(SAMPLE_OBJECT, indent=2) + "\n```\nThanks!"
    assert extract_json_object(output_text) == SAMPLE_OBJECT


def test_extract_parses_untagged_fenced_block():
    output_text = "```\n" + json.dumps(SAMPLE_OBJECT) + "\n```"
    assert extract_json_object(output_text) == SAMPLE_OBJECT


def test_extract_parses_object_surrounded_by_prose():
    output_text = "Sure! " + json.dumps(SAMPLE_OBJECT) + " Let me know if you need more."
    assert extract_json_object(output_text) == SAMPLE_OBJECT


def test_extract_skips_unparseable_fence_and_falls_back_to_braces():
    output_text = "```python\nprint('hi')\n```\nResult: " + json.dumps(SAMPLE_OBJECT)
    assert extract_json_object(output_text) == SAMPLE_OBJECT


def test_extract_is_idempotent_on_reserialized_output():
    first = extract_json_object("prose " + json.dumps(SAMPLE_OBJECT) + " prose")
    assert extract_json_object(json.dumps(first)) == first


@pytest.mark.parametrize(
    "output_text",
    [
        "",
        "   ",
        "No JSON here at all.",
        "[1, 2, 3]",
        "{not: valid json}",
        "} backwards {",
    ],
)
def test_extract_raises_extraction_failure(output_text):
    with pytest.raises(ExtractionFailure):
        extract_json_object(output_text)


def test_extraction_failure_is_a_value_error():
    with pytest.raises(ValueError):
        extract_json_object("nothing")


def test_validate_accepts_full_payload(payload_factory):
    check = validate_iteration_payload(payload_factory(overall_score=64))
    assert isinstance(check, ValidPayload)
    assert check.payload.quantitative.overall_score == 64
    assert check.payload.language_analysis.filler_words.percentage == 2.5


def test_validate_defaults_missing_language_details(payload_factory):
    payload = payload_factory()
    payload["languageAnalysis"] = {}
    check = validate_iteration_payload(payload)
    assert isinstance(check, ValidPayload)
    assert check.payload.language_analysis.sentence_starters.variety_score == 0.0


@pytest.mark.parametrize("missing_key", ["quantitative", "languageAnalysis"])
def test_validate_rejects_missing_sub_object(payload_factory, missing_key):
    payload = payload_factory()
    del payload[missing_key]
    check = validate_iteration_payload(payload)
    assert isinstance(check, InvalidPayload)
    assert "Field required" in check.reason


def test_validate_rejects_non_numeric_score(payload_factory):
    payload = payload_factory()
    payload["quantitative"]["overallScore"] = "excellent"
    assert isinstance(validate_iteration_payload(payload), InvalidPayload)


def test_validate_rejects_nan_score(payload_factory):
    payload = json.loads(json.dumps(payload_factory()).replace('"overallScore": 80', '"overallScore": NaN'))
    assert isinstance(validate_iteration_payload(payload), InvalidPayload)


def test_validate_wraps_scalar_language_details(payload_factory):
    payload = payload_factory(overall_score=91)
    payload["languageAnalysis"]["fillerWords"]["instances"] = "so, like"
    payload["languageAnalysis"]["fillerWords"]["count"] = "two"
    payload["languageAnalysis"]["sentenceStarters"]["mostUsed"] = "Our"
    payload["languageAnalysis"]["weakWords"]["citation"] = None
    payload["quantitative"]["communicationJustification"] = 8

    check = validate_iteration_payload(payload)

    assert isinstance(check, ValidPayload)
    assert check.payload.quantitative.overall_score == 91
    assert check.payload.quantitative.communication_justification == "8"
    assert check.payload.language_analysis.filler_words.instances == ["so, like"]
    assert check.payload.language_analysis.filler_words.percentage == 2.5
    assert check.payload.language_analysis.sentence_starters.most_used == ["Our"]
    assert check.payload.language_analysis.weak_words.citation == []


def test_validate_still_rejects_non_numeric_tracked_detail(payload_factory):
    payload = payload_factory()
    payload["languageAnalysis"]["sentenceStarters"]["varietyScore"] = "high"
    assert isinstance(validate_iteration_payload(payload), InvalidPayload)
