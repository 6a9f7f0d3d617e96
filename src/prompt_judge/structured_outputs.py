import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Union

from pydantic import ValidationError

from .errors import ExtractionFailure
from .schema import IterationPayload


FENCED_BLOCK_PATTERN = re.compile(r"```(?:json)?[ \t]*\n?(.*?)```", re.DOTALL | re.IGNORECASE)


def _loads_object(candidate_text: str) -> Dict[str, Any] | None:
    try:
        parsed = json.loads(candidate_text)
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, dict):
        return None
    return parsed


def extract_json_object(output_text: str) -> Dict[str, Any]:
    """
    Recover the JSON object a model was asked to return.

    Tried in order, first success wins: the whole text, the interior of a
    fenced code block (optionally tagged ``json``), and the span from the first
    ``{`` to the last ``}``. Raises ExtractionFailure when none parse to an object.
    """
    stripped_text = (output_text or "").strip()
    if not stripped_text:
        raise ExtractionFailure("Model output was empty; expected a JSON object.")

    parsed = _loads_object(stripped_text)
    if parsed is not None:
        return parsed

    for match in FENCED_BLOCK_PATTERN.finditer(stripped_text):
        parsed = _loads_object(match.group(1).strip())
        if parsed is not None:
            return parsed

    object_start = stripped_text.find("{")
    object_end = stripped_text.rfind("}")
    if object_start != -1 and object_end > object_start:
        parsed = _loads_object(stripped_text[object_start : object_end + 1])
        if parsed is not None:
            return parsed

    raise ExtractionFailure("Could not find a JSON object in model output.")


@dataclass(frozen=True)
class ValidPayload:
    payload: IterationPayload


@dataclass(frozen=True)
class InvalidPayload:
    reason: str


PayloadCheck = Union[ValidPayload, InvalidPayload]


def _describe_validation_error(validation_error: ValidationError) -> str:
    problems = []
    for error in validation_error.errors()[:3]:
        location = ".".join(str(part) for part in error["loc"]) or "<root>"
        problems.append(f"{location}: {error['msg']}")
    return "; ".join(problems)


def validate_iteration_payload(parsed: Dict[str, Any]) -> PayloadCheck:
    try:
        payload = IterationPayload.model_validate(parsed)
    except ValidationError as validation_error:
        return InvalidPayload(reason=_describe_validation_error(validation_error))
    return ValidPayload(payload=payload)
