import logging

from pydantic import ValidationError

from .config import JudgeConfig
from .errors import ExtractionFailure
from .llm_client import ChatModelClient
from .prompt_templates import PROMPTS_DIR, load_prompt_text, render_prompt
from .schema import QualitativeEvaluation
from .structured_outputs import extract_json_object


logger = logging.getLogger(__name__)

SYSTEM_PROMPT_FILE = "qualitative_system.txt"
USER_PROMPT_TEMPLATE = "qualitative_user.j2"
UNPARSEABLE_NOTE = "Unable to parse evaluation response"
FALLBACK_SCORE = 5


def fallback_evaluation(raw_output_text: str) -> QualitativeEvaluation:
    return QualitativeEvaluation(
        output_quality=UNPARSEABLE_NOTE,
        objective_fulfillment=UNPARSEABLE_NOTE,
        hallucination_check=UNPARSEABLE_NOTE,
        reflection=raw_output_text,
        overall_score=FALLBACK_SCORE,
        recommendations=["Please try again with a different prompt"],
    )


def parse_qualitative_output(raw_output_text: str) -> QualitativeEvaluation:
    try:
        parsed = extract_json_object(raw_output_text)
        return QualitativeEvaluation.model_validate(parsed)
    except (ExtractionFailure, ValidationError) as parse_error:
        logger.warning("Qualitative evaluation output could not be parsed: %s", parse_error)
        return fallback_evaluation(raw_output_text)


async def evaluate_prompts(
    *,
    client: ChatModelClient,
    config: JudgeConfig,
    system_prompt: str,
    original_prompt: str,
    llm_output: str,
) -> QualitativeEvaluation:
    """
    Critique a system/user prompt pair given the output it produced.

    Single request, no retries: a parse failure yields the fixed fallback
    evaluation rather than an error.
    """
    user_prompt = render_prompt(
        USER_PROMPT_TEMPLATE,
        {
            "system_prompt": system_prompt,
            "original_prompt": original_prompt,
            "llm_output": llm_output,
        },
    )
    raw_output_text = await client.complete(
        model=config.qualitative_model,
        system_prompt=load_prompt_text(PROMPTS_DIR / SYSTEM_PROMPT_FILE),
        user_prompt=user_prompt,
        temperature=config.qualitative_temperature,
        response_format={"type": "json_object"},
    )
    return parse_qualitative_output(raw_output_text)
