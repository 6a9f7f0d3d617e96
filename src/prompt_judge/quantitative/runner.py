import asyncio
import logging
from typing import Any, Awaitable, Callable, Protocol

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_exponential, wait_random

from ..config import RetryPolicy
from ..errors import ExtractionFailure, is_rate_limit_error
from ..schema import IterationResult
from ..structured_outputs import InvalidPayload, extract_json_object, validate_iteration_payload


logger = logging.getLogger(__name__)

SleepFunction = Callable[[float], Awaitable[Any]]


class CompletionClient(Protocol):
    async def complete(
        self,
        *,
        model: str,
        system_prompt: str,
        user_prompt: str,
        temperature: float = ...,
    ) -> str: ...


def build_iteration_result(iteration: int, output_text: str) -> IterationResult:
    try:
        parsed = extract_json_object(output_text)
    except ExtractionFailure as extraction_failure:
        logger.warning("Iteration %d: %s Using placeholder.", iteration + 1, extraction_failure)
        return IterationResult.placeholder(iteration, error=f"Unparseable model output: {extraction_failure}")

    check = validate_iteration_payload(parsed)
    if isinstance(check, InvalidPayload):
        logger.warning("Iteration %d: output failed shape check (%s). Using placeholder.", iteration + 1, check.reason)
        return IterationResult.placeholder(iteration, error=f"Unexpected output shape: {check.reason}")

    return IterationResult.from_payload(iteration, check.payload)


class IterationRunner:
    """
    Runs single quantitative iterations against one prompt pair.

    Rate-limit errors are retried with exponential backoff plus jitter:
    `base * 2**retry + uniform(0, jitter)` seconds, at most `max_retries` times.
    Any other failure, or malformed output, resolves to a placeholder so one
    bad iteration never sinks the batch.
    """

    def __init__(
        self,
        *,
        client: CompletionClient,
        system_prompt: str,
        user_prompt: str,
        model: str,
        temperature: float,
        retry_policy: RetryPolicy,
        sleep: SleepFunction = asyncio.sleep,
    ) -> None:
        self.client = client
        self.system_prompt = system_prompt
        self.user_prompt = user_prompt
        self.model = model
        self.temperature = temperature
        self.retry_policy = retry_policy
        self._sleep = sleep

    def _build_retrying(self, iteration: int) -> AsyncRetrying:
        def log_retry(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
            logger.info(
                "Iteration %d rate limited on attempt %d (%s); retrying in %.2fs.",
                iteration + 1,
                retry_state.attempt_number,
                error,
                delay,
            )

        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(self.retry_policy.max_retries + 1),
            wait=(
                wait_exponential(multiplier=self.retry_policy.base_delay_seconds, exp_base=2)
                + wait_random(0, self.retry_policy.max_jitter_seconds)
            ),
            retry=retry_if_exception(is_rate_limit_error),
            sleep=self._sleep,
            before_sleep=log_retry,
        )

    async def _complete(self) -> str:
        return await self.client.complete(
            model=self.model,
            system_prompt=self.system_prompt,
            user_prompt=self.user_prompt,
            temperature=self.temperature,
        )

    async def run(self, iteration: int) -> IterationResult:
        try:
            output_text = await self._build_retrying(iteration)(self._complete)
        except Exception as error:
            logger.warning(
                "Iteration %d failed (%s): %s. Using placeholder.",
                iteration + 1,
                type(error).__name__,
                error,
            )
            return IterationResult.placeholder(iteration, error=str(error) or type(error).__name__)
        return build_iteration_result(iteration, output_text)
