import asyncio
import logging
import math
from typing import AsyncIterator, Callable, Dict, List, Optional

from ..config import JudgeConfig
from ..schema import EvaluationRequest, EvaluationResults, IterationResult
from .aggregation import aggregate_results
from .events import DoneEvent, FinalEvent, ProgressEvent, StreamEvent
from .runner import CompletionClient, IterationRunner, SleepFunction


logger = logging.getLogger(__name__)


def clamp_batch_size(batch_size: int, max_batch_size: int) -> int:
    return min(max(batch_size, 1), max_batch_size)


def plan_batches(iteration_count: int, batch_size: int) -> List[range]:
    if iteration_count < 1:
        raise ValueError("iteration_count must be >= 1.")
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1.")
    total_batches = math.ceil(iteration_count / batch_size)
    return [
        range(batch_number * batch_size, min((batch_number + 1) * batch_size, iteration_count))
        for batch_number in range(total_batches)
    ]


class BatchScheduler:
    """
    Drives a quantitative run: batches of concurrent iterations, one progress
    event per settled iteration, then the aggregated results.

    A batch only starts once every iteration of the previous batch has settled,
    and a fixed pause separates consecutive batches.
    """

    def __init__(
        self,
        *,
        client: CompletionClient,
        config: JudgeConfig,
        sleep: SleepFunction = asyncio.sleep,
    ) -> None:
        self.client = client
        self.config = config
        self._sleep = sleep

    def validate_request(self, request: EvaluationRequest) -> None:
        if request.iteration_count > self.config.max_iterations:
            raise ValueError(
                f"iterationCount must be between 1 and {self.config.max_iterations}, got {request.iteration_count}."
            )

    def build_runner(self, request: EvaluationRequest) -> IterationRunner:
        return IterationRunner(
            client=self.client,
            system_prompt=request.system_prompt,
            user_prompt=request.user_prompt,
            model=request.model_id or self.config.default_model,
            temperature=self.config.generation_temperature,
            retry_policy=self.config.retry,
            sleep=self._sleep,
        )

    @staticmethod
    def _settled_result(task: "asyncio.Task[IterationResult]", iteration: int) -> IterationResult:
        if task.cancelled():
            logger.warning("Iteration %d was cancelled before settling.", iteration + 1)
            return IterationResult.placeholder(iteration, error="Iteration cancelled")
        error = task.exception()
        if error is not None:
            logger.error("Iteration %d raised unexpectedly: %r", iteration + 1, error)
            return IterationResult.placeholder(iteration, error=str(error) or type(error).__name__)
        return task.result()

    async def stream(self, request: EvaluationRequest) -> AsyncIterator[StreamEvent]:
        self.validate_request(request)

        runner = self.build_runner(request)
        batch_size = clamp_batch_size(request.batch_size, self.config.max_batch_size)
        batches = plan_batches(request.iteration_count, batch_size)
        total_batches = len(batches)
        logger.info(
            "Starting quantitative run: %d iterations in %d batches of up to %d (model=%s).",
            request.iteration_count,
            total_batches,
            batch_size,
            runner.model,
        )

        results: List[IterationResult] = []
        completed = 0

        for batch_number, batch in enumerate(batches, start=1):
            tasks: Dict["asyncio.Task[IterationResult]", int] = {
                asyncio.ensure_future(runner.run(iteration)): iteration for iteration in batch
            }
            pending = set(tasks)
            resolved: set[int] = set()
            try:
                while pending:
                    done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                    for task in sorted(done, key=tasks.__getitem__):
                        result = self._settled_result(task, tasks[task])
                        results.append(result)
                        resolved.add(tasks[task])
                        completed += 1
                        yield ProgressEvent(
                            completed=completed,
                            total=request.iteration_count,
                            batch_index=batch_number,
                            total_batches=total_batches,
                            error=result.error if result.is_placeholder else None,
                        )
            except Exception:
                logger.exception(
                    "Batch %d of %d failed; filling unresolved iterations with placeholders.",
                    batch_number,
                    total_batches,
                )
                batch_error = f"Batch {batch_number} failed"
                for iteration in batch:
                    if iteration in resolved:
                        continue
                    results.append(IterationResult.placeholder(iteration, error=batch_error))
                    resolved.add(iteration)
                    completed += 1
                    yield ProgressEvent(
                        completed=completed,
                        total=request.iteration_count,
                        batch_index=batch_number,
                        total_batches=total_batches,
                        error=batch_error,
                    )
            finally:
                for task in pending:
                    if not task.done():
                        task.cancel()

            if batch_number < total_batches:
                await self._sleep(self.config.inter_batch_delay_seconds)

        evaluation_results = aggregate_results(results, request.iteration_count)
        logger.info(
            "Quantitative run finished: %d iterations, %d placeholders.",
            evaluation_results.iterations,
            evaluation_results.placeholder_count,
        )
        yield FinalEvent(results=evaluation_results)
        yield DoneEvent()

    async def run(
        self,
        request: EvaluationRequest,
        on_progress: Optional[Callable[[ProgressEvent], None]] = None,
    ) -> Optional[EvaluationResults]:
        """Consume the stream and return the final EvaluationResults."""
        final_results = None
        async for event in self.stream(request):
            if isinstance(event, ProgressEvent) and on_progress is not None:
                on_progress(event)
            elif isinstance(event, FinalEvent):
                final_results = event.results
        return final_results
