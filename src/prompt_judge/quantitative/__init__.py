from .aggregation import TRACKED_METRICS, aggregate_results
from .events import DoneEvent, FinalEvent, ProgressEvent, StreamEvent, encode_sse
from .runner import IterationRunner
from .scheduler import BatchScheduler, plan_batches

__all__ = [
    "TRACKED_METRICS",
    "BatchScheduler",
    "DoneEvent",
    "FinalEvent",
    "IterationRunner",
    "ProgressEvent",
    "StreamEvent",
    "aggregate_results",
    "encode_sse",
    "plan_batches",
]
