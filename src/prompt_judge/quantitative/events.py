import json
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, Optional, Union

from ..schema import EvaluationResults


DONE_SENTINEL = "[DONE]"
SSE_DATA_PREFIX = "data: "


@dataclass(frozen=True)
class ProgressEvent:
    completed: int
    total: int
    batch_index: int
    total_batches: int
    error: Optional[str] = None

    @property
    def progress(self) -> int:
        # Half-up rounding, so 12.5% reports as 13.
        return int(math.floor(self.completed / self.total * 100 + 0.5))

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "progress": self.progress,
            "completed": self.completed,
            "total": self.total,
            "batchIndex": self.batch_index,
            "totalBatches": self.total_batches,
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(frozen=True)
class FinalEvent:
    results: EvaluationResults

    def to_payload(self) -> Dict[str, Any]:
        return {"results": self.results.model_dump(mode="json", by_alias=True, exclude_none=True)}


@dataclass(frozen=True)
class DoneEvent:
    pass


StreamEvent = Union[ProgressEvent, FinalEvent, DoneEvent]


def encode_sse(event: StreamEvent) -> str:
    if isinstance(event, DoneEvent):
        data = DONE_SENTINEL
    else:
        data = json.dumps(event.to_payload(), ensure_ascii=False)
    return f"{SSE_DATA_PREFIX}{data}\n\n"


def iter_sse_payloads(lines: Iterable[str]) -> Iterator[Union[Dict[str, Any], str]]:
    """
    Decode a `text/event-stream` body back into payloads.

    Yields each JSON payload as a dict and the terminating sentinel as the
    string "[DONE]". Blank lines and non-data fields are skipped.
    """
    for raw_line in lines:
        line = raw_line.rstrip("\r\n")
        if not line.startswith(SSE_DATA_PREFIX):
            continue
        data = line[len(SSE_DATA_PREFIX) :]
        if data == DONE_SENTINEL:
            yield DONE_SENTINEL
            return
        yield json.loads(data)
