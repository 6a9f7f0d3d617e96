from .config import JudgeConfig, RetryPolicy, load_config
from .llm_client import ChatModelClient, build_model_client
from .quantitative import BatchScheduler
from .schema import EvaluationRequest, EvaluationResults, IterationResult, StatisticalSummary

__all__ = [
    "BatchScheduler",
    "ChatModelClient",
    "EvaluationRequest",
    "EvaluationResults",
    "IterationResult",
    "JudgeConfig",
    "RetryPolicy",
    "StatisticalSummary",
    "build_model_client",
    "load_config",
]
