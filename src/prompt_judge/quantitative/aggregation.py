from typing import Callable, Dict, List, Sequence

import pandas as pd

from ..schema import EvaluationResults, IterationResult
from ..statistics import compute_summary


MetricGetter = Callable[[IterationResult], float]

TRACKED_METRICS: Dict[str, MetricGetter] = {
    "communicationScore": lambda result: result.quantitative.communication_score,
    "persuasivenessScore": lambda result: result.quantitative.persuasiveness_score,
    "professionalismScore": lambda result: result.quantitative.professionalism_score,
    "callObjectiveScore": lambda result: result.quantitative.call_objective_score,
    "languageQualityScore": lambda result: result.quantitative.language_quality_score,
    "overallScore": lambda result: result.quantitative.overall_score,
    "fillerWordsPercentage": lambda result: result.language_analysis.filler_words.percentage,
    "weakWordsPercentage": lambda result: result.language_analysis.weak_words.percentage,
    "varietyScore": lambda result: result.language_analysis.sentence_starters.variety_score,
}


def build_metric_frame(results: Sequence[IterationResult]) -> pd.DataFrame:
    rows: List[Dict[str, float]] = []
    for result in results:
        rows.append({metric_name: float(getter(result)) for metric_name, getter in TRACKED_METRICS.items()})
    return pd.DataFrame(rows, columns=list(TRACKED_METRICS))


def aggregate_results(results: Sequence[IterationResult], iteration_count: int) -> EvaluationResults:
    if len(results) != iteration_count:
        raise ValueError(f"Expected {iteration_count} iteration results, got {len(results)}.")

    ordered_results = sorted(results, key=lambda result: result.iteration)
    metric_frame = build_metric_frame(ordered_results)
    statistics = {metric_name: compute_summary(metric_frame[metric_name]) for metric_name in TRACKED_METRICS}

    return EvaluationResults(
        iterations=iteration_count,
        raw_results=ordered_results,
        statistics=statistics,
        placeholder_count=sum(1 for result in ordered_results if result.is_placeholder),
    )
