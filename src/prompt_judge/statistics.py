import math
from typing import Iterable

import pandas as pd

from .schema import StatisticalSummary


def compute_summary(values: Iterable[float]) -> StatisticalSummary:
    """
    Descriptive statistics over one metric's samples.

    Variance and standard deviation are population figures (divide by N).
    Mode lists every value tied at the highest frequency in ascending order,
    so a sample with no repeats returns all of its values.
    """
    samples = pd.Series(list(values), dtype="float64")
    if samples.empty:
        raise ValueError("Cannot summarize an empty sample; at least one value is required.")
    if samples.isna().any():
        raise ValueError("Samples must not contain NaN values.")

    variance = float(samples.var(ddof=0))
    minimum = float(samples.min())
    maximum = float(samples.max())

    return StatisticalSummary(
        mean=float(samples.mean()),
        median=float(samples.median()),
        mode=[float(value) for value in samples.mode().tolist()],
        standard_deviation=math.sqrt(variance),
        variance=variance,
        min=minimum,
        max=maximum,
        range=maximum - minimum,
    )
