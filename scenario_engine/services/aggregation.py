"""
Reduce a trial set into distribution statistics.

Percentiles use the nearest-rank rule sorted[min(floor(p/100 * n), n - 1)],
not interpolation, so downstream consumers see the exact same numbers as the
dashboard always has. Every reduction here is order independent.
"""

import logging
import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

from scenario_engine.config import HISTOGRAM_BUCKETS
from scenario_engine.results import (
    ConfidenceBand,
    DistributionStats,
    HistogramBucket,
    MonteCarloResult,
    PercentileSet,
    SensitivityFactor,
    SingleSimulationResult,
)
from scenario_engine.schemas import BaselineConfig


LOGGER = logging.getLogger(__name__)

PERCENTILE_LEVELS = (5, 10, 25, 50, 75, 90, 95)
BAND_LEVELS = (10, 25, 50, 75, 90)


class MissingSimulationError(Exception):
    """No simulation data is available to aggregate or profile."""


class EmptyTrialSetError(MissingSimulationError):
    """The trial set is empty (zero iterations, or nothing was produced)."""


def _sorted_array(values: Sequence[float]) -> np.ndarray:
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        raise EmptyTrialSetError("cannot summarise an empty sample")
    return np.sort(arr, kind="stable")


def _rank_index(p: float, n: int) -> int:
    return min(int(math.floor(p / 100.0 * n)), n - 1)


def nearest_rank(sorted_values: np.ndarray, p: float) -> float:
    return float(sorted_values[_rank_index(p, sorted_values.shape[0])])


def distribution_stats(values: Sequence[float]) -> DistributionStats:
    s = _sorted_array(values)
    n = s.shape[0]
    mean = float(np.mean(s))
    std = float(np.sqrt(np.mean((s - mean) ** 2)))
    if n % 2 == 0:
        median = float((s[n // 2 - 1] + s[n // 2]) / 2.0)
    else:
        median = float(s[n // 2])
    denom = std or 1.0
    skewness = float(np.mean(((s - mean) / denom) ** 3))
    return DistributionStats(
        mean=mean,
        median=median,
        std_dev=std,
        min=float(s[0]),
        max=float(s[-1]),
        skewness=skewness,
    )


def percentile_set(values: Sequence[float]) -> PercentileSet:
    s = _sorted_array(values)
    p5, p10, p25, p50, p75, p90, p95 = (nearest_rank(s, p) for p in PERCENTILE_LEVELS)
    return PercentileSet(p5=p5, p10=p10, p25=p25, p50=p50, p75=p75, p90=p90, p95=p95)


def histogram(values: Sequence[float], bucket_count: int = HISTOGRAM_BUCKETS) -> List[HistogramBucket]:
    """Equal-width buckets over [min, max]; counts always sum to len(values).

    The sample maximum lands in the last bucket. A constant sample has zero
    width and lands entirely in the first bucket.
    """
    arr = np.asarray(values, dtype=float)
    n = arr.size
    if n == 0:
        raise EmptyTrialSetError("cannot bucket an empty sample")
    if bucket_count < 1:
        raise ValueError("bucket_count must be >= 1")

    lo = float(arr.min())
    hi = float(arr.max())
    width = (hi - lo) / bucket_count
    if width > 0:
        idx = np.floor((arr - lo) / width).astype(np.int64)
        idx = np.clip(idx, 0, bucket_count - 1)
    else:
        idx = np.zeros(n, dtype=np.int64)
    counts = np.bincount(idx, minlength=bucket_count)

    buckets = []
    for i in range(bucket_count):
        c = int(counts[i])
        buckets.append(
            HistogramBucket(
                min=lo + i * width,
                max=lo + (i + 1) * width,
                count=c,
                frequency=c / n,
            )
        )
    return buckets


def confidence_bands(trials: Sequence[SingleSimulationResult], horizon: int) -> List[ConfidenceBand]:
    """Per-month ARR spread over the trials whose series reaches that month.

    Trials that failed earlier drop out of later months, so late bands describe
    a shrinking, survivor-biased population. Months with no data are skipped.
    """
    per_month: List[List[float]] = [[] for _ in range(horizon)]
    for t in trials:
        if not t.monthly_snapshots:
            continue
        for snap in t.monthly_snapshots[:horizon]:
            per_month[snap.month - 1].append(snap.arr)

    bands = []
    for m, values in enumerate(per_month, start=1):
        if not values:
            continue
        s = np.sort(np.asarray(values, dtype=float), kind="stable")
        p10, p25, p50, p75, p90 = (nearest_rank(s, p) for p in BAND_LEVELS)
        bands.append(ConfidenceBand(month=m, p10=p10, p25=p25, p50=p50, p75=p75, p90=p90))
    return bands


def survival_curve(trials: Sequence[SingleSimulationResult], horizon: int) -> List[float]:
    n = len(trials)
    months = np.asarray([t.survival_months for t in trials], dtype=np.int64)
    return [float(np.count_nonzero(months >= m)) / n for m in range(1, horizon + 1)]


def select_cases(
    trials: Sequence[SingleSimulationResult],
) -> Tuple[SingleSimulationResult, SingleSimulationResult, SingleSimulationResult]:
    """(worst, median, best) real trials at the P5 / P50 / P95 rank of final ARR."""
    n = len(trials)
    ranked = sorted(trials, key=lambda t: t.final_arr)
    return (
        ranked[_rank_index(5, n)],
        ranked[_rank_index(50, n)],
        ranked[_rank_index(95, n)],
    )


def aggregate_results(
    trials: Sequence[SingleSimulationResult],
    baseline: BaselineConfig,
    seed: int,
    sensitivity_factors: Optional[Sequence[SensitivityFactor]] = None,
    execution_time_ms: float = 0.0,
) -> MonteCarloResult:
    """Build the MonteCarloResult for a finished trial set.

    Raises EmptyTrialSetError when there is nothing to aggregate; the engine
    boundary turns that into a SimulationNotComputed sentinel.
    """
    n = len(trials)
    if n == 0:
        raise EmptyTrialSetError("trial set is empty; nothing to aggregate")

    horizon = baseline.horizon_months
    survivors = sum(1 for t in trials if t.survived)

    final_arr = [t.final_arr for t in trials]
    final_cash = [t.final_cash for t in trials]
    final_runway = [t.final_runway for t in trials]
    months = [t.survival_months for t in trials]

    worst, median, best = select_cases(trials)

    LOGGER.debug("Aggregating %d trials over %d months", n, horizon)

    return MonteCarloResult(
        iterations=n,
        horizon_months=horizon,
        seed=seed,
        execution_time_ms=execution_time_ms,
        survival_rate=survivors / n,
        survival_by_month=tuple(survival_curve(trials, horizon)),
        median_survival_months=percentile_set(months).p50,
        arr_distribution=distribution_stats(final_arr),
        arr_histogram=tuple(histogram(final_arr, HISTOGRAM_BUCKETS)),
        arr_percentiles=percentile_set(final_arr),
        arr_confidence_bands=tuple(confidence_bands(trials, horizon)),
        cash_distribution=distribution_stats(final_cash),
        cash_percentiles=percentile_set(final_cash),
        runway_distribution=distribution_stats(final_runway),
        runway_percentiles=percentile_set(final_runway),
        best_case=best,
        median_case=median,
        worst_case=worst,
        sensitivity_factors=tuple(sensitivity_factors or ()),
        all_simulations=tuple(trials),
    )
