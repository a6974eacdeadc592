"""
Structural shock engine and composite risk index.

sigma = 0 leaves the levers untouched, sigma = 1 is a moderate stress
(+0.20 volatility, -0.16 demand, +0.13 funding pressure, +0.08 execution risk)
and sigma = 2 and 3 scale it linearly. Baseline and shocked batches share the
seed of the unshocked configuration, so the comparison is on common random
numbers.
"""

import logging
from dataclasses import replace
from typing import List, Optional, Sequence

from scenario_engine.config import RISK_INDEX_BANDS, SENSITIVITY_RUNS
from scenario_engine.results import (
    RiskIndexComponents,
    RiskIndexResult,
    ShockedBatchResult,
    SingleSimulationResult,
    StressTestResult,
    TransmissionNode,
)
from scenario_engine.schemas import BaselineConfig, LeverState
from scenario_engine.services.aggregation import percentile_set
from scenario_engine.services.risk import classify_survival
from scenario_engine.services.seeding import derive_seed
from scenario_engine.services.trials import run_batch
from scenario_engine.utils.numbers import clamp, clamp01, safe_ratio


LOGGER = logging.getLogger(__name__)


def apply_shock_to_levers(levers: LeverState, sigma: float) -> LeverState:
    return levers.model_copy(update={
        "market_volatility": clamp01(levers.market_volatility + sigma * 0.20),
        "demand_strength": clamp01(levers.demand_strength - sigma * 0.16),
        "funding_pressure": clamp01(levers.funding_pressure + sigma * 0.13),
        "execution_risk": clamp01(levers.execution_risk + sigma * 0.08),
    })


def _summarise(trials: Sequence[SingleSimulationResult], horizon: int) -> ShockedBatchResult:
    n = len(trials)
    mid = n // 2
    survival_rate = sum(1 for t in trials if t.survived) / n

    arrs = sorted(t.final_arr for t in trials)
    runways = sorted(t.final_runway for t in trials)
    burns = sorted(t.monthly_snapshots[-1].burn if t.monthly_snapshots else 0.0 for t in trials)

    # Implied monthly revenue decline: mean of the negative growth months, in %
    negative = [s.growth_rate for t in trials for s in (t.monthly_snapshots or ()) if s.growth_rate < 0]
    churn_rate = abs(sum(negative) / len(negative)) * 100.0 if negative else 0.0

    survival_by_month = tuple(
        sum(1 for t in trials if t.survival_months >= month) / n
        for month in range(1, horizon + 1)
    )

    return ShockedBatchResult(
        survival_rate=survival_rate,
        median_arr=arrs[mid],
        median_runway=runways[mid],
        median_burn=burns[mid],
        churn_rate=churn_rate,
        survival_by_month=survival_by_month,
        classification=classify_survival(survival_rate),
    )


def _shocked_trials(
    levers: LeverState,
    baseline: BaselineConfig,
    sigma: float,
    runs: int,
    seed: Optional[int] = None,
) -> List[SingleSimulationResult]:
    if seed is None:
        seed = derive_seed(levers, baseline)
    return run_batch(apply_shock_to_levers(levers, sigma), baseline, runs, seed=seed, record_snapshots=True)


def compute_shocked_batch(
    levers: LeverState,
    baseline: BaselineConfig,
    sigma: float,
    runs: int = SENSITIVITY_RUNS,
) -> ShockedBatchResult:
    if runs < 1:
        raise ValueError("runs must be >= 1")
    trials = _shocked_trials(levers, baseline, sigma, runs)
    return _summarise(trials, baseline.horizon_months)


def baseline_metrics(levers: LeverState, baseline: BaselineConfig, runs: int = SENSITIVITY_RUNS) -> ShockedBatchResult:
    """The unshocked batch, summarised the same way as a shocked one."""
    return compute_shocked_batch(levers, baseline, 0.0, runs)


def _severity(abs_delta_pct: float) -> str:
    if abs_delta_pct < 5:
        return "low"
    if abs_delta_pct < 20:
        return "medium"
    return "high"


def _pct_delta(base: float, shocked: float) -> float:
    return (shocked - base) / abs(base) * 100.0 if base != 0 else 0.0


def _direction(base: float, shocked: float, tolerance: float) -> str:
    if shocked > base + tolerance:
        return "up"
    if shocked < base - tolerance:
        return "down"
    return "neutral"


def _node(node_id: str, label: str, base: float, shocked: float, unit: str, tolerance: float) -> TransmissionNode:
    return TransmissionNode(
        id=node_id,
        label=label,
        baseline=base,
        shocked=shocked,
        delta=shocked - base,
        delta_pct=_pct_delta(base, shocked),
        unit=unit,
        direction=_direction(base, shocked, tolerance),
        severity=_severity(abs(_pct_delta(base, shocked))),
    )


def build_transmission_nodes(base: ShockedBatchResult, shocked: ShockedBatchResult) -> List[TransmissionNode]:
    """Churn -> Revenue -> Burn -> Runway -> Survival chain."""
    churn = _node("churn", "Churn", base.churn_rate, shocked.churn_rate, "%/mo", 0.1)
    # A zero churn baseline is measured against 0.01 for severity
    churn = replace(churn, severity=_severity(abs(_pct_delta(base.churn_rate or 0.01, shocked.churn_rate))))

    survival = TransmissionNode(
        id="survival",
        label="Survival",
        baseline=base.survival_rate * 100.0,
        shocked=shocked.survival_rate * 100.0,
        delta=(shocked.survival_rate - base.survival_rate) * 100.0,
        delta_pct=_pct_delta(base.survival_rate, shocked.survival_rate),
        unit="%",
        direction=_direction(base.survival_rate, shocked.survival_rate, 0.005),
        severity=_severity(abs(shocked.survival_rate - base.survival_rate) * 100.0),
    )

    return [
        churn,
        _node("revenue", "Revenue", base.median_arr, shocked.median_arr, "ARR", 1.0),
        _node("burn", "Burn", base.median_burn, shocked.median_burn, "$/mo", 1.0),
        _node("runway", "Runway", base.median_runway, shocked.median_runway, "months", 0.5),
        survival,
    ]


def _band(score: float) -> str:
    low, moderate, elevated = RISK_INDEX_BANDS
    if score <= low:
        return "Low"
    if score <= moderate:
        return "Moderate"
    if score <= elevated:
        return "Elevated"
    return "Critical"


def compute_risk_index(
    baseline_survival: float,
    shocked_survival: float,
    baseline_runway: float,
    shocked_runway: float,
    arr_p25: float,
    arr_p50: float,
    arr_p75: float,
    debt_exposure: float = 0.0,
) -> RiskIndexResult:
    """Composite 0..1 index from how far survival and runway move under shock.

    debt_exposure is the funding pressure lever on the 0..1 scale.
    """
    survival_elasticity = abs(baseline_survival - shocked_survival)
    runway_elasticity = (
        clamp(abs(baseline_runway - shocked_runway) / baseline_runway, 0.0, 1.0)
        if baseline_runway > 0 else 0.0
    )
    raw_dispersion = safe_ratio(arr_p75 - arr_p25, arr_p50) if arr_p50 > 0 else 0.0
    variance_dispersion = clamp(raw_dispersion, 0.0, 2.0)
    debt_sensitivity = clamp(survival_elasticity * clamp01(debt_exposure) * 2.0, 0.0, 1.0)

    score = clamp(
        survival_elasticity * 0.35
        + runway_elasticity * 0.25
        + (variance_dispersion / 2.0) * 0.25
        + debt_sensitivity * 0.15,
        0.0,
        1.0,
    )

    reasons = []
    if survival_elasticity > 0.15:
        reasons.append(f"Survival drops {survival_elasticity * 100:.0f}pp under shock")
    if runway_elasticity > 0.2:
        reasons.append(f"Runway contracts {runway_elasticity * 100:.0f}% under stress")
    if variance_dispersion > 0.5:
        reasons.append(f"High outcome dispersion (IQR/p50 = {raw_dispersion:.2f})")
    if debt_sensitivity > 0.15:
        reasons.append("Elevated capital structure sensitivity")
    if not reasons:
        reasons.append("Risk parameters within acceptable ranges")

    return RiskIndexResult(
        score=score,
        band=_band(score),
        reasons=tuple(reasons),
        components=RiskIndexComponents(
            survival_elasticity=survival_elasticity,
            runway_elasticity=runway_elasticity,
            variance_dispersion=variance_dispersion,
            debt_sensitivity=debt_sensitivity,
        ),
    )


def run_stress_test(
    levers: LeverState,
    baseline: BaselineConfig,
    sigma: float,
    runs: int = SENSITIVITY_RUNS,
) -> StressTestResult:
    """Baseline batch, shocked batch, transmission chain and risk index in one pass."""
    if runs < 1:
        raise ValueError("runs must be >= 1")
    seed = derive_seed(levers, baseline)
    horizon = baseline.horizon_months

    base_trials = _shocked_trials(levers, baseline, 0.0, runs, seed)
    shocked_trials = _shocked_trials(levers, baseline, sigma, runs, seed)
    base = _summarise(base_trials, horizon)
    shocked = _summarise(shocked_trials, horizon)

    arr = percentile_set([t.final_arr for t in base_trials])
    index = compute_risk_index(
        baseline_survival=base.survival_rate,
        shocked_survival=shocked.survival_rate,
        baseline_runway=base.median_runway,
        shocked_runway=shocked.median_runway,
        arr_p25=arr.p25,
        arr_p50=arr.p50,
        arr_p75=arr.p75,
        debt_exposure=levers.funding_pressure,
    )
    LOGGER.info(
        "Stress test sigma=%.2f runs=%d survival %.3f -> %.3f (%s)",
        sigma, runs, base.survival_rate, shocked.survival_rate, index.band,
    )
    return StressTestResult(
        sigma=sigma,
        baseline=base,
        shocked=shocked,
        transmission=tuple(build_transmission_nodes(base, shocked)),
        risk_index=index,
    )
