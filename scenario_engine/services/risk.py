"""
Monte Carlo derived risk profile.

Consumes only a MonteCarloResult. When no result is available it returns the
RiskNotComputed sentinel with a reason; it never falls back to default numbers.
"""

import logging
import math
from typing import Dict, Optional, Sequence, Union

from scenario_engine.config import (
    COLLAPSE_ARR_FRACTION,
    DEFAULT_EV_MULTIPLE,
    DEFAULT_RISK_PARAMS,
    FRAGILE_RUNWAY_MONTHS,
    SURVIVAL_TIERS,
    TAIL_FRACTION,
    RiskClassificationParams,
)
from scenario_engine.results import (
    MonteCarloResult,
    RiskClassification,
    RiskDrivers,
    RiskNotComputed,
    RiskProfile,
    RiskResult,
    SensitivityFactor,
    SimulationNotComputed,
)


LOGGER = logging.getLogger(__name__)

# Lever -> risk driver category. Levers outside the map are split evenly
# between growth variance and market volatility.
DRIVER_CATEGORIES: Dict[str, str] = {
    "market_volatility": "market_volatility_impact",
    "pricing_power": "market_volatility_impact",
    "cost_discipline": "burn_rate_impact",
    "operating_drag": "burn_rate_impact",
    "hiring_intensity": "burn_rate_impact",
    "expansion_velocity": "churn_impact",
    "demand_strength": "growth_variance_impact",
    "execution_risk": "growth_variance_impact",
    "funding_pressure": "capital_structure_impact",
}


def composite_score(
    survival: float,
    volatility: float,
    burn_fragility: float,
    tail_risk: float,
    params: RiskClassificationParams = DEFAULT_RISK_PARAMS,
) -> float:
    return (
        survival * params.w_survival
        + (1.0 - min(1.0, volatility)) * params.w_volatility
        + (1.0 - burn_fragility) * params.w_fragility
        + (1.0 - tail_risk) * params.w_tail
    )


def classify_score(score: float, params: RiskClassificationParams = DEFAULT_RISK_PARAMS) -> RiskClassification:
    if score >= params.robust:
        return RiskClassification.ROBUST
    if score >= params.stable:
        return RiskClassification.STABLE
    if score >= params.fragile:
        return RiskClassification.FRAGILE
    return RiskClassification.CRITICAL


def classify_risk(
    survival: float,
    volatility: float,
    burn_fragility: float,
    tail_risk: float,
    params: RiskClassificationParams = DEFAULT_RISK_PARAMS,
) -> RiskClassification:
    return classify_score(composite_score(survival, volatility, burn_fragility, tail_risk, params), params)


def classify_survival(survival_rate: float) -> RiskClassification:
    """Survival-only tiers, used where no full distribution is available."""
    robust, stable, fragile = SURVIVAL_TIERS
    if survival_rate >= robust:
        return RiskClassification.ROBUST
    if survival_rate >= stable:
        return RiskClassification.STABLE
    if survival_rate >= fragile:
        return RiskClassification.FRAGILE
    return RiskClassification.CRITICAL


def compute_risk_drivers(factors: Sequence[SensitivityFactor]) -> RiskDrivers:
    """Share of absolute sensitivity impact per risk category (sums to 1, or all 0)."""
    totals = {
        "market_volatility_impact": 0.0,
        "burn_rate_impact": 0.0,
        "churn_impact": 0.0,
        "growth_variance_impact": 0.0,
        "capital_structure_impact": 0.0,
    }
    total_impact = 0.0
    for f in factors or ():
        impact = abs(f.impact)
        total_impact += impact
        category = DRIVER_CATEGORIES.get(f.lever)
        if category:
            totals[category] += impact
        else:
            totals["growth_variance_impact"] += impact * 0.5
            totals["market_volatility_impact"] += impact * 0.5

    if total_impact <= 0:
        return RiskDrivers()
    return RiskDrivers(**{k: v / total_impact for k, v in totals.items()})


def compute_risk_profile(
    result: Optional[Union[MonteCarloResult, SimulationNotComputed]],
    ev_multiple: Optional[float] = None,
    params: RiskClassificationParams = DEFAULT_RISK_PARAMS,
) -> RiskResult:
    if ev_multiple is None:
        ev_multiple = DEFAULT_EV_MULTIPLE

    if result is None:
        LOGGER.warning("No simulation results available; risk profile cannot be computed")
        return RiskNotComputed(reason="Simulation results not available. Run a Monte Carlo simulation first.")
    if isinstance(result, SimulationNotComputed):
        LOGGER.warning("Simulation was not computed (%s); risk profile cannot be computed", result.kind)
        return RiskNotComputed(reason=f"Simulation not computed: {result.reason}")

    sims = result.all_simulations
    if not sims:
        LOGGER.warning("Simulation result has an empty trial set; risk profile cannot be computed")
        return RiskNotComputed(reason="No simulation paths found in results.")

    n = len(sims)

    # 1) Survival: survived and ARR above the collapse threshold
    collapse_threshold = result.arr_percentiles.p10 * COLLAPSE_ARR_FRACTION
    survivors = sum(1 for s in sims if s.survived and s.final_arr > collapse_threshold)
    survival_probability = survivors / n
    failure_probability = 1.0 - survival_probability

    # 2) VaR95 on enterprise value
    ev_values = sorted(s.final_arr * ev_multiple for s in sims)
    value_at_risk_95 = ev_values[min(max(0, int(math.floor(n * 0.05))), n - 1)]

    # 3) Tail risk: mean of the worst 5% against the median
    worst = ev_values[: max(1, int(math.ceil(n * TAIL_FRACTION)))]
    worst_mean = sum(worst) / len(worst)
    median_ev = ev_values[min(int(math.floor(n * 0.5)), n - 1)]
    tail_risk_score = max(0.0, 1.0 - worst_mean / median_ev) if median_ev > 0 else 1.0

    # 4) Coefficient of variation of final ARR
    arr_dist = result.arr_distribution
    volatility_index = arr_dist.std_dev / arr_dist.mean if arr_dist.mean > 0 else 1.0

    # 5) Share of trials ending with under six months of runway
    fragile = sum(1 for s in sims if s.final_runway < FRAGILE_RUNWAY_MONTHS)
    burn_fragility_index = fragile / n

    score = composite_score(survival_probability, volatility_index, burn_fragility_index, tail_risk_score, params)

    return RiskProfile(
        survival_probability=survival_probability,
        failure_probability=failure_probability,
        value_at_risk_95=value_at_risk_95,
        tail_risk_score=tail_risk_score,
        volatility_index=volatility_index,
        burn_fragility_index=burn_fragility_index,
        risk_drivers=compute_risk_drivers(result.sensitivity_factors),
        composite_score=score,
        classification=classify_score(score, params),
        iteration_count=n,
    )
