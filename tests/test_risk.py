"""
Risk profiler tests: sentinel handling, exact classification boundaries and
driver attribution.
Run with: python3 -m pytest tests/test_risk.py -v
"""

import logging
import math
import os
import sys
from dataclasses import replace

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from scenario_engine.config import DEFAULT_RISK_PARAMS, RiskClassificationParams
from scenario_engine.results import RiskClassification, RiskNotComputed, RiskProfile, SimulationNotComputed
from scenario_engine.schemas import BaselineConfig, LeverState
from scenario_engine.services.monte_carlo import run_monte_carlo_simulation
from scenario_engine.services.risk import (
    classify_risk,
    classify_score,
    classify_survival,
    composite_score,
    compute_risk_drivers,
    compute_risk_profile,
)
from scenario_engine.services.sensitivity import assigned_sensitivity


def _small_result(**lever_overrides):
    baseline = BaselineConfig(iterations=800, horizon_months=24, seed=7)
    return run_monte_carlo_simulation(LeverState(**lever_overrides), baseline)


def test_none_result_returns_sentinel(caplog):
    with caplog.at_level(logging.WARNING):
        r = compute_risk_profile(None)
    assert isinstance(r, RiskNotComputed)
    assert r.computed is False
    assert r.reason
    assert any(rec.levelno == logging.WARNING for rec in caplog.records)


def test_not_computed_simulation_propagates():
    r = compute_risk_profile(SimulationNotComputed(reason="Zero iterations requested."))
    assert isinstance(r, RiskNotComputed)
    assert "Zero iterations" in r.reason


def test_empty_trial_set_returns_sentinel():
    result = replace(_small_result(), all_simulations=())
    r = compute_risk_profile(result)
    assert isinstance(r, RiskNotComputed)


def test_exact_classification_boundaries():
    p = DEFAULT_RISK_PARAMS
    assert classify_score(p.robust) is RiskClassification.ROBUST
    assert classify_score(p.robust - 1e-9) is RiskClassification.STABLE
    assert classify_score(p.stable) is RiskClassification.STABLE
    assert classify_score(p.stable - 1e-9) is RiskClassification.FRAGILE
    assert classify_score(p.fragile) is RiskClassification.FRAGILE
    assert classify_score(p.fragile - 1e-9) is RiskClassification.CRITICAL


def test_composite_weights():
    assert math.isclose(composite_score(1.0, 0.0, 0.0, 0.0), 1.0)
    assert math.isclose(composite_score(0.0, 1.0, 1.0, 1.0), 0.0)
    # Volatility above 1 contributes nothing further
    assert composite_score(0.5, 3.0, 0.2, 0.1) == composite_score(0.5, 1.0, 0.2, 0.1)
    assert classify_risk(1.0, 0.0, 0.0, 0.0) is RiskClassification.ROBUST
    assert classify_risk(0.0, 1.0, 1.0, 1.0) is RiskClassification.CRITICAL


def test_custom_params_shift_thresholds():
    strict = RiskClassificationParams(robust=0.99, stable=0.9, fragile=0.8)
    assert classify_score(0.85, strict) is RiskClassification.FRAGILE
    assert classify_score(0.85) is RiskClassification.ROBUST


def test_survival_tiers():
    assert classify_survival(0.75) is RiskClassification.ROBUST
    assert classify_survival(0.55) is RiskClassification.STABLE
    assert classify_survival(0.35) is RiskClassification.FRAGILE
    assert classify_survival(0.3) is RiskClassification.CRITICAL


def test_drivers_sum_to_one():
    d = compute_risk_drivers(assigned_sensitivity())
    total = (
        d.market_volatility_impact
        + d.burn_rate_impact
        + d.churn_impact
        + d.growth_variance_impact
        + d.capital_structure_impact
    )
    assert math.isclose(total, 1.0)
    empty = compute_risk_drivers([])
    assert empty.burn_rate_impact == 0.0


def test_profile_from_real_result():
    r = compute_risk_profile(_small_result())
    assert isinstance(r, RiskProfile)
    assert r.computed is True
    assert r.iteration_count == 800
    assert 0.0 <= r.survival_probability <= 1.0
    assert math.isclose(r.survival_probability + r.failure_probability, 1.0)
    assert 0.0 <= r.burn_fragility_index <= 1.0
    assert 0.0 <= r.tail_risk_score <= 1.0
    assert r.value_at_risk_95 >= 0.0
    assert r.classification is classify_score(r.composite_score)
    assert r.to_dict()["classification"] == r.classification.value


def test_ev_multiple_scales_var():
    result = _small_result()
    a = compute_risk_profile(result, ev_multiple=2.0)
    b = compute_risk_profile(result, ev_multiple=4.0)
    assert math.isclose(b.value_at_risk_95, 2.0 * a.value_at_risk_95)
    assert a.survival_probability == b.survival_probability


def test_riskier_levers_score_lower():
    calm = compute_risk_profile(_small_result(market_volatility=0.0, execution_risk=0.0))
    wild = compute_risk_profile(_small_result(market_volatility=1.0, execution_risk=1.0))
    assert wild.volatility_index > calm.volatility_index
