"""
Structural shock engine tests.
Run with: python3 -m pytest tests/test_stress.py -v
"""

import math
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from scenario_engine.results import RiskClassification, ShockedBatchResult
from scenario_engine.schemas import BaselineConfig, LeverState
from scenario_engine.services.stress import (
    apply_shock_to_levers,
    baseline_metrics,
    build_transmission_nodes,
    compute_risk_index,
    compute_shocked_batch,
    run_stress_test,
)


def make_baseline(**overrides) -> BaselineConfig:
    defaults = dict(iterations=1_000, horizon_months=36, seed=55)
    defaults.update(overrides)
    return BaselineConfig(**defaults)


def make_batch(**overrides) -> ShockedBatchResult:
    defaults = dict(
        survival_rate=0.6,
        median_arr=3_000_000.0,
        median_runway=10.0,
        median_burn=250_000.0,
        churn_rate=4.0,
        survival_by_month=(1.0, 0.8, 0.6),
        classification=RiskClassification.STABLE,
    )
    defaults.update(overrides)
    return ShockedBatchResult(**defaults)


def test_zero_sigma_leaves_levers():
    levers = LeverState(market_volatility=0.3)
    assert apply_shock_to_levers(levers, 0.0) == levers


def test_shock_moves_and_clamps_levers():
    shocked = apply_shock_to_levers(LeverState(), 1.0)
    assert math.isclose(shocked.market_volatility, 0.70)
    assert math.isclose(shocked.demand_strength, 0.34)
    assert math.isclose(shocked.funding_pressure, 0.63)
    assert math.isclose(shocked.execution_risk, 0.58)
    extreme = apply_shock_to_levers(LeverState(), 3.0)
    assert extreme.market_volatility == 1.0
    assert math.isclose(extreme.demand_strength, 0.02)


def test_shocked_batch_is_worse_than_baseline():
    baseline = make_baseline()
    base = baseline_metrics(LeverState(), baseline, runs=200)
    shocked = compute_shocked_batch(LeverState(), baseline, 2.0, runs=200)
    assert shocked.survival_rate < base.survival_rate
    assert shocked.median_arr < base.median_arr
    assert len(shocked.survival_by_month) == 36
    assert shocked.churn_rate >= 0.0
    assert base.median_burn > 0.0


def test_transmission_chain():
    base = make_batch()
    shocked = make_batch(survival_rate=0.3, median_arr=2_000_000.0, median_runway=6.0, churn_rate=6.0)
    nodes = build_transmission_nodes(base, shocked)
    assert [n.id for n in nodes] == ["churn", "revenue", "burn", "runway", "survival"]
    by_id = {n.id: n for n in nodes}
    assert by_id["churn"].direction == "up"
    assert by_id["revenue"].direction == "down"
    assert by_id["burn"].direction == "neutral"
    assert by_id["burn"].severity == "low"
    assert by_id["runway"].severity == "high"
    assert math.isclose(by_id["survival"].delta, -30.0)
    assert by_id["survival"].severity == "high"


def test_risk_index_bands_and_reasons():
    calm = compute_risk_index(0.6, 0.6, 10.0, 10.0, 90.0, 100.0, 110.0)
    assert calm.band == "Low"
    assert calm.reasons == ("Risk parameters within acceptable ranges",)

    stressed = compute_risk_index(0.9, 0.1, 20.0, 2.0, 50.0, 100.0, 250.0, debt_exposure=1.0)
    assert stressed.band == "Critical"
    assert stressed.components.variance_dispersion == 2.0
    assert stressed.components.debt_sensitivity == 1.0
    assert len(stressed.reasons) == 4
    assert 0.0 <= stressed.score <= 1.0


def test_risk_index_degenerate_inputs():
    r = compute_risk_index(0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0)
    assert r.score == 0.0
    assert r.components.runway_elasticity == 0.0
    assert r.components.variance_dispersion == 0.0


def test_stress_test_bundle():
    result = run_stress_test(LeverState(), make_baseline(), sigma=1.5, runs=150)
    assert len(result.transmission) == 5
    assert result.shocked.survival_rate <= result.baseline.survival_rate
    payload = result.to_dict()
    assert payload["shocked"]["classification"] in {c.value for c in RiskClassification}
    assert payload["risk_index"]["band"] in {"Low", "Moderate", "Elevated", "Critical"}
