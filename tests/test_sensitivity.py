"""
Sensitivity analyzer tests: assigned table ranking, agreement with the point
engine, measured elasticities and shock propagation.
Run with: python3 -m pytest tests/test_sensitivity.py -v
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from scenario_engine.results import SensitivityNotComputed, SensitivityProfile
from scenario_engine.schemas import LEVER_NAMES, BaselineConfig, LeverState
from scenario_engine.services.deterministic import point_lever_directions
from scenario_engine.services.sensitivity import (
    assigned_sensitivity,
    compute_elasticity,
    compute_sensitivity_profile,
    compute_shock_propagation,
    compute_tornado,
    elasticity_sensitivity,
)


def make_baseline(**overrides) -> BaselineConfig:
    defaults = dict(iterations=1_000, horizon_months=36, seed=314)
    defaults.update(overrides)
    return BaselineConfig(**defaults)


def test_assigned_table_covers_every_lever():
    factors = assigned_sensitivity()
    assert sorted(f.lever for f in factors) == sorted(LEVER_NAMES)
    impacts = [abs(f.impact) for f in factors]
    assert impacts == sorted(impacts, reverse=True)
    assert factors[0].lever == "demand_strength"
    for f in factors:
        assert f.direction == ("positive" if f.impact >= 0 else "negative")


def test_assigned_directions_agree_with_point_engine():
    point = point_lever_directions(LeverState(), make_baseline())
    for f in assigned_sensitivity():
        expected = point[f.lever]
        if expected is None:
            continue
        assert f.direction == expected, (
            f"{f.lever}: sensitivity says {f.direction}, point engine says {expected}"
        )


def test_demand_elasticity_is_positive():
    results = compute_elasticity(LeverState(), make_baseline(), runs=200)
    by_var = {r.variable: r for r in results}
    demand = by_var["demand_strength"]
    assert demand.direction == "positive"
    assert demand.delta_ev > 0
    assert demand.delta_survival >= 0
    scores = [r.elasticity_score for r in results]
    assert scores == sorted(scores, reverse=True)
    assert max(scores) == 1.0
    assert all(0.0 <= s <= 1.0 for s in scores)


def test_measured_sensitivity_shape():
    factors = elasticity_sensitivity(LeverState(), make_baseline(), runs=150)
    assert len(factors) == len(LEVER_NAMES)
    by_lever = {f.lever: f for f in factors}
    assert by_lever["demand_strength"].direction == "positive"
    assert by_lever["cost_discipline"].direction == "positive"
    assert by_lever["hiring_intensity"].direction == "negative"
    assert all(-1.0 <= f.impact <= 1.0 for f in factors)
    assert max(abs(f.impact) for f in factors) == 1.0


def test_measured_directions_agree_with_point_engine():
    baseline = BaselineConfig()
    lever_sets = [
        LeverState(),
        LeverState(demand_strength=0.8),
        LeverState(market_volatility=0.1),
        LeverState(cost_discipline=0.9, hiring_intensity=0.2),
    ]
    for levers in lever_sets:
        point = point_lever_directions(levers, baseline)
        for f in elasticity_sensitivity(levers, baseline, runs=150):
            expected = point[f.lever]
            if expected is None:
                continue
            assert f.direction == expected, (
                f"{levers}: {f.lever} measured {f.direction}, point engine says {expected}"
            )
            if expected == "positive":
                assert f.impact >= 0.0, f"{f.lever} impact {f.impact} contradicts its direction"
            else:
                assert f.impact <= 0.0, f"{f.lever} impact {f.impact} contradicts its direction"


def test_tornado_top_bars():
    bars = compute_tornado(LeverState(), make_baseline(), runs=150)
    assert 1 <= len(bars) <= 5
    spreads = [b.spread for b in bars]
    assert spreads == sorted(spreads, reverse=True)


def test_profile_without_inputs_is_not_computed():
    r = compute_sensitivity_profile(None, make_baseline())
    assert isinstance(r, SensitivityNotComputed)
    assert r.reason
    r = compute_sensitivity_profile(LeverState(), None)
    assert isinstance(r, SensitivityNotComputed)


def test_profile_is_deterministic():
    a = compute_sensitivity_profile(LeverState(), make_baseline(), runs=100)
    b = compute_sensitivity_profile(LeverState(), make_baseline(), runs=100)
    assert isinstance(a, SensitivityProfile)
    assert a == b
    assert len(a.elasticities) == 5


def test_shock_propagation_degrades_survival():
    baseline = make_baseline()
    calm = compute_shock_propagation(LeverState(), baseline, 0.0)
    severe = compute_shock_propagation(LeverState(), baseline, 200.0)
    assert severe.survival_probability < calm.survival_probability
    assert severe.median_ev < calm.median_ev
    assert abs(calm.survival_probability + calm.failure_probability - 1.0) < 1e-12
