from scenario_engine.services.deterministic import calculate_deltas, point_lever_directions, run_deterministic_point
from scenario_engine.services.monte_carlo import CancellationToken, run_monte_carlo_simulation
from scenario_engine.services.risk import compute_risk_profile
from scenario_engine.services.sensitivity import compute_sensitivity_profile, compute_shock_propagation
from scenario_engine.services.stress import run_stress_test

__all__ = [
    "CancellationToken",
    "calculate_deltas",
    "compute_risk_profile",
    "compute_sensitivity_profile",
    "compute_shock_propagation",
    "point_lever_directions",
    "run_deterministic_point",
    "run_monte_carlo_simulation",
    "run_stress_test",
]
