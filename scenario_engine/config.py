"""
Engine defaults and load-bearing thresholds.

Everything tunable lives here so the services stay free of magic literals.
"""

import os
from dataclasses import dataclass

# ── Simulation defaults ──
DEFAULT_ITERATIONS = 10_000
MAX_ITERATIONS = 100_000
DEFAULT_HORIZON_MONTHS = 36
CHUNK_SIZE = 500                 # trials per vectorized block; cancellation is checked between blocks
HISTOGRAM_BUCKETS = 25

# ── Trial dynamics ──
RUNWAY_CAP_MONTHS = 120.0        # runway reported when net burn <= 0, and the upper cap otherwise
NOISE_CLIP_SIGMAS = 3.0          # market shock is clipped to +/- this many sigmas
EXEC_SHOCK_MEAN = -0.10
EXEC_SHOCK_STD = 0.05
EXEC_SHOCK_BOUNDS = (-0.25, 0.0)
EXEC_EVENT_RATE = 0.10           # monthly event probability = rate * execution_risk
FUNDING_STRESS_CASH_RATIO = 0.30 # funding pressure bites below this share of starting cash
SPEND_FLOOR_RATIO = 0.50
TARGET_ARR_MULTIPLE = 2.0

# ── Risk profile ──
DEFAULT_EV_MULTIPLE = 3.5
COLLAPSE_ARR_FRACTION = 0.10     # of ARR p10
FRAGILE_RUNWAY_MONTHS = 6.0
TAIL_FRACTION = 0.05

# ── Sensitivity / stress ──
SENSITIVITY_RUNS = 200
SENSITIVITY_PERTURBATION = 0.05  # on the 0..1 lever scale
TORNADO_TOP_N = 5

# ── Dev server ──
SERVER_HOST = os.environ.get("SCENARIO_ENGINE_HOST", "127.0.0.1")
SERVER_PORT = int(os.environ.get("SCENARIO_ENGINE_PORT", "8000"))


@dataclass(frozen=True)
class RiskClassificationParams:
    """Weights and cut-offs for the four-tier risk classification.

    composite = w_survival * survival
              + w_volatility * (1 - min(1, volatility))
              + w_fragility * (1 - burn_fragility)
              + w_tail * (1 - tail_risk)

    composite >= robust   -> Robust
    composite >= stable   -> Stable
    composite >= fragile  -> Fragile
    otherwise             -> Critical

    Boundaries are inclusive on the lower side.
    """

    w_survival: float = 0.35
    w_volatility: float = 0.20
    w_fragility: float = 0.25
    w_tail: float = 0.20
    robust: float = 0.75
    stable: float = 0.55
    fragile: float = 0.35


DEFAULT_RISK_PARAMS = RiskClassificationParams()

# Survival-only tiers used by shocked batches and shock propagation
SURVIVAL_TIERS = (0.75, 0.55, 0.35)

# Composite risk index bands (upper-inclusive)
RISK_INDEX_BANDS = (0.25, 0.50, 0.75)
