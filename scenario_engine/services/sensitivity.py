"""
Lever sensitivity.

Two flavours share one output shape (SensitivityFactor):

- assigned_sensitivity(): fixed coefficients, cheap and stable. This is what a
  MonteCarloResult carries by default. Its directions agree with the point
  engine's marginal effects (see deterministic.point_lever_directions).
- elasticity_sensitivity(): re-runs mini batches with one lever nudged up and
  down on common random numbers and measures the change. Measured signs that
  contradict the point engine are zeroed, so both flavours agree with it.

compute_elasticity / compute_tornado / compute_sensitivity_profile expose the
underlying sweeps; compute_shock_propagation re-runs under a stress shock.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from scenario_engine.config import (
    DEFAULT_EV_MULTIPLE,
    SENSITIVITY_PERTURBATION,
    SENSITIVITY_RUNS,
    TORNADO_TOP_N,
)
from scenario_engine.results import (
    ElasticityResult,
    SensitivityFactor,
    SensitivityNotComputed,
    SensitivityProfile,
    ShockResult,
    TornadoBar,
)
from scenario_engine.schemas import LEVER_LABELS, LEVER_NAMES, BaselineConfig, LeverState
from scenario_engine.services.deterministic import point_lever_directions
from scenario_engine.services.risk import classify_survival
from scenario_engine.services.seeding import derive_seed
from scenario_engine.services.trials import run_batch
from scenario_engine.utils.numbers import clamp, clamp01


LOGGER = logging.getLogger(__name__)

ASSIGNED_IMPACTS: Tuple[Tuple[str, float], ...] = (
    ("demand_strength", 0.8),
    ("pricing_power", 0.6),
    ("cost_discipline", 0.5),
    ("market_volatility", -0.7),
    ("execution_risk", -0.5),
    ("expansion_velocity", 0.4),
    ("hiring_intensity", -0.3),
    ("operating_drag", -0.4),
    ("funding_pressure", -0.6),
)

# Levers swept by the elasticity / tornado views
SENSITIVITY_VARS = (
    "demand_strength",
    "market_volatility",
    "funding_pressure",
    "cost_discipline",
    "execution_risk",
)

# Magnitude weights: survival delta, relative EV delta, relative runway delta
_W_SURVIVAL = 1.0
_W_EV = 0.5
_W_RUNWAY = 0.3
_MIN_MAGNITUDE = 0.001


def _rank(factors: Iterable[SensitivityFactor]) -> List[SensitivityFactor]:
    return sorted(factors, key=lambda f: abs(f.impact), reverse=True)


def assigned_sensitivity() -> List[SensitivityFactor]:
    return _rank(
        SensitivityFactor(
            lever=lever,
            label=LEVER_LABELS[lever],
            impact=impact,
            direction="positive" if impact >= 0 else "negative",
        )
        for lever, impact in ASSIGNED_IMPACTS
    )


@dataclass(frozen=True)
class BatchStats:
    survival_rate: float
    median_arr: float
    median_runway: float


def batch_stats(levers: LeverState, baseline: BaselineConfig, runs: int, seed: int) -> BatchStats:
    trials = run_batch(levers, baseline, runs, seed=seed)
    n = len(trials)
    mid = n // 2
    arrs = sorted(t.final_arr for t in trials)
    runways = sorted(t.final_runway for t in trials)
    return BatchStats(
        survival_rate=sum(1 for t in trials if t.survived) / n,
        median_arr=arrs[mid],
        median_runway=runways[mid],
    )


def _nudge(levers: LeverState, lever: str, delta: float) -> LeverState:
    return levers.with_lever(lever, clamp01(getattr(levers, lever) + delta))


@dataclass(frozen=True)
class _Sweep:
    lever: str
    up: BatchStats
    down: BatchStats


def _sweep(
    levers: LeverState,
    baseline: BaselineConfig,
    variables: Iterable[str],
    perturbation: float,
    runs: int,
) -> Tuple[BatchStats, List[_Sweep]]:
    # Every batch shares the base seed, so deltas come from the lever alone
    seed = derive_seed(levers, baseline)
    base = batch_stats(levers, baseline, runs, seed)
    sweeps = []
    for v in variables:
        up = batch_stats(_nudge(levers, v, perturbation), baseline, runs, seed)
        down = batch_stats(_nudge(levers, v, -perturbation), baseline, runs, seed)
        sweeps.append(_Sweep(lever=v, up=up, down=down))
    return base, sweeps


def _signed_magnitude(s: _Sweep, base: BatchStats, ev_multiple: float) -> float:
    base_ev = base.median_arr * ev_multiple
    d_survival = s.up.survival_rate - s.down.survival_rate
    d_ev = (s.up.median_arr - s.down.median_arr) * ev_multiple
    d_runway = s.up.median_runway - s.down.median_runway
    return (
        _W_SURVIVAL * d_survival
        + _W_EV * d_ev / max(base_ev, 1.0)
        + _W_RUNWAY * d_runway / max(base.median_runway, 1.0)
    )


def _magnitude(s: _Sweep, base: BatchStats, ev_multiple: float) -> float:
    base_ev = base.median_arr * ev_multiple
    return (
        _W_SURVIVAL * abs(s.up.survival_rate - s.down.survival_rate)
        + _W_EV * abs((s.up.median_arr - s.down.median_arr) * ev_multiple / max(base_ev, 1.0))
        + _W_RUNWAY * abs((s.up.median_runway - s.down.median_runway) / max(base.median_runway, 1.0))
    )


def _elasticities(base: BatchStats, sweeps: List[_Sweep], ev_multiple: float) -> List[ElasticityResult]:
    max_mag = max([_magnitude(s, base, ev_multiple) for s in sweeps] + [_MIN_MAGNITUDE])
    out = []
    for s in sweeps:
        d_survival = s.up.survival_rate - s.down.survival_rate
        out.append(
            ElasticityResult(
                variable=s.lever,
                label=LEVER_LABELS[s.lever],
                delta_survival=d_survival,
                delta_ev=(s.up.median_arr - s.down.median_arr) * ev_multiple,
                delta_runway=s.up.median_runway - s.down.median_runway,
                elasticity_score=clamp(_magnitude(s, base, ev_multiple) / max_mag, 0.0, 1.0),
                direction="positive" if d_survival >= 0 else "negative",
            )
        )
    out.sort(key=lambda r: r.elasticity_score, reverse=True)
    return out


def _tornado(sweeps: List[_Sweep], ev_multiple: float) -> List[TornadoBar]:
    bars = [
        TornadoBar(
            variable=s.lever,
            label=LEVER_LABELS[s.lever],
            low_survival=s.down.survival_rate,
            high_survival=s.up.survival_rate,
            low_ev=s.down.median_arr * ev_multiple,
            high_ev=s.up.median_arr * ev_multiple,
            spread=abs(s.up.survival_rate - s.down.survival_rate),
        )
        for s in sweeps
    ]
    bars.sort(key=lambda b: b.spread, reverse=True)
    return bars[:TORNADO_TOP_N]


def compute_elasticity(
    levers: LeverState,
    baseline: BaselineConfig,
    perturbation: float = SENSITIVITY_PERTURBATION,
    runs: int = SENSITIVITY_RUNS,
    ev_multiple: float = DEFAULT_EV_MULTIPLE,
) -> List[ElasticityResult]:
    base, sweeps = _sweep(levers, baseline, SENSITIVITY_VARS, perturbation, runs)
    return _elasticities(base, sweeps, ev_multiple)


def compute_tornado(
    levers: LeverState,
    baseline: BaselineConfig,
    perturbation: float = SENSITIVITY_PERTURBATION,
    runs: int = SENSITIVITY_RUNS,
    ev_multiple: float = DEFAULT_EV_MULTIPLE,
) -> List[TornadoBar]:
    _, sweeps = _sweep(levers, baseline, SENSITIVITY_VARS, perturbation, runs)
    return _tornado(sweeps, ev_multiple)


def compute_sensitivity_profile(
    levers: Optional[LeverState],
    baseline: Optional[BaselineConfig],
    runs: int = SENSITIVITY_RUNS,
    perturbation: float = SENSITIVITY_PERTURBATION,
    ev_multiple: float = DEFAULT_EV_MULTIPLE,
):
    """Elasticities and tornado bars from one sweep, or SensitivityNotComputed."""
    if levers is None or baseline is None:
        LOGGER.warning("Sensitivity requested without levers or baseline")
        return SensitivityNotComputed(reason="Levers or simulation config not available.")
    if runs < 1:
        LOGGER.warning("Sensitivity requested with %d runs", runs)
        return SensitivityNotComputed(reason="Sensitivity needs at least one run per batch.")

    base, sweeps = _sweep(levers, baseline, SENSITIVITY_VARS, perturbation, runs)
    return SensitivityProfile(
        elasticities=tuple(_elasticities(base, sweeps, ev_multiple)),
        tornado=tuple(_tornado(sweeps, ev_multiple)),
    )


def elasticity_sensitivity(
    levers: LeverState,
    baseline: BaselineConfig,
    perturbation: float = SENSITIVITY_PERTURBATION,
    runs: int = SENSITIVITY_RUNS,
    ev_multiple: float = DEFAULT_EV_MULTIPLE,
) -> List[SensitivityFactor]:
    """Measured impacts for every lever in the SensitivityFactor shape.

    impact = signed magnitude / largest magnitude, so the strongest lever sits
    at +/-1. A lever whose measured sign contradicts the point engine's
    marginal direction gets impact 0 and the point engine's direction; levers
    the point engine ignores keep their measured sign.
    """
    base, sweeps = _sweep(levers, baseline, LEVER_NAMES, perturbation, runs)
    signed = {s.lever: _signed_magnitude(s, base, ev_multiple) for s in sweeps}
    point = point_lever_directions(levers, baseline)

    directions = {}
    for lever, value in signed.items():
        measured = "positive" if value >= 0 else "negative"
        expected = point.get(lever)
        if expected is not None and expected != measured:
            LOGGER.debug("Measured %s direction %s conflicts with point engine; zeroed", lever, measured)
            signed[lever] = 0.0
            directions[lever] = expected
        else:
            directions[lever] = measured

    largest = max([abs(v) for v in signed.values()] + [_MIN_MAGNITUDE])
    return _rank(
        SensitivityFactor(
            lever=lever,
            label=LEVER_LABELS[lever],
            impact=clamp(value / largest, -1.0, 1.0),
            direction=directions[lever],
        )
        for lever, value in signed.items()
    )


def compute_shock_propagation(
    levers: LeverState,
    baseline: BaselineConfig,
    shock_intensity_pct: float,
    runs: int = SENSITIVITY_RUNS,
    ev_multiple: float = DEFAULT_EV_MULTIPLE,
) -> ShockResult:
    """Stress shock: volatility up, demand down, funding tighter, then re-run.

    0% leaves the levers unchanged, 100% is a moderate shock, 200% extreme.
    """
    t = shock_intensity_pct / 100.0
    shocked = levers.model_copy(update={
        "market_volatility": clamp01(levers.market_volatility + t * 0.30),
        "demand_strength": clamp01(levers.demand_strength - t * 0.25),
        "funding_pressure": clamp01(levers.funding_pressure + t * 0.20),
    })
    stats = batch_stats(shocked, baseline, runs, derive_seed(levers, baseline))
    return ShockResult(
        shock_intensity_pct=shock_intensity_pct,
        survival_probability=stats.survival_rate,
        median_ev=stats.median_arr * ev_multiple,
        median_runway=stats.median_runway,
        failure_probability=1.0 - stats.survival_rate,
        classification=classify_survival(stats.survival_rate),
    )
