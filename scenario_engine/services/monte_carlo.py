"""
Monte Carlo orchestrator.

Derives the seed, runs trials in fixed-size vectorized chunks, aggregates the
result and attaches lever sensitivity. Because every trial is a pure function
of (seed, trial_index), the chunk size never changes the numbers.

Valid inputs never raise out of run_monte_carlo_simulation: zero iterations,
an empty trial set and cancellation all come back as SimulationNotComputed.
"""

import logging
import threading
import time

from scenario_engine.config import CHUNK_SIZE
from scenario_engine.results import SimulationNotComputed, SimulationOutcome
from scenario_engine.schemas import BaselineConfig, LeverState
from scenario_engine.services.aggregation import EmptyTrialSetError, aggregate_results
from scenario_engine.services.seeding import derive_seed
from scenario_engine.services.sensitivity import assigned_sensitivity, elasticity_sensitivity
from scenario_engine.services.trials import simulate_trials


LOGGER = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancel flag, checked between chunks. Safe to set from another thread."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def run_monte_carlo_simulation(
    levers: LeverState,
    baseline: BaselineConfig,
    cancel_token: CancellationToken = None,
    sensitivity_mode: str = "assigned",
    chunk_size: int = CHUNK_SIZE,
) -> SimulationOutcome:
    if sensitivity_mode not in ("assigned", "elasticity"):
        raise ValueError(f"unknown sensitivity_mode: {sensitivity_mode!r}")
    if chunk_size < 1:
        raise ValueError("chunk_size must be >= 1")

    iterations = baseline.iterations
    seed = derive_seed(levers, baseline)

    if iterations == 0:
        LOGGER.warning("Monte Carlo requested with zero iterations; nothing to simulate")
        return SimulationNotComputed(reason="Zero iterations requested; no trials were simulated.")

    LOGGER.info(
        "Monte Carlo start: seed=%d iterations=%d horizon=%d",
        seed, iterations, baseline.horizon_months,
    )
    started = time.perf_counter()

    trials = []
    for start in range(0, iterations, chunk_size):
        if cancel_token is not None and cancel_token.cancelled:
            LOGGER.warning("Monte Carlo cancelled after %d of %d trials", len(trials), iterations)
            return SimulationNotComputed(
                reason="Simulation was cancelled before completion.",
                kind="cancelled",
                iterations_completed=len(trials),
            )
        stop = min(start + chunk_size, iterations)
        trials.extend(simulate_trials(levers, baseline, seed, start, stop))
        LOGGER.debug("Simulated trials %d..%d", start, stop - 1)

    if sensitivity_mode == "elasticity":
        factors = elasticity_sensitivity(levers, baseline)
    else:
        factors = assigned_sensitivity()

    elapsed_ms = (time.perf_counter() - started) * 1000.0
    try:
        result = aggregate_results(trials, baseline, seed, factors, execution_time_ms=elapsed_ms)
    except EmptyTrialSetError as exc:
        LOGGER.warning("Monte Carlo produced no trials: %s", exc)
        return SimulationNotComputed(reason=str(exc))

    LOGGER.info(
        "Monte Carlo finished: seed=%d iterations=%d survival=%.3f in %.1f ms",
        seed, iterations, result.survival_rate, elapsed_ms,
    )
    return result
