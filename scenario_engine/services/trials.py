from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from scenario_engine.config import (
    EXEC_EVENT_RATE,
    EXEC_SHOCK_BOUNDS,
    EXEC_SHOCK_MEAN,
    EXEC_SHOCK_STD,
    FUNDING_STRESS_CASH_RATIO,
    NOISE_CLIP_SIGMAS,
    RUNWAY_CAP_MONTHS,
    SPEND_FLOOR_RATIO,
    TARGET_ARR_MULTIPLE,
)
from scenario_engine.results import MonthlySnapshot, SingleSimulationResult
from scenario_engine.schemas import BaselineConfig, LeverState
from scenario_engine.services.seeding import Mulberry32, derive_seed
from scenario_engine.utils.numbers import clamp01


@dataclass(frozen=True)
class TrialFactors:
    """Lever-derived, bounded per-month factors shared by every trial of a run."""

    base_growth: float         # -0.10 .. +0.10 monthly
    pricing_multiplier: float  # 0.75 .. 1.25
    expansion_boost: float     # -0.125 .. +0.125 monthly
    cost_efficiency: float     # 0 .. 1
    hiring_drag: float         # 0 .. 0.67
    operating_cost: float      # 0 .. 1
    execution_risk: float      # 0 .. 1
    funding_pressure: float    # 0 .. 1
    volatility: float          # 0.02 .. 0.10 monthly


def lever_factors(levers: LeverState) -> TrialFactors:
    demand = clamp01(levers.demand_strength)
    pricing = clamp01(levers.pricing_power)
    expansion = clamp01(levers.expansion_velocity)
    market = clamp01(levers.market_volatility)
    return TrialFactors(
        base_growth=(demand - 0.5) / 5.0,
        pricing_multiplier=1.0 + (pricing - 0.5) / 2.0,
        expansion_boost=(expansion - 0.5) / 4.0,
        cost_efficiency=clamp01(levers.cost_discipline),
        hiring_drag=clamp01(levers.hiring_intensity) / 1.5,
        operating_cost=clamp01(levers.operating_drag),
        execution_risk=clamp01(levers.execution_risk),
        funding_pressure=clamp01(levers.funding_pressure),
        volatility=0.02 + market * 0.08,
    )


def monthly_spend(factors: TrialFactors, baseline: BaselineConfig) -> float:
    base_spend = baseline.opex_annual / 12.0
    spend = base_spend * (
        1.0
        + 0.30 * factors.hiring_drag
        + 0.20 * factors.operating_cost
        - 0.25 * factors.cost_efficiency
    )
    return max(spend, SPEND_FLOOR_RATIO * base_spend)


def simulate_trials(
    levers: LeverState,
    baseline: BaselineConfig,
    seed: int,
    start: int,
    stop: int,
    record_snapshots: Optional[bool] = None,
) -> List[SingleSimulationResult]:
    """Simulate trial indices [start, stop) as one vectorized block.

    Every trial consumes exactly five uniforms per month from its own
    mulberry32 stream keyed by (seed ^ trial_index); a depleted trial is frozen
    at its depletion month and its later draws are discarded.
    """
    n = stop - start
    if n <= 0:
        return []
    if record_snapshots is None:
        record_snapshots = baseline.record_snapshots

    f = lever_factors(levers)
    horizon = baseline.horizon_months
    rng = Mulberry32.for_trials(seed, start, stop)

    starting_cash = float(baseline.cash_on_hand)
    starting_arr = float(baseline.revenue_annual)
    margin = float(baseline.gross_margin_pct)
    spend = monthly_spend(f, baseline)
    shock_cap = NOISE_CLIP_SIGMAS * f.volatility
    exec_lo, exec_hi = EXEC_SHOCK_BOUNDS
    funding_active = f.funding_pressure > 0.5

    arr = np.full(n, starting_arr, dtype=float)
    cash = np.full(n, starting_cash, dtype=float)
    runway = np.zeros(n, dtype=float)
    peak_arr = arr.copy()
    lowest_cash = cash.copy()
    alive = np.ones(n, dtype=bool)
    survival_months = np.full(n, horizon, dtype=np.int64)

    if record_snapshots:
        snap_arr = np.zeros((n, horizon), dtype=float)
        snap_cash = np.zeros((n, horizon), dtype=float)
        snap_runway = np.zeros((n, horizon), dtype=float)
        snap_growth = np.zeros((n, horizon), dtype=float)

    for month in range(1, horizon + 1):
        shock = np.clip(rng.gaussian(0.0, f.volatility), -shock_cap, shock_cap)
        exec_event = rng.random() < EXEC_EVENT_RATE * f.execution_risk
        exec_shock = np.clip(rng.gaussian(EXEC_SHOCK_MEAN, EXEC_SHOCK_STD), exec_lo, exec_hi)
        exec_shock = np.where(exec_event, exec_shock, 0.0)

        growth = (f.base_growth + f.expansion_boost + shock + exec_shock) * f.pricing_multiplier
        if funding_active:
            stressed = cash < starting_cash * FUNDING_STRESS_CASH_RATIO
            growth = np.where(stressed, growth * (1.0 - f.funding_pressure * 0.5), growth)

        new_arr = np.maximum(0.0, arr * (1.0 + growth))
        gross_profit = new_arr / 12.0 * margin
        new_cash = cash + gross_profit - spend
        net_burn = spend - gross_profit
        new_runway = np.where(
            net_burn > 0,
            new_cash / np.where(net_burn > 0, net_burn, 1.0),
            RUNWAY_CAP_MONTHS,
        )
        new_runway = np.minimum(new_runway, RUNWAY_CAP_MONTHS)

        # Depleted trials stay frozen
        arr = np.where(alive, new_arr, arr)
        cash = np.where(alive, new_cash, cash)
        runway = np.where(alive, new_runway, runway)
        peak_arr = np.maximum(peak_arr, arr)
        lowest_cash = np.minimum(lowest_cash, cash)

        if record_snapshots:
            col = month - 1
            snap_arr[:, col] = arr
            snap_cash[:, col] = cash
            snap_runway[:, col] = runway
            snap_growth[:, col] = growth

        depleted = alive & (cash <= 0.0)
        survival_months[depleted] = month
        alive &= ~depleted
        if not alive.any():
            break

    arr_l = arr.tolist()
    cash_l = cash.tolist()
    runway_l = runway.tolist()
    peak_l = peak_arr.tolist()
    lowest_l = lowest_cash.tolist()
    months_l = survival_months.tolist()
    alive_l = alive.tolist()
    target = starting_arr * TARGET_ARR_MULTIPLE

    if record_snapshots:
        rows_arr = snap_arr.tolist()
        rows_cash = snap_cash.tolist()
        rows_runway = snap_runway.tolist()
        rows_growth = snap_growth.tolist()

    results = []
    for i in range(n):
        snapshots = None
        if record_snapshots:
            snapshots = tuple(
                MonthlySnapshot(
                    month=m + 1,
                    arr=rows_arr[i][m],
                    cash=rows_cash[i][m],
                    burn=spend,
                    runway=rows_runway[i][m],
                    growth_rate=rows_growth[i][m],
                )
                for m in range(months_l[i])
            )
        results.append(
            SingleSimulationResult(
                id=start + i,
                survived=bool(alive_l[i]),
                survival_months=int(months_l[i]),
                final_arr=arr_l[i],
                final_cash=cash_l[i],
                final_runway=runway_l[i],
                achieved_target=arr_l[i] >= target,
                peak_arr=peak_l[i],
                lowest_cash=lowest_l[i],
                monthly_snapshots=snapshots,
            )
        )
    return results


def simulate_trial(
    levers: LeverState,
    baseline: BaselineConfig,
    trial_index: int,
    seed: Optional[int] = None,
    record_snapshots: Optional[bool] = None,
) -> SingleSimulationResult:
    if seed is None:
        seed = derive_seed(levers, baseline)
    return simulate_trials(levers, baseline, seed, trial_index, trial_index + 1, record_snapshots)[0]


def run_batch(
    levers: LeverState,
    baseline: BaselineConfig,
    runs: int,
    seed: Optional[int] = None,
    record_snapshots: bool = False,
) -> List[SingleSimulationResult]:
    """Mini batch of trials 0..runs-1, used by sensitivity sweeps and stress tests.

    Passing the same seed to batches with different levers gives them common
    random numbers, so their differences reflect the levers and not the noise.
    """
    if seed is None:
        seed = derive_seed(levers, baseline)
    return simulate_trials(levers, baseline, seed, 0, runs, record_snapshots)
