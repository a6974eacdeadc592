import math
from typing import Dict, List, Optional

from scenario_engine.results import Delta, PointOutputs
from scenario_engine.schemas import LEVER_NAMES, BaselineConfig, LeverState
from scenario_engine.utils.numbers import clamp, clamp01


# Runway reported when monthly burn is zero
NO_BURN_RUNWAY_MONTHS = 999.0

DELTA_KEYS = (
    "revenue_annual",
    "gross_margin_pct",
    "opex_annual",
    "burn_annual",
    "burn_monthly",
    "runway_months",
    "risk_score",
    "valuation",
)

# Levers with no term in the point model
POINT_IGNORED_LEVERS = ("funding_pressure",)

_DIRECTION_STEP = 0.1


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def run_deterministic_point(levers: LeverState, baseline: BaselineConfig) -> PointOutputs:
    """Closed-form single point estimate; every lever acts within a bounded band."""
    demand = clamp01(levers.demand_strength)
    pricing = clamp01(levers.pricing_power)
    expansion = clamp01(levers.expansion_velocity)
    cost = clamp01(levers.cost_discipline)
    hiring = clamp01(levers.hiring_intensity)
    drag = clamp01(levers.operating_drag)
    volatility = clamp01(levers.market_volatility)
    execution = clamp01(levers.execution_risk)

    demand_factor = 0.85 + 0.30 * demand        # 0.85..1.15
    price_factor = 0.90 + 0.20 * pricing        # 0.90..1.10
    expansion_factor = 0.90 + 0.25 * expansion  # 0.90..1.15
    revenue_annual = baseline.revenue_annual * demand_factor * price_factor * expansion_factor

    margin_adj = 0.06 * (pricing - 0.5) - 0.08 * (drag - 0.5)
    gross_margin_pct = clamp(baseline.gross_margin_pct + margin_adj, 0.0, 0.95)

    opex_factor = 1.0 - 0.18 * (cost - 0.5) + 0.22 * (hiring - 0.5) + 0.20 * (drag - 0.5)
    opex_annual = max(0.0, baseline.opex_annual * opex_factor)

    burn_annual = max(0.0, opex_annual - revenue_annual * gross_margin_pct)
    burn_monthly = burn_annual / 12.0
    runway_months = baseline.cash_on_hand / burn_monthly if burn_monthly > 0 else NO_BURN_RUNWAY_MONTHS

    # 0 at 6 months of runway, 1 at 24
    runway_buffer = clamp((runway_months - 6.0) / 18.0, 0.0, 1.0)
    risk_raw = (
        0.40 * volatility
        + 0.35 * execution
        + 0.20 * drag
        - 0.15 * cost
        - 0.20 * runway_buffer
    )
    risk_score = int(clamp(_round_half_up(risk_raw * 100.0), 0, 100))

    return PointOutputs(
        revenue_annual=revenue_annual,
        gross_margin_pct=gross_margin_pct,
        opex_annual=opex_annual,
        burn_annual=burn_annual,
        burn_monthly=burn_monthly,
        runway_months=runway_months,
        cash_on_hand=baseline.cash_on_hand,
        risk_score=risk_score,
        valuation=revenue_annual * baseline.revenue_multiple,
    )


def calculate_deltas(base: PointOutputs, scenario: PointOutputs) -> List[Delta]:
    deltas = []
    for key in DELTA_KEYS:
        b = float(getattr(base, key))
        s = float(getattr(scenario, key))
        delta_abs = s - b
        deltas.append(
            Delta(
                key=key,
                base=b,
                scenario=s,
                delta_abs=delta_abs,
                delta_pct=delta_abs / b if b != 0 else None,
            )
        )
    return deltas


def point_lever_directions(levers: LeverState, baseline: BaselineConfig) -> Dict[str, Optional[str]]:
    """Sign of each lever's marginal effect on the point outputs.

    A lever is nudged up by 0.1 and the change is scored as relative valuation
    gain + relative runway gain - risk gain / 100. Levers the point model does
    not read map to None.
    """
    base = run_deterministic_point(levers, baseline)
    directions: Dict[str, Optional[str]] = {}
    for name in LEVER_NAMES:
        if name in POINT_IGNORED_LEVERS:
            directions[name] = None
            continue
        current = clamp01(getattr(levers, name))
        # Nudge down instead when the lever is already at the top
        step = _DIRECTION_STEP if current + _DIRECTION_STEP <= 1.0 else -_DIRECTION_STEP
        bumped = run_deterministic_point(levers.with_lever(name, current + step), baseline)
        score = (
            (bumped.valuation - base.valuation) / max(abs(base.valuation), 1.0)
            + (bumped.runway_months - base.runway_months) / max(abs(base.runway_months), 1.0)
            - (bumped.risk_score - base.risk_score) / 100.0
        )
        if step < 0:
            score = -score
        if score > 0:
            directions[name] = "positive"
        elif score < 0:
            directions[name] = "negative"
        else:
            directions[name] = None
    return directions
