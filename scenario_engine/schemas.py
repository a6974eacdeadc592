from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from scenario_engine.config import DEFAULT_HORIZON_MONTHS, DEFAULT_ITERATIONS, MAX_ITERATIONS


LEVER_NAMES = (
    "demand_strength",
    "pricing_power",
    "expansion_velocity",
    "cost_discipline",
    "hiring_intensity",
    "operating_drag",
    "market_volatility",
    "execution_risk",
    "funding_pressure",
)

LEVER_LABELS = {
    "demand_strength": "Demand Strength",
    "pricing_power": "Pricing Power",
    "expansion_velocity": "Expansion Velocity",
    "cost_discipline": "Cost Discipline",
    "hiring_intensity": "Hiring Intensity",
    "operating_drag": "Operating Drag",
    "market_volatility": "Market Volatility",
    "execution_risk": "Execution Risk",
    "funding_pressure": "Funding Pressure",
}


class LeverState(BaseModel):
    """Business levers on the 0..1 scale (0.5 = neutral).

    Values outside [0, 1] are accepted here and clamped by the engine.
    """

    model_config = ConfigDict(frozen=True)

    # Growth
    demand_strength: float = 0.5
    pricing_power: float = 0.5
    expansion_velocity: float = 0.5
    # Efficiency
    cost_discipline: float = 0.5
    hiring_intensity: float = 0.5
    operating_drag: float = 0.5
    # Risk
    market_volatility: float = 0.5
    execution_risk: float = 0.5
    funding_pressure: float = 0.5

    def with_lever(self, name: str, value: float) -> "LeverState":
        return self.model_copy(update={name: value})


class BaselineConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    revenue_annual: float = 2_800_000.0   # starting ARR
    gross_margin_pct: float = 0.75        # 0..1
    opex_annual: float = 2_800_000.0
    cash_on_hand: float = 3_800_000.0
    revenue_multiple: float = 3.5
    horizon_months: int = DEFAULT_HORIZON_MONTHS
    iterations: int = DEFAULT_ITERATIONS
    record_snapshots: bool = True

    # Explicit seed override; None = derive from the full configuration
    seed: Optional[int] = None

    @field_validator("revenue_annual", "opex_annual", "cash_on_hand")
    @classmethod
    def non_negative_money(cls, v, info):
        if v < 0:
            raise ValueError(f"{info.field_name} must be >= 0")
        return v

    @field_validator("gross_margin_pct")
    @classmethod
    def margin_range(cls, v):
        if v < 0 or v > 1:
            raise ValueError("gross_margin_pct must be between 0 and 1")
        return v

    @field_validator("revenue_multiple")
    @classmethod
    def multiple_positive(cls, v):
        if v <= 0:
            raise ValueError("revenue_multiple must be > 0")
        return v

    @field_validator("horizon_months")
    @classmethod
    def horizon_range(cls, v):
        if v < 1 or v > 120:
            raise ValueError("horizon_months must be between 1 and 120")
        return v

    @field_validator("iterations")
    @classmethod
    def iterations_range(cls, v):
        # 0 is allowed on purpose: the engine reports it as a missing simulation
        if v < 0 or v > MAX_ITERATIONS:
            raise ValueError(f"iterations must be between 0 and {MAX_ITERATIONS}")
        return v

    @field_validator("seed")
    @classmethod
    def seed_non_negative(cls, v):
        if v is None:
            return v
        if v < 0:
            raise ValueError("seed must be >= 0")
        return v


# ── Request bodies for the HTTP surface ──

class SimulationRequest(BaseModel):
    levers: LeverState = Field(default_factory=LeverState)
    baseline: BaselineConfig = Field(default_factory=BaselineConfig)
    sensitivity_mode: str = "assigned"  # assigned | elasticity

    @field_validator("sensitivity_mode")
    @classmethod
    def valid_sensitivity_mode(cls, v):
        vv = str(v).lower().strip()
        if vv not in {"assigned", "elasticity"}:
            raise ValueError("sensitivity_mode must be one of: assigned, elasticity")
        return vv


class RiskProfileRequest(SimulationRequest):
    ev_multiple: Optional[float] = None

    @field_validator("ev_multiple")
    @classmethod
    def ev_multiple_positive(cls, v):
        if v is None:
            return v
        if v <= 0:
            raise ValueError("ev_multiple must be > 0")
        return v


class PointRequest(BaseModel):
    levers: LeverState = Field(default_factory=LeverState)
    baseline: BaselineConfig = Field(default_factory=BaselineConfig)


class DeltaRequest(BaseModel):
    base_levers: LeverState = Field(default_factory=LeverState)
    scenario_levers: LeverState
    baseline: BaselineConfig = Field(default_factory=BaselineConfig)


class StressRequest(BaseModel):
    levers: LeverState = Field(default_factory=LeverState)
    baseline: BaselineConfig = Field(default_factory=BaselineConfig)
    sigma: float = 1.0
    runs: int = 200

    @field_validator("sigma")
    @classmethod
    def sigma_range(cls, v):
        if v < 0 or v > 3:
            raise ValueError("sigma must be between 0 and 3")
        return v

    @field_validator("runs")
    @classmethod
    def runs_range(cls, v):
        if v < 1 or v > 5000:
            raise ValueError("runs must be between 1 and 5000")
        return v
