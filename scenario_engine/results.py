"""Immutable output records produced by the engine."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple, Union


class RiskClassification(str, Enum):
    ROBUST = "Robust"
    STABLE = "Stable"
    FRAGILE = "Fragile"
    CRITICAL = "Critical"


@dataclass(frozen=True)
class MonthlySnapshot:
    month: int
    arr: float
    cash: float
    burn: float
    runway: float
    growth_rate: float


@dataclass(frozen=True)
class SingleSimulationResult:
    id: int
    survived: bool
    survival_months: int
    final_arr: float
    final_cash: float
    final_runway: float
    achieved_target: bool
    peak_arr: float
    lowest_cash: float
    monthly_snapshots: Optional[Tuple[MonthlySnapshot, ...]] = None

    def to_dict(self, include_snapshots: bool = False) -> Dict[str, object]:
        payload = asdict(self)
        if not include_snapshots:
            payload.pop("monthly_snapshots")
        return payload


@dataclass(frozen=True)
class DistributionStats:
    mean: float
    median: float
    std_dev: float
    min: float
    max: float
    skewness: float


@dataclass(frozen=True)
class PercentileSet:
    p5: float
    p10: float
    p25: float
    p50: float
    p75: float
    p90: float
    p95: float

    def as_tuple(self) -> Tuple[float, ...]:
        return (self.p5, self.p10, self.p25, self.p50, self.p75, self.p90, self.p95)


@dataclass(frozen=True)
class HistogramBucket:
    min: float
    max: float
    count: int
    frequency: float


@dataclass(frozen=True)
class ConfidenceBand:
    month: int
    p10: float
    p25: float
    p50: float
    p75: float
    p90: float


@dataclass(frozen=True)
class SensitivityFactor:
    lever: str
    label: str
    impact: float       # -1..1
    direction: str      # positive | negative


@dataclass(frozen=True)
class MonteCarloResult:
    # Meta
    iterations: int
    horizon_months: int
    seed: int
    execution_time_ms: float = field(compare=False)

    # Survival
    survival_rate: float
    survival_by_month: Tuple[float, ...]
    median_survival_months: float

    # ARR
    arr_distribution: DistributionStats
    arr_histogram: Tuple[HistogramBucket, ...]
    arr_percentiles: PercentileSet
    arr_confidence_bands: Tuple[ConfidenceBand, ...]

    # Cash
    cash_distribution: DistributionStats
    cash_percentiles: PercentileSet

    # Runway
    runway_distribution: DistributionStats
    runway_percentiles: PercentileSet

    # Real trials at the P95 / P50 / P5 rank of final ARR
    best_case: SingleSimulationResult
    median_case: SingleSimulationResult
    worst_case: SingleSimulationResult

    sensitivity_factors: Tuple[SensitivityFactor, ...]
    all_simulations: Tuple[SingleSimulationResult, ...] = field(repr=False)

    computed: bool = True

    def to_dict(self, include_trials: bool = False) -> Dict[str, object]:
        """JSON-ready mapping. The trial set is large, so it is opt-in."""
        payload: Dict[str, object] = {
            "computed": True,
            "iterations": self.iterations,
            "horizon_months": self.horizon_months,
            "seed": self.seed,
            "execution_time_ms": self.execution_time_ms,
            "survival_rate": self.survival_rate,
            "survival_by_month": list(self.survival_by_month),
            "median_survival_months": self.median_survival_months,
            "arr_distribution": asdict(self.arr_distribution),
            "arr_histogram": [asdict(b) for b in self.arr_histogram],
            "arr_percentiles": asdict(self.arr_percentiles),
            "arr_confidence_bands": [asdict(b) for b in self.arr_confidence_bands],
            "cash_distribution": asdict(self.cash_distribution),
            "cash_percentiles": asdict(self.cash_percentiles),
            "runway_distribution": asdict(self.runway_distribution),
            "runway_percentiles": asdict(self.runway_percentiles),
            "best_case": self.best_case.to_dict(),
            "median_case": self.median_case.to_dict(),
            "worst_case": self.worst_case.to_dict(),
            "sensitivity_factors": [asdict(f) for f in self.sensitivity_factors],
        }
        if include_trials:
            payload["all_simulations"] = [s.to_dict() for s in self.all_simulations]
        return payload


@dataclass(frozen=True)
class SimulationNotComputed:
    reason: str
    kind: str = "missing_simulation"   # missing_simulation | cancelled
    iterations_completed: int = 0
    computed: bool = False

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


SimulationOutcome = Union[MonteCarloResult, SimulationNotComputed]


# ── Risk ──

@dataclass(frozen=True)
class RiskDrivers:
    market_volatility_impact: float = 0.0
    burn_rate_impact: float = 0.0
    churn_impact: float = 0.0
    growth_variance_impact: float = 0.0
    capital_structure_impact: float = 0.0


@dataclass(frozen=True)
class RiskProfile:
    survival_probability: float
    failure_probability: float
    value_at_risk_95: float
    tail_risk_score: float
    volatility_index: float
    burn_fragility_index: float
    risk_drivers: RiskDrivers
    composite_score: float
    classification: RiskClassification
    iteration_count: int
    computed: bool = True

    def to_dict(self) -> Dict[str, object]:
        payload = asdict(self)
        payload["classification"] = self.classification.value
        return payload


@dataclass(frozen=True)
class RiskNotComputed:
    reason: str
    computed: bool = False

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


RiskResult = Union[RiskProfile, RiskNotComputed]


# ── Point engine ──

@dataclass(frozen=True)
class PointOutputs:
    revenue_annual: float
    gross_margin_pct: float
    opex_annual: float
    burn_annual: float
    burn_monthly: float
    runway_months: float
    cash_on_hand: float
    risk_score: int
    valuation: float

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


@dataclass(frozen=True)
class Delta:
    key: str
    base: float
    scenario: float
    delta_abs: float
    delta_pct: Optional[float]


# ── Sensitivity ──

@dataclass(frozen=True)
class ElasticityResult:
    variable: str
    label: str
    delta_survival: float
    delta_ev: float
    delta_runway: float
    elasticity_score: float  # 0..1, normalised to the strongest lever
    direction: str


@dataclass(frozen=True)
class TornadoBar:
    variable: str
    label: str
    low_survival: float
    high_survival: float
    low_ev: float
    high_ev: float
    spread: float


@dataclass(frozen=True)
class SensitivityProfile:
    elasticities: Tuple[ElasticityResult, ...]
    tornado: Tuple[TornadoBar, ...]
    computed: bool = True

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


@dataclass(frozen=True)
class SensitivityNotComputed:
    reason: str
    computed: bool = False

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


@dataclass(frozen=True)
class ShockResult:
    shock_intensity_pct: float
    survival_probability: float
    median_ev: float
    median_runway: float
    failure_probability: float
    classification: RiskClassification


# ── Stress ──

@dataclass(frozen=True)
class ShockedBatchResult:
    survival_rate: float
    median_arr: float
    median_runway: float
    median_burn: float
    churn_rate: float
    survival_by_month: Tuple[float, ...]
    classification: RiskClassification


@dataclass(frozen=True)
class TransmissionNode:
    id: str
    label: str
    baseline: float
    shocked: float
    delta: float
    delta_pct: float
    unit: str
    direction: str   # up | down | neutral
    severity: str    # low | medium | high


@dataclass(frozen=True)
class RiskIndexComponents:
    survival_elasticity: float
    runway_elasticity: float
    variance_dispersion: float
    debt_sensitivity: float


@dataclass(frozen=True)
class RiskIndexResult:
    score: float                # 0..1 composite
    band: str                   # Low | Moderate | Elevated | Critical
    reasons: Tuple[str, ...]
    components: RiskIndexComponents

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


@dataclass(frozen=True)
class StressTestResult:
    sigma: float
    baseline: ShockedBatchResult
    shocked: ShockedBatchResult
    transmission: Tuple[TransmissionNode, ...]
    risk_index: RiskIndexResult

    def to_dict(self) -> Dict[str, object]:
        payload = asdict(self)
        payload["baseline"]["classification"] = self.baseline.classification.value
        payload["shocked"]["classification"] = self.shocked.classification.value
        return payload
