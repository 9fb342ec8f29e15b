from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Any, Optional, Tuple

from .models import SimulationParameters


class FundStatus(IntEnum):
    """Navigation fund action for one year. Codes are persisted as-is."""

    OK = 0
    BORROW = 1
    FORCED_SELL = 2
    SELLING = 3
    REPAYING = 4
    RUIN = 5


# ----------------------------------------------------------------------
# Navigation fund
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class YearRecord:
    """One simulated year of the navigation fund, after that year's action."""

    year: int
    year_index: int
    price: float
    trend: float
    multiple: float
    effective_k: float
    withdrawal_rate: float
    annual_burn: float  # required (requested) spending this year
    target_withdrawal: float
    actual_withdrawal: float
    stack_sold: float
    bridge_stack: float
    bridge_value_usd: float
    debt: float
    borrowed: float
    repaid: float
    status: FundStatus

    @classmethod
    def ruin_placeholder(cls, year: int, year_index: int) -> "YearRecord":
        """Zero-filled record for the years after ruin."""
        return cls(
            year=year,
            year_index=year_index,
            price=0.0,
            trend=0.0,
            multiple=0.0,
            effective_k=0.0,
            withdrawal_rate=0.0,
            annual_burn=0.0,
            target_withdrawal=0.0,
            actual_withdrawal=0.0,
            stack_sold=0.0,
            bridge_stack=0.0,
            bridge_value_usd=0.0,
            debt=0.0,
            borrowed=0.0,
            repaid=0.0,
            status=FundStatus.RUIN,
        )


@dataclass(frozen=True)
class StormPeriodResult:
    """
    End of the storm: first year the forever fund's burn ratio drops below
    the forever-safe rate. storm_years / storm_end_year are None when the
    storm never ends within the projection horizon.
    """

    storm_years: Optional[int]
    storm_end_year: Optional[int]
    forever_value_at_end: float = 0.0
    burn_at_end: float = 0.0
    ratio_at_end: float = 1.0
    swr_at_end: Optional[float] = None

    @property
    def never_ends(self) -> bool:
        return self.storm_years is None


@dataclass(frozen=True)
class BridgeSimulationResult:
    records: Tuple[YearRecord, ...]
    ruin_year: Optional[int]
    storm: StormPeriodResult
    survives_storm: bool

    @property
    def horizon(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class BridgeSummary:
    years_before_ruin: int
    total_stack_sold: float
    total_withdrawn: float
    avg_withdrawal_rate: float
    final_bridge_stack: float
    final_bridge_value: float
    survives_storm: bool


# ----------------------------------------------------------------------
# Forever fund
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class ForeverYearRecord:
    year: int
    year_index: int
    price: float
    forever_stack: float
    forever_value_usd: float
    annual_burn: float
    burn_to_value_ratio: float  # inf when the fund is worth nothing
    safe_withdrawal: float
    forever_rate: float
    is_inexhaustible: bool


@dataclass(frozen=True)
class ForeverProjection:
    records: Tuple[ForeverYearRecord, ...]
    inexhaustible_year: Optional[int]
    forever_stack: float


# ----------------------------------------------------------------------
# Accumulation
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class AccumulationYear:
    year: int
    year_index: int
    total_stack: float
    price: float  # year-end scenario price
    portfolio_value_usd: float
    monthly_dca: float


@dataclass(frozen=True)
class EndResult:
    accumulation: Tuple[AccumulationYear, ...]
    final_stack: float
    retirement_year: int
    bridge: BridgeSimulationResult
    forever: ForeverProjection


# ----------------------------------------------------------------------
# Optimizer
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class SplitCandidate:
    split: float
    survives: bool
    storm_years: Optional[int]
    ruin_year: Optional[int]


@dataclass(frozen=True)
class OptimalSplitResult:
    best_split: Optional[float]
    best_storm_years: Optional[int]
    candidates: Tuple[SplitCandidate, ...]

    @property
    def found(self) -> bool:
        return self.best_split is not None


@dataclass(frozen=True)
class MinimumTotalResult:
    """min_total is None when even the expanded search domain fails."""

    min_total: Optional[float]
    min_bridge: Optional[float]
    min_forever: Optional[float]
    iterations: int = 0
    monotonic: bool = True

    @property
    def found(self) -> bool:
        return self.min_total is not None


@dataclass(frozen=True)
class MaxBurnResult:
    """max_burn is None when not even the search floor survives."""

    max_burn: Optional[float]
    already_safe: bool
    iterations: int = 0
    monotonic: bool = True

    @property
    def found(self) -> bool:
        return self.max_burn is not None


@dataclass(frozen=True)
class EarliestRetirementResult:
    year: Optional[int]
    impossible: bool
    iterations: int = 0
    monotonic: bool = True


@dataclass(frozen=True)
class PlanFixes:
    """Three independent remediation estimates, each from its own search."""

    min_total_stack: Optional[float]
    additional_stack: Optional[float]
    max_burn_usd: Optional[float]
    earliest_year: Optional[int]
    year_delay: Optional[int]


@dataclass(frozen=True)
class OptimizationResult:
    status: str  # "OK" or "BUST"
    best_split: float
    storm_years: Optional[int]
    params: SimulationParameters
    bridge: BridgeSimulationResult
    forever: ForeverProjection
    all_splits: Tuple[SplitCandidate, ...]
    fixes: Optional[PlanFixes] = None

    @property
    def ok(self) -> bool:
        return self.status == "OK"


# ----------------------------------------------------------------------
# Monte Carlo
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class PercentileBand:
    year: int
    p10: float
    p25: float
    p50: float
    p75: float
    p90: float


@dataclass(frozen=True)
class MonteCarloResult:
    """
    Survival statistics of the navigation fund across simulated futures.

    percentile_bands hold the remaining bridge stack per year across paths.
    """

    num_sims: int
    survival_probability: float
    survival_count: int
    storm_years: int
    percentile_bands: Tuple[PercentileBand, ...]
    ruin_count: int
    median_ruin_year: Optional[int]
    ruin_years: Tuple[int, ...] = ()
    seed: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


# ----------------------------------------------------------------------
# Lifetime need
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class LifetimeYear:
    year: int
    age: int
    burn: float
    price: float
    trend: float
    stack_needed: float
    effective_k: float
    swr: float
    ratio: float
    is_forever: bool


@dataclass(frozen=True)
class LifetimeChunk:
    start_age: int
    end_age: int
    start_year: int
    end_year: int
    stack_needed: float
    avg_burn: float
    phase: str  # "storm" or "forever"


@dataclass(frozen=True)
class LifetimeNeedResult:
    annual: Tuple[LifetimeYear, ...]
    chunks: Tuple[LifetimeChunk, ...]
    total_stack_needed: float
    storm_stack_needed: float
    forever_stack_needed: float
    storm_end_age: Optional[int]
    storm_years: int
    earliest_retirement_age: Optional[int]
    today_trend_price: float
    total_usd_at_trend: float
    can_retire_now: bool
    surplus: float


# ----------------------------------------------------------------------
# Comparisons
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class ScenarioComparison:
    scenario: str  # display label
    mode: str
    storm_years: Optional[int]
    bridge_survives: bool
    ruin_year: Optional[int]
    min_total: Optional[float]
    summary: Optional[BridgeSummary]


@dataclass(frozen=True)
class PathOutcome:
    """One side of retire-now vs keep-stacking."""

    total_stack: float
    retirement_year: int
    storm_years: Optional[int]
    bridge_survives: bool
    ruin_year: Optional[int]
    total_withdrawn: float
    forever_value_at_30: float
    avg_withdrawal_rate: float


@dataclass(frozen=True)
class SideBySideResult:
    freedom: PathOutcome
    end_result: PathOutcome
    additional_stack: float
    freedom_years_gained: int


# ----------------------------------------------------------------------
# Experiment run container
# ----------------------------------------------------------------------


@dataclass
class RunResults:
    """
    Everything one experiment run produces, as handed to results_io.

    Only plan is required; the other analyses are optional per config.
    """

    name: str
    params: SimulationParameters
    plan: OptimizationResult
    monte_carlo: Optional[MonteCarloResult] = None
    end_result: Optional[EndResult] = None
    lifetime: Optional[LifetimeNeedResult] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
