# ============================================================
#  optimizer.py - Plan search on top of the navigation fund
# ============================================================
"""
Bisection and grid searches over the navigation-fund simulation.

Every bisection here assumes survival is monotone in the searched input
(more stack, lower burn and later retirement never hurt). Searches are an
approximation bounded by SearchConfig tolerances and iteration caps. With
check_monotonic enabled, the found bound is re-probed on its feasible side;
a probe that fails means the assumption broke for these parameters, so the
result is flagged (monotonic=False) and a RuntimeWarning is issued.
"""
import warnings
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Tuple

from .data_structures import (
    EarliestRetirementResult,
    MaxBurnResult,
    MinimumTotalResult,
    OptimalSplitResult,
    OptimizationResult,
    PlanFixes,
    SplitCandidate,
)
from .engine import simulate_bridge
from .forever import simulate_forever
from .models import SimulationParameters


@dataclass(frozen=True)
class SearchConfig:
    # Minimum total stack (bisection)
    stack_low: float = 0.001
    stack_high: float = 100.0
    stack_expansion: float = 10.0
    stack_tolerance: float = 0.001
    stack_max_iterations: int = 50

    # Maximum burn (bisection)
    burn_floor: float = 1000.0
    burn_tolerance: float = 500.0
    burn_max_iterations: int = 30

    # Earliest retirement year (bisection over grid searches)
    year_window: int = 30
    year_max_iterations: int = 20

    # Split grid: 10% .. 90% in 5-point steps
    split_grid: Tuple[float, ...] = tuple(p / 100 for p in range(10, 91, 5))
    fallback_split: float = 0.50

    # Monotonicity probes on the feasible side of each found bound
    check_monotonic: bool = True
    stack_probe_factors: Tuple[float, ...] = (1.5, 2.0)
    burn_probe_factors: Tuple[float, ...] = (0.5, 0.75)
    year_probe_offsets: Tuple[int, ...] = (1, 5)

    def __post_init__(self):
        if not self.split_grid:
            raise ValueError("split_grid must not be empty")
        if any(not 0.0 <= s <= 1.0 for s in self.split_grid):
            raise ValueError(f"split_grid values must be within [0, 1]: {self.split_grid}")
        if self.stack_low <= 0 or self.stack_high <= self.stack_low:
            raise ValueError(
                f"Invalid stack search bounds: [{self.stack_low}, {self.stack_high}]"
            )


DEFAULT_SEARCH = SearchConfig()


def _survives(params: SimulationParameters) -> bool:
    return simulate_bridge(params).survives_storm


def _probe_monotonic(
    name: str,
    found,
    probes: Iterable,
    feasible: Callable[[object], bool],
) -> bool:
    failed = [p for p in probes if not feasible(p)]
    if failed:
        warnings.warn(
            f"{name}: survival is not monotone around {found} "
            f"(infeasible probes: {failed}); search result is unreliable",
            RuntimeWarning,
            stacklevel=3,
        )
        return False
    return True


# ------------------------------------------------------------
# Minimum total stack
# ------------------------------------------------------------


def find_minimum_total(
    params: SimulationParameters, config: SearchConfig = DEFAULT_SEARCH
) -> MinimumTotalResult:
    """Smallest total stack for which the navigation fund survives the storm."""

    def feasible(total: float) -> bool:
        return _survives(params.with_changes(total_stack=total))

    lo = config.stack_low
    hi = config.stack_high

    if not feasible(hi):
        hi = config.stack_high * config.stack_expansion
        if not feasible(hi):
            return MinimumTotalResult(min_total=None, min_bridge=None, min_forever=None)

    iterations = 0
    while hi - lo > config.stack_tolerance and iterations < config.stack_max_iterations:
        mid = (lo + hi) / 2
        if feasible(mid):
            hi = mid
        else:
            lo = mid
        iterations += 1

    monotonic = True
    if config.check_monotonic:
        monotonic = _probe_monotonic(
            "find_minimum_total",
            hi,
            [hi * f for f in config.stack_probe_factors],
            feasible,
        )

    return MinimumTotalResult(
        min_total=hi,
        min_bridge=hi * params.bridge_split,
        min_forever=hi * (1 - params.bridge_split),
        iterations=iterations,
        monotonic=monotonic,
    )


# ------------------------------------------------------------
# Maximum sustainable burn
# ------------------------------------------------------------


def find_max_burn(
    params: SimulationParameters, config: SearchConfig = DEFAULT_SEARCH
) -> MaxBurnResult:
    """Highest annual burn for which the navigation fund survives the storm."""

    def feasible(burn: float) -> bool:
        return _survives(params.with_changes(annual_burn_usd=burn))

    if _survives(params):
        return MaxBurnResult(max_burn=params.annual_burn_usd, already_safe=True)

    lo = config.burn_floor
    hi = params.annual_burn_usd

    if lo >= hi or not feasible(lo):
        return MaxBurnResult(max_burn=None, already_safe=False)

    iterations = 0
    while hi - lo > config.burn_tolerance and iterations < config.burn_max_iterations:
        mid = round((lo + hi) / 2)
        if feasible(mid):
            lo = mid
        else:
            hi = mid
        iterations += 1

    monotonic = True
    if config.check_monotonic:
        monotonic = _probe_monotonic(
            "find_max_burn",
            lo,
            [lo * f for f in config.burn_probe_factors],
            feasible,
        )

    return MaxBurnResult(
        max_burn=lo, already_safe=False, iterations=iterations, monotonic=monotonic
    )


# ------------------------------------------------------------
# Optimal split (grid search)
# ------------------------------------------------------------


def find_optimal_split(
    params: SimulationParameters, config: SearchConfig = DEFAULT_SEARCH
) -> OptimalSplitResult:
    """
    Try every split on the grid; among the surviving ones whose storm ends
    within the projection pick the shortest storm (earliest
    self-sufficiency), the first one on ties.
    """
    best_split = None
    best_storm = None
    candidates = []

    for split in config.split_grid:
        result = simulate_bridge(params.with_changes(bridge_split=split))
        storm_years = result.storm.storm_years
        candidates.append(
            SplitCandidate(
                split=split,
                survives=result.survives_storm,
                storm_years=storm_years,
                ruin_year=result.ruin_year,
            )
        )

        # Surviving splits whose storm never ends have no length to rank; skip them
        if (
            result.survives_storm
            and storm_years is not None
            and (best_storm is None or storm_years < best_storm)
        ):
            best_storm = storm_years
            best_split = split

    return OptimalSplitResult(
        best_split=best_split,
        best_storm_years=best_storm,
        candidates=tuple(candidates),
    )


# ------------------------------------------------------------
# Earliest viable retirement year
# ------------------------------------------------------------


def find_earliest_retirement(
    params: SimulationParameters,
    config: SearchConfig = DEFAULT_SEARCH,
    earliest_year: Optional[int] = None,
) -> EarliestRetirementResult:
    """
    Earliest retirement year in [earliest_year, earliest_year + year_window]
    for which some split on the grid survives. earliest_year defaults to the
    plan's own retirement year.
    """

    def feasible(year: int) -> bool:
        return find_optimal_split(params.with_changes(retirement_year=year), config).found

    start = params.retirement_year if earliest_year is None else earliest_year
    lo = start
    hi = start + config.year_window

    if not feasible(hi):
        return EarliestRetirementResult(year=None, impossible=True)

    iterations = 0
    while lo < hi and iterations < config.year_max_iterations:
        mid = (lo + hi) // 2
        if feasible(mid):
            hi = mid
        else:
            lo = mid + 1
        iterations += 1

    monotonic = True
    if config.check_monotonic:
        limit = start + config.year_window
        probes = sorted({min(hi + d, limit) for d in config.year_probe_offsets})
        monotonic = _probe_monotonic("find_earliest_retirement", hi, probes, feasible)

    return EarliestRetirementResult(
        year=hi, impossible=False, iterations=iterations, monotonic=monotonic
    )


# ------------------------------------------------------------
# Auto-plan
# ------------------------------------------------------------


def optimize_plan(
    params: SimulationParameters,
    config: SearchConfig = DEFAULT_SEARCH,
    earliest_year: Optional[int] = None,
) -> OptimizationResult:
    """
    Best split for the given stack, burn and retirement year.

    If no split survives, fall back to config.fallback_split for display and
    attach three independent fixes: stack needed, burn that is safe, and the
    earliest year that works. Each comes from its own search; they are
    alternatives, not one combined fix.
    """
    optimal = find_optimal_split(params, config)

    if optimal.found:
        best = params.with_changes(bridge_split=optimal.best_split)
        return OptimizationResult(
            status="OK",
            best_split=optimal.best_split,
            storm_years=optimal.best_storm_years,
            params=best,
            bridge=simulate_bridge(best),
            forever=simulate_forever(best),
            all_splits=optimal.candidates,
        )

    fallback = params.with_changes(bridge_split=config.fallback_split)
    min_stack = find_minimum_total(fallback, config)
    max_burn = find_max_burn(fallback, config)
    earliest = find_earliest_retirement(params, config, earliest_year)

    bridge = simulate_bridge(fallback)

    fixes = PlanFixes(
        min_total_stack=min_stack.min_total,
        additional_stack=(
            min_stack.min_total - params.total_stack if min_stack.found else None
        ),
        max_burn_usd=max_burn.max_burn,
        earliest_year=earliest.year,
        year_delay=(
            earliest.year - params.retirement_year if earliest.year is not None else None
        ),
    )

    return OptimizationResult(
        status="BUST",
        best_split=config.fallback_split,
        storm_years=bridge.storm.storm_years,
        params=fallback,
        bridge=bridge,
        forever=simulate_forever(fallback),
        all_splits=optimal.candidates,
        fixes=fixes,
    )
