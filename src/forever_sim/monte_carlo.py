# ============================================================
#  monte_carlo.py - Navigation fund survival under price noise
# ============================================================
import math
from typing import Optional

import numpy as np

from .data_structures import FundStatus, MonteCarloResult, PercentileBand
from .engine import YearInputs, initial_state, run_steps
from .mc_generator import PriceNoiseGenerator
from .models import SimulationParameters
from .oracle import mid_year, trend_price
from .storm import compute_storm_period

PERCENTILES = (0.10, 0.25, 0.50, 0.75, 0.90)
DEFAULT_NUM_SIMS = 200


def _percentile_index(num_sims: int, p: float) -> int:
    return min(int(math.floor(num_sims * p)), num_sims - 1)


def monte_carlo_survival(
    params: SimulationParameters,
    num_sims: int = DEFAULT_NUM_SIMS,
    seed: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
    years: Optional[int] = None,
) -> MonteCarloResult:
    """
    Re-run the navigation fund over num_sims random price paths.

    Each year's price is trend * 10^(N(0,1) * sigma), floored at
    params.support_floor_multiple * trend. Every path folds the same step
    function as simulate_bridge, including debt accrual, borrowing,
    repayment and liquidation.

    The whole noise matrix is drawn before any path is evaluated, so the
    result does not depend on path evaluation order.
    """
    if years is None:
        years = params.max_projection_years

    # ------------------------------------------------------------
    # Step 1 - Price paths
    # ------------------------------------------------------------
    calendar = [params.retirement_year + i for i in range(years)]
    trend = np.array([trend_price(params.model, mid_year(y)) for y in calendar])

    gen = PriceNoiseGenerator(num_paths=num_sims, horizon=years, seed=seed, rng=rng)
    prices = gen.price_paths(trend, params.sigma, params.support_floor_multiple)

    # ------------------------------------------------------------
    # Step 2 - Fold the state machine over each path
    # ------------------------------------------------------------
    remaining = np.zeros((num_sims, years))
    ruin_years = []

    for p in range(num_sims):
        inputs = [
            YearInputs(
                year=calendar[i],
                year_index=i,
                price=float(prices[p, i]),
                trend=float(trend[i]),
                effective_k=math.log10(prices[p, i] / trend[i]) / params.sigma,
            )
            for i in range(years)
        ]
        records, ruin_year = run_steps(initial_state(params), inputs, params)

        remaining[p, :] = [
            0.0 if r.status == FundStatus.RUIN else r.bridge_stack for r in records
        ]
        if ruin_year is not None:
            ruin_years.append(ruin_year)

    # ------------------------------------------------------------
    # Step 3 - Aggregate
    # ------------------------------------------------------------
    storm = compute_storm_period(params)
    storm_years = years if storm.never_ends else storm.storm_years
    storm_limit = params.retirement_year + storm_years

    ruin_years.sort()
    survival_count = num_sims - sum(1 for y in ruin_years if y <= storm_limit)

    ordered = np.sort(remaining, axis=0)
    idx = [_percentile_index(num_sims, q) for q in PERCENTILES]
    bands = tuple(
        PercentileBand(
            year=calendar[i],
            p10=float(ordered[idx[0], i]),
            p25=float(ordered[idx[1], i]),
            p50=float(ordered[idx[2], i]),
            p75=float(ordered[idx[3], i]),
            p90=float(ordered[idx[4], i]),
        )
        for i in range(years)
    )

    return MonteCarloResult(
        num_sims=num_sims,
        survival_probability=survival_count / num_sims,
        survival_count=survival_count,
        storm_years=storm_years,
        percentile_bands=bands,
        ruin_count=len(ruin_years),
        median_ruin_year=ruin_years[len(ruin_years) // 2] if ruin_years else None,
        ruin_years=tuple(ruin_years),
        seed=seed,
        metadata={"years": years, "support_floor_multiple": params.support_floor_multiple},
    )
