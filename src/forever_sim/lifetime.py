# forever_sim/lifetime.py
"""
Lifetime stack need: how much of the asset covers spending from retirement
to life expectancy, with no borrowing and no dynamic rate.
"""
import math
from datetime import date
from typing import Optional

from .data_structures import LifetimeChunk, LifetimeNeedResult, LifetimeYear
from .models import LifetimeParameters, forever_rate
from .oracle import mid_year, trend_price
from .scenarios import resolve_scenario_k, scenario_price

CHUNK_YEARS = 5


def snap_storm_end(storm_end_age: int, retirement_age: int, life_expectancy: int) -> int:
    """Round the storm end up to the next CHUNK_YEARS boundary from retirement."""
    into = storm_end_age - retirement_age
    snapped = retirement_age + math.ceil(into / CHUNK_YEARS) * CHUNK_YEARS
    return min(snapped, life_expectancy)


def compute_lifetime_need(params: LifetimeParameters) -> Optional[LifetimeNeedResult]:
    retirement_age = (
        params.retirement_age if params.retirement_age is not None else params.current_age
    )
    current_year = params.current_year if params.current_year is not None else date.today().year
    years_until_retirement = retirement_age - params.current_age
    total_years = params.life_expectancy - retirement_age
    if total_years <= 0:
        return None

    rows = []
    storm_end_age = None

    for i in range(total_years):
        age = retirement_age + i
        # prices and burn both advance from today, not from retirement
        year_offset = years_until_retirement + i
        year = current_year + year_offset
        when = mid_year(year)
        k = resolve_scenario_k(params.scenario_mode, year_offset, params.initial_k)
        price = scenario_price(params.model, when, params.sigma, k)
        burn = params.annual_burn * (1 + params.burn_growth) ** year_offset

        swr = forever_rate(year, params.model)
        stack_value = params.my_stack * price
        ratio = burn / stack_value if stack_value > 0 else math.inf
        is_forever = stack_value > 0 and ratio < swr

        if is_forever and storm_end_age is None:
            storm_end_age = age

        rows.append(
            dict(
                year=year,
                age=age,
                burn=burn,
                price=price,
                trend=trend_price(params.model, when),
                stack_needed=burn / price if price > 0 else 0.0,
                effective_k=k,
                swr=swr,
                ratio=ratio,
                is_forever=is_forever,
            )
        )

    # Snap so that no reporting chunk mixes storm and forever years
    if storm_end_age is not None:
        storm_end_age = snap_storm_end(storm_end_age, retirement_age, params.life_expectancy)
        for row in rows:
            row["is_forever"] = row["age"] >= storm_end_age

    annual = tuple(LifetimeYear(**row) for row in rows)

    chunks = []
    for start in range(0, total_years, CHUNK_YEARS):
        chunk = annual[start : start + CHUNK_YEARS]
        chunks.append(
            LifetimeChunk(
                start_age=chunk[0].age,
                end_age=chunk[-1].age,
                start_year=chunk[0].year,
                end_year=chunk[-1].year,
                stack_needed=sum(d.stack_needed for d in chunk),
                avg_burn=sum(d.burn for d in chunk) / len(chunk),
                phase="forever" if all(d.is_forever for d in chunk) else "storm",
            )
        )

    total = sum(d.stack_needed for d in annual)
    storm_total = sum(d.stack_needed for d in annual if not d.is_forever)
    forever_total = sum(d.stack_needed for d in annual if d.is_forever)

    # Reverse cumulative need: first start index whose remaining need fits
    earliest_age = None
    for idx in range(total_years):
        if params.my_stack >= sum(d.stack_needed for d in annual[idx:]):
            earliest_age = retirement_age + idx
            break

    today_trend = trend_price(params.model, mid_year(current_year))

    return LifetimeNeedResult(
        annual=annual,
        chunks=tuple(chunks),
        total_stack_needed=total,
        storm_stack_needed=storm_total,
        forever_stack_needed=forever_total,
        storm_end_age=storm_end_age,
        storm_years=(
            storm_end_age - retirement_age if storm_end_age is not None else total_years
        ),
        earliest_retirement_age=earliest_age,
        today_trend_price=today_trend,
        total_usd_at_trend=total * today_trend,
        can_retire_now=params.my_stack >= total,
        surplus=params.my_stack - total,
    )
