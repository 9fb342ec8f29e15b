# forever_sim/storm.py
import math

from .data_structures import StormPeriodResult
from .models import SimulationParameters, forever_rate
from .oracle import mid_year
from .scenarios import resolve_scenario_k, scenario_price


def yearly_price(params: SimulationParameters, year_index: int):
    """(year, k, scenario price) for a year offset from retirement."""
    year = params.retirement_year + year_index
    k = resolve_scenario_k(params.scenario_mode, year_index, params.initial_k)
    price = scenario_price(params.model, mid_year(year), params.sigma, k)
    return year, k, price


def burn_ratio(burn: float, value: float) -> float:
    return burn / value if value > 0 else math.inf


def compute_storm_period(params: SimulationParameters) -> StormPeriodResult:
    """
    Scan years 0..max_projection_years for the first year in which
    inflated_burn / forever_value < forever_rate(year).

    Monotone in total_stack and in (1 - bridge_split): a larger forever fund
    never ends the storm later. The optimizer's bisections depend on this.
    """
    forever_stack = params.forever_stack

    if forever_stack <= 0:
        return StormPeriodResult(storm_years=None, storm_end_year=None)

    for i in range(params.max_projection_years + 1):
        year, _, price = yearly_price(params, i)
        forever_value = forever_stack * price
        inflated_burn = params.annual_burn_usd * (1 + params.spending_growth_rate) ** i
        threshold = forever_rate(year, params.model)
        ratio = burn_ratio(inflated_burn, forever_value)

        if ratio < threshold:
            return StormPeriodResult(
                storm_years=i,
                storm_end_year=year,
                forever_value_at_end=forever_value,
                burn_at_end=inflated_burn,
                ratio_at_end=ratio,
                swr_at_end=threshold,
            )

    return StormPeriodResult(storm_years=None, storm_end_year=None)
