# forever_sim/accumulation.py
from datetime import date, datetime, timezone
from typing import Optional

from .data_structures import AccumulationYear, EndResult
from .engine import simulate_bridge
from .forever import simulate_forever
from .models import AccumulationParameters, SimulationParameters
from .scenarios import resolve_scenario_k, scenario_price


def simulate_end_result(
    params: SimulationParameters,
    accumulation: AccumulationParameters,
    current_year: Optional[int] = None,
) -> EndResult:
    """
    Keep stacking for accumulation.additional_years, then retire.

    Each month buys monthly_dca worth of stack at that month's scenario
    price; the monthly amount grows with income once per year. Retirement
    starts the year after the last accumulation year, with the accumulated
    stack split and simulated as usual.
    """
    if current_year is None:
        current_year = date.today().year

    accumulated = params.total_stack
    monthly_dca = accumulation.monthly_dca_usd
    years = []

    for i in range(accumulation.additional_years):
        year = current_year + i

        for m in range(12):
            when = datetime(year, m + 1, 15, tzinfo=timezone.utc)
            k = resolve_scenario_k(params.scenario_mode, i + m / 12, params.initial_k)
            price = scenario_price(params.model, when, params.sigma, k)
            if price > 0:
                accumulated += monthly_dca / price

        year_end = datetime(year, 12, 31, tzinfo=timezone.utc)
        year_end_k = resolve_scenario_k(params.scenario_mode, i + 1, params.initial_k)
        year_end_price = scenario_price(params.model, year_end, params.sigma, year_end_k)

        years.append(
            AccumulationYear(
                year=year,
                year_index=i,
                total_stack=accumulated,
                price=year_end_price,
                portfolio_value_usd=accumulated * year_end_price,
                monthly_dca=monthly_dca,
            )
        )

        monthly_dca *= 1 + accumulation.income_growth_rate

    retirement_year = current_year + accumulation.additional_years
    retirement_params = params.with_changes(
        total_stack=accumulated, retirement_year=retirement_year
    )

    return EndResult(
        accumulation=tuple(years),
        final_stack=accumulated,
        retirement_year=retirement_year,
        bridge=simulate_bridge(retirement_params),
        forever=simulate_forever(retirement_params),
    )
