# forever_sim/forever.py
from .data_structures import ForeverProjection, ForeverYearRecord
from .models import SimulationParameters, forever_rate
from .storm import burn_ratio, yearly_price


def simulate_forever(params: SimulationParameters) -> ForeverProjection:
    """
    Read-only projection of the forever fund against the inflated burn.

    Nothing is ever sold from the forever fund here; the projection is for
    display and cross-checking the storm period.
    """
    forever_stack = params.forever_stack
    records = []
    inexhaustible_year = None

    for i in range(params.max_projection_years + 1):
        year, _, price = yearly_price(params, i)
        forever_value = forever_stack * price
        inflated_burn = params.annual_burn_usd * (1 + params.spending_growth_rate) ** i
        threshold = forever_rate(year, params.model)
        ratio = burn_ratio(inflated_burn, forever_value)
        inexhaustible = ratio < threshold

        if inexhaustible and inexhaustible_year is None:
            inexhaustible_year = year

        records.append(
            ForeverYearRecord(
                year=year,
                year_index=i,
                price=price,
                forever_stack=forever_stack,
                forever_value_usd=forever_value,
                annual_burn=inflated_burn,
                burn_to_value_ratio=ratio,
                safe_withdrawal=forever_value * threshold,
                forever_rate=threshold,
                is_inexhaustible=inexhaustible,
            )
        )

    return ForeverProjection(
        records=tuple(records),
        inexhaustible_year=inexhaustible_year,
        forever_stack=forever_stack,
    )
