# forever_sim/oracle.py
"""
Power-law trend oracle.

Deterministic functions of (model, date): trend price, sigma band price and
the per-model constants. Nothing here is fitted at runtime; the registry is
a read-only table of published parameter sets.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from types import MappingProxyType
from typing import Union

DateLike = Union[date, datetime]

# Genesis block timestamp
GENESIS = datetime(2009, 1, 3, tzinfo=timezone.utc)

DAYS_PER_YEAR = 365.25


@dataclass(frozen=True)
class PowerLawModel:
    """
    price = 10^log_a * t^beta

    t is days since genesis, or years when use_years is set.
    sigma is the canonical log10 deviation of price around the trend.
    """

    name: str
    beta: float
    log_a: float
    sigma: float
    use_years: bool = False


MODELS = MappingProxyType(
    {
        "santostasi": PowerLawModel(
            name="Santostasi",
            beta=5.688,
            log_a=-16.493,
            sigma=0.2,
            use_years=False,
        ),
    }
)


# ----------------------------------------------------------------------
# Registry access
# ----------------------------------------------------------------------


def get_model(model: str) -> PowerLawModel:
    params = MODELS.get(model)
    if params is None:
        raise ValueError(f"Unknown model: {model}")
    return params


def model_sigma(model: str) -> float:
    return get_model(model).sigma


# ----------------------------------------------------------------------
# Time axis
# ----------------------------------------------------------------------


def _as_datetime(d: DateLike) -> datetime:
    if isinstance(d, datetime):
        return d if d.tzinfo is not None else d.replace(tzinfo=timezone.utc)
    return datetime(d.year, d.month, d.day, tzinfo=timezone.utc)


def mid_year(year: int) -> datetime:
    """Reference date used for yearly evaluations (1 July)."""
    return datetime(year, 7, 1, tzinfo=timezone.utc)


def days_since_genesis(d: DateLike) -> float:
    return (_as_datetime(d) - GENESIS).total_seconds() / 86400.0


def years_since_genesis(d: DateLike) -> float:
    return days_since_genesis(d) / DAYS_PER_YEAR


# ----------------------------------------------------------------------
# Prices
# ----------------------------------------------------------------------


def trend_price(model: str, d: DateLike) -> float:
    params = get_model(model)
    t = years_since_genesis(d) if params.use_years else days_since_genesis(d)
    if t <= 0:
        return 0.0
    return 10.0**params.log_a * t**params.beta


def band_price(model: str, sigma: float, k: float, d: DateLike) -> float:
    """Price k sigmas (log10) away from trend."""
    return trend_price(model, d) * 10.0 ** (k * sigma)


def multiplier(current_price: float, model: str, d: DateLike) -> float:
    trend = trend_price(model, d)
    if trend <= 0:
        return 0.0
    return current_price / trend


def valuation_label(mult: float) -> str:
    if mult < 0.5:
        return "Extremely Undervalued"
    if mult < 0.75:
        return "Undervalued"
    if mult < 1.25:
        return "Fair Value"
    if mult < 2:
        return "Overvalued"
    if mult < 3:
        return "Highly Overvalued"
    return "Extremely Overvalued"


def milestone_date_for_price(target_price: float, model: str) -> datetime:
    """Date at which the trend reaches target_price (inverse of trend_price)."""
    params = get_model(model)
    t = (target_price / 10.0**params.log_a) ** (1.0 / params.beta)
    days = t * DAYS_PER_YEAR if params.use_years else t
    return GENESIS + timedelta(days=days)


def expected_return(model: str, d: DateLike) -> float:
    """
    Instantaneous expected log-return of the trend, d ln(P)/dt in 1/years,
    expressed in log10 units: beta / (t * ln 10).
    """
    t = years_since_genesis(d)
    if t <= 0:
        return 0.0
    return get_model(model).beta / (t * math.log(10))
