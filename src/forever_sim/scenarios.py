# forever_sim/scenarios.py
"""
Scenario resolver: turns a scenario mode + elapsed years into a deviation k
(in sigmas) and a concrete simulated price.
"""
from __future__ import annotations

import math
from types import MappingProxyType
from typing import Optional

from .oracle import DateLike, band_price, trend_price

SMOOTH_TREND = "smooth_trend"
SMOOTH_BEAR = "smooth_bear"
SMOOTH_DEEP_BEAR = "smooth_deep_bear"
CYCLICAL = "cyclical"
CYCLICAL_BEAR = "cyclical_bear"

SCENARIO_MODES = MappingProxyType(
    {
        SMOOTH_TREND: "Smooth Trend",
        SMOOTH_BEAR: "Bear (-1σ)",
        SMOOTH_DEEP_BEAR: "Deep Bear (-2σ)",
        CYCLICAL: "Cyclical (±1σ)",
        CYCLICAL_BEAR: "Bear Bias Cycles",
    }
)

# Fixed deviations for the smooth scenarios
_FIXED_K = {SMOOTH_TREND: 0.0, SMOOTH_BEAR: -1.0, SMOOTH_DEEP_BEAR: -2.0}

# Cycle shape
BASE_PERIOD_YEARS = 4.0
PERIOD_GROWTH = 0.02  # cycle length grows 2% per elapsed year
BEAR_BIAS = 0.3  # sin(x) < 0.3 about 60% of the time


def scenario_label(mode: str) -> str:
    return SCENARIO_MODES.get(mode, mode)


def validate_scenario(mode: str) -> str:
    if mode not in SCENARIO_MODES:
        raise ValueError(f"Unknown scenario mode: {mode}")
    return mode


def cyclical_sigma_k(
    years_from_start: float,
    amplitude: float = 1.0,
    bear_bias: float = 0.0,
    initial_k: Optional[float] = None,
    base_period: float = BASE_PERIOD_YEARS,
    period_growth: float = PERIOD_GROWTH,
) -> float:
    """
    Boom/bust wave around the trend with gradually lengthening periods.

    The instantaneous period is base_period * (1 + period_growth * t), so the
    accumulated phase is the integral of 2*pi / period. When initial_k is
    given the wave starts at that deviation (clipped to the wave's range).
    """
    t = max(years_from_start, 0.0)
    if period_growth > 0:
        phase = (2 * math.pi / (base_period * period_growth)) * math.log1p(
            period_growth * t
        )
    else:
        phase = 2 * math.pi * t / base_period

    phase0 = 0.0
    if initial_k is not None and amplitude > 0:
        s = (initial_k + bear_bias) / amplitude
        phase0 = math.asin(min(max(s, -1.0), 1.0))

    return amplitude * math.sin(phase + phase0) - bear_bias


def resolve_scenario_k(
    scenario_mode: str, year_offset: float, initial_k: Optional[float] = None
) -> float:
    if scenario_mode in _FIXED_K:
        return _FIXED_K[scenario_mode]
    if scenario_mode == CYCLICAL:
        return cyclical_sigma_k(year_offset, initial_k=initial_k)
    if scenario_mode == CYCLICAL_BEAR:
        return cyclical_sigma_k(year_offset, bear_bias=BEAR_BIAS, initial_k=initial_k)
    raise ValueError(f"Unknown scenario mode: {scenario_mode}")


def scenario_price(model: str, d: DateLike, sigma: float, k: float) -> float:
    return band_price(model, sigma, k, d)


def current_sigma_k(model: str, sigma: float, price: float, d: DateLike) -> Optional[float]:
    """Deviation (in sigmas) implied by an observed price, None if undefined."""
    trend = trend_price(model, d)
    if trend <= 0 or price <= 0 or sigma <= 0:
        return None
    return math.log10(price / trend) / sigma
