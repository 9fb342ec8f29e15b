# forever_sim/models/components.py
import math
from dataclasses import dataclass

from ..oracle import get_model, mid_year, years_since_genesis

FOREVER_FRACTION = 0.25  # share of expected return that can be withdrawn forever
FOREVER_FALLBACK_RATE = 0.03


# ---------- Withdrawal rate policy ----------


@dataclass(frozen=True)
class WithdrawalThresholds:
    """
    Dynamic withdrawal rate as a function of price / trend.

    Three zones: at or above high_multiple -> high_rate, at or below
    low_multiple -> low_rate, and linear interpolation in between, in two
    segments joined at fair value (multiple = 1.0).
    """

    low_multiple: float = 0.5
    high_multiple: float = 2.0
    low_rate: float = 0.01
    normal_rate: float = 0.04
    high_rate: float = 0.06

    def __post_init__(self):
        if not (0.0 < self.low_multiple < 1.0 < self.high_multiple):
            raise ValueError(
                "Thresholds must satisfy 0 < low_multiple < 1 < high_multiple, "
                f"got {self.low_multiple} / {self.high_multiple}"
            )

    def rate(self, price: float, trend: float) -> float:
        if trend <= 0:
            return self.normal_rate
        multiple = price / trend

        if multiple >= self.high_multiple:
            return self.high_rate
        if multiple <= self.low_multiple:
            return self.low_rate

        if multiple >= 1.0:
            t = (multiple - 1.0) / (self.high_multiple - 1.0)
            return self.normal_rate + t * (self.high_rate - self.normal_rate)

        t = (multiple - self.low_multiple) / (1.0 - self.low_multiple)
        return self.low_rate + t * (self.normal_rate - self.low_rate)


def dynamic_rate(price: float, trend: float, thresholds: WithdrawalThresholds) -> float:
    return thresholds.rate(price, trend)


def forever_rate(year: int, model: str = "santostasi") -> float:
    """
    Forever-safe withdrawal rate for a calendar year.

    SWR = 25% x E[return], E[return] = beta / (t_years * ln 10). Decays as
    the asset matures: ~2.87% in 2030, ~1.96% in 2040, ~1.49% in 2050.
    """
    t_years = years_since_genesis(mid_year(year))
    if t_years <= 0:
        return FOREVER_FALLBACK_RATE
    expected_return = get_model(model).beta / (t_years * math.log(10))
    return FOREVER_FRACTION * expected_return


# ---------- Asset-backed loan facility ----------


@dataclass(frozen=True)
class LoanTerms:
    """
    Loan against the navigation fund, used instead of selling below trend.

    ltv: maximum debt / collateral value before liquidation.
    repay_fraction: cap on the share of the remaining stack sold for debt
    repayment in a single year.
    dust: debt below this is written off after a repayment.
    """

    ltv: float = 0.50
    interest_rate: float = 0.05
    repay_fraction: float = 0.5
    dust: float = 0.01

    def __post_init__(self):
        if not 0.0 <= self.ltv <= 1.0:
            raise ValueError(f"Loan LTV must be within [0, 1], got {self.ltv}")
        if self.interest_rate < 0:
            raise ValueError(f"Loan interest rate must be >= 0, got {self.interest_rate}")
        if not 0.0 <= self.repay_fraction <= 1.0:
            raise ValueError(
                f"Repay fraction must be within [0, 1], got {self.repay_fraction}"
            )

    def capacity(self, collateral_value: float, debt: float) -> float:
        return collateral_value * self.ltv - debt

    def is_underwater(self, collateral_value: float, debt: float) -> bool:
        return debt > collateral_value * self.ltv
