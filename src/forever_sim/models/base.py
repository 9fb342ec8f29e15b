# forever_sim/models/base.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Optional

from ..oracle import get_model
from ..scenarios import validate_scenario
from .components import LoanTerms, WithdrawalThresholds


@dataclass(frozen=True)
class SimulationParameters:
    """
    Immutable inputs of one navigation / forever run.

    Composed of:
    - the stack and its split between navigation (bridge) and forever funds
    - spending (burn) and its growth
    - the price model and scenario
    - WithdrawalThresholds component (dynamic withdrawal rate)
    - LoanTerms component (borrowing below trend)
    """

    total_stack: float = 1.0
    bridge_split: float = 0.50
    annual_burn_usd: float = 50_000.0
    spending_growth_rate: float = 0.065
    retirement_year: int = 2030
    max_projection_years: int = 50
    model: str = "santostasi"
    sigma: float = 0.2
    scenario_mode: str = "cyclical"
    initial_k: Optional[float] = None
    thresholds: WithdrawalThresholds = field(default_factory=WithdrawalThresholds)
    loan: LoanTerms = field(default_factory=LoanTerms)
    support_floor_multiple: float = 0.45

    def __post_init__(self):
        if not 0.0 <= self.bridge_split <= 1.0:
            raise ValueError(f"bridge_split must be within [0, 1], got {self.bridge_split}")
        if self.sigma <= 0:
            raise ValueError(f"sigma must be > 0, got {self.sigma}")
        if self.total_stack < 0:
            raise ValueError(f"total_stack must be >= 0, got {self.total_stack}")
        if self.annual_burn_usd < 0:
            raise ValueError(f"annual_burn_usd must be >= 0, got {self.annual_burn_usd}")
        if self.max_projection_years < 1:
            raise ValueError(
                f"max_projection_years must be >= 1, got {self.max_projection_years}"
            )
        get_model(self.model)
        validate_scenario(self.scenario_mode)

    @property
    def bridge_stack(self) -> float:
        return self.total_stack * self.bridge_split

    @property
    def forever_stack(self) -> float:
        return self.total_stack * (1.0 - self.bridge_split)

    def with_changes(self, **changes) -> "SimulationParameters":
        return replace(self, **changes)


@dataclass(frozen=True)
class AccumulationParameters:
    """Pre-retirement stacking: monthly purchases for additional_years."""

    additional_years: int = 5
    monthly_dca_usd: float = 500.0
    income_growth_rate: float = 0.03

    def __post_init__(self):
        if self.additional_years < 0:
            raise ValueError(
                f"additional_years must be >= 0, got {self.additional_years}"
            )


@dataclass(frozen=True)
class LifetimeParameters:
    current_age: int = 40
    life_expectancy: int = 90
    annual_burn: float = 50_000.0
    burn_growth: float = 0.065
    my_stack: float = 1.0
    model: str = "santostasi"
    sigma: float = 0.2
    scenario_mode: str = "cyclical"
    initial_k: Optional[float] = None
    retirement_age: Optional[int] = None
    current_year: Optional[int] = None

    def __post_init__(self):
        get_model(self.model)
        validate_scenario(self.scenario_mode)


DEFAULTS = SimulationParameters()
DEFAULT_ACCUMULATION = AccumulationParameters()
