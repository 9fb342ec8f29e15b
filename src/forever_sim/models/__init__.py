from .base import (
    SimulationParameters,
    AccumulationParameters,
    LifetimeParameters,
    DEFAULTS,
    DEFAULT_ACCUMULATION,
)
from .components import (
    WithdrawalThresholds,
    LoanTerms,
    dynamic_rate,
    forever_rate,
)
