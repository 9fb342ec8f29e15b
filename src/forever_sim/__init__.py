from .models import (
    SimulationParameters,
    AccumulationParameters,
    LifetimeParameters,
    WithdrawalThresholds,
    LoanTerms,
    DEFAULTS,
    dynamic_rate,
    forever_rate,
)
from .data_structures import FundStatus
from .storm import compute_storm_period
from .engine import simulate_bridge, bridge_summary, step
from .forever import simulate_forever
from .accumulation import simulate_end_result
from .optimizer import (
    SearchConfig,
    find_minimum_total,
    find_max_burn,
    find_optimal_split,
    find_earliest_retirement,
    optimize_plan,
)
from .monte_carlo import monte_carlo_survival
from .lifetime import compute_lifetime_need
from .comparison import compare_scenarios, side_by_side
