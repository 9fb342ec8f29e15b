# forever_sim/comparison.py
from typing import List, Optional

from .accumulation import simulate_end_result
from .data_structures import (
    BridgeSimulationResult,
    ForeverProjection,
    PathOutcome,
    ScenarioComparison,
    SideBySideResult,
)
from .engine import bridge_summary, simulate_bridge
from .forever import simulate_forever
from .models import AccumulationParameters, SimulationParameters
from .optimizer import DEFAULT_SEARCH, SearchConfig, find_minimum_total
from .scenarios import SCENARIO_MODES, scenario_label

COMPARE_AT_YEAR = 30


def compare_scenarios(
    params: SimulationParameters, config: SearchConfig = DEFAULT_SEARCH
) -> List[ScenarioComparison]:
    """Storm, survival and minimum stack for every scenario mode."""
    rows = []
    for mode in SCENARIO_MODES:
        p = params.with_changes(scenario_mode=mode)
        bridge = simulate_bridge(p)
        rows.append(
            ScenarioComparison(
                scenario=scenario_label(mode),
                mode=mode,
                storm_years=bridge.storm.storm_years,
                bridge_survives=bridge.survives_storm,
                ruin_year=bridge.ruin_year,
                min_total=find_minimum_total(p, config).min_total,
                summary=bridge_summary(bridge),
            )
        )
    return rows


def _forever_value_at(forever: ForeverProjection, year_index: int) -> float:
    for r in forever.records:
        if r.year_index == year_index:
            return r.forever_value_usd
    return forever.records[-1].forever_value_usd if forever.records else 0.0


def _outcome(
    params: SimulationParameters,
    bridge: BridgeSimulationResult,
    forever: ForeverProjection,
) -> PathOutcome:
    summary = bridge_summary(bridge)
    return PathOutcome(
        total_stack=params.total_stack,
        retirement_year=params.retirement_year,
        storm_years=bridge.storm.storm_years,
        bridge_survives=bridge.survives_storm,
        ruin_year=bridge.ruin_year,
        total_withdrawn=summary.total_withdrawn if summary else 0.0,
        forever_value_at_30=_forever_value_at(forever, COMPARE_AT_YEAR),
        avg_withdrawal_rate=summary.avg_withdrawal_rate if summary else 0.0,
    )


def side_by_side(
    params: SimulationParameters,
    accumulation: AccumulationParameters,
    current_year: Optional[int] = None,
) -> SideBySideResult:
    """Retire now on the current stack vs keep stacking, then retire."""
    freedom = _outcome(params, simulate_bridge(params), simulate_forever(params))

    end = simulate_end_result(params, accumulation, current_year)
    end_params = params.with_changes(
        total_stack=end.final_stack, retirement_year=end.retirement_year
    )

    return SideBySideResult(
        freedom=freedom,
        end_result=_outcome(end_params, end.bridge, end.forever),
        additional_stack=end.final_stack - params.total_stack,
        freedom_years_gained=accumulation.additional_years,
    )
