# ============================================================
#  engine.py - Navigation (bridge) fund state machine
# ============================================================
"""
Year-by-year decumulation of the navigation fund.

Each year is one application of the pure transition function

    step(state, inputs, params) -> (new_state, YearRecord)

and a full run is a fold of step over the year inputs. Per year, in order:

  1. outstanding debt accrues interest
  2. liquidation check: debt above collateral x LTV seizes the whole stack
  3. below trend: borrow the burn if loan capacity allows, else forced sell
  4. at/above trend: sell for the burn, then sell up to repay_fraction of
     the remaining stack to pay down debt
  5. burn inflates for the next year

RUIN is terminal: every later year is a zero-filled RUIN record.
"""
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple

from .data_structures import (
    BridgeSimulationResult,
    BridgeSummary,
    FundStatus,
    StormPeriodResult,
    YearRecord,
)
from .models import SimulationParameters
from .oracle import mid_year, trend_price
from .storm import compute_storm_period, yearly_price

MIN_SIMULATION_YEARS = 30
POST_STORM_BUFFER_YEARS = 5


@dataclass(frozen=True)
class NavigationState:
    bridge_stack: float
    debt: float = 0.0
    annual_burn: float = 0.0
    ruined: bool = False


@dataclass(frozen=True)
class YearInputs:
    year: int
    year_index: int
    price: float
    trend: float
    effective_k: float = 0.0


def initial_state(params: SimulationParameters) -> NavigationState:
    return NavigationState(
        bridge_stack=params.bridge_stack,
        debt=0.0,
        annual_burn=params.annual_burn_usd,
    )


def _sell(stack: float, target_usd: float, price: float):
    """
    Sell target_usd worth of stack. Returns (sold, remaining, withdrawn, ruined);
    a sale that needs the whole stack empties it and ruins the fund.
    """
    needed = target_usd / price
    if needed >= stack:
        return stack, 0.0, stack * price, True
    return needed, stack - needed, target_usd, False


# ------------------------------------------------------------
# Transition function
# ------------------------------------------------------------


def step(
    state: NavigationState, inputs: YearInputs, params: SimulationParameters
) -> Tuple[NavigationState, YearRecord]:
    if state.ruined:
        return state, YearRecord.ruin_placeholder(inputs.year, inputs.year_index)

    loan = params.loan
    price = inputs.price
    trend = inputs.trend
    multiple = price / trend if trend > 0 else 1.0
    rate = params.thresholds.rate(price, trend)

    stack = state.bridge_stack
    burn = state.annual_burn
    bridge_value = stack * price

    def record(**kw) -> YearRecord:
        return YearRecord(
            year=inputs.year,
            year_index=inputs.year_index,
            price=price,
            trend=trend,
            multiple=multiple,
            effective_k=inputs.effective_k,
            withdrawal_rate=rate,
            annual_burn=burn,
            **kw,
        )

    # 1. Accrue interest on existing debt
    debt = state.debt * (1 + loan.interest_rate)

    # 2. Liquidation: collateral call seizes everything
    if stack > 0 and loan.is_underwater(bridge_value, debt):
        rec = record(
            target_withdrawal=0.0,
            actual_withdrawal=0.0,
            stack_sold=stack,
            bridge_stack=0.0,
            bridge_value_usd=0.0,
            debt=debt,
            borrowed=0.0,
            repaid=0.0,
            status=FundStatus.RUIN,
        )
        return NavigationState(0.0, debt, burn, ruined=True), rec

    if stack <= 0:
        rec = record(
            target_withdrawal=0.0,
            actual_withdrawal=0.0,
            stack_sold=0.0,
            bridge_stack=0.0,
            bridge_value_usd=0.0,
            debt=debt,
            borrowed=0.0,
            repaid=0.0,
            status=FundStatus.RUIN,
        )
        return NavigationState(0.0, debt, burn, ruined=True), rec

    sold = 0.0
    borrowed = 0.0
    repaid = 0.0
    ruined = False

    if multiple < 1.0:
        # 3. Below trend: borrow instead of selling at a discount
        if burn <= loan.capacity(bridge_value, debt):
            debt += burn
            borrowed = burn
            target = burn
            withdrawn = burn
            status = FundStatus.BORROW
        else:
            target = max(bridge_value * rate, burn)
            sold, stack, withdrawn, ruined = _sell(stack, target, price)
            status = FundStatus.RUIN if ruined else FundStatus.FORCED_SELL
    else:
        # 4. At/above trend: sell for expenses, then repay part of the debt
        target = max(bridge_value * rate, burn)
        sold, stack, withdrawn, ruined = _sell(stack, target, price)
        if ruined:
            status = FundStatus.RUIN
        elif debt > 0:
            repay_units = min(debt / price, stack * loan.repay_fraction)
            repaid = repay_units * price
            debt -= repaid
            if debt < loan.dust:
                debt = 0.0
            sold += repay_units
            stack -= repay_units
            status = FundStatus.REPAYING
        else:
            status = FundStatus.SELLING

    rec = record(
        target_withdrawal=target,
        actual_withdrawal=withdrawn,
        stack_sold=sold,
        bridge_stack=stack,
        bridge_value_usd=stack * price,
        debt=debt,
        borrowed=borrowed,
        repaid=repaid,
        status=status,
    )

    # 5. Inflate burn for next year
    next_burn = burn if ruined else burn * (1 + params.spending_growth_rate)
    return NavigationState(stack, debt, next_burn, ruined=ruined), rec


def run_steps(
    state: NavigationState, inputs: Iterable[YearInputs], params: SimulationParameters
) -> Tuple[List[YearRecord], Optional[int]]:
    """Fold step over inputs. Returns (records, ruin_year)."""
    records = []
    ruin_year = None
    for yi in inputs:
        state, rec = step(state, yi, params)
        if ruin_year is None and rec.status == FundStatus.RUIN:
            ruin_year = rec.year
        records.append(rec)
    return records, ruin_year


# ------------------------------------------------------------
# Scenario-driven run
# ------------------------------------------------------------


def simulation_years(storm: StormPeriodResult, params: SimulationParameters) -> int:
    if storm.never_ends:
        return params.max_projection_years
    return max(storm.storm_years + POST_STORM_BUFFER_YEARS, MIN_SIMULATION_YEARS)


def scenario_inputs(params: SimulationParameters, years: int) -> Iterator[YearInputs]:
    for i in range(years):
        year, k, price = yearly_price(params, i)
        yield YearInputs(
            year=year,
            year_index=i,
            price=price,
            trend=trend_price(params.model, mid_year(year)),
            effective_k=k,
        )


def survives(ruin_year: Optional[int], storm: StormPeriodResult) -> bool:
    if ruin_year is None:
        return True
    if storm.storm_end_year is None:
        return False
    return ruin_year > storm.storm_end_year


def simulate_bridge(
    params: SimulationParameters, storm: Optional[StormPeriodResult] = None
) -> BridgeSimulationResult:
    if storm is None:
        storm = compute_storm_period(params)
    years = simulation_years(storm, params)

    records, ruin_year = run_steps(
        initial_state(params), scenario_inputs(params, years), params
    )

    return BridgeSimulationResult(
        records=tuple(records),
        ruin_year=ruin_year,
        storm=storm,
        survives_storm=survives(ruin_year, storm),
    )


def bridge_summary(result: BridgeSimulationResult) -> Optional[BridgeSummary]:
    active = [r for r in result.records if r.status != FundStatus.RUIN]
    if not active:
        return None

    return BridgeSummary(
        years_before_ruin=len(active),
        total_stack_sold=sum(r.stack_sold for r in active),
        total_withdrawn=sum(r.actual_withdrawal for r in active),
        avg_withdrawal_rate=sum(r.withdrawal_rate for r in active) / len(active),
        final_bridge_stack=active[-1].bridge_stack,
        final_bridge_value=active[-1].bridge_value_usd,
        survives_storm=result.survives_storm,
    )
