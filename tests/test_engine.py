import pytest
from forever_sim.data_structures import FundStatus
from forever_sim.engine import (
    MIN_SIMULATION_YEARS,
    NavigationState,
    YearInputs,
    bridge_summary,
    initial_state,
    run_steps,
    simulate_bridge,
    step,
)
from forever_sim.models import LoanTerms, SimulationParameters
from forever_sim.scenarios import SCENARIO_MODES


@pytest.fixture
def params():
    # bridge stack = 1.0
    return SimulationParameters(
        total_stack=2.0,
        bridge_split=0.5,
        annual_burn_usd=10_000.0,
        spending_growth_rate=0.10,
        scenario_mode="smooth_trend",
    )


def inputs_at(price, trend=100_000.0, year=2030, i=0):
    return YearInputs(year=year, year_index=i, price=price, trend=trend)


def test_initial_state(params):
    s = initial_state(params)
    assert s.bridge_stack == pytest.approx(1.0)
    assert s.debt == 0.0
    assert s.annual_burn == 10_000.0
    assert not s.ruined


def test_selling_at_trend(params):
    state = NavigationState(bridge_stack=1.0, debt=0.0, annual_burn=10_000.0)
    new, rec = step(state, inputs_at(100_000.0), params)

    # 4% of 100k = 4k < burn, so the burn is sold: 0.1 units
    assert rec.status == FundStatus.SELLING
    assert rec.withdrawal_rate == 0.04
    assert rec.target_withdrawal == pytest.approx(10_000.0)
    assert rec.stack_sold == pytest.approx(0.1)
    assert new.bridge_stack == pytest.approx(0.9)
    assert new.annual_burn == pytest.approx(11_000.0)
    assert new.debt == 0.0


def test_selling_dynamic_rate_above_burn(params):
    state = NavigationState(bridge_stack=1.0, annual_burn=10_000.0)
    # multiple 3.0 -> 6% of 300k = 18k > burn
    new, rec = step(state, inputs_at(300_000.0), params)
    assert rec.status == FundStatus.SELLING
    assert rec.actual_withdrawal == pytest.approx(18_000.0)
    assert new.bridge_stack == pytest.approx(0.94)


def test_borrow_below_trend(params):
    state = NavigationState(bridge_stack=1.0, annual_burn=10_000.0)
    new, rec = step(state, inputs_at(80_000.0), params)

    assert rec.status == FundStatus.BORROW
    assert rec.borrowed == pytest.approx(10_000.0)
    assert rec.stack_sold == 0.0
    assert new.bridge_stack == pytest.approx(1.0)
    assert new.debt == pytest.approx(10_000.0)

    # Interest accrues before the next borrow
    new2, rec2 = step(new, inputs_at(80_000.0, year=2031, i=1), params)
    assert rec2.status == FundStatus.BORROW
    assert new2.debt == pytest.approx(10_000.0 * 1.05 + 11_000.0)


def test_forced_sell_when_capacity_exhausted(params):
    state = NavigationState(bridge_stack=1.0, debt=35_000.0, annual_burn=10_000.0)
    new, rec = step(state, inputs_at(80_000.0), params)

    # debt 36,750 after interest; capacity 40,000 - 36,750 < burn
    # rate at 0.8x = 2.8%, 2,240 < burn -> sell 10k / 80k = 0.125
    assert rec.status == FundStatus.FORCED_SELL
    assert rec.withdrawal_rate == pytest.approx(0.028)
    assert rec.stack_sold == pytest.approx(0.125)
    assert new.bridge_stack == pytest.approx(0.875)
    assert new.debt == pytest.approx(36_750.0)


def test_liquidation_is_ruin(params):
    state = NavigationState(bridge_stack=1.0, debt=39_000.0, annual_burn=10_000.0)
    new, rec = step(state, inputs_at(80_000.0), params)

    # 40,950 > 80k * 0.5
    assert rec.status == FundStatus.RUIN
    assert rec.stack_sold == pytest.approx(1.0)
    assert rec.bridge_stack == 0.0
    assert new.ruined
    assert new.bridge_stack == 0.0


def test_full_repayment(params):
    state = NavigationState(bridge_stack=1.0, debt=20_000.0, annual_burn=10_000.0)
    new, rec = step(state, inputs_at(100_000.0), params)

    # sell 0.1 for burn, then 21,000 / 100k = 0.21 for the debt
    assert rec.status == FundStatus.REPAYING
    assert rec.repaid == pytest.approx(21_000.0)
    assert new.debt == 0.0
    assert new.bridge_stack == pytest.approx(0.69)
    assert rec.stack_sold == pytest.approx(0.31)


def test_repayment_capped_by_repay_fraction(params):
    state = NavigationState(bridge_stack=1.0, debt=140_000.0, annual_burn=10_000.0)
    new, rec = step(state, inputs_at(300_000.0), params)

    # debt 147,000; sell 0.06 at 6%; cap = 0.94 * 0.5 = 0.47 units = 141,000
    assert rec.status == FundStatus.REPAYING
    assert rec.repaid == pytest.approx(141_000.0)
    assert new.debt == pytest.approx(6_000.0)
    assert new.bridge_stack == pytest.approx(0.47)


def test_dust_debt_written_off():
    p = SimulationParameters(
        total_stack=2.0,
        annual_burn_usd=10_000.0,
        scenario_mode="smooth_trend",
        loan=LoanTerms(repay_fraction=0.0001, dust=100.0),
    )
    state = NavigationState(bridge_stack=1.0, debt=50.0, annual_burn=10_000.0)
    # 52.50 owed, cap repays 0.9 * 0.0001 units = $9, remainder is dust
    new, rec = step(state, inputs_at(100_000.0), p)
    assert rec.status == FundStatus.REPAYING
    assert rec.repaid == pytest.approx(9.0)
    assert new.debt == 0.0


def test_sale_that_empties_stack_is_ruin(params):
    state = NavigationState(bridge_stack=0.05, annual_burn=10_000.0)
    new, rec = step(state, inputs_at(100_000.0), params)

    assert rec.status == FundStatus.RUIN
    assert rec.stack_sold == pytest.approx(0.05)
    assert rec.actual_withdrawal == pytest.approx(5_000.0)
    assert new.ruined
    # burn is not inflated after ruin
    assert new.annual_burn == 10_000.0


def test_ruin_is_terminal(params):
    state = NavigationState(bridge_stack=0.0, annual_burn=10_000.0, ruined=True)
    seq = [inputs_at(500_000.0, year=2030 + i, i=i) for i in range(5)]
    records, ruin_year = run_steps(state, seq, params)

    assert ruin_year == 2030
    assert all(r.status == FundStatus.RUIN for r in records)
    assert all(r.bridge_stack == 0.0 and r.actual_withdrawal == 0.0 for r in records)


def test_zero_split_ruins_immediately():
    p = SimulationParameters(total_stack=5.0, bridge_split=0.0, scenario_mode="smooth_trend")
    result = simulate_bridge(p)

    assert result.records[0].status == FundStatus.RUIN
    assert result.ruin_year == 2030
    assert not result.survives_storm
    assert bridge_summary(result) is None


def test_full_split_never_ends_storm():
    p = SimulationParameters(total_stack=1.0, bridge_split=1.0, scenario_mode="smooth_trend")
    result = simulate_bridge(p)

    assert result.storm.never_ends
    assert result.horizon == p.max_projection_years


def test_large_stack_survives_without_storm():
    p = SimulationParameters(total_stack=10.0, bridge_split=0.5, scenario_mode="smooth_trend")
    result = simulate_bridge(p)

    assert result.storm.storm_years == 0
    assert result.storm.storm_end_year == 2030
    assert result.ruin_year is None
    assert result.survives_storm
    assert result.horizon == MIN_SIMULATION_YEARS
    # exactly at trend every year, never borrowing
    assert all(r.status == FundStatus.SELLING for r in result.records)

    summary = bridge_summary(result)
    assert summary.years_before_ruin == MIN_SIMULATION_YEARS
    assert summary.avg_withdrawal_rate == pytest.approx(0.04)


def test_horizon_rule():
    p = SimulationParameters(total_stack=3.0, bridge_split=0.5, scenario_mode="smooth_trend")
    result = simulate_bridge(p)
    storm = result.storm.storm_years
    assert storm is not None
    assert result.horizon == max(storm + 5, MIN_SIMULATION_YEARS)
    assert [r.year for r in result.records] == list(range(2030, 2030 + result.horizon))


@pytest.mark.parametrize("mode", list(SCENARIO_MODES))
@pytest.mark.parametrize("total", [0.3, 1.0, 4.0])
def test_invariants_across_scenarios(mode, total):
    p = SimulationParameters(total_stack=total, bridge_split=0.6, scenario_mode=mode)
    result = simulate_bridge(p)

    seen_ruin = False
    for r in result.records:
        assert r.bridge_stack >= 0.0
        assert r.debt >= 0.0
        assert r.stack_sold >= 0.0
        if seen_ruin:
            assert r.status == FundStatus.RUIN
            assert r.bridge_stack == 0.0
            assert r.bridge_value_usd == 0.0
            assert r.actual_withdrawal == 0.0
            assert r.target_withdrawal == 0.0
            assert r.stack_sold == 0.0
            assert r.debt == 0.0
            assert r.borrowed == 0.0
            assert r.repaid == 0.0
        seen_ruin = seen_ruin or r.status == FundStatus.RUIN

    if result.ruin_year is not None:
        first = next(r for r in result.records if r.status == FundStatus.RUIN)
        assert first.year == result.ruin_year


def test_deterministic():
    p = SimulationParameters(total_stack=1.5, scenario_mode="cyclical", initial_k=0.3)
    assert simulate_bridge(p) == simulate_bridge(p)
