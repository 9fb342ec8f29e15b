import pytest
from forever_sim.lifetime import CHUNK_YEARS, compute_lifetime_need, snap_storm_end
from forever_sim.models import LifetimeParameters
from forever_sim.oracle import mid_year, trend_price


def _params(**kw):
    base = dict(
        current_age=40,
        life_expectancy=90,
        annual_burn=50_000.0,
        burn_growth=0.065,
        my_stack=1.0,
        scenario_mode="smooth_trend",
        current_year=2030,
    )
    base.update(kw)
    return LifetimeParameters(**base)


def test_snap_storm_end():
    assert snap_storm_end(47, 40, 90) == 50
    assert snap_storm_end(50, 40, 90) == 50
    assert snap_storm_end(40, 40, 90) == 40
    assert snap_storm_end(86, 40, 88) == 88


def test_no_years_left():
    assert compute_lifetime_need(_params(retirement_age=90)) is None
    assert compute_lifetime_need(_params(current_age=95)) is None


def test_annual_rows():
    result = compute_lifetime_need(_params())
    assert len(result.annual) == 50

    first = result.annual[0]
    assert first.age == 40
    assert first.year == 2030
    assert first.burn == pytest.approx(50_000.0)
    assert first.stack_needed == pytest.approx(50_000.0 / trend_price("santostasi", mid_year(2030)))
    assert result.today_trend_price == pytest.approx(trend_price("santostasi", mid_year(2030)))


def test_later_retirement_inflates_from_today():
    result = compute_lifetime_need(_params(retirement_age=45))
    first = result.annual[0]
    assert len(result.annual) == 45
    assert first.age == 45
    assert first.year == 2035
    assert first.burn == pytest.approx(50_000.0 * 1.065**5)


def test_storm_end_is_snapped_and_chunks_are_pure():
    result = compute_lifetime_need(_params())

    assert result.storm_end_age is not None
    assert (result.storm_end_age - 40) % CHUNK_YEARS == 0
    assert result.storm_years == result.storm_end_age - 40

    assert len(result.chunks) == 10
    phases = [c.phase for c in result.chunks]
    # storm chunks first, then forever chunks
    assert phases == sorted(phases, key=lambda p: p == "forever")
    for chunk in result.chunks:
        rows = [r for r in result.annual if chunk.start_age <= r.age <= chunk.end_age]
        assert len(rows) == CHUNK_YEARS
        assert len({r.is_forever for r in rows}) == 1
        assert chunk.stack_needed == pytest.approx(sum(r.stack_needed for r in rows))


def test_totals_split_by_phase():
    result = compute_lifetime_need(_params())
    assert result.total_stack_needed == pytest.approx(
        result.storm_stack_needed + result.forever_stack_needed
    )
    assert result.total_usd_at_trend == pytest.approx(
        result.total_stack_needed * result.today_trend_price
    )
    assert result.surplus == pytest.approx(1.0 - result.total_stack_needed)


def test_large_stack_can_retire_now():
    result = compute_lifetime_need(_params(my_stack=100.0))
    assert result.can_retire_now
    assert result.earliest_retirement_age == 40
    assert result.surplus > 0


def test_earliest_retirement_age_is_first_fit():
    stack = 0.1
    result = compute_lifetime_need(_params(my_stack=stack))
    assert not result.can_retire_now

    age = result.earliest_retirement_age
    assert age is not None and age > 40
    idx = age - 40
    assert sum(r.stack_needed for r in result.annual[idx:]) <= stack
    assert sum(r.stack_needed for r in result.annual[idx - 1 :]) > stack


def test_no_storm_end_for_tiny_stack():
    result = compute_lifetime_need(_params(my_stack=0.0))
    assert result.storm_end_age is None
    assert result.storm_years == 50
    assert all(c.phase == "storm" for c in result.chunks)
