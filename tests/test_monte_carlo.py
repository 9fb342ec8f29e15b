import numpy as np
import pytest
from forever_sim.engine import simulate_bridge
from forever_sim.mc_generator import PriceNoiseGenerator
from forever_sim.models import SimulationParameters
from forever_sim.monte_carlo import _percentile_index, monte_carlo_survival


class ZeroUniform:
    """Stand-in rng: u = 1 - 0 = 1 gives zero Box-Muller noise."""

    def random(self, size):
        return np.zeros(size)


@pytest.fixture
def params():
    return SimulationParameters(total_stack=3.0, bridge_split=0.5, scenario_mode="cyclical")


def test_box_muller_moments():
    gen = PriceNoiseGenerator(num_paths=2000, horizon=50, seed=7)
    z = gen.generate_paths()
    assert z.shape == (2000, 50)
    assert np.all(np.isfinite(z))
    assert abs(z.mean()) < 0.02
    assert z.std() == pytest.approx(1.0, abs=0.02)


def test_price_paths_respect_floor():
    trend = np.linspace(100.0, 1000.0, 20)
    gen = PriceNoiseGenerator(num_paths=500, horizon=20, seed=1)
    prices = gen.price_paths(trend, sigma=0.5, floor_multiple=0.45)

    assert prices.shape == (500, 20)
    assert np.all(prices >= trend[None, :] * 0.45 - 1e-9)


def test_price_paths_shape_check():
    gen = PriceNoiseGenerator(num_paths=5, horizon=10, seed=1)
    with pytest.raises(ValueError, match="trend must have shape"):
        gen.price_paths(np.ones(9), 0.2, 0.45)


def test_generator_validation():
    with pytest.raises(ValueError):
        PriceNoiseGenerator(num_paths=0)
    with pytest.raises(ValueError):
        PriceNoiseGenerator(horizon=0)


def test_percentile_index():
    assert _percentile_index(200, 0.10) == 20
    assert _percentile_index(200, 0.50) == 100
    assert _percentile_index(3, 0.90) == 2
    assert _percentile_index(1, 0.90) == 0


def test_reproducible_with_seed(params):
    a = monte_carlo_survival(params, num_sims=40, seed=123, years=30)
    b = monte_carlo_survival(params, num_sims=40, seed=123, years=30)

    assert a.survival_probability == b.survival_probability
    assert a.ruin_years == b.ruin_years
    assert a.percentile_bands == b.percentile_bands


def test_injected_rng_matches_seed(params):
    a = monte_carlo_survival(params, num_sims=30, seed=9, years=30)
    b = monte_carlo_survival(params, num_sims=30, rng=np.random.default_rng(9), years=30)
    assert a.percentile_bands == b.percentile_bands
    assert a.survival_count == b.survival_count


def test_result_shape(params):
    mc = monte_carlo_survival(params, num_sims=50, seed=3, years=30)

    assert mc.num_sims == 50
    assert 0.0 <= mc.survival_probability <= 1.0
    assert mc.survival_count == round(mc.survival_probability * 50)
    assert mc.ruin_count == len(mc.ruin_years) <= 50
    assert list(mc.ruin_years) == sorted(mc.ruin_years)
    assert (mc.median_ruin_year is None) == (mc.ruin_count == 0)

    assert len(mc.percentile_bands) == 30
    assert mc.percentile_bands[0].year == 2030
    for b in mc.percentile_bands:
        assert 0.0 <= b.p10 <= b.p25 <= b.p50 <= b.p75 <= b.p90


def test_zero_noise_matches_smooth_trend():
    p = SimulationParameters(total_stack=3.0, bridge_split=0.5, scenario_mode="smooth_trend")
    bridge = simulate_bridge(p)
    mc = monte_carlo_survival(p, num_sims=5, rng=ZeroUniform(), years=bridge.horizon)

    assert mc.survival_probability == 1.0
    assert mc.storm_years == bridge.storm.storm_years
    for rec, band in zip(bridge.records, mc.percentile_bands):
        assert band.year == rec.year
        assert band.p10 == pytest.approx(rec.bridge_stack)
        assert band.p90 == pytest.approx(rec.bridge_stack)


def test_hopeless_plan_never_survives():
    p = SimulationParameters(total_stack=0.05, bridge_split=0.5)
    mc = monte_carlo_survival(p, num_sims=20, seed=1, years=20)
    assert mc.survival_probability == 0.0
    assert mc.ruin_count == 20
    assert mc.percentile_bands[-1].p90 == 0.0
