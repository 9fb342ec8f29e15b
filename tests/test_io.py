import json
import math

import numpy as np
from forever_sim.data_structures import FundStatus, RunResults
from forever_sim.models import SimulationParameters
from forever_sim.monte_carlo import monte_carlo_survival
from forever_sim.optimizer import SearchConfig, optimize_plan
from forever_sim.results_io import _json_safe, load_results, save_results, status_names


def _results(total_stack=3.0, with_mc=True):
    params = SimulationParameters(total_stack=total_stack, scenario_mode="smooth_trend")
    plan = optimize_plan(params, SearchConfig(stack_tolerance=0.01))
    mc = monte_carlo_survival(plan.params, num_sims=12, seed=1, years=30) if with_mc else None
    return RunResults(name="io", params=params, plan=plan, monte_carlo=mc)


def test_save_and_load_full_results(tmp_path):
    # 1. Build a run with a plan and Monte Carlo
    results = _results()

    # 2. Save
    out_dir = tmp_path / "run"
    save_results(results, str(out_dir))
    assert (out_dir / "metadata.json").exists()
    assert (out_dir / "data.zarr").exists()

    # 3. Load
    run = load_results(str(out_dir))

    # 4. Per-year arrays
    records = results.plan.bridge.records
    np.testing.assert_array_equal(run.bridge["year"], [r.year for r in records])
    np.testing.assert_allclose(run.bridge["bridge_stack"], [r.bridge_stack for r in records])
    np.testing.assert_array_equal(run.bridge["status"], [int(r.status) for r in records])
    assert run.bridge["status"].dtype == np.int8
    assert status_names(run.bridge["status"])[0] == records[0].status.name

    forever = results.plan.forever.records
    np.testing.assert_allclose(
        run.forever["forever_value_usd"], [r.forever_value_usd for r in forever]
    )
    assert run.forever["is_inexhaustible"].dtype == bool

    bands = results.monte_carlo.percentile_bands
    np.testing.assert_allclose(run.percentile_bands["p50"], [b.p50 for b in bands])
    assert "ruin_years" not in run.percentile_bands

    # 5. Metadata
    assert run.metadata["name"] == "io"
    assert run.metadata["plan"]["status"] == "OK"
    assert run.metadata["plan"]["best_split"] == results.plan.best_split
    assert run.metadata["params"]["thresholds"]["normal_rate"] == 0.04
    assert run.metadata["monte_carlo"]["seed"] == 1


def test_bust_run_without_monte_carlo(tmp_path):
    results = _results(total_stack=0.2, with_mc=False)
    save_results(results, str(tmp_path))
    run = load_results(str(tmp_path))

    assert run.metadata["plan"]["status"] == "BUST"
    assert run.metadata["plan"]["fixes"]["min_total_stack"] > 0.2
    assert run.metadata["monte_carlo"] is None
    assert run.percentile_bands == {}
    assert run.ruin_years is None

    # strict JSON: no Infinity or NaN literals
    text = (tmp_path / "metadata.json").read_text()
    assert "Infinity" not in text and "NaN" not in text
    json.loads(text)


def test_json_safe():
    out = _json_safe({"a": math.inf, "b": [1.0, math.nan], "c": FundStatus.BORROW, "d": 2})
    assert out == {"a": None, "b": [1.0, None], "c": "BORROW", "d": 2}
