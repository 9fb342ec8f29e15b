import os
import json
from dataclasses import fields
from datetime import datetime

import yaml

from .accumulation import simulate_end_result
from .data_structures import RunResults
from .lifetime import compute_lifetime_need
from .models import (
    AccumulationParameters,
    LifetimeParameters,
    LoanTerms,
    SimulationParameters,
    WithdrawalThresholds,
)
from .monte_carlo import DEFAULT_NUM_SIMS, monte_carlo_survival
from .optimizer import SearchConfig, optimize_plan
from .oracle import model_sigma
from .results_io import load_results, save_results


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------


def now_id() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def ensure_dir(path: str):
    if not os.path.exists(path):
        os.makedirs(path)


def discover_runs(root: str = "results"):
    if not os.path.exists(root):
        return []
    return sorted(d for d in os.listdir(root) if os.path.isdir(os.path.join(root, d)))


def _known_keys(cls, cfg: dict, section: str, extra=()) -> dict:
    """Keep the keys that are fields of cls; warn about the rest."""
    names = {f.name for f in fields(cls)}
    out = {}
    for key, value in cfg.items():
        if key in names:
            out[key] = value
        elif key not in extra:
            print(f"[WARN] Unknown key '{key}' in '{section}' config is ignored.")
    return out


def _section(cfg: dict, name: str) -> dict:
    sec = cfg.get(name) or {}
    if not isinstance(sec, dict):
        raise ValueError(f"Config section '{name}' must be a mapping, got {type(sec).__name__}")
    return sec


# ------------------------------------------------------------
# Component Builders
# ------------------------------------------------------------


def build_thresholds(cfg: dict) -> WithdrawalThresholds:
    return WithdrawalThresholds(
        **{k: float(v) for k, v in _known_keys(WithdrawalThresholds, cfg, "thresholds").items()}
    )


def build_loan(cfg: dict) -> LoanTerms:
    return LoanTerms(**{k: float(v) for k, v in _known_keys(LoanTerms, cfg, "loan").items()})


def build_params(cfg: dict) -> SimulationParameters:
    """Build SimulationParameters from a full experiment config."""
    p = _known_keys(
        SimulationParameters,
        _section(cfg, "params"),
        "params",
    )
    p.pop("thresholds", None)
    p.pop("loan", None)

    model = p.get("model", "santostasi")
    if "sigma" not in p or p["sigma"] is None:
        p["sigma"] = model_sigma(model)

    return SimulationParameters(
        thresholds=build_thresholds(_section(cfg, "thresholds")),
        loan=build_loan(_section(cfg, "loan")),
        **p,
    )


def build_search_config(cfg: dict) -> SearchConfig:
    s = _known_keys(SearchConfig, cfg, "search")
    for key in ("split_grid", "stack_probe_factors", "burn_probe_factors", "year_probe_offsets"):
        if key in s:
            s[key] = tuple(s[key])
    return SearchConfig(**s)


def build_accumulation(cfg: dict) -> AccumulationParameters:
    return AccumulationParameters(
        **_known_keys(AccumulationParameters, cfg, "accumulation", extra=("enabled", "current_year"))
    )


def build_lifetime(cfg: dict, params: SimulationParameters) -> LifetimeParameters:
    """Lifetime inputs; model and scenario default to the plan's own."""
    lt = _known_keys(LifetimeParameters, cfg, "lifetime", extra=("enabled",))
    lt.setdefault("model", params.model)
    lt.setdefault("sigma", params.sigma)
    lt.setdefault("scenario_mode", params.scenario_mode)
    lt.setdefault("initial_k", params.initial_k)
    lt.setdefault("my_stack", params.total_stack)
    lt.setdefault("annual_burn", params.annual_burn_usd)
    lt.setdefault("burn_growth", params.spending_growth_rate)
    return LifetimeParameters(**lt)


# ------------------------------------------------------------
# Run experiment defined by YAML config
# ------------------------------------------------------------


def run_experiment(cfg: dict) -> RunResults:
    """Run every analysis the config enables. No files are written."""
    params = build_params(cfg)
    search = build_search_config(_section(cfg, "search"))

    print(f"Optimizing plan: {params.total_stack} stack, burn {params.annual_burn_usd:,.0f}, "
          f"retire {params.retirement_year}, scenario {params.scenario_mode}")
    plan = optimize_plan(params, search)

    mc = None
    mc_cfg = _section(cfg, "monte_carlo")
    if mc_cfg.get("enabled", True):
        num_sims = int(mc_cfg.get("num_sims", cfg.get("num_sims", DEFAULT_NUM_SIMS)))
        seed = cfg.get("seed", 42)
        print(f"Monte Carlo: {num_sims} paths (seed {seed}) at split {plan.best_split:.2f}")
        mc = monte_carlo_survival(
            plan.params, num_sims=num_sims, seed=seed, years=mc_cfg.get("years")
        )

    end = None
    acc_cfg = _section(cfg, "accumulation")
    if acc_cfg.get("enabled", False):
        print("Accumulation phase...")
        end = simulate_end_result(
            params, build_accumulation(acc_cfg), current_year=acc_cfg.get("current_year")
        )

    lifetime = None
    lt_cfg = _section(cfg, "lifetime")
    if lt_cfg.get("enabled", False):
        print("Lifetime need...")
        lifetime = compute_lifetime_need(build_lifetime(lt_cfg, params))
        if lifetime is None:
            print("[WARN] Retirement age is not before life expectancy; lifetime need skipped.")

    return RunResults(
        name=cfg.get("name", "experiment"),
        params=params,
        plan=plan,
        monte_carlo=mc,
        end_result=end,
        lifetime=lifetime,
        metadata={"seed": cfg.get("seed", 42)},
    )


def print_run_summary(results: RunResults):
    plan = results.plan
    storm = plan.bridge.storm
    print("\n=== Plan ===")
    print(f"Status: {plan.status}")
    print(f"Navigation split: {plan.best_split:.0%}")
    if storm.never_ends:
        print("Storm: never ends within the projection horizon")
    else:
        print(f"Storm: {storm.storm_years} years (ends {storm.storm_end_year})")
    print(f"Ruin year: {plan.bridge.ruin_year or '-'}")

    if plan.fixes is not None:
        fx = plan.fixes
        print("\n=== Fixes (independent alternatives) ===")
        if fx.min_total_stack is not None:
            print(f" • Stack {fx.min_total_stack:.4f} (+{fx.additional_stack:.4f})")
        else:
            print(" • No stack size within the search domain survives")
        if fx.max_burn_usd is not None:
            print(f" • Burn at most {fx.max_burn_usd:,.0f}")
        else:
            print(" • No burn above the search floor survives")
        if fx.earliest_year is not None:
            print(f" • Retire in {fx.earliest_year} (+{fx.year_delay} years)")
        else:
            print(" • No retirement year in the search window works")

    mc = results.monte_carlo
    if mc is not None:
        print("\n=== Monte Carlo ===")
        print(f"Survival probability: {mc.survival_probability:.1%} ({mc.survival_count}/{mc.num_sims})")
        print(f"Ruined paths: {mc.ruin_count}, median ruin year: {mc.median_ruin_year or '-'}")

    if results.end_result is not None:
        end = results.end_result
        print("\n=== Accumulation ===")
        print(f"Final stack: {end.final_stack:.4f}, retire {end.retirement_year}, "
              f"survives storm: {end.bridge.survives_storm}")

    if results.lifetime is not None:
        lt = results.lifetime
        print("\n=== Lifetime need ===")
        print(f"Total stack needed: {lt.total_stack_needed:.4f} (surplus {lt.surplus:+.4f})")
        print(f"Earliest retirement age: {lt.earliest_retirement_age or '-'}")


def run_experiment_from_config(config_file: str, root: str = "results") -> str:
    with open(config_file, "r") as f:
        cfg = yaml.safe_load(f) or {}

    exp_name = cfg.get("name", "experiment")
    rid = f"{now_id()}_{exp_name}"
    outdir = os.path.join(root, rid)
    ensure_dir(outdir)

    print("\n=== Running Experiment ===")
    print(f"Config: {config_file}")
    print(f"Run ID: {rid}")
    print()

    results = run_experiment(cfg)
    print_run_summary(results)

    print(f"\nSaving results → {outdir}")
    save_results(results, outdir)

    with open(os.path.join(outdir, "config_used.yaml"), "w") as f:
        yaml.safe_dump(cfg, f)

    print("Done.")
    return outdir


# ------------------------------------------------------------
# Inspect stored runs
# ------------------------------------------------------------


def show_experiment(run_dir: str):
    print(f"Loading results from: {run_dir}")
    run = load_results(run_dir)
    print(json.dumps(run.metadata["plan"], indent=2))
    if run.metadata.get("monte_carlo"):
        print(json.dumps(run.metadata["monte_carlo"], indent=2))
    print(f"Bridge years stored: {len(run.bridge.get('year', []))}")


def compare_experiments(runs: list[str], root: str = "results"):
    print(f"\n{'run':<40} {'status':<6} {'split':>6} {'storm':>6} {'survival':>9}")
    for rd in runs:
        path = os.path.join(root, rd)
        meta = load_results(path).metadata
        plan = meta["plan"]
        mc = meta.get("monte_carlo") or {}
        storm = plan["storm_years"] if plan["storm_years"] is not None else "never"
        survival = mc.get("survival_probability")
        survival = f"{survival:.1%}" if survival is not None else "-"
        print(f"{rd:<40} {plan['status']:<6} {plan['best_split']:>6.2f} {storm!s:>6} {survival:>9}")


# ------------------------------------------------------------
# List all runs
# ------------------------------------------------------------


def list_experiments(root: str = "results"):
    runs = discover_runs(root)
    print("\n=== Available Experiment Runs ===")
    if not runs:
        print("(none)")
        return
    for r in runs:
        print(" •", r)
