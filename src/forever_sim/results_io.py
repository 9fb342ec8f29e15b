import os
import json
import math
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, Optional, Sequence

import numpy as np
import zarr

from .data_structures import (
    ForeverYearRecord,
    FundStatus,
    PercentileBand,
    RunResults,
    YearRecord,
)


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------


def _save_array(group, key, arr):
    if arr is None or arr.size == 0:
        return
    group[key] = arr


def _load_array(group, key):
    return group[key][...] if key in group else None


def _records_to_arrays(records: Sequence, record_type) -> Dict[str, np.ndarray]:
    out = {}
    for f in fields(record_type):
        values = [getattr(r, f.name) for r in records]
        if f.name == "status":
            out[f.name] = np.array([int(v) for v in values], dtype=np.int8)
        elif f.type in ("int", int):
            out[f.name] = np.array(values, dtype=np.int64)
        elif f.type in ("bool", bool):
            out[f.name] = np.array(values, dtype=bool)
        else:
            out[f.name] = np.array(values, dtype=np.float64)
    return out


def _json_safe(obj):
    """asdict output -> JSON: inf/nan become None, enums become names."""
    if isinstance(obj, dict):
        return {k: _json_safe(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_json_safe(v) for v in obj]
    if isinstance(obj, FundStatus):
        return obj.name
    if isinstance(obj, float) and not math.isfinite(obj):
        return None
    return obj


def status_names(codes: np.ndarray) -> list:
    return [FundStatus(int(c)).name for c in codes]


@dataclass
class StoredRun:
    """A run read back from disk: metadata plus the per-year arrays."""

    metadata: Dict[str, Any]
    bridge: Dict[str, np.ndarray]
    forever: Dict[str, np.ndarray]
    percentile_bands: Dict[str, np.ndarray] = field(default_factory=dict)
    ruin_years: Optional[np.ndarray] = None


# ------------------------------------------------------------
# Save RunResults -> JSON metadata + Zarr directory
# ------------------------------------------------------------


def save_results(results: RunResults, outdir: str):
    os.makedirs(outdir, exist_ok=True)

    plan = results.plan
    storm = plan.bridge.storm
    mc = results.monte_carlo

    meta = {
        "name": results.name,
        "params": asdict(results.params),
        "plan": {
            "status": plan.status,
            "best_split": plan.best_split,
            "storm_years": plan.storm_years,
            "storm_end_year": storm.storm_end_year,
            "ruin_year": plan.bridge.ruin_year,
            "survives_storm": plan.bridge.survives_storm,
            "fixes": asdict(plan.fixes) if plan.fixes else None,
            "all_splits": [asdict(c) for c in plan.all_splits],
        },
        "monte_carlo": None,
        "metadata": results.metadata,
    }
    if mc is not None:
        meta["monte_carlo"] = {
            "num_sims": mc.num_sims,
            "survival_probability": mc.survival_probability,
            "survival_count": mc.survival_count,
            "storm_years": mc.storm_years,
            "ruin_count": mc.ruin_count,
            "median_ruin_year": mc.median_ruin_year,
            "seed": mc.seed,
        }

    with open(os.path.join(outdir, "metadata.json"), "w") as f:
        json.dump(_json_safe(meta), f, indent=2)

    root = zarr.open_group(os.path.join(outdir, "data.zarr"), mode="w")

    bridge_grp = root.create_group("bridge")
    for key, arr in _records_to_arrays(plan.bridge.records, YearRecord).items():
        _save_array(bridge_grp, key, arr)

    forever_grp = root.create_group("forever")
    for key, arr in _records_to_arrays(plan.forever.records, ForeverYearRecord).items():
        _save_array(forever_grp, key, arr)

    if mc is not None:
        mc_grp = root.create_group("monte_carlo")
        for key, arr in _records_to_arrays(mc.percentile_bands, PercentileBand).items():
            _save_array(mc_grp, key, arr)
        _save_array(mc_grp, "ruin_years", np.array(mc.ruin_years, dtype=np.int64))


# ------------------------------------------------------------
# Load directory -> StoredRun
# ------------------------------------------------------------


def _load_group(root, name) -> Dict[str, np.ndarray]:
    if name not in root:
        return {}
    g = root[name]
    return {key: _load_array(g, key) for key in g.array_keys()}


def load_results(outdir: str) -> StoredRun:
    with open(os.path.join(outdir, "metadata.json"), "r") as f:
        meta = json.load(f)

    root = zarr.open_group(os.path.join(outdir, "data.zarr"), mode="r")

    bands = _load_group(root, "monte_carlo")
    ruin_years = bands.pop("ruin_years", None)

    return StoredRun(
        metadata=meta,
        bridge=_load_group(root, "bridge"),
        forever=_load_group(root, "forever"),
        percentile_bands=bands,
        ruin_years=ruin_years,
    )
