# src/estrapk/helpers.py
from collections import defaultdict
from typing import Iterable

import numpy as np

from .types import DoseEvent, SimulationResult


def interpolate(result: SimulationResult, time_h):
    """
    Concentration (pg/mL) at time_h, linear between bracketing samples.

    Before the first sample -> 0.0 (no drug before dosing began).
    After the last sample   -> the last sampled value.
    Empty result            -> 0.0.
    Scalars give a float, arrays give an array.
    """
    scalar = np.ndim(time_h) == 0
    h = np.asarray(time_h, dtype=float)
    if result.empty:
        out = np.zeros_like(h)
    else:
        out = np.interp(h, result.time_h, result.conc_pg_ml, left=0.0, right=result.conc_pg_ml[-1])
    return float(out) if scalar else out


def split_events_by_route(events: Iterable[DoseEvent]) -> dict[str, list[DoseEvent]]:
    """
    Group events by administration route, patches (apply + remove) together under "patch".
    """
    buckets: dict[str, list[DoseEvent]] = defaultdict(list)
    for e in events:
        key = "patch" if e.route in ("patch_apply", "patch_remove") else e.route
        buckets[key].append(e)
    return {route: sorted(evs, key=lambda x: x.time_h) for route, evs in buckets.items()}
