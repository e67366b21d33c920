# src/estrapk/simulate.py
from __future__ import annotations

import logging
import math
from typing import Iterable, Optional, Sequence

import numpy as np

from .catalog import LN2, half_lives
from .config import DEFAULT_SETTINGS, EngineSettings
from .dosing import normalize
from .helpers import split_events_by_route
from .models.one_compartment import (
    MG_PER_L_TO_PG_PER_ML, bolus_amount, bolus_tmax, infusion_amount,
)
from .types import Bolus, Contribution, DoseEvent, Infusion, SimulationResult

logger = logging.getLogger(__name__)


def simulate(events: Iterable[DoseEvent], weight_kg: float, now_h: Optional[float] = None,
             settings: Optional[EngineSettings] = None) -> SimulationResult:
    """
    Predicted serum estradiol for a dose history, sampled on an adaptive grid.

    The grid starts settings.lookback_h before the first dose and runs past
    max(now_h, last dose) by several terminal half-lives of the slowest
    contribution. now_h defaults to the last dose; the engine has no clock.

    Returns an empty result when nothing in `events` contributes.
    """
    settings = settings or DEFAULT_SETTINGS
    contributions = normalize(events, settings)
    if not contributions:
        return SimulationResult.empty_result()

    vd_l = distribution_volume(weight_kg, settings)
    t = build_grid(contributions, now_h, settings)
    C = concentration(contributions, vd_l, t, settings)
    logger.debug("Simulated %d contributions on %d samples (Vd=%.1f L)", len(contributions), t.size, vd_l)
    return SimulationResult(time_h=t, conc_pg_ml=C)


def simulate_by_route(events: Iterable[DoseEvent], weight_kg: float, now_h: Optional[float] = None,
                      settings: Optional[EngineSettings] = None) -> dict[str, SimulationResult]:
    """
    Per-route curves on the grid of the combined simulation.

    Keys are routes ("patch" for patch apply/remove). Because the model is
    linear, the per-route curves add up to the combined curve.
    """
    settings = settings or DEFAULT_SETTINGS
    events = list(events)
    contributions = normalize(events, settings)
    if not contributions:
        return {}

    vd_l = distribution_volume(weight_kg, settings)
    t = build_grid(contributions, now_h, settings)
    results: dict[str, SimulationResult] = {}
    for route, sub_events in split_events_by_route(events).items():
        sub = normalize(sub_events, settings)
        if sub:
            results[route] = SimulationResult(time_h=t, conc_pg_ml=concentration(sub, vd_l, t, settings))
    return results


def evaluate(events: Iterable[DoseEvent], weight_kg: float, times_h,
             settings: Optional[EngineSettings] = None) -> np.ndarray:
    """Exact model concentration (pg/mL) at arbitrary times, without sampling."""
    settings = settings or DEFAULT_SETTINGS
    contributions = normalize(events, settings)
    t = np.atleast_1d(np.asarray(times_h, dtype=float))
    if not contributions:
        return np.zeros_like(t)
    return concentration(contributions, distribution_volume(weight_kg, settings), t, settings)


def distribution_volume(weight_kg: float, settings: Optional[EngineSettings] = None) -> float:
    """Vd in litres; non-finite or non-positive weights are clamped to settings.min_weight_kg."""
    settings = settings or DEFAULT_SETTINGS
    try:
        w = float(weight_kg)
    except (TypeError, ValueError):
        w = math.nan
    if not (math.isfinite(w) and w > 0.0):
        logger.warning("Invalid body weight %r; clamping to %.1f kg", weight_kg, settings.min_weight_kg)
        w = settings.min_weight_kg
    return w * settings.vd_per_kg


def concentration(contributions: Sequence[Contribution], vd_l: float, times_h: np.ndarray,
                  settings: Optional[EngineSettings] = None) -> np.ndarray:
    """
    Sum of every contribution's concentration (pg/mL) at times_h.

    The model is linear, so contributions are evaluated independently and added.
    On ascending times each one is evaluated only from its start onward.
    """
    settings = settings or DEFAULT_SETTINGS
    t = np.asarray(times_h, dtype=float)
    total_mg = np.zeros_like(t)
    ascending = t.ndim == 1 and bool(np.all(np.diff(t) >= 0.0))
    for c in contributions:
        i0 = int(np.searchsorted(t, c.t0_h, side="left")) if ascending else 0
        total_mg[i0:] += contribution_amount(c, t[i0:], settings.flip_flop_epsilon)
    C = total_mg / vd_l * MG_PER_L_TO_PG_PER_ML
    return np.maximum(C, 0.0)


def contribution_amount(c: Contribution, times_h: np.ndarray, eps: float = 1e-9) -> np.ndarray:
    """Central amount (mg) from one contribution; exactly zero before its start."""
    if isinstance(c, Bolus):
        return bolus_amount(times_h - c.t0_h, c.dose_mg, c.F, c.ka_per_h, c.ke_per_h, eps)
    if isinstance(c, Infusion):
        return infusion_amount(times_h - c.t0_h, c.t1_h - c.t0_h, c.rate_mg_per_h, c.ke_per_h)
    raise TypeError(f"Unknown contribution type {type(c).__name__}")


# --------------------------
# Grid
# --------------------------
def build_grid(contributions: Sequence[Contribution], now_h: Optional[float] = None,
               settings: Optional[EngineSettings] = None) -> np.ndarray:
    """
    Strictly increasing sample times covering the dose history and horizon.

    Union of a uniform base grid and dense windows after every start (and
    patch removal), plus each bolus's exact analytical peak. A window samples
    the shortest half-life involved at ~samples_per_half_life points, then
    the longest one at the same count. Overlapping windows of equal step are
    merged and sampled once, so repeated doses do not stack samples.
    """
    settings = settings or DEFAULT_SETTINGS
    if not contributions:
        return np.empty(0, dtype=float)

    first = min(c.t0_h for c in contributions)
    last = max(c.t1_h if isinstance(c, Infusion) else c.t0_h for c in contributions)
    if now_h is not None:
        if math.isfinite(now_h):
            last = max(last, float(now_h))
        else:
            logger.warning("Ignoring non-finite now_h %r", now_h)

    start = first - settings.lookback_h
    end = last + horizon(contributions, settings)

    windows: dict[float, list[tuple[float, float]]] = {}
    peaks = []
    for c in contributions:
        if isinstance(c, Bolus):
            spans = _dense_windows(c.t0_h, c.ka_per_h, c.ke_per_h, settings)
            peaks.append(c.t0_h + bolus_tmax(c.ka_per_h, c.ke_per_h, settings.flip_flop_epsilon))
        else:
            spans = (_dense_windows(c.t0_h, 0.0, c.ke_per_h, settings)
                     + _dense_windows(c.t1_h, 0.0, c.ke_per_h, settings))
        for lo, hi, step in spans:
            windows.setdefault(step, []).append((lo, hi))

    pieces = [np.linspace(start, end, max(2, int(settings.base_samples))), np.asarray(peaks, dtype=float)]
    for step, spans in windows.items():
        for lo, hi in _merge_intervals(spans):
            n = int(math.ceil((hi - lo) / step)) + 1
            pieces.append(np.linspace(lo, hi, max(2, n)))

    grid = np.unique(np.concatenate(pieces))
    return grid[(grid >= start) & (grid <= end)]


def horizon(contributions: Sequence[Contribution], settings: Optional[EngineSettings] = None) -> float:
    """Forward span after the last event: several terminal half-lives of the slowest contribution."""
    settings = settings or DEFAULT_SETTINGS
    slowest = 0.0
    for c in contributions:
        rates = [k for k in (getattr(c, "ka_per_h", 0.0), c.ke_per_h) if k > 0]
        if rates:
            slowest = max(slowest, LN2 / min(rates))
    return max(settings.min_horizon_h, settings.horizon_half_lives * slowest)


def _dense_windows(t0: float, ka: float, ke: float,
                   settings: EngineSettings) -> list[tuple[float, float, float]]:
    # (start, end, step): the fast phase finely, then the slow tail at its own scale
    shortest, longest = half_lives(ka, ke)
    if not math.isfinite(shortest):
        return []
    out = []
    for half_life in sorted({shortest, longest}):
        span = settings.peak_window_half_lives * half_life
        step = half_life / settings.samples_per_half_life
        step = max(step, span / max(1, int(settings.max_window_samples) - 1))
        out.append((t0, t0 + span, step))
    return out


def _merge_intervals(spans: list[tuple[float, float]]) -> list[tuple[float, float]]:
    merged: list[tuple[float, float]] = []
    for lo, hi in sorted(spans):
        if merged and lo <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], hi))
        else:
            merged.append((lo, hi))
    return merged
