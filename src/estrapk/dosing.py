# src/estrapk/dosing.py
from __future__ import annotations

import logging
import math
import uuid
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

from .catalog import lookup, resolve_theta
from .config import DEFAULT_SETTINGS, EngineSettings
from .types import (
    ROUTES, Bolus, Compound, Contribution, DoseEvent, Infusion, PatchRate,
    Route, RouteParams,
)

logger = logging.getLogger(__name__)

BOLUS_ROUTES = ("injection", "oral", "sublingual", "gel")


def normalize(events: Iterable[DoseEvent], settings: Optional[EngineSettings] = None) -> list[Contribution]:
    """
    Turn raw dose events into kinetic contributions.

    Injections, oral, sublingual and gel doses become Bolus contributions
    (sublingual adds a second Bolus for the swallowed remainder). Each
    patch_apply becomes an Infusion running until the earliest later
    patch_remove not already claimed by an older patch, or for
    settings.max_patch_wear_h if none is recorded. Malformed events are
    logged and skipped.
    """
    settings = settings or DEFAULT_SETTINGS
    ordered = sorted((e for e in events if _usable_time(e)), key=lambda e: e.time_h)
    removal_at = _match_patch_removals(ordered)

    contributions: list[Contribution] = []
    for idx, ev in enumerate(ordered):
        if ev.route in BOLUS_ROUTES:
            contributions.extend(_bolus_contributions(ev))
        elif ev.route == "patch_apply":
            t1 = removal_at.get(idx, ev.time_h + settings.max_patch_wear_h)
            infusion = _patch_contribution(ev, t1)
            if infusion is not None:
                contributions.append(infusion)
        elif ev.route == "patch_remove":
            continue
        else:
            logger.warning("Skipping event %s: unknown route %r", ev.id, ev.route)
    return contributions


def _usable_time(ev: DoseEvent) -> bool:
    try:
        ok = math.isfinite(float(ev.time_h))
    except (TypeError, ValueError):
        ok = False
    if not ok:
        logger.warning("Skipping event %s: invalid time %r", ev.id, ev.time_h)
    return ok


def _usable_dose(ev: DoseEvent) -> bool:
    try:
        dose = float(ev.dose_mg)
    except (TypeError, ValueError):
        dose = math.nan
    if not (math.isfinite(dose) and dose > 0):
        logger.warning("Skipping event %s: invalid dose %r", ev.id, ev.dose_mg)
        return False
    return True


def _match_patch_removals(ordered: Sequence[DoseEvent]) -> dict[int, float]:
    """Pair each patch_remove with the oldest open patch applied strictly before it (FIFO)."""
    open_patches: list[int] = []
    removal_at: dict[int, float] = {}
    for idx, ev in enumerate(ordered):
        if ev.route == "patch_apply":
            open_patches.append(idx)
        elif ev.route == "patch_remove":
            for pos, apply_idx in enumerate(open_patches):
                if ordered[apply_idx].time_h < ev.time_h:
                    removal_at[apply_idx] = float(ev.time_h)
                    del open_patches[pos]
                    break
            else:
                logger.debug("patch_remove %s has no open patch; ignored", ev.id)
    return removal_at


def _bolus_contributions(ev: DoseEvent) -> list[Bolus]:
    if not _usable_dose(ev):
        return []
    entry = lookup(ev.route, ev.compound)
    t0, dose = float(ev.time_h), float(ev.dose_mg)

    if ev.route != "sublingual":
        F = min(1.0, max(0.0, entry.bioavailability))
        return [Bolus(t0_h=t0, dose_mg=dose, F=F, ka_per_h=entry.ka_per_h, ke_per_h=entry.ke_per_h)]

    # Held fraction absorbs through the mucosa; the rest is swallowed
    theta = resolve_theta(ev.params)
    oral = lookup("oral", ev.compound)
    held = Bolus(t0_h=t0, dose_mg=dose, F=theta, ka_per_h=entry.ka_per_h, ke_per_h=entry.ke_per_h)
    swallowed_F = min(1.0, max(0.0, (1.0 - theta) * oral.bioavailability))
    swallowed = Bolus(t0_h=t0, dose_mg=dose, F=swallowed_F, ka_per_h=oral.ka_per_h, ke_per_h=oral.ke_per_h)
    return [held, swallowed]


def _patch_contribution(ev: DoseEvent, t1_h: float) -> Optional[Infusion]:
    entry = lookup("patch_apply", ev.compound)
    t0 = float(ev.time_h)
    wear_h = t1_h - t0
    if not wear_h > 0:
        logger.warning("Skipping patch %s: non-positive wear time", ev.id)
        return None

    if isinstance(ev.params, PatchRate):
        rate_ug_day = float(ev.params.release_rate_ug_per_day)
        if math.isfinite(rate_ug_day) and rate_ug_day > 0:
            return Infusion(t0_h=t0, t1_h=float(t1_h), rate_mg_per_h=rate_ug_day / 24000.0,
                            ke_per_h=entry.ke_per_h)
        logger.warning("Patch %s has invalid release rate %r; trying total dose", ev.id, rate_ug_day)

    # Total-dose patch: spread the dose evenly over the wear time
    if not _usable_dose(ev):
        return None
    return Infusion(t0_h=t0, t1_h=float(t1_h), rate_mg_per_h=float(ev.dose_mg) / wear_h,
                    ke_per_h=entry.ke_per_h)


# --------------------------
# Schedule builders
# --------------------------
def single_dose(dose_mg: float, time_h: float, route: Route = "injection", compound: Compound = "EV",
                params: RouteParams = None, *, id: Optional[str] = None) -> list[DoseEvent]:
    """
    Create a schedule with exactly one dose.
    Examples:
      - 5 mg EV injection at t=0 h
      - 2 mg oral E2 at t=8 h
    """
    _validate_route(route)
    _validate_positive("dose_mg", dose_mg)
    _validate_finite("time_h", time_h)
    return [DoseEvent(id=id or _new_id(), route=route, compound=compound,
                      time_h=float(time_h), dose_mg=float(dose_mg), params=params)]


def fixed_every_n_days(dose_mg: float, every_days: float, weeks: int, route: Route = "injection",
                       compound: Compound = "EV", start_h: float = 0.0,
                       params: RouteParams = None) -> list[DoseEvent]:
    """
    Make a repeated schedule like: 5 mg EV injection every 7 days for 8 weeks.

    dose_mg     : estradiol-equivalent size of each dose, mg
    every_days  : spacing between doses in days (fractions allowed, e.g. 0.5 for twice daily)
    weeks       : total schedule length in weeks
    start_h     : time of the very first dose
    """
    _validate_route(route)
    _validate_positive("dose_mg", dose_mg)
    _validate_positive("every_days", every_days)
    _validate_positive_int("weeks", weeks)
    _validate_finite("start_h", start_h)

    total_days = weeks * 7
    # Dose times: 0d, every_days, 2*every_days, ... < total_days  (then convert to hours)
    day_starts = np.arange(0.0, float(total_days), float(every_days))
    times_h = day_starts * 24.0 + float(start_h)
    return [
        DoseEvent(id=_new_id(), route=route, compound=compound, time_h=float(t),
                  dose_mg=float(dose_mg), params=params)
        for t in times_h
    ]


def patch_schedule(release_rate_ug_per_day: float, change_every_days: float, weeks: int,
                   start_h: float = 0.0, compound: Compound = "E2") -> list[DoseEvent]:
    """
    Back-to-back patches: each is removed as the next one goes on.

    The last patch gets a removal too, so the schedule ends cleanly.
    """
    _validate_positive("release_rate_ug_per_day", release_rate_ug_per_day)
    _validate_positive("change_every_days", change_every_days)
    _validate_positive_int("weeks", weeks)
    _validate_finite("start_h", start_h)

    starts = np.arange(0.0, float(weeks * 7), float(change_every_days)) * 24.0 + float(start_h)
    events: list[DoseEvent] = []
    for t in starts:
        events.append(DoseEvent(id=_new_id(), route="patch_apply", compound=compound, time_h=float(t),
                                dose_mg=0.0, params=PatchRate(float(release_rate_ug_per_day))))
        # Same instant as the next apply; matching only closes patches applied strictly earlier
        events.append(DoseEvent(id=_new_id(), route="patch_remove", compound=compound,
                                time_h=float(t + change_every_days * 24.0)))
    return sorted(events, key=lambda e: e.time_h)


def from_explicit_schedule(entries: Sequence[Tuple[float, float]], route: Route = "injection",
                           compound: Compound = "EV", params: RouteParams = None) -> list[DoseEvent]:
    """
    Build a schedule from manual (time_h, dose_mg) entries.
    Example: entries=[(0.0, 5.0), (168.0, 5.0), (336.0, 4.0)]
    """
    _validate_route(route)
    events: list[DoseEvent] = []
    for time_h, dose_mg in entries:
        _validate_positive("dose_mg", dose_mg)
        _validate_finite("time_h", time_h)
        events.append(DoseEvent(id=_new_id(), route=route, compound=compound, time_h=float(time_h),
                                dose_mg=float(dose_mg), params=params))
    events.sort(key=lambda e: e.time_h)
    return events


def combine_schedules(*schedules: Sequence[DoseEvent]) -> list[DoseEvent]:
    """
    Merge several schedules (e.g. weekly injections + daily oral) into one list sorted by time.
    """
    merged: list[DoseEvent] = []
    for s in schedules:
        merged.extend(s)
    return sorted(merged, key=lambda e: (e.time_h, e.route))


def _new_id() -> str:
    return uuid.uuid4().hex


# --------------------------
# Small input validators
# --------------------------
def _validate_positive(name: str, x: float) -> None:
    if not (x > 0) or not math.isfinite(x):
        raise ValueError(f"{name} must be a finite number > 0 (got {x}).")

def _validate_finite(name: str, x: float) -> None:
    if not math.isfinite(x):
        raise ValueError(f"{name} must be finite (got {x}).")

def _validate_positive_int(name: str, x: int) -> None:
    if not (isinstance(x, int) and x > 0):
        raise ValueError(f"{name} must be a positive integer (got {x}).")

def _validate_route(route: str) -> None:
    if route not in ROUTES or route == "patch_remove":
        raise ValueError(f"route must be one of {ROUTES[:-1]} (got {route!r}).")
