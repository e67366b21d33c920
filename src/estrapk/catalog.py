# src/estrapk/catalog.py
"""
Kinetic reference data for estradiol and its esters.

The constants are literature-derived and treated as validated configuration:
the model only needs ka, ke and a bioavailability per route/compound. Lookups
never raise; unknown keys fall back to documented defaults because compounds
and routes are checked upstream.
"""
from __future__ import annotations

import logging
import math

from .types import (
    CatalogEntry, Compound, ConcUnit, Route, RouteParams,
    SublingualTheta, SublingualTier,
)

logger = logging.getLogger(__name__)

LN2 = math.log(2.0)

# Molecular weights (g/mol)
MOLECULAR_WEIGHT: dict[str, float] = {
    "E2": 272.38,
    "EB": 376.50,
    "EV": 356.50,
    "EC": 396.58,
    "EN": 384.56,
}

# Systemic clearance of free estradiol, and the slower apparent clearance of depot injections
KE_SYSTEMIC = 0.41
KE_DEPOT = 0.041

# Depot release: (fast fraction, k fast, k slow), collapsed into one effective ka below
_DEPOT_RELEASE: dict[str, tuple[float, float, float]] = {
    "EB": (0.90, 0.144, 0.114),
    "EV": (0.40, 0.0216, 0.0138),
    "EC": (0.229164549, 0.005035046, 0.004510574),
    "EN": (0.05, 0.0010, 0.0050),
}

# Fraction of an injected ester that appears as circulating estradiol
FORMATION_FRACTION: dict[str, float] = {
    "EB": 0.1092,
    "EV": 0.0623,
    "EC": 0.1173,
    "EN": 0.12,
    "E2": 1.0,
}

ORAL_KA_E2 = 0.32
ORAL_KA_EV = 0.05
ORAL_BIOAVAILABILITY = 0.03
SUBLINGUAL_KA = 1.8
GEL_KA = 0.022
GEL_BIOAVAILABILITY = 0.05
AQUEOUS_INJECTION_KA = 0.5

# 1 pg/mL of estradiol = 3.6713 pmol/L
PMOL_PER_PG = 1000.0 / MOLECULAR_WEIGHT["E2"]

# Sublingual hold tiers, in index order
SUBLINGUAL_TIER_ORDER: tuple[str, ...] = ("quick", "casual", "standard", "strict")
SUBLINGUAL_TIERS: dict[str, dict[str, float]] = {
    "quick": {"theta": 0.01, "hold_min": 2.0},
    "casual": {"theta": 0.04, "hold_min": 5.0},
    "standard": {"theta": 0.11, "hold_min": 10.0},
    "strict": {"theta": 0.18, "hold_min": 15.0},
}
DEFAULT_SUBLINGUAL_TIER = "standard"

DEFAULT_ENTRY = CatalogEntry(ka_per_h=ORAL_KA_E2, ke_per_h=KE_SYSTEMIC, bioavailability=ORAL_BIOAVAILABILITY)


def _depot_ka(compound: str) -> float:
    frac_fast, k_fast, k_slow = _DEPOT_RELEASE[compound]
    return frac_fast * k_fast + (1.0 - frac_fast) * k_slow


def _build_table() -> dict[tuple[str, str], CatalogEntry]:
    table: dict[tuple[str, str], CatalogEntry] = {}

    # Depot injections
    for c in ("EB", "EV", "EC", "EN"):
        table[("injection", c)] = CatalogEntry(_depot_ka(c), KE_DEPOT, FORMATION_FRACTION[c])
    table[("injection", "E2")] = CatalogEntry(AQUEOUS_INJECTION_KA, KE_DEPOT, 1.0)

    # Oral: valerate is hydrolysed in the gut wall and absorbs more slowly
    for c in ("E2", "EB", "EC", "EN"):
        table[("oral", c)] = CatalogEntry(ORAL_KA_E2, KE_SYSTEMIC, ORAL_BIOAVAILABILITY)
    table[("oral", "EV")] = CatalogEntry(ORAL_KA_EV, KE_SYSTEMIC, ORAL_BIOAVAILABILITY)

    # Sublingual: F is replaced by the tier/theta efficiency at normalization time
    theta_std = SUBLINGUAL_TIERS[DEFAULT_SUBLINGUAL_TIER]["theta"]
    for c in ("E2", "EB", "EV", "EC", "EN"):
        table[("sublingual", c)] = CatalogEntry(SUBLINGUAL_KA, KE_SYSTEMIC, theta_std)

    for c in ("E2", "EB", "EV", "EC", "EN"):
        table[("gel", c)] = CatalogEntry(GEL_KA, KE_SYSTEMIC, GEL_BIOAVAILABILITY)
        # ka unused for zero-order patch input
        table[("patch_apply", c)] = CatalogEntry(0.0, KE_SYSTEMIC, 1.0)
    return table


KINETICS: dict[tuple[str, str], CatalogEntry] = _build_table()


def lookup(route: Route, compound: Compound) -> CatalogEntry:
    """
    Kinetic constants for a route/compound pair.

    Unknown compound -> the route's E2 entry; unknown route -> DEFAULT_ENTRY.
    """
    entry = KINETICS.get((route, compound))
    if entry is not None:
        return entry
    fallback = KINETICS.get((route, "E2"))
    if fallback is not None:
        logger.warning("No kinetics for %s/%s; using estradiol constants", route, compound)
        return fallback
    logger.warning("No kinetics for route %r; using default entry", route)
    return DEFAULT_ENTRY


def to_estradiol_equivalent(compound: Compound) -> float:
    """Mass of estradiol in 1 mg of compound (molar ratio; 1.0 for E2 or unknown compounds)."""
    if compound == "E2":
        return 1.0
    mw = MOLECULAR_WEIGHT.get(compound)
    if mw is None:
        logger.warning("Unknown compound %r; treating as estradiol", compound)
        return 1.0
    return MOLECULAR_WEIGHT["E2"] / mw


def sublingual_theta(index: float) -> float:
    """Absorption efficiency for a tier index, rounding halves up; anything outside 0..3 maps to 'standard'."""
    try:
        idx = math.floor(float(index) + 0.5)
    except (TypeError, ValueError, OverflowError):
        idx = -1
    if 0 <= idx < len(SUBLINGUAL_TIER_ORDER):
        key = SUBLINGUAL_TIER_ORDER[idx]
    else:
        key = DEFAULT_SUBLINGUAL_TIER
    return SUBLINGUAL_TIERS[key]["theta"]


def theta_from_hold(hold_min: float) -> float:
    """
    Absorption efficiency for a custom hold time (minutes).

    Piecewise-linear through the tier table, extrapolated past its ends and
    clamped to [0, 1]. Holds under one minute count as one minute.
    """
    if not hold_min > 0:
        return 0.0
    points = sorted((p["hold_min"], p["theta"]) for p in SUBLINGUAL_TIERS.values())
    h = max(1.0, float(hold_min))
    if h < points[0][0]:
        (h1, th1), (h2, th2) = points[0], points[1]
    elif h > points[-1][0]:
        (h1, th1), (h2, th2) = points[-2], points[-1]
    else:
        for (h1, th1), (h2, th2) in zip(points, points[1:]):
            if h1 <= h <= h2:
                break
    slope = (th2 - th1) / (h2 - h1)
    return min(1.0, max(0.0, th1 + (h - h1) * slope))


def resolve_theta(params: RouteParams) -> float:
    """Sublingual efficiency from an event's payload, clamped to [0, 1]."""
    if isinstance(params, SublingualTheta):
        theta = float(params.theta)
        if not math.isfinite(theta):
            logger.warning("Non-finite sublingual theta; using standard tier")
            return SUBLINGUAL_TIERS[DEFAULT_SUBLINGUAL_TIER]["theta"]
        return min(1.0, max(0.0, theta))
    if isinstance(params, SublingualTier):
        return sublingual_theta(params.index)
    return SUBLINGUAL_TIERS[DEFAULT_SUBLINGUAL_TIER]["theta"]


def bioavailability_multiplier(route: Route, compound: Compound, params: RouteParams = None) -> float:
    """
    Fraction of an entered estradiol-equivalent dose that reaches circulation.

    Sublingual doses count the held fraction fully and the swallowed
    remainder at oral bioavailability. Patches deliver their whole dose.
    """
    if route == "sublingual":
        theta = resolve_theta(params)
        oral = lookup("oral", compound)
        return theta + (1.0 - theta) * oral.bioavailability
    if route == "patch_remove":
        return 0.0
    return lookup(route, compound).bioavailability


def convert_to_pg_ml(value: float, unit: ConcUnit) -> float:
    """Convert an estradiol concentration to pg/mL. Unknown units pass through unchanged."""
    u = str(unit).strip().lower()
    if u == "pg/ml":
        return float(value)
    if u == "pmol/l":
        return float(value) / PMOL_PER_PG
    logger.warning("Unknown concentration unit %r; assuming pg/mL", unit)
    return float(value)


def half_lives(ka_per_h: float, ke_per_h: float) -> tuple[float, float]:
    """(shortest, longest) half-life in hours among the positive rate constants."""
    rates = [k for k in (ka_per_h, ke_per_h) if k > 0]
    if not rates:
        return math.inf, math.inf
    return LN2 / max(rates), LN2 / min(rates)
