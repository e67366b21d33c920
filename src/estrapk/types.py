# src/estrapk/types.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional, Union

import numpy as np

# All time is in HOURS since a fixed epoch; all masses in mg of estradiol-equivalent.
Route = Literal["injection", "oral", "sublingual", "gel", "patch_apply", "patch_remove"]
Compound = Literal["E2", "EB", "EV", "EC", "EN"]
ConcUnit = Literal["pg/ml", "pmol/l"]

ROUTES: tuple[str, ...] = ("injection", "oral", "sublingual", "gel", "patch_apply", "patch_remove")
COMPOUNDS: tuple[str, ...] = ("E2", "EB", "EV", "EC", "EN")


# --------------------------
# Route-specific parameters
# --------------------------
@dataclass(frozen=True)
class SublingualTier:
    """Sublingual hold discipline picked from the tier table (0=quick .. 3=strict)."""
    index: int


@dataclass(frozen=True)
class SublingualTheta:
    """Sublingual absorption efficiency given directly, in [0, 1]."""
    theta: float


@dataclass(frozen=True)
class PatchRate:
    """Transdermal patch labelled by its nominal release rate."""
    release_rate_ug_per_day: float


RouteParams = Optional[Union[SublingualTier, SublingualTheta, PatchRate]]


@dataclass(frozen=True)
class DoseEvent:
    """
    One recorded administration (or patch removal).

    id        : opaque unique token supplied by the caller
    route     : how the dose is given
    compound  : estradiol or one of its esters
    time_h    : administration time (hours since epoch)
    dose_mg   : estradiol-equivalent mass; 0 for patch_apply in rate mode
    params    : route payload (sublingual tier/theta or patch rate), else None
    """
    id: str
    route: Route
    compound: Compound
    time_h: float
    dose_mg: float = 0.0
    params: RouteParams = None


@dataclass(frozen=True)
class LabResult:
    """A measured serum concentration, used only for calibration."""
    time_h: float
    conc_pg_ml: float
    id: Optional[str] = None

    @classmethod
    def from_measurement(cls, time_h: float, value: float, unit: ConcUnit = "pg/ml",
                         id: Optional[str] = None) -> "LabResult":
        from .catalog import convert_to_pg_ml
        return cls(time_h=float(time_h), conc_pg_ml=convert_to_pg_ml(value, unit), id=id)


@dataclass(frozen=True)
class CatalogEntry:
    """
    Kinetic constants for one route/compound pair.

    ka_per_h        : first-order absorption rate constant (1/h)
    ke_per_h        : first-order elimination rate constant (1/h)
    bioavailability : fraction of the dose reaching circulation
    """
    ka_per_h: float
    ke_per_h: float
    bioavailability: float


# --------------------------
# Normalized contributions
# --------------------------
@dataclass(frozen=True)
class Bolus:
    """First-order absorption of a single dose starting at t0_h."""
    t0_h: float
    dose_mg: float
    F: float
    ka_per_h: float
    ke_per_h: float


@dataclass(frozen=True)
class Infusion:
    """Zero-order input of rate_mg_per_h active on [t0_h, t1_h)."""
    t0_h: float
    t1_h: float
    rate_mg_per_h: float
    ke_per_h: float


Contribution = Union[Bolus, Infusion]


@dataclass(frozen=True, eq=False)
class SimulationResult:
    """
    Sampled concentration curve.

    time_h     : strictly ascending sample times (hours)
    conc_pg_ml : concentration at each sample (pg/mL), never negative
    """
    time_h: np.ndarray
    conc_pg_ml: np.ndarray

    @classmethod
    def empty_result(cls) -> "SimulationResult":
        return cls(time_h=np.empty(0, dtype=float), conc_pg_ml=np.empty(0, dtype=float))

    @property
    def empty(self) -> bool:
        return self.time_h.size == 0

    @property
    def auc(self) -> float:
        """Area under the sampled curve (pg*h/mL)."""
        if self.time_h.size < 2:
            return 0.0
        return float(np.trapezoid(self.conc_pg_ml, self.time_h))

    def __len__(self) -> int:
        return int(self.time_h.size)
