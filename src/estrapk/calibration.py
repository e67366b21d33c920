# src/estrapk/calibration.py
"""
Lab calibration: scale model predictions toward measured serum levels.

The correction is a piecewise-linear ratio measured/predicted between lab
draws and 1.0 outside them. It is applied on top of a simulated curve and
never feeds back into the pharmacokinetic model.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, Optional

import numpy as np

from .config import DEFAULT_SETTINGS, EngineSettings
from .helpers import interpolate
from .types import LabResult, SimulationResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class Calibration:
    """
    Time-varying correction factor.

    time_h : ascending lab times with a usable ratio
    ratio  : measured / predicted at those times
    Fewer than two points means no correction (identity).
    """
    time_h: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=float))
    ratio: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=float))

    @property
    def is_identity(self) -> bool:
        return self.time_h.size < 2

    def __call__(self, time_h):
        scalar = np.ndim(time_h) == 0
        h = np.asarray(time_h, dtype=float)
        if self.is_identity:
            out = np.ones_like(h)
        else:
            out = np.interp(h, self.time_h, self.ratio, left=1.0, right=1.0)
        return float(out) if scalar else out


IDENTITY = Calibration()


def calibrate(result: SimulationResult, labs: Iterable[LabResult],
              settings: Optional[EngineSettings] = None) -> Calibration:
    """
    Correction factor from lab measurements against a simulated curve.

    Labs whose prediction is below settings.calibration_min_prediction_pg_ml,
    or whose measured value is not a finite non-negative number, are skipped.
    Labs drawn at the same time are averaged into a single ratio.
    """
    settings = settings or DEFAULT_SETTINGS
    by_time: dict[float, list[float]] = {}
    for lab in sorted(labs, key=lambda r: r.time_h):
        t, measured = float(lab.time_h), float(lab.conc_pg_ml)
        if not (math.isfinite(t) and math.isfinite(measured) and measured >= 0):
            logger.warning("Skipping lab %s: invalid value %r at %r", lab.id, lab.conc_pg_ml, lab.time_h)
            continue
        predicted = interpolate(result, t)
        if predicted < settings.calibration_min_prediction_pg_ml:
            logger.info("Skipping lab %s at %.1f h: predicted %.3g pg/mL is too low to scale",
                        lab.id, t, predicted)
            continue
        by_time.setdefault(t, []).append(measured / predicted)

    if len(by_time) < 2:
        if by_time:
            logger.debug("Only one usable lab point; calibration stays at identity")
        return IDENTITY

    times = np.array(sorted(by_time), dtype=float)
    ratios = np.array([float(np.mean(by_time[t])) for t in times], dtype=float)
    return Calibration(time_h=times, ratio=ratios)


def apply_calibration(result: SimulationResult, calibration: Calibration) -> SimulationResult:
    """A calibrated copy of `result`; the input is left untouched."""
    if result.empty:
        return result
    return SimulationResult(time_h=result.time_h.copy(),
                            conc_pg_ml=result.conc_pg_ml * calibration(result.time_h))
