# src/estrapk/metrics.py
from typing import Optional, Tuple

import numpy as np

from .types import SimulationResult

def cmax_tmax(result: SimulationResult) -> Tuple[float, float]:
    """Return Cmax (pg/mL) and Tmax (h). (0, nan) for an empty result."""
    if result.empty:
        return 0.0, float("nan")
    idx = int(np.argmax(result.conc_pg_ml))
    return float(result.conc_pg_ml[idx]), float(result.time_h[idx])

def auc_trapz(result: SimulationResult, start_h: Optional[float] = None, end_h: Optional[float] = None) -> float:
    """Area Under the Curve via trapezoidal rule (pg*h/mL), optionally over [start_h, end_h]."""
    t, C = _window(result, start_h, end_h)
    if t.size < 2:
        return 0.0
    return float(np.trapezoid(C, t))

def cavg(result: SimulationResult, start_h: Optional[float] = None, end_h: Optional[float] = None) -> float:
    """
    Time-weighted average concentration over [start_h, end_h] (default: whole series).
    The grid is non-uniform, so this is AUC / duration rather than a sample mean.
    """
    t, C = _window(result, start_h, end_h)
    if t.size == 0:
        return 0.0
    if t.size == 1 or t[-1] == t[0]:
        return float(C[0])
    return float(np.trapezoid(C, t)) / float(t[-1] - t[0])

def peak_to_trough_ratio(result: SimulationResult, interval_h: Optional[float] = None,
                         end_h: Optional[float] = None) -> float:
    """
    Peak-to-Trough Ratio (PTR) = Cmax / Cmin.
    If interval_h is given, computed over the dosing interval ending at end_h
    (default: last sample); otherwise over the full series.
    """
    _, Cw = _interval(result, interval_h, end_h)
    if Cw.size == 0:
        return float("nan")
    cmin_val = float(np.min(Cw))
    if cmin_val <= 0:
        return float("inf")
    return float(np.max(Cw)) / cmin_val

def fluctuation_index(result: SimulationResult, interval_h: Optional[float] = None,
                      end_h: Optional[float] = None) -> float:
    """
    Fluctuation Index (FI) = (Cmax - Cmin) / Cavg over the same window as peak_to_trough_ratio.
    """
    tw, Cw = _interval(result, interval_h, end_h)
    if Cw.size == 0:
        return float("nan")
    avg = cavg(SimulationResult(time_h=tw, conc_pg_ml=Cw))
    if avg == 0.0:
        return float("inf")
    return (float(np.max(Cw)) - float(np.min(Cw))) / avg

def level_status(conc_pg_ml: float) -> str:
    """Reference band for a serum estradiol level: high, mtf, luteal, follicular, male or low."""
    c = conc_pg_ml
    if c > 300:
        return "high"
    if 100 <= c <= 200:
        return "mtf"
    if 70 <= c <= 300:
        return "luteal"
    if 30 <= c < 70:
        return "follicular"
    if 8 <= c < 30:
        return "male"
    return "low"


def _window(result: SimulationResult, start_h: Optional[float], end_h: Optional[float]):
    t, C = result.time_h, result.conc_pg_ml
    mask = np.ones_like(t, dtype=bool)
    if start_h is not None:
        mask &= t >= start_h
    if end_h is not None:
        mask &= t <= end_h
    return t[mask], C[mask]

def _interval(result: SimulationResult, interval_h: Optional[float], end_h: Optional[float]):
    if not interval_h or interval_h <= 0 or result.empty:
        return result.time_h, result.conc_pg_ml
    end = float(result.time_h[-1]) if end_h is None else float(end_h)
    return _window(result, end - float(interval_h), end)
