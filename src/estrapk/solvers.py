# src/estrapk/solvers.py
"""
Numerical reference for the closed-form curves.

Integrates the depot/central ODE of each contribution with scipy and sums the
results. Much slower than the analytic path; used to validate it.
"""
from typing import Sequence

import numpy as np
from scipy.integrate import solve_ivp

from .models.one_compartment import MG_PER_L_TO_PG_PER_ML, one_compartment_first_order
from .types import Bolus, Contribution, Infusion


def integrate_reference(contributions: Sequence[Contribution], vd_l: float, times_h,
                        rtol: float = 1e-10, atol: float = 1e-14) -> np.ndarray:
    """
    Concentration (pg/mL) at times_h by numerical integration.

    Returns:
      C : array aligned with times_h
    """
    t = np.asarray(times_h, dtype=float)
    total_mg = np.zeros_like(t)
    for c in contributions:
        total_mg += integrate_contribution(c, t, rtol=rtol, atol=atol)
    return np.maximum(total_mg / vd_l * MG_PER_L_TO_PG_PER_ML, 0.0)


def integrate_contribution(c: Contribution, times_h: np.ndarray,
                           rtol: float = 1e-10, atol: float = 1e-14) -> np.ndarray:
    """
    Central amount (mg) of a single contribution.

    A bolus starts as F*dose in the depot at t0. An infusion feeds the central
    compartment at a constant rate on [t0, t1); integration is split at t1 so
    the solver never steps across the discontinuity.
    """
    t = np.asarray(times_h, dtype=float)
    out = np.zeros_like(t)
    if t.size == 0:
        return out
    t_end = float(np.max(t))

    if isinstance(c, Bolus):
        y0 = [c.F * c.dose_mg, 0.0]
        ka, ke = c.ka_per_h, c.ke_per_h
        # (segment end, infusion rate during the segment)
        segments = [(t_end, 0.0)]
    elif isinstance(c, Infusion):
        y0 = [0.0, 0.0]
        ka, ke = 0.0, c.ke_per_h
        segments = [(min(c.t1_h, t_end), c.rate_mg_per_h), (t_end, 0.0)]
    else:
        raise TypeError(f"Unknown contribution type {type(c).__name__}")

    prev = c.t0_h
    if t_end <= prev:
        return out
    for curr, rate in segments:
        if curr <= prev:
            continue

        # Sample points in (prev, curr]; curr itself is always evaluated to carry the state over
        mask = (t > prev) & (t <= curr)
        t_eval = np.unique(np.append(t[mask], curr))
        sol = solve_ivp(
            lambda tt, y: one_compartment_first_order(tt, y, ka, ke, rate),
            t_span=(prev, curr), y0=y0, method="RK45", rtol=rtol, atol=atol, t_eval=t_eval,
        )
        out[mask] = sol.y[1][np.searchsorted(t_eval, t[mask])]

        y0 = [float(sol.y[0, -1]), float(sol.y[1, -1])]
        prev = curr

    return np.maximum(out, 0.0)
