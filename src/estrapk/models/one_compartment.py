# src/estrapk/models/one_compartment.py
import numpy as np

MG_PER_L_TO_PG_PER_ML = 1e6


def bolus_amount(tau, dose_mg, F, ka, ke, eps=1e-9):
    """
    Central-compartment amount (mg) after a first-order absorbed dose.

      A(tau) = F*D*ka/(ka-ke) * [exp(-ke*tau) - exp(-ka*tau)]     tau >= 0
      A(tau) = F*D*ke*tau*exp(-ke*tau)                            |ka-ke| < eps
      A(tau) = 0                                                  tau < 0

    Parameters:
      tau     : time since dose (h), scalar or array
      dose_mg : dose (mg)
      F       : absorbed fraction
      ka, ke  : absorption / elimination rate constants (1/h)
    """
    tau = np.asarray(tau, dtype=float)
    if ka <= 0 or dose_mg <= 0 or F <= 0:
        return np.zeros_like(tau)
    # Evaluate on tau >= 0 only so exp never sees large positive arguments
    tp = np.maximum(tau, 0.0)
    if abs(ka - ke) < eps:
        A = F * dose_mg * ke * tp * np.exp(-ke * tp)
    else:
        A = F * dose_mg * ka / (ka - ke) * (np.exp(-ke * tp) - np.exp(-ka * tp))
    A = np.where(tau > 0.0, A, 0.0)
    return np.maximum(A, 0.0)


def infusion_amount(tau, wear_h, rate_mg_per_h, ke):
    """
    Central-compartment amount (mg) for a zero-order input lasting wear_h hours.

      A(tau) = R/ke * (1 - exp(-ke*tau))            0 <= tau < wear
      A(tau) = A(wear) * exp(-ke*(tau - wear))      tau >= wear
    """
    tau = np.asarray(tau, dtype=float)
    if rate_mg_per_h <= 0 or wear_h <= 0:
        return np.zeros_like(tau)
    tp = np.maximum(tau, 0.0)
    if ke <= 0:
        # No elimination: plain accumulation
        A = rate_mg_per_h * np.minimum(tp, wear_h)
    else:
        rising = rate_mg_per_h / ke * (1.0 - np.exp(-ke * np.minimum(tp, wear_h)))
        A = np.where(tp < wear_h, rising, rising * np.exp(-ke * (tp - wear_h)))
    A = np.where(tau > 0.0, A, 0.0)
    return np.maximum(A, 0.0)


def bolus_tmax(ka, ke, eps=1e-9):
    """Time after dose of the peak of bolus_amount (h)."""
    if ka <= 0 or ke <= 0:
        return 0.0
    if abs(ka - ke) < eps:
        return 1.0 / ke
    return float(np.log(ka / ke) / (ka - ke))


def one_compartment_first_order(t, y, ka, ke, infusion_rate_mg_per_h=0.0):
    """
    One-compartment model with first-order absorption and elimination.
    Two states:
      y[0] = drug in absorption depot (mg, already scaled by F)
      y[1] = drug in central compartment (mg)

    Parameters:
      t                      : current time (h)
      y                      : current state vector [A_depot, A_central]
      ka, ke                 : absorption / elimination rate constants (1/h)
      infusion_rate_mg_per_h : zero-order input straight into the central compartment
    """
    A_depot, A_c = y

    dA_depot_dt = -ka * A_depot
    dA_c_dt = ka * A_depot - ke * A_c + infusion_rate_mg_per_h

    return [dA_depot_dt, dA_c_dt]
