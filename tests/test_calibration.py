import numpy as np
import pytest

from estrapk.calibration import Calibration, apply_calibration, calibrate
from estrapk.helpers import interpolate
from estrapk.simulate import simulate
from estrapk.types import DoseEvent, LabResult


@pytest.fixture
def ev_sim():
    """A single 5 mg EV injection at t=0, 70 kg."""
    ev = DoseEvent(id="inj", route="injection", compound="EV", time_h=0.0, dose_mg=5.0)
    return simulate([ev], 70.0)


def test_no_labs_is_identity(ev_sim):
    cal = calibrate(ev_sim, [])
    assert cal.is_identity
    for t in (-100.0, 0.0, 48.0, 1e6):
        assert cal(t) == 1.0


def test_single_lab_is_identity(ev_sim):
    p = interpolate(ev_sim, 48.0)
    cal = calibrate(ev_sim, [LabResult(48.0, 3.0 * p)])
    assert cal.is_identity
    assert cal(48.0) == 1.0


def test_two_labs_interpolate_ratios(ev_sim):
    t1, t2 = 48.0, 120.0
    p1, p2 = interpolate(ev_sim, t1), interpolate(ev_sim, t2)
    cal = calibrate(ev_sim, [LabResult(t2, 0.5 * p2), LabResult(t1, 2.0 * p1)])

    assert cal(t1) == pytest.approx(2.0)
    assert cal(t2) == pytest.approx(0.5)
    assert cal(0.5 * (t1 + t2)) == pytest.approx(1.25)
    # Flat at 1.0 outside the lab span
    assert cal(t1 - 1.0) == 1.0
    assert cal(t2 + 1.0) == 1.0


def test_array_query(ev_sim):
    p1, p2 = interpolate(ev_sim, 48.0), interpolate(ev_sim, 120.0)
    cal = calibrate(ev_sim, [LabResult(48.0, 2.0 * p1), LabResult(120.0, 2.0 * p2)])
    out = cal(np.array([0.0, 60.0, 500.0]))
    assert np.allclose(out, [1.0, 2.0, 1.0])


def test_labs_with_near_zero_prediction_are_skipped(ev_sim):
    """A draw before the first dose has no prediction to scale against."""
    p = interpolate(ev_sim, 48.0)
    cal = calibrate(ev_sim, [LabResult(-10.0, 50.0), LabResult(48.0, 2.0 * p)])
    assert cal.is_identity


def test_invalid_measurements_are_skipped(ev_sim):
    p1, p2 = interpolate(ev_sim, 48.0), interpolate(ev_sim, 120.0)
    cal = calibrate(ev_sim, [
        LabResult(48.0, 2.0 * p1),
        LabResult(72.0, float("nan")),
        LabResult(96.0, -5.0),
        LabResult(120.0, 2.0 * p2),
    ])
    assert list(cal.time_h) == [48.0, 120.0]


def test_same_time_labs_are_averaged(ev_sim):
    p1, p2 = interpolate(ev_sim, 48.0), interpolate(ev_sim, 120.0)
    cal = calibrate(ev_sim, [LabResult(48.0, 2.0 * p1), LabResult(48.0, 4.0 * p1), LabResult(120.0, p2)])
    assert cal(48.0) == pytest.approx(3.0)


def test_empty_simulation_gives_identity():
    empty = simulate([], 70.0)
    cal = calibrate(empty, [LabResult(1.0, 100.0), LabResult(2.0, 120.0)])
    assert cal.is_identity


def test_apply_calibration_leaves_model_untouched(ev_sim):
    p1, p2 = interpolate(ev_sim, 48.0), interpolate(ev_sim, 120.0)
    cal = calibrate(ev_sim, [LabResult(48.0, 2.0 * p1), LabResult(120.0, 2.0 * p2)])
    before = ev_sim.conc_pg_ml.copy()

    scaled = apply_calibration(ev_sim, cal)

    assert np.array_equal(ev_sim.conc_pg_ml, before)
    inside = (ev_sim.time_h >= 48.0) & (ev_sim.time_h <= 120.0)
    assert np.allclose(scaled.conc_pg_ml[inside], 2.0 * before[inside])
    assert np.array_equal(scaled.conc_pg_ml[~inside], before[~inside])


def test_identity_calibration_object():
    cal = Calibration()
    assert cal.is_identity and cal(5.0) == 1.0
