import pytest

from estrapk.catalog import (
    DEFAULT_ENTRY, bioavailability_multiplier, convert_to_pg_ml, lookup,
    sublingual_theta, theta_from_hold, to_estradiol_equivalent,
)
from estrapk.types import LabResult, PatchRate, SublingualTheta, SublingualTier


def test_estradiol_equivalent():
    assert to_estradiol_equivalent("E2") == 1.0
    assert to_estradiol_equivalent("EV") == pytest.approx(272.38 / 356.50)
    assert to_estradiol_equivalent("EC") < to_estradiol_equivalent("EB") < 1.0
    assert to_estradiol_equivalent("unknown") == 1.0


def test_lookup_defaults():
    assert lookup("injection", "EV").ke_per_h == 0.041
    assert lookup("oral", "EV").ka_per_h == 0.05
    assert lookup("oral", "XX") == lookup("oral", "E2")
    assert lookup("nasal", "E2") is DEFAULT_ENTRY


def test_every_route_compound_has_sane_constants():
    for route in ("injection", "oral", "sublingual", "gel"):
        for compound in ("E2", "EB", "EV", "EC", "EN"):
            entry = lookup(route, compound)
            assert entry.ka_per_h > 0 and entry.ke_per_h > 0
            assert 0.0 < entry.bioavailability <= 1.0


@pytest.mark.parametrize("index, theta", [
    (0, 0.01), (1, 0.04), (2, 0.11), (3, 0.18),
    (4, 0.11), (-1, 0.11), (0.6, 0.04), (float("nan"), 0.11),
    (0.5, 0.04), (2.5, 0.18), (3.5, 0.11),
])
def test_sublingual_tiers(index, theta):
    assert sublingual_theta(index) == theta


@pytest.mark.parametrize("hold, theta", [
    (0.0, 0.0),
    (10.0, 0.11),
    (12.5, 0.145),
    (0.5, 0.0),
    (60.0, 0.81),
    (200.0, 1.0),
])
def test_theta_from_hold(hold, theta):
    assert theta_from_hold(hold) == pytest.approx(theta)


def test_bioavailability_multiplier():
    assert bioavailability_multiplier("oral", "E2") == pytest.approx(0.03)
    assert bioavailability_multiplier("sublingual", "E2", SublingualTier(2)) == pytest.approx(0.11 + 0.89 * 0.03)
    assert bioavailability_multiplier("sublingual", "E2", SublingualTheta(1.0)) == pytest.approx(1.0)
    assert bioavailability_multiplier("patch_apply", "E2", PatchRate(50.0)) == 1.0
    assert bioavailability_multiplier("patch_remove", "E2") == 0.0


def test_convert_to_pg_ml():
    assert convert_to_pg_ml(150.0, "pg/ml") == 150.0
    assert convert_to_pg_ml(150.0, "pg/mL") == 150.0
    assert convert_to_pg_ml(367.13, "pmol/l") == pytest.approx(100.0, rel=1e-4)
    assert convert_to_pg_ml(42.0, "ng/dl") == 42.0


def test_lab_result_from_pmol():
    lab = LabResult.from_measurement(10.0, 734.27, "pmol/l", id="lab-1")
    assert lab.conc_pg_ml == pytest.approx(200.0, rel=1e-4)
    assert (lab.time_h, lab.id) == (10.0, "lab-1")
