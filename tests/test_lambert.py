"""
Lambert solver tests: recovery of propagated arcs, direction of motion,
degenerate geometry and the direct-transfer helper.
"""

import math

import numpy as np
import pytest
from numpy.testing import assert_allclose

from slingshot.ephemeris.bodies import AU_KM, GM_SUN, SUN
from slingshot.mechanics.lambert import compute_transfer_dv, solve_lambert
from slingshot.mechanics.orbit import Orbit, OrbitalElements


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def transfer_orbit():
    """Slightly inclined Earth-to-Mars-like ellipse."""
    return Orbit(
        OrbitalElements(1.26 * AU_KM, 0.21, math.radians(1.5), math.radians(10.0), math.radians(5.0)),
        SUN,
    )


def _arc(orbit, nu1, nu2):
    """Endpoints and flight time between two true anomalies of an orbit."""
    r1, v1 = orbit.state_from_true_anomaly(nu1)
    r2, v2 = orbit.state_from_true_anomaly(nu2)
    tof = orbit.time_since_periapsis(nu2) - orbit.time_since_periapsis(nu1)
    if tof < 0:
        tof += orbit.period
    return r1, v1, r2, v2, tof


# =============================================================================
# Test: Arc recovery
# =============================================================================

class TestLambertRecovery:
    """Lambert on two points of a known orbit returns that orbit's velocities."""

    @pytest.mark.parametrize("nu1, nu2", [(0.2, 1.5), (-1.0, 2.0), (0.5, 4.5), (2.5, -2.0)])
    def test_recovers_velocities(self, transfer_orbit, nu1, nu2):
        r1, v1, r2, v2, tof = _arc(transfer_orbit, nu1, nu2)
        sol = solve_lambert(r1, r2, tof, GM_SUN, prograde=True)
        assert sol["converged"]
        assert_allclose(sol["v1"], v1, rtol=1e-4, atol=1e-3)
        assert_allclose(sol["v2"], v2, rtol=1e-4, atol=1e-3)

    def test_hyperbolic_arc(self):
        orbit = Orbit(OrbitalElements(-0.8 * AU_KM, 1.6, 0.0, 0.3, 0.0), SUN)
        r1, v1, r2, v2, tof = _arc(orbit, -0.5, 1.2)
        sol = solve_lambert(r1, r2, tof, GM_SUN)
        assert sol["converged"]
        assert_allclose(sol["v1"], v1, rtol=1e-4, atol=1e-3)
        assert_allclose(sol["v2"], v2, rtol=1e-4, atol=1e-3)


# =============================================================================
# Test: Direction of motion
# =============================================================================

class TestLambertDirection:
    """Prograde arcs turn counter-clockwise about +z, retrograde ones clockwise."""

    @pytest.fixture
    def endpoints(self):
        r1 = np.array([AU_KM, 0.0, 0.0])
        r2 = 1.5 * AU_KM * np.array([math.cos(2.0), math.sin(2.0), 0.0])
        return r1, r2

    def test_prograde(self, endpoints):
        r1, r2 = endpoints
        sol = solve_lambert(r1, r2, 200 * 86400.0, GM_SUN, prograde=True)
        assert sol["converged"]
        assert np.cross(r1, sol["v1"])[2] > 0

    def test_retrograde(self, endpoints):
        r1, r2 = endpoints
        sol = solve_lambert(r1, r2, 200 * 86400.0, GM_SUN, prograde=False)
        assert sol["converged"]
        assert np.cross(r1, sol["v1"])[2] < 0


# =============================================================================
# Test: Degenerate geometry
# =============================================================================

class TestLambertDegenerate:
    """Geometry with no defined transfer plane or no flight time is rejected."""

    def test_opposite_positions(self):
        r1 = np.array([AU_KM, 0.0, 0.0])
        sol = solve_lambert(r1, -1.5 * r1, 250 * 86400.0, GM_SUN)
        assert not sol["converged"]

    def test_coincident_positions(self):
        r1 = np.array([AU_KM, 0.0, 0.0])
        assert not solve_lambert(r1, r1.copy(), 100 * 86400.0, GM_SUN)["converged"]

    def test_non_positive_time_of_flight(self):
        r1 = np.array([AU_KM, 0.0, 0.0])
        r2 = np.array([0.0, AU_KM, 0.0])
        assert not solve_lambert(r1, r2, 0.0, GM_SUN)["converged"]
        assert not solve_lambert(r1, r2, -10.0, GM_SUN)["converged"]


# =============================================================================
# Test: Transfer helper
# =============================================================================

class TestTransferDv:
    """Excess speeds of a direct transfer."""

    def test_zero_excess_on_the_body_orbit(self, transfer_orbit):
        r1, v1, r2, v2, tof = _arc(transfer_orbit, 0.1, 1.1)
        res = compute_transfer_dv(r1, v1, r2, v2, tof, GM_SUN)
        assert res["converged"]
        assert res["v_inf_departure"] < 1e-3
        assert res["v_inf_arrival"] < 1e-3

    def test_failure_is_infinite(self):
        r1 = np.array([AU_KM, 0.0, 0.0])
        res = compute_transfer_dv(r1, np.zeros(3), r1, np.zeros(3), 1.0e6, GM_SUN)
        assert not res["converged"]
        assert math.isinf(res["v_inf_departure"])
