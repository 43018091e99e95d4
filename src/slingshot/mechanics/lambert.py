"""Single-revolution Lambert solver in universal variables, Numba JIT.

Given two positions around the same attractor and the flight time between
them, find the connecting conic. On the single-revolution branch the time of
flight is monotonic in the universal variable psi, so psi is bracketed and
bisected; the velocities follow from the Lagrange f, g, g_dot coefficients.

Reference:
    Bate, Mueller, White. "Fundamentals of Astrodynamics", ch. 5.
    Vallado, D. "Fundamentals of Astrodynamics and Applications", alg. 58.

All units: km, seconds, km^3/s^2.
"""

from __future__ import annotations

import math

import numpy as np
from numba import njit

from slingshot.ephemeris.bodies import GM_SUN

# psi in [PSI_LOWER, PSI_UPPER) spans hyperbolic to just-under-one-revolution arcs
PSI_UPPER = 4.0 * math.pi * math.pi - 1e-9
PSI_LOWER = -4.0 * math.pi * math.pi
# Widening of the lower bound stops here (very fast hyperbolas)
PSI_LOWER_LIMIT = -1e5

LAMBERT_MAX_ITER = 200
LAMBERT_TOL = 1e-6


@njit(cache=True)
def _stumpff(psi: float) -> tuple:
    """c2(psi), c3(psi); series expansion near zero."""
    if abs(psi) < 1e-6:
        return 0.5 - psi / 24.0, 1.0 / 6.0 - psi / 120.0
    if psi > 0.0:
        s = math.sqrt(psi)
        return (1.0 - math.cos(s)) / psi, (s - math.sin(s)) / (psi * s)
    s = math.sqrt(-psi)
    return (math.cosh(s) - 1.0) / -psi, (math.sinh(s) - s) / (-psi * s)


@njit(cache=True)
def _flight_time(psi: float, r_sum: float, A: float, mu: float) -> tuple:
    """(tof, y) for a trial psi; y < 0 maps to tof = 0 so psi moves up."""
    c2, c3 = _stumpff(psi)
    y = r_sum + A * (psi * c3 - 1.0) / math.sqrt(c2)
    if y < 0.0:
        return 0.0, y
    x = math.sqrt(y / c2)
    return (x * x * x * c3 + A * math.sqrt(y)) / math.sqrt(mu), y


@njit(cache=True)
def _transfer_geometry(r1: np.ndarray, r2: np.ndarray, prograde: bool) -> tuple:
    """|r1|, |r2| and the signed geometry constant A (0 when undefined)."""
    n1 = math.sqrt(r1[0] * r1[0] + r1[1] * r1[1] + r1[2] * r1[2])
    n2 = math.sqrt(r2[0] * r2[0] + r2[1] * r2[1] + r2[2] * r2[2])
    d = r2 - r1
    chord = math.sqrt(d[0] * d[0] + d[1] * d[1] + d[2] * d[2])
    if n1 < 1e-10 or n2 < 1e-10 or chord < 1e-10 * (n1 + n2):
        return n1, n2, 0.0

    cos_dnu = (r1[0] * r2[0] + r1[1] * r2[1] + r1[2] * r2[2]) / (n1 * n2)
    cos_dnu = min(1.0, max(-1.0, cos_dnu))
    h_z = r1[0] * r2[1] - r1[1] * r2[0]

    A = math.sqrt(n1 * n2 * (1.0 + cos_dnu))
    # Long way round when the requested sense of motion disagrees with r1 x r2
    if (h_z < 0.0) if prograde else (h_z >= 0.0):
        A = -A
    if abs(A) < 1e-10 * math.sqrt(n1 * n2):
        # 180 degree transfer: no unique plane
        return n1, n2, 0.0
    return n1, n2, A


@njit(cache=True)
def _find_y(tof: float, r_sum: float, A: float, mu: float, max_iter: int, tol: float) -> tuple:
    """Bisect psi until the flight time matches. Returns (y, converged)."""
    hi = PSI_UPPER
    lo = PSI_LOWER
    t_lo, _y = _flight_time(lo, r_sum, A, mu)
    while t_lo > tof and lo > PSI_LOWER_LIMIT:
        lo *= 2.0
        t_lo, _y = _flight_time(lo, r_sum, A, mu)

    for _ in range(max_iter):
        psi = 0.5 * (lo + hi)
        t, y = _flight_time(psi, r_sum, A, mu)
        if y >= 0.0 and abs(t - tof) < tol * tof:
            return y, y > 0.0
        if t < tof:
            lo = psi
        else:
            hi = psi
    return 0.0, False


@njit(cache=True)
def _lambert_kernel(
    r1: np.ndarray,
    r2: np.ndarray,
    tof: float,
    mu: float,
    prograde: bool,
    max_iter: int,
    tol: float,
) -> tuple:
    if tof <= 0.0:
        return np.zeros(3), np.zeros(3), False

    n1, n2, A = _transfer_geometry(r1, r2, prograde)
    if A == 0.0:
        return np.zeros(3), np.zeros(3), False

    y, converged = _find_y(tof, n1 + n2, A, mu, max_iter, tol)
    if not converged:
        return np.zeros(3), np.zeros(3), False

    # Lagrange coefficients
    f = 1.0 - y / n1
    g = A * math.sqrt(y / mu)
    g_dot = 1.0 - y / n2
    return (r2 - f * r1) / g, (g_dot * r2 - r1) / g, True


# --------------------------------------------------------------------------- #
#  Public API
# --------------------------------------------------------------------------- #
def solve_lambert(
    r1: np.ndarray,
    r2: np.ndarray,
    tof: float,
    mu: float = GM_SUN,
    prograde: bool = True,
) -> dict:
    """Velocities at both ends of the conic from r1 to r2 in ``tof`` seconds.

    ``prograde`` selects the arc turning counter-clockwise about +z.
    Degenerate geometry (coincident or opposite positions, tof <= 0) and
    failed bisection come back with ``converged = False`` and zero vectors.

    Returns
    -------
    dict with "v1", "v2" (km/s) and "converged"
    """
    v1, v2, converged = _lambert_kernel(
        np.asarray(r1, dtype=np.float64),
        np.asarray(r2, dtype=np.float64),
        float(tof),
        float(mu),
        bool(prograde),
        LAMBERT_MAX_ITER,
        LAMBERT_TOL,
    )
    return {"v1": v1, "v2": v2, "converged": converged}


def compute_transfer_dv(
    r1: np.ndarray,
    v1_planet: np.ndarray,
    r2: np.ndarray,
    v2_planet: np.ndarray,
    tof: float,
    mu: float = GM_SUN,
    prograde: bool = True,
) -> dict:
    """Excess speeds of a direct transfer between two moving bodies.

    Returns
    -------
    dict with "v_inf_departure", "v_inf_arrival" (km/s, inf on failure),
    "v1_transfer", "v2_transfer" and "converged"
    """
    sol = solve_lambert(r1, r2, tof, mu, prograde)
    if not sol["converged"]:
        return {
            "v_inf_departure": math.inf,
            "v_inf_arrival": math.inf,
            "v1_transfer": sol["v1"],
            "v2_transfer": sol["v2"],
            "converged": False,
        }
    return {
        "v_inf_departure": float(np.linalg.norm(sol["v1"] - v1_planet)),
        "v_inf_arrival": float(np.linalg.norm(sol["v2"] - v2_planet)),
        "v1_transfer": sol["v1"],
        "v2_transfer": sol["v2"],
        "converged": True,
    }
