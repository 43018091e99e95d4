"""Keplerian orbital mechanics kernels — Kepler's equation and orbital elements.

All functions operate in km / km/s / seconds / radians.
Performance-critical inner loops are JIT-compiled with Numba.
"""

from __future__ import annotations

import math

import numpy as np
from numba import njit


# --------------------------------------------------------------------------- #
#  Constants
# --------------------------------------------------------------------------- #
TWO_PI = 2.0 * math.pi

# Newton-Raphson stopping rule for Kepler's equation
KEPLER_TOL = 1e-15
KEPLER_MAX_ITER = 1000


# --------------------------------------------------------------------------- #
#  Kepler's equation solvers
# --------------------------------------------------------------------------- #
@njit(cache=True)
def solve_kepler_elliptic(M: float, ecc: float) -> float:
    """Solve M = E - e*sin(E) for the eccentric anomaly E.

    Newton-Raphson seeded at E = M. After KEPLER_MAX_ITER iterations the
    last iterate is returned as is.
    """
    prev = M
    E = M - (M - ecc * math.sin(M) - M) / (1.0 - ecc * math.cos(M))
    n = 0
    while abs(E - prev) > KEPLER_TOL and n < KEPLER_MAX_ITER:
        prev = E
        E -= (E - ecc * math.sin(E) - M) / (1.0 - ecc * math.cos(E))
        n += 1
    return E


@njit(cache=True)
def solve_kepler_hyperbolic(M: float, ecc: float) -> float:
    """Solve M = e*sinh(H) - H for the hyperbolic anomaly H (same rules)."""
    prev = M
    H = M - (ecc * math.sinh(M) - M - M) / (ecc * math.cosh(M) - 1.0)
    n = 0
    while abs(H - prev) > KEPLER_TOL and n < KEPLER_MAX_ITER:
        prev = H
        H -= (ecc * math.sinh(H) - H - M) / (ecc * math.cosh(H) - 1.0)
        n += 1
    return H


# --------------------------------------------------------------------------- #
#  Anomaly conversions
# --------------------------------------------------------------------------- #
@njit(cache=True)
def true_anomaly_from_mean(M: float, ecc: float) -> float:
    """True anomaly for a mean anomaly, elliptic (e < 1) or hyperbolic (e >= 1)."""
    if ecc < 1.0:
        E = solve_kepler_elliptic(M, ecc)
        return 2.0 * math.atan(math.sqrt((1.0 + ecc) / (1.0 - ecc)) * math.tan(0.5 * E))
    H = solve_kepler_hyperbolic(M, ecc)
    return 2.0 * math.atan(math.sqrt((ecc + 1.0) / (ecc - 1.0)) * math.tanh(0.5 * H))


@njit(cache=True)
def mean_anomaly_from_true(nu: float, ecc: float) -> float:
    """Inverse of true_anomaly_from_mean on the principal branch."""
    if ecc < 1.0:
        E = 2.0 * math.atan(math.sqrt((1.0 - ecc) / (1.0 + ecc)) * math.tan(0.5 * nu))
        return E - ecc * math.sin(E)
    H = 2.0 * math.atanh(math.sqrt((ecc - 1.0) / (ecc + 1.0)) * math.tan(0.5 * nu))
    return ecc * math.sinh(H) - H


# --------------------------------------------------------------------------- #
#  State vector -> Classical orbital elements
# --------------------------------------------------------------------------- #
@njit(cache=True)
def state_to_elements(r: np.ndarray, v: np.ndarray, mu: float) -> tuple:
    """Convert state vector (r, v) to classical Keplerian elements.

    Parameters
    ----------
    r : (3,) position in km
    v : (3,) velocity in km/s
    mu : gravitational parameter km^3/s^2

    Returns
    -------
    (a, e, i, raan, argp, nu)
        a    — semi-major axis (km, negative for hyperbolic orbits)
        e    — eccentricity
        i    — inclination (rad)
        raan — longitude of the ascending node (rad)
        argp — argument of periapsis (rad)
        nu   — true anomaly (rad)

    Equatorial orbits take the x axis as their node line, circular orbits
    measure the anomaly from the node line.
    """
    r_mag = math.sqrt(r[0]**2 + r[1]**2 + r[2]**2)
    v_mag2 = v[0]**2 + v[1]**2 + v[2]**2

    # Specific angular momentum
    hx = r[1] * v[2] - r[2] * v[1]
    hy = r[2] * v[0] - r[0] * v[2]
    hz = r[0] * v[1] - r[1] * v[0]
    h_mag = math.sqrt(hx**2 + hy**2 + hz**2)
    wx = hx / h_mag
    wy = hy / h_mag
    wz = hz / h_mag

    # Node vector z x h
    nx = -hy
    ny = hx
    n_mag = math.sqrt(nx**2 + ny**2)

    # Eccentricity vector
    rdotv = r[0] * v[0] + r[1] * v[1] + r[2] * v[2]
    coef = v_mag2 - mu / r_mag
    ex = (coef * r[0] - rdotv * v[0]) / mu
    ey = (coef * r[1] - rdotv * v[1]) / mu
    ez = (coef * r[2] - rdotv * v[2]) / mu
    ecc = math.sqrt(ex**2 + ey**2 + ez**2)

    # Semi-major axis
    energy = v_mag2 / 2.0 - mu / r_mag
    if abs(ecc - 1.0) > 1e-10:
        a = -mu / (2.0 * energy)
    else:
        a = math.inf  # parabolic

    # Inclination
    inc = math.acos(max(-1.0, min(1.0, wz)))

    # Node line
    if n_mag > 1e-12 * h_mag:
        raan = math.atan2(ny, nx)
        ux = nx / n_mag
        uy = ny / n_mag
    else:
        raan = 0.0
        ux = 1.0
        uy = 0.0
    if raan < 0.0:
        raan += TWO_PI

    if ecc > 1e-10:
        # Argument of periapsis: angle node -> e, about h
        cx = uy * ez
        cy = -ux * ez
        cz = ux * ey - uy * ex
        argp = math.atan2(cx * wx + cy * wy + cz * wz, ux * ex + uy * ey)
        if argp < 0.0:
            argp += TWO_PI

        # True anomaly: angle e -> r, about h
        cx = ey * r[2] - ez * r[1]
        cy = ez * r[0] - ex * r[2]
        cz = ex * r[1] - ey * r[0]
        nu = math.atan2(
            (cx * wx + cy * wy + cz * wz) / ecc,
            (ex * r[0] + ey * r[1] + ez * r[2]) / ecc,
        )
    else:
        argp = 0.0
        cx = uy * r[2]
        cy = -ux * r[2]
        cz = ux * r[1] - uy * r[0]
        nu = math.atan2(cx * wx + cy * wy + cz * wz, ux * r[0] + uy * r[1])

    return a, ecc, inc, raan, argp, nu
