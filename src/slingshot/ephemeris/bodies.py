"""Celestial body catalog with NAIF IDs and physical parameters.

GM values (gravitational parameter, km^3/s^2) from JPL DE440/441, radii in km.
Planet orbits are the J2000 mean elements (ecliptic frame) of Standish's
"Keplerian Elements for Approximate Positions of the Major Planets";
spheres of influence follow a * (m / M_sun)^(2/5).
"""

from __future__ import annotations

import math
from dataclasses import dataclass

# 1 AU in km
AU_KM: float = 1.495978707e8


@dataclass(frozen=True, slots=True)
class OrbitData:
    """Orbit of a catalog body around its attractor.

    Angles in degrees; the mean anomaly corresponds to ``epoch`` (seconds).
    """
    semi_major_axis: float  # km
    eccentricity: float
    inclination: float
    arg_of_periapsis: float
    asc_node_longitude: float
    mean_anomaly0: float
    epoch: float = 0.0


@dataclass(frozen=True, slots=True)
class CelestialBody:
    id: int  # NAIF ID
    name: str
    gm: float  # km^3 / s^2
    radius: float  # km (mean volumetric)
    soi: float = math.inf  # km, sphere of influence radius
    orbit: OrbitData | None = None
    attractor_id: int | None = None  # None = root of the system

    @property
    def is_root(self) -> bool:
        return self.attractor_id is None


# --------------------------------------------------------------------------- #
#  Sun
# --------------------------------------------------------------------------- #
SUN = CelestialBody(id=10, name="Sun", gm=1.32712440018e11, radius=695_700.0)

# --------------------------------------------------------------------------- #
#  Planets
# --------------------------------------------------------------------------- #
MERCURY = CelestialBody(
    id=199, name="Mercury", gm=2.2032e4, radius=2_439.7, soi=1.124e5,
    orbit=OrbitData(0.38709927 * AU_KM, 0.20563593, 7.00497902,
                    29.12703035, 48.33076593, 174.79252722),
    attractor_id=10,
)
VENUS = CelestialBody(
    id=299, name="Venus", gm=3.24859e5, radius=6_051.8, soi=6.162e5,
    orbit=OrbitData(0.72333566 * AU_KM, 0.00677672, 3.39467605,
                    54.92262463, 76.67984255, 50.37663232),
    attractor_id=10,
)
EARTH = CelestialBody(
    id=399, name="Earth", gm=3.986004418e5, radius=6_371.0, soi=9.245e5,
    orbit=OrbitData(1.00000261 * AU_KM, 0.01671123, 0.0,
                    102.93768193, 0.0, -2.47311027),
    attractor_id=10,
)
MARS = CelestialBody(
    id=499, name="Mars", gm=4.282837e4, radius=3_389.5, soi=5.774e5,
    orbit=OrbitData(1.52371034 * AU_KM, 0.09339410, 1.84969142,
                    -73.50316850, 49.55953891, 19.39019754),
    attractor_id=10,
)
JUPITER = CelestialBody(
    id=599, name="Jupiter", gm=1.26686534e8, radius=69_911.0, soi=4.821e7,
    orbit=OrbitData(5.20288700 * AU_KM, 0.04838624, 1.30439695,
                    -85.74542926, 100.47390909, 19.66796068),
    attractor_id=10,
)
SATURN = CelestialBody(
    id=699, name="Saturn", gm=3.7931187e7, radius=58_232.0, soi=5.479e7,
    orbit=OrbitData(9.53667594 * AU_KM, 0.05386179, 2.48599187,
                    -21.06354617, 113.66242448, -42.64463408),
    attractor_id=10,
)
URANUS = CelestialBody(
    id=799, name="Uranus", gm=5.793939e6, radius=25_362.0, soi=5.177e7,
    orbit=OrbitData(19.18916464 * AU_KM, 0.04725744, 0.77263783,
                    96.93735127, 74.01692503, 142.28382821),
    attractor_id=10,
)
NEPTUNE = CelestialBody(
    id=899, name="Neptune", gm=6.836529e6, radius=24_622.0, soi=8.654e7,
    orbit=OrbitData(30.06992276 * AU_KM, 0.00859048, 1.77004347,
                    -86.81946347, 131.78422574, -100.08479196),
    attractor_id=10,
)

# --------------------------------------------------------------------------- #
#  Lookup tables
# --------------------------------------------------------------------------- #
DEFAULT_BODIES: list[CelestialBody] = [
    SUN,
    MERCURY, VENUS, EARTH, MARS, JUPITER, SATURN, URANUS, NEPTUNE,
]

# Sun GM, central body for heliocentric transfers
GM_SUN: float = SUN.gm  # km^3/s^2
