"""Conic orbits around an attractor.

An ``Orbit`` is built once from its classical elements and answers every
position / velocity / anomaly question the trajectory calculator asks.
The perifocal -> attractor frame rotation is the usual 3-1-3 sequence
(ascending node, inclination, argument of periapsis).
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
from scipy.spatial.transform import Rotation

from slingshot.ephemeris.bodies import CelestialBody, OrbitData
from slingshot.mechanics.kepler import (
    TWO_PI,
    mean_anomaly_from_true,
    state_to_elements,
    true_anomaly_from_mean,
)

_X = np.array([1.0, 0.0, 0.0])
_Y = np.array([0.0, 1.0, 0.0])
_Z = np.array([0.0, 0.0, 1.0])


@dataclass(frozen=True, slots=True)
class OrbitalElements:
    """Classical elements, angles in radians. Hyperbolas have a < 0."""
    semi_major_axis: float  # km
    eccentricity: float
    inclination: float
    arg_of_periapsis: float
    asc_node_longitude: float

    @classmethod
    def from_orbit_data(cls, data: OrbitData) -> "OrbitalElements":
        return cls(
            semi_major_axis=data.semi_major_axis,
            eccentricity=data.eccentricity,
            inclination=math.radians(data.inclination),
            arg_of_periapsis=math.radians(data.arg_of_periapsis),
            asc_node_longitude=math.radians(data.asc_node_longitude),
        )


def wrap_angle(angle: float) -> float:
    """Wrap an angle into (-pi, pi]."""
    angle = math.fmod(angle + math.pi, TWO_PI)
    if angle <= 0.0:
        angle += TWO_PI
    return angle - math.pi


class Orbit:
    """Keplerian orbit of a body (or spacecraft) around ``attractor``."""

    def __init__(self, elements: OrbitalElements, attractor: CelestialBody) -> None:
        self.elements = elements
        self.attractor = attractor
        self.mu = attractor.gm

        a = elements.semi_major_axis
        e = elements.eccentricity
        self.semi_major_axis = a
        self.eccentricity = e
        self.orbital_param = a * (1.0 - e * e)
        self.mean_motion = math.sqrt(self.mu / abs(a) ** 3)

        if e < 1.0:
            self.periapsis: float | None = a * (1.0 - e)
            self.apoapsis: float | None = 2.0 * a - self.periapsis
        else:
            self.periapsis = None
            self.apoapsis = None

        # Perifocal frame -> attractor frame
        self._rotation = Rotation.from_euler(
            "ZXZ",
            [elements.asc_node_longitude, elements.inclination, elements.arg_of_periapsis],
        )
        self.asc_node_dir = Rotation.from_euler("Z", elements.asc_node_longitude).apply(_X)
        self.normal = self._rotation.apply(_Z)
        self.periapsis_dir = self._rotation.apply(_X)
        self._semi_minor_dir = self._rotation.apply(_Y)

    def __repr__(self) -> str:
        return (
            f"Orbit(a={self.semi_major_axis:.6g}, e={self.eccentricity:.6g}, "
            f"attractor={self.attractor.name})"
        )

    # ------------------------------------------------------------------ #
    #  Construction from a state vector
    # ------------------------------------------------------------------ #
    @classmethod
    def from_state(
        cls, position: np.ndarray, velocity: np.ndarray, attractor: CelestialBody,
    ) -> tuple["Orbit", float]:
        """Orbit through (position, velocity) and the true anomaly of that state."""
        a, e, inc, raan, argp, nu = state_to_elements(
            np.asarray(position, dtype=np.float64),
            np.asarray(velocity, dtype=np.float64),
            attractor.gm,
        )
        elements = OrbitalElements(
            semi_major_axis=a,
            eccentricity=e,
            inclination=inc,
            arg_of_periapsis=argp,
            asc_node_longitude=raan,
        )
        return cls(elements, attractor), nu

    # ------------------------------------------------------------------ #
    #  Geometry
    # ------------------------------------------------------------------ #
    @property
    def period(self) -> float:
        if self.eccentricity >= 1.0:
            return math.inf
        return TWO_PI / self.mean_motion

    def radius(self, true_anomaly: float) -> float:
        return self.orbital_param / (1.0 + self.eccentricity * math.cos(true_anomaly))

    def true_anomaly_at_radius(self, radius: float) -> float:
        """Positive true anomaly at which the orbit reaches ``radius``.

        Raises ValueError when the radius is never reached.
        """
        cos_nu = (self.orbital_param / radius - 1.0) / self.eccentricity
        if not -1.0 <= cos_nu <= 1.0:
            raise ValueError(f"radius {radius:.6g} km is not reached by {self!r}")
        return math.acos(cos_nu)

    def position_from_true_anomaly(self, true_anomaly: float) -> np.ndarray:
        r = self.radius(true_anomaly)
        return r * (
            math.cos(true_anomaly) * self.periapsis_dir
            + math.sin(true_anomaly) * self._semi_minor_dir
        )

    def velocity_from_true_anomaly(self, true_anomaly: float) -> np.ndarray:
        speed = math.sqrt(self.mu / self.orbital_param)
        in_plane = np.array([
            -speed * math.sin(true_anomaly),
            speed * (self.eccentricity + math.cos(true_anomaly)),
            0.0,
        ])
        return self._rotation.apply(in_plane)

    def state_from_true_anomaly(self, true_anomaly: float) -> tuple[np.ndarray, np.ndarray]:
        return (
            self.position_from_true_anomaly(true_anomaly),
            self.velocity_from_true_anomaly(true_anomaly),
        )

    # ------------------------------------------------------------------ #
    #  Time
    # ------------------------------------------------------------------ #
    def solve_true_anomaly_at_date(self, mean_anomaly0: float, epoch: float, date: float) -> float:
        """True anomaly at ``date`` given the mean anomaly at ``epoch``.

        Parameters
        ----------
        mean_anomaly0 : mean anomaly at epoch (rad)
        epoch : reference date (s)
        date : requested date (s)
        """
        m = mean_anomaly0 + self.mean_motion * (date - epoch)
        if self.eccentricity < 1.0:
            m = wrap_angle(m)
        return true_anomaly_from_mean(m, self.eccentricity)

    def state_at_date(
        self, mean_anomaly0: float, epoch: float, date: float,
    ) -> tuple[np.ndarray, np.ndarray]:
        nu = self.solve_true_anomaly_at_date(mean_anomaly0, epoch, date)
        return self.state_from_true_anomaly(nu)

    def mean_anomaly_from_true_anomaly(self, true_anomaly: float) -> float:
        return mean_anomaly_from_true(true_anomaly, self.eccentricity)

    def time_since_periapsis(self, true_anomaly: float) -> float:
        return self.mean_anomaly_from_true_anomaly(true_anomaly) / self.mean_motion

    # ------------------------------------------------------------------ #
    #  Vis-viva
    # ------------------------------------------------------------------ #
    def velocity_at_radius(self, radius: float) -> float:
        return math.sqrt(self.mu * (2.0 / radius - 1.0 / self.semi_major_axis))

    def circular_velocity(self, radius: float) -> float:
        return math.sqrt(self.mu / radius)
