"""Immutable body catalog (``SolarSystem``) keyed by NAIF ID.

Every computation receives the catalog explicitly; nothing reads a global
body table. Body orbits are precomputed once when the catalog is built.
"""

from __future__ import annotations

import logging
import math
from types import MappingProxyType
from typing import Iterable, Iterator

import numpy as np

from slingshot.ephemeris.bodies import DEFAULT_BODIES, CelestialBody, OrbitData
from slingshot.mechanics.orbit import Orbit, OrbitalElements

logger = logging.getLogger("slingshot.ephemeris")


class SolarSystem:
    """A root body plus everything orbiting it (directly or not)."""

    def __init__(self, bodies: Iterable[CelestialBody]) -> None:
        table: dict[int, CelestialBody] = {}
        for body in bodies:
            if body.id in table:
                raise ValueError(f"Duplicate body id {body.id}")
            table[body.id] = body
        if not table:
            raise ValueError("A system needs at least one body")

        roots = [b for b in table.values() if b.is_root]
        if len(roots) != 1:
            raise ValueError(f"A system needs exactly one root body, got {len(roots)}")
        self.root = roots[0]

        orbits: dict[int, Orbit] = {}
        for body in table.values():
            if body.is_root:
                continue
            if body.attractor_id not in table:
                raise ValueError(
                    f"Body {body.name} ({body.id}) orbits unknown attractor {body.attractor_id}"
                )
            if body.orbit is None:
                raise ValueError(f"Body {body.name} ({body.id}) has no orbit")
            orbits[body.id] = Orbit(
                OrbitalElements.from_orbit_data(body.orbit), table[body.attractor_id],
            )

        self._bodies = MappingProxyType(table)
        self._orbits = MappingProxyType(orbits)
        logger.debug("Catalog built with %d bodies", len(table))

    @classmethod
    def default(cls) -> "SolarSystem":
        """The Sun and the eight planets."""
        return cls(DEFAULT_BODIES)

    @classmethod
    def from_records(cls, records: Iterable[dict]) -> "SolarSystem":
        """Build a catalog from plain dicts.

        Each record has ``id``, ``name``, ``gm``, ``radius`` and, for orbiting
        bodies, ``attractor_id`` and an ``orbit`` dict with the OrbitData
        fields. A missing ``soi`` is estimated as a * (gm / gm_attractor)^(2/5).
        """
        records = list(records)
        gm_by_id = {int(r["id"]): float(r["gm"]) for r in records}
        bodies = []
        for r in records:
            orbit = OrbitData(**r["orbit"]) if r.get("orbit") else None
            attractor_id = r.get("attractor_id")
            soi = r.get("soi")
            if soi is None:
                if orbit is None or attractor_id is None:
                    soi = math.inf
                else:
                    parent_gm = gm_by_id.get(int(attractor_id))
                    if parent_gm is None:
                        raise ValueError(f"Body {r['id']} orbits unknown attractor {attractor_id}")
                    soi = orbit.semi_major_axis * (float(r["gm"]) / parent_gm) ** 0.4
            bodies.append(CelestialBody(
                id=int(r["id"]),
                name=str(r["name"]),
                gm=float(r["gm"]),
                radius=float(r["radius"]),
                soi=float(soi),
                orbit=orbit,
                attractor_id=None if attractor_id is None else int(attractor_id),
            ))
        return cls(bodies)

    def __reduce__(self):
        # Rebuilt from the bodies in worker processes
        return (type(self), (list(self._bodies.values()),))

    # ------------------------------------------------------------------ #
    #  Lookups
    # ------------------------------------------------------------------ #
    def __contains__(self, body_id: object) -> bool:
        return body_id in self._bodies

    def __iter__(self) -> Iterator[CelestialBody]:
        return iter(self._bodies.values())

    def __len__(self) -> int:
        return len(self._bodies)

    @property
    def ids(self) -> list[int]:
        return list(self._bodies)

    def body(self, body_id: int) -> CelestialBody:
        try:
            return self._bodies[body_id]
        except KeyError:
            raise KeyError(f"Unknown body id {body_id}") from None

    def attractor_of(self, body_id: int) -> CelestialBody:
        body = self.body(body_id)
        if body.is_root:
            raise KeyError(f"Body {body.name} ({body_id}) has no attractor")
        return self._bodies[body.attractor_id]

    def orbit_of(self, body_id: int) -> Orbit:
        try:
            return self._orbits[body_id]
        except KeyError:
            raise KeyError(f"Body {body_id} has no orbit") from None

    def state_at(self, body_id: int, date: float) -> tuple[np.ndarray, np.ndarray]:
        """Position (km) and velocity (km/s) of a body relative to its attractor."""
        body = self.body(body_id)
        orbit = self.orbit_of(body_id)
        return orbit.state_at_date(
            math.radians(body.orbit.mean_anomaly0), body.orbit.epoch, date,
        )

    def position_at(self, body_id: int, date: float) -> np.ndarray:
        return self.state_at(body_id, date)[0]
