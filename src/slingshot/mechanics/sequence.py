"""Flyby sequences: the ordered bodies a trajectory visits.

A sequence starts at the departure body, ends at the destination and
encounters every body in between with a gravity-assist flyby. All bodies
must orbit the same attractor.
"""

from __future__ import annotations

from typing import Iterable

from slingshot.ephemeris.bodies import CelestialBody
from slingshot.ephemeris.system import SolarSystem


class InvalidSequenceError(ValueError):
    """Raised when a flyby sequence cannot be flown."""


class FlybySequence:
    def __init__(self, system: SolarSystem, ids: Iterable[int]) -> None:
        ids = [int(i) for i in ids]
        if len(ids) < 2:
            raise InvalidSequenceError(
                f"A sequence needs at least two bodies, got {len(ids)}"
            )

        bodies: list[CelestialBody] = []
        for body_id in ids:
            if body_id not in system:
                raise InvalidSequenceError(f"Unknown body id {body_id}")
            body = system.body(body_id)
            if body.is_root:
                raise InvalidSequenceError(
                    f"{body.name} is the root body and cannot be part of a sequence"
                )
            bodies.append(body)

        attractors = {b.attractor_id for b in bodies}
        if len(attractors) != 1:
            raise InvalidSequenceError(
                "All bodies of a sequence must orbit the same attractor"
            )

        self.system = system
        self.ids: tuple[int, ...] = tuple(ids)
        self.bodies: tuple[CelestialBody, ...] = tuple(bodies)
        self.attractor = system.body(bodies[0].attractor_id)

    @classmethod
    def from_string(cls, system: SolarSystem, text: str) -> "FlybySequence":
        """Parse a sequence written with two-letter initials, e.g. ``"Ea-Ve-Ma"``."""
        by_initials: dict[str, list[CelestialBody]] = {}
        for body in system:
            if not body.is_root:
                by_initials.setdefault(body.name[:2].lower(), []).append(body)

        ids = []
        for token in text.split("-"):
            token = token.strip().lower()
            matches = by_initials.get(token, [])
            if len(matches) != 1:
                reason = "ambiguous" if matches else "unknown"
                raise InvalidSequenceError(f"{reason} body initials {token!r} in {text!r}")
            ids.append(matches[0].id)
        return cls(system, ids)

    def __len__(self) -> int:
        return len(self.ids)

    def __repr__(self) -> str:
        return f"FlybySequence({self.seq_string})"

    @property
    def seq_string(self) -> str:
        return "-".join(b.name[:2] for b in self.bodies)

    @property
    def num_legs(self) -> int:
        return len(self.ids) - 1

    @property
    def num_flybys(self) -> int:
        return len(self.ids) - 2

    @property
    def agent_dimension(self) -> int:
        """[date, phase, speed] + 4 per leg - the 2 flyby slots of the last leg."""
        return 3 + 4 * self.num_legs - 2
