"""Patched-conic trajectory assembly.

Turns an agent (a vector in [0, 1]^d) into the ordered list of conic arcs a
spacecraft flies along a ``FlybySequence``:

    parking orbit -> ejection hyperbola -> [pre-DSM arc -> post-DSM arc ->
    flyby hyperbola]* -> pre-DSM arc -> post-DSM arc -> arrival hyperbola
    [-> circular capture orbit]

Every arc is a ``TrajectoryStep`` (orbit elements + start date + duration +
the true-anomaly span to draw), maneuvres and flybys are attached to the step
on which they happen. Geometry that cannot be flown is reported through an
explicit ``ComputeResult`` rather than an exception.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np

from slingshot.config import TrajectorySearchConfig, TrajectoryUserSettings
from slingshot.ephemeris.bodies import CelestialBody
from slingshot.ephemeris.system import SolarSystem
from slingshot.mechanics.kepler import TWO_PI, mean_anomaly_from_true
from slingshot.mechanics.lambert import solve_lambert
from slingshot.mechanics.orbit import Orbit, OrbitalElements
from slingshot.mechanics.sequence import FlybySequence
from slingshot.mechanics.transforms import (
    lerp,
    perpendicular_component,
    rotate_about_axis,
    seconds_to_iso,
    signed_angle,
    unit,
)

# Smallest hyperbolic excess speed squared (km^2/s^2) for an ejection
MIN_EJECTION_V_INF_SQ = 1e-6
# Below this excess speed squared a flyby hyperbola is degenerate
MIN_FLYBY_V_INF_SQ = 1e-10

_X = np.array([1.0, 0.0, 0.0])
_Z = np.array([0.0, 0.0, 1.0])


class DegenerateGeometryError(Exception):
    """A trajectory arc cannot be built from the current parameters."""


# --------------------------------------------------------------------------- #
#  Step records
# --------------------------------------------------------------------------- #
@dataclass(slots=True)
class DrawAngles:
    """True anomaly span of a step, begin -> end."""
    begin: float
    end: float


@dataclass(slots=True)
class ManeuvreContext:
    type: str  # "ejection", "dsm" or "circularization"
    origin_id: int
    target_id: int


@dataclass(slots=True)
class ManeuvreInfo:
    position: np.ndarray  # km, relative to the step's attractor
    delta_v: np.ndarray  # km/s
    prograde_dir: np.ndarray  # unit velocity before the burn
    context: ManeuvreContext


@dataclass(slots=True)
class FlybyInfo:
    body_id: int
    soi_enter_date: float
    soi_exit_date: float
    peri_radius: float  # km
    inclination: float  # rad, hyperbola plane vs the body's reference plane


@dataclass(slots=True)
class TrajectoryStep:
    attractor_id: int
    date_of_start: float
    duration: float
    orbit_elts: OrbitalElements
    draw_angles: DrawAngles
    maneuvre: ManeuvreInfo | None = None
    flyby: FlybyInfo | None = None
    start_m: float = 0.0


@dataclass(frozen=True, slots=True)
class ComputeResult:
    ok: bool
    reason: str | None = None

    @classmethod
    def success(cls) -> "ComputeResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, reason: str) -> "ComputeResult":
        return cls(ok=False, reason=reason)


@dataclass(slots=True)
class _LegArcs:
    """Bookkeeping needed to re-solve a leg's post-DSM arc."""
    origin_id: int
    target_id: int
    dsm_step: int
    dsm_date: float
    dsm_position: np.ndarray
    velocity_before: np.ndarray
    entry_date: float = math.nan
    entry_position: np.ndarray | None = None


_GEOMETRY_ERRORS = (DegenerateGeometryError, ValueError, ZeroDivisionError, OverflowError)


# --------------------------------------------------------------------------- #
#  Calculator
# --------------------------------------------------------------------------- #
class TrajectoryCalculator:
    """Builds the steps of one trajectory from an agent.

    Usage::

        calc = TrajectoryCalculator(system, config, sequence)
        calc.set_parameters(user_settings, agent)
        result = calc.compute()
        if result.ok:
            calc.recompute_legs_second_arcs()
            calc.compute_starting_mean_anomalies()

    The instance is reusable: ``compute`` starts from an empty step list.
    """

    def __init__(
        self,
        system: SolarSystem,
        config: TrajectorySearchConfig,
        sequence: FlybySequence,
    ) -> None:
        self.system = system
        self.config = config
        self.sequence = sequence
        self.attractor = sequence.attractor

        self.settings: TrajectoryUserSettings | None = None
        self.agent: np.ndarray | None = None
        self.steps: list[TrajectoryStep] = []
        self._legs: list[_LegArcs] = []

    def set_parameters(self, settings: TrajectoryUserSettings, agent: np.ndarray) -> None:
        agent = np.asarray(agent, dtype=np.float64)
        expected = self.sequence.agent_dimension
        if agent.shape != (expected,):
            raise ValueError(f"Agent must have shape ({expected},), got {agent.shape}")
        self.settings = settings
        self.agent = agent

    def reset(self) -> None:
        self.steps = []
        self._legs = []

    # ------------------------------------------------------------------ #
    #  Assembly
    # ------------------------------------------------------------------ #
    def compute(self) -> ComputeResult:
        if self.agent is None or self.settings is None:
            raise RuntimeError("set_parameters() must be called before compute()")
        self.reset()
        try:
            self._assemble()
        except _GEOMETRY_ERRORS as exc:
            self.reset()
            return ComputeResult.failure(str(exc) or type(exc).__name__)
        return ComputeResult.success()

    def _assemble(self) -> None:
        agent = self.agent
        cfg = self.config
        seq = self.sequence

        departure_date = lerp(self.settings.start_date_min, self.settings.start_date_max, agent[0])
        position, velocity, date = self._compute_departure(departure_date, agent[1], agent[2])

        for k in range(seq.num_legs):
            origin = seq.bodies[k]
            target = seq.bodies[k + 1]
            duration = self._leg_duration(origin, target, agent[3 + 4 * k])
            dsm_offset = lerp(cfg.dsm_offset_min, cfg.dsm_offset_max, agent[4 + 4 * k])
            v_arrival = self._compute_leg(origin, target, position, velocity, date, duration, dsm_offset)

            encounter_date = date + duration
            if k < seq.num_legs - 1:
                position, velocity, date = self._compute_flyby(
                    target, v_arrival, encounter_date, agent[5 + 4 * k], agent[6 + 4 * k],
                )
            else:
                self._compute_arrival(target, v_arrival, encounter_date)

    def _compute_departure(
        self, date: float, phase_param: float, speed_param: float,
    ) -> tuple[np.ndarray, np.ndarray, float]:
        """Parking orbit + ejection hyperbola. Returns the state at SOI exit."""
        body = self.sequence.bodies[0]
        mu = body.gm
        r_park = body.radius + self.settings.dep_altitude
        if r_park >= body.soi:
            raise DegenerateGeometryError(f"parking orbit around {body.name} leaves its SOI")

        v_circ = math.sqrt(mu / r_park)
        v_esc = math.sqrt(2.0) * v_circ
        v_peri = lerp(v_esc, self.config.max_ejection_speed_scale * v_esc, speed_param)
        v_inf_sq = max(v_peri * v_peri - v_esc * v_esc, MIN_EJECTION_V_INF_SQ)
        v_peri = math.sqrt(v_inf_sq + v_esc * v_esc)

        phase = TWO_PI * phase_param
        position = r_park * np.array([math.cos(phase), math.sin(phase), 0.0])
        prograde = np.array([-math.sin(phase), math.cos(phase), 0.0])

        self.steps.append(TrajectoryStep(
            attractor_id=body.id,
            date_of_start=date,
            duration=0.0,
            orbit_elts=OrbitalElements(r_park, 0.0, 0.0, 0.0, 0.0),
            draw_angles=DrawAngles(phase, phase + TWO_PI),
            maneuvre=ManeuvreInfo(
                position=position,
                delta_v=(v_peri - v_circ) * prograde,
                prograde_dir=prograde,
                context=ManeuvreContext("ejection", body.id, self.sequence.bodies[1].id),
            ),
        ))

        ejection, _ = Orbit.from_state(position, v_peri * prograde, body)
        nu_soi = ejection.true_anomaly_at_radius(body.soi)
        t_soi = ejection.time_since_periapsis(nu_soi)
        self.steps.append(TrajectoryStep(
            attractor_id=body.id,
            date_of_start=date,
            duration=t_soi,
            orbit_elts=ejection.elements,
            draw_angles=DrawAngles(0.0, nu_soi),
        ))

        exit_date = date + t_soi
        r_body, v_body = self.system.state_at(body.id, exit_date)
        r_rel, v_rel = ejection.state_from_true_anomaly(nu_soi)
        return r_body + r_rel, v_body + v_rel, exit_date

    def _leg_duration(self, origin: CelestialBody, target: CelestialBody, param: float) -> float:
        cfg = self.config
        if origin.id == target.id:
            period = self.system.orbit_of(origin.id).period
            return lerp(cfg.resonant_duration_min_revs, cfg.resonant_duration_max_revs, param) * period

        a1 = self.system.orbit_of(origin.id).semi_major_axis
        a2 = self.system.orbit_of(target.id).semi_major_axis
        hohmann = math.pi * math.sqrt((0.5 * (a1 + a2)) ** 3 / self.attractor.gm)
        return lerp(cfg.leg_duration_min_scale, cfg.leg_duration_max_scale, param) * hohmann

    def _compute_leg(
        self,
        origin: CelestialBody,
        target: CelestialBody,
        position: np.ndarray,
        velocity: np.ndarray,
        date: float,
        duration: float,
        dsm_offset: float,
    ) -> np.ndarray:
        """Pre-DSM and post-DSM arcs of one leg. Returns the arrival velocity."""
        first_duration = dsm_offset * duration
        second_duration = duration - first_duration
        if first_duration <= 0.0 or second_duration <= 0.0:
            raise DegenerateGeometryError("leg arc with non-positive duration")

        first, nu_start = Orbit.from_state(position, velocity, self.attractor)
        m_start = first.mean_anomaly_from_true_anomaly(nu_start)
        dsm_date = date + first_duration
        nu_dsm = first.solve_true_anomaly_at_date(m_start, date, dsm_date)
        r_dsm, v_before = first.state_from_true_anomaly(nu_dsm)
        self.steps.append(TrajectoryStep(
            attractor_id=self.attractor.id,
            date_of_start=date,
            duration=first_duration,
            orbit_elts=first.elements,
            draw_angles=DrawAngles(nu_start, _arc_end(first, nu_start, nu_dsm, first_duration)),
        ))

        r_target = self.system.position_at(target.id, date + duration)
        v_dsm, v_arrival, second, nu_a, nu_b = self._lambert_arc(r_dsm, r_target, second_duration)

        self._legs.append(_LegArcs(
            origin_id=origin.id,
            target_id=target.id,
            dsm_step=len(self.steps),
            dsm_date=dsm_date,
            dsm_position=r_dsm,
            velocity_before=v_before,
        ))
        self.steps.append(TrajectoryStep(
            attractor_id=self.attractor.id,
            date_of_start=dsm_date,
            duration=second_duration,
            orbit_elts=second.elements,
            draw_angles=DrawAngles(nu_a, nu_b),
            maneuvre=ManeuvreInfo(
                position=r_dsm,
                delta_v=v_dsm - v_before,
                prograde_dir=unit(v_before),
                context=ManeuvreContext("dsm", origin.id, target.id),
            ),
        ))
        return v_arrival

    def _lambert_arc(self, r1: np.ndarray, r2: np.ndarray, tof: float) -> tuple:
        sol = solve_lambert(r1, r2, tof, self.attractor.gm, prograde=True)
        if not sol["converged"]:
            raise DegenerateGeometryError("Lambert solver did not converge")
        arc, nu_a = Orbit.from_state(r1, sol["v1"], self.attractor)
        _, nu_b = Orbit.from_state(r2, sol["v2"], self.attractor)
        return sol["v1"], sol["v2"], arc, nu_a, _arc_end(arc, nu_a, nu_b, tof)

    def _hyperbola(
        self, body: CelestialBody, v_inf: np.ndarray, r_pe: float, plane_angle: float,
    ) -> tuple[Orbit, float, float, np.ndarray]:
        """Hyperbola around ``body`` for an incoming excess velocity.

        The plane contains v_inf; at plane_angle = 0 it is the plane of
        least inclination, other angles rotate it about v_inf.

        Returns
        -------
        (orbit, nu_soi, t_soi, normal)
            nu_soi — true anomaly at the SOI boundary (> 0)
            t_soi  — time from periapsis to the SOI boundary (s)
        """
        mu = body.gm
        v_inf_sq = float(np.dot(v_inf, v_inf))
        if v_inf_sq < MIN_FLYBY_V_INF_SQ:
            raise DegenerateGeometryError(f"no excess velocity at {body.name}")
        if r_pe >= body.soi:
            raise DegenerateGeometryError(f"periapsis outside the SOI of {body.name}")

        v_hat = v_inf / math.sqrt(v_inf_sq)
        normal = perpendicular_component(_Z, v_hat)
        if np.linalg.norm(normal) < 1e-12:
            normal = perpendicular_component(_X, v_hat)
        normal = unit(normal)
        if plane_angle != 0.0:
            normal = rotate_about_axis(normal, v_hat, plane_angle)

        ecc = 1.0 + r_pe * v_inf_sq / mu
        # Incoming asymptote makes atan(sqrt(e^2 - 1)) with the periapsis direction
        turn = math.atan(math.sqrt(ecc * ecc - 1.0))
        peri_dir = rotate_about_axis(v_hat, normal, -turn)
        v_peri = math.sqrt(v_inf_sq + 2.0 * mu / r_pe)

        orbit, _ = Orbit.from_state(r_pe * peri_dir, v_peri * np.cross(normal, peri_dir), body)
        nu_soi = orbit.true_anomaly_at_radius(body.soi)
        t_soi = orbit.time_since_periapsis(nu_soi)
        return orbit, nu_soi, t_soi, normal

    def _record_entry(self, body: CelestialBody, orbit: Orbit, nu_soi: float, entry_date: float) -> None:
        leg = self._legs[-1]
        leg.entry_date = entry_date
        leg.entry_position = (
            self.system.position_at(body.id, entry_date)
            + orbit.position_from_true_anomaly(-nu_soi)
        )

    def _compute_flyby(
        self,
        body: CelestialBody,
        v_arrival: np.ndarray,
        encounter_date: float,
        angle_param: float,
        radius_param: float,
    ) -> tuple[np.ndarray, np.ndarray, float]:
        """Gravity assist at an intermediate body. Returns the state at SOI exit."""
        cfg = self.config
        _, v_body = self.system.state_at(body.id, encounter_date)
        r_pe = body.radius * lerp(cfg.fb_radius_min_scale, cfg.fb_radius_max_scale, radius_param)
        orbit, nu_soi, t_soi, normal = self._hyperbola(
            body, v_arrival - v_body, r_pe, TWO_PI * angle_param,
        )

        enter_date = encounter_date - t_soi
        exit_date = encounter_date + t_soi
        self._record_entry(body, orbit, nu_soi, enter_date)
        self.steps.append(TrajectoryStep(
            attractor_id=body.id,
            date_of_start=enter_date,
            duration=2.0 * t_soi,
            orbit_elts=orbit.elements,
            draw_angles=DrawAngles(-nu_soi, nu_soi),
            flyby=FlybyInfo(
                body_id=body.id,
                soi_enter_date=enter_date,
                soi_exit_date=exit_date,
                peri_radius=r_pe,
                inclination=math.acos(max(-1.0, min(1.0, normal[2]))),
            ),
        ))

        r_body, v_body = self.system.state_at(body.id, exit_date)
        r_rel, v_rel = orbit.state_from_true_anomaly(nu_soi)
        return r_body + r_rel, v_body + v_rel, exit_date

    def _compute_arrival(self, body: CelestialBody, v_arrival: np.ndarray, encounter_date: float) -> None:
        _, v_body = self.system.state_at(body.id, encounter_date)
        r_pe = body.radius + self.settings.dest_altitude
        orbit, nu_soi, t_soi, normal = self._hyperbola(body, v_arrival - v_body, r_pe, 0.0)

        enter_date = encounter_date - t_soi
        self._record_entry(body, orbit, nu_soi, enter_date)

        if self.settings.no_insertion:
            self.steps.append(TrajectoryStep(
                attractor_id=body.id,
                date_of_start=enter_date,
                duration=2.0 * t_soi,
                orbit_elts=orbit.elements,
                draw_angles=DrawAngles(-nu_soi, nu_soi),
                flyby=FlybyInfo(
                    body_id=body.id,
                    soi_enter_date=enter_date,
                    soi_exit_date=encounter_date + t_soi,
                    peri_radius=r_pe,
                    inclination=math.acos(max(-1.0, min(1.0, normal[2]))),
                ),
            ))
            return

        self.steps.append(TrajectoryStep(
            attractor_id=body.id,
            date_of_start=enter_date,
            duration=t_soi,
            orbit_elts=orbit.elements,
            draw_angles=DrawAngles(-nu_soi, 0.0),
        ))

        # Circularization at periapsis
        position, velocity = orbit.state_from_true_anomaly(0.0)
        prograde = unit(velocity)
        v_circ = orbit.circular_velocity(r_pe)
        capture, nu_capture = Orbit.from_state(position, v_circ * prograde, body)
        self.steps.append(TrajectoryStep(
            attractor_id=body.id,
            date_of_start=encounter_date,
            duration=0.0,
            orbit_elts=capture.elements,
            draw_angles=DrawAngles(nu_capture, nu_capture + TWO_PI),
            maneuvre=ManeuvreInfo(
                position=position,
                delta_v=(v_circ - float(np.linalg.norm(velocity))) * prograde,
                prograde_dir=prograde,
                context=ManeuvreContext("circularization", body.id, body.id),
            ),
        ))

    # ------------------------------------------------------------------ #
    #  Finalization passes
    # ------------------------------------------------------------------ #
    def recompute_legs_second_arcs(self) -> ComputeResult:
        """Re-aim every post-DSM arc at the SOI entry point of the next body.

        The first pass aims arcs at body centres; this moves each arc's end
        onto the actual hyperbola and updates the DSM burns accordingly.
        """
        try:
            for leg in self._legs:
                if leg.entry_position is None:
                    raise DegenerateGeometryError(f"no SOI entry recorded for leg to {leg.target_id}")
                tof = leg.entry_date - leg.dsm_date
                if tof <= 0.0:
                    raise DegenerateGeometryError("DSM happens after the SOI entry")
                v_dsm, _, arc, nu_a, nu_b = self._lambert_arc(leg.dsm_position, leg.entry_position, tof)

                step = self.steps[leg.dsm_step]
                step.duration = tof
                step.orbit_elts = arc.elements
                step.draw_angles = DrawAngles(nu_a, nu_b)
                step.maneuvre.delta_v = v_dsm - leg.velocity_before
        except _GEOMETRY_ERRORS as exc:
            return ComputeResult.failure(str(exc) or type(exc).__name__)
        return ComputeResult.success()

    def compute_starting_mean_anomalies(self) -> None:
        for step in self.steps:
            step.start_m = mean_anomaly_from_true(step.draw_angles.begin, step.orbit_elts.eccentricity)

    def is_finite(self) -> bool:
        """False if any number anywhere in the steps is NaN or infinite."""
        if not self.steps:
            return False
        for step in self.steps:
            elts = step.orbit_elts
            values = [
                step.date_of_start, step.duration, step.start_m,
                step.draw_angles.begin, step.draw_angles.end,
                elts.semi_major_axis, elts.eccentricity, elts.inclination,
                elts.arg_of_periapsis, elts.asc_node_longitude,
            ]
            if step.flyby is not None:
                values += [
                    step.flyby.soi_enter_date, step.flyby.soi_exit_date,
                    step.flyby.peri_radius, step.flyby.inclination,
                ]
            if not np.all(np.isfinite(values)):
                return False
            if step.maneuvre is not None:
                m = step.maneuvre
                for vec in (m.position, m.delta_v, m.prograde_dir):
                    if not np.all(np.isfinite(vec)):
                        return False
        return True

    @property
    def total_delta_v(self) -> float:
        return sum(
            float(np.linalg.norm(s.maneuvre.delta_v)) for s in self.steps if s.maneuvre is not None
        )


def _arc_end(orbit: Orbit, begin: float, end: float, duration: float) -> float:
    """End anomaly of an arc flown forward from ``begin`` for ``duration``."""
    if orbit.eccentricity >= 1.0:
        return end
    revs = math.floor(duration / orbit.period)
    return begin + math.fmod(end - begin + 2.0 * TWO_PI, TWO_PI) + revs * TWO_PI


# --------------------------------------------------------------------------- #
#  Derived details
# --------------------------------------------------------------------------- #
@dataclass(slots=True)
class ManeuvreDetails:
    step_index: int
    type: str
    date: float  # seconds since departure
    prograde: float  # km/s
    normal: float
    radial: float
    total: float
    ejection_angle: float | None = None  # rad, ejection only


@dataclass(slots=True)
class FlybyDetails:
    step_index: int
    body_id: int
    soi_enter_date: float  # seconds since departure
    soi_exit_date: float
    peri_radius: float  # km
    inclination: float  # rad, in [0, pi/2]


@dataclass
class Trajectory:
    """A computed trajectory and its derived maneuvre / flyby details."""
    steps: list[TrajectoryStep]
    maneuvres: list[ManeuvreDetails] = field(default_factory=list)
    flybys: list[FlybyDetails] = field(default_factory=list)
    total_delta_v: float = 0.0
    total_duration: float = 0.0

    @property
    def departure_date(self) -> float:
        return self.steps[0].date_of_start

    @property
    def arrival_date(self) -> float:
        return self.departure_date + self.total_duration

    @property
    def final_step(self) -> TrajectoryStep:
        return self.steps[-1]

    @classmethod
    def from_steps(cls, steps: list[TrajectoryStep], system: SolarSystem) -> "Trajectory":
        if not steps:
            raise ValueError("A trajectory needs at least one step")
        start = steps[0].date_of_start
        last = steps[-1]

        maneuvres: list[ManeuvreDetails] = []
        flybys: list[FlybyDetails] = []
        for index, step in enumerate(steps):
            if step.maneuvre is not None:
                maneuvres.append(_maneuvre_details(index, step, start, system))
            if step.flyby is not None:
                fb = step.flyby
                inclination = fb.inclination
                if inclination > 0.5 * math.pi:
                    inclination = math.pi - inclination
                flybys.append(FlybyDetails(
                    step_index=index,
                    body_id=fb.body_id,
                    soi_enter_date=fb.soi_enter_date - start,
                    soi_exit_date=fb.soi_exit_date - start,
                    peri_radius=fb.peri_radius,
                    inclination=inclination,
                ))

        return cls(
            steps=steps,
            maneuvres=maneuvres,
            flybys=flybys,
            total_delta_v=sum(m.total for m in maneuvres),
            total_duration=last.date_of_start + last.duration - start,
        )


def _maneuvre_details(
    index: int, step: TrajectoryStep, start: float, system: SolarSystem,
) -> ManeuvreDetails:
    m = step.maneuvre
    orbit = Orbit(step.orbit_elts, system.body(step.attractor_id))
    dv = m.delta_v
    radial_dir = np.cross(m.prograde_dir, orbit.normal)

    ejection_angle = None
    if m.context.type == "ejection":
        _, v_body = system.state_at(m.context.origin_id, step.date_of_start)
        ejection_angle = signed_angle(
            np.array([v_body[0], v_body[1], 0.0]),
            np.array([m.position[0], m.position[1], 0.0]),
            _Z,
        )

    return ManeuvreDetails(
        step_index=index,
        type=m.context.type,
        date=step.date_of_start - start,
        prograde=float(np.dot(m.prograde_dir, dv)),
        normal=float(np.dot(orbit.normal, dv)),
        radial=float(np.dot(radial_dir, dv)),
        total=float(np.linalg.norm(dv)),
        ejection_angle=ejection_angle,
    )


def trajectory_to_dict(trajectory: Trajectory) -> dict:
    """JSON-safe representation of a trajectory (lists instead of arrays)."""

    def _step(s: TrajectoryStep) -> dict:
        out = {
            "attractor_id": s.attractor_id,
            "date_of_start": s.date_of_start,
            "duration": s.duration,
            "orbit_elts": {
                "semi_major_axis": s.orbit_elts.semi_major_axis,
                "eccentricity": s.orbit_elts.eccentricity,
                "inclination": s.orbit_elts.inclination,
                "arg_of_periapsis": s.orbit_elts.arg_of_periapsis,
                "asc_node_longitude": s.orbit_elts.asc_node_longitude,
            },
            "draw_angles": {"begin": s.draw_angles.begin, "end": s.draw_angles.end},
            "start_m": s.start_m,
        }
        if s.maneuvre is not None:
            out["maneuvre"] = {
                "position": s.maneuvre.position.tolist(),
                "delta_v": s.maneuvre.delta_v.tolist(),
                "prograde_dir": s.maneuvre.prograde_dir.tolist(),
                "context": {
                    "type": s.maneuvre.context.type,
                    "origin_id": s.maneuvre.context.origin_id,
                    "target_id": s.maneuvre.context.target_id,
                },
            }
        if s.flyby is not None:
            out["flyby"] = {
                "body_id": s.flyby.body_id,
                "soi_enter_date": s.flyby.soi_enter_date,
                "soi_exit_date": s.flyby.soi_exit_date,
                "peri_radius": s.flyby.peri_radius,
                "inclination": s.flyby.inclination,
            }
        return out

    return {
        "steps": [_step(s) for s in trajectory.steps],
        "maneuvres": [
            {
                "step_index": m.step_index,
                "type": m.type,
                "date": m.date,
                "prograde": m.prograde,
                "normal": m.normal,
                "radial": m.radial,
                "total": m.total,
                "ejection_angle": m.ejection_angle,
            }
            for m in trajectory.maneuvres
        ],
        "flybys": [
            {
                "step_index": f.step_index,
                "body_id": f.body_id,
                "soi_enter_date": f.soi_enter_date,
                "soi_exit_date": f.soi_exit_date,
                "peri_radius": f.peri_radius,
                "inclination": f.inclination,
            }
            for f in trajectory.flybys
        ],
        "total_delta_v": trajectory.total_delta_v,
        "total_duration": trajectory.total_duration,
        "departure_date": trajectory.departure_date,
        "departure_iso": seconds_to_iso(trajectory.departure_date),
        "arrival_iso": seconds_to_iso(trajectory.arrival_date),
    }
