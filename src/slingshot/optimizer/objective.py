"""Objective / cost functions for trajectory optimization.

``trajectory_cost`` scores a computed trajectory (lower is better),
``TrajectoryEvaluator`` turns agents into trajectories with the retry
policy, and ``porkchop_grid`` brute-forces direct two-body transfers for
reference.
"""

from __future__ import annotations

import logging
import math

import numpy as np

from slingshot.config import TrajectorySearchConfig, TrajectoryUserSettings
from slingshot.ephemeris.system import SolarSystem
from slingshot.mechanics.lambert import compute_transfer_dv
from slingshot.mechanics.orbit import Orbit
from slingshot.mechanics.sequence import FlybySequence
from slingshot.mechanics.trajectory import Trajectory, TrajectoryCalculator
from slingshot.optimizer.evolution import randomize_agent

logger = logging.getLogger("slingshot.objective")

# Cost weights
INCLINATION_WEIGHT = 0.1


class TrajectoryComputationError(RuntimeError):
    """No computable trajectory was found within the retry ceiling."""


def trajectory_cost(
    trajectory: Trajectory,
    system: SolarSystem,
    settings: TrajectoryUserSettings,
) -> float:
    """Cost of a trajectory: total delta-v plus domain penalties.

    cost = dv + dv * |i_final| * 0.1 + peri_vel_cost + max(0, T - T_max) * dv

    where i_final is the inclination of the last orbit and peri_vel_cost,
    only without orbit insertion, is the speed excess at periapsis over the
    circular speed at the destination altitude.
    """
    total_dv = trajectory.total_delta_v
    final = trajectory.final_step

    cost = total_dv
    cost += total_dv * abs(final.orbit_elts.inclination) * INCLINATION_WEIGHT

    if settings.no_insertion:
        body = system.body(final.attractor_id)
        orbit = Orbit(final.orbit_elts, body)
        radius = body.radius + settings.dest_altitude
        cost += orbit.velocity_at_radius(radius) - orbit.circular_velocity(radius)

    overrun = trajectory.total_duration - settings.max_duration
    if overrun > 0.0:
        cost += overrun * total_dv

    return cost


class TrajectoryEvaluator:
    """Agent -> (cost, trajectory), retrying unflyable agents.

    An agent whose trajectory cannot be computed is re-randomized in place
    and tried again, up to ``config.max_compute_attempts`` times.
    """

    def __init__(
        self,
        system: SolarSystem,
        sequence: FlybySequence,
        settings: TrajectoryUserSettings,
        config: TrajectorySearchConfig,
        rng: np.random.Generator | None = None,
    ) -> None:
        self.system = system
        self.sequence = sequence
        self.settings = settings
        self.config = config
        self.rng = rng if rng is not None else np.random.default_rng()
        self.calculator = TrajectoryCalculator(system, config, sequence)
        self.retries = 0

    def compute_trajectory(self, agent: np.ndarray) -> Trajectory:
        calc = self.calculator
        for _attempt in range(self.config.max_compute_attempts):
            calc.set_parameters(self.settings, agent)
            result = calc.compute()
            if result.ok:
                result = calc.recompute_legs_second_arcs()
            if result.ok:
                calc.compute_starting_mean_anomalies()
                if calc.is_finite():
                    return Trajectory.from_steps(calc.steps, self.system)
                reason = "non-finite values in the trajectory"
            else:
                reason = result.reason

            logger.debug("Agent rejected (%s), re-randomizing", reason)
            randomize_agent(agent, self.rng)
            calc.reset()
            self.retries += 1

        raise TrajectoryComputationError("Impossible to compute the trajectory.")

    def evaluate(self, agent: np.ndarray) -> tuple[float, Trajectory]:
        trajectory = self.compute_trajectory(agent)
        return trajectory_cost(trajectory, self.system, self.settings), trajectory


# --------------------------------------------------------------------------- #
#  Direct-transfer reference grid
# --------------------------------------------------------------------------- #
def impulsive_delta_v(v_inf: float, mu: float, radius: float) -> float:
    """Burn between a circular orbit of ``radius`` and a hyperbola with excess ``v_inf``."""
    return math.sqrt(v_inf * v_inf + 2.0 * mu / radius) - math.sqrt(mu / radius)


def porkchop_grid(
    system: SolarSystem,
    origin_id: int,
    target_id: int,
    dep_start: float,
    dep_end: float,
    tof_min: float,
    tof_max: float,
    dep_altitude: float = 200.0,
    arr_altitude: float = 200.0,
    dep_steps: int = 100,
    tof_steps: int = 100,
) -> dict:
    """Compute a pork-chop plot grid of delta-v values.

    Each cell is a direct Lambert transfer; its cost is the ejection burn
    from a circular parking orbit plus the capture burn into a circular
    orbit, both at periapsis.

    Returns
    -------
    dict with:
        "departure_dates" : (M,) array (s)
        "tofs" : (N,) array (s)
        "dv_grid" : (M, N) array of total delta-v (inf where Lambert fails)
        "best" : dict with the minimum cell ("dv_total", "departure_date", "tof")
    """
    origin = system.body(origin_id)
    target = system.body(target_id)
    mu = system.attractor_of(origin_id).gm
    r_dep = origin.radius + dep_altitude
    r_arr = target.radius + arr_altitude

    dep_dates = np.linspace(dep_start, dep_end, dep_steps)
    tofs = np.linspace(tof_min, tof_max, tof_steps)

    dv_grid = np.full((dep_steps, tof_steps), np.inf)

    for i, dep_date in enumerate(dep_dates):
        r1, v1_planet = system.state_at(origin_id, dep_date)
        for j, tof in enumerate(tofs):
            if tof <= 0:
                continue
            r2, v2_planet = system.state_at(target_id, dep_date + tof)
            res = compute_transfer_dv(r1, v1_planet, r2, v2_planet, tof, mu)
            if res["converged"]:
                dv_grid[i, j] = (
                    impulsive_delta_v(res["v_inf_departure"], origin.gm, r_dep)
                    + impulsive_delta_v(res["v_inf_arrival"], target.gm, r_arr)
                )

    i, j = np.unravel_index(np.argmin(dv_grid), dv_grid.shape)
    return {
        "departure_dates": dep_dates,
        "tofs": tofs,
        "dv_grid": dv_grid,
        "best": {
            "dv_total": float(dv_grid[i, j]),
            "departure_date": float(dep_dates[i]),
            "tof": float(tofs[j]),
        },
    }
