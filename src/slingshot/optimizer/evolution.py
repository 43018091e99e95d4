"""Chunked differential evolution (DE/rand/1/bin).

The population is split into contiguous chunks; each ``ChunkedEvolver`` owns
one chunk and evolves it against a read-only snapshot of the whole
population, so chunks of one generation can run in any order or in parallel.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable

import numpy as np

from slingshot.config import TrajectorySearchConfig

logger = logging.getLogger("slingshot.evolution")

FitnessFunction = Callable[[np.ndarray], float]


@dataclass(frozen=True)
class EvolutionSettings:
    population_size: int
    dim: int
    diff_weight: float = 0.8
    min_cross_proba: float = 0.1
    max_cross_proba: float = 0.9
    cross_proba_incr: float = 0.02

    @classmethod
    def from_config(cls, config: TrajectorySearchConfig, dim: int) -> "EvolutionSettings":
        return cls(
            population_size=config.population_size,
            dim=dim,
            diff_weight=config.diff_weight,
            min_cross_proba=config.min_cross_proba,
            max_cross_proba=config.max_cross_proba,
            cross_proba_incr=config.cross_proba_incr,
        )


class EvolverState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    SEEDED = "seeded"
    EVOLVING = "evolving"


class EvolverStateError(RuntimeError):
    """An evolver operation was called in the wrong state."""


# --------------------------------------------------------------------------- #
#  Agents and chunks
# --------------------------------------------------------------------------- #
def random_agent(dim: int, rng: np.random.Generator) -> np.ndarray:
    """Uniform random agent in [0, 1]^dim."""
    return rng.random(dim)


def randomize_agent(agent: np.ndarray, rng: np.random.Generator) -> None:
    """Overwrite an agent in place with uniform random coordinates."""
    agent[:] = rng.random(agent.shape[0])


def chunk_ranges(population_size: int, num_chunks: int) -> list[tuple[int, int]]:
    """Split [0, population_size) into contiguous half-open ranges.

    Sizes differ by at most one; there are never more chunks than agents.
    """
    if population_size < 1:
        raise ValueError("population_size must be positive")
    if num_chunks < 1:
        raise ValueError("num_chunks must be positive")
    num_chunks = min(num_chunks, population_size)
    base, extra = divmod(population_size, num_chunks)

    ranges = []
    start = 0
    for k in range(num_chunks):
        end = start + base + (1 if k < extra else 0)
        ranges.append((start, end))
        start = end
    return ranges


# --------------------------------------------------------------------------- #
#  Evolver
# --------------------------------------------------------------------------- #
class ChunkedEvolver:
    """Differential evolution of the agents [chunk_start, chunk_end).

    Lifecycle: UNINITIALIZED -> SEEDED (random or loaded chunk) -> EVOLVING.
    """

    def __init__(
        self,
        chunk_start: int,
        chunk_end: int,
        settings: EvolutionSettings,
        fitness: FitnessFunction,
        rng: np.random.Generator,
        generation: int = 0,
    ) -> None:
        if not 0 <= chunk_start < chunk_end <= settings.population_size:
            raise ValueError(
                f"Invalid chunk [{chunk_start}, {chunk_end}) for a population of "
                f"{settings.population_size}"
            )
        if settings.population_size < 4:
            raise ValueError("Differential evolution needs at least 4 agents")
        self.chunk_start = chunk_start
        self.chunk_end = chunk_end
        self.settings = settings
        self.fitness = fitness
        self.rng = rng
        self.generation = generation

        self.state = EvolverState.UNINITIALIZED
        self.population_chunk: np.ndarray | None = None
        self.fitness_chunk: np.ndarray | None = None

    @property
    def chunk_size(self) -> int:
        return self.chunk_end - self.chunk_start

    @property
    def crossover_probability(self) -> float:
        s = self.settings
        return min(s.max_cross_proba, s.min_cross_proba + self.generation * s.cross_proba_incr)

    def create_random_population_chunk(self) -> np.ndarray:
        self.population_chunk = self.rng.random((self.chunk_size, self.settings.dim))
        self.fitness_chunk = np.full(self.chunk_size, np.inf)
        self.state = EvolverState.SEEDED
        return self.population_chunk

    def load_population_chunk(self, population: np.ndarray, fitnesses: np.ndarray) -> None:
        """Seed the chunk from a full population snapshot."""
        self._check_snapshot(population, fitnesses)
        self.population_chunk = np.array(population[self.chunk_start:self.chunk_end], dtype=np.float64)
        self.fitness_chunk = np.array(fitnesses[self.chunk_start:self.chunk_end], dtype=np.float64)
        self.state = EvolverState.SEEDED

    def evaluate_chunk_fitness(self) -> np.ndarray:
        if self.state is EvolverState.UNINITIALIZED:
            raise EvolverStateError("Population chunk must be seeded before evaluation")
        for local in range(self.chunk_size):
            # The fitness may re-randomize the row in place
            self.fitness_chunk[local] = self.fitness(self.population_chunk[local])
        return self.fitness_chunk

    def evolve_population_chunk(self, population: np.ndarray, fitnesses: np.ndarray) -> list[int]:
        """One DE generation over the chunk.

        Parents are drawn from the snapshot ``population``; a trial replaces
        its agent only when strictly better.

        Returns
        -------
        Sorted global indices of the replaced agents.
        """
        if self.state is EvolverState.UNINITIALIZED:
            raise EvolverStateError("Population chunk must be seeded before evolving")
        self._check_snapshot(population, fitnesses)
        self.state = EvolverState.EVOLVING

        s = self.settings
        cr = self.crossover_probability
        changed: list[int] = []

        for local in range(self.chunk_size):
            i = self.chunk_start + local
            a, b, c = self._pick_parents(i)

            mutant = population[a] + s.diff_weight * (population[b] - population[c])
            cross = self.rng.random(s.dim) < cr
            cross[self.rng.integers(s.dim)] = True
            trial = np.where(cross, mutant, self.population_chunk[local])
            np.clip(trial, 0.0, 1.0, out=trial)

            trial_fitness = self.fitness(trial)
            if trial_fitness < self.fitness_chunk[local]:
                self.population_chunk[local] = trial
                self.fitness_chunk[local] = trial_fitness
                changed.append(i)

        logger.debug(
            "Chunk [%d, %d) generation %d: %d/%d replaced (cr=%.2f)",
            self.chunk_start, self.chunk_end, self.generation, len(changed), self.chunk_size, cr,
        )
        self.generation += 1
        return changed

    def _pick_parents(self, i: int) -> np.ndarray:
        """Three distinct indices of the population, all different from i."""
        idx = self.rng.choice(self.settings.population_size - 1, 3, replace=False)
        idx[idx >= i] += 1
        return idx

    def _check_snapshot(self, population: np.ndarray, fitnesses: np.ndarray) -> None:
        expected = (self.settings.population_size, self.settings.dim)
        if population.shape != expected:
            raise ValueError(f"Population must have shape {expected}, got {population.shape}")
        if fitnesses.shape != (self.settings.population_size,):
            raise ValueError(
                f"Fitnesses must have shape ({self.settings.population_size},), "
                f"got {fitnesses.shape}"
            )
