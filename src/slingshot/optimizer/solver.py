"""Search coordinator — runs the chunked evolution over execution units.

Each generation the coordinator sends one ``ChunkTask`` per chunk to an
executor (process pool, thread pool or in-process), waits for every
``ChunkResult``, merges the replaced agents into the population and keeps
the best trajectory found so far.

Tasks carry a copy of the generation's population snapshot and their own
RNG seed, so a run is reproducible for a fixed seed whatever the executor.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import Executor, Future, ProcessPoolExecutor, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Generator

import numpy as np

from slingshot.config import TrajectorySearchConfig, TrajectoryUserSettings, settings as app_settings
from slingshot.ephemeris.system import SolarSystem
from slingshot.mechanics.sequence import FlybySequence
from slingshot.mechanics.trajectory import Trajectory
from slingshot.optimizer.evolution import ChunkedEvolver, EvolutionSettings, chunk_ranges
from slingshot.optimizer.objective import TrajectoryEvaluator

logger = logging.getLogger("slingshot.solver")


# --------------------------------------------------------------------------- #
#  Messages
# --------------------------------------------------------------------------- #
@dataclass(frozen=True)
class SearchContext:
    """Everything a chunk needs besides its task; installed once per worker."""
    system: SolarSystem
    sequence: FlybySequence
    settings: TrajectoryUserSettings
    config: TrajectorySearchConfig


@dataclass
class ChunkTask:
    chunk_index: int
    start: int
    end: int
    generation: int  # evolution step, 0 for the first evolved generation
    seed: np.random.SeedSequence
    population: np.ndarray | None = None  # None = seed the chunk randomly
    fitnesses: np.ndarray | None = None


@dataclass
class ChunkResult:
    chunk_index: int
    start: int
    end: int
    population_chunk: np.ndarray
    fitness_chunk: np.ndarray
    updated: list[int]  # global indices
    updated_delta_vs: list[float]
    best_cost: float
    best_trajectory: Trajectory | None
    retries: int


@dataclass
class SearchProgress:
    """Yielded by the solver after each generation."""
    generation: int
    max_generations: int
    best_cost: float
    best_delta_v: float
    mean_cost: float
    updated: int
    retries: int
    elapsed: float
    best_departure_date: float | None = None
    best_duration: float | None = None
    population_costs: list[float] = field(default_factory=list)  # top-3
    best_trajectory: Trajectory | None = None


# --------------------------------------------------------------------------- #
#  Chunk runner
# --------------------------------------------------------------------------- #
class _ChunkFitness:
    """Fitness callable that remembers the delta-v and best trajectory it saw."""

    def __init__(self, evaluator: TrajectoryEvaluator) -> None:
        self.evaluator = evaluator
        self.delta_vs: dict[bytes, float] = {}
        self.best_cost = np.inf
        self.best_trajectory: Trajectory | None = None

    def __call__(self, agent: np.ndarray) -> float:
        cost, trajectory = self.evaluator.evaluate(agent)
        self.delta_vs[agent.tobytes()] = trajectory.total_delta_v
        if cost < self.best_cost:
            self.best_cost = cost
            self.best_trajectory = trajectory
        return cost


def run_chunk(task: ChunkTask, context: SearchContext) -> ChunkResult:
    """Seed-and-evaluate or evolve one chunk. Pure function of its inputs."""
    rng = np.random.default_rng(task.seed)
    evaluator = TrajectoryEvaluator(
        context.system, context.sequence, context.settings, context.config, rng=rng,
    )
    fitness = _ChunkFitness(evaluator)
    evolver = ChunkedEvolver(
        task.start,
        task.end,
        EvolutionSettings.from_config(context.config, context.sequence.agent_dimension),
        fitness,
        rng,
        generation=task.generation,
    )

    if task.population is None:
        evolver.create_random_population_chunk()
        evolver.evaluate_chunk_fitness()
        updated = list(range(task.start, task.end))
    else:
        evolver.load_population_chunk(task.population, task.fitnesses)
        updated = evolver.evolve_population_chunk(task.population, task.fitnesses)

    delta_vs = [
        fitness.delta_vs[evolver.population_chunk[i - task.start].tobytes()] for i in updated
    ]
    return ChunkResult(
        chunk_index=task.chunk_index,
        start=task.start,
        end=task.end,
        population_chunk=evolver.population_chunk,
        fitness_chunk=evolver.fitness_chunk,
        updated=updated,
        updated_delta_vs=delta_vs,
        best_cost=fitness.best_cost,
        best_trajectory=fitness.best_trajectory,
        retries=evaluator.retries,
    )


# Worker-process context (installed once per process by the pool initializer)
_context: SearchContext | None = None


def _init_worker(context: SearchContext) -> None:
    global _context
    _context = context


def _run_chunk_in_worker(task: ChunkTask) -> ChunkResult:
    if _context is None:
        raise RuntimeError("Worker process was not initialized with a search context")
    return run_chunk(task, _context)


class SerialExecutor(Executor):
    """Runs submitted calls immediately in the calling thread."""

    def submit(self, fn, /, *args, **kwargs) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future


# --------------------------------------------------------------------------- #
#  Coordinator
# --------------------------------------------------------------------------- #
class TrajectorySolver:
    """Differential-evolution search for the cheapest trajectory of a sequence.

    Usage::

        with TrajectorySolver(system, sequence, user_settings, seed=1) as solver:
            for progress in solver.run():
                ...
            best = solver.best_trajectory
    """

    def __init__(
        self,
        system: SolarSystem,
        sequence: FlybySequence,
        settings: TrajectoryUserSettings,
        config: TrajectorySearchConfig | None = None,
        executor: str | None = None,
        num_workers: int | None = None,
        seed: int | None = None,
    ) -> None:
        self.system = system
        self.sequence = sequence
        self.settings = settings
        self.config = config if config is not None else app_settings.search
        self.executor_kind = executor if executor is not None else app_settings.executor
        self.num_workers = num_workers if num_workers is not None else app_settings.num_workers

        pop_size = self.config.population_size
        self.dim = sequence.agent_dimension
        self.population = np.zeros((pop_size, self.dim))
        self.fitnesses = np.full(pop_size, np.inf)
        self.delta_vs = np.full(pop_size, np.inf)
        self.chunks = chunk_ranges(pop_size, self.num_workers)

        self.generation = 0
        self.best_cost = np.inf
        self.best_trajectory: Trajectory | None = None
        self.retries = 0

        self._seed_seq = np.random.SeedSequence(seed)
        self._context = SearchContext(system, sequence, settings, self.config)
        self._executor = self._create_executor()
        self._started = time.monotonic()

        logger.info(
            "Solver ready for %s: %d agents of dimension %d in %d chunks (%s executor)",
            sequence.seq_string, pop_size, self.dim, len(self.chunks), self.executor_kind,
        )

    def _create_executor(self) -> Executor:
        if self.executor_kind == "process":
            return ProcessPoolExecutor(
                max_workers=len(self.chunks),
                initializer=_init_worker,
                initargs=(self._context,),
            )
        if self.executor_kind == "thread":
            return ThreadPoolExecutor(max_workers=len(self.chunks))
        if self.executor_kind == "serial":
            return SerialExecutor()
        raise ValueError(f"Unknown executor {self.executor_kind!r}")

    def _submit(self, task: ChunkTask) -> Future:
        if self.executor_kind == "process":
            return self._executor.submit(_run_chunk_in_worker, task)
        return self._executor.submit(run_chunk, task, self._context)

    # ------------------------------------------------------------------ #
    #  Generations
    # ------------------------------------------------------------------ #
    def step(self) -> SearchProgress:
        """Run one generation (the first one seeds the population)."""
        seeds = self._seed_seq.spawn(len(self.chunks))
        seeding = self.generation == 0

        snapshot = fit_snapshot = None
        if not seeding:
            snapshot = self.population.copy()
            fit_snapshot = self.fitnesses.copy()

        futures = []
        for k, ((start, end), seed) in enumerate(zip(self.chunks, seeds)):
            futures.append(self._submit(ChunkTask(
                chunk_index=k,
                start=start,
                end=end,
                generation=self.generation - 1 if not seeding else 0,
                seed=seed,
                population=snapshot,
                fitnesses=fit_snapshot,
            )))

        # Waits for every chunk; a TrajectoryComputationError aborts the search
        results = [f.result() for f in futures]

        updated = 0
        for res in results:
            self._merge(res)
            updated += len(res.updated)
            self.retries += res.retries
            if res.best_trajectory is not None and res.best_cost < self.best_cost:
                self.best_cost = res.best_cost
                self.best_trajectory = res.best_trajectory

        self.generation += 1
        progress = self._progress(updated)
        logger.info(
            "Generation %d: best cost %.4f, best dv %.4f km/s, %d updated, %d retries",
            progress.generation, progress.best_cost, progress.best_delta_v,
            updated, self.retries,
        )
        return progress

    def _merge(self, res: ChunkResult) -> None:
        for i, dv in zip(res.updated, res.updated_delta_vs):
            local = i - res.start
            self.population[i] = res.population_chunk[local]
            self.fitnesses[i] = res.fitness_chunk[local]
            self.delta_vs[i] = dv

    def _progress(self, updated: int) -> SearchProgress:
        finite = self.fitnesses[np.isfinite(self.fitnesses)]
        best = self.best_trajectory
        return SearchProgress(
            generation=self.generation,
            max_generations=self.config.max_generations,
            best_cost=float(self.best_cost),
            best_delta_v=best.total_delta_v if best is not None else float("inf"),
            mean_cost=float(finite.mean()) if finite.size else float("inf"),
            updated=updated,
            retries=self.retries,
            elapsed=time.monotonic() - self._started,
            best_departure_date=best.departure_date if best is not None else None,
            best_duration=best.total_duration if best is not None else None,
            population_costs=[float(c) for c in np.sort(self.fitnesses)[:3]],
            best_trajectory=best,
        )

    def run(self, generations: int | None = None) -> Generator[SearchProgress, None, None]:
        """Yield progress after every generation.

        The seeding generation counts as the first one. Stop iterating to
        halt the search early.
        """
        n = generations if generations is not None else self.config.max_generations
        for _ in range(n):
            yield self.step()

    # ------------------------------------------------------------------ #
    #  Lifecycle
    # ------------------------------------------------------------------ #
    def close(self) -> None:
        self._executor.shutdown(wait=True, cancel_futures=True)

    def __enter__(self) -> "TrajectorySolver":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
