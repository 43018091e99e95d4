"""
Chunked differential evolution tests: chunk partitions, lifecycle,
strict-improvement replacement and parent selection.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from slingshot.optimizer.evolution import (
    ChunkedEvolver,
    EvolutionSettings,
    EvolverState,
    EvolverStateError,
    chunk_ranges,
    random_agent,
    randomize_agent,
)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def evo_settings():
    return EvolutionSettings(population_size=12, dim=5)


def _sum_fitness(agent):
    return float(np.sum(agent))


def _snapshot(settings, rng):
    population = rng.random((settings.population_size, settings.dim))
    fitnesses = np.array([_sum_fitness(a) for a in population])
    return population, fitnesses


# =============================================================================
# Test: Chunk partitions
# =============================================================================

class TestChunkRanges:
    """Chunks are contiguous half-open ranges covering the population exactly."""

    @pytest.mark.parametrize("pop_size, n", [(40, 4), (41, 4), (7, 3), (5, 8), (1, 1), (100, 7)])
    def test_exact_partition(self, pop_size, n):
        ranges = chunk_ranges(pop_size, n)
        assert ranges[0][0] == 0
        assert ranges[-1][1] == pop_size
        for (_, end), (start, _) in zip(ranges[:-1], ranges[1:]):
            assert end == start
        sizes = [end - start for start, end in ranges]
        assert min(sizes) >= 1
        assert max(sizes) - min(sizes) <= 1
        assert len(ranges) == min(n, pop_size)

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            chunk_ranges(0, 2)
        with pytest.raises(ValueError):
            chunk_ranges(10, 0)


# =============================================================================
# Test: Agents
# =============================================================================

class TestAgents:

    def test_random_agent_in_unit_cube(self, rng):
        agent = random_agent(9, rng)
        assert agent.shape == (9,)
        assert np.all((agent >= 0.0) & (agent < 1.0))

    def test_randomize_in_place(self, rng):
        agent = np.full(6, 2.0)
        view = agent
        randomize_agent(agent, rng)
        assert view is agent
        assert np.all(agent < 1.0)


# =============================================================================
# Test: Lifecycle
# =============================================================================

class TestLifecycle:
    """UNINITIALIZED -> SEEDED -> EVOLVING."""

    def test_evolve_before_seeding_raises(self, evo_settings, rng):
        evolver = ChunkedEvolver(0, 4, evo_settings, _sum_fitness, rng)
        population, fitnesses = _snapshot(evo_settings, rng)
        with pytest.raises(EvolverStateError):
            evolver.evolve_population_chunk(population, fitnesses)
        with pytest.raises(EvolverStateError):
            evolver.evaluate_chunk_fitness()

    def test_states(self, evo_settings, rng):
        evolver = ChunkedEvolver(4, 8, evo_settings, _sum_fitness, rng)
        assert evolver.state is EvolverState.UNINITIALIZED
        chunk = evolver.create_random_population_chunk()
        assert chunk.shape == (4, 5)
        assert evolver.state is EvolverState.SEEDED
        fit = evolver.evaluate_chunk_fitness()
        assert_allclose(fit, chunk.sum(axis=1))
        population, fitnesses = _snapshot(evo_settings, rng)
        population[4:8] = chunk
        fitnesses[4:8] = fit
        evolver.evolve_population_chunk(population, fitnesses)
        assert evolver.state is EvolverState.EVOLVING

    def test_invalid_chunk(self, evo_settings, rng):
        with pytest.raises(ValueError):
            ChunkedEvolver(5, 5, evo_settings, _sum_fitness, rng)
        with pytest.raises(ValueError):
            ChunkedEvolver(8, 13, evo_settings, _sum_fitness, rng)

    def test_snapshot_shape_is_checked(self, evo_settings, rng):
        evolver = ChunkedEvolver(0, 4, evo_settings, _sum_fitness, rng)
        with pytest.raises(ValueError):
            evolver.load_population_chunk(np.zeros((11, 5)), np.zeros(11))

    def test_crossover_schedule(self, evo_settings, rng):
        evolver = ChunkedEvolver(0, 4, evo_settings, _sum_fitness, rng)
        assert evolver.crossover_probability == pytest.approx(0.1)
        evolver.generation = 10
        assert evolver.crossover_probability == pytest.approx(0.3)
        evolver.generation = 1000
        assert evolver.crossover_probability == pytest.approx(0.9)


# =============================================================================
# Test: Evolution step
# =============================================================================

class TestEvolve:
    """One DE generation over a chunk."""

    def test_changed_indices_are_exact(self, evo_settings, rng):
        population, fitnesses = _snapshot(evo_settings, rng)
        evolver = ChunkedEvolver(3, 9, evo_settings, _sum_fitness, rng)
        evolver.load_population_chunk(population, fitnesses)
        before_pop = evolver.population_chunk.copy()
        before_fit = evolver.fitness_chunk.copy()

        changed = evolver.evolve_population_chunk(population, fitnesses)

        assert changed == sorted(changed)
        assert all(3 <= i < 9 for i in changed)
        for local in range(6):
            i = 3 + local
            moved = not np.array_equal(evolver.population_chunk[local], before_pop[local])
            assert moved == (i in changed)
            if i in changed:
                assert evolver.fitness_chunk[local] < before_fit[local]
            else:
                assert evolver.fitness_chunk[local] == before_fit[local]

    def test_snapshot_is_not_modified(self, evo_settings, rng):
        population, fitnesses = _snapshot(evo_settings, rng)
        pop_copy, fit_copy = population.copy(), fitnesses.copy()
        evolver = ChunkedEvolver(0, 6, evo_settings, _sum_fitness, rng)
        evolver.load_population_chunk(population, fitnesses)
        evolver.evolve_population_chunk(population, fitnesses)
        assert np.array_equal(population, pop_copy)
        assert np.array_equal(fitnesses, fit_copy)

    def test_ties_are_not_replacements(self, evo_settings, rng):
        population, _ = _snapshot(evo_settings, rng)
        fitnesses = np.zeros(evo_settings.population_size)
        evolver = ChunkedEvolver(0, 12, evo_settings, lambda agent: 0.0, rng)
        evolver.load_population_chunk(population, fitnesses)
        assert evolver.evolve_population_chunk(population, fitnesses) == []
        assert np.array_equal(evolver.population_chunk, population)

    def test_trials_stay_in_unit_cube(self, evo_settings, rng):
        seen = []

        def fitness(agent):
            seen.append(agent.copy())
            return -1.0

        population, fitnesses = _snapshot(evo_settings, rng)
        evolver = ChunkedEvolver(0, 12, evo_settings, fitness, rng)
        evolver.load_population_chunk(population, fitnesses)
        changed = evolver.evolve_population_chunk(population, fitnesses)
        assert changed == list(range(12))
        assert all(np.all((a >= 0.0) & (a <= 1.0)) for a in seen)

    def test_improves_on_a_smooth_objective(self, evo_settings, rng):
        population, fitnesses = _snapshot(evo_settings, rng)
        start_best = fitnesses.min()
        for generation in range(30):
            evolver = ChunkedEvolver(0, 12, evo_settings, _sum_fitness, rng, generation=generation)
            evolver.load_population_chunk(population, fitnesses)
            changed = evolver.evolve_population_chunk(population, fitnesses)
            population[changed] = evolver.population_chunk[changed]
            fitnesses[changed] = evolver.fitness_chunk[changed]
        assert fitnesses.min() < start_best

    def test_parents_are_distinct_and_exclude_target(self, evo_settings, rng):
        evolver = ChunkedEvolver(0, 12, evo_settings, _sum_fitness, rng)
        for i in range(12):
            for _ in range(50):
                parents = evolver._pick_parents(i)
                assert len(set(parents.tolist())) == 3
                assert i not in parents
                assert all(0 <= p < 12 for p in parents)
