from __future__ import annotations

import pytest

from formicary.rng import DeterministicRng
from formicary.sim.core.agent import Role
from formicary.sim.core.genome import NUM_ACTIONS, TOTAL_RULES, ForagerGenome, Ruleset
from formicary.sim.core.world import Simulation
from formicary.sim.systems.evolution import (
    BreedingPool,
    EngineState,
    breed_threshold,
    crossover_rulesets,
    mutate_ruleset,
    select_parents,
    tournament_select,
)

from conftest import small_config


def _colony(seed: int = 7) -> Simulation:
    config = small_config(seed=seed)
    config.breeder.eats_mulch = False
    return Simulation(config)


def _kill_breeder(sim: Simulation):
    sim.breeder.health = 1
    return sim.tick()


def test_full_tournament_always_picks_the_fittest():
    for seed in range(50):
        assert tournament_select([10, 50, 90], DeterministicRng(seed), 3) == 2


def test_tournament_respects_exclusion():
    rng = DeterministicRng(1)
    for _ in range(20):
        assert tournament_select([10, 50, 90], rng, 3, exclude=2) == 1


def test_tournament_edge_sizes():
    rng = DeterministicRng(2)
    assert tournament_select([4], rng, 3) == 0
    with pytest.raises(ValueError):
        tournament_select([], rng, 3)


def test_parents_are_always_distinct():
    rng = DeterministicRng(3)
    for count in range(2, 30):
        fitnesses = [7] * count if count % 2 else list(range(count))
        for _ in range(100):
            first, second = select_parents(fitnesses, rng, 3)
            assert first != second
            assert 0 <= first < count
            assert 0 <= second < count


def test_breeding_pool_is_sorted_capped_and_stable():
    pool: BreedingPool[str] = BreedingPool(3)
    for fitness, genome in ((1, "a"), (5, "b"), (3, "c"), (5, "d"), (0, "e")):
        pool.add(fitness, genome)

    assert len(pool) == 3
    assert pool.fitnesses() == [5, 5, 3]
    assert [entry.genome for entry in pool.entries] == ["b", "d", "c"]


def test_crossover_takes_every_rule_from_a_parent():
    first = Ruleset(bytes([1]) * TOTAL_RULES)
    second = Ruleset(bytes([2]) * TOTAL_RULES)

    child = crossover_rulesets(first, second, DeterministicRng(4))

    assert len(child) == TOTAL_RULES
    assert set(child.table) == {1, 2}
    assert first.table == bytes([1]) * TOTAL_RULES


def test_mutation_rate_bounds():
    rng = DeterministicRng(5)
    parent = Ruleset(bytes(TOTAL_RULES))

    assert mutate_ruleset(parent, rng, 0.0) == parent

    mutated = mutate_ruleset(parent, rng, 1.0)
    assert len(mutated) == TOTAL_RULES
    assert all(code < NUM_ACTIONS for code in mutated.table)
    assert set(mutated.table) == set(range(NUM_ACTIONS))
    assert parent.table == bytes(TOTAL_RULES)


def test_breed_threshold_is_clamped():
    rng = DeterministicRng(6)
    for _ in range(50):
        assert breed_threshold(1000, 1000, rng, 1000, 0.05, (0.5, 0.9)) == 900
        assert breed_threshold(0, 0, rng, 1000, 0.05, (0.2, 0.95)) == 200
        child = breed_threshold(700, 801, rng, 1000, 0.05, (0.2, 0.95))
        assert 700 <= child <= 800


def test_forager_death_is_recorded_without_transition():
    sim = _colony()
    forager = sim.living_foragers()[0]
    forager.energy_given = 42
    forager.health = 1
    forager.genome = ForagerGenome(feed_threshold=750, ruleset=Ruleset(bytes(TOTAL_RULES)))

    metrics = sim.tick()

    assert metrics.deaths == 1
    assert not metrics.generation_changed
    assert sim.generation == 1
    assert sim.living_agent_count() == 20
    assert sim.evolution.forager_pool.fitnesses() == [42]
    assert sim.evolution.current_generation.fitnesses() == [42]


def test_breeder_death_advances_exactly_one_generation():
    sim = _colony()
    resets = sim.grid.resets

    metrics = _kill_breeder(sim)

    assert metrics.generation_changed
    assert metrics.generation == 2
    assert sim.generation == 2
    assert sim.grid.resets == resets + 1
    assert sim.living_agent_count() == 21
    assert sim.breeder is sim.agents[0]
    assert len(sim.evolution.current_generation) == 0
    assert sim.evolution.state is EngineState.RUNNING

    _kill_breeder(sim)
    assert sim.generation == 3


def test_transition_records_breeder_and_survivors():
    sim = _colony()
    sim.breeder.nests_placed = 4
    for i, forager in enumerate(sim.living_foragers()):
        forager.energy_given = i * 10

    _kill_breeder(sim)

    report = sim.evolution.last_report
    assert report.finished_generation == 1
    assert report.breeder_fitness == 4
    assert report.best_nest_count == 4
    assert report.foragers_recorded == 20
    assert report.spawned
    assert sim.best_nest_count == 4
    assert sim.evolution.breeder_pool.fitnesses() == [4]
    assert sim.fitness.history[-1].forager_best == 190


def test_elite_foragers_are_exact_clones():
    sim = _colony()
    for i, forager in enumerate(sim.living_foragers()):
        forager.energy_given = i * 10

    _kill_breeder(sim)

    pool = sim.evolution.forager_pool
    assert pool.fitnesses()[:5] == [190, 180, 170, 160, 150]
    spawned = sim.living_foragers()
    assert len(spawned) == 20
    for i in range(5):
        assert spawned[i].genome is pool[i].genome
    for child in spawned[5:]:
        assert len(child.genome.ruleset) == TOTAL_RULES
        assert 200 <= child.genome.feed_threshold <= 950


def test_pools_never_exceed_their_caps():
    sim = _colony(seed=11)
    for _ in range(7):
        _kill_breeder(sim)
        assert len(sim.evolution.breeder_pool) <= 5
        assert len(sim.evolution.forager_pool) <= 20

    assert sim.generation == 8
    assert len(sim.evolution.breeder_pool) == 5
    assert len(sim.evolution.forager_pool) == 20
    assert 500 <= sim.breeder.threshold <= 900
    assert len(sim.fitness.history) == 7


def test_deaths_during_transition_are_ignored():
    sim = _colony()
    breeder = sim.breeder
    engine = sim.evolution
    engine._transitioning = True
    try:
        assert engine.state is EngineState.TRANSITIONING
        assert engine.report_death(breeder) is None
        assert engine.report_death(sim.living_foragers()[0]) is None
    finally:
        engine._transitioning = False

    assert sim.generation == 1
    assert len(engine.forager_pool) == 0
    assert len(engine.breeder_pool) == 0


def test_spawn_failure_leaves_colony_empty_and_is_reported(monkeypatch):
    sim = _colony()
    monkeypatch.setattr(sim.grid, "find_spawn_position", lambda: None)

    metrics = _kill_breeder(sim)

    assert metrics.generation_changed
    assert metrics.spawn_failed
    assert metrics.population == 0
    assert sim.last_spawn_failed
    assert sim.generation == 2
    assert not sim.evolution.last_report.spawned

    metrics = sim.tick()
    assert metrics.population == 0
    assert sim.generation == 2


def test_at_most_one_breeder_is_ever_alive():
    sim = _colony(seed=3)
    for tick in range(120):
        if tick % 40 == 39:
            _kill_breeder(sim)
        else:
            sim.tick()
        breeders = [agent for agent in sim.agents if agent.alive and agent.role is Role.BREEDER]
        assert len(breeders) <= 1
