"""Generational genetic algorithm over forager and breeder genomes.

A generation ends when the breeder dies. Its nest count goes into the
breeder pool, every forager still alive is scored, the world is rebuilt,
and a new breeder plus a full forager cohort are spawned from the pools:

* foragers: the top all-time genomes are cloned unchanged (elitism); the
  rest are bred by tournament selection, uniform crossover of the ruleset
  and per-rule mutation, from the all-time pool plus a random sample of the
  generation that just ended.
* breeder: bred the same way from the breeder pool once it holds two
  genomes, random before that.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Generic, List, Optional, Sequence, Tuple, TypeVar

from ...config import SimulationConfig
from ...rng import DeterministicRng
from ..core.agent import Agent, Role
from ..core.genome import (
    NUM_ACTIONS,
    BreederGenome,
    ForagerGenome,
    Ruleset,
    random_breeder_genome,
    random_forager_genome,
)
from .fitness import FitnessTracker, GenerationSummary

if TYPE_CHECKING:
    from ..core.world import Simulation

logger = logging.getLogger(__name__)

G = TypeVar("G")


class EngineState(str, Enum):
    RUNNING = "Running"
    TRANSITIONING = "Transitioning"


@dataclass(frozen=True, slots=True)
class PoolEntry(Generic[G]):
    fitness: int
    genome: G


class BreedingPool(Generic[G]):
    """Entries kept sorted by fitness, best first, truncated to `capacity`.

    Ties keep insertion order. A capacity of None means unbounded.
    """

    def __init__(self, capacity: Optional[int] = None):
        self._capacity = capacity
        self._entries: List[PoolEntry[G]] = []

    @property
    def capacity(self) -> Optional[int]:
        return self._capacity

    @property
    def entries(self) -> List[PoolEntry[G]]:
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> PoolEntry[G]:
        return self._entries[index]

    def add(self, fitness: int, genome: G) -> None:
        self._entries.append(PoolEntry(fitness, genome))
        self._entries.sort(key=lambda entry: entry.fitness, reverse=True)
        if self._capacity is not None:
            del self._entries[self._capacity:]

    def clear(self) -> None:
        self._entries.clear()

    def fitnesses(self) -> List[int]:
        return [entry.fitness for entry in self._entries]


@dataclass(frozen=True, slots=True)
class GenerationReport:
    finished_generation: int
    generation: int
    breeder_fitness: int
    best_nest_count: int
    foragers_recorded: int
    spawned: bool
    summary: GenerationSummary


def tournament_select(
    fitnesses: Sequence[int], rng: DeterministicRng, size: int, exclude: Optional[int] = None
) -> int:
    """Index of the fittest of `size` random candidates.

    Draws are with replacement. A draw that hits `exclude` is redrawn once and
    then advanced to the next index, so the result differs from `exclude`
    whenever the pool has more than one entry. When the tournament is at least
    as large as the pool, every eligible entry competes.
    """
    count = len(fitnesses)
    if count == 0:
        raise ValueError("Cannot select from an empty pool")
    if count == 1:
        return 0

    if size >= count:
        candidates = [i for i in range(count) if i != exclude]
    else:
        candidates = []
        for _ in range(max(1, size)):
            candidate = rng.next_int(count)
            if candidate == exclude:
                candidate = rng.next_int(count)
                if candidate == exclude:
                    candidate = (candidate + 1) % count
            candidates.append(candidate)

    best_index = candidates[0]
    for candidate in candidates[1:]:
        if fitnesses[candidate] > fitnesses[best_index]:
            best_index = candidate
    return best_index


def select_parents(fitnesses: Sequence[int], rng: DeterministicRng, size: int) -> Tuple[int, int]:
    first = tournament_select(fitnesses, rng, size)
    second = tournament_select(fitnesses, rng, size, exclude=first)
    return first, second


def crossover_rulesets(first: Ruleset, second: Ruleset, rng: DeterministicRng) -> Ruleset:
    """Uniform crossover: each rule comes from either parent with probability one half."""
    a = first.table
    b = second.table
    return Ruleset(bytes(b[i] if rng.next_float() < 0.5 else a[i] for i in range(len(a))))


def mutate_ruleset(ruleset: Ruleset, rng: DeterministicRng, rate: float) -> Ruleset:
    table = bytearray(ruleset.table)
    for i in range(len(table)):
        if rng.next_float() < rate:
            table[i] = rng.next_int(NUM_ACTIONS)
    return Ruleset(bytes(table))


def breed_threshold(
    first: int,
    second: int,
    rng: DeterministicRng,
    max_health: int,
    mutation_fraction: float,
    clamp: Tuple[float, float],
) -> int:
    spread = int(max_health * mutation_fraction)
    child = (first + second) // 2 + rng.next_int_inclusive(-spread, spread)
    low = int(max_health * clamp[0])
    high = int(max_health * clamp[1])
    return max(low, min(high, child))


class EvolutionEngine:
    def __init__(self, sim: Simulation, config: SimulationConfig, rng: DeterministicRng, tracker: FitnessTracker):
        evolution = config.evolution
        self._sim = sim
        self._config = config
        self._rng = rng
        self._tracker = tracker
        self._generation = 1
        self._best_nest_count = 0
        self._transitioning = False
        self._generation_start_tick = 0
        self.breeder_pool: BreedingPool[BreederGenome] = BreedingPool(evolution.breeder_pool_size)
        self.forager_pool: BreedingPool[ForagerGenome] = BreedingPool(evolution.forager_pool_size)
        self.current_generation: BreedingPool[ForagerGenome] = BreedingPool(None)
        self.last_report: Optional[GenerationReport] = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def best_nest_count(self) -> int:
        return self._best_nest_count

    @property
    def state(self) -> EngineState:
        return EngineState.TRANSITIONING if self._transitioning else EngineState.RUNNING

    def bootstrap(self) -> bool:
        """Spawn the first generation from random genomes."""
        anchor = self._sim._grid.find_spawn_position()
        if anchor is None:
            logger.warning("Generation %d could not spawn: no valid anchor position", self._generation)
            return False
        self._sim.spawn(Role.BREEDER, anchor, self._random_breeder())
        for _ in range(self._config.forager.count):
            self._sim.spawn(Role.FORAGER, self._scatter(anchor), self._random_forager())
        return True

    def report_death(self, agent: Agent) -> Optional[GenerationReport]:
        if self._transitioning:
            logger.debug("Ignoring death of agent %d during generation transition", agent.id)
            return None
        if agent.role is Role.BREEDER:
            return self._transition(agent)
        self._record_forager(agent)
        return None

    def _record_forager(self, agent: Agent) -> int:
        record = self._tracker.finalize(agent, self._generation)
        self.forager_pool.add(record.fitness, record.genome)
        self.current_generation.add(record.fitness, record.genome)
        return record.fitness

    def _record_breeder(self, agent: Agent) -> int:
        record = self._tracker.finalize(agent, self._generation)
        self.breeder_pool.add(record.fitness, record.genome)
        if record.fitness > self._best_nest_count:
            self._best_nest_count = record.fitness
        return record.fitness

    def _transition(self, breeder: Agent) -> GenerationReport:
        self._transitioning = True
        try:
            finished = self._generation
            breeder_fitness = self._record_breeder(breeder)
            survivors = self._sim.living_foragers()
            for forager in survivors:
                self._record_forager(forager)
            ticks = self._sim.tick_count - self._generation_start_tick
            summary = self._tracker.close_generation(finished, ticks)

            self._generation += 1
            self._generation_start_tick = self._sim.tick_count
            self._sim.clear_population()
            self._sim._grid.reset()

            anchor = self._sim._grid.find_spawn_position()
            spawned = anchor is not None
            if anchor is None:
                logger.warning(
                    "Generation %d could not spawn: no valid anchor position; population left empty",
                    self._generation,
                )
            else:
                self._spawn_breeder(anchor)
                self._spawn_foragers(anchor)

            self.current_generation.clear()
            report = GenerationReport(
                finished_generation=finished,
                generation=self._generation,
                breeder_fitness=breeder_fitness,
                best_nest_count=self._best_nest_count,
                foragers_recorded=summary.forager_count,
                spawned=spawned,
                summary=summary,
            )
            logger.info(
                "Generation %d ended after %d ticks: nests=%d best=%d forager_best=%d forager_mean=%.1f",
                finished,
                ticks,
                breeder_fitness,
                self._best_nest_count,
                summary.forager_best,
                summary.forager_mean,
            )
            self.last_report = report
            return report
        finally:
            self._transitioning = False

    def _spawn_breeder(self, anchor: Tuple[int, int, int]) -> Agent:
        pool = self.breeder_pool
        if len(pool) < 2:
            return self._sim.spawn(Role.BREEDER, anchor, self._random_breeder())

        evolution = self._config.evolution
        first, second = select_parents(pool.fitnesses(), self._rng, evolution.tournament_size)
        parent_a = pool[first].genome
        parent_b = pool[second].genome
        genome = BreederGenome(
            place_threshold=breed_threshold(
                parent_a.place_threshold,
                parent_b.place_threshold,
                self._rng,
                self._config.agent.max_health,
                evolution.threshold_mutation_fraction,
                evolution.breeder_threshold_clamp,
            ),
            ruleset=self._child_ruleset(parent_a.ruleset, parent_b.ruleset),
        )
        return self._sim.spawn(Role.BREEDER, anchor, genome)

    def _spawn_foragers(self, anchor: Tuple[int, int, int]) -> List[Agent]:
        evolution = self._config.evolution
        breeding = list(self.forager_pool.entries)
        breeding.extend(self._rng.sample(self.current_generation.entries, evolution.last_generation_sample))
        fitnesses = [entry.fitness for entry in breeding]
        elite_count = min(evolution.elite_count, len(self.forager_pool))

        spawned = []
        for i in range(self._config.forager.count):
            if i < elite_count:
                genome = self.forager_pool[i].genome
            elif len(breeding) >= 2:
                first, second = select_parents(fitnesses, self._rng, evolution.tournament_size)
                genome = self._breed_forager(breeding[first].genome, breeding[second].genome)
            else:
                genome = self._random_forager()
            spawned.append(self._sim.spawn(Role.FORAGER, self._scatter(anchor), genome))
        return spawned

    def _breed_forager(self, parent_a: ForagerGenome, parent_b: ForagerGenome) -> ForagerGenome:
        evolution = self._config.evolution
        return ForagerGenome(
            feed_threshold=breed_threshold(
                parent_a.feed_threshold,
                parent_b.feed_threshold,
                self._rng,
                self._config.agent.max_health,
                evolution.threshold_mutation_fraction,
                evolution.forager_threshold_clamp,
            ),
            ruleset=self._child_ruleset(parent_a.ruleset, parent_b.ruleset),
        )

    def _child_ruleset(self, first: Ruleset, second: Ruleset) -> Ruleset:
        child = crossover_rulesets(first, second, self._rng)
        return mutate_ruleset(child, self._rng, self._config.evolution.mutation_rate)

    def _random_forager(self) -> ForagerGenome:
        threshold = int(self._config.agent.max_health * self._config.forager.feed_threshold_fraction)
        return random_forager_genome(self._rng, threshold)

    def _random_breeder(self) -> BreederGenome:
        max_health = self._config.agent.max_health
        low, high = self._config.evolution.breeder_threshold_clamp
        threshold = int(max_health * self._config.breeder.place_threshold_fraction)
        threshold = max(int(max_health * low), min(int(max_health * high), threshold))
        return random_breeder_genome(self._rng, threshold)

    def _scatter(self, anchor: Tuple[int, int, int]) -> Tuple[int, int, int]:
        """Random standable cell within the forager spawn radius, falling back to the anchor."""
        grid = self._sim._grid
        radius = self._config.forager.spawn_radius
        angle = self._rng.next_range(0.0, 2.0 * math.pi)
        distance = self._rng.next_range(0.0, radius)
        x = anchor[0] + int(round(math.cos(angle) * distance))
        z = anchor[2] + int(round(math.sin(angle) * distance))
        ground = grid.surface_height(x, z)
        if ground is None:
            return anchor
        body = (x, ground + 1, z)
        # Out-of-range cells read as container, which also rejects a column topped out at the ceiling.
        if grid.get_block(*body).is_solid:
            return anchor
        return body
