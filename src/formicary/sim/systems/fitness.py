from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List

from ..core.agent import Agent, Genome, Role

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FitnessRecord:
    agent_id: int
    role: Role
    fitness: int
    genome: Genome
    generation: int
    ticks_alive: int


@dataclass(frozen=True, slots=True)
class GenerationSummary:
    generation: int
    breeder_fitness: int
    forager_count: int
    forager_best: int
    forager_mean: float
    ticks: int


class FitnessTracker:
    """Scores agents and keeps per-generation fitness history."""

    def __init__(self, food_weight: int):
        self._food_weight = food_weight
        self._forager_scores: List[int] = []
        self._breeder_fitness: Dict[int, int] = {}
        self._history: List[GenerationSummary] = []

    @property
    def history(self) -> List[GenerationSummary]:
        return self._history

    def forager_fitness(self, agent: Agent) -> int:
        return agent.energy_given + self._food_weight * agent.food_eaten

    def breeder_fitness(self, agent: Agent) -> int:
        return agent.nests_placed

    def fitness(self, agent: Agent) -> int:
        if agent.role is Role.BREEDER:
            return self.breeder_fitness(agent)
        return self.forager_fitness(agent)

    def finalize(self, agent: Agent, generation: int) -> FitnessRecord:
        record = FitnessRecord(
            agent_id=agent.id,
            role=agent.role,
            fitness=self.fitness(agent),
            genome=agent.genome,
            generation=generation,
            ticks_alive=agent.ticks_alive,
        )
        if agent.role is Role.BREEDER:
            self._breeder_fitness[generation] = record.fitness
        else:
            self._forager_scores.append(record.fitness)
        logger.debug(
            "Finalized %s %d: fitness=%d ticks=%d", agent.role.value, agent.id, record.fitness, agent.ticks_alive
        )
        return record

    def close_generation(self, generation: int, ticks: int) -> GenerationSummary:
        scores = self._forager_scores
        summary = GenerationSummary(
            generation=generation,
            breeder_fitness=self._breeder_fitness.pop(generation, 0),
            forager_count=len(scores),
            forager_best=max(scores) if scores else 0,
            forager_mean=sum(scores) / len(scores) if scores else 0.0,
            ticks=ticks,
        )
        self._history.append(summary)
        self._forager_scores = []
        return summary
