from __future__ import annotations

import logging
from time import perf_counter
from typing import Any, Dict, List, Optional, Tuple

from ...config import SimulationConfig
from ...rng import DeterministicRng, derive_stream_seed
from ..systems import breeder as breeder_system
from ..systems import forager as forager_system
from ..systems import metrics as metrics_system
from ..systems.evolution import EvolutionEngine
from ..systems.fitness import FitnessTracker
from ..types.metrics import TickMetrics
from ..types.snapshot import Snapshot, SnapshotFields, SnapshotMetadata, SnapshotWorld
from .agent import Agent, Genome, Role
from .occupancy import OccupancyIndex
from .pheromone import PheromoneField
from .voxels import VoxelGrid

logger = logging.getLogger(__name__)

_EVOLUTION_RNG_SALT = 0xE70C0FFEE5EED001
_TERRAIN_SEED_SALT = 0x7E44A1115EED0002


class Simulation:
    """One independent colony: world, pheromones, population and evolution state.

    `tick()` advances every live agent by one decision, reports deaths as they
    happen, and then runs exactly one pheromone tick.
    """

    def __init__(self, config: SimulationConfig):
        self._config = config
        self._build()

    def _build(self) -> None:
        config = self._config
        self._rng = DeterministicRng(config.seed)
        self._evolution_rng = DeterministicRng(derive_stream_seed(config.seed, _EVOLUTION_RNG_SALT))
        self._grid = VoxelGrid(config.world, derive_stream_seed(config.seed, _TERRAIN_SEED_SALT))
        self._pheromones = PheromoneField(self._grid, config.pheromone)
        self._grid.add_reset_listener(self._pheromones.clear)
        self._occupancy = OccupancyIndex()
        self._fitness = FitnessTracker(config.evolution.food_fitness_weight)
        self._evolution = EvolutionEngine(self, config, self._evolution_rng, self._fitness)
        self._agents: List[Agent] = []
        self._breeder: Optional[Agent] = None
        self._next_id = 0
        self._tick = 0
        self._metrics: Optional[TickMetrics] = None
        self._last_spawn_failed = not self._evolution.bootstrap()

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def agents(self) -> List[Agent]:
        return self._agents

    @property
    def grid(self) -> VoxelGrid:
        return self._grid

    @property
    def pheromones(self) -> PheromoneField:
        return self._pheromones

    @property
    def evolution(self) -> EvolutionEngine:
        return self._evolution

    @property
    def fitness(self) -> FitnessTracker:
        return self._fitness

    @property
    def metrics(self) -> Optional[TickMetrics]:
        return self._metrics

    @property
    def tick_count(self) -> int:
        return self._tick

    @property
    def generation(self) -> int:
        return self._evolution.generation

    @property
    def best_nest_count(self) -> int:
        return self._evolution.best_nest_count

    @property
    def last_spawn_failed(self) -> bool:
        return self._last_spawn_failed

    @property
    def breeder(self) -> Optional[Agent]:
        if self._breeder is not None and self._breeder.alive:
            return self._breeder
        return None

    def count_nest_blocks(self) -> int:
        return self._grid.count_nest_blocks()

    def living_agent_count(self) -> int:
        return sum(1 for agent in self._agents if agent.alive)

    def living_foragers(self) -> List[Agent]:
        return [agent for agent in self._agents if agent.alive and agent.role is Role.FORAGER]

    def reset(self) -> None:
        self._build()

    def spawn(self, role: Role, position: Tuple[int, int, int], genome: Genome) -> Agent:
        if role is Role.BREEDER and self.breeder is not None:
            raise ValueError("A live breeder already exists")
        max_health = self._config.agent.max_health
        agent = Agent(
            id=self._next_id,
            role=role,
            genome=genome,
            position=position,
            health=max_health,
            max_health=max_health,
            generation=self.generation,
            heading=self._rng.next_heading(),
        )
        self._next_id += 1
        self._agents.append(agent)
        self._occupancy.insert(agent)
        if role is Role.BREEDER:
            self._breeder = agent
        return agent

    def clear_population(self) -> None:
        for agent in self._agents:
            agent.alive = False
        self._agents = []
        self._breeder = None
        self._occupancy.clear()

    def tick(self) -> TickMetrics:
        start = perf_counter()
        deaths = 0
        generation_changed = False
        self._occupancy.rebuild(self._agents)

        # Agents spawned by a generation change mid-tick first act on the next tick.
        for agent in list(self._agents):
            if not agent.alive:
                continue
            if agent.role is Role.BREEDER:
                breeder_system.step_breeder(self, agent)
            else:
                forager_system.step_forager(self, agent)
            if agent.alive:
                continue

            deaths += 1
            self._occupancy.remove(agent)
            report = self._evolution.report_death(agent)
            if report is not None:
                generation_changed = True
                self._last_spawn_failed = not report.spawned

        self._agents = [agent for agent in self._agents if agent.alive]
        self._pheromones.tick()

        duration_ms = (perf_counter() - start) * 1000.0
        self._metrics = metrics_system.create_metrics(self, self._tick, deaths, generation_changed, duration_ms)
        self._tick += 1
        return self._metrics

    def run(self, ticks: int) -> List[TickMetrics]:
        return [self.tick() for _ in range(ticks)]

    def snapshot(self) -> Snapshot:
        if self._metrics is None:
            metrics = metrics_system.create_metrics(self, self._tick, 0, False, 0.0)
        else:
            metrics = self._metrics
        size_x, size_y, size_z = self._grid.size
        return Snapshot(
            tick=self._tick,
            metrics=metrics,
            agents=[self._agent_payload(agent) for agent in self._agents if agent.alive],
            world=SnapshotWorld(size_x=size_x, size_y=size_y, size_z=size_z),
            metadata=SnapshotMetadata(
                seed=self._config.seed,
                config_version=self._config.config_version,
                generation=self.generation,
                best_nest_count=self.best_nest_count,
            ),
            fields=SnapshotFields(pheromones=self._pheromones.export_cells()),
        )

    def _agent_payload(self, agent: Agent) -> Dict[str, Any]:
        x, y, z = agent.position
        return {
            "id": agent.id,
            "role": agent.role.value,
            "x": x,
            "y": y,
            "z": z,
            "health": agent.health,
            "state": agent.state.value,
            "threshold": agent.threshold,
            "fitness": self._fitness.fitness(agent),
            "generation": agent.generation,
        }
