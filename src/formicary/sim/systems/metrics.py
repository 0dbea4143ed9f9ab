from __future__ import annotations

from typing import TYPE_CHECKING

from ..core.agent import ForagerState, Role
from ..types.metrics import TickMetrics

if TYPE_CHECKING:
    from ..core.world import Simulation


def create_metrics(
    sim: Simulation,
    tick: int,
    deaths: int,
    generation_changed: bool,
    duration_ms: float,
) -> TickMetrics:
    foragers = 0
    feeding = 0
    health_sum = 0
    for agent in sim.agents:
        if not agent.alive or agent.role is not Role.FORAGER:
            continue
        foragers += 1
        health_sum += agent.health
        if agent.state is ForagerState.FEEDING:
            feeding += 1
    breeder = sim.breeder
    return TickMetrics(
        tick=tick,
        generation=sim.generation,
        population=sim.living_agent_count(),
        foragers=foragers,
        feeding=feeding,
        breeder_alive=breeder is not None,
        breeder_health=breeder.health if breeder is not None else 0,
        nest_blocks=sim.count_nest_blocks(),
        best_nest_count=sim.best_nest_count,
        deaths=deaths,
        generation_changed=generation_changed,
        spawn_failed=sim.last_spawn_failed,
        active_pheromone_cells=sim._pheromones.active_count,
        average_forager_health=health_sum / foragers if foragers else 0.0,
        tick_duration_ms=duration_ms,
    )
