from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class TickMetrics:
    tick: int
    generation: int
    population: int
    foragers: int
    feeding: int
    breeder_alive: bool
    breeder_health: int
    nest_blocks: int
    best_nest_count: int
    deaths: int
    generation_changed: bool
    spawn_failed: bool
    active_pheromone_cells: int
    average_forager_health: float
    tick_duration_ms: float = 0.0
