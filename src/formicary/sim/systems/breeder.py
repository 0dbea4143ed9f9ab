from __future__ import annotations

from typing import TYPE_CHECKING, Tuple

from ..core.agent import Agent
from ..core.blocks import BlockType
from .lifecycle import apply_health_decay, dig_ground, mulch_heal_amount
from .movement import settle, try_move

if TYPE_CHECKING:
    from ..core.world import Simulation

_CARDINAL_OFFSETS: Tuple[Tuple[int, int], ...] = ((-1, 0), (1, 0), (0, -1), (0, 1))


def step_breeder(sim: Simulation, agent: Agent) -> None:
    config = sim._config
    settle(sim, agent)

    if agent.ticks_alive % max(1, config.breeder.move_interval) == 0:
        try_move(sim, agent, max_drop=config.agent.max_drop)

    if agent.health >= agent.genome.place_threshold:
        place_nest(sim, agent)

    sim._pheromones.add_queen(agent.position, config.breeder.queen_pheromone_drop)

    if config.breeder.eats_mulch and agent.health < agent.max_health - mulch_heal_amount(sim, agent):
        eat_mulch(sim, agent)

    apply_health_decay(sim, agent)


def place_nest(sim: Simulation, agent: Agent) -> bool:
    """Build a nest in the first open cardinal cell beside the agent, resting on its ground layer."""
    grid = sim._grid
    x, y, z = agent.position
    for ox, oz in _CARDINAL_OFFSETS:
        cell = (x + ox, y, z + oz)
        if grid.get_block(*cell) is not BlockType.AIR:
            continue
        if sim._occupancy.occupants(cell):
            continue
        grid.set_block(*cell, BlockType.NEST)
        cost = int(agent.max_health * sim._config.breeder.nest_cost_fraction)
        agent.health = max(0, agent.health - cost)
        agent.nests_placed += 1
        return True
    return False


def eat_mulch(sim: Simulation, agent: Agent) -> bool:
    if sim._grid.get_block(*agent.ground) is not BlockType.MULCH:
        return False
    return dig_ground(sim, agent)
