from __future__ import annotations

from typing import TYPE_CHECKING

from ..core.agent import Agent
from ..core.blocks import BlockType

if TYPE_CHECKING:
    from ..core.world import Simulation


def mulch_heal_amount(sim: Simulation, agent: Agent) -> int:
    return int(agent.max_health * sim._config.agent.mulch_heal_fraction)


def dig_ground(sim: Simulation, agent: Agent) -> bool:
    """Turn the block under the agent into air, eating it if it is mulch."""
    ground = agent.ground
    block = sim._grid.get_block(*ground)
    if not block.is_diggable:
        return False
    if sim._occupancy.is_ground_occupied(ground, exclude_id=agent.id):
        return False
    if block is BlockType.MULCH:
        agent.heal(mulch_heal_amount(sim, agent))
        agent.food_eaten += 1
    sim._grid.set_block(*ground, BlockType.AIR)
    return True


def apply_health_decay(sim: Simulation, agent: Agent) -> bool:
    """Charge this tick's upkeep; returns True if the agent died."""
    config = sim._config.agent
    decay = config.health_decay
    if sim._grid.get_block(*agent.ground) is BlockType.ACIDIC:
        decay *= config.acidic_decay_multiplier
    agent.health = max(0, min(agent.max_health, agent.health - decay))
    agent.ticks_alive += 1
    if agent.health <= 0:
        agent.alive = False
        return True
    return False
