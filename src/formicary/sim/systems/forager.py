from __future__ import annotations

from typing import TYPE_CHECKING

from ..core.agent import Agent, ForagerState
from ..core.genome import Action, encode_neighborhood
from .lifecycle import apply_health_decay, dig_ground
from .movement import move_toward, move_up_gradient, settle, try_move

if TYPE_CHECKING:
    from ..core.world import Simulation


def step_forager(sim: Simulation, agent: Agent) -> None:
    settle(sim, agent)
    if agent.health >= agent.genome.feed_threshold:
        agent.state = ForagerState.FEEDING
        feed(sim, agent)
    else:
        agent.state = ForagerState.FORAGING
        forage(sim, agent)
    apply_health_decay(sim, agent)


def forage(sim: Simulation, agent: Agent) -> Action:
    try_move(sim, agent)
    action = agent.genome.ruleset.action_for(neighborhood_key(sim, agent))
    if action.digs:
        dig_ground(sim, agent)
    return action


def feed(sim: Simulation, agent: Agent) -> None:
    config = sim._config.forager
    breeder = sim.breeder
    before = agent.position

    if sim._rng.next_float() < config.random_move_chance:
        try_move(sim, agent)
    elif not move_up_gradient(sim, agent):
        if breeder is not None:
            move_toward(sim, agent, breeder.position)
        else:
            try_move(sim, agent)

    # Trail is laid only after an actual move.
    if agent.position != before:
        sim._pheromones.add_worker(agent.position, config.worker_pheromone_drop)

    if breeder is not None:
        share_health(agent, breeder)


def share_health(forager: Agent, breeder: Agent) -> int:
    """Hand health above the feed threshold to a breeder standing in the same cell."""
    if not forager.alive or not breeder.alive:
        return 0
    if forager.position != breeder.position:
        return 0
    excess = forager.health - forager.genome.feed_threshold
    if excess <= 0:
        return 0
    transfer = min(excess, breeder.max_health - breeder.health)
    if transfer <= 0:
        return 0
    forager.health -= transfer
    breeder.health += transfer
    forager.energy_given += transfer
    return transfer


def neighborhood_key(sim: Simulation, agent: Agent) -> int:
    """Encode below, -x, +x, -z, +z around the agent's ground block."""
    grid = sim._grid
    gx, gy, gz = agent.ground
    return encode_neighborhood(
        (
            grid.get_block(gx, gy - 1, gz).symbol,
            grid.get_block(gx - 1, gy, gz).symbol,
            grid.get_block(gx + 1, gy, gz).symbol,
            grid.get_block(gx, gy, gz - 1).symbol,
            grid.get_block(gx, gy, gz + 1).symbol,
        )
    )
