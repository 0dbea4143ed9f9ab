from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Tuple

from pygame.math import Vector2

from ..core.agent import Agent
from ..core.blocks import BlockType

if TYPE_CHECKING:
    from ..core.voxels import WorldGrid
    from ..core.world import Simulation

_HORIZONTAL_OFFSETS: Tuple[Tuple[int, int], ...] = (
    (-1, 0),
    (1, 0),
    (0, -1),
    (0, 1),
    (-1, -1),
    (1, -1),
    (-1, 1),
    (1, 1),
)


def relocate(sim: Simulation, agent: Agent, position: Tuple[int, int, int]) -> None:
    old = agent.position
    if old == position:
        return
    agent.position = position
    sim._occupancy.move(agent, old)


def settle(sim: Simulation, agent: Agent) -> None:
    """Drop the agent onto the first solid block beneath it."""
    x, y, z = agent.position
    grid = sim._grid
    new_y = y
    while new_y > 1 and grid.get_block(x, new_y - 1, z) is BlockType.AIR:
        new_y -= 1
    relocate(sim, agent, (x, new_y, z))


def standing_height(grid: WorldGrid, x: int, z: int, y: int, max_climb: int, max_drop: int) -> Optional[int]:
    """Highest body height in [y - max_drop, y + max_climb] with air above solid ground."""
    for ny in range(y + max_climb, y - max_drop - 1, -1):
        if grid.get_block(x, ny, z) is BlockType.AIR and grid.get_block(x, ny - 1, z).is_solid:
            return ny
    return None


def step_in_direction(sim: Simulation, agent: Agent, direction: Vector2, max_drop: int | None = None) -> bool:
    dx = int(round(direction.x))
    dz = int(round(direction.y))
    if dx == 0 and dz == 0:
        return False
    limits = sim._config.agent
    drop = limits.max_drop if max_drop is None else max_drop
    x, y, z = agent.position
    nx, nz = x + dx, z + dz
    ny = standing_height(sim._grid, nx, nz, y, limits.max_climb, drop)
    if ny is None:
        return False
    relocate(sim, agent, (nx, ny, nz))
    return True


def try_move(sim: Simulation, agent: Agent, max_drop: int | None = None) -> bool:
    """Wander: turn within the turn envelope, or pick a fresh heading when blocked."""
    turn_range = sim._config.agent.turn_range_degrees
    turned = agent.heading.rotate(sim._rng.next_range(-turn_range, turn_range))
    if turned.length_squared() > 1e-12:
        agent.heading = turned.normalize()
    if step_in_direction(sim, agent, agent.heading, max_drop):
        return True
    agent.heading = sim._rng.next_heading()
    return step_in_direction(sim, agent, agent.heading, max_drop)


def move_toward(sim: Simulation, agent: Agent, target: Tuple[int, int, int]) -> bool:
    x, _, z = agent.position
    tx, _, tz = target
    offset = Vector2(tx - x, tz - z)
    if offset.length_squared() < 0.01:
        return False
    agent.heading = offset.normalize()
    return step_in_direction(sim, agent, agent.heading)


def move_up_gradient(sim: Simulation, agent: Agent) -> bool:
    """Step toward a stronger combined pheromone reading, if any neighbour beats the current cell.

    Every neighbour within the tolerance band of the best reading is an equal
    candidate (reservoir sampled), so co-located agents fan out instead of
    all picking the same cell.
    """
    grid = sim._grid
    field = sim._pheromones
    x, y, z = agent.position
    baseline = field.combined(agent.position)

    readings = []
    best = baseline
    for ox, oz in _HORIZONTAL_OFFSETS:
        cell = (x + ox, y, z + oz)
        if grid.get_block(*cell) is not BlockType.AIR:
            continue
        value = field.combined(cell)
        readings.append((ox, oz, value))
        if value > best:
            best = value

    if best <= baseline:
        return False

    threshold = best * (1.0 - sim._config.forager.gradient_tolerance)
    chosen: Tuple[int, int] | None = None
    candidates = 0
    for ox, oz, value in readings:
        if value >= threshold:
            candidates += 1
            if sim._rng.next_int(candidates) == 0:
                chosen = (ox, oz)

    if chosen is None:
        return False
    agent.heading = Vector2(chosen).normalize()
    return step_in_direction(sim, agent, agent.heading)
