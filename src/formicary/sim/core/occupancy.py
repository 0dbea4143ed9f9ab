from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Iterable, List, Tuple

if TYPE_CHECKING:
    from .agent import Agent

Cell = Tuple[int, int, int]


class OccupancyIndex:
    """Buckets live agents by the integer cell they stand in."""

    def __init__(self) -> None:
        self._cells: Dict[Cell, List["Agent"]] = {}
        self._active_keys: List[Cell] = []

    def clear(self) -> None:
        for key in self._active_keys:
            bucket = self._cells.get(key)
            if bucket:
                bucket.clear()
        self._active_keys.clear()

    def rebuild(self, agents: Iterable["Agent"]) -> None:
        self.clear()
        for agent in agents:
            if agent.alive:
                self.insert(agent)

    def insert(self, agent: "Agent") -> None:
        key = agent.position
        bucket = self._cells.get(key)
        if bucket is None:
            bucket = []
            self._cells[key] = bucket
            self._active_keys.append(key)
        elif not bucket:
            # Bucket exists but was emptied earlier; mark it active again.
            self._active_keys.append(key)
        bucket.append(agent)

    def remove(self, agent: "Agent", position: Cell | None = None) -> None:
        bucket = self._cells.get(agent.position if position is None else position)
        if not bucket:
            return
        for i, other in enumerate(bucket):
            if other is agent:
                del bucket[i]
                return

    def move(self, agent: "Agent", old_position: Cell) -> None:
        self.remove(agent, old_position)
        self.insert(agent)

    def occupants(self, cell: Cell) -> List["Agent"]:
        return self._cells.get(cell) or []

    def is_ground_occupied(self, ground: Cell, exclude_id: int | None = None) -> bool:
        """True if another live agent is standing on the block at `ground`."""
        x, y, z = ground
        for agent in self.occupants((x, y + 1, z)):
            if agent.alive and agent.id != exclude_id:
                return True
        return False
