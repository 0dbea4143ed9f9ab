from __future__ import annotations

from typing import Dict, List, Tuple

from ...config import PheromoneConfig
from .blocks import BlockType
from .voxels import Cell, WorldGrid

QUEEN = 0
WORKER = 1

_AXIS_OFFSETS: Tuple[Cell, ...] = (
    (-1, 0, 0),
    (1, 0, 0),
    (0, -1, 0),
    (0, 1, 0),
    (0, 0, -1),
    (0, 0, 1),
)


class PheromoneField:
    """Two-channel scalar field over the air cells of one world.

    Only cells holding a positive concentration are stored; the dict keys
    are the active set. A tick evaporates every active cell first and then
    diffuses the decayed values into axis-aligned air neighbours.
    """

    def __init__(self, grid: WorldGrid, config: PheromoneConfig):
        self._grid = grid
        self._evaporation = (config.queen_evaporation_rate, config.worker_evaporation_rate)
        self._diffusion = (config.queen_diffusion_rate, config.worker_diffusion_rate)
        self._cutoff = config.cutoff
        self._cells: Dict[Cell, List[float]] = {}
        self._tick_buffer: List[Cell] = []

    @property
    def active_count(self) -> int:
        return len(self._cells)

    def is_active(self, cell: Cell) -> bool:
        return cell in self._cells

    def clear(self) -> None:
        self._cells.clear()
        self._tick_buffer.clear()

    def read(self, cell: Cell) -> Tuple[float, float]:
        values = self._cells.get(cell)
        if values is None:
            return (0.0, 0.0)
        return (values[QUEEN], values[WORKER])

    def combined(self, cell: Cell) -> float:
        values = self._cells.get(cell)
        if values is None:
            return 0.0
        return values[QUEEN] + values[WORKER]

    def add_queen(self, cell: Cell, amount: float) -> bool:
        return self._add(cell, QUEEN, amount)

    def add_worker(self, cell: Cell, amount: float) -> bool:
        return self._add(cell, WORKER, amount)

    def total(self) -> Tuple[float, float]:
        queen = 0.0
        worker = 0.0
        for values in self._cells.values():
            queen += values[QUEEN]
            worker += values[WORKER]
        return (queen, worker)

    def tick(self) -> None:
        if not self._cells:
            return

        buffer = self._tick_buffer
        buffer.clear()
        buffer.extend(self._cells.keys())

        for cell in buffer:
            if self._grid.get_block(*cell) is not BlockType.AIR:
                # Air was replaced (e.g. by a nest); the concentration goes with it.
                self._cells.pop(cell, None)
                continue
            self._evaporate(self._cells[cell])

        for cell in buffer:
            values = self._cells.get(cell)
            if values is None or (values[QUEEN] <= 0.0 and values[WORKER] <= 0.0):
                continue
            self._diffuse(cell, values)

        for cell in buffer:
            values = self._cells.get(cell)
            if values is not None and values[QUEEN] <= 0.0 and values[WORKER] <= 0.0:
                del self._cells[cell]

    def export_cells(self) -> Dict[str, object]:
        cells = [
            {"x": x, "y": y, "z": z, "queen": values[QUEEN], "worker": values[WORKER]}
            for (x, y, z), values in self._cells.items()
        ]
        return {"cells": cells, "active": len(cells)}

    def _add(self, cell: Cell, channel: int, amount: float) -> bool:
        if amount <= 0.0:
            return False
        if self._grid.get_block(*cell) is not BlockType.AIR:
            return False
        values = self._cells.get(cell)
        if values is None:
            values = [0.0, 0.0]
            self._cells[cell] = values
        values[channel] += amount
        return True

    def _evaporate(self, values: List[float]) -> None:
        for channel in (QUEEN, WORKER):
            current = values[channel]
            if current <= 0.0:
                continue
            current *= 1.0 - self._evaporation[channel]
            if current < self._cutoff:
                current = 0.0
            values[channel] = current

    def _diffuse(self, cell: Cell, values: List[float]) -> None:
        x, y, z = cell
        neighbours = [
            (x + ox, y + oy, z + oz)
            for ox, oy, oz in _AXIS_OFFSETS
            if self._grid.get_block(x + ox, y + oy, z + oz) is BlockType.AIR
        ]
        if not neighbours:
            return
        for channel in (QUEEN, WORKER):
            current = values[channel]
            if current <= 0.0:
                continue
            share = current * self._diffusion[channel]
            for neighbour in neighbours:
                target = self._cells.get(neighbour)
                if target is None:
                    target = [0.0, 0.0]
                    self._cells[neighbour] = target
                target[channel] += share
            values[channel] = max(0.0, current - share * len(neighbours))
