from __future__ import annotations

import logging
from typing import Callable, List, Optional, Protocol, Tuple

from ...config import WorldConfig
from ...rng import DeterministicRng, derive_stream_seed
from .blocks import BlockType

logger = logging.getLogger(__name__)

Cell = Tuple[int, int, int]

_BLOCKS = tuple(BlockType)
_TERRAIN_RNG_SALT = 0x7E22A1B5C0DE0001


class WorldGrid(Protocol):
    """Block storage the simulation core reads and writes."""

    def get_block(self, x: int, y: int, z: int) -> BlockType: ...

    def set_block(self, x: int, y: int, z: int, block: BlockType) -> bool: ...

    def reset(self) -> None: ...

    def find_spawn_position(self) -> Optional[Cell]: ...

    def surface_height(self, x: int, z: int) -> Optional[int]: ...

    def count_nest_blocks(self) -> int: ...


class VoxelGrid:
    """Dense voxel world backed by a flat bytearray.

    Coordinates outside the world extent read as CONTAINER and cannot be
    written. Terrain comes from a seeded, smoothed heightmap; each reset
    draws a fresh terrain from the next seed in the sequence.
    """

    def __init__(self, config: WorldConfig, seed: int):
        self._config = config
        self._size_x = max(1, config.size_x)
        self._size_y = max(4, config.size_y)
        self._size_z = max(1, config.size_z)
        self._seed = seed
        self._resets = 0
        self._cells = bytearray(self._size_x * self._size_y * self._size_z)
        self._reset_listeners: List[Callable[[], None]] = []
        self._generate()

    @property
    def size(self) -> Tuple[int, int, int]:
        return (self._size_x, self._size_y, self._size_z)

    @property
    def resets(self) -> int:
        return self._resets

    def add_reset_listener(self, callback: Callable[[], None]) -> None:
        self._reset_listeners.append(callback)

    def in_bounds(self, x: int, y: int, z: int) -> bool:
        return 0 <= x < self._size_x and 0 <= y < self._size_y and 0 <= z < self._size_z

    def get_block(self, x: int, y: int, z: int) -> BlockType:
        if not (0 <= x < self._size_x and 0 <= y < self._size_y and 0 <= z < self._size_z):
            return BlockType.CONTAINER
        return _BLOCKS[self._cells[self._index(x, y, z)]]

    def set_block(self, x: int, y: int, z: int, block: BlockType) -> bool:
        if not self.in_bounds(x, y, z):
            return False
        self._cells[self._index(x, y, z)] = int(block)
        return True

    def fill(self, block: BlockType) -> None:
        for i in range(len(self._cells)):
            self._cells[i] = int(block)

    def reset(self) -> None:
        self._resets += 1
        self._generate()
        for callback in self._reset_listeners:
            callback()

    def surface_height(self, x: int, z: int) -> Optional[int]:
        """Height of the topmost solid block in the column, or None."""
        if not (0 <= x < self._size_x and 0 <= z < self._size_z):
            return None
        for y in range(self._size_y - 1, -1, -1):
            if self._cells[self._index(x, y, z)] != BlockType.AIR:
                return y
        return None

    def find_spawn_position(self) -> Optional[Cell]:
        """Body cell above the standable column closest to the centre."""
        cx = self._size_x // 2
        cz = self._size_z // 2
        radius = max(0, self._config.spawn_search_radius)
        candidates = [
            (dx * dx + dz * dz, dx, dz)
            for dx in range(-radius, radius + 1)
            for dz in range(-radius, radius + 1)
        ]
        candidates.sort()
        for _, dx, dz in candidates:
            x, z = cx + dx, cz + dz
            ground = self.surface_height(x, z)
            if ground is None or ground + 1 >= self._size_y:
                continue
            if not self.get_block(x, ground, z).is_diggable:
                continue
            return (x, ground + 1, z)
        logger.warning("No valid spawn column within %d cells of the world centre", radius)
        return None

    def count_nest_blocks(self) -> int:
        return self._cells.count(int(BlockType.NEST))

    def _index(self, x: int, y: int, z: int) -> int:
        return (x * self._size_y + y) * self._size_z + z

    def _generate(self) -> None:
        config = self._config
        rng = DeterministicRng(derive_stream_seed(self._seed + self._resets, _TERRAIN_RNG_SALT))
        heights = self._heightmap(rng)
        max_height = self._size_y - 4
        cells = self._cells
        for i in range(len(cells)):
            cells[i] = BlockType.AIR

        for x in range(self._size_x):
            for z in range(self._size_z):
                top = max(1, min(max_height, heights[x][z]))
                cells[self._index(x, 0, z)] = BlockType.CONTAINER
                for y in range(1, top):
                    block = BlockType.STONE
                    if y >= top - config.stone_depth and rng.next_float() < config.mulch_chance:
                        block = BlockType.MULCH
                    cells[self._index(x, y, z)] = block
                roll = rng.next_float()
                if roll < config.mulch_chance:
                    surface = BlockType.MULCH
                elif roll < config.mulch_chance + config.acidic_chance:
                    surface = BlockType.ACIDIC
                else:
                    surface = BlockType.GRASS
                cells[self._index(x, top, z)] = surface

    def _heightmap(self, rng: DeterministicRng) -> List[List[int]]:
        config = self._config
        raw = [
            [config.base_height + rng.next_range(0.0, float(config.height_variation)) for _ in range(self._size_z)]
            for _ in range(self._size_x)
        ]
        for _ in range(max(0, config.smoothing_passes)):
            smoothed = [[0.0] * self._size_z for _ in range(self._size_x)]
            for x in range(self._size_x):
                for z in range(self._size_z):
                    total = 0.0
                    count = 0
                    for ox in (-1, 0, 1):
                        for oz in (-1, 0, 1):
                            nx, nz = x + ox, z + oz
                            if 0 <= nx < self._size_x and 0 <= nz < self._size_z:
                                total += raw[nx][nz]
                                count += 1
                    smoothed[x][z] = total / count
            raw = smoothed
        return [[int(round(value)) for value in column] for column in raw]
