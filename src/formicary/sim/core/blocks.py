from __future__ import annotations

from enum import IntEnum


class BlockType(IntEnum):
    AIR = 0
    STONE = 1
    GRASS = 2
    MULCH = 3
    ACIDIC = 4
    CONTAINER = 5
    NEST = 6

    @property
    def is_solid(self) -> bool:
        return self is not BlockType.AIR

    @property
    def is_diggable(self) -> bool:
        return self not in _UNDIGGABLE

    @property
    def symbol(self) -> int:
        """Neighbourhood symbol in [0, 6); air shares grass's symbol."""
        return _SYMBOLS[self]


_UNDIGGABLE = frozenset({BlockType.AIR, BlockType.CONTAINER, BlockType.NEST})

_SYMBOLS = {
    BlockType.AIR: 0,
    BlockType.GRASS: 0,
    BlockType.STONE: 1,
    BlockType.MULCH: 2,
    BlockType.ACIDIC: 3,
    BlockType.CONTAINER: 4,
    BlockType.NEST: 5,
}

NUM_SYMBOLS = 6
