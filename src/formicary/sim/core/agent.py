from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple, Union

from pygame.math import Vector2

from .genome import BreederGenome, ForagerGenome


class Role(str, Enum):
    FORAGER = "Forager"
    BREEDER = "Breeder"


class ForagerState(str, Enum):
    FORAGING = "Foraging"
    FEEDING = "Feeding"


Genome = Union[ForagerGenome, BreederGenome]


@dataclass(slots=True)
class Agent:
    id: int
    role: Role
    genome: Genome
    position: Tuple[int, int, int]
    health: int
    max_health: int
    generation: int
    heading: Vector2 = field(default_factory=lambda: Vector2(1.0, 0.0))
    state: ForagerState = ForagerState.FORAGING
    alive: bool = True
    energy_given: int = 0
    food_eaten: int = 0
    nests_placed: int = 0
    ticks_alive: int = 0

    @property
    def is_breeder(self) -> bool:
        return self.role is Role.BREEDER

    @property
    def ground(self) -> Tuple[int, int, int]:
        """The block the agent stands on."""
        x, y, z = self.position
        return (x, y - 1, z)

    @property
    def threshold(self) -> int:
        if isinstance(self.genome, BreederGenome):
            return self.genome.place_threshold
        return self.genome.feed_threshold

    def heal(self, amount: int) -> int:
        before = self.health
        self.health = min(self.max_health, self.health + max(0, amount))
        return self.health - before
