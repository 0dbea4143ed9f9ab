"""Agent genomes and the neighbourhood ruleset encoding.

A forager looks at the five blocks touching its ground cell (below, -x, +x,
-z, +z). Each block maps to one of six symbols, so a neighbourhood is a
five-digit base-6 number in ``[0, 7776)``. A ruleset stores one action per
such number in a fixed ``bytes`` table, and the table is immutable once
built, which is what makes an agent's genome fixed for its lifetime.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Sequence, Tuple

from ...rng import DeterministicRng
from .blocks import NUM_SYMBOLS

logger = logging.getLogger(__name__)

NEIGHBORHOOD_SIZE = 5
TOTAL_RULES = NUM_SYMBOLS ** NEIGHBORHOOD_SIZE


class Action(IntEnum):
    NONE = 0
    DIG_A = 1
    DIG_B = 2

    @property
    def digs(self) -> bool:
        return self is not Action.NONE


_ACTIONS = tuple(Action)
NUM_ACTIONS = len(_ACTIONS)


def encode_neighborhood(symbols: Sequence[int]) -> int:
    if len(symbols) != NEIGHBORHOOD_SIZE:
        raise ValueError(f"Expected {NEIGHBORHOOD_SIZE} symbols, got {len(symbols)}")
    key = 0
    for symbol in symbols:
        key = key * NUM_SYMBOLS + symbol
    return key


def decode_key(key: int) -> Tuple[int, ...]:
    symbols = []
    for _ in range(NEIGHBORHOOD_SIZE):
        symbols.append(key % NUM_SYMBOLS)
        key //= NUM_SYMBOLS
    return tuple(reversed(symbols))


@dataclass(frozen=True, slots=True)
class Ruleset:
    table: bytes

    def __post_init__(self) -> None:
        if len(self.table) != TOTAL_RULES:
            raise ValueError(f"Ruleset needs {TOTAL_RULES} entries, got {len(self.table)}")

    def __len__(self) -> int:
        return len(self.table)

    def action_for(self, key: int) -> Action:
        if not 0 <= key < TOTAL_RULES:
            logger.warning("Ruleset lookup miss for key %r; treating as no-op (this is a defect)", key)
            return Action.NONE
        code = self.table[key]
        if code >= NUM_ACTIONS:
            logger.warning("Ruleset holds unknown action code %d at key %d; treating as no-op", code, key)
            return Action.NONE
        return _ACTIONS[code]


@dataclass(frozen=True, slots=True)
class ForagerGenome:
    feed_threshold: int
    ruleset: Ruleset


@dataclass(frozen=True, slots=True)
class BreederGenome:
    place_threshold: int
    # Carried through crossover and mutation but never read by breeder behaviour.
    ruleset: Ruleset


def random_ruleset(rng: DeterministicRng) -> Ruleset:
    return Ruleset(bytes(rng.next_int(NUM_ACTIONS) for _ in range(TOTAL_RULES)))


def random_forager_genome(rng: DeterministicRng, feed_threshold: int) -> ForagerGenome:
    return ForagerGenome(feed_threshold=feed_threshold, ruleset=random_ruleset(rng))


def random_breeder_genome(rng: DeterministicRng, place_threshold: int) -> BreederGenome:
    return BreederGenome(place_threshold=place_threshold, ruleset=random_ruleset(rng))
