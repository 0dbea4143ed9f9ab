from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

from .metrics import TickMetrics


@dataclass(slots=True)
class Snapshot:
    tick: int
    metrics: TickMetrics
    agents: List[Dict[str, Any]]
    world: "SnapshotWorld"
    metadata: "SnapshotMetadata"
    fields: "SnapshotFields"


@dataclass(slots=True)
class SnapshotWorld:
    size_x: int
    size_y: int
    size_z: int


@dataclass(slots=True)
class SnapshotMetadata:
    seed: int
    config_version: str
    generation: int
    best_nest_count: int


@dataclass(slots=True)
class SnapshotFields:
    pheromones: Dict[str, Any]
