from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

from .errors import ConfigError


@dataclass
class WorldConfig:
    size_x: int = 48
    size_y: int = 32
    size_z: int = 48
    base_height: int = 6
    height_variation: int = 6
    smoothing_passes: int = 3
    stone_depth: int = 3
    mulch_chance: float = 0.05
    acidic_chance: float = 0.02
    spawn_search_radius: int = 8


@dataclass
class AgentConfig:
    max_health: int = 1000
    health_decay: int = 1
    acidic_decay_multiplier: int = 2
    mulch_heal_fraction: float = 0.25
    max_climb: int = 2
    max_drop: int = 2
    turn_range_degrees: float = 20.0


@dataclass
class ForagerConfig:
    count: int = 20
    feed_threshold_fraction: float = 0.75
    random_move_chance: float = 0.24
    worker_pheromone_drop: float = 10.0
    # Neighbours within this fraction of the best gradient value are equally likely.
    gradient_tolerance: float = 0.1
    spawn_radius: float = 5.0


@dataclass
class BreederConfig:
    place_threshold_fraction: float = 0.75
    move_interval: int = 3
    queen_pheromone_drop: float = 10.0
    nest_cost_fraction: float = 1.0 / 3.0
    eats_mulch: bool = True


@dataclass
class PheromoneConfig:
    queen_evaporation_rate: float = 0.001
    queen_diffusion_rate: float = 0.06
    worker_evaporation_rate: float = 0.005
    worker_diffusion_rate: float = 0.04
    cutoff: float = 0.1


@dataclass
class EvolutionConfig:
    breeder_pool_size: int = 5
    forager_pool_size: int = 20
    elite_count: int = 5
    last_generation_sample: int = 10
    tournament_size: int = 3
    mutation_rate: float = 0.05
    threshold_mutation_fraction: float = 0.05
    food_fitness_weight: int = 50
    breeder_threshold_clamp: tuple[float, float] = (0.5, 0.9)
    forager_threshold_clamp: tuple[float, float] = (0.2, 0.95)


@dataclass
class SimulationConfig:
    seed: int = 42
    config_version: str = "v1"
    world: WorldConfig = field(default_factory=WorldConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)
    forager: ForagerConfig = field(default_factory=ForagerConfig)
    breeder: BreederConfig = field(default_factory=BreederConfig)
    pheromone: PheromoneConfig = field(default_factory=PheromoneConfig)
    evolution: EvolutionConfig = field(default_factory=EvolutionConfig)

    @staticmethod
    def from_yaml(path: Path) -> "SimulationConfig":
        data = yaml.safe_load(Path(path).read_text()) or {}
        return load_config(data)


@dataclass
class AppConfig:
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    broadcast_interval: int = 5
    tick_interval_seconds: float = 0.02


_SECTIONS = {
    "world": WorldConfig,
    "agent": AgentConfig,
    "forager": ForagerConfig,
    "breeder": BreederConfig,
    "pheromone": PheromoneConfig,
    "evolution": EvolutionConfig,
}


def _build_section(cls: type, raw: dict | None, name: str):
    raw = dict(raw or {})
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError(f"Unknown keys in '{name}' section: {', '.join(unknown)}")
    return cls(**raw)


def load_config(raw: dict) -> SimulationConfig:
    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration root must be a mapping, got {type(raw).__name__}")

    default_evolution = EvolutionConfig()

    def _pair(value: tuple[float, float] | list[float] | None, default: tuple[float, float]) -> tuple[float, float]:
        if isinstance(value, (tuple, list)) and len(value) == 2:
            return (float(value[0]), float(value[1]))
        return default

    sections = {}
    for name, cls in _SECTIONS.items():
        section_raw = raw.get(name, {})
        if name == "evolution":
            section_raw = dict(section_raw or {})
            section_raw["breeder_threshold_clamp"] = _pair(
                section_raw.get("breeder_threshold_clamp"), default_evolution.breeder_threshold_clamp
            )
            section_raw["forager_threshold_clamp"] = _pair(
                section_raw.get("forager_threshold_clamp"), default_evolution.forager_threshold_clamp
            )
        sections[name] = _build_section(cls, section_raw, name)

    sim_values = {k: v for k, v in raw.items() if k not in _SECTIONS}
    unknown = sorted(set(sim_values) - {"seed", "config_version"})
    if unknown:
        raise ConfigError(f"Unknown top-level configuration keys: {', '.join(unknown)}")
    return SimulationConfig(**sections, **sim_values)
