from __future__ import annotations

import argparse
import csv
import json
import logging
import math
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from ..config import SimulationConfig
from ..sim.core.world import Simulation
from ..sim.types.metrics import TickMetrics

logger = logging.getLogger(__name__)


_BASIC_HEADER = [
    "tick",
    "generation",
    "population",
    "deaths",
    "nest_blocks",
    "best_nest_count",
    "tick_ms",
]

_DETAILED_HEADER = [
    "tick",
    "generation",
    "population",
    "foragers",
    "feeding",
    "foraging",
    "breeder_alive",
    "breeder_health",
    "avg_forager_health",
    "deaths",
    "nest_blocks",
    "best_nest_count",
    "generation_changed",
    "spawn_failed",
    "active_pheromone_cells",
    "queen_pheromone_total",
    "worker_pheromone_total",
    "tick_ms",
]


def _format_basic_row(metrics: TickMetrics, tick_ms: float) -> list[object]:
    return [
        metrics.tick,
        metrics.generation,
        metrics.population,
        metrics.deaths,
        metrics.nest_blocks,
        metrics.best_nest_count,
        f"{tick_ms:.3f}",
    ]


def _format_detailed_row(sim: Simulation, metrics: TickMetrics, tick_ms: float) -> list[object]:
    queen_total, worker_total = sim.pheromones.total()
    return [
        metrics.tick,
        metrics.generation,
        metrics.population,
        metrics.foragers,
        metrics.feeding,
        metrics.foragers - metrics.feeding,
        int(metrics.breeder_alive),
        metrics.breeder_health,
        f"{metrics.average_forager_health:.4f}",
        metrics.deaths,
        metrics.nest_blocks,
        metrics.best_nest_count,
        int(metrics.generation_changed),
        int(metrics.spawn_failed),
        metrics.active_pheromone_cells,
        f"{queen_total:.4f}",
        f"{worker_total:.4f}",
        f"{tick_ms:.3f}",
    ]


def _percentile(sorted_values: list[float], percentile: float) -> float:
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    pos = (len(sorted_values) - 1) * percentile
    low = int(math.floor(pos))
    high = int(math.ceil(pos))
    if low == high:
        return float(sorted_values[low])
    weight = pos - low
    return float(sorted_values[low] + (sorted_values[high] - sorted_values[low]) * weight)


def _summary_stats(values: list[float]) -> dict[str, float]:
    if not values:
        return {"min": 0.0, "max": 0.0, "avg": 0.0, "p50": 0.0, "p90": 0.0, "p99": 0.0}
    sorted_values = sorted(values)
    return {
        "min": float(sorted_values[0]),
        "max": float(sorted_values[-1]),
        "avg": float(sum(values) / len(values)),
        "p50": _percentile(sorted_values, 0.50),
        "p90": _percentile(sorted_values, 0.90),
        "p99": _percentile(sorted_values, 0.99),
    }


def run_headless(
    steps: int,
    seed: Optional[int],
    log_path: Optional[Path],
    deterministic_log: bool = False,
    log_format: str = "detailed",
    summary_path: Optional[Path] = None,
    config_path: Optional[Path] = None,
    config: Optional[SimulationConfig] = None,
) -> Simulation:
    if config is None:
        config = SimulationConfig.from_yaml(config_path) if config_path else SimulationConfig()
    if seed is not None:
        config.seed = seed

    log_mode = log_format.lower().strip()
    if log_mode not in {"basic", "detailed"}:
        raise ValueError(f"Unknown log format: {log_format}")

    sim = Simulation(config)
    logger.info("Starting headless run: steps=%d seed=%d", steps, config.seed)

    writer = None
    csv_file = None
    if log_path:
        csv_file = Path(log_path).open("w", newline="")
        writer = csv.writer(csv_file)
        writer.writerow(_DETAILED_HEADER if log_mode == "detailed" else _BASIC_HEADER)

    tick_ms_series: list[float] = []
    population_series: list[float] = []
    nest_series: list[float] = []
    spawn_failures = 0

    try:
        for _ in range(steps):
            metrics = sim.tick()
            tick_ms = 0.0 if deterministic_log else metrics.tick_duration_ms
            tick_ms_series.append(tick_ms)
            population_series.append(float(metrics.population))
            nest_series.append(float(metrics.nest_blocks))
            if metrics.generation_changed and metrics.spawn_failed:
                spawn_failures += 1
            if writer:
                if log_mode == "detailed":
                    writer.writerow(_format_detailed_row(sim, metrics, tick_ms))
                else:
                    writer.writerow(_format_basic_row(metrics, tick_ms))
            if metrics.population == 0 and sim.last_spawn_failed:
                logger.error("Population is empty after a failed respawn; stopping at tick %d", metrics.tick)
                break
    finally:
        if csv_file:
            csv_file.close()

    if summary_path:
        summary = {
            "steps": steps,
            "ticks_run": sim.tick_count,
            "seed": config.seed,
            "log_format": log_mode,
            "deterministic_log": deterministic_log,
            "generation": sim.generation,
            "best_nest_count": sim.best_nest_count,
            "spawn_failures": spawn_failures,
            "tick_ms": _summary_stats(tick_ms_series),
            "population": _summary_stats(population_series),
            "nest_blocks": _summary_stats(nest_series),
            "generations": [asdict(summary) for summary in sim.fitness.history],
        }
        Path(summary_path).write_text(json.dumps(summary, indent=2))

    logger.info(
        "Finished headless run: ticks=%d generation=%d best_nest_count=%d",
        sim.tick_count,
        sim.generation,
        sim.best_nest_count,
    )
    return sim


def main() -> None:
    parser = argparse.ArgumentParser(description="Headless formicary simulation")
    parser.add_argument("--steps", type=int, default=5000)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--config", type=Path, default=None, help="YAML configuration file")
    parser.add_argument("--log", type=Path, default=None, help="CSV file to write metrics")
    parser.add_argument(
        "--log-format",
        choices=["basic", "detailed"],
        default="detailed",
        help="CSV format to write when --log is provided.",
    )
    parser.add_argument(
        "--summary",
        type=Path,
        default=None,
        help="Optional JSON file to write summary stats and per-generation fitness.",
    )
    parser.add_argument(
        "--deterministic-log",
        action="store_true",
        help="Write deterministic CSV (tick_ms is forced to 0.000 so identical seeds match).",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ...)")
    args = parser.parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    run_headless(
        args.steps,
        args.seed,
        args.log,
        deterministic_log=args.deterministic_log,
        log_format=args.log_format,
        summary_path=args.summary,
        config_path=args.config,
    )


if __name__ == "__main__":
    main()
