import os
import sys
from pathlib import Path

import pytest

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

ROOT = Path(__file__).resolve().parents[2]
src_root = ROOT / "src"
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))

from formicary.config import SimulationConfig, WorldConfig  # noqa: E402
from formicary.sim.core.blocks import BlockType  # noqa: E402
from formicary.sim.core.world import Simulation  # noqa: E402

FLOOR_Y = 2


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="run long multi-generation simulation tests",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "slow: marks long-running simulation tests (use --run-slow)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-slow"):
        return

    skip_marker = pytest.mark.skip(reason="Long-running; use --run-slow")

    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_marker)


def small_config(seed: int = 7) -> SimulationConfig:
    return SimulationConfig(
        seed=seed,
        world=WorldConfig(size_x=16, size_y=16, size_z=16, base_height=4, height_variation=3),
    )


def make_flat(sim: Simulation, floor: BlockType = BlockType.GRASS) -> None:
    """Empty the colony and lay a flat floor; agents stand at y = FLOOR_Y + 1."""
    sim.clear_population()
    grid = sim.grid
    grid.fill(BlockType.AIR)
    size_x, _, size_z = grid.size
    for x in range(size_x):
        for z in range(size_z):
            grid.set_block(x, 0, z, BlockType.CONTAINER)
            grid.set_block(x, 1, z, BlockType.STONE)
            grid.set_block(x, FLOOR_Y, z, floor)
    sim.pheromones.clear()


@pytest.fixture
def flat_sim() -> Simulation:
    sim = Simulation(small_config())
    make_flat(sim)
    return sim
