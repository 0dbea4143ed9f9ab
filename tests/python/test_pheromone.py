from __future__ import annotations

import pytest

from formicary.config import PheromoneConfig, WorldConfig
from formicary.sim.core.blocks import BlockType
from formicary.sim.core.pheromone import PheromoneField
from formicary.sim.core.voxels import VoxelGrid


def _open_field(config: PheromoneConfig | None = None) -> tuple[VoxelGrid, PheromoneField]:
    grid = VoxelGrid(WorldConfig(size_x=9, size_y=9, size_z=9), seed=1)
    grid.fill(BlockType.AIR)
    return grid, PheromoneField(grid, config or PheromoneConfig())


def test_queen_diffusion_conserves_mass_in_open_air():
    _, field = _open_field()
    source = (4, 4, 4)
    field.add_queen(source, 100.0)

    field.tick()

    decayed = 100.0 * (1.0 - 0.001)
    share = decayed * 0.06
    neighbours = [(3, 4, 4), (5, 4, 4), (4, 3, 4), (4, 5, 4), (4, 4, 3), (4, 4, 5)]
    for cell in neighbours:
        assert field.read(cell)[0] == pytest.approx(5.994)
        assert field.read(cell)[0] == pytest.approx(share)
    assert field.read(source)[0] == pytest.approx(decayed - 6 * share)
    assert field.total()[0] == pytest.approx(decayed)


def test_worker_channel_uses_its_own_rates():
    _, field = _open_field()
    field.add_worker((4, 4, 4), 50.0)

    field.tick()

    decayed = 50.0 * (1.0 - 0.005)
    assert field.read((5, 4, 4)) == (0.0, pytest.approx(decayed * 0.04))
    assert field.read((4, 4, 4))[1] == pytest.approx(decayed * (1.0 - 6 * 0.04))
    assert field.read((4, 4, 4))[0] == 0.0


def test_diffusion_skips_solid_neighbours():
    grid, field = _open_field()
    grid.set_block(4, 3, 4, BlockType.STONE)
    grid.set_block(3, 4, 4, BlockType.NEST)
    field.add_queen((4, 4, 4), 100.0)

    field.tick()

    decayed = 100.0 * (1.0 - 0.001)
    assert not field.is_active((4, 3, 4))
    assert not field.is_active((3, 4, 4))
    assert field.read((4, 4, 4))[0] == pytest.approx(decayed - 4 * decayed * 0.06)
    assert field.active_count == 5


def test_cells_activated_this_tick_do_not_diffuse_until_next_tick():
    _, field = _open_field()
    field.add_queen((4, 4, 4), 100.0)

    field.tick()
    assert field.read((6, 4, 4)) == (0.0, 0.0)
    assert field.active_count == 7

    field.tick()
    assert field.read((6, 4, 4))[0] > 0.0


def test_values_below_cutoff_are_untracked():
    _, field = _open_field()
    field.add_worker((4, 4, 4), 0.1)
    assert field.active_count == 1

    field.tick()

    assert field.active_count == 0
    assert field.read((4, 4, 4)) == (0.0, 0.0)


def test_deposits_only_land_in_air_cells():
    grid, field = _open_field()
    grid.set_block(2, 2, 2, BlockType.STONE)

    assert not field.add_queen((2, 2, 2), 10.0)
    assert not field.add_worker((3, 3, 3), 0.0)
    assert not field.add_worker((3, 3, 3), -5.0)
    assert not field.add_queen((-1, 0, 0), 10.0)
    assert field.active_count == 0

    assert field.add_worker((3, 3, 3), 5.0)
    assert field.add_worker((3, 3, 3), 5.0)
    assert field.read((3, 3, 3)) == (0.0, 10.0)


def test_concentration_is_dropped_when_air_is_replaced():
    grid, field = _open_field()
    field.add_queen((4, 4, 4), 100.0)
    grid.set_block(4, 4, 4, BlockType.NEST)

    field.tick()

    assert not field.is_active((4, 4, 4))
    assert field.total() == (0.0, 0.0)


def test_field_stays_non_negative_and_fades_out():
    grid, field = _open_field(PheromoneConfig(queen_evaporation_rate=0.2, worker_evaporation_rate=0.3))
    grid.set_block(4, 0, 4, BlockType.STONE)
    for x in range(2, 7):
        field.add_queen((x, 1, 4), 20.0)
        field.add_worker((4, 1, x), 20.0)

    previous = sum(field.total())
    for _ in range(200):
        field.tick()
        for cell in list(field.export_cells()["cells"]):
            assert cell["queen"] >= 0.0
            assert cell["worker"] >= 0.0
        current = sum(field.total())
        assert current <= previous + 1e-9
        previous = current
        if field.active_count == 0:
            break

    assert field.active_count == 0


def test_world_reset_clears_field(flat_sim):
    field = flat_sim.pheromones
    field.add_queen((5, 6, 5), 10.0)
    assert field.active_count == 1

    flat_sim.grid.reset()

    assert field.active_count == 0


def test_export_cells_reports_both_channels():
    _, field = _open_field()
    field.add_queen((1, 2, 3), 4.0)
    field.add_worker((1, 2, 3), 2.0)

    exported = field.export_cells()

    assert exported["active"] == 1
    assert exported["cells"] == [{"x": 1, "y": 2, "z": 3, "queen": 4.0, "worker": 2.0}]
