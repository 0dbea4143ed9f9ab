import pytest

from formicary.config import SimulationConfig
from formicary.sim.core.agent import Role
from formicary.sim.core.world import Simulation


@pytest.mark.slow
def test_long_run_cycles_generations():
    sim = Simulation(SimulationConfig(seed=1))

    metrics = []
    for _ in range(6000):
        metrics.append(sim.tick())
        breeders = [agent for agent in sim.agents if agent.alive and agent.role is Role.BREEDER]
        assert len(breeders) <= 1
        if sim.last_spawn_failed:
            break

    transitions = sum(1 for m in metrics if m.generation_changed)
    average_tick_ms = sum(m.tick_duration_ms for m in metrics) / len(metrics)
    summary = (
        f"generation={sim.generation}, "
        f"transitions={transitions}, "
        f"best_nest_count={sim.best_nest_count}, "
        f"avg_tick_ms={average_tick_ms:.2f}"
    )

    assert not sim.last_spawn_failed, summary
    assert sim.generation == 1 + transitions, summary
    assert sim.generation >= 2, summary
    assert len(sim.evolution.breeder_pool) <= 5, summary
    assert len(sim.evolution.forager_pool) <= 20, summary
    assert len(sim.fitness.history) == transitions, summary
