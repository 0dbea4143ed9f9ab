from formicary.rng import DeterministicRng, derive_stream_seed
from formicary.sim.core.agent import Agent, Role
from formicary.sim.core.genome import TOTAL_RULES, ForagerGenome, Ruleset
from formicary.sim.core.occupancy import OccupancyIndex


def _make_agent(agent_id: int, position) -> Agent:
    genome = ForagerGenome(feed_threshold=750, ruleset=Ruleset(bytes(TOTAL_RULES)))
    return Agent(
        id=agent_id,
        role=Role.FORAGER,
        genome=genome,
        position=position,
        health=1000,
        max_health=1000,
        generation=1,
    )


def test_insert_move_and_remove():
    index = OccupancyIndex()
    a = _make_agent(1, (2, 3, 2))
    b = _make_agent(2, (2, 3, 2))
    index.insert(a)
    index.insert(b)

    assert index.occupants((2, 3, 2)) == [a, b]
    assert index.is_ground_occupied((2, 2, 2))
    assert index.is_ground_occupied((2, 2, 2), exclude_id=1)

    old = a.position
    a.position = (3, 3, 2)
    index.move(a, old)

    assert index.occupants((2, 3, 2)) == [b]
    assert index.occupants((3, 3, 2)) == [a]
    assert not index.is_ground_occupied((3, 2, 2), exclude_id=1)

    index.remove(b)
    assert index.occupants((2, 3, 2)) == []


def test_rebuild_skips_dead_agents():
    index = OccupancyIndex()
    alive = _make_agent(1, (0, 1, 0))
    dead = _make_agent(2, (0, 1, 0))
    dead.alive = False
    index.insert(_make_agent(3, (5, 1, 5)))

    index.rebuild([alive, dead])

    assert index.occupants((0, 1, 0)) == [alive]
    assert index.occupants((5, 1, 5)) == []


def test_rng_streams_are_reproducible():
    first = DeterministicRng(derive_stream_seed(42, 0xABC))
    second = DeterministicRng(derive_stream_seed(42, 0xABC))
    other = DeterministicRng(derive_stream_seed(42, 0xABD))

    draws = [first.next_float() for _ in range(5)]
    assert draws == [second.next_float() for _ in range(5)]
    assert draws != [other.next_float() for _ in range(5)]

    first.reset()
    assert [first.next_float() for _ in range(5)] == draws

    heading = first.next_heading()
    assert abs(heading.length() - 1.0) < 1e-9
    assert len(first.sample(range(20), 10)) == 10
    assert len(first.sample([1, 2], 10)) == 2
