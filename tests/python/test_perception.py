from __future__ import annotations

import math

from conftest import make_agent

from flocking.sim.core.config import Category, SimulationConfig
from flocking.sim.core.rng import DeterministicRng
from flocking.sim.core.spatial_grid import SpatialGrid
from flocking.sim.systems.perception import awareness_radius, classify
from flocking.sim.types.classification import Neighbor


def _column_flock():
    return [
        make_agent(0, 100.0, 100.0),
        make_agent(1, 100.0, 105.0, heading=0.5, magnitude=1.4),
        make_agent(2, 100.0, 125.0),
        make_agent(3, 100.0, 170.0),
        make_agent(4, 100.0, 200.0),
    ]


def test_categories_are_layered_by_radius(quiet_config: SimulationConfig):
    agents = _column_flock()
    result = classify(0, agents, quiet_config)

    assert [n.y for n in result.separation] == [105.0]
    assert [n.y for n in result.alignment] == [105.0, 125.0]
    assert [n.y for n in result.cohesion] == [105.0, 125.0, 170.0]
    assert result.visible == 3


def test_neighbor_snapshot_carries_heading_and_magnitude(quiet_config: SimulationConfig):
    agents = _column_flock()
    result = classify(0, agents, quiet_config)
    assert result.separation[0] == Neighbor(x=100.0, y=105.0, rotation=0.5, magnitude=1.4)


def test_self_is_never_a_neighbor(quiet_config: SimulationConfig):
    agents = [make_agent(0, 50.0, 50.0), make_agent(1, 50.0, 50.0)]
    result = classify(0, agents, quiet_config)
    assert len(result.cohesion) == 1


def test_radius_boundary_is_exclusive(quiet_config: SimulationConfig):
    agents = [make_agent(0, 0.0, 0.0), make_agent(1, 0.0, 20.0)]
    result = classify(0, agents, quiet_config)
    assert result.separation == []
    assert len(result.alignment) == 1


def test_zero_vision_angle_sees_nothing(quiet_config: SimulationConfig):
    quiet_config.vision_angle_deg = 0.0
    agents = _column_flock()
    result = classify(0, agents, quiet_config)
    assert result.is_empty()
    assert result.visible == 0


def test_full_vision_angle_sees_behind(quiet_config: SimulationConfig):
    agents = [make_agent(0, 100.0, 100.0), make_agent(1, 100.0, 90.0), make_agent(2, 90.0, 100.0)]
    result = classify(0, agents, quiet_config)
    assert len(result.cohesion) == 2


def test_vision_cone_gates_every_category(quiet_config: SimulationConfig):
    quiet_config.vision_angle_deg = 45.0
    agents = [
        make_agent(0, 100.0, 100.0),
        make_agent(1, 100.0, 95.0),
        make_agent(2, 105.0, 100.0),
        make_agent(3, 101.0, 110.0),
    ]
    result = classify(0, agents, quiet_config)
    assert [n.y for n in result.separation] == [110.0]
    assert [n.y for n in result.cohesion] == [110.0]


def test_cone_follows_heading(quiet_config: SimulationConfig):
    quiet_config.vision_angle_deg = 30.0
    # heading pi/2 travels toward -x
    agents = [make_agent(0, 100.0, 100.0, heading=math.pi / 2), make_agent(1, 90.0, 100.0), make_agent(2, 100.0, 110.0)]
    result = classify(0, agents, quiet_config)
    assert [n.x for n in result.cohesion] == [90.0]


def test_no_radius_means_no_classification(quiet_config: SimulationConfig):
    for category in (Category.SEPARATION, Category.ALIGNMENT, Category.COHESION):
        quiet_config.radius[category] = 0.0
    assert awareness_radius(quiet_config) == 0.0
    result = classify(0, _column_flock(), quiet_config)
    assert result.is_empty()


def test_spatial_grid_candidates_match_brute_force(quiet_config: SimulationConfig):
    quiet_config.vision_angle_deg = 120.0
    rng = DeterministicRng(11)
    agents = [
        make_agent(i, rng.next_range(0.0, 400.0), rng.next_range(0.0, 400.0), heading=rng.next_heading())
        for i in range(80)
    ]
    radius = awareness_radius(quiet_config)
    grid = SpatialGrid(radius)
    for index, agent in enumerate(agents):
        grid.insert(index, agent.position)
    offsets = grid.build_neighbor_cell_offsets(radius)

    candidates: list[int] = []
    for index, agent in enumerate(agents):
        grid.collect_candidates(agent.position, offsets, candidates, exclude=index)
        assert classify(index, agents, quiet_config, candidates) == classify(index, agents, quiet_config)
