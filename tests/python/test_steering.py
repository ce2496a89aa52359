from __future__ import annotations

import math

from pygame.math import Vector2
from pytest import approx

from conftest import make_agent

from flocking.sim.core.config import SimulationConfig
from flocking.sim.systems.steering import integrate, turn_toward, wrap_position


def test_turn_toward_reaches_close_targets():
    assert turn_toward(0.0, 0.03, 0.05) == approx(0.03)
    assert turn_toward(3.0, 3.0, 0.1) == 3.0


def test_turn_toward_takes_the_short_way_round():
    assert turn_toward(0.1, 2 * math.pi - 0.1, 0.05) == approx(0.05)
    assert turn_toward(2 * math.pi - 0.1, 0.1, 0.05) == approx(2 * math.pi - 0.05)


def test_forward_step_follows_heading(quiet_config: SimulationConfig):
    agent = make_agent(0, 50.0, 50.0, heading=0.0, rotation=0.0, magnitude=2.0)
    integrate(agent, quiet_config)
    assert (agent.x, agent.y) == approx((50.0, 52.0))

    sideways = make_agent(1, 50.0, 50.0, heading=math.pi / 2, rotation=math.pi / 2, magnitude=2.0)
    integrate(sideways, quiet_config)
    assert (sideways.x, sideways.y) == approx((48.0, 50.0))


def test_turn_is_limited_by_rate_times_magnitude(quiet_config: SimulationConfig):
    agent = make_agent(0, 200.0, 200.0, heading=0.0, rotation=1.0, magnitude=2.0)
    integrate(agent, quiet_config)
    assert agent.heading == approx(0.1)

    other = make_agent(1, 200.0, 200.0, heading=0.0, rotation=2 * math.pi - 1.0, magnitude=2.0)
    integrate(other, quiet_config)
    assert other.heading == approx(2 * math.pi - 0.1)


def test_distance_scales_with_time_step_and_speed(quiet_config: SimulationConfig):
    quiet_config.time_step = 0.5
    quiet_config.speed = 3.0
    agent = make_agent(0, 100.0, 100.0)
    integrate(agent, quiet_config)
    assert agent.y == approx(101.5)


def test_desired_rotation_is_normalised(quiet_config: SimulationConfig):
    agent = make_agent(0, 200.0, 200.0, rotation=-0.5)
    integrate(agent, quiet_config)
    assert agent.desired.rotation == approx(2 * math.pi - 0.5)


def test_crossing_an_edge_wraps_and_keeps_heading(quiet_config: SimulationConfig):
    agent = make_agent(0, 0.5, 200.0, heading=math.pi / 2, rotation=math.pi / 2)
    integrate(agent, quiet_config)
    assert agent.x == 399.0
    assert agent.heading == approx(math.pi / 2)


def test_wrap_position_edges():
    position = Vector2(400.0, 0.0)
    wrap_position(position, 400.0, 300.0)
    assert position == Vector2(1.0, 299.0)

    position = Vector2(10.0, 300.5)
    wrap_position(position, 400.0, 300.0)
    assert position == Vector2(10.0, 1.0)


def test_fast_trig_stays_close_to_exact(quiet_config: SimulationConfig):
    exact = make_agent(0, 200.0, 200.0, heading=1.0, rotation=1.0, magnitude=1.5)
    approximate = make_agent(1, 200.0, 200.0, heading=1.0, rotation=1.0, magnitude=1.5)
    integrate(exact, quiet_config)
    quiet_config.tuning.fast_trig = True
    integrate(approximate, quiet_config)
    assert approximate.x == approx(exact.x, abs=5e-3)
    assert approximate.y == approx(exact.y, abs=5e-3)
