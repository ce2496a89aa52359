from __future__ import annotations

import math

from pygame.math import Vector2

from ..core.agent import Agent
from ..core.config import SimulationConfig
from ..utils.math2d import fast_cos, fast_sin, shortest_angle, unwrap


def turn_toward(heading: float, target: float, max_turn: float) -> float:
    """Rotate ``heading`` toward ``target`` the short way, by at most ``max_turn``."""
    diff = shortest_angle(heading, unwrap(target))
    step = min(abs(diff), max_turn)
    return unwrap(heading + math.copysign(step, diff))


def wrap_position(position: Vector2, max_x: float, max_y: float) -> None:
    # reappear one unit inside the opposite edge, heading untouched
    if position.x <= 0.0:
        position.x = max_x - 1.0
    elif position.x >= max_x:
        position.x = 1.0
    if position.y <= 0.0:
        position.y = max_y - 1.0
    elif position.y >= max_y:
        position.y = 1.0


def integrate(agent: Agent, config: SimulationConfig) -> None:
    """Advance one agent by one frame using its already-blended desired vector.

    Heading 0 points along +y and positive turns swing the nose toward -x, so
    the step subtracts the sine term from x and adds the cosine term to y.
    """
    desired = agent.desired
    desired.rotation = unwrap(desired.rotation)
    magnitude = desired.magnitude
    agent.heading = turn_toward(agent.heading, desired.rotation, config.turning_rate * magnitude)

    distance = config.time_step * config.speed * magnitude
    if config.tuning.fast_trig:
        sin_h = fast_sin(agent.heading)
        cos_h = fast_cos(agent.heading)
    else:
        sin_h = math.sin(agent.heading)
        cos_h = math.cos(agent.heading)
    position = agent.position
    position.x -= sin_h * distance
    position.y += cos_h * distance
    wrap_position(position, config.world_width, config.world_height)
