from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from pygame.math import Vector2

from ..core.agent import Agent, DesiredVector
from ..core.config import Category, SimulationConfig, TuningConfig
from ..core.rng import DeterministicRng
from ..types.classification import Classification, Neighbor
from ..utils.math2d import HALF_PI, THREE_HALVES_PI, _clamp_value, angle_to_point, shortest_angle, unwrap

# most urgent first; decides the agent's tint
TINT_PRIORITY = (
    Category.PREDATOR,
    Category.OBSTACLE,
    Category.SEPARATION,
    Category.ALIGNMENT,
    Category.COHESION,
)

Force = Tuple[float, float]


@dataclass(slots=True)
class SteeringDecision:
    desired: DesiredVector
    tint: Optional[Category]
    fired: Tuple[Category, ...]
    return_target: Optional[Vector2]


def centroid(neighbors: Sequence[Neighbor]) -> Tuple[float, float]:
    count = len(neighbors)
    sum_x = 0.0
    sum_y = 0.0
    for neighbor in neighbors:
        sum_x += neighbor.x
        sum_y += neighbor.y
    return sum_x / count, sum_y / count


def cohesion(agent: Agent, neighbors: Sequence[Neighbor], config: SimulationConfig) -> Force:
    center_x, center_y = centroid(neighbors)
    dx = center_x - agent.position.x
    dy = center_y - agent.position.y
    rotation = unwrap(angle_to_point(dx, dy) - HALF_PI)
    radius = config.radius_of(Category.COHESION)
    closeness = _clamp_value(math.sqrt(dx * dx + dy * dy) / radius, 0.0, 1.0) if radius > 0.0 else 0.0
    # farther from the group means a faster approach
    magnitude = 1.0 + closeness * config.tuning.cohesion_boost
    return rotation, magnitude


def alignment(neighbors: Sequence[Neighbor]) -> Force:
    count = len(neighbors)
    rotation = circular_average([n.rotation for n in neighbors], [1.0] * count)
    magnitude = sum(n.magnitude for n in neighbors) / count
    return rotation, magnitude


def separation(agent: Agent, neighbors: Sequence[Neighbor], config: SimulationConfig) -> Force:
    center_x, center_y = centroid(neighbors)
    dx = center_x - agent.position.x
    dy = center_y - agent.position.y
    rotation = unwrap(angle_to_point(dx, dy) - THREE_HALVES_PI)
    radius = config.radius_of(Category.SEPARATION)
    distance = math.sqrt(dx * dx + dy * dy)
    proximity = 1.0 - _clamp_value(distance / radius, 0.0, 1.0) if radius > 0.0 else 1.0
    tuning = config.tuning
    magnitude = max(tuning.separation_min_magnitude, 1.0 + proximity * tuning.separation_boost)
    return rotation, magnitude


def avoidance_magnitude(distance: float, radius: float, tuning: TuningConfig) -> float:
    exponent = tuning.predator_sigmoid_steepness * (distance / radius - tuning.predator_sigmoid_center)
    exponent = _clamp_value(exponent, -700.0, 700.0)
    return tuning.predator_sigmoid_scale / (1.0 + math.exp(exponent)) + 1.0


def avoid_point(agent: Agent, point: Vector2, radius: float, tuning: TuningConfig) -> Optional[Force]:
    """Flee directly away from ``point`` when it lies strictly inside ``radius``."""
    if radius <= 0.0:
        return None
    dx = point.x - agent.position.x
    dy = point.y - agent.position.y
    dist_sq = dx * dx + dy * dy
    if dist_sq >= radius * radius:
        return None
    rotation = unwrap(angle_to_point(dx, dy) - THREE_HALVES_PI)
    return rotation, avoidance_magnitude(math.sqrt(dist_sq), radius, tuning)


def nearest_point(position: Vector2, points: Sequence[Vector2]) -> Optional[Vector2]:
    best = None
    best_sq = math.inf
    for point in points:
        dx = point.x - position.x
        dy = point.y - position.y
        dist_sq = dx * dx + dy * dy
        if dist_sq < best_sq:
            best = point
            best_sq = dist_sq
    return best


def circular_average(rotations: Sequence[float], weights: Sequence[float]) -> float:
    """Weighted mean of angles, taken on a continuous branch around the heaviest one.

    Angles near 0 and near 2*pi therefore average to a direction between them
    instead of the opposite one. A single angle is returned untouched.
    """
    if len(rotations) == 1:
        return rotations[0]
    reference = rotations[max(range(len(weights)), key=weights.__getitem__)]
    total = 0.0
    weighted = 0.0
    for rotation, weight in zip(rotations, weights):
        weighted += weight * (reference + shortest_angle(reference, rotation))
        total += weight
    return unwrap(weighted / total)


def blend(terms: Sequence[Tuple[float, float, float]], previous: DesiredVector) -> DesiredVector:
    """Combine ``(weight, rotation, magnitude)`` terms into one desired vector.

    Terms with zero weight carry no information and are dropped; if nothing is
    left the previous desired vector is kept.
    """
    active = [term for term in terms if term[0] > 0.0]
    if not active:
        return previous.copy()
    if len(active) == 1:
        return DesiredVector(active[0][1], active[0][2])
    weights = [term[0] for term in active]
    total = sum(weights)
    rotation = circular_average([term[1] for term in active], weights)
    magnitude = sum(term[0] * term[2] for term in active) / total
    return DesiredVector(rotation, magnitude)


def cool_down(magnitude: float, rate: float) -> float:
    if magnitude > 1.0:
        return max(1.0, magnitude - rate)
    if magnitude < 1.0:
        return min(1.0, magnitude + rate)
    return magnitude


def in_return_band(position: Vector2, config: SimulationConfig) -> bool:
    margin = config.return_margin
    if margin <= 0.0:
        return False
    return (
        position.x < margin
        or position.y < margin
        or position.x > config.world_width - margin
        or position.y > config.world_height - margin
    )


def compute_desired(
    agent: Agent,
    classification: Classification,
    config: SimulationConfig,
    rng: DeterministicRng,
    predator: Optional[Vector2] = None,
    obstacles: Sequence[Vector2] = (),
) -> SteeringDecision:
    previous = agent.desired
    forces: dict[Category, Force] = {}

    if classification.separation:
        forces[Category.SEPARATION] = separation(agent, classification.separation, config)
    if classification.alignment:
        forces[Category.ALIGNMENT] = alignment(classification.alignment)
    if classification.cohesion:
        forces[Category.COHESION] = cohesion(agent, classification.cohesion, config)
    if predator is not None:
        force = avoid_point(agent, predator, config.radius_of(Category.PREDATOR), config.tuning)
        if force is not None:
            forces[Category.PREDATOR] = force
    if obstacles:
        closest = nearest_point(agent.position, obstacles)
        force = avoid_point(agent, closest, config.radius_of(Category.OBSTACLE), config.tuning)
        if force is not None:
            forces[Category.OBSTACLE] = force

    return_target = None
    if forces:
        terms: List[Tuple[float, float, float]] = [
            (config.weight_of(category), rotation, magnitude)
            for category, (rotation, magnitude) in forces.items()
        ]
        desired = blend(terms, previous)
    else:
        desired = DesiredVector(previous.rotation, previous.magnitude)
        # a new target is only picked once the heading has caught up with the desired rotation
        change = shortest_angle(agent.heading, previous.rotation)
        settled = change * change < config.tuning.idle_rotation_epsilon
        if in_return_band(agent.position, config) and (settled or agent.return_target is not None):
            return_target = agent.return_target
            if return_target is None:
                margin = config.return_margin
                return_target = rng.next_point(
                    margin, margin, config.world_width - margin, config.world_height - margin
                )
            dx = return_target.x - agent.position.x
            dy = return_target.y - agent.position.y
            desired.rotation = unwrap(angle_to_point(dx, dy) - HALF_PI)
        else:
            desired.magnitude = cool_down(desired.magnitude, config.cooldown_rate)

    if rng.chance(config.random_move_chance_percent):
        desired.rotation = unwrap(desired.rotation + rng.next_sign() * config.tuning.random_turn)

    fired = tuple(category for category in TINT_PRIORITY if category in forces)
    tint = fired[0] if fired else None
    return SteeringDecision(desired=desired, tint=tint, fired=fired, return_target=return_target)
