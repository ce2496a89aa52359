from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from ..core.agent import Agent
from ..core.config import Category, SimulationConfig
from ..types.classification import Classification, Neighbor
from ..utils.math2d import local_coordinates, squared_distance, visibility

FLOCK_CATEGORIES = (Category.SEPARATION, Category.ALIGNMENT, Category.COHESION)


def awareness_radius(config: SimulationConfig) -> float:
    """Largest flocking radius; cohesion's in the usual setup."""
    return max(config.radius_of(category) for category in FLOCK_CATEGORIES)


def classify(
    index: int,
    agents: Sequence[Agent],
    config: SimulationConfig,
    candidates: Optional[Iterable[int]] = None,
) -> Classification:
    """Sort every other visible agent into the flocking categories whose radius it is inside.

    ``agents`` must still hold the previous tick's state. ``candidates`` narrows
    the scan (for example to spatial-grid buckets); ``None`` scans everyone.
    """
    agent = agents[index]
    result = Classification()
    max_radius = awareness_radius(config)
    if max_radius <= 0.0:
        return result

    max_radius_sq = max_radius * max_radius
    vision_angle = config.vision_angle
    separation_sq = config.radius_of(Category.SEPARATION) ** 2
    alignment_sq = config.radius_of(Category.ALIGNMENT) ** 2
    cohesion_sq = config.radius_of(Category.COHESION) ** 2
    position = agent.position
    heading = agent.heading
    separation: List[Neighbor] = result.separation
    alignment: List[Neighbor] = result.alignment
    cohesion: List[Neighbor] = result.cohesion

    indices = range(len(agents)) if candidates is None else candidates
    for other_index in indices:
        if other_index == index:
            continue
        other = agents[other_index]
        dist_sq = squared_distance(position, other.position, max_radius)
        if dist_sq is None:
            continue
        local_x, local_y = local_coordinates(position, heading, other.position)
        is_visible, _angle = visibility(vision_angle, local_x, local_y)
        if not is_visible:
            continue
        if dist_sq < max_radius_sq:
            result.visible += 1

        neighbor = None
        if dist_sq < separation_sq:
            neighbor = _snapshot(other)
            separation.append(neighbor)
        if dist_sq < alignment_sq:
            neighbor = neighbor or _snapshot(other)
            alignment.append(neighbor)
        if dist_sq < cohesion_sq:
            neighbor = neighbor or _snapshot(other)
            cohesion.append(neighbor)
    return result


def _snapshot(other: Agent) -> Neighbor:
    return Neighbor(
        x=other.position.x,
        y=other.position.y,
        rotation=other.heading,
        magnitude=other.desired.magnitude,
    )
