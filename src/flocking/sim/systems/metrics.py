from __future__ import annotations

from typing import Mapping

from ..core.config import Category
from ..types.metrics import TickMetrics


def create_metrics(
    tick: int,
    population: int,
    visible_pairs: int,
    fired_counts: Mapping[Category, int],
    idle: int,
    magnitude_sum: float,
    heatmap_peak: float,
    duration_ms: float,
) -> TickMetrics:
    return TickMetrics(
        tick=tick,
        population=population,
        visible_pairs=visible_pairs,
        separation=fired_counts.get(Category.SEPARATION, 0),
        alignment=fired_counts.get(Category.ALIGNMENT, 0),
        cohesion=fired_counts.get(Category.COHESION, 0),
        predator=fired_counts.get(Category.PREDATOR, 0),
        obstacle=fired_counts.get(Category.OBSTACLE, 0),
        idle=idle,
        average_magnitude=magnitude_sum / population if population > 0 else 0.0,
        heatmap_peak=heatmap_peak,
        tick_duration_ms=duration_ms,
    )
