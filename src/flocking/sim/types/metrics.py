from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class TickMetrics:
    tick: int
    population: int
    visible_pairs: int
    separation: int
    alignment: int
    cohesion: int
    predator: int
    obstacle: int
    idle: int
    average_magnitude: float
    heatmap_peak: float
    tick_duration_ms: float = 0.0
