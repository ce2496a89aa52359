from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from ..core.config import Category


@dataclass(frozen=True, slots=True)
class Neighbor:
    """Previous-tick state of another agent that passed the vision and radius tests."""

    x: float
    y: float
    rotation: float
    magnitude: float


@dataclass(slots=True)
class Classification:
    separation: List[Neighbor] = field(default_factory=list)
    alignment: List[Neighbor] = field(default_factory=list)
    cohesion: List[Neighbor] = field(default_factory=list)
    visible: int = 0

    def by_category(self) -> Dict[Category, List[Neighbor]]:
        return {
            Category.SEPARATION: self.separation,
            Category.ALIGNMENT: self.alignment,
            Category.COHESION: self.cohesion,
        }

    def is_empty(self) -> bool:
        return not (self.separation or self.alignment or self.cohesion)
