from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from pygame.math import Vector2

from .config import Category


@dataclass(slots=True)
class DesiredVector:
    """Heading and speed factor an agent is steering toward."""

    rotation: float = 0.0
    magnitude: float = 1.0

    def copy(self) -> "DesiredVector":
        return DesiredVector(self.rotation, self.magnitude)


@dataclass(slots=True)
class Agent:
    id: int
    position: Vector2
    heading: float
    desired: DesiredVector = field(default_factory=DesiredVector)
    tint: Optional[Category] = None
    return_target: Optional[Vector2] = None

    @property
    def x(self) -> float:
        return self.position.x

    @property
    def y(self) -> float:
        return self.position.y
