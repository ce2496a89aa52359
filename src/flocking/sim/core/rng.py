from __future__ import annotations

import math
import random

from pygame.math import Vector2


class DeterministicRng:
    def __init__(self, seed: int):
        self._seed = seed
        self._random = random.Random(seed)

    @property
    def seed(self) -> int:
        return self._seed

    def reset(self, seed: int | None = None) -> None:
        if seed is not None:
            self._seed = seed
        self._random.seed(self._seed)

    def next_float(self) -> float:
        return self._random.random()

    def next_range(self, low: float, high: float) -> float:
        return self._random.uniform(low, high)

    def next_heading(self) -> float:
        return self._random.uniform(0.0, 2.0 * math.pi)

    def next_sign(self) -> float:
        return 1.0 if self._random.random() < 0.5 else -1.0

    def chance(self, percent: float) -> bool:
        if percent <= 0.0:
            return False
        return self._random.random() * 100.0 < percent

    def next_point(self, min_x: float, min_y: float, max_x: float, max_y: float) -> Vector2:
        return Vector2(self._random.uniform(min_x, max_x), self._random.uniform(min_y, max_y))
