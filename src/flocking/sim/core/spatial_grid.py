from __future__ import annotations

import math
from typing import Dict, List, Tuple

from pygame.math import Vector2


class SpatialGrid:
    """Bucket index over agent positions.

    It only narrows the candidate set; callers still run the exact distance and
    vision tests, so results match a brute-force scan.
    """

    def __init__(self, cell_size: float) -> None:
        self._cell_size = cell_size
        self._cells: Dict[Tuple[int, int], List[int]] = {}
        self._active_keys: List[Tuple[int, int]] = []

    @property
    def cell_size(self) -> float:
        return self._cell_size

    def build_neighbor_cell_offsets(self, radius: float) -> List[Tuple[int, int]]:
        cell_range = int(math.ceil(radius / self._cell_size))
        return [(dx, dy) for dx in range(-cell_range, cell_range + 1) for dy in range(-cell_range, cell_range + 1)]

    def clear(self) -> None:
        for key in self._active_keys:
            bucket = self._cells.get(key)
            if bucket:
                bucket.clear()
        self._active_keys.clear()

    def insert(self, index: int, position: Vector2) -> None:
        key = self._cell_key(position)
        bucket = self._cells.get(key)
        if bucket is None:
            bucket = []
            self._cells[key] = bucket
            self._active_keys.append(key)
        elif not bucket:
            # Bucket exists but was cleared at the start of this tick; mark it active again.
            self._active_keys.append(key)
        bucket.append(index)

    def collect_candidates(
        self,
        position: Vector2,
        cell_offsets: List[Tuple[int, int]],
        out_indices: List[int],
        exclude: int | None = None,
    ) -> None:
        """
        Fill ``out_indices`` with every indexed entry in the cells around ``position``.

        The buffer is cleared first and sorted on return, so iteration order is
        the same as a scan over the agent list.
        """

        out_indices.clear()
        base_x, base_y = self._cell_key(position)
        cells = self._cells
        append = out_indices.append
        for dx, dy in cell_offsets:
            bucket = cells.get((base_x + dx, base_y + dy))
            if not bucket:
                continue
            for index in bucket:
                if index != exclude:
                    append(index)
        out_indices.sort()

    def _cell_key(self, position: Vector2) -> Tuple[int, int]:
        return (int(position.x // self._cell_size), int(position.y // self._cell_size))
