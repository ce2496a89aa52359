from __future__ import annotations

import math
from typing import Dict, List, Optional, Tuple

from .config import HeatmapConfig


class DensityGrid:
    """Decaying per-cell record of where agents have been.

    ``history`` only grows on visits and shrinks on :meth:`decay_tick`; the
    ``peak`` is a high-water mark that is restored to ``initial_peak`` only by
    :meth:`reset`, so attenuation stays proportional to the hottest cell seen.
    """

    def __init__(self, config: HeatmapConfig, world_width: float, world_height: float):
        self._config = config
        self._cell_size = config.cell_size
        self._columns = max(1, int(math.ceil(world_width / config.cell_size)))
        self._rows = max(1, int(math.ceil(world_height / config.cell_size)))
        self._history: List[List[float]] = []
        self._peak = 0.0
        self.reset()

    @property
    def columns(self) -> int:
        return self._columns

    @property
    def rows(self) -> int:
        return self._rows

    @property
    def cell_size(self) -> float:
        return self._cell_size

    @property
    def peak(self) -> float:
        return self._peak

    def configure(self, config: HeatmapConfig) -> None:
        # cell size changes need a new grid; rates can change between ticks
        self._config = config

    def reset(self) -> None:
        self._history = [[0.0] * self._rows for _ in range(self._columns)]
        self._peak = self._config.initial_peak

    def cell_index(self, x: float, y: float) -> Optional[Tuple[int, int]]:
        ix = math.floor(x / self._cell_size)
        iy = math.floor(y / self._cell_size)
        if ix < 0 or iy < 0 or ix >= self._columns or iy >= self._rows:
            return None
        return ix, iy

    def record_visit(self, x: float, y: float) -> None:
        key = self.cell_index(x, y)
        if key is None:
            return
        column = self._history[key[0]]
        column[key[1]] += self._config.increase_per_visit
        if column[key[1]] > self._peak:
            self._peak = column[key[1]]

    def decay_tick(self) -> None:
        amount = self._peak * self._config.attenuation_rate / self._config.attenuation_scale
        if amount <= 0.0:
            return
        for column in self._history:
            for iy, value in enumerate(column):
                if value > 0.0:
                    column[iy] = value - amount if value > amount else 0.0

    def history_at(self, ix: int, iy: int) -> float:
        return self._history[ix][iy]

    def intensity(self, ix: int, iy: int) -> float:
        if self._peak <= 0.0:
            return 0.0
        return self._history[ix][iy] / self._peak

    def export_cells(self) -> Dict[str, object]:
        cells = [
            {"x": ix, "y": iy, "value": value / self._peak}
            for ix, column in enumerate(self._history)
            for iy, value in enumerate(column)
            if value > 0.0 and self._peak > 0.0
        ]
        return {
            "cells": cells,
            "columns": self._columns,
            "rows": self._rows,
            "cell_size": self._cell_size,
            "peak": self._peak,
        }
