from __future__ import annotations

import logging
from time import perf_counter
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from pygame.math import Vector2

from .agent import Agent, DesiredVector
from .config import Category, SimulationConfig
from .density import DensityGrid
from .rng import DeterministicRng
from .spatial_grid import SpatialGrid
from ..systems import forces, metrics as metrics_system, perception, steering
from ..types.classification import Classification
from ..types.metrics import TickMetrics
from ..types.snapshot import Snapshot, SnapshotFields, SnapshotMetadata, SnapshotWorld

logger = logging.getLogger(__name__)

# changing any of these reallocates agents or the density grid
_RESET_FIELDS = ("agent_count", "world_width", "world_height")


class World:
    """Owns the flock and its density grid and advances them one tick at a time."""

    def __init__(self, config: SimulationConfig, rng: DeterministicRng | None = None):
        self._config = config.validate()
        self._rng = rng if rng is not None else DeterministicRng(config.seed)
        self._agents: List[Agent] = []
        self._density = DensityGrid(config.heatmap, config.world_width, config.world_height)
        self._grid = SpatialGrid(self._index_cell_size())
        self._candidates: List[int] = []
        self._predator: Optional[Vector2] = None
        self._obstacles: List[Vector2] = []
        self._classifications: List[Classification] = []
        self._metrics: TickMetrics | None = None
        self._bootstrap_population()

    @property
    def agents(self) -> List[Agent]:
        return self._agents

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def density(self) -> DensityGrid:
        return self._density

    @property
    def metrics(self) -> TickMetrics | None:
        return self._metrics

    @property
    def predator(self) -> Optional[Vector2]:
        return self._predator

    @property
    def obstacles(self) -> List[Vector2]:
        return self._obstacles

    @property
    def classifications(self) -> List[Classification]:
        """Per-agent classification of the last tick; empty unless ``diagnostics`` is on."""
        return self._classifications

    def reset(self) -> None:
        self._agents.clear()
        self._rng.reset(self._config.seed)
        self._density = DensityGrid(self._config.heatmap, self._config.world_width, self._config.world_height)
        self._grid = SpatialGrid(self._index_cell_size())
        self._candidates.clear()
        self._classifications = []
        self._metrics = None
        self._bootstrap_population()
        logger.info(
            "Flock reset: %d agents in %.0fx%.0f world (seed %d)",
            len(self._agents),
            self._config.world_width,
            self._config.world_height,
            self._config.seed,
        )

    def apply_config(self, config: SimulationConfig) -> bool:
        """Swap in a new configuration between ticks.

        Returns True when the change forced a reset: population size, world
        size, heatmap cell size or seed changed. Toggling the heatmap only
        starts a fresh density grid.
        """
        config.validate()
        previous = self._config
        needs_reset = (
            any(getattr(previous, name) != getattr(config, name) for name in _RESET_FIELDS)
            or previous.heatmap.cell_size != config.heatmap.cell_size
            or previous.seed != config.seed
        )
        self._config = config
        if needs_reset:
            logger.info("Configuration change requires a reset")
            self.reset()
        elif previous.heatmap.enabled != config.heatmap.enabled:
            self._density = DensityGrid(config.heatmap, config.world_width, config.world_height)
            logger.info("Heatmap %s", "enabled" if config.heatmap.enabled else "disabled")
        else:
            self._density.configure(config.heatmap)
            logger.info("Configuration updated in place")
        return needs_reset

    def set_predator(self, position: Optional[Tuple[float, float] | Vector2]) -> None:
        self._predator = None if position is None else Vector2(position[0], position[1])

    def set_obstacles(self, points: Iterable[Tuple[float, float] | Vector2]) -> None:
        self._obstacles = [Vector2(point[0], point[1]) for point in points]

    def step(self, tick: int) -> TickMetrics:
        start = perf_counter()
        config = self._config
        agents = self._agents
        use_grid = config.neighbor_index == "grid"
        cell_offsets: List[Tuple[int, int]] = []
        if use_grid:
            cell_offsets = self._rebuild_index()

        # classify and blend against the untouched previous-tick state
        decisions: List[forces.SteeringDecision] = []
        classifications: List[Classification] = []
        visible_pairs = 0
        for index, agent in enumerate(agents):
            candidates: Optional[Sequence[int]] = None
            if use_grid:
                self._grid.collect_candidates(agent.position, cell_offsets, self._candidates, exclude=index)
                candidates = self._candidates
            classification = perception.classify(index, agents, config, candidates)
            visible_pairs += classification.visible
            decisions.append(
                forces.compute_desired(agent, classification, config, self._rng, self._predator, self._obstacles)
            )
            if config.diagnostics:
                classifications.append(classification)
        self._classifications = classifications

        heatmap_enabled = config.heatmap.enabled
        fired_counts: Dict[Category, int] = {category: 0 for category in Category}
        idle = 0
        magnitude_sum = 0.0
        for agent, decision in zip(agents, decisions):
            agent.desired = decision.desired
            agent.tint = decision.tint
            agent.return_target = decision.return_target
            steering.integrate(agent, config)
            if heatmap_enabled:
                self._density.record_visit(agent.position.x, agent.position.y)
            for category in decision.fired:
                fired_counts[category] += 1
            if not decision.fired:
                idle += 1
            magnitude_sum += agent.desired.magnitude
        if heatmap_enabled:
            self._density.decay_tick()

        elapsed_ms = (perf_counter() - start) * 1000.0
        metrics = metrics_system.create_metrics(
            tick,
            len(agents),
            visible_pairs,
            fired_counts,
            idle,
            magnitude_sum,
            self._density.peak if heatmap_enabled else 0.0,
            elapsed_ms,
        )
        self._metrics = metrics
        logger.debug("tick %d: %d idle, %.3f ms", tick, idle, elapsed_ms)
        return metrics

    def snapshot(self, tick: int) -> Snapshot:
        metrics = self._metrics if self._metrics is not None else self._snapshot_metrics_from_state(tick)
        config = self._config
        fields = SnapshotFields(
            heatmap=self._density.export_cells() if config.heatmap.enabled else None,
            predator=None if self._predator is None else {"x": self._predator.x, "y": self._predator.y},
        )
        return Snapshot(
            tick=tick,
            metrics=metrics,
            agents=[self._agent_snapshot(agent) for agent in self._agents],
            world=SnapshotWorld(width=config.world_width, height=config.world_height),
            metadata=SnapshotMetadata(
                sim_dt=config.time_step,
                tick_rate=1.0 / config.time_step,
                seed=config.seed,
                config_version=config.config_version,
            ),
            fields=fields,
        )

    def _bootstrap_population(self) -> None:
        config = self._config
        for agent_id in range(config.agent_count):
            agent = Agent(
                id=agent_id,
                position=Vector2(
                    self._rng.next_range(0.0, config.world_width),
                    self._rng.next_range(0.0, config.world_height),
                ),
                heading=self._rng.next_heading(),
                desired=DesiredVector(rotation=self._rng.next_heading(), magnitude=1.0),
            )
            self._agents.append(agent)
            if config.heatmap.enabled:
                self._density.record_visit(agent.position.x, agent.position.y)

    def _index_cell_size(self) -> float:
        return max(1.0, perception.awareness_radius(self._config))

    def _rebuild_index(self) -> List[Tuple[int, int]]:
        radius = perception.awareness_radius(self._config)
        cell_size = max(1.0, radius)
        if self._grid.cell_size != cell_size:
            self._grid = SpatialGrid(cell_size)
        self._grid.clear()
        for index, agent in enumerate(self._agents):
            self._grid.insert(index, agent.position)
        return self._grid.build_neighbor_cell_offsets(radius)

    @staticmethod
    def _agent_snapshot(agent: Agent) -> Dict[str, object]:
        return {
            "id": agent.id,
            "x": agent.position.x,
            "y": agent.position.y,
            "heading": agent.heading,
            "tint": None if agent.tint is None else agent.tint.value,
            "magnitude": agent.desired.magnitude,
            "desired_rotation": agent.desired.rotation,
        }

    def _snapshot_metrics_from_state(self, tick: int) -> TickMetrics:
        magnitude_sum = sum(agent.desired.magnitude for agent in self._agents)
        return metrics_system.create_metrics(
            tick,
            len(self._agents),
            0,
            {},
            len(self._agents),
            magnitude_sum,
            self._density.peak if self._config.heatmap.enabled else 0.0,
            0.0,
        )
