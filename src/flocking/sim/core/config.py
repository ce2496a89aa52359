from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml

logger = logging.getLogger(__name__)


class Category(str, Enum):
    COHESION = "cohesion"
    ALIGNMENT = "alignment"
    SEPARATION = "separation"
    PREDATOR = "predator"
    OBSTACLE = "obstacle"


NEIGHBOR_INDEXES = ("brute_force", "grid")


class ConfigError(ValueError):
    """Raised when a configuration value would break the tick loop."""

    def __init__(self, field_name: str, message: str):
        super().__init__(f"{field_name}: {message}")
        self.field = field_name


def _default_radius() -> Dict[Category, float]:
    return {
        Category.COHESION: 100.0,
        Category.ALIGNMENT: 50.0,
        Category.SEPARATION: 20.0,
        Category.PREDATOR: 150.0,
        Category.OBSTACLE: 0.0,
    }


def _default_weight() -> Dict[Category, float]:
    return {
        Category.COHESION: 10.0,
        Category.ALIGNMENT: 20.0,
        Category.SEPARATION: 40.0,
        Category.PREDATOR: 100.0,
        Category.OBSTACLE: 0.0,
    }


@dataclass
class HeatmapConfig:
    enabled: bool = False
    cell_size: float = 10.0
    increase_per_visit: float = 1.0
    attenuation_rate: float = 1.0
    attenuation_scale: float = 100000.0
    initial_peak: float = 10.0


@dataclass
class TuningConfig:
    idle_rotation_epsilon: float = 0.01
    predator_sigmoid_scale: float = 2.0
    # steepness and center are expressed in fractions of the predator radius
    predator_sigmoid_steepness: float = 10.0
    predator_sigmoid_center: float = 0.7
    separation_min_magnitude: float = 1.5
    separation_boost: float = 1.0
    cohesion_boost: float = 1.0
    random_turn: float = math.pi / 20.0
    fast_trig: bool = False


@dataclass
class SimulationConfig:
    agent_count: int = 150
    world_width: float = 800.0
    world_height: float = 600.0
    time_step: float = 1.0
    speed: float = 1.0
    turning_rate: float = 0.05
    vision_angle_deg: float = 120.0
    random_move_chance_percent: float = 1.0
    return_margin: float = 0.0
    cooldown_rate: float = 0.01
    radius: Dict[Category, float] = field(default_factory=_default_radius)
    weight: Dict[Category, float] = field(default_factory=_default_weight)
    heatmap: HeatmapConfig = field(default_factory=HeatmapConfig)
    tuning: TuningConfig = field(default_factory=TuningConfig)
    neighbor_index: str = "brute_force"
    diagnostics: bool = False
    seed: int = 42
    config_version: str = "v1"

    @property
    def vision_angle(self) -> float:
        return math.radians(self.vision_angle_deg)

    def radius_of(self, category: Category) -> float:
        return self.radius.get(category, 0.0)

    def weight_of(self, category: Category) -> float:
        return self.weight.get(category, 0.0)

    def validate(self) -> "SimulationConfig":
        if isinstance(self.agent_count, bool) or not isinstance(self.agent_count, int) or self.agent_count < 0:
            raise ConfigError("agent_count", "must be a non-negative integer")
        _require_positive("world_width", self.world_width)
        _require_positive("world_height", self.world_height)
        _require_positive("time_step", self.time_step)
        _require_non_negative("speed", self.speed)
        _require_non_negative("turning_rate", self.turning_rate)
        _require_range("vision_angle_deg", self.vision_angle_deg, 0.0, 180.0)
        _require_range("random_move_chance_percent", self.random_move_chance_percent, 0.0, 100.0)
        _require_non_negative("return_margin", self.return_margin)
        if 2.0 * self.return_margin >= min(self.world_width, self.world_height):
            raise ConfigError("return_margin", "leaves no interior to return to")
        _require_non_negative("cooldown_rate", self.cooldown_rate)

        for category, value in self.radius.items():
            if not isinstance(category, Category):
                raise ConfigError("radius", f"unknown category {category!r}")
            _require_non_negative(f"radius.{category.value}", value)
        for category, value in self.weight.items():
            if not isinstance(category, Category):
                raise ConfigError("weight", f"unknown category {category!r}")
            _require_non_negative(f"weight.{category.value}", value)
            if category not in self.radius:
                raise ConfigError(f"weight.{category.value}", "has no matching radius entry")

        heatmap = self.heatmap
        _require_positive("heatmap.cell_size", heatmap.cell_size)
        _require_non_negative("heatmap.increase_per_visit", heatmap.increase_per_visit)
        _require_non_negative("heatmap.attenuation_rate", heatmap.attenuation_rate)
        _require_positive("heatmap.attenuation_scale", heatmap.attenuation_scale)
        _require_non_negative("heatmap.initial_peak", heatmap.initial_peak)

        tuning = self.tuning
        _require_non_negative("tuning.idle_rotation_epsilon", tuning.idle_rotation_epsilon)
        _require_non_negative("tuning.predator_sigmoid_scale", tuning.predator_sigmoid_scale)
        _require_finite("tuning.predator_sigmoid_steepness", tuning.predator_sigmoid_steepness)
        _require_finite("tuning.predator_sigmoid_center", tuning.predator_sigmoid_center)
        _require_non_negative("tuning.separation_min_magnitude", tuning.separation_min_magnitude)
        _require_non_negative("tuning.separation_boost", tuning.separation_boost)
        _require_non_negative("tuning.cohesion_boost", tuning.cohesion_boost)
        _require_non_negative("tuning.random_turn", tuning.random_turn)

        if self.neighbor_index not in NEIGHBOR_INDEXES:
            raise ConfigError("neighbor_index", f"expected one of {', '.join(NEIGHBOR_INDEXES)}")
        return self

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if item.name in {"radius", "weight"}:
                data[item.name] = {category.value: amount for category, amount in value.items()}
            elif item.name in {"heatmap", "tuning"}:
                data[item.name] = {sub.name: getattr(value, sub.name) for sub in fields(value)}
            else:
                data[item.name] = value
        return data

    @staticmethod
    def from_yaml(path: Path) -> "SimulationConfig":
        data = yaml.safe_load(Path(path).read_text()) or {}
        logger.info("Loaded configuration from %s", path)
        return load_config(data)


def _require_finite(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ConfigError(name, "must be a finite number")


def _require_non_negative(name: str, value: Any) -> None:
    _require_finite(name, value)
    if value < 0:
        raise ConfigError(name, "must not be negative")


def _require_positive(name: str, value: Any) -> None:
    _require_finite(name, value)
    if value <= 0:
        raise ConfigError(name, "must be greater than zero")


def _require_range(name: str, value: Any, low: float, high: float) -> None:
    _require_finite(name, value)
    if not low <= value <= high:
        raise ConfigError(name, f"must lie within [{low:g}, {high:g}]")


def _category_map(name: str, raw: Mapping[Any, Any] | None, defaults: Dict[Category, float]) -> Dict[Category, float]:
    result = dict(defaults)
    if not raw:
        return result
    if not isinstance(raw, Mapping):
        raise ConfigError(name, "expected a mapping of category to value")
    for key, value in raw.items():
        try:
            category = key if isinstance(key, Category) else Category(str(key).lower())
        except ValueError:
            raise ConfigError(f"{name}.{key}", "unknown category") from None
        result[category] = value
    return result


def load_config(raw: Mapping[str, Any], base: SimulationConfig | None = None) -> SimulationConfig:
    """Build a validated config from a plain mapping.

    Keys missing from ``raw`` fall back to ``base`` (or the defaults), which lets
    partial updates from a control surface be merged onto a running config.
    """
    base = base or SimulationConfig()
    known = {item.name for item in fields(SimulationConfig)}
    unknown = set(raw) - known
    if unknown:
        raise ConfigError(sorted(unknown)[0], "unknown configuration field")

    heatmap_raw = raw.get("heatmap") or {}
    tuning_raw = raw.get("tuning") or {}
    try:
        heatmap = HeatmapConfig(**{**_as_dict(base.heatmap), **heatmap_raw})
    except TypeError as exc:
        raise ConfigError("heatmap", str(exc)) from None
    try:
        tuning = TuningConfig(**{**_as_dict(base.tuning), **tuning_raw})
    except TypeError as exc:
        raise ConfigError("tuning", str(exc)) from None

    sim_values = {k: v for k, v in raw.items() if k not in {"radius", "weight", "heatmap", "tuning"}}
    base_values = {
        item.name: getattr(base, item.name)
        for item in fields(SimulationConfig)
        if item.name not in {"radius", "weight", "heatmap", "tuning"}
    }
    config = SimulationConfig(
        radius=_category_map("radius", raw.get("radius"), base.radius),
        weight=_category_map("weight", raw.get("weight"), base.weight),
        heatmap=heatmap,
        tuning=tuning,
        **{**base_values, **sim_values},
    )
    return config.validate()


def _as_dict(value: Any) -> Dict[str, Any]:
    return {item.name: getattr(value, item.name) for item in fields(value)}
