from __future__ import annotations

import argparse
import csv
import json
import logging
import math
from pathlib import Path
from typing import Optional

from ..logging_config import configure_logging
from ..sim.core.config import SimulationConfig
from ..sim.core.world import World
from ..sim.types.metrics import TickMetrics

logger = logging.getLogger(__name__)

_BASIC_HEADER = [
    "tick",
    "population",
    "visible_pairs",
    "idle",
    "avg_magnitude",
    "tick_ms",
]

_DETAILED_HEADER = [
    "tick",
    "population",
    "visible_pairs",
    "separation",
    "alignment",
    "cohesion",
    "predator",
    "obstacle",
    "idle",
    "avg_magnitude",
    "heatmap_peak",
    "tick_ms",
    "idle_ratio",
    "visible_per_agent",
    "tick_ms_per_agent",
    "avg_heading_x",
    "avg_heading_y",
    "polarization",
    "centroid_x",
    "centroid_y",
]


def _format_basic_row(metrics: TickMetrics, tick_ms: float) -> list[object]:
    return [
        metrics.tick,
        metrics.population,
        metrics.visible_pairs,
        metrics.idle,
        f"{metrics.average_magnitude:.4f}",
        f"{tick_ms:.3f}",
    ]


def _format_detailed_row(world: World, metrics: TickMetrics, tick_ms: float) -> list[object]:
    population = metrics.population
    if population <= 0:
        idle_ratio = 0.0
        visible_per_agent = 0.0
        tick_ms_per_agent = 0.0
        heading_x = 0.0
        heading_y = 0.0
        centroid_x = 0.0
        centroid_y = 0.0
    else:
        idle_ratio = metrics.idle / population
        visible_per_agent = metrics.visible_pairs / population
        tick_ms_per_agent = tick_ms / population
        heading_x = 0.0
        heading_y = 0.0
        centroid_x = 0.0
        centroid_y = 0.0
        for agent in world.agents:
            # unit vector of travel for heading h is (-sin h, cos h)
            heading_x -= math.sin(agent.heading)
            heading_y += math.cos(agent.heading)
            centroid_x += agent.position.x
            centroid_y += agent.position.y
        heading_x /= population
        heading_y /= population
        centroid_x /= population
        centroid_y /= population
    polarization = math.hypot(heading_x, heading_y)

    return [
        metrics.tick,
        population,
        metrics.visible_pairs,
        metrics.separation,
        metrics.alignment,
        metrics.cohesion,
        metrics.predator,
        metrics.obstacle,
        metrics.idle,
        f"{metrics.average_magnitude:.4f}",
        f"{metrics.heatmap_peak:.4f}",
        f"{tick_ms:.3f}",
        f"{idle_ratio:.4f}",
        f"{visible_per_agent:.4f}",
        f"{tick_ms_per_agent:.4f}",
        f"{heading_x:.4f}",
        f"{heading_y:.4f}",
        f"{polarization:.4f}",
        f"{centroid_x:.4f}",
        f"{centroid_y:.4f}",
    ]


def _percentile(sorted_values: list[float], percentile: float) -> float:
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    pos = (len(sorted_values) - 1) * percentile
    low = int(math.floor(pos))
    high = int(math.ceil(pos))
    if low == high:
        return float(sorted_values[low])
    weight = pos - low
    return float(sorted_values[low] + (sorted_values[high] - sorted_values[low]) * weight)


def _summary_stats(values: list[float]) -> dict[str, float]:
    if not values:
        return {"min": 0.0, "max": 0.0, "avg": 0.0, "p50": 0.0, "p90": 0.0, "p99": 0.0}
    sorted_values = sorted(values)
    return {
        "min": float(sorted_values[0]),
        "max": float(sorted_values[-1]),
        "avg": float(sum(values) / len(values)),
        "p50": _percentile(sorted_values, 0.50),
        "p90": _percentile(sorted_values, 0.90),
        "p99": _percentile(sorted_values, 0.99),
    }


def run_headless(
    steps: int,
    seed: Optional[int],
    log_path: Optional[Path],
    deterministic_log: bool = False,
    log_format: str = "detailed",
    summary_path: Optional[Path] = None,
    summary_window: int = 500,
    config_path: Optional[Path] = None,
) -> World:
    config = SimulationConfig.from_yaml(config_path) if config_path else SimulationConfig()
    if seed is not None:
        config.seed = seed
    world = World(config)

    log_mode = log_format.lower().strip()
    if log_mode not in {"basic", "detailed"}:
        raise ValueError(f"Unknown log format: {log_format}")

    writer = None
    csv_file = None
    if log_path:
        csv_file = Path(log_path).open("w", newline="")
        writer = csv.writer(csv_file)
        writer.writerow(_DETAILED_HEADER if log_mode == "detailed" else _BASIC_HEADER)

    tick_ms_series: list[float] = []
    idle_series: list[float] = []
    magnitude_series: list[float] = []
    visible_series: list[float] = []

    logger.info("Running %d ticks with %d agents (seed %d)", steps, config.agent_count, config.seed)
    try:
        for tick in range(steps):
            metrics = world.step(tick)
            tick_ms = 0.0 if deterministic_log else metrics.tick_duration_ms

            if summary_path:
                tick_ms_series.append(tick_ms)
                idle_series.append(float(metrics.idle))
                magnitude_series.append(metrics.average_magnitude)
                visible_series.append(float(metrics.visible_pairs))

            if writer:
                if log_mode == "detailed":
                    writer.writerow(_format_detailed_row(world, metrics, tick_ms))
                else:
                    writer.writerow(_format_basic_row(metrics, tick_ms))
    finally:
        if csv_file:
            csv_file.close()

    if summary_path:
        window = max(1, int(summary_window))
        tail_slice = slice(max(0, len(tick_ms_series) - window), len(tick_ms_series))
        summary = {
            "steps": steps,
            "seed": config.seed,
            "agents": config.agent_count,
            "log_format": log_mode,
            "deterministic_log": deterministic_log,
            "tick_ms": _summary_stats(tick_ms_series),
            "idle": _summary_stats(idle_series),
            "average_magnitude": _summary_stats(magnitude_series),
            "visible_pairs": _summary_stats(visible_series),
            "heatmap_peak": world.density.peak if config.heatmap.enabled else 0.0,
            "tail_window": {
                "window": window,
                "tick_ms": _summary_stats(tick_ms_series[tail_slice]),
                "idle": _summary_stats(idle_series[tail_slice]),
            },
        }
        Path(summary_path).write_text(json.dumps(summary, indent=2))
        logger.info("Wrote run summary to %s", summary_path)
    return world


def main() -> None:
    parser = argparse.ArgumentParser(description="Headless flocking simulation")
    parser.add_argument("--steps", type=int, default=1000)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--config", type=Path, default=None, help="YAML configuration file")
    parser.add_argument("--log", type=Path, default=None, help="CSV file to write metrics")
    parser.add_argument(
        "--log-format",
        choices=["basic", "detailed"],
        default="detailed",
        help="CSV format to write when --log is provided.",
    )
    parser.add_argument("--summary", type=Path, default=None, help="Optional JSON file for run summary stats.")
    parser.add_argument("--summary-window", type=int, default=500, help="Tail window size (ticks) for summary stats.")
    parser.add_argument(
        "--deterministic-log",
        action="store_true",
        help="Write deterministic CSV (tick_ms is forced to 0.000 so identical seeds match).",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (defaults to FLOCKING_LOG_LEVEL or INFO).")
    args = parser.parse_args()
    configure_logging(level=args.log_level)
    run_headless(
        args.steps,
        args.seed,
        args.log,
        deterministic_log=args.deterministic_log,
        log_format=args.log_format,
        summary_path=args.summary,
        summary_window=args.summary_window,
        config_path=args.config,
    )


if __name__ == "__main__":
    main()
