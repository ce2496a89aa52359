import os
import sys
from pathlib import Path

import pytest

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

ROOT = Path(__file__).resolve().parents[2]
src_root = ROOT / "src"
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))

from pygame.math import Vector2  # noqa: E402

from flocking.sim.core.agent import Agent, DesiredVector  # noqa: E402
from flocking.sim.core.config import Category, SimulationConfig  # noqa: E402


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-config-tests",
        action="store_true",
        default=False,
        help="run tests that validate the shipped configuration files",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "config_change: marks tests that should only run when configuration files change",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-config-tests"):
        return

    skip_marker = pytest.mark.skip(
        reason="Run only when configuration is modified (use --run-config-tests)",
    )

    for item in items:
        if "config_change" in item.keywords:
            item.add_marker(skip_marker)


def make_agent(
    agent_id: int,
    x: float,
    y: float,
    heading: float = 0.0,
    rotation: float = 0.0,
    magnitude: float = 1.0,
) -> Agent:
    return Agent(
        id=agent_id,
        position=Vector2(x, y),
        heading=heading,
        desired=DesiredVector(rotation=rotation, magnitude=magnitude),
    )


@pytest.fixture
def quiet_config() -> SimulationConfig:
    """Empty world with no random turns, so every tick is reproducible by hand."""
    return SimulationConfig(
        agent_count=0,
        world_width=400.0,
        world_height=400.0,
        vision_angle_deg=180.0,
        random_move_chance_percent=0.0,
        radius={
            Category.COHESION: 100.0,
            Category.ALIGNMENT: 50.0,
            Category.SEPARATION: 20.0,
            Category.PREDATOR: 150.0,
            Category.OBSTACLE: 0.0,
        },
    )
