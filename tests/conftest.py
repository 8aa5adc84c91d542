"""Shared fixtures for bubblemap tests."""

from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import pytest

from bubblemap.animation import AnimationScheduler
from bubblemap.config import RenderSettings
from bubblemap.models import GeoPoint, Position, RenderConfig
from bubblemap.render import BubbleMapRenderer


REPO_ROOT = Path(__file__).resolve().parents[1]


class FakeClock:
    """Manually advanced clock, in seconds."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> float:
        self.now += ms / 1000.0
        return self.now


def make_point(label, value, x=100.0, y=100.0, lat=26.0, lng=92.0, secondary=None):
    return GeoPoint(
        label=label,
        metric_value=value,
        position=Position(x, y),
        latitude=lat,
        longitude=lng,
        secondary_count=secondary,
    )


OUTLINE = (
    Position(50, 50),
    Position(750, 50),
    Position(750, 350),
    Position(50, 350),
)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return AnimationScheduler(clock=clock)


@pytest.fixture
def settings():
    return RenderSettings.default()


@pytest.fixture
def renderer(settings, scheduler):
    r = BubbleMapRenderer(settings, scheduler=scheduler)
    yield r
    r.close()


@pytest.fixture
def five_points():
    values = [8.92, 6.34, 5.67, 4.23, 2.98]
    names = ["Nagaon", "Dhubri", "Kamrup Metro", "Sonitpur", "Dibrugarh"]
    return [
        make_point(name, value, x=150.0 + 120.0 * idx, y=200.0)
        for idx, (name, value) in enumerate(zip(names, values))
    ]


@pytest.fixture
def render_config():
    return RenderConfig(
        canvas_width=800,
        canvas_height=400,
        outline_polygon=OUTLINE,
        radius_range=(15.0, 50.0),
        title="Test Map",
        metric_caption="Users",
    )
