"""Value-to-radius and value-to-color scales for proportional symbol maps."""

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Sequence

from .models import GeoPoint, metric_domain


DEFAULT_COLORMAP = "Blues"
# Ramp position used when every value is identical.
_DEGENERATE_T = 0.5


def _unit_position(value: float, low: float, high: float) -> float | None:
    """Return where `value` sits in `[low, high]` as a clamped 0..1 fraction.

    None means the domain is degenerate (zero span).
    """
    span = high - low
    if span <= 0 or not math.isfinite(span):
        return None
    t = (value - low) / span
    return min(max(t, 0.0), 1.0)


@dataclass(frozen=True, slots=True)
class SqrtScale:
    """Square-root scale: bubble area grows linearly with the value."""

    domain: tuple[float, float]
    range: tuple[float, float]

    def __call__(self, value: float) -> float:
        low, high = self.range
        t = _unit_position(
            math.sqrt(max(value, 0.0)),
            math.sqrt(max(self.domain[0], 0.0)),
            math.sqrt(max(self.domain[1], 0.0)),
        )
        if t is None:
            return (low + high) / 2.0
        return low + t * (high - low)

    @property
    def is_degenerate(self) -> bool:
        return self.domain[0] >= self.domain[1]


@dataclass(frozen=True, slots=True)
class SequentialColorScale:
    """Maps values onto a light-to-dark single hue matplotlib colormap."""

    domain: tuple[float, float]
    colormap: str = DEFAULT_COLORMAP

    def position(self, value: float) -> float:
        t = _unit_position(value, self.domain[0], self.domain[1])
        return _DEGENERATE_T if t is None else t

    def __call__(self, value: float) -> str:
        return ramp_color(self.colormap, self.position(value))


def build_size_scale(points: Sequence[GeoPoint], radius_range: tuple[float, float]) -> SqrtScale:
    domain = metric_domain(points) or (0.0, 0.0)
    return SqrtScale(domain=domain, range=radius_range)


def build_color_scale(
    points: Sequence[GeoPoint],
    colormap: str = DEFAULT_COLORMAP,
) -> SequentialColorScale:
    domain = metric_domain(points) or (0.0, 0.0)
    return SequentialColorScale(domain=domain, colormap=colormap)


def ramp_color(colormap: str, t: float) -> str:
    """Hex color at position `t` (0..1) of a named matplotlib colormap."""
    cmap = _require_colormap(colormap)
    colors = _require_matplotlib_colors()
    return str(colors.to_hex(cmap(min(max(float(t), 0.0), 1.0))))


def relative_luminance(color: str) -> float:
    """WCAG relative luminance of a matplotlib color spec (0 = black, 1 = white)."""
    colors = _require_matplotlib_colors()
    red, green, blue = colors.to_rgb(color)

    def _linear(channel: float) -> float:
        if channel <= 0.03928:
            return channel / 12.92
        return ((channel + 0.055) / 1.055) ** 2.4

    return 0.2126 * _linear(red) + 0.7152 * _linear(green) + 0.0722 * _linear(blue)


@lru_cache(maxsize=16)
def _require_colormap(name: str) -> Any:
    try:
        from matplotlib import colormaps
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("matplotlib is required for color scales") from exc
    try:
        return colormaps[name]
    except KeyError as exc:
        raise ValueError(f"Unknown matplotlib colormap '{name}'") from exc


@lru_cache(maxsize=1)
def _require_matplotlib_colors() -> Any:
    try:
        import matplotlib.colors as colors
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("matplotlib is required for color scales") from exc
    return colors
