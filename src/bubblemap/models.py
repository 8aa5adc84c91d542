"""Domain models shared across rendering modules."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence


def _require_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _require_number(value: Any, field_name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Expected number for '{field_name}'")
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"Expected finite number for '{field_name}'")
    return number


def _require_pair(value: Any, field_name: str) -> tuple[float, float]:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ValueError(f"Expected [a, b] pair for '{field_name}'")
    return (
        _require_number(value[0], f"{field_name}[0]"),
        _require_number(value[1], f"{field_name}[1]"),
    )


@dataclass(frozen=True, slots=True)
class Position:
    """Pixel coordinates on the canvas (origin top-left, y grows downward)."""

    x: float
    y: float

    @classmethod
    def from_raw(cls, raw: Any, field_name: str) -> Position:
        if isinstance(raw, Mapping):
            return cls(
                x=_require_number(raw.get("x"), f"{field_name}.x"),
                y=_require_number(raw.get("y"), f"{field_name}.y"),
            )
        x, y = _require_pair(raw, field_name)
        return cls(x=x, y=y)


@dataclass(frozen=True, slots=True)
class GeoPoint:
    """One district bubble."""

    label: str
    metric_value: float
    position: Position
    latitude: float
    longitude: float
    secondary_count: int | None = None

    def __post_init__(self) -> None:
        if not self.label.strip():
            raise ValueError("GeoPoint label must be a non-empty string")
        if self.metric_value < 0:
            raise ValueError(f"metric_value must be >= 0 for '{self.label}'")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], field_name: str = "point") -> GeoPoint:
        secondary_raw = data.get("secondary_count")
        secondary: int | None
        if secondary_raw is None:
            secondary = None
        elif isinstance(secondary_raw, int) and not isinstance(secondary_raw, bool) and secondary_raw >= 0:
            secondary = secondary_raw
        else:
            raise ValueError(f"Expected non-negative integer for '{field_name}.secondary_count'")

        metric_value = _require_number(data.get("metric_value"), f"{field_name}.metric_value")
        if metric_value < 0:
            raise ValueError(f"Expected metric >= 0 for '{field_name}.metric_value'")
        return cls(
            label=_require_str(data.get("label"), f"{field_name}.label"),
            metric_value=metric_value,
            position=Position.from_raw(data.get("position"), f"{field_name}.position"),
            latitude=_require_number(data.get("latitude"), f"{field_name}.latitude"),
            longitude=_require_number(data.get("longitude"), f"{field_name}.longitude"),
            secondary_count=secondary,
        )


@dataclass(frozen=True, slots=True)
class LegendEntry:
    caption: str
    value: float

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], field_name: str) -> LegendEntry:
        value = _require_number(data.get("value"), f"{field_name}.value")
        if value < 0:
            raise ValueError(f"Expected value >= 0 for '{field_name}.value'")
        return cls(caption=_require_str(data.get("caption"), f"{field_name}.caption"), value=value)


@dataclass(frozen=True, slots=True)
class RenderConfig:
    """Per-render inputs supplied fresh on every `render` call."""

    canvas_width: float
    canvas_height: float
    outline_polygon: tuple[Position, ...]
    radius_range: tuple[float, float]
    selected_label: str | None = None
    title: str = ""
    label_min_value: float = 0.0
    legend: tuple[LegendEntry, ...] = ()
    metric_caption: str = "Value"
    secondary_caption: str = "Count"

    def __post_init__(self) -> None:
        if self.canvas_width <= 0 or self.canvas_height <= 0:
            raise ValueError("canvas_width and canvas_height must be > 0")
        low, high = self.radius_range
        if low <= 0 or high <= 0:
            raise ValueError("radius_range bounds must be > 0")
        if low >= high:
            raise ValueError("radius_range must satisfy min < max")


@dataclass(frozen=True, slots=True)
class Dataset:
    """A named point set with the static layout it is drawn on."""

    name: str
    title: str
    canvas_width: float
    canvas_height: float
    outline_polygon: tuple[Position, ...]
    radius_range: tuple[float, float]
    points: tuple[GeoPoint, ...]
    metric_caption: str = "Value"
    label_min_value: float = 0.0
    legend: tuple[LegendEntry, ...] = field(default_factory=tuple)
    secondary_caption: str = "Count"

    @property
    def labels(self) -> tuple[str, ...]:
        return tuple(point.label for point in self.points)

    def duplicate_labels(self) -> list[str]:
        seen: set[str] = set()
        dupes: set[str] = set()
        for label in self.labels:
            if label in seen:
                dupes.add(label)
            seen.add(label)
        return sorted(dupes)

    def render_config(self, *, selected_label: str | None = None) -> RenderConfig:
        return RenderConfig(
            canvas_width=self.canvas_width,
            canvas_height=self.canvas_height,
            outline_polygon=self.outline_polygon,
            radius_range=self.radius_range,
            selected_label=selected_label,
            title=self.title,
            label_min_value=self.label_min_value,
            legend=self.legend,
            metric_caption=self.metric_caption,
            secondary_caption=self.secondary_caption,
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], default_name: str) -> Dataset:
        canvas = data.get("canvas")
        if not isinstance(canvas, Mapping):
            raise ValueError("Expected mapping for 'canvas'")

        outline_raw = data.get("outline", [])
        if not isinstance(outline_raw, list):
            raise ValueError("Expected list for 'outline'")
        outline = tuple(
            Position.from_raw(item, f"outline[{idx}]") for idx, item in enumerate(outline_raw)
        )

        points_raw = data.get("points", [])
        if points_raw is None:
            points_raw = []
        if not isinstance(points_raw, list):
            raise ValueError("Expected list for 'points'")
        points: list[GeoPoint] = []
        for idx, item in enumerate(points_raw):
            if not isinstance(item, Mapping):
                raise ValueError(f"Expected mapping for 'points[{idx}]'")
            points.append(GeoPoint.from_mapping(item, f"points[{idx}]"))

        legend_raw = data.get("legend", [])
        if legend_raw is None:
            legend_raw = []
        if not isinstance(legend_raw, list):
            raise ValueError("Expected list for 'legend'")
        legend = tuple(
            LegendEntry.from_mapping(item, f"legend[{idx}]")
            for idx, item in enumerate(legend_raw)
            if isinstance(item, Mapping)
        )
        if len(legend) != len(legend_raw):
            raise ValueError("Expected mapping entries in 'legend'")

        name_raw = data.get("name")
        name = _require_str(name_raw, "name") if name_raw is not None else default_name
        label_min_raw = data.get("label_min_value")
        caption_raw = data.get("metric_caption")
        secondary_caption_raw = data.get("secondary_caption")

        radius_range = _require_pair(data.get("radius_range"), "radius_range")
        if radius_range[0] <= 0 or radius_range[0] >= radius_range[1]:
            raise ValueError("Expected 0 < radius_range[0] < radius_range[1]")
        canvas_width = _require_number(canvas.get("width"), "canvas.width")
        canvas_height = _require_number(canvas.get("height"), "canvas.height")
        if canvas_width <= 0 or canvas_height <= 0:
            raise ValueError("Expected positive 'canvas.width' and 'canvas.height'")

        return cls(
            name=name,
            title=_require_str(data.get("title"), "title"),
            canvas_width=canvas_width,
            canvas_height=canvas_height,
            outline_polygon=outline,
            radius_range=radius_range,
            points=tuple(points),
            metric_caption=(
                _require_str(caption_raw, "metric_caption") if caption_raw is not None else "Value"
            ),
            label_min_value=(
                _require_number(label_min_raw, "label_min_value") if label_min_raw is not None else 0.0
            ),
            secondary_caption=(
                _require_str(secondary_caption_raw, "secondary_caption")
                if secondary_caption_raw is not None
                else "Count"
            ),
            legend=legend,
        )


def metric_domain(points: Sequence[GeoPoint]) -> tuple[float, float] | None:
    """Return `(min, max)` of the metric values, or None for an empty set."""
    if not points:
        return None
    values = [point.metric_value for point in points]
    return (min(values), max(values))
