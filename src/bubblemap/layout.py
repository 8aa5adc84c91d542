"""Outline geometry checks and the optional lat/lng driven bubble layout."""

from __future__ import annotations

import dataclasses
from functools import lru_cache
from typing import Any, Sequence

from .models import GeoPoint, Position, RenderConfig


def outline_polygon(outline: Sequence[Position]) -> Any | None:
    """Shapely polygon for an outline, or None when it has too few vertices."""
    distinct = _dedupe_closing_vertex(outline)
    if len(distinct) < 3:
        return None
    polygon_factory = _require_shapely_polygon_factory()
    return polygon_factory([(vertex.x, vertex.y) for vertex in distinct])


def outline_problems(outline: Sequence[Position]) -> list[str]:
    """Human-readable reasons an outline would draw badly."""
    if not outline:
        return []
    polygon = outline_polygon(outline)
    if polygon is None:
        return [f"outline has {len(outline)} vertices; at least 3 distinct are needed"]
    problems: list[str] = []
    if not polygon.is_valid:
        explain_validity = _require_shapely_explain_validity()
        problems.append(f"outline polygon is invalid: {explain_validity(polygon)}")
    if polygon.area <= 0:
        problems.append("outline polygon has zero area")
    return problems


def points_outside_canvas(points: Sequence[GeoPoint], config: RenderConfig) -> list[str]:
    return [
        point.label
        for point in points
        if not (
            0.0 <= point.position.x <= config.canvas_width
            and 0.0 <= point.position.y <= config.canvas_height
        )
    ]


def mercator_positions(
    points: Sequence[GeoPoint],
    config: RenderConfig,
    *,
    padding_px: float,
) -> tuple[GeoPoint, ...]:
    """Place points by Web Mercator projection of their lat/lng.

    Projected coordinates are fitted, aspect preserved, into the outline's
    bounding box (or the whole canvas when there is no outline), north up.
    """
    if not points:
        return ()
    transformer = _require_pyproj_transformer()
    projected = [transformer.transform(point.longitude, point.latitude) for point in points]
    xs = [xy[0] for xy in projected]
    ys = [xy[1] for xy in projected]

    polygon = outline_polygon(config.outline_polygon)
    if polygon is not None:
        box_x0, box_y0, box_x1, box_y1 = (float(v) for v in polygon.bounds)
    else:
        box_x0, box_y0, box_x1, box_y1 = (0.0, 0.0, config.canvas_width, config.canvas_height)
    box_x0 += padding_px
    box_y0 += padding_px
    box_x1 -= padding_px
    box_y1 -= padding_px
    box_w = max(box_x1 - box_x0, 0.0)
    box_h = max(box_y1 - box_y0, 0.0)

    span_x = max(xs) - min(xs)
    span_y = max(ys) - min(ys)
    scale_candidates = []
    if span_x > 0:
        scale_candidates.append(box_w / span_x)
    if span_y > 0:
        scale_candidates.append(box_h / span_y)
    scale = min(scale_candidates) if scale_candidates else 0.0

    center_x = (box_x0 + box_x1) / 2.0
    center_y = (box_y0 + box_y1) / 2.0
    mid_x = (max(xs) + min(xs)) / 2.0
    mid_y = (max(ys) + min(ys)) / 2.0

    placed: list[GeoPoint] = []
    for point, (mx, my) in zip(points, projected):
        position = Position(
            x=center_x + (mx - mid_x) * scale,
            # canvas y grows downward, northing grows upward
            y=center_y - (my - mid_y) * scale,
        )
        placed.append(dataclasses.replace(point, position=position))
    return tuple(placed)


def _dedupe_closing_vertex(outline: Sequence[Position]) -> list[Position]:
    vertices = list(outline)
    if len(vertices) > 1 and vertices[0] == vertices[-1]:
        vertices = vertices[:-1]
    return vertices


def _require_shapely_polygon_factory() -> Any:
    try:
        from shapely.geometry import Polygon
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("shapely is required for outline geometry checks") from exc
    return Polygon


def _require_shapely_explain_validity() -> Any:
    try:
        from shapely.validation import explain_validity
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("shapely is required for outline geometry checks") from exc
    return explain_validity


@lru_cache(maxsize=1)
def _require_pyproj_transformer() -> Any:
    try:
        from pyproj import Transformer
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("pyproj is required for the mercator bubble layout") from exc
    return Transformer.from_crs("EPSG:4326", "EPSG:3857", always_xy=True)
