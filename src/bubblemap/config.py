"""Typed configuration loader for `config.yaml`."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, cast

import yaml


def _mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ValueError(f"Expected mapping for '{field_name}'")
    return cast(Mapping[str, Any], value)


def _optional_mapping(raw: Mapping[str, Any], key: str, field_name: str) -> Mapping[str, Any]:
    value = raw.get(key)
    if value is None:
        return {}
    return _mapping(value, field_name)


def _str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Expected integer for '{field_name}'")
    return value


def _float(value: Any, field_name: str) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    raise ValueError(f"Expected float for '{field_name}'")


def _non_negative(value: Any, field_name: str) -> float:
    number = _float(value, field_name)
    if number < 0:
        raise ValueError(f"{field_name} must be >= 0")
    return number


def _positive(value: Any, field_name: str) -> float:
    number = _float(value, field_name)
    if number <= 0:
        raise ValueError(f"{field_name} must be > 0")
    return number


def _unit(value: Any, field_name: str) -> float:
    number = _float(value, field_name)
    if not 0.0 <= number <= 1.0:
        raise ValueError(f"{field_name} must be within [0, 1]")
    return number


def _bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"Expected bool for '{field_name}'")
    return value


def _path_from_cfg(value: Any, field_name: str, root_dir: Path) -> Path:
    raw = _str(value, field_name)
    p = Path(raw)
    return p if p.is_absolute() else root_dir / p


@dataclass(frozen=True, slots=True)
class PathsConfig:
    datasets_dir: Path
    output_dir: Path
    reports_dir: Path
    logs_dir: Path

    @property
    def build_directories(self) -> tuple[Path, ...]:
        return (self.output_dir, self.reports_dir, self.logs_dir)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], root_dir: Path) -> PathsConfig:
        return cls(
            datasets_dir=_path_from_cfg(raw.get("datasets_dir"), "paths.datasets_dir", root_dir),
            output_dir=_path_from_cfg(raw.get("output_dir"), "paths.output_dir", root_dir),
            reports_dir=_path_from_cfg(raw.get("reports_dir"), "paths.reports_dir", root_dir),
            logs_dir=_path_from_cfg(raw.get("logs_dir"), "paths.logs_dir", root_dir),
        )


@dataclass(frozen=True, slots=True)
class ImageConfig:
    dpi: int
    format: str
    background: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ImageConfig:
        dpi = _int(raw.get("dpi", 100), "render.image.dpi")
        if dpi <= 0:
            raise ValueError("render.image.dpi must be > 0")
        fmt = _str(raw.get("format", "png"), "render.image.format").casefold()
        allowed = {"png", "svg", "pdf"}
        if fmt not in allowed:
            raise ValueError("render.image.format must be one of: " + ", ".join(sorted(allowed)))
        return cls(
            dpi=dpi,
            format=fmt,
            background=_str(raw.get("background", "#f4faf4"), "render.image.background"),
        )

    @classmethod
    def default(cls) -> ImageConfig:
        return cls.from_mapping({})


@dataclass(frozen=True, slots=True)
class LayoutConfig:
    mode: str
    padding_px: float

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> LayoutConfig:
        mode = _str(raw.get("mode", "fixed"), "render.layout.mode").casefold()
        allowed = {"fixed", "mercator"}
        if mode not in allowed:
            raise ValueError("render.layout.mode must be one of: " + ", ".join(sorted(allowed)))
        return cls(
            mode=mode,
            padding_px=_non_negative(raw.get("padding_px", 30), "render.layout.padding_px"),
        )

    @classmethod
    def default(cls) -> LayoutConfig:
        return cls.from_mapping({})


@dataclass(frozen=True, slots=True)
class StyleConfig:
    colormap: str
    font_family: str
    base_opacity: float
    hover_opacity: float
    stroke_color: str
    stroke_width_px: float
    hover_stroke_delta_px: float
    highlight_fill: str
    highlight_stroke: str
    highlight_stroke_width_px: float
    outline_fill: str
    outline_stroke: str
    outline_stroke_width_px: float
    outline_opacity: float
    title_color: str
    title_font_px: float
    label_color: str
    label_font_large_px: float
    label_font_small_px: float
    label_font_radius_threshold_px: float
    abbreviate_labels: bool

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> StyleConfig:
        return cls(
            colormap=_str(raw.get("colormap", "Blues"), "render.style.colormap"),
            font_family=_str(raw.get("font_family", "DejaVu Sans"), "render.style.font_family"),
            base_opacity=_unit(raw.get("base_opacity", 0.8), "render.style.base_opacity"),
            hover_opacity=_unit(raw.get("hover_opacity", 1.0), "render.style.hover_opacity"),
            stroke_color=_str(raw.get("stroke_color", "#ffffff"), "render.style.stroke_color"),
            stroke_width_px=_non_negative(raw.get("stroke_width_px", 2), "render.style.stroke_width_px"),
            hover_stroke_delta_px=_non_negative(
                raw.get("hover_stroke_delta_px", 1), "render.style.hover_stroke_delta_px"
            ),
            highlight_fill=_str(raw.get("highlight_fill", "#f59e0b"), "render.style.highlight_fill"),
            highlight_stroke=_str(
                raw.get("highlight_stroke", "#b45309"), "render.style.highlight_stroke"
            ),
            highlight_stroke_width_px=_non_negative(
                raw.get("highlight_stroke_width_px", 4), "render.style.highlight_stroke_width_px"
            ),
            outline_fill=_str(raw.get("outline_fill", "#e8f5e8"), "render.style.outline_fill"),
            outline_stroke=_str(raw.get("outline_stroke", "#2d5a2d"), "render.style.outline_stroke"),
            outline_stroke_width_px=_non_negative(
                raw.get("outline_stroke_width_px", 2), "render.style.outline_stroke_width_px"
            ),
            outline_opacity=_unit(raw.get("outline_opacity", 0.7), "render.style.outline_opacity"),
            title_color=_str(raw.get("title_color", "#2d5a2d"), "render.style.title_color"),
            title_font_px=_positive(raw.get("title_font_px", 16), "render.style.title_font_px"),
            label_color=_str(raw.get("label_color", "white"), "render.style.label_color"),
            label_font_large_px=_positive(
                raw.get("label_font_large_px", 10), "render.style.label_font_large_px"
            ),
            label_font_small_px=_positive(
                raw.get("label_font_small_px", 8), "render.style.label_font_small_px"
            ),
            label_font_radius_threshold_px=_non_negative(
                raw.get("label_font_radius_threshold_px", 20),
                "render.style.label_font_radius_threshold_px",
            ),
            abbreviate_labels=_bool(
                raw.get("abbreviate_labels", True), "render.style.abbreviate_labels"
            ),
        )

    @classmethod
    def default(cls) -> StyleConfig:
        return cls.from_mapping({})


@dataclass(frozen=True, slots=True)
class AnimationConfig:
    enabled: bool
    grow_duration_ms: float
    stagger_ms: float
    label_delay_ms: float
    label_fade_ms: float
    hover_duration_ms: float
    frame_interval_ms: int

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> AnimationConfig:
        frame_interval_ms = _int(raw.get("frame_interval_ms", 16), "render.animation.frame_interval_ms")
        if frame_interval_ms <= 0:
            raise ValueError("render.animation.frame_interval_ms must be > 0")
        return cls(
            enabled=_bool(raw.get("enabled", True), "render.animation.enabled"),
            grow_duration_ms=_non_negative(
                raw.get("grow_duration_ms", 1000), "render.animation.grow_duration_ms"
            ),
            stagger_ms=_non_negative(raw.get("stagger_ms", 100), "render.animation.stagger_ms"),
            label_delay_ms=_non_negative(
                raw.get("label_delay_ms", 0), "render.animation.label_delay_ms"
            ),
            label_fade_ms=_non_negative(
                raw.get("label_fade_ms", 1000), "render.animation.label_fade_ms"
            ),
            hover_duration_ms=_non_negative(
                raw.get("hover_duration_ms", 200), "render.animation.hover_duration_ms"
            ),
            frame_interval_ms=frame_interval_ms,
        )

    @classmethod
    def default(cls) -> AnimationConfig:
        return cls.from_mapping({})


@dataclass(frozen=True, slots=True)
class TooltipConfig:
    offset_px: tuple[float, float]
    font_px: float
    background: str
    background_alpha: float
    text_color: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> TooltipConfig:
        offset_raw = raw.get("offset_px", [10, 10])
        if not isinstance(offset_raw, list) or len(offset_raw) != 2:
            raise ValueError("Expected [dx, dy] list for 'render.tooltip.offset_px'")
        return cls(
            offset_px=(
                _float(offset_raw[0], "render.tooltip.offset_px[0]"),
                _float(offset_raw[1], "render.tooltip.offset_px[1]"),
            ),
            font_px=_positive(raw.get("font_px", 12), "render.tooltip.font_px"),
            background=_str(raw.get("background", "black"), "render.tooltip.background"),
            background_alpha=_unit(
                raw.get("background_alpha", 0.8), "render.tooltip.background_alpha"
            ),
            text_color=_str(raw.get("text_color", "white"), "render.tooltip.text_color"),
        )

    @classmethod
    def default(cls) -> TooltipConfig:
        return cls.from_mapping({})


@dataclass(frozen=True, slots=True)
class RenderSettings:
    """Style and behaviour shared by every bubble map render."""

    image: ImageConfig
    layout: LayoutConfig
    style: StyleConfig
    animation: AnimationConfig
    tooltip: TooltipConfig

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> RenderSettings:
        return cls(
            image=ImageConfig.from_mapping(_optional_mapping(raw, "image", "render.image")),
            layout=LayoutConfig.from_mapping(_optional_mapping(raw, "layout", "render.layout")),
            style=StyleConfig.from_mapping(_optional_mapping(raw, "style", "render.style")),
            animation=AnimationConfig.from_mapping(
                _optional_mapping(raw, "animation", "render.animation")
            ),
            tooltip=TooltipConfig.from_mapping(_optional_mapping(raw, "tooltip", "render.tooltip")),
        )

    @classmethod
    def default(cls) -> RenderSettings:
        return cls.from_mapping({})


@dataclass(frozen=True, slots=True)
class InspectConfig:
    cards_per_dataset: int
    max_columns: int

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> InspectConfig:
        cards = _int(raw.get("cards_per_dataset", 6), "inspect.cards_per_dataset")
        columns = _int(raw.get("max_columns", 3), "inspect.max_columns")
        if cards < 0:
            raise ValueError("inspect.cards_per_dataset must be >= 0")
        if columns < 1:
            raise ValueError("inspect.max_columns must be >= 1")
        return cls(cards_per_dataset=cards, max_columns=columns)


@dataclass(frozen=True, slots=True)
class AppConfig:
    source_path: Path
    paths: PathsConfig
    render: RenderSettings
    inspect: InspectConfig

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], source_path: Path) -> AppConfig:
        root_dir = source_path.parent.resolve()
        return cls(
            source_path=source_path.resolve(),
            paths=PathsConfig.from_mapping(_mapping(raw.get("paths"), "paths"), root_dir),
            render=RenderSettings.from_mapping(_optional_mapping(raw, "render", "render")),
            inspect=InspectConfig.from_mapping(_optional_mapping(raw, "inspect", "inspect")),
        )


def load_config(path: str | Path) -> AppConfig:
    """Load and validate the YAML config file into typed settings."""
    cfg_path = Path(path).resolve()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if not isinstance(raw, Mapping):
        raise ValueError("Top-level config must be a YAML mapping")
    return AppConfig.from_mapping(cast(Mapping[str, Any], raw), cfg_path)
