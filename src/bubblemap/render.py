"""Bubble map rendering on a matplotlib figure."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Iterable, Sequence

from .animation import AnimationScheduler, is_attached
from .config import AppConfig, RenderSettings, StyleConfig
from .datasets import load_datasets
from .interaction import BubbleArtists, HoverController, HoverListener
from .layout import mercator_positions, points_outside_canvas
from .models import GeoPoint, RenderConfig
from .scales import SequentialColorScale, SqrtScale, build_color_scale, build_size_scale
from .tooltip import TooltipOverlay
from .util import format_name_list


_LOGGER = logging.getLogger("bubblemap.render")

_Z_OUTLINE = 1
_Z_BUBBLE = 3
_Z_LABEL = 4
_Z_LEGEND = 5
_Z_TITLE = 6

_TITLE_TOP_PX = 4.0
_LEGEND_MARGIN_PX = 12.0
_LEGEND_CAPTION_GAP_PX = 6.0
_LEGEND_ENTRY_GAP_PX = 24.0
# Rough advance width of one caption character relative to its font size.
_CAPTION_CHAR_WIDTH_RATIO = 0.6


def label_text(point: GeoPoint, *, min_value: float, abbreviate: bool) -> str:
    """Bubble caption: empty for small values, first word when abbreviated."""
    if point.metric_value <= min_value:
        return ""
    if abbreviate:
        words = point.label.split()
        return words[0] if words else ""
    return point.label


def label_font_px(radius: float, style: StyleConfig) -> float:
    if radius > style.label_font_radius_threshold_px:
        return style.label_font_large_px
    return style.label_font_small_px


class BubbleMapRenderer:
    """Proportional symbol map drawn onto one matplotlib figure.

    Every `render` call clears what the previous call drew and draws again
    from the points and config it is given. The renderer owns the tween
    scheduler, the hover controller, and the figure-level tooltip; `close`
    releases all of them.
    """

    def __init__(
        self,
        settings: RenderSettings | None = None,
        *,
        figure: Any | None = None,
        scheduler: AnimationScheduler | None = None,
        interactive: bool = False,
    ) -> None:
        self.settings = settings or RenderSettings.default()
        self._figure = figure if figure is not None else _new_headless_figure(self.settings.image.dpi)
        self._interactive = interactive
        self.scheduler = scheduler or AnimationScheduler()
        self._tooltip = TooltipOverlay(self._figure, self.settings.tooltip, owner=self)
        self.hover = HoverController(
            scheduler=self.scheduler,
            tooltip=self._tooltip,
            style=self.settings.style,
            animation=self.settings.animation,
            px_to_pt=self.px_to_pt,
            request_frame=self._request_frame,
        )
        self._ax = self._figure.add_axes((0.0, 0.0, 1.0, 1.0))
        self._ax.set_axis_off()
        self._artists: list[Any] = []
        self._bubbles: tuple[BubbleArtists, ...] = ()
        self._timer: Any | None = None
        self._timer_running = False
        self._closed = False
        self.size_scale: SqrtScale | None = None
        self.color_scale: SequentialColorScale | None = None
        self.hover.connect(self._figure.canvas)

    def __enter__(self) -> BubbleMapRenderer:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @property
    def figure(self) -> Any:
        return self._figure

    @property
    def axes(self) -> Any:
        return self._ax

    @property
    def tooltip(self) -> TooltipOverlay:
        return self._tooltip

    @property
    def bubbles(self) -> tuple[BubbleArtists, ...]:
        return self._bubbles

    @property
    def closed(self) -> bool:
        return self._closed

    def bubble(self, label: str) -> BubbleArtists | None:
        """Last drawn bubble with `label` (the one that wins hit testing)."""
        for bubble in reversed(self._bubbles):
            if bubble.point.label == label:
                return bubble
        return None

    def element_count(self) -> int:
        return len(self._ax.patches) + len(self._ax.texts)

    def px_to_pt(self, px: float) -> float:
        return float(px) * 72.0 / float(self._figure.dpi)

    def subscribe_hover(self, listener: HoverListener) -> Callable[[], None]:
        return self.hover.subscribe(listener)

    def render(self, points: Iterable[GeoPoint], config: RenderConfig) -> None:
        if self._closed:
            raise RuntimeError("Cannot render with a closed BubbleMapRenderer")
        point_list = tuple(points)
        if self.settings.layout.mode == "mercator":
            point_list = mercator_positions(
                point_list,
                config,
                padding_px=self.settings.layout.padding_px,
            )

        self._clear()
        self._configure_canvas(config)
        self._warn_on_input_problems(point_list, config)
        self._draw_outline(config)

        size_scale = build_size_scale(point_list, config.radius_range)
        color_scale = build_color_scale(point_list, self.settings.style.colormap)
        bubbles = tuple(
            self._draw_bubble(
                index=idx,
                point=point,
                config=config,
                size_scale=size_scale,
                color_scale=color_scale,
            )
            for idx, point in enumerate(point_list)
        )
        self._draw_title(config)
        self._draw_legend(config, size_scale=size_scale, color_scale=color_scale)

        self._bubbles = bubbles
        self.size_scale = size_scale
        self.color_scale = color_scale
        self.hover.bind(
            bubbles,
            metric_caption=config.metric_caption,
            secondary_caption=config.secondary_caption,
        )
        _LOGGER.debug(
            "Rendered %d bubbles (domain=%s, selected=%s, tweens=%d)",
            len(bubbles),
            size_scale.domain,
            config.selected_label,
            self.scheduler.pending,
        )
        self._request_frame()
        self._figure.canvas.draw_idle()

    def finish_animations(self) -> None:
        self.scheduler.finish_all()

    def save(self, path: Path, *, fmt: str | None = None) -> Path:
        """Write the final (fully animated) frame to `path`."""
        self.finish_animations()
        path.parent.mkdir(parents=True, exist_ok=True)
        self._figure.savefig(
            path,
            dpi=self._figure.dpi,
            format=fmt or self.settings.image.format,
            facecolor=self._figure.get_facecolor(),
        )
        return path

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.scheduler.cancel_all()
        self._stop_timer()
        self.hover.reset()
        self.hover.disconnect()
        self._remove_artists()
        self._tooltip.release(self)
        if self._ax.get_figure() is not None:
            self._ax.remove()

    def _clear(self) -> None:
        self.scheduler.cancel_all()
        self.hover.reset()
        self._remove_artists()

    def _remove_artists(self) -> None:
        for artist in self._artists:
            if is_attached(artist):
                artist.remove()
        self._artists.clear()
        self._bubbles = ()

    def _configure_canvas(self, config: RenderConfig) -> None:
        dpi = float(self._figure.dpi)
        self._figure.set_size_inches(config.canvas_width / dpi, config.canvas_height / dpi)
        self._figure.patch.set_facecolor(self.settings.image.background)
        self._ax.set_xlim(0.0, config.canvas_width)
        # pixel coordinates: y grows downward
        self._ax.set_ylim(config.canvas_height, 0.0)

    def _warn_on_input_problems(self, points: Sequence[GeoPoint], config: RenderConfig) -> None:
        seen: set[str] = set()
        dupes: set[str] = set()
        for point in points:
            if point.label in seen:
                dupes.add(point.label)
            seen.add(point.label)
        if dupes:
            _LOGGER.warning(
                "Duplicate point labels drawn (last drawn wins): %s",
                format_name_list(sorted(dupes)),
            )
        if config.selected_label is not None and config.selected_label not in seen:
            _LOGGER.debug("Selected label '%s' is not among the points", config.selected_label)
        outside = points_outside_canvas(points, config)
        if outside:
            _LOGGER.debug("Points outside the canvas: %s", format_name_list(outside))

    def _draw_outline(self, config: RenderConfig) -> None:
        if len(config.outline_polygon) < 3:
            if config.outline_polygon:
                _LOGGER.debug("Outline skipped: fewer than 3 vertices")
            return
        patches = _require_matplotlib_patches()
        style = self.settings.style
        outline = patches.Polygon(
            [(vertex.x, vertex.y) for vertex in config.outline_polygon],
            closed=True,
            facecolor=style.outline_fill,
            edgecolor=style.outline_stroke,
            linewidth=self.px_to_pt(style.outline_stroke_width_px),
            alpha=style.outline_opacity,
            zorder=_Z_OUTLINE,
        )
        self._ax.add_patch(outline)
        self._artists.append(outline)

    def _draw_bubble(
        self,
        *,
        index: int,
        point: GeoPoint,
        config: RenderConfig,
        size_scale: SqrtScale,
        color_scale: SequentialColorScale,
    ) -> BubbleArtists:
        patches = _require_matplotlib_patches()
        style = self.settings.style
        animate = self.settings.animation.enabled
        radius = size_scale(point.metric_value)
        selected = config.selected_label is not None and point.label == config.selected_label
        if selected:
            fill = style.highlight_fill
            stroke = style.highlight_stroke
            stroke_px = style.highlight_stroke_width_px
        else:
            fill = color_scale(point.metric_value)
            stroke = style.stroke_color
            stroke_px = style.stroke_width_px
        linewidth = self.px_to_pt(stroke_px)

        circle = patches.Circle(
            (point.position.x, point.position.y),
            radius=0.0 if animate else radius,
            facecolor=fill,
            edgecolor=stroke,
            linewidth=linewidth,
            alpha=style.base_opacity,
            zorder=_Z_BUBBLE,
        )
        circle.set_gid(f"bubble-{index}")
        self._ax.add_patch(circle)

        label = self._ax.text(
            point.position.x,
            point.position.y,
            label_text(point, min_value=config.label_min_value, abbreviate=style.abbreviate_labels),
            ha="center",
            va="center",
            color=style.label_color,
            fontsize=self.px_to_pt(label_font_px(radius, style)),
            fontweight="bold",
            family=style.font_family,
            alpha=0.0 if animate else 1.0,
            clip_on=False,
            zorder=_Z_LABEL,
        )
        self._artists.extend((circle, label))

        bubble = BubbleArtists(
            index=index,
            point=point,
            circle=circle,
            label=label,
            radius=radius,
            rest_alpha=style.base_opacity,
            rest_linewidth=linewidth,
            selected=selected,
        )
        if animate:
            self._schedule_entrance(bubble)
        return bubble

    def _schedule_entrance(self, bubble: BubbleArtists) -> None:
        anim = self.settings.animation
        delay_ms = bubble.index * anim.stagger_ms
        circle = bubble.circle
        label = bubble.label

        def _fade_in_label() -> None:
            self.scheduler.schedule(
                key=("label", bubble.index),
                target=label,
                getter=lambda: label.get_alpha() or 0.0,
                setter=label.set_alpha,
                end_value=1.0,
                duration_ms=anim.label_fade_ms,
                delay_ms=anim.label_delay_ms,
            )
            self._request_frame()

        # the label fades in only once its bubble has finished growing
        self.scheduler.schedule(
            key=("grow", bubble.index),
            target=circle,
            getter=circle.get_radius,
            setter=circle.set_radius,
            end_value=bubble.radius,
            duration_ms=anim.grow_duration_ms,
            delay_ms=delay_ms,
            on_done=_fade_in_label,
        )

    def _draw_title(self, config: RenderConfig) -> None:
        if not config.title:
            return
        style = self.settings.style
        title = self._ax.text(
            config.canvas_width / 2.0,
            _TITLE_TOP_PX + style.title_font_px,
            config.title,
            ha="center",
            va="bottom",
            color=style.title_color,
            fontsize=self.px_to_pt(style.title_font_px),
            fontweight="bold",
            family=style.font_family,
            clip_on=False,
            zorder=_Z_TITLE,
        )
        self._artists.append(title)

    def _draw_legend(
        self,
        config: RenderConfig,
        *,
        size_scale: SqrtScale,
        color_scale: SequentialColorScale,
    ) -> None:
        if not config.legend:
            return
        patches = _require_matplotlib_patches()
        style = self.settings.style
        font_px = style.label_font_large_px + 2.0
        radii = [size_scale(entry.value) for entry in config.legend]
        center_y = config.canvas_height - _LEGEND_MARGIN_PX - max(radii)
        x = _LEGEND_MARGIN_PX
        for entry, radius in zip(config.legend, radii):
            swatch = patches.Circle(
                (x + radius, center_y),
                radius=radius,
                facecolor=color_scale(entry.value),
                edgecolor=style.stroke_color,
                linewidth=self.px_to_pt(style.stroke_width_px),
                alpha=style.base_opacity,
                zorder=_Z_LEGEND,
            )
            self._ax.add_patch(swatch)
            caption_x = x + 2.0 * radius + _LEGEND_CAPTION_GAP_PX
            caption = self._ax.text(
                caption_x,
                center_y,
                entry.caption,
                ha="left",
                va="center",
                color=style.title_color,
                fontsize=self.px_to_pt(font_px),
                family=style.font_family,
                clip_on=False,
                zorder=_Z_LEGEND,
            )
            self._artists.extend((swatch, caption))
            x = caption_x + len(entry.caption) * font_px * _CAPTION_CHAR_WIDTH_RATIO + _LEGEND_ENTRY_GAP_PX

    def _request_frame(self) -> None:
        if not self._interactive or self._closed or not self.scheduler.active:
            return
        if self._timer is None:
            self._timer = self._figure.canvas.new_timer(
                interval=self.settings.animation.frame_interval_ms
            )
            self._timer.add_callback(self._on_frame)
        if not self._timer_running:
            self._timer.start()
            self._timer_running = True

    def _on_frame(self) -> None:
        if self._closed:
            return
        still_active = self.scheduler.tick()
        self._figure.canvas.draw_idle()
        if not still_active:
            self._stop_timer()

    def _stop_timer(self) -> None:
        if self._timer is not None and self._timer_running:
            self._timer.stop()
        self._timer_running = False


@dataclass(slots=True)
class RenderReport:
    output_dir: Path | None = None
    outputs: list[Path] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    infos: list[str] = field(default_factory=list)
    summary: dict[str, int] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)

    def add_info(self, msg: str) -> None:
        self.infos.append(msg)


def run_render_datasets(
    cfg: AppConfig,
    *,
    dataset_names: Sequence[str] | None = None,
    selected_label: str | None = None,
    output_path: Path | None = None,
) -> RenderReport:
    """Render final-frame images for the configured datasets."""
    report = RenderReport(output_dir=cfg.paths.output_dir)
    try:
        datasets = load_datasets(cfg.paths.datasets_dir, dataset_names)
    except (OSError, ValueError) as exc:
        report.add_error(f"Failed loading datasets from {cfg.paths.datasets_dir}: {exc}")
        return report
    report.add_info(f"Loaded {len(datasets)} dataset(s) from {cfg.paths.datasets_dir}")
    if not datasets:
        report.add_error("No datasets selected for rendering.")
        return report
    if output_path is not None and len(datasets) != 1:
        report.add_error("--output requires exactly one dataset to be selected.")
        return report

    fmt = cfg.render.image.format
    rendered = 0
    failures: list[str] = []
    with BubbleMapRenderer(cfg.render) as renderer:
        for idx, dataset in enumerate(datasets, start=1):
            t0 = time.perf_counter()
            if selected_label is not None and selected_label not in dataset.labels:
                report.add_warning(
                    f"Selected label '{selected_label}' not found in dataset '{dataset.name}'"
                )
            dupes = dataset.duplicate_labels()
            if dupes:
                report.add_warning(
                    f"Dataset '{dataset.name}' has duplicate labels: {format_name_list(dupes)}"
                )
            target = output_path or cfg.paths.output_dir / f"map_{dataset.name}.{fmt}"
            try:
                renderer.render(
                    dataset.points,
                    dataset.render_config(selected_label=selected_label),
                )
                renderer.save(target, fmt=_format_for(target, fmt))
            except Exception as exc:
                failures.append(f"{dataset.name}({exc})")
                _LOGGER.exception("[render] %s failed", dataset.name)
                continue
            rendered += 1
            report.outputs.append(target)
            _LOGGER.info(
                "[render] (%d/%d) built %s in %.2fs",
                idx,
                len(datasets),
                dataset.name,
                time.perf_counter() - t0,
            )

    report.summary = {
        "datasets_total": len(datasets),
        "maps_rendered": rendered,
        "maps_failed": len(failures),
    }
    if failures:
        report.add_error("Render failures: " + format_name_list(sorted(failures)))
    report.add_info(
        "Render summary: "
        f"datasets_total={len(datasets)}, maps_rendered={rendered}, maps_failed={len(failures)}"
    )
    if report.ok:
        report.add_info(f"Rendered map files written to {output_path or cfg.paths.output_dir}")
    return report


def _format_for(path: Path, default: str) -> str:
    suffix = path.suffix.lstrip(".").casefold()
    return suffix if suffix in {"png", "svg", "pdf"} else default


def format_render_lines(report: RenderReport) -> Sequence[str]:
    lines: list[str] = []
    lines.extend(f"[INFO] {msg}" for msg in report.infos)
    lines.extend(f"[WARN] {msg}" for msg in report.warnings)
    lines.extend(f"[ERROR] {msg}" for msg in report.errors)
    return lines


def _new_headless_figure(dpi: int) -> Any:
    figure_cls, canvas_cls = _require_matplotlib_figure()
    figure = figure_cls(dpi=dpi)
    canvas_cls(figure)
    return figure


@lru_cache(maxsize=1)
def _require_matplotlib_figure() -> tuple[Any, Any]:
    try:
        from matplotlib.backends.backend_agg import FigureCanvasAgg
        from matplotlib.figure import Figure
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("matplotlib is required for bubble map rendering") from exc
    return (Figure, FigureCanvasAgg)


@lru_cache(maxsize=1)
def _require_matplotlib_patches() -> Any:
    try:
        import matplotlib.patches as patches
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("matplotlib is required for bubble map rendering") from exc
    return patches


def require_pyplot() -> Any:
    """pyplot with whatever interactive backend the environment selects."""
    try:
        import matplotlib.pyplot as plt
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("matplotlib is required for interactive display") from exc
    return plt
