"""Figure-level tooltip overlay shared by the bubbles of one renderer."""

from __future__ import annotations

import logging
from typing import Any

from .config import TooltipConfig
from .models import GeoPoint


_LOGGER = logging.getLogger("bubblemap.tooltip")

TOOLTIP_GID = "bubblemap-tooltip"


def format_tooltip_text(
    point: GeoPoint,
    metric_caption: str = "Value",
    secondary_caption: str = "Count",
) -> str:
    """Name, grouped metric value, optional secondary count and coordinates."""
    value = point.metric_value
    if float(value).is_integer():
        value_text = f"{int(value):,}"
    else:
        value_text = f"{value:,.2f}"
    lines = [point.label, f"{metric_caption}: {value_text}"]
    if point.secondary_count is not None:
        lines.append(f"{secondary_caption}: {point.secondary_count:,}")
    lines.append(f"Coordinates: {_format_latitude(point.latitude)}, {_format_longitude(point.longitude)}")
    return "\n".join(lines)


def _format_latitude(lat: float) -> str:
    hemisphere = "N" if lat >= 0 else "S"
    return f"{abs(lat):.2f}°{hemisphere}"


def _format_longitude(lng: float) -> str:
    hemisphere = "E" if lng >= 0 else "W"
    return f"{abs(lng):.2f}°{hemisphere}"


class TooltipOverlay:
    """A single text box attached to the figure, outside any Axes.

    The artist is created lazily on first `show` and belongs to `owner`;
    only that owner can release it.
    """

    def __init__(self, figure: Any, cfg: TooltipConfig, *, owner: object) -> None:
        self._figure = figure
        self._cfg = cfg
        self._owner = owner
        self._artist: Any | None = None

    @property
    def acquired(self) -> bool:
        return self._artist is not None

    @property
    def visible(self) -> bool:
        return self._artist is not None and bool(self._artist.get_visible())

    @property
    def text(self) -> str:
        return "" if self._artist is None else str(self._artist.get_text())

    @property
    def artist(self) -> Any | None:
        return self._artist

    def show(self, text: str, pointer_px: tuple[float, float]) -> None:
        artist = self._acquire()
        artist.set_text(text)
        self.move(pointer_px)
        artist.set_visible(True)

    def move(self, pointer_px: tuple[float, float]) -> None:
        if self._artist is None:
            return
        dx, dy = self._cfg.offset_px
        x_px = pointer_px[0] + dx
        y_px = pointer_px[1] + dy
        fx, fy = self._figure.transFigure.inverted().transform((x_px, y_px))
        self._artist.set_position((float(fx), float(fy)))

    def hide(self) -> None:
        if self._artist is not None:
            self._artist.set_visible(False)

    def release(self, owner: object) -> bool:
        """Remove the overlay artist if `owner` acquired it."""
        if owner is not self._owner:
            _LOGGER.debug("Ignoring tooltip release from a non-owner")
            return False
        if self._artist is None:
            return False
        artist, self._artist = self._artist, None
        if artist in self._figure.texts:
            artist.remove()
        return True

    def _acquire(self) -> Any:
        if self._artist is None:
            font_pt = self._cfg.font_px * 72.0 / float(self._figure.dpi)
            self._artist = self._figure.text(
                0.0,
                0.0,
                "",
                color=self._cfg.text_color,
                fontsize=font_pt,
                ha="left",
                va="bottom",
                zorder=1000,
                visible=False,
                bbox={
                    "boxstyle": "round,pad=0.6",
                    "facecolor": self._cfg.background,
                    "alpha": self._cfg.background_alpha,
                    "edgecolor": "none",
                },
            )
            self._artist.set_gid(TOOLTIP_GID)
        return self._artist
