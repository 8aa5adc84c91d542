"""Pointer hover state machine for drawn bubbles."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from .animation import AnimationScheduler
from .config import AnimationConfig, StyleConfig
from .models import GeoPoint
from .tooltip import TooltipOverlay, format_tooltip_text


_LOGGER = logging.getLogger("bubblemap.interaction")

HoverListener = Callable[[GeoPoint | None], None]


@dataclass(slots=True)
class BubbleArtists:
    """Artists drawn for one point plus the resting values hover returns to."""

    index: int
    point: GeoPoint
    circle: Any
    label: Any
    radius: float
    rest_alpha: float
    rest_linewidth: float
    selected: bool = False


class HoverController:
    """Idle/Hovered tracking for one renderer's bubbles.

    Only the owning renderer's event handlers mutate the hovered state;
    sibling views observe it through `subscribe`.
    """

    def __init__(
        self,
        *,
        scheduler: AnimationScheduler,
        tooltip: TooltipOverlay,
        style: StyleConfig,
        animation: AnimationConfig,
        px_to_pt: Callable[[float], float],
        request_frame: Callable[[], None] | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._tooltip = tooltip
        self._style = style
        self._animation = animation
        self._px_to_pt = px_to_pt
        self._request_frame = request_frame or (lambda: None)
        self._bubbles: tuple[BubbleArtists, ...] = ()
        self._hovered: BubbleArtists | None = None
        self._listeners: list[HoverListener] = []
        self._metric_caption = "Value"
        self._secondary_caption = "Count"
        self._connections: list[int] = []
        self._canvas: Any | None = None

    @property
    def hovered(self) -> GeoPoint | None:
        return None if self._hovered is None else self._hovered.point

    @property
    def hovered_bubble(self) -> BubbleArtists | None:
        return self._hovered

    def subscribe(self, listener: HoverListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def bind(
        self,
        bubbles: Sequence[BubbleArtists],
        *,
        metric_caption: str,
        secondary_caption: str,
    ) -> None:
        self.reset()
        self._bubbles = tuple(bubbles)
        self._metric_caption = metric_caption
        self._secondary_caption = secondary_caption

    def reset(self) -> None:
        """Drop to Idle without animating; used when the bubbles go away."""
        self._bubbles = ()
        self._tooltip.hide()
        if self._hovered is not None:
            self._hovered = None
            self._notify(None)

    def enter(self, bubble: BubbleArtists, pointer_px: tuple[float, float]) -> None:
        if self._hovered is bubble:
            self.move(pointer_px)
            return
        if self._hovered is not None:
            self.leave()
        self._hovered = bubble
        self._animate_emphasis(
            bubble,
            alpha=self._style.hover_opacity,
            linewidth=bubble.rest_linewidth + self._px_to_pt(self._style.hover_stroke_delta_px),
        )
        self._tooltip.show(
            format_tooltip_text(bubble.point, self._metric_caption, self._secondary_caption),
            pointer_px,
        )
        _LOGGER.debug("Hover enter: %s", bubble.point.label)
        self._notify(bubble.point)

    def move(self, pointer_px: tuple[float, float]) -> None:
        if self._hovered is not None:
            self._tooltip.move(pointer_px)

    def leave(self) -> None:
        bubble = self._hovered
        if bubble is None:
            return
        self._hovered = None
        self._animate_emphasis(bubble, alpha=bubble.rest_alpha, linewidth=bubble.rest_linewidth)
        self._tooltip.hide()
        _LOGGER.debug("Hover leave: %s", bubble.point.label)
        self._notify(None)

    def hit_test(self, event: Any) -> BubbleArtists | None:
        """Topmost bubble under a matplotlib mouse event."""
        for bubble in reversed(self._bubbles):
            if bubble.circle.axes is None:
                continue
            contains, _ = bubble.circle.contains(event)
            if contains:
                return bubble
        return None

    def connect(self, canvas: Any) -> None:
        self.disconnect()
        self._canvas = canvas
        self._connections = [
            canvas.mpl_connect("motion_notify_event", self._on_motion),
            canvas.mpl_connect("axes_leave_event", self._on_pointer_exit),
            canvas.mpl_connect("figure_leave_event", self._on_pointer_exit),
        ]

    def disconnect(self) -> None:
        if self._canvas is not None:
            for cid in self._connections:
                self._canvas.mpl_disconnect(cid)
        self._connections = []
        self._canvas = None

    def _on_motion(self, event: Any) -> None:
        pointer = (float(event.x), float(event.y))
        bubble = self.hit_test(event) if event.inaxes is not None else None
        if bubble is None:
            self.leave()
        elif bubble is self._hovered:
            self.move(pointer)
        else:
            self.enter(bubble, pointer)
        if self._canvas is not None:
            self._canvas.draw_idle()

    def _on_pointer_exit(self, event: Any) -> None:
        self.leave()
        if self._canvas is not None:
            self._canvas.draw_idle()

    def _animate_emphasis(self, bubble: BubbleArtists, *, alpha: float, linewidth: float) -> None:
        circle = bubble.circle
        self._tween(
            key=("hover-alpha", bubble.index),
            target=circle,
            getter=lambda: _current_alpha(circle),
            setter=circle.set_alpha,
            end_value=alpha,
        )
        self._tween(
            key=("hover-stroke", bubble.index),
            target=circle,
            getter=circle.get_linewidth,
            setter=circle.set_linewidth,
            end_value=linewidth,
        )

    def _tween(
        self,
        *,
        key: tuple[str, int],
        target: Any,
        getter: Callable[[], float],
        setter: Callable[[float], None],
        end_value: float,
    ) -> None:
        if self._animation.enabled and self._animation.hover_duration_ms > 0:
            self._scheduler.schedule(
                key=key,
                target=target,
                getter=getter,
                setter=setter,
                end_value=end_value,
                duration_ms=self._animation.hover_duration_ms,
            )
            self._request_frame()
            return
        self._scheduler.cancel(key)
        setter(end_value)

    def _notify(self, point: GeoPoint | None) -> None:
        for listener in list(self._listeners):
            listener(point)


def _current_alpha(artist: Any) -> float:
    alpha = artist.get_alpha()
    return 1.0 if alpha is None else float(alpha)
