"""Timer-driven attribute tweens for matplotlib artists."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Hashable


_LOGGER = logging.getLogger("bubblemap.animation")

Easing = Callable[[float], float]


def ease_cubic_in_out(t: float) -> float:
    t = min(max(t, 0.0), 1.0)
    if t < 0.5:
        return 4.0 * t * t * t
    return 1.0 - ((-2.0 * t + 2.0) ** 3) / 2.0


def is_attached(artist: Any) -> bool:
    """True while the artist still belongs to an Axes or Figure."""
    if getattr(artist, "axes", None) is not None:
        return True
    get_figure = getattr(artist, "get_figure", None)
    return get_figure is not None and get_figure() is not None


@dataclass(slots=True)
class Tween:
    key: Hashable
    target: Any
    getter: Callable[[], float]
    setter: Callable[[float], None]
    end_value: float
    start_at: float
    duration: float
    easing: Easing = ease_cubic_in_out
    on_done: Callable[[], None] | None = None
    start_value: float | None = None

    def value_at(self, now: float) -> float:
        start = self.start_value if self.start_value is not None else self.end_value
        if self.duration <= 0:
            return self.end_value
        t = (now - self.start_at) / self.duration
        return start + (self.end_value - start) * self.easing(min(max(t, 0.0), 1.0))


class AnimationScheduler:
    """Owns in-flight tweens and advances them when `tick` is called.

    Scheduling never blocks. Something external (a canvas timer, or a test
    with a fake clock) drives `tick`; `finish_all` jumps straight to the end
    state for static exports.
    """

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        self._clock = clock or time.perf_counter
        self._tweens: dict[Hashable, Tween] = {}

    @property
    def active(self) -> bool:
        return bool(self._tweens)

    @property
    def pending(self) -> int:
        return len(self._tweens)

    def now(self) -> float:
        return float(self._clock())

    def schedule(
        self,
        *,
        key: Hashable,
        target: Any,
        getter: Callable[[], float],
        setter: Callable[[float], None],
        end_value: float,
        duration_ms: float,
        delay_ms: float = 0.0,
        easing: Easing = ease_cubic_in_out,
        on_done: Callable[[], None] | None = None,
    ) -> Tween:
        """Queue a tween; a tween already running under `key` is replaced.

        `on_done` runs once the end value is applied, so it can queue the next
        stage of a chained animation.
        """
        tween = Tween(
            key=key,
            target=target,
            getter=getter,
            setter=setter,
            end_value=float(end_value),
            start_at=self.now() + max(delay_ms, 0.0) / 1000.0,
            duration=max(duration_ms, 0.0) / 1000.0,
            easing=easing,
            on_done=on_done,
        )
        self._tweens[key] = tween
        return tween

    def cancel(self, key: Hashable) -> bool:
        return self._tweens.pop(key, None) is not None

    def cancel_all(self) -> int:
        dropped = len(self._tweens)
        self._tweens.clear()
        if dropped:
            _LOGGER.debug("Cancelled %d in-flight tweens", dropped)
        return dropped

    def tick(self, now: float | None = None) -> bool:
        """Advance every started tween; return True while work remains."""
        current = self.now() if now is None else float(now)
        finished: list[Tween] = []
        for key, tween in list(self._tweens.items()):
            if self._tweens.get(key) is not tween:
                continue
            if not is_attached(tween.target):
                self._tweens.pop(key, None)
                continue
            if current < tween.start_at:
                continue
            if tween.start_value is None:
                tween.start_value = float(tween.getter())
            tween.setter(tween.value_at(current))
            if current >= tween.start_at + tween.duration:
                self._tweens.pop(key, None)
                finished.append(tween)
        for tween in finished:
            if tween.on_done is not None and is_attached(tween.target):
                tween.on_done()
        return self.active

    def finish_all(self) -> None:
        """Apply every tween's end value immediately."""
        while self._tweens:
            tweens = list(self._tweens.values())
            self._tweens.clear()
            for tween in tweens:
                if not is_attached(tween.target):
                    continue
                tween.setter(tween.end_value)
                if tween.on_done is not None:
                    tween.on_done()
