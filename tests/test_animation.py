import pytest

from bubblemap.animation import AnimationScheduler, ease_cubic_in_out, is_attached


class Target:
    def __init__(self, value=0.0):
        self.axes = object()
        self.value = value

    def get(self):
        return self.value

    def set(self, value):
        self.value = value


def _schedule(scheduler, target, **kwargs):
    params = {
        "key": "k",
        "target": target,
        "getter": target.get,
        "setter": target.set,
        "end_value": 10.0,
        "duration_ms": 1000,
    }
    params.update(kwargs)
    return scheduler.schedule(**params)


def test_schedule_returns_without_touching_target(scheduler):
    target = Target()
    _schedule(scheduler, target)
    assert target.value == 0.0
    assert scheduler.active


def test_tick_interpolates_and_finishes(clock, scheduler):
    target = Target()
    done = []
    _schedule(scheduler, target, on_done=lambda: done.append(True))

    clock.advance_ms(500)
    assert scheduler.tick() is True
    assert target.value == pytest.approx(5.0)

    clock.advance_ms(600)
    assert scheduler.tick() is False
    assert target.value == 10.0
    assert done == [True]


def test_delay_holds_value_until_start(clock, scheduler):
    target = Target(2.0)
    _schedule(scheduler, target, delay_ms=300)

    clock.advance_ms(200)
    scheduler.tick()
    assert target.value == 2.0

    clock.advance_ms(600)
    scheduler.tick()
    # start value is read when the tween begins, at t=300ms
    assert target.value == pytest.approx(2.0 + (10.0 - 2.0) * 0.5)


def test_same_key_replaces_running_tween(clock, scheduler):
    target = Target()
    _schedule(scheduler, target, end_value=10.0)
    clock.advance_ms(500)
    scheduler.tick()
    _schedule(scheduler, target, end_value=0.0, duration_ms=100)
    assert scheduler.pending == 1

    clock.advance_ms(200)
    scheduler.tick()
    assert target.value == 0.0


def test_detached_target_is_dropped_silently(clock, scheduler):
    target = Target()
    _schedule(scheduler, target)
    target.axes = None

    clock.advance_ms(500)
    assert scheduler.tick() is False
    assert target.value == 0.0


def test_finish_all_applies_end_values(scheduler):
    first, second = Target(), Target()
    _schedule(scheduler, first, key="a", end_value=3.0)
    _schedule(scheduler, second, key="b", end_value=7.0, delay_ms=5000)

    scheduler.finish_all()
    assert (first.value, second.value) == (3.0, 7.0)
    assert not scheduler.active


def test_cancel_all_leaves_values_untouched(clock, scheduler):
    target = Target()
    _schedule(scheduler, target)
    assert scheduler.cancel_all() == 1

    clock.advance_ms(2000)
    scheduler.tick()
    assert target.value == 0.0


def test_zero_duration_jumps_to_end(scheduler):
    target = Target()
    _schedule(scheduler, target, duration_ms=0)
    scheduler.tick()
    assert target.value == 10.0


def test_cubic_easing_endpoints():
    assert ease_cubic_in_out(0.0) == 0.0
    assert ease_cubic_in_out(0.5) == pytest.approx(0.5)
    assert ease_cubic_in_out(1.0) == 1.0


def test_is_attached_for_plain_objects():
    assert is_attached(Target())
    assert not is_attached(object())


def test_on_done_can_chain_a_follow_up_tween(clock, scheduler):
    first, second = Target(), Target()

    def _next_stage():
        _schedule(scheduler, second, key="second", end_value=4.0, duration_ms=200)

    _schedule(scheduler, first, key="first", on_done=_next_stage)
    clock.advance_ms(1000)
    assert scheduler.tick() is True
    assert first.value == 10.0
    assert second.value == 0.0

    clock.advance_ms(200)
    assert scheduler.tick() is False
    assert second.value == 4.0


def test_finish_all_runs_chained_stages(scheduler):
    first, second = Target(), Target()
    _schedule(
        scheduler,
        first,
        key="first",
        on_done=lambda: _schedule(scheduler, second, key="second", end_value=4.0),
    )
    scheduler.finish_all()
    assert (first.value, second.value) == (10.0, 4.0)
    assert scheduler.pending == 0


def test_on_done_skipped_for_detached_target(clock, scheduler):
    target = Target()
    done = []
    _schedule(scheduler, target, on_done=lambda: done.append(True))
    target.axes = None
    clock.advance_ms(2000)
    scheduler.tick()
    assert done == []
