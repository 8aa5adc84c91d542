import dataclasses
import logging

import pytest
from matplotlib.backend_bases import LocationEvent, MouseEvent

from bubblemap.config import RenderSettings
from bubblemap.layout import mercator_positions
from bubblemap.models import GeoPoint, Position
from bubblemap.render import BubbleMapRenderer, label_font_px, label_text
from bubblemap.scales import relative_luminance

from conftest import make_point


def _circle_state(renderer):
    return [
        (
            bubble.point.label,
            tuple(bubble.circle.get_facecolor()),
            tuple(bubble.circle.get_edgecolor()),
            bubble.circle.get_linewidth(),
        )
        for bubble in renderer.bubbles
    ]


def test_empty_points_draw_outline_and_title_only(renderer, render_config):
    renderer.render([], render_config)

    assert renderer.bubbles == ()
    assert len(renderer.axes.patches) == 1
    assert [text.get_text() for text in renderer.axes.texts] == ["Test Map"]


def test_concrete_values_map_to_radius_and_color_extremes(renderer, five_points, render_config):
    renderer.render(five_points, render_config)
    renderer.finish_animations()

    radii = {b.point.label: b.circle.get_radius() for b in renderer.bubbles}
    assert radii["Nagaon"] == pytest.approx(50.0)
    assert radii["Dibrugarh"] == pytest.approx(15.0)
    ordered = [radii[p.point.label] for p in renderer.bubbles]
    assert ordered == sorted(ordered, reverse=True)
    assert len(set(ordered)) == 5

    luminance = [relative_luminance(renderer.color_scale(b.point.metric_value)) for b in renderer.bubbles]
    assert luminance == sorted(luminance)
    assert min(luminance) == luminance[0]


def test_bubbles_start_at_zero_and_grow_with_stagger(clock, renderer, five_points, render_config):
    renderer.render(five_points, render_config)
    assert all(b.circle.get_radius() == 0.0 for b in renderer.bubbles)
    assert all(b.label.get_alpha() == 0.0 for b in renderer.bubbles)

    clock.advance_ms(150)
    renderer.scheduler.tick()
    radii = [b.circle.get_radius() for b in renderer.bubbles]
    assert radii[0] > 0.0
    assert radii[1] > 0.0
    assert radii[2:] == [0.0, 0.0, 0.0]

    clock.advance_ms(5000)
    # every bubble is full size; the label fades were queued just now
    assert renderer.scheduler.tick() is True
    assert renderer.bubbles[0].circle.get_radius() == pytest.approx(50.0)
    assert all(b.label.get_alpha() == 0.0 for b in renderer.bubbles)

    clock.advance_ms(5000)
    assert renderer.scheduler.tick() is False
    assert all(b.label.get_alpha() == 1.0 for b in renderer.bubbles)


def test_animation_disabled_draws_final_state_immediately(scheduler, five_points, render_config):
    base = RenderSettings.default()
    settings = dataclasses.replace(base, animation=dataclasses.replace(base.animation, enabled=False))
    with BubbleMapRenderer(settings, scheduler=scheduler) as renderer:
        renderer.render(five_points, render_config)
        assert scheduler.pending == 0
        assert renderer.bubbles[0].circle.get_radius() == pytest.approx(50.0)


def test_rerender_does_not_duplicate_elements(renderer, five_points, render_config):
    renderer.render(five_points, render_config)
    before = renderer.element_count()
    renderer.render(five_points, render_config)
    renderer.render(five_points, render_config)

    assert renderer.element_count() == before
    # outline + title + circle and label per point
    assert before == 2 + 2 * len(five_points)


def test_selection_changes_only_the_selected_bubble(renderer, five_points, render_config):
    renderer.render(five_points, render_config)
    renderer.finish_animations()
    plain = _circle_state(renderer)

    renderer.render(five_points, dataclasses.replace(render_config, selected_label="Sonitpur"))
    renderer.finish_animations()
    highlighted = _circle_state(renderer)

    for before, after in zip(plain, highlighted):
        if before[0] == "Sonitpur":
            assert before != after
            assert after[3] > before[3]
        else:
            assert before == after
    assert renderer.bubble("Sonitpur").selected


def test_hover_enter_leave_restores_visuals(renderer, five_points, render_config):
    seen = []
    renderer.subscribe_hover(seen.append)
    renderer.render(five_points, render_config)
    renderer.finish_animations()

    bubble = renderer.bubble("Kamrup Metro")
    alpha_before = bubble.circle.get_alpha()
    width_before = bubble.circle.get_linewidth()

    renderer.hover.enter(bubble, (200.0, 100.0))
    renderer.finish_animations()
    assert bubble.circle.get_alpha() == 1.0
    assert bubble.circle.get_linewidth() > width_before
    assert renderer.hover.hovered == bubble.point
    assert renderer.tooltip.visible
    assert renderer.tooltip.text.startswith("Kamrup Metro\nUsers: 5.67")

    renderer.hover.move((250.0, 120.0))
    assert renderer.hover.hovered == bubble.point

    renderer.hover.leave()
    renderer.finish_animations()
    assert bubble.circle.get_alpha() == alpha_before
    assert bubble.circle.get_linewidth() == width_before
    assert renderer.hover.hovered is None
    assert not renderer.tooltip.visible
    assert seen == [bubble.point, None]


def test_hover_moving_between_bubbles_leaves_first(renderer, five_points, render_config):
    seen = []
    renderer.subscribe_hover(seen.append)
    renderer.render(five_points, render_config)
    first, second = renderer.bubbles[0], renderer.bubbles[1]

    renderer.hover.enter(first, (10.0, 10.0))
    renderer.hover.enter(second, (20.0, 20.0))
    renderer.finish_animations()

    assert seen == [first.point, None, second.point]
    assert first.circle.get_alpha() == first.rest_alpha
    assert second.circle.get_alpha() == 1.0


def test_pointer_events_drive_hover(renderer, five_points, render_config):
    renderer.render(five_points, render_config)
    renderer.finish_animations()
    canvas = renderer.figure.canvas
    target = renderer.bubble("Nagaon")

    x, y = renderer.axes.transData.transform((target.point.position.x, target.point.position.y))
    canvas.callbacks.process("motion_notify_event", MouseEvent("motion_notify_event", canvas, x, y))
    assert renderer.hover.hovered == target.point

    far_x, far_y = renderer.axes.transData.transform((10.0, 390.0))
    canvas.callbacks.process(
        "motion_notify_event",
        MouseEvent("motion_notify_event", canvas, far_x, far_y),
    )
    assert renderer.hover.hovered is None


def test_rerender_clears_hover_state(renderer, five_points, render_config):
    seen = []
    renderer.subscribe_hover(seen.append)
    renderer.render(five_points, render_config)
    renderer.hover.enter(renderer.bubbles[0], (0.0, 0.0))

    renderer.render(five_points, render_config)
    assert renderer.hover.hovered is None
    assert seen[-1] is None
    assert not renderer.tooltip.visible


def test_close_releases_tooltip_and_cancels_animations(clock, scheduler, five_points, render_config):
    renderer = BubbleMapRenderer(RenderSettings.default(), scheduler=scheduler)
    figure = renderer.figure
    renderer.render(five_points, render_config)
    renderer.hover.enter(renderer.bubbles[0], (5.0, 5.0))
    tooltip_artist = renderer.tooltip.artist
    assert tooltip_artist in figure.texts

    clock.advance_ms(100)
    scheduler.tick()
    renderer.close()

    assert tooltip_artist not in figure.texts
    assert scheduler.pending == 0
    assert figure.axes == []
    renderer.close()
    with pytest.raises(RuntimeError):
        renderer.render(five_points, render_config)


def test_repeated_mounts_on_one_figure_do_not_leak_tooltips(scheduler, five_points, render_config):
    first = BubbleMapRenderer(RenderSettings.default(), scheduler=scheduler)
    figure = first.figure
    for _ in range(3):
        renderer = BubbleMapRenderer(RenderSettings.default(), figure=figure)
        renderer.render(five_points, render_config)
        renderer.hover.enter(renderer.bubbles[0], (5.0, 5.0))
        renderer.close()
    first.close()
    assert figure.texts == []
    assert figure.axes == []


def test_tween_on_removed_artist_is_ignored(clock, renderer, five_points, render_config):
    renderer.render(five_points, render_config)
    removed = renderer.bubbles[3].circle
    removed.remove()

    clock.advance_ms(10_000)
    renderer.scheduler.tick()
    assert removed.get_radius() == 0.0
    assert renderer.bubbles[0].circle.get_radius() == pytest.approx(50.0)


def test_duplicate_labels_warn_and_last_drawn_wins(renderer, render_config, caplog):
    points = [
        make_point("Tezpur", 10.0, x=100.0),
        make_point("Tezpur", 20.0, x=300.0),
        make_point("Jorhat", 30.0, x=500.0),
    ]
    with caplog.at_level(logging.WARNING, logger="bubblemap.render"):
        renderer.render(points, render_config)

    assert len(renderer.bubbles) == 3
    assert renderer.bubble("Tezpur").point.metric_value == 20.0
    assert any("Tezpur" in record.getMessage() for record in caplog.records)


def test_equal_values_give_identical_midpoint_radii(renderer, render_config):
    points = [make_point(f"d{i}", 5.0, x=100.0 + 50 * i) for i in range(4)]
    renderer.render(points, render_config)
    renderer.finish_animations()
    radii = {b.circle.get_radius() for b in renderer.bubbles}
    assert radii == {32.5}


def test_legend_draws_swatch_and_caption_per_entry(renderer, five_points, render_config):
    from bubblemap.models import LegendEntry

    config = dataclasses.replace(
        render_config,
        legend=(LegendEntry("small", 3.0), LegendEntry("large", 9.0)),
    )
    renderer.render(five_points, config)
    assert renderer.element_count() == 2 + 2 * len(five_points) + 4


def test_label_text_threshold_and_abbreviation():
    point = make_point("North Lakhimpur", 250)
    assert label_text(point, min_value=200, abbreviate=True) == "North"
    assert label_text(point, min_value=200, abbreviate=False) == "North Lakhimpur"
    assert label_text(make_point("Haflong", 89), min_value=200, abbreviate=True) == ""


def test_label_font_grows_with_radius(settings, renderer, five_points, render_config):
    style = settings.style
    assert label_font_px(25.0, style) == style.label_font_large_px
    assert label_font_px(20.0, style) == style.label_font_small_px

    renderer.render(five_points, render_config)
    big = renderer.bubble("Nagaon")
    assert big.label.get_fontsize() == pytest.approx(renderer.px_to_pt(style.label_font_large_px))
    assert big.label.get_text() == "Nagaon"


def test_save_writes_final_frame(tmp_path, renderer, five_points, render_config):
    renderer.render(five_points, render_config)
    out = renderer.save(tmp_path / "maps" / "map.png")
    assert out.exists() and out.stat().st_size > 0
    assert renderer.bubbles[0].circle.get_radius() == pytest.approx(50.0)


def test_label_fades_in_only_after_its_bubble_is_full_size(clock, renderer, five_points, render_config):
    renderer.render(five_points, render_config)
    first, second = renderer.bubbles[0], renderer.bubbles[1]

    clock.advance_ms(999)
    renderer.scheduler.tick()
    assert first.circle.get_radius() < 50.0
    assert first.label.get_alpha() == 0.0

    clock.advance_ms(11)
    renderer.scheduler.tick()
    assert first.circle.get_radius() == pytest.approx(50.0)
    assert first.label.get_alpha() == 0.0

    clock.advance_ms(50)
    renderer.scheduler.tick()
    # first bubble's fade has started; the second bubble is still growing
    assert first.label.get_alpha() > 0.0
    assert second.circle.get_radius() < second.radius
    assert second.label.get_alpha() == 0.0


def test_blank_labels_are_rejected_before_render():
    with pytest.raises(ValueError, match="label"):
        make_point("", 5.0)
    with pytest.raises(ValueError, match="label"):
        GeoPoint("   ", 5.0, Position(0, 0), 26.0, 92.0)


def test_mercator_layout_moves_bubbles_to_projected_positions(scheduler, render_config):
    base = RenderSettings.default()
    settings = dataclasses.replace(base, layout=dataclasses.replace(base.layout, mode="mercator"))
    points = [
        make_point("Dhubri", 6.34, x=1.0, y=1.0, lat=26.0167, lng=89.9833),
        make_point("Guwahati", 5.67, x=1.0, y=1.0, lat=26.1445, lng=91.7362),
        make_point("Dibrugarh", 2.98, x=1.0, y=1.0, lat=27.4728, lng=94.9120),
    ]
    expected = mercator_positions(points, render_config, padding_px=settings.layout.padding_px)

    with BubbleMapRenderer(settings, scheduler=scheduler) as renderer:
        renderer.render(points, render_config)
        centers = [b.circle.center for b in renderer.bubbles]
        assert centers == [(p.position.x, p.position.y) for p in expected]
        assert centers[0][0] < centers[1][0] < centers[2][0]
        assert centers[2][1] < centers[0][1]
        assert renderer.bubble("Guwahati").label.get_position() == centers[1]


@pytest.mark.parametrize("event_name", ["axes_leave_event", "figure_leave_event"])
def test_pointer_leaving_the_map_clears_hover(renderer, five_points, render_config, event_name):
    seen = []
    renderer.subscribe_hover(seen.append)
    renderer.render(five_points, render_config)
    renderer.finish_animations()
    canvas = renderer.figure.canvas
    target = renderer.bubble("Dhubri")

    x, y = renderer.axes.transData.transform((target.point.position.x, target.point.position.y))
    canvas.callbacks.process("motion_notify_event", MouseEvent("motion_notify_event", canvas, x, y))
    assert renderer.hover.hovered == target.point
    assert renderer.tooltip.visible

    canvas.callbacks.process(event_name, LocationEvent(event_name, canvas, x, y))
    renderer.finish_animations()
    assert renderer.hover.hovered is None
    assert not renderer.tooltip.visible
    assert target.circle.get_alpha() == target.rest_alpha
    assert seen == [target.point, None]
