"""Inspection report of computed bubble radii, colors and labels."""

from __future__ import annotations

import json
import os
from html import escape
from pathlib import Path
from typing import Any, Sequence

from .config import AppConfig
from .datasets import load_datasets
from .models import Dataset
from .render import label_font_px, label_text
from .scales import build_color_scale, build_size_scale, relative_luminance
from .tooltip import format_tooltip_text
from .util import write_json


def generate_inspection_report(
    cfg: AppConfig,
    *,
    dataset_names: Sequence[str] = (),
    selected_label: str | None = None,
) -> tuple[Path, Path]:
    """Write `inspect_report.json` and `inspect.html` into the reports dir."""
    datasets = load_datasets(cfg.paths.datasets_dir, dataset_names)
    entries = [
        _analyze_dataset(cfg, dataset=dataset, selected_label=selected_label)
        for dataset in datasets
    ]
    payload = {
        "meta": {
            "datasets_dir": str(cfg.paths.datasets_dir),
            "datasets_in_report": len(entries),
            "colormap": cfg.render.style.colormap,
            "layout_mode": cfg.render.layout.mode,
            "selected_label": selected_label,
        },
        "datasets": entries,
    }

    json_path = cfg.paths.reports_dir / "inspect_report.json"
    html_path = cfg.paths.reports_dir / "inspect.html"
    write_json(json_path, payload)
    _write_html_report(
        payload=payload,
        output_html=html_path,
        cards_per_dataset=cfg.inspect.cards_per_dataset,
        max_columns=cfg.inspect.max_columns,
    )
    return (html_path, json_path)


def _analyze_dataset(
    cfg: AppConfig,
    *,
    dataset: Dataset,
    selected_label: str | None,
) -> dict[str, Any]:
    style = cfg.render.style
    config = dataset.render_config(selected_label=selected_label)
    size_scale = build_size_scale(dataset.points, config.radius_range)
    color_scale = build_color_scale(dataset.points, style.colormap)

    points: list[dict[str, Any]] = []
    for idx, point in enumerate(dataset.points):
        radius = size_scale(point.metric_value)
        selected = selected_label is not None and point.label == selected_label
        fill = style.highlight_fill if selected else color_scale(point.metric_value)
        points.append(
            {
                "index": idx,
                "label": point.label,
                "metric_value": point.metric_value,
                "secondary_count": point.secondary_count,
                "x": point.position.x,
                "y": point.position.y,
                "latitude": point.latitude,
                "longitude": point.longitude,
                "radius_px": round(radius, 3),
                "fill": fill,
                "luminance": round(relative_luminance(fill), 4),
                "selected": selected,
                "label_text": label_text(
                    point,
                    min_value=config.label_min_value,
                    abbreviate=style.abbreviate_labels,
                ),
                "label_font_px": label_font_px(radius, style),
                "entrance_delay_ms": idx * cfg.render.animation.stagger_ms,
                "tooltip": format_tooltip_text(
                    point,
                    config.metric_caption,
                    config.secondary_caption,
                ),
            }
        )

    map_name = f"map_{dataset.name}.{cfg.render.image.format}"
    map_path = cfg.paths.output_dir / map_name
    return {
        "name": dataset.name,
        "title": dataset.title,
        "metric_caption": dataset.metric_caption,
        "canvas": {"width": dataset.canvas_width, "height": dataset.canvas_height},
        "radius_range": list(dataset.radius_range),
        "domain": list(size_scale.domain),
        "degenerate_domain": size_scale.is_degenerate,
        "total_value": sum(point.metric_value for point in dataset.points),
        "duplicate_labels": dataset.duplicate_labels(),
        "map_exists": map_path.exists(),
        "map_href": _relative_href(map_path, cfg.paths.reports_dir),
        "points": points,
    }


def _relative_href(target: Path, start: Path) -> str:
    try:
        return Path(os.path.relpath(target, start)).as_posix()
    except ValueError:
        return target.as_uri()


def _format_value(value: float) -> str:
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}"


def _write_html_report(
    *,
    payload: dict[str, Any],
    output_html: Path,
    cards_per_dataset: int,
    max_columns: int,
) -> None:
    sections: list[str] = []
    for entry in payload["datasets"]:
        cards: list[str] = []
        for point in entry["points"][:cards_per_dataset]:
            card_class = "card selected" if point["selected"] else "card"
            cards.append(
                "\n".join(
                    [
                        f"      <div class='{card_class}'>",
                        f"        <h3>{escape(point['label'])}</h3>",
                        f"        <div class='value'>{escape(_format_value(point['metric_value']))}</div>",
                        f"        <p class='muted'>{escape(entry['metric_caption'])}</p>",
                        (
                            "        <p class='muted'>Coordinates: "
                            f"{point['latitude']:.2f}°N, {point['longitude']:.2f}°E</p>"
                        ),
                        "      </div>",
                    ]
                )
            )

        table_rows: list[str] = []
        for point in entry["points"]:
            swatch = f"<span class='swatch' style='background:{escape(point['fill'])}'></span>"
            table_rows.append(
                "\n".join(
                    [
                        "      <tr>",
                        f"        <td>{point['index']}</td>",
                        f"        <td>{escape(point['label'])}</td>",
                        f"        <td>{escape(_format_value(point['metric_value']))}</td>",
                        f"        <td>{point['radius_px']:.1f}</td>",
                        f"        <td>{swatch} {escape(point['fill'])}</td>",
                        f"        <td>{escape(point['label_text']) or '-'}</td>",
                        f"        <td>{point['entrance_delay_ms']:g}</td>",
                        "        <td><details><summary>tooltip</summary>"
                        f"<pre>{escape(point['tooltip'])}</pre></details></td>",
                        "      </tr>",
                    ]
                )
            )

        map_preview = (
            f"    <img src='{escape(entry['map_href'])}' alt='Map {escape(entry['name'])}'>"
            if entry["map_exists"]
            else "    <p class='muted'>Map not rendered yet (run `bubblemap render`).</p>"
        )
        details_json = json.dumps(
            {
                "domain": entry["domain"],
                "radius_range": entry["radius_range"],
                "degenerate_domain": entry["degenerate_domain"],
                "duplicate_labels": entry["duplicate_labels"],
            },
            ensure_ascii=False,
            indent=2,
        )
        sections.append(
            "\n".join(
                [
                    "  <section>",
                    f"    <h2>{escape(entry['title'])} <span class='muted'>({escape(entry['name'])})</span></h2>",
                    f"    <p>Total {escape(entry['metric_caption'])}: "
                    f"{escape(_format_value(entry['total_value']))}</p>",
                    map_preview,
                    f"    <pre>{escape(details_json)}</pre>",
                    "    <div class='grid'>",
                    *cards,
                    "    </div>",
                    "    <table>",
                    "      <thead>",
                    "        <tr><th>#</th><th>District</th><th>Value</th><th>Radius (px)</th>"
                    "<th>Fill</th><th>Label</th><th>Delay (ms)</th><th>Tooltip</th></tr>",
                    "      </thead>",
                    "      <tbody>",
                    *table_rows,
                    "      </tbody>",
                    "    </table>",
                    "  </section>",
                ]
            )
        )

    html = "\n".join(
        [
            "<!doctype html>",
            "<html lang='en'>",
            "<head>",
            "  <meta charset='utf-8'>",
            "  <meta name='viewport' content='width=device-width, initial-scale=1'>",
            "  <title>bubblemap inspect report</title>",
            "  <style>",
            "    body { font-family: Segoe UI, Arial, sans-serif; margin: 20px; color: #111; }",
            "    h1, h2 { margin: 0 0 12px 0; }",
            "    section { margin: 0 0 28px 0; padding: 12px; border: 1px solid #ddd; border-radius: 8px; }",
            "    .grid { "
            f"display: grid; grid-template-columns: repeat({max_columns}, minmax(200px, 1fr)); "
            "gap: 12px; margin: 12px 0; }",
            "    .card { border: 1px solid #ddd; border-radius: 8px; padding: 12px; }",
            "    .card.selected { box-shadow: 0 0 0 2px #3b82f6; }",
            "    .card h3 { margin: 0 0 8px 0; font-size: 16px; }",
            "    .value { font-size: 24px; font-weight: 700; color: #2563eb; }",
            "    .muted { color: #666; font-size: 12px; margin: 4px 0; }",
            "    .swatch { display: inline-block; width: 12px; height: 12px; border-radius: 6px; "
            "vertical-align: middle; border: 1px solid #ccc; }",
            "    img { display: block; max-width: 100%; border: 1px solid #ddd; border-radius: 8px; }",
            "    table { border-collapse: collapse; width: 100%; }",
            "    th, td { border: 1px solid #ddd; padding: 6px; vertical-align: top; text-align: left; }",
            "    th { background: #f4f4f4; }",
            "    pre { white-space: pre-wrap; margin: 8px 0; background: #fafafa; padding: 8px; border-radius: 6px; }",
            "  </style>",
            "</head>",
            "<body>",
            "  <h1>Bubble Map Inspect Report</h1>",
            f"  <p class='muted'>Colormap: {escape(str(payload['meta']['colormap']))}, "
            f"layout: {escape(str(payload['meta']['layout_mode']))}</p>",
            *sections,
            "</body>",
            "</html>",
            "",
        ]
    )
    output_html.parent.mkdir(parents=True, exist_ok=True)
    output_html.write_text(html, encoding="utf-8")
