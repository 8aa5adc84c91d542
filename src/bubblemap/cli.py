"""CLI entrypoint for the bubblemap renderer."""

from __future__ import annotations

import argparse
import logging
from dataclasses import replace
from pathlib import Path
from typing import Sequence

from .config import AppConfig, RenderSettings, load_config
from .datasets import load_datasets
from .inspect_report import generate_inspection_report
from .models import GeoPoint
from .render import BubbleMapRenderer, format_render_lines, require_pyplot, run_render_datasets
from .util import ensure_directories, setup_logging
from .validate import Validator, format_report_lines

LOGGER = logging.getLogger("bubblemap.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bubblemap",
        description="District bubble map renderer.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", default="config.yaml", help="Path to YAML config.")
        p.add_argument("--verbose", action="store_true", help="Enable debug logs.")

    validate_p = subparsers.add_parser("validate", help="Validate config and dataset files.")
    add_common(validate_p)

    render_p = subparsers.add_parser("render", help="Render final-frame map images.")
    add_common(render_p)
    render_p.add_argument(
        "--dataset",
        action="append",
        default=[],
        help="Dataset name to render. Can be repeated. Defaults to all datasets.",
    )
    render_p.add_argument("--select", default=None, help="Label of the district to highlight.")
    render_p.add_argument(
        "--output",
        default=None,
        help="Output file path (only with a single --dataset).",
    )

    show_p = subparsers.add_parser("show", help="Open an interactive window with hover tooltips.")
    add_common(show_p)
    show_p.add_argument("--dataset", required=True, help="Dataset name to show.")
    show_p.add_argument("--select", default=None, help="Label of the district to highlight.")
    show_p.add_argument(
        "--no-animation",
        action="store_true",
        help="Draw bubbles at full size immediately.",
    )

    inspect_p = subparsers.add_parser(
        "inspect",
        help="Generate HTML + JSON report of computed radii, colors and labels.",
    )
    add_common(inspect_p)
    inspect_p.add_argument(
        "--dataset",
        action="append",
        default=[],
        help="Dataset name filter. Can be repeated.",
    )
    inspect_p.add_argument("--select", default=None, help="Label of the district to highlight.")

    return parser


def _load_and_setup(args: argparse.Namespace) -> AppConfig:
    cfg = load_config(args.config)
    log_path = cfg.paths.logs_dir / "bubblemap.log"
    setup_logging(log_path, verbose=args.verbose)
    ensure_directories(cfg.paths.build_directories)
    return cfg


def _run_validate(cfg: AppConfig) -> int:
    report = Validator(cfg).run()
    for line in format_report_lines(report):
        LOGGER.info(line)
    return 0 if report.ok else 1


def _run_render(
    cfg: AppConfig,
    *,
    datasets: Sequence[str],
    selected_label: str | None,
    output: str | None,
) -> int:
    report = run_render_datasets(
        cfg,
        dataset_names=datasets,
        selected_label=selected_label,
        output_path=Path(output).resolve() if output else None,
    )
    for line in format_render_lines(report):
        LOGGER.info(line)
    return 0 if report.ok else 1


def _run_show(
    cfg: AppConfig,
    *,
    dataset_name: str,
    selected_label: str | None,
    animate: bool,
) -> int:
    try:
        datasets = load_datasets(cfg.paths.datasets_dir, [dataset_name])
    except (OSError, ValueError) as exc:
        LOGGER.error("Failed loading dataset '%s': %s", dataset_name, exc)
        return 1
    dataset = datasets[0]

    settings = cfg.render
    if not animate:
        settings = _without_animation(cfg)

    plt = require_pyplot()
    figure = plt.figure(num=dataset.title, dpi=settings.image.dpi)

    def _log_hover(point: GeoPoint | None) -> None:
        if point is None:
            LOGGER.debug("Hovered: none")
        else:
            LOGGER.debug("Hovered: %s (%s)", point.label, point.metric_value)

    renderer = BubbleMapRenderer(settings, figure=figure, interactive=True)
    try:
        renderer.subscribe_hover(_log_hover)
        renderer.render(dataset.points, dataset.render_config(selected_label=selected_label))
        LOGGER.info("Showing '%s' (%d districts); close the window to exit.", dataset.name, len(dataset.points))
        plt.show()
    finally:
        renderer.close()
        plt.close(figure)
    return 0


def _without_animation(cfg: AppConfig) -> RenderSettings:
    return replace(cfg.render, animation=replace(cfg.render.animation, enabled=False))


def _run_inspect(cfg: AppConfig, *, datasets: Sequence[str], selected_label: str | None) -> int:
    try:
        html_path, json_path = generate_inspection_report(
            cfg,
            dataset_names=datasets,
            selected_label=selected_label,
        )
    except Exception as exc:
        LOGGER.error("Inspection report failed: %s", exc)
        return 1
    LOGGER.info("Inspection HTML report written to %s", html_path)
    LOGGER.info("Inspection JSON report written to %s", json_path)
    return 0


def _dispatch(args: argparse.Namespace) -> int:
    cfg = _load_and_setup(args)
    command = str(args.command)
    if command == "validate":
        return _run_validate(cfg)
    if command == "render":
        return _run_render(
            cfg,
            datasets=[str(item) for item in args.dataset],
            selected_label=args.select,
            output=args.output,
        )
    if command == "show":
        return _run_show(
            cfg,
            dataset_name=str(args.dataset),
            selected_label=args.select,
            animate=not bool(args.no_animation),
        )
    if command == "inspect":
        return _run_inspect(
            cfg,
            datasets=[str(item) for item in args.dataset],
            selected_label=args.select,
        )
    raise ValueError(f"Unknown command: {command}")


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    return _dispatch(args)


if __name__ == "__main__":
    raise SystemExit(main())
