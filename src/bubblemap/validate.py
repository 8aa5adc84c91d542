"""Validation layer for config and dataset files."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from .config import AppConfig
from .datasets import discover_dataset_files, load_dataset
from .layout import outline_problems, points_outside_canvas
from .models import Dataset
from .scales import build_color_scale
from .util import format_name_list


@dataclass(slots=True)
class ValidationReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    infos: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)

    def add_info(self, msg: str) -> None:
        self.infos.append(msg)


class Validator:
    """Top-level config and dataset validator."""

    def __init__(self, cfg: AppConfig) -> None:
        self.cfg = cfg

    def run(self) -> ValidationReport:
        report = ValidationReport()
        self._validate_style(report)
        datasets = self._load_datasets(report)
        names: set[str] = set()
        for dataset in datasets:
            if dataset.name in names:
                report.add_error(f"Duplicate dataset name '{dataset.name}'")
            names.add(dataset.name)
            self._validate_dataset(report, dataset)
        return report

    def _validate_style(self, report: ValidationReport) -> None:
        try:
            build_color_scale((), self.cfg.render.style.colormap)(0.0)
        except ValueError as exc:
            report.add_error(f"Invalid render.style.colormap: {exc}")
        if self.cfg.render.layout.mode == "mercator":
            report.add_info("Layout mode 'mercator': fixed point positions are ignored.")

    def _load_datasets(self, report: ValidationReport) -> list[Dataset]:
        datasets_dir = self.cfg.paths.datasets_dir
        try:
            files = discover_dataset_files(datasets_dir)
        except FileNotFoundError as exc:
            report.add_error(str(exc))
            return []
        if not files:
            report.add_warning(f"No dataset files found in {datasets_dir}")
            return []

        datasets: list[Dataset] = []
        for path in files:
            try:
                datasets.append(load_dataset(path))
            except Exception as exc:
                report.add_error(f"Failed parsing dataset '{path}': {exc}")
        report.add_info(f"Loaded {len(datasets)} of {len(files)} dataset file(s) from {datasets_dir}")
        return datasets

    def _validate_dataset(self, report: ValidationReport, dataset: Dataset) -> None:
        prefix = f"[{dataset.name}]"
        if not dataset.points:
            report.add_warning(f"{prefix} has no points; only outline and title will be drawn.")
        dupes = dataset.duplicate_labels()
        if dupes:
            report.add_warning(
                f"{prefix} duplicate labels (last drawn wins): {format_name_list(dupes)}"
            )
        for problem in outline_problems(dataset.outline_polygon):
            report.add_warning(f"{prefix} {problem}")

        config = dataset.render_config()
        if self.cfg.render.layout.mode == "fixed":
            outside = points_outside_canvas(dataset.points, config)
            if outside:
                report.add_warning(
                    f"{prefix} points outside the {config.canvas_width:g}x{config.canvas_height:g} "
                    f"canvas: {format_name_list(outside)}"
                )
        values = {point.metric_value for point in dataset.points}
        if len(values) == 1 and len(dataset.points) > 1:
            report.add_info(f"{prefix} all points share one value; bubbles will be equal sized.")
        report.add_info(f"{prefix} {len(dataset.points)} points, title '{dataset.title}'")


def format_report_lines(report: ValidationReport) -> Sequence[str]:
    lines: list[str] = []
    lines.extend(f"[INFO] {msg}" for msg in report.infos)
    lines.extend(f"[WARN] {msg}" for msg in report.warnings)
    lines.extend(f"[ERROR] {msg}" for msg in report.errors)
    return lines
