"""District dataset loading and discovery."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

import yaml

from .models import Dataset


_LOGGER = logging.getLogger("bubblemap.datasets")

DATASET_SUFFIXES = (".yaml", ".yml")


def load_dataset(path: Path) -> Dataset:
    """Load one dataset file; the file stem is the default dataset name."""
    if not path.exists():
        raise FileNotFoundError(f"Dataset file not found: {path}")
    with path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if not isinstance(raw, dict):
        raise ValueError(f"Expected mapping in {path}")
    try:
        dataset = Dataset.from_mapping(raw, default_name=path.stem)
    except ValueError as exc:
        raise ValueError(f"{path}: {exc}") from exc
    dupes = dataset.duplicate_labels()
    if dupes:
        _LOGGER.warning(
            "Dataset '%s' has duplicate labels (last drawn wins): %s",
            dataset.name,
            ", ".join(dupes),
        )
    return dataset


def discover_dataset_files(datasets_dir: Path) -> list[Path]:
    if not datasets_dir.exists():
        raise FileNotFoundError(f"Datasets directory not found: {datasets_dir}")
    return sorted(
        path
        for path in datasets_dir.iterdir()
        if path.is_file() and path.suffix.casefold() in DATASET_SUFFIXES
    )


def load_datasets(datasets_dir: Path, names: Sequence[str] | None = None) -> list[Dataset]:
    """Load every dataset in `datasets_dir`, optionally filtered by name."""
    datasets: list[Dataset] = []
    seen: set[str] = set()
    for path in discover_dataset_files(datasets_dir):
        dataset = load_dataset(path)
        if dataset.name in seen:
            raise ValueError(f"Duplicate dataset name '{dataset.name}' in {datasets_dir}")
        seen.add(dataset.name)
        datasets.append(dataset)

    requested = {item.strip() for item in names or () if item and item.strip()}
    if requested:
        missing = sorted(requested - seen)
        if missing:
            raise ValueError("Unknown dataset name(s): " + ", ".join(missing))
        datasets = [dataset for dataset in datasets if dataset.name in requested]
    return datasets
