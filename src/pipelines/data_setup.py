"""Utilities to load the raw dataset and describe its column roles."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

import pandas as pd

from src.data.data_loader import DataLoader

DEFAULT_DATA_REL_PATH = Path("data/raw/dataset.csv")


@dataclass(frozen=True)
class FeatureConfig:
    """Captures the column roles used across the tuning run."""

    target: str = "outcome"
    id_columns: list[str] = field(default_factory=lambda: ["id"])
    date_column: Optional[str] = "date"
    drop_columns: list[str] = field(default_factory=list)

    @property
    def excluded_columns(self) -> list[str]:
        """Columns that never reach the predictor matrix."""
        return [self.target] + self.id_columns + self.drop_columns

    @property
    def required_columns(self) -> list[str]:
        cols = [self.target] + self.id_columns
        if self.date_column:
            cols.append(self.date_column)
        return cols

    @classmethod
    def from_dict(cls, values: Optional[Dict]) -> "FeatureConfig":
        values = values or {}
        return cls(
            target=values.get("target", "outcome"),
            id_columns=list(values.get("id_columns") or []),
            date_column=values.get("date_column"),
            drop_columns=list(values.get("drop_columns") or []),
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "target": self.target,
            "id_columns": self.id_columns,
            "date_column": self.date_column,
            "drop_columns": self.drop_columns,
        }


DEFAULT_FEATURE_CONFIG = FeatureConfig()


def infer_project_root(start: Optional[Path] = None) -> Path:
    """Walk upwards until we find the repository root."""
    search_path = start or Path.cwd()
    for candidate in [search_path, *search_path.parents]:
        if (candidate / "data").exists() and (candidate / "src").exists():
            return candidate
    raise FileNotFoundError("Could not infer project root (missing data/ or src/).")


def resolve_data_path(raw_path: Optional[str] = None, project_root: Optional[Path] = None) -> Path:
    """Absolute paths are returned as-is; relative ones hang off the project root."""
    rel = Path(raw_path) if raw_path else DEFAULT_DATA_REL_PATH
    if rel.is_absolute():
        path = rel
    else:
        root = project_root or infer_project_root()
        path = root / rel
    if not path.exists():
        raise FileNotFoundError(f"Dataset not found at {path}")
    return path


def load_dataframe(
    data_path: Path, config: FeatureConfig = DEFAULT_FEATURE_CONFIG
) -> pd.DataFrame:
    """Load the CSV, validate column roles and parse the date column."""
    loader = DataLoader(
        str(data_path),
        required_columns=config.required_columns,
        date_column=config.date_column,
    )
    return loader.run()
