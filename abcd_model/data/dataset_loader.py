"""CSV loading with alias-based column detection."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional

import pandas as pd

from .config_loader import DataSourceConfig

LOGGER = logging.getLogger(__name__)


class DatasetLoader:
    """Loads datasets described in the YAML configuration file."""

    def __init__(self, data_root: Path) -> None:
        self.data_root = data_root

    def load_table(self, config: DataSourceConfig) -> pd.DataFrame:
        path = config.path(self.data_root)
        if not path.exists():
            raise FileNotFoundError(f"Dataset not found: {path}")
        LOGGER.info("Loading table %s", path)
        return pd.read_csv(path)

    def map_columns(self, df: pd.DataFrame, config: DataSourceConfig, alias_mapping: Mapping[str, Iterable[str]]) -> Dict[str, str]:
        """Return actual column names based on alias definitions."""
        column_map: Dict[str, str] = {}
        for key, aliases in alias_mapping.items():
            aliases = list(aliases)
            actual = _find_column(df.columns, aliases)
            if actual is None:
                raise KeyError(
                    f"Could not identify column for '{key}' using aliases {aliases} in dataset '{config.name}'"
                )
            column_map[key] = actual
        return column_map

    def find_column(self, df: pd.DataFrame, aliases: Iterable[str]) -> Optional[str]:
        return _find_column(df.columns, list(aliases))


def to_month_start(values: pd.Series) -> pd.Series:
    """Collapse timestamps onto the first day of their month."""
    return pd.to_datetime(values).dt.to_period("M").dt.to_timestamp()


def _find_column(columns: Iterable[str], aliases: Iterable[str]) -> Optional[str]:
    normalized = {str(col).lower(): col for col in columns}
    for alias in aliases:
        alias_lower = alias.lower()
        if alias_lower in normalized:
            return normalized[alias_lower]
    # fall back to substring match; single letters only match exactly
    for alias in aliases:
        alias_lower = alias.lower()
        if len(alias_lower) < 2:
            continue
        for key, original in normalized.items():
            if alias_lower in key:
                return original
    return None


__all__ = ["DatasetLoader", "to_month_start"]
