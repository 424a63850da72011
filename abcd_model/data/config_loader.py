"""Configuration loading for ABCD model runs."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional

import yaml

from ..models.abcd import ModelState
from ..models.calibration import ParameterBounds


@dataclass
class DataSourceConfig:
    name: str
    options: Mapping[str, Any]

    def path(self, root: Path) -> Path:
        path_value = self.options.get("path")
        if path_value is None:
            raise ValueError(f"Data source '{self.name}' is missing the 'path' entry")
        return (root / Path(path_value)).expanduser().resolve()

    def aliases(self, key: str) -> Iterable[str]:
        value = self.options.get(key, [])
        if isinstance(value, str):
            return [value]
        return list(value)


@dataclass
class CalibrationConfig:
    method: str
    objective: str
    max_iterations: int
    population_size: int
    n_complexes: int
    convergence_tolerance: float
    random_seed: Optional[int]
    progress_update_interval: int


@dataclass
class GlobalConfig:
    basin_name: str
    output_directory: Path
    latitude: Optional[float]
    area_km2: Optional[float]
    data_root: Path
    data_sources: Dict[str, DataSourceConfig]
    initial_state: ModelState
    parameter_bounds: ParameterBounds
    calibration: CalibrationConfig


def load_config(path: Path | str) -> GlobalConfig:
    path = Path(path)
    with path.open("r", encoding="utf-8") as stream:
        raw = yaml.safe_load(stream) or {}

    general = raw.get("general", {})
    data_sources_raw = raw.get("data_sources", {})
    state_raw = raw.get("initial_state") or {}
    calibration_raw = raw.get("calibration", {})

    data_sources = {
        name: DataSourceConfig(name=name, options=options)
        for name, options in data_sources_raw.items()
    }

    calibration = CalibrationConfig(
        method=str(calibration_raw.get("method", "sceua")).lower(),
        objective=str(calibration_raw.get("objective", "sse")).lower(),
        max_iterations=int(calibration_raw.get("max_iterations", 100)),
        population_size=int(calibration_raw.get("population_size", 20)),
        n_complexes=int(calibration_raw.get("n_complexes", 2)),
        convergence_tolerance=float(calibration_raw.get("convergence_tolerance", 1e-4)),
        random_seed=calibration_raw.get("random_seed"),
        progress_update_interval=int(calibration_raw.get("progress_update_interval", 10)),
    )
    if calibration.method not in {"sceua", "evolutionary"}:
        raise ValueError(f"Unsupported calibration method: {calibration.method}")

    missing = [key for key in ("S", "G", "A") if state_raw.get(key) is None]
    if missing:
        raise ValueError(f"initial_state is missing required storage(s): {', '.join(missing)}")
    initial_state = ModelState(S=float(state_raw["S"]), G=float(state_raw["G"]), A=float(state_raw["A"]))

    root = path.parent
    output_directory = (root / general.get("output_directory", "outputs")).resolve()

    config = GlobalConfig(
        basin_name=str(general.get("basin_name", "Catchment")),
        output_directory=output_directory,
        latitude=_optional_float(general.get("latitude")),
        area_km2=_optional_float(general.get("area_km2")),
        data_root=root,
        data_sources=data_sources,
        initial_state=initial_state,
        parameter_bounds=ParameterBounds.from_mapping(raw.get("parameter_bounds", {})),
        calibration=calibration,
    )

    config.output_directory.mkdir(parents=True, exist_ok=True)
    return config


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


__all__ = ["DataSourceConfig", "CalibrationConfig", "GlobalConfig", "load_config"]
