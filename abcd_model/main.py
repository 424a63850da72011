"""Entry point for calibrating the ABCD model on a single catchment."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Mapping, Optional, Sequence

import pandas as pd

from .data.config_loader import GlobalConfig, load_config
from .data.conversions import cfs_to_mm_per_month
from .data.dataset_loader import DatasetLoader, to_month_start
from .data.pet import PETCalculator, PETConfig
from .models.abcd import ForcingSeries
from .models.calibration import CalibrationResult, EvolutionaryOptimizer, Optimizer, calibrate
from .models.sceua import ShuffledComplexOptimizer
from .utils.logging import configure_logging

LOGGER = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="ABCD monthly water-balance calibration")
    parser.add_argument("config", type=Path, help="Path to YAML configuration file")
    parser.add_argument("--iterations", type=int, default=None, help="Override calibration.max_iterations")
    parser.add_argument("--seed", type=int, default=None, help="Override calibration.random_seed")
    parser.add_argument("--log-file", type=Path, default=None, help="Also write the log to this file")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    configure_logging(log_file=args.log_file)
    config = load_config(args.config)
    if args.iterations is not None:
        config.calibration.max_iterations = args.iterations
    if args.seed is not None:
        config.calibration.random_seed = args.seed
    LOGGER.info("Loaded configuration for %s", config.basin_name)

    result = run(config)
    print(", ".join(f"{k}={v:.3f}" for k, v in result.metrics.items()))


def run(config: GlobalConfig) -> CalibrationResult:
    loader = DatasetLoader(config.data_root)
    forcing_df = load_forcing(config, loader)
    observed = load_discharge(config, loader)

    merged = forcing_df.merge(observed, on="datetime", how="inner")
    if len(merged) != len(forcing_df):
        LOGGER.warning(
            "Dropped %d forcing months without discharge observations",
            len(forcing_df) - len(merged),
        )
    forcing = ForcingSeries.from_frame(merged, "P", "T", "PET", datetime_col="datetime")

    result = calibrate(
        forcing=forcing,
        observed=merged["flow"].to_numpy(dtype=float),
        initial_state=config.initial_state,
        optimizer=build_optimizer(config),
        bounds=config.parameter_bounds,
        transform=config.calibration.objective,
    )
    _export_results(result, config, merged["flow"])
    return result


def build_optimizer(config: GlobalConfig) -> Optimizer:
    cal = config.calibration
    if cal.method == "evolutionary":
        return EvolutionaryOptimizer(
            population_size=cal.population_size,
            max_iterations=cal.max_iterations,
            convergence_tolerance=cal.convergence_tolerance,
            random_seed=cal.random_seed,
            progress_interval=cal.progress_update_interval,
        )
    return ShuffledComplexOptimizer(
        n_complexes=cal.n_complexes,
        max_iterations=cal.max_iterations,
        tolerance=cal.convergence_tolerance,
        random_seed=cal.random_seed,
        progress_interval=cal.progress_update_interval,
    )


def load_forcing(config: GlobalConfig, loader: DatasetLoader) -> pd.DataFrame:
    """Monthly ``datetime, P, T, PET`` table, computing PET when absent."""
    forcing_cfg = config.data_sources["forcing"]
    forcing_df = loader.load_table(forcing_cfg)
    column_map = loader.map_columns(
        forcing_df,
        forcing_cfg,
        {
            "datetime": forcing_cfg.aliases("datetime_aliases") or ["date", "datetime"],
            "precip": forcing_cfg.aliases("precipitation_aliases") or ["precip", "prcp", "p"],
            "temp": forcing_cfg.aliases("temperature_aliases") or ["tavg", "temp", "t"],
        },
    )
    forcing_df = forcing_df.rename(
        columns={column_map["datetime"]: "datetime", column_map["precip"]: "P", column_map["temp"]: "T"}
    )
    forcing_df["datetime"] = to_month_start(forcing_df["datetime"])

    pet_column = loader.find_column(forcing_df, forcing_cfg.aliases("pet_aliases") or ["pet"])
    if pet_column is not None:
        forcing_df = forcing_df.rename(columns={pet_column: "PET"})
    else:
        if config.latitude is None:
            raise ValueError("general.latitude is required to compute PET when the forcing has no PET column")
        extremes = loader.map_columns(
            forcing_df,
            forcing_cfg,
            {
                "tmin": forcing_cfg.aliases("tmin_aliases") or ["tmin"],
                "tmax": forcing_cfg.aliases("tmax_aliases") or ["tmax"],
            },
        )
        output_setting = forcing_cfg.options.get("pet_output_path")
        calculator = PETCalculator(
            PETConfig(
                method=str(forcing_cfg.options.get("pet_method", "hargreaves")),
                output_path=config.output_directory / output_setting if output_setting else None,
            )
        )
        pet_df = calculator.compute(forcing_df, "datetime", config.latitude, extremes["tmin"], extremes["tmax"])
        calculator.save(pet_df)
        forcing_df["PET"] = pet_df["pet_mm"].to_numpy()

    return forcing_df[["datetime", "P", "T", "PET"]].sort_values("datetime").reset_index(drop=True)


def load_discharge(config: GlobalConfig, loader: DatasetLoader) -> pd.DataFrame:
    """Monthly ``datetime, flow`` table in mm/month."""
    discharge_cfg = config.data_sources["discharge"]
    discharge_df = loader.load_table(discharge_cfg)
    column_map = loader.map_columns(
        discharge_df,
        discharge_cfg,
        {
            "datetime": discharge_cfg.aliases("datetime_aliases") or ["date", "datetime"],
            "flow": discharge_cfg.aliases("flow_aliases") or ["flow", "discharge", "q"],
        },
    )
    discharge_df = discharge_df.rename(columns={column_map["datetime"]: "datetime", column_map["flow"]: "flow"})
    discharge_df["datetime"] = to_month_start(discharge_df["datetime"])

    units = str(discharge_cfg.options.get("units", "mm")).lower()
    if units == "cfs":
        if config.area_km2 is None:
            raise ValueError("general.area_km2 is required to convert discharge from cfs")
        discharge_df["flow"] = cfs_to_mm_per_month(
            discharge_df["flow"].to_numpy(dtype=float), discharge_df["datetime"], config.area_km2
        )
    elif units != "mm":
        raise ValueError(f"Unsupported discharge units: {units}")

    discharge_df = discharge_df.dropna(subset=["flow"])
    return discharge_df[["datetime", "flow"]].sort_values("datetime").reset_index(drop=True)


def _export_results(result: CalibrationResult, config: GlobalConfig, observed: pd.Series) -> None:
    output_dir = config.output_directory
    output_dir.mkdir(parents=True, exist_ok=True)

    params_path = output_dir / "calibrated_parameters.csv"
    pd.DataFrame([{"basin": config.basin_name, **result.parameters.to_dict(), "loss": result.loss}]).to_csv(
        params_path, index=False
    )
    _write_mapping(output_dir / "metrics.csv", result.metrics)

    trajectory = result.trajectory.to_frame()
    trajectory["observed"] = [float("nan")] + list(observed.to_numpy(dtype=float))
    trajectory.to_csv(output_dir / "trajectory.csv")
    LOGGER.info("Saved calibration outputs to %s", output_dir)


def _write_mapping(path: Path, values: Mapping[str, float]) -> None:
    pd.DataFrame([values]).to_csv(path, index=False)


if __name__ == "__main__":
    main()
