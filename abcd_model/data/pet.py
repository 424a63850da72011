"""Monthly PET from temperature extremes and latitude."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd

LOGGER = logging.getLogger(__name__)

SOLAR_CONSTANT = 0.0820  # MJ m-2 min-1
MJ_TO_MM = 0.408  # evaporation equivalent of 1 MJ m-2 (mm)


@dataclass
class PETConfig:
    method: str = "hargreaves"
    output_path: Optional[Path] = None


class PETCalculator:
    def __init__(self, config: PETConfig):
        self.config = config

    def compute(
        self,
        forcing: pd.DataFrame,
        datetime_col: str,
        location_lat: float,
        tmin_col: str = "tmin",
        tmax_col: str = "tmax",
    ) -> pd.DataFrame:
        LOGGER.info("Computing PET using %s method", self.config.method)
        method = self.config.method.lower()
        if method != "hargreaves":
            raise ValueError(f"Unsupported PET method: {self.config.method}")
        dates = pd.to_datetime(forcing[datetime_col])
        pet = hargreaves_monthly(
            dates,
            forcing[tmin_col].to_numpy(dtype=float),
            forcing[tmax_col].to_numpy(dtype=float),
            location_lat,
        )
        result = pd.DataFrame({"datetime": dates.to_numpy(), "pet_mm": pet})
        return result

    def save(self, pet_df: pd.DataFrame) -> Optional[Path]:
        if self.config.output_path is None:
            return None
        self.config.output_path.parent.mkdir(parents=True, exist_ok=True)
        pet_df.to_csv(self.config.output_path, index=False)
        return self.config.output_path


def hargreaves_monthly(
    dates: pd.Series | pd.DatetimeIndex,
    t_min: np.ndarray,
    t_max: np.ndarray,
    lat: float,
) -> np.ndarray:
    """Hargreaves PET (mm/month), radiation evaluated at mid-month."""
    index = pd.DatetimeIndex(dates)
    days = index.days_in_month.to_numpy()
    mid_month = (index.to_period("M").to_timestamp() + pd.to_timedelta(days // 2, unit="D")).dayofyear.to_numpy()
    ra = extraterrestrial_radiation(lat, mid_month) * MJ_TO_MM
    temp_mean = (t_min + t_max) / 2
    daily = 0.0023 * ra * (temp_mean + 17.8) * np.sqrt(np.maximum(t_max - t_min, 0))
    return np.maximum(daily, 0) * days


def extraterrestrial_radiation(lat: float, doy: np.ndarray) -> np.ndarray:
    """Daily top-of-atmosphere radiation (MJ m-2 day-1), FAO-56 eq. 21."""
    lat_rad = np.radians(lat)
    doy = np.asarray(doy, dtype=float)
    dr = 1 + 0.033 * np.cos(2 * np.pi / 365 * doy)
    delta = 0.409 * np.sin(2 * np.pi / 365 * doy - 1.39)
    ws = np.arccos(np.clip(-np.tan(lat_rad) * np.tan(delta), -1.0, 1.0))
    return (
        24 * 60 / np.pi * SOLAR_CONSTANT * dr * (
            ws * np.sin(lat_rad) * np.sin(delta) + np.cos(lat_rad) * np.cos(delta) * np.sin(ws)
        )
    )


__all__ = ["PETConfig", "PETCalculator", "hargreaves_monthly", "extraterrestrial_radiation"]
