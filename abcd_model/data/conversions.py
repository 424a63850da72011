"""Unit conversions for streamflow observations."""

from __future__ import annotations

import numpy as np
import pandas as pd

CFS_TO_M3S = 0.028316846592
SECONDS_PER_DAY = 86400.0


def cfs_to_hm3_per_month(flow_cfs: np.ndarray, days_in_month: np.ndarray) -> np.ndarray:
    """Monthly volume (hm3) from a mean monthly flow in cubic feet per second."""
    flow = np.asarray(flow_cfs, dtype=float)
    return flow * CFS_TO_M3S * SECONDS_PER_DAY * np.asarray(days_in_month, dtype=float) / 1.0e6


def hm3_to_mm(volume_hm3: np.ndarray, area_km2: float) -> np.ndarray:
    """Spread a volume (hm3) over the catchment area as a depth (mm)."""
    if area_km2 <= 0:
        raise ValueError(f"Catchment area must be positive, got {area_km2}")
    return np.asarray(volume_hm3, dtype=float) * 1.0e3 / area_km2


def cfs_to_mm_per_month(flow_cfs: np.ndarray, dates: pd.Series | pd.DatetimeIndex, area_km2: float) -> np.ndarray:
    days = pd.DatetimeIndex(dates).days_in_month.to_numpy()
    return hm3_to_mm(cfs_to_hm3_per_month(flow_cfs, days), area_km2)


__all__ = ["cfs_to_hm3_per_month", "hm3_to_mm", "cfs_to_mm_per_month"]
