"""Lumped monthly ABCD water-balance model with a frozen-storage extension."""

from __future__ import annotations

import math
from dataclasses import dataclass, fields
from typing import Dict, Iterable, Optional, Tuple

import numpy as np
import pandas as pd

from .exceptions import ForcingError, InvalidParameterError, NumericDomainError

# decimals kept on the water surplus before it is split into recharge and runoff
SURPLUS_DECIMALS = 2

# negative discriminants smaller than this fraction of w1**2 are round-off
DISCRIMINANT_RTOL = 1e-12


@dataclass(frozen=True)
class ABCDParameters:
    """Calibratable parameters, in optimizer vector order."""

    a: float
    b: float
    c: float
    d: float
    e: float
    Tm: float

    @staticmethod
    def names() -> Tuple[str, ...]:
        return tuple(f.name for f in fields(ABCDParameters))

    @staticmethod
    def from_vector(vec: Iterable[float]) -> "ABCDParameters":
        values = [float(v) for v in vec]
        keys = ABCDParameters.names()
        if len(values) != len(keys):
            raise InvalidParameterError(
                f"Expected {len(keys)} parameter values, got {len(values)}"
            )
        return ABCDParameters(**dict(zip(keys, values)))

    def as_array(self) -> np.ndarray:
        return np.array([getattr(self, name) for name in self.names()], dtype=float)

    def to_dict(self) -> Dict[str, float]:
        return {name: float(getattr(self, name)) for name in self.names()}

    def validate(self) -> None:
        """Reject values for which the quadratic partition is undefined."""
        if not self.b > 0:
            raise InvalidParameterError(f"Soil storage capacity b must be positive, got {self.b}")
        if not self.a > 0:
            raise InvalidParameterError(f"Parameter a must be positive, got {self.a}")


@dataclass(frozen=True)
class ModelState:
    """Storages carried from one month to the next (mm)."""

    S: float
    G: float
    A: float


@dataclass(frozen=True)
class StepFluxes:
    mt: float
    Pe: float
    PETe: float
    W: float
    Y: float
    E: float
    Q: float


class ForcingSeries:
    """Aligned monthly precipitation, temperature and PET.

    Parameters
    ----------
    precipitation:
        Monthly precipitation (mm/month).
    temperature:
        Monthly mean temperature (degrees).
    pet:
        Monthly potential evapotranspiration (mm/month).
    dates:
        Optional month stamps. When given they must be consecutive months
        with no duplicates, since the recursion assumes one record per month.
    """

    def __init__(
        self,
        precipitation: Iterable[float],
        temperature: Iterable[float],
        pet: Iterable[float],
        dates: Optional[Iterable] = None,
    ) -> None:
        self.precipitation = _readonly(precipitation)
        self.temperature = _readonly(temperature)
        self.pet = _readonly(pet)
        lengths = {self.precipitation.size, self.temperature.size, self.pet.size}
        if len(lengths) != 1:
            raise ForcingError(
                "Forcing arrays differ in length: "
                f"P={self.precipitation.size}, T={self.temperature.size}, PET={self.pet.size}"
            )
        for name, values in (("P", self.precipitation), ("T", self.temperature), ("PET", self.pet)):
            if not np.all(np.isfinite(values)):
                raise ForcingError(f"Forcing variable {name} contains non-finite values")
        self.dates: Optional[pd.DatetimeIndex] = None
        if dates is not None:
            index = pd.DatetimeIndex(pd.to_datetime(list(dates)))
            if index.size != self.precipitation.size:
                raise ForcingError(
                    f"Got {index.size} dates for {self.precipitation.size} forcing records"
                )
            _check_monthly(index)
            self.dates = index

    def __len__(self) -> int:
        return int(self.precipitation.size)

    @staticmethod
    def from_frame(
        df: pd.DataFrame,
        precipitation_field: str = "P",
        temperature_field: str = "T",
        pet_field: str = "PET",
        datetime_col: Optional[str] = None,
    ) -> "ForcingSeries":
        if datetime_col is not None:
            dates = df[datetime_col]
        elif isinstance(df.index, pd.DatetimeIndex):
            dates = df.index
        else:
            dates = None
        return ForcingSeries(
            precipitation=df[precipitation_field].to_numpy(dtype=float),
            temperature=df[temperature_field].to_numpy(dtype=float),
            pet=df[pet_field].to_numpy(dtype=float),
            dates=dates,
        )


class Trajectory:
    """Full per-month record of one simulation.

    Every array has ``len(forcing) + 1`` entries. Entry 0 holds the initial
    storages and zero fluxes.
    """

    VARIABLES = ("mt", "Pe", "PETe", "W", "Y", "E", "Q", "S", "G", "A")

    def __init__(self, arrays: Dict[str, np.ndarray], dates: Optional[pd.DatetimeIndex] = None) -> None:
        missing = [name for name in self.VARIABLES if name not in arrays]
        if missing:
            raise KeyError(f"Trajectory is missing variables {missing}")
        self._arrays = {}
        for name in self.VARIABLES:
            values = np.array(arrays[name], dtype=float)
            values.flags.writeable = False
            self._arrays[name] = values
        self.dates = dates

    def __len__(self) -> int:
        return int(self._arrays["S"].size)

    def __getitem__(self, name: str) -> np.ndarray:
        return self._arrays[name]

    def __getattr__(self, name: str) -> np.ndarray:
        arrays = self.__dict__.get("_arrays", {})
        if name in arrays:
            return arrays[name]
        raise AttributeError(name)

    @property
    def streamflow(self) -> np.ndarray:
        """Simulated runoff without the initial record."""
        return self._arrays["Q"][1:]

    @property
    def final_state(self) -> ModelState:
        return ModelState(
            S=float(self._arrays["S"][-1]),
            G=float(self._arrays["G"][-1]),
            A=float(self._arrays["A"][-1]),
        )

    def to_frame(self) -> pd.DataFrame:
        df = pd.DataFrame({name: self._arrays[name] for name in self.VARIABLES})
        df.index.name = "step"
        if self.dates is not None:
            df.insert(0, "date", pd.DatetimeIndex([pd.NaT]).append(self.dates))
        return df


def partition_snow(
    temperature: float,
    threshold: float,
    frozen_storage: float,
    precipitation: float,
    pet: float,
    melt_rate: float,
) -> Tuple[float, float, float, float]:
    """Split monthly input between the soil and the frozen reservoir.

    Returns ``(melt, effective_precip, effective_pet, new_frozen_storage)``.
    Above the threshold, melt is proportional to degree excess and storage
    and is capped by the storage itself. At or below it, all precipitation
    accumulates and neither rain nor evaporative demand reaches the soil.
    """
    if temperature > threshold:
        melt = min(melt_rate * (temperature - threshold) * frozen_storage, frozen_storage)
        return melt, precipitation + melt, pet, frozen_storage - melt
    return 0.0, 0.0, 0.0, frozen_storage + precipitation


def step(
    params: ABCDParameters,
    state: ModelState,
    precipitation: float,
    temperature: float,
    pet: float,
    index: int = 1,
) -> Tuple[ModelState, StepFluxes]:
    """Advance the storages by one month."""
    melt, eff_precip, eff_pet, frozen = partition_snow(
        temperature, params.Tm, state.A, precipitation, pet, params.e
    )
    water = eff_precip + state.S

    w1 = (water + params.b) / (2 * params.a)
    w2 = water * params.b / params.a
    discriminant = w1 ** 2 - w2
    if -DISCRIMINANT_RTOL * w1 ** 2 <= discriminant < 0:
        discriminant = 0.0
    if not math.isfinite(discriminant) or discriminant < 0:
        raise NumericDomainError(index, discriminant)
    opportunity = w1 - math.sqrt(discriminant)

    retention = math.exp(-eff_pet / params.b)
    soil = opportunity * retention
    evap = opportunity * (1 - retention)

    surplus = round(float(water - opportunity), SURPLUS_DECIMALS)
    groundwater = (state.G + params.c * surplus) / (1 + params.d)
    runoff = (1 - params.c) * surplus + params.d * groundwater

    fluxes = StepFluxes(mt=melt, Pe=eff_precip, PETe=eff_pet, W=water, Y=opportunity, E=evap, Q=runoff)
    return ModelState(S=soil, G=groundwater, A=frozen), fluxes


def simulate(
    params: ABCDParameters,
    forcing: ForcingSeries,
    initial_state: ModelState,
) -> Trajectory:
    """Run the model over the whole forcing series.

    Raises
    ------
    InvalidParameterError
        If ``b`` or ``a`` is not positive.
    NumericDomainError
        If the quadratic has no real root at some month.
    """
    params.validate()
    n_steps = len(forcing)
    arrays = {name: np.zeros(n_steps + 1) for name in Trajectory.VARIABLES}
    arrays["S"][0] = initial_state.S
    arrays["G"][0] = initial_state.G
    arrays["A"][0] = initial_state.A

    state = initial_state
    for i in range(n_steps):
        state, fluxes = step(
            params,
            state,
            float(forcing.precipitation[i]),
            float(forcing.temperature[i]),
            float(forcing.pet[i]),
            index=i + 1,
        )
        for name in ("mt", "Pe", "PETe", "W", "Y", "E", "Q"):
            arrays[name][i + 1] = getattr(fluxes, name)
        arrays["S"][i + 1] = state.S
        arrays["G"][i + 1] = state.G
        arrays["A"][i + 1] = state.A

    return Trajectory(arrays, dates=forcing.dates)


def _readonly(values: Iterable[float]) -> np.ndarray:
    array = np.array(values, dtype=float, ndmin=1)
    array.flags.writeable = False
    return array


def _check_monthly(dates: pd.DatetimeIndex) -> None:
    if dates.size < 2:
        return
    months = dates.year.to_numpy() * 12 + dates.month.to_numpy()
    steps = np.diff(months)
    if np.any(steps == 0):
        raise ForcingError("Forcing contains more than one record for the same month")
    if np.any(steps != 1):
        bad = int(np.argmax(steps != 1))
        raise ForcingError(
            f"Forcing months are not consecutive between {dates[bad]:%Y-%m} and {dates[bad + 1]:%Y-%m}"
        )


__all__ = [
    "ABCDParameters",
    "ModelState",
    "StepFluxes",
    "ForcingSeries",
    "Trajectory",
    "partition_snow",
    "step",
    "simulate",
]
