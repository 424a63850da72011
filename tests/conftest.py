"""Shared fixtures: a synthetic monthly catchment driven by known parameters."""

import numpy as np
import pandas as pd
import pytest

from abcd_model.models.abcd import ABCDParameters, ForcingSeries, ModelState, simulate


@pytest.fixture
def true_params():
    return ABCDParameters(a=0.97, b=400.0, c=0.4, d=0.3, e=0.2, Tm=0.0)


@pytest.fixture
def initial_state():
    return ModelState(S=150.0, G=20.0, A=0.0)


@pytest.fixture
def monthly_frame():
    """Eight years of seasonal forcing with cold winters."""
    rng = np.random.default_rng(42)
    dates = pd.date_range("2000-01-01", periods=96, freq="MS")
    season = np.sin(2 * np.pi * (dates.month.to_numpy() - 4) / 12)
    temperature = 8.0 + 12.0 * season
    precipitation = 70.0 + 25.0 * np.cos(2 * np.pi * dates.month.to_numpy() / 12) + rng.uniform(0, 40, dates.size)
    pet = np.clip(6.0 * temperature, 0, None) + 5.0
    return pd.DataFrame({"datetime": dates, "P": precipitation, "T": temperature, "PET": pet})


@pytest.fixture
def forcing(monthly_frame):
    return ForcingSeries.from_frame(monthly_frame, datetime_col="datetime")


@pytest.fixture
def observed(true_params, forcing, initial_state):
    return np.array(simulate(true_params, forcing, initial_state).streamflow)
