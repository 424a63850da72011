"""Calibration loss for the ABCD model."""

from __future__ import annotations

import logging
from typing import Iterable

import numpy as np

from .abcd import ABCDParameters, ForcingSeries, ModelState, simulate
from .exceptions import LengthMismatchError, NumericDomainError, ObservationError

LOGGER = logging.getLogger(__name__)

# returned instead of NaN/Inf so optimizers can keep comparing candidates
PENALTY_LOSS = 1.0e12

TRANSFORMS = ("sse", "log_sse")


def objective(
    params: ABCDParameters,
    forcing: ForcingSeries,
    initial_state: ModelState,
    observed: Iterable[float],
    transform: str = "sse",
) -> float:
    """Sum of squared streamflow residuals.

    ``transform="log_sse"`` compares ``log(q + 1)`` instead of raw flows; it
    emphasises low flows and is not used by default.
    """
    obs = _checked_observed(np.asarray(observed, dtype=float), forcing)
    if transform not in TRANSFORMS:
        raise ValueError(f"Unsupported objective transform: {transform}")

    try:
        trajectory = simulate(params, forcing, initial_state)
    except NumericDomainError as exc:
        LOGGER.debug("Penalising %s: %s", params, exc)
        return PENALTY_LOSS

    sim = trajectory.streamflow
    if transform == "log_sse":
        with np.errstate(invalid="ignore", divide="ignore"):
            residuals = np.log(obs + 1.0) - np.log(sim + 1.0)
    else:
        residuals = obs - sim
    with np.errstate(over="ignore", invalid="ignore"):
        loss = float(np.sum(residuals ** 2))
    if not np.isfinite(loss):
        LOGGER.debug("Penalising %s: non-finite loss", params)
        return PENALTY_LOSS
    return loss


class ObjectiveFunction:
    """Binds the fixed inputs so an optimizer only supplies parameter vectors."""

    def __init__(
        self,
        forcing: ForcingSeries,
        initial_state: ModelState,
        observed: Iterable[float],
        transform: str = "sse",
    ) -> None:
        obs = _checked_observed(np.array(observed, dtype=float), forcing)
        if transform not in TRANSFORMS:
            raise ValueError(f"Unsupported objective transform: {transform}")
        obs.flags.writeable = False
        self.forcing = forcing
        self.initial_state = initial_state
        self.observed = obs
        self.transform = transform

    def __call__(self, vector: Iterable[float]) -> float:
        params = ABCDParameters.from_vector(vector)
        return objective(params, self.forcing, self.initial_state, self.observed, self.transform)


def _checked_observed(obs: np.ndarray, forcing: ForcingSeries) -> np.ndarray:
    if obs.size != len(forcing):
        raise LengthMismatchError(
            f"Observed series has {obs.size} records, forcing has {len(forcing)}"
        )
    bad = np.flatnonzero(~np.isfinite(obs))
    if bad.size:
        raise ObservationError(
            f"Observed series has {bad.size} non-finite value(s), first at position {bad[0]}"
        )
    return obs


__all__ = ["PENALTY_LOSS", "objective", "ObjectiveFunction"]
