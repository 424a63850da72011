"""Performance metrics for reporting calibrated ABCD simulations."""

from __future__ import annotations

from typing import Dict, Iterable, Tuple

import numpy as np

from .exceptions import EmptySeriesError, LengthMismatchError, MetricError


def rmse(simulated: Iterable[float], observed: Iterable[float]) -> float:
    sim, obs = _aligned(simulated, observed, minimum=1)
    return float(np.sqrt(np.mean((obs - sim) ** 2)))


def nse(simulated: Iterable[float], observed: Iterable[float]) -> float:
    """Nash-Sutcliffe efficiency."""
    sim, obs = _aligned(simulated, observed, minimum=2)
    denominator = np.sum((obs - obs.mean()) ** 2)
    if denominator == 0:
        raise MetricError("NSE is undefined for an observed series with zero variance")
    return float(1 - np.sum((obs - sim) ** 2) / denominator)


def kge(simulated: Iterable[float], observed: Iterable[float]) -> float:
    """Kling-Gupta efficiency."""
    sim, obs = _aligned(simulated, observed, minimum=2)
    if np.std(obs) == 0 or obs.mean() == 0:
        raise MetricError("KGE needs an observed series with non-zero mean and variance")
    if np.std(sim) == 0:
        r = 0.0
    else:
        r = np.corrcoef(sim, obs)[0, 1]
    alpha = np.std(sim) / np.std(obs)
    beta = sim.mean() / obs.mean()
    return float(1 - np.sqrt((r - 1) ** 2 + (alpha - 1) ** 2 + (beta - 1) ** 2))


def evaluate(simulated: Iterable[float], observed: Iterable[float]) -> Dict[str, float]:
    return {
        "RMSE": rmse(simulated, observed),
        "NSE": nse(simulated, observed),
        "KGE": kge(simulated, observed),
    }


def _aligned(
    simulated: Iterable[float], observed: Iterable[float], minimum: int
) -> Tuple[np.ndarray, np.ndarray]:
    sim = np.asarray(simulated, dtype=float)
    obs = np.asarray(observed, dtype=float)
    if sim.shape != obs.shape:
        raise LengthMismatchError(
            f"Simulated ({sim.size}) and observed ({obs.size}) series are not aligned"
        )
    if obs.size == 0:
        raise EmptySeriesError("Cannot compute a metric on empty series")
    if obs.size < minimum:
        raise MetricError(f"Metric needs at least {minimum} records, got {obs.size}")
    return sim, obs


__all__ = ["rmse", "nse", "kge", "evaluate"]
