"""Parameter calibration for the ABCD model."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple

import numpy as np

from .abcd import ABCDParameters, ForcingSeries, ModelState, Trajectory, simulate
from .exceptions import InvalidParameterError
from .metrics import evaluate
from .objective import ObjectiveFunction
from ..utils.progress import ProgressBar

LOGGER = logging.getLogger(__name__)

DEFAULT_BOUNDS: Dict[str, Tuple[float, float]] = {
    "a": (0.01, 1.0),
    "b": (10.0, 2000.0),
    "c": (0.0, 1.0),
    "d": (0.0, 1.0),
    "e": (0.0, 1.0),
    "Tm": (-10.0, 10.0),
}


@dataclass(frozen=True)
class ParameterBounds:
    a: Tuple[float, float] = DEFAULT_BOUNDS["a"]
    b: Tuple[float, float] = DEFAULT_BOUNDS["b"]
    c: Tuple[float, float] = DEFAULT_BOUNDS["c"]
    d: Tuple[float, float] = DEFAULT_BOUNDS["d"]
    e: Tuple[float, float] = DEFAULT_BOUNDS["e"]
    Tm: Tuple[float, float] = DEFAULT_BOUNDS["Tm"]

    def __post_init__(self) -> None:
        for name in ABCDParameters.names():
            pair = getattr(self, name)
            try:
                low, high = (float(v) for v in pair)
            except (TypeError, ValueError) as exc:
                raise InvalidParameterError(f"Bounds for '{name}' must be a (lower, upper) pair, got {pair!r}") from exc
            if not (np.isfinite(low) and np.isfinite(high)):
                raise InvalidParameterError(f"Bounds for '{name}' must be finite, got {pair!r}")
            if low > high:
                raise InvalidParameterError(f"Lower bound exceeds upper bound for '{name}': {low} > {high}")
            object.__setattr__(self, name, (low, high))

    @staticmethod
    def from_mapping(raw: Mapping[str, Iterable[float]]) -> "ParameterBounds":
        unknown = set(raw) - set(ABCDParameters.names())
        if unknown:
            raise InvalidParameterError(f"Unknown parameters in bounds: {sorted(unknown)}")
        return ParameterBounds(**{name: tuple(pair) for name, pair in raw.items()})

    @property
    def lower(self) -> np.ndarray:
        return np.array([getattr(self, name)[0] for name in ABCDParameters.names()])

    @property
    def upper(self) -> np.ndarray:
        return np.array([getattr(self, name)[1] for name in ABCDParameters.names()])

    def to_dict(self) -> Dict[str, Tuple[float, float]]:
        return {name: getattr(self, name) for name in ABCDParameters.names()}


@dataclass
class OptimizationResult:
    x: np.ndarray
    fun: float
    n_evaluations: int
    n_iterations: int
    converged: bool
    history: List[float] = field(default_factory=list)


class Optimizer(Protocol):
    """Any bounded global minimizer of a scalar function of a vector."""

    def minimize(
        self, func: Callable[[np.ndarray], float], bounds: ParameterBounds
    ) -> OptimizationResult:
        ...


class EvolutionaryOptimizer:
    """Elitist crossover/mutation search clipped to the parameter box."""

    def __init__(
        self,
        population_size: int = 20,
        max_iterations: int = 100,
        convergence_tolerance: float = 1e-4,
        mutation_rate: float = 0.1,
        mutation_scale: float = 0.05,
        random_seed: int | None = None,
        progress_interval: int = 10,
    ) -> None:
        if population_size < 4:
            raise ValueError("population_size must be at least 4")
        self.population_size = population_size
        self.max_iterations = max_iterations
        self.convergence_tolerance = convergence_tolerance
        self.mutation_rate = mutation_rate
        self.mutation_scale = mutation_scale
        self.random_state = np.random.default_rng(random_seed)
        self.progress_interval = max(int(progress_interval), 1)

    def minimize(
        self, func: Callable[[np.ndarray], float], bounds: ParameterBounds
    ) -> OptimizationResult:
        lower, upper = bounds.lower, bounds.upper
        population = self.random_state.uniform(lower, upper, size=(self.population_size, lower.size))
        scores = np.array([func(ind) for ind in population])
        n_evaluations = self.population_size
        history: List[float] = []
        progress = ProgressBar(self.max_iterations, description="Calibrating")
        converged = False
        iteration = 0

        for iteration in range(1, self.max_iterations + 1):
            order = np.argsort(scores)
            population, scores = population[order], scores[order]
            history.append(float(scores[0]))

            if iteration % self.progress_interval == 0 or iteration == self.max_iterations:
                remaining = max(progress.state.total - progress.state.current, 0)
                progress.update(min(self.progress_interval, remaining), extra_message=f"Best loss: {scores[0]:0.4g}")

            if self._has_converged(scores):
                LOGGER.info("Calibration converged at iteration %d", iteration)
                converged = True
                break

            n_elite = max(2, self.population_size // 5)
            offspring = self._breed(population[:n_elite], lower, upper)
            offspring_scores = np.array([func(child) for child in offspring])
            n_evaluations += len(offspring)
            population = np.vstack([population[:n_elite], offspring])
            scores = np.concatenate([scores[:n_elite], offspring_scores])

        best = int(np.argmin(scores))
        return OptimizationResult(
            x=population[best].copy(),
            fun=float(scores[best]),
            n_evaluations=n_evaluations,
            n_iterations=iteration,
            converged=converged,
            history=history,
        )

    def _has_converged(self, scores: np.ndarray) -> bool:
        leaders = scores[: max(5, self.population_size // 2)]
        if leaders.size < 2:
            return False
        return float(np.std(leaders)) < self.convergence_tolerance

    def _breed(self, elite: np.ndarray, lower: np.ndarray, upper: np.ndarray) -> np.ndarray:
        n_params = elite.shape[1]
        span = upper - lower
        offspring = []
        while len(offspring) + len(elite) < self.population_size:
            parents = elite[self.random_state.choice(len(elite), size=2, replace=True)]
            if n_params > 2:
                crossover_point = self.random_state.integers(1, n_params - 1)
                child = np.concatenate([parents[0, :crossover_point], parents[1, crossover_point:]])
            else:
                child = parents[0].copy()
            mutation_mask = self.random_state.random(n_params) < self.mutation_rate
            mutation = self.random_state.normal(scale=self.mutation_scale, size=n_params) * span
            child = np.clip(child + mutation * mutation_mask, lower, upper)
            offspring.append(child)
        return np.array(offspring)


@dataclass
class CalibrationResult:
    parameters: ABCDParameters
    loss: float
    metrics: Dict[str, float]
    trajectory: Trajectory
    optimization: OptimizationResult


def calibrate(
    forcing: ForcingSeries,
    observed: Iterable[float],
    initial_state: ModelState,
    optimizer: Optimizer,
    bounds: Optional[ParameterBounds] = None,
    transform: str = "sse",
) -> CalibrationResult:
    """Search the parameter box for the lowest loss and report the fit."""
    bounds = bounds or ParameterBounds()
    func = ObjectiveFunction(forcing, initial_state, observed, transform=transform)
    LOGGER.info("Calibrating ABCD parameters on %d months", len(forcing))
    result = optimizer.minimize(func, bounds)
    params = ABCDParameters.from_vector(result.x)
    LOGGER.info("Best loss %.4f after %d evaluations: %s", result.fun, result.n_evaluations, params.to_dict())

    trajectory = simulate(params, forcing, initial_state)
    metrics = evaluate(trajectory.streamflow, func.observed)
    return CalibrationResult(
        parameters=params,
        loss=result.fun,
        metrics=metrics,
        trajectory=trajectory,
        optimization=result,
    )


__all__ = [
    "DEFAULT_BOUNDS",
    "ParameterBounds",
    "OptimizationResult",
    "Optimizer",
    "EvolutionaryOptimizer",
    "CalibrationResult",
    "calibrate",
]
