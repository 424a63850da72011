"""Shuffled Complex Evolution (SCE-UA) minimizer.

The population lives in the unit hypercube and is mapped onto the parameter
box only when the objective is evaluated. Each iteration:

1. sorts the population by loss and deals it into ``n_complexes`` complexes,
   so every complex receives points across the whole ranking;
2. evolves every complex with competitive complex evolution: a subcomplex is
   drawn with a trapezoidal probability favouring good points, and its worst
   member is replaced by a reflection through the centroid, a contraction
   towards it, or a random point inside the complex's bounding box;
3. merges the complexes back (the shuffle) and checks for stagnation.

References
----------
Duan, Q., Sorooshian, S., & Gupta, V. (1992). Effective and efficient global
optimization for conceptual rainfall-runoff models. Water Resources Research,
28(4), 1015-1031.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Tuple

import numpy as np

from .calibration import OptimizationResult, ParameterBounds
from ..utils.progress import ProgressBar

LOGGER = logging.getLogger(__name__)


class ShuffledComplexOptimizer:
    def __init__(
        self,
        n_complexes: int = 2,
        max_iterations: int = 100,
        max_evaluations: int = 20000,
        tolerance: float = 1e-4,
        stagnation_limit: int = 10,
        evolution_steps: Optional[int] = None,
        random_seed: int | None = None,
        progress_interval: int = 10,
    ) -> None:
        if n_complexes < 1:
            raise ValueError("n_complexes must be at least 1")
        self.n_complexes = n_complexes
        self.max_iterations = max_iterations
        self.max_evaluations = max_evaluations
        self.tolerance = tolerance
        self.stagnation_limit = stagnation_limit
        self.evolution_steps = evolution_steps
        self.random_state = np.random.default_rng(random_seed)
        self.progress_interval = max(int(progress_interval), 1)

    def minimize(
        self, func: Callable[[np.ndarray], float], bounds: ParameterBounds
    ) -> OptimizationResult:
        lower, upper = bounds.lower, bounds.upper
        span = upper - lower
        n_params = lower.size
        points_per_complex = 2 * n_params + 1
        points_per_subcomplex = n_params + 1
        evolution_steps = self.evolution_steps or points_per_complex
        population_size = self.n_complexes * points_per_complex

        def evaluate(unit_point: np.ndarray) -> float:
            return float(func(lower + unit_point * span))

        population = self.random_state.random((population_size, n_params))
        scores = np.array([evaluate(p) for p in population])
        n_evaluations = population_size
        LOGGER.info(
            "SCE-UA with %d complexes of %d points (%d parameters)",
            self.n_complexes, points_per_complex, n_params,
        )

        best_score = float(np.min(scores))
        previous_best = best_score
        history: List[float] = []
        stagnant = 0
        converged = False
        iteration = 0
        progress = ProgressBar(self.max_iterations, description="SCE-UA")

        while iteration < self.max_iterations and n_evaluations < self.max_evaluations:
            iteration += 1
            order = np.argsort(scores)
            population, scores = population[order], scores[order]

            for k in range(self.n_complexes):
                members = np.arange(k, population_size, self.n_complexes)
                evolved, evolved_scores, used = self._evolve_complex(
                    population[members].copy(),
                    scores[members].copy(),
                    evaluate,
                    points_per_subcomplex,
                    evolution_steps,
                )
                population[members] = evolved
                scores[members] = evolved_scores
                n_evaluations += used

            best_score = float(np.min(scores))
            history.append(best_score)

            if iteration % self.progress_interval == 0 or iteration == self.max_iterations:
                remaining = max(progress.state.total - progress.state.current, 0)
                progress.update(min(self.progress_interval, remaining), extra_message=f"Best loss: {best_score:0.4g}")

            if previous_best != 0:
                improvement = (previous_best - best_score) / abs(previous_best)
            else:
                improvement = 0.0
            if improvement < self.tolerance:
                stagnant += 1
            else:
                stagnant = 0
                LOGGER.debug("Iteration %d improved loss to %.6g", iteration, best_score)
            previous_best = best_score

            if stagnant >= self.stagnation_limit:
                LOGGER.info("SCE-UA converged after %d iterations", iteration)
                converged = True
                break

        best = int(np.argmin(scores))
        LOGGER.info("SCE-UA finished: loss %.6g, %d evaluations", scores[best], n_evaluations)
        return OptimizationResult(
            x=lower + population[best] * span,
            fun=float(scores[best]),
            n_evaluations=n_evaluations,
            n_iterations=iteration,
            converged=converged,
            history=history,
        )

    def _evolve_complex(
        self,
        points: np.ndarray,
        scores: np.ndarray,
        evaluate: Callable[[np.ndarray], float],
        subcomplex_size: int,
        evolution_steps: int,
    ) -> Tuple[np.ndarray, np.ndarray, int]:
        used = 0
        complex_size = points.shape[0]
        subcomplex_size = min(subcomplex_size, complex_size)
        for _ in range(evolution_steps):
            # points are kept sorted best first, which the trapezoid relies on
            chosen = np.sort(self._select_subcomplex(complex_size, subcomplex_size))
            worst = chosen[-1]
            centroid = points[chosen[:-1]].mean(axis=0)

            candidate = np.clip(2.0 * centroid - points[worst], 0.0, 1.0)
            candidate_score = evaluate(candidate)
            used += 1
            if not candidate_score < scores[worst]:
                candidate = (centroid + points[worst]) / 2.0
                candidate_score = evaluate(candidate)
                used += 1
                if not candidate_score < scores[worst]:
                    low = points.min(axis=0)
                    high = points.max(axis=0)
                    candidate = low + self.random_state.random(points.shape[1]) * (high - low)
                    candidate_score = evaluate(candidate)
                    used += 1

            points[worst] = candidate
            scores[worst] = candidate_score
            order = np.argsort(scores, kind="stable")
            points, scores = points[order], scores[order]
        return points, scores, used

    def _select_subcomplex(self, complex_size: int, subcomplex_size: int) -> np.ndarray:
        ranks = np.arange(complex_size)
        weights = 2.0 * (complex_size - ranks) / (complex_size * (complex_size + 1))
        return self.random_state.choice(complex_size, size=subcomplex_size, replace=False, p=weights)


__all__ = ["ShuffledComplexOptimizer"]
