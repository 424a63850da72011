"""Monthly ABCD water-balance model with snow storage and calibration tools."""

from .models.abcd import ABCDParameters, ForcingSeries, ModelState, Trajectory, simulate
from .models.calibration import (
    CalibrationResult,
    EvolutionaryOptimizer,
    OptimizationResult,
    ParameterBounds,
    calibrate,
)
from .models.exceptions import (
    ABCDModelError,
    EmptySeriesError,
    ForcingError,
    InvalidParameterError,
    LengthMismatchError,
    MetricError,
    NumericDomainError,
    ObservationError,
)
from .models.metrics import nse, rmse
from .models.objective import PENALTY_LOSS, ObjectiveFunction, objective
from .models.sceua import ShuffledComplexOptimizer

__version__ = "0.1.0"
