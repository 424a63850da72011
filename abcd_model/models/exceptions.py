"""Exception hierarchy for the ABCD water-balance model."""

from __future__ import annotations


class ABCDModelError(Exception):
    """Base class for all errors raised by the package."""


class InvalidParameterError(ABCDModelError, ValueError):
    """Parameter values or bounds the model cannot be evaluated with."""


class NumericDomainError(ABCDModelError, ArithmeticError):
    """The evapotranspiration-opportunity quadratic has no real root."""

    def __init__(self, step: int, discriminant: float) -> None:
        super().__init__(
            f"Negative or non-finite discriminant {discriminant!r} at step {step}"
        )
        self.step = step
        self.discriminant = discriminant


class LengthMismatchError(ABCDModelError, ValueError):
    """Two series that must be aligned have different lengths."""


class EmptySeriesError(ABCDModelError, ValueError):
    """A computation needs at least one record and got none."""


class MetricError(ABCDModelError, ValueError):
    """A performance metric is undefined for the given series."""


class ForcingError(ABCDModelError, ValueError):
    """Malformed forcing series (gaps, duplicates, non-finite values)."""


class ObservationError(ABCDModelError, ValueError):
    """Observed streamflow that cannot be scored (non-finite values)."""


__all__ = [
    "ABCDModelError",
    "InvalidParameterError",
    "NumericDomainError",
    "LengthMismatchError",
    "EmptySeriesError",
    "MetricError",
    "ForcingError",
    "ObservationError",
]
