"""Exception hierarchy for the forecasting core.

Each error also derives from the builtin the rest of the library would
otherwise raise, so ``pytest.raises(ValueError)`` style handling keeps working.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence, Tuple

if TYPE_CHECKING:
    from .types import ModelOrder


class ForecastingError(Exception):
    """Base class for all forecasting errors."""


class InsufficientDataError(ForecastingError, ValueError):
    """A series is shorter than the minimum a stage requires."""


class EstimationFailureError(ForecastingError, ArithmeticError):
    """Coefficient estimation broke down numerically."""


class NotTrainedError(ForecastingError, RuntimeError):
    """Forecast requested from a model that was never trained."""


class AllModelsFailedError(ForecastingError, RuntimeError):
    """Every candidate order, including the AR(1) fallback, failed to train."""

    def __init__(self, attempts: Sequence[Tuple["ModelOrder", str]]) -> None:
        self.attempts = list(attempts)
        detail = "; ".join(f"{order}: {reason}" for order, reason in self.attempts)
        super().__init__(
            "All ARIMA models failed. Data may be unsuitable for ARIMA modeling. "
            f"Attempts: {detail}"
        )


__all__ = [
    "ForecastingError",
    "InsufficientDataError",
    "EstimationFailureError",
    "NotTrainedError",
    "AllModelsFailedError",
]
