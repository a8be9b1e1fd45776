"""
Value types shared by the forecasting core.

Every container here is a frozen dataclass and every array it carries is
marked read-only, so a trained model can be handed to several forecast calls
(or threads) without copying. Training produces a :class:`FittedModel`;
forecasting consumes one and produces a :class:`ForecastResult`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple

import numpy as np


def readonly(values: Any) -> np.ndarray:
    """Return a read-only float64 copy of ``values``."""
    arr = np.array(values, dtype=np.float64)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True)
class TimeSeriesPoint:
    """Single observation: timestamp (epoch seconds or index) and value."""

    timestamp: float
    value: float


@dataclass(frozen=True)
class ModelOrder:
    """ARIMA order ``(p, d, q)``."""

    p: int
    d: int
    q: int

    def __post_init__(self) -> None:
        for name in ("p", "d", "q"):
            value = getattr(self, name)
            if not isinstance(value, (int, np.integer)) or isinstance(value, bool):
                raise ValueError(f"{name} must be an integer, got {value!r}")
            if value < 0:
                raise ValueError(f"{name} must be >= 0, got {value}")
        if self.p == 0 and self.q == 0:
            raise ValueError("At least one of p or q must be > 0")

    @property
    def n_params(self) -> int:
        """Parameter count used by AIC/BIC: AR + MA coefficients + intercept."""
        return self.p + self.q + 1

    @property
    def complexity(self) -> int:
        return self.p + self.d + self.q

    @property
    def model_id(self) -> str:
        return f"arima_{self.p}_{self.d}_{self.q}"

    def __str__(self) -> str:
        return f"ARIMA({self.p},{self.d},{self.q})"


class ConvergenceStatus(Enum):
    """Outcome of coefficient estimation."""

    CONVERGED = "converged"
    FAILED = "failed"


@dataclass(frozen=True)
class ValidationMetrics:
    """
    In-sample accuracy and residual diagnostics of a fitted model.

    Attributes:
        mae: Mean absolute error.
        rmse: Root mean squared error.
        mape: Mean absolute percentage error in percent, capped at 999.
        r2: Coefficient of determination, bounded to [-5, 1].
        correlation_r2: Squared Pearson correlation of actual vs fitted, or
            None when undefined (constant input).
        aic: Akaike information criterion.
        bic: Bayesian information criterion.
        residual_mean: Mean of the residuals.
        residual_std: Population standard deviation of the residuals.
        ljung_box_pvalue: Approximate Ljung-Box p-value of the residuals.
    """

    mae: float
    rmse: float
    mape: float
    r2: float
    correlation_r2: Optional[float]
    aic: float
    bic: float
    residual_mean: float
    residual_std: float
    ljung_box_pvalue: float


@dataclass(frozen=True)
class FittedModel:
    """
    Immutable result of training an ARIMA model.

    ``residuals`` and ``fitted_values`` are aligned with the last
    ``len(fitted_values)`` points of ``history`` (the cleaned input series).
    ``differenced`` is the working series the ARMA recursion ran on and
    ``applied_d`` the number of differences actually taken, which can be lower
    than ``order.d`` when differencing stopped early on a short series.
    """

    order: ModelOrder
    applied_d: int
    ar_coefficients: np.ndarray
    ma_coefficients: np.ndarray
    intercept: float
    noise_variance: float
    residuals: np.ndarray
    fitted_values: np.ndarray
    history: np.ndarray
    differenced: np.ndarray
    log_likelihood: float
    aic: float
    bic: float
    nobs: int
    convergence_status: ConvergenceStatus
    iterations: int
    validation_metrics: Optional[ValidationMetrics]
    origin_timestamp: float
    timestamp_step: float

    def __post_init__(self) -> None:
        if len(self.residuals) != len(self.fitted_values):
            raise ValueError(
                f"residuals ({len(self.residuals)}) and fitted_values "
                f"({len(self.fitted_values)}) must have the same length"
            )
        if len(self.ar_coefficients) != self.order.p:
            raise ValueError(
                f"Expected {self.order.p} AR coefficients, got {len(self.ar_coefficients)}"
            )
        if len(self.ma_coefficients) != self.order.q:
            raise ValueError(
                f"Expected {self.order.q} MA coefficients, got {len(self.ma_coefficients)}"
            )
        if self.noise_variance <= 0:
            raise ValueError(f"noise_variance must be > 0, got {self.noise_variance}")

    @property
    def model_id(self) -> str:
        return self.order.model_id

    @property
    def converged(self) -> bool:
        return self.convergence_status is ConvergenceStatus.CONVERGED


@dataclass(frozen=True)
class ConfidenceIntervals:
    """Lower/upper forecast bounds, parallel to the predictions."""

    lower: np.ndarray
    upper: np.ndarray
    level: float


@dataclass(frozen=True)
class ForecastResult:
    """
    Multi-step forecast produced from one trained model.

    Attributes:
        model_id: Identifier of the model that produced the forecast.
        predictions: Future points, one per step.
        confidence_intervals: Bounds parallel to ``predictions``.
        horizon: Number of steps forecast.
        origin_timestamp: Timestamp of the last observed point.
        metrics: In-sample metrics of the producing model, if available.
    """

    model_id: str
    predictions: Tuple[TimeSeriesPoint, ...]
    confidence_intervals: ConfidenceIntervals
    horizon: int
    origin_timestamp: float
    metrics: Optional[ValidationMetrics] = None

    @property
    def values(self) -> np.ndarray:
        return np.array([point.value for point in self.predictions], dtype=np.float64)

    @property
    def timestamps(self) -> np.ndarray:
        return np.array(
            [point.timestamp for point in self.predictions], dtype=np.float64
        )


def as_series(data: Any) -> Tuple[np.ndarray, np.ndarray]:
    """Split input into ``(timestamps, values)`` float arrays.

    Accepts a sequence of :class:`TimeSeriesPoint`, a sequence of
    ``(timestamp, value)`` pairs (or an ``(n, 2)`` array), or a flat sequence
    of values, in which case timestamps are the positional indices.
    Values may contain NaN; cleaning is left to the preprocessor.

    Raises:
        ValueError: If the input has the wrong shape or the timestamps are
            not finite and strictly increasing.
    """
    if isinstance(data, np.ndarray):
        arr = data
    else:
        items = list(data)
        if items and isinstance(items[0], TimeSeriesPoint):
            timestamps = np.array([pt.timestamp for pt in items], dtype=np.float64)
            values = np.array([pt.value for pt in items], dtype=np.float64)
            _check_timestamps(timestamps)
            return timestamps, values
        arr = items

    try:
        arr = np.asarray(arr, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise ValueError("Series cannot be converted to float values.") from exc

    if arr.ndim == 1:
        return np.arange(len(arr), dtype=np.float64), arr.copy()
    if arr.ndim == 2 and arr.shape[1] == 2:
        timestamps = arr[:, 0].copy()
        _check_timestamps(timestamps)
        return timestamps, arr[:, 1].copy()
    raise ValueError(
        f"Series must be 1D values or (n, 2) timestamp/value pairs, got shape {arr.shape}"
    )


def _check_timestamps(timestamps: np.ndarray) -> None:
    if not np.all(np.isfinite(timestamps)):
        raise ValueError("Timestamps must be finite.")
    if len(timestamps) > 1 and np.any(np.diff(timestamps) <= 0):
        raise ValueError("Timestamps must be strictly increasing with no duplicates.")


def timestamp_step(timestamps: np.ndarray) -> float:
    """Median spacing of ``timestamps`` (1.0 for fewer than two points)."""
    if len(timestamps) < 2:
        return 1.0
    return float(np.median(np.diff(timestamps)))


__all__ = [
    "TimeSeriesPoint",
    "ModelOrder",
    "ConvergenceStatus",
    "ValidationMetrics",
    "FittedModel",
    "ConfidenceIntervals",
    "ForecastResult",
    "as_series",
    "timestamp_step",
    "readonly",
]
