"""Baseline forecasters used as reference points for ARIMA.

Four simple models form a closed set of variants, selected by
:class:`BaselineKind` and dispatched through a table, so adding a variant
means adding one fit and one forecast function:

- moving average of the trailing window
- simple exponential smoothing
- seasonal naive (value one season back)
- least-squares linear trend
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple, Union

import numpy as np

from ..logging import get_logger
from . import diagnostics
from .config import ArimaConfig
from .errors import InsufficientDataError, NotTrainedError
from .forecasting import ForecasterState, _check_horizon, z_score
from .types import (
    ConfidenceIntervals,
    ForecastResult,
    TimeSeriesPoint,
    ValidationMetrics,
    as_series,
    readonly,
    timestamp_step,
)

logger = get_logger(__name__)


class BaselineKind(Enum):
    """Available baseline variants."""

    MOVING_AVERAGE = "moving_average"
    EXPONENTIAL_SMOOTHING = "exponential_smoothing"
    SEASONAL_NAIVE = "seasonal_naive"
    LINEAR_TREND = "linear_trend"


@dataclass(frozen=True)
class BaselineSpec:
    """Variant and hyperparameters of a baseline model.

    Attributes:
        kind: Which baseline to fit.
        window: Trailing window of the moving average.
        alpha: Smoothing factor of exponential smoothing, in (0, 1].
        season_length: Season length of the seasonal naive model.
    """

    kind: BaselineKind = BaselineKind.MOVING_AVERAGE
    window: int = 7
    alpha: float = 0.3
    season_length: int = 7

    def __post_init__(self) -> None:
        if not isinstance(self.kind, BaselineKind):
            raise ValueError(f"kind must be a BaselineKind, got {self.kind!r}")
        if self.window < 1:
            raise ValueError(f"window must be >= 1, got {self.window}")
        if not 0.0 < self.alpha <= 1.0:
            raise ValueError(f"alpha must be in (0, 1], got {self.alpha}")
        if self.season_length < 1:
            raise ValueError(f"season_length must be >= 1, got {self.season_length}")

    @property
    def model_id(self) -> str:
        if self.kind is BaselineKind.MOVING_AVERAGE:
            return f"moving_avg_{self.window}"
        if self.kind is BaselineKind.EXPONENTIAL_SMOOTHING:
            return f"exp_smooth_{self.alpha:g}"
        if self.kind is BaselineKind.SEASONAL_NAIVE:
            return f"seasonal_naive_{self.season_length}"
        return "linear_trend"


@dataclass(frozen=True)
class BaselineFit:
    """Immutable result of fitting a baseline model.

    ``fitted`` and ``residuals`` cover the whole history; ``metrics`` may be
    computed on a suffix of it (exponential smoothing skips its seed point).
    """

    spec: BaselineSpec
    fitted: np.ndarray
    residuals: np.ndarray
    metrics: ValidationMetrics
    params: Dict[str, float]
    history: np.ndarray
    origin_timestamp: float
    timestamp_step: float
    metrics_start: int = 0

    @property
    def model_id(self) -> str:
        return self.spec.model_id

    @property
    def base_error(self) -> float:
        """RMS of the residuals the metrics were computed on."""
        residuals = self.residuals[self.metrics_start :]
        return float(np.sqrt(np.mean(residuals**2)))


# Fit functions return (fitted, params, metrics_start); forecast functions
# return (values, interval scale per step).
_FitFn = Callable[[np.ndarray, BaselineSpec], Tuple[np.ndarray, Dict[str, float], int]]
_ForecastFn = Callable[[BaselineFit, int], Tuple[np.ndarray, np.ndarray]]


def _fit_moving_average(x, spec):
    window = spec.window
    fitted = np.empty(len(x))
    for i in range(len(x)):
        if i < window:
            # Expanding mean over the first window.
            fitted[i] = np.mean(x[: i + 1])
        else:
            fitted[i] = np.mean(x[i - window : i])
    return fitted, {"window": float(window)}, 0


def _forecast_moving_average(fit, horizon):
    values = list(fit.history[-fit.spec.window :])
    predictions = np.empty(horizon)
    for step in range(horizon):
        predictions[step] = np.mean(values)
        values = values[1:] + [predictions[step]]
    return predictions, np.sqrt(np.arange(1, horizon + 1))


def _fit_exponential_smoothing(x, spec):
    alpha = spec.alpha
    fitted = np.empty(len(x))
    fitted[0] = x[0]
    for i in range(1, len(x)):
        fitted[i] = alpha * x[i - 1] + (1.0 - alpha) * fitted[i - 1]
    return fitted, {"alpha": float(alpha)}, 1


def _forecast_exponential_smoothing(fit, horizon):
    alpha = fit.spec.alpha
    level = alpha * fit.history[-1] + (1.0 - alpha) * fit.fitted[-1]
    return np.full(horizon, level), np.sqrt(np.arange(1, horizon + 1))


def _fit_seasonal_naive(x, spec):
    season = spec.season_length
    if len(x) < season:
        raise InsufficientDataError(
            f"Need at least one full season of {season} points, got {len(x)}"
        )
    fitted = np.empty(len(x))
    fitted[0] = x[0]
    # Naive previous value within the first season.
    fitted[1:season] = x[: season - 1]
    fitted[season:] = x[: len(x) - season]
    return fitted, {"season_length": float(season)}, 0


def _forecast_seasonal_naive(fit, horizon):
    season = fit.spec.season_length
    last_season = fit.history[-season:]
    predictions = last_season[np.arange(horizon) % season]
    return predictions.astype(np.float64), np.ones(horizon)


def _fit_linear_trend(x, spec):
    n = len(x)
    t = np.arange(n, dtype=np.float64)
    t_centered = t - np.mean(t)
    denom = float(np.sum(t_centered**2))
    slope = 0.0 if denom == 0 else float(np.sum(t_centered * (x - np.mean(x))) / denom)
    intercept = float(np.mean(x) - slope * np.mean(t))
    return intercept + slope * t, {"slope": slope, "intercept": intercept}, 0


def _forecast_linear_trend(fit, horizon):
    n = len(fit.history)
    steps = np.arange(1, horizon + 1)
    predictions = fit.params["intercept"] + fit.params["slope"] * (n - 1 + steps)
    return predictions, np.sqrt(1.0 + 1.0 / n + steps**2 / n)


_VARIANTS: Dict[BaselineKind, Tuple[_FitFn, _ForecastFn]] = {
    BaselineKind.MOVING_AVERAGE: (_fit_moving_average, _forecast_moving_average),
    BaselineKind.EXPONENTIAL_SMOOTHING: (
        _fit_exponential_smoothing,
        _forecast_exponential_smoothing,
    ),
    BaselineKind.SEASONAL_NAIVE: (_fit_seasonal_naive, _forecast_seasonal_naive),
    BaselineKind.LINEAR_TREND: (_fit_linear_trend, _forecast_linear_trend),
}


def baseline_metrics(actual: np.ndarray, fitted: np.ndarray) -> ValidationMetrics:
    """Accuracy metrics of a baseline fit.

    Uses the same R²/MAPE rules as ARIMA scoring, a two-parameter
    ``n ln(RSS/n)`` form of AIC/BIC, and a fixed Ljung-Box p-value of 0.5.
    """
    config = ArimaConfig()
    actual = np.asarray(actual, dtype=np.float64)
    fitted = np.asarray(fitted, dtype=np.float64)
    residuals = actual - fitted
    n = len(residuals)

    mse = max(float(np.mean(residuals**2)), config.variance_floor)
    return ValidationMetrics(
        mae=float(np.mean(np.abs(residuals))),
        rmse=float(np.sqrt(np.mean(residuals**2))),
        mape=diagnostics.mape(actual, fitted),
        r2=diagnostics.r_squared(actual, residuals, bounds=config.r2_bounds),
        correlation_r2=diagnostics.correlation_r_squared(actual, fitted),
        aic=float(n * np.log(mse) + 2 * 2),
        bic=float(n * np.log(mse) + np.log(n) * 2),
        residual_mean=float(np.mean(residuals)),
        residual_std=float(np.std(residuals)),
        ljung_box_pvalue=0.5,
    )


def fit_baseline(series: Any, spec: Optional[BaselineSpec] = None) -> BaselineFit:
    """Fit a baseline model.

    Args:
        series: Observations accepted by :func:`as_series`; values must be
            finite.
        spec: Variant and hyperparameters; defaults to a 7-point moving
            average.

    Returns:
        BaselineFit with read-only arrays.

    Raises:
        ValueError: If values are not finite.
        InsufficientDataError: With fewer than 2 points, or less than one
            season for the seasonal naive model.

    Example:
        >>> fit = fit_baseline(np.arange(1.0, 21.0), BaselineSpec(BaselineKind.LINEAR_TREND))
        >>> round(fit.params["slope"], 6)
        1.0
    """
    spec = spec or BaselineSpec()
    timestamps, x = as_series(series)
    if len(x) < 2:
        raise InsufficientDataError(f"Need at least 2 data points, got {len(x)}")
    if not np.all(np.isfinite(x)):
        raise ValueError("Baseline models require finite values.")

    fit_fn, _ = _VARIANTS[spec.kind]
    fitted, params, start = fit_fn(x, spec)
    metrics = baseline_metrics(x[start:], fitted[start:])
    logger.debug(
        "Fitted %s: R²=%.3f, MAPE=%.1f%%", spec.model_id, metrics.r2, metrics.mape
    )

    return BaselineFit(
        spec=spec,
        fitted=readonly(fitted),
        residuals=readonly(x - fitted),
        metrics=metrics,
        params=params,
        history=readonly(x),
        origin_timestamp=float(timestamps[-1]),
        timestamp_step=timestamp_step(timestamps),
        metrics_start=start,
    )


def forecast_baseline(
    fit: Optional[BaselineFit], horizon: int, confidence_level: float = 0.95
) -> ForecastResult:
    """Forecast from a fitted baseline.

    Intervals are ``value ± z · rmse · scale(step)`` with the variant's scale:
    ``sqrt(step)`` for the moving average and exponential smoothing, 1 for
    the seasonal naive model and ``sqrt(1 + 1/n + step²/n)`` for the linear
    trend. Values and lower bounds are floored at 0.

    Raises:
        NotTrainedError: If ``fit`` is None.
        ValueError: For an invalid horizon or confidence level.
    """
    if fit is None:
        raise NotTrainedError("Model must be trained before forecasting")
    _check_horizon(horizon)
    z = z_score(confidence_level)

    _, forecast_fn = _VARIANTS[fit.spec.kind]
    raw, scale = forecast_fn(fit, horizon)
    values = np.maximum(raw, 0.0)
    half_widths = z * fit.base_error * scale

    timestamps = fit.origin_timestamp + fit.timestamp_step * np.arange(1, horizon + 1)
    return ForecastResult(
        model_id=fit.model_id,
        predictions=tuple(
            TimeSeriesPoint(timestamp=float(ts), value=float(v))
            for ts, v in zip(timestamps, values)
        ),
        confidence_intervals=ConfidenceIntervals(
            lower=readonly(np.maximum(values - half_widths, 0.0)),
            upper=readonly(values + half_widths),
            level=confidence_level,
        ),
        horizon=horizon,
        origin_timestamp=fit.origin_timestamp,
        metrics=fit.metrics,
    )


class BaselineForecaster:
    """Stateful wrapper around :func:`fit_baseline` and :func:`forecast_baseline`.

    Example:
        >>> forecaster = BaselineForecaster(BaselineKind.SEASONAL_NAIVE)
        >>> _ = forecaster.train(np.tile([1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0], 4))
        >>> forecaster.forecast(3).values
        array([1., 2., 3.])
    """

    def __init__(self, spec: Union[BaselineSpec, BaselineKind, None] = None) -> None:
        if isinstance(spec, BaselineKind):
            spec = BaselineSpec(kind=spec)
        self.spec = spec or BaselineSpec()
        self.fit_result: Optional[BaselineFit] = None
        self.state = ForecasterState.UNTRAINED

    @property
    def model_id(self) -> str:
        return self.spec.model_id

    def train(self, series: Any) -> BaselineFit:
        self.fit_result = fit_baseline(series, self.spec)
        self.state = ForecasterState.TRAINED
        return self.fit_result

    def forecast(self, horizon: int, confidence_level: float = 0.95) -> ForecastResult:
        if self.fit_result is None:
            raise NotTrainedError("Model must be trained before forecasting")
        previous = self.state
        self.state = ForecasterState.FORECASTING
        try:
            result = forecast_baseline(self.fit_result, horizon, confidence_level)
        except Exception:
            self.state = previous
            raise
        self.state = ForecasterState.DONE
        return result


__all__ = [
    "BaselineKind",
    "BaselineSpec",
    "BaselineFit",
    "baseline_metrics",
    "fit_baseline",
    "forecast_baseline",
    "BaselineForecaster",
]
