"""Multi-step forecasting from trained ARIMA models.

Forecasts are generated one step at a time on the working (differenced)
series and then integrated back to the original scale. A trained
:class:`FittedModel` is never mutated, so several threads may forecast from
the same model concurrently.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional, Protocol, Tuple, Union, runtime_checkable

import numpy as np

from ..logging import get_logger
from .config import ArimaConfig
from .errors import NotTrainedError
from .estimation import train
from .preprocessing import undifference
from .types import (
    ConfidenceIntervals,
    FittedModel,
    ForecastResult,
    ModelOrder,
    TimeSeriesPoint,
    readonly,
)

_logger = get_logger(__name__)

# Two-sided normal quantiles for the supported confidence levels.
_Z_SCORES = {0.90: 1.645, 0.95: 1.96, 0.99: 2.576}


def z_score(confidence_level: float) -> float:
    """Normal quantile for a 90%, 95% or 99% two-sided interval.

    Raises:
        ValueError: For any other confidence level.
    """
    for level, z in _Z_SCORES.items():
        if abs(confidence_level - level) < 1e-9:
            return z
    raise ValueError(
        f"confidence_level must be one of {sorted(_Z_SCORES)}, got {confidence_level}"
    )


def _check_horizon(horizon: int) -> None:
    if not isinstance(horizon, (int, np.integer)) or isinstance(horizon, bool):
        raise ValueError(f"horizon must be an integer, got {horizon!r}")
    if horizon < 1:
        raise ValueError(f"horizon must be >= 1, got {horizon}")


def _step_damping(applied_d: int, horizon: int, config: ArimaConfig) -> np.ndarray:
    steps = np.arange(1, horizon + 1)
    if applied_d == 1:
        return config.forecast_damping_d1 ** (steps - 1)
    return config.forecast_damping_d2**steps


def _point_forecasts(
    model: FittedModel, horizon: int, config: ArimaConfig
) -> np.ndarray:
    """Iterate one-step predictions on the working series."""
    p, q = model.order.p, model.order.q
    ar = model.ar_coefficients
    ma = model.ma_coefficients
    window = max(p, q, config.history_lag_floor) + config.history_margin

    series = list(model.differenced[-window:])
    residuals = list(model.residuals[-window:])
    mean_revert = model.applied_d == 0 and config.mean_reversion > 0

    predictions = np.empty(horizon)
    for step in range(horizon):
        prediction = model.intercept
        for i in range(min(p, len(series))):
            prediction += ar[i] * series[-1 - i]
        for j in range(min(q, len(residuals))):
            prediction += ma[j] * residuals[-1 - j]

        if mean_revert and len(series) > 10:
            recent = np.mean(series[-config.mean_reversion_window :])
            prediction = (
                prediction * (1.0 - config.mean_reversion)
                + recent * config.mean_reversion
            )

        predictions[step] = prediction
        series.append(prediction)
        # Future shocks have zero expectation.
        residuals.append(0.0)
        if len(series) > window:
            del series[0]
            del residuals[0]

    return predictions


def forecast(
    model: Optional[FittedModel],
    horizon: int,
    confidence_level: float = 0.95,
    config: Optional[ArimaConfig] = None,
) -> ForecastResult:
    """Forecast ``horizon`` steps ahead from a trained model.

    The interval half-width on the working scale is
    ``z · σ · (1 + ci_growth · (step - 1))``. For differenced models both the
    predictions and the half-widths are integrated back with per-step damping
    (``forecast_damping_d1 ** (step - 1)`` for d=1,
    ``forecast_damping_d2 ** step`` for d>=2), which pulls long horizons
    towards the last observed level. Predictions and bounds are floored at 0,
    after which upper bounds are raised where needed so interval widths never
    shrink with the horizon.

    Args:
        model: Trained model from :func:`train`.
        horizon: Number of steps. Must be >= 1.
        confidence_level: 0.90, 0.95 or 0.99.
        config: Forecast settings; defaults to ``ArimaConfig()``.

    Returns:
        ForecastResult with ``horizon`` predictions spaced by the model's
        median timestamp step.

    Raises:
        NotTrainedError: If ``model`` is None.
        ValueError: For an invalid horizon or confidence level.

    Example:
        >>> rng = np.random.default_rng(0)
        >>> model = train(100 + rng.normal(size=80), (1, 0, 0))
        >>> result = forecast(model, horizon=5)
        >>> len(result.predictions)
        5
    """
    if model is None:
        raise NotTrainedError("Model must be trained before forecasting")
    _check_horizon(horizon)
    z = z_score(confidence_level)
    config = config or ArimaConfig()

    raw = _point_forecasts(model, horizon, config)
    sigma = np.sqrt(model.noise_variance)
    half_widths = z * sigma * (1.0 + config.ci_growth * np.arange(horizon))

    d = model.applied_d
    if d == 0:
        values = raw
        widths = half_widths
    else:
        damping = _step_damping(d, horizon, config)
        values = undifference(raw, model.history[-d:], d, damping=damping)
        widths = undifference(half_widths, np.zeros(d), d, damping=damping)

    values = np.maximum(values, 0.0)
    lower = np.maximum(values - widths, 0.0)
    upper = np.maximum(values + widths, 0.0)
    # The floor can narrow late intervals; keep widths non-decreasing.
    upper = lower + np.maximum.accumulate(upper - lower)

    timestamps = model.origin_timestamp + model.timestamp_step * np.arange(1, horizon + 1)
    predictions = tuple(
        TimeSeriesPoint(timestamp=float(ts), value=float(v))
        for ts, v in zip(timestamps, values)
    )

    return ForecastResult(
        model_id=model.model_id,
        predictions=predictions,
        confidence_intervals=ConfidenceIntervals(
            lower=readonly(lower), upper=readonly(upper), level=confidence_level
        ),
        horizon=horizon,
        origin_timestamp=model.origin_timestamp,
        metrics=model.validation_metrics,
    )


@runtime_checkable
class Forecaster(Protocol):
    """Common interface of the ARIMA and baseline forecasters."""

    @property
    def model_id(self) -> str:
        ...

    def train(self, series: Any) -> Any:
        ...

    def forecast(self, horizon: int, confidence_level: float = 0.95) -> ForecastResult:
        ...


class ForecasterState(Enum):
    """Lifecycle of a stateful forecaster."""

    UNTRAINED = "untrained"
    TRAINED = "trained"
    FORECASTING = "forecasting"
    DONE = "done"


class ArimaForecaster:
    """Stateful ARIMA(p, d, q) forecaster.

    Wraps :func:`train` and :func:`forecast` behind a small state machine:
    ``UNTRAINED -> TRAINED -> FORECASTING -> DONE``. Forecasting again from
    ``DONE`` is allowed; training again resets to ``TRAINED``.

    Args:
        order: ``ModelOrder`` or a ``(p, d, q)`` tuple.
        config: Training and forecast settings.
        logger: Logger passed through to training.

    Example:
        >>> rng = np.random.default_rng(0)
        >>> forecaster = ArimaForecaster((1, 0, 0))
        >>> _ = forecaster.train(100 + rng.normal(size=80))
        >>> forecaster.forecast(3).horizon
        3
    """

    def __init__(
        self,
        order: Union[ModelOrder, Tuple[int, int, int]],
        config: Optional[ArimaConfig] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.order = order if isinstance(order, ModelOrder) else ModelOrder(*order)
        self.config = config or ArimaConfig()
        self.logger = logger or _logger
        self.fitted_model: Optional[FittedModel] = None
        self.state = ForecasterState.UNTRAINED

    @property
    def model_id(self) -> str:
        return self.order.model_id

    def train(self, series: Any) -> FittedModel:
        self.fitted_model = train(series, self.order, config=self.config, logger=self.logger)
        self.state = ForecasterState.TRAINED
        return self.fitted_model

    def forecast(self, horizon: int, confidence_level: float = 0.95) -> ForecastResult:
        if self.fitted_model is None:
            raise NotTrainedError("Model must be trained before forecasting")

        previous = self.state
        self.state = ForecasterState.FORECASTING
        try:
            result = forecast(self.fitted_model, horizon, confidence_level, self.config)
        except Exception:
            self.state = previous
            raise
        self.state = ForecasterState.DONE
        return result


__all__ = [
    "z_score",
    "forecast",
    "Forecaster",
    "ForecasterState",
    "ArimaForecaster",
]
