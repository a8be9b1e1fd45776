"""ARIMA forecasting core for tsforecast.

This module trains ARIMA(p, d, q) models on univariate series, scores them,
picks the best order from a fixed catalog and produces multi-step forecasts
with confidence intervals. Simple baseline forecasters are provided for
comparison.

Example:
    >>> from tsforecast.timeseries import SelectionConfig, auto_forecast
    >>> import numpy as np
    >>>
    >>> rng = np.random.default_rng(0)
    >>> t = np.arange(120)
    >>> series = 100 + 10 * np.sin(2 * np.pi * t / 7) + rng.normal(size=120)
    >>>
    >>> selection, result = auto_forecast(series, SelectionConfig(forecast_horizon=14))
    >>> len(result.predictions)
    14

References:
    - Box & Jenkins (1976): Time Series Analysis: Forecasting and Control
    - Hyndman & Athanasopoulos (2021): Forecasting: Principles and Practice
"""

from __future__ import annotations

from .analysis import (
    AutocorrelationSummary,
    DescriptiveStats,
    OutlierMethod,
    OutlierReport,
    Seasonality,
    SeriesReport,
    StationarityCheck,
    Trend,
    analyze,
    autocorrelation_summary,
    check_stationarity,
    describe,
    detect_outliers,
    detect_seasonality,
    detect_trend,
)
from .baselines import (
    BaselineFit,
    BaselineForecaster,
    BaselineKind,
    BaselineSpec,
    fit_baseline,
    forecast_baseline,
)
from .config import ArimaConfig
from .diagnostics import (
    aic,
    bic,
    correlation_r_squared,
    ljung_box,
    mape,
    r_squared,
    score_model,
    validation_metrics,
)
from .errors import (
    AllModelsFailedError,
    EstimationFailureError,
    ForecastingError,
    InsufficientDataError,
    NotTrainedError,
)
from .estimation import (
    ArmaFit,
    estimate_arma,
    fit_ar,
    fit_arma,
    fit_ma,
    train,
)
from .forecasting import (
    ArimaForecaster,
    Forecaster,
    ForecasterState,
    forecast,
    z_score,
)
from .preprocessing import DifferencedSeries, clean, difference, iqr_bounds, undifference
from .selection import (
    CANDIDATE_ORDERS,
    CandidateResult,
    ScoreWeights,
    SelectionConfig,
    SelectionResult,
    auto_forecast,
    auto_select,
    composite_score,
)
from .types import (
    ConfidenceIntervals,
    ConvergenceStatus,
    FittedModel,
    ForecastResult,
    ModelOrder,
    TimeSeriesPoint,
    ValidationMetrics,
    as_series,
)
from .utils import acf, acov, gaussian_elimination, lag_matrix, solve_normal_equations

__all__ = [
    # Types
    "TimeSeriesPoint",
    "ModelOrder",
    "ConvergenceStatus",
    "ValidationMetrics",
    "FittedModel",
    "ConfidenceIntervals",
    "ForecastResult",
    "as_series",
    # Configuration
    "ArimaConfig",
    "ScoreWeights",
    "SelectionConfig",
    # Errors
    "ForecastingError",
    "InsufficientDataError",
    "EstimationFailureError",
    "NotTrainedError",
    "AllModelsFailedError",
    # Preprocessing
    "DifferencedSeries",
    "clean",
    "difference",
    "iqr_bounds",
    "undifference",
    # Exploratory analysis
    "Trend",
    "OutlierMethod",
    "DescriptiveStats",
    "Seasonality",
    "StationarityCheck",
    "OutlierReport",
    "AutocorrelationSummary",
    "SeriesReport",
    "describe",
    "detect_trend",
    "detect_seasonality",
    "check_stationarity",
    "detect_outliers",
    "autocorrelation_summary",
    "analyze",
    # Estimation
    "ArmaFit",
    "fit_ar",
    "fit_ma",
    "fit_arma",
    "estimate_arma",
    "train",
    # Scoring
    "aic",
    "bic",
    "r_squared",
    "correlation_r_squared",
    "mape",
    "ljung_box",
    "validation_metrics",
    "score_model",
    # Forecasting
    "z_score",
    "forecast",
    "Forecaster",
    "ForecasterState",
    "ArimaForecaster",
    # Selection
    "CANDIDATE_ORDERS",
    "CandidateResult",
    "SelectionResult",
    "composite_score",
    "auto_select",
    "auto_forecast",
    # Baselines
    "BaselineKind",
    "BaselineSpec",
    "BaselineFit",
    "fit_baseline",
    "forecast_baseline",
    "BaselineForecaster",
    # Utilities
    "lag_matrix",
    "acov",
    "acf",
    "gaussian_elimination",
    "solve_normal_equations",
]
