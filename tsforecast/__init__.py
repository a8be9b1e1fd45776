"""tsforecast - ARIMA forecasting with automatic order selection."""

__version__ = "0.1.0"

from .logging import configure_logging, get_logger, set_log_level
from .timeseries import (
    AllModelsFailedError,
    ArimaConfig,
    ArimaForecaster,
    BaselineForecaster,
    BaselineKind,
    BaselineSpec,
    EstimationFailureError,
    FittedModel,
    ForecastingError,
    ForecastResult,
    InsufficientDataError,
    ModelOrder,
    NotTrainedError,
    SelectionConfig,
    SelectionResult,
    SeriesReport,
    TimeSeriesPoint,
    analyze,
    auto_forecast,
    auto_select,
    forecast,
    train,
)

__all__ = [
    "__version__",
    # Logging
    "get_logger",
    "set_log_level",
    "configure_logging",
    # Types
    "TimeSeriesPoint",
    "ModelOrder",
    "FittedModel",
    "ForecastResult",
    "SelectionResult",
    "SeriesReport",
    # Configuration
    "ArimaConfig",
    "SelectionConfig",
    # Errors
    "ForecastingError",
    "InsufficientDataError",
    "EstimationFailureError",
    "NotTrainedError",
    "AllModelsFailedError",
    # Operations
    "analyze",
    "train",
    "forecast",
    "auto_select",
    "auto_forecast",
    "ArimaForecaster",
    "BaselineKind",
    "BaselineSpec",
    "BaselineForecaster",
]
