"""Feature engineering and sequence windowing for LSTM forecasters.

Turns a univariate series into a per-timestep feature matrix, slides
fixed-length windows over it, scales the result and packages it as torch
datasets. Training the network itself happens elsewhere.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import numpy as np
import torch
from torch.utils.data import TensorDataset

from ..logging import get_logger
from ..timeseries.errors import InsufficientDataError
from ..timeseries.types import as_series
from .scalers import MinMaxScaler

logger = get_logger(__name__)

# Points used by the trend slope feature.
_TREND_POINTS = 5


@dataclass(frozen=True)
class FeatureConfig:
    """Which features :func:`engineer_features` produces.

    Attributes:
        lags: Lag offsets whose values become features.
        moving_average_windows: Trailing mean windows (current point included).
        seasonal_periods: Periods for the seasonal value and difference.
        include_lags: Emit ``lag_k`` features.
        include_moving_averages: Emit ``ma_w`` features.
        include_seasonality: Emit ``seasonal_p`` and ``seasonal_diff_p``.
        include_trend: Emit the 5-point OLS slope ``trend_slope``.
        include_weekday: One-hot ``weekday_0`` (Sunday) .. ``weekday_6``.
        include_month: One-hot ``month_0`` (January) .. ``month_11``.
    """

    lags: tuple[int, ...] = (1, 7)
    moving_average_windows: tuple[int, ...] = (7,)
    seasonal_periods: tuple[int, ...] = (7,)
    include_lags: bool = True
    include_moving_averages: bool = True
    include_seasonality: bool = True
    include_trend: bool = True
    include_weekday: bool = True
    include_month: bool = False

    def __post_init__(self) -> None:
        for name in ("lags", "moving_average_windows", "seasonal_periods"):
            values = getattr(self, name)
            if any(v < 1 for v in values):
                raise ValueError(f"{name} must contain positive integers, got {values}.")

    @property
    def max_lookback(self) -> int:
        """History consumed before the first feature row."""
        lookback = 0
        if self.include_lags and self.lags:
            lookback = max(lookback, max(self.lags))
        if self.include_moving_averages and self.moving_average_windows:
            lookback = max(lookback, max(self.moving_average_windows))
        if self.include_seasonality and self.seasonal_periods:
            lookback = max(lookback, max(self.seasonal_periods))
        if self.include_trend:
            lookback = max(lookback, _TREND_POINTS - 1)
        return lookback


@dataclass(frozen=True)
class ProcessedFeatures:
    """
    Per-timestep feature matrix aligned with its target.

    Attributes:
        features: Shape (samples, n_features).
        feature_names: Column names, in order.
        target: Value at each row's timestep, shape (samples,).
        timestamps: Timestamp of each row, shape (samples,).
        dropped_rows: Leading observations consumed as history.
        feature_stats: Per-feature ``mean``, ``std``, ``min`` and ``max``.
    """

    features: np.ndarray
    feature_names: tuple[str, ...]
    target: np.ndarray
    timestamps: np.ndarray
    dropped_rows: int
    feature_stats: Dict[str, Dict[str, float]]


@dataclass(frozen=True)
class SequenceData:
    """
    Sliding windows ready for an LSTM.

    Attributes:
        sequences: Inputs, shape (samples, look_back, n_features).
        targets: Next ``horizon`` target values, shape (samples, horizon).
        target_values: The full target series the windows were cut from.
        feature_names: Names of the trailing feature axis.
        train_size: Leading samples used for training.
        test_size: Trailing samples held out.
        feature_scaler: Fitted input scaler, after :func:`normalize_sequences`.
        target_scaler: Fitted target scaler, after :func:`normalize_sequences`.
    """

    sequences: np.ndarray
    targets: np.ndarray
    target_values: np.ndarray
    feature_names: tuple[str, ...]
    train_size: int
    test_size: int
    feature_scaler: Optional[MinMaxScaler] = None
    target_scaler: Optional[MinMaxScaler] = None

    @property
    def samples_count(self) -> int:
        return self.sequences.shape[0]

    @property
    def sequence_length(self) -> int:
        return self.sequences.shape[1]

    @property
    def features_count(self) -> int:
        return self.sequences.shape[2]


def _calendar(timestamps: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Weekday (0 = Sunday) and zero-based month of UTC epoch seconds."""
    dates = [datetime.fromtimestamp(float(ts), tz=timezone.utc) for ts in timestamps]
    weekday = np.array([(d.weekday() + 1) % 7 for d in dates])
    month = np.array([d.month - 1 for d in dates])
    return weekday, month


def _trend_slopes(values: np.ndarray, rows: np.ndarray) -> np.ndarray:
    x = np.arange(_TREND_POINTS, dtype=np.float64)
    x_centered = x - x.mean()
    denom = float(np.sum(x_centered**2))
    windows = np.stack([values[i - _TREND_POINTS + 1 : i + 1] for i in rows])
    return windows @ x_centered / denom


def engineer_features(points: Any, config: Optional[FeatureConfig] = None) -> ProcessedFeatures:
    """Build the LSTM feature matrix of a series.

    Rows start at ``config.max_lookback`` so every feature has full history.
    Columns, in order: ``current_value``, ``lag_k``, ``ma_w``,
    ``seasonal_p``/``seasonal_diff_p``, ``trend_slope``, ``weekday_*``,
    ``month_*``. Calendar features read timestamps as UTC epoch seconds.

    Args:
        points: Observations accepted by :func:`as_series`; values must be
            finite (fill gaps upstream).
        config: Feature selection; defaults to ``FeatureConfig()``.

    Returns:
        ProcessedFeatures with one row per usable timestep.

    Raises:
        ValueError: If values are not finite.
        InsufficientDataError: If the series is not longer than the lookback.

    Example:
        >>> result = engineer_features(np.arange(30.0), FeatureConfig(include_weekday=False))
        >>> result.feature_names
        ('current_value', 'lag_1', 'lag_7', 'ma_7', 'seasonal_7', 'seasonal_diff_7', 'trend_slope')
    """
    config = config or FeatureConfig()
    timestamps, values = as_series(points)
    if not np.all(np.isfinite(values)):
        raise ValueError("Feature engineering requires finite values.")

    start = config.max_lookback
    n = len(values)
    if n <= start:
        raise InsufficientDataError(
            f"Need more than {start} points for feature engineering, got {n}"
        )

    rows = np.arange(start, n)
    columns = [values[rows]]
    names = ["current_value"]

    if config.include_lags:
        for lag in config.lags:
            columns.append(values[rows - lag])
            names.append(f"lag_{lag}")

    if config.include_moving_averages:
        cumsum = np.concatenate([[0.0], np.cumsum(values)])
        for window in config.moving_average_windows:
            columns.append((cumsum[rows + 1] - cumsum[rows + 1 - window]) / window)
            names.append(f"ma_{window}")

    if config.include_seasonality:
        for period in config.seasonal_periods:
            columns.append(values[rows - period])
            names.append(f"seasonal_{period}")
            columns.append(values[rows] - values[rows - period])
            names.append(f"seasonal_diff_{period}")

    if config.include_trend:
        columns.append(_trend_slopes(values, rows))
        names.append("trend_slope")

    if config.include_weekday or config.include_month:
        weekday, month = _calendar(timestamps[rows])
        if config.include_weekday:
            for d in range(7):
                columns.append((weekday == d).astype(np.float64))
                names.append(f"weekday_{d}")
        if config.include_month:
            for m in range(12):
                columns.append((month == m).astype(np.float64))
                names.append(f"month_{m}")

    features = np.column_stack(columns)
    feature_stats = {
        name: {
            "mean": float(np.mean(col)),
            "std": float(np.std(col)),
            "min": float(np.min(col)),
            "max": float(np.max(col)),
        }
        for name, col in zip(names, features.T)
    }

    logger.debug(
        "Engineered %d samples x %d features (dropped %d rows)",
        features.shape[0],
        features.shape[1],
        start,
    )

    return ProcessedFeatures(
        features=features,
        feature_names=tuple(names),
        target=values[rows].copy(),
        timestamps=timestamps[rows].copy(),
        dropped_rows=start,
        feature_stats=feature_stats,
    )


def create_sequences(
    features: ProcessedFeatures,
    look_back: int,
    horizon: int = 1,
    train_fraction: float = 0.8,
) -> SequenceData:
    """Slide ``look_back``-step input windows over the feature matrix.

    Sample ``i`` takes feature rows ``i .. i+look_back-1`` as input and the
    targets at ``i+look_back .. i+look_back+horizon-1`` as output. The first
    ``floor(samples * train_fraction)`` samples form the training split.

    Raises:
        ValueError: For non-positive ``look_back``/``horizon`` or a
            ``train_fraction`` outside (0, 1).
        InsufficientDataError: If no full window fits.

    Example:
        >>> feats = engineer_features(np.arange(40.0), FeatureConfig(include_weekday=False))
        >>> data = create_sequences(feats, look_back=5, horizon=2)
        >>> data.sequences.shape, data.targets.shape
        ((27, 5, 7), (27, 2))
    """
    if look_back < 1:
        raise ValueError(f"look_back must be >= 1, got {look_back}")
    if horizon < 1:
        raise ValueError(f"horizon must be >= 1, got {horizon}")
    if not 0.0 < train_fraction < 1.0:
        raise ValueError(f"train_fraction must be in (0, 1), got {train_fraction}")

    X = features.features
    y = features.target
    total = len(X) - look_back - horizon + 1
    if total <= 0:
        raise InsufficientDataError(
            f"Need at least {look_back + horizon} samples for sequence creation, "
            f"got {len(X)}"
        )

    sequences = np.stack([X[i : i + look_back] for i in range(total)])
    targets = np.stack([y[i + look_back : i + look_back + horizon] for i in range(total)])
    train_size = int(np.floor(total * train_fraction))

    logger.debug(
        "Created %d sequences: look_back=%d, horizon=%d, features=%d",
        total,
        look_back,
        horizon,
        X.shape[1],
    )

    return SequenceData(
        sequences=sequences,
        targets=targets,
        target_values=y.copy(),
        feature_names=features.feature_names,
        train_size=train_size,
        test_size=total - train_size,
    )


def normalize_sequences(
    data: SequenceData, feature_range: tuple[float, float] = (0.0, 1.0)
) -> SequenceData:
    """Min-max scale inputs per feature and targets by the target series range.

    Returns a new SequenceData carrying the fitted scalers; use
    :func:`denormalize_predictions` with ``target_scaler`` to map network
    outputs back.
    """
    feature_scaler = MinMaxScaler(feature_range=feature_range).fit(data.sequences)
    target_scaler = MinMaxScaler(feature_range=feature_range).fit(data.target_values)

    return replace(
        data,
        sequences=feature_scaler.transform(data.sequences),
        targets=target_scaler.transform(data.targets.reshape(-1)).reshape(data.targets.shape),
        feature_scaler=feature_scaler,
        target_scaler=target_scaler,
    )


def denormalize_predictions(values: Any, scaler: MinMaxScaler) -> np.ndarray:
    """Map scaled target predictions back to the original scale (any shape)."""
    array = np.asarray(values, dtype=np.float64)
    return scaler.inverse_transform(array.reshape(-1)).reshape(array.shape)


def to_tensor_datasets(
    data: SequenceData, dtype: torch.dtype = torch.float32
) -> tuple[TensorDataset, TensorDataset]:
    """Package windows as chronological train/test torch datasets.

    Example:
        >>> feats = engineer_features(np.arange(40.0), FeatureConfig(include_weekday=False))
        >>> train, test = to_tensor_datasets(create_sequences(feats, look_back=5))
        >>> len(train), len(test)
        (22, 6)
    """
    X = torch.as_tensor(data.sequences, dtype=dtype)
    y = torch.as_tensor(data.targets, dtype=dtype)
    split = data.train_size
    return TensorDataset(X[:split], y[:split]), TensorDataset(X[split:], y[split:])


__all__ = [
    "FeatureConfig",
    "ProcessedFeatures",
    "SequenceData",
    "engineer_features",
    "create_sequences",
    "normalize_sequences",
    "denormalize_predictions",
    "to_tensor_datasets",
]
