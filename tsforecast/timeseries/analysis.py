"""Exploratory analysis of a raw series before model selection.

:func:`analyze` summarises a series the way a forecasting dashboard shows it
after upload: descriptive statistics, trend direction, the dominant seasonal
period, a variance-ratio stationarity heuristic, IQR or z-score outliers and
the autocorrelation profile with its significant lags.

The stationarity check is a heuristic, not an augmented Dickey-Fuller test:
its ``p_value`` only takes the two values 0.01 and 0.15.

References:
    - Box & Jenkins (1976): Time Series Analysis: Forecasting and Control
    - Tukey (1977): Exploratory Data Analysis
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple

import numpy as np
from scipy import stats

from ..logging import get_logger
from .diagnostics import ljung_box
from .errors import InsufficientDataError
from .preprocessing import iqr_bounds
from .types import as_series, readonly
from .utils import acf

logger = get_logger(__name__)

# 95% two-sided normal quantile for the white-noise ACF band.
_ACF_BAND_Z = 1.96


class Trend(Enum):
    """Direction of the least-squares slope."""

    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class OutlierMethod(Enum):
    IQR = "iqr"
    ZSCORE = "zscore"


@dataclass(frozen=True)
class DescriptiveStats:
    """Population moments and quartiles of a series.

    ``std`` is the population standard deviation, ``kurtosis`` is excess
    kurtosis. Both shape moments are 0 for a constant series.
    """

    count: int
    mean: float
    std: float
    min: float
    max: float
    median: float
    q1: float
    q3: float
    skewness: float
    kurtosis: float


@dataclass(frozen=True)
class Seasonality:
    detected: bool
    period: Optional[int] = None
    strength: Optional[float] = None


@dataclass(frozen=True)
class StationarityCheck:
    """Outcome of :func:`check_stationarity`.

    Attributes:
        is_stationary: Heuristic verdict.
        p_value: 0.01 when stationary, 0.15 when not, 1.0 without enough data.
        variance_ratio: ``var(Δx) / var(x)``.
        crossing_ratio: Share of interior points whose neighbours sit on
            opposite sides of the mean.
        recommendation: Suggested differencing order, as text.
    """

    is_stationary: bool
    p_value: float
    variance_ratio: float
    crossing_ratio: float
    recommendation: str


@dataclass(frozen=True)
class OutlierReport:
    """Outliers found by :func:`detect_outliers`.

    ``indices`` are positions in the input as given, before non-finite values
    were dropped. ``bounds`` is ``(lower, upper)`` for the IQR method and
    None for z-scores.
    """

    indices: np.ndarray
    values: np.ndarray
    method: OutlierMethod
    threshold: float
    bounds: Optional[Tuple[float, float]] = None

    @property
    def count(self) -> int:
        return len(self.indices)


@dataclass(frozen=True)
class AutocorrelationSummary:
    values: np.ndarray
    significant_lags: Tuple[int, ...]
    confidence_band: float
    ljung_box_pvalue: float


@dataclass(frozen=True)
class SeriesReport:
    """Everything :func:`analyze` computes for one series."""

    stats: DescriptiveStats
    trend: Trend
    seasonality: Seasonality
    stationarity: StationarityCheck
    outliers: OutlierReport
    autocorrelation: AutocorrelationSummary
    dropped_values: int = 0


def _finite_values(data: Any) -> Tuple[np.ndarray, np.ndarray, int]:
    _, values = as_series(data)
    positions = np.flatnonzero(np.isfinite(values))
    if len(positions) == 0:
        raise InsufficientDataError("No data available for analysis")
    return positions, values[positions], len(values) - len(positions)


def describe(values: np.ndarray) -> DescriptiveStats:
    """Descriptive statistics of a 1D array of finite values.

    Quartiles use the same ``sorted[floor(p n)]`` rule as the outlier fences.

    Raises:
        InsufficientDataError: If ``values`` is empty.
    """
    x = np.asarray(values, dtype=np.float64)
    if len(x) == 0:
        raise InsufficientDataError("No data available for analysis")
    ordered = np.sort(x)
    n = len(ordered)
    std = float(np.std(x))
    if std > 0:
        skewness = float(stats.skew(x))
        kurtosis = float(stats.kurtosis(x))
    else:
        skewness = kurtosis = 0.0
    return DescriptiveStats(
        count=n,
        mean=float(np.mean(x)),
        std=std,
        min=float(ordered[0]),
        max=float(ordered[-1]),
        median=float(np.median(x)),
        q1=float(ordered[int(np.floor(n * 0.25))]),
        q3=float(ordered[int(np.floor(n * 0.75))]),
        skewness=skewness,
        kurtosis=kurtosis,
    )


def detect_trend(values: np.ndarray, threshold: float = 0.01) -> Trend:
    """Classify the OLS slope against time index.

    Slopes with ``|slope| < threshold`` (in value units per step) are
    :attr:`Trend.STABLE`, as is any series shorter than 3 points.
    """
    y = np.asarray(values, dtype=np.float64)
    if len(y) < 3:
        return Trend.STABLE
    t = np.arange(len(y), dtype=np.float64)
    t_centered = t - t.mean()
    slope = float(np.dot(t_centered, y - y.mean()) / np.dot(t_centered, t_centered))
    if abs(slope) < threshold:
        return Trend.STABLE
    return Trend.INCREASING if slope > 0 else Trend.DECREASING


def detect_seasonality(
    values: np.ndarray,
    max_period: int = 52,
    threshold: float = 0.3,
    min_length: int = 12,
) -> Seasonality:
    """Pick the period with the strongest autocorrelation.

    Periods from 2 to ``min(n // 3, max_period)`` are scanned; the first
    period reaching the largest autocorrelation wins, and seasonality is
    reported only when that autocorrelation exceeds ``threshold``.

    Example:
        >>> detect_seasonality(np.tile([1.0, 5.0, 3.0, 0.0], 10)).period
        4
    """
    x = np.asarray(values, dtype=np.float64)
    top = min(len(x) // 3, max_period)
    if len(x) < min_length or top < 2:
        return Seasonality(detected=False)

    rho = acf(x, nlags=top)
    candidates = rho[2:]
    # Ties within rounding go to the shortest period.
    period = int(np.flatnonzero(candidates >= candidates.max() - 1e-9)[0]) + 2
    strength = float(rho[period])
    if strength <= threshold:
        return Seasonality(detected=False)
    return Seasonality(detected=True, period=period, strength=strength)


def check_stationarity(
    values: np.ndarray,
    min_variance_ratio: float = 0.8,
    min_crossing_ratio: float = 0.3,
    min_length: int = 10,
) -> StationarityCheck:
    """Variance-ratio and mean-crossing stationarity heuristic.

    A series counts as stationary when first differencing does not shrink
    its variance much (``var(Δx)/var(x) > min_variance_ratio``) and it keeps
    crossing its mean (``crossing_ratio > min_crossing_ratio``). Trending or
    random-walk series fail the first test.
    """
    x = np.asarray(values, dtype=np.float64)
    n = len(x)
    if n < min_length:
        return StationarityCheck(
            is_stationary=False,
            p_value=1.0,
            variance_ratio=np.nan,
            crossing_ratio=np.nan,
            recommendation="Insufficient data for stationarity test",
        )

    variance = float(np.var(x))
    variance_ratio = float(np.var(np.diff(x)) / variance) if variance > 0 else np.inf
    centered = x - np.mean(x)
    crossings = int(np.sum(centered[:-2] * centered[2:] < 0))
    crossing_ratio = crossings / (n - 2)

    stationary = variance_ratio > min_variance_ratio and crossing_ratio > min_crossing_ratio
    if stationary:
        recommendation = "Series appears stationary (d=0)"
    else:
        recommendation = "Consider differencing to achieve stationarity (d=1)"
    return StationarityCheck(
        is_stationary=stationary,
        p_value=0.01 if stationary else 0.15,
        variance_ratio=variance_ratio,
        crossing_ratio=crossing_ratio,
        recommendation=recommendation,
    )


def detect_outliers(
    values: np.ndarray,
    method: OutlierMethod = OutlierMethod.IQR,
    threshold: Optional[float] = None,
    positions: Optional[np.ndarray] = None,
) -> OutlierReport:
    """Flag values outside the IQR fence or beyond a z-score.

    Args:
        values: 1D array of finite values.
        method: IQR fence (default threshold 1.5) or absolute z-score
            against the population standard deviation (default 3).
        threshold: Fence width in IQRs, or z-score cut-off.
        positions: Index of each value in the caller's series; defaults to
            ``arange(n)``.

    Returns:
        OutlierReport. A constant series has no outliers under either method.
    """
    x = np.asarray(values, dtype=np.float64)
    if positions is None:
        positions = np.arange(len(x))
    method = OutlierMethod(method)

    bounds: Optional[Tuple[float, float]] = None
    if method is OutlierMethod.IQR:
        threshold = 1.5 if threshold is None else threshold
        bounds = iqr_bounds(x, threshold)
        mask = (x < bounds[0]) | (x > bounds[1])
    else:
        threshold = 3.0 if threshold is None else threshold
        std = float(np.std(x))
        if std > 0:
            mask = np.abs(x - np.mean(x)) / std > threshold
        else:
            mask = np.zeros(len(x), dtype=bool)

    indices = np.asarray(positions, dtype=np.intp)[mask]
    indices.setflags(write=False)
    return OutlierReport(
        indices=indices,
        values=readonly(x[mask]),
        method=method,
        threshold=float(threshold),
        bounds=bounds,
    )


def autocorrelation_summary(
    values: np.ndarray,
    max_lags: int = 20,
    ljung_box_lags: int = 10,
    exact: bool = False,
) -> AutocorrelationSummary:
    """ACF up to ``min(max_lags, n // 4)`` with lags outside the 95% band.

    The band is ``±1.96 / sqrt(n)``. The Ljung-Box p-value tests the raw
    series over ``min(ljung_box_lags, nlags)`` lags and is 1.0 when no lag
    can be tested, as for series shorter than 4 points.
    """
    x = np.asarray(values, dtype=np.float64)
    n = len(x)
    if n == 0:
        raise InsufficientDataError("No data available for analysis")
    band = _ACF_BAND_Z / np.sqrt(n)
    nlags = min(max_lags, n // 4)
    rho = acf(x, nlags=nlags) if n >= 2 else np.ones(1)
    significant = tuple(int(k) for k in np.flatnonzero(np.abs(rho) > band) if k > 0)

    lags = min(ljung_box_lags, nlags)
    pvalue = ljung_box(x, lags=lags, exact=exact)[1] if lags >= 1 else 1.0
    return AutocorrelationSummary(
        values=readonly(rho),
        significant_lags=significant,
        confidence_band=float(band),
        ljung_box_pvalue=float(pvalue),
    )


def analyze(
    data: Any,
    outlier_method: OutlierMethod = OutlierMethod.IQR,
    outlier_threshold: Optional[float] = None,
    trend_threshold: float = 0.01,
) -> SeriesReport:
    """Run every check on a raw series.

    Accepts anything :func:`~tsforecast.timeseries.types.as_series` accepts.
    Non-finite values are skipped; outlier indices still refer to the input.

    Raises:
        InsufficientDataError: If no finite value remains.

    Example:
        >>> t = np.arange(84)
        >>> report = analyze(100 + 10 * np.sin(2 * np.pi * t / 7) + 0.05 * t)
        >>> report.trend.value, report.seasonality.period
        ('increasing', 7)
    """
    positions, values, dropped = _finite_values(data)
    if dropped:
        logger.debug("Skipped %d non-finite values", dropped)

    report = SeriesReport(
        stats=describe(values),
        trend=detect_trend(values, trend_threshold),
        seasonality=detect_seasonality(values),
        stationarity=check_stationarity(values),
        outliers=detect_outliers(values, outlier_method, outlier_threshold, positions),
        autocorrelation=autocorrelation_summary(values),
        dropped_values=dropped,
    )
    logger.info(
        "Analysed %d points: trend=%s, seasonal period=%s, stationary=%s",
        len(values),
        report.trend.value,
        report.seasonality.period,
        report.stationarity.is_stationary,
    )
    return report


__all__ = [
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
]
