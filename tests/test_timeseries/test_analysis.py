"""Tests for exploratory series analysis."""

from __future__ import annotations

import numpy as np
import pytest

from tsforecast.timeseries.analysis import (
    OutlierMethod,
    Trend,
    analyze,
    autocorrelation_summary,
    check_stationarity,
    describe,
    detect_outliers,
    detect_seasonality,
    detect_trend,
)
from tsforecast.timeseries.errors import InsufficientDataError
from tsforecast.timeseries.types import TimeSeriesPoint

SPIKED = np.array([1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0, 100.0])


class TestDescribe:
    """Tests for describe()."""

    def test_known_values(self):
        """Test moments and quartiles against hand computation."""
        stats = describe(np.array([2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0]))
        assert stats.count == 8
        assert stats.mean == pytest.approx(5.0)
        assert stats.std == pytest.approx(2.0)
        assert stats.median == pytest.approx(4.5)
        assert (stats.min, stats.max) == (2.0, 9.0)
        assert (stats.q1, stats.q3) == (4.0, 7.0)
        assert stats.skewness == pytest.approx(0.65625)
        assert stats.kurtosis == pytest.approx(-0.21875)

    def test_constant_series(self):
        """Test that a constant series has zero spread and shape moments."""
        stats = describe(np.full(10, 3.0))
        assert stats.std == 0.0
        assert stats.skewness == 0.0
        assert stats.kurtosis == 0.0

    def test_empty(self):
        """Test that an empty array is rejected."""
        with pytest.raises(InsufficientDataError):
            describe(np.array([]))


class TestDetectTrend:
    """Tests for detect_trend()."""

    def test_directions(self):
        """Test increasing and decreasing ramps."""
        assert detect_trend(np.arange(20.0)) is Trend.INCREASING
        assert detect_trend(-np.arange(20.0)) is Trend.DECREASING

    def test_small_slope_is_stable(self):
        """Test that slopes under the threshold count as stable."""
        ramp = 0.005 * np.arange(50.0)
        assert detect_trend(ramp) is Trend.STABLE
        assert detect_trend(ramp, threshold=0.001) is Trend.INCREASING

    def test_short_series_is_stable(self):
        """Test that fewer than 3 points give no trend."""
        assert detect_trend(np.array([0.0, 10.0])) is Trend.STABLE


class TestDetectSeasonality:
    """Tests for detect_seasonality()."""

    def test_repeating_pattern(self):
        """Test that the shortest repeating period is found."""
        result = detect_seasonality(np.tile([1.0, 5.0, 3.0, 0.0], 10))
        assert result.detected
        assert result.period == 4
        assert result.strength == pytest.approx(1.0)

    def test_weekly_sine(self, weekly_sine):
        """Test period detection on a noisy weekly cycle."""
        result = detect_seasonality(weekly_sine)
        assert result.detected
        assert result.period % 7 == 0

    def test_white_noise(self, rng):
        """Test that white noise shows no seasonality."""
        result = detect_seasonality(rng.normal(size=600))
        assert not result.detected
        assert result.period is None
        assert result.strength is None

    def test_threshold_and_length(self):
        """Test the correlation threshold and the minimum length."""
        pattern = np.tile([1.0, 5.0, 3.0, 0.0], 10)
        assert not detect_seasonality(pattern, threshold=1.5).detected
        assert not detect_seasonality(pattern[:11]).detected


class TestCheckStationarity:
    """Tests for check_stationarity()."""

    def test_white_noise_is_stationary(self, rng):
        """Test that white noise passes both criteria."""
        result = check_stationarity(rng.normal(size=500))
        assert result.is_stationary
        assert result.p_value == 0.01
        assert result.variance_ratio == pytest.approx(2.0, rel=0.2)
        assert result.crossing_ratio > 0.3
        assert "d=0" in result.recommendation

    def test_random_walk_is_not_stationary(self, rng):
        """Test that differencing a random walk shrinks its variance."""
        result = check_stationarity(np.cumsum(rng.normal(size=500)))
        assert not result.is_stationary
        assert result.p_value == 0.15
        assert result.variance_ratio < 0.8
        assert "d=1" in result.recommendation

    def test_constant_series(self):
        """Test that a constant series is not reported as stationary."""
        result = check_stationarity(np.full(20, 5.0))
        assert not result.is_stationary
        assert result.variance_ratio == np.inf

    def test_too_short(self):
        """Test the fallback for fewer than 10 points."""
        result = check_stationarity(np.arange(9.0))
        assert not result.is_stationary
        assert result.p_value == 1.0
        assert "Insufficient" in result.recommendation


class TestDetectOutliers:
    """Tests for detect_outliers()."""

    def test_iqr_fence(self):
        """Test the 1.5 IQR fence with floor-index quartiles."""
        report = detect_outliers(SPIKED)
        assert report.method is OutlierMethod.IQR
        assert report.threshold == 1.5
        assert report.bounds == (-3.0, 13.0)
        np.testing.assert_array_equal(report.indices, [8])
        np.testing.assert_array_equal(report.values, [100.0])
        assert report.count == 1

    def test_zscore(self):
        """Test z-score flagging at the default and a lower cut-off."""
        assert detect_outliers(SPIKED, OutlierMethod.ZSCORE).count == 0
        report = detect_outliers(SPIKED, "zscore", threshold=2.0)
        np.testing.assert_array_equal(report.indices, [8])
        assert report.bounds is None

    def test_constant_series(self):
        """Test that a constant series has no outliers."""
        assert detect_outliers(np.full(10, 2.0)).count == 0
        assert detect_outliers(np.full(10, 2.0), OutlierMethod.ZSCORE).count == 0

    def test_positions_map_back(self):
        """Test that reported indices use the caller's positions."""
        report = detect_outliers(SPIKED, positions=np.arange(10, 19))
        np.testing.assert_array_equal(report.indices, [18])
        assert not report.indices.flags.writeable


class TestAutocorrelationSummary:
    """Tests for autocorrelation_summary()."""

    def test_alternating_series(self):
        """Test that every lag of an alternating series is significant."""
        summary = autocorrelation_summary(np.tile([1.0, -1.0], 50))
        assert len(summary.values) == 21
        assert summary.values[0] == pytest.approx(1.0)
        assert summary.values[1] == pytest.approx(-1.0)
        assert summary.significant_lags == tuple(range(1, 21))
        assert summary.confidence_band == pytest.approx(0.196)
        assert summary.ljung_box_pvalue == 0.01

    def test_lag_count_follows_length(self, rng):
        """Test that at most n // 4 lags are computed."""
        summary = autocorrelation_summary(rng.normal(size=40))
        assert len(summary.values) == 11

    def test_short_series(self):
        """Test that a 3-point series tests no lags."""
        summary = autocorrelation_summary(np.array([1.0, 2.0, 3.0]))
        assert summary.significant_lags == ()
        assert summary.ljung_box_pvalue == 1.0


class TestAnalyze:
    """Tests for the analyze() report."""

    def test_seasonal_trending_series(self):
        """Test the full report on a trending weekly cycle."""
        t = np.arange(84)
        report = analyze(100 + 10 * np.sin(2 * np.pi * t / 7) + 0.05 * t)
        assert report.trend is Trend.INCREASING
        assert report.seasonality.period == 7
        assert report.stats.count == 84
        assert report.outliers.count == 0
        assert report.dropped_values == 0
        assert 7 in report.autocorrelation.significant_lags

    def test_non_finite_values_are_skipped(self):
        """Test that outlier indices refer to the raw input."""
        raw = np.insert(SPIKED, 2, np.nan)
        report = analyze(raw)
        assert report.dropped_values == 1
        assert report.stats.count == 9
        np.testing.assert_array_equal(report.outliers.indices, [9])

    def test_accepts_points(self, ar1_series):
        """Test that TimeSeriesPoint input is analysed by value."""
        points = [TimeSeriesPoint(float(i), v) for i, v in enumerate(ar1_series)]
        report = analyze(points)
        assert report.stats.mean == pytest.approx(np.mean(ar1_series))

    def test_outlier_options(self):
        """Test that the outlier method and threshold are passed through."""
        report = analyze(SPIKED, outlier_method=OutlierMethod.ZSCORE, outlier_threshold=2.0)
        assert report.outliers.method is OutlierMethod.ZSCORE
        np.testing.assert_array_equal(report.outliers.indices, [8])

    @pytest.mark.parametrize("data", [[], [np.nan, np.inf]])
    def test_no_finite_data(self, data):
        """Test that input without finite values is rejected."""
        with pytest.raises(InsufficientDataError, match="No data"):
            analyze(np.array(data, dtype=float))
