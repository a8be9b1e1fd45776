"""Tests for ARIMA forecasting."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from tsforecast.timeseries.errors import NotTrainedError
from tsforecast.timeseries.estimation import train
from tsforecast.timeseries.forecasting import (
    ArimaForecaster,
    Forecaster,
    ForecasterState,
    forecast,
    z_score,
)


@pytest.fixture
def ar1_model(ar1_series):
    return train(ar1_series, (1, 0, 0))


@pytest.fixture
def random_walk(rng):
    return 100.0 + np.cumsum(rng.normal(size=200))


class TestZScore:
    """Tests for z_score()."""

    @pytest.mark.parametrize("level,expected", [(0.90, 1.645), (0.95, 1.96), (0.99, 2.576)])
    def test_supported_levels(self, level, expected):
        """Test z-scores of supported confidence levels."""
        assert z_score(level) == expected

    def test_unsupported_level(self):
        """Test that other confidence levels are rejected."""
        with pytest.raises(ValueError, match="confidence_level"):
            z_score(0.8)


class TestForecast:
    """Tests for forecast()."""

    def test_horizon_and_timestamps(self, ar1_model):
        """Test forecast length and timestamps."""
        result = forecast(ar1_model, horizon=10)
        assert result.horizon == 10
        assert len(result.predictions) == 10
        np.testing.assert_allclose(result.timestamps, np.arange(400.0, 410.0))
        assert result.origin_timestamp == 399.0
        assert result.model_id == "arima_1_0_0"
        assert result.metrics == ar1_model.validation_metrics

    def test_intervals_bracket_predictions(self, ar1_model):
        """Test that intervals contain the predictions."""
        result = forecast(ar1_model, horizon=15)
        ci = result.confidence_intervals
        assert ci.level == 0.95
        assert np.all(ci.lower <= result.values)
        assert np.all(result.values <= ci.upper)

    def test_interval_width_grows_undifferenced(self, ar1_model):
        """Test that widths grow without differencing."""
        ci = forecast(ar1_model, horizon=20).confidence_intervals
        assert np.all(np.diff(ci.upper - ci.lower) > 0)

    def test_interval_width_grows_differenced(self, random_walk):
        """Test that widths grow after single integration."""
        model = train(random_walk, (1, 1, 0))
        ci = forecast(model, horizon=20).confidence_intervals
        assert np.all(np.diff(ci.upper - ci.lower) > 0)

    def test_interval_width_grows_twice_differenced(self, rng):
        """Test that widths grow after double integration."""
        series = 1e4 + np.cumsum(np.cumsum(0.1 * rng.normal(size=300)))
        model = train(series, (1, 2, 0))
        assert model.applied_d == 2
        ci = forecast(model, horizon=20).confidence_intervals
        assert np.all(np.diff(ci.upper - ci.lower) > 0)

    @pytest.mark.parametrize("seed", [0, 2, 5])
    @pytest.mark.parametrize("order", [(1, 0, 0), (2, 0, 0)])
    def test_interval_width_never_shrinks_near_zero(self, seed, order):
        """Test that the zero floor does not narrow later intervals."""
        series = np.abs(np.random.default_rng(seed).normal(0.5, 1.0, size=150))
        series[-1] = 3.0
        result = forecast(train(series, order), horizon=30)
        ci = result.confidence_intervals
        assert np.all(np.diff(ci.upper - ci.lower) >= 0.0)
        assert np.all(ci.lower >= 0.0)
        assert np.all(ci.lower <= result.values)
        assert np.all(result.values <= ci.upper)

    def test_wider_intervals_at_higher_level(self, ar1_model):
        """Test that higher confidence gives wider intervals."""
        narrow = forecast(ar1_model, 5, confidence_level=0.90).confidence_intervals
        wide = forecast(ar1_model, 5, confidence_level=0.99).confidence_intervals
        assert np.all(wide.upper - wide.lower > narrow.upper - narrow.lower)

    def test_non_negative(self, rng):
        """Test that forecasts and bounds are non-negative."""
        series = np.abs(0.2 + 0.5 * rng.normal(size=120))
        result = forecast(train(series, (1, 0, 0)), horizon=30)
        assert np.all(result.values >= 0.0)
        assert np.all(result.confidence_intervals.lower >= 0.0)

    def test_constant_series(self):
        """Test forecasting a constant series."""
        model = train(np.full(60, 42.0), (0, 0, 1))
        result = forecast(model, horizon=5)
        np.testing.assert_allclose(result.values, 42.0)

    def test_differenced_forecast_starts_near_last_value(self, random_walk):
        """Test that differenced forecasts start near the last value."""
        model = train(random_walk, (0, 1, 1))
        result = forecast(model, horizon=3)
        assert abs(result.values[0] - random_walk[-1]) < 5.0

    def test_untrained(self):
        """Test that forecasting without a model raises."""
        with pytest.raises(NotTrainedError):
            forecast(None, 5)

    @pytest.mark.parametrize("horizon", [0, -3, 2.5, True])
    def test_invalid_horizon(self, ar1_model, horizon):
        """Test forecasting with invalid horizons."""
        with pytest.raises(ValueError, match="horizon"):
            forecast(ar1_model, horizon)

    def test_model_is_reusable(self, ar1_model):
        """Test that repeated forecasts agree."""
        first = forecast(ar1_model, 10)
        second = forecast(ar1_model, 10)
        np.testing.assert_array_equal(first.values, second.values)

    def test_concurrent_forecasts_agree(self, ar1_model):
        """Test that concurrent forecasts agree."""
        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(lambda _: forecast(ar1_model, 12), range(8)))
        for result in results[1:]:
            np.testing.assert_array_equal(result.values, results[0].values)


class TestArimaForecaster:
    """Tests for the stateful ArimaForecaster."""

    def test_lifecycle(self, ar1_series):
        """Test the forecaster state transitions."""
        forecaster = ArimaForecaster((1, 0, 0))
        assert forecaster.state is ForecasterState.UNTRAINED
        assert forecaster.model_id == "arima_1_0_0"

        model = forecaster.train(ar1_series)
        assert forecaster.state is ForecasterState.TRAINED
        assert forecaster.fitted_model is model

        result = forecaster.forecast(7)
        assert forecaster.state is ForecasterState.DONE
        assert result.horizon == 7

        forecaster.forecast(3)
        assert forecaster.state is ForecasterState.DONE

    def test_forecast_before_training(self):
        """Test that forecasting before training raises."""
        with pytest.raises(NotTrainedError):
            ArimaForecaster((1, 0, 0)).forecast(5)

    def test_failed_forecast_restores_state(self, ar1_series):
        """Test that a failed forecast keeps the trained state."""
        forecaster = ArimaForecaster((1, 0, 0))
        forecaster.train(ar1_series)
        with pytest.raises(ValueError):
            forecaster.forecast(0)
        assert forecaster.state is ForecasterState.TRAINED

    def test_satisfies_protocol(self):
        """Test that ArimaForecaster satisfies Forecaster."""
        assert isinstance(ArimaForecaster((1, 0, 0)), Forecaster)
