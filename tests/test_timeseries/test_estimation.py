"""Tests for ARIMA parameter estimation and training."""

from __future__ import annotations

import dataclasses

import numpy as np
import pytest

from tsforecast.timeseries.config import ArimaConfig
from tsforecast.timeseries.errors import EstimationFailureError, InsufficientDataError
from tsforecast.timeseries.estimation import (
    enforce_invertibility,
    enforce_stationarity,
    estimate_arma,
    fit_ar,
    fit_arma,
    fit_ma,
    fitted_and_residuals,
    log_likelihood,
    train,
)
from tsforecast.timeseries.types import ConvergenceStatus, ModelOrder, TimeSeriesPoint


class TestRecursion:
    """Tests for the ARMA recursion and likelihood helpers."""

    def test_ar_recursion(self):
        """Test the AR one-step recursion."""
        fitted, residuals = fitted_and_residuals(
            np.array([1.0, 2.0, 3.0]), np.array([1.0]), np.array([])
        )
        np.testing.assert_allclose(fitted, [1.0, 1.0, 2.0])
        np.testing.assert_allclose(residuals, [0.0, 1.0, 1.0])

    def test_ma_recursion_feeds_back_residuals(self):
        """Test that MA terms use earlier residuals."""
        fitted, residuals = fitted_and_residuals(
            np.array([1.0, 2.0, 3.0]), np.array([]), np.array([0.5])
        )
        np.testing.assert_allclose(fitted, [1.0, 0.0, 1.0])
        np.testing.assert_allclose(residuals, [0.0, 2.0, 2.0])

    def test_intercept(self):
        """Test that the intercept enters every fitted value."""
        fitted, _ = fitted_and_residuals(np.zeros(4), np.array([0.0]), np.array([]), 3.0)
        np.testing.assert_allclose(fitted, [0.0, 3.0, 3.0, 3.0])

    def test_log_likelihood(self):
        """Test the Gaussian log-likelihood."""
        assert log_likelihood(np.zeros(4), 1.0) == pytest.approx(-2.0 * np.log(2 * np.pi))
        assert log_likelihood(np.zeros(4), 0.0) == -np.inf


class TestStabilityConstraints:
    """Tests for coefficient rescaling."""

    def test_rescales_explosive_ar(self):
        """Test rescaling of AR coefficients with large absolute sum."""
        ar = enforce_stationarity(np.array([0.8, 0.6]))
        np.testing.assert_allclose(ar, [0.56571429, 0.42428571], rtol=1e-6)
        assert np.sum(np.abs(ar)) == pytest.approx(0.99)

    def test_leaves_small_coefficients(self):
        """Test that small coefficients are unchanged."""
        np.testing.assert_array_equal(enforce_stationarity(np.array([0.3, -0.2])), [0.3, -0.2])

    def test_invertibility_uses_absolute_sum(self):
        """Test MA rescaling keeps signs."""
        ma = enforce_invertibility(np.array([-0.9, 0.5]), limit=0.9)
        assert np.sum(np.abs(ma)) == pytest.approx(0.9)
        assert ma[0] < 0 < ma[1]


class TestFitFunctions:
    """Tests for the closed-form estimators."""

    def test_fit_ar_recovers_phi(self, ar1_series):
        """Test AR(1) fitting with OLS."""
        fit = fit_ar(ar1_series, 1)
        assert abs(fit.ar_coefficients[0] - 0.6) < 0.15
        assert fit.intercept == pytest.approx(50.0 * (1.0 - fit.ar_coefficients[0]), rel=0.1)
        assert fit.ma_coefficients.shape == (0,)

    def test_fit_ar_constant_series_is_singular(self):
        """Test that a constant series is singular for OLS."""
        with pytest.raises(EstimationFailureError):
            fit_ar(np.full(60, 42.0), 1)

    def test_fit_ar_without_intercept(self, rng):
        """Test AR fitting without an intercept."""
        fit = fit_ar(rng.normal(size=100), 2, with_intercept=False)
        assert fit.intercept == 0.0
        assert fit.ar_coefficients.shape == (2,)

    def test_fit_ar_clamps_growth_series(self):
        """Test that the AR coefficient sum is clamped on exponential growth."""
        growth = 100.0 * 1.01 ** np.arange(200)
        fit = fit_ar(growth, 1)
        assert abs(np.sum(fit.ar_coefficients)) == pytest.approx(0.99)
        assert np.all(np.isfinite(fit.residuals))

    def test_fit_arma_clamps_ar_part(self, rng):
        """Test that the two-stage fit inherits the AR clamp."""
        growth = 100.0 * 1.01 ** np.arange(200) + rng.normal(size=200)
        fit = fit_arma(growth, 2, 1)
        assert abs(np.sum(fit.ar_coefficients)) < 1.0

    def test_fit_ar_keeps_seasonal_polynomial(self):
        """Test that a period-7 AR(2) with small signed sum is left alone."""
        t = np.arange(140)
        fit = fit_ar(np.sin(2 * np.pi * t / 7), 2)
        np.testing.assert_allclose(
            fit.ar_coefficients, [2 * np.cos(2 * np.pi / 7), -1.0], atol=1e-6
        )

    def test_fit_ma_constant_series(self):
        """Test MA fitting on a constant series."""
        fit = fit_ma(np.full(60, 42.0), 1)
        assert fit.intercept == pytest.approx(42.0)
        np.testing.assert_allclose(fit.ma_coefficients, [0.0])
        np.testing.assert_allclose(fit.residuals, 0.0)
        assert fit.sigma2 == pytest.approx(ArimaConfig().variance_floor)

    def test_fit_ma_coefficients_are_bounded(self, ar1_series):
        """Test that MA coefficients are clipped and invertible."""
        fit = fit_ma(ar1_series, 3)
        assert np.all(np.abs(fit.ma_coefficients) <= 0.8)
        assert np.sum(np.abs(fit.ma_coefficients)) < 1.0

    def test_fit_ma_invalid_order(self):
        """Test MA fitting with invalid order."""
        with pytest.raises(ValueError, match="q must be >= 1"):
            fit_ma(np.arange(10.0), 0)

    def test_fit_arma_shapes(self, ar1_series):
        """Test ARMA coefficient shapes."""
        fit = fit_arma(ar1_series, 2, 1)
        assert fit.ar_coefficients.shape == (2,)
        assert fit.ma_coefficients.shape == (1,)
        assert np.all(np.isfinite(fit.residuals))
        assert fit.residuals[0] == 0.0


class TestEstimateArma:
    """Tests for estimate_arma() dispatch and limits."""

    def test_minimum_length(self):
        """Test the estimation length requirement."""
        with pytest.raises(InsufficientDataError, match="at least 52"):
            estimate_arma(np.arange(51.0), ModelOrder(2, 0, 0))

    def test_intercept_only_when_undifferenced(self, rng):
        """Test that differenced models have no intercept."""
        x = rng.normal(size=120) + 5.0
        assert estimate_arma(x, ModelOrder(1, 0, 0)).intercept != 0.0
        assert estimate_arma(x, ModelOrder(1, 1, 0)).intercept == 0.0

    def test_refinement_never_increases_css(self, ar1_series):
        """Test that CSS refinement never worsens the fit."""
        order = ModelOrder(1, 0, 1)
        plain = estimate_arma(ar1_series, order)
        refined = estimate_arma(ar1_series, order, config=ArimaConfig(refine=True))
        assert np.sum(refined.residuals**2) <= np.sum(plain.residuals**2) + 1e-9
        assert np.sum(np.abs(refined.ar_coefficients)) < 1.0
        assert refined.iterations >= 0


class TestTrain:
    """Tests for the train() pipeline."""

    def test_ar1_end_to_end(self, ar1_series):
        """Test training an AR(1) model end to end."""
        model = train(ar1_series, ModelOrder(1, 0, 0))
        assert model.model_id == "arima_1_0_0"
        assert abs(model.ar_coefficients[0] - 0.6) < 0.15
        assert model.nobs == 400
        assert model.applied_d == 0
        assert model.convergence_status is ConvergenceStatus.CONVERGED
        assert model.iterations == 1
        assert model.validation_metrics.r2 > 0.2

    def test_growth_series_is_stationary(self):
        """Test that a trained growth model keeps its AR sum below one."""
        model = train(100.0 * 1.01 ** np.arange(200), (1, 0, 0))
        assert abs(np.sum(model.ar_coefficients)) < 1.0

    def test_accepts_tuple_order(self, ar1_series):
        """Test that a plain tuple order is accepted."""
        assert train(ar1_series, (2, 0, 0)).order == ModelOrder(2, 0, 0)

    def test_fitted_plus_residuals_is_history(self, ar1_series):
        """Test that fitted values and residuals rebuild the history."""
        model = train(ar1_series, (1, 1, 1))
        np.testing.assert_allclose(
            model.fitted_values + model.residuals, model.history[model.applied_d :]
        )
        assert len(model.fitted_values) == len(model.history) - 1
        assert model.intercept == 0.0

    def test_information_criteria(self, ar1_series):
        """Test AIC and BIC of a trained model."""
        model = train(ar1_series, (1, 0, 0))
        k = model.order.n_params
        assert model.aic == pytest.approx(2 * k - 2 * model.log_likelihood)
        assert model.bic == pytest.approx(k * np.log(model.nobs) - 2 * model.log_likelihood)
        assert model.validation_metrics.aic == model.aic

    def test_model_is_immutable(self, ar1_series):
        """Test that trained models cannot be modified."""
        model = train(ar1_series, (1, 0, 0))
        with pytest.raises(dataclasses.FrozenInstanceError):
            model.intercept = 0.0
        with pytest.raises(ValueError):
            model.residuals[0] = 1.0
        assert not model.history.flags.writeable

    def test_constant_series_ma(self):
        """Test training MA on a constant series."""
        model = train(np.full(60, 42.0), (0, 0, 1))
        assert model.intercept == pytest.approx(42.0)
        assert model.validation_metrics.r2 == 1.0
        assert model.validation_metrics.mape == 0.0

    def test_constant_series_ar_fails(self):
        """Test that AR training fails on a constant series."""
        with pytest.raises(EstimationFailureError):
            train(np.full(60, 42.0), (1, 0, 0))

    def test_too_short(self):
        """Test training on fewer than 50 points."""
        with pytest.raises(InsufficientDataError, match="at least 50"):
            train(np.arange(49.0), (1, 0, 0))

    def test_short_series_stops_differencing(self, rng):
        """Test that short series stop differencing early."""
        series = np.cumsum(rng.normal(size=60)) + 100.0
        model = train(series, (0, 2, 1))
        assert model.order.d == 2
        assert model.applied_d == 1
        assert len(model.differenced) == 59

    def test_timestamps_are_carried(self, ar1_series):
        """Test that input timestamps reach the model."""
        points = [TimeSeriesPoint(86400.0 * i, v) for i, v in enumerate(ar1_series)]
        model = train(points, (1, 0, 0))
        assert model.origin_timestamp == 86400.0 * 399
        assert model.timestamp_step == 86400.0

    def test_invalid_order(self, ar1_series):
        """Test that p and q cannot both be zero."""
        with pytest.raises(ValueError, match="At least one of p or q"):
            train(ar1_series, (0, 1, 0))
