"""
Configuration for training, scoring and forecasting ARIMA models.

The damping factors, clipping limits and heuristic thresholds below are
calibration choices, not results of ARIMA theory. They are kept as fields so a
dataset that looks over- or under-damped can be re-tuned without code changes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class ArimaConfig:
    """
    Settings shared by the estimator, the scorer and the forecast engine.

    Estimation:
        max_iterations: Iteration cap for the optional CSS refinement.
        tolerance: Relative objective tolerance for the optional refinement.
        refine: Run a bounded L-BFGS-B minimisation of the conditional sum of
            squares after the moment/OLS estimates. Off by default.
        min_train_length: Minimum raw series length for training.
        min_estimation_margin: Estimation needs ``max(p, q)`` plus this many
            points on the (differenced) working series.
        min_differencing_length: Further differencing passes are skipped once
            the series falls below this length.
        strict_differencing: Raise instead of skipping those passes.
        max_invalid_fraction: Largest tolerated share of non-finite inputs.
        outlier_iqr_multiplier: Fence width, in IQRs, for outlier capping.
        ma_damping: Per-lag damping of moment-based MA coefficients.
        arma_ma_damping: Per-lag damping of MA coefficients in ARMA fits.
        ma_coefficient_limit: MA coefficients are clipped to +/- this value.
        stability_limit: AR/MA coefficient vectors whose absolute sum reaches
            1 are rescaled so it equals this value.
        variance_floor: Lower bound on the noise variance.

    Scoring:
        ljung_box_lags: Lags used by the residual autocorrelation test.
        exact_ljung_box: Use a chi-square CDF instead of bucketed p-values.
        r2_bounds: Clamp range for R².
        r2_override_gap: The correlation-based R² replaces the RSS-based one
            when it is higher by more than this gap.
        mape_min_actual: Points with smaller absolute actual are skipped.
        mape_term_cap: Cap on a single absolute percentage error.
        mape_cap: Cap on the overall MAPE.

    Forecasting:
        forecast_damping_d1: Step damping when undifferencing d=1 forecasts.
        forecast_damping_d2: Step damping when undifferencing d>=2 forecasts.
        ci_growth: Linear per-step inflation of the interval half-width.
        mean_reversion: Blend weight towards the rolling mean (d=0 only).
        mean_reversion_window: Window of the rolling mean.
        history_lag_floor: Lower bound on the lag window kept while forecasting.
        history_margin: Extra points kept beyond the lag window.
    """

    max_iterations: int = 300
    tolerance: float = 1e-8
    refine: bool = False
    min_train_length: int = 50
    min_estimation_margin: int = 50
    min_differencing_length: int = 100
    strict_differencing: bool = False
    max_invalid_fraction: float = 0.1
    outlier_iqr_multiplier: float = 3.0
    ma_damping: float = 0.8
    arma_ma_damping: float = 0.7
    ma_coefficient_limit: float = 0.8
    stability_limit: float = 0.99
    variance_floor: float = 1e-8
    ljung_box_lags: int = 10
    exact_ljung_box: bool = False
    r2_bounds: Tuple[float, float] = (-5.0, 1.0)
    r2_override_gap: float = 0.5
    mape_min_actual: float = 1e-3
    mape_term_cap: float = 500.0
    mape_cap: float = 999.0
    forecast_damping_d1: float = 0.95
    forecast_damping_d2: float = 0.9
    ci_growth: float = 0.1
    mean_reversion: float = 0.05
    mean_reversion_window: int = 20
    history_lag_floor: int = 20
    history_margin: int = 50

    def __post_init__(self) -> None:
        """Validate ArimaConfig invariants."""
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}.")
        if self.tolerance <= 0:
            raise ValueError(f"tolerance must be positive, got {self.tolerance}.")
        if self.min_train_length < 2:
            raise ValueError(
                f"min_train_length must be >= 2, got {self.min_train_length}."
            )
        if not 0.0 <= self.max_invalid_fraction < 1.0:
            raise ValueError(
                f"max_invalid_fraction must be in [0, 1), got {self.max_invalid_fraction}."
            )
        if self.outlier_iqr_multiplier <= 0:
            raise ValueError(
                f"outlier_iqr_multiplier must be positive, got {self.outlier_iqr_multiplier}."
            )
        for name in (
            "ma_damping",
            "arma_ma_damping",
            "forecast_damping_d1",
            "forecast_damping_d2",
        ):
            value = getattr(self, name)
            if not 0.0 < value <= 1.0:
                raise ValueError(f"{name} must be in (0, 1], got {value}.")
        if not 0.0 < self.ma_coefficient_limit < 1.0:
            raise ValueError(
                f"ma_coefficient_limit must be in (0, 1), got {self.ma_coefficient_limit}."
            )
        if not 0.0 < self.stability_limit < 1.0:
            raise ValueError(
                f"stability_limit must be in (0, 1), got {self.stability_limit}."
            )
        if self.variance_floor <= 0:
            raise ValueError(f"variance_floor must be positive, got {self.variance_floor}.")
        if self.ljung_box_lags < 1:
            raise ValueError(f"ljung_box_lags must be >= 1, got {self.ljung_box_lags}.")
        low, high = self.r2_bounds
        if low >= high:
            raise ValueError(f"r2_bounds must satisfy low < high, got {self.r2_bounds}.")
        if self.ci_growth < 0:
            raise ValueError(f"ci_growth must be >= 0, got {self.ci_growth}.")
        if not 0.0 <= self.mean_reversion <= 1.0:
            raise ValueError(
                f"mean_reversion must be in [0, 1], got {self.mean_reversion}."
            )
        if self.mean_reversion_window < 1:
            raise ValueError(
                f"mean_reversion_window must be >= 1, got {self.mean_reversion_window}."
            )


__all__ = ["ArimaConfig"]
