"""Model scoring: information criteria, accuracy metrics and residual tests.

References:
    - Box & Jenkins (1976): Time Series Analysis: Forecasting and Control
    - Ljung & Box (1978): "On a measure of lack of fit in time series models"
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import numpy as np
from scipy import stats

from ..logging import get_logger
from .config import ArimaConfig
from .errors import InsufficientDataError
from .types import FittedModel, ValidationMetrics

_logger = get_logger(__name__)

# Chi-square (10 df) critical values at 1%, 5% and 10% and the p-value
# reported when the statistic exceeds each of them.
_LJUNG_BOX_BUCKETS = ((18.31, 0.01), (15.51, 0.05), (12.59, 0.1))
_LJUNG_BOX_DEFAULT_PVALUE = 0.5


def aic(log_likelihood: float, n_params: int) -> float:
    """Akaike Information Criterion, ``2k - 2 ln L``."""
    return 2.0 * n_params - 2.0 * log_likelihood


def bic(log_likelihood: float, n_params: int, nobs: int) -> float:
    """Bayesian Information Criterion, ``k ln n - 2 ln L``."""
    if nobs < 1:
        raise ValueError(f"nobs must be >= 1, got {nobs}")
    return n_params * np.log(nobs) - 2.0 * log_likelihood


def r_squared(
    actual: np.ndarray,
    residuals: np.ndarray,
    bounds: Tuple[float, float] = (-5.0, 1.0),
) -> float:
    """Coefficient of determination, clamped to ``bounds``.

    A series with (near) zero total sum of squares has no meaningful R²; it is
    reported as 1 when every residual is ~0 and -1 otherwise.
    """
    actual = np.asarray(actual, dtype=np.float64)
    residuals = np.asarray(residuals, dtype=np.float64)

    tss = float(np.sum((actual - np.mean(actual)) ** 2))
    rss = float(np.sum(residuals**2))

    if tss <= 1e-10:
        return 1.0 if np.all(np.abs(residuals) < 1e-10) else -1.0

    r2 = 1.0 - rss / tss
    if not np.isfinite(r2):
        return -1.0
    low, high = bounds
    return float(min(max(r2, low), high))


def correlation_r_squared(actual: np.ndarray, fitted: np.ndarray) -> Optional[float]:
    """Squared Pearson correlation of actual and fitted values.

    Returns None when either side is constant.
    """
    actual = np.asarray(actual, dtype=np.float64)
    fitted = np.asarray(fitted, dtype=np.float64)
    a = actual - np.mean(actual)
    f = fitted - np.mean(fitted)
    denom = np.sqrt(np.sum(a**2) * np.sum(f**2))
    if not np.isfinite(denom) or denom <= 1e-10:
        return None
    corr = float(np.sum(a * f) / denom)
    return corr * corr


def mape(
    actual: np.ndarray,
    fitted: np.ndarray,
    min_actual: float = 1e-3,
    term_cap: float = 500.0,
    cap: float = 999.0,
) -> float:
    """Mean absolute percentage error, in percent.

    Points with ``|actual| <= min_actual`` are skipped, each term is capped at
    ``term_cap`` and the mean at ``cap``. With no usable point the result is
    ``cap``.
    """
    actual = np.asarray(actual, dtype=np.float64)
    fitted = np.asarray(fitted, dtype=np.float64)
    mask = np.abs(actual) > min_actual
    if not np.any(mask):
        return float(cap)
    ape = np.abs((actual[mask] - fitted[mask]) / actual[mask]) * 100.0
    ape = np.minimum(ape, term_cap)
    return float(min(np.mean(ape), cap))


def ljung_box(
    residuals: np.ndarray, lags: int = 10, exact: bool = False
) -> Tuple[float, float]:
    """Ljung-Box test for residual autocorrelation.

    Computes ``Q = n(n+2) Σ_{k=1}^m ρ(k)² / (n-k)``. By default the p-value
    is a coarse bucket (0.01 / 0.05 / 0.1 / 0.5) read off the 10-df chi-square
    critical values; ``exact=True`` uses the chi-square survival function with
    ``lags`` degrees of freedom instead.

    Args:
        residuals: 1D array of residuals, shape (n,).
        lags: Number of lags to test. Must be >= 1.
        exact: Use ``scipy.stats.chi2`` for the p-value.

    Returns:
        Tuple of (statistic, pvalue). Series shorter than ``lags + 1`` give
        ``(0.0, 1.0)``.

    Example:
        >>> stat, pval = ljung_box(np.tile([1.0, -1.0], 50))
        >>> round(stat, 1), pval
        (963.9, 0.01)
    """
    residuals = np.asarray(residuals, dtype=np.float64)
    if residuals.ndim != 1:
        raise ValueError(f"residuals must be 1D array, got shape {residuals.shape}")
    if lags < 1:
        raise ValueError(f"lags must be >= 1, got {lags}")

    n = len(residuals)
    if n < lags + 1:
        return 0.0, 1.0

    centered = residuals - np.mean(residuals)
    denom = float(np.sum(centered**2))

    statistic = 0.0
    for k in range(1, lags + 1):
        rho_k = 0.0 if denom == 0 else float(np.sum(centered[k:] * centered[:-k]) / denom)
        statistic += rho_k**2 / (n - k)
    statistic *= n * (n + 2)

    if exact:
        return statistic, float(stats.chi2.sf(statistic, df=lags))

    for critical, pvalue in _LJUNG_BOX_BUCKETS:
        if statistic > critical:
            return statistic, pvalue
    return statistic, _LJUNG_BOX_DEFAULT_PVALUE


def validation_metrics(
    actual: np.ndarray,
    fitted: np.ndarray,
    residuals: np.ndarray,
    aic_value: float,
    bic_value: float,
    config: Optional[ArimaConfig] = None,
    logger: Optional[logging.Logger] = None,
) -> ValidationMetrics:
    """Compute accuracy and residual diagnostics on aligned arrays.

    Alongside the RSS-based R² a correlation-based R² is computed; when it is
    higher by more than ``config.r2_override_gap`` it replaces the RSS-based
    value, which can be ill-conditioned after heavy outlier capping.

    Args:
        actual: Original-scale observations, shape (n,).
        fitted: Fitted values aligned with ``actual``, shape (n,).
        residuals: ``actual - fitted`` as produced by the model, shape (n,).
        aic_value: AIC of the model.
        bic_value: BIC of the model.
        config: Scoring thresholds; defaults to ``ArimaConfig()``.
        logger: Logger for diagnostics; defaults to the module logger.

    Raises:
        ValueError: If the arrays are not aligned.
        InsufficientDataError: With fewer than 10 aligned points.
    """
    config = config or ArimaConfig()
    log = logger or _logger

    actual = np.asarray(actual, dtype=np.float64)
    fitted = np.asarray(fitted, dtype=np.float64)
    residuals = np.asarray(residuals, dtype=np.float64)
    if not (len(actual) == len(fitted) == len(residuals)):
        raise ValueError(
            f"Data alignment error: actual={len(actual)}, fitted={len(fitted)}, "
            f"residuals={len(residuals)}"
        )
    if len(fitted) < 10:
        raise InsufficientDataError(
            f"Need at least 10 fitted values for validation metrics, got {len(fitted)}"
        )

    mae = float(np.mean(np.abs(residuals)))
    rmse = float(np.sqrt(np.mean(residuals**2)))

    r2 = r_squared(actual, residuals, bounds=config.r2_bounds)
    corr_r2 = correlation_r_squared(actual, fitted)
    if corr_r2 is not None and abs(corr_r2 - r2) > config.r2_override_gap and corr_r2 > r2:
        log.debug("Using correlation-based R² %.4f instead of %.4f", corr_r2, r2)
        r2 = corr_r2

    mape_value = mape(
        actual,
        fitted,
        min_actual=config.mape_min_actual,
        term_cap=config.mape_term_cap,
        cap=config.mape_cap,
    )
    _, ljung_box_pvalue = ljung_box(
        residuals, lags=config.ljung_box_lags, exact=config.exact_ljung_box
    )

    log.debug("Model metrics: R²=%.4f, MAPE=%.2f%%, RMSE=%.4g", r2, mape_value, rmse)

    return ValidationMetrics(
        mae=mae,
        rmse=rmse,
        mape=mape_value,
        r2=float(r2),
        correlation_r2=corr_r2,
        aic=float(aic_value),
        bic=float(bic_value),
        residual_mean=float(np.mean(residuals)),
        residual_std=float(np.std(residuals)),
        ljung_box_pvalue=float(ljung_box_pvalue),
    )


def score_model(
    model: FittedModel, config: Optional[ArimaConfig] = None
) -> ValidationMetrics:
    """Recompute validation metrics of a fitted model.

    Metrics are a pure function of the model: the fitted values are scored
    against the last ``len(model.fitted_values)`` points of its history.
    """
    n = len(model.fitted_values)
    actual = model.history[len(model.history) - n :]
    return validation_metrics(
        actual,
        model.fitted_values,
        model.residuals,
        model.aic,
        model.bic,
        config=config,
    )


__all__ = [
    "aic",
    "bic",
    "r_squared",
    "correlation_r_squared",
    "mape",
    "ljung_box",
    "validation_metrics",
    "score_model",
]
