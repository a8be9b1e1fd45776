"""Parameter estimation and training for ARIMA(p, d, q) models.

This module provides:
- OLS estimation for pure AR models
- Method-of-moments estimation for pure MA models
- A two-stage ARMA fit (AR by OLS, MA from the AR residual autocorrelation)
- Optional conditional sum-of-squares (CSS) refinement with scipy
- The :func:`train` pipeline producing an immutable :class:`FittedModel`

References:
    - Box & Jenkins (1976): Time Series Analysis: Forecasting and Control
    - Hamilton (1994): Time Series Analysis
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Tuple, Union

import numpy as np
from scipy import optimize

from ..logging import get_logger
from . import diagnostics
from .config import ArimaConfig
from .errors import EstimationFailureError, InsufficientDataError
from .preprocessing import clean, difference
from .types import (
    ConvergenceStatus,
    FittedModel,
    ModelOrder,
    as_series,
    readonly,
    timestamp_step,
)
from .utils import acf, lag_matrix, solve_normal_equations

_logger = get_logger(__name__)

# Returned by the CSS objective when the recursion overflows, so the
# optimizer backs off instead of failing on inf.
_CSS_CEILING = 1e300


@dataclass
class ArmaFit:
    """Result of fitting ARMA(p, q) coefficients on a working series.

    Attributes:
        ar_coefficients: AR coefficients [φ_1, ..., φ_p], shape (p,).
        ma_coefficients: MA coefficients [θ_1, ..., θ_q], shape (q,).
        intercept: Constant term (0 for differenced series).
        fitted: One-step fitted values on the working series, shape (n,).
        residuals: ``series - fitted``, shape (n,); zero over the cold start.
        sigma2: Innovation variance estimate.
        log_likelihood: Gaussian log-likelihood of the post-warm-up residuals.
        converged: Whether estimation converged.
        iterations: Optimizer iterations (1 for the closed-form paths).
    """

    ar_coefficients: np.ndarray
    ma_coefficients: np.ndarray
    intercept: float
    fitted: np.ndarray
    residuals: np.ndarray
    sigma2: float
    log_likelihood: float
    converged: bool = True
    iterations: int = 1


def fitted_and_residuals(
    series: np.ndarray,
    ar_coefficients: np.ndarray,
    ma_coefficients: np.ndarray,
    intercept: float = 0.0,
) -> Tuple[np.ndarray, np.ndarray]:
    """Run the ARMA recursion over a series.

    For ``t >= max(p, q, 1)``::

        fitted[t] = c + Σ φ_i x[t-i] + Σ θ_j e[t-j]
        e[t] = x[t] - fitted[t]

    The first ``max(p, q, 1)`` points are seeded with the observed value and a
    zero residual.

    Args:
        series: 1D working series, shape (n,).
        ar_coefficients: AR coefficients, shape (p,).
        ma_coefficients: MA coefficients, shape (q,).
        intercept: Constant term c.

    Returns:
        Tuple of (fitted, residuals), each shape (n,).

    Example:
        >>> fitted, resid = fitted_and_residuals(np.array([1.0, 2.0, 3.0]), np.array([1.0]), np.array([]))
        >>> fitted
        array([1., 1., 2.])
    """
    x = np.asarray(series, dtype=np.float64)
    ar = np.asarray(ar_coefficients, dtype=np.float64)
    ma = np.asarray(ma_coefficients, dtype=np.float64)
    if x.ndim != 1:
        raise ValueError(f"series must be 1D array, got shape {x.shape}")

    n = len(x)
    p = len(ar)
    q = len(ma)
    start = min(max(p, q, 1), n)

    fitted = np.empty(n)
    residuals = np.zeros(n)
    fitted[:start] = x[:start]

    for t in range(start, n):
        prediction = intercept
        for i in range(p):
            prediction += ar[i] * x[t - 1 - i]
        for j in range(q):
            prediction += ma[j] * residuals[t - 1 - j]
        fitted[t] = prediction
        residuals[t] = x[t] - prediction

    return fitted, residuals


def log_likelihood(residuals: np.ndarray, sigma2: float) -> float:
    """Gaussian log-likelihood ``-n/2 ln(2πσ²) - RSS/(2σ²)``.

    Returns ``-inf`` when ``sigma2 <= 0``.
    """
    residuals = np.asarray(residuals, dtype=np.float64)
    if sigma2 <= 0:
        return -np.inf
    n = len(residuals)
    rss = float(np.sum(residuals**2))
    return -0.5 * n * np.log(2.0 * np.pi * sigma2) - rss / (2.0 * sigma2)


def _rescale(coefficients: np.ndarray, limit: float) -> np.ndarray:
    coefficients = np.asarray(coefficients, dtype=np.float64)
    total = float(np.sum(np.abs(coefficients)))
    if total >= 1.0:
        return coefficients * (limit / total)
    return coefficients.copy()


def enforce_stationarity(ar_coefficients: np.ndarray, limit: float = 0.99) -> np.ndarray:
    """Shrink AR coefficients so their absolute sum stays below 1.

    ``Σ|φ_i| < 1`` is a sufficient (not necessary) condition for a stationary
    AR polynomial. Vectors at or above 1 are rescaled to sum to ``limit``.

    Example:
        >>> enforce_stationarity(np.array([0.8, 0.6]))
        array([0.56571429, 0.42428571])
    """
    return _rescale(ar_coefficients, limit)


def _clamp_ar_sum(ar: np.ndarray, limit: float) -> np.ndarray:
    # Bounds the signed sum only; seasonal AR polynomials may have Σ|φ| > 1.
    total = float(np.sum(ar))
    if abs(total) >= 1.0:
        return ar * (limit / abs(total))
    return ar


def enforce_invertibility(ma_coefficients: np.ndarray, limit: float = 0.99) -> np.ndarray:
    """Shrink MA coefficients so their absolute sum stays below 1."""
    return _rescale(ma_coefficients, limit)


def _finish(
    series: np.ndarray,
    ar: np.ndarray,
    ma: np.ndarray,
    intercept: float,
    config: ArimaConfig,
    converged: bool = True,
    iterations: int = 1,
) -> ArmaFit:
    warmup = max(len(ar), len(ma))
    fitted, residuals = fitted_and_residuals(series, ar, ma, intercept)
    if not (np.all(np.isfinite(fitted)) and np.all(np.isfinite(residuals))):
        raise EstimationFailureError("ARMA recursion produced non-finite values")

    sigma2 = max(float(np.var(residuals[warmup:])), config.variance_floor)
    return ArmaFit(
        ar_coefficients=np.asarray(ar, dtype=np.float64),
        ma_coefficients=np.asarray(ma, dtype=np.float64),
        intercept=float(intercept),
        fitted=fitted,
        residuals=residuals,
        sigma2=sigma2,
        log_likelihood=log_likelihood(residuals[warmup:], sigma2),
        converged=converged,
        iterations=iterations,
    )


def _moment_ma(series: np.ndarray, q: int, damping: float, limit: float) -> np.ndarray:
    # Lag 1 is undamped, lag k is scaled by damping**(k-1).
    rho = acf(series, nlags=q)[1:]
    ma = np.clip(rho * damping ** np.arange(q), -limit, limit)
    return enforce_invertibility(ma)


def fit_ar(
    series: np.ndarray,
    p: int,
    with_intercept: bool = True,
    config: Optional[ArimaConfig] = None,
) -> ArmaFit:
    """Fit AR(p) by ordinary least squares on the lag matrix.

    The regression is ``x_t = c + φ_1 x_{t-1} + ... + φ_p x_{t-p} + ε_t``.
    Without an intercept (differenced input) the constant column is dropped
    and ``c = 0``.

    Args:
        series: 1D working series, shape (n,).
        p: AR order. Must be >= 1.
        with_intercept: Include the constant column.
        config: Estimation settings; defaults to ``ArimaConfig()``.

    Returns:
        ArmaFit with ``p`` AR coefficients and no MA part.

    Raises:
        EstimationFailureError: If the normal equations are singular, e.g. on
            a constant series.
    """
    config = config or ArimaConfig()
    x = np.asarray(series, dtype=np.float64)
    X = lag_matrix(x, p)
    y = x[p:]
    if with_intercept:
        X = np.column_stack([np.ones(len(y)), X])

    beta = solve_normal_equations(X, y)
    if with_intercept:
        intercept, ar = float(beta[0]), beta[1:]
    else:
        intercept, ar = 0.0, beta
    ar = _clamp_ar_sum(ar, config.stability_limit)

    return _finish(x, ar, np.array([]), intercept, config)


def fit_ma(
    series: np.ndarray,
    q: int,
    with_intercept: bool = True,
    config: Optional[ArimaConfig] = None,
) -> ArmaFit:
    """Fit MA(q) by the method of moments.

    θ_k is the lag-k sample autocorrelation damped by
    ``config.ma_damping ** (k - 1)`` and clipped to
    ``±config.ma_coefficient_limit``. The intercept is the sample mean, or 0
    without an intercept.
    """
    config = config or ArimaConfig()
    if q < 1:
        raise ValueError(f"q must be >= 1, got {q}")
    x = np.asarray(series, dtype=np.float64)
    intercept = float(np.mean(x)) if with_intercept else 0.0
    ma = _moment_ma(x, q, config.ma_damping, config.ma_coefficient_limit)
    return _finish(x, np.array([]), ma, intercept, config)


def fit_arma(
    series: np.ndarray,
    p: int,
    q: int,
    with_intercept: bool = True,
    config: Optional[ArimaConfig] = None,
) -> ArmaFit:
    """Fit ARMA(p, q) in two stages.

    The AR part (and intercept) come from :func:`fit_ar`. The MA part is
    estimated from the autocorrelation of the AR residuals past the warm-up,
    damped by ``config.arma_ma_damping ** (k - 1)`` and clipped. When fewer
    than ``2q`` residuals are available the MA coefficients stay at zero.
    """
    config = config or ArimaConfig()
    ar_fit = fit_ar(series, p, with_intercept=with_intercept, config=config)

    ar_residuals = ar_fit.residuals[max(p, q) :]
    ma = np.zeros(q)
    if len(ar_residuals) > 2 * q:
        ma = _moment_ma(
            ar_residuals, q, config.arma_ma_damping, config.ma_coefficient_limit
        )

    return _finish(
        np.asarray(series, dtype=np.float64),
        ar_fit.ar_coefficients,
        ma,
        ar_fit.intercept,
        config,
    )


def _refine_css(
    series: np.ndarray, fit: ArmaFit, with_intercept: bool, config: ArimaConfig
) -> ArmaFit:
    """Polish an ArmaFit by bounded L-BFGS-B on the conditional sum of squares."""
    p = len(fit.ar_coefficients)
    q = len(fit.ma_coefficients)
    warmup = max(p, q)
    limit = config.stability_limit

    def unpack(params: np.ndarray) -> Tuple[np.ndarray, np.ndarray, float]:
        intercept = float(params[p + q]) if with_intercept else 0.0
        return params[:p], params[p : p + q], intercept

    def objective(params: np.ndarray) -> float:
        """Objective function: CSS."""
        ar, ma, intercept = unpack(params)
        with np.errstate(over="ignore", invalid="ignore"):
            _, residuals = fitted_and_residuals(series, ar, ma, intercept)
            css = float(np.sum(residuals[warmup:] ** 2))
        return css if np.isfinite(css) else _CSS_CEILING

    start = np.concatenate(
        [fit.ar_coefficients, fit.ma_coefficients]
        + ([np.array([fit.intercept])] if with_intercept else [])
    )
    bounds = [(-limit, limit)] * (p + q) + ([(None, None)] if with_intercept else [])

    result = optimize.minimize(
        objective,
        start,
        method="L-BFGS-B",
        bounds=bounds,
        options={"maxiter": config.max_iterations, "ftol": config.tolerance},
    )

    ar, ma, intercept = unpack(result.x)
    ar = enforce_stationarity(ar, limit)
    ma = enforce_invertibility(ma, limit)
    candidate = np.concatenate([ar, ma] + ([np.array([intercept])] if with_intercept else []))

    converged = bool(result.success)
    iterations = int(result.nit)
    if objective(candidate) < objective(start):
        return _finish(series, ar, ma, intercept, config, converged, iterations)

    return ArmaFit(
        ar_coefficients=fit.ar_coefficients,
        ma_coefficients=fit.ma_coefficients,
        intercept=fit.intercept,
        fitted=fit.fitted,
        residuals=fit.residuals,
        sigma2=fit.sigma2,
        log_likelihood=fit.log_likelihood,
        converged=converged,
        iterations=iterations,
    )


def estimate_arma(
    series: np.ndarray,
    order: ModelOrder,
    config: Optional[ArimaConfig] = None,
) -> ArmaFit:
    """Estimate ARMA(p, q) coefficients on an (already differenced) series.

    Dispatches to :func:`fit_ar`, :func:`fit_ma` or :func:`fit_arma` by
    order. The intercept is estimated only when ``order.d == 0``. With
    ``config.refine`` the closed-form estimates seed a CSS refinement and are
    replaced only if it lowers the CSS.

    Args:
        series: 1D working series, shape (n,).
        order: Model order; ``d`` only controls the intercept.
        config: Estimation settings; defaults to ``ArimaConfig()``.

    Returns:
        ArmaFit on the working series.

    Raises:
        InsufficientDataError: If ``n < max(p, q) + config.min_estimation_margin``.
        EstimationFailureError: On singular equations or non-finite output.
    """
    config = config or ArimaConfig()
    x = np.asarray(series, dtype=np.float64)
    if x.ndim != 1:
        raise ValueError(f"series must be 1D array, got shape {x.shape}")

    p, q = order.p, order.q
    required = max(p, q) + config.min_estimation_margin
    if len(x) < required:
        raise InsufficientDataError(
            f"Need at least {required} points for parameter estimation of "
            f"{order}, got {len(x)}"
        )

    with_intercept = order.d == 0
    if q == 0:
        fit = fit_ar(x, p, with_intercept=with_intercept, config=config)
    elif p == 0:
        fit = fit_ma(x, q, with_intercept=with_intercept, config=config)
    else:
        fit = fit_arma(x, p, q, with_intercept=with_intercept, config=config)

    if config.refine:
        fit = _refine_css(x, fit, with_intercept, config)

    coefficients = np.concatenate([fit.ar_coefficients, fit.ma_coefficients, [fit.intercept]])
    if not np.all(np.isfinite(coefficients)):
        raise EstimationFailureError(f"Non-finite coefficients estimated for {order}")
    return fit


def train(
    series: Any,
    order: Union[ModelOrder, Tuple[int, int, int]],
    config: Optional[ArimaConfig] = None,
    logger: Optional[logging.Logger] = None,
) -> FittedModel:
    """Train an ARIMA model on a raw series.

    Pipeline: length check, :func:`clean`, :func:`difference`,
    :func:`estimate_arma`, original-scale reconstruction and scoring.
    Original-scale fitted values are one-step-ahead reconstructions,
    ``history[d:] - residuals``, so residuals are identical on both scales.

    Args:
        series: Observations accepted by :func:`as_series`.
        order: ``ModelOrder`` or a ``(p, d, q)`` tuple.
        config: Training settings; defaults to ``ArimaConfig()``.
        logger: Logger for progress messages; defaults to the module logger.

    Returns:
        Immutable FittedModel with read-only arrays.

    Raises:
        InsufficientDataError: If the series is shorter than
            ``config.min_train_length`` or fails a later stage minimum.
        EstimationFailureError: If estimation breaks down numerically.

    Example:
        >>> rng = np.random.default_rng(0)
        >>> model = train(50 + rng.normal(size=120), (1, 0, 0))
        >>> model.model_id
        'arima_1_0_0'
    """
    config = config or ArimaConfig()
    log = logger or _logger
    if not isinstance(order, ModelOrder):
        order = ModelOrder(*order)

    timestamps, raw = as_series(series)
    if len(raw) < config.min_train_length:
        raise InsufficientDataError(
            f"Need at least {config.min_train_length} data points for ARIMA "
            f"training, got {len(raw)}"
        )

    log.debug("Training %s on %d data points", order, len(raw))

    history = clean(
        raw,
        max_invalid_fraction=config.max_invalid_fraction,
        iqr_multiplier=config.outlier_iqr_multiplier,
    )
    differenced = difference(
        history,
        order.d,
        min_length=config.min_differencing_length,
        strict=config.strict_differencing,
    )
    fit = estimate_arma(differenced.values, order, config=config)

    fitted_values = history[differenced.order :] - fit.residuals
    nobs = len(history)
    aic_value = diagnostics.aic(fit.log_likelihood, order.n_params)
    bic_value = diagnostics.bic(fit.log_likelihood, order.n_params, nobs)
    metrics = diagnostics.validation_metrics(
        history[differenced.order :],
        fitted_values,
        fit.residuals,
        aic_value,
        bic_value,
        config=config,
        logger=log,
    )

    log.debug(
        "Trained %s: AR=%s MA=%s R²=%.3f MAPE=%.1f%%",
        order,
        np.round(fit.ar_coefficients, 3).tolist(),
        np.round(fit.ma_coefficients, 3).tolist(),
        metrics.r2,
        metrics.mape,
    )

    return FittedModel(
        order=order,
        applied_d=differenced.order,
        ar_coefficients=readonly(fit.ar_coefficients),
        ma_coefficients=readonly(fit.ma_coefficients),
        intercept=fit.intercept,
        noise_variance=fit.sigma2,
        residuals=readonly(fit.residuals),
        fitted_values=readonly(fitted_values),
        history=readonly(history),
        differenced=readonly(differenced.values),
        log_likelihood=fit.log_likelihood,
        aic=aic_value,
        bic=bic_value,
        nobs=nobs,
        convergence_status=(
            ConvergenceStatus.CONVERGED if fit.converged else ConvergenceStatus.FAILED
        ),
        iterations=fit.iterations,
        validation_metrics=metrics,
        origin_timestamp=float(timestamps[-1]),
        timestamp_step=timestamp_step(timestamps),
    )


__all__ = [
    "ArmaFit",
    "fitted_and_residuals",
    "log_likelihood",
    "enforce_stationarity",
    "enforce_invertibility",
    "fit_ar",
    "fit_ma",
    "fit_arma",
    "estimate_arma",
    "train",
]
