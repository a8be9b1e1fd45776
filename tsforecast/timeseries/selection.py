"""Automatic ARIMA order selection.

Every order in a fixed catalog is trained and scored with a composite of
R², MAPE, RMSE, model complexity and convergence. A single failing candidate
never aborts the search; if no candidate qualifies, a plain AR(1) fit is
tried before giving up with :class:`AllModelsFailedError`.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple

import numpy as np

from ..logging import get_logger
from .config import ArimaConfig
from .errors import AllModelsFailedError, ForecastingError, NotTrainedError
from .estimation import train
from .forecasting import forecast, z_score
from .types import FittedModel, ForecastResult, ModelOrder, ValidationMetrics, as_series

_logger = get_logger(__name__)

# Data-dependent failures that mark a candidate as failed; anything else is a bug.
_CANDIDATE_ERRORS = (ForecastingError, ValueError, ArithmeticError)

CANDIDATE_ORDERS: Tuple[ModelOrder, ...] = (
    # Plain AR / MA
    ModelOrder(1, 0, 0),
    ModelOrder(2, 0, 0),
    ModelOrder(3, 0, 0),
    ModelOrder(0, 0, 1),
    ModelOrder(0, 0, 2),
    # First-differenced
    ModelOrder(1, 1, 0),
    ModelOrder(2, 1, 0),
    ModelOrder(0, 1, 1),
    ModelOrder(0, 1, 2),
    ModelOrder(1, 1, 1),
    ModelOrder(2, 1, 1),
    ModelOrder(1, 1, 2),
    # Higher-order first-differenced
    ModelOrder(3, 1, 0),
    ModelOrder(0, 1, 3),
    ModelOrder(2, 1, 2),
    ModelOrder(3, 1, 1),
    ModelOrder(1, 1, 3),
    # Second-differenced
    ModelOrder(1, 2, 0),
    ModelOrder(0, 2, 1),
    ModelOrder(1, 2, 1),
)

FALLBACK_ORDER = ModelOrder(1, 0, 0)


@dataclass(frozen=True)
class ScoreWeights:
    """Weights and thresholds of the composite candidate score.

    The R² term is piecewise: ``r2 * r2_positive`` for R² > 0,
    ``r2 * r2_mild`` down to ``r2_mild_floor``, ``r2 * r2_severe`` below.
    """

    r2_positive: float = 10.0
    r2_mild: float = 5.0
    r2_mild_floor: float = -0.5
    r2_severe: float = 2.0
    mape_excellent: float = 10.0
    mape_excellent_bonus: float = 1.0
    mape_good: float = 20.0
    mape_good_bonus: float = 0.5
    mape_poor: float = 50.0
    mape_poor_penalty: float = 1.0
    rmse_scale: float = 1000.0
    rmse_weight: float = 0.5
    complexity_weight: float = 0.01
    convergence_bonus: float = 0.2

    def __post_init__(self) -> None:
        if self.rmse_scale <= 0:
            raise ValueError(f"rmse_scale must be positive, got {self.rmse_scale}.")
        if not self.mape_excellent <= self.mape_good <= self.mape_poor:
            raise ValueError(
                "MAPE thresholds must satisfy mape_excellent <= mape_good <= mape_poor."
            )


def _fallback_config() -> ArimaConfig:
    return ArimaConfig(max_iterations=100, tolerance=1e-6)


@dataclass(frozen=True)
class SelectionConfig:
    """
    Settings for :func:`auto_select` and :func:`auto_forecast`.

    Attributes:
        forecast_horizon: Steps forecast by :func:`auto_forecast`.
        confidence_level: Interval level used by :func:`auto_forecast`.
        r2_floor: Candidates must have R² above this to be selected.
        candidates: Orders to evaluate, in order.
        weights: Composite score weights.
        arima: Training settings for the candidates.
        fallback: Training settings for the AR(1) fallback.
        max_workers: Evaluate candidates on a thread pool of this size.
            ``None`` evaluates them sequentially.
    """

    forecast_horizon: int = 30
    confidence_level: float = 0.95
    r2_floor: float = -2.0
    candidates: Tuple[ModelOrder, ...] = CANDIDATE_ORDERS
    weights: ScoreWeights = field(default_factory=ScoreWeights)
    arima: ArimaConfig = field(default_factory=ArimaConfig)
    fallback: ArimaConfig = field(default_factory=_fallback_config)
    max_workers: Optional[int] = None

    def __post_init__(self) -> None:
        """Validate SelectionConfig invariants."""
        if self.forecast_horizon < 1:
            raise ValueError(
                f"forecast_horizon must be >= 1, got {self.forecast_horizon}."
            )
        z_score(self.confidence_level)
        if not self.candidates:
            raise ValueError("candidates must not be empty.")
        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}.")


@dataclass(frozen=True)
class CandidateResult:
    """Outcome of training one candidate order.

    Failed candidates carry ``aic = bic = inf``, ``score = -inf`` and the
    error message; ``metrics`` and ``model`` are then None.
    """

    order: ModelOrder
    aic: float
    bic: float
    score: float
    metrics: Optional[ValidationMetrics] = None
    model: Optional[FittedModel] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.model is not None


@dataclass(frozen=True)
class SelectionResult:
    """
    Outcome of :func:`auto_select`.

    Attributes:
        best_order: Selected order, or None if cancelled before any success.
        best_model: Trained model of the selected order.
        best_score: Composite score of the selected model.
        candidates: Every evaluated candidate, best score first, failures last.
        cancelled: Whether the search was stopped by the cancel event.
        used_fallback: Whether the AR(1) fallback produced the best model.
    """

    best_order: Optional[ModelOrder]
    best_model: Optional[FittedModel]
    best_score: float
    candidates: Tuple[CandidateResult, ...]
    cancelled: bool = False
    used_fallback: bool = False


def composite_score(
    order: ModelOrder,
    metrics: ValidationMetrics,
    converged: bool,
    weights: Optional[ScoreWeights] = None,
) -> float:
    """Score a trained candidate; higher is better.

    ``score = R² term + MAPE bonus/penalty - RMSE penalty - complexity penalty
    + convergence bonus``, where the RMSE penalty is
    ``min(rmse / rmse_scale, 1) * rmse_weight`` and the complexity penalty is
    ``(p + d + q) * complexity_weight``.

    Example:
        >>> from tsforecast.timeseries.types import ValidationMetrics
        >>> m = ValidationMetrics(1.0, 2.0, 5.0, 0.8, None, 0.0, 0.0, 0.0, 1.0, 0.5)
        >>> round(composite_score(ModelOrder(1, 0, 0), m, converged=True), 3)
        9.189
    """
    w = weights or ScoreWeights()
    r2 = metrics.r2

    if r2 > 0:
        score = r2 * w.r2_positive
    elif r2 > w.r2_mild_floor:
        score = r2 * w.r2_mild
    else:
        score = r2 * w.r2_severe

    if metrics.mape < w.mape_excellent:
        score += w.mape_excellent_bonus
    elif metrics.mape < w.mape_good:
        score += w.mape_good_bonus
    elif metrics.mape > w.mape_poor:
        score -= w.mape_poor_penalty

    score -= min(metrics.rmse / w.rmse_scale, 1.0) * w.rmse_weight
    score -= order.complexity * w.complexity_weight

    if converged:
        score += w.convergence_bonus

    return float(score)


def _evaluate(
    series: np.ndarray,
    order: ModelOrder,
    config: SelectionConfig,
    log: logging.Logger,
) -> CandidateResult:
    try:
        model = train(series, order, config=config.arima, logger=log)
    except _CANDIDATE_ERRORS as exc:
        log.warning("%s failed: %s", order, exc)
        return CandidateResult(
            order=order, aic=np.inf, bic=np.inf, score=-np.inf, error=str(exc)
        )

    metrics = model.validation_metrics
    score = composite_score(order, metrics, model.converged, config.weights)
    log.info(
        "%s: R²=%.3f, MAPE=%.1f%%, RMSE=%.4g, score=%.3f",
        order,
        metrics.r2,
        metrics.mape,
        metrics.rmse,
        score,
    )
    return CandidateResult(
        order=order,
        aic=model.aic,
        bic=model.bic,
        score=score,
        metrics=metrics,
        model=model,
    )


def _ranked(results: List[CandidateResult]) -> Tuple[CandidateResult, ...]:
    # sorted() is stable, so ties keep catalog order.
    return tuple(sorted(results, key=lambda r: -r.score if r.succeeded else np.inf))


def auto_select(
    series: Any,
    config: Optional[SelectionConfig] = None,
    logger: Optional[logging.Logger] = None,
    on_candidate: Optional[Callable[[CandidateResult], None]] = None,
    cancel_event: Optional[threading.Event] = None,
) -> SelectionResult:
    """Train every candidate order and pick the best composite score.

    Args:
        series: Observations accepted by :func:`as_series`.
        config: Selection settings; defaults to ``SelectionConfig()``.
        logger: Logger for progress; defaults to the module logger.
        on_candidate: Called with each CandidateResult, in catalog order.
        cancel_event: When set, no further candidates are started. The best
            model found so far is returned with ``cancelled=True``.

    Returns:
        SelectionResult with the winning model and the ranked candidates.

    Raises:
        AllModelsFailedError: If no candidate qualifies and the AR(1)
            fallback also fails.
    """
    config = config or SelectionConfig()
    log = logger or _logger

    timestamps, values = as_series(series)
    data = np.column_stack([timestamps, values])
    finite = values[np.isfinite(values)]
    if len(finite):
        log.info(
            "Selecting ARIMA order on %d points (mean=%.4g, std=%.4g)",
            len(values),
            float(np.mean(finite)),
            float(np.std(finite)),
        )

    def cancelled() -> bool:
        return cancel_event is not None and cancel_event.is_set()

    results: List[CandidateResult] = []
    was_cancelled = False

    if config.max_workers is None:
        for order in config.candidates:
            if cancelled():
                was_cancelled = True
                break
            result = _evaluate(data, order, config, log)
            results.append(result)
            if on_candidate is not None:
                on_candidate(result)
    else:

        def run(order: ModelOrder) -> Optional[CandidateResult]:
            if cancelled():
                return None
            return _evaluate(data, order, config, log)

        with ThreadPoolExecutor(max_workers=config.max_workers) as pool:
            futures = [pool.submit(run, order) for order in config.candidates]
            for future in futures:
                result = future.result()
                if result is None:
                    was_cancelled = True
                    continue
                results.append(result)
                if on_candidate is not None:
                    on_candidate(result)

    best: Optional[CandidateResult] = None
    for result in results:
        if not result.succeeded or result.metrics.r2 <= config.r2_floor:
            continue
        if best is None or result.score > best.score:
            best = result

    ranked = _ranked(results)

    if best is not None:
        log.info(
            "Best ARIMA model: %s (R²=%.3f, MAPE=%.1f%%)",
            best.order,
            best.metrics.r2,
            best.metrics.mape,
        )
        return SelectionResult(
            best_order=best.order,
            best_model=best.model,
            best_score=best.score,
            candidates=ranked,
            cancelled=was_cancelled,
        )

    if was_cancelled:
        log.warning("Selection cancelled before any candidate qualified")
        return SelectionResult(
            best_order=None,
            best_model=None,
            best_score=-np.inf,
            candidates=ranked,
            cancelled=True,
        )

    attempts: List[Tuple[ModelOrder, str]] = []
    for result in results:
        if result.succeeded:
            reason = f"R² {result.metrics.r2:.3f} not above {config.r2_floor}"
        else:
            reason = result.error or "unknown error"
        attempts.append((result.order, reason))

    log.warning("No candidate qualified, trying fallback %s", FALLBACK_ORDER)
    try:
        model = train(data, FALLBACK_ORDER, config=config.fallback, logger=log)
    except _CANDIDATE_ERRORS as exc:
        attempts.append((FALLBACK_ORDER, str(exc)))
        raise AllModelsFailedError(attempts) from exc

    score = composite_score(
        FALLBACK_ORDER, model.validation_metrics, model.converged, config.weights
    )
    return SelectionResult(
        best_order=FALLBACK_ORDER,
        best_model=model,
        best_score=score,
        candidates=ranked,
        used_fallback=True,
    )


def auto_forecast(
    series: Any,
    config: Optional[SelectionConfig] = None,
    logger: Optional[logging.Logger] = None,
    on_candidate: Optional[Callable[[CandidateResult], None]] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Tuple[SelectionResult, ForecastResult]:
    """Select the best order and forecast ``config.forecast_horizon`` steps.

    Raises:
        AllModelsFailedError: Propagated from :func:`auto_select`.
        NotTrainedError: If selection was cancelled before any model trained.
    """
    config = config or SelectionConfig()
    selection = auto_select(
        series,
        config=config,
        logger=logger,
        on_candidate=on_candidate,
        cancel_event=cancel_event,
    )
    if selection.best_model is None:
        raise NotTrainedError("Selection was cancelled before any model was trained")

    result = forecast(
        selection.best_model,
        config.forecast_horizon,
        confidence_level=config.confidence_level,
        config=config.fallback if selection.used_fallback else config.arima,
    )
    return selection, result


__all__ = [
    "CANDIDATE_ORDERS",
    "FALLBACK_ORDER",
    "ScoreWeights",
    "SelectionConfig",
    "CandidateResult",
    "SelectionResult",
    "composite_score",
    "auto_select",
    "auto_forecast",
]
