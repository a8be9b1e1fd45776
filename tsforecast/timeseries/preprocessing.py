"""Series preparation: cleaning, differencing and its inverse.

References:
    - Box & Jenkins (1976): Time Series Analysis: Forecasting and Control
    - Tukey (1977): Exploratory Data Analysis (IQR fences)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from ..logging import get_logger
from .errors import InsufficientDataError

logger = get_logger(__name__)


@dataclass(frozen=True)
class DifferencedSeries:
    """Result of :func:`difference`.

    Attributes:
        values: The differenced series, length ``n - order``.
        order: Number of differences actually applied.
        requested_order: Number of differences asked for.
        head: First ``order`` original values; seeds reconstruction of the
            whole series.
        tail: Last ``order`` original values; seeds extension of the series
            into the future.
    """

    values: np.ndarray
    order: int
    requested_order: int
    head: np.ndarray
    tail: np.ndarray

    @property
    def stopped_early(self) -> bool:
        return self.order < self.requested_order


def iqr_bounds(values: np.ndarray, multiplier: float) -> Tuple[float, float]:
    """Fence ``[Q1 - k·IQR, Q3 + k·IQR]`` with quartiles at ``sorted[floor(p n)]``."""
    sorted_vals = np.sort(np.asarray(values, dtype=np.float64))
    m = len(sorted_vals)
    if m == 0:
        raise InsufficientDataError("Series is empty")
    q1 = float(sorted_vals[int(np.floor(m * 0.25))])
    q3 = float(sorted_vals[int(np.floor(m * 0.75))])
    iqr = q3 - q1
    return q1 - multiplier * iqr, q3 + multiplier * iqr


def clean(
    values: np.ndarray,
    max_invalid_fraction: float = 0.1,
    iqr_multiplier: float = 3.0,
) -> np.ndarray:
    """Drop non-finite values and cap outliers.

    Values are capped to ``[Q1 - k·IQR, Q3 + k·IQR]`` with ``k = 3`` by
    default, a much wider fence than the usual 1.5 so legitimate demand spikes
    survive. Quartiles are read off the sorted data at positions
    ``floor(0.25 n)`` and ``floor(0.75 n)``.

    Args:
        values: 1D array of raw values, may contain NaN/inf.
        max_invalid_fraction: Largest tolerated share of non-finite values.
        iqr_multiplier: Fence width in IQRs.

    Returns:
        Cleaned values (non-finite entries removed), shape (n_valid,).

    Raises:
        ValueError: If values is not 1D.
        InsufficientDataError: If the series is empty or too many values are
            invalid.

    Example:
        >>> float(clean(np.array([1.0, 2.0, np.nan, 3.0] * 10 + [1000.0]), max_invalid_fraction=0.3)[-1])
        9.0
    """
    values = np.asarray(values, dtype=np.float64)
    if values.ndim != 1:
        raise ValueError(f"values must be 1D array, got shape {values.shape}")
    n = len(values)
    if n == 0:
        raise InsufficientDataError("Series is empty")

    cleaned = values[np.isfinite(values)]
    if len(cleaned) < n * (1.0 - max_invalid_fraction):
        raise InsufficientDataError(
            f"Too many missing or invalid values in the data: "
            f"{n - len(cleaned)} of {n} are not finite"
        )

    lower, upper = iqr_bounds(cleaned, iqr_multiplier)

    n_capped = int(np.sum((cleaned < lower) | (cleaned > upper)))
    if n_capped:
        logger.debug("Capped %d outliers to [%.4g, %.4g]", n_capped, lower, upper)

    return np.clip(cleaned, lower, upper)


def difference(
    values: np.ndarray,
    order: int,
    min_length: int = 100,
    strict: bool = False,
) -> DifferencedSeries:
    """Apply first differencing ``order`` times.

    After each pass, if the series has dropped below ``min_length`` points
    and more passes remain, differencing stops early so short series are not
    over-differenced. With ``strict=True`` that situation raises instead.

    Args:
        values: 1D array of values, shape (n,).
        order: Requested number of differences. Must be >= 0.
        min_length: Length below which further passes are skipped.
        strict: Raise InsufficientDataError instead of stopping early.

    Returns:
        DifferencedSeries carrying the applied order and the base values
        needed by :func:`undifference`.

    Raises:
        ValueError: If order < 0 or values is not 1D.
        InsufficientDataError: If a pass has fewer than 2 points to work on,
            or in strict mode when the series is too short for ``order``.

    Example:
        >>> difference(np.array([1.0, 2.0, 4.0, 7.0]), order=1, min_length=2).values
        array([1., 2., 3.])
    """
    x = np.asarray(values, dtype=np.float64)
    if x.ndim != 1:
        raise ValueError(f"values must be 1D array, got shape {x.shape}")
    if order < 0:
        raise ValueError(f"order must be >= 0, got {order}")

    result = x.copy()
    applied = 0
    while applied < order:
        if len(result) < 2:
            raise InsufficientDataError(
                f"Need at least 2 observations to difference, got {len(result)}"
            )
        result = result[1:] - result[:-1]
        applied += 1

        if applied < order and len(result) < min_length:
            if strict:
                raise InsufficientDataError(
                    f"Need at least {min_length} points after differencing "
                    f"{applied} time(s) to apply order {order}, got {len(result)}"
                )
            logger.warning(
                "Stopped differencing at order %d of %d: %d points is below %d",
                applied,
                order,
                len(result),
                min_length,
            )
            break

    return DifferencedSeries(
        values=result,
        order=applied,
        requested_order=order,
        head=x[:applied].copy(),
        tail=x[len(x) - applied :].copy(),
    )


def undifference(
    deltas: np.ndarray,
    base_values: np.ndarray,
    order: int,
    damping: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Integrate a differenced series back to the original scale.

    ``base_values`` are the ``order`` original values immediately preceding
    the first point to reconstruct, oldest first: ``DifferencedSeries.head``
    to rebuild the observed series, ``DifferencedSeries.tail`` to extend it.

    - order 0: the deltas are returned unchanged.
    - order 1: cumulative sum from the last base value.
    - order 2: ``r[i] = 2·r[i-1] - r[i-2] + delta[i]`` seeded with the two
      base values.
    - order >= 3: repeated order-1 integration, each pass seeded from the
      last value of the matching difference of ``base_values``.

    Args:
        deltas: Differenced values, shape (n,).
        base_values: Preceding original values, at least ``order`` of them.
        order: Differencing order to invert.
        damping: Optional per-step multipliers, shape (n,), applied to each
            delta before it is accumulated.

    Returns:
        Reconstructed values, shape (n,).

    Example:
        >>> x = np.array([3.0, 5.0, 9.0, 15.0, 23.0])
        >>> diffed = difference(x, order=2, min_length=0)
        >>> undifference(diffed.values, diffed.head, order=2)
        array([ 9., 15., 23.])
    """
    deltas = np.asarray(deltas, dtype=np.float64)
    if deltas.ndim != 1:
        raise ValueError(f"deltas must be 1D array, got shape {deltas.shape}")
    if order < 0:
        raise ValueError(f"order must be >= 0, got {order}")

    contributions = deltas
    if damping is not None:
        damping = np.asarray(damping, dtype=np.float64)
        if damping.shape != deltas.shape:
            raise ValueError(
                f"damping must have shape {deltas.shape}, got {damping.shape}"
            )
        contributions = deltas * damping

    if order == 0:
        return contributions.copy()

    base = np.asarray(base_values, dtype=np.float64)
    if base.ndim != 1 or len(base) < order:
        raise ValueError(
            f"Need at least {order} base value(s) to invert order {order}, "
            f"got {base.size}"
        )

    if order == 1:
        return base[-1] + np.cumsum(contributions)

    if order == 2:
        result = np.empty(len(contributions))
        prev2, prev1 = base[-2], base[-1]
        for i, delta in enumerate(contributions):
            current = 2.0 * prev1 - prev2 + delta
            result[i] = current
            prev2, prev1 = prev1, current
        return result

    levels = [base[-order:]]
    for _ in range(order - 1):
        levels.append(np.diff(levels[-1]))
    result = contributions
    for level in reversed(levels):
        result = level[-1] + np.cumsum(result)
    return result


__all__ = ["DifferencedSeries", "clean", "difference", "iqr_bounds", "undifference"]
