"""Transformer interface and array validation for feature preparation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import numpy as np


class Transformer(ABC):
    """Minimal fit/transform interface shared by the feature scalers."""

    def fit(self, X: np.ndarray) -> "Transformer":
        """Fit transformer to data."""
        del X  # unused by default
        return self

    @abstractmethod
    def transform(self, X: np.ndarray) -> np.ndarray:
        """Apply the transformation to X."""

    def fit_transform(self, X: np.ndarray) -> np.ndarray:
        """Fit and transform in a single call."""
        return self.fit(X).transform(X)

    def inverse_transform(self, X: np.ndarray) -> np.ndarray:
        """Inverse transformation."""
        raise NotImplementedError(
            f"{self.__class__.__name__} does not support inverse_transform."
        )


def check_is_fitted(instance: Any, attributes: tuple[str, ...]) -> None:
    """Raise RuntimeError unless every fitted attribute is present."""
    missing = [attr for attr in attributes if not hasattr(instance, attr)]
    if missing:
        raise RuntimeError(
            f"{instance.__class__.__name__} must be fitted before use. "
            f"Missing attributes: {missing}"
        )


def check_array(X: Any, *, ndim: int | None = 2, allow_empty: bool = False) -> np.ndarray:
    """Convert to a finite float64 array of the expected dimensionality.

    Args:
        X: Array-like input.
        ndim: Required number of dimensions, or None for any.
        allow_empty: Accept arrays without elements.

    Raises:
        ValueError: If conversion fails, the shape is wrong, the array is
            empty, or it holds NaN/inf.
    """
    try:
        array = np.asarray(X, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise ValueError("Array cannot be converted to float values.") from exc
    if ndim is not None and array.ndim != ndim:
        raise ValueError(f"Expected {ndim}D array, got shape {array.shape}.")
    if not allow_empty and array.size == 0:
        raise ValueError("Array is empty.")
    if not np.all(np.isfinite(array)):
        raise ValueError("Array contains NaN or infinite values.")
    return array


def ensure_same_shape(X: np.ndarray, expected_features: int) -> None:
    """Validate the trailing feature dimension."""
    if X.shape[-1] != expected_features:
        raise ValueError(f"Expected {expected_features} features, got {X.shape[-1]}.")
