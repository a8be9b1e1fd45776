"""Min-max scaling of feature columns and forecast targets."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .base import Transformer, check_array, check_is_fitted, ensure_same_shape


def _as_columns(X: np.ndarray) -> tuple[np.ndarray, tuple[int, ...]]:
    """Flatten to (rows, features), remembering the original shape.

    1D input is a single feature; 3D sequence input ``(samples, steps,
    features)`` is scaled per trailing feature.
    """
    array = check_array(X, ndim=None)
    if array.ndim == 1:
        return array.reshape(-1, 1), array.shape
    if array.ndim in (2, 3):
        return array.reshape(-1, array.shape[-1]), array.shape
    raise ValueError(f"Expected 1D, 2D or 3D array, got shape {array.shape}.")


@dataclass
class MinMaxScaler(Transformer):
    """Scale each feature to ``feature_range`` using its observed min and max.

    Accepts 1D targets, 2D feature matrices and 3D LSTM windows; the last
    axis is always the feature axis and the input shape is preserved. A
    constant feature maps to the lower bound of the range.

    Examples
    --------
    >>> X = np.array([[0.0, 3.0], [5.0, 3.0]])
    >>> MinMaxScaler().fit_transform(X)
    array([[0., 0.],
           [1., 0.]])
    """

    feature_range: tuple[float, float] = (0.0, 1.0)
    clip: bool = False

    def fit(self, X: np.ndarray) -> "MinMaxScaler":
        columns, _ = _as_columns(X)
        feature_min, feature_max = self.feature_range
        if feature_min >= feature_max:
            raise ValueError("feature_range min must be less than max.")
        self.n_features_in_ = columns.shape[1]
        self.data_min_ = columns.min(axis=0)
        self.data_max_ = columns.max(axis=0)
        data_range = self.data_max_ - self.data_min_
        data_range[data_range == 0.0] = 1.0
        self.data_range_ = data_range
        self.scale_ = (feature_max - feature_min) / self.data_range_
        self.min_ = feature_min - self.data_min_ * self.scale_
        return self

    def transform(self, X: np.ndarray) -> np.ndarray:
        check_is_fitted(self, ("data_min_", "scale_", "min_", "n_features_in_"))
        columns, shape = _as_columns(X)
        ensure_same_shape(columns, self.n_features_in_)
        scaled = columns * self.scale_ + self.min_
        if self.clip:
            scaled = np.clip(scaled, *self.feature_range)
        return scaled.reshape(shape)

    def inverse_transform(self, X: np.ndarray) -> np.ndarray:
        check_is_fitted(self, ("data_min_", "scale_", "min_", "n_features_in_"))
        columns, shape = _as_columns(X)
        ensure_same_shape(columns, self.n_features_in_)
        return ((columns - self.min_) / self.scale_).reshape(shape)
