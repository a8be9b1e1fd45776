"""Tests for the min-max scaler."""

import numpy as np
import pytest

from tsforecast.features import MinMaxScaler, Transformer
from tsforecast.features.base import check_array, check_is_fitted, ensure_same_shape


def test_minmax_scaler_basic():
    X = np.array([[0.0, 10.0], [5.0, 20.0], [10.0, 30.0]])
    transformed = MinMaxScaler().fit_transform(X)
    assert np.allclose(transformed, [[0.0, 0.0], [0.5, 0.5], [1.0, 1.0]])


def test_minmax_scaler_roundtrip():
    X = np.array([[1.0, -2.0], [3.0, 4.0], [2.0, 0.0]])
    scaler = MinMaxScaler(feature_range=(-1.0, 1.0)).fit(X)
    assert np.allclose(scaler.inverse_transform(scaler.transform(X)), X)


def test_minmax_scaler_clip():
    X = np.array([[0.0], [5.0]])
    scaler = MinMaxScaler(feature_range=(-1.0, 1.0), clip=True).fit(X)
    transformed = scaler.transform([[10.0]])
    assert transformed.max() <= 1.0
    assert np.allclose(scaler.inverse_transform([[0.0]]), [[2.5]])


def test_minmax_scaler_constant_feature():
    X = np.array([[0.0, 3.0], [5.0, 3.0]])
    transformed = MinMaxScaler(feature_range=(0.2, 0.8)).fit_transform(X)
    assert np.allclose(transformed[:, 1], 0.2)


def test_minmax_scaler_targets_1d():
    y = np.array([100.0, 150.0, 200.0])
    scaler = MinMaxScaler().fit(y)
    assert scaler.transform(y).shape == (3,)
    assert np.allclose(scaler.transform(y), [0.0, 0.5, 1.0])
    assert np.allclose(scaler.inverse_transform([0.25]), [125.0])


def test_minmax_scaler_sequence_windows():
    windows = np.stack([np.column_stack([np.arange(4.0) + i, np.full(4, 10.0 * i)]) for i in range(3)])
    scaler = MinMaxScaler().fit(windows)
    transformed = scaler.transform(windows)
    assert transformed.shape == windows.shape
    assert transformed[..., 0].min() == 0.0
    assert transformed[..., 0].max() == 1.0
    assert np.allclose(transformed[2, :, 1], 1.0)


def test_minmax_scaler_not_fitted():
    with pytest.raises(RuntimeError, match="must be fitted"):
        MinMaxScaler().transform(np.ones((2, 2)))


def test_minmax_scaler_feature_mismatch():
    scaler = MinMaxScaler().fit(np.ones((3, 2)))
    with pytest.raises(ValueError, match="Expected 2 features"):
        scaler.transform(np.ones((3, 3)))


def test_minmax_scaler_invalid_range():
    with pytest.raises(ValueError, match="feature_range"):
        MinMaxScaler(feature_range=(1.0, 0.0)).fit(np.ones((2, 1)))


def test_minmax_scaler_rejects_nan():
    with pytest.raises(ValueError, match="NaN"):
        MinMaxScaler().fit(np.array([[1.0], [np.nan]]))


def test_check_array():
    with pytest.raises(ValueError, match="Expected 2D"):
        check_array(np.ones(3))
    with pytest.raises(ValueError, match="empty"):
        check_array(np.ones((0, 2)))
    assert check_array(np.ones((0, 2)), allow_empty=True).shape == (0, 2)


def test_check_is_fitted_and_shape():
    scaler = MinMaxScaler()
    with pytest.raises(RuntimeError):
        check_is_fitted(scaler, ("scale_",))
    with pytest.raises(ValueError):
        ensure_same_shape(np.ones((2, 3)), 2)


def test_transformer_default_inverse():
    class Identity(Transformer):
        def transform(self, X):
            return np.asarray(X)

    identity = Identity()
    assert np.allclose(identity.fit_transform([1.0, 2.0]), [1.0, 2.0])
    with pytest.raises(NotImplementedError):
        identity.inverse_transform([1.0])
