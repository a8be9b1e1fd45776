"""Numerical helpers used throughout the timeseries package.

Lag matrix construction, sample autocovariance/autocorrelation, and the
small dense linear solver behind the least-squares AR fit.

References:
    - Box & Jenkins (1976): Time Series Analysis: Forecasting and Control
    - Golub & Van Loan (2013): Matrix Computations, section 3.4
"""

from __future__ import annotations

import numpy as np

from .errors import EstimationFailureError


def lag_matrix(x: np.ndarray, p: int) -> np.ndarray:
    """Build design matrix with lags 1 through p.

    Args:
        x: 1D time series array, shape (n,).
        p: Number of lags to include. Must be >= 1.

    Returns:
        Design matrix of shape (n-p, p) where row i contains
        x[i+p-1], x[i+p-2], ..., x[i] (lags in reverse order).

    Raises:
        ValueError: If p < 1, n < p+1, or x is not 1D.

    Example:
        >>> x = np.array([1.0, 2.0, 3.0, 4.0, 5.0])
        >>> lag_matrix(x, p=2)
        array([[2., 1.],
               [3., 2.],
               [4., 3.]])
    """
    x = np.asarray(x, dtype=np.float64)
    if x.ndim != 1:
        raise ValueError(f"x must be 1D array, got shape {x.shape}")
    if p < 1:
        raise ValueError(f"p must be >= 1, got {p}")
    n = len(x)
    if n < p + 1:
        raise ValueError(f"Need at least p+1={p+1} observations, got {n}")

    X = np.zeros((n - p, p))
    for j in range(p):
        X[:, j] = x[p - 1 - j : n - 1 - j]
    return X


def acov(x: np.ndarray, nlags: int) -> np.ndarray:
    """Compute sample autocovariances.

        γ(k) = (1/(n-k)) * Σ_{t=k+1}^n (x_t - x̄)(x_{t-k} - x̄)

    for k = 0, 1, ..., nlags. Lags at or beyond n are reported as 0.

    Args:
        x: 1D time series array, shape (n,).
        nlags: Maximum lag to compute. Must be >= 0.

    Returns:
        Array [γ(0), ..., γ(nlags)], shape (nlags+1,).

    Raises:
        ValueError: If nlags < 0, n < 2, or x is not 1D.
    """
    x = np.asarray(x, dtype=np.float64)
    if x.ndim != 1:
        raise ValueError(f"x must be 1D array, got shape {x.shape}")
    if nlags < 0:
        raise ValueError(f"nlags must be >= 0, got {nlags}")
    n = len(x)
    if n < 2:
        raise ValueError(f"Need at least 2 observations, got {n}")

    x_centered = x - np.mean(x)
    acov_vals = np.zeros(nlags + 1)

    for k in range(nlags + 1):
        if k == 0:
            acov_vals[k] = np.mean(x_centered**2)
        elif n - k > 0:
            acov_vals[k] = np.mean(x_centered[k:] * x_centered[: n - k])

    return acov_vals


def acf(x: np.ndarray, nlags: int) -> np.ndarray:
    """Compute the autocorrelation function ρ(k) = γ(k) / γ(0).

    A series with (near) zero variance has no defined autocorrelation; zeros
    are returned so callers end up with null coefficients instead of NaN.

    Args:
        x: 1D time series array, shape (n,).
        nlags: Maximum lag to compute. Must be >= 0.

    Returns:
        Array [ρ(0), ..., ρ(nlags)], shape (nlags+1,).

    Example:
        >>> x = np.array([1.0, 2.0, 3.0, 4.0, 5.0])
        >>> acf(x, nlags=2)
        array([ 1.        ,  0.5       , -0.16666667])
    """
    gamma = acov(x, nlags)
    gamma0 = gamma[0]
    if abs(gamma0) < 1e-12:
        return np.zeros(nlags + 1)

    return gamma / gamma0


def gaussian_elimination(A: np.ndarray, b: np.ndarray, rtol: float = 1e-10) -> np.ndarray:
    """Solve ``A x = b`` by Gaussian elimination with partial pivoting.

    Lag matrices of strongly autocorrelated series give badly conditioned
    normal equations, so rows are swapped to put the largest remaining entry
    of each column on the diagonal before eliminating below it.

    Args:
        A: Square coefficient matrix, shape (n, n).
        b: Right-hand side, shape (n,).
        rtol: A pivot smaller than ``rtol`` times the largest absolute entry
            of ``A`` is treated as zero.

    Returns:
        Solution vector, shape (n,).

    Raises:
        ValueError: If shapes are inconsistent.
        EstimationFailureError: If the matrix is (numerically) singular.

    Example:
        >>> gaussian_elimination(np.array([[2.0, 1.0], [1.0, 3.0]]), np.array([3.0, 5.0]))
        array([0.8, 1.4])
    """
    A = np.asarray(A, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if A.ndim != 2 or A.shape[0] != A.shape[1]:
        raise ValueError(f"A must be a square matrix, got shape {A.shape}")
    n = A.shape[0]
    if b.shape != (n,):
        raise ValueError(f"b must have shape ({n},), got {b.shape}")

    augmented = np.column_stack([A, b])
    scale = np.max(np.abs(A)) if A.size else 0.0
    threshold = rtol * max(scale, np.finfo(np.float64).tiny)

    # Forward elimination
    for i in range(n):
        pivot_row = i + int(np.argmax(np.abs(augmented[i:, i])))
        if abs(augmented[pivot_row, i]) <= threshold:
            raise EstimationFailureError(
                f"Singular matrix in least-squares solve (column {i})"
            )
        if pivot_row != i:
            augmented[[i, pivot_row]] = augmented[[pivot_row, i]]

        for k in range(i + 1, n):
            factor = augmented[k, i] / augmented[i, i]
            augmented[k, i:] -= factor * augmented[i, i:]

    # Back substitution
    x = np.zeros(n)
    for i in range(n - 1, -1, -1):
        x[i] = (augmented[i, n] - np.dot(augmented[i, i + 1 : n], x[i + 1 :])) / augmented[i, i]

    return x


def solve_normal_equations(X: np.ndarray, y: np.ndarray) -> np.ndarray:
    """Ordinary least squares via the normal equations ``XᵗX β = Xᵗy``.

    Args:
        X: Design matrix, shape (m, k).
        y: Response vector, shape (m,).

    Returns:
        Coefficient vector β, shape (k,).

    Raises:
        EstimationFailureError: If ``XᵗX`` is singular or the solution is
            not finite.
    """
    X = np.asarray(X, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    if X.ndim != 2:
        raise ValueError(f"X must be 2D array, got shape {X.shape}")
    if len(y) != X.shape[0]:
        raise ValueError(f"X has {X.shape[0]} rows but y has {len(y)} entries")

    XtX = X.T @ X
    Xty = X.T @ y
    beta = gaussian_elimination(XtX, Xty)
    if not np.all(np.isfinite(beta)):
        raise EstimationFailureError("Least-squares solution is not finite")
    return beta
