"""Pytest configuration and shared fixtures for tsforecast tests.

This module provides:
- Deterministic RNG fixtures for numpy and torch
- Synthetic series used across the timeseries tests
"""

import os

import numpy as np
import pytest
import torch


def _seed() -> int:
    return int(os.environ.get("TEST_RNG_SEED", "0"))


@pytest.fixture(scope="function")
def rng() -> np.random.Generator:
    """Provide a deterministic numpy RNG for tests.

    Uses seed from TEST_RNG_SEED environment variable (default: 0).
    This ensures tests are reproducible while allowing override for debugging.
    """
    return np.random.default_rng(_seed())


@pytest.fixture(scope="function", autouse=True)
def set_random_seeds() -> None:
    """Auto-use fixture to set global random seeds for reproducibility."""
    np.random.seed(_seed())
    torch.manual_seed(_seed())


@pytest.fixture
def ar1_series() -> np.ndarray:
    """AR(1) with phi=0.6 around a level of 50, 400 points."""
    gen = np.random.default_rng(1234)
    n = 400
    eps = gen.normal(size=n)
    x = np.zeros(n)
    for t in range(1, n):
        x[t] = 0.6 * x[t - 1] + eps[t]
    return 50.0 + x


@pytest.fixture
def weekly_sine() -> np.ndarray:
    """120 daily points of 100 + 10 sin(2πt/7) plus unit noise."""
    gen = np.random.default_rng(7)
    t = np.arange(120)
    return 100.0 + 10.0 * np.sin(2 * np.pi * t / 7) + gen.normal(size=120)
