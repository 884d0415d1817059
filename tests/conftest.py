"""Shared pytest fixtures for lowdim tests.

Datasets are small and seeded so every method finishes in well under a
second and results are reproducible.
"""

import numpy as np
import pytest

from lowdim import Method, ParametersMap


@pytest.fixture
def rng() -> np.random.RandomState:
    return np.random.RandomState(0)


@pytest.fixture
def swiss_roll() -> tuple[np.ndarray, np.ndarray]:
    """200 points on a Swiss roll strip in 3D, plus the roll parameter t.

    The strip height is kept small relative to the roll length so the
    unrolled surface is dominated by t.
    """
    rng = np.random.RandomState(42)
    n = 200
    t = 1.5 * np.pi * (1.0 + 2.0 * rng.uniform(size=n))
    h = 4.0 * rng.uniform(size=n)
    X = np.column_stack([t * np.cos(t), h, t * np.sin(t)])
    return X, t


@pytest.fixture
def blobs() -> np.ndarray:
    """60 points in 5D with a clear dominant direction."""
    rng = np.random.RandomState(1)
    latent = rng.normal(size=(60, 2)) * np.array([5.0, 2.0])
    mixing = rng.normal(size=(2, 5))
    return latent @ mixing + 0.1 * rng.normal(size=(60, 5))


@pytest.fixture
def plane_points() -> np.ndarray:
    """80 noisy points near a 2D plane in 3D."""
    rng = np.random.RandomState(7)
    uv = rng.uniform(-3.0, 3.0, size=(80, 2))
    X = np.column_stack([uv[:, 0], uv[:, 1], 0.5 * uv[:, 0] - 0.25 * uv[:, 1]])
    return X + 0.05 * rng.normal(size=X.shape)


@pytest.fixture
def line_points() -> np.ndarray:
    """40 points on a single line in 3D (rank one after centering)."""
    s = np.linspace(-2.0, 2.0, 40)
    return np.outer(s, np.array([1.0, 2.0, -1.0]))


@pytest.fixture
def make_params():
    """Factory building a ParametersMap for a method with keyword overrides."""

    def _make(method: Method, **kwargs) -> ParametersMap:
        return ParametersMap(reduction_method=method, **kwargs)

    return _make
