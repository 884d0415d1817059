# src/lowdim/data_sources.py
"""
Dataset-backed callbacks.

Wraps a dense (n, D) matrix, or an AnnData view of one, into the kernel /
distance / feature-vector capabilities from lowdim.callbacks. The wrapped
matrix is a read-only view: no stage can mutate the caller's data.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

import numpy as np
from scipy import sparse as sp_sparse
from scipy.spatial.distance import cdist
from sklearn.utils import check_array

from .callbacks import Callbacks

NormType = Literal["l2", "l1", "linf"]
KernelType = Literal["linear", "gaussian"]

_CDIST_METRIC = {
    "l2": "euclidean",
    "l1": "cityblock",
    "linf": "chebyshev",
}


def pairwise_norm(
    Xi: np.ndarray,
    Xj: np.ndarray,
    norm: str = "l2",
) -> np.ndarray:
    """Row-wise norm of Xj - Xi."""
    V = Xj - Xi
    if norm == "l2":
        return np.linalg.norm(V, axis=-1)
    elif norm == "l1":
        return np.sum(np.abs(V), axis=-1)
    elif norm == "linf":
        return np.max(np.abs(V), axis=-1)
    else:
        raise ValueError(f"Unknown norm: {norm}")


def as_readonly_matrix(X: Any) -> np.ndarray:
    """Validate X as a finite 2d float64 array and return a read-only view."""
    if sp_sparse.issparse(X):
        X = X.toarray()
    X = check_array(X, dtype=np.float64, ensure_2d=True, ensure_min_samples=1)
    view = X.view()
    view.flags.writeable = False
    return view


class LinearKernel:
    """k(i, j) = <x_i, x_j>"""

    def __init__(self, X: np.ndarray):
        self.X = as_readonly_matrix(X)

    def kernel(self, i: int, j: int) -> float:
        return float(self.X[i] @ self.X[j])

    def kernel_block(self, rows: np.ndarray, cols: np.ndarray) -> np.ndarray:
        return self.X[rows] @ self.X[cols].T


class GaussianKernel:
    """k(i, j) = exp(-||x_i - x_j||^2 / width)"""

    def __init__(self, X: np.ndarray, width: float = 1.0):
        if width <= 0:
            raise ValueError(f"Gaussian kernel width must be positive, got {width}")
        self.X = as_readonly_matrix(X)
        self.width = float(width)

    def kernel(self, i: int, j: int) -> float:
        d = pairwise_norm(self.X[i], self.X[j], norm="l2")
        return float(np.exp(-(d ** 2) / self.width))

    def kernel_block(self, rows: np.ndarray, cols: np.ndarray) -> np.ndarray:
        D2 = cdist(self.X[rows], self.X[cols], metric="sqeuclidean")
        return np.exp(-D2 / self.width)


class NormDistance:
    """d(i, j) = ||x_i - x_j|| under an l2, l1 or linf norm."""

    def __init__(self, X: np.ndarray, norm: NormType = "l2"):
        if norm not in _CDIST_METRIC:
            raise ValueError(f"Unknown norm: {norm}")
        self.X = as_readonly_matrix(X)
        self.norm = norm

    def distance(self, i: int, j: int) -> float:
        return float(pairwise_norm(self.X[i], self.X[j], norm=self.norm))

    def distance_block(self, rows: np.ndarray, cols: np.ndarray) -> np.ndarray:
        return cdist(self.X[rows], self.X[cols], metric=_CDIST_METRIC[self.norm])


class FeatureVectors:
    def __init__(self, X: np.ndarray):
        self.X = as_readonly_matrix(X)
        self.dimension = self.X.shape[1]

    def vector(self, i: int) -> np.ndarray:
        return self.X[i]

    def feature_block(self, indices: np.ndarray) -> np.ndarray:
        return self.X[indices]


class ArrayViewProvider:
    """
    Standardizes how an input dataset is turned into callbacks:
      - which matrix to use (a plain array, AnnData .X, or an AnnData .obsm key)
      - which kernel (linear or gaussian) and distance norm to expose
    """

    def __init__(
        self,
        obsm_key: Optional[str] = None,
        kernel: KernelType = "linear",
        kernel_width: float = 1.0,
        norm: NormType = "l2",
    ):
        self.obsm_key = obsm_key
        self.kernel = kernel
        self.kernel_width = kernel_width
        self.norm = norm

    def get_matrix(self, objects: Any) -> np.ndarray:
        # AnnData without importing anndata at module import time
        if hasattr(objects, "obsm") and hasattr(objects, "X"):
            if self.obsm_key is not None:
                if self.obsm_key not in objects.obsm:
                    raise KeyError(f"obsm key '{self.obsm_key}' not found in AnnData")
                X = objects.obsm[self.obsm_key]
            else:
                X = objects.X
        else:
            X = objects
        return as_readonly_matrix(X)

    def callbacks(self, objects: Any) -> Callbacks:
        X = self.get_matrix(objects)
        if self.kernel == "linear":
            kernel = LinearKernel(X)
        elif self.kernel == "gaussian":
            kernel = GaussianKernel(X, width=self.kernel_width)
        else:
            raise ValueError(f"Unknown kernel: {self.kernel}")
        return Callbacks(
            n=X.shape[0],
            kernel_callback=kernel,
            distance_callback=NormDistance(X, norm=self.norm),
            feature_callback=FeatureVectors(X),
        )
