# src/lowdim/callbacks.py
"""
Capability interfaces for user-supplied objects.

A method never touches the input objects directly; it goes through one of
three capabilities:

  - KernelCallback.kernel(i, j)       -> float
  - DistanceCallback.distance(i, j)   -> float
  - FeatureVectorCallback.vector(i)   -> 1d array (plus .dimension)

Any object with the right method satisfies the interface (structural
typing), no inheritance needed. Implementations may additionally offer
vectorized block methods (kernel_block, distance_block, feature_block) which
are used as fast paths when present.

Each method lists the capabilities it requires; check_capabilities() rejects
a mismatch when the pipeline is composed, before any callback is invoked.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Protocol, Sequence, runtime_checkable

import numpy as np

from .errors import MissingCapabilityError


@runtime_checkable
class KernelCallback(Protocol):
    def kernel(self, i: int, j: int) -> float:
        ...


@runtime_checkable
class DistanceCallback(Protocol):
    def distance(self, i: int, j: int) -> float:
        ...


@runtime_checkable
class FeatureVectorCallback(Protocol):
    dimension: int

    def vector(self, i: int) -> np.ndarray:
        ...


class Capability(Enum):
    KERNEL = "kernel"
    DISTANCE = "distance"
    FEATURES = "features"


_PROTOCOLS = {
    Capability.KERNEL: KernelCallback,
    Capability.DISTANCE: DistanceCallback,
    Capability.FEATURES: FeatureVectorCallback,
}


@dataclass(frozen=True)
class Callbacks:
    """
    The callbacks bound to one dataset of n objects, exposed as uniform
    functions regardless of how each provider implements them.
    """

    n: int
    kernel_callback: Optional[KernelCallback] = None
    distance_callback: Optional[DistanceCallback] = None
    feature_callback: Optional[FeatureVectorCallback] = None

    def provider(self, capability: Capability):
        return {
            Capability.KERNEL: self.kernel_callback,
            Capability.DISTANCE: self.distance_callback,
            Capability.FEATURES: self.feature_callback,
        }[capability]

    # ---------- scalar access ----------

    def kernel(self, i: int, j: int) -> float:
        return float(self.kernel_callback.kernel(i, j))

    def distance(self, i: int, j: int) -> float:
        return float(self.distance_callback.distance(i, j))

    def vector(self, i: int) -> np.ndarray:
        return np.asarray(self.feature_callback.vector(i), dtype=np.float64)

    @property
    def dimension(self) -> int:
        return int(self.feature_callback.dimension)

    # ---------- block access ----------

    def kernel_matrix(
        self,
        rows: Optional[Sequence[int]] = None,
        cols: Optional[Sequence[int]] = None,
    ) -> np.ndarray:
        rows, cols = self._index_pair(rows, cols)
        block = getattr(self.kernel_callback, "kernel_block", None)
        if block is not None:
            return np.asarray(block(rows, cols), dtype=np.float64)
        return _scalar_block(self.kernel_callback.kernel, rows, cols)

    def distance_matrix(
        self,
        rows: Optional[Sequence[int]] = None,
        cols: Optional[Sequence[int]] = None,
    ) -> np.ndarray:
        rows, cols = self._index_pair(rows, cols)
        block = getattr(self.distance_callback, "distance_block", None)
        if block is not None:
            return np.asarray(block(rows, cols), dtype=np.float64)
        return _scalar_block(self.distance_callback.distance, rows, cols)

    def distance_row(self, i: int) -> np.ndarray:
        return self.distance_matrix([i], None)[0]

    def feature_matrix(self, indices: Optional[Sequence[int]] = None) -> np.ndarray:
        """Stack feature vectors into an (m, dimension) array."""
        idx = np.arange(self.n) if indices is None else np.asarray(indices, dtype=np.int64)
        block = getattr(self.feature_callback, "feature_block", None)
        if block is not None:
            return np.array(block(idx), dtype=np.float64)
        out = np.empty((idx.shape[0], self.dimension), dtype=np.float64)
        for row, i in enumerate(idx):
            out[row] = self.vector(int(i))
        return out

    def _index_pair(self, rows, cols):
        rows = np.arange(self.n) if rows is None else np.asarray(rows, dtype=np.int64)
        cols = np.arange(self.n) if cols is None else np.asarray(cols, dtype=np.int64)
        return rows, cols


def _scalar_block(fn, rows: np.ndarray, cols: np.ndarray) -> np.ndarray:
    out = np.empty((rows.shape[0], cols.shape[0]), dtype=np.float64)
    for a, i in enumerate(rows):
        ii = int(i)
        for b, j in enumerate(cols):
            out[a, b] = fn(ii, int(j))
    return out


class KernelInducedDistance:
    """
    Distance in the feature space of a Mercer kernel:

        d(i, j) = sqrt(K(i, i) + K(j, j) - 2 K(i, j))

    Used to search neighbors for methods that only receive a kernel.
    """

    def __init__(self, callbacks: Callbacks):
        self._callbacks = callbacks
        n = callbacks.n
        self._diag = np.array([callbacks.kernel(i, i) for i in range(n)], dtype=np.float64)

    def distance(self, i: int, j: int) -> float:
        sq = self._diag[i] + self._diag[j] - 2.0 * self._callbacks.kernel(i, j)
        return float(np.sqrt(max(sq, 0.0)))

    def distance_block(self, rows: np.ndarray, cols: np.ndarray) -> np.ndarray:
        K = self._callbacks.kernel_matrix(rows, cols)
        sq = self._diag[rows][:, None] + self._diag[cols][None, :] - 2.0 * K
        np.maximum(sq, 0.0, out=sq)
        return np.sqrt(sq)


def check_capabilities(
    callbacks: Callbacks,
    required: Iterable[Capability],
    method=None,
) -> None:
    """Reject callbacks that lack a capability the method requires."""
    missing = []
    for capability in required:
        provider = callbacks.provider(capability)
        if provider is None or not isinstance(provider, _PROTOCOLS[capability]):
            missing.append(capability.value)
    if missing:
        name = method.name if method is not None else "this method"
        raise MissingCapabilityError(
            f"{name} requires {', '.join(missing)} callback(s) which were not supplied"
        )
