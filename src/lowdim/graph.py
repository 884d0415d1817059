# src/lowdim/graph.py
"""
Sparse graph / Laplacian assembly shared by the neighbor-based methods.

Operators are accumulated as (row, col, value) triplets and compacted once;
duplicate (row, col) entries are summed, never overwritten. Every operator
is n x n even when some objects appear in no neighbor list.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

import numpy as np
from scipy import sparse

from .callbacks import Callbacks


class SparseTriplets:
    """Growable triplet accumulator."""

    def __init__(self):
        self._chunks: List[tuple] = []
        self._rows: List[int] = []
        self._cols: List[int] = []
        self._vals: List[float] = []

    def add(self, row: int, col: int, value: float) -> None:
        self._rows.append(int(row))
        self._cols.append(int(col))
        self._vals.append(float(value))

    def extend(self, rows, cols, values) -> None:
        rows = np.asarray(rows, dtype=np.int64).ravel()
        cols = np.asarray(cols, dtype=np.int64).ravel()
        values = np.asarray(values, dtype=np.float64).ravel()
        if not (rows.shape == cols.shape == values.shape):
            raise ValueError(
                f"triplet arrays disagree in length: {rows.shape}, {cols.shape}, {values.shape}"
            )
        self._chunks.append((rows, cols, values))

    def add_block(self, indices: Sequence[int], block: np.ndarray) -> None:
        """Scatter-add a dense m x m block at rows/cols `indices`."""
        idx = np.asarray(indices, dtype=np.int64)
        m = idx.shape[0]
        block = np.asarray(block, dtype=np.float64)
        if block.shape != (m, m):
            raise ValueError(f"block shape {block.shape} does not match {m} indices")
        self._chunks.append((np.repeat(idx, m), np.tile(idx, m), block.ravel().copy()))

    def __len__(self) -> int:
        return len(self._rows) + sum(c[0].shape[0] for c in self._chunks)

    def arrays(self):
        rows = [np.asarray(self._rows, dtype=np.int64)] + [c[0] for c in self._chunks]
        cols = [np.asarray(self._cols, dtype=np.int64)] + [c[1] for c in self._chunks]
        vals = [np.asarray(self._vals, dtype=np.float64)] + [c[2] for c in self._chunks]
        return np.concatenate(rows), np.concatenate(cols), np.concatenate(vals)

    def to_csr(self, n: int) -> sparse.csr_matrix:
        rows, cols, vals = self.arrays()
        if rows.size and (rows.min() < 0 or cols.min() < 0 or rows.max() >= n or cols.max() >= n):
            raise IndexError(f"triplet index out of range for a {n} x {n} operator")
        M = sparse.coo_matrix((vals, (rows, cols)), shape=(n, n), dtype=np.float64).tocsr()
        M.sum_duplicates()
        return M


@dataclass(frozen=True)
class Laplacian:
    """L = D - W together with the diagonal degree matrix D."""

    L: sparse.csr_matrix
    D: sparse.dia_matrix

    @property
    def degrees(self) -> np.ndarray:
        return self.D.diagonal()


def neighbor_distances(callbacks: Callbacks, neighbors: np.ndarray) -> np.ndarray:
    """(n, k) distances from each object to each of its neighbors."""
    n, k = neighbors.shape
    out = np.empty((n, k), dtype=np.float64)
    for i in range(n):
        out[i] = callbacks.distance_matrix([i], neighbors[i])[0]
    return out


def heat_kernel_weights(distances: np.ndarray, width: float) -> np.ndarray:
    return np.exp(-(np.asarray(distances, dtype=np.float64) ** 2) / width)


def neighbor_weight_matrix(
    neighbors: np.ndarray,
    weights: np.ndarray,
    symmetric: bool = True,
) -> sparse.csr_matrix:
    """
    Weighted adjacency W with W[i, j] += w_ij for each j in neighbors[i];
    with symmetric=True also W[j, i] += w_ij.
    """
    n, k = neighbors.shape
    rows = np.repeat(np.arange(n, dtype=np.int64), k)
    cols = neighbors.reshape(-1).astype(np.int64)
    vals = np.asarray(weights, dtype=np.float64).reshape(-1)

    triplets = SparseTriplets()
    triplets.extend(rows, cols, vals)
    if symmetric:
        triplets.extend(cols, rows, vals)
    return triplets.to_csr(n)


def laplacian(W: sparse.spmatrix) -> Laplacian:
    """Graph Laplacian; isolated nodes get zero rows and zero degree."""
    W = sparse.csr_matrix(W, dtype=np.float64)
    d = np.asarray(W.sum(axis=1)).ravel()
    D = sparse.dia_matrix((d[None, :], [0]), shape=W.shape)
    L = (D.tocsr() - W).tocsr()
    return Laplacian(L=L, D=D)


# ---------- dense helpers ----------

def center_kernel(K: np.ndarray) -> np.ndarray:
    """H K H with H = I - 11^T / n, computed without forming H."""
    K = np.asarray(K, dtype=np.float64)
    row_mean = K.mean(axis=1, keepdims=True)
    col_mean = K.mean(axis=0, keepdims=True)
    return K - row_mean - col_mean + K.mean()


def double_center_squared(D: np.ndarray) -> np.ndarray:
    """Classical MDS Gram matrix: -1/2 H D^2 H."""
    D = np.asarray(D, dtype=np.float64)
    return -0.5 * center_kernel(D * D)


def symmetric_normalize(K: np.ndarray, degrees: np.ndarray) -> np.ndarray:
    """D^-1/2 K D^-1/2 for a dense kernel."""
    inv_sqrt = 1.0 / np.sqrt(degrees)
    return K * inv_sqrt[:, None] * inv_sqrt[None, :]
