# src/lowdim/neighbors/brute_force.py
from __future__ import annotations

import numpy as np

from ..callbacks import Callbacks


def select_nearest(dists: np.ndarray, k: int, exclude: int) -> np.ndarray:
    """
    Indices of the k smallest entries of `dists` under the total order
    (distance, index), skipping position `exclude`.

    Equivalent to a bounded max-heap of size k; ties at the k-th distance
    go to the lower index.
    """
    n = dists.shape[0]
    ids = np.arange(n, dtype=np.int64)
    keep = ids != exclude
    d = dists[keep]
    ids = ids[keep]
    if k < d.shape[0]:
        kth = np.partition(d, k - 1)[k - 1]
        # keep everything tied with the k-th value so the index tie-break is exact
        sel = d <= kth
        d = d[sel]
        ids = ids[sel]
    order = np.lexsort((ids, d))[:k]
    return ids[order]


def brute_force_neighbors(callbacks: Callbacks, k: int) -> np.ndarray:
    """Exhaustive k-NN: one full distance row per object."""
    n = callbacks.n
    out = np.empty((n, k), dtype=np.int64)
    for i in range(n):
        out[i] = select_nearest(callbacks.distance_row(i), k, exclude=i)
    return out
