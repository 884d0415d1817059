# src/lowdim/neighbors/__init__.py
"""
Neighbor graph construction.

  - brute_force:  exhaustive O(N^2 log k) search
  - cover_tree:   exact accelerated search, O(log N) per query

Both return an (n, k) int64 array whose row i lists the k nearest other
objects of i ordered by (distance, index); the two strategies agree exactly.
"""

from __future__ import annotations

import numpy as np

from ..callbacks import Callbacks
from ..config import NeighborsMethod
from ..errors import InsufficientDataError
from .brute_force import brute_force_neighbors, select_nearest
from .cover_tree import DEFAULT_BASE, CoverTree, cover_tree_neighbors


def compute_neighbors(
    callbacks: Callbacks,
    k: int,
    method: NeighborsMethod = NeighborsMethod.COVER_TREE,
    base: float = DEFAULT_BASE,
    verbose: bool = False,
) -> np.ndarray:
    """
    k nearest neighbors of every object under callbacks' distance.

    Raises InsufficientDataError when k >= n (an object cannot have n or more
    distinct other neighbors) or k < 1.
    """
    n = callbacks.n
    if k < 1 or k >= n:
        raise InsufficientDataError(
            f"Cannot find {k} neighbors per object among {n} objects "
            "(need 1 <= k < n)"
        )
    if verbose:
        print(
            f"[lowdim Neighbors] {method.name.lower()} search, n={n}, k={k}",
            flush=True,
        )
    if method is NeighborsMethod.BRUTE_FORCE:
        return brute_force_neighbors(callbacks, k)
    if method is NeighborsMethod.COVER_TREE:
        return cover_tree_neighbors(callbacks, k, base=base)
    raise ValueError(f"Unknown neighbors method: {method}")


__all__ = [
    "compute_neighbors",
    "brute_force_neighbors",
    "cover_tree_neighbors",
    "select_nearest",
    "CoverTree",
    "DEFAULT_BASE",
]
