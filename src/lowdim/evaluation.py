# src/lowdim/evaluation.py

from __future__ import annotations

from typing import Any, Dict, Optional

import numpy as np
from scipy.stats import spearmanr

from .callbacks import Callbacks
from .config import NeighborsMethod
from .data_sources import NormDistance
from .neighbors import compute_neighbors


def _euclidean_neighbors(X: np.ndarray, k: int) -> np.ndarray:
    callbacks = Callbacks(n=X.shape[0], distance_callback=NormDistance(X))
    return compute_neighbors(callbacks, k, method=NeighborsMethod.BRUTE_FORCE)


def knn_graph_overlap(
    X_base: np.ndarray,
    X_embed: np.ndarray,
    n_neighbors: int = 10,
) -> Dict[str, float]:
    """
    Jaccard overlap between each object's k nearest neighbors in the input
    space and in the embedding, summarized as mean and std over objects.
    """
    X_base = np.asarray(X_base, dtype=float)
    X_embed = np.asarray(X_embed, dtype=float)
    n = X_base.shape[0]
    if X_embed.shape[0] != n:
        raise ValueError(
            f"X_base and X_embed must have same number of rows; "
            f"got {n} and {X_embed.shape[0]}"
        )
    if not 1 <= n_neighbors < n:
        raise ValueError(f"n_neighbors must be in [1, {n - 1}], got {n_neighbors}")

    base = _euclidean_neighbors(X_base, n_neighbors)
    emb = _euclidean_neighbors(X_embed, n_neighbors)
    # each row holds k distinct indices, so |A u B| = 2k - |A n B|
    shared = np.array([np.intersect1d(b, e).size for b, e in zip(base, emb)], dtype=float)
    jaccard = shared / (2 * n_neighbors - shared)
    return {
        "knn_jaccard_mean": float(jaccard.mean()),
        "knn_jaccard_std": float(jaccard.std()),
    }


def coordinate_rank_correlation(
    embedding: np.ndarray,
    reference: np.ndarray,
) -> Dict[str, float]:
    """
    Spearman correlation between a known latent variable (e.g. the roll
    parameter of a Swiss roll) and each embedding coordinate.

    The best coordinate is reported by absolute value since eigenvector
    signs are arbitrary up to the sign convention.
    """
    embedding = np.asarray(embedding, dtype=float)
    reference = np.asarray(reference, dtype=float).ravel()
    if embedding.shape[0] != reference.shape[0]:
        raise ValueError(
            f"embedding has {embedding.shape[0]} rows but reference has "
            f"{reference.shape[0]} values"
        )

    rhos = []
    for j in range(embedding.shape[1]):
        rho, _ = spearmanr(reference, embedding[:, j])
        rhos.append(float(rho))
    rhos_arr = np.abs(np.asarray(rhos, dtype=float))
    best = int(np.nanargmax(rhos_arr)) if np.isfinite(rhos_arr).any() else 0
    return {
        "spearman_best": float(rhos_arr[best]) if rhos_arr.size else np.nan,
        "spearman_best_coordinate": best,
    }


def evaluate_embedding(
    X: np.ndarray,
    embedding: np.ndarray,
    reference: Optional[np.ndarray] = None,
    n_neighbors: int = 10,
) -> Dict[str, Any]:
    """
    Quality summary for an embedding of X:
      - kNN graph overlap with the input space,
      - optional rank correlation against a known latent variable.
    """
    metrics: Dict[str, Any] = {}
    metrics.update(knn_graph_overlap(X, embedding, n_neighbors=n_neighbors))
    if reference is not None:
        metrics.update(coordinate_rank_correlation(embedding, reference))
    return metrics
