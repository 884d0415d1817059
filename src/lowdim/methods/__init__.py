# src/lowdim/methods/__init__.py
"""
Per-method operator builders.

  - local:     KLLE, NPE, KLTSA, LLTSA, Hessian LLE
  - spectral:  Laplacian Eigenmaps, LPP, Diffusion Map
  - distance:  MDS, landmark MDS, Isomap, landmark Isomap
  - spe:       Stochastic Proximity Embedding
  - pca:       PCA, kernel PCA
"""

from __future__ import annotations

from typing import Dict, Type

from ..config import Method
from .base import BaseMethod, EmbeddingContext, LinearMethod
from .distance import (
    Isomap,
    LandmarkIsomap,
    LandmarkMultidimensionalScaling,
    MultidimensionalScaling,
)
from .local import (
    HessianLocallyLinearEmbedding,
    KernelLocallyLinearEmbedding,
    KernelLocalTangentSpaceAlignment,
    LinearLocalTangentSpaceAlignment,
    NeighborhoodPreservingEmbedding,
)
from .pca import PCA, KernelPCA
from .spe import StochasticProximityEmbedding
from .spectral import DiffusionMap, LaplacianEigenmaps, LocalityPreservingProjections

_METHOD_REGISTRY: Dict[Method, Type[BaseMethod]] = {
    cls.method: cls
    for cls in (
        KernelLocallyLinearEmbedding,
        NeighborhoodPreservingEmbedding,
        KernelLocalTangentSpaceAlignment,
        LinearLocalTangentSpaceAlignment,
        HessianLocallyLinearEmbedding,
        LaplacianEigenmaps,
        LocalityPreservingProjections,
        DiffusionMap,
        Isomap,
        LandmarkIsomap,
        MultidimensionalScaling,
        LandmarkMultidimensionalScaling,
        StochasticProximityEmbedding,
        KernelPCA,
        PCA,
    )
}


def get_method(method: Method) -> Type[BaseMethod]:
    if method not in _METHOD_REGISTRY:
        raise ValueError(f"Unknown method: {method}")
    return _METHOD_REGISTRY[method]


__all__ = [
    "BaseMethod",
    "LinearMethod",
    "EmbeddingContext",
    "get_method",
]
