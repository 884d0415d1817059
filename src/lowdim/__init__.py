# src/lowdim/__init__.py
"""
lowdim: dimensionality reduction over user-supplied kernels, distances and
feature vectors.

This package contains:
  - config:       ParametersMap, method / backend enums, params.yml glue
  - callbacks:    capability protocols and the Callbacks bundle
  - data_sources: array / AnnData backed callbacks
  - neighbors:    brute force and cover tree kNN
  - graph:        sparse triplet assembly and Laplacians
  - eigen:        dense, ARPACK and randomized eigensolvers
  - methods:      per-method operator builders
  - engine:       EmbeddingEngine and the embed() entry point
  - evaluation:   embedding quality metrics
"""

from __future__ import annotations

from .callbacks import (
    Callbacks,
    Capability,
    DistanceCallback,
    FeatureVectorCallback,
    KernelCallback,
)
from .config import (
    EigenEmbeddingMethod,
    EngineConfig,
    Method,
    NeighborsMethod,
    ParameterKey,
    ParametersMap,
    ParameterValue,
    engine_config_from_params,
    load_parameters,
    parameters_from_params,
)
from .data_sources import ArrayViewProvider
from .embedding import EmbeddingResult
# Load the `embed` submodule before binding the `embed` function, so a later
# `import lowdim.embed` cannot rebind the package attribute to the module.
from . import embed as _embed_module  # noqa: F401
from .engine import EmbeddingEngine, embed
from .errors import (
    AllocationError,
    ConfigurationError,
    ConvergenceError,
    DegenerateSpectrumError,
    DisconnectedGraphError,
    EmbeddingError,
    InsufficientDataError,
    InvalidParameterError,
    MissingCapabilityError,
    MissingParameterError,
    TypeMismatchError,
    UnsupportedProblemError,
)
from .projection import ProjectingFunction

__all__ = [
    "Callbacks",
    "Capability",
    "DistanceCallback",
    "FeatureVectorCallback",
    "KernelCallback",
    "EigenEmbeddingMethod",
    "EngineConfig",
    "Method",
    "NeighborsMethod",
    "ParameterKey",
    "ParametersMap",
    "ParameterValue",
    "engine_config_from_params",
    "load_parameters",
    "parameters_from_params",
    "ArrayViewProvider",
    "EmbeddingResult",
    "EmbeddingEngine",
    "embed",
    "AllocationError",
    "ConfigurationError",
    "ConvergenceError",
    "DegenerateSpectrumError",
    "DisconnectedGraphError",
    "EmbeddingError",
    "InsufficientDataError",
    "InvalidParameterError",
    "MissingCapabilityError",
    "MissingParameterError",
    "TypeMismatchError",
    "UnsupportedProblemError",
    "ProjectingFunction",
]
