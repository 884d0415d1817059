# src/lowdim/engine.py

from __future__ import annotations

from numbers import Integral
from typing import Any, Optional, Tuple, Type

import numpy as np

from .callbacks import (
    Callbacks,
    Capability,
    DistanceCallback,
    FeatureVectorCallback,
    KernelCallback,
    KernelInducedDistance,
    check_capabilities,
)
from .config import EngineConfig, ParameterKey, ParametersMap
from .data_sources import ArrayViewProvider
from .embedding import EmbeddingResult
from .errors import DegenerateSpectrumError, InsufficientDataError, InvalidParameterError
from .methods import BaseMethod, EmbeddingContext, LinearMethod, get_method
from .neighbors import compute_neighbors
from .projection import ProjectingFunction


class EmbeddingEngine:
    """
    - Turns the input (array, AnnData or object count) into callbacks
      (via ArrayViewProvider, overridden by explicit callbacks)
    - Validates parameters and capabilities before any callback is invoked
    - Builds the neighbor graph for methods that use one
    - Delegates the operator / eigenproblem to a method strategy
    """

    def __init__(
        self,
        parameters: ParametersMap,
        config: EngineConfig | None = None,
        view_provider: ArrayViewProvider | None = None,
    ):
        self.parameters = parameters
        self.config = config or EngineConfig()
        self.view_provider = view_provider or ArrayViewProvider()

    def _log(self, message: str) -> None:
        if self.config.verbose:
            print(f"[lowdim Engine] {message}", flush=True)

    def _resolve_callbacks(
        self,
        objects: Any,
        kernel: Optional[KernelCallback],
        distance: Optional[DistanceCallback],
        features: Optional[FeatureVectorCallback],
    ) -> Callbacks:
        if isinstance(objects, Integral) and not isinstance(objects, bool):
            n = int(objects)
            if n < 1:
                raise InsufficientDataError(f"Need at least one object, got n={n}")
            return Callbacks(
                n=n,
                kernel_callback=kernel,
                distance_callback=distance,
                feature_callback=features,
            )

        defaults = self.view_provider.callbacks(objects)
        return Callbacks(
            n=defaults.n,
            kernel_callback=kernel if kernel is not None else defaults.kernel_callback,
            distance_callback=distance if distance is not None else defaults.distance_callback,
            feature_callback=features if features is not None else defaults.feature_callback,
        )

    def _check_dimensions(self, method_cls: Type[BaseMethod], callbacks: Callbacks) -> int:
        params = self.parameters
        method = params.method
        n = callbacks.n
        d = params.get(ParameterKey.TARGET_DIMENSION, method)

        if callbacks.feature_callback is not None:
            dimension = callbacks.dimension
            current = params.get_optional(ParameterKey.CURRENT_DIMENSION)
            if current is not None and current != dimension:
                raise InvalidParameterError(
                    f"CURRENT_DIMENSION={current} does not match the feature "
                    f"dimension {dimension}"
                )
            if issubclass(method_cls, LinearMethod) and d > dimension:
                raise DegenerateSpectrumError(
                    f"{method.name} needs {d} eigenpairs but the {dimension}x{dimension} "
                    f"feature-space problem has only {dimension}"
                )
        if d >= n:
            raise InsufficientDataError(
                f"Target dimension {d} requires more than {n} objects"
            )
        if method_cls.needs_neighbors(params):
            k = params.get(ParameterKey.NUMBER_OF_NEIGHBORS, method)
            if not 1 <= k < n:
                raise InsufficientDataError(
                    f"Cannot find {k} neighbors per object among {n} objects "
                    "(need 1 <= k < n)"
                )
        return d

    def _build_neighbors(
        self,
        method_cls: Type[BaseMethod],
        callbacks: Callbacks,
    ) -> Optional[np.ndarray]:
        params = self.parameters
        if not method_cls.needs_neighbors(params):
            return None
        k = params.get(ParameterKey.NUMBER_OF_NEIGHBORS, params.method)
        if method_cls.neighbors_from is Capability.KERNEL:
            self._log("searching neighbors under the kernel-induced distance")
            search = Callbacks(
                n=callbacks.n,
                distance_callback=KernelInducedDistance(callbacks),
            )
        else:
            search = callbacks
        neighbors = compute_neighbors(
            search,
            k,
            method=params.neighbors_method,
            verbose=self.config.verbose,
        )
        self._log(f"neighbor graph: {neighbors.shape[0]} x {neighbors.shape[1]}")
        return neighbors

    def build_embedding(
        self,
        objects: Any,
        kernel: Optional[KernelCallback] = None,
        distance: Optional[DistanceCallback] = None,
        features: Optional[FeatureVectorCallback] = None,
    ) -> Tuple[EmbeddingResult, Optional[ProjectingFunction]]:
        params = self.parameters
        method = params.method
        method_cls = get_method(method)

        # fail fast: parameters and capabilities before any callback call
        params.validate(method, required=method_cls.parameters_required(params))
        callbacks = self._resolve_callbacks(objects, kernel, distance, features)
        required = list(method_cls.requires)
        if method_cls.needs_neighbors(params) and method_cls.neighbors_from not in required:
            required.append(method_cls.neighbors_from)
        check_capabilities(callbacks, required, method)
        d = self._check_dimensions(method_cls, callbacks)

        self._log(f"{method.name}: n={callbacks.n}, target dimension={d}")
        neighbors = self._build_neighbors(method_cls, callbacks)

        ctx = EmbeddingContext(
            callbacks=callbacks,
            parameters=params,
            method=method,
            target_dimension=d,
            neighbors=neighbors,
            verbose=self.config.verbose,
            allocation_limit=self.config.allocation_limit,
        )
        result, projection = method_cls(ctx).run()
        self._log(
            f"done: embedding {result.embedding.shape}, "
            f"projection {'available' if projection is not None else 'not available'}"
        )
        return result, projection


def embed(
    objects: Any,
    parameters: ParametersMap,
    *,
    kernel: Optional[KernelCallback] = None,
    distance: Optional[DistanceCallback] = None,
    features: Optional[FeatureVectorCallback] = None,
    config: EngineConfig | None = None,
) -> Tuple[EmbeddingResult, Optional[ProjectingFunction]]:
    """
    Embed n objects into TARGET_DIMENSION dimensions.

    Parameters
    ----------
    objects
        An (n, D) array-like, an AnnData (its .X is used), or the object
        count n when every capability the method needs comes from explicit
        callbacks.
    parameters
        The method and its options.
    kernel, distance, features
        Callbacks overriding the defaults derived from `objects`
        (linear kernel, Euclidean distance, row access).
    config
        Console output and allocation-guard limit.

    Returns
    -------
    result
        EmbeddingResult with the (n, d) embedding and its eigenvalues.
    projection
        ProjectingFunction for unseen feature vectors, or None when the
        method has no out-of-sample map.
    """
    engine = EmbeddingEngine(parameters, config=config or EngineConfig(verbose=False))
    return engine.build_embedding(
        objects,
        kernel=kernel,
        distance=distance,
        features=features,
    )
