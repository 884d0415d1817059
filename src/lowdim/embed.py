# src/lowdim/embed.py
from __future__ import annotations

from typing import Any, Mapping, Optional

import numpy as np
from anndata import AnnData

from .config import (
    EngineConfig,
    ParametersMap,
    engine_config_from_params,
    parameters_from_params,
)
from .data_sources import ArrayViewProvider
from .engine import EmbeddingEngine


def _ensure_parameters(params: ParametersMap | Mapping[str, Any]) -> ParametersMap:
    if isinstance(params, ParametersMap):
        return params
    return parameters_from_params(params, key="embedding" if "embedding" in params else None)


def build_embedding_from_config(
    ad: AnnData,
    params: ParametersMap | Mapping[str, Any],
    obsm_key: str,
    source_obsm_key: Optional[str] = None,
    config: EngineConfig | None = None,
) -> AnnData:
    """
    Embed ad.X (or ad.obsm[source_obsm_key]) and store the result in
    ad.obsm[obsm_key]. Eigenvalues and the method name go to ad.uns[obsm_key].

    `params` is either a ParametersMap or a params.yml-style dict with an
    "embedding" block (and optionally an "engine" block).
    """
    parameters = _ensure_parameters(params)
    if config is None:
        config = (
            engine_config_from_params(params)
            if not isinstance(params, ParametersMap)
            else EngineConfig()
        )
    engine = EmbeddingEngine(
        parameters,
        config=config,
        view_provider=ArrayViewProvider(obsm_key=source_obsm_key),
    )
    result, _ = engine.build_embedding(ad)

    ad.obsm[obsm_key] = np.array(result.embedding)
    ad.uns[obsm_key] = {
        "method": parameters.method.value,
        "eigenvalues": np.array(result.eigenvalues),
    }
    return ad
