#!/usr/bin/env python3
# scripts/embed.py
"""
Embed a dataset with any lowdim method.

Thin wrapper around `lowdim.embed`.

Usage:

  python scripts/embed.py \
      --params configs/params.yml \
      --input data/swissroll.npy \
      --out out/swissroll_klle.csv

  python scripts/embed.py \
      --params configs/params.yml \
      --input data/interim/cells.h5ad \
      --out data/embedding/cells_isomap.h5ad \
      --obsm-key X_isomap \
      --metrics out/cells_isomap_metrics.json

params.yml:

  embedding:
    reduction_method: klle
    number_of_neighbors: 10
    target_dimension: 2
    neighbors_method: covertree
    eigen_embedding_method: arpack
  engine:
    verbose: true
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, Dict

import anndata
import numpy as np
import yaml

from lowdim import embed, engine_config_from_params, parameters_from_params
from lowdim.embed import build_embedding_from_config
from lowdim.evaluation import evaluate_embedding


def _load_matrix(path: Path) -> np.ndarray:
    suffix = path.suffix.lower()
    if suffix == ".npy":
        return np.load(path)
    if suffix == ".csv":
        return np.loadtxt(path, delimiter=",", ndmin=2)
    if suffix == ".txt":
        return np.loadtxt(path, ndmin=2)
    raise ValueError(f"Unsupported input format: {path.suffix}")


def _save_matrix(path: Path, X: np.ndarray) -> None:
    suffix = path.suffix.lower()
    if suffix == ".npy":
        np.save(path, X)
    elif suffix == ".csv":
        np.savetxt(path, X, delimiter=",")
    elif suffix == ".txt":
        np.savetxt(path, X)
    else:
        raise ValueError(f"Unsupported output format: {path.suffix}")


def main() -> None:
    p = argparse.ArgumentParser(
        description="Compute a low-dimensional embedding (lowdim)."
    )
    p.add_argument(
        "--params",
        required=True,
        help="Path to params.yml",
    )
    p.add_argument(
        "--input",
        required=True,
        help="Input .npy / .csv / .txt matrix (rows = objects) or .h5ad",
    )
    p.add_argument(
        "--out",
        required=True,
        help="Output .npy / .csv / .txt (embedding) or .h5ad (input + obsm)",
    )
    p.add_argument(
        "--obsm-key",
        default="X_lowdim",
        help="obsm key to store the embedding in (.h5ad only; default: X_lowdim)",
    )
    p.add_argument(
        "--source-obsm-key",
        default=None,
        help="obsm key to embed instead of .X (.h5ad only)",
    )
    p.add_argument(
        "--cfg-key",
        default="embedding",
        help="YAML block key for embedding parameters (default: embedding)",
    )
    p.add_argument(
        "--metrics",
        default=None,
        help="Optional .json path for kNN-overlap metrics",
    )
    p.add_argument(
        "--metrics-k",
        type=int,
        default=10,
        help="k for the kNN-overlap metric (default: 10)",
    )

    args = p.parse_args()

    # -----------------------------
    # 1) Load params
    # -----------------------------
    params: Dict[str, Any] = yaml.safe_load(Path(args.params).read_text()) or {}
    parameters = parameters_from_params(params, key=args.cfg_key)
    config = engine_config_from_params(params)
    print(f"[lowdim] {parameters}", flush=True)

    in_path = Path(args.input)
    out_path = Path(args.out)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    # -----------------------------
    # 2) Embed
    # -----------------------------
    if in_path.suffix.lower() == ".h5ad":
        ad = anndata.read_h5ad(in_path)
        print(f"[lowdim] Loaded AnnData: {ad.n_obs} obs × {ad.n_vars} vars", flush=True)
        ad = build_embedding_from_config(
            ad,
            parameters,
            obsm_key=args.obsm_key,
            source_obsm_key=args.source_obsm_key,
            config=config,
        )
        X = ad.obsm[args.source_obsm_key] if args.source_obsm_key else ad.X
        Y = ad.obsm[args.obsm_key]
        if out_path.suffix.lower() == ".h5ad":
            ad.write_h5ad(out_path)
        else:
            _save_matrix(out_path, Y)
    else:
        X = _load_matrix(in_path)
        print(f"[lowdim] Loaded matrix: {X.shape[0]} × {X.shape[1]}", flush=True)
        result, _ = embed(X, parameters, config=config)
        Y = result.embedding
        if out_path.suffix.lower() == ".h5ad":
            ad = anndata.AnnData(X=np.asarray(X))
            ad.obsm[args.obsm_key] = np.array(Y)
            ad.uns[args.obsm_key] = {
                "method": parameters.method.value,
                "eigenvalues": np.array(result.eigenvalues),
            }
            ad.write_h5ad(out_path)
        else:
            _save_matrix(out_path, Y)
    print(f"[lowdim] Wrote embedding {Y.shape} to {out_path}", flush=True)

    # -----------------------------
    # 3) Optional metrics
    # -----------------------------
    if args.metrics is not None:
        if hasattr(X, "toarray"):
            X = X.toarray()
        metrics = evaluate_embedding(np.asarray(X), np.asarray(Y), n_neighbors=args.metrics_k)
        metrics_path = Path(args.metrics)
        metrics_path.parent.mkdir(parents=True, exist_ok=True)
        with metrics_path.open("w") as f:
            json.dump(metrics, f, indent=2)
        print(f"[lowdim] Wrote metrics to {metrics_path}", flush=True)


if __name__ == "__main__":
    main()
