# src/lowdim/embedding.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Tuple

import numpy as np

from .eigen import EigenProblem, EigenSolution, Order, sort_solution
from .errors import DegenerateSpectrumError


class Scaling(Enum):
    # eigenvectors are the coordinates (normalized w.r.t. B when generalized)
    NONE = "none"
    # distance / variance preserving: coordinates = v * sqrt(lambda)
    SQRT_EIGENVALUES = "sqrt"


def readonly(a: np.ndarray) -> np.ndarray:
    out = np.array(a, dtype=np.float64, copy=True)
    out.flags.writeable = False
    return out


@dataclass(frozen=True)
class EmbeddingResult:
    """
    Final coordinates plus the eigenvalues they came from.

    Unpacks like a pair: `embedding, eigenvalues = result`.
    """

    embedding: np.ndarray    # (n, target_dimension)
    eigenvalues: np.ndarray  # (target_dimension,), empty for SPE

    @property
    def n_objects(self) -> int:
        return self.embedding.shape[0]

    @property
    def target_dimension(self) -> int:
        return self.embedding.shape[1]

    def __iter__(self) -> Iterator[np.ndarray]:
        yield self.embedding
        yield self.eigenvalues


def make_result(embedding: np.ndarray, eigenvalues: np.ndarray) -> EmbeddingResult:
    return EmbeddingResult(embedding=readonly(embedding), eigenvalues=readonly(eigenvalues))


def fix_signs(vectors: np.ndarray) -> np.ndarray:
    """Flip each column so its largest-magnitude entry is positive."""
    vectors = np.array(vectors, dtype=np.float64, copy=True)
    if vectors.size == 0:
        return vectors
    pivots = np.argmax(np.abs(vectors), axis=0)
    signs = np.sign(vectors[pivots, np.arange(vectors.shape[1])])
    signs[signs == 0] = 1.0
    return vectors * signs


def usable_mask(eigenvalues: np.ndarray, order: Order, relative_tolerance: float) -> np.ndarray:
    finite = np.isfinite(eigenvalues)
    if order is Order.ASCENDING:
        return finite
    scale = np.max(np.abs(eigenvalues[finite])) if finite.any() else 0.0
    return finite & (eigenvalues > relative_tolerance * scale) & (eigenvalues > 0.0)


def assemble_embedding(
    solution: EigenSolution,
    problem: EigenProblem,
    target_dimension: int,
    scaling: Scaling = Scaling.NONE,
    relative_tolerance: float = 1e-10,
) -> Tuple[EmbeddingResult, EigenSolution]:
    """
    Turn raw solver output into an EmbeddingResult.

    Sorts eigenpairs per problem.order (whatever order the backend used),
    drops problem.n_trivial leading pairs, drops pairs that carry no
    variance (non-finite, or non-positive / negligible for descending
    problems), keeps target_dimension pairs and scales them.

    Also returns the kept (sign-fixed, unscaled) eigenpairs, which projection
    builders need.

    Raises DegenerateSpectrumError when fewer than target_dimension usable
    pairs remain.
    """
    ordered = sort_solution(solution, problem.order)
    vals = ordered.eigenvalues[problem.n_trivial:]
    vecs = ordered.eigenvectors[:, problem.n_trivial:]

    mask = usable_mask(vals, problem.order, relative_tolerance)
    vals = vals[mask]
    vecs = vecs[:, mask]
    if vals.shape[0] < target_dimension:
        raise DegenerateSpectrumError(
            f"only {vals.shape[0]} usable eigenpairs for a {target_dimension}-dimensional "
            f"embedding (after discarding {problem.n_trivial} trivial)"
        )

    vals = vals[:target_dimension]
    vecs = fix_signs(vecs[:, :target_dimension])

    if scaling is Scaling.SQRT_EIGENVALUES:
        coords = vecs * np.sqrt(vals)[None, :]
    else:
        coords = vecs
    return make_result(coords, vals), EigenSolution(vals, vecs)
