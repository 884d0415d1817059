# src/lowdim/methods/spectral.py
"""
Graph-kernel spectral methods.

References:
  - Belkin & Niyogi (2002), Laplacian Eigenmaps
  - He & Niyogi (2003), Locality Preserving Projections
  - Coifman & Lafon (2006), Diffusion Maps
"""

from __future__ import annotations

import numpy as np

from ..callbacks import Capability
from ..config import Method, ParameterKey
from ..eigen import EigenProblem, Order
from ..embedding import assemble_embedding, make_result
from ..graph import (
    Laplacian,
    heat_kernel_weights,
    laplacian,
    neighbor_distances,
    neighbor_weight_matrix,
    symmetric_normalize,
)
from .base import BaseMethod, LinearMethod


def heat_laplacian(ctx) -> Laplacian:
    """Laplacian of the symmetrized kNN graph with heat-kernel weights."""
    width = ctx.get(ParameterKey.GAUSSIAN_KERNEL_WIDTH)
    dists = neighbor_distances(ctx.callbacks, ctx.neighbors)
    W = neighbor_weight_matrix(ctx.neighbors, heat_kernel_weights(dists, width), symmetric=True)
    return laplacian(W)


class LaplacianEigenmaps(BaseMethod):
    method = Method.LAPLACIAN_EIGENMAPS
    requires = (Capability.DISTANCE,)
    required_parameters = (
        ParameterKey.NUMBER_OF_NEIGHBORS,
        ParameterKey.GAUSSIAN_KERNEL_WIDTH,
    )
    uses_neighbors = True
    order = Order.ASCENDING
    n_trivial = 1

    def build_problem(self) -> EigenProblem:
        self.ctx.log("assembling graph Laplacian")
        lap = heat_laplacian(self.ctx)
        # L v = lambda D v; generalized eigenvectors come out D-normalized
        return EigenProblem(
            lhs=lap.L,
            rhs=lap.D.tocsr(),
            order=self.order,
            n_trivial=self.n_trivial,
        )

    def finalize(self, problem, solution):
        _, kept = assemble_embedding(solution, problem, self.ctx.target_dimension)
        # enforce v^T D v = 1 whichever backend produced the vectors
        D = problem.rhs
        norms = np.sqrt(np.einsum("ij,ij->j", kept.eigenvectors, D @ kept.eigenvectors))
        norms[norms == 0] = 1.0
        return make_result(kept.eigenvectors / norms[None, :], kept.eigenvalues), None


class LocalityPreservingProjections(LinearMethod):
    method = Method.LOCALITY_PRESERVING_PROJECTIONS
    requires = (Capability.DISTANCE, Capability.FEATURES)
    required_parameters = (
        ParameterKey.NUMBER_OF_NEIGHBORS,
        ParameterKey.GAUSSIAN_KERNEL_WIDTH,
    )
    uses_neighbors = True
    order = Order.ASCENDING
    n_trivial = 0

    def build_problem(self) -> EigenProblem:
        self.ctx.log("assembling graph Laplacian")
        lap = heat_laplacian(self.ctx)
        return self.linear_problem(lap.L, lap.D.tocsr())


class DiffusionMap(BaseMethod):
    """
    Dense Gaussian kernel over all pairs, density-normalized (alpha = 1),
    then symmetrically normalized so every backend sees a symmetric
    problem. Coordinates are the right eigenvectors of the Markov matrix
    scaled by lambda**t.
    """

    method = Method.DIFFUSION_MAP
    requires = (Capability.DISTANCE,)
    required_parameters = (ParameterKey.GAUSSIAN_KERNEL_WIDTH,)
    order = Order.DESCENDING
    n_trivial = 1

    def build_problem(self) -> EigenProblem:
        ctx = self.ctx
        width = ctx.get(ParameterKey.GAUSSIAN_KERNEL_WIDTH)
        ctx.log("computing diffusion kernel")
        D = ctx.callbacks.distance_matrix()
        K = np.exp(-(D ** 2) / width)

        q = K.sum(axis=1)
        K = K / np.outer(q, q)
        self.degrees = K.sum(axis=1)
        S = symmetric_normalize(K, self.degrees)
        return EigenProblem(lhs=S, order=self.order, n_trivial=self.n_trivial)

    def finalize(self, problem, solution):
        timesteps = self.ctx.get(ParameterKey.DIFFUSION_MAP_TIMESTEPS)
        _, kept = assemble_embedding(solution, problem, self.ctx.target_dimension)
        # stationary distribution; divides out the trivial eigenvector
        phi0 = np.sqrt(self.degrees / self.degrees.sum())
        psi = kept.eigenvectors / phi0[:, None]
        coords = psi * (kept.eigenvalues ** timesteps)[None, :]
        return make_result(coords, kept.eigenvalues), None
