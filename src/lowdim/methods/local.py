# src/lowdim/methods/local.py
"""
Local neighborhood-alignment methods.

Each builds a sparse n x n alignment matrix by summing one small dense block
per neighborhood, then keeps its smallest eigenvectors.

References:
  - Saul & Roweis (2001), Locally Linear Embedding; Decoste (2001), kernel LLE
  - He, Cai, Yan & Zhang (2005), Neighborhood Preserving Embedding
  - Zhang & Zha (2004), Local Tangent Space Alignment
  - Zhang, Yang, Zhao & Ge (2007), Linear Local Tangent Space Alignment
  - Donoho & Grimes (2003), Hessian Eigenmaps
"""

from __future__ import annotations

import numpy as np
from scipy import linalg, sparse

from ..callbacks import Capability
from ..config import Method, ParameterKey
from ..eigen import EigenProblem, Order
from ..errors import InsufficientDataError
from ..graph import SparseTriplets
from .base import BaseMethod, LinearMethod

# Tikhonov regularization of the local Gram matrix, relative to its trace
LLE_REGULARIZATION = 1e-3


def lle_alignment_matrix(ctx) -> sparse.csr_matrix:
    """
    M = (I - W)^T (I - W) where row i of W reconstructs object i from its
    neighbors. Local Gram matrices come from the kernel:

        G_jl = K(i,i) - K(i,j) - K(i,l) + K(j,l)
    """
    callbacks = ctx.callbacks
    neighbors = ctx.neighbors
    n, k = neighbors.shape

    gram = np.empty((k, k), dtype=np.float64)
    ones = np.ones(k, dtype=np.float64)
    diag = np.arange(k)
    guard = ctx.guard("LLE local Gram matrix")

    triplets = SparseTriplets()
    for i in range(n):
        nb = neighbors[i]
        K_nn = callbacks.kernel_matrix(nb, nb)
        k_in = callbacks.kernel_matrix([i], nb)[0]
        k_ii = callbacks.kernel(i, i)
        with guard:
            np.subtract(K_nn, k_in[:, None], out=gram)
            gram -= k_in[None, :]
            gram += k_ii
            gram[diag, diag] += LLE_REGULARIZATION * max(np.trace(gram), 1e-12)
        w = linalg.solve(gram, ones, assume_a="sym")
        w /= w.sum()

        triplets.add(i, i, 1.0)
        triplets.extend(np.full(k, i), nb, -w)
        triplets.extend(nb, np.full(k, i), -w)
        triplets.add_block(nb, np.outer(w, w))
    return triplets.to_csr(n)


def _top_centered_gram_vectors(G: np.ndarray, d: int) -> np.ndarray:
    """Leading d eigenvectors of the doubly-centered local Gram matrix."""
    m = G.shape[0]
    Gc = G - G.mean(axis=0, keepdims=True) - G.mean(axis=1, keepdims=True) + G.mean()
    _, vecs = linalg.eigh(Gc, subset_by_index=[m - d, m - 1])
    return vecs[:, ::-1]


def ltsa_alignment_matrix(ctx) -> sparse.csr_matrix:
    """
    Sum over neighborhoods N_i = {i} + neighbors(i) of  I - G_i G_i^T,
    with G_i = [1/sqrt(m), top-d local tangent coordinates].
    """
    callbacks = ctx.callbacks
    neighbors = ctx.neighbors
    n, k = neighbors.shape
    d = ctx.target_dimension
    m = k + 1
    if m <= d:
        raise InsufficientDataError(
            f"LTSA needs more than {d} points per neighborhood, got {m}"
        )

    basis = np.empty((m, d + 1), dtype=np.float64)
    basis[:, 0] = 1.0 / np.sqrt(m)
    block = np.empty((m, m), dtype=np.float64)
    eye = np.eye(m)
    guard = ctx.guard("LTSA local alignment")

    triplets = SparseTriplets()
    for i in range(n):
        nb = np.concatenate(([i], neighbors[i]))
        G = callbacks.kernel_matrix(nb, nb)
        basis[:, 1:] = _top_centered_gram_vectors(G, d)
        with guard:
            np.matmul(basis, basis.T, out=block)
            np.subtract(eye, block, out=block)
        triplets.add_block(nb, block)
    return triplets.to_csr(n)


def hessian_alignment_matrix(ctx) -> sparse.csr_matrix:
    """
    Sum over neighborhoods of H_i H_i^T where H_i spans the quadratic part
    of the local tangent coordinates after orthogonalizing against constant
    and linear terms.
    """
    callbacks = ctx.callbacks
    neighbors = ctx.neighbors
    n, k = neighbors.shape
    d = ctx.target_dimension
    dp = d * (d + 1) // 2
    m = k + 1
    if m < 1 + d + dp:
        raise InsufficientDataError(
            f"Hessian LLE with target dimension {d} needs at least "
            f"{d + dp} neighbors, got {k}"
        )

    yi = np.empty((m, 1 + d + dp), dtype=np.float64)
    yi[:, 0] = 1.0
    pairs = [(a, b) for a in range(d) for b in range(a, d)]
    block = np.empty((m, m), dtype=np.float64)
    guard = ctx.guard("Hessian LLE local estimator")

    triplets = SparseTriplets()
    for i in range(n):
        nb = np.concatenate(([i], neighbors[i]))
        tangent = _top_centered_gram_vectors(callbacks.kernel_matrix(nb, nb), d)
        with guard:
            yi[:, 1 : d + 1] = tangent
            for col, (a, b) in enumerate(pairs, start=d + 1):
                np.multiply(tangent[:, a], tangent[:, b], out=yi[:, col])
        Q, _ = linalg.qr(yi, mode="economic")
        H = Q[:, d + 1 :]
        sums = H.sum(axis=0)
        sums[np.abs(sums) < 1e-4] = 1.0
        H = H / sums
        with guard:
            np.matmul(H, H.T, out=block)
        triplets.add_block(nb, block)
    return triplets.to_csr(n)


class KernelLocallyLinearEmbedding(BaseMethod):
    method = Method.KERNEL_LOCALLY_LINEAR_EMBEDDING
    requires = (Capability.KERNEL,)
    required_parameters = (ParameterKey.NUMBER_OF_NEIGHBORS,)
    uses_neighbors = True
    neighbors_from = Capability.KERNEL
    order = Order.ASCENDING
    n_trivial = 1

    def build_problem(self) -> EigenProblem:
        self.ctx.log("assembling reconstruction weight matrix")
        M = lle_alignment_matrix(self.ctx)
        return EigenProblem(lhs=M, order=self.order, n_trivial=self.n_trivial)


class NeighborhoodPreservingEmbedding(LinearMethod):
    method = Method.NEIGHBORHOOD_PRESERVING_EMBEDDING
    requires = (Capability.KERNEL, Capability.FEATURES)
    required_parameters = (ParameterKey.NUMBER_OF_NEIGHBORS,)
    uses_neighbors = True
    neighbors_from = Capability.KERNEL
    order = Order.ASCENDING
    n_trivial = 0

    def build_problem(self) -> EigenProblem:
        self.ctx.log("assembling reconstruction weight matrix")
        M = lle_alignment_matrix(self.ctx)
        return self.linear_problem(M, sparse.identity(self.ctx.n, format="csr"))


class KernelLocalTangentSpaceAlignment(BaseMethod):
    method = Method.KERNEL_LOCAL_TANGENT_SPACE_ALIGNMENT
    requires = (Capability.KERNEL,)
    required_parameters = (ParameterKey.NUMBER_OF_NEIGHBORS,)
    uses_neighbors = True
    neighbors_from = Capability.KERNEL
    order = Order.ASCENDING
    n_trivial = 1

    def build_problem(self) -> EigenProblem:
        self.ctx.log("assembling tangent alignment matrix")
        M = ltsa_alignment_matrix(self.ctx)
        return EigenProblem(lhs=M, order=self.order, n_trivial=self.n_trivial)


class LinearLocalTangentSpaceAlignment(LinearMethod):
    method = Method.LINEAR_LOCAL_TANGENT_SPACE_ALIGNMENT
    requires = (Capability.KERNEL, Capability.FEATURES)
    required_parameters = (ParameterKey.NUMBER_OF_NEIGHBORS,)
    uses_neighbors = True
    neighbors_from = Capability.KERNEL
    order = Order.ASCENDING
    n_trivial = 0

    def build_problem(self) -> EigenProblem:
        self.ctx.log("assembling tangent alignment matrix")
        M = ltsa_alignment_matrix(self.ctx)
        return self.linear_problem(M, sparse.identity(self.ctx.n, format="csr"))


class HessianLocallyLinearEmbedding(BaseMethod):
    method = Method.HESSIAN_LOCALLY_LINEAR_EMBEDDING
    requires = (Capability.KERNEL,)
    required_parameters = (ParameterKey.NUMBER_OF_NEIGHBORS,)
    uses_neighbors = True
    neighbors_from = Capability.KERNEL
    order = Order.ASCENDING
    n_trivial = 1

    def build_problem(self) -> EigenProblem:
        self.ctx.log("assembling Hessian estimator matrix")
        M = hessian_alignment_matrix(self.ctx)
        return EigenProblem(lhs=M, order=self.order, n_trivial=self.n_trivial)
