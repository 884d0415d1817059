# src/lowdim/eigen.py
"""
Eigenproblem solver backends.

All backends solve a symmetric problem  A v = lambda v  or, with a
right-hand operator,  A v = lambda B v,  and return the requested number of
eigenpairs from one end of the spectrum:

  - EIGEN_DENSE_SELFADJOINT_SOLVER: full dense spectrum (scipy.linalg.eigh)
  - ARPACK:     Lanczos iterations on the requested end only (eigsh);
                shift-invert around -eigenshift for the smallest end
  - RANDOMIZED: randomized range finder + Rayleigh-Ritz; standard
                problems only
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union

import numpy as np
from scipy import linalg
from scipy import sparse
from scipy.sparse.linalg import ArpackNoConvergence, eigsh, factorized
from sklearn.utils.extmath import randomized_range_finder

from .config import EigenEmbeddingMethod
from .errors import ConvergenceError, DegenerateSpectrumError, UnsupportedProblemError

Operator = Union[np.ndarray, sparse.spmatrix]


class Order(Enum):
    # minimization-based (local) methods keep the smallest eigenvalues
    ASCENDING = "ascending"
    # variance-maximizing (global) methods keep the largest
    DESCENDING = "descending"


@dataclass
class EigenProblem:
    lhs: Operator
    rhs: Optional[Operator] = None
    order: Order = Order.ASCENDING
    # eigenpairs at the kept end that carry no information (e.g. constants)
    n_trivial: int = 0

    @property
    def generalized(self) -> bool:
        return self.rhs is not None

    @property
    def size(self) -> int:
        return self.lhs.shape[0]


@dataclass
class EigenSolution:
    eigenvalues: np.ndarray   # (m,)
    eigenvectors: np.ndarray  # (N, m)


def sort_solution(solution: EigenSolution, order: Order) -> EigenSolution:
    vals = np.asarray(solution.eigenvalues, dtype=np.float64)
    perm = np.argsort(vals, kind="stable")
    if order is Order.DESCENDING:
        perm = perm[::-1]
    return EigenSolution(vals[perm], np.asarray(solution.eigenvectors, dtype=np.float64)[:, perm])


def _to_dense(M: Optional[Operator]) -> Optional[np.ndarray]:
    if M is None:
        return None
    if sparse.issparse(M):
        return M.toarray()
    return np.asarray(M, dtype=np.float64)


# ---------- dense ----------

def dense_solve(problem: EigenProblem, n_components: int) -> EigenSolution:
    A = _to_dense(problem.lhs)
    B = _to_dense(problem.rhs)
    # symmetrize away assembly round-off
    A = 0.5 * (A + A.T)
    if B is not None:
        B = 0.5 * (B + B.T)
    try:
        vals, vecs = linalg.eigh(A, B)
    except linalg.LinAlgError as e:
        raise DegenerateSpectrumError(
            f"dense eigensolver failed (right-hand operator not positive definite?): {e}"
        ) from e
    m = min(n_components, vals.shape[0])
    if problem.order is Order.ASCENDING:
        sel = slice(0, m)
        return EigenSolution(vals[sel], vecs[:, sel])
    sel = slice(vals.shape[0] - m, vals.shape[0])
    return sort_solution(EigenSolution(vals[sel], vecs[:, sel]), Order.DESCENDING)


# ---------- ARPACK ----------

def arpack_solve(
    problem: EigenProblem,
    n_components: int,
    eigenshift: float = 1e-9,
    max_iteration: Optional[int] = None,
    seed: int = 0,
) -> EigenSolution:
    N = problem.size
    if n_components >= N:
        # ARPACK needs k < N; the operator is small enough to solve densely
        return dense_solve(problem, n_components)

    A = problem.lhs
    M = problem.rhs
    # deterministic starting vector
    v0 = np.random.RandomState(seed).uniform(-1.0, 1.0, size=N)
    try:
        if problem.order is Order.DESCENDING:
            vals, vecs = eigsh(A, k=n_components, M=M, which="LA", v0=v0, maxiter=max_iteration)
        else:
            vals, vecs = eigsh(
                A,
                k=n_components,
                M=M,
                sigma=-eigenshift,
                which="LM",
                v0=v0,
                maxiter=max_iteration,
            )
    except ArpackNoConvergence as e:
        raise ConvergenceError(
            f"ARPACK did not converge to {n_components} eigenpairs "
            f"within {max_iteration if max_iteration is not None else 'the default'} iterations "
            f"({len(e.eigenvalues)} converged)"
        ) from e
    except RuntimeError as e:
        # singular shifted operator during factorization
        raise DegenerateSpectrumError(f"ARPACK shift-invert failed: {e}") from e
    return sort_solution(EigenSolution(vals, vecs), problem.order)


# ---------- randomized ----------

def _inverse_operator(A: Operator, shift: float) -> Callable[[np.ndarray], np.ndarray]:
    N = A.shape[0]
    if sparse.issparse(A):
        solve = factorized(sparse.csc_matrix(A + shift * sparse.identity(N, format="csc")))
        return lambda X: np.column_stack([solve(X[:, j]) for j in range(X.shape[1])])
    lu = linalg.lu_factor(np.asarray(A, dtype=np.float64) + shift * np.eye(N))
    return lambda X: linalg.lu_solve(lu, X)


def randomized_solve(
    problem: EigenProblem,
    n_components: int,
    eigenshift: float = 1e-9,
    seed: int = 0,
    oversampling: int = 10,
    n_iter: int = 5,
) -> EigenSolution:
    if problem.generalized:
        raise UnsupportedProblemError(
            "randomized eigensolver supports only standard eigenproblems"
        )
    A = problem.lhs
    N = problem.size
    m = min(n_components, N)
    size = min(m + oversampling, N)

    if problem.order is Order.DESCENDING:
        Q = randomized_range_finder(A, size=size, n_iter=n_iter, random_state=seed)
    else:
        # the smallest eigenvalues of A are the dominant ones of its inverse
        apply_inverse = _inverse_operator(A, eigenshift)
        rng = np.random.RandomState(seed)
        Y = apply_inverse(rng.normal(size=(N, size)))
        for _ in range(n_iter):
            Q, _ = linalg.qr(Y, mode="economic")
            Y = apply_inverse(Q)
        Q, _ = linalg.qr(Y, mode="economic")

    AQ = A @ Q
    T = Q.T @ np.asarray(AQ)
    T = 0.5 * (T + T.T)
    if not np.all(np.isfinite(T)):
        raise DegenerateSpectrumError("randomized range finder produced a non-finite basis")
    vals, U = linalg.eigh(T)
    vecs = Q @ U
    solution = sort_solution(EigenSolution(vals, vecs), problem.order)
    return EigenSolution(solution.eigenvalues[:m], solution.eigenvectors[:, :m])


# ---------- dispatch ----------

def solve(
    problem: EigenProblem,
    n_components: int,
    method: EigenEmbeddingMethod = EigenEmbeddingMethod.ARPACK,
    eigenshift: float = 1e-9,
    max_iteration: Optional[int] = None,
    seed: int = 0,
    verbose: bool = False,
) -> EigenSolution:
    """
    Compute n_components eigenpairs from the end of the spectrum selected by
    problem.order, sorted in that order.
    """
    if verbose:
        kind = "generalized" if problem.generalized else "standard"
        print(
            f"[lowdim Eigen] {method.name.lower()}: {n_components} {problem.order.value} "
            f"eigenpairs of a {kind} {problem.size}x{problem.size} problem",
            flush=True,
        )
    if method is EigenEmbeddingMethod.EIGEN_DENSE_SELFADJOINT_SOLVER:
        return dense_solve(problem, n_components)
    if method is EigenEmbeddingMethod.ARPACK:
        return arpack_solve(
            problem,
            n_components,
            eigenshift=eigenshift,
            max_iteration=max_iteration,
            seed=seed,
        )
    if method is EigenEmbeddingMethod.RANDOMIZED:
        return randomized_solve(problem, n_components, eigenshift=eigenshift, seed=seed)
    raise ValueError(f"Unknown eigen embedding method: {method}")
