"""Tests for the eigensolver backends on problems with a known spectrum."""

import numpy as np
import pytest
from scipy import sparse

from lowdim import (
    ConvergenceError,
    DegenerateSpectrumError,
    EigenEmbeddingMethod,
    UnsupportedProblemError,
)
from lowdim.eigen import EigenProblem, EigenSolution, Order, solve, sort_solution

# well separated at both ends so every backend resolves them tightly
SPECTRUM = np.concatenate([[0.1, 0.2, 0.3], np.linspace(5.0, 10.0, 34), [80.0, 90.0, 100.0]])


@pytest.fixture
def known_problem():
    rng = np.random.RandomState(3)
    Q, _ = np.linalg.qr(rng.normal(size=(SPECTRUM.size, SPECTRUM.size)))
    A = (Q * SPECTRUM[None, :]) @ Q.T
    return 0.5 * (A + A.T), Q


def _assert_same_subspace(vecs, expected):
    """Columns agree up to sign."""
    overlap = np.abs(np.sum(vecs * expected, axis=0))
    np.testing.assert_allclose(overlap, 1.0, atol=1e-6)


class TestKnownSpectrum:
    """Each backend returns the right end of the spectrum, sorted."""

    @pytest.mark.parametrize("method", list(EigenEmbeddingMethod))
    def test_ascending(self, known_problem, method):
        A, Q = known_problem
        solution = solve(EigenProblem(lhs=A, order=Order.ASCENDING), 3, method=method)
        np.testing.assert_allclose(solution.eigenvalues, [0.1, 0.2, 0.3], rtol=1e-6)
        _assert_same_subspace(solution.eigenvectors, Q[:, :3])

    @pytest.mark.parametrize("method", list(EigenEmbeddingMethod))
    def test_descending(self, known_problem, method):
        A, Q = known_problem
        solution = solve(EigenProblem(lhs=A, order=Order.DESCENDING), 3, method=method)
        np.testing.assert_allclose(solution.eigenvalues, [100.0, 90.0, 80.0], rtol=1e-6)
        _assert_same_subspace(solution.eigenvectors, Q[:, [-1, -2, -3]])

    @pytest.mark.parametrize("method", list(EigenEmbeddingMethod))
    def test_sparse_operator(self, known_problem, method):
        A, _ = known_problem
        solution = solve(
            EigenProblem(lhs=sparse.csr_matrix(A), order=Order.ASCENDING), 2, method=method
        )
        np.testing.assert_allclose(solution.eigenvalues, [0.1, 0.2], rtol=1e-6)

    def test_request_whole_spectrum(self, known_problem):
        """ARPACK falls back to the dense solver when k >= N."""
        A, _ = known_problem
        solution = solve(EigenProblem(lhs=A), SPECTRUM.size, method=EigenEmbeddingMethod.ARPACK)
        np.testing.assert_allclose(solution.eigenvalues, np.sort(SPECTRUM), rtol=1e-8)


class TestGeneralized:
    """A v = lambda B v."""

    @pytest.fixture
    def generalized_problem(self, known_problem):
        A, _ = known_problem
        B = np.diag(np.linspace(1.0, 2.0, A.shape[0]))
        return A, B

    @pytest.mark.parametrize(
        "method",
        [EigenEmbeddingMethod.ARPACK, EigenEmbeddingMethod.EIGEN_DENSE_SELFADJOINT_SOLVER],
    )
    @pytest.mark.parametrize("order", list(Order))
    def test_residual(self, generalized_problem, method, order):
        A, B = generalized_problem
        solution = solve(EigenProblem(lhs=A, rhs=B, order=order), 3, method=method)
        V, lam = solution.eigenvectors, solution.eigenvalues
        np.testing.assert_allclose(A @ V, (B @ V) * lam[None, :], atol=1e-6)

    def test_backends_agree(self, generalized_problem):
        A, B = generalized_problem
        problem = EigenProblem(lhs=A, rhs=B, order=Order.ASCENDING)
        dense = solve(problem, 3, method=EigenEmbeddingMethod.EIGEN_DENSE_SELFADJOINT_SOLVER)
        arpack = solve(problem, 3, method=EigenEmbeddingMethod.ARPACK)
        np.testing.assert_allclose(dense.eigenvalues, arpack.eigenvalues, rtol=1e-6)

    def test_randomized_rejects_generalized(self, generalized_problem):
        A, B = generalized_problem
        with pytest.raises(UnsupportedProblemError, match="standard"):
            solve(EigenProblem(lhs=A, rhs=B), 3, method=EigenEmbeddingMethod.RANDOMIZED)

    def test_indefinite_rhs(self, generalized_problem):
        A, _ = generalized_problem
        B = -np.eye(A.shape[0])
        with pytest.raises(DegenerateSpectrumError):
            solve(
                EigenProblem(lhs=A, rhs=B),
                3,
                method=EigenEmbeddingMethod.EIGEN_DENSE_SELFADJOINT_SOLVER,
            )


class TestFailures:
    def test_arpack_iteration_budget(self):
        """One restart is not enough for the clustered edge of a random matrix."""
        rng = np.random.RandomState(0)
        G = rng.normal(size=(300, 300))
        A = (G + G.T) / 2.0
        with pytest.raises(ConvergenceError, match="ARPACK"):
            solve(
                EigenProblem(lhs=A, order=Order.DESCENDING),
                6,
                method=EigenEmbeddingMethod.ARPACK,
                max_iteration=1,
            )

    def test_convergence_error_is_runtime_error(self):
        assert issubclass(ConvergenceError, RuntimeError)


class TestSortSolution:
    def test_orders(self):
        solution = EigenSolution(np.array([2.0, 0.5, 1.0]), np.eye(3))
        asc = sort_solution(solution, Order.ASCENDING)
        desc = sort_solution(solution, Order.DESCENDING)
        np.testing.assert_array_equal(asc.eigenvalues, [0.5, 1.0, 2.0])
        np.testing.assert_array_equal(desc.eigenvalues, [2.0, 1.0, 0.5])
        np.testing.assert_array_equal(asc.eigenvectors[:, 0], [0.0, 1.0, 0.0])
