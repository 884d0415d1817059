"""Tests for embedding assembly, projection functions and the allocation guard."""

import numpy as np
import pytest

from lowdim import AllocationError, DegenerateSpectrumError, EmbeddingResult
from lowdim.eigen import EigenProblem, EigenSolution, Order
from lowdim.embedding import Scaling, assemble_embedding, fix_signs, make_result
from lowdim.guard import AllocationGuard, allocation_guard
from lowdim.projection import (
    LandmarkProjectingImplementation,
    MatrixProjectingImplementation,
    ProjectingFunction,
)


def _problem(order, n_trivial=0):
    return EigenProblem(lhs=np.eye(3), order=order, n_trivial=n_trivial)


class TestAssembleEmbedding:
    """From raw eigenpairs to an EmbeddingResult."""

    def test_discards_trivial_and_sorts(self):
        vals = np.array([0.3, 0.0, 0.2, 0.1])
        vecs = np.eye(4)
        result, kept = assemble_embedding(
            EigenSolution(vals, vecs), _problem(Order.ASCENDING, n_trivial=1), 2
        )
        np.testing.assert_array_equal(result.eigenvalues, [0.1, 0.2])
        np.testing.assert_array_equal(kept.eigenvectors, vecs[:, [3, 2]])

    def test_sqrt_scaling(self):
        vals = np.array([4.0, 1.0])
        vecs = np.eye(2)
        result, _ = assemble_embedding(
            EigenSolution(vals, vecs), _problem(Order.DESCENDING), 2, scaling=Scaling.SQRT_EIGENVALUES
        )
        np.testing.assert_allclose(result.embedding, np.diag([2.0, 1.0]))

    def test_degenerate_descending(self):
        """Zero-variance directions do not count as usable eigenpairs."""
        vals = np.array([5.0, 1e-14, -1e-12])
        with pytest.raises(DegenerateSpectrumError, match="usable"):
            assemble_embedding(EigenSolution(vals, np.eye(3)), _problem(Order.DESCENDING), 2)

    def test_not_enough_after_trivial(self):
        vals = np.array([0.0, 0.5])
        with pytest.raises(DegenerateSpectrumError):
            assemble_embedding(
                EigenSolution(vals, np.eye(2)), _problem(Order.ASCENDING, n_trivial=1), 2
            )

    def test_result_is_readonly(self):
        result = make_result(np.ones((3, 2)), np.ones(2))
        with pytest.raises(ValueError):
            result.embedding[0, 0] = 2.0
        embedding, eigenvalues = result
        assert embedding.shape == (3, 2)
        assert result.n_objects == 3 and result.target_dimension == 2
        assert isinstance(result, EmbeddingResult)

    def test_fix_signs(self):
        vecs = np.array([[0.1, -0.9], [-0.8, 0.2]])
        fixed = fix_signs(vecs)
        np.testing.assert_array_equal(fixed, [[-0.1, 0.9], [0.8, -0.2]])


class TestProjectingFunction:
    """Out-of-sample projection."""

    def test_matrix_projection(self):
        f = ProjectingFunction(MatrixProjectingImplementation(np.ones(3), np.eye(3)[:, :2]))
        np.testing.assert_array_equal(f(np.array([2.0, 3.0, 4.0])), [1.0, 2.0])

    def test_idempotent(self, rng):
        """Calling twice on the same input gives bit-identical output."""
        f = ProjectingFunction(
            MatrixProjectingImplementation(rng.normal(size=4), rng.normal(size=(4, 2)))
        )
        x = rng.normal(size=4)
        first = f(x)
        second = f(x)
        assert np.array_equal(first, second)

    def test_project_many(self, rng):
        impl = MatrixProjectingImplementation(np.zeros(3), rng.normal(size=(3, 2)))
        f = ProjectingFunction(impl)
        X = rng.normal(size=(5, 3))
        np.testing.assert_allclose(f.project_many(X), X @ impl.matrix)

    def test_dimension_checked(self):
        f = ProjectingFunction(MatrixProjectingImplementation(np.zeros(3), np.eye(3)))
        with pytest.raises(ValueError, match="dimension"):
            f(np.zeros(4))

    def test_state_is_copied(self):
        """Mutating the arrays used to build the projection has no effect."""
        matrix = np.eye(2)
        f = ProjectingFunction(MatrixProjectingImplementation(np.zeros(2), matrix))
        matrix[0, 0] = 5.0
        np.testing.assert_array_equal(f(np.array([1.0, 0.0])), [1.0, 0.0])

    def test_requires_implementation(self):
        with pytest.raises(TypeError):
            ProjectingFunction(lambda x: x)

    def test_landmark_projection_places_landmarks(self, rng):
        """Triangulating a landmark recovers its classical MDS coordinates."""
        L = rng.normal(size=(6, 2))
        D2 = ((L[:, None, :] - L[None, :, :]) ** 2).sum(axis=-1)
        n = L.shape[0]
        H = np.eye(n) - np.ones((n, n)) / n
        B = -0.5 * H @ D2 @ H
        vals, vecs = np.linalg.eigh(B)
        vals, vecs = vals[::-1][:2], vecs[:, ::-1][:, :2]
        impl = LandmarkProjectingImplementation(L, vecs, vals, D2.mean(axis=1))
        coords = vecs * np.sqrt(vals)[None, :]
        np.testing.assert_allclose(ProjectingFunction(impl).project_many(L), coords, atol=1e-8)


class TestAllocationGuard:
    """Scoped allocation guard around numeric kernels."""

    def test_trips_on_allocation(self):
        guard = allocation_guard(enabled=True, limit=1024, label="test block")
        with pytest.raises(AllocationError, match="test block"):
            with guard:
                np.ones(100_000)

    def test_in_place_work_passes(self):
        buf = np.zeros(100_000)
        with AllocationGuard(enabled=True, limit=64 * 1024):
            np.add(buf, 1.0, out=buf)
        assert buf[0] == 1.0

    def test_disabled_guard_allows_allocation(self):
        with AllocationGuard(enabled=False, limit=0):
            np.ones(100_000)

    def test_floating_point_errors_raise(self):
        with pytest.raises(FloatingPointError):
            with AllocationGuard():
                np.log(np.zeros(1))

    def test_reusable(self):
        guard = AllocationGuard(enabled=True, limit=1 << 20)
        buf = np.zeros(10)
        for _ in range(3):
            with guard:
                buf += 1.0
        assert buf[0] == 3.0

    def test_allocation_error_is_memory_error(self):
        assert issubclass(AllocationError, MemoryError)
