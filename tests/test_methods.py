"""End-to-end tests: every method through embed().

Each method runs on a small noisy plane; the two manifold learners people
reach for first (LLE and Isomap) are also checked on a Swiss roll.
"""

import numpy as np
import pytest

from lowdim import (
    EigenEmbeddingMethod,
    InsufficientDataError,
    Method,
    NeighborsMethod,
    ParametersMap,
    embed,
)
from lowdim.evaluation import coordinate_rank_correlation

# method -> (extra parameters, projection expected)
METHOD_CASES = {
    Method.KERNEL_LOCALLY_LINEAR_EMBEDDING: ({"number_of_neighbors": 8}, False),
    Method.NEIGHBORHOOD_PRESERVING_EMBEDDING: ({"number_of_neighbors": 8}, True),
    Method.KERNEL_LOCAL_TANGENT_SPACE_ALIGNMENT: ({"number_of_neighbors": 8}, False),
    Method.LINEAR_LOCAL_TANGENT_SPACE_ALIGNMENT: ({"number_of_neighbors": 8}, True),
    Method.HESSIAN_LOCALLY_LINEAR_EMBEDDING: ({"number_of_neighbors": 8}, False),
    Method.LAPLACIAN_EIGENMAPS: (
        {"number_of_neighbors": 8, "gaussian_kernel_width": 1.0},
        False,
    ),
    Method.LOCALITY_PRESERVING_PROJECTIONS: (
        {"number_of_neighbors": 8, "gaussian_kernel_width": 1.0},
        True,
    ),
    Method.DIFFUSION_MAP: ({"gaussian_kernel_width": 4.0, "diffusion_map_timesteps": 2}, False),
    Method.ISOMAP: ({"number_of_neighbors": 8}, False),
    Method.LANDMARK_ISOMAP: ({"number_of_neighbors": 8, "landmark_ratio": 0.5}, False),
    Method.MULTIDIMENSIONAL_SCALING: ({}, False),
    Method.LANDMARK_MULTIDIMENSIONAL_SCALING: ({"landmark_ratio": 0.5}, True),
    Method.STOCHASTIC_PROXIMITY_EMBEDDING: ({"max_iteration": 50}, False),
    Method.KERNEL_PCA: ({}, False),
    Method.PCA: ({}, True),
}


def _abs_column_correlation(A, B):
    """|corr| between matching columns of two embeddings."""
    out = []
    for j in range(A.shape[1]):
        out.append(abs(np.corrcoef(A[:, j], B[:, j])[0, 1]))
    return np.array(out)


class TestEveryMethod:
    """Each method produces a complete, finite embedding."""

    @pytest.mark.parametrize("method", list(METHOD_CASES), ids=lambda m: m.value)
    def test_runs_end_to_end(self, plane_points, method):
        extra, has_projection = METHOD_CASES[method]
        params = ParametersMap(reduction_method=method, target_dimension=2, **extra)
        result, projection = embed(plane_points, params)

        assert result.embedding.shape == (plane_points.shape[0], 2)
        assert np.all(np.isfinite(result.embedding))
        assert not result.embedding.flags.writeable
        assert (projection is not None) == has_projection
        if method is Method.STOCHASTIC_PROXIMITY_EMBEDDING:
            assert result.eigenvalues.size == 0
        else:
            assert result.eigenvalues.shape == (2,)

    @pytest.mark.parametrize("method", list(METHOD_CASES), ids=lambda m: m.value)
    def test_deterministic(self, plane_points, method):
        """Same input and parameters give the same embedding."""
        extra, _ = METHOD_CASES[method]
        params = ParametersMap(reduction_method=method, **extra)
        first, _ = embed(plane_points, params)
        second, _ = embed(plane_points, params)
        np.testing.assert_allclose(first.embedding, second.embedding, atol=1e-8)

    @pytest.mark.parametrize(
        "method",
        [
            Method.KERNEL_LOCALLY_LINEAR_EMBEDDING,
            Method.ISOMAP,
            Method.LAPLACIAN_EIGENMAPS,
        ],
        ids=lambda m: m.value,
    )
    def test_brute_force_and_cover_tree_agree(self, plane_points, method):
        extra, _ = METHOD_CASES[method]
        results = []
        for nm in NeighborsMethod:
            params = ParametersMap(reduction_method=method, neighbors_method=nm, **extra)
            results.append(embed(plane_points, params)[0].embedding)
        np.testing.assert_allclose(results[0], results[1], atol=1e-8)

    def test_spe_local_strategy(self, plane_points):
        params = ParametersMap(
            reduction_method=Method.STOCHASTIC_PROXIMITY_EMBEDDING,
            spe_global_strategy=False,
            number_of_neighbors=8,
            spe_num_updates=20,
            max_iteration=30,
        )
        result, projection = embed(plane_points, params)
        assert result.embedding.shape == (plane_points.shape[0], 2)
        assert projection is None

    def test_spe_preserves_distances(self, plane_points):
        """SPE on data that is already 2D recovers its distances closely."""
        X = plane_points[:, :2]
        params = ParametersMap(
            reduction_method=Method.STOCHASTIC_PROXIMITY_EMBEDDING,
            max_iteration=1000,
        )
        result, _ = embed(X, params)
        Y = result.embedding
        dx = np.linalg.norm(X[:, None] - X[None], axis=-1)
        dy = np.linalg.norm(Y[:, None] - Y[None], axis=-1)
        iu = np.triu_indices(X.shape[0], 1)
        assert np.corrcoef(dx[iu], dy[iu])[0, 1] > 0.9

    def test_hessian_needs_enough_neighbors(self, plane_points):
        params = ParametersMap(
            reduction_method=Method.HESSIAN_LOCALLY_LINEAR_EMBEDDING,
            number_of_neighbors=3,
        )
        with pytest.raises(InsufficientDataError, match="neighbors"):
            embed(plane_points, params)


class TestEquivalences:
    """Methods that must agree on Euclidean data."""

    def test_pca_kpca_mds_agree(self, blobs):
        """Linear-kernel PCA, KPCA and classical MDS give the same coordinates."""
        outputs = {}
        for method in (Method.PCA, Method.KERNEL_PCA, Method.MULTIDIMENSIONAL_SCALING):
            result, _ = embed(blobs, ParametersMap(reduction_method=method))
            outputs[method] = result.embedding
        pca = outputs[Method.PCA]
        for method in (Method.KERNEL_PCA, Method.MULTIDIMENSIONAL_SCALING):
            np.testing.assert_allclose(np.abs(outputs[method]), np.abs(pca), atol=1e-6)

    def test_pca_projection_reproduces_embedding(self, blobs):
        """Projecting the training points gives back the embedding."""
        result, projection = embed(blobs, ParametersMap(reduction_method=Method.PCA))
        np.testing.assert_allclose(projection.project_many(blobs), result.embedding, atol=1e-10)
        np.testing.assert_allclose(projection(blobs[3]), result.embedding[3], atol=1e-10)

    def test_pca_eigenvalues_are_variances(self, blobs):
        result, _ = embed(blobs, ParametersMap(reduction_method=Method.PCA))
        np.testing.assert_allclose(result.eigenvalues, result.embedding.var(axis=0), rtol=1e-8)

    def test_landmark_mds_projection(self, blobs):
        """Projecting training points lands on their triangulated coordinates."""
        params = ParametersMap(
            reduction_method=Method.LANDMARK_MULTIDIMENSIONAL_SCALING,
            landmark_ratio=0.5,
        )
        result, projection = embed(blobs, params)
        np.testing.assert_allclose(projection.project_many(blobs), result.embedding, atol=1e-8)

    def test_landmark_mds_full_ratio_matches_mds(self, blobs):
        mds, _ = embed(blobs, ParametersMap(reduction_method=Method.MULTIDIMENSIONAL_SCALING))
        lmds, _ = embed(
            blobs,
            ParametersMap(
                reduction_method=Method.LANDMARK_MULTIDIMENSIONAL_SCALING,
                landmark_ratio=1.0,
            ),
        )
        np.testing.assert_allclose(
            _abs_column_correlation(mds.embedding, lmds.embedding), 1.0, atol=1e-6
        )

    @pytest.mark.parametrize("eigen_method", list(EigenEmbeddingMethod))
    def test_backends_agree_on_kpca(self, blobs, eigen_method):
        reference, _ = embed(
            blobs,
            ParametersMap(
                reduction_method=Method.KERNEL_PCA,
                eigen_embedding_method=EigenEmbeddingMethod.EIGEN_DENSE_SELFADJOINT_SOLVER,
            ),
        )
        result, _ = embed(
            blobs,
            ParametersMap(reduction_method=Method.KERNEL_PCA, eigen_embedding_method=eigen_method),
        )
        np.testing.assert_allclose(np.abs(result.embedding), np.abs(reference.embedding), atol=1e-6)

    def test_laplacian_eigenmaps_d_orthonormal(self, plane_points):
        """Laplacian Eigenmaps coordinates satisfy v^T D v = 1."""
        from lowdim import Callbacks
        from lowdim.data_sources import NormDistance
        from lowdim.graph import (
            heat_kernel_weights,
            laplacian,
            neighbor_distances,
            neighbor_weight_matrix,
        )
        from lowdim.neighbors import compute_neighbors

        params = ParametersMap(
            reduction_method=Method.LAPLACIAN_EIGENMAPS,
            number_of_neighbors=8,
            gaussian_kernel_width=1.0,
        )
        result, _ = embed(plane_points, params)

        callbacks = Callbacks(
            n=plane_points.shape[0], distance_callback=NormDistance(plane_points)
        )
        neighbors = compute_neighbors(callbacks, 8)
        weights = heat_kernel_weights(neighbor_distances(callbacks, neighbors), 1.0)
        W = neighbor_weight_matrix(neighbors, weights)
        degrees = laplacian(W).degrees
        V = result.embedding
        np.testing.assert_allclose((V * degrees[:, None]).T @ V, np.eye(2), atol=1e-6)


class TestSwissRoll:
    """Unrolling a Swiss roll recovers the roll parameter."""

    def test_klle(self, swiss_roll):
        X, t = swiss_roll
        params = ParametersMap(
            reduction_method=Method.KERNEL_LOCALLY_LINEAR_EMBEDDING,
            number_of_neighbors=10,
            target_dimension=2,
        )
        result, _ = embed(X, params)
        metrics = coordinate_rank_correlation(result.embedding, t)
        assert metrics["spearman_best"] > 0.9

    def test_isomap(self, swiss_roll):
        X, t = swiss_roll
        params = ParametersMap(
            reduction_method=Method.ISOMAP,
            number_of_neighbors=10,
            target_dimension=2,
        )
        result, _ = embed(X, params)
        metrics = coordinate_rank_correlation(result.embedding, t)
        assert metrics["spearman_best"] > 0.9
