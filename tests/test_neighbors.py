"""Tests for neighbor graph construction (brute force and cover tree)."""

import numpy as np
import pytest

from lowdim import Callbacks, InsufficientDataError, NeighborsMethod
from lowdim.data_sources import NormDistance
from lowdim.neighbors import CoverTree, compute_neighbors, select_nearest


def _callbacks(X, norm="l2"):
    return Callbacks(n=X.shape[0], distance_callback=NormDistance(X, norm=norm))


def _as_sets(neighbors):
    return [set(row.tolist()) for row in neighbors]


class TestSelectNearest:
    """Per-row selection under the (distance, index) order."""

    def test_excludes_self(self):
        d = np.array([0.0, 3.0, 1.0, 2.0])
        np.testing.assert_array_equal(select_nearest(d, 2, exclude=0), [2, 3])

    def test_ties_go_to_lower_index(self):
        d = np.array([0.0, 1.0, 1.0, 1.0, 0.5])
        np.testing.assert_array_equal(select_nearest(d, 2, exclude=0), [4, 1])

    def test_k_equals_remaining(self):
        d = np.array([2.0, 0.0, 1.0])
        np.testing.assert_array_equal(select_nearest(d, 2, exclude=1), [2, 0])


class TestComputeNeighbors:
    """Shape and uniqueness of the neighbor lists."""

    @pytest.mark.parametrize("method", list(NeighborsMethod))
    @pytest.mark.parametrize("k", [1, 5, 59])
    def test_k_unique_excluding_self(self, blobs, method, k):
        """Every row holds exactly k distinct indices, none equal to the row."""
        neighbors = compute_neighbors(_callbacks(blobs), k, method=method)
        n = blobs.shape[0]
        assert neighbors.shape == (n, k)
        for i, row in enumerate(neighbors):
            assert len(set(row.tolist())) == k
            assert i not in row
            assert row.min() >= 0 and row.max() < n

    @pytest.mark.parametrize("method", list(NeighborsMethod))
    def test_k_too_large(self, blobs, method):
        with pytest.raises(InsufficientDataError):
            compute_neighbors(_callbacks(blobs), blobs.shape[0], method=method)

    def test_k_zero(self, blobs):
        with pytest.raises(InsufficientDataError):
            compute_neighbors(_callbacks(blobs), 0)

    def test_rows_sorted_by_distance(self, blobs):
        callbacks = _callbacks(blobs)
        neighbors = compute_neighbors(callbacks, 6, method=NeighborsMethod.BRUTE_FORCE)
        for i, row in enumerate(neighbors):
            d = callbacks.distance_matrix([i], row)[0]
            assert np.all(np.diff(d) >= 0)


class TestCoverTreeAgreesWithBruteForce:
    """Both strategies return identical neighbor sets."""

    @pytest.mark.parametrize("norm", ["l2", "l1", "linf"])
    def test_random_points(self, rng, norm):
        X = rng.normal(size=(120, 4))
        callbacks = _callbacks(X, norm=norm)
        brute = compute_neighbors(callbacks, 7, method=NeighborsMethod.BRUTE_FORCE)
        tree = compute_neighbors(callbacks, 7, method=NeighborsMethod.COVER_TREE)
        np.testing.assert_array_equal(brute, tree)

    def test_swiss_roll(self, swiss_roll):
        X, _ = swiss_roll
        callbacks = _callbacks(X)
        brute = compute_neighbors(callbacks, 10, method=NeighborsMethod.BRUTE_FORCE)
        tree = compute_neighbors(callbacks, 10, method=NeighborsMethod.COVER_TREE)
        assert _as_sets(brute) == _as_sets(tree)

    def test_grid_with_ties(self):
        """On an integer grid many distances tie; the index tie-break decides."""
        g = np.arange(6, dtype=float)
        X = np.array([[a, b] for a in g for b in g])
        callbacks = _callbacks(X)
        for k in (3, 4, 8):
            brute = compute_neighbors(callbacks, k, method=NeighborsMethod.BRUTE_FORCE)
            tree = compute_neighbors(callbacks, k, method=NeighborsMethod.COVER_TREE)
            np.testing.assert_array_equal(brute, tree)

    def test_duplicate_points(self, rng):
        """Coincident objects are folded into one node and still returned."""
        base = rng.normal(size=(20, 3))
        X = np.vstack([base, base[:5], base[:5]])
        callbacks = _callbacks(X)
        brute = compute_neighbors(callbacks, 4, method=NeighborsMethod.BRUTE_FORCE)
        tree = compute_neighbors(callbacks, 4, method=NeighborsMethod.COVER_TREE)
        np.testing.assert_array_equal(brute, tree)

    def test_all_points_identical(self):
        """Zero spread falls back to brute force."""
        X = np.ones((10, 2))
        callbacks = _callbacks(X)
        assert CoverTree(callbacks).degenerate
        tree = compute_neighbors(callbacks, 3, method=NeighborsMethod.COVER_TREE)
        np.testing.assert_array_equal(tree[0], [1, 2, 3])

    def test_custom_base(self, rng):
        X = rng.uniform(size=(50, 2))
        callbacks = _callbacks(X)
        brute = compute_neighbors(callbacks, 5, method=NeighborsMethod.BRUTE_FORCE)
        tree = compute_neighbors(callbacks, 5, method=NeighborsMethod.COVER_TREE, base=2.0)
        np.testing.assert_array_equal(brute, tree)

    def test_invalid_base(self, blobs):
        with pytest.raises(ValueError, match="base"):
            CoverTree(_callbacks(blobs), base=1.0)
