# src/lowdim/methods/distance.py
"""
Distance-preserving methods: classical MDS, landmark MDS and Isomap.

References:
  - Torgerson (1952), classical multidimensional scaling
  - de Silva & Tenenbaum (2004), Sparse multidimensional scaling using
    landmark points
  - Tenenbaum, de Silva & Langford (2000), Isomap
"""

from __future__ import annotations

from typing import Optional

import numpy as np
from scipy.sparse.csgraph import connected_components, shortest_path

from ..callbacks import Capability
from ..config import Method, ParameterKey
from ..data_sources import NormDistance
from ..eigen import EigenProblem, Order
from ..embedding import Scaling, assemble_embedding, make_result
from ..errors import DisconnectedGraphError
from ..graph import double_center_squared, neighbor_distances, neighbor_weight_matrix
from ..projection import LandmarkProjectingImplementation, ProjectingFunction
from .base import BaseMethod


def select_landmarks(ctx) -> np.ndarray:
    """Random sorted subset of LANDMARK_RATIO * n objects (at least d + 1)."""
    n = ctx.n
    ratio = ctx.get(ParameterKey.LANDMARK_RATIO)
    count = min(n, max(int(round(ratio * n)), ctx.target_dimension + 1))
    landmarks = ctx.random_state().permutation(n)[:count]
    landmarks.sort()
    return landmarks


def geodesic_distances(ctx, indices: Optional[np.ndarray] = None) -> np.ndarray:
    """Shortest-path distances over the kNN graph (rows = indices, or all)."""
    dists = neighbor_distances(ctx.callbacks, ctx.neighbors)
    # directed kNN edges; csgraph treats them as undirected and takes the shorter way
    G = neighbor_weight_matrix(ctx.neighbors, dists, symmetric=False)
    n_components, _ = connected_components(G, directed=False)
    if n_components > 1:
        raise DisconnectedGraphError(
            f"neighbor graph has {n_components} connected components; "
            "increase NUMBER_OF_NEIGHBORS"
        )
    ctx.log("computing shortest paths")
    return shortest_path(G, method="D", directed=False, indices=indices)


class MultidimensionalScaling(BaseMethod):
    method = Method.MULTIDIMENSIONAL_SCALING
    requires = (Capability.DISTANCE,)
    order = Order.DESCENDING
    n_trivial = 0
    scaling = Scaling.SQRT_EIGENVALUES

    def distances(self) -> np.ndarray:
        return self.ctx.callbacks.distance_matrix()

    def build_problem(self) -> EigenProblem:
        self.ctx.log("double-centering squared distances")
        B = double_center_squared(self.distances())
        return EigenProblem(lhs=B, order=self.order, n_trivial=self.n_trivial)


class Isomap(MultidimensionalScaling):
    method = Method.ISOMAP
    required_parameters = (ParameterKey.NUMBER_OF_NEIGHBORS,)
    uses_neighbors = True

    def distances(self) -> np.ndarray:
        return geodesic_distances(self.ctx)


class LandmarkMultidimensionalScaling(BaseMethod):
    """
    Classical MDS on a landmark subset; the remaining objects are placed by
    distance-based triangulation against the landmarks.
    """

    method = Method.LANDMARK_MULTIDIMENSIONAL_SCALING
    requires = (Capability.DISTANCE,)
    order = Order.DESCENDING
    n_trivial = 0

    def landmark_distances(self, landmarks: np.ndarray) -> np.ndarray:
        """(m, n) distances from each landmark to every object."""
        return self.ctx.callbacks.distance_matrix(landmarks, None)

    def build_problem(self) -> EigenProblem:
        ctx = self.ctx
        self.landmarks = select_landmarks(ctx)
        ctx.log(f"using {self.landmarks.shape[0]} landmarks")
        self.to_landmarks = self.landmark_distances(self.landmarks)
        B = double_center_squared(self.to_landmarks[:, self.landmarks])
        return EigenProblem(lhs=B, order=self.order, n_trivial=self.n_trivial)

    def finalize(self, problem, solution):
        _, kept = assemble_embedding(solution, problem, self.ctx.target_dimension)
        vecs, vals = kept.eigenvectors, kept.eigenvalues

        delta = self.to_landmarks ** 2
        mean_delta = delta[:, self.landmarks].mean(axis=1)
        pseudo_inverse = vecs / np.sqrt(vals)[None, :]
        coords = -0.5 * (delta - mean_delta[:, None]).T @ pseudo_inverse
        return make_result(coords, vals), self.projection(vecs, vals, mean_delta)

    def projection(self, vecs, vals, mean_delta) -> Optional[ProjectingFunction]:
        callbacks = self.ctx.callbacks
        distance = callbacks.distance_callback
        # triangulation is only valid when distances are Euclidean in feature space
        if callbacks.feature_callback is None:
            return None
        if not (isinstance(distance, NormDistance) and distance.norm == "l2"):
            return None
        return ProjectingFunction(
            LandmarkProjectingImplementation(
                landmark_features=callbacks.feature_matrix(self.landmarks),
                eigenvectors=vecs,
                eigenvalues=vals,
                mean_squared_distances=mean_delta,
            )
        )


class LandmarkIsomap(LandmarkMultidimensionalScaling):
    method = Method.LANDMARK_ISOMAP
    required_parameters = (ParameterKey.NUMBER_OF_NEIGHBORS,)
    uses_neighbors = True

    def landmark_distances(self, landmarks: np.ndarray) -> np.ndarray:
        return geodesic_distances(self.ctx, indices=landmarks)

    def projection(self, vecs, vals, mean_delta) -> Optional[ProjectingFunction]:
        # geodesics to an unseen point are undefined
        return None
