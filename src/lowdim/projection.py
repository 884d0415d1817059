# src/lowdim/projection.py
"""
Out-of-sample projection.

A ProjectingFunction owns exactly one ProjectingImplementation and maps a
new input vector into an existing embedding without rerunning the pipeline.
Implementations copy everything they need at construction and keep it
read-only, so a ProjectingFunction can be called repeatedly and from
several threads.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np
from scipy.spatial.distance import cdist

from .embedding import readonly


class ProjectingImplementation(ABC):
    @abstractmethod
    def project(self, vector: np.ndarray) -> np.ndarray:
        ...


class MatrixProjectingImplementation(ProjectingImplementation):
    """y = (x - mean) @ matrix; used by the linear methods (PCA, NPE, LPP, LLTSA)."""

    def __init__(self, mean: np.ndarray, matrix: np.ndarray):
        self.mean = readonly(mean)
        self.matrix = readonly(matrix)
        if self.mean.shape[0] != self.matrix.shape[0]:
            raise ValueError(
                f"mean of length {self.mean.shape[0]} does not match a "
                f"{self.matrix.shape[0]}-row projection matrix"
            )

    @property
    def input_dimension(self) -> int:
        return self.matrix.shape[0]

    def project(self, vector: np.ndarray) -> np.ndarray:
        x = np.asarray(vector, dtype=np.float64)
        if x.shape[-1] != self.input_dimension:
            raise ValueError(
                f"expected vectors of dimension {self.input_dimension}, got {x.shape[-1]}"
            )
        return (x - self.mean) @ self.matrix


class LandmarkProjectingImplementation(ProjectingImplementation):
    """
    Distance-based triangulation against landmark points
    (de Silva & Tenenbaum, 2004):

        y = -1/2 * pinv_L (delta_x - mean_delta)

    where delta_x holds squared Euclidean distances from x to the landmark
    feature vectors and pinv_L = V / sqrt(lambda) comes from the landmark
    MDS eigenpairs.
    """

    def __init__(
        self,
        landmark_features: np.ndarray,
        eigenvectors: np.ndarray,
        eigenvalues: np.ndarray,
        mean_squared_distances: np.ndarray,
    ):
        self.landmark_features = readonly(landmark_features)
        self.pseudo_inverse = readonly(eigenvectors / np.sqrt(eigenvalues)[None, :])
        self.mean_squared_distances = readonly(mean_squared_distances)

    def project(self, vector: np.ndarray) -> np.ndarray:
        x = np.atleast_2d(np.asarray(vector, dtype=np.float64))
        delta = cdist(x, self.landmark_features, metric="sqeuclidean")
        y = -0.5 * (delta - self.mean_squared_distances[None, :]) @ self.pseudo_inverse
        return y[0] if np.ndim(vector) == 1 else y


class ProjectingFunction:
    """Callable wrapper owning one ProjectingImplementation."""

    __slots__ = ("_implementation",)

    def __init__(self, implementation: ProjectingImplementation):
        if not isinstance(implementation, ProjectingImplementation):
            raise TypeError(
                f"expected a ProjectingImplementation, got {type(implementation).__name__}"
            )
        self._implementation = implementation

    @property
    def implementation(self) -> ProjectingImplementation:
        return self._implementation

    def __call__(self, vector: np.ndarray) -> np.ndarray:
        return self._implementation.project(vector)

    def project_many(self, vectors: np.ndarray) -> np.ndarray:
        """Project each row of an (m, D) matrix."""
        X = np.atleast_2d(np.asarray(vectors, dtype=np.float64))
        return np.vstack([self._implementation.project(x) for x in X])
