# src/lowdim/methods/spe.py
"""
Stochastic Proximity Embedding.

Reference: Agrafiotis (2003), "Stochastic proximity embedding".

Not an eigenproblem: coordinates start random and are pulled towards the
input distances by repeated pairwise updates with a decaying learning rate.
The global strategy samples random pairs over all objects; the local one
pairs each sampled object with one of its neighbors.
"""

from __future__ import annotations

import numpy as np

from ..callbacks import Capability
from ..config import Method, ParameterKey, ParametersMap
from ..embedding import make_result
from .base import BaseMethod


class StochasticProximityEmbedding(BaseMethod):
    method = Method.STOCHASTIC_PROXIMITY_EMBEDDING
    requires = (Capability.DISTANCE,)

    @classmethod
    def needs_neighbors(cls, parameters: ParametersMap) -> bool:
        return not parameters.get(ParameterKey.SPE_GLOBAL_STRATEGY)

    @classmethod
    def parameters_required(cls, parameters: ParametersMap):
        if cls.needs_neighbors(parameters):
            return (ParameterKey.NUMBER_OF_NEIGHBORS,)
        return ()

    def run(self):
        ctx = self.ctx
        n = ctx.n
        d = ctx.target_dimension
        max_iteration = ctx.get(ParameterKey.MAX_ITERATION)
        tolerance = ctx.get(ParameterKey.SPE_TOLERANCE)
        global_strategy = ctx.get(ParameterKey.SPE_GLOBAL_STRATEGY)
        if ParameterKey.SPE_NUM_UPDATES in ctx.parameters:
            n_updates = ctx.get(ParameterKey.SPE_NUM_UPDATES)
        else:
            n_updates = n // 2
        n_updates = max(1, min(n_updates, n // 2))
        rng = ctx.random_state()

        if global_strategy:
            ctx.log("computing all pairwise distances")
            D = ctx.callbacks.distance_matrix()
        else:
            neighbors = ctx.neighbors
            k = neighbors.shape[1]
            D = np.zeros((n, k), dtype=np.float64)
            for i in range(n):
                D[i] = ctx.callbacks.distance_matrix([i], neighbors[i])[0]
        scale = D.max()
        if scale > 0:
            D = D / scale

        Y = rng.uniform(0.0, 1.0, size=(n, d))
        yi = np.empty((n_updates, d))
        yj = np.empty((n_updates, d))
        diff = np.empty((n_updates, d))
        dij = np.empty(n_updates)
        step = np.empty(n_updates)
        guard = ctx.guard("SPE update batch")

        ctx.log(
            f"{max_iteration} iterations of {n_updates} "
            f"{'global' if global_strategy else 'local'} updates"
        )
        learning_rate = 1.0
        for _ in range(max_iteration):
            perm = rng.permutation(n)
            ind1 = perm[:n_updates]
            if global_strategy:
                ind2 = perm[n_updates : 2 * n_updates]
                rij = D[ind1, ind2]
            else:
                slot = rng.randint(k, size=n_updates)
                ind2 = neighbors[ind1, slot]
                rij = D[ind1, slot]

            with guard:
                np.take(Y, ind1, axis=0, out=yi)
                np.take(Y, ind2, axis=0, out=yj)
                np.subtract(yi, yj, out=diff)
                np.einsum("ij,ij->i", diff, diff, out=dij)
                np.sqrt(dij, out=dij)
                # step = lr / 2 * (r_ij - d_ij) / (d_ij + tol)
                np.subtract(rij, dij, out=step)
                dij += tolerance
                step /= dij
                step *= 0.5 * learning_rate
                diff *= step[:, None]
                np.add.at(Y, ind1, diff)
                np.subtract.at(Y, ind2, diff)

            learning_rate -= learning_rate / max_iteration

        return make_result(Y, np.empty(0)), None
