# src/lowdim/methods/base.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from ..callbacks import Callbacks, Capability
from ..config import Method, ParameterKey, ParametersMap
from ..eigen import EigenProblem, EigenSolution, Order, solve
from ..embedding import EmbeddingResult, Scaling, assemble_embedding, make_result
from ..guard import AllocationGuard
from ..projection import MatrixProjectingImplementation, ProjectingFunction


@dataclass
class EmbeddingContext:
    """Everything a method needs for one run over one dataset."""

    callbacks: Callbacks
    parameters: ParametersMap
    method: Method
    target_dimension: int
    neighbors: Optional[np.ndarray] = None
    verbose: bool = False
    allocation_limit: int = 1 << 20

    @property
    def n(self) -> int:
        return self.callbacks.n

    def get(self, key: ParameterKey):
        return self.parameters.get(key, self.method)

    def guard(self, label: str) -> AllocationGuard:
        return AllocationGuard(
            enabled=self.parameters.get(ParameterKey.CHECK_ALLOCATIONS),
            limit=self.allocation_limit,
            label=label,
        )

    def random_state(self) -> np.random.RandomState:
        return np.random.RandomState(self.get(ParameterKey.RANDOM_SEED))

    def log(self, message: str) -> None:
        if self.verbose:
            print(f"[lowdim {self.method.name}] {message}", flush=True)


class BaseMethod:
    """
    Method strategy API:

      problem = build_problem()
      solution = solve(problem)
      result, projection = finalize(problem, solution)

    Class attributes declare what the method needs; the engine checks them
    before any work is done.
    """

    method: Method
    requires: Tuple[Capability, ...] = ()
    required_parameters: Tuple[ParameterKey, ...] = ()
    uses_neighbors: bool = False
    # capability the neighbor search is carried out with
    neighbors_from: Capability = Capability.DISTANCE
    order: Order = Order.ASCENDING
    n_trivial: int = 0
    scaling: Scaling = Scaling.NONE

    def __init__(self, ctx: EmbeddingContext):
        self.ctx = ctx

    @classmethod
    def needs_neighbors(cls, parameters: ParametersMap) -> bool:
        return cls.uses_neighbors

    @classmethod
    def parameters_required(cls, parameters: ParametersMap) -> Tuple[ParameterKey, ...]:
        return cls.required_parameters

    def build_problem(self) -> EigenProblem:
        raise NotImplementedError

    def solve(self, problem: EigenProblem) -> EigenSolution:
        ctx = self.ctx
        max_iteration = None
        if ParameterKey.MAX_ITERATION in ctx.parameters:
            max_iteration = ctx.get(ParameterKey.MAX_ITERATION)
        return solve(
            problem,
            ctx.target_dimension + problem.n_trivial,
            method=ctx.parameters.eigen_method,
            eigenshift=ctx.get(ParameterKey.EIGENSHIFT),
            max_iteration=max_iteration,
            seed=ctx.get(ParameterKey.RANDOM_SEED),
            verbose=ctx.verbose,
        )

    def finalize(
        self,
        problem: EigenProblem,
        solution: EigenSolution,
    ) -> Tuple[EmbeddingResult, Optional[ProjectingFunction]]:
        result, _ = assemble_embedding(
            solution,
            problem,
            self.ctx.target_dimension,
            scaling=self.scaling,
        )
        return result, None

    def run(self) -> Tuple[EmbeddingResult, Optional[ProjectingFunction]]:
        problem = self.build_problem()
        solution = self.solve(problem)
        return self.finalize(problem, solution)


class LinearMethod(BaseMethod):
    """
    Methods that learn a linear map x -> (x - mean) @ V from the features.

    Subclasses provide the n x n left / right operators; the eigenproblem
    is then posed in feature space:  Xc^T L Xc v = lambda Xc^T R Xc v.
    """

    requires = (Capability.FEATURES,)

    def __init__(self, ctx: EmbeddingContext):
        super().__init__(ctx)
        X = ctx.callbacks.feature_matrix()
        self.mean = X.mean(axis=0)
        self.centered = X - self.mean

    def linear_problem(self, left, right=None) -> EigenProblem:
        Xc = self.centered
        lhs = Xc.T @ np.asarray(left @ Xc)
        rhs = None if right is None else Xc.T @ np.asarray(right @ Xc)
        return EigenProblem(lhs=lhs, rhs=rhs, order=self.order, n_trivial=self.n_trivial)

    def finalize(self, problem, solution):
        _, kept = assemble_embedding(
            solution,
            problem,
            self.ctx.target_dimension,
            scaling=Scaling.NONE,
        )
        coords = self.centered @ kept.eigenvectors
        projection = ProjectingFunction(
            MatrixProjectingImplementation(self.mean, kept.eigenvectors)
        )
        return make_result(coords, kept.eigenvalues), projection
