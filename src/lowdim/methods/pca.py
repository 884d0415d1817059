# src/lowdim/methods/pca.py
from __future__ import annotations

from ..callbacks import Capability
from ..config import Method
from ..eigen import EigenProblem, Order
from ..embedding import Scaling
from ..graph import center_kernel
from .base import BaseMethod, LinearMethod


class PCA(LinearMethod):
    """Principal components of the centered feature covariance."""

    method = Method.PCA
    requires = (Capability.FEATURES,)
    order = Order.DESCENDING
    n_trivial = 0

    def build_problem(self) -> EigenProblem:
        Xc = self.centered
        self.ctx.log(f"covariance of {Xc.shape[1]} features")
        C = (Xc.T @ Xc) / Xc.shape[0]
        return EigenProblem(lhs=C, order=self.order, n_trivial=self.n_trivial)


class KernelPCA(BaseMethod):
    method = Method.KERNEL_PCA
    requires = (Capability.KERNEL,)
    order = Order.DESCENDING
    n_trivial = 0
    scaling = Scaling.SQRT_EIGENVALUES

    def build_problem(self) -> EigenProblem:
        self.ctx.log("centering kernel matrix")
        K = center_kernel(self.ctx.callbacks.kernel_matrix())
        return EigenProblem(lhs=K, order=self.order, n_trivial=self.n_trivial)
