# src/lowdim/guard.py
"""
Scoped allocation guard for inner numeric kernels.

Inner loops (per-neighborhood Gram solves, SPE update batches) are written
against preallocated buffers. Wrapping them in an AllocationGuard makes any
unintended heap traffic visible: when enabled, allocations inside the block
are measured with tracemalloc and an AllocationError is raised if they exceed
the configured limit. Floating point errors inside the block always raise.
"""

from __future__ import annotations

import tracemalloc

import numpy as np

from .errors import AllocationError


class AllocationGuard:
    def __init__(self, enabled: bool = False, limit: int = 1 << 20, label: str = "numeric kernel"):
        self.enabled = enabled
        self.limit = int(limit)
        self.label = label
        self.peak = 0
        self._errstate = None
        self._started_tracing = False
        self._baseline = 0

    def __enter__(self) -> "AllocationGuard":
        self._errstate = np.errstate(invalid="raise", divide="raise")
        self._errstate.__enter__()
        if self.enabled:
            self._started_tracing = not tracemalloc.is_tracing()
            if self._started_tracing:
                tracemalloc.start()
            tracemalloc.reset_peak()
            self._baseline, _ = tracemalloc.get_traced_memory()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            if self.enabled:
                _, peak = tracemalloc.get_traced_memory()
                if self._started_tracing:
                    tracemalloc.stop()
                self.peak = max(0, peak - self._baseline)
        finally:
            self._errstate.__exit__(exc_type, exc, tb)

        if exc_type is None and self.enabled and self.peak > self.limit:
            raise AllocationError(
                f"{self.label} allocated {self.peak} bytes inside a guarded block "
                f"(limit {self.limit})"
            )
        return False


def allocation_guard(enabled: bool = False, limit: int = 1 << 20, label: str = "numeric kernel") -> AllocationGuard:
    return AllocationGuard(enabled=enabled, limit=limit, label=label)
