# src/lowdim/errors.py
"""
Error taxonomy for lowdim.

Every error raised by the pipeline derives from EmbeddingError, and also from
the builtin exception a caller would naturally catch for that situation
(ValueError for bad input, KeyError for a missing key, ...).
"""

from __future__ import annotations


class EmbeddingError(Exception):
    """Base class for all lowdim errors."""


# ---------- configuration ----------

class ConfigurationError(EmbeddingError, ValueError):
    """Malformed parameters; raised before any computation."""


class MissingParameterError(ConfigurationError, KeyError):
    def __init__(self, key, method=None):
        self.key = key
        self.method = method
        where = f" (required by {method.name})" if method is not None else ""
        super().__init__(f"Missing parameter {key.name}{where}")

    def __str__(self) -> str:
        # KeyError quotes its argument otherwise
        return self.args[0]


class TypeMismatchError(ConfigurationError, TypeError):
    def __init__(self, key, expected: str, value):
        self.key = key
        self.expected = expected
        self.value = value
        super().__init__(
            f"Parameter {key.name} expects {expected}, "
            f"got {type(value).__name__} ({value!r})"
        )


class InvalidParameterError(ConfigurationError):
    """Value has the right type but is out of range."""


# ---------- data ----------

class InsufficientDataError(EmbeddingError, ValueError):
    """Too few objects for the requested neighbor count or dimension."""


class DisconnectedGraphError(InsufficientDataError):
    """Neighbor graph has more than one connected component."""


# ---------- problem shape ----------

class UnsupportedProblemError(EmbeddingError):
    """Backend / method / problem-shape mismatch."""


class MissingCapabilityError(UnsupportedProblemError, TypeError):
    """Callbacks lack a capability the selected method requires."""


# ---------- numerics ----------

class ConvergenceError(EmbeddingError, RuntimeError):
    """Iterative solver exceeded its iteration budget."""


class DegenerateSpectrumError(EmbeddingError, ArithmeticError):
    """Not enough usable eigenpairs after discarding trivial ones."""


class AllocationError(EmbeddingError, MemoryError):
    """A guarded numeric block allocated more memory than allowed."""
