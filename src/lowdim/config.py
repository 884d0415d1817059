# src/lowdim/config.py
from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from numbers import Integral, Real
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional

import yaml

from .errors import (
    InvalidParameterError,
    MissingParameterError,
    TypeMismatchError,
)


class Method(Enum):
    """Dimensionality reduction methods."""

    KERNEL_LOCALLY_LINEAR_EMBEDDING = "klle"
    NEIGHBORHOOD_PRESERVING_EMBEDDING = "npe"
    KERNEL_LOCAL_TANGENT_SPACE_ALIGNMENT = "kltsa"
    LINEAR_LOCAL_TANGENT_SPACE_ALIGNMENT = "lltsa"
    HESSIAN_LOCALLY_LINEAR_EMBEDDING = "hlle"
    LAPLACIAN_EIGENMAPS = "la"
    LOCALITY_PRESERVING_PROJECTIONS = "lpp"
    DIFFUSION_MAP = "dm"
    ISOMAP = "isomap"
    LANDMARK_ISOMAP = "l-isomap"
    MULTIDIMENSIONAL_SCALING = "mds"
    LANDMARK_MULTIDIMENSIONAL_SCALING = "l-mds"
    STOCHASTIC_PROXIMITY_EMBEDDING = "spe"
    KERNEL_PCA = "kpca"
    PCA = "pca"


class NeighborsMethod(Enum):
    # O(N^2 log k); mostly useful for debugging
    BRUTE_FORCE = "brute"
    # exact, O(log N) per query on data of bounded intrinsic dimension
    COVER_TREE = "covertree"


class EigenEmbeddingMethod(Enum):
    # Krylov iterations, standard and generalized problems
    ARPACK = "arpack"
    # randomized range finder, standard problems only
    RANDOMIZED = "randomized"
    # full dense spectrum; slow on large inputs
    EIGEN_DENSE_SELFADJOINT_SOLVER = "dense"


class ValueKind(Enum):
    METHOD = "method"
    NEIGHBORS_METHOD = "neighbors_method"
    EIGEN_METHOD = "eigen_method"
    INT = "int"
    FLOAT = "float"
    BOOL = "bool"
    OTHER = "other"


class ParameterKey(Enum):
    REDUCTION_METHOD = "reduction_method"
    NUMBER_OF_NEIGHBORS = "number_of_neighbors"
    TARGET_DIMENSION = "target_dimension"
    CURRENT_DIMENSION = "current_dimension"
    EIGEN_EMBEDDING_METHOD = "eigen_embedding_method"
    NEIGHBORS_METHOD = "neighbors_method"
    DIFFUSION_MAP_TIMESTEPS = "diffusion_map_timesteps"
    GAUSSIAN_KERNEL_WIDTH = "gaussian_kernel_width"
    MAX_ITERATION = "max_iteration"
    SPE_GLOBAL_STRATEGY = "spe_global_strategy"
    SPE_TOLERANCE = "spe_tolerance"
    SPE_NUM_UPDATES = "spe_num_updates"
    LANDMARK_RATIO = "landmark_ratio"
    EIGENSHIFT = "eigenshift"
    RANDOM_SEED = "random_seed"
    CHECK_ALLOCATIONS = "check_allocations"


KEY_KINDS: Dict[ParameterKey, ValueKind] = {
    ParameterKey.REDUCTION_METHOD: ValueKind.METHOD,
    ParameterKey.NUMBER_OF_NEIGHBORS: ValueKind.INT,
    ParameterKey.TARGET_DIMENSION: ValueKind.INT,
    ParameterKey.CURRENT_DIMENSION: ValueKind.INT,
    ParameterKey.EIGEN_EMBEDDING_METHOD: ValueKind.EIGEN_METHOD,
    ParameterKey.NEIGHBORS_METHOD: ValueKind.NEIGHBORS_METHOD,
    ParameterKey.DIFFUSION_MAP_TIMESTEPS: ValueKind.INT,
    ParameterKey.GAUSSIAN_KERNEL_WIDTH: ValueKind.FLOAT,
    ParameterKey.MAX_ITERATION: ValueKind.INT,
    ParameterKey.SPE_GLOBAL_STRATEGY: ValueKind.BOOL,
    ParameterKey.SPE_TOLERANCE: ValueKind.FLOAT,
    ParameterKey.SPE_NUM_UPDATES: ValueKind.INT,
    ParameterKey.LANDMARK_RATIO: ValueKind.FLOAT,
    ParameterKey.EIGENSHIFT: ValueKind.FLOAT,
    ParameterKey.RANDOM_SEED: ValueKind.INT,
    ParameterKey.CHECK_ALLOCATIONS: ValueKind.BOOL,
}

# Keys missing from this table (method, neighbor count, kernel width,
# SPE update count, current dimension) have no safe global default.
DEFAULTS: Dict[ParameterKey, Any] = {
    ParameterKey.TARGET_DIMENSION: 2,
    ParameterKey.NEIGHBORS_METHOD: NeighborsMethod.COVER_TREE,
    ParameterKey.EIGEN_EMBEDDING_METHOD: EigenEmbeddingMethod.ARPACK,
    ParameterKey.DIFFUSION_MAP_TIMESTEPS: 1,
    ParameterKey.MAX_ITERATION: 100,
    ParameterKey.SPE_GLOBAL_STRATEGY: True,
    ParameterKey.SPE_TOLERANCE: 1e-5,
    ParameterKey.LANDMARK_RATIO: 0.5,
    ParameterKey.EIGENSHIFT: 1e-9,
    ParameterKey.RANDOM_SEED: 0,
    ParameterKey.CHECK_ALLOCATIONS: False,
}

_ENUM_KINDS = {
    ValueKind.METHOD: Method,
    ValueKind.NEIGHBORS_METHOD: NeighborsMethod,
    ValueKind.EIGEN_METHOD: EigenEmbeddingMethod,
}


@dataclass(frozen=True)
class ParameterValue:
    """A parameter value tagged with the kind it was stored as."""

    kind: ValueKind
    value: Any

    @classmethod
    def of(cls, value: Any) -> "ParameterValue":
        if isinstance(value, ParameterValue):
            return value
        if isinstance(value, Method):
            return cls(ValueKind.METHOD, value)
        if isinstance(value, NeighborsMethod):
            return cls(ValueKind.NEIGHBORS_METHOD, value)
        if isinstance(value, EigenEmbeddingMethod):
            return cls(ValueKind.EIGEN_METHOD, value)
        # bool is an Integral; check it first
        if isinstance(value, bool):
            return cls(ValueKind.BOOL, value)
        if isinstance(value, Integral):
            return cls(ValueKind.INT, int(value))
        if isinstance(value, Real):
            return cls(ValueKind.FLOAT, float(value))
        return cls(ValueKind.OTHER, value)

    def matches(self, kind: ValueKind) -> bool:
        if self.kind is kind:
            return True
        # integers are acceptable wherever a real number is expected
        return kind is ValueKind.FLOAT and self.kind is ValueKind.INT


class ParametersMap(Mapping[ParameterKey, ParameterValue]):
    """
    Read-only mapping from ParameterKey to a tagged ParameterValue.

    Use the typed accessors (get, get_int, get_float, ...) rather than
    indexing: they apply documented defaults and check the stored kind
    against the kind the key expects.
    """

    def __init__(self, values: Optional[Mapping[ParameterKey, Any]] = None, **kwargs: Any):
        data: Dict[ParameterKey, ParameterValue] = {}
        items = dict(values or {})
        for name, value in kwargs.items():
            items[ParameterKey[name.upper()]] = value
        for key, value in items.items():
            if not isinstance(key, ParameterKey):
                # forward compatible: unrecognized keys are ignored
                continue
            data[key] = ParameterValue.of(value)
        self._data = data

    # Mapping protocol
    def __getitem__(self, key: ParameterKey) -> ParameterValue:
        return self._data[key]

    def __iter__(self) -> Iterator[ParameterKey]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        body = ", ".join(f"{k.name}={v.value!r}" for k, v in self._data.items())
        return f"ParametersMap({body})"

    def with_values(self, **kwargs: Any) -> "ParametersMap":
        """Return a copy with some values replaced."""
        merged: Dict[ParameterKey, Any] = {k: v for k, v in self._data.items()}
        for name, value in kwargs.items():
            merged[ParameterKey[name.upper()]] = value
        return ParametersMap(merged)

    # ---------- typed access ----------

    def get(self, key: ParameterKey, method: Optional[Method] = None) -> Any:  # type: ignore[override]
        if key in self._data:
            stored = self._data[key]
        elif key in DEFAULTS:
            return DEFAULTS[key]
        else:
            raise MissingParameterError(key, method)
        expected = KEY_KINDS[key]
        if not stored.matches(expected):
            raise TypeMismatchError(key, expected.value, stored.value)
        if expected is ValueKind.FLOAT:
            return float(stored.value)
        return stored.value

    def get_optional(self, key: ParameterKey) -> Any:
        if key not in self._data and key not in DEFAULTS:
            return None
        return self.get(key)

    def get_int(self, key: ParameterKey, method: Optional[Method] = None) -> int:
        self._expect(key, ValueKind.INT)
        return self.get(key, method)

    def get_float(self, key: ParameterKey, method: Optional[Method] = None) -> float:
        self._expect(key, ValueKind.FLOAT)
        return self.get(key, method)

    def get_bool(self, key: ParameterKey, method: Optional[Method] = None) -> bool:
        self._expect(key, ValueKind.BOOL)
        return self.get(key, method)

    @property
    def method(self) -> Method:
        return self.get(ParameterKey.REDUCTION_METHOD)

    @property
    def neighbors_method(self) -> NeighborsMethod:
        return self.get(ParameterKey.NEIGHBORS_METHOD)

    @property
    def eigen_method(self) -> EigenEmbeddingMethod:
        return self.get(ParameterKey.EIGEN_EMBEDDING_METHOD)

    @staticmethod
    def _expect(key: ParameterKey, kind: ValueKind) -> None:
        if KEY_KINDS[key] is not kind:
            raise TypeError(f"{key.name} is not a {kind.value} parameter")

    # ---------- validation ----------

    def validate(self, method: Method, required: Iterable[ParameterKey] = ()) -> None:
        """
        Fail fast on a malformed configuration.

        Reads every required key (raising MissingParameterError when absent
        and without default) and every present key (raising
        TypeMismatchError on a kind mismatch), then range-checks.
        """
        for key in required:
            self.get(key, method)
        for key in self._data:
            self.get(key, method)

        def positive_int(key: ParameterKey) -> None:
            value = self.get_optional(key)
            if value is not None and value < 1:
                raise InvalidParameterError(f"{key.name} must be >= 1, got {value}")

        for key in (
            ParameterKey.NUMBER_OF_NEIGHBORS,
            ParameterKey.TARGET_DIMENSION,
            ParameterKey.DIFFUSION_MAP_TIMESTEPS,
            ParameterKey.MAX_ITERATION,
            ParameterKey.SPE_NUM_UPDATES,
            ParameterKey.CURRENT_DIMENSION,
        ):
            positive_int(key)

        ratio = self.get(ParameterKey.LANDMARK_RATIO)
        if not 0.0 < ratio <= 1.0:
            raise InvalidParameterError(f"LANDMARK_RATIO must be in (0, 1], got {ratio}")
        width = self.get_optional(ParameterKey.GAUSSIAN_KERNEL_WIDTH)
        if width is not None and width <= 0.0:
            raise InvalidParameterError(f"GAUSSIAN_KERNEL_WIDTH must be > 0, got {width}")
        if self.get(ParameterKey.SPE_TOLERANCE) <= 0.0:
            raise InvalidParameterError("SPE_TOLERANCE must be > 0")
        if self.get(ParameterKey.EIGENSHIFT) < 0.0:
            raise InvalidParameterError("EIGENSHIFT must be >= 0")


# ---------- params.yml glue ----------

def _parse_enum(enum_cls, key: ParameterKey, value: Any):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        token = value.strip()
        for member in enum_cls:
            if token.upper() == member.name or token.lower() == member.value:
                return member
        raise InvalidParameterError(
            f"Unknown value {value!r} for {key.name}; "
            f"expected one of {[m.name for m in enum_cls]}"
        )
    # left as-is so that get() reports the mismatch
    return value


def parameters_from_params(
    params: Mapping[str, Any],
    key: Optional[str] = "embedding",
) -> ParametersMap:
    """
    Build a ParametersMap from a params.yml-style dict.

    Looks up params[key] (or uses params itself when key is None), matches
    option names case-insensitively against ParameterKey, converts enum
    names such as "pca" or "COVER_TREE", and silently drops unknown keys.
    """
    block = dict(params.get(key, {}) if key is not None else params)

    values: Dict[ParameterKey, Any] = {}
    for name, value in block.items():
        try:
            pkey = ParameterKey[str(name).upper()]
        except KeyError:
            continue
        kind = KEY_KINDS[pkey]
        if kind in _ENUM_KINDS:
            value = _parse_enum(_ENUM_KINDS[kind], pkey, value)
        values[pkey] = value
    return ParametersMap(values)


def load_parameters(path: Path | str, key: Optional[str] = "embedding") -> ParametersMap:
    with Path(path).open("r") as f:
        params = yaml.safe_load(f) or {}
    return parameters_from_params(params, key=key)


@dataclass
class EngineConfig:
    """Non-numeric knobs of the pipeline."""

    verbose: bool = True
    # bytes a guarded numeric block may allocate when CHECK_ALLOCATIONS is on
    allocation_limit: int = 1 << 20


def engine_config_from_params(
    params: Mapping[str, Any],
    key: str = "engine",
) -> EngineConfig:
    block = dict(params.get(key, {}))
    valid_fields = {f.name for f in fields(EngineConfig)}
    filtered = {k: v for k, v in block.items() if k in valid_fields}
    return EngineConfig(**filtered)
