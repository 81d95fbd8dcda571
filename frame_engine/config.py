# frame_engine/config.py
"""
Analysis configuration and defaults.
"""

import math
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Optional

from .errors import ConfigurationError


@dataclass(frozen=True)
class AnalysisConfig:
    """Settings for one analysis run."""

    # Matrix storage / solver strategy
    use_sparse_matrices: bool = True
    # CG still runs one sparse LU per solve for its stability check, so it
    # costs at least as much as the direct path at any size
    use_conjugate_gradient: bool = False
    sparse_node_threshold: int = 50  # nodes; below this the dense path is used

    # Iterative solver budget
    convergence_tolerance: float = 1e-10  # relative residual ||r|| / ||F||
    max_iterations: int = 1000

    # Memory / profiling
    memory_optimization: bool = True
    enable_profiling: bool = False

    # Design check
    safety_factor: float = 1.67

    # Reduced-matrix pivots below this fraction of the largest pivot
    # (after Jacobi scaling) mark the structure as a mechanism.
    singular_pivot_ratio: float = 1e-12

    def validate(self) -> "AnalysisConfig":
        """Raise ConfigurationError if any setting is out of range."""
        if not _is_number(self.convergence_tolerance) or not self.convergence_tolerance > 0:
            raise ConfigurationError(
                f"convergenceTolerance must be a positive number, got {self.convergence_tolerance!r}"
            )
        if not isinstance(self.max_iterations, int) or isinstance(self.max_iterations, bool) \
                or self.max_iterations < 1:
            raise ConfigurationError(
                f"maxIterations must be a positive integer, got {self.max_iterations!r}"
            )
        if not _is_number(self.safety_factor) or not self.safety_factor > 0:
            raise ConfigurationError(
                f"safetyFactor must be a positive number, got {self.safety_factor!r}"
            )
        if not isinstance(self.sparse_node_threshold, int) or self.sparse_node_threshold < 0:
            raise ConfigurationError(
                f"sparseNodeThreshold must be a non-negative integer, got {self.sparse_node_threshold!r}"
            )
        if not _is_number(self.singular_pivot_ratio) or not 0 < self.singular_pivot_ratio < 1:
            raise ConfigurationError(
                f"singularPivotRatio must lie in (0, 1), got {self.singular_pivot_ratio!r}"
            )
        return self

    def use_sparse_for(self, n_nodes: int) -> bool:
        """Whether a structure with n_nodes should be assembled sparse."""
        return self.use_sparse_matrices and n_nodes >= self.sparse_node_threshold


def _is_number(value: Any) -> bool:
    return (isinstance(value, (int, float)) and not isinstance(value, bool)
            and math.isfinite(value))


# camelCase wire names -> dataclass field names
_WIRE_NAMES = {
    'useSparseMatrices': 'use_sparse_matrices',
    'useConjugateGradient': 'use_conjugate_gradient',
    'sparseNodeThreshold': 'sparse_node_threshold',
    'convergenceTolerance': 'convergence_tolerance',
    'maxIterations': 'max_iterations',
    'memoryOptimization': 'memory_optimization',
    'enableProfiling': 'enable_profiling',
    'safetyFactor': 'safety_factor',
    'singularPivotRatio': 'singular_pivot_ratio',
}


def config_from_dict(
    data: Optional[Mapping[str, Any]],
    base: Optional[AnalysisConfig] = None,
) -> AnalysisConfig:
    """
    Build an AnalysisConfig from a camelCase (or snake_case) mapping.

    Missing keys keep the value from ``base`` (DEFAULT_CONFIG by default).
    Unknown keys raise ConfigurationError so typos don't silently fall back
    to defaults.
    """
    base = base or DEFAULT_CONFIG
    if data is None:
        return base.validate()
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Configuration must be a mapping, got {type(data).__name__}")

    known = {f.name for f in fields(AnalysisConfig)}
    updates = {}
    for key, value in data.items():
        name = _WIRE_NAMES.get(key, key)
        if name not in known:
            raise ConfigurationError(f"Unknown configuration key: {key!r}")
        updates[name] = value

    return replace(base, **updates).validate()


# Global default instance
DEFAULT_CONFIG = AnalysisConfig()
