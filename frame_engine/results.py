# frame_engine/results.py
"""Result records returned by analyze(), and their camelCase wire form."""

import math
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Hashable, List, Optional

from .errors import FrameAnalysisError


def _camel(name: str) -> str:
    head, *rest = name.split('_')
    return head + ''.join(part.title() for part in rest)


def _json_float(value: Any) -> Any:
    # NaN/Infinity are not valid JSON; they only ever appear on invalid results
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def _record_to_dict(record) -> Dict[str, Any]:
    out = {}
    for f in fields(record):
        value = getattr(record, f.name)
        if value is None and f.metadata.get('omit_none'):
            continue
        out[f.metadata.get('wire', _camel(f.name))] = _json_float(value)
    return out


@dataclass(frozen=True)
class NodeDisplacement:
    node_id: Hashable
    ux: float
    uy: float
    uz: float
    rx: float
    ry: float
    rz: float

    def as_tuple(self):
        return (self.ux, self.uy, self.uz, self.rx, self.ry, self.rz)


@dataclass(frozen=True)
class ElementForces:
    """
    Internal forces at the governing end of a member, local axes.

    axial > 0 is tension. position is 0.0 for the start node, 1.0 for the end
    node.
    """
    element_id: Hashable
    axial: float
    shear_y: float
    shear_z: float
    moment_y: float
    moment_z: float
    torsion: float
    position: float = 0.0


@dataclass(frozen=True)
class ElementStress:
    element_id: Hashable
    axial_stress: float
    bending_stress_y: float
    bending_stress_z: float
    combined_stress: float
    is_safe: bool
    allowable_stress: Optional[float] = field(default=None, metadata={'omit_none': True})
    utilization: Optional[float] = field(default=None, metadata={'omit_none': True})


@dataclass(frozen=True)
class NodeReaction:
    node_id: Hashable
    fx: float
    fy: float
    fz: float
    mx: float
    my: float
    mz: float


@dataclass(frozen=True)
class Diagnostic:
    """One problem found during analysis (error) or worth knowing (warning)."""
    severity: str
    code: str
    message: str
    element_id: Optional[Hashable] = field(default=None, metadata={'omit_none': True})
    node_id: Optional[Hashable] = field(default=None, metadata={'omit_none': True})

    @classmethod
    def from_error(cls, exc: FrameAnalysisError, severity: str = 'error') -> "Diagnostic":
        return cls(
            severity=severity,
            code=exc.code,
            message=exc.message,
            element_id=exc.element_id,
            node_id=exc.node_id,
        )


@dataclass
class PerformanceInfo:
    assembly_time_ms: float = 0.0
    solve_time_ms: float = 0.0
    total_time_ms: float = 0.0
    method: Optional[str] = None
    matrix_format: Optional[str] = None
    iterations: Optional[int] = None
    residual: Optional[float] = None
    convergence_warning: Optional[str] = None
    memory: Optional[Dict[str, float]] = None
    profile: Optional[Dict[str, float]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {_camel(f.name): _json_float(getattr(self, f.name))
                for f in fields(self) if getattr(self, f.name) is not None}


@dataclass
class AnalysisResult:
    displacements: List[NodeDisplacement] = field(default_factory=list)
    forces: List[ElementForces] = field(default_factory=list)
    stresses: List[ElementStress] = field(default_factory=list)
    reactions: List[NodeReaction] = field(default_factory=list)
    is_valid: bool = True
    max_displacement: float = 0.0
    max_stress: float = 0.0
    diagnostics: List[Diagnostic] = field(default_factory=list)
    performance: Optional[PerformanceInfo] = None

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == 'error']

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == 'warning']

    def displacement(self, node_id) -> NodeDisplacement:
        for d in self.displacements:
            if d.node_id == node_id:
                return d
        raise KeyError(node_id)

    def forces_for(self, element_id) -> ElementForces:
        for f in self.forces:
            if f.element_id == element_id:
                return f
        raise KeyError(element_id)

    def stress_for(self, element_id) -> ElementStress:
        for s in self.stresses:
            if s.element_id == element_id:
                return s
        raise KeyError(element_id)

    def to_dict(self) -> Dict[str, Any]:
        """camelCase document for the HTTP/worker boundary."""
        out = {
            'displacements': [_record_to_dict(d) for d in self.displacements],
            'forces': [_record_to_dict(f) for f in self.forces],
            'stresses': [_record_to_dict(s) for s in self.stresses],
            'reactions': [_record_to_dict(r) for r in self.reactions],
            'isValid': self.is_valid,
            'maxDisplacement': _json_float(self.max_displacement),
            'maxStress': _json_float(self.max_stress),
            'diagnostics': [_record_to_dict(d) for d in self.diagnostics],
        }
        if self.performance is not None:
            out['performance'] = self.performance.to_dict()
        return out
