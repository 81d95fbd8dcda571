# frame_engine/post.py
# element end forces, stresses, safety check, reactions, maxima

import math
from typing import Hashable, List, Optional, Sequence, Tuple

import numpy as np

from .elements import PreparedElement
from .errors import InvalidPropertyError, NumericOverflowError
from .kernel.dof import DOFManager, DOF_3D_FRAME
from .model import Material, Node
from .results import ElementForces, ElementStress, NodeDisplacement, NodeReaction


def element_end_forces_local(
    pe: PreparedElement,
    d_global: np.ndarray,
    dof: DOFManager = DOF_3D_FRAME,
) -> np.ndarray:
    """
    Member end forces in LOCAL coordinates from global displacements.

    1. Gather the element's 12 global displacements
    2. Transform to local: d_local = T · d_e
    3. f_local = k_local · d_local

    Returns:
    --------
    np.ndarray, shape (12,)
        [N, Vy, Vz, T, My, Mz] acting on the member at node i, then at node j
    """
    dof_map = dof.element_dof_map([pe.i, pe.j])
    d_local = pe.transform @ d_global[dof_map]
    return pe.k_local @ d_local


def internal_forces_at_ends(f_local: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Section forces (tension-positive axial) just inside each end.

    At node i the section force is the negative of the end force, at node j
    it is the end force itself.
    """
    return -f_local[0:6], f_local[6:12]


def combined_stress(axial: float, bending_y: float, bending_z: float,
                    circular: bool = False) -> float:
    """
    Peak normal stress, signed like the axial stress (tension if no axial).

    Rectangular and explicit sections peak at the corner fibre where both
    bending stresses add up. A circular section has no corner: the resultant
    moment sqrt(My² + Mz²) acts about one diameter, so its bending part is
    hypot(σby, σbz) (S is the same about every axis).
    """
    if circular:
        bending = math.hypot(bending_y, bending_z)
    else:
        bending = abs(bending_y) + abs(bending_z)
    if axial < 0.0:
        return axial - bending
    return axial + bending


def allowable_stress(
    material: Material, safety_factor: float, element_id=None
) -> Optional[float]:
    """
    yield_strength / safety_factor, or None when no yield strength is given.

    Raises InvalidPropertyError for a yield strength that is present but not
    a positive number.
    """
    fy = material.yield_strength
    if fy is None:
        return None
    try:
        fy = float(fy)
    except (TypeError, ValueError):
        fy = math.nan
    if not math.isfinite(fy) or fy <= 0.0:
        raise InvalidPropertyError(
            f"yieldStrength must be a positive number, got {material.yield_strength!r}",
            element_id=element_id,
        )
    return fy / safety_factor


def element_results(
    pe: PreparedElement,
    d_global: np.ndarray,
    safety_factor: float,
    dof: DOFManager = DOF_3D_FRAME,
) -> Tuple[ElementForces, ElementStress]:
    """
    Internal forces and stresses of one member at its governing end, the end
    with the larger |combined stress| (start end on a tie).

    Raises:
    -------
    NumericOverflowError
        Forces or stresses are not finite
    InvalidPropertyError
        Yield strength is present but invalid
    """
    f_local = element_end_forces_local(pe, d_global, dof)
    if not np.all(np.isfinite(f_local)):
        raise NumericOverflowError(
            f"Element {pe.id!r} end forces contain NaN or Infinity", element_id=pe.id
        )

    props = pe.props
    candidates = []
    for position, s in zip((0.0, 1.0), internal_forces_at_ends(f_local)):
        N, Vy, Vz, T, My, Mz = (float(v) for v in s)
        sa = N / props.area
        sby = My / props.sy
        sbz = Mz / props.sz
        sc = combined_stress(sa, sby, sbz, props.circular)
        candidates.append((position, (N, Vy, Vz, T, My, Mz), (sa, sby, sbz, sc)))

    position, (N, Vy, Vz, T, My, Mz), (sa, sby, sbz, sc) = max(
        candidates, key=lambda c: abs(c[2][3])
    )
    if not all(math.isfinite(v) for v in (sa, sby, sbz, sc)):
        raise NumericOverflowError(
            f"Element {pe.id!r} stresses contain NaN or Infinity", element_id=pe.id
        )

    allowable = allowable_stress(pe.element.material, safety_factor, pe.id)
    if allowable is None:
        is_safe, utilization = True, None
    else:
        is_safe = abs(sc) <= allowable
        utilization = abs(sc) / allowable

    forces = ElementForces(
        element_id=pe.id,
        axial=N,
        shear_y=Vy,
        shear_z=Vz,
        moment_y=My,
        moment_z=Mz,
        torsion=T,
        position=position,
    )
    stress = ElementStress(
        element_id=pe.id,
        axial_stress=sa,
        bending_stress_y=sby,
        bending_stress_z=sbz,
        combined_stress=sc,
        is_safe=is_safe,
        allowable_stress=allowable,
        utilization=utilization,
    )
    return forces, stress


def compute_nodal_displacements(
    nodes: Sequence[Node],
    d_global: np.ndarray,
    dof: DOFManager = DOF_3D_FRAME,
) -> List[NodeDisplacement]:
    """One displacement record per node, in input order."""
    result = []
    for pos, node in enumerate(nodes):
        values = [float(d_global[i]) for i in dof.node_dofs(pos)]
        result.append(NodeDisplacement(node.id, *values))
    return result


def compute_reactions(
    nodes: Sequence[Node],
    R: np.ndarray,
    dof: DOFManager = DOF_3D_FRAME,
) -> List[NodeReaction]:
    """
    Reaction components at every node with at least one support; free
    components of a supported node are reported as 0.
    """
    result = []
    for pos, node in enumerate(nodes):
        flags = node.supports.as_tuple()
        if not any(flags):
            continue
        values = [float(R[i]) if flag else 0.0
                  for i, flag in zip(dof.node_dofs(pos), flags)]
        result.append(NodeReaction(node.id, *values))
    return result


def max_abs_finite(values: np.ndarray) -> float:
    """Largest |value| ignoring non-finite entries; 0 for an empty array."""
    values = np.asarray(values, dtype=float)
    finite = values[np.isfinite(values)]
    return float(np.max(np.abs(finite))) if finite.size else 0.0


def check_finite(values: np.ndarray, what: str, element_id: Hashable = None) -> None:
    """Raise NumericOverflowError if values contain NaN or Infinity."""
    if not np.all(np.isfinite(values)):
        raise NumericOverflowError(f"{what} contain NaN or Infinity", element_id=element_id)
