# frame_engine/elements.py
"""
3D FRAME ELEMENT: Local Stiffness, Rotation and Global Stiffness
================================================================

A 3D frame member has 6 DOFs per end, 12 in total. In LOCAL coordinates
(x' along the member from node i to node j) the DOF order is:

    [u_i, v_i, w_i, θx_i, θy_i, θz_i,  u_j, v_j, w_j, θx_j, θy_j, θz_j]

and the stiffness matrix decouples into four blocks:

    axial            EA/L                          (u)
    torsion          GJ/L                          (θx)
    bending x'-y'    12EIz/L³, 6EIz/L², 4EIz/L, 2EIz/L    (v, θz)
    bending x'-z'    12EIy/L³, 6EIy/L², 4EIy/L, 2EIy/L    (w, θy)

LOCAL AXES:
-----------
    x' = (node j - node i) / L
    y' = up × x' (normalised), up = global Z, or global Y when the
         member is (nearly) parallel to Z
    z' = x' × y'

For a member along global X this gives x'=X, y'=Y, z'=Z, so a vertical (Z)
load on a horizontal beam bends it about local y and engages Iy.

The 3×3 rotation R = [x'; y'; z'] (rows) maps global vectors to local ones.
The 12×12 transform T = diag(R, R, R, R) and

    ke_global = Tᵀ · k_local · T
"""

import math
from dataclasses import dataclass
from typing import Hashable, Mapping, Sequence, Tuple

import numpy as np

from .errors import DegenerateElementError, InvalidNodeReferenceError, InvalidPropertyError
from .model import Element, Material, Node
from .sections import SectionProperties, section_properties

DEFAULT_POISSONS_RATIO = 0.3

# Relative length below which an element counts as zero-length
ZERO_LENGTH_TOL = 1e-12

# |cos| between member axis and global Z above which global Y is used as "up"
VERTICAL_TOL = 1.0 - 1e-6


def element_geometry_3d(ni: Node, nj: Node, element_id=None) -> Tuple[float, np.ndarray]:
    """
    Length and unit axis vector of a member from ni to nj.

    Raises:
    -------
    DegenerateElementError
        If the two end nodes coincide (length numerically zero)
    """
    delta = np.array([nj.x - ni.x, nj.y - ni.y, nj.z - ni.z], dtype=float)
    L = float(np.linalg.norm(delta))

    scale = max(1.0, abs(ni.x), abs(ni.y), abs(ni.z), abs(nj.x), abs(nj.y), abs(nj.z))
    if not math.isfinite(L) or L <= ZERO_LENGTH_TOL * scale:
        raise DegenerateElementError(
            f"Element {element_id!r} has zero length (nodes {ni.id!r} and {nj.id!r} "
            f"at ({ni.x}, {ni.y}, {ni.z}))",
            element_id=element_id,
        )
    return L, delta / L


def frame3d_rotation(axis: np.ndarray) -> np.ndarray:
    """
    3×3 direction-cosine matrix for a member with unit axis vector ``axis``.

    Rows are the local x', y', z' axes expressed in global coordinates.
    """
    x_local = np.asarray(axis, dtype=float)
    up = np.array([0.0, 0.0, 1.0])
    if abs(float(np.dot(x_local, up))) > VERTICAL_TOL:
        up = np.array([0.0, 1.0, 0.0])

    y_local = np.cross(up, x_local)
    y_local /= np.linalg.norm(y_local)
    z_local = np.cross(x_local, y_local)

    return np.vstack([x_local, y_local, z_local])


def frame3d_transform(R: np.ndarray) -> np.ndarray:
    """12×12 block-diagonal transform from global DOFs to local DOFs."""
    T = np.zeros((12, 12), dtype=float)
    for block in range(4):
        s = 3 * block
        T[s:s + 3, s:s + 3] = R
    return T


def frame3d_local_stiffness(
    E: float, G: float, A: float, Iy: float, Iz: float, J: float, L: float
) -> np.ndarray:
    """
    12×12 local stiffness matrix of a 3D Euler-Bernoulli frame member.
    DOF order: [u, v, w, θx, θy, θz] at node i, then the same at node j.
    """
    k = np.zeros((12, 12), dtype=float)
    L2 = L * L
    L3 = L2 * L

    # Axial
    EA_L = E * A / L
    k[0, 0] = k[6, 6] = EA_L
    k[0, 6] = k[6, 0] = -EA_L

    # Torsion
    GJ_L = G * J / L
    k[3, 3] = k[9, 9] = GJ_L
    k[3, 9] = k[9, 3] = -GJ_L

    # Bending in local x-y plane (v, θz) -> Iz
    a, b, c, d = 12 * E * Iz / L3, 6 * E * Iz / L2, 4 * E * Iz / L, 2 * E * Iz / L
    k[1, 1] = k[7, 7] = a
    k[1, 7] = k[7, 1] = -a
    k[1, 5] = k[5, 1] = k[1, 11] = k[11, 1] = b
    k[5, 7] = k[7, 5] = k[7, 11] = k[11, 7] = -b
    k[5, 5] = k[11, 11] = c
    k[5, 11] = k[11, 5] = d

    # Bending in local x-z plane (w, θy) -> Iy; signs flip because a
    # positive θy rotates +x' towards -z'
    a, b, c, d = 12 * E * Iy / L3, 6 * E * Iy / L2, 4 * E * Iy / L, 2 * E * Iy / L
    k[2, 2] = k[8, 8] = a
    k[2, 8] = k[8, 2] = -a
    k[2, 4] = k[4, 2] = k[2, 10] = k[10, 2] = -b
    k[4, 8] = k[8, 4] = k[8, 10] = k[10, 8] = b
    k[4, 4] = k[10, 10] = c
    k[4, 10] = k[10, 4] = d

    return k


def shear_modulus(material: Material, element_id=None) -> float:
    """G = E / (2(1 + ν)); ν defaults to 0.3 when not given."""
    nu = material.poissons_ratio
    if nu is None:
        nu = DEFAULT_POISSONS_RATIO
    try:
        nu = float(nu)
    except (TypeError, ValueError):
        raise InvalidPropertyError(f"poissonsRatio must be a number, got {nu!r}",
                                   element_id=element_id)
    if not -1.0 < nu < 0.5:
        raise InvalidPropertyError(f"poissonsRatio must lie in (-1, 0.5), got {nu!r}",
                                   element_id=element_id)
    return elastic_modulus(material, element_id) / (2.0 * (1.0 + nu))


def elastic_modulus(material: Material, element_id=None) -> float:
    E = material.elastic_modulus
    try:
        E = float(E)
    except (TypeError, ValueError):
        raise InvalidPropertyError(f"elasticModulus must be a positive number, got {E!r}",
                                   element_id=element_id)
    if not math.isfinite(E) or E <= 0.0:
        raise InvalidPropertyError(f"elasticModulus must be a positive number, got {E!r}",
                                   element_id=element_id)
    return E


@dataclass(frozen=True)
class PreparedElement:
    """
    An element with references resolved and its local matrices built.

    i, j are the positions of the end nodes in Structure.nodes, which is also
    their DOF block index.
    """
    element: Element
    i: int
    j: int
    length: float
    rotation: np.ndarray
    k_local: np.ndarray
    props: SectionProperties

    @property
    def id(self) -> Hashable:
        return self.element.id

    @property
    def transform(self) -> np.ndarray:
        return frame3d_transform(self.rotation)

    def k_global(self) -> np.ndarray:
        T = self.transform
        kg = T.T @ self.k_local @ T
        return 0.5 * (kg + kg.T)  # strip round-off asymmetry


def resolve_end_nodes(
    element: Element, node_index: Mapping[Hashable, int]
) -> Tuple[int, int]:
    """Positions of the element's two end nodes; raises InvalidNodeReferenceError."""
    node_ids: Sequence = element.node_ids
    if len(node_ids) != 2:
        raise InvalidNodeReferenceError(
            f"Element {element.id!r} must reference exactly 2 nodes, got {len(node_ids)}",
            element_id=element.id,
        )
    indices = []
    for nid in node_ids:
        try:
            indices.append(node_index[nid])
        except (KeyError, TypeError):
            raise InvalidNodeReferenceError(
                f"Element {element.id!r} references unknown node {nid!r}",
                element_id=element.id, node_id=nid,
            )
    return indices[0], indices[1]


def prepare_element(
    element: Element,
    nodes: Sequence[Node],
    node_index: Mapping[Hashable, int],
) -> PreparedElement:
    """
    Resolve references, geometry, section and material for one element and
    build its local stiffness matrix.

    Raises InvalidNodeReferenceError, DegenerateElementError,
    UnsupportedSectionKind or InvalidPropertyError; the caller decides how
    to localise the failure.
    """
    i, j = resolve_end_nodes(element, node_index)
    L, axis = element_geometry_3d(nodes[i], nodes[j], element.id)

    props = section_properties(element.section, element.id)
    E = elastic_modulus(element.material, element.id)
    G = shear_modulus(element.material, element.id)

    k_local = frame3d_local_stiffness(E, G, props.area, props.iy, props.iz, props.j, L)
    return PreparedElement(
        element=element,
        i=i,
        j=j,
        length=L,
        rotation=frame3d_rotation(axis),
        k_local=k_local,
        props=props,
    )
