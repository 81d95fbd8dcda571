# frame_engine/kernel/boundary.py
"""
BOUNDARY CONDITIONS: Free / Restrained Partition
================================================

Supports only ever fix a DOF at zero, so the system is reduced by
partitioning:

    [K_ff  K_fr] [u_f]   [F_f]
    [K_rf  K_rr] [ 0 ] = [F_r + R_r]

    K_ff · u_f = F_f                solved for the free DOFs
    R = K · u - F                   reactions at the restrained DOFs

Loads applied directly on restrained DOFs never enter the solve; they show
up in the reactions.

Each of the six support flags acts on its own global DOF. A node that fixes,
say, rz but leaves rx and ry free only has its global rz rotation held at
zero; no coupling to the member axes is implied.
"""

from typing import Sequence, Tuple

import numpy as np
import scipy.sparse as sp

from ..model import Node
from .assemble import Matrix
from .dof import DOFManager, DOF_3D_FRAME


def restrained_dofs(nodes: Sequence[Node], dof: DOFManager = DOF_3D_FRAME) -> np.ndarray:
    """Sorted global indices of every restrained DOF."""
    fixed = []
    for pos, node in enumerate(nodes):
        for local, flag in enumerate(node.supports.as_tuple()):
            if flag:
                fixed.append(dof.idx(pos, local))
    return np.array(sorted(fixed), dtype=int)


def partition_dofs(ndof: int, fixed_dofs: Sequence[int]) -> Tuple[np.ndarray, np.ndarray]:
    """Split range(ndof) into (free, fixed) index arrays."""
    fixed = np.array(sorted(set(int(i) for i in fixed_dofs)), dtype=int)
    mask = np.ones(ndof, dtype=bool)
    mask[fixed] = False
    free = np.flatnonzero(mask)
    return free, fixed


def reduce_system(K: Matrix, F: np.ndarray, free: np.ndarray) -> Tuple[Matrix, np.ndarray]:
    """Extract K_ff and F_f, keeping K's storage format."""
    if sp.issparse(K):
        Kff = K.tocsr()[free][:, free].tocsr()
    else:
        Kff = K[np.ix_(free, free)]
    return Kff, F[free]


def expand_solution(ndof: int, free: np.ndarray, u_free: np.ndarray) -> np.ndarray:
    """Full displacement vector; restrained entries are exactly 0."""
    d = np.zeros(ndof, dtype=float)
    d[free] = u_free
    return d


def compute_reaction_vector(K: Matrix, d: np.ndarray, F: np.ndarray) -> np.ndarray:
    """R = K·d - F at every DOF (non-zero only at restrained DOFs, up to round-off)."""
    return np.asarray(K @ d, dtype=float).ravel() - F
