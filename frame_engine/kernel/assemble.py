# frame_engine/kernel/assemble.py
"""
ASSEMBLY: Global Stiffness Matrix and Load Vector
=================================================

Scatter-add of element contributions into global matrices. Two storage
formats are supported:

    dense   numpy (ndof × ndof) array, K[np.ix_(map, map)] += ke
    sparse  COO triplets (row, col, value) collected per element and
            compressed to scipy.sparse CSR; duplicate entries are summed

Both accumulators are created inside the call that fills them, so concurrent
analyses never share a buffer.

USAGE:
------
    contributions = [(dof.element_dof_map([pe.i, pe.j]), pe.k_global())
                     for pe in prepared]
    K = assemble_global_K(ndof, contributions, sparse=True)
"""

import logging
import math
from typing import Dict, Hashable, List, Mapping, Sequence, Tuple, Union

import numpy as np
import scipy.sparse as sp

from ..errors import FrameAnalysisError, InvalidLoadError, InvalidNodeReferenceError
from ..model import LOAD_AXES, Load
from .dof import DOFManager, DOF_3D_FRAME

logger = logging.getLogger(__name__)

Matrix = Union[np.ndarray, sp.csr_matrix]

# Entries smaller than this fraction of the largest |K_ij| are dropped from
# sparse storage when memory optimisation is on
PRUNE_TOL = 1e-14


def assemble_global_K(
    ndof: int,
    contributions: Sequence[Tuple[Sequence[int], np.ndarray]],
    sparse: bool = False,
    prune: bool = False,
) -> Matrix:
    """
    Assemble the global stiffness matrix from element contributions.

    Parameters:
    -----------
    ndof : int
        Total number of DOFs (6 × n_nodes)
    contributions : list of (dof_map, ke)
        dof_map: 12 global DOF indices of the element
        ke:      12×12 element stiffness in global coordinates
    sparse : bool
        Build a scipy.sparse CSR matrix instead of a dense array
    prune : bool
        Sparse only: drop numerically-zero entries

    Returns:
    --------
    np.ndarray or scipy.sparse.csr_matrix, shape (ndof, ndof)
        Symmetric positive semi-definite; nodes touched by no element leave
        zero rows/columns.
    """
    for dof_map, ke in contributions:
        n = len(dof_map)
        assert ke.shape == (n, n), \
            f"Element ke shape {ke.shape} doesn't match dof_map length {n}"

    if not sparse:
        K = np.zeros((ndof, ndof), dtype=float)
        for dof_map, ke in contributions:
            idx = np.asarray(dof_map, dtype=int)
            K[np.ix_(idx, idx)] += ke
        return K

    n_entries = sum(len(m) ** 2 for m, _ in contributions)
    rows = np.empty(n_entries, dtype=np.int64)
    cols = np.empty(n_entries, dtype=np.int64)
    vals = np.empty(n_entries, dtype=float)

    pos = 0
    for dof_map, ke in contributions:
        idx = np.asarray(dof_map, dtype=np.int64)
        n = idx.size
        rows[pos:pos + n * n] = np.repeat(idx, n)
        cols[pos:pos + n * n] = np.tile(idx, n)
        vals[pos:pos + n * n] = ke.ravel()
        pos += n * n

    K = sp.coo_matrix((vals, (rows, cols)), shape=(ndof, ndof)).tocsr()
    K.sum_duplicates()

    if prune and K.nnz:
        cutoff = PRUNE_TOL * float(np.max(np.abs(K.data)))
        K.data[np.abs(K.data) <= cutoff] = 0.0
        K.eliminate_zeros()

    logger.debug("Assembled sparse K: ndof=%d nnz=%d", ndof, K.nnz)
    return K


def load_dof(
    load: Load,
    node_index: Mapping[Hashable, int],
    dof: DOFManager = DOF_3D_FRAME,
) -> Tuple[int, float]:
    """
    Global DOF index and magnitude of a nodal load.

    Axis 'x'/'y'/'z' map to ux/uy/uz, 'mx'/'my'/'mz' to rx/ry/rz.

    Raises InvalidLoadError (bad kind, axis or magnitude) or
    InvalidNodeReferenceError (unknown node).
    """
    if load.kind != 'point':
        raise InvalidLoadError(f"Unsupported load kind {load.kind!r}", node_id=load.node_id)

    axis = load.axis.lower() if isinstance(load.axis, str) else load.axis
    if axis not in LOAD_AXES:
        raise InvalidLoadError(f"Unsupported load axis {load.axis!r}", node_id=load.node_id)

    try:
        magnitude = float(load.magnitude)
    except (TypeError, ValueError):
        magnitude = math.nan
    if not math.isfinite(magnitude):
        raise InvalidLoadError(f"Load magnitude must be a finite number, got {load.magnitude!r}",
                               node_id=load.node_id)

    try:
        pos = node_index[load.node_id]
    except (KeyError, TypeError):
        raise InvalidNodeReferenceError(f"Load references unknown node {load.node_id!r}",
                                        node_id=load.node_id)

    return dof.idx(pos, LOAD_AXES.index(axis)), magnitude


def assemble_global_F(
    ndof: int,
    loads: Sequence[Load],
    node_index: Mapping[Hashable, int],
    dof: DOFManager = DOF_3D_FRAME,
) -> Tuple[np.ndarray, List[FrameAnalysisError]]:
    """
    Assemble the global load vector from nodal point loads.

    Loads on the same DOF add up. A bad load is skipped and its error is
    returned alongside F so the caller can report it without losing the
    others.
    """
    F = np.zeros(ndof, dtype=float)
    errors: List[FrameAnalysisError] = []
    for load in loads:
        try:
            index, magnitude = load_dof(load, node_index, dof)
        except FrameAnalysisError as exc:
            errors.append(exc)
            continue
        F[index] += magnitude
    return F, errors


def estimate_memory_usage(K: Matrix) -> Dict[str, float]:
    """
    Bytes used by K and the ratio against dense float64 storage.
    """
    n_rows, n_cols = K.shape
    dense_bytes = float(n_rows * n_cols * 8)
    if sp.issparse(K):
        used = float(K.data.nbytes + K.indices.nbytes + K.indptr.nbytes)
        nnz = int(K.nnz)
    else:
        used = float(K.nbytes)
        nnz = int(np.count_nonzero(K))
    return {
        'bytes': used,
        'denseBytes': dense_bytes,
        'compressionRatio': dense_bytes / used if used > 0 else 1.0,
        'nonZeros': nnz,
    }
