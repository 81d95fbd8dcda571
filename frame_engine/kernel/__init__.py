# frame_engine/kernel - DOF indexing, assembly, boundary reduction, solve
"""
KERNEL: THE NUMERIC CORE
========================

    dof.py        node position -> global DOF index (6 DOF per node)
    assemble.py   scatter-add of element stiffness (dense or sparse) and loads
    boundary.py   free/restrained partition, K_ff extraction, reactions
    solve.py      direct and conjugate-gradient solvers, mechanism detection

Nothing in here knows about sections, materials or result formatting; it
works on index maps, numpy arrays and scipy.sparse matrices.
"""

from .dof import DOFManager, DOF_3D_FRAME, build_node_index
from .assemble import assemble_global_K, assemble_global_F
from .boundary import restrained_dofs, partition_dofs, reduce_system, expand_solution
from .solve import (
    LinearSolver,
    DirectSolver,
    ConjugateGradientSolver,
    SolveOutcome,
    make_solver,
)

__all__ = [
    'DOFManager', 'DOF_3D_FRAME', 'build_node_index',
    'assemble_global_K', 'assemble_global_F',
    'restrained_dofs', 'partition_dofs', 'reduce_system', 'expand_solution',
    'LinearSolver', 'DirectSolver', 'ConjugateGradientSolver', 'SolveOutcome',
    'make_solver',
]
