# frame_engine/kernel/dof.py
"""
DOF MANAGER: Node Position -> Global DOF Index
==============================================

A 3D frame node has 6 DOFs (ux, uy, uz, rx, ry, rz). Nodes are identified by
arbitrary ids in the input, so the DOF block of a node is taken from its
POSITION in Structure.nodes:

    node at position p  ->  global DOFs [6p, 6p+1, ..., 6p+5]

    >>> dof = DOFManager()
    >>> dof.idx(2, 1)           # third node, uy
    13
    >>> dof.element_dof_map([0, 2])
    [0, 1, 2, 3, 4, 5, 12, 13, 14, 15, 16, 17]
"""

from dataclasses import dataclass
from typing import Dict, Hashable, List, Sequence

from ..errors import InputError
from ..model import Node


@dataclass(frozen=True)
class DOFManager:
    """Degree-of-freedom indexing for 6-DOF frame nodes."""
    dof_per_node: int = 6

    def idx(self, node_pos: int, local_dof: int) -> int:
        """Global index of local DOF (0=ux .. 5=rz) at the node in position node_pos."""
        return self.dof_per_node * node_pos + local_dof

    def ndof(self, n_nodes: int) -> int:
        return self.dof_per_node * n_nodes

    def node_dofs(self, node_pos: int) -> List[int]:
        base = self.dof_per_node * node_pos
        return list(range(base, base + self.dof_per_node))

    def element_dof_map(self, node_positions: Sequence[int]) -> List[int]:
        """Flattened global DOF indices for an element's nodes, in order."""
        result = []
        for pos in node_positions:
            result.extend(self.node_dofs(pos))
        return result


DOF_3D_FRAME = DOFManager(dof_per_node=6)


def build_node_index(nodes: Sequence[Node]) -> Dict[Hashable, int]:
    """
    Map node id -> position in ``nodes``.

    Raises:
    -------
    InputError
        If two nodes share an id (references to it would be ambiguous)
    """
    index: Dict[Hashable, int] = {}
    for pos, node in enumerate(nodes):
        try:
            duplicate = node.id in index
        except TypeError:
            raise InputError(f"Node id {node.id!r} is not hashable", node_id=None)
        if duplicate:
            raise InputError(f"Duplicate node id {node.id!r}", node_id=node.id)
        index[node.id] = pos
    return index
