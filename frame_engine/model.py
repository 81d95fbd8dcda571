# frame_engine/model.py
"""
MODEL DEFINITIONS: Node, Material, Section, Element, Load, Structure
====================================================================

Plain immutable dataclasses describing one frame structure. A Structure is
handed to analyze() fresh on every call; nothing in here is mutated by the
engine.

COORDINATES & DOFs:
-------------------
Each node carries 6 DOFs in the global right-handed system:

    ux, uy, uz   translations along X, Y, Z
    rx, ry, rz   rotations about X, Y, Z

A support flag set to True restrains that DOF to zero.

UNITS:
------
The engine is unit-agnostic; it only needs consistency. The demos and
tests use SI: metres, newtons, pascals.
"""

from dataclasses import dataclass, field
from typing import Any, Hashable, Mapping, Optional, Tuple

from .errors import InputError


DOF_NAMES = ('ux', 'uy', 'uz', 'rx', 'ry', 'rz')


@dataclass(frozen=True)
class Supports:
    """Six restraint flags, True = fixed at zero displacement."""
    ux: bool = False
    uy: bool = False
    uz: bool = False
    rx: bool = False
    ry: bool = False
    rz: bool = False

    @classmethod
    def fixed(cls) -> "Supports":
        return cls(True, True, True, True, True, True)

    @classmethod
    def pinned(cls) -> "Supports":
        return cls(True, True, True, False, False, False)

    def as_tuple(self) -> Tuple[bool, ...]:
        return tuple(bool(getattr(self, name)) for name in DOF_NAMES)

    @property
    def any(self) -> bool:
        return any(self.as_tuple())


@dataclass(frozen=True)
class Node:
    """
    A joint in 3D space.

    Parameters:
    -----------
    id : hashable
        Unique identifier (str or int) used by elements and loads
    x, y, z : float
        Global coordinates
    supports : Supports
        Restraint flags; default is a free node
    """
    id: Hashable
    x: float
    y: float
    z: float
    supports: Supports = field(default_factory=Supports)


@dataclass(frozen=True)
class Material:
    """
    Linear-elastic isotropic material.

    elastic_modulus is always required. yield_strength is only consumed by
    the safety check, poissons_ratio only by the torsion term (G = E/2(1+nu)).
    """
    elastic_modulus: float
    yield_strength: Optional[float] = None
    poissons_ratio: Optional[float] = None


@dataclass(frozen=True)
class Section:
    """
    Cross-section descriptor, a tagged variant keyed on ``kind``.

    - 'rectangular': width (along local y), height (along local z)
    - 'circular':    width = diameter
    - 'i-section' / 'explicit': area, moment_of_inertia_y, moment_of_inertia_z
      given directly (width/height optional, used for extreme fibres)
    """
    kind: str
    width: Optional[float] = None
    height: Optional[float] = None
    area: Optional[float] = None
    moment_of_inertia_y: Optional[float] = None
    moment_of_inertia_z: Optional[float] = None
    torsional_constant: Optional[float] = None


@dataclass(frozen=True)
class Element:
    """
    A 3D frame member (Euler-Bernoulli beam with axial and torsion terms).

    ``kind`` ('beam' / 'column') is a reporting label only.
    ``node_ids`` should hold exactly two node ids; anything else is reported
    as an invalid node reference for this element.
    """
    id: Hashable
    node_ids: Tuple[Hashable, ...]
    material: Material
    section: Section
    kind: str = 'beam'


LOAD_AXES = ('x', 'y', 'z', 'mx', 'my', 'mz')


@dataclass(frozen=True)
class Load:
    """
    Nodal load. axis 'x'/'y'/'z' are forces, 'mx'/'my'/'mz' are moments,
    all in global directions. magnitude is signed.
    """
    node_id: Hashable
    axis: str
    magnitude: float
    kind: str = 'point'


@dataclass(frozen=True)
class Structure:
    """Nodes, elements and loads of one analysis, in input order."""
    nodes: Tuple[Node, ...] = ()
    elements: Tuple[Element, ...] = ()
    loads: Tuple[Load, ...] = ()


# =============================================================================
# Wire format (camelCase dicts) -> model
# =============================================================================

def _get(data: Mapping[str, Any], *keys: str, default=None):
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _require_mapping(value: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise InputError(f"{what} must be an object, got {type(value).__name__}")
    return value


def supports_from_dict(data: Optional[Mapping[str, Any]], node_id=None) -> Supports:
    """Restraint flags; anything but true/false/null is rejected, not coerced."""
    if not data:
        return Supports()
    data = _require_mapping(data, "supports")
    flags = {}
    for name in DOF_NAMES:
        value = data.get(name)
        if value is not None and not isinstance(value, bool):
            raise InputError(f"Support flag {name!r} of node {node_id!r} must be true or false, "
                             f"got {value!r}", node_id=node_id)
        flags[name] = bool(value)
    return Supports(**flags)


def node_from_dict(data: Mapping[str, Any]) -> Node:
    data = _require_mapping(data, "node")
    try:
        return Node(
            id=data['id'],
            x=float(data.get('x', 0.0)),
            y=float(data.get('y', 0.0)),
            z=float(data.get('z', 0.0)),
            supports=supports_from_dict(data.get('supports'), data.get('id')),
        )
    except KeyError:
        raise InputError("Node is missing 'id'")
    except (TypeError, ValueError) as exc:
        raise InputError(f"Node {data.get('id')!r} has a non-numeric coordinate: {exc}",
                         node_id=data.get('id'))


def material_from_dict(data: Optional[Mapping[str, Any]]) -> Material:
    # Values are validated later, per element, so one bad material only
    # invalidates its own element.
    data = data if isinstance(data, Mapping) else {}
    return Material(
        elastic_modulus=_get(data, 'elasticModulus', 'elastic_modulus'),
        yield_strength=_get(data, 'yieldStrength', 'yield_strength'),
        poissons_ratio=_get(data, 'poissonsRatio', 'poissons_ratio'),
    )


def section_from_dict(data: Optional[Mapping[str, Any]]) -> Section:
    data = data if isinstance(data, Mapping) else {}
    return Section(
        kind=_get(data, 'kind', 'type'),
        width=_get(data, 'width'),
        height=_get(data, 'height'),
        area=_get(data, 'area'),
        moment_of_inertia_y=_get(data, 'momentOfInertiaY', 'moment_of_inertia_y'),
        moment_of_inertia_z=_get(data, 'momentOfInertiaZ', 'moment_of_inertia_z'),
        torsional_constant=_get(data, 'torsionalConstant', 'torsional_constant'),
    )


def element_from_dict(data: Mapping[str, Any]) -> Element:
    data = _require_mapping(data, "element")
    if 'id' not in data:
        raise InputError("Element is missing 'id'")
    node_ids = _get(data, 'nodeIds', 'node_ids', 'nodes', default=())
    if isinstance(node_ids, (str, bytes)) or not hasattr(node_ids, '__iter__'):
        node_ids = ()
    return Element(
        id=data['id'],
        kind=data.get('kind', 'beam'),
        node_ids=tuple(node_ids),
        material=material_from_dict(data.get('material')),
        section=section_from_dict(data.get('section')),
    )


def load_from_dict(data: Mapping[str, Any]) -> Load:
    data = _require_mapping(data, "load")
    return Load(
        kind=_get(data, 'kind', 'type', default='point'),
        node_id=_get(data, 'nodeId', 'node_id'),
        axis=_get(data, 'axis', 'direction'),
        magnitude=_get(data, 'magnitude', default=0.0),
    )


def structure_from_dict(data: Mapping[str, Any]) -> Structure:
    """
    Parse the camelCase Structure document:

        {nodes: [{id, x, y, z, supports: {ux..rz}}],
         elements: [{id, kind, nodeIds: [a, b], material: {...}, section: {...}}],
         loads: [{kind: 'point', nodeId, axis, magnitude}]}

    Raises InputError for a document that cannot be read at all. Element and
    load level problems (bad references, unknown kinds, bad values) are kept
    in the model and reported per item during analysis.
    """
    data = _require_mapping(data, "structure")

    def _list(key):
        value = data.get(key) or []
        if not isinstance(value, (list, tuple)):
            raise InputError(f"'{key}' must be a list")
        return value

    return Structure(
        nodes=tuple(node_from_dict(n) for n in _list('nodes')),
        elements=tuple(element_from_dict(e) for e in _list('elements')),
        loads=tuple(load_from_dict(ld) for ld in _list('loads')),
    )
