# tests/conftest.py
"""Shared structure builders (camelCase documents, as the API receives them)."""

import pytest

E_STEEL = 210e9
FY_STEEL = 250e6


def steel(yield_strength=FY_STEEL):
    material = {'elasticModulus': E_STEEL, 'poissonsRatio': 0.3}
    if yield_strength is not None:
        material['yieldStrength'] = yield_strength
    return material


def rect(width=0.1, height=0.2):
    return {'kind': 'rectangular', 'width': width, 'height': height}


def fixed():
    return {k: True for k in ('ux', 'uy', 'uz', 'rx', 'ry', 'rz')}


def beam(eid, a, b, section=None, material=None):
    return {
        'id': eid,
        'kind': 'beam',
        'nodeIds': [a, b],
        'material': steel() if material is None else material,
        'section': rect() if section is None else section,
    }


def cantilever(tip=(3.0, 0.0, 0.0), axis='z', magnitude=-1000.0, section=None, material=None):
    """Single member fixed at the origin, point load at the free tip."""
    return {
        'nodes': [
            {'id': 'A', 'x': 0.0, 'y': 0.0, 'z': 0.0, 'supports': fixed()},
            {'id': 'B', 'x': tip[0], 'y': tip[1], 'z': tip[2]},
        ],
        'elements': [beam('AB', 'A', 'B', section, material)],
        'loads': [{'kind': 'point', 'nodeId': 'B', 'axis': axis, 'magnitude': magnitude}],
    }


def grid(n, spacing=1.0, load=-1000.0, section=None, one_corner=False):
    """
    n × n grillage in the XY plane: beams along both directions, the four
    corners (or only the first one) fully fixed, a vertical point load on
    every other node.
    """
    nodes, elements, loads = [], [], []
    corners = {(0, 0)} if one_corner else {(0, 0), (0, n - 1), (n - 1, 0), (n - 1, n - 1)}
    for i in range(n):
        for j in range(n):
            node = {'id': f'n{i}_{j}', 'x': i * spacing, 'y': j * spacing, 'z': 0.0}
            if (i, j) in corners:
                node['supports'] = fixed()
            else:
                loads.append({'kind': 'point', 'nodeId': node['id'], 'axis': 'z',
                              'magnitude': load})
            nodes.append(node)
    for i in range(n):
        for j in range(n):
            if i + 1 < n:
                elements.append(beam(f'x{i}_{j}', f'n{i}_{j}', f'n{i + 1}_{j}', section))
            if j + 1 < n:
                elements.append(beam(f'y{i}_{j}', f'n{i}_{j}', f'n{i}_{j + 1}', section))
    return {'nodes': nodes, 'elements': elements, 'loads': loads}


@pytest.fixture
def cantilever_doc():
    return cantilever()


@pytest.fixture
def portal_doc():
    """
    3D portal: two fixed columns (height 3 m, along Z) and a 6 m beam along X,
    lateral load at the left knee and a vertical load at the right knee.
    """
    return {
        'nodes': [
            {'id': 1, 'x': 0.0, 'y': 0.0, 'z': 0.0, 'supports': fixed()},
            {'id': 2, 'x': 0.0, 'y': 0.0, 'z': 3.0},
            {'id': 3, 'x': 6.0, 'y': 0.0, 'z': 3.0},
            {'id': 4, 'x': 6.0, 'y': 0.0, 'z': 0.0, 'supports': fixed()},
        ],
        'elements': [
            beam('c1', 1, 2),
            beam('b1', 2, 3),
            beam('c2', 4, 3),
        ],
        'loads': [
            {'kind': 'point', 'nodeId': 2, 'axis': 'x', 'magnitude': 5000.0},
            {'kind': 'point', 'nodeId': 3, 'axis': 'z', 'magnitude': -8000.0},
            {'kind': 'point', 'nodeId': 3, 'axis': 'y', 'magnitude': 1500.0},
        ],
    }
