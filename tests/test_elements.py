# tests/test_elements.py
"""
3D FRAME ELEMENT: local axes, transformation and stiffness
==========================================================
"""

import numpy as np
import pytest

from frame_engine.elements import (
    element_geometry_3d,
    frame3d_local_stiffness,
    frame3d_rotation,
    frame3d_transform,
    prepare_element,
    shear_modulus,
)
from frame_engine.errors import DegenerateElementError, InvalidNodeReferenceError, InvalidPropertyError
from frame_engine.kernel.dof import build_node_index
from frame_engine.model import Element, Material, Node, Section

STEEL = Material(210e9, 250e6, 0.3)
RECT = Section('rectangular', width=0.1, height=0.2)


def _prepared(xyz_j, element_nodes=(0, 1)):
    nodes = (Node(0, 0.0, 0.0, 0.0), Node(1, *xyz_j))
    element = Element('e', element_nodes, STEEL, RECT)
    return prepare_element(element, nodes, build_node_index(nodes))


def test_local_axes_for_member_along_x():
    R = frame3d_rotation(np.array([1.0, 0.0, 0.0]))
    np.testing.assert_allclose(R, np.eye(3), atol=1e-15)


def test_local_axes_for_vertical_member_use_global_y_as_up():
    R = frame3d_rotation(np.array([0.0, 0.0, 1.0]))
    np.testing.assert_allclose(R[0], [0, 0, 1], atol=1e-15)
    np.testing.assert_allclose(R[1], [1, 0, 0], atol=1e-15)
    np.testing.assert_allclose(R[2], [0, 1, 0], atol=1e-15)


@pytest.mark.parametrize("axis", [
    [1.0, 2.0, 3.0], [-1.0, 0.5, 0.0], [0.0, 0.0, -1.0], [1e-9, 0.0, 1.0],
])
def test_rotation_is_orthonormal_right_handed(axis):
    axis = np.asarray(axis) / np.linalg.norm(axis)
    R = frame3d_rotation(axis)

    np.testing.assert_allclose(R @ R.T, np.eye(3), atol=1e-12)
    assert np.isclose(np.linalg.det(R), 1.0)
    np.testing.assert_allclose(R[0], axis, atol=1e-15)


def test_transform_is_block_diagonal():
    R = frame3d_rotation(np.array([0.6, 0.8, 0.0]))
    T = frame3d_transform(R)
    assert T.shape == (12, 12)
    np.testing.assert_allclose(T @ T.T, np.eye(12), atol=1e-12)
    np.testing.assert_array_equal(T[9:12, 9:12], R)
    assert not T[0:3, 3:12].any()


def test_local_stiffness_entries():
    E, G, A, Iy, Iz, J, L = 200e9, 80e9, 0.01, 2e-5, 1e-5, 3e-5, 2.0
    k = frame3d_local_stiffness(E, G, A, Iy, Iz, J, L)

    np.testing.assert_allclose(k, k.T)
    assert np.isclose(k[0, 0], E * A / L)
    assert np.isclose(k[3, 9], -G * J / L)
    assert np.isclose(k[1, 1], 12 * E * Iz / L**3)
    assert np.isclose(k[1, 5], 6 * E * Iz / L**2)
    assert np.isclose(k[2, 2], 12 * E * Iy / L**3)
    assert np.isclose(k[2, 4], -6 * E * Iy / L**2)
    assert np.isclose(k[4, 10], 2 * E * Iy / L)


def test_local_stiffness_has_six_rigid_body_modes():
    k = frame3d_local_stiffness(200e9, 80e9, 0.01, 2e-5, 1e-5, 3e-5, 2.0)
    eig = np.linalg.eigvalsh(k)
    assert np.sum(np.abs(eig) < 1e-6 * eig.max()) == 6
    assert np.all(eig > -1e-6 * eig.max())


def test_global_stiffness_symmetric_and_invariant():
    """Rotating the member changes ke_global but not its eigenvalues."""
    pe_x = _prepared((2.0, 0.0, 0.0))
    pe_skew = _prepared((2.0 / np.sqrt(3), 2.0 / np.sqrt(3), 2.0 / np.sqrt(3)))

    kg = pe_skew.k_global()
    np.testing.assert_array_equal(kg, kg.T)
    assert np.isclose(pe_skew.length, 2.0)
    np.testing.assert_allclose(
        np.sort(np.linalg.eigvalsh(kg)), np.sort(np.linalg.eigvalsh(pe_x.k_global())),
        rtol=1e-8, atol=1e-3,
    )


def test_zero_length_element_is_degenerate():
    nodes = (Node(0, 1.0, 1.0, 1.0), Node(1, 1.0, 1.0, 1.0))
    with pytest.raises(DegenerateElementError):
        element_geometry_3d(nodes[0], nodes[1], element_id='e')
    with pytest.raises(DegenerateElementError):
        _prepared((0.0, 0.0, 0.0))


def test_same_node_twice_is_degenerate():
    with pytest.raises(DegenerateElementError):
        _prepared((1.0, 0.0, 0.0), element_nodes=(1, 1))


@pytest.mark.parametrize("element_nodes", [(0, 'missing'), (0,), (0, 1, 1), ([0], 1)])
def test_bad_node_references(element_nodes):
    with pytest.raises(InvalidNodeReferenceError) as excinfo:
        _prepared((1.0, 0.0, 0.0), element_nodes=element_nodes)
    assert excinfo.value.element_id == 'e'


def test_shear_modulus_default_poisson():
    assert np.isclose(shear_modulus(Material(260e9)), 100e9)


@pytest.mark.parametrize("material", [
    Material(0.0), Material(-1.0), Material(float('inf')), Material(None),
    Material(210e9, poissons_ratio=0.5), Material(210e9, poissons_ratio=-1.0),
])
def test_invalid_material(material):
    with pytest.raises(InvalidPropertyError):
        shear_modulus(material, element_id='e')
