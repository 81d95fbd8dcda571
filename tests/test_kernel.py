# tests/test_kernel.py
"""
KERNEL: DOF indexing, assembly, boundary reduction and the linear solvers
========================================================================
"""

import numpy as np
import pytest
import scipy.sparse as sp

from frame_engine.config import AnalysisConfig
from frame_engine.elements import prepare_element
from frame_engine.errors import InputError, InvalidLoadError, InvalidNodeReferenceError, SingularMatrixError
from frame_engine.kernel.assemble import (
    assemble_global_F,
    assemble_global_K,
    estimate_memory_usage,
    load_dof,
)
from frame_engine.kernel.boundary import (
    compute_reaction_vector,
    expand_solution,
    partition_dofs,
    reduce_system,
    restrained_dofs,
)
from frame_engine.kernel import solve as solve_module
from frame_engine.kernel.dof import DOF_3D_FRAME, DOFManager, build_node_index
from frame_engine.kernel.solve import (
    ConjugateGradientSolver,
    DirectSolver,
    check_pivots,
    make_solver,
)
from frame_engine.model import Load, structure_from_dict

from conftest import grid


def _contributions(model):
    index = build_node_index(model.nodes)
    prepared = [prepare_element(e, model.nodes, index) for e in model.elements]
    return [(DOF_3D_FRAME.element_dof_map([pe.i, pe.j]), pe.k_global()) for pe in prepared]


def _assembled(doc, sparse):
    model = structure_from_dict(doc)
    index = build_node_index(model.nodes)
    ndof = DOF_3D_FRAME.ndof(len(model.nodes))
    K = assemble_global_K(ndof, _contributions(model), sparse=sparse)
    F, errors = assemble_global_F(ndof, model.loads, index)
    assert errors == []
    return model, K, F


def test_dof_manager_indexing():
    dof = DOFManager()
    assert dof.idx(2, 1) == 13
    assert dof.ndof(4) == 24
    assert dof.element_dof_map([3, 0]) == list(range(18, 24)) + list(range(0, 6))


def test_duplicate_node_ids_rejected():
    model = structure_from_dict({'nodes': [{'id': 'a'}, {'id': 'b'}, {'id': 'a'}]})
    with pytest.raises(InputError):
        build_node_index(model.nodes)


def test_dense_and_sparse_assembly_agree(portal_doc):
    _, Kd, Fd = _assembled(portal_doc, sparse=False)
    _, Ks, Fs = _assembled(portal_doc, sparse=True)

    assert sp.issparse(Ks) and Ks.format == 'csr'
    np.testing.assert_allclose(Ks.toarray(), Kd, rtol=0, atol=1e-6)
    np.testing.assert_array_equal(Fd, Fs)
    np.testing.assert_array_equal(Kd, Kd.T)


def test_sparse_pruning_keeps_the_matrix():
    model, K, _ = _assembled(grid(3), sparse=True)
    Kp = assemble_global_K(K.shape[0], _contributions(model), sparse=True, prune=True)

    assert Kp.nnz <= K.nnz
    np.testing.assert_allclose(Kp.toarray(), K.toarray(), rtol=0,
                               atol=1e-13 * np.abs(K.data).max())


def test_memory_estimate():
    _, K, _ = _assembled(grid(4), sparse=True)
    memory = estimate_memory_usage(K)
    assert memory['nonZeros'] == K.nnz
    assert memory['denseBytes'] == K.shape[0] ** 2 * 8
    assert memory['compressionRatio'] > 1.0


def test_loads_on_same_dof_add_up():
    index = {'a': 0, 'b': 1}
    loads = [Load('b', 'z', -10.0), Load('b', 'Z', -5.0), Load('a', 'my', 3.0)]
    F, errors = assemble_global_F(12, loads, index)

    assert errors == []
    assert F[8] == -15.0
    assert F[4] == 3.0
    assert np.count_nonzero(F) == 2


def test_bad_loads_reported_individually():
    index = {'a': 0}
    loads = [
        Load('a', 'x', 1.0),
        Load('a', 'w', 1.0),
        Load('a', 'x', 1.0, kind='distributed'),
        Load('a', 'x', float('nan')),
        Load('zz', 'x', 1.0),
    ]
    F, errors = assemble_global_F(6, loads, index)

    assert F[0] == 1.0
    assert [type(e) for e in errors] == [InvalidLoadError, InvalidLoadError, InvalidLoadError,
                                         InvalidNodeReferenceError]
    with pytest.raises(InvalidNodeReferenceError):
        load_dof(Load('zz', 'x', 1.0), index)


def test_partition_and_reactions(cantilever_doc):
    model, K, F = _assembled(cantilever_doc, sparse=False)
    fixed = restrained_dofs(model.nodes)
    free, fixed = partition_dofs(K.shape[0], fixed)

    np.testing.assert_array_equal(fixed, np.arange(6))
    np.testing.assert_array_equal(free, np.arange(6, 12))

    Kff, Ff = reduce_system(K, F, free)
    u = DirectSolver().solve(Kff, Ff).u
    d = expand_solution(K.shape[0], free, u)
    R = compute_reaction_vector(K, d, F)

    assert np.all(d[:6] == 0.0)
    np.testing.assert_allclose(R[6:], 0.0, atol=1e-6)
    assert np.isclose(R[2], 1000.0)


def test_reduce_system_keeps_sparse_format(cantilever_doc):
    _, K, F = _assembled(cantilever_doc, sparse=True)
    Kff, Ff = reduce_system(K, F, np.arange(6, 12))
    assert sp.issparse(Kff)
    assert Kff.shape == (6, 6)
    assert Ff.shape == (6,)


def test_direct_solvers_agree(portal_doc):
    model, Kd, F = _assembled(portal_doc, sparse=False)
    _, Ks, _ = _assembled(portal_doc, sparse=True)
    free, _ = partition_dofs(Kd.shape[0], restrained_dofs(model.nodes))

    dense = DirectSolver().solve(*reduce_system(Kd, F, free))
    sparse = DirectSolver().solve(*reduce_system(Ks, F, free))

    assert dense.method == "Cholesky"
    assert sparse.method == "sparse LU"
    np.testing.assert_allclose(sparse.u, dense.u, rtol=1e-9, atol=1e-14)
    assert dense.residual < 1e-10


def test_conjugate_gradient_matches_direct(portal_doc):
    model, K, F = _assembled(portal_doc, sparse=True)
    free, _ = partition_dofs(K.shape[0], restrained_dofs(model.nodes))
    Kff, Ff = reduce_system(K, F, free)

    direct = DirectSolver().solve(Kff, Ff)
    cg = ConjugateGradientSolver(tolerance=1e-12, max_iterations=5000).solve(Kff, Ff)

    assert cg.converged and cg.warning is None
    assert cg.iterations > 0
    np.testing.assert_allclose(cg.u, direct.u, rtol=1e-6, atol=1e-6 * np.abs(direct.u).max())


def test_conjugate_gradient_iteration_budget():
    doc = grid(6)
    model, K, F = _assembled(doc, sparse=True)
    free, _ = partition_dofs(K.shape[0], restrained_dofs(model.nodes))
    Kff, Ff = reduce_system(K, F, free)

    outcome = ConjugateGradientSolver(tolerance=1e-14, max_iterations=2).solve(Kff, Ff)

    assert not outcome.converged
    assert outcome.iterations == 2
    assert "did not converge" in outcome.warning
    assert np.all(np.isfinite(outcome.u))


@pytest.mark.parametrize("solver", [DirectSolver(), ConjugateGradientSolver()])
@pytest.mark.parametrize("sparse", [False, True])
def test_mechanism_detected(solver, sparse):
    """Free-floating member: six rigid-body modes, no supports."""
    doc = {
        'nodes': [{'id': 0}, {'id': 1, 'x': 2.0}],
        'elements': [{'id': 'e', 'nodeIds': [0, 1],
                      'material': {'elasticModulus': 210e9},
                      'section': {'kind': 'rectangular', 'width': 0.1, 'height': 0.2}}],
        'loads': [{'nodeId': 1, 'axis': 'z', 'magnitude': -1.0}],
    }
    _, K, F = _assembled(doc, sparse=sparse)
    with pytest.raises(SingularMatrixError):
        solver.solve(K, F)


@pytest.mark.parametrize("sparse", [False, True])
def test_conjugate_gradient_catches_self_equilibrated_mechanism(sparse):
    """An axial load pair on a floating member leaves CG nothing to diverge on."""
    doc = {
        'nodes': [{'id': 0}, {'id': 1, 'x': 2.0}],
        'elements': [{'id': 'e', 'nodeIds': [0, 1],
                      'material': {'elasticModulus': 210e9},
                      'section': {'kind': 'rectangular', 'width': 0.1, 'height': 0.2}}],
        'loads': [{'nodeId': 1, 'axis': 'x', 'magnitude': 1000.0},
                  {'nodeId': 0, 'axis': 'x', 'magnitude': -1000.0}],
    }
    _, K, F = _assembled(doc, sparse=sparse)
    with pytest.raises(SingularMatrixError):
        ConjugateGradientSolver().solve(K, F)


def test_conjugate_gradient_factorises_once_per_solve(monkeypatch, portal_doc):
    model, K, F = _assembled(portal_doc, sparse=True)
    free, _ = partition_dofs(K.shape[0], restrained_dofs(model.nodes))
    Kff, Ff = reduce_system(K, F, free)

    calls = []
    real_lu = solve_module._sparse_lu

    def counting_lu(A):
        calls.append(A.shape)
        return real_lu(A)

    monkeypatch.setattr(solve_module, '_sparse_lu', counting_lu)
    outcome = ConjugateGradientSolver(tolerance=1e-12, max_iterations=5000).solve(Kff, Ff)

    assert outcome.converged
    assert calls == [Kff.shape]


def test_empty_system_solves_trivially():
    for solver in (DirectSolver(), ConjugateGradientSolver()):
        outcome = solver.solve(np.zeros((0, 0)), np.zeros(0))
        assert outcome.u.shape == (0,)


def test_check_pivots():
    check_pivots(np.array([1.0, 0.5, 1e-3]), 1e-12)
    with pytest.raises(SingularMatrixError):
        check_pivots(np.array([1.0, 1e-15]), 1e-12)
    with pytest.raises(SingularMatrixError):
        check_pivots(np.array([1.0, -1e-3]), 1e-12)


def test_make_solver_follows_config():
    assert isinstance(make_solver(AnalysisConfig()), DirectSolver)
    cg = make_solver(AnalysisConfig(use_conjugate_gradient=True, max_iterations=7,
                                    convergence_tolerance=1e-6))
    assert isinstance(cg, ConjugateGradientSolver)
    assert (cg.max_iterations, cg.tolerance) == (7, 1e-6)
