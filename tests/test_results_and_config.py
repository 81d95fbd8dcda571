# tests/test_results_and_config.py
"""
WIRE FORMAT: configuration parsing and the camelCase result document
====================================================================
"""

import json

import pytest

from frame_engine import analyze
from frame_engine.config import DEFAULT_CONFIG, AnalysisConfig, config_from_dict
from frame_engine.errors import ConfigurationError, InputError
from frame_engine.model import structure_from_dict
from frame_engine.results import AnalysisResult, Diagnostic, PerformanceInfo


def test_default_configuration():
    cfg = config_from_dict(None)
    assert cfg == DEFAULT_CONFIG
    assert cfg.use_sparse_matrices and not cfg.use_conjugate_gradient
    assert cfg.convergence_tolerance == 1e-10
    assert cfg.max_iterations == 1000
    assert cfg.safety_factor == 1.67


def test_camel_and_snake_keys():
    cfg = config_from_dict({'useConjugateGradient': True, 'max_iterations': 50})
    assert cfg.use_conjugate_gradient
    assert cfg.max_iterations == 50
    assert cfg.convergence_tolerance == DEFAULT_CONFIG.convergence_tolerance


def test_base_configuration_is_kept():
    base = AnalysisConfig(safety_factor=2.0)
    assert config_from_dict({'enableProfiling': True}, base).safety_factor == 2.0


def test_unknown_key_rejected():
    with pytest.raises(ConfigurationError, match="tolerence"):
        config_from_dict({'tolerence': 1e-6})


def test_sparse_threshold():
    cfg = AnalysisConfig(sparse_node_threshold=10)
    assert not cfg.use_sparse_for(9)
    assert cfg.use_sparse_for(10)
    assert not AnalysisConfig(use_sparse_matrices=False).use_sparse_for(10_000)


def test_structure_document_accepts_snake_case():
    model = structure_from_dict({
        'nodes': [{'id': 1, 'x': 1, 'supports': {'ux': True, 'rz': None}}],
        'elements': [{'id': 'e', 'node_ids': [1, 2],
                      'material': {'elastic_modulus': 1.0, 'yield_strength': 2.0},
                      'section': {'kind': 'explicit', 'moment_of_inertia_y': 3.0}}],
        'loads': [{'node_id': 1, 'axis': 'x', 'magnitude': 4}],
    })
    assert model.nodes[0].x == 1.0 and model.nodes[0].supports.ux is True
    assert model.elements[0].node_ids == (1, 2)
    assert model.elements[0].material.yield_strength == 2.0
    assert model.elements[0].section.moment_of_inertia_y == 3.0
    assert model.loads[0].kind == 'point'


def test_result_document_keys(cantilever_doc):
    doc = analyze(cantilever_doc, {'enableProfiling': True}).to_dict()

    assert set(doc) == {'displacements', 'forces', 'stresses', 'reactions', 'isValid',
                        'maxDisplacement', 'maxStress', 'diagnostics', 'performance'}
    assert set(doc['displacements'][0]) == {'nodeId', 'ux', 'uy', 'uz', 'rx', 'ry', 'rz'}
    assert set(doc['forces'][0]) == {'elementId', 'axial', 'shearY', 'shearZ', 'momentY',
                                     'momentZ', 'torsion', 'position'}
    assert {'axialStress', 'bendingStressY', 'bendingStressZ', 'combinedStress',
            'isSafe', 'allowableStress', 'utilization'} == set(doc['stresses'][0]) - {'elementId'}
    assert set(doc['reactions'][0]) == {'nodeId', 'fx', 'fy', 'fz', 'mx', 'my', 'mz'}
    assert {'assemblyTimeMs', 'solveTimeMs', 'totalTimeMs', 'method', 'matrixFormat',
            'memory', 'profile'} <= set(doc['performance'])

    json.dumps(doc, allow_nan=False)


def test_diagnostic_document_omits_missing_ids():
    doc = AnalysisResult(
        is_valid=False,
        max_displacement=float('nan'),
        diagnostics=[Diagnostic('error', 'SingularMatrixError', 'Unstable')],
        performance=PerformanceInfo(total_time_ms=1.0),
    ).to_dict()

    assert doc['diagnostics'] == [{'severity': 'error', 'code': 'SingularMatrixError',
                                   'message': 'Unstable'}]
    assert doc['maxDisplacement'] is None
    assert doc['performance'] == {'assemblyTimeMs': 0.0, 'solveTimeMs': 0.0, 'totalTimeMs': 1.0}


def test_result_lookups(cantilever_doc):
    result = analyze(cantilever_doc)
    assert result.displacement('B').node_id == 'B'
    with pytest.raises(KeyError):
        result.forces_for('nope')


@pytest.mark.parametrize("flag", ['false', 'true', 1, 0, 'yes'])
def test_support_flags_must_be_booleans(flag):
    document = {'nodes': [{'id': 'B', 'supports': {'ux': True, 'uz': flag}}]}
    with pytest.raises(InputError) as excinfo:
        structure_from_dict(document)
    assert excinfo.value.node_id == 'B'
    assert 'uz' in excinfo.value.message


def test_string_support_flag_invalidates_analysis(cantilever_doc):
    cantilever_doc['nodes'][1]['supports'] = {'uz': 'false'}
    result = analyze(cantilever_doc)

    assert not result.is_valid
    assert [d.code for d in result.errors] == ['InputError']
    assert result.errors[0].node_id == 'B'
