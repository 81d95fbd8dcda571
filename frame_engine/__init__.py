# frame_engine - 3D Frame Structural Analysis Engine
"""
FRAME_ENGINE: Direct-Stiffness Analysis of 3D Frames
====================================================

This package provides:
- Linear static analysis of 3D frames (6 DOF per node, 12×12 members)
- Dense Cholesky and sparse conjugate-gradient solution paths
- Member forces, stresses and allowable-stress safety checks
- Structured diagnostics instead of exceptions for bad input

ARCHITECTURE:
-------------
    model.py        Node, Material, Section, Element, Load, Structure
    config.py       AnalysisConfig (storage/solver/safety settings)
    errors.py       Error taxonomy
    sections.py     Section property calculator
    elements.py     3D frame element stiffness & transformation
    kernel/         DOF indexing, assembly, boundary reduction, solvers
    post.py         Displacements, forces, stresses, reactions
    results.py      AnalysisResult and its records
    analysis.py     analyze() entry point
    dispatch.py     Background, message-based analysis requests

USAGE:
------
    from frame_engine import analyze
    result = analyze(structure_dict, {'useConjugateGradient': True})
    if result.is_valid:
        print(result.max_displacement, result.max_stress)
"""

from .analysis import analyze
from .config import AnalysisConfig, DEFAULT_CONFIG, config_from_dict
from .errors import (
    FrameAnalysisError,
    InputError,
    InvalidNodeReferenceError,
    DegenerateElementError,
    UnsupportedSectionKind,
    InvalidPropertyError,
    InvalidLoadError,
    NumericError,
    SingularMatrixError,
    NumericOverflowError,
    ConfigurationError,
)
from .model import (
    Node,
    Supports,
    Material,
    Section,
    Element,
    Load,
    Structure,
    structure_from_dict,
)
from .results import (
    AnalysisResult,
    Diagnostic,
    ElementForces,
    ElementStress,
    NodeDisplacement,
    NodeReaction,
    PerformanceInfo,
)
from .sections import SectionProperties, section_properties

__version__ = "0.1.0"
