# frame_engine/analysis.py
"""
ANALYZE: The Engine Entry Point
===============================

    Structure -> section properties per element -> stiffness assembly
              -> boundary reduction -> linear solve -> post-processing
              -> AnalysisResult

analyze() always returns a well-formed AnalysisResult. Every engine error is
caught here (or in the per-element loops below, so one bad member does not
stop the others) and turned into a Diagnostic; is_valid is False whenever an
error-level diagnostic was recorded.

Each call builds its own matrices and vectors and never touches its inputs,
so independent calls can run concurrently without locking.
"""

import logging
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Union

from .config import AnalysisConfig, DEFAULT_CONFIG, config_from_dict
from .elements import PreparedElement, prepare_element
from .errors import FrameAnalysisError, NumericError
from .kernel.assemble import assemble_global_F, assemble_global_K, estimate_memory_usage
from .kernel.boundary import (
    compute_reaction_vector,
    expand_solution,
    partition_dofs,
    reduce_system,
    restrained_dofs,
)
from .kernel.dof import DOF_3D_FRAME, build_node_index
from .kernel.solve import make_solver
from .model import Element, Structure, structure_from_dict
from .post import (
    check_finite,
    compute_nodal_displacements,
    compute_reactions,
    element_results,
    max_abs_finite,
)
from .results import AnalysisResult, Diagnostic, NodeDisplacement, PerformanceInfo

logger = logging.getLogger(__name__)

StructureInput = Union[Structure, Mapping[str, Any]]
ConfigInput = Union[AnalysisConfig, Mapping[str, Any], None]
ProgressCallback = Callable[[float, str], None]


def _no_progress(fraction: float, message: str) -> None:
    pass


class _StageTimer:
    """Collects per-stage wall times (ms) for the profile report."""

    def __init__(self):
        self.stages: Dict[str, float] = {}
        self._start = time.perf_counter()
        self._last = self._start

    def mark(self, stage: str) -> float:
        now = time.perf_counter()
        elapsed = (now - self._last) * 1000.0
        self.stages[stage] = self.stages.get(stage, 0.0) + elapsed
        self._last = now
        return elapsed

    def total_ms(self) -> float:
        return (time.perf_counter() - self._start) * 1000.0


def resolve_config(config: ConfigInput) -> AnalysisConfig:
    """Accept an AnalysisConfig, a camelCase mapping, or None (defaults)."""
    if isinstance(config, AnalysisConfig):
        return config.validate()
    return config_from_dict(config, DEFAULT_CONFIG)


def analyze(
    structure: StructureInput,
    config: ConfigInput = None,
    progress: Optional[ProgressCallback] = None,
) -> AnalysisResult:
    """
    Run a linear static analysis of a 3D frame structure.

    Parameters:
    -----------
    structure : Structure or mapping
        The model, or its camelCase document (see model.structure_from_dict)
    config : AnalysisConfig, mapping or None
        Solver/storage settings; None uses DEFAULT_CONFIG
    progress : callable(fraction, message), optional
        Called at each stage with a fraction in [0, 1]

    Returns:
    --------
    AnalysisResult
        Never raises for malformed structural input or configuration;
        problems are reported in ``diagnostics`` with is_valid=False.

    Example:
    --------
    >>> result = analyze({'nodes': [], 'elements': [], 'loads': []})
    >>> result.is_valid, result.max_displacement
    (True, 0.0)
    """
    timer = _StageTimer()
    try:
        cfg = resolve_config(config)
        model = structure if isinstance(structure, Structure) else structure_from_dict(structure)
        return _run(model, cfg, timer, progress or _no_progress)
    except FrameAnalysisError as exc:
        logger.warning("Analysis rejected: %s: %s", exc.code, exc.message)
        return AnalysisResult(
            is_valid=False,
            diagnostics=[Diagnostic.from_error(exc)],
            performance=PerformanceInfo(total_time_ms=timer.total_ms()),
        )


def _run(model: Structure, cfg: AnalysisConfig, timer: _StageTimer,
         progress: ProgressCallback) -> AnalysisResult:
    dof = DOF_3D_FRAME
    nodes = model.nodes
    diagnostics: List[Diagnostic] = []

    def _record(exc: FrameAnalysisError, severity: str = 'error') -> None:
        diagnostics.append(Diagnostic.from_error(exc, severity))
        logger.warning("%s: %s", exc.code, exc.message)

    # Duplicate node ids make every reference ambiguous: whole structure invalid
    node_index = build_node_index(nodes)
    progress(0.1, "Preparing elements")
    ndof = dof.ndof(len(nodes))

    # ------------------------------------------------------------------
    # Element preparation (section properties, geometry, local matrices)
    # ------------------------------------------------------------------
    prepared: List[PreparedElement] = []
    rejected: List[Element] = []
    for element in model.elements:
        try:
            prepared.append(prepare_element(element, nodes, node_index))
        except FrameAnalysisError as exc:
            _record(exc)
            rejected.append(element)
    detached = _detached_nodes(rejected, prepared, node_index)
    timer.mark('prepareElements')
    progress(0.3, "Assembling stiffness matrix")

    # ------------------------------------------------------------------
    # Assembly
    # ------------------------------------------------------------------
    sparse = cfg.use_sparse_for(len(nodes))
    contributions = [(dof.element_dof_map([pe.i, pe.j]), pe.k_global()) for pe in prepared]
    K = assemble_global_K(ndof, contributions, sparse=sparse,
                          prune=sparse and cfg.memory_optimization)
    timer.mark('assembleStiffness')

    F, load_errors = assemble_global_F(ndof, model.loads, node_index, dof)
    for exc in load_errors:
        _record(exc)
    timer.mark('assembleLoads')

    fixed = list(restrained_dofs(nodes, dof))
    for pos in sorted(detached):
        fixed.extend(dof.node_dofs(pos))
        diagnostics.append(Diagnostic(
            'warning', 'DetachedNode',
            f"Node {nodes[pos].id!r} is only attached to rejected elements; "
            "its displacements are held at zero",
            node_id=nodes[pos].id,
        ))
    for load in model.loads:
        if _position(node_index, load.node_id) in detached:
            diagnostics.append(Diagnostic(
                'warning', 'IgnoredLoad',
                f"Load {load.axis!r} on detached node {load.node_id!r} was not applied",
                node_id=load.node_id,
            ))
    free, _fixed = partition_dofs(ndof, fixed)
    Kff, Ff = reduce_system(K, F, free)
    timer.mark('reduceSystem')
    assembly_ms = sum(timer.stages.values())

    performance = PerformanceInfo(
        assembly_time_ms=assembly_ms,
        matrix_format='sparse' if sparse else 'dense',
    )
    if cfg.enable_profiling:
        performance.memory = estimate_memory_usage(K)

    # ------------------------------------------------------------------
    # Solve
    # ------------------------------------------------------------------
    progress(0.5, "Solving")
    solver = make_solver(cfg)
    performance.method = solver.name
    logger.debug("Solving %d free DOFs of %d (%s, %s)", free.size, ndof,
                 performance.matrix_format, solver.name)
    try:
        outcome = solver.solve(Kff, Ff)
    except NumericError as exc:
        _record(exc)
        performance.solve_time_ms = timer.mark('solve')
        return _finish(_unsolved_result(nodes, diagnostics), performance, cfg, timer)
    performance.solve_time_ms = timer.mark('solve')

    performance.method = outcome.method
    performance.iterations = outcome.iterations
    performance.residual = outcome.residual
    if outcome.warning:
        performance.convergence_warning = outcome.warning
        diagnostics.append(Diagnostic('warning', 'ConvergenceWarning', outcome.warning))

    # ------------------------------------------------------------------
    # Post-processing
    # ------------------------------------------------------------------
    progress(0.8, "Recovering member forces")
    d = expand_solution(ndof, free, outcome.u)
    displacements = compute_nodal_displacements(nodes, d, dof)
    try:
        check_finite(d, "Displacements")
    except FrameAnalysisError as exc:
        _record(exc)

    forces, stresses = [], []
    for pe in prepared:
        try:
            f, s = element_results(pe, d, cfg.safety_factor, dof)
        except FrameAnalysisError as exc:
            _record(exc)
            continue
        forces.append(f)
        stresses.append(s)
        if s.allowable_stress is None:
            diagnostics.append(Diagnostic(
                'warning', 'MissingYieldStrength',
                f"Element {pe.id!r} has no yieldStrength; safety check skipped",
                element_id=pe.id,
            ))

    reactions = []
    if nodes:
        R = compute_reaction_vector(K, d, F)
        reactions = compute_reactions(nodes, R, dof)
        try:
            check_finite(R, "Reactions")
        except FrameAnalysisError as exc:
            _record(exc)
    timer.mark('postProcess')

    result = AnalysisResult(
        displacements=displacements,
        forces=forces,
        stresses=stresses,
        reactions=reactions,
        max_displacement=max_abs_finite(d),
        max_stress=max((abs(s.combined_stress) for s in stresses), default=0.0),
        diagnostics=diagnostics,
    )
    return _finish(result, performance, cfg, timer)


def _position(node_index: Mapping, node_id) -> Optional[int]:
    try:
        return node_index.get(node_id)
    except TypeError:
        return None


def _detached_nodes(rejected: List[Element], prepared: List[PreparedElement],
                    node_index: Mapping) -> Set[int]:
    """
    Positions of nodes that only rejected elements attach to.

    Their DOFs would have no stiffness and make the whole system singular, so
    they are restrained instead. Nodes no element mentions at all are left
    alone: those are modelling errors the solver reports.
    """
    connected = {p for pe in prepared for p in (pe.i, pe.j)}
    detached = set()
    for element in rejected:
        for nid in element.node_ids:
            pos = _position(node_index, nid)
            if pos is not None and pos not in connected:
                detached.add(pos)
    return detached


def _unsolved_result(nodes, diagnostics: List[Diagnostic]) -> AnalysisResult:
    """Result for a structure that could not be solved: zero displacements, no member results."""
    return AnalysisResult(
        displacements=[NodeDisplacement(n.id, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0) for n in nodes],
        diagnostics=diagnostics,
    )


def _finish(result: AnalysisResult, performance: PerformanceInfo,
            cfg: AnalysisConfig, timer: _StageTimer) -> AnalysisResult:
    result.is_valid = not result.errors
    performance.total_time_ms = timer.total_ms()
    if cfg.enable_profiling:
        performance.profile = dict(timer.stages)
    result.performance = performance

    logger.info(
        "Analysis finished: valid=%s nodes=%d members=%d maxDisp=%.4e maxStress=%.4e (%.1f ms)",
        result.is_valid, len(result.displacements), len(result.forces),
        result.max_displacement, result.max_stress, performance.total_time_ms,
    )
    return result
