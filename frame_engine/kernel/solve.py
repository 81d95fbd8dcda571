# frame_engine/kernel/solve.py
"""
Linear solvers for the reduced system K_ff · u_f = F_f, with mechanism detection.

Two interchangeable strategies share the ``solve(K, F) -> SolveOutcome``
interface:

    DirectSolver              Cholesky (dense) or sparse LU, exact to round-off
    ConjugateGradientSolver   Jacobi-preconditioned CG, tolerance/iteration budget

Both work on a Jacobi-scaled copy of K (S·K·S with S = diag(K)^-1/2) when
checking stability, so translational and rotational DOFs are compared on the
same footing. A free DOF with no stiffness, a non-positive pivot, or a pivot
below ``pivot_ratio`` × the largest one means the structure is a mechanism
and SingularMatrixError is raised.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import scipy.linalg
import scipy.sparse as sp
import scipy.sparse.linalg as spla

from ..config import AnalysisConfig
from ..errors import NumericOverflowError, SingularMatrixError
from .assemble import Matrix

logger = logging.getLogger(__name__)


@dataclass
class SolveOutcome:
    """Solution of the reduced system plus solver bookkeeping."""
    u: np.ndarray
    method: str
    iterations: Optional[int] = None
    residual: Optional[float] = None
    converged: bool = True
    warning: Optional[str] = None


def _diagonal(K: Matrix) -> np.ndarray:
    return np.asarray(K.diagonal() if sp.issparse(K) else np.diag(K), dtype=float)


def jacobi_scaling(K: Matrix) -> Tuple[Matrix, np.ndarray]:
    """
    Return (S·K·S, s) with s = 1/sqrt(diag(K)).

    Raises:
    -------
    NumericOverflowError
        K contains NaN/Infinity
    SingularMatrixError
        Some free DOF has zero or negative direct stiffness (e.g. a node no
        element is attached to)
    """
    diag = _diagonal(K)
    data = K.data if sp.issparse(K) else K
    if not np.all(np.isfinite(data)):
        raise NumericOverflowError("Stiffness matrix contains NaN or Infinity")

    bad = np.flatnonzero(diag <= 0.0)
    if bad.size:
        raise SingularMatrixError(
            f"Unstable structure: {bad.size} free DOF(s) have no stiffness "
            f"(first reduced index {int(bad[0])}). Check supports and connectivity."
        )

    s = 1.0 / np.sqrt(diag)
    if sp.issparse(K):
        S = sp.diags(s)
        Ks = (S @ K @ S).tocsc()
    else:
        Ks = K * s[:, None] * s[None, :]
    return Ks, s


def check_pivots(pivots: np.ndarray, pivot_ratio: float) -> None:
    """Raise SingularMatrixError if the factor pivots show rank deficiency."""
    pivots = np.asarray(pivots, dtype=float)
    if pivots.size == 0:
        return
    if not np.all(np.isfinite(pivots)) or np.any(pivots <= 0.0):
        raise SingularMatrixError(
            "Unstable structure: reduced stiffness matrix is not positive definite. "
            "Check supports/bracing."
        )
    ratio = float(pivots.min() / pivots.max())
    if ratio < pivot_ratio:
        raise SingularMatrixError(
            f"Unstable structure (pivot ratio={ratio:.2e}, limit {pivot_ratio:.0e}). "
            "Check supports/bracing."
        )


def _sparse_lu(Ks: sp.spmatrix):
    """Symmetric-mode sparse LU; diagonal pivoting keeps U's diagonal = LDLᵀ's D."""
    try:
        return spla.splu(
            sp.csc_matrix(Ks),
            permc_spec='MMD_AT_PLUS_A',
            diag_pivot_thresh=0.0,
            options={'SymmetricMode': True},
        )
    except RuntimeError as exc:  # "Factor is exactly singular"
        raise SingularMatrixError(f"Unstable structure: {exc}")


def check_stability(K: Matrix, pivot_ratio: float) -> None:
    """Factorise a scaled copy of K only to check it is positive definite."""
    if K.shape[0] == 0:
        return
    Ks, _ = jacobi_scaling(K)
    lu = _sparse_lu(Ks)
    check_pivots(lu.U.diagonal(), pivot_ratio)


class LinearSolver(ABC):
    """Strategy interface: solve(K_ff, F_f) -> SolveOutcome."""
    name = "solver"

    @abstractmethod
    def solve(self, K: Matrix, F: np.ndarray) -> SolveOutcome:
        ...


class DirectSolver(LinearSolver):
    """
    Direct elimination.

    Dense K -> Cholesky (scipy.linalg.cho_factor), which fails outright on a
    non-positive-definite matrix. Sparse K -> scipy.sparse.linalg.splu in
    symmetric mode. Deterministic and exact to floating precision.
    """
    name = "direct"

    def __init__(self, pivot_ratio: float = 1e-12):
        self.pivot_ratio = pivot_ratio

    def solve(self, K: Matrix, F: np.ndarray) -> SolveOutcome:
        n = K.shape[0]
        if n == 0:
            return SolveOutcome(u=np.zeros(0), method=self.name)

        Ks, s = jacobi_scaling(K)
        rhs = s * F

        if sp.issparse(Ks):
            lu = _sparse_lu(Ks)
            check_pivots(lu.U.diagonal(), self.pivot_ratio)
            y = lu.solve(rhs)
            method = "sparse LU"
        else:
            try:
                c, lower = scipy.linalg.cho_factor(Ks, lower=False, check_finite=False)
            except np.linalg.LinAlgError as exc:
                raise SingularMatrixError(
                    f"Unstable structure: reduced stiffness matrix is not positive definite ({exc})"
                )
            check_pivots(np.diag(c) ** 2, self.pivot_ratio)
            y = scipy.linalg.cho_solve((c, lower), rhs, check_finite=False)
            method = "Cholesky"

        u = s * y
        residual = _relative_residual(K, u, F)
        logger.debug("%s solve: n=%d residual=%.2e", method, n, residual)
        return SolveOutcome(u=u, method=method, residual=residual)


class ConjugateGradientSolver(LinearSolver):
    """
    Jacobi-preconditioned conjugate gradient (scipy.sparse.linalg.cg).

    Stops when ||F - K·u|| <= tolerance · ||F|| or after max_iterations.
    Running out of iterations is not an error: the last iterate is returned
    with converged=False and a warning. After the solve the matrix is checked
    for rank deficiency, which CG alone cannot see when the loads happen to
    be orthogonal to the rigid-body modes.

    COST: that check is one full sparse LU of the scaled matrix per solve, the
    same factorisation the direct path would use. Iterative solves are
    therefore never cheaper than direct ones; choose CG to exercise the
    iterative path or its convergence report, not for speed.
    """
    name = "conjugate gradient"

    def __init__(self, tolerance: float = 1e-10, max_iterations: int = 1000,
                 pivot_ratio: float = 1e-12):
        self.tolerance = tolerance
        self.max_iterations = max_iterations
        self.pivot_ratio = pivot_ratio

    def solve(self, K: Matrix, F: np.ndarray) -> SolveOutcome:
        n = K.shape[0]
        if n == 0:
            return SolveOutcome(u=np.zeros(0), method=self.name, iterations=0, residual=0.0)

        diag = _diagonal(K)
        if np.any(diag <= 0.0):
            # let the scaling report which DOF is loose
            jacobi_scaling(K)
        M = sp.diags(1.0 / diag)

        iterations = 0

        def _count(_xk):
            nonlocal iterations
            iterations += 1

        u, info = spla.cg(
            K, F,
            rtol=self.tolerance,
            atol=0.0,
            maxiter=self.max_iterations,
            M=M,
            callback=_count,
        )
        if info < 0:
            raise SingularMatrixError(f"Conjugate gradient breakdown (info={info})")

        check_stability(K, self.pivot_ratio)

        residual = _relative_residual(K, u, F)
        outcome = SolveOutcome(
            u=np.asarray(u, dtype=float),
            method=self.name,
            iterations=iterations,
            residual=residual,
            converged=info == 0,
        )
        if info > 0:
            outcome.warning = (
                f"Conjugate gradient did not converge in {self.max_iterations} iterations "
                f"(relative residual {residual:.2e}, tolerance {self.tolerance:.0e}); "
                "returning best estimate"
            )
            logger.warning(outcome.warning)
        else:
            logger.debug("CG converged: n=%d iterations=%d residual=%.2e", n, iterations, residual)
        return outcome


def _relative_residual(K: Matrix, u: np.ndarray, F: np.ndarray) -> float:
    norm_f = float(np.linalg.norm(F))
    r = float(np.linalg.norm(np.asarray(K @ u).ravel() - F))
    return r / norm_f if norm_f > 0.0 else r


def make_solver(config: AnalysisConfig) -> LinearSolver:
    """Pick the solver strategy from the configuration."""
    if config.use_conjugate_gradient:
        return ConjugateGradientSolver(
            tolerance=config.convergence_tolerance,
            max_iterations=config.max_iterations,
            pivot_ratio=config.singular_pivot_ratio,
        )
    return DirectSolver(pivot_ratio=config.singular_pivot_ratio)
