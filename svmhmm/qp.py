"""Dual quadratic program over the cached cutting-plane constraints.

The n-slack structural SVM primal is

    min 1/2 ||w||^2 + C * sum_i xi_i            (L1 slacks)
    min 1/2 ||w||^2 + C/2 * sum_i xi_i^2        (L2 slacks)
    s.t. w . d_j >= m_j - xi_i   for every constraint j of example i

We solve its dual with cvxopt (as a minimisation, hence the sign flips):

    min 1/2 a^T (K + R) a - m^T a
    s.t. a >= 0, and sum_{j in i} a_j <= C per example (L1 only)

with `K = D D^T` and, for L2 slacks, `R = B^T B / C` where `B` maps each
constraint to its example. The primal solution is `w = D^T a`.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Dict, Sequence, Tuple

import cvxopt
import cvxopt.solvers
import numpy as np

from .config import LearningParameters
from .constraint_cache import Constraint

RIDGE = 1e-8


class SolverError(RuntimeError):
    """Raised when the QP is infeasible or the solver fails numerically."""


@dataclass
class QPSolution:
    """`status` is "optimal", or "regularized" when the ridge retry was needed."""

    w: np.ndarray
    alphas: np.ndarray
    objective: float
    status: str
    slacks: Dict[int, float] = field(default_factory=dict)


QPSolver = Callable[[Sequence[Tuple[int, Constraint]], LearningParameters, int], QPSolution]


def _build_problem(
    constraints: Sequence[Tuple[int, Constraint]],
    params: LearningParameters,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    D = np.vstack([c.delta_psi for _, c in constraints])
    margins = np.array([c.margin for _, c in constraints], dtype=np.float64)
    examples = sorted({i for i, _ in constraints})
    row_of = {ex: r for r, ex in enumerate(examples)}
    blocks = np.zeros((len(examples), len(constraints)), dtype=np.float64)
    for j, (i, _) in enumerate(constraints):
        blocks[row_of[i], j] = 1.0

    P = D @ D.T
    n = len(constraints)
    if params.slack_norm == 2:
        P = P + blocks.T @ blocks / params.C
        G = -np.eye(n)
        h = np.zeros(n)
    else:
        G = np.vstack((-np.eye(n), blocks))
        h = np.hstack((np.zeros(n), np.full(len(examples), params.C)))
    return D, P, margins, G, h


def _qp(P: np.ndarray, q: np.ndarray, G: np.ndarray, h: np.ndarray, tol: float) -> Dict:
    options = {"show_progress": False, "feastol": tol}
    try:
        return cvxopt.solvers.qp(
            cvxopt.matrix(P), cvxopt.matrix(q), cvxopt.matrix(G), cvxopt.matrix(h),
            options=options,
        )
    except (ValueError, ArithmeticError) as e:
        return {"status": f"error: {e}"}


def solve_dual(
    constraints: Sequence[Tuple[int, Constraint]],
    params: LearningParameters,
    size_psi: int,
) -> QPSolution:
    """
    Solves the dual QP over `(example_index, constraint)` pairs.

    Returns:
        A `QPSolution` whose `w` has length `size_psi`. An empty constraint
        set yields `w = 0`.

    Raises:
        SolverError: If cvxopt does not reach an optimal solution, even after
                     adding a small ridge to the Gram matrix.
    """
    if not constraints:
        return QPSolution(
            w=np.zeros(size_psi, dtype=np.float64),
            alphas=np.zeros(0, dtype=np.float64),
            objective=0.0,
            status="optimal",
        )

    D, P, margins, G, h = _build_problem(constraints, params)
    if D.shape[1] != size_psi:
        raise ValueError(
            f"Constraint vectors have length {D.shape[1]}, expected size_psi={size_psi}."
        )
    q = -margins
    tol = min(1e-6, params.epsilon * 1e-3)

    status = "optimal"
    solution = _qp(P, q, G, h, tol)
    if solution["status"] != "optimal":
        status = "regularized"
        solution = _qp(P + RIDGE * np.eye(P.shape[0]), q, G, h, tol)
        if solution["status"] != "optimal":
            raise SolverError(f"QP solver failed with status '{solution['status']}'.")

    alphas = np.maximum(np.ravel(solution["x"]), 0.0)
    w = alphas @ D
    slacks: Dict[int, float] = {}
    for (i, c) in constraints:
        slacks[i] = max(slacks.get(i, 0.0), c.violation(w))
    # Dual minimisation objective, flipped back to the maximisation value.
    objective = -float(solution["primal objective"])
    return QPSolution(w=w, alphas=alphas, objective=objective, status=status, slacks=slacks)


def support_vector_count(solution: QPSolution, threshold: float = 1e-6) -> int:
    return int(np.sum(solution.alphas > threshold))

