"""Cutting-plane training of the structural SVM (n-slack formulation).

Training never enumerates the exponential set of competing labels. Instead,
each pass over the training set asks the decoder for the most violated label
of every example under the current weights, keeps the constraints that are
violated by more than `epsilon` beyond the example's current slack, and
re-solves the QP over every constraint found so far (the working set). The
run converges once a whole pass adds no constraint.

The working set only grows. The bounded per-example constraint cache holds
the most recent (or most binding) constraints of each example and is used to
estimate its slack cheaply; evicting from the cache never removes a
constraint from the QP. With `ccache_size == 0` the slack is computed over
the example's full working set.

The trainer is a small state machine:

    INIT -> ITERATING -> CONVERGED   (a pass added no constraint)
                      -> STOPPED     (`max_iterations` passes done)
                      -> FAILED      (the QP solver raised `SolverError`)

A failed run produces no model; the `SolverError` propagates to the caller.
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
from tqdm import tqdm

from .config import LearningParameters
from .constraint_cache import Constraint, ConstraintCache
from .io_utils import feature_space_size as corpus_feature_space_size
from .loss import get_loss
from .model import StructModel
from .qp import QPSolver, SolverError, solve_dual, support_vector_count
from .tags import TagRegistry
from .types import Example, Label, Pattern
from .viterbi import find_most_violated_label

Decoder = Callable[[Pattern, StructModel, Optional[Label]], Label]


class TrainingState(str, Enum):
    INIT = "init"
    ITERATING = "iterating"
    CONVERGED = "converged"
    STOPPED = "stopped"
    FAILED = "failed"


@dataclass
class TrainingResult:
    model: StructModel
    state: TrainingState
    iterations: int
    num_constraints: int

    @property
    def converged(self) -> bool:
        return self.state is TrainingState.CONVERGED


class CuttingPlaneTrainer:
    """
    One training run over a fixed set of examples.

    Args:
        examples: Training examples. Examples with an empty label are
                  skipped (they carry no supervision).
        registry: Tag registry the labels were built with. It is frozen when
                  training starts, since the model layout depends on its size.
        params: Learning parameters.
        decoder: Separation oracle returning the most violated label.
        solver: QP solver over `(example_index, constraint)` pairs.
        verbose: Print per-iteration status and show progress bars.
    """

    def __init__(
        self,
        examples: Sequence[Example],
        registry: TagRegistry,
        params: LearningParameters,
        decoder: Decoder = find_most_violated_label,
        solver: QPSolver = solve_dual,
        verbose: bool = True,
    ) -> None:
        self.examples = list(examples)
        self.registry = registry
        self.params = params
        self.decoder = decoder
        self.solver = solver
        self.verbose = verbose

        self.state = TrainingState.INIT
        self.iteration = 0
        self.model: Optional[StructModel] = None
        self.cache = ConstraintCache(params.ccache_size, params.cache_policy)
        self.loss = get_loss(params.loss_function)
        self._working: Dict[int, List[Constraint]] = {}
        self._true_psi: List[Optional[np.ndarray]] = []

    def _log(self, message: str) -> None:
        if self.verbose:
            print(message)

    def initialize(self) -> StructModel:
        """
        Fixes the feature space and tag set, and validates every example.

        Raises:
            ValueError: If there are no examples or tags, or if an example does
                        not fit the feature space or tag set.
        """
        if not self.examples:
            raise ValueError("Cannot train on an empty example set.")
        self.registry.freeze()
        num_tags = self.registry.get_num_tags()
        if num_tags == 0:
            raise ValueError("No tags registered; cannot build the model.")

        observed = corpus_feature_space_size(self.examples)
        F = self.params.feature_space_size or observed
        if observed > F:
            raise ValueError(
                f"Training data uses {observed} features, but feature_space_size is {F}."
            )

        model = StructModel.empty(F, num_tags, self.registry.tags())
        for idx, ex in enumerate(self.examples):
            model.validate_pattern(ex.pattern)
            if ex.label.is_empty():
                continue
            if ex.label.get_length() != ex.pattern.get_length():
                raise ValueError(
                    f"Example {idx}: pattern has {ex.pattern.get_length()} tokens "
                    f"but label has {ex.label.get_length()} tags."
                )
            bad = [t for t in ex.label if t < 0 or t >= num_tags]
            if bad:
                raise ValueError(f"Example {idx}: unknown tag IDs {bad}.")

        # psi(x, y_true) is needed for every constraint, so compute it once.
        self._true_psi = [
            None if ex.label.is_empty() else model.joint_feature_map(ex.pattern, ex.label)
            for ex in self.examples
        ]
        self.model = model
        self.iteration = 0
        self.cache.clear()
        self._working = {}
        self._log(
            f"Initialized model: {num_tags} tags, {F} features, size_psi={model.size_psi}."
        )
        return model

    def _make_constraint(self, idx: int, y_hat: Label) -> Constraint:
        ex = self.examples[idx]
        loss = self.loss(ex.label, y_hat)
        delta = self._true_psi[idx] - self.model.joint_feature_map(ex.pattern, y_hat)
        if not self.params.margin_rescaling:
            delta = delta * loss
        return Constraint(delta_psi=delta, margin=loss, label=y_hat)

    def _current_slack(self, idx: int) -> float:
        if self.cache.enabled:
            return self.cache.slack(idx, self.model.w)
        violations = [c.violation(self.model.w) for c in self._working.get(idx, [])]
        return max([0.0] + violations)

    def _add_constraint(self, idx: int, constraint: Constraint) -> bool:
        """Adds a constraint to the working set; False if its label is already there."""
        entries = self._working.setdefault(idx, [])
        if any(c.label == constraint.label for c in entries):
            return False
        entries.append(constraint)
        self.cache.add(idx, constraint, self.model.w)
        return True

    def _active_constraints(self) -> List[Tuple[int, Constraint]]:
        return [(idx, c) for idx in sorted(self._working) for c in self._working[idx]]

    def _resolve(self) -> None:
        constraints = self._active_constraints()
        try:
            solution = self.solver(constraints, self.params, self.model.size_psi)
        except SolverError:
            self.state = TrainingState.FAILED
            raise
        w = np.asarray(solution.w, dtype=np.float64)
        if w.shape != (self.model.size_psi,):
            self.state = TrainingState.FAILED
            raise SolverError(
                f"Solver returned {w.shape[0]} weights, expected size_psi={self.model.size_psi}."
            )
        self.model.w = w
        self.model.svm_model = {
            "objective": solution.objective,
            "num_constraints": len(constraints),
            "num_support_vectors": support_vector_count(solution),
            "iterations": self.iteration,
            "alphas": solution.alphas,
        }
        if solution.status != "optimal":
            self._log(f"QP solver status '{solution.status}' at iteration {self.iteration}.")

    def step(self) -> int:
        """
        Runs one pass over the training set.

        Returns:
            The number of new constraints found during the pass.
        """
        if self.model is None:
            self.initialize()
        self.state = TrainingState.ITERATING
        self.iteration += 1
        eps = self.params.epsilon
        new_constraints = 0
        pending = 0

        for idx in tqdm(
            range(len(self.examples)),
            desc=f"Iteration {self.iteration}",
            disable=not self.verbose,
            leave=False,
        ):
            ex = self.examples[idx]
            if ex.label.is_empty():
                continue
            y_hat = self.decoder(ex.pattern, self.model, ex.label)
            if y_hat == ex.label:
                continue
            constraint = self._make_constraint(idx, y_hat)
            if constraint.violation(self.model.w) - self._current_slack(idx) <= eps:
                continue
            if not self._add_constraint(idx, constraint):
                continue

            new_constraints += 1
            pending += 1
            if pending >= self.params.newconstretrain:
                self._resolve()
                pending = 0

        if pending:
            self._resolve()
        self._log(
            f"Iteration {self.iteration}: {new_constraints} new constraints, "
            f"{len(self._active_constraints())} active, "
            f"objective={self.model.svm_model.get('objective', 0.0):.4f}"
        )
        return new_constraints

    def fit(self) -> TrainingResult:
        """Trains until convergence or until `max_iterations` passes are done."""
        self.initialize()
        while self.iteration < self.params.max_iterations:
            if self.step() == 0:
                self.state = TrainingState.CONVERGED
                break
        else:
            self.state = TrainingState.STOPPED
            self._log(
                f"Stopped after {self.iteration} iterations without reaching epsilon={self.params.epsilon}."
            )

        if self.state is TrainingState.CONVERGED:
            self._log(f"Converged after {self.iteration} iterations.")
        return TrainingResult(
            model=self.model,
            state=self.state,
            iterations=self.iteration,
            num_constraints=len(self._active_constraints()),
        )


def train(
    examples: Sequence[Example],
    registry: TagRegistry,
    params: LearningParameters,
    decoder: Decoder = find_most_violated_label,
    solver: QPSolver = solve_dual,
    verbose: bool = True,
) -> TrainingResult:
    """Convenience wrapper around `CuttingPlaneTrainer(...).fit()`."""
    trainer = CuttingPlaneTrainer(
        examples, registry, params, decoder=decoder, solver=solver, verbose=verbose
    )
    return trainer.fit()
