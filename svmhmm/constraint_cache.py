"""Per-example bounded cache of cutting-plane constraints.

Each constraint says that the true label of an example should outscore a
competing label by a margin: `w . delta_psi >= margin - xi_i`. The cache keeps
at most `capacity` constraints per example; when it is full, one constraint is
evicted according to the configured policy. A capacity of 0 keeps nothing.
The cache only bounds slack lookups; the trainer keeps every constraint it
has found in a separate working set for the QP.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Tuple

import numpy as np

from .config import CACHE_POLICIES
from .types import Label


@dataclass
class Constraint:
    """
    One linear constraint `w . delta_psi >= margin - xi`.

    Attributes:
        delta_psi: `psi(x, y_true) - psi(x, y_hat)`, scaled by the loss
                   under slack rescaling.
        margin: Required margin (the loss of `label`).
        label: The competing label that produced the constraint.
    """

    delta_psi: np.ndarray
    margin: float
    label: Label

    def violation(self, w: np.ndarray) -> float:
        """How far `w` is from satisfying the constraint with zero slack."""
        return float(self.margin - np.dot(w, self.delta_psi))


EvictionPolicy = Callable[[List[Constraint], np.ndarray], int]


def _evict_oldest(constraints: List[Constraint], w: np.ndarray) -> int:
    return 0


def _evict_least_binding(constraints: List[Constraint], w: np.ndarray) -> int:
    # Smallest violation = furthest from the margin = least binding.
    return int(np.argmin([c.violation(w) for c in constraints]))


EVICTION_POLICIES: Dict[str, EvictionPolicy] = {
    "oldest": _evict_oldest,
    "least_binding": _evict_least_binding,
}


class ConstraintCache:
    """Holds up to `capacity` constraints for each training example."""

    def __init__(self, capacity: int, policy: str = "oldest") -> None:
        if capacity < 0:
            raise ValueError(f"Cache capacity must be >= 0, got {capacity}.")
        if policy not in CACHE_POLICIES:
            raise ValueError(f"Unknown eviction policy '{policy}'.")
        self.capacity = capacity
        self.policy = policy
        self._evict = EVICTION_POLICIES[policy]
        self._entries: Dict[int, List[Constraint]] = {}

    @property
    def enabled(self) -> bool:
        return self.capacity > 0

    def get(self, example_index: int) -> List[Constraint]:
        return list(self._entries.get(example_index, []))

    def contains(self, example_index: int, label: Label) -> bool:
        return any(c.label == label for c in self._entries.get(example_index, []))

    def add(self, example_index: int, constraint: Constraint, w: np.ndarray) -> List[Constraint]:
        """
        Caches `constraint` for an example, evicting if the cache is full.

        Returns:
            The evicted constraints (empty when nothing was evicted). With a
            capacity of 0 nothing is stored and nothing is returned.
        """
        if not self.enabled:
            return []
        entries = self._entries.setdefault(example_index, [])
        if any(c.label == constraint.label for c in entries):
            return []
        evicted = []
        while len(entries) >= self.capacity:
            evicted.append(entries.pop(self._evict(entries, w)))
        entries.append(constraint)
        return evicted

    def slack(self, example_index: int, w: np.ndarray) -> float:
        """Current slack of an example: its largest cached violation, at least 0."""
        entries = self._entries.get(example_index)
        if not entries:
            return 0.0
        return max(0.0, max(c.violation(w) for c in entries))

    def all_constraints(self) -> Iterator[Tuple[int, Constraint]]:
        for example_index in sorted(self._entries):
            for constraint in self._entries[example_index]:
                yield example_index, constraint

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return sum(len(v) for v in self._entries.values())
