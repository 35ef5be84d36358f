"""First-order Viterbi decoding over a `StructModel`.

`classify` returns the tag sequence maximising `w . psi(x, y)`.
`find_most_violated_label` is the separation oracle used during training: it
adds the per-position Hamming loss against the true label to the emission
scores, which yields the argmax of `w . psi(x, y) + loss(y_true, y)` exactly
because Hamming loss decomposes over positions.

Both functions return a freshly allocated `Label`, so callers may mutate the
result without affecting any shared label.
"""
from __future__ import annotations
from typing import Optional

import numpy as np

from .loss import per_position_loss
from .model import StructModel
from .types import Label, Pattern


def viterbi(emissions: np.ndarray, transitions: np.ndarray) -> Label:
    """
    Finds the best path through an `n x T` emission score lattice.

    Args:
        emissions: Score of tag `t` at position `i` in `emissions[i, t]`.
        transitions: Score of moving from tag `p` to tag `c` in
                     `transitions[p, c]`.

    Returns:
        The highest-scoring tag sequence. Ties resolve to the lowest tag ID.
    """
    n, num_tags = emissions.shape
    if n == 0 or num_tags == 0:
        return Label()

    delta = emissions[0].copy()
    backpointers = np.zeros((n, num_tags), dtype=np.intp)
    for i in range(1, n):
        # candidates[p, c] = best score ending in p, then p -> c
        candidates = delta[:, np.newaxis] + transitions
        backpointers[i] = np.argmax(candidates, axis=0)
        delta = candidates[backpointers[i], np.arange(num_tags)] + emissions[i]

    path = [0] * n
    path[-1] = int(np.argmax(delta))
    for i in range(n - 1, 0, -1):
        path[i - 1] = int(backpointers[i, path[i]])
    return Label(path)


def classify(pattern: Pattern, model: StructModel) -> Label:
    """Returns the highest-scoring label for `pattern`."""
    return viterbi(model.emission_scores(pattern), model.transition_matrix())


def find_most_violated_label(
    pattern: Pattern,
    model: StructModel,
    true_label: Optional[Label] = None,
) -> Label:
    """
    Loss-augmented decoding for margin rescaling.

    Without a true label (or with an empty one) this is plain classification.

    Raises:
        ValueError: If `true_label` is non-empty and its length differs from
                    the pattern's.
    """
    if true_label is None or true_label.is_empty():
        return classify(pattern, model)
    if true_label.get_length() != pattern.get_length():
        raise ValueError(
            f"Pattern has {pattern.get_length()} tokens but label has "
            f"{true_label.get_length()} tags."
        )
    emissions = model.emission_scores(pattern) + per_position_loss(true_label, model.num_tags)
    return viterbi(emissions, model.transition_matrix())
