"""Loss functions between a true and a predicted label.

Losses are registered under the integer IDs selected with `loss_function`.
Only losses that decompose over positions can be maximised exactly by the
Viterbi decoder, which is why Hamming loss is the default.
"""
from __future__ import annotations
from typing import Callable, Dict

import numpy as np

from .config import InvalidParameterError
from .types import Label

LossFunction = Callable[[Label, Label], float]


def hamming_loss(true: Label, pred: Label) -> float:
    """
    Counts the positions where `pred` disagrees with `true`.

    Positions present in only one of the two labels count as mismatches.
    """
    n = min(true.get_length(), pred.get_length())
    mismatches = sum(1 for i in range(n) if true.get_tag(i) != pred.get_tag(i))
    return float(mismatches + abs(true.get_length() - pred.get_length()))


LOSS_FUNCTIONS: Dict[int, LossFunction] = {
    1: hamming_loss,
}


def get_loss(loss_id: int) -> LossFunction:
    try:
        return LOSS_FUNCTIONS[loss_id]
    except KeyError:
        raise InvalidParameterError(
            f"Unknown loss function {loss_id}; registered: {sorted(LOSS_FUNCTIONS)}."
        )


def per_position_loss(true: Label, num_tags: int) -> np.ndarray:
    """
    Returns the `n x num_tags` Hamming loss matrix for `true`.

    Entry `[i, t]` is 1.0 when tag `t` at position `i` disagrees with the true
    tag, so summing along any path gives that path's Hamming loss.
    """
    n = true.get_length()
    losses = np.ones((n, num_tags), dtype=np.float64)
    for i in range(n):
        losses[i, true.get_tag(i)] = 0.0
    return losses
