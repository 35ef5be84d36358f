"""Example representation: tokens, patterns (x) and labels (y).

Patterns and labels hold their sequence behind a shared list handle so that
duplicating an example is O(1). Copies alias the same storage and there is no
copy-on-write: a mutation through one handle is visible through every handle
sharing it. Mutate only while building a corpus, or on a Label that was freshly
allocated or obtained through `Label.detach`.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

import numpy as np

__all__ = ["FeatureVector", "Token", "Pattern", "Label", "Example", "TestStats"]


class FeatureVector:
    """
    A sparse feature vector mapping feature indices to values.

    The index/value arrays used by `dot` are built lazily and dropped on every
    mutation, so repeated dot products against changing weights stay cheap.
    """

    __slots__ = ("_values", "_arrays")

    def __init__(self, values: Optional[Dict[int, float]] = None) -> None:
        self._values: Dict[int, float] = {}
        self._arrays: Optional[Tuple[np.ndarray, np.ndarray]] = None
        if values:
            for index, value in values.items():
                self.set(index, value)

    def set(self, index: int, value: float) -> None:
        if index < 0:
            raise ValueError(f"Feature index must be non-negative, got {index}.")
        self._values[int(index)] = float(value)
        self._arrays = None

    def add(self, index: int, value: float = 1.0) -> None:
        """Adds `value` to the feature at `index` (missing features count as 0)."""
        if index < 0:
            raise ValueError(f"Feature index must be non-negative, got {index}.")
        index = int(index)
        self._values[index] = self._values.get(index, 0.0) + float(value)
        self._arrays = None

    def get(self, index: int) -> float:
        return self._values.get(index, 0.0)

    def items(self) -> List[Tuple[int, float]]:
        return sorted(self._values.items())

    def indices(self) -> List[int]:
        return sorted(self._values)

    def max_index(self) -> int:
        return max(self._values) if self._values else -1

    def _as_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        if self._arrays is None:
            n = len(self._values)
            idx = np.fromiter(self._values.keys(), dtype=np.intp, count=n)
            vals = np.fromiter(self._values.values(), dtype=np.float64, count=n)
            self._arrays = (idx, vals)
        return self._arrays

    def dot(self, weights: np.ndarray) -> float:
        """Sparse-dense dot product. Indices are not bounds-checked."""
        if not self._values:
            return 0.0
        idx, vals = self._as_arrays()
        return float(np.dot(weights[idx], vals))

    def add_to(self, dense: np.ndarray, scale: float = 1.0, offset: int = 0) -> None:
        """Adds `scale * self` into `dense[offset:]` in place."""
        if not self._values:
            return
        idx, vals = self._as_arrays()
        np.add.at(dense, idx + offset, scale * vals)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FeatureVector):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        return f"FeatureVector({dict(self.items())!r})"


class Token:
    """
    One observed element of a sequence (an HMM emission).

    Attributes:
        text: Textual form of the token; may be empty (e.g. when the corpus
              only carries numeric features).
    """

    __slots__ = ("text", "_features")

    def __init__(self, text: str = "") -> None:
        self.text = text
        self._features = FeatureVector()

    def get_string(self) -> str:
        return self.text

    def set_string(self, text: str) -> None:
        self.text = text

    def get_feature_map(self) -> FeatureVector:
        # The only way to manipulate the feature list.
        return self._features

    def dot_product(self, weights: np.ndarray) -> float:
        """Dot product of the sparse features with a dense weight array."""
        return self._features.dot(weights)

    def copy(self) -> "Token":
        """O(1) copy that shares the feature vector with this token."""
        clone = Token.__new__(Token)
        clone.text = self.text
        clone._features = self._features
        return clone

    __copy__ = copy

    def __repr__(self) -> str:
        return f"Token({self.text!r}, {len(self._features)} features)"


class Pattern:
    """The x-part of an example: an ordered sequence of tokens."""

    __slots__ = ("_emissions",)

    def __init__(self, tokens: Optional[List[Token]] = None) -> None:
        self._emissions: List[Token] = tokens if tokens is not None else []

    def get_length(self) -> int:
        return len(self._emissions)

    def get_token(self, index: int) -> Token:
        return self._emissions[index]

    def get_last_token(self) -> Token:
        return self._emissions[-1]

    def append_token(self, token: Token) -> None:
        self._emissions.append(token)

    def set_emissions(self, tokens: List[Token]) -> None:
        """Adopts `tokens` as the backing storage (no copy is made)."""
        self._emissions = tokens

    def copy(self) -> "Pattern":
        """O(1) copy that aliases this pattern's token list."""
        return Pattern(self._emissions)

    __copy__ = copy

    def shares_storage(self, other: "Pattern") -> bool:
        return self._emissions is other._emissions

    def __len__(self) -> int:
        return len(self._emissions)

    def __iter__(self) -> Iterator[Token]:
        return iter(self._emissions)

    def __repr__(self) -> str:
        return f"Pattern({[t.text for t in self._emissions]!r})"


class Label:
    """
    The y-part of an example: an ordered sequence of tag IDs.

    An empty label is a valid value meaning "no label" (unlabeled data) or
    "no prediction yet".
    """

    __slots__ = ("_tags",)

    def __init__(self, tags: Optional[List[int]] = None) -> None:
        self._tags: List[int] = tags if tags is not None else []

    def is_empty(self) -> bool:
        return not self._tags

    def get_length(self) -> int:
        return len(self._tags)

    def get_tag(self, index: int) -> int:
        return self._tags[index]

    def get_last_tag(self) -> int:
        return self._tags[-1]

    def append_tag(self, tag_id: int) -> None:
        self._tags.append(tag_id)

    # Be careful calling these on a shared label.
    def set_length(self, length: int) -> None:
        """Truncates, or pads with tag 0, to exactly `length` positions."""
        if length < 0:
            raise ValueError(f"Label length must be non-negative, got {length}.")
        if length < len(self._tags):
            del self._tags[length:]
        else:
            self._tags.extend([0] * (length - len(self._tags)))

    def set_tag(self, index: int, tag_id: int) -> None:
        self._tags[index] = tag_id

    def set_tags(self, tags: List[int]) -> None:
        """Adopts `tags` as the backing storage (no copy is made)."""
        self._tags = tags

    def copy(self) -> "Label":
        """O(1) copy that aliases this label's tag list."""
        return Label(self._tags)

    __copy__ = copy

    def detach(self) -> "Label":
        """Returns an unshared label with the same tags, safe to mutate."""
        return Label(list(self._tags))

    def shares_storage(self, other: "Label") -> bool:
        return self._tags is other._tags

    def as_tuple(self) -> Tuple[int, ...]:
        return tuple(self._tags)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Label):
            return NotImplemented
        return self._tags == other._tags

    __hash__ = None  # mutable

    def __len__(self) -> int:
        return len(self._tags)

    def __iter__(self) -> Iterator[int]:
        return iter(self._tags)

    def __repr__(self) -> str:
        return f"Label({self._tags!r})"


@dataclass
class Example:
    """A (pattern, label) pair. `qid` is the example ID from the corpus file."""

    pattern: Pattern
    label: Label
    qid: Optional[int] = None


@dataclass
class TestStats:
    """Counters accumulated while evaluating predictions."""

    __test__ = False  # not a pytest test class

    num_tokens: int = 0
    num_correct_tags: int = 0
    num_sequences: int = 0
    num_correct_sequences: int = 0

    @property
    def accuracy(self) -> float:
        return self.num_correct_tags / self.num_tokens if self.num_tokens else 0.0

    @property
    def sequence_accuracy(self) -> float:
        if not self.num_sequences:
            return 0.0
        return self.num_correct_sequences / self.num_sequences
