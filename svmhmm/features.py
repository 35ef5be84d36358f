"""Pluggable token feature extraction for plain-text corpora.

Corpora in the SVM-HMM format already carry numeric features per token and
need no extraction. For "word TAG" column files, `WordFeatureExtractor` turns
each token and its neighbours into discrete string features (word identity,
lowercase form, suffixes, shape) and interns them with a `FeatureIndex`.

The extractor only fills `Token.get_feature_map()`; any other object with an
`extract(pattern)` method can be used in its place.
"""
from __future__ import annotations
import json
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .types import Pattern


class FeatureIndex:
    """
    Interns feature names to dense indices.

    Once frozen, unknown feature names are dropped instead of growing the
    index, so test-time extraction never exceeds the trained feature space.
    """

    def __init__(self, names: Optional[Iterable[str]] = None) -> None:
        self._index: Dict[str, int] = {}
        self._names: List[str] = []
        self.frozen = False
        for name in names or []:
            self.add(name)

    def add(self, name: str) -> Optional[int]:
        idx = self._index.get(name)
        if idx is not None:
            return idx
        if self.frozen:
            return None
        idx = len(self._names)
        self._index[name] = idx
        self._names.append(name)
        return idx

    def get(self, name: str) -> Optional[int]:
        return self._index.get(name)

    def freeze(self) -> None:
        self.frozen = True

    def names(self) -> List[str]:
        return list(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def save(self, path: str) -> None:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump({"features": self._names}, f, ensure_ascii=False)

    @classmethod
    def load(cls, path: str) -> "FeatureIndex":
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise FileNotFoundError(f"Feature index not found at: {path}")
        except json.JSONDecodeError as e:
            raise ValueError(f"Error decoding JSON from {path}: {e}")
        names = data.get("features")
        if not isinstance(names, list):
            raise TypeError(f"Expected a 'features' list in {path}")
        index = cls(names)
        index.freeze()
        return index


def word_shape(word: str) -> str:
    """Collapses a word into a coarse shape, e.g. 'Paris' -> 'Xx', '1999' -> 'd'."""
    shape = []
    for ch in word:
        if ch.isupper():
            c = "X"
        elif ch.islower():
            c = "x"
        elif ch.isdigit():
            c = "d"
        else:
            c = ch
        if not shape or shape[-1] != c:
            shape.append(c)
    return "".join(shape)


class WordFeatureExtractor:
    """
    Binary word features for each token of a pattern.

    Args:
        index: Feature index to intern names into (a new one by default).
        window: Number of neighbouring words on each side to include.
        suffix_length: Longest suffix feature.
    """

    def __init__(self, index: Optional[FeatureIndex] = None, window: int = 1, suffix_length: int = 3) -> None:
        self.index = index if index is not None else FeatureIndex()
        self.window = window
        self.suffix_length = suffix_length

    @classmethod
    def from_custom_args(cls, args: Iterable[str], index: Optional[FeatureIndex] = None) -> "WordFeatureExtractor":
        """
        Builds an extractor from `key=value` custom arguments.

        Recognised keys are `window` and `suffix_length`; other arguments are
        left for other layers.
        """
        options: Dict[str, int] = {}
        for arg in args:
            key, sep, value = arg.partition("=")
            key = key.strip().lstrip("-")
            if not sep or key not in ("window", "suffix_length"):
                continue
            try:
                options[key] = int(value)
            except ValueError:
                raise ValueError(f"Custom argument '{arg}' needs an integer value.")
        return cls(index=index, **options)

    def feature_names(self, words: List[str], i: int) -> List[str]:
        word = words[i]
        lower = word.lower()
        names = ["bias", f"w={word}", f"lw={lower}", f"shape={word_shape(word)}"]
        for k in range(1, self.suffix_length + 1):
            if len(lower) >= k:
                names.append(f"suf{k}={lower[-k:]}")
        for offset in range(1, self.window + 1):
            prev_word = words[i - offset].lower() if i - offset >= 0 else "<s>"
            next_word = words[i + offset].lower() if i + offset < len(words) else "</s>"
            names.append(f"w[-{offset}]={prev_word}")
            names.append(f"w[+{offset}]={next_word}")
        return names

    def extract(self, pattern: Pattern) -> None:
        """Fills the feature map of every token in `pattern`."""
        words = [token.get_string() for token in pattern]
        for i, token in enumerate(pattern):
            features = token.get_feature_map()
            for name in self.feature_names(words, i):
                idx = self.index.add(name)
                if idx is not None:
                    features.set(idx, 1.0)
