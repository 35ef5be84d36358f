"""The learned structural model and the joint feature map it scores.

For first-order HMM labeling with `F` features per token and `T` tags, the
joint feature vector psi(x, y) has one emission block of length `F` per tag,
followed by a `T x T` block of transition counts:

    [ emissions for tag 0 | ... | emissions for tag T-1 | transitions ]
      0 .. F-1                   (T-1)*F .. T*F-1         T*F .. T*F+T*T-1

so `size_psi = T*F + T*T`. The layout depends only on `F` and `T`, which are
fixed before the first QP solve; cached constraint vectors therefore stay
valid for the whole run.
"""
from __future__ import annotations
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np

from .config import INST_NAME, INST_VERSION
from .types import Label, Pattern


def compute_size_psi(feature_space_size: int, num_tags: int) -> int:
    return num_tags * feature_space_size + num_tags * num_tags


@dataclass
class StructModel:
    """
    A trained (or in-training) structural model.

    Attributes:
        w: Dense weight vector of length `size_psi`.
        size_psi: Dimensionality of the joint feature map.
        num_tags: Size of the output alphabet.
        feature_space_size: Number of features per token.
        tags: Tag strings ordered by ID, kept so a saved model can rebuild
              its registry.
        svm_model: Solver state opaque to this layer (dual variables,
                   objective, iteration count, ...).
    """

    w: np.ndarray
    size_psi: int
    num_tags: int
    feature_space_size: int
    tags: List[str] = field(default_factory=list)
    svm_model: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.w = np.asarray(self.w, dtype=np.float64)
        expected = compute_size_psi(self.feature_space_size, self.num_tags)
        if self.size_psi != expected:
            raise ValueError(
                f"size_psi={self.size_psi} does not match {self.num_tags} tags x "
                f"{self.feature_space_size} features (expected {expected})."
            )
        if self.w.shape != (self.size_psi,):
            raise ValueError(
                f"Weight vector has shape {self.w.shape}, expected ({self.size_psi},)."
            )

    @classmethod
    def empty(cls, feature_space_size: int, num_tags: int, tags: Optional[List[str]] = None) -> "StructModel":
        """Creates a model with `w = 0`."""
        size_psi = compute_size_psi(feature_space_size, num_tags)
        return cls(
            w=np.zeros(size_psi, dtype=np.float64),
            size_psi=size_psi,
            num_tags=num_tags,
            feature_space_size=feature_space_size,
            tags=list(tags or []),
        )

    @property
    def transition_offset(self) -> int:
        return self.num_tags * self.feature_space_size

    def emission_weights(self, tag_id: int) -> np.ndarray:
        """View of the length-`F` emission weights of one tag."""
        start = tag_id * self.feature_space_size
        return self.w[start:start + self.feature_space_size]

    def transition_matrix(self) -> np.ndarray:
        """`T x T` view of the transition weights, indexed `[prev, cur]`."""
        offset = self.transition_offset
        return self.w[offset:offset + self.num_tags * self.num_tags].reshape(
            self.num_tags, self.num_tags
        )

    def emission_scores(self, pattern: Pattern) -> np.ndarray:
        """`n x T` matrix of per-position, per-tag emission scores."""
        n = pattern.get_length()
        scores = np.zeros((n, self.num_tags), dtype=np.float64)
        for t in range(self.num_tags):
            weights = self.emission_weights(t)
            for i in range(n):
                scores[i, t] = pattern.get_token(i).dot_product(weights)
        return scores

    def validate_pattern(self, pattern: Pattern) -> None:
        """
        Checks that every feature index of `pattern` fits the feature space.

        Dot products do not bounds-check, so this runs once per example before
        training or classification.

        Raises:
            ValueError: If a token references a feature index >= `feature_space_size`.
        """
        for i, token in enumerate(pattern):
            max_index = token.get_feature_map().max_index()
            if max_index >= self.feature_space_size:
                raise ValueError(
                    f"Token {i} ('{token.get_string()}') uses feature index {max_index}, "
                    f"but the feature space has {self.feature_space_size} features."
                )

    def joint_feature_map(self, pattern: Pattern, label: Label) -> np.ndarray:
        """Dense psi(pattern, label) of length `size_psi`."""
        if pattern.get_length() != label.get_length():
            raise ValueError(
                f"Pattern has {pattern.get_length()} tokens but label has "
                f"{label.get_length()} tags."
            )
        psi = np.zeros(self.size_psi, dtype=np.float64)
        F = self.feature_space_size
        T = self.num_tags
        offset = self.transition_offset
        prev = None
        for i in range(pattern.get_length()):
            tag = label.get_tag(i)
            pattern.get_token(i).get_feature_map().add_to(psi, offset=tag * F)
            if prev is not None:
                psi[offset + prev * T + tag] += 1.0
            prev = tag
        return psi

    def score(self, pattern: Pattern, label: Label) -> float:
        """`w . psi(pattern, label)`."""
        score = 0.0
        transitions = self.transition_matrix()
        prev = None
        for i in range(pattern.get_length()):
            tag = label.get_tag(i)
            score += pattern.get_token(i).dot_product(self.emission_weights(tag))
            if prev is not None:
                score += transitions[prev, tag]
            prev = tag
        return float(score)


def save_model(path: str, model: StructModel) -> None:
    """
    Writes a model as JSON.

    The dual variables are summarised (support vector count, objective)
    rather than stored; classification only needs `w`.
    """
    data = {
        "version": f"{INST_NAME} {INST_VERSION}",
        "size_psi": model.size_psi,
        "feature_space_size": model.feature_space_size,
        "num_tags": model.num_tags,
        "tags": list(model.tags),
        "svm_model": {k: v for k, v in model.svm_model.items() if k != "alphas"},
        "w": model.w.tolist(),
    }
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


def load_model(path: str) -> StructModel:
    """
    Reads a model written by `save_model`.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not valid JSON or `w` and `size_psi` disagree.
        KeyError: If a required field is missing.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Model file not found at: {path}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Error decoding JSON from {path}: {e}")

    for key in ("size_psi", "feature_space_size", "tags", "w"):
        if key not in data:
            raise KeyError(f"Model file {path} is missing '{key}'.")

    w = np.asarray(data["w"], dtype=np.float64)
    if len(w) != int(data["size_psi"]):
        raise ValueError(
            f"Model file {path} has {len(w)} weights but size_psi={data['size_psi']}."
        )
    tags = [str(t) for t in data["tags"]]
    return StructModel(
        w=w,
        size_psi=int(data["size_psi"]),
        num_tags=int(data.get("num_tags", len(tags))),
        feature_space_size=int(data["feature_space_size"]),
        tags=tags,
        svm_model=dict(data.get("svm_model", {})),
    )
