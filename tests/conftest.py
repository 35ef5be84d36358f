"""Shared fixtures: project root on `sys.path` and a tiny tagged corpus."""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

import pytest


def _ensure_project_root_on_path() -> None:
    project_root = Path(__file__).resolve().parents[1]
    if str(project_root) not in sys.path:
        sys.path.insert(0, str(project_root))


_ensure_project_root_on_path()

from svmhmm.tags import TagRegistry
from svmhmm.types import Example, Label, Pattern, Token

# One-hot word features for the toy corpus.
TOY_VOCAB: Dict[str, int] = {"dog": 0, "cat": 1, "runs": 2, "sleeps": 3, "the": 4}

TOY_SENTENCES: List[List[Tuple[str, str]]] = [
    [("the", "D"), ("dog", "N"), ("runs", "V")],
    [("the", "D"), ("cat", "N"), ("sleeps", "V")],
    [("dog", "N"), ("sleeps", "V")],
    [("cat", "N"), ("runs", "V")],
]


def make_token(word: str, features: Dict[int, float]) -> Token:
    token = Token(word)
    for index, value in features.items():
        token.get_feature_map().set(index, value)
    return token


def build_examples(sentences: Sequence[Sequence[Tuple[str, str]]], registry: TagRegistry) -> List[Example]:
    examples = []
    for qid, sentence in enumerate(sentences, start=1):
        pattern = Pattern()
        label = Label()
        for word, tag in sentence:
            pattern.append_token(make_token(word, {TOY_VOCAB[word]: 1.0}))
            label.append_tag(registry.register_tag(tag))
        examples.append(Example(pattern, label, qid=qid))
    return examples


@pytest.fixture
def registry() -> TagRegistry:
    return TagRegistry()


@pytest.fixture
def toy_examples(registry: TagRegistry) -> List[Example]:
    return build_examples(TOY_SENTENCES, registry)


@pytest.fixture
def svmhmm_corpus(tmp_path: Path) -> Path:
    """The toy corpus written in the SVM-HMM file format (1-based features)."""
    lines = []
    for qid, sentence in enumerate(TOY_SENTENCES, start=1):
        for word, tag in sentence:
            lines.append(f"{tag} qid:{qid} {TOY_VOCAB[word] + 1}:1 # {word}")
    path = tmp_path / "train.dat"
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path
