"""Reading and writing sequence-labeling corpora.

Two input formats are supported:

-   **SVM-HMM format**: one token per line,
    `TAG qid:EXNUM FEATNUM:FEATVAL FEATNUM:FEATVAL ... # comment`.
    Consecutive lines with the same `qid` form one example. Feature numbers
    start at 1 in the file and are stored 0-based. The comment, if any,
    becomes the token's text.
-   **Column format**: `word TAG` per line with blank lines between
    sentences. Lines holding only a word are unlabeled. Features are added by
    a feature extractor.

Tags are registered in the order they are first read. When the registry is
already frozen (e.g. it was rebuilt from a trained model), unknown tags make
the whole example unlabeled if `skip_unknown_tags` is set and raise otherwise.
"""
from __future__ import annotations
from typing import Iterable, List, Optional, Sequence, Tuple

from .features import WordFeatureExtractor
from .tags import TagRegistry
from .types import Example, Label, Pattern, Token


def _parse_feature_line(line: str, lineno: int, path: str) -> Tuple[str, int, List[Tuple[int, float]], str]:
    content, _, comment = line.partition("#")
    parts = content.split()
    if len(parts) < 2:
        raise ValueError(f"{path}:{lineno}: expected 'TAG qid:N [features]', got '{line.strip()}'")
    tag, qid_field = parts[0], parts[1]
    if not qid_field.startswith("qid:"):
        raise ValueError(f"{path}:{lineno}: expected 'qid:' after the tag, got '{qid_field}'")
    try:
        qid = int(qid_field[4:])
    except ValueError:
        raise ValueError(f"{path}:{lineno}: invalid example ID '{qid_field}'")

    features = []
    last = 0
    for pair in parts[2:]:
        num, sep, val = pair.partition(":")
        try:
            featnum = int(num)
            value = float(val)
        except ValueError:
            raise ValueError(f"{path}:{lineno}: malformed feature '{pair}'")
        if not sep or featnum < 1:
            raise ValueError(f"{path}:{lineno}: malformed feature '{pair}'")
        if featnum <= last:
            raise ValueError(
                f"{path}:{lineno}: feature numbers must be increasing ({featnum} after {last})"
            )
        last = featnum
        features.append((featnum - 1, value))
    return tag, qid, features, comment.strip()


def _register(registry: TagRegistry, tag: str, skip_unknown_tags: bool) -> Optional[int]:
    if registry.frozen and tag not in registry:
        if skip_unknown_tags:
            return None
        raise ValueError(f"Tag '{tag}' is not part of the model's tag set.")
    return registry.register_tag(tag)


def read_examples(path: str, registry: TagRegistry, skip_unknown_tags: bool = False) -> List[Example]:
    """
    Reads an SVM-HMM format file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: On a malformed line, a non-contiguous example ID, or (unless
                    `skip_unknown_tags`) a tag missing from a frozen registry.
    """
    examples: List[Example] = []
    seen_qids = set()
    unknown: set = set()
    current: Optional[Example] = None
    try:
        f = open(path, "r", encoding="utf-8")
    except FileNotFoundError:
        raise FileNotFoundError(f"Example file not found at: {path}")
    with f:
        for lineno, line in enumerate(f, start=1):
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            tag, qid, features, text = _parse_feature_line(stripped, lineno, path)
            if current is None or current.qid != qid:
                if qid in seen_qids:
                    raise ValueError(f"{path}:{lineno}: tokens of example qid:{qid} are not contiguous")
                seen_qids.add(qid)
                current = Example(Pattern(), Label(), qid=qid)
                examples.append(current)

            token = Token(text)
            fmap = token.get_feature_map()
            for index, value in features:
                fmap.set(index, value)
            current.pattern.append_token(token)

            tag_id = _register(registry, tag, skip_unknown_tags)
            if tag_id is None:
                unknown.add(qid)
            else:
                current.label.append_tag(tag_id)

    for ex in examples:
        if ex.qid in unknown:
            ex.label = Label()
    return examples


def read_columns(
    path: str,
    registry: TagRegistry,
    extractor: WordFeatureExtractor,
    skip_unknown_tags: bool = False,
) -> List[Example]:
    """
    Reads a `word TAG` column file and extracts features for every sentence.

    A sentence in which some lines have no tag is kept as unlabeled.
    """
    sentences: List[List[Tuple[str, Optional[str]]]] = []
    current: List[Tuple[str, Optional[str]]] = []
    try:
        f = open(path, "r", encoding="utf-8")
    except FileNotFoundError:
        raise FileNotFoundError(f"Corpus file not found at: {path}")
    with f:
        for line in f:
            parts = line.split()
            if not parts:
                if current:
                    sentences.append(current)
                    current = []
                continue
            current.append((parts[0], parts[-1] if len(parts) > 1 else None))
    if current:
        sentences.append(current)

    examples = []
    for qid, sentence in enumerate(sentences, start=1):
        pattern = Pattern([Token(word) for word, _ in sentence])
        extractor.extract(pattern)
        label = Label()
        if all(tag is not None for _, tag in sentence):
            for _, tag in sentence:
                tag_id = _register(registry, tag, skip_unknown_tags)
                if tag_id is None:
                    label = Label()
                    break
                label.append_tag(tag_id)
        examples.append(Example(pattern, label, qid=qid))
    return examples


def feature_space_size(examples: Iterable[Example]) -> int:
    """Largest feature index used by any token, plus one."""
    max_index = -1
    for ex in examples:
        for token in ex.pattern:
            max_index = max(max_index, token.get_feature_map().max_index())
    return max_index + 1


def write_predictions(
    path: str,
    examples: Sequence[Example],
    labels: Sequence[Label],
    registry: TagRegistry,
) -> None:
    """
    Writes one `[text ]TAG` line per token and a blank line after each sequence.
    """
    if len(examples) != len(labels):
        raise ValueError(f"Got {len(labels)} predictions for {len(examples)} examples.")
    with open(path, "w", encoding="utf-8") as f:
        for ex, label in zip(examples, labels):
            for token, tag_id in zip(ex.pattern, label):
                tag = registry.get_tag_by_id(tag_id)
                text = token.get_string()
                f.write(f"{text} {tag}\n" if text else f"{tag}\n")
            f.write("\n")


def read_tag_sequences(path: str) -> List[List[Tuple[str, str]]]:
    """
    Reads `[text ]TAG` lines, as written by `write_predictions`, into
    sentences of `(text, tag)` pairs. Text is empty for tag-only lines.
    """
    sentences: List[List[Tuple[str, str]]] = []
    current: List[Tuple[str, str]] = []
    try:
        f = open(path, "r", encoding="utf-8")
    except FileNotFoundError:
        raise FileNotFoundError(f"Tag file not found at: {path}")
    with f:
        for line in f:
            parts = line.split()
            if not parts:
                if current:
                    sentences.append(current)
                    current = []
                continue
            text = parts[0] if len(parts) > 1 else ""
            current.append((text, parts[-1]))
    if current:
        sentences.append(current)
    return sentences
