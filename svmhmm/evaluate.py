"""Scoring predicted labels against reference labels.

`eval_prediction` accumulates token and sequence accuracy counters in a
`TestStats` record, one example at a time, as classification proceeds.
`per_tag_report` builds a pandas DataFrame with precision, recall and F1 for
every tag, which the evaluation script prints or writes to CSV.
"""
from __future__ import annotations
from typing import Iterable, Tuple

import pandas as pd

from .loss import hamming_loss
from .tags import TagRegistry
from .types import Label, TestStats


def eval_prediction(true: Label, pred: Label, stats: TestStats) -> TestStats:
    """
    Adds one prediction to `stats`.

    Unlabeled examples (empty `true`) are not counted.
    """
    if true.is_empty():
        return stats
    n = true.get_length()
    errors = hamming_loss(true, pred)
    # Extra predicted positions are errors but not reference tokens.
    extra = max(0, pred.get_length() - n)
    stats.num_tokens += n
    stats.num_correct_tags += int(n - (errors - extra))
    stats.num_sequences += 1
    if true == pred:
        stats.num_correct_sequences += 1
    return stats


def format_stats(stats: TestStats) -> str:
    return (
        f"Tagged {stats.num_tokens} tokens: {stats.num_correct_tags} correct "
        f"(accuracy {stats.accuracy:.2%}); "
        f"{stats.num_correct_sequences}/{stats.num_sequences} sequences fully correct "
        f"({stats.sequence_accuracy:.2%})"
    )


def per_tag_report(pairs: Iterable[Tuple[Label, Label]], registry: TagRegistry) -> pd.DataFrame:
    """
    Precision, recall and F1 per tag over `(true, pred)` label pairs.

    Returns:
        A DataFrame indexed by tag with columns `support`, `predicted`,
        `correct`, `precision`, `recall` and `f1`. Tags never seen in either
        the reference or the predictions are omitted.
    """
    rows = []
    for true, pred in pairs:
        if true.is_empty():
            continue
        for i in range(true.get_length()):
            predicted = pred.get_tag(i) if i < pred.get_length() else None
            rows.append({"true": true.get_tag(i), "pred": predicted})

    columns = ["support", "predicted", "correct", "precision", "recall", "f1"]
    if not rows:
        return pd.DataFrame(columns=columns)

    df = pd.DataFrame(rows)
    df["correct"] = df["true"] == df["pred"]
    support = df.groupby("true").size()
    predicted = df.dropna(subset=["pred"]).groupby("pred").size()
    predicted.index = predicted.index.astype(int)
    correct = df[df["correct"]].groupby("true").size()

    report = pd.DataFrame({"support": support, "predicted": predicted, "correct": correct})
    report = report.fillna(0).astype(int)
    report["precision"] = (report["correct"] / report["predicted"].where(report["predicted"] > 0)).fillna(0.0)
    report["recall"] = (report["correct"] / report["support"].where(report["support"] > 0)).fillna(0.0)
    denom = report["precision"] + report["recall"]
    report["f1"] = (2 * report["precision"] * report["recall"] / denom.where(denom > 0)).fillna(0.0)
    report.index = [registry.get_tag_by_id(int(t)) for t in report.index]
    report.index.name = "tag"
    return report[columns]
