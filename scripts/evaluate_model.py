"""Command-line script for evaluating predicted tags against a reference.

Both files hold one `[word ]TAG` line per token with blank lines between
sequences (the output format of `main.py` and the column training format).
The script prints token and sequence accuracy, a per-tag precision / recall /
F1 table, and can write every disagreement to a CSV file for error analysis.
"""
import argparse
import csv
import sys
from pathlib import Path
from typing import List, Optional

# Add project root to path to allow for package imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from svmhmm.evaluate import eval_prediction, format_stats, per_tag_report
from svmhmm.io_utils import read_tag_sequences
from svmhmm.tags import TagRegistry
from svmhmm.types import Label, TestStats


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the command-line evaluation script.

    Tags from the reference file are registered first, so the per-tag table
    follows the reference's tag order; tags that only occur in the generated
    file are appended after them.
    """
    parser = argparse.ArgumentParser(
        description="Evaluate predicted tags against a reference file.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--generated", required=True, help="Path to the predicted tags.")
    parser.add_argument("--reference", required=True, help="Path to the ground-truth tags.")
    parser.add_argument("--report-out", help="Optional: path to write the per-tag report as CSV.")
    parser.add_argument("--disagreements-out", help="Optional: path to write a disagreements CSV file.")
    args = parser.parse_args(argv)

    try:
        print("Loading files...")
        generated = read_tag_sequences(args.generated)
        reference = read_tag_sequences(args.reference)
        if len(generated) != len(reference):
            raise ValueError(
                f"Generated file has {len(generated)} sequences, reference has {len(reference)}."
            )

        registry = TagRegistry()
        pairs = []
        disagreements = []
        stats = TestStats()
        for seq_idx, (gen, ref) in enumerate(zip(generated, reference)):
            true = Label([registry.register_tag(tag) for _, tag in ref])
            pred = Label([registry.register_tag(tag) for _, tag in gen])
            pairs.append((true, pred))
            eval_prediction(true, pred, stats)
            for tok_idx, (text, ref_tag) in enumerate(ref):
                gen_tag = gen[tok_idx][1] if tok_idx < len(gen) else ""
                if gen_tag != ref_tag:
                    disagreements.append({
                        "sequence": seq_idx,
                        "index": tok_idx,
                        "token": text,
                        "generated": gen_tag,
                        "reference": ref_tag,
                    })

        print("\n--- Comparison Metrics (vs. Reference) ---")
        print(format_stats(stats))
        report = per_tag_report(pairs, registry)
        print(report.to_string(float_format=lambda x: f"{x:.3f}"))

        if args.report_out:
            Path(args.report_out).parent.mkdir(parents=True, exist_ok=True)
            report.to_csv(args.report_out)
            print(f"\nWrote per-tag report to {args.report_out}")

        if args.disagreements_out and disagreements:
            Path(args.disagreements_out).parent.mkdir(parents=True, exist_ok=True)
            print(f"\nWriting {len(disagreements)} disagreements to {args.disagreements_out}...")
            with open(args.disagreements_out, "w", newline="", encoding="utf-8") as f:
                writer = csv.DictWriter(f, fieldnames=["sequence", "index", "token", "generated", "reference"])
                writer.writeheader()
                writer.writerows(disagreements)

    except (FileNotFoundError, ValueError, KeyError) as e:
        print(f"\nError: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
