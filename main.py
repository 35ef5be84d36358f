import argparse
import sys
from pathlib import Path
from typing import List, Optional

# Add project root to path for robust execution
project_root = Path(__file__).parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from tqdm import tqdm

from svmhmm.evaluate import eval_prediction, format_stats
from svmhmm.features import FeatureIndex, WordFeatureExtractor
from svmhmm.io_utils import read_columns, read_examples, write_predictions
from svmhmm.model import load_model
from svmhmm.tags import TagRegistry
from svmhmm.types import TestStats
from svmhmm.viterbi import classify


def main(argv: Optional[List[str]] = None) -> int:
    """
    Command-line interface for tagging a corpus with a trained model.

    1.  Loads the model and rebuilds its (frozen) tag registry.
    2.  Reads the input corpus; for column corpora, features are extracted
        with the feature index saved at training time.
    3.  Decodes every example with Viterbi.
    4.  Writes the predicted tags and, where the input carries tags, prints
        token and sequence accuracy.
    """
    parser = argparse.ArgumentParser(
        description="Tag sequences with a trained SVM-HMM model.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--input", required=True, help="Path to the corpus to tag.")
    parser.add_argument("--model", required=True, help="Path to the model JSON file.")
    parser.add_argument("--output", required=True, help="Path to write the predicted tags.")
    parser.add_argument(
        "--format",
        choices=("svmhmm", "columns"),
        default="svmhmm",
        help="Corpus format: SVM-HMM feature lines or 'word TAG' columns.",
    )
    parser.add_argument(
        "--features",
        default=None,
        help="Feature index for column corpora (default: <model>.features.json).",
    )
    args = parser.parse_args(argv)

    try:
        print(f"Loading model from {args.model}...")
        model = load_model(args.model)
        registry = TagRegistry.from_tags(model.tags)
        registry.freeze()

        print(f"Loading examples from {args.input}...")
        if args.format == "columns":
            index = FeatureIndex.load(args.features or args.model + ".features.json")
            extractor = WordFeatureExtractor.from_custom_args(
                model.svm_model.get("custom_args", []), index=index
            )
            examples = read_columns(args.input, registry, extractor, skip_unknown_tags=True)
        else:
            examples = read_examples(args.input, registry, skip_unknown_tags=True)

        stats = TestStats()
        predictions = []
        for ex in tqdm(examples, desc="Classifying"):
            model.validate_pattern(ex.pattern)
            pred = classify(ex.pattern, model)
            predictions.append(pred)
            eval_prediction(ex.label, pred, stats)

        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        write_predictions(str(output_path), examples, predictions, registry)
        print(f"\nSuccessfully wrote predictions to {args.output}")

        if stats.num_sequences:
            print(format_stats(stats))

    except (FileNotFoundError, ValueError, TypeError, KeyError) as e:
        print(f"\nError: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
