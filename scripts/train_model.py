"""Command-line script for training an SVM-HMM model.

Reads a training corpus, builds the tag registry and example set, runs the
cutting-plane structural SVM and writes the model as JSON. Learning
parameters come from the `learning:` section of a YAML configuration file;
any flag given on the command line overrides the file value.
"""
import argparse
import sys
from pathlib import Path
from typing import List, Optional

# Add project root to path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from svmhmm.config import INST_NAME, INST_VERSION, LearningParameters, load_config
from svmhmm.features import WordFeatureExtractor
from svmhmm.io_utils import feature_space_size, read_columns, read_examples
from svmhmm.learner import TrainingState, train
from svmhmm.model import save_model
from svmhmm.qp import SolverError
from svmhmm.tags import TagRegistry


def features_path_for(model_path: str) -> str:
    """Where the feature index of a column-format model is stored."""
    return str(model_path) + ".features.json"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=f"Train a structural SVM sequence labeler ({INST_NAME} {INST_VERSION}).",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--train", required=True, help="Path to the training corpus.")
    parser.add_argument("--model", required=True, help="Output path for the model JSON file.")
    parser.add_argument("--config", default=None, help="Optional YAML file with a 'learning' section.")
    parser.add_argument(
        "--format",
        choices=("svmhmm", "columns"),
        default="svmhmm",
        help="Corpus format: SVM-HMM feature lines or 'word TAG' columns.",
    )
    parser.add_argument("-c", "--C", type=float, default=None, help="Trade-off between margin and training loss.")
    parser.add_argument("-e", "--epsilon", type=float, default=None, help="Tolerance on constraint violation.")
    parser.add_argument("--newconstretrain", type=int, default=None, help="New constraints to gather before re-solving the QP.")
    parser.add_argument("--ccache-size", type=int, default=None, help="Cached constraints per example (0 disables caching).")
    parser.add_argument("--cache-policy", choices=("oldest", "least_binding"), default=None, help="Cache eviction policy.")
    parser.add_argument("--slack-norm", type=int, choices=(1, 2), default=None, help="L1 or L2 slack penalty.")
    parser.add_argument("--rescaling", type=int, choices=(1, 2), default=None, help="1 = slack rescaling, 2 = margin rescaling.")
    parser.add_argument("--loss-function", type=int, default=None, help="ID of the loss function (1 = Hamming).")
    parser.add_argument("--feature-space-size", type=int, default=None, help="Features per token (default: derived from corpus).")
    parser.add_argument("--max-iterations", type=int, default=None, help="Maximum passes over the training set.")
    parser.add_argument("-u", "--custom", action="append", default=None, help="Custom argument, e.g. window=2. Repeatable.")
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output.")
    return parser


def load_parameters(args: argparse.Namespace) -> LearningParameters:
    overrides = {
        "C": args.C,
        "epsilon": args.epsilon,
        "newconstretrain": args.newconstretrain,
        "ccache_size": args.ccache_size,
        "cache_policy": args.cache_policy,
        "slack_norm": args.slack_norm,
        "rescaling": args.rescaling,
        "loss_function": args.loss_function,
        "feature_space_size": args.feature_space_size,
        "max_iterations": args.max_iterations,
        "custom_args": tuple(args.custom) if args.custom else None,
    }
    if args.config:
        return load_config(args.config, overrides)
    return LearningParameters().with_updates(**overrides)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the command-line training script.

    1.  Parses the command line and builds the learning parameters.
    2.  Reads the corpus, registering tags in first-seen order.
    3.  Fixes the feature space size from the corpus unless configured.
    4.  Runs cutting-plane training.
    5.  Saves the model (and, for column corpora, the feature index).
    """
    args = build_parser().parse_args(argv)
    verbose = not args.quiet

    try:
        params = load_parameters(args)

        registry = TagRegistry()
        extractor = None
        print(f"Reading training examples from {args.train}...")
        if args.format == "columns":
            extractor = WordFeatureExtractor.from_custom_args(params.custom_args)
            examples = read_columns(args.train, registry, extractor)
            extractor.index.freeze()
        else:
            examples = read_examples(args.train, registry)

        num_tokens = sum(ex.pattern.get_length() for ex in examples)
        print(f"Read {len(examples)} examples with {num_tokens} tokens and {registry.get_num_tags()} tags.")

        if not params.feature_space_size:
            params = params.with_updates(feature_space_size=feature_space_size(examples))
        print(f"Feature space size: {params.feature_space_size}")

        result = train(examples, registry, params, verbose=verbose)
        model = result.model
        model.svm_model["custom_args"] = list(params.custom_args)
        model.svm_model["learning_parameters"] = params.to_dict()

        if result.state is TrainingState.STOPPED:
            print(
                f"Warning: training stopped after {result.iterations} iterations without converging.",
                file=sys.stderr,
            )

        save_model(args.model, model)
        print(f"Successfully saved model to {args.model}")
        if extractor is not None:
            extractor.index.save(features_path_for(args.model))
            print(f"Successfully saved feature index to {features_path_for(args.model)}")

    except (FileNotFoundError, ValueError, TypeError, KeyError, RuntimeError) as e:
        # SolverError is a RuntimeError: a failed run writes no model.
        kind = "Solver failure" if isinstance(e, SolverError) else "Error"
        print(f"\n{kind}: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
