"""Learning parameters for the cutting-plane structural SVM.

This module defines `LearningParameters`, a frozen dataclass holding every
setting that drives a training run, and `load_config`, which reads those
settings from the `learning:` section of a YAML file. Parameters are validated
as soon as the object is built, so a malformed configuration is rejected
before any example is decoded. Command-line scripts layer their flags on top
of the file values with `LearningParameters.with_updates`.
"""
from __future__ import annotations
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any, Dict, Optional, Tuple

import yaml

INST_NAME = "SVM-HMM"
INST_VERSION = "v2.13"

# Default precision for solving the optimization problem.
DEFAULT_EPS = 0.1
SLACK_RESCALING = 1
MARGIN_RESCALING = 2
DEFAULT_RESCALING = MARGIN_RESCALING
# Hamming loss; the Viterbi decoder needs a decomposable loss.
DEFAULT_LOSS_FCT = 1
CACHE_POLICIES = ("oldest", "least_binding")


class InvalidParameterError(ValueError):
    """Raised when a learning parameter is outside its valid range."""


@dataclass(frozen=True)
class LearningParameters:
    """
    Configuration of one training run; read-only once created.

    Attributes:
        epsilon: Tolerance on constraint violation. Training stops once no
                 example violates its margin by more than this.
        newconstretrain: Number of new constraints to accumulate before the
                         QP is re-solved within a pass.
        ccache_size: Maximum number of cached constraints per example.
                     0 disables caching across QP solves.
        cache_policy: Eviction policy when a cache is full, "oldest" or
                      "least_binding".
        C: Trade-off between margin and training loss.
        slack_norm: 1 for L1-norm slacks, 2 for L2-norm slacks.
        rescaling: 1 for slack rescaling, 2 for margin rescaling.
        loss_function: ID of a loss registered in `svmhmm.loss`.
        custom_args: Free-form options passed through to the feature and
                     decoding layers.
        feature_space_size: Number of features per token. 0 means it is
                            derived from the training corpus.
        max_iterations: Upper bound on passes over the training set.
    """

    epsilon: float = DEFAULT_EPS
    newconstretrain: int = 100
    ccache_size: int = 5
    cache_policy: str = "oldest"
    C: float = 1.0
    slack_norm: int = 1
    rescaling: int = DEFAULT_RESCALING
    loss_function: int = DEFAULT_LOSS_FCT
    custom_args: Tuple[str, ...] = field(default_factory=tuple)
    feature_space_size: int = 0
    max_iterations: int = 100

    def __post_init__(self) -> None:
        # Late import: the loss registry imports this module for the error type.
        from .loss import LOSS_FUNCTIONS

        if not self.epsilon > 0:
            raise InvalidParameterError(f"epsilon must be > 0, got {self.epsilon}.")
        if self.newconstretrain < 1:
            raise InvalidParameterError(
                f"newconstretrain must be >= 1, got {self.newconstretrain}."
            )
        if self.ccache_size < 0:
            raise InvalidParameterError(f"ccache_size must be >= 0, got {self.ccache_size}.")
        if self.cache_policy not in CACHE_POLICIES:
            raise InvalidParameterError(
                f"cache_policy must be one of {CACHE_POLICIES}, got '{self.cache_policy}'."
            )
        if not self.C > 0:
            raise InvalidParameterError(f"C must be > 0, got {self.C}.")
        if self.slack_norm not in (1, 2):
            raise InvalidParameterError(f"slack_norm must be 1 or 2, got {self.slack_norm}.")
        if self.rescaling not in (SLACK_RESCALING, MARGIN_RESCALING):
            raise InvalidParameterError(
                f"rescaling must be {SLACK_RESCALING} (slack) or "
                f"{MARGIN_RESCALING} (margin), got {self.rescaling}."
            )
        if self.loss_function not in LOSS_FUNCTIONS:
            raise InvalidParameterError(
                f"Unknown loss function {self.loss_function}; "
                f"registered: {sorted(LOSS_FUNCTIONS)}."
            )
        if self.feature_space_size < 0:
            raise InvalidParameterError(
                f"feature_space_size must be >= 0, got {self.feature_space_size}."
            )
        if self.max_iterations < 1:
            raise InvalidParameterError(
                f"max_iterations must be >= 1, got {self.max_iterations}."
            )
        # Lists from YAML are normalised so the record stays hashable.
        custom_args = self.custom_args
        if isinstance(custom_args, str):
            custom_args = (custom_args,)
        elif not isinstance(custom_args, (list, tuple)):
            raise InvalidParameterError(
                f"custom_args must be a string or a list of strings, got {type(custom_args).__name__}."
            )
        object.__setattr__(self, "custom_args", tuple(str(a) for a in custom_args))

    @property
    def margin_rescaling(self) -> bool:
        return self.rescaling == MARGIN_RESCALING

    def with_updates(self, **changes: Any) -> "LearningParameters":
        """Returns a validated copy with `changes` applied; `None` values are ignored."""
        changes = {k: v for k, v in changes.items() if v is not None}
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["custom_args"] = list(self.custom_args)
        return data

    @classmethod
    def field_names(cls) -> set[str]:
        return {f.name for f in fields(cls)}


def parameters_from_mapping(values: Dict[str, Any]) -> LearningParameters:
    """
    Builds `LearningParameters` from a plain mapping.

    Raises:
        ValueError: If the mapping has keys that are not parameter names.
        InvalidParameterError: If a value is out of range.
    """
    unknown = set(values) - LearningParameters.field_names()
    if unknown:
        raise ValueError(f"Unknown learning parameters: {', '.join(sorted(unknown))}")
    return LearningParameters(**values)


def load_config(path: str = "config.yaml", overrides: Optional[Dict[str, Any]] = None) -> LearningParameters:
    """
    Loads learning parameters from the `learning:` section of a YAML file.

    Values from `overrides` (typically command-line flags) take priority over
    the file; `None` entries in `overrides` are ignored.

    Args:
        path: Path to the YAML configuration file.
        overrides: Optional parameter values that replace the file values.

    Returns:
        A validated `LearningParameters` object.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the YAML cannot be parsed or names unknown parameters.
        TypeError: If the root of the file or the `learning` section is not
                   a mapping.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            y = yaml.safe_load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found at: {path}")
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML file at {path}: {e}")

    if y is None:
        y = {}
    if not isinstance(y, dict):
        raise TypeError(f"Configuration file {path} must be a dictionary.")

    learning = y.get("learning", {}) or {}
    if not isinstance(learning, dict):
        raise TypeError(f"The 'learning' section of {path} must be a dictionary.")

    values = dict(learning)
    if overrides:
        values.update({k: v for k, v in overrides.items() if v is not None})
    return parameters_from_mapping(values)
