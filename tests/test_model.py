import json
from pathlib import Path

import numpy as np
import pytest

from conftest import make_token
from svmhmm.model import StructModel, compute_size_psi, load_model, save_model
from svmhmm.types import Label, Pattern


def _random_model(F: int = 4, T: int = 3, seed: int = 0) -> StructModel:
    model = StructModel.empty(F, T, tags=[f"T{t}" for t in range(T)])
    model.w = np.random.RandomState(seed).normal(size=model.size_psi)
    return model


def _pattern() -> Pattern:
    return Pattern([
        make_token("a", {0: 1.0, 2: 0.5}),
        make_token("b", {1: 2.0}),
        make_token("c", {3: -1.0, 0: 1.0}),
    ])


def test_size_psi_counts_emission_and_transition_blocks():
    assert compute_size_psi(10, 3) == 3 * 10 + 3 * 3
    model = StructModel.empty(10, 3)
    assert model.size_psi == 39
    assert len(model.w) == model.size_psi
    assert not model.w.any()


def test_weight_length_must_match_size_psi():
    with pytest.raises(ValueError):
        StructModel(w=np.zeros(5), size_psi=39, num_tags=3, feature_space_size=10)
    with pytest.raises(ValueError):
        StructModel(w=np.zeros(40), size_psi=40, num_tags=3, feature_space_size=10)


def test_emission_and_transition_views_follow_layout():
    model = StructModel.empty(2, 2)
    model.w[:] = np.arange(model.size_psi)

    assert list(model.emission_weights(0)) == [0, 1]
    assert list(model.emission_weights(1)) == [2, 3]
    assert model.transition_matrix().tolist() == [[4, 5], [6, 7]]


def test_joint_feature_map_places_emissions_and_transitions():
    model = StructModel.empty(4, 3)
    psi = model.joint_feature_map(_pattern(), Label([0, 2, 2]))

    F, T = 4, 3
    assert psi[0 * F + 0] == 1.0 and psi[0 * F + 2] == 0.5
    assert psi[2 * F + 1] == 2.0
    assert psi[2 * F + 3] == -1.0 and psi[2 * F + 0] == 1.0
    assert psi[T * F + 0 * T + 2] == 1.0
    assert psi[T * F + 2 * T + 2] == 1.0
    assert psi[T * F:].sum() == 2.0


def test_score_equals_dot_product_with_joint_feature_map():
    model = _random_model()
    pattern = _pattern()
    for tags in ([0, 1, 2], [2, 2, 2], [1, 0, 1]):
        label = Label(tags)
        expected = float(model.w @ model.joint_feature_map(pattern, label))
        assert model.score(pattern, label) == pytest.approx(expected)


def test_joint_feature_map_rejects_length_mismatch():
    with pytest.raises(ValueError):
        StructModel.empty(4, 3).joint_feature_map(_pattern(), Label([0]))


def test_validate_pattern_flags_out_of_range_features():
    model = StructModel.empty(4, 2)
    model.validate_pattern(_pattern())

    bad = Pattern([make_token("x", {4: 1.0})])
    with pytest.raises(ValueError, match="feature index 4"):
        model.validate_pattern(bad)


def test_save_and_load_model(tmp_path: Path) -> None:
    model = _random_model()
    model.svm_model = {"objective": 1.5, "alphas": np.ones(3)}
    path = tmp_path / "model.json"

    save_model(str(path), model)
    loaded = load_model(str(path))

    assert loaded.size_psi == model.size_psi
    assert loaded.tags == ["T0", "T1", "T2"]
    assert np.allclose(loaded.w, model.w)
    assert loaded.svm_model == {"objective": 1.5}


def test_load_model_rejects_inconsistent_weights(tmp_path: Path) -> None:
    path = tmp_path / "model.json"
    path.write_text(
        json.dumps({"size_psi": 6, "feature_space_size": 1, "tags": ["A", "B"], "w": [0.0] * 5}),
        encoding="utf-8",
    )

    with pytest.raises(ValueError):
        load_model(str(path))


def test_load_model_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_model(str(tmp_path / "missing.json"))
