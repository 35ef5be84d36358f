import json
from pathlib import Path
import sys

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from scripts.train_model import build_parser, features_path_for, load_parameters, main
from svmhmm.model import load_model


def test_command_line_flags_override_config(tmp_path: Path) -> None:
    config = tmp_path / "config.yaml"
    config.write_text("learning:\n  C: 2.0\n  epsilon: 0.5\n", encoding="utf-8")
    args = build_parser().parse_args([
        "--train", "t.dat", "--model", "m.json", "--config", str(config),
        "-c", "7", "--slack-norm", "2", "-u", "window=2",
    ])

    params = load_parameters(args)

    assert params.C == 7.0
    assert params.epsilon == 0.5
    assert params.slack_norm == 2
    assert params.custom_args == ("window=2",)


def test_invalid_flag_values_exit_through_argparse():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["--train", "t.dat", "--model", "m.json", "--slack-norm", "3"])


def test_train_on_svmhmm_corpus_writes_model(tmp_path: Path, svmhmm_corpus: Path) -> None:
    model_path = tmp_path / "out" / "model.json"

    code = main(["--train", str(svmhmm_corpus), "--model", str(model_path), "-c", "10", "--quiet"])

    assert code == 0
    model = load_model(str(model_path))
    assert model.tags == ["D", "N", "V"]
    assert model.feature_space_size == 5
    assert model.svm_model["learning_parameters"]["C"] == 10.0
    assert "alphas" not in json.loads(model_path.read_text(encoding="utf-8"))["svm_model"]


def test_train_on_column_corpus_saves_feature_index(tmp_path: Path) -> None:
    corpus = tmp_path / "train.txt"
    corpus.write_text("The DT\ndog NN\nruns VB\n\nA DT\ncat NN\n", encoding="utf-8")
    model_path = tmp_path / "model.json"

    code = main([
        "--train", str(corpus), "--model", str(model_path), "--format", "columns",
        "-c", "10", "-u", "window=0", "--quiet",
    ])

    assert code == 0
    assert Path(features_path_for(str(model_path))).exists()
    model = load_model(str(model_path))
    assert model.svm_model["custom_args"] == ["window=0"]


def test_missing_training_file_returns_error(tmp_path: Path, capsys) -> None:
    code = main(["--train", str(tmp_path / "missing.dat"), "--model", str(tmp_path / "m.json"), "--quiet"])

    assert code == 1
    assert "Error" in capsys.readouterr().err
    assert not (tmp_path / "m.json").exists()


def test_invalid_config_returns_error(tmp_path: Path, svmhmm_corpus: Path) -> None:
    config = tmp_path / "config.yaml"
    config.write_text("learning:\n  epsilon: -1\n", encoding="utf-8")

    code = main([
        "--train", str(svmhmm_corpus), "--model", str(tmp_path / "m.json"),
        "--config", str(config), "--quiet",
    ])

    assert code == 1
