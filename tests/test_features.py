from pathlib import Path

import pytest

from svmhmm.features import FeatureIndex, WordFeatureExtractor, word_shape
from svmhmm.types import Pattern, Token


@pytest.mark.parametrize(
    "word, shape",
    [("Paris", "Xx"), ("1999", "d"), ("U.S.", "X.X."), ("e-mail", "x-x")],
)
def test_word_shape(word, shape):
    assert word_shape(word) == shape


def test_feature_names_include_context_and_suffixes():
    extractor = WordFeatureExtractor(window=1, suffix_length=2)

    names = extractor.feature_names(["The", "dog"], 0)

    assert names == [
        "bias", "w=The", "lw=the", "shape=Xx", "suf1=e", "suf2=he",
        "w[-1]=<s>", "w[+1]=dog",
    ]


def test_extract_fills_binary_features():
    extractor = WordFeatureExtractor(window=0, suffix_length=0)
    pattern = Pattern([Token("a"), Token("a")])

    extractor.extract(pattern)

    first = pattern.get_token(0).get_feature_map()
    assert first.items() == pattern.get_token(1).get_feature_map().items()
    assert all(value == 1.0 for _, value in first.items())
    assert len(extractor.index) == 4


def test_from_custom_args_reads_known_keys_only():
    extractor = WordFeatureExtractor.from_custom_args(["window=2", "--suffix_length=1", "verbose"])

    assert extractor.window == 2
    assert extractor.suffix_length == 1

    with pytest.raises(ValueError):
        WordFeatureExtractor.from_custom_args(["window=wide"])


def test_feature_index_save_and_load(tmp_path: Path) -> None:
    index = FeatureIndex(["bias", "w=dog"])
    path = tmp_path / "features.json"

    index.save(str(path))
    loaded = FeatureIndex.load(str(path))

    assert loaded.names() == ["bias", "w=dog"]
    assert loaded.frozen
    assert loaded.add("w=cat") is None
    assert loaded.add("w=dog") == 1


def test_feature_index_load_rejects_bad_payload(tmp_path: Path) -> None:
    path = tmp_path / "features.json"
    path.write_text('{"names": []}', encoding="utf-8")

    with pytest.raises(TypeError):
        FeatureIndex.load(str(path))
