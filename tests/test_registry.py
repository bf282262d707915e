"""Unit tests for named encodings and model lookup."""

import pytest

import ranktok as rt
from ranktok import registry
from ranktok.errors import UnknownEncoding, VocabularyNotFound
from ranktok.registry import EncodingSpec, get_encoding_spec, register_encoding

from conftest import SPECIALS


# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def clean_registry():
    """Forget loaded encoders and the toy registration after each test."""
    yield
    registry._ENCODINGS.pop("toy_base", None)
    registry.clear_loaded()


@pytest.fixture
def toy_spec():
    spec = EncodingSpec("toy_base", rt.TokenPattern.CL100K, SPECIALS)
    register_encoding(spec)
    return spec


@pytest.fixture
def data_dir(vocab, tmp_path):
    """A data directory holding the toy ranks as toy_base and cl100k_base."""
    vocab.save(tmp_path / "toy_base.tiktoken")
    vocab.save(tmp_path / "cl100k_base.tiktoken")
    return tmp_path


# Model lookup
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("model", "encoding"),
    [
        ("gpt-4o", "o200k_base"),
        ("gpt-4o-mini", "o200k_base"),
        ("gpt-4.1-nano", "o200k_base"),
        ("o1-preview", "o200k_base"),
        ("gpt-4", "cl100k_base"),
        ("gpt-4-0613", "cl100k_base"),
        ("gpt-3.5-turbo-16k", "cl100k_base"),
        ("text-embedding-3-small", "cl100k_base"),
        ("ft:gpt-4o-mini:org::id", "o200k_base"),
        ("gpt2", "r50k_base"),
    ],
)
def test_encoding_name_for_model(model, encoding):
    assert rt.encoding_name_for_model(model) == encoding


def test_unknown_model():
    with pytest.raises(UnknownEncoding):
        rt.encoding_name_for_model("my-local-model")


def test_list_encodings():
    assert rt.list_encodings() == ["r50k_base", "cl100k_base", "o200k_base"]


def test_encoding_spec():
    spec = get_encoding_spec("cl100k_base")
    assert spec.pattern is rt.TokenPattern.CL100K
    assert spec.special_tokens["<|endoftext|>"] == 100257
    assert spec.filename == "cl100k_base.tiktoken"
    with pytest.raises(UnknownEncoding):
        get_encoding_spec("p50k_base")


def test_register_twice(toy_spec):
    with pytest.raises(ValueError):
        register_encoding(toy_spec)
    register_encoding(toy_spec, overwrite=True)
    assert "toy_base" in rt.list_encodings()


# Loading
# ---------------------------------------------------------------------------


def test_get_encoding(toy_spec, data_dir):
    encoder = rt.get_encoding("toy_base", data_dir)
    assert encoder.name == "toy_base"
    assert encoder.encode("<END>", strategy="all") == [50000]
    assert rt.get_encoding("toy_base", data_dir) is encoder


def test_get_encoding_from_env(toy_spec, data_dir, monkeypatch):
    monkeypatch.setenv("RANKTOK_DATA_DIR", str(data_dir))
    assert rt.get_encoding("toy_base") is rt.get_encoding("toy_base", data_dir)


def test_get_encoding_without_data_dir(toy_spec, monkeypatch):
    monkeypatch.delenv("RANKTOK_DATA_DIR", raising=False)
    with pytest.raises(VocabularyNotFound):
        rt.get_encoding("toy_base")


def test_get_encoding_missing_file(tmp_path):
    with pytest.raises(VocabularyNotFound):
        rt.get_encoding("o200k_base", tmp_path)


def test_get_encoding_unknown_name(tmp_path):
    with pytest.raises(UnknownEncoding):
        rt.get_encoding("nope", tmp_path)


def test_encoder_for_model(data_dir):
    """Token counts for a model go through its named encoding."""
    encoder = rt.get_encoder_for_model("gpt-4-turbo", data_dir)
    assert encoder is not None
    assert encoder.name == "cl100k_base"
    assert encoder.count_tokens("hello world") == 2
    assert encoder.vocab.special_tokens["<|endoftext|>"] == 100257


def test_encoder_for_unknown_model(data_dir):
    assert rt.get_encoder_for_model("my-local-model", data_dir) is None
