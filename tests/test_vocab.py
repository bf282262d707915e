"""Unit tests for rank table parsing, validation and the Vocabulary."""

import dataclasses

import pytest

import ranktok as rt
from ranktok.errors import PatternError, VocabularyNotFound
from ranktok.vocab import parse_rank_table

from conftest import SPECIALS


# Parsing
# ---------------------------------------------------------------------------


def test_parse_rank_table_basic():
    """Records map base64 pieces to ranks; blank lines are skipped."""
    lines = ["YQ== 0", "", "Yg== 1", "YWI= 2  "]
    assert parse_rank_table(lines) == {b"a": 0, b"b": 1, b"ab": 2}


def test_parse_rank_table_accepts_bytes_lines():
    assert parse_rank_table([b"YQ== 0\n", b"Yg== 1\n"]) == {b"a": 0, b"b": 1}


@pytest.mark.parametrize(
    "bad_line",
    [
        "YQ==",  # missing rank
        "YQ== 0 extra",  # too many fields
        "!!!! 1",  # not base64
        "YQ== x",  # not an integer
        "YQ== -1",  # negative
        "YQ== 1_0",  # int() would accept this
        " 0",  # missing piece
    ],
)
def test_malformed_entry(bad_line):
    """Unparsable records raise MalformedEntry naming the line."""
    with pytest.raises(rt.MalformedEntry) as excinfo:
        parse_rank_table(["YQ== 0", bad_line])
    assert excinfo.value.line_no == 2


def test_non_ascii_bytes_line_is_malformed():
    with pytest.raises(rt.MalformedEntry):
        parse_rank_table([b"\xff\xfe 0"])


def test_duplicate_piece_is_malformed():
    with pytest.raises(rt.MalformedEntry):
        parse_rank_table(["YQ== 0", "YQ== 1"])


def test_duplicate_rank():
    with pytest.raises(rt.DuplicateRank) as excinfo:
        parse_rank_table(["YQ== 0", "Yg== 0"])
    assert excinfo.value.rank == 0
    assert excinfo.value.pieces == (b"a", b"b")


# Validation
# ---------------------------------------------------------------------------


def test_non_contiguous_ranks():
    with pytest.raises(rt.NonContiguousRanks) as excinfo:
        rt.load_vocabulary(["YQ== 0", "Yg== 1", "Yw== 3"])
    assert excinfo.value.missing == 2


def test_ranks_must_start_at_zero():
    with pytest.raises(rt.NonContiguousRanks) as excinfo:
        rt.load_vocabulary({b"a": 1, b"b": 2})
    assert excinfo.value.missing == 0


def test_duplicate_rank_in_mapping_source():
    with pytest.raises(rt.DuplicateRank):
        rt.load_vocabulary({b"a": 0, b"b": 0})


def test_mapping_source_type_checks():
    with pytest.raises(rt.MalformedEntry):
        rt.load_vocabulary({b"a": -1})
    with pytest.raises(rt.MalformedEntry):
        rt.load_vocabulary({"a": 0})


def test_implicit_base_alphabet():
    """A table listing no single-byte pieces gets the 256 base bytes implicitly."""
    vocab = rt.load_vocabulary({b"ab": 256})
    assert vocab.rank_count == 257
    assert vocab.rank_of(b"a") == 97
    assert vocab.token_bytes(256) == b"ab"


def test_implicit_base_collision():
    with pytest.raises(rt.DuplicateRank):
        rt.load_vocabulary({b"ab": 5})


def test_validate_merges():
    """Multi-byte pieces must split into two lower-ranked pieces when checked."""
    ranks = {b"a": 0, b"b": 1, b"c": 2, b"abc": 3}
    # not checked by default
    assert rt.load_vocabulary(ranks).rank_count == 4
    with pytest.raises(rt.MalformedEntry):
        rt.load_vocabulary(ranks, validate_merges=True)


def test_validate_merges_accepts_toy_vocab(ranks):
    vocab = rt.load_vocabulary(ranks, validate_merges=True)
    assert vocab.rank_count == len(ranks)


# Special tokens
# ---------------------------------------------------------------------------


def test_special_token_id_inside_rank_range(ranks):
    with pytest.raises(rt.SpecialTokenConflict) as excinfo:
        rt.load_vocabulary(ranks, {"<s>": 10})
    assert excinfo.value.token == "<s>"
    assert excinfo.value.token_id == 10


def test_special_token_duplicate_id(ranks):
    with pytest.raises(rt.SpecialTokenConflict):
        rt.load_vocabulary(ranks, {"<s>": 5000, "</s>": 5000})


def test_special_token_equal_to_piece(ranks):
    with pytest.raises(rt.SpecialTokenConflict):
        rt.load_vocabulary(ranks, {"hello": 5000})


def test_special_token_empty_literal(ranks):
    with pytest.raises(rt.SpecialTokenConflict):
        rt.load_vocabulary(ranks, {"": 5000})


# Vocabulary
# ---------------------------------------------------------------------------


def test_vocabulary_sizes(vocab, ranks):
    assert vocab.rank_count == len(ranks)
    assert vocab.n_vocab == 50001
    assert vocab.special_ids == frozenset(SPECIALS.values())
    assert vocab.is_special(50000)
    assert not vocab.is_special(0)


def test_token_bytes(vocab):
    assert vocab.token_bytes(104) == b"h"
    assert vocab.token_bytes(vocab.rank_of(b"hello")) == b"hello"
    assert vocab.token_bytes(50000) == b"<END>"
    with pytest.raises(rt.UnknownTokenId):
        vocab.token_bytes(2000)


def test_vocabulary_is_immutable(vocab):
    with pytest.raises(TypeError):
        vocab.ranks[b"new"] = 1  # type: ignore[index]
    with pytest.raises(TypeError):
        vocab.special_tokens["<x>"] = 7  # type: ignore[index]
    with pytest.raises(dataclasses.FrozenInstanceError):
        vocab.name = "other"  # type: ignore[misc]


def test_pattern_resolution(ranks):
    vocab = rt.load_vocabulary(ranks, pattern="o200k_base")
    assert vocab.pattern_name == "O200K"
    assert vocab.pattern == rt.TokenPattern.O200K.value

    custom = rt.load_vocabulary(ranks, custom_pattern=r"\w+|\W+")
    assert custom.pattern_name is None
    assert custom.pattern == r"\w+|\W+"


def test_unknown_pattern(ranks):
    with pytest.raises(PatternError):
        rt.load_vocabulary(ranks, pattern="not-a-pattern")


def test_invalid_custom_pattern(ranks):
    with pytest.raises(PatternError):
        rt.load_vocabulary(ranks, custom_pattern="(")


# Files
# ---------------------------------------------------------------------------


def test_save_load_roundtrip(vocab, rank_file):
    """A saved rank file loads back into the same tables."""
    loaded = rt.load_vocabulary(rank_file, SPECIALS, "cl100k")
    assert loaded.name == "toy"
    assert loaded.reverse == vocab.reverse
    assert dict(loaded.ranks) == dict(vocab.ranks)


def test_load_from_bytes(rank_file):
    vocab = rt.load_vocabulary(rank_file.read_bytes())
    assert vocab.name == "custom"
    assert vocab.rank_of(b" world") is not None


def test_missing_rank_file(tmp_path):
    with pytest.raises(VocabularyNotFound):
        rt.load_vocabulary(tmp_path / "missing.tiktoken")


def test_malformed_file_fails_whole_load(tmp_path):
    path = tmp_path / "bad.tiktoken"
    path.write_text("YQ== 0\nnot valid\n")
    with pytest.raises(rt.LoadError):
        rt.load_vocabulary(path)


def test_dump_readable(vocab, tmp_path):
    """The readable dump lists special tokens and escapes control characters."""
    out = vocab.dump_readable(tmp_path / "toy")
    assert out.suffix == ".vocab"
    lines = out.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "ST [1000] <|endoftext|>"
    assert "[10] \\u000a" in lines
    assert f"[{vocab.rank_of(b'hello')}] hello" in lines
