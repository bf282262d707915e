"""Shared fixtures: a small hand-built vocabulary over the full byte alphabet."""

import pytest

import ranktok as rt

# each piece is the concatenation of two pieces listed before it
MERGES = [
    b"he",
    b"ll",
    b"hell",
    b"hello",
    b" w",
    b"or",
    b" wor",
    b"ld",
    b" world",
    b"th",
    b"the",
    b" the",
    b"in",
    b"ing",
    b"aa",
    b"aaa",
    b"aaaa",
    b"ab",
    b"ba",
    b"er",
    b" t",
    b"es",
    b"est",
    b" test",
    b"\n\n",
    b"12",
    b"123",
    "é".encode("utf-8"),
]

SPECIALS = {
    "<|endoftext|>": 1000,
    "<|end|>": 1001,
    "<END>": 50000,
}


def make_ranks(merges: list[bytes]) -> dict[bytes, int]:
    """Return the 256 base bytes at ranks 0..255 followed by ``merges`` in order."""
    ranks = {bytes([b]): b for b in range(256)}
    for piece in merges:
        ranks[piece] = len(ranks)
    return ranks


# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def ranks() -> dict[bytes, int]:
    return make_ranks(MERGES)


@pytest.fixture
def vocab(ranks):
    """Return the toy vocabulary with cl100k-style splitting."""
    return rt.load_vocabulary(ranks, SPECIALS, "cl100k", name="toy")


@pytest.fixture
def encoder(vocab):
    return rt.Encoder(vocab)


@pytest.fixture
def rank_file(vocab, tmp_path):
    """Write the toy rank table to disk and return its path."""
    return vocab.save(tmp_path / "toy.tiktoken")
