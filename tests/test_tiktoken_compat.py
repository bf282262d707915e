"""Compare token ids against tiktoken on the same rank table."""

import random

import pytest

import ranktok as rt
from ranktok.pretrained import from_tiktoken

from conftest import SPECIALS

tiktoken = pytest.importorskip("tiktoken")

TEXTS = [
    "hello world",
    "Hello, world! The thing in the test is testing.",
    "aaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa",
    "café naïve 日本語 🎉 I'm here, aren't you?",
    "\n\nline one\n\n   line two\r\n\ttabbed",
    "1234567890 12 123 hello123world",
    "hello<|endoftext|>world<END> and <|end|>",
]


# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(params=["CL100K", "O200K", "R50K"])
def pattern(request):
    return rt.TokenPattern[request.param]


@pytest.fixture
def pair(ranks, pattern):
    """Return a tiktoken encoding and a ranktok encoder over the same tables."""
    reference = tiktoken.Encoding(
        name="toy",
        pat_str=pattern.value,
        mergeable_ranks=ranks,
        special_tokens=SPECIALS,
    )
    vocab = rt.load_vocabulary(ranks, SPECIALS, pattern, name="toy")
    return reference, rt.Encoder(vocab)


def random_texts(n: int) -> list[str]:
    rng = random.Random(1)
    alphabet = "aabhelo tth\n  é12,'s"
    return ["".join(rng.choice(alphabet) for _ in range(rng.randint(0, 200))) for _ in range(n)]


# Conformance
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("text", TEXTS)
def test_encode_matches(pair, text):
    reference, encoder = pair
    assert encoder.encode(text, strategy="all") == reference.encode(
        text, allowed_special="all"
    )
    assert encoder.encode_ordinary(text) == reference.encode_ordinary(text)


def test_random_text_matches(pair):
    reference, encoder = pair
    for text in random_texts(200):
        assert encoder.encode(text) == reference.encode(text)


def test_disallowed_special_raises_in_both(pair):
    reference, encoder = pair
    with pytest.raises(ValueError):
        reference.encode("x <END>")
    with pytest.raises(rt.DisallowedSpecialToken):
        encoder.encode("x <END>")


def test_decode_matches(pair):
    reference, encoder = pair
    tokens = reference.encode(TEXTS[-1], allowed_special="all")
    assert encoder.decode(tokens) == reference.decode(tokens)


# Conversion
# ---------------------------------------------------------------------------


def test_from_tiktoken(pair, pattern):
    reference, encoder = pair
    vocab = from_tiktoken(reference)
    assert vocab.name == "toy"
    assert vocab.pattern_name == pattern.name
    assert vocab.reverse == encoder.vocab.reverse
    assert dict(vocab.special_tokens) == SPECIALS


def test_from_tiktoken_custom_pattern(ranks):
    reference = tiktoken.Encoding(
        name="custom",
        pat_str=r"\w+|\s+|[^\w\s]+",
        mergeable_ranks=ranks,
        special_tokens={},
    )
    vocab = from_tiktoken(reference)
    assert vocab.pattern_name is None
    encoder = rt.Encoder(vocab)
    for text in TEXTS[:-1]:
        assert encoder.encode(text) == reference.encode(text)


def test_from_tiktoken_rejects_other_objects():
    with pytest.raises(rt.LoadError):
        from_tiktoken(object())  # type: ignore[arg-type]
