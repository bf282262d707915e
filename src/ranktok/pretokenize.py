"""Pre-tokenization: split input into literal chunks and atomic special tokens."""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from functools import lru_cache
import logging

import regex as re

from .pattern import split_with
from .types import Token
from .vocab import Vocabulary

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LiteralChunk:
    """A run of ordinary text, as the UTF-8 bytes the merge engine consumes."""

    data: bytes
    offset: int


@dataclass(frozen=True, slots=True)
class SpecialChunk:
    """A special token literal recognized in the input."""

    token: Token
    text: str
    offset: int

    @property
    def data(self) -> bytes:
        return self.text.encode("utf-8")


type Chunk = LiteralChunk | SpecialChunk


def prepare_text(text: str | bytes) -> tuple[str, str]:
    """
    Normalize input to ``str`` and return it with the codec error handler that
    turns its chunks back into the original bytes.

    ``bytes`` are decoded with ``surrogateescape`` so invalid UTF-8 survives
    splitting and is restored byte for byte. A ``str`` holding lone surrogates
    cannot be encoded at all; it is repaired by round-tripping through UTF-16
    with replacement, as tiktoken does.
    """
    if isinstance(text, bytes):
        return text.decode("utf-8", errors="surrogateescape"), "surrogateescape"
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        log.debug("input contains lone surrogates; replacing them with U+FFFD")
        text = text.encode("utf-16", "surrogatepass").decode("utf-16", "replace")
    return text, "strict"


@lru_cache(maxsize=64)
def special_token_regex(literals: frozenset[str]) -> re.Pattern[str]:
    """
    Compile an alternation matching any of ``literals``.

    Alternatives are ordered longest first, so at any position the longest
    literal wins.
    """
    ordered = sorted(literals, key=lambda s: (-len(s), s))
    return re.compile("|".join(re.escape(seq) for seq in ordered))


def iter_chunks(
    text: str,
    compiled: re.Pattern[str],
    special_tokens: Mapping[str, Token],
    recognized: frozenset[str],
    errors: str = "strict",
) -> Iterator[Chunk]:
    """
    Yield chunks of prepared ``text`` in order.

    Special literals in ``recognized`` are matched first; the text between them
    is segmented with ``compiled``. Offsets are byte offsets into the encoded
    input.
    """
    offset = 0
    start = 0
    matches = special_token_regex(recognized).finditer(text) if recognized else ()

    for m in matches:
        for piece in split_with(compiled, text[start : m.start()]):
            data = piece.encode("utf-8", errors)
            yield LiteralChunk(data, offset)
            offset += len(data)
        seq = m.group()
        chunk = SpecialChunk(special_tokens[seq], seq, offset)
        yield chunk
        offset += len(chunk.data)
        start = m.end()

    for piece in split_with(compiled, text[start:]):
        data = piece.encode("utf-8", errors)
        yield LiteralChunk(data, offset)
        offset += len(data)


def split(
    text: str | bytes,
    vocabulary: Vocabulary,
    special_tokens: Iterable[str] | None = None,
) -> Iterator[Chunk]:
    """
    Split ``text`` into chunks using the vocabulary's split pattern.

    The result is lazy and single pass; call again to rescan. Concatenating
    every chunk's ``data`` reproduces the input bytes.

    :param text: Input text, or raw bytes (need not be valid UTF-8).
    :param vocabulary: Vocabulary providing the split pattern and special tokens.
    :param special_tokens: Special literals to treat as atomic. ``None`` means
        every registered special token; pass ``()`` to split everything as
        text. Literals not registered in ``vocabulary`` are ignored.
    """
    if special_tokens is None:
        recognized = frozenset(vocabulary.special_tokens)
    else:
        recognized = frozenset(
            seq for seq in special_tokens if seq in vocabulary.special_tokens
        )
    prepared, errors = prepare_text(text)
    return iter_chunks(
        prepared,
        vocabulary.compiled_pattern,
        vocabulary.special_tokens,
        recognized,
        errors,
    )


__all__ = [
    "Chunk",
    "LiteralChunk",
    "SpecialChunk",
    "prepare_text",
    "special_token_regex",
    "iter_chunks",
    "split",
]
