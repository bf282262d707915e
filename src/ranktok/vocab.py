"""
Vocabulary store: rank table parsing, validation and the immutable Vocabulary.
"""

import base64
import binascii
import logging
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from functools import cached_property
from pathlib import Path
from types import MappingProxyType
from typing import Final

import regex as re

from ._decorators import measure_time
from ._sanitise import render_bytes
from .errors import (
    DuplicateRank,
    MalformedEntry,
    NonContiguousRanks,
    SpecialTokenConflict,
    UnknownTokenId,
    VocabularyNotFound,
)
from .pattern import TokenPattern, compile_pattern
from .types import Rank, RankTable, SpecialTokens, Token, TokenBytes

log = logging.getLogger(__name__)

N_BASE_BYTES: Final[int] = 256
RANK_FILE_SUFFIX: Final[str] = ".tiktoken"
VOCAB_SUFFIX: Final[str] = ".vocab"

type RankSource = str | os.PathLike[str] | bytes | Mapping[bytes, int] | Iterable[str | bytes]


@dataclass(frozen=True, eq=False)
class Vocabulary:
    """
    Immutable rank table, reverse table and special token table for one encoding.

    Instances are built by :func:`load_vocabulary` and never change afterwards,
    so a single instance can be shared by any number of encoders and threads.
    Equality and hashing are by identity.
    """

    name: str
    ranks: Mapping[TokenBytes, Rank] = field(repr=False)
    reverse: tuple[TokenBytes, ...] = field(repr=False)
    special_tokens: Mapping[str, Token]
    pattern: str = field(repr=False)
    pattern_name: str | None = None
    _special_bytes: Mapping[Token, bytes] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "_special_bytes",
            MappingProxyType(
                {tok: seq.encode("utf-8") for seq, tok in self.special_tokens.items()}
            ),
        )

    @property
    def rank_count(self) -> int:
        """Number of merge-derived tokens (base bytes included)."""
        return len(self.reverse)

    @cached_property
    def n_vocab(self) -> int:
        """One past the largest token id, special tokens included."""
        return max([len(self.reverse) - 1, *self.special_tokens.values()]) + 1

    @cached_property
    def special_ids(self) -> frozenset[Token]:
        return frozenset(self.special_tokens.values())

    @property
    def compiled_pattern(self) -> re.Pattern[str]:
        return compile_pattern(self.pattern)

    def is_special(self, token: Token) -> bool:
        return token in self._special_bytes

    def rank_of(self, piece: bytes) -> Rank | None:
        return self.ranks.get(piece)

    def token_bytes(self, token: Token) -> bytes:
        """
        Return the bytes a single token decodes to.

        :raises UnknownTokenId: If ``token`` is neither a rank nor a special token id.
        """
        if 0 <= token < len(self.reverse):
            return self.reverse[token]
        special = self._special_bytes.get(token)
        if special is None:
            raise UnknownTokenId("token not found in vocabulary", token=token)
        return special

    def save(self, path: str | os.PathLike[str]) -> Path:
        """
        Write the rank table in ``<base64 piece> <rank>`` format.

        Special tokens and the split pattern are configuration, not part of the
        rank file, and are not written.
        """
        out = Path(path)
        out.parent.mkdir(parents=True, exist_ok=True)
        log.debug(f"saving {len(self.reverse)} ranks to {out}")
        with out.open("w", encoding="ascii", newline="\n") as f:
            for rank, piece in enumerate(self.reverse):
                f.write(f"{base64.b64encode(piece).decode('ascii')} {rank}\n")
        return out

    def dump_readable(self, path: str | os.PathLike[str]) -> Path:
        """Write a human-readable listing of special tokens and ranked pieces."""
        out = Path(path)
        if not out.suffix:
            out = out.with_suffix(VOCAB_SUFFIX)
        out.parent.mkdir(parents=True, exist_ok=True)

        log.debug(f"saving readable vocab to {out}")

        with out.open("w", encoding="utf-8", newline="\n") as f:
            for seq, tok in sorted(self.special_tokens.items(), key=lambda x: x[1]):
                f.write(f"ST [{tok}] {seq}\n")
            for rank, piece in enumerate(self.reverse):
                f.write(f"[{rank}] {render_bytes(piece)}\n")
        return out


def _decode_line(raw: str | bytes, line_no: int) -> str:
    if isinstance(raw, str):
        return raw
    try:
        return raw.decode("ascii")
    except UnicodeDecodeError as e:
        raise MalformedEntry(
            "rank table record is not ascii", line_no=line_no, line=repr(raw)
        ) from e


def parse_rank_table(lines: Iterable[str | bytes]) -> dict[TokenBytes, Rank]:
    """
    Parse ``<base64 piece> <rank>`` records into a piece -> rank mapping.

    Blank lines are skipped. Ranks are not checked for density here; see
    :func:`load_vocabulary`.

    :raises MalformedEntry: On an unparsable record or a piece listed twice.
    :raises DuplicateRank: If two records claim the same rank.
    """
    ranks: dict[TokenBytes, Rank] = {}
    by_rank: dict[Rank, TokenBytes] = {}

    for line_no, raw in enumerate(lines, start=1):
        line = _decode_line(raw, line_no).strip()
        if not line:
            continue

        fields = line.split()
        if len(fields) != 2:
            raise MalformedEntry(
                "expected '<base64 piece> <rank>'", line_no=line_no, line=line
            )
        encoded, rank_str = fields

        try:
            piece = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise MalformedEntry("invalid base64 piece", line_no=line_no, line=line) from e
        if not piece:
            raise MalformedEntry("empty piece", line_no=line_no, line=line)

        # isdigit() rejects signs and underscores that int() would accept
        if not (rank_str.isascii() and rank_str.isdigit()):
            raise MalformedEntry(
                "rank must be a non-negative integer", line_no=line_no, line=line
            )
        rank = int(rank_str)

        if piece in ranks:
            raise MalformedEntry("piece listed twice", line_no=line_no, line=line)
        if rank in by_rank:
            raise DuplicateRank(
                "rank assigned to more than one piece",
                rank=rank,
                pieces=(by_rank[rank], piece),
            )
        ranks[piece] = rank
        by_rank[rank] = piece

    log.debug(f"parsed {len(ranks)} rank table records")
    return ranks


def _ranks_from_mapping(source: Mapping[bytes, int]) -> dict[TokenBytes, Rank]:
    """Copy and type-check an already-parsed rank mapping."""
    ranks: dict[TokenBytes, Rank] = {}
    by_rank: dict[Rank, TokenBytes] = {}
    for piece, rank in source.items():
        if not isinstance(piece, bytes) or not piece:
            raise MalformedEntry("pieces must be non-empty bytes", line=repr(piece))
        if not isinstance(rank, int) or isinstance(rank, bool) or rank < 0:
            raise MalformedEntry(
                "rank must be a non-negative integer", line=f"{piece!r}: {rank!r}"
            )
        if rank in by_rank:
            raise DuplicateRank(
                "rank assigned to more than one piece",
                rank=rank,
                pieces=(by_rank[rank], piece),
            )
        ranks[piece] = rank
        by_rank[rank] = piece
    return ranks


def _read_source(source: RankSource) -> tuple[dict[TokenBytes, Rank], str | None]:
    """Return the parsed rank table and a default name derived from the source."""
    if isinstance(source, Mapping):
        return _ranks_from_mapping(source), None

    if isinstance(source, bytes):
        return parse_rank_table(source.splitlines()), None

    if isinstance(source, (str, os.PathLike)):
        path = Path(source)
        if not path.is_file():
            raise VocabularyNotFound("rank file does not exist", path=str(path))
        log.info(f"loading rank table from {path}")
        # file handle is released before validation starts
        with path.open("rb") as f:
            ranks = parse_rank_table(f)
        return ranks, path.name.removesuffix(RANK_FILE_SUFFIX)

    return parse_rank_table(source), None


def _with_implicit_base(ranks: dict[TokenBytes, Rank]) -> dict[TokenBytes, Rank]:
    """Add the 256 single-byte pieces at ranks 0..255 when the table lists none."""
    if any(len(piece) == 1 for piece in ranks):
        return ranks

    log.debug("rank table lists no single-byte pieces; using implicit base alphabet")
    full: dict[TokenBytes, Rank] = {bytes([b]): b for b in range(N_BASE_BYTES)}
    by_rank = {rank: piece for piece, rank in full.items()}
    for piece, rank in ranks.items():
        if rank in by_rank:
            raise DuplicateRank(
                "rank collides with implicit base byte",
                rank=rank,
                pieces=(by_rank[rank], piece),
            )
        full[piece] = rank
    return full


def _build_reverse(ranks: Mapping[TokenBytes, Rank]) -> tuple[TokenBytes, ...]:
    """
    Build the rank-indexed reverse table.

    Ranks are already known to be unique, so with ``n`` entries any rank at or
    beyond ``n`` implies a gap below ``n``.

    :raises NonContiguousRanks: If ranks do not cover ``0..n-1``.
    """
    size = len(ranks)
    reverse: list[TokenBytes | None] = [None] * size
    for piece, rank in ranks.items():
        if rank < size:
            reverse[rank] = piece

    for rank, piece in enumerate(reverse):
        if piece is None:
            raise NonContiguousRanks("ranks must form a dense range from 0", missing=rank)

    return tuple(reverse)  # type: ignore[arg-type]


def _validate_merges(ranks: Mapping[TokenBytes, Rank]) -> None:
    """Check every multi-byte piece splits into two strictly lower-ranked pieces."""
    get = ranks.get
    for piece, rank in ranks.items():
        if len(piece) < 2:
            continue
        for i in range(1, len(piece)):
            left = get(piece[:i])
            if left is None or left >= rank:
                continue
            right = get(piece[i:])
            if right is not None and right < rank:
                break
        else:
            raise MalformedEntry(
                f"piece with rank {rank} is not a merge of two lower-ranked pieces",
                line=render_bytes(piece),
            )


def _validate_special_tokens(
    special_tokens: SpecialTokens, ranks: Mapping[TokenBytes, Rank]
) -> dict[str, Token]:
    """
    Check special tokens against the rank table and each other.

    :raises SpecialTokenConflict: On an empty literal, an id inside the rank
        range, an id shared by two literals, or a literal equal to a ranked piece.
    """
    n_ranks = len(ranks)
    seen: dict[Token, str] = {}
    for seq, tok in special_tokens.items():
        if not seq:
            raise SpecialTokenConflict("special token literal is empty", token_id=tok)
        if tok < n_ranks:
            raise SpecialTokenConflict(
                "special token id overlaps with rank range", token=seq, token_id=tok
            )
        if tok in seen:
            raise SpecialTokenConflict(
                f"special token id already used by {seen[tok]!r}", token=seq, token_id=tok
            )
        if seq.encode("utf-8") in ranks:
            raise SpecialTokenConflict(
                "special token collides with an existing piece", token=seq, token_id=tok
            )
        seen[tok] = seq
    return dict(special_tokens)


@measure_time
def load_vocabulary(
    source: RankSource,
    special_tokens: SpecialTokens | None = None,
    pattern: TokenPattern | str = TokenPattern.CL100K,
    *,
    custom_pattern: str | None = None,
    name: str | None = None,
    validate_merges: bool = False,
) -> Vocabulary:
    """
    Build an immutable :class:`Vocabulary` from a rank table source.

    :param source: Path to a rank file, raw rank file bytes, an iterable of
        ``<base64 piece> <rank>`` lines, or an already-parsed piece -> rank mapping.
    :param special_tokens: Literal -> reserved id, disjoint from the rank range.
    :param pattern: Built-in split pattern (member or name such as ``"cl100k"``).
        Ignored if ``custom_pattern`` is provided.
    :param custom_pattern: Custom split regex string. Overrides ``pattern``.
    :param name: Vocabulary name; defaults to the rank file stem.
    :param validate_merges: Also check every multi-byte piece is a merge of two
        lower-ranked pieces.
    :raises LoadError: On any malformed source; nothing is partially built.
    :raises PatternError: On an unknown pattern name or invalid custom pattern.

    .. code-block:: python

        vocab = load_vocabulary(
            "cl100k_base.tiktoken",
            {"<|endoftext|>": 100257},
            pattern="cl100k",
        )
    """
    # resolve the pattern first so a bad name fails before any I/O
    if custom_pattern is not None:
        compile_pattern(custom_pattern)
        pattern_str, pattern_name = custom_pattern, None
    else:
        resolved = pattern if isinstance(pattern, TokenPattern) else TokenPattern.get(pattern)
        pattern_str, pattern_name = resolved.value, resolved.name

    ranks, default_name = _read_source(source)
    ranks = _with_implicit_base(ranks)
    reverse = _build_reverse(ranks)
    if validate_merges:
        _validate_merges(ranks)
    specials = _validate_special_tokens(special_tokens or {}, ranks)

    vocab = Vocabulary(
        name=name or default_name or "custom",
        ranks=MappingProxyType(ranks),
        reverse=reverse,
        special_tokens=MappingProxyType(specials),
        pattern=pattern_str,
        pattern_name=pattern_name,
    )
    log.info(
        f"vocabulary {vocab.name!r} loaded: {vocab.rank_count} ranks, "
        f"{len(specials)} special tokens, n_vocab {vocab.n_vocab}"
    )
    return vocab


__all__ = [
    "RankSource",
    "Vocabulary",
    "parse_rank_table",
    "load_vocabulary",
]
