"""Encoder and decoder over a shared Vocabulary and a per-encoder piece cache."""

import codecs
import logging
import os
import threading
import weakref
from collections.abc import Iterable, Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor
from math import ceil
from typing import Literal

from . import _config
from ._bpe import byte_pair_encode
from .cache import PieceCache
from .errors import (
    DisallowedSpecialToken,
    InputTooLarge,
    InvalidUtf8Output,
    UnencodableByte,
    UnknownTokenId,
)
from .pretokenize import LiteralChunk, SpecialChunk, iter_chunks, prepare_text
from .strategy import (
    AllowNoneRaiseStrategy,
    AllowNoneStrategy,
    SpecialTokenStrategy,
    StrategyName,
    get_strategy,
)
from .types import Token
from .vocab import Vocabulary

log = logging.getLogger(__name__)

type DecodePolicy = Literal["strict", "replace"]
type StrategyArg = SpecialTokenStrategy | StrategyName | None


def _resolve_strategy(strategy: StrategyArg) -> SpecialTokenStrategy:
    if strategy is None:
        return AllowNoneRaiseStrategy()
    if isinstance(strategy, str):
        return get_strategy(strategy)  # type: ignore[arg-type]
    return strategy


def _utf8_len(text: str | bytes, limit: int) -> int:
    """Return the encoded size of ``text``, skipping the encode when it cannot exceed ``limit``."""
    if isinstance(text, bytes):
        return len(text)
    # a code point is at most 4 bytes of UTF-8
    if len(text) * 4 <= limit:
        return len(text)
    return len(text.encode("utf-8", errors="surrogatepass"))


def _bytes_to_text(data: bytes, errors: DecodePolicy) -> str:
    if errors == "replace":
        return data.decode("utf-8", errors="replace")
    if errors == "strict":
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidUtf8Output(
                "decoded bytes are not valid utf-8", position=e.start, reason=e.reason
            ) from e
    raise ValueError(f"errors must be 'strict' or 'replace', got {errors!r}")


class Encoder:
    """
    Encodes text to token ids and decodes ids back for one Vocabulary.

    The Vocabulary is shared and read-only. The piece cache belongs to this
    encoder and is safe to use from several threads, so one ``Encoder`` can
    serve concurrent callers.
    """

    def __init__(
        self,
        vocabulary: Vocabulary,
        cache: PieceCache | bool | None = True,
        max_input_bytes: int | None = None,
    ) -> None:
        """
        :param vocabulary: The vocabulary to encode with.
        :param cache: ``True`` for a fresh cache (capped by ``RANKTOK_CACHE_SIZE``),
            an existing :class:`PieceCache` to share one, or ``False``/``None`` to disable.
        :param max_input_bytes: Reject inputs larger than this many UTF-8 bytes;
            defaults to ``RANKTOK_MAX_INPUT_BYTES`` when set.
        """
        self.vocab = vocabulary
        if cache is True:
            self.cache: PieceCache | None = PieceCache(_config.cache_size())
        elif cache is False or cache is None:
            self.cache = None
        else:
            self.cache = cache
        if max_input_bytes is None:
            max_input_bytes = _config.max_input_bytes()
        self.max_input_bytes = max_input_bytes

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.vocab.name!r}>"

    @property
    def name(self) -> str:
        return self.vocab.name

    @property
    def n_vocab(self) -> int:
        return self.vocab.n_vocab

    # ------------------------------------------------------------------
    # encoding

    def _merge(self, piece: bytes) -> list[Token]:
        return byte_pair_encode(piece, self.vocab.ranks)

    def _encode_chunk(self, chunk: LiteralChunk) -> Sequence[Token]:
        """Return the ids of one literal chunk, via the cache when enabled."""
        rank = self.vocab.ranks.get(chunk.data)
        if rank is not None:
            return (rank,)
        try:
            if self.cache is None:
                return self._merge(chunk.data)
            return self.cache.get_or_compute(chunk.data, self._merge)
        except UnencodableByte as e:
            raise UnencodableByte(
                "byte has no rank in vocabulary",
                byte=e.byte,
                offset=chunk.offset + (e.offset or 0),
            ) from e

    def _check_size(self, text: str | bytes, max_input_bytes: int | None) -> None:
        limit = self.max_input_bytes if max_input_bytes is None else max_input_bytes
        if limit is None:
            return
        size = _utf8_len(text, limit)
        if size > limit:
            raise InputTooLarge("input exceeds byte limit", size=size, limit=limit)

    def _iter_parts(
        self,
        text: str | bytes,
        strategy: StrategyArg,
        max_input_bytes: int | None,
    ) -> Iterator[Sequence[Token]]:
        """Yield the token ids of each chunk of ``text`` in order."""
        strat = _resolve_strategy(strategy)
        self._check_size(text, max_input_bytes)

        specials = self.vocab.special_tokens
        allowed = strat.allowed(specials)
        disallowed = strat.disallowed(specials)
        recognized = frozenset(allowed).union(disallowed)

        prepared, errors = prepare_text(text)
        for chunk in iter_chunks(
            prepared, self.vocab.compiled_pattern, specials, recognized, errors
        ):
            if isinstance(chunk, SpecialChunk):
                if chunk.text not in allowed:
                    raise DisallowedSpecialToken(
                        "special token found in text but not allowed",
                        token=chunk.text,
                        offset=chunk.offset,
                    )
                yield (chunk.token,)
            else:
                yield self._encode_chunk(chunk)

    def encode(
        self,
        text: str | bytes,
        strategy: StrategyArg = None,
        max_input_bytes: int | None = None,
    ) -> list[Token]:
        """
        Encode text into a sequence of tokens.

        :param text: Text to encode; raw bytes are accepted and need not be valid UTF-8.
        :param strategy: Special token policy (instance or name). Defaults to
            ``"none-raise"``: any registered special token in the input is an error.
        :param max_input_bytes: Per-call override of the encoder's input limit.
        :raises DisallowedSpecialToken: If the input holds a disallowed special token.
        :raises InputTooLarge: If the input exceeds the byte limit.
        :raises UnencodableByte: If the vocabulary has no rank for an input byte.
        """
        tokens: list[Token] = []
        for part in self._iter_parts(text, strategy, max_input_bytes):
            tokens.extend(part)
        return tokens

    def encode_ordinary(self, text: str | bytes) -> list[Token]:
        """Encode text treating special token literals as plain text."""
        return self.encode(text, AllowNoneStrategy())

    def count_tokens(
        self,
        text: str | bytes,
        strategy: StrategyArg = None,
        max_input_bytes: int | None = None,
    ) -> int:
        """Count the tokens ``encode`` would produce without building the id list."""
        return sum(len(part) for part in self._iter_parts(text, strategy, max_input_bytes))

    def encode_batch(
        self,
        texts: Sequence[str | bytes],
        strategy: StrategyArg = None,
        num_workers: int | None = None,
    ) -> list[list[Token]]:
        """
        Encode many texts on a thread pool sharing this encoder's cache.

        :param texts: Text inputs to encode.
        :param strategy: Special token policy applied to every text.
        :param num_workers: Thread count; defaults to the CPU count. ``0`` means 1.
        :returns: Encoded token sequences in input order.
        """
        if not texts:
            return []

        if num_workers is None:
            workers = os.cpu_count() or 1
        else:
            workers = max(1, num_workers)

        if workers == 1 or len(texts) == 1:
            return [self.encode(text, strategy) for text in texts]

        # group texts to reduce task-scheduling overhead when the input
        # contains many documents
        target_tasks = min(len(texts), workers * 2)
        group_size = max(1, ceil(len(texts) / target_tasks))
        groups = [texts[idx : idx + group_size] for idx in range(0, len(texts), group_size)]

        def encode_group(group: Sequence[str | bytes]) -> list[list[Token]]:
            return [self.encode(text, strategy) for text in group]

        with ThreadPoolExecutor(max_workers=workers) as pool:
            encoded_groups = list(pool.map(encode_group, groups))
        return [encoded for group in encoded_groups for encoded in group]

    # ------------------------------------------------------------------
    # decoding

    def decode_tokens_bytes(self, tokens: Iterable[Token]) -> list[bytes]:
        """
        Return the bytes of each token.

        :raises UnknownTokenId: If any id is outside the vocabulary.
        """
        reverse = self.vocab.reverse
        n_ranks = len(reverse)
        parts: list[bytes] = []
        for position, tok in enumerate(tokens):
            if 0 <= tok < n_ranks:
                parts.append(reverse[tok])
            elif self.vocab.is_special(tok):
                parts.append(self.vocab.token_bytes(tok))
            else:
                raise UnknownTokenId(
                    "token not found in vocabulary", token=tok, position=position
                )
        return parts

    def decode_bytes(self, tokens: Iterable[Token]) -> bytes:
        """Decode tokens into raw bytes (may hold partial UTF-8 sequences)."""
        return b"".join(self.decode_tokens_bytes(tokens))

    def decode(self, tokens: Iterable[Token], errors: DecodePolicy = "replace") -> str:
        """
        Decode tokens into text.

        :param errors: How to handle invalid UTF-8: "strict" or "replace" (default: "replace").
        :raises UnknownTokenId: If any id is outside the vocabulary.
        :raises InvalidUtf8Output: Under "strict" when the bytes are not valid UTF-8.
        """
        return _bytes_to_text(self.decode_bytes(tokens), errors)

    def decode_batch(
        self, token_batch: Sequence[Sequence[Token]], errors: DecodePolicy = "replace"
    ) -> list[str]:
        """Decode multiple token sequences in order."""
        return [self.decode(tokens, errors) for tokens in token_batch]

    def streaming_decoder(self, errors: DecodePolicy = "replace") -> "StreamingDecoder":
        return StreamingDecoder(self.vocab, errors)


class StreamingDecoder:
    """
    Incremental decoder for token ids arriving one at a time.

    Returns only complete UTF-8 text; bytes of a character split across tokens
    are held back until the character completes.

    .. code-block:: python

        decoder = encoder.streaming_decoder()
        for tok in token_stream:
            print(decoder.add_token(tok), end="")
        print(decoder.flush())
    """

    def __init__(self, vocabulary: Vocabulary, errors: DecodePolicy = "replace") -> None:
        if errors not in ("strict", "replace"):
            raise ValueError(f"errors must be 'strict' or 'replace', got {errors!r}")
        self.vocab = vocabulary
        self.errors = errors
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors=errors)
        self._consumed = 0

    def _feed(self, data: bytes, final: bool) -> str:
        buffered = len(self._decoder.getstate()[0])
        try:
            text = self._decoder.decode(data, final=final)
        except UnicodeDecodeError as e:
            position = self._consumed - buffered + e.start
            self._decoder.reset()
            raise InvalidUtf8Output(
                "decoded bytes are not valid utf-8", position=position, reason=e.reason
            ) from e
        self._consumed += len(data)
        return text

    def add_token(self, token: Token) -> str:
        """
        Feed one token and return any text it completes.

        :raises UnknownTokenId: If ``token`` is outside the vocabulary.
        :raises InvalidUtf8Output: Under "strict" on an invalid byte sequence.
        """
        return self._feed(self.vocab.token_bytes(token), final=False)

    def add_tokens(self, tokens: Iterable[Token]) -> str:
        return "".join(self.add_token(tok) for tok in tokens)

    def flush(self) -> str:
        """Return the held-back tail and reset; incomplete bytes follow the error policy."""
        text = self._feed(b"", final=True)
        self._decoder.reset()
        return text

    @property
    def pending(self) -> bool:
        """Whether bytes of an incomplete character are held back."""
        return bool(self._decoder.getstate()[0])


# ======================================================================
# host-facing functions over a shared encoder per vocabulary

# values must not reference their key or the vocabulary would never be collected
_shared_caches: "weakref.WeakKeyDictionary[Vocabulary, PieceCache]" = (
    weakref.WeakKeyDictionary()
)
_shared_lock = threading.Lock()


def shared_encoder(vocabulary: Vocabulary) -> Encoder:
    """Return an encoder backed by the process-wide cache for ``vocabulary``."""
    cache = _shared_caches.get(vocabulary)
    if cache is None:
        with _shared_lock:
            cache = _shared_caches.get(vocabulary)
            if cache is None:
                log.debug(f"creating shared piece cache for {vocabulary.name!r}")
                cache = PieceCache(_config.cache_size())
                _shared_caches[vocabulary] = cache
    return Encoder(vocabulary, cache=cache)


def encode(
    vocabulary: Vocabulary, text: str | bytes, strategy: StrategyArg = None
) -> list[Token]:
    """Encode ``text`` with ``vocabulary``; see :meth:`Encoder.encode`."""
    return shared_encoder(vocabulary).encode(text, strategy)


def decode(vocabulary: Vocabulary, tokens: Iterable[Token]) -> bytes:
    """
    Decode ``tokens`` to the exact bytes they stand for.

    The result may hold partial or invalid UTF-8; use :func:`decode_text` to
    get a string.

    :raises UnknownTokenId: If any id is outside the vocabulary.
    """
    return shared_encoder(vocabulary).decode_bytes(tokens)


# alias of decode
decode_bytes = decode


def decode_text(
    vocabulary: Vocabulary, tokens: Iterable[Token], errors: DecodePolicy
) -> str:
    """
    Decode ``tokens`` to text under an explicit invalid-UTF-8 policy.

    :param errors: "strict" raises :class:`InvalidUtf8Output`; "replace"
        substitutes U+FFFD.
    """
    return shared_encoder(vocabulary).decode(tokens, errors)


def count_tokens(
    vocabulary: Vocabulary, text: str | bytes, strategy: StrategyArg = None
) -> int:
    """Count tokens of ``text`` with ``vocabulary``; see :meth:`Encoder.count_tokens`."""
    return shared_encoder(vocabulary).count_tokens(text, strategy)


__all__ = [
    "DecodePolicy",
    "Encoder",
    "StreamingDecoder",
    "shared_encoder",
    "encode",
    "decode",
    "decode_bytes",
    "decode_text",
    "count_tokens",
]
