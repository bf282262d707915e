"""ranktok: rank-table byte pair encoding tokenizer."""

from .cache import CacheStats, PieceCache
from .errors import (
    DecodeError,
    DisallowedSpecialToken,
    DuplicateRank,
    EncodeError,
    InputTooLarge,
    InvalidUtf8Output,
    LoadError,
    MalformedEntry,
    NonContiguousRanks,
    RankTokError,
    SpecialTokenConflict,
    UnencodableByte,
    UnknownTokenId,
)
from .pattern import TokenPattern, list_patterns
from .pretokenize import LiteralChunk, SpecialChunk, split
from .registry import (
    encoding_name_for_model,
    get_encoder_for_model,
    get_encoding,
    list_encodings,
)
from .strategy import (
    AllowAllStrategy,
    AllowCustomStrategy,
    AllowNoneRaiseStrategy,
    AllowNoneStrategy,
    SpecialTokenStrategy,
    get_strategy,
    list_strategies,
)
from .tokenizer import (
    Encoder,
    StreamingDecoder,
    count_tokens,
    decode,
    decode_bytes,
    decode_text,
    encode,
)
from .vocab import Vocabulary, load_vocabulary

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("ranktok")
except PackageNotFoundError:
    __version__ = "dev"

__all__ = [
    # host operations
    "load_vocabulary",
    "encode",
    "decode",
    "decode_bytes",
    "decode_text",
    "count_tokens",
    # core types
    "Vocabulary",
    "Encoder",
    "StreamingDecoder",
    "PieceCache",
    "CacheStats",
    "TokenPattern",
    "LiteralChunk",
    "SpecialChunk",
    "split",
    # special token policy
    "SpecialTokenStrategy",
    "AllowAllStrategy",
    "AllowNoneStrategy",
    "AllowNoneRaiseStrategy",
    "AllowCustomStrategy",
    "get_strategy",
    "list_strategies",
    "list_patterns",
    # named encodings
    "get_encoding",
    "get_encoder_for_model",
    "encoding_name_for_model",
    "list_encodings",
    # errors
    "RankTokError",
    "LoadError",
    "MalformedEntry",
    "DuplicateRank",
    "NonContiguousRanks",
    "SpecialTokenConflict",
    "EncodeError",
    "DisallowedSpecialToken",
    "InputTooLarge",
    "UnencodableByte",
    "DecodeError",
    "UnknownTokenId",
    "InvalidUtf8Output",
]
