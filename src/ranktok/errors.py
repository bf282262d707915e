"""Custom exception hierarchy for ranktok errors."""

import regex as re

from .types import Token


class RankTokError(Exception):
    """Base exception for all ranktok errors."""


# =========================================================================================

# vocabulary construction


class LoadError(RankTokError):
    """Raised when a vocabulary cannot be constructed."""


class MalformedEntry(LoadError):
    """Raised when a rank table record cannot be parsed."""

    def __init__(
        self,
        message: str,
        *,
        line_no: int | None = None,
        line: str | None = None,
    ) -> None:
        extra = " "
        if line_no is not None:
            extra += f"(line: {line_no}) "
        if line is not None:
            extra += f"(got: {line!r}) "
        super().__init__(message + extra)
        self.line_no = line_no
        self.line = line


class DuplicateRank(LoadError):
    """Raised when two rank table entries claim the same rank."""

    def __init__(
        self, message: str, *, rank: int, pieces: tuple[bytes, bytes] | None = None
    ) -> None:
        extra = f" (rank: {rank}) "
        if pieces:
            extra += f"(pieces: {pieces[0]!r}, {pieces[1]!r}) "
        super().__init__(message + extra)
        self.rank = rank
        self.pieces = pieces


class NonContiguousRanks(LoadError):
    """Raised when ranks do not form a dense range starting at zero."""

    def __init__(self, message: str, *, missing: int) -> None:
        super().__init__(f"{message} (first missing rank: {missing}) ")
        self.missing = missing


class SpecialTokenConflict(LoadError):
    """Raised when a special token collides with the rank table or another special token."""

    def __init__(
        self, message: str, *, token: str | None = None, token_id: Token | None = None
    ) -> None:
        extra = " "
        if token is not None:
            extra += f"(token: {token!r}) "
        if token_id is not None:
            extra += f"(id: {token_id}) "
        super().__init__(message + extra)
        self.token = token
        self.token_id = token_id


class VocabularyNotFound(LoadError):
    """Raised when a named encoding has no rank file on disk."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        extra = f" (path: {path}) " if path else " "
        super().__init__(message + extra)
        self.path = path


class ModelLoadError(LoadError):
    """Raised when importing a vocabulary from another tokenizer library fails."""


# =========================================================================================

# encoding


class EncodeError(RankTokError):
    """Raised when encoding text fails."""


class DisallowedSpecialToken(EncodeError):
    """Raised when input contains a special token the active strategy does not allow."""

    def __init__(self, message: str, *, token: str, offset: int) -> None:
        super().__init__(f"{message} (token: {token!r}) (offset: {offset}) ")
        self.token = token
        self.offset = offset


class InputTooLarge(EncodeError):
    """Raised when input exceeds the caller-imposed byte limit."""

    def __init__(self, message: str, *, size: int, limit: int) -> None:
        super().__init__(f"{message} (size: {size} bytes) (limit: {limit} bytes) ")
        self.size = size
        self.limit = limit


class UnencodableByte(EncodeError):
    """Raised when a byte has no single-byte rank in the vocabulary."""

    def __init__(self, message: str, *, byte: int, offset: int | None = None) -> None:
        extra = f" (byte: 0x{byte:02x}) "
        if offset is not None:
            extra += f"(offset: {offset}) "
        super().__init__(message + extra)
        self.byte = byte
        self.offset = offset


# =========================================================================================

# decoding


class DecodeError(RankTokError):
    """Raised when decoding token ids fails."""


class UnknownTokenId(DecodeError):
    """Raised when a token id is outside the vocabulary."""

    def __init__(
        self, message: str, *, token: Token, position: int | None = None
    ) -> None:
        extra = f" (invalid token: {token}) "
        if position is not None:
            extra += f"(position: {position}) "
        super().__init__(message + extra)
        self.token = token
        self.position = position


class InvalidUtf8Output(DecodeError):
    """Raised under the strict policy when decoded bytes are not valid UTF-8."""

    def __init__(
        self, message: str, *, position: int, reason: str | None = None
    ) -> None:
        extra = f" (byte position: {position}) "
        if reason:
            extra += f"(reason: {reason}) "
        super().__init__(message + extra)
        self.position = position
        self.reason = reason


# =========================================================================================

# configuration


class PatternError(RankTokError):
    """Raised when compiling and/or validating regex patterns."""

    def __init__(
        self,
        message: str,
        *,
        pattern: str | None = None,
        regex_err: re.error | None = None,
    ) -> None:
        """
        Initialize PatternError with pattern details.

        Args:
            message: Error message.
            pattern: The regex pattern that failed.
            regex_err: The underlying regex error from the regex library.
        """
        extra = " "
        if pattern:
            extra += f"(pattern: {pattern!r}) "
        if regex_err:
            extra += f"(reason: {regex_err}) "
        super().__init__(message + extra)
        self.pattern = pattern
        self.regex_err = regex_err


class StrategyError(RankTokError):
    """Raised when strategy operations fail."""

    def __init__(
        self,
        message: str,
        *,
        invalid_name: str | None = None,
        available_strats: list[str] | None = None,
    ) -> None:
        extra = " "
        if invalid_name:
            extra += f"(available: {available_strats}) (got {invalid_name}) "
        super().__init__(message + extra)
        self.invalid_name = invalid_name
        self.available_strats = available_strats


class UnknownEncoding(RankTokError):
    """Raised when an encoding or model name is not registered."""

    def __init__(
        self, message: str, *, name: str, available: list[str] | None = None
    ) -> None:
        extra = f" (got {name!r}) "
        if available:
            extra += f"(available: {', '.join(available)}) "
        super().__init__(message + extra)
        self.name = name
        self.available = available
