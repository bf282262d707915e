"""Pre-tokenization split patterns, one per vocabulary family."""

from collections.abc import Iterator
from enum import Enum
from functools import cache
from typing import Final

import regex as re

from .errors import PatternError


class TokenPattern(str, Enum):
    """
    Pre-defined split patterns for known vocabulary families.

    Each member splits literal text into the chunks its vocabulary was trained
    on.

    Sources:
    - OpenAI: https://github.com/openai/tiktoken/blob/main/tiktoken_ext/openai_public.py
    - Others: https://github.com/ggerganov/llama.cpp
    """

    # OpenAI encodings
    R50K = (
        r"'(?:[sdmt]|ll|ve|re)|"
        r" ?\p{L}+|"
        r" ?\p{N}+|"
        r" ?[^\s\p{L}\p{N}]+|"
        r"\s+(?!\S)|"
        r"\s+"
    )

    CL100K = (
        r"'(?i:[sdmt]|ll|ve|re)|"
        r"[^\r\n\p{L}\p{N}]?+\p{L}+|"
        r"\p{N}{1,3}|"
        r" ?[^\s\p{L}\p{N}]++[\r\n]*|"
        r"\s*[\r\n]|"
        r"\s+(?!\S)|"
        r"\s+"
    )

    O200K = (
        r"[^\r\n\p{L}\p{N}]?[\p{Lu}\p{Lt}\p{Lm}\p{Lo}\p{M}]*[\p{Ll}\p{Lm}\p{Lo}\p{M}]+(?i:'s|'t|'re|'ve|'m|'ll|'d)?|"
        r"[^\r\n\p{L}\p{N}]?[\p{Lu}\p{Lt}\p{Lm}\p{Lo}\p{M}]+[\p{Ll}\p{Lm}\p{Lo}\p{M}]*(?i:'s|'t|'re|'ve|'m|'ll|'d)?|"
        r"\p{N}{1,3}|"
        r" ?[^\s\p{L}\p{N}]+[\r\n/]*|"
        r"\s*[\r\n]+|"
        r"\s+(?!\S)|"
        r"\s+"
    )

    # Meta models
    LLAMA3 = (
        r"(?:'[sS]|'[tT]|'[rR][eE]|'[vV][eE]|'[mM]|'[lL][lL]|'[dD])|"
        r"[^\r\n\p{L}\p{N}]?\p{L}+|"
        r"\p{N}{1,3}|"
        r" ?[^\s\p{L}\p{N}]+[\r\n]*|"
        r"\s*[\r\n]+|"
        r"\s+(?!\S)|"
        r"\s+"
    )

    # Alibaba models
    QWEN2 = (
        r"(?:'[sS]|'[tT]|'[rR][eE]|'[vV][eE]|'[mM]|'[lL][lL]|'[dD])|"
        r"[^\r\n\p{L}\p{N}]?\p{L}+|"
        r"\p{N}|"  # single digits (different from LLAMA3)
        r" ?[^\s\p{L}\p{N}]+[\r\n]*|"
        r"\s*[\r\n]+|"
        r"\s+(?!\S)|"
        r"\s+"
    )

    # coding-focused models
    STARCODER = (
        r"\p{N}|"
        r"'s|'t|'re|'ve|'m|'ll|'d| ?\p{L}+| ?\p{N}+| ?[^\s\p{L}\p{N}]+|"
        r"\s+(?!\S)|"
        r"\s+"
    )

    FALCON = (
        r"[\p{P}\$\+<=>^\~\|`]+|"
        r"'s|'t|'re|'ve|'m|'ll|'d| ?\p{L}+| ?\p{N}+| ?[^\s\p{L}\p{N}]+|"
        r"\s+(?!\S)|"
        r"[0-9][0-9][0-9]"
    )

    # multilingual models
    BLOOM = r" ?[^(\s|.,!?…。，、।۔،)]+"

    @property
    def compiled(self) -> re.Pattern[str]:
        """Return the compiled pattern, compiling it once per process."""
        return compile_pattern(self.value)

    def split(self, text: str) -> Iterator[str]:
        """Yield the chunks of ``text`` in order."""
        return split_with(self.compiled, text)

    @classmethod
    def get(cls, name: str) -> "TokenPattern":
        """Get a pattern by name or alias (case-insensitive)."""
        key = name.upper().replace("-", "_").removesuffix("_BASE")
        key = _ALIASES.get(key.replace("_", ""), key)
        try:
            return cls[key]
        except KeyError:
            raise PatternError(
                f"Unknown pattern: {name!r}. "
                f"Valid patterns: {', '.join(list_patterns())}"
            ) from None


_ALIASES: Final[dict[str, str]] = {
    "GPT2": "R50K",
    "GPT4": "CL100K",
    "GPT4O": "O200K",
}


@cache
def compile_pattern(pattern: str) -> re.Pattern[str]:
    """
    Compile and validate a regex pattern.

    :param pattern: Regex pattern string to compile.
    :return: Compiled regex pattern.
    :raises PatternError: If pattern is invalid or matches the empty string.
    """
    try:
        compiled = re.compile(pattern)
    except re.error as e:
        raise PatternError("invalid regex pattern", pattern=pattern, regex_err=e) from e
    # every match must consume input
    if compiled.fullmatch("") is not None:
        raise PatternError("pattern must not match the empty string", pattern=pattern)
    return compiled


def split_with(compiled: re.Pattern[str], text: str) -> Iterator[str]:
    """
    Yield consecutive chunks of ``text`` matched by ``compiled``.

    Text that no alternative matches is yielded as a chunk of its own, so the
    concatenation of all chunks always equals ``text``.
    """
    pos = 0
    for m in compiled.finditer(text):
        start, end = m.span()
        if start > pos:
            yield text[pos:start]
        if end > start:
            yield text[start:end]
        pos = end
    if pos < len(text):
        yield text[pos:]


def list_patterns() -> list[str]:
    """Return names of all available built-in split patterns."""
    return list(TokenPattern.__members__)


__all__ = [
    "TokenPattern",
    "compile_pattern",
    "split_with",
    "list_patterns",
]
