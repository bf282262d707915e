"""
Build vocabularies from the `tiktoken` package's published encodings.

tiktoken is an optional dependency (``pip install ranktok[tiktoken]``).
"""

import logging
from typing import TYPE_CHECKING, Any

from .errors import ModelLoadError
from .pattern import TokenPattern
from .vocab import Vocabulary, load_vocabulary

if TYPE_CHECKING:
    import tiktoken

log = logging.getLogger(__name__)


def _import_tiktoken() -> Any:
    try:
        import tiktoken
    except ImportError as e:
        raise ModelLoadError(
            "tiktoken is not installed; install the 'tiktoken' extra to use it"
        ) from e
    return tiktoken


def from_tiktoken(encoding: "tiktoken.Encoding") -> Vocabulary:
    """
    Convert a ``tiktoken.Encoding`` into a :class:`Vocabulary`.

    The split pattern is matched against the built-in patterns and kept as a
    custom pattern when none is identical.

    :raises ModelLoadError: If ``encoding`` does not expose tiktoken's internals.
    """
    try:
        ranks = encoding._mergeable_ranks
        special_tokens = encoding._special_tokens
        pat_str = encoding._pat_str
    except AttributeError as e:
        raise ModelLoadError(f"not a tiktoken encoding: {encoding!r}") from e

    builtin = next((pat for pat in TokenPattern if pat.value == pat_str), None)
    log.debug(
        f"converting tiktoken encoding {encoding.name!r} "
        f"(pattern: {builtin.name if builtin else 'custom'})"
    )
    if builtin is not None:
        return load_vocabulary(ranks, special_tokens, builtin, name=encoding.name)
    return load_vocabulary(
        ranks, special_tokens, custom_pattern=pat_str, name=encoding.name
    )


def load_tiktoken_encoding(name: str) -> Vocabulary:
    """
    Fetch a published encoding through tiktoken and convert it.

    tiktoken downloads and caches the rank file on first use.
    """
    tiktoken = _import_tiktoken()
    return from_tiktoken(tiktoken.get_encoding(name))


__all__ = ["from_tiktoken", "load_tiktoken_encoding"]
