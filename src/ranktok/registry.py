"""Named encodings, model-name lookup and process-wide loaded encoders."""

import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Final

from . import _config
from .errors import UnknownEncoding, VocabularyNotFound
from .pattern import TokenPattern
from .tokenizer import Encoder
from .types import SpecialTokens
from .vocab import RANK_FILE_SUFFIX, load_vocabulary

log = logging.getLogger(__name__)

ENDOFTEXT: Final[str] = "<|endoftext|>"
FIM_PREFIX: Final[str] = "<|fim_prefix|>"
FIM_MIDDLE: Final[str] = "<|fim_middle|>"
FIM_SUFFIX: Final[str] = "<|fim_suffix|>"
ENDOFPROMPT: Final[str] = "<|endofprompt|>"


@dataclass(frozen=True)
class EncodingSpec:
    """Everything needed to build a named encoding besides its rank file."""

    name: str
    pattern: TokenPattern
    special_tokens: SpecialTokens = field(default_factory=dict)
    # rank count plus special tokens, when the published encoding fixes it
    explicit_n_vocab: int | None = None

    @property
    def filename(self) -> str:
        return f"{self.name}{RANK_FILE_SUFFIX}"


_ENCODINGS: dict[str, EncodingSpec] = {
    spec.name: spec
    for spec in (
        EncodingSpec(
            "r50k_base",
            TokenPattern.R50K,
            MappingProxyType({ENDOFTEXT: 50256}),
            explicit_n_vocab=50257,
        ),
        EncodingSpec(
            "cl100k_base",
            TokenPattern.CL100K,
            MappingProxyType(
                {
                    ENDOFTEXT: 100257,
                    FIM_PREFIX: 100258,
                    FIM_MIDDLE: 100259,
                    FIM_SUFFIX: 100260,
                    ENDOFPROMPT: 100276,
                }
            ),
        ),
        EncodingSpec(
            "o200k_base",
            TokenPattern.O200K,
            MappingProxyType({ENDOFTEXT: 199999, ENDOFPROMPT: 200018}),
        ),
    )
}

MODEL_TO_ENCODING: Final[dict[str, str]] = {
    # chat
    "o1": "o200k_base",
    "o3": "o200k_base",
    "gpt-4o": "o200k_base",
    "gpt-4.1": "o200k_base",
    "gpt-5": "o200k_base",
    "gpt-4": "cl100k_base",
    "gpt-3.5-turbo": "cl100k_base",
    "gpt-3.5": "cl100k_base",
    "gpt-35-turbo": "cl100k_base",
    # base
    "davinci-002": "cl100k_base",
    "babbage-002": "cl100k_base",
    # embeddings
    "text-embedding-ada-002": "cl100k_base",
    "text-embedding-3-small": "cl100k_base",
    "text-embedding-3-large": "cl100k_base",
    # legacy
    "davinci": "r50k_base",
    "gpt2": "r50k_base",
}

MODEL_PREFIX_TO_ENCODING: Final[dict[str, str]] = {
    "o1-": "o200k_base",
    "o3-": "o200k_base",
    "o4-": "o200k_base",
    "chatgpt-4o-": "o200k_base",
    "gpt-4o-": "o200k_base",
    "gpt-4.1-": "o200k_base",
    "gpt-4.5-": "o200k_base",
    "gpt-5-": "o200k_base",
    "gpt-4-": "cl100k_base",
    "gpt-3.5-turbo-": "cl100k_base",
    "gpt-35-turbo-": "cl100k_base",
    "ft:gpt-4o": "o200k_base",
    "ft:gpt-4": "cl100k_base",
    "ft:gpt-3.5-turbo": "cl100k_base",
    "ft:davinci-002": "cl100k_base",
    "ft:babbage-002": "cl100k_base",
}

_loaded: dict[tuple[str, Path], Encoder] = {}
_loaded_lock = threading.Lock()


def list_encodings() -> list[str]:
    """Return the names of all registered encodings."""
    return list(_ENCODINGS)


def get_encoding_spec(name: str) -> EncodingSpec:
    """
    Return the registered spec for ``name``.

    :raises UnknownEncoding: If ``name`` is not registered.
    """
    try:
        return _ENCODINGS[name]
    except KeyError:
        raise UnknownEncoding(
            "unknown encoding", name=name, available=list_encodings()
        ) from None


def register_encoding(spec: EncodingSpec, *, overwrite: bool = False) -> None:
    """
    Register an additional named encoding.

    :raises ValueError: If ``spec.name`` is taken and ``overwrite`` is false.
    """
    if spec.name in _ENCODINGS and not overwrite:
        raise ValueError(f"encoding {spec.name!r} is already registered")
    _ENCODINGS[spec.name] = spec
    log.debug(f"registered encoding {spec.name!r}")


def encoding_name_for_model(model: str) -> str:
    """
    Return the encoding name used by ``model``.

    Exact model names are checked first, then the longest matching prefix.

    :raises UnknownEncoding: If no encoding is known for ``model``.
    """
    if model in MODEL_TO_ENCODING:
        return MODEL_TO_ENCODING[model]
    for prefix in sorted(MODEL_PREFIX_TO_ENCODING, key=len, reverse=True):
        if model.startswith(prefix):
            return MODEL_PREFIX_TO_ENCODING[prefix]
    raise UnknownEncoding("could not map model to an encoding", name=model)


def _resolve_data_dir(data_dir: str | os.PathLike[str] | None) -> Path:
    if data_dir is not None:
        return Path(data_dir)
    env_dir = _config.data_dir()
    if env_dir is None:
        raise VocabularyNotFound(
            f"no data directory given and {_config.DATA_DIR_ENV} is not set"
        )
    return env_dir


def get_encoding(
    name: str, data_dir: str | os.PathLike[str] | None = None
) -> Encoder:
    """
    Load (once per process) and return the encoder for a registered encoding.

    The rank file ``<data_dir>/<name>.tiktoken`` is read on first use; later
    calls with the same name and directory return the same encoder.

    :param name: Registered encoding name, e.g. ``"cl100k_base"``.
    :param data_dir: Directory holding rank files; defaults to ``RANKTOK_DATA_DIR``.
    :raises UnknownEncoding: If ``name`` is not registered.
    :raises VocabularyNotFound: If the rank file is missing.
    :raises LoadError: If the rank file is malformed.
    """
    spec = get_encoding_spec(name)
    path = _resolve_data_dir(data_dir) / spec.filename
    key = (name, path.resolve())

    encoder = _loaded.get(key)
    if encoder is not None:
        return encoder

    with _loaded_lock:
        encoder = _loaded.get(key)
        if encoder is None:
            vocab = load_vocabulary(
                path, spec.special_tokens, spec.pattern, name=spec.name
            )
            if spec.explicit_n_vocab is not None and vocab.n_vocab != spec.explicit_n_vocab:
                log.warning(
                    f"{name}: expected {spec.explicit_n_vocab} tokens, loaded {vocab.n_vocab}"
                )
            encoder = Encoder(vocab)
            _loaded[key] = encoder
    return encoder


def get_encoder_for_model(
    model: str, data_dir: str | os.PathLike[str] | None = None
) -> Encoder | None:
    """
    Return the encoder for ``model``, or ``None`` when the model is unknown.

    Load failures for a known model still raise.
    """
    try:
        name = encoding_name_for_model(model)
    except UnknownEncoding:
        log.debug(f"no encoding known for model {model!r}")
        return None
    return get_encoding(name, data_dir)


def clear_loaded() -> None:
    """Forget all loaded encoders (tests and long-running hosts swapping rank files)."""
    with _loaded_lock:
        _loaded.clear()


__all__ = [
    "ENDOFTEXT",
    "FIM_PREFIX",
    "FIM_MIDDLE",
    "FIM_SUFFIX",
    "ENDOFPROMPT",
    "EncodingSpec",
    "MODEL_TO_ENCODING",
    "MODEL_PREFIX_TO_ENCODING",
    "list_encodings",
    "get_encoding_spec",
    "register_encoding",
    "encoding_name_for_model",
    "get_encoding",
    "get_encoder_for_model",
    "clear_loaded",
]
