"""Environment-derived defaults for ranktok."""

import logging
import os
from pathlib import Path

log = logging.getLogger(__name__)

DATA_DIR_ENV = "RANKTOK_DATA_DIR"
CACHE_SIZE_ENV = "RANKTOK_CACHE_SIZE"
MAX_INPUT_ENV = "RANKTOK_MAX_INPUT_BYTES"


def _positive_int_env(name: str) -> int | None:
    """Read a positive integer from the environment; unset, empty or invalid means None."""
    raw = os.environ.get(name, "").strip()
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError:
        log.warning(f"ignoring {name}={raw!r}: not an integer")
        return None
    if value <= 0:
        log.warning(f"ignoring {name}={raw!r}: must be positive")
        return None
    return value


def data_dir() -> Path | None:
    """Directory holding ``<encoding>.tiktoken`` rank files, if configured."""
    raw = os.environ.get(DATA_DIR_ENV, "").strip()
    return Path(raw).expanduser() if raw else None


def cache_size() -> int | None:
    """Default entry cap for piece caches (None means unbounded)."""
    return _positive_int_env(CACHE_SIZE_ENV)


def max_input_bytes() -> int | None:
    """Default input limit for encoders (None means no limit)."""
    return _positive_int_env(MAX_INPUT_ENV)
