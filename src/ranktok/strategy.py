"""Special token handling for encoding."""

from typing import Final, Literal, overload, override
from abc import ABC, abstractmethod
from collections.abc import Collection
import logging

from .types import SpecialTokens, Token
from .errors import StrategyError

log = logging.getLogger(__name__)

# =========================================================================================

# special token handling strategies


class SpecialTokenStrategy(ABC):
    """
    Base strategy for handling special tokens during encoding.

    A strategy partitions the registered special tokens into those emitted as
    their reserved id (``allowed``) and those that make encoding fail when they
    appear in the input (``disallowed``). Tokens in neither set are encoded as
    ordinary text.
    """

    @abstractmethod
    def allowed(self, special_toks: SpecialTokens) -> dict[str, Token]:
        """Return the special tokens emitted atomically."""

    def disallowed(self, special_toks: SpecialTokens) -> frozenset[str]:
        """Return the special tokens whose presence is an error."""
        return frozenset()


class AllowAllStrategy(SpecialTokenStrategy):
    """Strategy that allows all registered special tokens."""

    @override
    def allowed(self, special_toks: SpecialTokens) -> dict[str, Token]:
        """Return all registered special tokens unchanged."""
        if not special_toks:
            log.debug("no special tokens registered")
        return dict(special_toks)


class AllowNoneRaiseStrategy(SpecialTokenStrategy):
    """Strategy that raises if special tokens are found in text to be encoded."""

    @override
    def allowed(self, special_toks: SpecialTokens) -> dict[str, Token]:
        return {}

    @override
    def disallowed(self, special_toks: SpecialTokens) -> frozenset[str]:
        return frozenset(special_toks)


class AllowNoneStrategy(SpecialTokenStrategy):
    """
    Strategy that encodes special token literals as ordinary text.

    This never raises. To reject input that contains special tokens use
    :class:`AllowNoneRaiseStrategy` (``"none-raise"``).
    """

    @override
    def allowed(self, special_toks: SpecialTokens) -> dict[str, Token]:
        return {}


class AllowCustomStrategy(SpecialTokenStrategy):
    """
    Strategy that allows only specified special tokens.

    With ``strict`` (the default) every other registered special token is
    disallowed; otherwise the rest are encoded as ordinary text.
    """

    def __init__(self, allowed_subset: Collection[str], strict: bool = True) -> None:
        """Store the special token subset allowed during encoding."""
        super().__init__()
        self.allowed_subset = frozenset(allowed_subset)
        self.strict = strict

    @override
    def allowed(self, special_toks: SpecialTokens) -> dict[str, Token]:
        """Return only special tokens present in the allowed subset."""
        unknown = self.allowed_subset.difference(special_toks)
        if unknown:
            log.warning(
                f"allowed special tokens not registered: {', '.join(sorted(unknown))}"
            )
        return {
            seq: tok for seq, tok in special_toks.items() if seq in self.allowed_subset
        }

    @override
    def disallowed(self, special_toks: SpecialTokens) -> frozenset[str]:
        if not self.strict:
            return frozenset()
        return frozenset(seq for seq in special_toks if seq not in self.allowed_subset)


StrategyName = Literal["all", "none", "none-raise", "custom"]

_SPECIAL_TOKEN_STRATEGIES: Final[dict[str, type[SpecialTokenStrategy]]] = {
    "all": AllowAllStrategy,
    "none": AllowNoneStrategy,
    "none-raise": AllowNoneRaiseStrategy,
    "custom": AllowCustomStrategy,
}


def list_strategies() -> list[str]:
    """Return available special token strategy names."""
    return list(_SPECIAL_TOKEN_STRATEGIES.keys())


@overload
def get_strategy(
    name: Literal["all", "none", "none-raise"],
) -> SpecialTokenStrategy:
    """Return a built-in strategy that does not need extra arguments."""
    ...


@overload
def get_strategy(
    name: Literal["custom"], allowed_subset: Collection[str]
) -> AllowCustomStrategy:
    """Return a custom strategy limited to ``allowed_subset``."""
    ...


def get_strategy(
    name: StrategyName = "none-raise", allowed_subset: Collection[str] | None = None
) -> SpecialTokenStrategy:
    """
    Create a special token strategy by name.

    The encode policies map to names as follows:

    - allow all: ``"all"``
    - allow a set: ``"custom"`` with ``allowed_subset``
    - allow none, error on any match: ``"none-raise"`` (the encoder default)
    - ``"none"`` is different: it encodes special literals as plain text and
      never errors.

    :param name: Strategy identifier: "all", "none", "none-raise", or "custom".
    :param allowed_subset: Required for "custom"; tokens allowed during encoding.
    :raises StrategyError: If name is unknown or allowed_subset is missing for custom.

    .. code-block:: python

        strategy = get_strategy("all")
        strategy = get_strategy("none-raise")
        strategy = get_strategy("custom", allowed_subset={"<|endoftext|>"})
    """
    if name not in _SPECIAL_TOKEN_STRATEGIES:
        raise StrategyError(
            "unknown strategy name",
            invalid_name=name,
            available_strats=list(_SPECIAL_TOKEN_STRATEGIES.keys()),
        )

    if name == "custom":
        if allowed_subset is None:
            raise StrategyError("allowed_subset is required for custom strategy")
        return AllowCustomStrategy(allowed_subset)

    return _SPECIAL_TOKEN_STRATEGIES[name]()


__all__ = [
    "StrategyName",
    "SpecialTokenStrategy",
    "AllowAllStrategy",
    "AllowNoneStrategy",
    "AllowNoneRaiseStrategy",
    "AllowCustomStrategy",
    "list_strategies",
    "get_strategy",
]
