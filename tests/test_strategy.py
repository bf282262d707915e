"""Unit tests for special token strategies."""

import pytest

import ranktok as rt
from ranktok.errors import StrategyError

from conftest import SPECIALS


def test_list_strategies():
    assert rt.list_strategies() == ["all", "none", "none-raise", "custom"]


@pytest.mark.parametrize(
    ("name", "cls"),
    [
        ("all", rt.AllowAllStrategy),
        ("none", rt.AllowNoneStrategy),
        ("none-raise", rt.AllowNoneRaiseStrategy),
    ],
)
def test_get_strategy(name, cls):
    assert isinstance(rt.get_strategy(name), cls)


def test_get_strategy_unknown():
    with pytest.raises(StrategyError) as excinfo:
        rt.get_strategy("everything")  # type: ignore[call-overload]
    assert excinfo.value.invalid_name == "everything"


def test_custom_requires_subset():
    with pytest.raises(StrategyError):
        rt.get_strategy("custom")  # type: ignore[call-overload]


def test_allow_all():
    strat = rt.AllowAllStrategy()
    assert strat.allowed(SPECIALS) == SPECIALS
    assert strat.disallowed(SPECIALS) == frozenset()


def test_allow_none_raise():
    strat = rt.AllowNoneRaiseStrategy()
    assert strat.allowed(SPECIALS) == {}
    assert strat.disallowed(SPECIALS) == frozenset(SPECIALS)


def test_allow_none():
    strat = rt.AllowNoneStrategy()
    assert strat.allowed(SPECIALS) == {}
    assert strat.disallowed(SPECIALS) == frozenset()


def test_allow_custom_strict():
    strat = rt.get_strategy("custom", allowed_subset={"<END>"})
    assert strat.allowed(SPECIALS) == {"<END>": 50000}
    assert strat.disallowed(SPECIALS) == frozenset({"<|endoftext|>", "<|end|>"})


def test_allow_custom_lenient():
    strat = rt.AllowCustomStrategy({"<END>"}, strict=False)
    assert strat.allowed(SPECIALS) == {"<END>": 50000}
    assert strat.disallowed(SPECIALS) == frozenset()


def test_allow_custom_unknown_names_are_dropped(caplog):
    strat = rt.AllowCustomStrategy({"<END>", "<missing>"})
    with caplog.at_level("WARNING"):
        assert strat.allowed(SPECIALS) == {"<END>": 50000}
    assert "<missing>" in caplog.text
