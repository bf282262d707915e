"""
Core types for tokenization.
"""

from collections.abc import Mapping

type Token = int
type Rank = int
type TokenBytes = bytes
type RankTable = Mapping[TokenBytes, Rank]
type SpecialTokens = Mapping[str, Token]
