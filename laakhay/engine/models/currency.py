"""Currency codes, pairs and pair formatting.

Architecture:
    Code is a normalized (uppercase) string so it can be used directly as a
    dict key. Pair identity is (base, quote); the delimiter only affects
    rendering and is excluded from equality and hashing.

    Formatting is a separate PairFormat value. A format either carries a
    delimiter ("BTC-USD") or an index currency used by quote-grouped markets
    where symbols are concatenated ("BTCUSD" grouped under "USD").
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from pydantic_core import core_schema

from ..core.exceptions import InvalidPairError

# Tried in order when a pair string arrives without an explicit delimiter.
DEFAULT_DELIMITERS = ("-", "_", "/", ":")


class Code(str):
    """Currency symbol, stored uppercase and stripped."""

    def __new__(cls, value: str) -> "Code":
        return super().__new__(cls, str(value).strip().upper())

    @property
    def is_empty(self) -> bool:
        return len(self) == 0

    @classmethod
    def __get_pydantic_core_schema__(cls, source: Any, handler: Any) -> core_schema.CoreSchema:
        return core_schema.no_info_after_validator_function(cls, core_schema.str_schema())


@dataclass(frozen=True)
class PairFormat:
    """Rendering policy for pairs sent to or read from a venue."""

    uppercase: bool = True
    delimiter: str = ""
    index: str = ""

    def __post_init__(self) -> None:
        if self.index:
            object.__setattr__(self, "index", self.index.upper())


@dataclass(frozen=True)
class Pair:
    """Base/quote currency pair."""

    base: Code
    quote: Code
    delimiter: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        base = Code(self.base)
        quote = Code(self.quote)
        if base.is_empty or quote.is_empty:
            raise InvalidPairError("pair base and quote must be set")
        if base == quote:
            raise InvalidPairError(f"pair base and quote cannot both be {base}")
        object.__setattr__(self, "base", base)
        object.__setattr__(self, "quote", quote)

    def __str__(self) -> str:
        return f"{self.base}{self.delimiter}{self.quote}"

    def format(self, fmt: PairFormat) -> str:
        """Render the pair with the given format."""
        text = f"{self.base}{fmt.delimiter}{self.quote}"
        return text if fmt.uppercase else text.lower()

    def with_delimiter(self, delimiter: str) -> "Pair":
        return Pair(self.base, self.quote, delimiter)

    def swap(self) -> "Pair":
        return Pair(self.quote, self.base, self.delimiter)

    def contains(self, code: str | Code) -> bool:
        code = Code(code)
        return code in (self.base, self.quote)

    @classmethod
    def __get_pydantic_core_schema__(cls, source: Any, handler: Any) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            _coerce_pair,
            serialization=core_schema.plain_serializer_function_ser_schema(str),
        )


def _coerce_pair(value: Any) -> Pair:
    if isinstance(value, Pair):
        return value
    if isinstance(value, str):
        try:
            return pair_from_string(value)
        except InvalidPairError as exc:
            raise ValueError(str(exc)) from exc
    raise ValueError(f"cannot build a pair from {type(value).__name__}")


def new_pair(base: str | Code, quote: str | Code, delimiter: str = "") -> Pair:
    """Build a pair from two codes, optionally with a rendering delimiter."""
    return Pair(Code(base), Code(quote), delimiter)


def parse_pair(value: str, delimiter: str) -> Pair:
    """Parse ``value`` split on ``delimiter``.

    Everything after the first delimiter belongs to the quote, so
    ``BTC-USD-PERP`` parses as ``BTC`` / ``USD-PERP``.

    Raises:
        InvalidPairError: If the split yields fewer than two tokens
    """
    if not delimiter:
        raise InvalidPairError("delimiter must be set")
    tokens = value.split(delimiter, 1)
    if len(tokens) < 2 or not tokens[0] or not tokens[1]:
        raise InvalidPairError(f"cannot split {value!r} with delimiter {delimiter!r}")
    return new_pair(tokens[0], tokens[1], delimiter)


def parse_pair_with_index(value: str, index: str) -> Pair:
    """Parse a concatenated symbol that starts or ends with ``index``.

    Raises:
        InvalidPairError: If ``index`` cannot be located in ``value``
    """
    text = value.strip().upper()
    index = index.strip().upper()
    if not index or len(text) <= len(index):
        raise InvalidPairError(f"index {index!r} not found in {value!r}")
    if text.endswith(index):
        return new_pair(text[: -len(index)], index)
    if text.startswith(index):
        return new_pair(index, text[len(index) :])
    raise InvalidPairError(f"index {index!r} not found in {value!r}")


def parse_pair_format(value: str, fmt: PairFormat) -> Pair:
    """Inverse of Pair.format for delimiter or index formats."""
    if fmt.index:
        return parse_pair_with_index(value, fmt.index)
    return parse_pair(value, fmt.delimiter)


def pair_from_string(value: str) -> Pair:
    """Parse a pair using the first known delimiter present in ``value``.

    Six letter symbols without a delimiter are split 3/3.
    """
    text = value.strip()
    for delimiter in DEFAULT_DELIMITERS:
        if delimiter in text:
            return parse_pair(text, delimiter)
    if len(text) == 6:
        return new_pair(text[:3], text[3:])
    raise InvalidPairError(f"cannot determine delimiter for {value!r}")


def contains_pair(pairs: Iterable[Pair], pair: Pair, *, exact: bool = True) -> bool:
    """Membership test; with ``exact=False`` the swapped pair also matches."""
    for candidate in pairs:
        if candidate == pair:
            return True
        if not exact and candidate.base == pair.quote and candidate.quote == pair.base:
            return True
    return False


def dedupe_pairs(pairs: Iterable[Pair]) -> list[Pair]:
    """Drop duplicates, keeping first-seen order."""
    seen: set[Pair] = set()
    result: list[Pair] = []
    for pair in pairs:
        if pair not in seen:
            seen.add(pair)
            result.append(pair)
    return result
