"""Formatting and parsing of raffle-number tokens such as ``#007``."""

from __future__ import annotations

from typing import Iterable, Optional

RAFFLE_CAPACITY = 250
"""Total number of raffle numbers the event can issue."""

TOKEN_PREFIX = "#"
TOKEN_SEPARATOR = ", "


def format_token(number: int, capacity: int = RAFFLE_CAPACITY) -> str:
    """Return the display token for ``number``.

    Parameters
    ----------
    number : int
        Raffle number in ``1..capacity``.
    capacity : int, default: RAFFLE_CAPACITY
        Upper bound of the raffle-number space.

    Returns
    -------
    str
        ``#`` followed by the number zero-padded to three digits.
    """

    if isinstance(number, bool) or not isinstance(number, int):
        raise TypeError("raffle number must be an integer")
    if number < 1 or number > capacity:
        raise ValueError(f"raffle number {number} is outside 1..{capacity}")
    return f"{TOKEN_PREFIX}{number:03d}"


def token_range(start: int, count: int, capacity: int = RAFFLE_CAPACITY) -> list[str]:
    """Return ``count`` consecutive tokens beginning at ``start``."""

    return [format_token(n, capacity) for n in range(start, start + count)]


def join_tokens(tokens: Iterable[str]) -> str:
    """Serialize tokens the way they are stored and shown to attendees."""

    return TOKEN_SEPARATOR.join(tokens)


def format_tokens(numbers: Iterable[int], capacity: int = RAFFLE_CAPACITY) -> str:
    return join_tokens(format_token(n, capacity) for n in numbers)


def _clean(value: str) -> str:
    # "#007" -> "7", "#000" -> ""
    return value.strip().replace(TOKEN_PREFIX, "").lstrip("0")


def parse_token(token: str) -> int:
    """Return the integer value of a single token like ``#042``."""

    if not isinstance(token, str):
        raise TypeError("token must be a string")
    raw = token.strip()
    if not raw.startswith(TOKEN_PREFIX):
        raise ValueError(f"malformed raffle token: {token!r}")
    digits = raw[len(TOKEN_PREFIX) :]
    if not digits.isdigit():
        raise ValueError(f"malformed raffle token: {token!r}")
    return int(digits)


def split_tokens(serialized: Optional[str]) -> list[str]:
    if not serialized or not serialized.strip():
        return []
    return [part.strip() for part in serialized.split(TOKEN_SEPARATOR.strip())]


def parse_tokens(serialized: Optional[str]) -> list[int]:
    """Parse a stored token list such as ``"#001, #042"`` into ``[1, 42]``."""

    return [parse_token(token) for token in split_tokens(serialized)]


def matches_raffle_search(serialized: Optional[str], query: str) -> bool:
    """Return True when any stored token contains ``query``.

    The admin search ignores ``#`` and leading zeros on both sides, so
    ``"7"``, ``"07"`` and ``"#007"`` all find ``#007`` (and ``#017``, ``#070``...).
    """

    if not query:
        return True
    if not serialized:
        return False
    needle = _clean(query)
    return any(needle in _clean(token) for token in split_tokens(serialized))


__all__ = [
    "RAFFLE_CAPACITY",
    "format_token",
    "format_tokens",
    "join_tokens",
    "matches_raffle_search",
    "parse_token",
    "parse_tokens",
    "split_tokens",
    "token_range",
]
