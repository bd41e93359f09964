"""Raffle-number allocation."""

from .allocator import RaffleAllocator
from .errors import (
    AllocationError,
    CapacityExceeded,
    InvalidRequest,
    RegistrationConflict,
    StoreUnavailable,
)
from .tokens import (
    RAFFLE_CAPACITY,
    format_token,
    format_tokens,
    join_tokens,
    matches_raffle_search,
    parse_token,
    parse_tokens,
    token_range,
)

__all__ = [
    "AllocationError",
    "CapacityExceeded",
    "InvalidRequest",
    "RAFFLE_CAPACITY",
    "RaffleAllocator",
    "RegistrationConflict",
    "StoreUnavailable",
    "format_token",
    "format_tokens",
    "join_tokens",
    "matches_raffle_search",
    "parse_token",
    "parse_tokens",
    "token_range",
]
