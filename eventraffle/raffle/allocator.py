"""Sequential, capped allocation of raffle numbers."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Optional

from .errors import CapacityExceeded, InvalidRequest, StoreUnavailable
from .tokens import RAFFLE_CAPACITY, token_range

if TYPE_CHECKING:
    from ..store import RegistrationStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5


class RaffleAllocator:
    """Hands out contiguous blocks of raffle numbers.

    The allocator never infers the next number from registration order. It
    reads the store's high-water mark (the largest number ever issued), and
    commits the new mark with a compare-and-commit: the store refuses the
    commit unless its mark still equals the value the allocator read. Inside a
    process, a lock additionally serializes the read and the commit so
    concurrent callers queue instead of racing.

    Parameters
    ----------
    store : RegistrationStore
        Persistence collaborator exposing ``get_high_water_mark`` and
        ``commit_allocation``.
    capacity : int, default: RAFFLE_CAPACITY
        Total number of raffle numbers the event can issue.
    max_attempts : int, default: 5
        How many stale-mark refusals are tolerated before giving up with
        :class:`StoreUnavailable`.
    """

    def __init__(
        self,
        store: "RegistrationStore",
        capacity: int = RAFFLE_CAPACITY,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be a positive integer")
        if max_attempts < 1:
            raise ValueError("max_attempts must be a positive integer")
        self.store = store
        self.capacity = capacity
        self.max_attempts = max_attempts
        self._lock = threading.Lock()

    def remaining(self) -> int:
        """Return how many raffle numbers can still be issued."""

        return self.capacity - self.store.get_high_water_mark()

    def allocate(self, count: int, registration_id: Optional[str] = None) -> list[str]:
        """Issue the next ``count`` raffle numbers.

        Parameters
        ----------
        count : int
            Size of the block, at least 1.
        registration_id : Optional[str], default: None
            Registration that receives the block. The store verifies it in the
            same transaction that advances the high-water mark.

        Returns
        -------
        list[str]
            Tokens ``#(H+1)`` through ``#(H+count)``.

        Raises
        ------
        InvalidRequest
            If ``count`` is not a positive integer.
        CapacityExceeded
            If the block would pass the capacity. Nothing is allocated.
        StoreUnavailable
            If the store failed or kept refusing the commit. Safe to retry.
        RegistrationConflict
            If the registration is no longer pending.
        """

        if isinstance(count, bool) or not isinstance(count, int) or count < 1:
            raise InvalidRequest(f"count must be a positive integer, got {count!r}")

        with self._lock:
            for attempt in range(1, self.max_attempts + 1):
                high_water_mark = self.store.get_high_water_mark()
                available = self.capacity - high_water_mark
                if count > available:
                    logger.warning(
                        f"Refusing allocation of {count} number(s); {available} remaining"
                    )
                    raise CapacityExceeded(requested=count, available=available)

                new_mark = high_water_mark + count
                tokens = token_range(high_water_mark + 1, count, self.capacity)
                if self.store.commit_allocation(new_mark, registration_id, tokens):
                    logger.debug(
                        f"Allocated {tokens[0]}..{tokens[-1]} "
                        f"(registration={registration_id}, mark={new_mark})"
                    )
                    return tokens

                # Another writer advanced the mark between our read and commit.
                logger.info(
                    f"Stale high-water mark {high_water_mark} on attempt {attempt}; re-reading"
                )

        raise StoreUnavailable(
            f"Allocation of {count} number(s) kept conflicting after "
            f"{self.max_attempts} attempts"
        )


__all__ = ["RaffleAllocator"]
