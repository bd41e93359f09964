"""Exceptions raised while allocating raffle numbers."""

from __future__ import annotations

from typing import Optional


class AllocationError(Exception):
    """Base class for every allocation failure."""

    retryable: bool = False


class CapacityExceeded(AllocationError):
    """The requested block does not fit in the remaining raffle numbers.

    Nothing is allocated when this is raised. ``available`` tells the operator
    how many numbers are still free so they can decide how to proceed.
    """

    def __init__(self, requested: int, available: int) -> None:
        self.requested = requested
        self.available = available
        super().__init__(
            f"Cannot allocate {requested} raffle number(s): only {available} remaining"
        )


class StoreUnavailable(AllocationError):
    """The registration store could not complete the operation.

    Commits are atomic, so the caller can always retry.
    """

    retryable = True

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        self.cause = cause
        super().__init__(message)


class InvalidRequest(AllocationError, ValueError):
    """The allocation request itself is malformed."""


class RegistrationConflict(AllocationError):
    """The registration left the ``pending`` state before numbers were committed."""

    def __init__(self, registration_id: str, status: Optional[str]) -> None:
        self.registration_id = registration_id
        self.status = status
        super().__init__(
            f"Registration {registration_id} is {status or 'missing'}, expected pending"
        )
