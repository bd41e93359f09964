import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Optional

from .models import MAX_TICKETS_PER_REGISTRATION, Registration
from .raffle.errors import InvalidRequest, RegistrationConflict
from .raffle.tokens import (
    RAFFLE_CAPACITY,
    format_tokens,
    matches_raffle_search,
    parse_tokens,
)

if TYPE_CHECKING:
    from .raffle.allocator import RaffleAllocator
    from .storage.api import StorageClient
    from .store import RegistrationStore

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^[0-9]{10}$")


@dataclass(frozen=True)
class TicketSummary:
    sold: int
    remaining: int


def validate_submission(name: str, phone: str, email: str, ticket_count: int) -> None:
    """Check attendee-supplied fields, raising ``ValueError`` on the first problem."""

    if not (name or "").strip() or not (phone or "").strip() or not (email or "").strip():
        raise ValueError("Please fill in all required fields")
    if not EMAIL_PATTERN.match(email.strip()):
        raise ValueError("Please enter a valid email address")
    if not PHONE_PATTERN.match(re.sub(r"\D", "", phone)):
        raise ValueError("Please enter a valid 10-digit phone number")
    if (
        isinstance(ticket_count, bool)
        or not isinstance(ticket_count, int)
        or not 1 <= ticket_count <= MAX_TICKETS_PER_REGISTRATION
    ):
        raise ValueError(
            f"Ticket count must be between 1 and {MAX_TICKETS_PER_REGISTRATION}"
        )


def submit_registration(
    store: "RegistrationStore",
    *,
    name: str,
    phone: str,
    email: str,
    screenshot_filename: str,
    screenshot_content: bytes,
    ticket_count: int = 1,
    content_type: str = "application/octet-stream",
    storage: Optional["StorageClient"] = None,
) -> Registration:
    """Validate an attendee submission, upload the payment proof and store it.

    The workflow performs three steps:

    1. Validate name, phone, email and ticket count.
    2. Upload the payment screenshot to object storage.
    3. Persist a ``pending`` :class:`Registration` referencing the upload.

    Parameters
    ----------
    store : RegistrationStore
        Store that persists the registration.
    name, phone, email : str
        Attendee contact details.
    screenshot_filename : str
        Original file name; only its extension is kept.
    screenshot_content : bytes
        Raw image bytes.
    ticket_count : int, default: 1
        Number of tickets paid for.
    content_type : str, default: "application/octet-stream"
        MIME type forwarded to the storage service.
    storage : Optional[StorageClient]
        Optional pre-configured :class:`~eventraffle.storage.api.StorageClient`.
        If not provided, a default one will be created.

    Returns
    -------
    Registration
        The persisted, pending registration.

    Raises
    ------
    ValueError
        If a field is invalid or the screenshot is missing.
    RuntimeError
        If the upload fails. Nothing is stored in that case.
    """

    validate_submission(name, phone, email, ticket_count)
    if not screenshot_content:
        raise ValueError("Please upload a payment screenshot")

    if storage is None:
        from .storage.api import StorageClient

        storage = StorageClient()

    screenshot_url = storage.upload(
        screenshot_filename, screenshot_content, content_type=content_type
    )

    registration = Registration(
        name=name.strip(),
        phone=phone.strip(),
        email=email,
        ticket_count=ticket_count,
        payment_screenshot_url=screenshot_url,
    )
    store.add_registration(registration)
    logger.info(f"Registration {registration.id} submitted for {ticket_count} ticket(s)")
    return registration


def verify_registration(
    store: "RegistrationStore",
    allocator: "RaffleAllocator",
    registration_id: str,
) -> list[str]:
    """Mark a pending registration as verified and assign its raffle numbers.

    Verifying an already verified registration allocates nothing and returns
    the numbers it already holds.

    Returns
    -------
    list[str]
        The registration's raffle tokens.

    Raises
    ------
    ValueError
        If the registration does not exist.
    InvalidRequest
        If the registration was rejected.
    CapacityExceeded
        If its ticket count no longer fits. The registration stays pending.
    StoreUnavailable
        If the store failed. Safe to retry.
    """

    registration = store.get_registration(registration_id)
    if registration is None:
        raise ValueError(f"Registration {registration_id} not found")
    if registration.status == "verified":
        logger.debug(f"Registration {registration_id} already verified")
        return registration.assigned_numbers
    if registration.status != "pending":
        raise InvalidRequest(
            f"Registration {registration_id} is {registration.status} and cannot be verified"
        )

    try:
        tokens = allocator.allocate(registration.ticket_count, registration.id)
    except RegistrationConflict:
        # Verified from another session between our read and the commit.
        current = store.get_registration(registration_id)
        if current is not None and current.status == "verified":
            return current.assigned_numbers
        raise

    logger.info(f"Registration {registration_id} verified with {', '.join(tokens)}")
    return tokens


def reject_registration(store: "RegistrationStore", registration_id: str) -> Registration:
    """Reject a registration.

    Numbers already issued to a verified registration remain issued and are
    never handed out again.
    """

    registration = store.transition_status(
        registration_id, "rejected", from_statuses=("pending", "verified")
    )
    logger.info(f"Registration {registration_id} rejected")
    return registration


def search_registrations(
    registrations: Iterable[Registration],
    name: Optional[str] = None,
    raffle_number: Optional[str] = None,
) -> list[Registration]:
    """Filter registrations the way the admin table does.

    ``name`` matches case-insensitively anywhere in the attendee name.
    ``raffle_number`` ignores ``#`` and leading zeros and matches any
    assigned number containing it.
    """

    needle = (name or "").lower()
    matched = []
    for registration in registrations:
        if needle and needle not in registration.name.lower():
            continue
        if raffle_number and not matches_raffle_search(
            registration.raffle_numbers, raffle_number
        ):
            continue
        matched.append(registration)
    return matched


def ticket_summary(
    registrations: Iterable[Registration], capacity: int = RAFFLE_CAPACITY
) -> TicketSummary:
    """Sum the tickets of ``registrations`` against the event capacity."""

    sold = sum(registration.ticket_count or 0 for registration in registrations)
    return TicketSummary(sold=sold, remaining=capacity - sold)


def audit_allocations(store: "RegistrationStore") -> list[str]:
    """Check the stored raffle numbers against the allocation invariants.

    Returns a list of human readable problems; an empty list means every
    issued number is unique, the issued numbers form the run ``1..H`` and each
    verified registration holds exactly ``ticket_count`` numbers.
    """

    problems: list[str] = []
    seen: dict[int, str] = {}
    for registration in store.list_registrations("date"):
        try:
            numbers = parse_tokens(registration.raffle_numbers)
        except ValueError as exc:
            problems.append(f"{registration.id}: unreadable raffle numbers ({exc})")
            continue
        if registration.status == "verified" and len(numbers) != registration.ticket_count:
            problems.append(
                f"{registration.id}: {len(numbers)} number(s) for "
                f"{registration.ticket_count} ticket(s)"
            )
        for number in numbers:
            if number in seen:
                problems.append(
                    f"#{number:03d} issued to both {seen[number]} and {registration.id}"
                )
            seen[number] = registration.id

    high_water_mark = store.get_high_water_mark()
    missing = sorted(set(range(1, high_water_mark + 1)) - set(seen))
    beyond = sorted(n for n in seen if n > high_water_mark)
    if beyond:
        problems.append(
            f"numbers above high-water mark {high_water_mark}: "
            + ", ".join(f"#{n:03d}" for n in beyond)
        )
    if missing:
        problems.append(
            f"numbers up to the high-water mark held by no registration: "
            f"{format_tokens(missing)}"
        )
    return problems
