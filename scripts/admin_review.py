"""Command-line admin review: list, search, verify and reject registrations."""

from __future__ import annotations

import argparse
import logging
import sys

from eventraffle.db.utils import dt_iso
from eventraffle.notifications import compose_verification_message, whatsapp_chat_url
from eventraffle.raffle import (
    CapacityExceeded,
    InvalidRequest,
    RaffleAllocator,
    RegistrationConflict,
    StoreUnavailable,
)
from eventraffle.store import SORT_KEYS, RegistrationStore
from eventraffle.workflows import (
    audit_allocations,
    reject_registration,
    search_registrations,
    ticket_summary,
    verify_registration,
)

# Exit codes let wrapper scripts tell "operator decision needed" from "try again".
EXIT_OK = 0
EXIT_CAPACITY = 2
EXIT_RETRY = 3
EXIT_INVALID = 4


def cmd_list(store: RegistrationStore, args: argparse.Namespace) -> int:
    registrations = search_registrations(
        store.list_registrations(args.sort),
        name=args.name,
        raffle_number=args.raffle_number,
    )
    for r in registrations:
        print(
            f"{r.id}  {r.status:<8}  {r.ticket_count:>2}  {r.name:<24}  "
            f"{r.raffle_numbers or '-'}  {dt_iso(r.created_at)}"
        )
    summary = ticket_summary(registrations)
    print(f"Tickets sold: {summary.sold}  Remaining: {summary.remaining}")
    return EXIT_OK


def cmd_verify(store: RegistrationStore, args: argparse.Namespace) -> int:
    allocator = RaffleAllocator(store)
    try:
        tokens = verify_registration(store, allocator, args.registration_id)
    except CapacityExceeded as exc:
        print(
            f"Cannot verify: {exc.requested} ticket(s) requested, "
            f"{exc.available} raffle number(s) left. Adjust the ticket count or refund.",
            file=sys.stderr,
        )
        return EXIT_CAPACITY
    except StoreUnavailable as exc:
        print(f"Database unavailable, please retry: {exc}", file=sys.stderr)
        return EXIT_RETRY
    except (InvalidRequest, RegistrationConflict, ValueError) as exc:
        print(f"Cannot verify: {exc}", file=sys.stderr)
        return EXIT_INVALID
    print(f"Assigned numbers: {', '.join(tokens)}")
    return EXIT_OK


def cmd_reject(store: RegistrationStore, args: argparse.Namespace) -> int:
    try:
        reject_registration(store, args.registration_id)
    except RegistrationConflict as exc:
        print(f"Cannot reject: {exc}", file=sys.stderr)
        return EXIT_INVALID
    except StoreUnavailable as exc:
        print(f"Database unavailable, please retry: {exc}", file=sys.stderr)
        return EXIT_RETRY
    print(f"Registration {args.registration_id} rejected")
    return EXIT_OK


def cmd_message(store: RegistrationStore, args: argparse.Namespace) -> int:
    registration = store.get_registration(args.registration_id)
    if registration is None:
        print(f"Registration {args.registration_id} not found", file=sys.stderr)
        return EXIT_INVALID
    try:
        message = compose_verification_message(registration)
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_INVALID
    print(message)
    print(whatsapp_chat_url(registration.phone))
    return EXIT_OK


def cmd_audit(store: RegistrationStore, args: argparse.Namespace) -> int:
    problems = audit_allocations(store)
    for problem in problems:
        print(f"- {problem}")
    if problems:
        return 1
    print("Raffle numbers are consistent.")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description=__doc__)
    ap.add_argument("--db-url", default=None, help="Database URL (defaults to DB_URL)")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = ap.add_subparsers(dest="command", required=True)

    p_list = sub.add_parser("list", help="List registrations")
    p_list.add_argument("--sort", choices=SORT_KEYS, default="date")
    p_list.add_argument("--name", default=None, help="Filter by attendee name")
    p_list.add_argument("--raffle-number", default=None, help="Filter by raffle number")
    p_list.set_defaults(func=cmd_list)

    for name, func, help_text in (
        ("verify", cmd_verify, "Verify payment and assign raffle numbers"),
        ("reject", cmd_reject, "Reject a registration"),
        ("message", cmd_message, "Print the WhatsApp verification message"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("registration_id")
        p.set_defaults(func=func)

    p_audit = sub.add_parser("audit", help="Check raffle-number invariants")
    p_audit.set_defaults(func=cmd_audit)
    return ap


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    store = RegistrationStore.from_url(args.db_url)
    return args.func(store, args)


if __name__ == "__main__":
    raise SystemExit(main())
