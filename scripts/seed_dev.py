from datetime import datetime, timedelta, timezone

from eventraffle.db.engine import get_sessionmaker, make_engine
from eventraffle.models import Base, Registration
from eventraffle.raffle import RaffleAllocator
from eventraffle.store import RegistrationStore
from eventraffle.workflows import reject_registration, verify_registration


def main() -> None:
    """Seed the development database with sample registrations."""
    engine = make_engine()

    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    store = RegistrationStore(get_sessionmaker(engine))
    allocator = RaffleAllocator(store)

    now = datetime.now(timezone.utc)
    samples = [
        ("Alice", "9876543210", "alice@example.com", 3),
        ("Bob", "9123456780", "bob@example.com", 1),
        ("Chitra", "9000000001", "chitra@example.com", 10),
        ("Dev", "9000000002", "dev@example.com", 2),
    ]

    registrations = []
    for offset, (name, phone, email, tickets) in enumerate(samples):
        registration = Registration(
            name=name,
            phone=phone,
            email=email,
            ticket_count=tickets,
            payment_screenshot_url=f"https://example.com/screenshots/{name.lower()}.png",
            created_at=now - timedelta(minutes=10 * (len(samples) - offset)),
        )
        registrations.append(store.add_registration(registration))

    # Verify out of submission order so numbers do not follow created_at.
    verify_registration(store, allocator, registrations[2].id)
    verify_registration(store, allocator, registrations[0].id)
    reject_registration(store, registrations[1].id)

    print(
        f"Development database seeded; {allocator.remaining()} raffle numbers remaining."
    )


if __name__ == "__main__":
    main()
