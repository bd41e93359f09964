import unittest
from datetime import datetime, timedelta, timezone

from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from eventraffle.models import Base, IssuedRaffleNumber, RaffleCounter, Registration
from eventraffle.raffle import InvalidRequest, RegistrationConflict, StoreUnavailable
from eventraffle.store import RegistrationStore


def make_registration(name: str = "Asha", tickets: int = 1, **kwargs) -> Registration:
    return Registration(
        name=name,
        phone="9876543210",
        email=f"{name.lower()}@example.com",
        ticket_count=tickets,
        payment_screenshot_url=f"https://example.com/{name.lower()}.png",
        **kwargs,
    )


class StoreTestCase(unittest.TestCase):
    def setUp(self):
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(
            bind=self.engine, future=True, expire_on_commit=False
        )
        self.store = RegistrationStore(self.Session)

    def tearDown(self):
        self.engine.dispose()


class HighWaterMarkTests(StoreTestCase):
    def test_fresh_store_starts_at_zero(self):
        self.assertEqual(self.store.get_high_water_mark(), 0)
        with self.Session() as session:
            counter = RaffleCounter.get(session)
            assert counter is not None
            self.assertEqual(counter.capacity, 250)

    def test_commit_advances_mark_and_verifies_registration(self):
        registration = self.store.add_registration(make_registration(tickets=2))

        committed = self.store.commit_allocation(2, registration.id, ["#001", "#002"])

        self.assertTrue(committed)
        self.assertEqual(self.store.get_high_water_mark(), 2)
        stored = self.store.get_registration(registration.id)
        assert stored is not None
        self.assertEqual(stored.status, "verified")
        self.assertEqual(stored.raffle_numbers, "#001, #002")
        self.assertEqual(stored.assigned_numbers, ["#001", "#002"])
        with self.Session() as session:
            numbers = session.scalars(
                select(IssuedRaffleNumber.number).where(
                    IssuedRaffleNumber.registration_id == registration.id
                )
            ).all()
        self.assertEqual(sorted(numbers), [1, 2])

    def test_stale_commit_writes_nothing(self):
        self.assertTrue(self.store.commit_allocation(3, None, ["#001", "#002", "#003"]))
        registration = self.store.add_registration(make_registration())

        # Caller still believes the mark is 0.
        self.assertFalse(self.store.commit_allocation(1, registration.id, ["#001"]))

        self.assertEqual(self.store.get_high_water_mark(), 3)
        stored = self.store.get_registration(registration.id)
        assert stored is not None
        self.assertEqual(stored.status, "pending")
        self.assertIsNone(stored.raffle_numbers)

    def test_conflicting_registration_rolls_back_counter(self):
        registration = self.store.add_registration(make_registration())
        self.assertTrue(self.store.commit_allocation(1, registration.id, ["#001"]))

        with self.assertRaises(RegistrationConflict) as ctx:
            self.store.commit_allocation(2, registration.id, ["#002"])

        self.assertEqual(ctx.exception.status, "verified")
        self.assertEqual(self.store.get_high_water_mark(), 1)
        with self.Session() as session:
            self.assertIsNone(session.get(IssuedRaffleNumber, 2))

    def test_missing_registration_conflicts(self):
        with self.assertRaises(RegistrationConflict) as ctx:
            self.store.commit_allocation(1, "does-not-exist", ["#001"])
        self.assertIsNone(ctx.exception.status)
        self.assertEqual(self.store.get_high_water_mark(), 0)

    def test_tokens_must_end_at_new_mark(self):
        with self.assertRaises(InvalidRequest):
            self.store.commit_allocation(5, None, ["#001", "#002"])
        with self.assertRaises(InvalidRequest):
            self.store.commit_allocation(0, None, [])

    def test_counter_created_from_true_maximum_of_legacy_data(self):
        now = datetime.now(timezone.utc)
        with self.Session.begin() as session:
            # The newest record holds the lower numbers: creation order is not
            # numeric order.
            older = make_registration("Older", tickets=2, created_at=now - timedelta(days=1))
            older.status = "verified"
            older.raffle_numbers = "#009, #010"
            newer = make_registration("Newer", tickets=1, created_at=now)
            newer.status = "verified"
            newer.raffle_numbers = "#004"
            session.add_all([older, newer])

        self.assertEqual(self.store.get_high_water_mark(), 10)

    def test_reconcile_never_lowers_the_mark(self):
        self.assertTrue(self.store.commit_allocation(2, None, ["#001", "#002"]))
        with self.Session.begin() as session:
            legacy = make_registration("Legacy", tickets=1)
            legacy.status = "verified"
            legacy.raffle_numbers = "#007"
            session.add(legacy)

        self.assertEqual(self.store.reconcile_high_water_mark(), 7)
        self.assertEqual(self.store.get_high_water_mark(), 7)

        with self.Session.begin() as session:
            session.delete(session.get(Registration, legacy.id))
        self.assertEqual(self.store.reconcile_high_water_mark(), 7)

    def test_database_errors_become_store_unavailable(self):
        engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        store = RegistrationStore(sessionmaker(bind=engine, expire_on_commit=False))
        try:
            with self.assertRaises(StoreUnavailable) as ctx:
                store.get_high_water_mark()
            self.assertTrue(ctx.exception.retryable)
            self.assertIsNotNone(ctx.exception.cause)
            with self.assertRaises(StoreUnavailable):
                store.list_registrations()
        finally:
            engine.dispose()


class RegistrationListingTests(StoreTestCase):
    def setUp(self):
        super().setUp()
        base = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
        self.first = self.store.add_registration(
            make_registration("First", created_at=base)
        )
        self.second = self.store.add_registration(
            make_registration("Second", created_at=base + timedelta(hours=1))
        )
        self.third = self.store.add_registration(
            make_registration("Third", created_at=base + timedelta(hours=2))
        )
        self.store.commit_allocation(1, self.third.id, ["#001"])

    def test_sort_by_date_lists_newest_first(self):
        names = [r.name for r in self.store.list_registrations("date")]
        self.assertEqual(names, ["Third", "Second", "First"])

    def test_sort_by_status_groups_then_newest_first(self):
        registrations = self.store.list_registrations("status")
        self.assertEqual([r.name for r in registrations], ["Second", "First", "Third"])
        self.assertEqual(
            [r.status for r in registrations], ["pending", "pending", "verified"]
        )

    def test_unknown_sort_key(self):
        with self.assertRaises(ValueError):
            self.store.list_registrations("name")

    def test_transition_status(self):
        rejected = self.store.transition_status(self.second.id, "rejected")
        self.assertEqual(rejected.status, "rejected")

        with self.assertRaises(RegistrationConflict):
            self.store.transition_status(self.second.id, "rejected")

        stored = self.store.get_registration(self.second.id)
        assert stored is not None
        self.assertEqual(stored.status, "rejected")
        self.assertGreaterEqual(
            stored.updated_at.replace(tzinfo=None), stored.created_at.replace(tzinfo=None)
        )


if __name__ == "__main__":
    unittest.main()
