import unittest

from sqlalchemy import create_engine, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from eventraffle.models import Base, IssuedRaffleNumber, RaffleCounter, Registration


class DBTestCase(unittest.TestCase):
    def setUp(self):
        # In-memory SQLite for isolation
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(
            bind=self.engine, future=True, expire_on_commit=False
        )

    def tearDown(self):
        self.engine.dispose()

    def _registration(self, **overrides) -> Registration:
        fields = {
            "name": "Leela",
            "phone": "9876543210",
            "email": "leela@example.com",
        }
        fields.update(overrides)
        return Registration(**fields)

    def test_defaults(self):
        with self.Session.begin() as session:
            registration = self._registration()
            session.add(registration)
        self.assertEqual(len(registration.id), 36)
        self.assertEqual(registration.status, "pending")
        self.assertEqual(registration.ticket_count, 1)
        self.assertIsNone(registration.raffle_numbers)
        self.assertEqual(registration.assigned_numbers, [])
        self.assertIsNotNone(registration.created_at)
        self.assertIsNotNone(registration.updated_at)

    def test_ticket_count_range(self):
        for count in (0, 11, -3, True):
            with self.subTest(count=count):
                with self.assertRaises(ValueError):
                    self._registration(ticket_count=count)
        self.assertEqual(self._registration(ticket_count=10).ticket_count, 10)

    def test_unknown_status(self):
        with self.assertRaises(ValueError):
            self._registration(status="approved")

    def test_contact_fields_are_immutable_once_stored(self):
        with self.Session.begin() as session:
            registration = self._registration()
            session.add(registration)

        with self.Session() as session:
            stored = session.get(Registration, registration.id)
            assert stored is not None
            with self.assertRaises(ValueError):
                stored.name = "Someone Else"
            with self.assertRaises(ValueError):
                stored.ticket_count = 4
            stored.status = "rejected"
            session.commit()

    def test_raffle_numbers_assigned_once(self):
        registration = self._registration(ticket_count=2)
        registration.raffle_numbers = "#001, #002"
        self.assertEqual(registration.assigned_numbers, ["#001", "#002"])
        with self.assertRaises(ValueError):
            registration.raffle_numbers = "#003, #004"

    def test_get_by_email(self):
        with self.Session.begin() as session:
            session.add(self._registration())
            session.add(self._registration(name="Other", email="other@example.com"))

        with self.Session() as session:
            found = Registration.get_by_email(session, " leela@example.com")
            self.assertEqual([r.name for r in found], ["Leela"])

    def test_issued_number_is_unique(self):
        with self.Session.begin() as session:
            session.add(IssuedRaffleNumber(number=1))

        with self.assertRaises(IntegrityError):
            with self.Session.begin() as session:
                session.add(IssuedRaffleNumber(number=1))

    def test_issued_numbers_relationship(self):
        with self.Session.begin() as session:
            registration = self._registration(ticket_count=2)
            session.add(registration)
            session.flush()
            session.add_all(
                [
                    IssuedRaffleNumber(number=2, registration_id=registration.id),
                    IssuedRaffleNumber(number=1, registration_id=registration.id),
                ]
            )

        with self.Session() as session:
            stored = session.get(Registration, registration.id)
            assert stored is not None
            self.assertEqual([n.token for n in stored.issued_numbers], ["#001", "#002"])
            self.assertEqual(IssuedRaffleNumber.max_number(session), 2)

    def test_counter_range_is_enforced(self):
        with self.assertRaises(IntegrityError):
            with self.Session.begin() as session:
                session.add(RaffleCounter(id=1, high_water_mark=251, capacity=250))

        with self.Session() as session:
            self.assertIsNone(session.scalar(select(RaffleCounter)))


if __name__ == "__main__":
    unittest.main()
