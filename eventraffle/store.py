"""SQLAlchemy-backed registration store used by the allocator and admin workflows."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .db.engine import get_sessionmaker, make_engine
from .models import IssuedRaffleNumber, RaffleCounter, Registration
from .models.allocation import COUNTER_ID
from .raffle.errors import InvalidRequest, RegistrationConflict, StoreUnavailable
from .raffle.tokens import RAFFLE_CAPACITY, join_tokens, parse_token, parse_tokens

logger = logging.getLogger(__name__)

SORT_KEYS = ("date", "status")


class RegistrationStore:
    """Persistent table of registrations plus the raffle high-water mark.

    Every public method runs in its own transaction. Database failures are
    re-raised as :class:`StoreUnavailable`; because each method commits all of
    its writes or none of them, callers may retry.

    Parameters
    ----------
    session_factory : sessionmaker
        Factory producing sessions bound to the registration database.
    capacity : int, default: RAFFLE_CAPACITY
        Capacity recorded on the counter row when it is first created.
    """

    def __init__(
        self, session_factory: sessionmaker, capacity: int = RAFFLE_CAPACITY
    ) -> None:
        self._Session = session_factory
        self.capacity = capacity

    @classmethod
    def from_url(
        cls, database_url: Optional[str] = None, capacity: int = RAFFLE_CAPACITY
    ) -> "RegistrationStore":
        """Build a store on a new engine (``DB_URL`` from the environment by default)."""

        engine = make_engine(database_url)
        return cls(get_sessionmaker(engine), capacity=capacity)

    # -------- high-water mark --------
    def get_high_water_mark(self) -> int:
        """Return the largest raffle number issued so far (0 if none)."""

        try:
            with self._Session.begin() as session:
                return self._ensure_counter(session).high_water_mark
        except IntegrityError as exc:
            # Another writer created the counter row first; read theirs.
            logger.debug(f"Counter row created concurrently: {exc.orig}")
            return self._read_existing_mark()
        except SQLAlchemyError as exc:
            logger.critical(f"Could not read the high-water mark: {exc}")
            raise StoreUnavailable("Could not read the high-water mark", exc) from exc

    def _read_existing_mark(self) -> int:
        try:
            with self._Session() as session:
                counter = RaffleCounter.get(session)
                if counter is None:
                    raise StoreUnavailable("Raffle counter row is missing")
                return counter.high_water_mark
        except SQLAlchemyError as exc:
            raise StoreUnavailable("Could not read the high-water mark", exc) from exc

    def commit_allocation(
        self,
        new_high_water_mark: int,
        registration_id: Optional[str],
        tokens: Sequence[str],
    ) -> bool:
        """Atomically advance the high-water mark and assign ``tokens``.

        The commit is accepted only if the stored mark still equals
        ``new_high_water_mark - len(tokens)``. In the same transaction one
        :class:`IssuedRaffleNumber` row is inserted per token and, when
        ``registration_id`` is given, that registration becomes ``verified``
        with the tokens as its raffle numbers.

        Returns
        -------
        bool
            ``True`` if committed, ``False`` if the mark moved in the meantime
            (nothing is written in that case).

        Raises
        ------
        InvalidRequest
            If ``tokens`` is empty or not the run ending at ``new_high_water_mark``.
        RegistrationConflict
            If the registration does not exist or is no longer pending.
        StoreUnavailable
            If the database failed. The transaction is rolled back.
        """

        numbers = [parse_token(token) for token in tokens]
        expected = new_high_water_mark - len(numbers)
        if not numbers or numbers != list(range(expected + 1, new_high_water_mark + 1)):
            raise InvalidRequest(
                f"Tokens {list(tokens)!r} do not end at high-water mark {new_high_water_mark}"
            )

        now = datetime.now(timezone.utc)
        try:
            with self._Session.begin() as session:
                self._ensure_counter(session)
                result = session.execute(
                    update(RaffleCounter)
                    .where(
                        RaffleCounter.id == COUNTER_ID,
                        RaffleCounter.high_water_mark == expected,
                    )
                    .values(high_water_mark=new_high_water_mark, updated_at=now)
                )
                if result.rowcount != 1:
                    return False

                registration = None
                if registration_id is not None:
                    registration = session.get(
                        Registration, registration_id, with_for_update=True
                    )
                    if registration is None or registration.status != "pending":
                        raise RegistrationConflict(
                            registration_id,
                            registration.status if registration is not None else None,
                        )

                session.add_all(
                    IssuedRaffleNumber(
                        number=number, registration_id=registration_id, issued_at=now
                    )
                    for number in numbers
                )
                if registration is not None:
                    registration.status = "verified"
                    registration.raffle_numbers = join_tokens(tokens)
                    registration.updated_at = now
        except IntegrityError as exc:
            # Issued-number primary key or counter row collided with another writer.
            logger.warning(f"Allocation commit collided and was rolled back: {exc.orig}")
            return False
        except SQLAlchemyError as exc:
            logger.critical(f"Allocation commit failed: {exc}")
            raise StoreUnavailable("Could not commit the allocation", exc) from exc

        return True

    def reconcile_high_water_mark(self) -> int:
        """Raise the stored mark to the true maximum of every issued number.

        The maximum is taken over the numeric value of both the issued-number
        rows and the raffle numbers serialized on registrations, so data
        written before the counter existed is accounted for. The mark never
        decreases.
        """

        try:
            with self._Session.begin() as session:
                counter = self._ensure_counter(session)
                true_max = self._true_maximum(session)
                if true_max > counter.high_water_mark:
                    logger.warning(
                        f"Raising high-water mark from {counter.high_water_mark} to {true_max}"
                    )
                    counter.high_water_mark = true_max
                return counter.high_water_mark
        except SQLAlchemyError as exc:
            raise StoreUnavailable("Could not reconcile the high-water mark", exc) from exc

    def _ensure_counter(self, session: Session) -> RaffleCounter:
        counter = RaffleCounter.get(session)
        if counter is None:
            counter = RaffleCounter(
                id=COUNTER_ID,
                high_water_mark=self._true_maximum(session),
                capacity=self.capacity,
            )
            session.add(counter)
            session.flush()
        return counter

    @staticmethod
    def _true_maximum(session: Session) -> int:
        highest = IssuedRaffleNumber.max_number(session)
        serialized = session.scalars(
            select(Registration.raffle_numbers).where(
                Registration.raffle_numbers.isnot(None)
            )
        )
        for raffle_numbers in serialized:
            highest = max([highest, *parse_tokens(raffle_numbers)])
        return highest

    # -------- registrations --------
    def add_registration(self, registration: Registration) -> Registration:
        """Persist a new registration and return it."""

        try:
            with self._Session.begin() as session:
                session.add(registration)
                session.flush()
        except SQLAlchemyError as exc:
            logger.critical(f"Could not save registration: {exc}")
            raise StoreUnavailable("Could not save the registration", exc) from exc
        return registration

    def get_registration(self, registration_id: str) -> Optional[Registration]:
        try:
            with self._Session() as session:
                return Registration.get(session, registration_id)
        except SQLAlchemyError as exc:
            raise StoreUnavailable("Could not load the registration", exc) from exc

    def list_registrations(self, sort_key: str = "date") -> list[Registration]:
        """Return every registration.

        Parameters
        ----------
        sort_key : str, default: "date"
            ``"date"`` lists newest first; ``"status"`` groups by status
            (alphabetically) and lists newest first within each group.
        """

        if sort_key not in SORT_KEYS:
            raise ValueError(f"sort_key must be one of {SORT_KEYS}, got {sort_key!r}")

        stmt = select(Registration)
        if sort_key == "status":
            stmt = stmt.order_by(Registration.status.asc())
        stmt = stmt.order_by(Registration.created_at.desc(), Registration.id.asc())

        try:
            with self._Session() as session:
                return list(session.scalars(stmt).all())
        except SQLAlchemyError as exc:
            raise StoreUnavailable("Could not list registrations", exc) from exc

    def transition_status(
        self,
        registration_id: str,
        to_status: str,
        from_statuses: Iterable[str] = ("pending",),
    ) -> Registration:
        """Move a registration to ``to_status`` if it is in one of ``from_statuses``.

        Raises
        ------
        RegistrationConflict
            If the registration is missing or in another status.
        """

        allowed = tuple(from_statuses)
        try:
            with self._Session.begin() as session:
                registration = session.get(
                    Registration, registration_id, with_for_update=True
                )
                if registration is None or registration.status not in allowed:
                    raise RegistrationConflict(
                        registration_id,
                        registration.status if registration is not None else None,
                    )
                registration.status = to_status
                registration.updated_at = datetime.now(timezone.utc)
                return registration
        except SQLAlchemyError as exc:
            raise StoreUnavailable("Could not update the registration", exc) from exc


__all__ = ["RegistrationStore", "SORT_KEYS"]
