"""Persistent allocation state: the high-water-mark counter and issued numbers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, func, select
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from eventraffle.raffle.tokens import RAFFLE_CAPACITY, format_token
from .base import Base

if TYPE_CHECKING:
    from .registration import Registration

COUNTER_ID = 1
"""The event has a single counter row."""


class RaffleCounter(Base):
    """Highest raffle number issued so far, advanced only by compare-and-commit."""

    __tablename__ = "raffle_counters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    """Primary key; always :data:`COUNTER_ID`."""

    high_water_mark: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Largest raffle number issued, 0 before the first allocation."""

    capacity: Mapped[int] = mapped_column(
        Integer, nullable=False, default=RAFFLE_CAPACITY
    )
    """Upper bound of the raffle-number space."""

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint(
            "high_water_mark >= 0 AND high_water_mark <= capacity",
            name="high_water_mark_range",
        ),
    )

    @classmethod
    def get(cls, session: Session) -> Optional["RaffleCounter"]:
        return session.get(cls, COUNTER_ID)


class IssuedRaffleNumber(Base):
    """One row per issued raffle number; the primary key forbids duplicates."""

    __tablename__ = "issued_raffle_numbers"

    number: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    registration_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("registrations.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    issued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    registration: Mapped[Optional["Registration"]] = relationship(
        back_populates="issued_numbers"
    )

    __table_args__ = (CheckConstraint("number >= 1", name="number_positive"),)

    @property
    def token(self) -> str:
        return format_token(self.number)

    @classmethod
    def max_number(cls, session: Session) -> int:
        """Return the largest issued number, or 0 when nothing was issued."""
        return session.scalar(select(func.coalesce(func.max(cls.number), 0))) or 0
