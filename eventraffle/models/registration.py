from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    inspect,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship, validates

from eventraffle.raffle.tokens import split_tokens
from .base import Base

if TYPE_CHECKING:
    from .allocation import IssuedRaffleNumber

REGISTRATION_STATUSES = ("pending", "verified", "rejected")
MAX_TICKETS_PER_REGISTRATION = 10

_IMMUTABLE_FIELDS = ("name", "phone", "email", "ticket_count", "payment_screenshot_url")


class Registration(Base):
    """An attendee's submission: contact details, ticket count and payment proof."""

    def __init__(
        self,
        name: str,
        phone: str,
        email: str,
        ticket_count: int = 1,
        payment_screenshot_url: Optional[str] = None,
        status: str = "pending",
        id: Optional[str] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ):
        """Create a new :class:`Registration`.

        Parameters
        ----------
        name : str
            Attendee's name.
        phone : str
            Attendee's phone number as entered.
        email : str
            Attendee's email address.
        ticket_count : int, default: 1
            Number of tickets paid for, 1 to 10.
        payment_screenshot_url : str, optional
            Public URL of the uploaded payment screenshot.
        status : str, default: "pending"
            Review status.
        id : str, optional
            Explicit identifier. A random UUID is used when omitted.
        created_at : datetime, optional
            Explicit creation timestamp.
        updated_at : datetime, optional
            Explicit last update timestamp.
        """

        self.id = id or str(uuid.uuid4())
        self.name = name
        self.phone = phone
        self.email = email
        self.ticket_count = ticket_count
        self.payment_screenshot_url = payment_screenshot_url
        self.status = status
        if created_at is not None:
            self.created_at = created_at
        if updated_at is not None:
            self.updated_at = updated_at

    __tablename__ = "registrations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(32), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    ticket_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    payment_screenshot_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    raffle_numbers: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    """Assigned tokens serialized as ``"#001, #002"``; NULL until verified."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    issued_numbers: Mapped[list["IssuedRaffleNumber"]] = relationship(
        back_populates="registration",
        order_by="IssuedRaffleNumber.number",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending','verified','rejected')", name="status_enum"
        ),
        CheckConstraint(
            f"ticket_count >= 1 AND ticket_count <= {MAX_TICKETS_PER_REGISTRATION}",
            name="ticket_count_range",
        ),
        Index("registrations_status_created_at_idx", "status", "created_at"),
    )

    @validates(*_IMMUTABLE_FIELDS)
    def _reject_changes_after_creation(self, key: str, value):
        if inspect(self).has_identity and getattr(self, key) != value:
            raise ValueError(f"{key} cannot be changed after the registration is created")
        if key == "ticket_count":
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError("ticket_count must be an integer")
            if not 1 <= value <= MAX_TICKETS_PER_REGISTRATION:
                raise ValueError(
                    f"ticket_count must be between 1 and {MAX_TICKETS_PER_REGISTRATION}"
                )
        if key == "email" and value is not None:
            return value.strip()
        return value

    @validates("status")
    def _check_status(self, _key: str, value: str) -> str:
        if value not in REGISTRATION_STATUSES:
            raise ValueError(f"Unknown registration status: {value!r}")
        return value

    @validates("raffle_numbers")
    def _assign_once(self, _key: str, value: Optional[str]) -> Optional[str]:
        if self.raffle_numbers and value != self.raffle_numbers:
            raise ValueError("Raffle numbers are assigned exactly once")
        return value

    @property
    def assigned_numbers(self) -> list[str]:
        """Assigned raffle tokens in issue order; empty until verified."""
        return split_tokens(self.raffle_numbers)

    @property
    def is_verified(self) -> bool:
        return self.status == "verified"

    @classmethod
    def get(cls, session: Session, registration_id: str) -> Optional["Registration"]:
        return session.get(cls, registration_id)

    @classmethod
    def get_by_email(cls, session: Session, email: str) -> list["Registration"]:
        """Return every registration submitted with ``email``, newest first."""
        stmt = (
            select(cls)
            .where(cls.email == email.strip())
            .order_by(cls.created_at.desc())
        )
        return list(session.scalars(stmt).all())

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<Registration(id={id}, name={name}, status={status})>".format(
            id=self.id, name=self.name, status=self.status
        )
