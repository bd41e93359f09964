from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .registration import (  # noqa: F401
    Registration,
    REGISTRATION_STATUSES,
    MAX_TICKETS_PER_REGISTRATION,
)
from .allocation import IssuedRaffleNumber, RaffleCounter  # noqa: F401

__all__ = [
    "Base",
    "Registration",
    "REGISTRATION_STATUSES",
    "MAX_TICKETS_PER_REGISTRATION",
    "IssuedRaffleNumber",
    "RaffleCounter",
]
