"""Attendee-facing messages: verification text, WhatsApp chat link, UPI payment link."""

from __future__ import annotations

import os
import re
from typing import TYPE_CHECKING, Optional
from urllib.parse import quote, urlencode

from dotenv import load_dotenv

if TYPE_CHECKING:
    from .models import Registration

load_dotenv()

DEFAULT_COUNTRY_CODE = os.getenv("WHATSAPP_COUNTRY_CODE", "91")


def compose_verification_message(registration: "Registration") -> str:
    """Return the message sent to an attendee once their payment is verified.

    Raises
    ------
    ValueError
        If the registration is not verified or has no raffle numbers yet.
    """

    if registration.status != "verified" or not registration.raffle_numbers:
        raise ValueError("Please verify first")

    return (
        f"Hey {registration.name}, your registration for "
        f"{registration.ticket_count or 1} ticket(s) is verified! \U0001f389 "
        f"Your raffle numbers are: {registration.raffle_numbers}. "
        "Thanks for participating!"
    )


def whatsapp_chat_url(phone: str, country_code: Optional[str] = None) -> str:
    """Return a ``wa.me`` link for ``phone`` with every non-digit removed."""

    digits = re.sub(r"\D", "", str(phone or ""))
    if not digits:
        raise ValueError("phone must contain at least one digit")
    return f"https://wa.me/{country_code or DEFAULT_COUNTRY_CODE}{digits}"


def upi_payment_link(
    payee_address: Optional[str] = None,
    payee_name: Optional[str] = None,
    amount: Optional[str] = None,
    note: str = "Event Registration Payment",
    currency: str = "INR",
) -> str:
    """Build the ``upi://pay`` deep link shown on the registration page.

    Defaults come from ``UPI_PAYEE_ADDRESS``, ``UPI_PAYEE_NAME`` and
    ``TICKET_PRICE``.
    """

    payee_address = payee_address or os.getenv("UPI_PAYEE_ADDRESS")
    if not payee_address:
        raise ValueError("Environment variable 'UPI_PAYEE_ADDRESS' is not set")
    params = {
        "pa": payee_address,
        "pn": payee_name or os.getenv("UPI_PAYEE_NAME", "Event Registration"),
        "am": amount or os.getenv("TICKET_PRICE", "20"),
        "cu": currency,
        "tn": note,
    }
    return "upi://pay?" + urlencode(params, quote_via=quote, safe="@")


__all__ = [
    "compose_verification_message",
    "upi_payment_link",
    "whatsapp_chat_url",
]
