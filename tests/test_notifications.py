import os
import unittest
from unittest.mock import patch

from eventraffle.models import Registration
from eventraffle.notifications import (
    compose_verification_message,
    upi_payment_link,
    whatsapp_chat_url,
)


class VerificationMessageTests(unittest.TestCase):
    def test_message_lists_raffle_numbers(self):
        registration = Registration(
            name="Priya",
            phone="9876543210",
            email="priya@example.com",
            ticket_count=2,
            status="verified",
        )
        registration.raffle_numbers = "#041, #042"

        message = compose_verification_message(registration)

        self.assertEqual(
            message,
            "Hey Priya, your registration for 2 ticket(s) is verified! \U0001f389 "
            "Your raffle numbers are: #041, #042. Thanks for participating!",
        )

    def test_pending_registration_is_refused(self):
        registration = Registration(
            name="Priya", phone="9876543210", email="priya@example.com"
        )
        with self.assertRaises(ValueError) as ctx:
            compose_verification_message(registration)
        self.assertEqual(str(ctx.exception), "Please verify first")


class LinkTests(unittest.TestCase):
    def test_whatsapp_url_strips_non_digits(self):
        self.assertEqual(
            whatsapp_chat_url("98765-43210"), "https://wa.me/919876543210"
        )
        self.assertEqual(
            whatsapp_chat_url("(987) 654 3210", country_code="1"),
            "https://wa.me/19876543210",
        )

    def test_whatsapp_url_requires_digits(self):
        with self.assertRaises(ValueError):
            whatsapp_chat_url("n/a")

    def test_upi_link_from_environment(self):
        env = {
            "UPI_PAYEE_ADDRESS": "8000000000@bank",
            "UPI_PAYEE_NAME": "Event Registration",
            "TICKET_PRICE": "20",
        }
        with patch.dict(os.environ, env, clear=True):
            link = upi_payment_link()
        self.assertEqual(
            link,
            "upi://pay?pa=8000000000@bank&pn=Event%20Registration&am=20&cu=INR"
            "&tn=Event%20Registration%20Payment",
        )

    def test_upi_link_requires_payee(self):
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(ValueError):
                upi_payment_link()


if __name__ == "__main__":
    unittest.main()
