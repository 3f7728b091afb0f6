# utils/email.py
import logging

import requests

import config

logger = logging.getLogger("shiftstream.email")

BREVO_URL = "https://api.brevo.com/v3/smtp/email"


class EmailDeliveryError(Exception):
     pass


def send_email(to_email: str, subject: str, html: str) -> None:
     if not config.BREVO_API_KEY:
          raise EmailDeliveryError("BREVO_API_KEY is not set")

     response = requests.post(
          BREVO_URL,
          headers={
               "api-key": config.BREVO_API_KEY,
               "Content-Type": "application/json",
          },
          json={
               "sender": {"name": "ShiftStream", "email": config.NOTIFY_SENDER_EMAIL},
               "to": [{"email": to_email}],
               "subject": subject,
               "htmlContent": html,
          },
          timeout=10,
     )
     if response.status_code not in (200, 201, 202):
          raise EmailDeliveryError(f"Brevo error: {response.text}")
     logger.info("Sent '%s' to %s", subject, to_email)
