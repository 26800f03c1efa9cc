from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

SUBJECT = "Your Oke Raffle registration is confirmed!"


def build_confirmation(full_name: str, email: str) -> dict:
    return {
        "to": email,
        "subject": SUBJECT,
        "body": f"Hi {full_name}, thank you for registering for our event. Good luck!",
    }


def send_registration_confirmation(full_name: str, email: str) -> None:
    """Best-effort confirmation; runs after the response has been sent."""
    try:
        message = build_confirmation(full_name, email)
        # No mail provider is wired in; the outgoing message is logged instead.
        logger.info("Confirmation email to %s: %s", message["to"], message["subject"])
    except Exception:
        logger.exception("Could not send confirmation to %s", email)
