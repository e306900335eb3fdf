"""Outgoing auth emails.

Delivery belongs to the email provider; this module only defines the seam
and a logging implementation for development and tests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Protocol

logger = logging.getLogger(__name__)

PRODUCT_NAME = "Interview Genie"


@dataclass(frozen=True)
class OutgoingEmail:
    to: str
    subject: str
    body: str


class Mailer(Protocol):
    async def send(self, email: OutgoingEmail) -> bool: ...


@dataclass
class LoggingMailer:
    """Records messages instead of delivering them."""

    sent: List[OutgoingEmail] = field(default_factory=list)

    async def send(self, email: OutgoingEmail) -> bool:
        self.sent.append(email)
        logger.info("Email queued", extra={"subject": email.subject})
        return True


def otp_email(to: str, name: str | None, code: str, *, resend: bool = False) -> OutgoingEmail:
    subject = (
        f"New Verification Code - {PRODUCT_NAME}"
        if resend
        else f"Verify your email - {PRODUCT_NAME}"
    )
    body = (
        f"Hi {name or 'there'},\n\n"
        f"Your verification code is {code}. It expires in 5 minutes.\n"
    )
    return OutgoingEmail(to=to, subject=subject, body=body)


__all__ = ["LoggingMailer", "Mailer", "OutgoingEmail", "otp_email"]
