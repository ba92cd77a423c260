"""Best-effort email delivery.

Emails never decide the outcome of a booking operation: ``EmailDispatcher``
hands each message to a background thread and only logs failures.
"""

from __future__ import annotations

import logging
import smtplib
from concurrent.futures import Future, ThreadPoolExecutor
from email.message import EmailMessage
from typing import Callable

from roombook.config import Settings
from roombook.domain.models import Booking, Room, User

logger = logging.getLogger(__name__)

SendFn = Callable[[str, str, str], None]


class SmtpMailer:
    """Sends one HTML email per call over SMTP with STARTTLS."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def send(self, to: str, subject: str, html: str) -> None:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = f"{self.settings.email_from} <{self.settings.email_user}>"
        msg["To"] = to
        msg.set_content("This message requires an HTML-capable mail client.")
        msg.add_alternative(html, subtype="html")

        with smtplib.SMTP(self.settings.email_host, self.settings.email_port, timeout=10) as server:
            server.starttls()
            server.login(self.settings.email_user, self.settings.email_password)
            server.send_message(msg)
        logger.info("Email sent to %s: %s", to, subject)


class EmailDispatcher:
    """Runs ``send`` detached from the caller; errors are logged, never raised."""

    def __init__(self, send: SendFn, max_workers: int = 2) -> None:
        self._send = send
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="email")

    def dispatch(self, to: str, subject: str, html: str) -> Future:
        future = self._executor.submit(self._send, to, subject, html)
        future.add_done_callback(lambda f: self._log_failure(f, to, subject))
        return future

    @staticmethod
    def _log_failure(future: Future, to: str, subject: str) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error("Email to %s (%s) failed: %s", to, subject, exc, exc_info=exc)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

_FMT = "%a %d %b %Y %H:%M"


def booking_created_email(booking: Booking, room: Room, user: User) -> str:
    return f"""
    <h2>Booking Confirmation</h2>
    <p>Dear {user.name},</p>
    <p>Your booking has been confirmed!</p>
    <h3>Booking Details:</h3>
    <ul>
      <li><strong>Room:</strong> {room.name} ({room.location})</li>
      <li><strong>Title:</strong> {booking.title}</li>
      <li><strong>Start:</strong> {booking.start_time.strftime(_FMT)}</li>
      <li><strong>End:</strong> {booking.end_time.strftime(_FMT)}</li>
    </ul>
    """


def booking_cancelled_email(booking: Booking, room: Room, user: User) -> str:
    reason = (
        f"<li><strong>Reason:</strong> {booking.cancellation_reason}</li>"
        if booking.cancellation_reason
        else ""
    )
    return f"""
    <h2>Booking Cancelled</h2>
    <p>Dear {user.name},</p>
    <p>Your booking has been cancelled.</p>
    <h3>Booking Details:</h3>
    <ul>
      <li><strong>Room:</strong> {room.name} ({room.location})</li>
      <li><strong>Title:</strong> {booking.title}</li>
      <li><strong>Originally scheduled:</strong> {booking.start_time.strftime(_FMT)} - {booking.end_time.strftime(_FMT)}</li>
      {reason}
    </ul>
    """
