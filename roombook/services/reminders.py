"""Service for firing reminders shortly before bookings start."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from roombook.domain.models import Notification, NotificationType
from roombook.repos.memory import (
    BookingRepository,
    NotificationRepository,
    RoomRepository,
)
from roombook.services import notifications

logger = logging.getLogger(__name__)

DEFAULT_LEAD_MINUTES = 30


def send_booking_reminders(
    now: datetime,
    booking_repo: BookingRepository,
    room_repo: RoomRepository,
    notification_repo: NotificationRepository,
    lead_minutes: int = DEFAULT_LEAD_MINUTES,
) -> list[Notification]:
    """Notify organizers and attendees of confirmed bookings starting within
    ``lead_minutes`` of ``now``.

    Each booking is reminded at most once. Returns the notifications created.
    """
    due = booking_repo.list_starting_between(now, now + timedelta(minutes=lead_minutes))

    created: list[Notification] = []
    for booking in due:
        if notification_repo.list_for_booking(booking.id, NotificationType.BOOKING_REMINDER):
            continue
        created.extend(
            notifications.booking_reminders(booking, room_repo.get(booking.room_id), lead_minutes)
        )

    notification_repo.add_many(created)
    if created:
        logger.info("Sent %d reminder notification(s)", len(created))
    return created
