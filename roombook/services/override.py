"""Administrative override: cancel confirmed bookings that stand in the way
of a privileged actor's new booking."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from roombook.domain.bus import EventBus
from roombook.domain.events import BookingOverridden
from roombook.domain.models import Actor, Booking, BookingStatus
from roombook.repos.memory import BookingRepository

logger = logging.getLogger(__name__)

OVERRIDE_REASON = "Admin override - conflicting booking created"
RECURRING_OVERRIDE_REASON = "Admin override - recurring booking created"


class OverrideResult(BaseModel):
    cancelled: list[Booking] = Field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.cancelled)

    @property
    def booking_ids(self) -> list[str]:
        return [b.id for b in self.cancelled]


def resolve_conflicts(
    room_id: str,
    start: datetime,
    end: datetime,
    actor: Actor,
    booking_repo: BookingRepository,
    bus: EventBus,
    recurring: bool = False,
    now: datetime | None = None,
) -> OverrideResult:
    """Cancel every confirmed booking on ``room_id`` overlapping [start, end).

    Callers hold ``booking_repo.locked(room_id)``. Running it again with no
    new bookings in the interval cancels nothing.
    """
    now = now or datetime.now(timezone.utc)
    reason = RECURRING_OVERRIDE_REASON if recurring else OVERRIDE_REASON

    result = OverrideResult()
    for booking in booking_repo.list_overlapping(room_id, start, end):
        booking.status = BookingStatus.CANCELLED
        booking.cancelled_by = actor.user_id
        booking.cancelled_at = now
        booking.cancellation_reason = reason
        booking.updated_at = now
        booking_repo.save(booking)
        result.cancelled.append(booking)

    if result.cancelled:
        logger.info(
            "Override by %s cancelled %d booking(s) on room %s: %s",
            actor.user_id,
            result.count,
            room_id,
            result.booking_ids,
        )
    bus.publish_all(
        BookingOverridden(booking_id=b.id, actor=actor, recurring=recurring)
        for b in result.cancelled
    )
    return result
