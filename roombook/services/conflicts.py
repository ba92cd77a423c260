"""Service for detecting scheduling conflicts between bookings on a room."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from roombook.domain.models import Booking
from roombook.services.recurrence import occurrence_intervals

if TYPE_CHECKING:
    from roombook.repos.memory import BookingRepository, RecurrenceGroupRepository


def overlaps(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    """Whether two intervals on the same room conflict.

    Overlap rule: a_start < b_end AND b_start < a_end. Exact boundary touches
    (one ends when the other starts) are NOT considered conflicts.
    """
    return a_start < b_end and b_start < a_end


def find_conflicts(
    new_start: datetime,
    new_end: datetime,
    existing_bookings: list[Booking],
) -> list[Booking]:
    """Return existing bookings that overlap with the given time range."""
    return [
        booking
        for booking in existing_bookings
        if overlaps(new_start, new_end, booking.start_time, booking.end_time)
    ]


class ConflictScanner:
    """Answers "is this room free" for a candidate interval.

    Checks confirmed bookings first, then the occurrences implied by every
    active recurrence group on the room. Groups whose occurrences are
    already stored as booking rows are skipped in the second pass: the rows
    are authoritative, including cancelled or rescheduled ones.
    """

    def __init__(
        self,
        booking_repo: BookingRepository,
        group_repo: RecurrenceGroupRepository,
    ) -> None:
        self.booking_repo = booking_repo
        self.group_repo = group_repo

    def conflicting_bookings(
        self,
        room_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: str | None = None,
    ) -> list[Booking]:
        return self.booking_repo.list_overlapping(room_id, start, end, exclude_booking_id)

    def has_conflict(
        self,
        room_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: str | None = None,
    ) -> bool:
        if self.conflicting_bookings(room_id, start, end, exclude_booking_id):
            return True
        return self._has_group_conflict(room_id, start, end)

    def _has_group_conflict(self, room_id: str, start: datetime, end: datetime) -> bool:
        for group in self.group_repo.list_active_for_room(room_id):
            # A day of slack on each side absorbs differing UTC offsets.
            if (
                group.start_date > (end + timedelta(days=1)).date()
                or group.end_date < (start - timedelta(days=1)).date()
            ):
                continue
            if self.booking_repo.list_for_group(group.id):
                continue
            for _, occ_start, occ_end in occurrence_intervals(group):
                if overlaps(start, end, occ_start, occ_end):
                    return True
        return False
