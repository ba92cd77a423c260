"""Booking lifecycle: create (single and weekly), update, cancel, delete."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

from pydantic import ValidationError as ModelValidationError

from roombook.config import settings
from roombook.domain.bus import EventBus
from roombook.domain.errors import (
    Conflict,
    InvalidState,
    NotFound,
    Unauthorized,
    ValidationError,
)
from roombook.domain.events import (
    BookingCancelled,
    BookingCreated,
    BookingUpdated,
    RecurringBookingCreated,
)
from roombook.domain.models import (
    Actor,
    Booking,
    BookingCreateRequest,
    BookingResult,
    BookingStatus,
    BookingUpdateRequest,
    RecurrenceGroup,
    RecurringBookingResult,
    Room,
)
from roombook.repos.memory import (
    BookingRepository,
    RecurrenceGroupRepository,
    RoomRepository,
)
from roombook.services.conflicts import ConflictScanner
from roombook.services.override import resolve_conflicts
from roombook.services.recurrence import (
    combine_date_and_time,
    expand_weekly,
    format_time_of_day,
)

logger = logging.getLogger(__name__)

SLOT_TAKEN = "Room is already booked for this time slot. Please choose a different time."

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BookingService:
    """Owns every state change of a Booking.

    All scan-then-write sequences run under the room's lock from
    ``BookingRepository.locked`` so confirmed bookings on a room never
    overlap, whatever the number of concurrent callers.
    """

    def __init__(
        self,
        room_repo: RoomRepository,
        booking_repo: BookingRepository,
        group_repo: RecurrenceGroupRepository,
        bus: EventBus,
        clock: Callable[[], datetime] = _utcnow,
        max_attendees: int = settings.max_attendees,
    ) -> None:
        self.room_repo = room_repo
        self.booking_repo = booking_repo
        self.group_repo = group_repo
        self.bus = bus
        self.clock = clock
        self.max_attendees = max_attendees
        self.scanner = ConflictScanner(booking_repo, group_repo)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_booking(self, booking_id: str, viewer: Actor | None = None) -> Booking:
        booking = self.booking_repo.get(booking_id)
        if booking is None:
            raise NotFound("Booking not found")
        if viewer is not None and not (
            viewer.can_override
            or viewer.user_id == booking.organizer_id
            or viewer.user_id in booking.attendees
        ):
            raise Unauthorized("Not authorized to access this booking")
        return booking

    def list_bookings(
        self,
        room_id: str | None = None,
        status: BookingStatus | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Booking]:
        """Bookings filtered by room, status and a window on start time,
        newest first. A ``completed`` filter matches confirmed bookings that
        have already ended."""
        now = self.clock()
        bookings = [
            b
            for b in self.booking_repo.list_all()
            if (room_id is None or b.room_id == room_id)
            and (status is None or b.status_at(now) == status)
            and (start is None or b.start_time >= start)
            and (end is None or b.start_time <= end)
        ]
        return sorted(bookings, key=lambda b: b.start_time, reverse=True)

    def list_for_organizer(self, user_id: str, upcoming: bool = False) -> list[Booking]:
        bookings = self.booking_repo.list_for_organizer(user_id)
        if upcoming:
            now = self.clock()
            bookings = [b for b in bookings if b.is_confirmed and b.start_time >= now]
        return bookings

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_booking(
        self, request: BookingCreateRequest, actor: Actor
    ) -> BookingResult | RecurringBookingResult:
        if request.is_recurring:
            return self.create_recurring_booking(request, actor)

        room = self._bookable_room(request.room_id, len(request.attendees))
        self._check_interval(request.start_time, request.end_time)

        with self.booking_repo.locked(room.id):
            room = self._bookable_room(room.id, len(request.attendees))
            overridden: list[str] = []
            if self.scanner.has_conflict(room.id, request.start_time, request.end_time):
                if not actor.can_override:
                    logger.warning(
                        "Rejected booking on room %s for %s: slot taken",
                        room.id,
                        actor.user_id,
                    )
                    raise Conflict(SLOT_TAKEN)
                overridden = resolve_conflicts(
                    room.id,
                    request.start_time,
                    request.end_time,
                    actor,
                    self.booking_repo,
                    self.bus,
                    now=self.clock(),
                ).booking_ids

            booking = self._new_booking(
                request, actor, request.start_time, request.end_time
            )
            self.booking_repo.add(booking)

        logger.info("Booking %s created on room %s by %s", booking.id, room.id, actor.user_id)
        self.bus.publish(
            BookingCreated(
                booking_id=booking.id, actor=actor, overrode_bookings=bool(overridden)
            )
        )
        return BookingResult(booking=booking, overridden_booking_ids=overridden)

    def create_recurring_booking(
        self, request: BookingCreateRequest, actor: Actor
    ) -> RecurringBookingResult:
        """Create one booking per week on the start time's weekday, through
        ``recurrence_end_date`` inclusive.

        Without override capability every occurrence is checked first and a
        single conflict aborts the request with nothing written; the error
        lists every conflicting date. With it, each occurrence's conflicts
        are cancelled and all occurrences are created.
        """
        room = self._bookable_room(request.room_id, len(request.attendees))
        start, end = request.start_time, request.end_time
        self._check_interval(start, end)
        if request.recurrence_end_date is None:
            raise ValidationError("recurrence_end_date is required for recurring bookings")
        if request.recurrence_end_date < start.date():
            raise ValidationError("Recurrence end date must not be before the first occurrence")
        if start.date() != end.date():
            raise ValidationError("Recurring bookings must start and end on the same day")

        group = RecurrenceGroup(
            created_by=actor.user_id,
            room_id=room.id,
            day_of_week=start.weekday(),
            start_date=start.date(),
            end_date=request.recurrence_end_date,
            base_start_time=format_time_of_day(start),
            base_end_time=format_time_of_day(end),
            utc_offset=start.utcoffset(),
            title=request.title,
            description=request.description,
        )
        occurrences = [
            (
                day,
                combine_date_and_time(day, group.base_start_time, group.utc_offset),
                combine_date_and_time(day, group.base_end_time, group.utc_offset),
            )
            for day in expand_weekly(group.start_date, group.end_date, group.day_of_week)
        ]
        if not occurrences:
            raise ValidationError("Recurrence range contains no occurrences")

        with self.booking_repo.locked(room.id):
            room = self._bookable_room(room.id, len(request.attendees))
            overridden: list[str] = []
            if not actor.can_override:
                conflict_dates = [
                    day
                    for day, occ_start, occ_end in occurrences
                    if self.scanner.has_conflict(room.id, occ_start, occ_end)
                ]
                if conflict_dates:
                    listed = ", ".join(d.strftime("%a %b %d %Y") for d in conflict_dates)
                    logger.warning(
                        "Rejected recurring booking on room %s for %s: %d conflicting date(s)",
                        room.id,
                        actor.user_id,
                        len(conflict_dates),
                    )
                    raise Conflict(
                        f"Room is already booked on the following dates: {listed}. "
                        "Please choose different dates or times.",
                        conflict_dates=conflict_dates,
                    )
            else:
                now = self.clock()
                for _, occ_start, occ_end in occurrences:
                    overridden.extend(
                        resolve_conflicts(
                            room.id,
                            occ_start,
                            occ_end,
                            actor,
                            self.booking_repo,
                            self.bus,
                            recurring=True,
                            now=now,
                        ).booking_ids
                    )

            bookings = [
                self._new_booking(request, actor, occ_start, occ_end, group_id=group.id)
                for _, occ_start, occ_end in occurrences
            ]
            self._write_series(group, bookings)

        logger.info(
            "Recurring booking %s created on room %s by %s with %d occurrence(s)",
            group.id,
            room.id,
            actor.user_id,
            len(bookings),
        )
        self.bus.publish(
            RecurringBookingCreated(
                recurrence_group_id=group.id,
                booking_ids=[b.id for b in bookings],
                actor=actor,
            )
        )
        return RecurringBookingResult(
            recurrence_group=group, bookings=bookings, overridden_booking_ids=overridden
        )

    def _write_series(self, group: RecurrenceGroup, bookings: list[Booking]) -> None:
        try:
            self.group_repo.add(group)
            self.booking_repo.add_many(bookings)
        except Exception:
            logger.exception("Writing recurring booking %s failed; rolling back", group.id)
            for booking in bookings:
                self.booking_repo.delete(booking.id)
            self.group_repo.delete(group.id)
            raise

    # ------------------------------------------------------------------
    # Update / cancel / delete
    # ------------------------------------------------------------------

    def update_booking(
        self, booking_id: str, request: BookingUpdateRequest, actor: Actor
    ) -> Booking:
        """Apply a partial edit. Room availability is only re-checked when
        the booking moves to another room, and capacity only when the room or
        the attendee list changes, so text edits always go through."""
        booking = self.get_booking(booking_id)
        self._require_organizer_or_admin(booking, actor, "update")
        if booking.status == BookingStatus.CANCELLED:
            raise InvalidState("Cancelled bookings cannot be updated")

        changes = request.model_dump(exclude_unset=True, exclude_none=True)
        room_id = changes.get("room_id", booking.room_id)
        attendees = changes.get("attendees", booking.attendees)
        start = changes.get("start_time", booking.start_time)
        end = changes.get("end_time", booking.end_time)
        self._check_interval(start, end)
        room_changed = room_id != booking.room_id
        rescheduled = room_changed or (start, end) != (booking.start_time, booking.end_time)

        with self.booking_repo.locked(room_id):
            if booking.status == BookingStatus.CANCELLED:
                raise InvalidState("Cancelled bookings cannot be updated")
            if room_changed:
                self._bookable_room(room_id, len(attendees))
            elif "attendees" in changes:
                self._check_attendees(self._existing_room(room_id), len(attendees))
            if rescheduled and self.scanner.has_conflict(
                room_id, start, end, exclude_booking_id=booking.id
            ):
                raise Conflict("Room is already booked for this time slot")
            try:
                updated = Booking.model_validate(
                    {**booking.model_dump(), **changes, "updated_at": self.clock()}
                )
            except ModelValidationError as exc:
                raise ValidationError(str(exc)) from exc
            self.booking_repo.save(updated)

        logger.info("Booking %s updated by %s", booking.id, actor.user_id)
        self.bus.publish(
            BookingUpdated(booking_id=updated.id, actor=actor, rescheduled=rescheduled)
        )
        return updated

    def cancel_booking(self, booking_id: str, actor: Actor, reason: str = "") -> Booking:
        """Cancel a booking. Fields are set in place without re-validating the
        model, so an authorized cancellation always goes through."""
        booking = self.get_booking(booking_id)
        self._require_organizer_or_admin(booking, actor, "cancel")
        if booking.status == BookingStatus.CANCELLED:
            raise InvalidState("Booking is already cancelled")

        now = self.clock()
        with self.booking_repo.locked(booking.room_id):
            if booking.status == BookingStatus.CANCELLED:
                raise InvalidState("Booking is already cancelled")
            booking.status = BookingStatus.CANCELLED
            booking.cancelled_by = actor.user_id
            booking.cancelled_at = now
            booking.cancellation_reason = reason
            booking.updated_at = now
            self.booking_repo.save(booking)

        logger.info("Booking %s cancelled by %s", booking.id, actor.user_id)
        self.bus.publish(BookingCancelled(booking_id=booking.id, actor=actor))
        return booking

    def delete_booking(self, booking_id: str, actor: Actor) -> None:
        if not actor.can_override:
            raise Unauthorized("Only administrators can delete bookings")
        booking = self.get_booking(booking_id)
        if booking.status != BookingStatus.CANCELLED and not booking.is_past(self.clock()):
            raise InvalidState(
                "Cannot delete active upcoming bookings. Please cancel them first."
            )
        self.booking_repo.delete(booking.id)
        logger.info("Booking %s deleted by %s", booking.id, actor.user_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _existing_room(self, room_id: str) -> Room:
        room = self.room_repo.get(room_id)
        if room is None:
            raise NotFound("Room not found")
        return room

    def _bookable_room(self, room_id: str, attendee_count: int) -> Room:
        """The room, provided it exists, is active and fits the attendees.

        Called once before taking the room lock to fail fast, and again
        inside it so a concurrent deactivation or deletion is seen.
        """
        room = self._existing_room(room_id)
        if not room.is_active:
            raise ValidationError(f'Room "{room.name}" is not available for booking')
        self._check_attendees(room, attendee_count)
        return room

    def _check_attendees(self, room: Room, attendee_count: int) -> None:
        if attendee_count < 1:
            raise ValidationError("At least one attendee is required for the booking")
        if attendee_count > self.max_attendees:
            raise ValidationError(f"A booking may have at most {self.max_attendees} attendees")
        if attendee_count > room.capacity:
            raise ValidationError(
                f"Too many attendees. Room capacity is {room.capacity} people, "
                f"but {attendee_count} attendees were selected."
            )

    @staticmethod
    def _check_interval(start: datetime, end: datetime) -> None:
        if end <= start:
            raise ValidationError("End time must be after start time")

    @staticmethod
    def _require_organizer_or_admin(booking: Booking, actor: Actor, verb: str) -> None:
        if not actor.can_override and booking.organizer_id != actor.user_id:
            raise Unauthorized(f"Not authorized to {verb} this booking")

    def _new_booking(
        self,
        request: BookingCreateRequest,
        actor: Actor,
        start: datetime,
        end: datetime,
        group_id: str | None = None,
    ) -> Booking:
        return Booking(
            room_id=request.room_id,
            organizer_id=actor.user_id,
            title=request.title,
            description=request.description,
            start_time=start,
            end_time=end,
            attendees=request.attendees,
            recurrence_group_id=group_id,
        )
