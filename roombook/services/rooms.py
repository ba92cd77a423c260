"""Room management: creation, activation, deletion and daily availability."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable

from roombook.domain.bus import EventBus
from roombook.domain.errors import NotFound, Unauthorized, ValidationError
from roombook.domain.events import RoomCreated, RoomDeleted, RoomUpdated
from roombook.domain.models import (
    Actor,
    BookingStatus,
    Room,
    RoomAvailability,
    RoomCreateRequest,
    RoomDeletionResult,
)
from roombook.repos.memory import (
    BookingRepository,
    RecurrenceGroupRepository,
    RoomRepository,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RoomService:
    def __init__(
        self,
        room_repo: RoomRepository,
        booking_repo: BookingRepository,
        group_repo: RecurrenceGroupRepository,
        bus: EventBus,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.room_repo = room_repo
        self.booking_repo = booking_repo
        self.group_repo = group_repo
        self.bus = bus
        self.clock = clock

    def get_room(self, room_id: str) -> Room:
        room = self.room_repo.get(room_id)
        if room is None:
            raise NotFound("Room not found")
        return room

    def list_rooms(
        self,
        is_active: bool | None = None,
        min_capacity: int | None = None,
        location: str | None = None,
    ) -> list[Room]:
        return [
            r
            for r in self.room_repo.list_all()
            if (is_active is None or r.is_active == is_active)
            and (min_capacity is None or r.capacity >= min_capacity)
            and (location is None or location.lower() in r.location.lower())
        ]

    def create_room(self, request: RoomCreateRequest, actor: Actor) -> Room:
        self._require_admin(actor)
        if self.room_repo.get_by_name(request.name) is not None:
            raise ValidationError(f'A room named "{request.name}" already exists')
        room = Room(**request.model_dump())
        self.room_repo.add(room)
        logger.info("Room %s (%s) created by %s", room.id, room.name, actor.user_id)
        self.bus.publish(RoomCreated(room_id=room.id, actor=actor))
        return room

    def set_room_status(self, room_id: str, is_active: bool, actor: Actor) -> Room:
        self._require_admin(actor)
        room = self.get_room(room_id)
        with self.booking_repo.locked(room.id):
            room.is_active = is_active
            room.updated_at = self.clock()
        logger.info("Room %s %s by %s", room.id, "activated" if is_active else "deactivated", actor.user_id)
        self.bus.publish(RoomUpdated(room_id=room.id, actor=actor))
        return room

    def delete_room(self, room_id: str, actor: Actor) -> RoomDeletionResult:
        """Remove a room, cancelling its future confirmed bookings and
        deactivating its recurrence groups first."""
        self._require_admin(actor)
        room = self.get_room(room_id)
        now = self.clock()
        reason = f'Room "{room.name}" has been deleted by administrator'

        with self.booking_repo.locked(room.id):
            cancelled = [
                b
                for b in self.booking_repo.list_for_room(room.id, BookingStatus.CONFIRMED)
                if b.start_time >= now
            ]
            for booking in cancelled:
                booking.status = BookingStatus.CANCELLED
                booking.cancelled_by = actor.user_id
                booking.cancelled_at = now
                booking.cancellation_reason = reason
                booking.updated_at = now
                self.booking_repo.save(booking)
            for group in self.group_repo.list_active_for_room(room.id):
                group.is_active = False
            self.room_repo.delete(room.id)

        logger.info(
            "Room %s deleted by %s; %d future booking(s) cancelled",
            room.id,
            actor.user_id,
            len(cancelled),
        )
        self.bus.publish(
            RoomDeleted(
                room_id=room.id,
                room_name=room.name,
                room_location=room.location,
                actor=actor,
                cancelled_booking_ids=[b.id for b in cancelled],
            )
        )
        return RoomDeletionResult(room_id=room.id, cancelled_bookings=len(cancelled))

    def availability(self, room_id: str, day: date) -> RoomAvailability:
        """Confirmed bookings overlapping ``day`` (UTC midnight to midnight)."""
        room = self.get_room(room_id)
        start = datetime.combine(day, time.min, tzinfo=timezone.utc)
        bookings = self.booking_repo.list_overlapping(room.id, start, start + timedelta(days=1))
        return RoomAvailability(room=room, day=day, bookings=bookings)

    @staticmethod
    def _require_admin(actor: Actor) -> None:
        if not actor.can_override:
            raise Unauthorized("Only administrators can manage rooms")
