"""Domain events emitted during the booking lifecycle."""

from __future__ import annotations

from pydantic import BaseModel, Field

from roombook.domain.models import Actor


class BookingCreated(BaseModel):
    """Fired when a single booking is persisted."""

    booking_id: str
    actor: Actor
    overrode_bookings: bool = False


class RecurringBookingCreated(BaseModel):
    """Fired once after every occurrence of a weekly series is persisted."""

    recurrence_group_id: str
    booking_ids: list[str]
    actor: Actor


class BookingUpdated(BaseModel):
    """Fired after an organizer or admin edits a booking."""

    booking_id: str
    actor: Actor
    rescheduled: bool = False


class BookingCancelled(BaseModel):
    """Fired when a booking is cancelled by its organizer or an admin."""

    booking_id: str
    actor: Actor


class BookingOverridden(BaseModel):
    """Fired for each booking cancelled to make way for an admin booking."""

    booking_id: str
    actor: Actor
    recurring: bool = False


class RoomCreated(BaseModel):
    room_id: str
    actor: Actor


class RoomUpdated(BaseModel):
    room_id: str
    actor: Actor


class RoomDeleted(BaseModel):
    """Fired after a room is removed; the room itself is no longer stored."""

    room_id: str
    room_name: str
    room_location: str
    actor: Actor
    cancelled_booking_ids: list[str] = Field(default_factory=list)
