"""Domain models for the room booking service."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone
from enum import StrEnum

from pydantic import AwareDatetime, BaseModel, Field, field_validator, model_validator


class UserRole(StrEnum):
    EMPLOYEE = "employee"
    ADMIN = "admin"


class BookingStatus(StrEnum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class NotificationType(StrEnum):
    BOOKING_CREATED = "booking_created"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_UPDATED = "booking_updated"
    BOOKING_REMINDER = "booking_reminder"
    ADMIN_OVERRIDE = "admin_override"
    MEETING_SCHEDULED = "meeting_scheduled"
    USER_ACTION_ALERT = "user_action_alert"
    ROOM_CREATED = "room_created"
    ROOM_UPDATED = "room_updated"
    ROOM_DELETED = "room_deleted"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def _dedupe(ids: list[str]) -> list[str]:
    return list(dict.fromkeys(ids))


# ---------------------------------------------------------------------------
# Core domain models
# ---------------------------------------------------------------------------


class User(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    email: str
    role: UserRole = UserRole.EMPLOYEE

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class Actor(BaseModel):
    """The caller of a mutating operation, as supplied by the auth layer."""

    user_id: str
    name: str
    email: str | None = None
    can_override: bool = False

    @classmethod
    def from_user(cls, user: User) -> Actor:
        return cls(
            user_id=user.id,
            name=user.name,
            email=user.email,
            can_override=user.is_admin,
        )


class Room(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str = Field(min_length=1)
    location: str = Field(min_length=1)
    capacity: int = Field(ge=1)
    amenities: list[str] = Field(default_factory=list)
    description: str | None = None
    floor: int | None = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class Booking(BaseModel):
    id: str = Field(default_factory=_new_id)
    room_id: str
    organizer_id: str
    title: str = Field(min_length=1)
    description: str | None = None
    start_time: AwareDatetime
    end_time: AwareDatetime
    attendees: list[str] = Field(min_length=1)
    status: BookingStatus = BookingStatus.CONFIRMED
    recurrence_group_id: str | None = None
    cancelled_by: str | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("attendees")
    @classmethod
    def _dedupe_attendees(cls, value: list[str]) -> list[str]:
        return _dedupe(value)

    @model_validator(mode="after")
    def _end_after_start(self) -> Booking:
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self

    @property
    def is_confirmed(self) -> bool:
        return self.status == BookingStatus.CONFIRMED

    def is_past(self, now: datetime) -> bool:
        return self.end_time < now

    def status_at(self, now: datetime) -> BookingStatus:
        """Stored status, with confirmed bookings that already ended reported
        as completed."""
        if self.is_confirmed and self.is_past(now):
            return BookingStatus.COMPLETED
        return self.status


class RecurrenceGroup(BaseModel):
    """Template for a weekly series; every occurrence is also stored as a
    Booking pointing back at the group."""

    id: str = Field(default_factory=_new_id)
    created_by: str
    room_id: str
    recurrence_pattern: str = "weekly"
    day_of_week: int = Field(ge=0, le=6)  # 0 = Monday
    start_date: date
    end_date: date
    base_start_time: str = Field(pattern=r"^\d{2}:\d{2}$")
    base_end_time: str = Field(pattern=r"^\d{2}:\d{2}$")
    utc_offset: timedelta = timedelta(0)
    title: str
    description: str | None = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=_utcnow)


class Notification(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str
    type: NotificationType
    title: str
    message: str
    booking_id: str | None = None
    room_id: str | None = None
    is_read: bool = False
    created_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class BookingCreateRequest(BaseModel):
    room_id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    description: str | None = None
    start_time: AwareDatetime
    end_time: AwareDatetime
    attendees: list[str] = Field(min_length=1)
    is_recurring: bool = False
    recurrence_end_date: date | None = None

    @field_validator("attendees")
    @classmethod
    def _dedupe_attendees(cls, value: list[str]) -> list[str]:
        return _dedupe(value)

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be blank")
        return value

    @model_validator(mode="after")
    def _recurrence_needs_end(self) -> BookingCreateRequest:
        if self.is_recurring and self.recurrence_end_date is None:
            raise ValueError("recurrence_end_date is required for recurring bookings")
        return self


class BookingUpdateRequest(BaseModel):
    room_id: str | None = None
    title: str | None = Field(default=None, min_length=1)
    description: str | None = None
    start_time: AwareDatetime | None = None
    end_time: AwareDatetime | None = None
    attendees: list[str] | None = Field(default=None, min_length=1)

    @field_validator("attendees")
    @classmethod
    def _dedupe_attendees(cls, value: list[str] | None) -> list[str] | None:
        return None if value is None else _dedupe(value)


class CancelBookingRequest(BaseModel):
    reason: str = ""


class BookingResult(BaseModel):
    booking: Booking
    overridden_booking_ids: list[str] = Field(default_factory=list)


class RecurringBookingResult(BaseModel):
    recurrence_group: RecurrenceGroup
    bookings: list[Booking]
    overridden_booking_ids: list[str] = Field(default_factory=list)

    @property
    def created_count(self) -> int:
        return len(self.bookings)


class RoomCreateRequest(BaseModel):
    name: str = Field(min_length=1)
    location: str = Field(min_length=1)
    capacity: int = Field(ge=1)
    amenities: list[str] = Field(default_factory=list)
    description: str | None = None
    floor: int | None = None


class RoomStatusRequest(BaseModel):
    is_active: bool


class RoomAvailability(BaseModel):
    room: Room
    day: date
    bookings: list[Booking]


class RoomDeletionResult(BaseModel):
    room_id: str
    cancelled_bookings: int
