"""In-memory repositories for rooms, bookings, recurrence groups,
notifications, and users."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

from roombook.domain.models import (
    Booking,
    BookingStatus,
    Notification,
    NotificationType,
    RecurrenceGroup,
    Room,
    User,
    UserRole,
)
from roombook.services.conflicts import overlaps


class RoomRepository:
    """Dict-backed store for Room instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Room] = {}

    def add(self, room: Room) -> None:
        self._store[room.id] = room

    def get(self, room_id: str) -> Room | None:
        return self._store.get(room_id)

    def get_by_name(self, name: str) -> Room | None:
        lowered = name.strip().lower()
        for room in self._store.values():
            if room.name.lower() == lowered:
                return room
        return None

    def list_all(self) -> list[Room]:
        return sorted(self._store.values(), key=lambda r: r.name)

    def delete(self, room_id: str) -> None:
        self._store.pop(room_id, None)


class BookingRepository:
    """Dict-backed store for Booking instances, keyed by id.

    ``locked(room_id)`` serializes scan-then-write sequences per room; every
    write that can create or move a confirmed booking must happen inside it.
    """

    def __init__(self) -> None:
        self._store: dict[str, Booking] = {}
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def locked(self, room_id: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.setdefault(room_id, threading.RLock())
        with lock:
            yield

    def add(self, booking: Booking) -> None:
        self._store[booking.id] = booking

    def add_many(self, bookings: list[Booking]) -> None:
        self._store.update({b.id: b for b in bookings})

    def save(self, booking: Booking) -> None:
        if booking.id not in self._store:
            raise KeyError(booking.id)
        self._store[booking.id] = booking

    def get(self, booking_id: str) -> Booking | None:
        return self._store.get(booking_id)

    def delete(self, booking_id: str) -> None:
        self._store.pop(booking_id, None)

    def list_all(self) -> list[Booking]:
        return list(self._store.values())

    def list_for_room(
        self, room_id: str, status: BookingStatus | None = None
    ) -> list[Booking]:
        return sorted(
            (
                b
                for b in list(self._store.values())
                if b.room_id == room_id and (status is None or b.status == status)
            ),
            key=lambda b: b.start_time,
        )

    def list_overlapping(
        self,
        room_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: str | None = None,
    ) -> list[Booking]:
        """Confirmed bookings on ``room_id`` whose interval overlaps [start, end)."""
        return [
            b
            for b in self.list_for_room(room_id, BookingStatus.CONFIRMED)
            if b.id != exclude_booking_id
            and overlaps(start, end, b.start_time, b.end_time)
        ]

    def list_for_group(self, group_id: str) -> list[Booking]:
        return sorted(
            (b for b in list(self._store.values()) if b.recurrence_group_id == group_id),
            key=lambda b: b.start_time,
        )

    def list_for_organizer(self, user_id: str) -> list[Booking]:
        return sorted(
            (b for b in list(self._store.values()) if b.organizer_id == user_id),
            key=lambda b: b.created_at,
            reverse=True,
        )

    def list_starting_between(
        self, start: datetime, end: datetime
    ) -> list[Booking]:
        """Confirmed bookings whose start time falls in [start, end]."""
        return sorted(
            (
                b
                for b in list(self._store.values())
                if b.is_confirmed and start <= b.start_time <= end
            ),
            key=lambda b: b.start_time,
        )


class RecurrenceGroupRepository:
    """Dict-backed store for RecurrenceGroup instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, RecurrenceGroup] = {}

    def add(self, group: RecurrenceGroup) -> None:
        self._store[group.id] = group

    def get(self, group_id: str) -> RecurrenceGroup | None:
        return self._store.get(group_id)

    def delete(self, group_id: str) -> None:
        self._store.pop(group_id, None)

    def list_active_for_room(self, room_id: str) -> list[RecurrenceGroup]:
        return [
            g for g in self._store.values() if g.room_id == room_id and g.is_active
        ]


class NotificationRepository:
    """List-backed store for Notification instances."""

    def __init__(self) -> None:
        self._items: list[Notification] = []

    def add(self, notification: Notification) -> None:
        self._items.append(notification)

    def add_many(self, notifications: list[Notification]) -> None:
        self._items.extend(notifications)

    def get(self, notification_id: str) -> Notification | None:
        for item in self._items:
            if item.id == notification_id:
                return item
        return None

    def list_for_user(self, user_id: str, unread_only: bool = False) -> list[Notification]:
        return sorted(
            (
                n
                for n in self._items
                if n.user_id == user_id and not (unread_only and n.is_read)
            ),
            key=lambda n: n.created_at,
            reverse=True,
        )

    def list_for_booking(
        self, booking_id: str, type: NotificationType | None = None
    ) -> list[Notification]:
        return [
            n
            for n in self._items
            if n.booking_id == booking_id and (type is None or n.type == type)
        ]

    def mark_read(self, notification_id: str) -> Notification | None:
        item = self.get(notification_id)
        if item is not None:
            item.is_read = True
        return item


class UserRepository:
    """Dict-backed user directory, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, User] = {}

    def add(self, user: User) -> None:
        self._store[user.id] = user

    def get(self, user_id: str) -> User | None:
        return self._store.get(user_id)

    def list_admins(self) -> list[User]:
        return [u for u in self._store.values() if u.role == UserRole.ADMIN]


# ---------------------------------------------------------------------------
# Seed data: a small office with a few bookings for manual testing
# ---------------------------------------------------------------------------


def seed_demo_data(
    users: UserRepository, rooms: RoomRepository, bookings: BookingRepository
) -> None:
    now = datetime.now(timezone.utc).replace(minute=0, second=0, microsecond=0)

    admin = User(id="admin", name="Office Admin", email="admin@example.com", role=UserRole.ADMIN)
    alice = User(id="alice", name="Alice Martin", email="alice@example.com")
    bob = User(id="bob", name="Bob Okafor", email="bob@example.com")
    for user in (admin, alice, bob):
        users.add(user)

    boardroom = Room(name="Boardroom", location="HQ", capacity=12, floor=3,
                     amenities=["Projector", "Video conferencing"])
    huddle = Room(name="Huddle 1", location="HQ", capacity=4, floor=2)
    rooms.add(boardroom)
    rooms.add(huddle)

    bookings.add(
        Booking(
            room_id=boardroom.id,
            organizer_id=alice.id,
            title="Quarterly planning",
            start_time=now + timedelta(days=1, hours=2),
            end_time=now + timedelta(days=1, hours=4),
            attendees=[alice.id, bob.id],
        )
    )
    bookings.add(
        Booking(
            room_id=huddle.id,
            organizer_id=bob.id,
            title="1:1",
            start_time=now + timedelta(hours=3),
            end_time=now + timedelta(hours=3, minutes=30),
            attendees=[bob.id, alice.id],
        )
    )
