"""Shared fixtures: a fresh bus, repositories, handlers and services per test."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from roombook.domain.bus import EventBus
from roombook.domain.handlers import HandlerRegistry
from roombook.domain.models import Actor, BookingCreateRequest, Room, User, UserRole
from roombook.repos.memory import (
    BookingRepository,
    NotificationRepository,
    RecurrenceGroupRepository,
    RoomRepository,
    UserRepository,
)
from roombook.services.bookings import BookingService
from roombook.services.realtime import RoomFeed
from roombook.services.rooms import RoomService

# A Monday.
NOW = datetime(2026, 6, 1, 8, 0, tzinfo=timezone.utc)


def at(days: int, hour: int, minute: int = 0) -> datetime:
    """An instant ``days`` after NOW's date at the given UTC wall-clock time."""
    return (NOW + timedelta(days=days)).replace(hour=hour, minute=minute)


class RecordingMailer:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []

    def dispatch(self, to: str, subject: str, html: str) -> None:
        self.sent.append((to, subject, html))


class Env:
    pass


@pytest.fixture()
def env():
    e = Env()
    e.bus = EventBus()
    e.user_repo = UserRepository()
    e.room_repo = RoomRepository()
    e.booking_repo = BookingRepository()
    e.group_repo = RecurrenceGroupRepository()
    e.notification_repo = NotificationRepository()
    e.mailer = RecordingMailer()
    e.feed = RoomFeed()
    e.registry = HandlerRegistry(
        bus=e.bus,
        user_repo=e.user_repo,
        room_repo=e.room_repo,
        booking_repo=e.booking_repo,
        notification_repo=e.notification_repo,
        mailer=e.mailer,
        feed=e.feed,
    )
    e.clock = lambda: NOW
    e.bookings = BookingService(
        e.room_repo, e.booking_repo, e.group_repo, e.bus, clock=lambda: e.clock()
    )
    e.rooms = RoomService(
        e.room_repo, e.booking_repo, e.group_repo, e.bus, clock=lambda: e.clock()
    )

    users = {
        "admin": User(id="admin", name="Ada Admin", email="admin@example.com", role=UserRole.ADMIN),
        "admin2": User(id="admin2", name="Otto Admin", email="admin2@example.com", role=UserRole.ADMIN),
        "alice": User(id="alice", name="Alice", email="alice@example.com"),
        "bob": User(id="bob", name="Bob", email="bob@example.com"),
        "carol": User(id="carol", name="Carol", email="carol@example.com"),
    }
    for user in users.values():
        e.user_repo.add(user)
    e.actors = {key: Actor.from_user(user) for key, user in users.items()}

    e.room = Room(id="r1", name="Boardroom", location="HQ", capacity=4)
    e.other_room = Room(id="r2", name="Huddle", location="HQ", capacity=2)
    e.room_repo.add(e.room)
    e.room_repo.add(e.other_room)
    return e


def make_request(**overrides) -> BookingCreateRequest:
    defaults = dict(
        room_id="r1",
        title="Team sync",
        start_time=at(1, 10),
        end_time=at(1, 11),
        attendees=["alice", "bob"],
    )
    defaults.update(overrides)
    return BookingCreateRequest(**defaults)
