"""Domain event handlers, wired up at application startup."""

from __future__ import annotations

from roombook.domain.bus import EventBus
from roombook.domain.events import (
    BookingCancelled,
    BookingCreated,
    BookingOverridden,
    BookingUpdated,
    RecurringBookingCreated,
    RoomCreated,
    RoomDeleted,
    RoomUpdated,
)
from roombook.domain.models import Booking, Notification, NotificationType
from roombook.repos.memory import (
    BookingRepository,
    NotificationRepository,
    RoomRepository,
    UserRepository,
)
from roombook.services import notifications
from roombook.services.mailer import (
    EmailDispatcher,
    booking_cancelled_email,
    booking_created_email,
)
from roombook.services.realtime import RoomFeed


class HandlerRegistry:
    """Wires domain-event handlers to the bus with access to all repositories.

    Each handler collects the notifications one event causes and writes
    them in a single batch, then fires the best-effort side effects (email
    and real-time push).
    """

    def __init__(
        self,
        bus: EventBus,
        user_repo: UserRepository,
        room_repo: RoomRepository,
        booking_repo: BookingRepository,
        notification_repo: NotificationRepository,
        mailer: EmailDispatcher | None = None,
        feed: RoomFeed | None = None,
    ) -> None:
        self.bus = bus
        self.user_repo = user_repo
        self.room_repo = room_repo
        self.booking_repo = booking_repo
        self.notification_repo = notification_repo
        self.mailer = mailer
        self.feed = feed
        self._register()

    def _register(self) -> None:
        self.bus.subscribe(BookingCreated, self.on_booking_created)
        self.bus.subscribe(RecurringBookingCreated, self.on_recurring_booking_created)
        self.bus.subscribe(BookingUpdated, self.on_booking_updated)
        self.bus.subscribe(BookingCancelled, self.on_booking_cancelled)
        self.bus.subscribe(BookingOverridden, self.on_booking_overridden)
        self.bus.subscribe(RoomCreated, self.on_room_created)
        self.bus.subscribe(RoomUpdated, self.on_room_updated)
        self.bus.subscribe(RoomDeleted, self.on_room_deleted)

    # ------------------------------------------------------------------
    # Booking handlers
    # ------------------------------------------------------------------

    def on_booking_created(self, event: BookingCreated) -> None:
        booking = self.booking_repo.get(event.booking_id)
        if booking is None:
            return
        room = self.room_repo.get(booking.room_id)

        batch = [notifications.booking_created(booking, event.overrode_bookings)]
        if not event.actor.can_override:
            batch += notifications.user_action_alerts(
                "booking_created",
                event.actor,
                self.user_repo.list_admins(),
                booking.title,
                room,
                booking_id=booking.id,
            )
        batch += notifications.meeting_scheduled(booking, event.actor, room)
        self.notification_repo.add_many(batch)

        self._push(booking, "booking_created")
        organizer = self.user_repo.get(booking.organizer_id)
        if self.mailer is not None and organizer is not None and room is not None:
            self.mailer.dispatch(
                organizer.email,
                "Booking Confirmation",
                booking_created_email(booking, room, organizer),
            )

    def on_recurring_booking_created(self, event: RecurringBookingCreated) -> None:
        bookings = [
            b for b in (self.booking_repo.get(i) for i in event.booking_ids) if b is not None
        ]
        if not bookings:
            return
        first = bookings[0]
        room = self.room_repo.get(first.room_id)

        batch = [
            notifications.recurring_booking_created(
                first.organizer_id, first.title, first.room_id, len(bookings)
            )
        ]
        if not event.actor.can_override:
            batch += notifications.user_action_alerts(
                "booking_created",
                event.actor,
                self.user_repo.list_admins(),
                first.title,
                room,
                booking_id=first.id,
            )
        for booking in bookings:
            batch += notifications.meeting_scheduled(booking, event.actor, room)
        self.notification_repo.add_many(batch)

        for booking in bookings:
            self._push(booking, "booking_created")

    def on_booking_updated(self, event: BookingUpdated) -> None:
        booking = self.booking_repo.get(event.booking_id)
        if booking is None:
            return
        batch: list[Notification] = []
        if not event.actor.can_override:
            batch += notifications.user_action_alerts(
                "booking_updated",
                event.actor,
                self.user_repo.list_admins(),
                booking.title,
                self.room_repo.get(booking.room_id),
                booking_id=booking.id,
            )
        batch += notifications.meeting_changed(
            booking,
            self._organizer_name(booking),
            "rescheduled" if event.rescheduled else "updated",
        )
        self.notification_repo.add_many(batch)
        self._push(booking, "booking_updated")

    def on_booking_cancelled(self, event: BookingCancelled) -> None:
        booking = self.booking_repo.get(event.booking_id)
        if booking is None:
            return
        room = self.room_repo.get(booking.room_id)

        batch = [notifications.booking_cancelled(booking, event.actor)]
        if not event.actor.can_override:
            batch += notifications.user_action_alerts(
                "booking_cancelled",
                event.actor,
                self.user_repo.list_admins(),
                booking.title,
                room,
                booking_id=booking.id,
            )
        batch += notifications.meeting_changed(booking, self._organizer_name(booking), "cancelled")
        self.notification_repo.add_many(batch)

        self._push(booking, "booking_cancelled")
        organizer = self.user_repo.get(booking.organizer_id)
        if self.mailer is not None and organizer is not None and room is not None:
            self.mailer.dispatch(
                organizer.email,
                "Booking Cancelled",
                booking_cancelled_email(booking, room, organizer),
            )

    def on_booking_overridden(self, event: BookingOverridden) -> None:
        booking = self.booking_repo.get(event.booking_id)
        if booking is None:
            return
        self.notification_repo.add(notifications.booking_overridden(booking, event.recurring))
        self._push(booking, "booking_cancelled")

    # ------------------------------------------------------------------
    # Room handlers
    # ------------------------------------------------------------------

    def on_room_created(self, event: RoomCreated) -> None:
        room = self.room_repo.get(event.room_id)
        if room is None:
            return
        self.notification_repo.add_many(
            notifications.room_action_alerts(
                NotificationType.ROOM_CREATED,
                event.actor,
                self.user_repo.list_admins(),
                room.id,
                room.name,
                room.location,
            )
        )

    def on_room_updated(self, event: RoomUpdated) -> None:
        room = self.room_repo.get(event.room_id)
        if room is None:
            return
        self.notification_repo.add_many(
            notifications.room_action_alerts(
                NotificationType.ROOM_UPDATED,
                event.actor,
                self.user_repo.list_admins(),
                room.id,
                room.name,
                room.location,
            )
        )

    def on_room_deleted(self, event: RoomDeleted) -> None:
        batch: list[Notification] = []
        for booking_id in event.cancelled_booking_ids:
            booking = self.booking_repo.get(booking_id)
            if booking is not None:
                batch += notifications.room_deleted(booking, event.room_name)
        batch += notifications.room_action_alerts(
            NotificationType.ROOM_DELETED,
            event.actor,
            self.user_repo.list_admins(),
            event.room_id,
            event.room_name,
            event.room_location,
        )
        self.notification_repo.add_many(batch)
        if self.feed is not None:
            self.feed.push(event.room_id, {"type": "room_deleted", "room_id": event.room_id})

    # ------------------------------------------------------------------

    def _organizer_name(self, booking: Booking) -> str:
        organizer = self.user_repo.get(booking.organizer_id)
        return organizer.name if organizer else "the organizer"

    def _push(self, booking: Booking, kind: str) -> None:
        if self.feed is None:
            return
        self.feed.push(
            booking.room_id,
            {"type": kind, "booking": booking.model_dump(mode="json")},
        )
