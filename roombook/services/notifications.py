"""Builders turning lifecycle facts into notification records.

Each function is pure: it returns the notifications to write and leaves
persistence to the caller, which stores the whole list in one call.
"""

from __future__ import annotations

from roombook.domain.models import (
    Actor,
    Booking,
    Notification,
    NotificationType,
    Room,
    User,
)

_TIME_FORMAT = "%a %d %b %Y %H:%M"


def _when(booking: Booking) -> str:
    return booking.start_time.strftime(_TIME_FORMAT)


def _other_admins(admins: list[User], actor: Actor) -> list[User]:
    return [a for a in admins if a.id != actor.user_id]


def _other_attendees(booking: Booking, organizer_id: str) -> list[str]:
    return [a for a in booking.attendees if a != organizer_id]


# ---------------------------------------------------------------------------
# Organizer
# ---------------------------------------------------------------------------


def booking_created(booking: Booking, overrode: bool) -> Notification:
    if overrode:
        return Notification(
            user_id=booking.organizer_id,
            type=NotificationType.ADMIN_OVERRIDE,
            title="Admin Override Booking Created",
            message=(
                f"Your admin booking for {booking.title} has been created, "
                "overriding existing bookings."
            ),
            booking_id=booking.id,
            room_id=booking.room_id,
        )
    return Notification(
        user_id=booking.organizer_id,
        type=NotificationType.BOOKING_CREATED,
        title="Booking Created",
        message=f"Your booking for {booking.title} has been confirmed.",
        booking_id=booking.id,
        room_id=booking.room_id,
    )


def recurring_booking_created(organizer_id: str, title: str, room_id: str, count: int) -> Notification:
    return Notification(
        user_id=organizer_id,
        type=NotificationType.BOOKING_CREATED,
        title="Recurring Booking Created",
        message=f"Your recurring booking for {title} has been created with {count} occurrences.",
        room_id=room_id,
    )


def booking_cancelled(booking: Booking, actor: Actor) -> Notification:
    if actor.can_override and actor.user_id != booking.organizer_id:
        kind = NotificationType.ADMIN_OVERRIDE
        title = "Booking Cancelled by Admin"
    else:
        kind = NotificationType.BOOKING_CANCELLED
        title = "Booking Cancelled"
    return Notification(
        user_id=booking.organizer_id,
        type=kind,
        title=title,
        message=f"Your booking for {booking.title} has been cancelled.",
        booking_id=booking.id,
        room_id=booking.room_id,
    )


def booking_overridden(booking: Booking, recurring: bool) -> Notification:
    cause = "an admin recurring booking override" if recurring else "an admin override"
    return Notification(
        user_id=booking.organizer_id,
        type=NotificationType.ADMIN_OVERRIDE,
        title="Booking Cancelled by Admin",
        message=f'Your booking "{booking.title}" has been cancelled due to {cause}.',
        booking_id=booking.id,
        room_id=booking.room_id,
    )


# ---------------------------------------------------------------------------
# Attendees
# ---------------------------------------------------------------------------


def meeting_scheduled(booking: Booking, organizer: Actor, room: Room | None) -> list[Notification]:
    where = room.name if room else "the booked room"
    return [
        Notification(
            user_id=attendee,
            type=NotificationType.MEETING_SCHEDULED,
            title="Meeting Invitation",
            message=(
                f'You have been invited to "{booking.title}" by {organizer.name}. '
                f"Meeting scheduled for {_when(booking)} in {where}"
            ),
            booking_id=booking.id,
            room_id=booking.room_id,
        )
        for attendee in _other_attendees(booking, organizer.user_id)
    ]


_UPDATE_WORDING = {
    "cancelled": ("Meeting Cancelled", "has been cancelled."),
    "updated": ("Meeting Updated", "has been updated."),
    "rescheduled": ("Meeting Rescheduled", "has been rescheduled to {when}"),
}


def meeting_changed(booking: Booking, organizer_name: str, change: str) -> list[Notification]:
    """Notify every attendee except the organizer that a meeting changed.

    ``change`` is one of ``cancelled``, ``updated`` or ``rescheduled``.
    """
    title, tail = _UPDATE_WORDING[change]
    message = (
        f'The meeting "{booking.title}" organized by {organizer_name} '
        + tail.format(when=_when(booking))
    )
    return [
        Notification(
            user_id=attendee,
            type=NotificationType.BOOKING_UPDATED,
            title=title,
            message=message,
            booking_id=booking.id,
            room_id=booking.room_id,
        )
        for attendee in _other_attendees(booking, booking.organizer_id)
    ]


def booking_reminders(booking: Booking, room: Room | None, lead_minutes: int) -> list[Notification]:
    where = room.name if room else "the booked room"
    organizer = Notification(
        user_id=booking.organizer_id,
        type=NotificationType.BOOKING_REMINDER,
        title="Upcoming Meeting Reminder",
        message=f'Your meeting "{booking.title}" starts in {lead_minutes} minutes at {where}',
        booking_id=booking.id,
        room_id=booking.room_id,
    )
    return [organizer] + [
        Notification(
            user_id=attendee,
            type=NotificationType.BOOKING_REMINDER,
            title="Upcoming Meeting Reminder",
            message=f'Meeting "{booking.title}" starts in {lead_minutes} minutes at {where}',
            booking_id=booking.id,
            room_id=booking.room_id,
        )
        for attendee in _other_attendees(booking, booking.organizer_id)
    ]


# ---------------------------------------------------------------------------
# Admin audit trail
# ---------------------------------------------------------------------------

_ACTION_WORDING = {
    "booking_created": ("New Booking Created", '{actor} created a new booking: "{title}" in {room}'),
    "booking_cancelled": ("Booking Cancelled", '{actor} cancelled their booking: "{title}"'),
    "booking_updated": ("Booking Updated", '{actor} updated their booking: "{title}"'),
}


def user_action_alerts(
    action: str,
    actor: Actor,
    admins: list[User],
    title: str,
    room: Room | None,
    booking_id: str | None = None,
) -> list[Notification]:
    """Alert every admin other than the actor about a booking action."""
    heading, template = _ACTION_WORDING.get(
        action, ("User Activity", "{actor} performed an action: " + action)
    )
    message = template.format(
        actor=actor.name, title=title, room=room.name if room else "an unknown room"
    )
    return [
        Notification(
            user_id=admin.id,
            type=NotificationType.USER_ACTION_ALERT,
            title=heading,
            message=message,
            booking_id=booking_id,
            room_id=room.id if room else None,
        )
        for admin in _other_admins(admins, actor)
    ]


_ROOM_WORDING = {
    NotificationType.ROOM_CREATED: ("New Room Created", '{actor} created a new room: "{name}" at {location}'),
    NotificationType.ROOM_UPDATED: ("Room Updated", '{actor} updated room: "{name}"'),
    NotificationType.ROOM_DELETED: ("Room Deleted", '{actor} deleted room: "{name}"'),
}


def room_action_alerts(
    kind: NotificationType,
    actor: Actor,
    admins: list[User],
    room_id: str,
    name: str,
    location: str,
) -> list[Notification]:
    heading, template = _ROOM_WORDING[kind]
    message = template.format(actor=actor.name, name=name, location=location)
    return [
        Notification(
            user_id=admin.id,
            type=kind,
            title=heading,
            message=message,
            room_id=None if kind == NotificationType.ROOM_DELETED else room_id,
        )
        for admin in _other_admins(admins, actor)
    ]


def room_deleted(booking: Booking, room_name: str) -> list[Notification]:
    """Tell the organizer and every attendee that a booking died with its room."""
    notifications = [
        Notification(
            user_id=booking.organizer_id,
            type=NotificationType.ROOM_DELETED,
            title="Room Deleted - Booking Cancelled",
            message=(
                f'Your booking "{booking.title}" has been cancelled because the room '
                f'"{room_name}" no longer exists.'
            ),
            booking_id=booking.id,
        )
    ]
    notifications.extend(
        Notification(
            user_id=attendee,
            type=NotificationType.ROOM_DELETED,
            title="Room Deleted - Booking Cancelled",
            message=(
                f'The booking "{booking.title}" has been cancelled because the room '
                f'"{room_name}" no longer exists.'
            ),
            booking_id=booking.id,
        )
        for attendee in _other_attendees(booking, booking.organizer_id)
    )
    return notifications
