"""FastAPI application: entry point for the room booking service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.responses import Response

from roombook.config import settings
from roombook.domain.bus import EventBus
from roombook.domain.errors import (
    BookingError,
    Conflict,
    InvalidState,
    NotFound,
    Unauthorized,
    ValidationError,
)
from roombook.domain.handlers import HandlerRegistry
from roombook.domain.models import (
    Actor,
    Booking,
    BookingCreateRequest,
    BookingResult,
    BookingStatus,
    BookingUpdateRequest,
    CancelBookingRequest,
    Notification,
    RecurringBookingResult,
    Room,
    RoomAvailability,
    RoomCreateRequest,
    RoomDeletionResult,
    RoomStatusRequest,
)
from roombook.repos.memory import (
    BookingRepository,
    NotificationRepository,
    RecurrenceGroupRepository,
    RoomRepository,
    UserRepository,
    seed_demo_data,
)
from roombook.services.bookings import BookingService
from roombook.services.mailer import EmailDispatcher, SmtpMailer
from roombook.services.realtime import RoomFeed
from roombook.services.reminders import send_booking_reminders
from roombook.services.rooms import RoomService

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("roombook")


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if mailer is not None:
        mailer.shutdown(wait=False)


app = FastAPI(title=settings.app_name, lifespan=lifespan)

# ── Singletons (created at import time for simplicity) ────────────────
event_bus = EventBus()
user_repo = UserRepository()
room_repo = RoomRepository()
booking_repo = BookingRepository()
group_repo = RecurrenceGroupRepository()
notification_repo = NotificationRepository()
room_feed = RoomFeed()
mailer = EmailDispatcher(SmtpMailer(settings).send) if settings.email_enabled else None

handler_registry = HandlerRegistry(
    bus=event_bus,
    user_repo=user_repo,
    room_repo=room_repo,
    booking_repo=booking_repo,
    notification_repo=notification_repo,
    mailer=mailer,
    feed=room_feed,
)
booking_service = BookingService(
    room_repo, booking_repo, group_repo, event_bus, max_attendees=settings.max_attendees
)
room_service = RoomService(room_repo, booking_repo, group_repo, event_bus)

if settings.seed_demo_data:
    seed_demo_data(user_repo, room_repo, booking_repo)


# ── Errors and authentication ─────────────────────────────────────────

_STATUS_CODES: dict[type[BookingError], int] = {
    ValidationError: 400,
    InvalidState: 400,
    Unauthorized: 403,
    NotFound: 404,
    Conflict: 409,
}


@app.exception_handler(BookingError)
def _booking_error(request: Request, exc: BookingError) -> JSONResponse:
    body: dict = {"detail": exc.detail}
    if isinstance(exc, Conflict) and exc.conflict_dates:
        body["conflict_dates"] = [d.isoformat() for d in exc.conflict_dates]
    return JSONResponse(status_code=_STATUS_CODES.get(type(exc), 400), content=body)


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def current_actor(x_user_id: str | None = Header(default=None)) -> Actor:
    """Resolve the caller from the ``X-User-Id`` header."""
    user = user_repo.get(x_user_id) if x_user_id else None
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return Actor.from_user(user)


def admin_actor(actor: Actor = Depends(current_actor)) -> Actor:
    if not actor.can_override:
        raise HTTPException(status_code=403, detail="Administrator access required")
    return actor


# ── Routes ────────────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/rooms", response_model=list[Room])
def list_rooms(
    is_active: bool | None = None,
    min_capacity: int | None = None,
    location: str | None = None,
    actor: Actor = Depends(current_actor),
) -> list[Room]:
    return room_service.list_rooms(is_active, min_capacity, location)


@app.post("/rooms", response_model=Room, status_code=201)
def create_room(payload: RoomCreateRequest, actor: Actor = Depends(admin_actor)) -> Room:
    return room_service.create_room(payload, actor)


@app.get("/rooms/{room_id}", response_model=Room)
def get_room(room_id: str, actor: Actor = Depends(current_actor)) -> Room:
    return room_service.get_room(room_id)


@app.patch("/rooms/{room_id}/status", response_model=Room)
def set_room_status(
    room_id: str, payload: RoomStatusRequest, actor: Actor = Depends(admin_actor)
) -> Room:
    return room_service.set_room_status(room_id, payload.is_active, actor)


@app.delete("/rooms/{room_id}", response_model=RoomDeletionResult)
def delete_room(room_id: str, actor: Actor = Depends(admin_actor)) -> RoomDeletionResult:
    return room_service.delete_room(room_id, actor)


@app.get("/rooms/{room_id}/availability", response_model=RoomAvailability)
def room_availability(
    room_id: str, day: date, actor: Actor = Depends(current_actor)
) -> RoomAvailability:
    return room_service.availability(room_id, day)


@app.get("/bookings", response_model=list[Booking])
def list_bookings(
    room_id: str | None = None,
    status: BookingStatus | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    actor: Actor = Depends(current_actor),
) -> list[Booking]:
    return booking_service.list_bookings(room_id, status, _aware(start), _aware(end))


@app.get("/bookings/mine", response_model=list[Booking])
def my_bookings(upcoming: bool = False, actor: Actor = Depends(current_actor)) -> list[Booking]:
    return booking_service.list_for_organizer(actor.user_id, upcoming)


@app.post(
    "/bookings",
    response_model=BookingResult | RecurringBookingResult,
    status_code=201,
)
def create_booking(
    payload: BookingCreateRequest, actor: Actor = Depends(current_actor)
) -> BookingResult | RecurringBookingResult:
    """Create a single booking, or a weekly series when ``is_recurring``."""
    return booking_service.create_booking(payload, actor)


@app.get("/bookings/{booking_id}", response_model=Booking)
def get_booking(booking_id: str, actor: Actor = Depends(current_actor)) -> Booking:
    return booking_service.get_booking(booking_id, viewer=actor)


@app.put("/bookings/{booking_id}", response_model=Booking)
def update_booking(
    booking_id: str, payload: BookingUpdateRequest, actor: Actor = Depends(current_actor)
) -> Booking:
    return booking_service.update_booking(booking_id, payload, actor)


@app.patch("/bookings/{booking_id}/cancel", response_model=Booking)
def cancel_booking(
    booking_id: str,
    payload: CancelBookingRequest | None = None,
    actor: Actor = Depends(current_actor),
) -> Booking:
    reason = payload.reason if payload else ""
    return booking_service.cancel_booking(booking_id, actor, reason)


@app.delete("/bookings/{booking_id}")
def delete_booking(booking_id: str, actor: Actor = Depends(admin_actor)) -> Response:
    booking_service.delete_booking(booking_id, actor)
    return Response(status_code=204)


@app.get("/notifications", response_model=list[Notification])
def list_notifications(
    unread: bool = False, actor: Actor = Depends(current_actor)
) -> list[Notification]:
    return notification_repo.list_for_user(actor.user_id, unread_only=unread)


@app.patch("/notifications/{notification_id}/read", response_model=Notification)
def mark_notification_read(
    notification_id: str, actor: Actor = Depends(current_actor)
) -> Notification:
    notification = notification_repo.get(notification_id)
    if notification is None or notification.user_id != actor.user_id:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification_repo.mark_read(notification_id)


@app.post("/tick")
def tick(now: datetime | None = None) -> dict:
    """Advance simulated time and fire any due booking reminders.

    Pass *now* as a query param to control the simulated clock.
    Defaults to ``datetime.now(timezone.utc)`` when omitted.
    """
    current_time = _aware(now) or datetime.now(timezone.utc)
    sent = send_booking_reminders(
        current_time,
        booking_repo,
        room_repo,
        notification_repo,
        lead_minutes=settings.reminder_lead_minutes,
    )
    return {"time": current_time.isoformat(), "reminders_sent": len(sent)}
