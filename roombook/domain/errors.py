"""Errors raised by the booking services.

Every error carries a human-readable ``detail``; the HTTP layer maps each
class to a status code.
"""

from __future__ import annotations

from datetime import date


class BookingError(Exception):
    """Base class for all domain errors."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ValidationError(BookingError):
    """Missing or malformed input, attendee count over capacity, end before start."""


class NotFound(BookingError):
    """Unknown room, booking, or notification."""


class Unauthorized(BookingError):
    """The actor may not perform the requested mutation."""


class Conflict(BookingError):
    """The requested interval collides with a confirmed booking."""

    def __init__(self, detail: str, conflict_dates: list[date] | None = None) -> None:
        super().__init__(detail)
        self.conflict_dates = conflict_dates or []


class InvalidState(BookingError):
    """The booking's lifecycle state does not allow the operation."""
