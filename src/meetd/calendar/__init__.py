"""Calendar collaborators."""

from .base import CalendarProvider, CreatedEvent
from .google import GoogleCalendar, GoogleCalendarFactory, TokenCache

__all__ = [
    "CalendarProvider",
    "CreatedEvent",
    "GoogleCalendar",
    "GoogleCalendarFactory",
    "TokenCache",
]
