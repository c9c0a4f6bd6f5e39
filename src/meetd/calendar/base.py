"""Calendar collaborator interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from ..models import BusyPeriod


@dataclass
class CreatedEvent:
    """Identifier and link of an event created by a provider."""

    id: str
    html_link: str | None = None


class CalendarProvider(ABC):
    """A calendar that can report busy time and create events."""

    name: str = "calendar"

    @abstractmethod
    async def get_busy_periods(self, start: datetime, end: datetime) -> list[BusyPeriod]:
        """Busy intervals overlapping ``[start, end)``.

        Raises:
            CalendarError: If the provider request fails.
        """
        ...

    @abstractmethod
    async def create_event(
        self,
        title: str,
        description: str | None,
        start: datetime,
        end: datetime,
        attendee: str | None = None,
    ) -> CreatedEvent:
        """Create an event and invite ``attendee`` if given.

        Raises:
            CalendarError: If the provider request fails.
        """
        ...
