# relgraph/models/domain/calendar_domain.py
"""
Calendar Domain Models
Ephemeral views over provider event payloads. Consumed once per sync pass.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime

from relgraph.models.domain.credentials_domain import CredentialPair

UNTITLED_MEETING = "Untitled meeting"


@dataclass(slots=True)
class CalendarAttendee:
    email: str | None
    display_name: str | None = None

    @classmethod
    def from_api(cls, data: dict) -> "CalendarAttendee":
        return cls(email=data.get("email"), display_name=data.get("displayName") or None)


class CalendarEvent:
    """Domain model for a provider calendar event."""

    def __init__(self, data: dict):
        self.id = data.get("id")
        self.title = data.get("summary") or UNTITLED_MEETING
        self.start = data.get("start") or {}
        self.end = data.get("end") or {}
        self.attendees = [
            CalendarAttendee.from_api(attendee) for attendee in data.get("attendees") or []
        ]

    @staticmethod
    def _parse_datetime(value: str | None) -> datetime | None:
        if not value:
            return None
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return parsed

    @staticmethod
    def _parse_date(value: str | None) -> datetime | None:
        if not value:
            return None
        try:
            return datetime.strptime(value, "%Y-%m-%d").replace(tzinfo=UTC)
        except ValueError:
            return None

    def event_date(self, fallback: datetime) -> datetime:
        """Start dateTime, else start date at midnight UTC, else the fallback."""
        return (
            self._parse_datetime(self.start.get("dateTime"))
            or self._parse_date(self.start.get("date"))
            or fallback
        )

    def duration_minutes(self) -> int | None:
        """Whole minutes between start and end; None unless both are timestamped."""
        start = self._parse_datetime(self.start.get("dateTime"))
        end = self._parse_datetime(self.end.get("dateTime"))
        if start is None or end is None:
            return None
        return round((end - start).total_seconds() / 60)


@dataclass(slots=True)
class CalendarEventsPage:
    """One page of events plus the credentials in effect after the call."""

    events: list[CalendarEvent] = field(default_factory=list)
    next_page_token: str | None = None
    # Set only when the provider issued new tokens during this call
    rotated_credentials: CredentialPair | None = None
