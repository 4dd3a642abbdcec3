"""
Domain models for the network sync feature.

Lightweight dataclasses describing what a sync pass produces and what the
store hands back. They carry no I/O so repositories, services and the API
layer can share them.
"""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(slots=True)
class MeetingRecord:
    """One meeting observed for a contact during a sync pass."""

    title: str
    date: datetime
    duration_minutes: int | None = None


@dataclass(slots=True)
class ContactAggregate:
    """Per-attendee statistics folded from the event stream."""

    email: str
    domain: str
    meetings_count: int
    last_seen_at: datetime
    last_event_title: str | None = None
    name: str | None = None
    meetings: list[MeetingRecord] = field(default_factory=list)

    def recent_meetings(self, limit: int) -> list[MeetingRecord]:
        """Most recent meetings first, capped at limit."""
        return sorted(self.meetings, key=lambda meeting: meeting.date, reverse=True)[:limit]


@dataclass(slots=True)
class ApprovedContactRow:
    """Approved contact as read back for relationship scoring."""

    contact_id: str
    company_id: str
    meetings_count: int
    last_seen_at: datetime | None


@dataclass(slots=True)
class CompanyStrength:
    """Relationship totals for one (user, company) pair."""

    user_id: str
    company_id: str
    meetings_count: int
    last_seen_at: datetime | None
    strength_score: float


@dataclass(slots=True)
class SyncResult:
    contacts_found: int
    companies_found: int


@dataclass(slots=True)
class SyncStatus:
    is_connected: bool
    last_synced_at: datetime | None
    accounts_count: int


@dataclass(slots=True)
class CalendarAccount:
    """Represents a calendar_accounts row (envelopes excluded)."""

    id: str
    user_id: str
    email: str
    name: str | None
    is_active: bool
    last_synced_at: datetime | None
    created_at: datetime | None
    has_credentials: bool = False
    contacts_count: int = 0


@dataclass(slots=True)
class ApprovalResult:
    approved: int
    relationships_updated: int
