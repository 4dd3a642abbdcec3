"""
Contact aggregation service.

Folds provider calendar events into per-contact meeting statistics. Pure
and in memory: one aggregator lives for exactly one sync pass and is
discarded if the pass is abandoned before reconciliation.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime

from relgraph.features.network_sync.domain.models import ContactAggregate, MeetingRecord
from relgraph.features.network_sync.pipeline.classification import (
    extract_domain,
    is_business_email,
)
from relgraph.infrastructure.observability.logging import get_logger
from relgraph.models.domain.calendar_domain import CalendarEvent

logger = get_logger(__name__)


class ContactAggregator:
    """
    Keyed by lower-cased attendee email.

    "Most recent" fields (name, last_event_title, last_seen_at) move only
    when an event is strictly newer than the recorded one, so events that
    share a timestamp keep whichever was folded first.
    """

    def __init__(self, user_email: str | None = None, now: datetime | None = None):
        self.user_email = user_email.lower() if user_email else None
        # Fallback date for events without a start
        self.now = now or datetime.now(UTC)
        self._contacts: dict[str, ContactAggregate] = {}
        self.events_seen = 0
        self.attendees_skipped = 0

    def __len__(self) -> int:
        return len(self._contacts)

    def fold_page(self, events: Iterable[CalendarEvent]) -> None:
        for event in events:
            self.add_event(event)

    def add_event(self, event: CalendarEvent) -> None:
        self.events_seen += 1

        if not event.attendees:
            return

        event_date = event.event_date(self.now)
        duration = event.duration_minutes()

        for attendee in event.attendees:
            email = attendee.email.strip().lower() if attendee.email else ""
            if not email or not is_business_email(email, self.user_email):
                self.attendees_skipped += 1
                continue

            meeting = MeetingRecord(title=event.title, date=event_date, duration_minutes=duration)
            existing = self._contacts.get(email)

            if existing is None:
                self._contacts[email] = ContactAggregate(
                    email=email,
                    domain=extract_domain(email),
                    meetings_count=1,
                    last_seen_at=event_date,
                    last_event_title=event.title,
                    name=attendee.display_name,
                    meetings=[meeting],
                )
                continue

            existing.meetings_count += 1
            existing.meetings.append(meeting)
            if event_date > existing.last_seen_at:
                existing.last_seen_at = event_date
                existing.last_event_title = event.title
                existing.name = attendee.display_name or existing.name

    def contacts(self) -> list[ContactAggregate]:
        return list(self._contacts.values())

    def get(self, email: str) -> ContactAggregate | None:
        return self._contacts.get(email.lower())

    def domains(self) -> list[str]:
        """Distinct domains in first-seen order."""
        return list(dict.fromkeys(contact.domain for contact in self._contacts.values()))

    def summary(self) -> dict:
        return {
            "events_seen": self.events_seen,
            "contacts_found": len(self._contacts),
            "companies_found": len(self.domains()),
            "attendees_skipped": self.attendees_skipped,
        }
