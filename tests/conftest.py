from datetime import UTC, datetime

import pytest

from relgraph.auth.verify import current_user_dependency
from relgraph.config import settings
from relgraph.db.helpers import DatabaseError
from relgraph.features.network_sync.domain.models import (
    ApprovedContactRow,
    CalendarAccount,
    ContactAggregate,
    MeetingRecord,
)
from relgraph.models.domain.calendar_domain import CalendarEvent, CalendarEventsPage
from relgraph.models.domain.credentials_domain import CredentialOwner, CredentialPair
from relgraph.models.domain.user_domain import UserProfile

TEST_ENCRYPTION_KEY = "0f" * 32
NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def encryption_key(monkeypatch):
    monkeypatch.setattr(settings, "ENCRYPTION_KEY", TEST_ENCRYPTION_KEY)
    return TEST_ENCRYPTION_KEY


@pytest.fixture
def now():
    return NOW


def _make_event(
    *emails,
    start="2024-05-01T10:00:00Z",
    end=None,
    summary="Sync",
    names=None,
    all_day=False,
):
    """Build a CalendarEvent from attendee emails."""
    names = names or {}
    start_key = "date" if all_day else "dateTime"
    data = {
        "id": f"evt-{start}-{summary}",
        "summary": summary,
        "start": {start_key: start},
        "attendees": [
            {"email": email, **({"displayName": names[email]} if email in names else {})}
            for email in emails
        ],
    }
    if end:
        data["end"] = {start_key: end}
    return CalendarEvent(data)


class FakeGraphStore:
    """In-memory stand-in for the reconciliation and scoring repositories."""

    def __init__(self):
        self.companies: dict[str, dict] = {}
        self.contacts: dict[tuple[str, str], dict] = {}
        self.meetings: dict[str, list[MeetingRecord]] = {}
        self.relationships: dict[tuple[str, str], dict] = {}
        self.user_synced_at: dict[str, datetime] = {}
        self.account_synced_at: dict[str, datetime] = {}
        self.ensure_calls: list[list[tuple[str, str]]] = []
        self.fail_on: set[str] = set()
        self._next_id = 0

    def _new_id(self, prefix: str) -> str:
        self._next_id += 1
        return f"{prefix}-{self._next_id}"

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise DatabaseError(f"{operation} failed", operation=operation, recoverable=False)

    # Reconciliation side
    async def ensure_companies(self, companies):
        self._maybe_fail("ensure_companies")
        self.ensure_calls.append(list(companies))
        for domain, name in companies:
            if domain not in self.companies:
                self.companies[domain] = {"id": self._new_id("company"), "name": name}

    async def fetch_company_ids(self, domains):
        return {d: self.companies[d]["id"] for d in domains if d in self.companies}

    async def upsert_contact(
        self, user_id, contact: ContactAggregate, company_id, source_account_id=None
    ):
        self._maybe_fail("upsert_contact")
        key = (user_id, contact.email)
        existing = self.contacts.get(key)
        if existing is None:
            existing = {"id": self._new_id("contact"), "user_id": user_id, "email": contact.email}
            self.contacts[key] = existing
        existing.update(
            name=contact.name or existing.get("name"),
            company_id=company_id,
            meetings_count=contact.meetings_count,
            last_seen_at=contact.last_seen_at,
            last_event_title=contact.last_event_title,
            is_approved=True,
            source_account_id=source_account_id or existing.get("source_account_id"),
        )
        return existing["id"]

    async def replace_meetings(self, contact_id, meetings):
        self._maybe_fail("replace_meetings")
        self.meetings[contact_id] = list(meetings)

    async def stamp_user_synced(self, user_id, at):
        self.user_synced_at[user_id] = at

    async def stamp_account_synced(self, account_id, at):
        self.account_synced_at[account_id] = at

    # Scoring side
    def add_contact(
        self, user_id, email, company_id, meetings_count, last_seen_at, is_approved=False
    ) -> str:
        contact_id = self._new_id("contact")
        self.contacts[(user_id, email)] = {
            "id": contact_id,
            "user_id": user_id,
            "email": email,
            "company_id": company_id,
            "meetings_count": meetings_count,
            "last_seen_at": last_seen_at,
            "is_approved": is_approved,
        }
        return contact_id

    async def approve_contacts(self, user_id, contact_ids):
        self._maybe_fail("approve_contacts")
        rows = []
        for contact in self.contacts.values():
            if contact["user_id"] == user_id and contact["id"] in contact_ids:
                contact["is_approved"] = True
                rows.append({"id": contact["id"], "company_id": contact.get("company_id")})
        return rows

    async def approve_pending_contacts(self, user_id):
        rows = []
        for contact in self.contacts.values():
            if contact["user_id"] == user_id and not contact["is_approved"]:
                contact["is_approved"] = True
                rows.append({"id": contact["id"], "company_id": contact.get("company_id")})
        return rows

    async def fetch_approved_contacts(self, user_id, company_ids=None):
        return [
            ApprovedContactRow(
                contact_id=c["id"],
                company_id=c["company_id"],
                meetings_count=c["meetings_count"],
                last_seen_at=c["last_seen_at"],
            )
            for c in self.contacts.values()
            if c["user_id"] == user_id
            and c["is_approved"]
            and c.get("company_id")
            and (company_ids is None or c["company_id"] in company_ids)
        ]

    async def upsert_relationships(self, strengths):
        self._maybe_fail("upsert_relationships")
        for strength in strengths:
            self.relationships[(strength.user_id, strength.company_id)] = {
                "meetings_count": strength.meetings_count,
                "last_seen_at": strength.last_seen_at,
                "strength_score": strength.strength_score,
            }


@pytest.fixture
def graph_store():
    return FakeGraphStore()


class FakeTokenService:
    def __init__(self, credentials: CredentialPair | None = None):
        self.credentials = credentials
        self.stored: list[tuple[CredentialOwner, CredentialPair]] = []
        self.cleared: list[CredentialOwner] = []

    async def load_credentials(self, owner):
        return self.credentials

    async def store_credentials(self, owner, credentials):
        self.stored.append((owner, credentials))
        self.credentials = credentials

    async def clear_credentials(self, owner):
        self.cleared.append(owner)
        self.credentials = None


@pytest.fixture
def fake_tokens():
    return FakeTokenService(CredentialPair(access_token="access-1", refresh_token="refresh-1"))


class FakeCalendarClient:
    """Serves queued pages or raises queued errors, one per call."""

    def __init__(self, pages=None, timezone=None):
        self.pages = list(pages or [])
        self.timezone = timezone
        self.calls: list[dict] = []

    async def list_events_page(self, credentials, time_min, time_max, page_token=None, **kwargs):
        self.calls.append(
            {
                "access_token": credentials.access_token,
                "time_min": time_min,
                "time_max": time_max,
                "page_token": page_token,
            }
        )
        item = self.pages.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def get_timezone(self, access_token):
        return self.timezone


def _make_page(*events, next_page_token=None, rotated=None) -> CalendarEventsPage:
    return CalendarEventsPage(
        events=list(events), next_page_token=next_page_token, rotated_credentials=rotated
    )


class FakeUsers:
    def __init__(self, profiles=None):
        self.profiles: dict[str, UserProfile] = dict(profiles or {})
        self.timezone_updates: list[tuple[str, str]] = []

    async def get_user_profile(self, user_id):
        return self.profiles.get(user_id)

    async def update_user_timezone(self, user_id, timezone):
        self.timezone_updates.append((user_id, timezone))
        return True

    async def list_users_with_calendar_credentials(self):
        return list(self.profiles)


@pytest.fixture
def user_profile():
    return UserProfile(
        user_id="user-123",
        email="me@acme.io",
        name="Me",
        timezone="UTC",
        calendar_connected=True,
    )


@pytest.fixture
def fake_users(user_profile):
    return FakeUsers({user_profile.user_id: user_profile})


class FakeAccounts:
    def __init__(self, accounts=None):
        self.accounts: dict[str, CalendarAccount] = {a.id: a for a in accounts or []}

    async def list_accounts(self, user_id):
        return [a for a in self.accounts.values() if a.user_id == user_id]

    async def get_account(self, user_id, account_id):
        account = self.accounts.get(account_id)
        return account if account and account.user_id == user_id else None

    async def count_active_accounts(self, user_id):
        return sum(1 for a in self.accounts.values() if a.user_id == user_id and a.is_active)

    async def delete_account(self, user_id, account_id):
        if await self.get_account(user_id, account_id) is None:
            return False
        del self.accounts[account_id]
        return True


@pytest.fixture
def fake_accounts():
    return FakeAccounts(
        [
            CalendarAccount(
                id="acct-1",
                user_id="user-123",
                email="me@sidegig.dev",
                name="Side gig",
                is_active=True,
                last_synced_at=None,
                created_at=NOW,
                has_credentials=True,
            )
        ]
    )


@pytest.fixture
def current_user_override(user_profile):
    def _override():
        return user_profile

    return _override


@pytest.fixture
def apply_auth_override(current_user_override):
    def _apply(app):
        app.dependency_overrides[current_user_dependency] = current_user_override

    return _apply


@pytest.fixture
def make_event():
    return _make_event


@pytest.fixture
def make_page():
    return _make_page


@pytest.fixture
def calendar_client_cls():
    return FakeCalendarClient
