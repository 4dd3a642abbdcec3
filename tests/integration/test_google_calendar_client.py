import re
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio

from relgraph.config import settings
from relgraph.models.domain.credentials_domain import CredentialPair
from relgraph.services.calendar.google_client import GoogleCalendarError, GoogleCalendarService
from relgraph.services.google_oauth_service import GOOGLE_TOKEN_URL, GoogleOAuthError, GoogleOAuthService

EVENTS_URL = re.compile(r"https://www\.googleapis\.com/calendar/v3/calendars/primary/events.*")
TIMEZONE_URL = "https://www.googleapis.com/calendar/v3/users/me/settings/timezone"

TIME_MAX = datetime(2024, 6, 1, tzinfo=UTC)
TIME_MIN = TIME_MAX - timedelta(days=365)

EVENT = {
    "id": "event-1",
    "status": "confirmed",
    "summary": "Intro call",
    "start": {"dateTime": "2024-01-01T10:00:00Z"},
    "end": {"dateTime": "2024-01-01T10:30:00Z"},
    "attendees": [{"email": "jane@stripe.com", "displayName": "Jane"}],
}


@pytest_asyncio.fixture
async def calendar_service(monkeypatch):
    monkeypatch.setattr(settings, "GOOGLE_CLIENT_ID", "client-id")
    monkeypatch.setattr(settings, "GOOGLE_CLIENT_SECRET", "client-secret")
    service = GoogleCalendarService(oauth_service=GoogleOAuthService())
    yield service
    await service.close()


@pytest.mark.asyncio
async def test_list_events_page_success(httpx_mock, calendar_service):
    httpx_mock.add_response(
        method="GET", url=EVENTS_URL, json={"items": [EVENT], "nextPageToken": "page-2"}
    )

    page = await calendar_service.list_events_page(
        CredentialPair(access_token="token"), TIME_MIN, TIME_MAX
    )

    assert page.next_page_token == "page-2"
    assert page.rotated_credentials is None
    assert page.events[0].title == "Intro call"
    assert page.events[0].attendees[0].display_name == "Jane"

    request = httpx_mock.get_requests()[0]
    assert request.headers["Authorization"] == "Bearer token"
    assert request.url.params["singleEvents"] == "true"
    assert request.url.params["orderBy"] == "startTime"
    assert request.url.params["maxResults"] == "250"
    assert "pageToken" not in request.url.params


@pytest.mark.asyncio
async def test_page_token_is_forwarded(httpx_mock, calendar_service):
    httpx_mock.add_response(method="GET", url=EVENTS_URL, json={"items": []})

    page = await calendar_service.list_events_page(
        CredentialPair(access_token="token"), TIME_MIN, TIME_MAX, page_token="page-2"
    )

    assert page.next_page_token is None
    assert httpx_mock.get_requests()[0].url.params["pageToken"] == "page-2"


@pytest.mark.asyncio
async def test_expired_access_token_is_refreshed_once(httpx_mock, calendar_service):
    httpx_mock.add_response(
        method="GET",
        url=EVENTS_URL,
        status_code=401,
        json={"error": {"code": 401, "message": "Invalid Credentials"}},
    )
    httpx_mock.add_response(
        method="POST",
        url=GOOGLE_TOKEN_URL,
        json={"access_token": "fresh-token", "expires_in": 3599, "token_type": "Bearer"},
    )
    httpx_mock.add_response(method="GET", url=EVENTS_URL, json={"items": [EVENT]})

    page = await calendar_service.list_events_page(
        CredentialPair(access_token="stale-token", refresh_token="refresh-token"),
        TIME_MIN,
        TIME_MAX,
    )

    assert len(page.events) == 1
    assert page.rotated_credentials.access_token == "fresh-token"
    assert page.rotated_credentials.refresh_token == "refresh-token"

    retried = httpx_mock.get_requests(method="GET")[-1]
    assert retried.headers["Authorization"] == "Bearer fresh-token"


@pytest.mark.asyncio
async def test_401_without_refresh_token_requires_reauth(httpx_mock, calendar_service):
    httpx_mock.add_response(
        method="GET",
        url=EVENTS_URL,
        status_code=401,
        json={"error": {"code": 401, "message": "Invalid Credentials"}},
    )

    with pytest.raises(GoogleCalendarError) as exc:
        await calendar_service.list_events_page(
            CredentialPair(access_token="stale-token"), TIME_MIN, TIME_MAX
        )

    assert exc.value.requires_reauth is True
    assert "reconnect" in str(exc.value).lower()


@pytest.mark.asyncio
async def test_403_requires_reauth(httpx_mock, calendar_service):
    httpx_mock.add_response(
        method="GET",
        url=EVENTS_URL,
        status_code=403,
        json={"error": {"code": 403, "message": "Insufficient Permission"}},
    )

    with pytest.raises(GoogleCalendarError) as exc:
        await calendar_service.list_events_page(
            CredentialPair(access_token="token", refresh_token="refresh-token"), TIME_MIN, TIME_MAX
        )

    assert exc.value.status_code == 403
    assert exc.value.requires_reauth is True


@pytest.mark.asyncio
async def test_revoked_refresh_token(httpx_mock, calendar_service):
    httpx_mock.add_response(
        method="GET",
        url=EVENTS_URL,
        status_code=401,
        json={"error": {"code": 401, "message": "Invalid Credentials"}},
    )
    httpx_mock.add_response(
        method="POST",
        url=GOOGLE_TOKEN_URL,
        status_code=400,
        json={"error": "invalid_grant", "error_description": "Token has been expired or revoked."},
    )

    with pytest.raises(GoogleOAuthError) as exc:
        await calendar_service.list_events_page(
            CredentialPair(access_token="stale-token", refresh_token="revoked"), TIME_MIN, TIME_MAX
        )

    assert exc.value.error_code == "invalid_grant"
    assert exc.value.requires_reauth is True


@pytest.mark.asyncio
async def test_not_found_is_not_reauth(httpx_mock, calendar_service):
    httpx_mock.add_response(
        method="GET",
        url=EVENTS_URL,
        status_code=404,
        json={"error": {"code": 404, "message": "Not Found"}},
    )

    with pytest.raises(GoogleCalendarError) as exc:
        await calendar_service.list_events_page(
            CredentialPair(access_token="token"), TIME_MIN, TIME_MAX
        )

    assert exc.value.requires_reauth is False


@pytest.mark.asyncio
async def test_get_timezone(httpx_mock, calendar_service):
    httpx_mock.add_response(method="GET", url=TIMEZONE_URL, json={"value": "Europe/Berlin"})

    assert await calendar_service.get_timezone("token") == "Europe/Berlin"
