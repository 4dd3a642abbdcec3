"""
Google Calendar API client used by calendar sync.
Lists events page by page and reads calendar settings. When a page
request is rejected with 401 and a refresh token is available, the
access token is refreshed once and the new pair is returned with the page.
"""

import asyncio
from datetime import datetime

import httpx

from relgraph.infrastructure.observability.logging import get_logger
from relgraph.models.domain.calendar_domain import CalendarEvent, CalendarEventsPage
from relgraph.models.domain.credentials_domain import CredentialPair
from relgraph.services.google_oauth_service import GoogleOAuthService, google_oauth_service

logger = get_logger(__name__)

# Google Calendar API configuration
CALENDAR_API_BASE_URL = "https://www.googleapis.com/calendar/v3"
CALENDAR_PRIMARY = "primary"  # User's primary calendar
EVENTS_PAGE_SIZE = 250

# Request timeouts and retry configuration
REQUEST_TIMEOUT = 30  # seconds (calendar operations can be slower)
MAX_RETRIES = 3
BACKOFF_FACTOR = 2
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}

REAUTH_STATUS_CODES = {401, 403}


class GoogleCalendarError(Exception):
    """Custom exception for Google Calendar API errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        response_data: dict | None = None,
    ):
        super().__init__(message)
        self.error_code = error_code
        self.status_code = status_code
        self.response_data = response_data or {}

    @property
    def requires_reauth(self) -> bool:
        return self.status_code in REAUTH_STATUS_CODES


class GoogleCalendarService:
    """
    Service for Google Calendar API operations.

    Handles paginated event listing and settings lookup with retry on
    transient statuses and a single refresh-and-retry on expired tokens.
    """

    def __init__(self, oauth_service: GoogleOAuthService | None = None):
        self._client = self._create_client()
        self._oauth_service = oauth_service or google_oauth_service

    def _create_client(self) -> httpx.AsyncClient:
        """Create async HTTP client for Calendar API."""
        timeout = httpx.Timeout(REQUEST_TIMEOUT)
        limits = httpx.Limits(max_keepalive_connections=20, max_connections=50)
        return httpx.AsyncClient(timeout=timeout, limits=limits)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def _request_with_retry(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Execute an HTTP request with retry and backoff."""
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                response = await self._client.request(method, url, **kwargs)
                if response.status_code in RETRY_STATUS_CODES and attempt < MAX_RETRIES:
                    backoff = BACKOFF_FACTOR * (2 ** (attempt - 1))
                    logger.debug(
                        "Calendar API retrying request",
                        attempt=attempt,
                        status_code=response.status_code,
                        backoff_seconds=backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                return response
            except httpx.RequestError as e:
                if attempt >= MAX_RETRIES:
                    raise
                backoff = BACKOFF_FACTOR * (2 ** (attempt - 1))
                logger.debug(
                    "Calendar API request error, retrying",
                    attempt=attempt,
                    error=str(e),
                    backoff_seconds=backoff,
                )
                await asyncio.sleep(backoff)
        raise RuntimeError("Calendar API retry loop exhausted")

    def _get_auth_headers(self, access_token: str) -> dict:
        """Get authorization headers for Calendar API requests."""
        return {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }

    def _handle_api_response(self, response: httpx.Response, operation: str) -> dict:
        """
        Handle and validate Calendar API response.

        Args:
            response: HTTP response from Calendar API
            operation: Operation name for logging

        Returns:
            dict: Parsed response data

        Raises:
            GoogleCalendarError: If response contains errors
        """
        logger.debug(
            "Calendar API response",
            operation=operation,
            status_code=response.status_code,
            response_size=len(response.text) if response.text else 0,
        )

        if response.is_success:
            try:
                return response.json() if response.text else {}
            except ValueError as e:
                logger.error("Failed to parse Calendar API response", operation=operation, error=str(e))
                raise GoogleCalendarError(f"Invalid response format: {e}") from e

        try:
            error_data = response.json() if response.text else {}
        except ValueError:
            logger.error(
                "Calendar API failed with non-JSON response",
                operation=operation,
                status_code=response.status_code,
                response_text=response.text[:200] if response.text else "",
            )
            raise GoogleCalendarError(
                f"Calendar API error (HTTP {response.status_code})",
                status_code=response.status_code,
            ) from None

        error_info = error_data.get("error", {}) if isinstance(error_data, dict) else {}
        if not isinstance(error_info, dict):
            error_info = {"message": str(error_info)}
        error_code = str(error_info.get("code", response.status_code))
        error_message = error_info.get("message", "Unknown Calendar API error")

        logger.error(
            "Calendar API request failed",
            operation=operation,
            status_code=response.status_code,
            error_code=error_code,
            error_message=error_message,
        )

        raise GoogleCalendarError(
            self._map_calendar_error(error_code, error_message),
            error_code=error_code,
            status_code=response.status_code,
            response_data=error_data,
        )

    def _map_calendar_error(self, error_code: str, error_message: str) -> str:
        """Map Calendar API error codes to user-friendly messages."""
        error_mappings = {
            "403": "Calendar access denied. Please check permissions.",
            "404": "Calendar not found.",
            "400": "Invalid calendar request format.",
            "401": "Calendar authorization expired. Please reconnect.",
            "429": "Too many calendar requests. Please try again later.",
            "500": "Google Calendar service temporarily unavailable.",
        }

        return error_mappings.get(error_code, f"Calendar error: {error_message}")

    async def list_events_page(
        self,
        credentials: CredentialPair,
        time_min: datetime,
        time_max: datetime,
        page_token: str | None = None,
        max_results: int = EVENTS_PAGE_SIZE,
        calendar_id: str = CALENDAR_PRIMARY,
    ) -> CalendarEventsPage:
        """
        Fetch one page of single (expanded) events ordered by start time.

        Returns:
            CalendarEventsPage: events, continuation cursor, and the rotated
            credential pair when a refresh happened during this call

        Raises:
            GoogleCalendarError: API failure (requires_reauth for 401/403)
            GoogleOAuthError: Refresh was attempted and rejected
        """
        url = f"{CALENDAR_API_BASE_URL}/calendars/{calendar_id}/events"
        params = {
            "timeMin": time_min.isoformat(),
            "timeMax": time_max.isoformat(),
            "maxResults": max_results,
            "singleEvents": "true",
            "orderBy": "startTime",
        }
        if page_token:
            params["pageToken"] = page_token

        rotated: CredentialPair | None = None
        try:
            response = await self._request_with_retry(
                "GET", url, headers=self._get_auth_headers(credentials.access_token), params=params
            )

            if response.status_code == 401 and credentials.has_refresh_token():
                logger.info("Calendar access token rejected, refreshing", calendar_id=calendar_id)
                token_response = await self._oauth_service.refresh_access_token(
                    credentials.refresh_token
                )
                rotated = credentials.rotated(
                    token_response.access_token, token_response.refresh_token
                )
                response = await self._request_with_retry(
                    "GET", url, headers=self._get_auth_headers(rotated.access_token), params=params
                )

        except httpx.RequestError as e:
            logger.error(
                "Network error listing calendar events",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise GoogleCalendarError(f"Network error listing events: {e}") from e

        data = self._handle_api_response(response, "list_events")
        events = [CalendarEvent(item) for item in data.get("items") or []]

        logger.debug(
            "Calendar events page fetched",
            event_count=len(events),
            has_next_page=bool(data.get("nextPageToken")),
            rotated=rotated is not None,
        )
        return CalendarEventsPage(
            events=events,
            next_page_token=data.get("nextPageToken") or None,
            rotated_credentials=rotated,
        )

    async def get_timezone(self, access_token: str) -> str | None:
        """Read the user's calendar timezone setting (e.g. "Europe/Berlin")."""
        url = f"{CALENDAR_API_BASE_URL}/users/me/settings/timezone"
        try:
            response = await self._request_with_retry(
                "GET", url, headers=self._get_auth_headers(access_token)
            )
        except httpx.RequestError as e:
            raise GoogleCalendarError(f"Network error reading timezone: {e}") from e

        data = self._handle_api_response(response, "get_timezone")
        return data.get("value") or None


google_calendar_service = GoogleCalendarService()
